from __future__ import annotations

from dataclasses import dataclass

"""Source selection models: patterns in, concrete (file, sheet) pairs out."""

__all__ = [
    "SheetPattern",
    "SourceSpec",
    "ResolvedSource",
]


@dataclass(frozen=True)
class SheetPattern:
    """A sheet glob, optionally scoped to files matching ``file_pattern``."""

    sheet_pattern: str
    file_pattern: str | None = None

    @classmethod
    def parse(cls, text: str) -> SheetPattern:
        """Parse ``sheet`` or ``filePattern=sheetPattern`` (split at the last '=')."""
        file_part, sep, sheet_part = text.rpartition("=")
        if not sep:
            return cls(sheet_pattern=text)
        return cls(sheet_pattern=sheet_part, file_pattern=file_part or None)

    def __str__(self) -> str:
        if self.file_pattern is None:
            return self.sheet_pattern
        return f"{self.file_pattern}={self.sheet_pattern}"


@dataclass(frozen=True)
class SourceSpec:
    """File glob patterns plus optional sheet patterns, in caller order."""

    file_patterns: tuple[str, ...]
    sheet_patterns: tuple[SheetPattern, ...] = ()


@dataclass(frozen=True)
class ResolvedSource:
    """One concrete (file path, sheet name) pair."""

    file: str
    sheet: str

    def __str__(self) -> str:
        return f"{self.file}[{self.sheet}]"
