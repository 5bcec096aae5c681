from __future__ import annotations

import logging
import os
from pathlib import Path

from ..errors import NoMatchError, SpreadsheetIOError
from ..excel.globbing import GlobMatcher, has_magic
from ..excel.reader import CellGridProvider
from ..models.source import ResolvedSource, SheetPattern, SourceSpec

"""Pattern Resolver: file / sheet patterns -> ordered ResolvedSource list.

Order is pattern order, then match order within a pattern (lexical for file
globs, native workbook order for sheets). Files reached by more than one
pattern are kept at their first position only.
"""

__all__ = [
    "PatternResolver",
]

logger = logging.getLogger(__name__)


class PatternResolver:
    def __init__(self, provider: CellGridProvider, matcher: GlobMatcher | None = None) -> None:
        self._provider = provider
        self._matcher = matcher or GlobMatcher()

    def expand_files(self, patterns: tuple[str, ...] | list[str]) -> list[str]:
        """Expand file patterns in order, dropping repeated files.

        Raises:
            SpreadsheetIOError: If a literal (wildcard-free) path does not exist
        """
        files: list[str] = []
        seen: set[Path] = set()
        for pattern in patterns:
            matched = self._matcher.expand(pattern)
            if not matched:
                if not has_magic(pattern):
                    raise SpreadsheetIOError(pattern, "file not found")
                logger.warning("file pattern '%s' matched no files", pattern)
                continue
            for path in matched:
                key = Path(path).resolve()
                if key in seen:
                    continue
                seen.add(key)
                files.append(path)
        return files

    def applicable_patterns(self, patterns: tuple[SheetPattern, ...], path: str) -> list[str]:
        """Sheet globs that apply to ``path``: bare ones plus file-scoped ones matching it."""
        base = os.path.basename(path)
        applicable = []
        for pattern in patterns:
            if pattern.file_pattern is None:
                applicable.append(pattern.sheet_pattern)
            elif self._matcher.matches(pattern.file_pattern, path) or self._matcher.matches(
                pattern.file_pattern, base
            ):
                applicable.append(pattern.sheet_pattern)
        return applicable

    def _sheet_matches(self, pattern: str, sheet: str) -> bool:
        return pattern == sheet or self._matcher.matches(pattern, sheet)

    def select_sheets(self, path: str, patterns: tuple[SheetPattern, ...]) -> list[str]:
        names = self._provider.list_sheets(path)
        if not patterns:
            return names[:1]
        applicable = self.applicable_patterns(patterns, path)
        return [n for n in names if any(self._sheet_matches(p, n) for p in applicable)]

    def resolve(self, spec: SourceSpec) -> list[ResolvedSource]:
        """Resolve every (file, sheet) pair for a multi-source query.

        Raises:
            NoMatchError: If nothing matched at all
            SpreadsheetIOError: If a literal path is missing or a file is unreadable
        """
        sources: list[ResolvedSource] = []
        for path in self.expand_files(spec.file_patterns):
            selected = self.select_sheets(path, spec.sheet_patterns)
            if not selected:
                logger.info("no sheet matched in %s; skipping", path)
                continue
            sources.extend(ResolvedSource(path, name) for name in selected)
        if not sources:
            patterns = ", ".join(spec.file_patterns)
            sheets = ", ".join(str(p) for p in spec.sheet_patterns) or "<first sheet>"
            raise NoMatchError(f"no sheet matched: files=[{patterns}] sheets=[{sheets}]")
        logger.debug("resolved %d source(s)", len(sources))
        return sources

    def resolve_single(self, file_path: str, sheet: str | None = None) -> ResolvedSource:
        """Resolve a literal file path and optional sheet pattern to one source.

        Raises:
            SpreadsheetIOError: If the file is missing or unreadable
            NoMatchError: If the workbook has no sheet matching ``sheet``
        """
        names = self._provider.list_sheets(file_path)
        if sheet is None:
            if not names:
                raise NoMatchError(f"{file_path}: workbook has no sheets")
            return ResolvedSource(file_path, names[0])
        for name in names:
            if self._sheet_matches(sheet, name):
                return ResolvedSource(file_path, name)
        raise NoMatchError(f"{file_path}: no sheet matched '{sheet}'")
