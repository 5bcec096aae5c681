from __future__ import annotations

import sys
from typing import Any, Protocol

from tqdm import tqdm
from tqdm.std import tqdm as TqdmType

from ..models.source import ResolvedSource

"""Progress display with tqdm (TTY only).

The union engine reports source boundaries to listeners; ProgressTracker is
the listener the CLI installs. In non-TTY environments the bar is disabled to
avoid ANSI control sequences in captured output.
"""

__all__ = [
    "SourceListener",
    "ProgressTracker",
    "is_tty_enabled",
]


class SourceListener(Protocol):
    def start_source(self, source: ResolvedSource) -> None: ...

    def finish_source(self, source: ResolvedSource, rows: int) -> None: ...


def is_tty_enabled() -> bool:
    """True if stderr is a TTY (stdout carries the data rows)."""
    return sys.stderr.isatty()


class ProgressTracker:
    """Source-level progress bar.

    Args:
        total_sources: Number of resolved sources
        description: Bar label
        enabled: Force the bar on / off (default: TTY detection)
    """

    def __init__(self, total_sources: int, *, description: str = "Reading sheets", enabled: bool | None = None) -> None:
        self.total_sources = total_sources
        self.description = description
        self.current_source = 0
        self.rows = 0
        self.enabled = is_tty_enabled() if enabled is None else enabled
        self.pbar: TqdmType[Any] | None
        if self.enabled:
            self.pbar = tqdm(
                total=total_sources,
                desc=description,
                unit="sheet",
                leave=True,
                position=0,
                ncols=80,
                ascii=True,
                file=sys.stderr,
            )
        else:
            self.pbar = None

    def start_source(self, source: ResolvedSource) -> None:
        self.current_source += 1
        if self.pbar is not None:
            self.pbar.set_description(f"{self.description} ({source.sheet})")

    def finish_source(self, source: ResolvedSource, rows: int) -> None:
        self.rows += rows
        if self.pbar is not None:
            self.pbar.update(1)
            self.pbar.set_postfix(rows=self.rows)
            self.pbar.set_description(self.description)

    def close(self) -> None:
        if self.pbar is not None:
            self.pbar.close()
            self.pbar = None

    def __enter__(self) -> ProgressTracker:
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()
