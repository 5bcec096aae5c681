from __future__ import annotations

import glob
import os
import re
from collections.abc import Iterable
from functools import lru_cache

"""Glob Matcher: wildcard matching and filesystem expansion.

Supported syntax: ``?`` (one character), ``*`` (any run of characters except
``/``), ``**`` as a whole path segment (zero or more segments), ``[...]`` and
``[!...]`` character classes. Matching is case-sensitive and anchored.
"""

__all__ = [
    "GlobMatcher",
    "has_magic",
]

_MAGIC = re.compile(r"[*?\[]")


def has_magic(pattern: str) -> bool:
    return _MAGIC.search(pattern) is not None


@lru_cache(maxsize=256)
def _compile(pattern: str) -> re.Pattern[str]:
    out: list[str] = []
    i, n = 0, len(pattern)
    while i < n:
        ch = pattern[i]
        if ch == "*":
            whole_segment = (
                i + 1 < n
                and pattern[i + 1] == "*"
                and (i == 0 or pattern[i - 1] == "/")
                and (i + 2 == n or pattern[i + 2] == "/")
            )
            if whole_segment:
                if i + 2 == n:
                    out.append(".*")
                    i += 2
                else:
                    out.append("(?:.*/)?")
                    i += 3
                continue
            out.append("[^/]*")
        elif ch == "?":
            out.append("[^/]")
        elif ch == "[":
            j = i + 1
            if j < n and pattern[j] == "!":
                j += 1
            if j < n and pattern[j] == "]":
                j += 1
            while j < n and pattern[j] != "]":
                j += 1
            if j >= n:
                out.append(re.escape(ch))
            else:
                body = pattern[i + 1 : j].replace("\\", "\\\\")
                if body.startswith("!"):
                    body = "^" + body[1:]
                elif body.startswith("^"):
                    body = "\\" + body
                out.append(f"[{body}]")
                i = j
        else:
            out.append(re.escape(ch))
        i += 1
    return re.compile("".join(out) + r"\Z", re.DOTALL)


class GlobMatcher:
    """Default Glob Matcher backed by the local filesystem.

    When ``candidates`` is given, expansion filters that fixed list of paths
    instead of touching the filesystem (in-memory providers).
    """

    def __init__(self, candidates: Iterable[str] | None = None) -> None:
        self._candidates = sorted(candidates) if candidates is not None else None

    def matches(self, pattern: str, candidate: str) -> bool:
        if os.sep != "/":
            candidate = candidate.replace(os.sep, "/")
            pattern = pattern.replace(os.sep, "/")
        return _compile(pattern).match(candidate) is not None

    def expand(self, pattern: str) -> list[str]:
        """Expand a file pattern to existing files, in lexical order.

        A pattern without wildcards is a literal path and is returned as-is
        when the file exists.
        """
        if self._candidates is not None:
            if not has_magic(pattern):
                return [pattern] if pattern in self._candidates else []
            return [p for p in self._candidates if self.matches(pattern, p)]
        if not has_magic(pattern):
            return [pattern] if os.path.isfile(pattern) else []
        return sorted(p for p in glob.glob(pattern, recursive=True) if os.path.isfile(p))
