"""
Glob compiler for governance rules and file-scope locks.

Supports three tokens, matched against virtual paths (never the filesystem):

- ``*``  any run of characters except ``/``
- ``**`` any run of characters including ``/`` (zero or more segments)
- ``?``  exactly one character except ``/``

Patterns compile to anchored regular expressions.
"""

from __future__ import annotations

import re
from functools import lru_cache

# Concrete substitutions used to build one path a pattern is known to match.
_MATERIALIZE_DEEP = "deep"
_MATERIALIZE_STAR = "x"
_MATERIALIZE_CHAR = "a"


@lru_cache(maxsize=1024)
def compile_glob(pattern: str) -> re.Pattern[str]:
    """Compile a glob pattern to an anchored regex.

    Args:
        pattern: Glob pattern using ``*``, ``**`` and ``?``

    Returns:
        Compiled regular expression matching whole paths only
    """
    parts: list[str] = []
    i = 0
    n = len(pattern)
    while i < n:
        char = pattern[i]
        if char == "*":
            if i + 1 < n and pattern[i + 1] == "*":
                # "**/" may also match zero directories
                if i + 2 < n and pattern[i + 2] == "/":
                    parts.append("(?:.*/)?")
                    i += 3
                else:
                    parts.append(".*")
                    i += 2
                continue
            parts.append("[^/]*")
        elif char == "?":
            parts.append("[^/]")
        else:
            parts.append(re.escape(char))
        i += 1
    return re.compile("^" + "".join(parts) + "$")


def match_glob(pattern: str, path: str) -> bool:
    """Return True if ``path`` fully matches ``pattern``."""
    return compile_glob(pattern).match(path) is not None


def materialize_pattern(pattern: str) -> str:
    """Produce one concrete path that ``pattern`` matches.

    A ``**`` segment becomes ``deep``; elsewhere ``*`` becomes ``x`` and ``?``
    becomes ``a``. ``src/**/*.ts`` materializes to ``src/deep/x.ts``.
    """
    return "/".join(
        _MATERIALIZE_DEEP
        if segment == "**"
        else segment.replace("*", _MATERIALIZE_STAR).replace("?", _MATERIALIZE_CHAR)
        for segment in pattern.split("/")
    )


def matches_pattern(pattern: str, candidate: str) -> bool:
    """Glob match that also treats ``dir/**`` as covering ``dir`` and ``dir/...``."""
    if not pattern or not candidate:
        return False
    if match_glob(pattern, candidate):
        return True
    if pattern.endswith("/**"):
        return candidate == pattern[:-3] or candidate.startswith(pattern[:-2])
    return False


def patterns_overlap(a: str, b: str) -> bool:
    """Return True if two glob patterns can match a common path.

    Checks both literal directions and both materialized directions, which
    catches exact duplicates and nested scopes such as ``src/**`` against
    ``src/utils/**/*.ts`` without enumerating any directory. An empty
    pattern overlaps nothing.
    """
    return (
        matches_pattern(a, b)
        or matches_pattern(b, a)
        or matches_pattern(a, materialize_pattern(b))
        or matches_pattern(b, materialize_pattern(a))
    )
