"""Glob matching for module ownership patterns.

Module configs describe ownership with POSIX-style globs relative to the
project root (``apps/web/**``, ``packages/*/src/**/*.ts``). ``fnmatch``
lets ``*`` cross directory separators, so patterns are compiled to
regular expressions here instead:

- ``**`` matches any number of path segments (including none)
- ``*`` matches within a single segment
- ``?`` matches one character other than ``/``
- ``[...]`` character classes are passed through
"""

from __future__ import annotations

import re
from functools import lru_cache


@lru_cache(maxsize=512)
def compile_glob(pattern: str) -> re.Pattern[str]:
    """Compile a glob pattern into an anchored regular expression."""
    pattern = normalize_path(pattern)
    parts: list[str] = []
    i = 0
    n = len(pattern)
    while i < n:
        char = pattern[i]
        if char == "*":
            if pattern.startswith("**", i):
                i += 2
                if i < n and pattern[i] == "/":
                    # "**/" - zero or more leading directories
                    i += 1
                    parts.append("(?:.*/)?")
                else:
                    parts.append(".*")
                continue
            parts.append("[^/]*")
        elif char == "?":
            parts.append("[^/]")
        elif char == "[":
            end = pattern.find("]", i + 1)
            if end == -1:
                parts.append(re.escape(char))
            else:
                body = pattern[i + 1 : end]
                if body.startswith("!"):
                    body = "^" + body[1:]
                parts.append(f"[{body}]")
                i = end
        else:
            parts.append(re.escape(char))
        i += 1
    return re.compile("^" + "".join(parts) + "$")


def normalize_path(path: str) -> str:
    """Normalize a relative path to forward slashes without a leading ``./``."""
    text = str(path).replace("\\", "/")
    while text.startswith("./"):
        text = text[2:]
    return text


def glob_matches(pattern: str, rel_path: str) -> bool:
    """Return True if a project-relative path matches a glob pattern."""
    return compile_glob(pattern).match(normalize_path(rel_path)) is not None


def matches_any(patterns: list[str], rel_path: str) -> bool:
    """Return True if the path matches at least one of the patterns."""
    return any(glob_matches(p, rel_path) for p in patterns)
