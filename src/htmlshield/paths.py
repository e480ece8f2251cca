"""Ant-style URL path patterns."""

from __future__ import annotations

from collections.abc import Iterable

from .cache import LRUCache

STATIC_EXTENSIONS: tuple[str, ...] = (
    ".css", ".js", ".map", ".png", ".jpg", ".jpeg", ".gif", ".webp", ".svg", ".ico",
)


def _match_segment(pattern: str, text: str) -> bool:
    """Match one path segment.

    Supported wildcards:
    - '*' matches any sequence (including empty)
    - '?' matches any single character
    """

    if pattern == "*":
        return True
    if "*" not in pattern and "?" not in pattern:
        return pattern == text

    p_i = 0
    t_i = 0
    star_i = -1
    match_i = 0

    while t_i < len(text):
        if p_i < len(pattern) and (pattern[p_i] == "?" or pattern[p_i] == text[t_i]):
            p_i += 1
            t_i += 1
            continue

        if p_i < len(pattern) and pattern[p_i] == "*":
            star_i = p_i
            match_i = t_i
            p_i += 1
            continue

        if star_i != -1:
            p_i = star_i + 1
            match_i += 1
            t_i = match_i
            continue

        return False

    while p_i < len(pattern) and pattern[p_i] == "*":
        p_i += 1

    return p_i == len(pattern)


def _split(path: str) -> list[str]:
    return [segment for segment in path.split("/") if segment]


def match_path(pattern: str, path: str) -> bool:
    """Match `path` against an Ant-style pattern.

    '?' and '*' work inside a single segment; a '**' segment matches zero or
    more whole segments. Leading, trailing and repeated slashes are ignored,
    so "**/*.css" matches "/static/site.css" and "/api/**" matches "/api".
    """
    p_parts = _split(pattern.strip())
    t_parts = _split(path)

    # Same walk as _match_segment, one segment per step with '**' as the star.
    p_i = 0
    t_i = 0
    star_i = -1
    match_i = 0

    while t_i < len(t_parts):
        if p_i < len(p_parts) and p_parts[p_i] != "**" and _match_segment(p_parts[p_i], t_parts[t_i]):
            p_i += 1
            t_i += 1
            continue

        if p_i < len(p_parts) and p_parts[p_i] == "**":
            star_i = p_i
            match_i = t_i
            p_i += 1
            continue

        if star_i != -1:
            p_i = star_i + 1
            match_i += 1
            t_i = match_i
            continue

        return False

    while p_i < len(p_parts) and p_parts[p_i] == "**":
        p_i += 1

    return p_i == len(p_parts)


class PathMatcher:
    """Match paths against a fixed list of patterns, remembering recent answers.

    With `static_fast_path`, any path ending in a static-resource extension
    matches without consulting the patterns (as long as there are any).
    """

    __slots__ = ("_cache", "patterns", "static_fast_path")

    def __init__(self, patterns: Iterable[str], cache_size: int = 10000, *, static_fast_path: bool = False) -> None:
        self.patterns: tuple[str, ...] = tuple(p.strip() for p in patterns if p and p.strip())
        self.static_fast_path = static_fast_path
        self._cache = LRUCache(cache_size)

    def __repr__(self) -> str:
        return f"<PathMatcher {len(self.patterns)} patterns>"

    def matches(self, path: str | None) -> bool:
        if not path or not self.patterns:
            return False
        if self.static_fast_path and path.endswith(STATIC_EXTENSIONS):
            return True
        return self._cache.get_or_compute(path, self._match_any)

    def _match_any(self, path: str) -> bool:
        return any(match_path(pattern, path) for pattern in self.patterns)

    def clear_cache(self) -> None:
        self._cache.clear()
