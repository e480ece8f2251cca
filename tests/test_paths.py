"""Tests for Ant-style path matching and the LRU cache behind it."""

import unittest
from concurrent.futures import ThreadPoolExecutor

from htmlshield import PathMatcher, match_path
from htmlshield.cache import LRUCache


class TestMatchPath(unittest.TestCase):
    def test_double_star_matches_any_depth(self):
        assert match_path("/api/**", "/api/users/1")
        assert match_path("/api/**", "/api")
        assert match_path("/api/**", "/api/")
        assert not match_path("/api/**", "/apix/users")
        assert not match_path("/api/**", "/v1/api/users")

    def test_double_star_in_the_middle(self):
        assert match_path("/a/**/c", "/a/b/x/c")
        assert match_path("/a/**/c", "/a/c")
        assert not match_path("/a/**/c", "/a/b/d")

    def test_leading_double_star(self):
        assert match_path("**/*.css", "/static/css/site.css")
        assert match_path("**/*.css", "/site.css")
        assert not match_path("**/*.css", "/site.css.map")

    def test_single_star_stays_in_segment(self):
        assert match_path("/a/*/c", "/a/b/c")
        assert not match_path("/a/*/c", "/a/b/x/c")
        assert match_path("/files/*.txt", "/files/notes.txt")

    def test_question_mark(self):
        assert match_path("/user/?", "/user/1")
        assert not match_path("/user/?", "/user/12")

    def test_literal(self):
        assert match_path("/favicon.ico", "/favicon.ico")
        assert not match_path("/favicon.ico", "/favicon.ico/x")
        assert match_path(" /robots.txt ", "/robots.txt")


class TestPathMatcher(unittest.TestCase):
    def test_matches_any_pattern(self):
        matcher = PathMatcher(["/api/**", "/v1/**"])
        assert matcher.matches("/api/x")
        assert matcher.matches("/v1/y")
        assert not matcher.matches("/home")
        assert not matcher.matches(None)
        assert not matcher.matches("")

    def test_static_fast_path(self):
        assert PathMatcher(["/nothing"], static_fast_path=True).matches("/x/app.js")
        assert not PathMatcher(["/nothing"]).matches("/x/app.js")
        # No patterns means nothing is excluded, static or not.
        assert not PathMatcher([], static_fast_path=True).matches("/x/app.js")

    def test_cache_is_bounded(self):
        matcher = PathMatcher(["/a/**"], cache_size=2)
        for path in ("/a/1", "/a/2", "/b/3"):
            matcher.matches(path)
        assert len(matcher._cache) == 2
        assert "/a/1" not in matcher._cache
        matcher.clear_cache()
        assert len(matcher._cache) == 0

    def test_concurrent_use(self):
        matcher = PathMatcher(["/api/**"], cache_size=16)
        paths = [f"/api/{i}" if i % 2 else f"/web/{i}" for i in range(400)]
        with ThreadPoolExecutor(max_workers=8) as pool:
            results = list(pool.map(matcher.matches, paths))
        assert results == [i % 2 == 1 for i in range(400)]
        assert len(matcher._cache) <= 16


class TestLRUCache(unittest.TestCase):
    def test_evicts_least_recently_used(self):
        cache = LRUCache(2)
        cache.put("a", 1)
        cache.put("b", 2)
        assert cache.get("a") == 1
        cache.put("c", 3)
        assert "a" in cache
        assert "b" not in cache
        assert cache.get("b", "missing") == "missing"

    def test_get_or_compute_caches(self):
        calls = []

        def compute(key):
            calls.append(key)
            return key.upper()

        cache = LRUCache(4)
        assert cache.get_or_compute("x", compute) == "X"
        assert cache.get_or_compute("x", compute) == "X"
        assert calls == ["x"]

    def test_falsy_values_are_cached(self):
        calls = []
        cache = LRUCache(4)
        for _ in range(2):
            cache.get_or_compute("k", lambda key: calls.append(key) or False)
        assert calls == ["k"]

    def test_size_must_be_positive(self):
        with self.assertRaises(ValueError):
            LRUCache(0)


if __name__ == "__main__":
    unittest.main()
