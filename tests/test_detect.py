"""Tests for heuristic XSS detection."""

import time
import unittest

from loguru import logger

from htmlshield import XSS_PATTERNS, LogLevel, RequestInfo, contains_xss_pattern, find_xss_pattern
from htmlshield.detect import detect_xss


class TestFindPattern(unittest.TestCase):
    def test_script_tag(self):
        match = find_xss_pattern("<script>alert(1)</script>")
        assert match is not None
        assert match.pattern == XSS_PATTERNS[0].pattern
        assert match.matched == "<script>alert(1)</script>"
        assert match.decoding == "plain"

    def test_common_vectors(self):
        for text in (
            "<SCRIPT src=x>",
            "javascript:alert(1)",
            "VBScript:msgbox",
            "x=eval(atob(y))",
            "width: expression(alert(1))",
            "<img src='x'>",
            "<div onmouseover=alert(1)>",
            "%3Cscript",
            "%253E",
        ):
            assert find_xss_pattern(text) is not None, text

    def test_clean_text(self):
        for text in ("hello world", "a < b", "", None):
            assert find_xss_pattern(text) is None, text


class TestDecodingLayers(unittest.TestCase):
    def test_html_entities(self):
        match = detect_xss("&#106;avascript:alert(1)")
        assert match is not None
        assert match.decoding == "html"

    def test_url_encoding(self):
        match = detect_xss("javascript%3Aalert(1)")
        assert match is not None
        assert match.decoding == "url"

    def test_base64(self):
        # "javascript:x"
        match = detect_xss("amF2YXNjcmlwdDp4")
        assert match is not None
        assert match.decoding == "base64"

    def test_base64_lookalike_words_are_clean(self):
        assert detect_xss("test") is None
        assert detect_xss("abcd1234") is None


class TestRuleMatches(unittest.TestCase):
    def test_lazy_span_is_shortest(self):
        assert XSS_PATTERNS[5].search("x=eval(a)(b)") == "eval(a)"
        assert XSS_PATTERNS[4].search("<script src=x><b>") == "<script src=x>"
        assert XSS_PATTERNS[9].search("onload a=b=c") == "onload a="

    def test_script_span_does_not_cross_lines(self):
        text = "<script>a\nb</script> <script>c</script>"
        assert XSS_PATTERNS[0].search(text) == "<script>c</script>"
        assert XSS_PATTERNS[0].search("<script>a\nb</script>") is None

    def test_span_needs_a_suffix_after_the_prefix(self):
        assert XSS_PATTERNS[5].search(") eval(") is None
        assert XSS_PATTERNS[1].search("src=\n'x'") == "src=\n'x'"

    def test_event_handler_rule(self):
        rule = XSS_PATTERNS[10]
        assert rule.search("<div onmouseover=alert(1)>") == "onmouseover=alert(1)"
        assert rule.search("buttonx=1") == "onx=1"
        assert rule.search("ONCLICK=go") == "ONCLICK=go"
        assert rule.search("on=x") is None
        assert rule.search("onclick=>") is None
        assert rule.search("onclick=") is None


class TestWorstCaseInputs(unittest.TestCase):
    TIME_LIMIT = 2.0

    def test_unterminated_spans_are_linear(self):
        for text in ("eval(" * 20000, "onload" * 16000, "<script" * 14000, "expression(" * 9000, "on" * 50000):
            start = time.perf_counter()
            assert detect_xss(text) is None
            elapsed = time.perf_counter() - start
            assert elapsed < self.TIME_LIMIT, f"{elapsed:.2f}s for {text[:12]!r}..."

    def test_text_over_the_cap_is_not_scanned(self):
        text = "javascript:" * 10000
        assert len(text) > 100_000
        assert detect_xss(text) is None
        assert detect_xss(text, max_length=None) is not None
        assert detect_xss("javascript:x", max_length=5) is None


class TestContainsPattern(unittest.TestCase):
    def setUp(self):
        self.records = []
        logger.enable("htmlshield")
        handler_id = logger.add(lambda message: self.records.append(message.record), level="DEBUG")
        self.addCleanup(logger.disable, "htmlshield")
        self.addCleanup(logger.remove, handler_id)

    def test_clean_value_is_not_logged(self):
        assert not contains_xss_pattern("plain words")
        assert not contains_xss_pattern(None)
        assert self.records == []

    def test_match_is_logged_at_configured_level(self):
        assert contains_xss_pattern("<script>x</script>", log_level=LogLevel.ERROR)
        assert len(self.records) == 1
        assert self.records[0]["level"].name == "ERROR"
        assert "Pattern: <script>(.*?)</script>" in self.records[0]["message"]

        assert contains_xss_pattern("javascript:x")
        assert self.records[1]["level"].name == "WARNING"

        assert contains_xss_pattern("javascript:x", log_level="info")
        assert self.records[2]["level"].name == "INFO"

    def test_request_context_is_logged(self):
        info = RequestInfo(uri="/api/comments", client_ip="1.2.3.4", user_agent="curl/8")
        assert contains_xss_pattern("amF2YXNjcmlwdDp4", context=info)
        message = self.records[0]["message"]
        assert "after base64 decoding" in message
        assert "URI: /api/comments" in message
        assert "IP: 1.2.3.4" in message
        assert "User-Agent: curl/8" in message


class TestRequestInfo(unittest.TestCase):
    def test_first_forwarded_hop_wins(self):
        info = RequestInfo.from_headers(
            "/p", {"X-Forwarded-For": "1.2.3.4, 10.0.0.1", "User-Agent": "UA"}, remote_addr="9.9.9.9"
        )
        assert info.uri == "/p"
        assert info.client_ip == "1.2.3.4"
        assert info.user_agent == "UA"

    def test_remote_addr_fallback(self):
        info = RequestInfo.from_headers("/p", {"x-forwarded-for": "  "}, remote_addr="9.9.9.9")
        assert info.client_ip == "9.9.9.9"
        assert info.user_agent is None
        assert RequestInfo.from_headers(None, None).client_ip is None


if __name__ == "__main__":
    unittest.main()
