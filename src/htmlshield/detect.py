"""Heuristic XSS pattern detection.

Detection is advisory: it flags and logs suspicious input, it never changes
it. Sanitization is what makes a value safe.
"""

from __future__ import annotations

import base64
import binascii
import html
import re
from collections.abc import Mapping
from dataclasses import dataclass
from urllib.parse import unquote_plus

from loguru import logger

from .config import LogLevel
from .sanitize import DEFAULT_MAX_INPUT_LENGTH

_DOTALL = re.IGNORECASE | re.MULTILINE | re.DOTALL


class _RegexRule:
    """A rule whose regex cannot backtrack across the input."""

    __slots__ = ("pattern", "_regex")

    def __init__(self, pattern: str, flags: int = 0) -> None:
        self.pattern = pattern
        self._regex = re.compile(pattern, flags)

    def search(self, text: str) -> str | None:
        match = self._regex.search(text)
        return match.group(0) if match is not None else None


class _SpanRule:
    """`prefix(.*?)suffix`, found with one forward pass.

    The leftmost prefix that has a suffix after it gives the same match as
    the lazy regex; when the suffix is missing after the first prefix it is
    missing after every later one too. Without DOTALL the span may not cross
    a newline, so the scan restarts after each newline that breaks it.
    """

    __slots__ = ("dotall", "pattern", "_prefix", "_suffix")

    def __init__(self, pattern: str, prefix: str, suffix: str, flags: int = 0) -> None:
        self.pattern = pattern
        self.dotall = bool(flags & re.DOTALL)
        self._prefix = re.compile(prefix, flags)
        self._suffix = re.compile(suffix, flags)

    def search(self, text: str) -> str | None:
        pos = 0
        suffix = None
        while True:
            head = self._prefix.search(text, pos)
            if head is None:
                return None
            if suffix is None or suffix.start() < head.end():
                suffix = self._suffix.search(text, head.end())
                if suffix is None:
                    return None
            if not self.dotall:
                newline = text.find("\n", head.end(), suffix.start())
                if newline != -1:
                    pos = newline + 1
                    continue
            return text[head.start():suffix.end()]


class _EventHandlerRule:
    """`(on[a-z]+)=[^>]+`, scanning each run of letters once."""

    __slots__ = ("pattern",)

    _LETTERS = re.compile(r"[a-z]+", re.IGNORECASE)
    _ON = re.compile(r"on", re.IGNORECASE)

    def __init__(self) -> None:
        self.pattern = r"(on[a-z]+)=[^>]+"

    def search(self, text: str) -> str | None:
        length = len(text)
        for run in self._LETTERS.finditer(text):
            end = run.end()
            if end + 1 >= length or text[end] != "=" or text[end + 1] == ">":
                continue
            # At least one letter must follow "on".
            on = self._ON.search(text, run.start(), end - 1)
            if on is None:
                continue
            close = text.find(">", end + 1)
            return text[on.start():close if close != -1 else length]
        return None


XSS_PATTERNS = (
    # Script tags
    _SpanRule(r"<script>(.*?)</script>", r"<script>", r"</script>", re.IGNORECASE),
    # src='...' and src="..."
    _SpanRule(r"src[\r\n]*=[\r\n]*'(.*?)'", r"src[\r\n]*=[\r\n]*'", r"'", _DOTALL),
    _SpanRule(r'src[\r\n]*=[\r\n]*"(.*?)"', r'src[\r\n]*=[\r\n]*"', r'"', _DOTALL),
    # Lone script tags
    _RegexRule(r"</script>", re.IGNORECASE),
    _SpanRule(r"<script(.*?)>", r"<script", r">", _DOTALL),
    _SpanRule(r"eval\((.*?)\)", r"eval\(", r"\)", _DOTALL),
    _SpanRule(r"expression\((.*?)\)", r"expression\(", r"\)", _DOTALL),
    _RegexRule(r"javascript:", re.IGNORECASE),
    _RegexRule(r"vbscript:", re.IGNORECASE),
    _SpanRule(r"onload(.*?)=", r"onload", r"=", _DOTALL),
    # Other event handlers
    _EventHandlerRule(),
    # URL-encoded "<script" and ">", including double encoding
    _RegexRule(r"%(25)*3Cscript", re.IGNORECASE),
    _RegexRule(r"%(25)*3E", re.IGNORECASE),
)

_BASE64_PATTERN = re.compile(r"(?:[A-Za-z0-9+/]{4})*(?:[A-Za-z0-9+/]{2}==|[A-Za-z0-9+/]{3}=)?")


@dataclass(frozen=True, slots=True)
class DetectionMatch:
    pattern: str
    matched: str
    # "plain", "html", "url" or "base64"
    decoding: str = "plain"


@dataclass(frozen=True, slots=True)
class RequestInfo:
    """Who sent a value, for detection log lines."""

    uri: str | None = None
    client_ip: str | None = None
    user_agent: str | None = None

    @classmethod
    def from_headers(
        cls,
        uri: str | None,
        headers: Mapping[str, str] | None,
        remote_addr: str | None = None,
    ) -> RequestInfo:
        """Build request info; the client IP is the first X-Forwarded-For hop, else `remote_addr`."""
        lowered = {str(k).lower(): v for k, v in (headers or {}).items()}
        forwarded = (lowered.get("x-forwarded-for") or "").strip()
        client_ip = forwarded.split(",", 1)[0].strip() if forwarded else remote_addr
        return cls(uri=uri, client_ip=client_ip or remote_addr, user_agent=lowered.get("user-agent"))


def find_xss_pattern(text: str | None) -> DetectionMatch | None:
    """Return the first XSS pattern found in `text` as-is, or None."""
    if not text:
        return None
    for pattern in XSS_PATTERNS:
        matched = pattern.search(text)
        if matched is not None:
            return DetectionMatch(pattern.pattern, matched)
    return None


def _base64_text(value: str) -> str | None:
    if not _BASE64_PATTERN.fullmatch(value):
        return None
    try:
        return base64.b64decode(value, validate=True).decode("utf-8", errors="replace")
    except binascii.Error:
        return None


def detect_xss(text: str | None, max_length: int | None = DEFAULT_MAX_INPUT_LENGTH) -> DetectionMatch | None:
    """Look for XSS patterns in `text` and in its HTML-, URL- and base64-decoded forms.

    Text longer than `max_length` is not scanned and gives None; pass None
    to scan any length.
    """
    if not text:
        return None
    if max_length is not None and len(text) > max_length:
        logger.debug(f"Skipping XSS detection: {len(text)} characters exceeds the maximum of {max_length}")
        return None
    match = find_xss_pattern(text)
    if match is not None:
        return match

    for decoding, decoded in (("html", html.unescape(text)), ("url", unquote_plus(text))):
        if decoded != text:
            match = find_xss_pattern(decoded)
            if match is not None:
                return DetectionMatch(match.pattern, match.matched, decoding)

    decoded = _base64_text(text)
    if decoded is not None:
        match = find_xss_pattern(decoded)
        if match is not None:
            return DetectionMatch(match.pattern, match.matched, "base64")
    return None


def contains_xss_pattern(
    text: str | None,
    *,
    log_level: LogLevel = LogLevel.WARN,
    context: RequestInfo | None = None,
    max_length: int | None = DEFAULT_MAX_INPUT_LENGTH,
) -> bool:
    """Return True if `text` looks like an XSS attempt; log the match at `log_level`."""
    match = detect_xss(text, max_length)
    if match is None:
        return False

    where = "" if match.decoding == "plain" else f" after {match.decoding} decoding"
    if context is not None:
        message = (
            f"XSS detected{where} - URI: {context.uri}, IP: {context.client_ip}, "
            f"User-Agent: {context.user_agent}, Pattern: {match.pattern}, Matched: '{match.matched}'"
        )
    else:
        message = f"XSS detected{where} - Pattern: {match.pattern}, Matched: '{match.matched}'"
    if not isinstance(log_level, LogLevel):
        log_level = LogLevel(str(log_level).strip().upper())
    logger.log(log_level.loguru_level, message)
    return True
