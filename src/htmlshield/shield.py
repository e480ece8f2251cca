"""Application-facing facade over the sanitizer.

A `Shield` owns three policies (general HTML, strict, form input), the error
mode, optional result caches and the API/exclude path matchers. Hosting code
calls it on individual request values or on a decoded JSON payload.
"""

from __future__ import annotations

import dataclasses
from collections.abc import Collection, Mapping
from pathlib import Path
from typing import Any

from loguru import logger

from . import detect
from .cache import LRUCache
from .config import OnError, ShieldSettings, load_settings
from .detect import RequestInfo
from .errors import SanitizationError, ValidationError
from .metrics import ShieldMetrics
from .paths import PathMatcher
from .presets import STRICT, form_policy_for_level, policy_for_level
from .sanitize import Policy, SanitizeResult, sanitize
from .serialize import escape_html


class Shield:
    """Sanitize application values according to `ShieldSettings`.

    `html_policy`, `strict_policy` and `form_policy` override the policies
    derived from `settings.policy_level`. Every sanitize method returns None
    for None. Caching, when enabled, keeps one bounded LRU per policy; the
    engine is pure, so a cached result is always the result. `metrics` counts
    what the shield has sanitized, detected and skipped.
    """

    __slots__ = (
        "_api_matcher",
        "_exclude_matcher",
        "_form_cache",
        "_html_cache",
        "_strict_cache",
        "form_policy",
        "html_policy",
        "metrics",
        "settings",
        "strict_policy",
    )

    def __init__(
        self,
        settings: ShieldSettings | None = None,
        *,
        html_policy: Policy | None = None,
        strict_policy: Policy | None = None,
        form_policy: Policy | None = None,
    ) -> None:
        settings = (settings or ShieldSettings()).validate()
        self.settings = settings

        level = settings.policy_level
        html_policy = html_policy or settings.html_policy or policy_for_level(level)
        strict_policy = strict_policy or STRICT
        form_policy = form_policy or form_policy_for_level(level)
        if settings.max_input_length is not None:
            limit = settings.max_input_length
            html_policy = dataclasses.replace(html_policy, max_input_length=limit)
            strict_policy = dataclasses.replace(strict_policy, max_input_length=limit)
            form_policy = dataclasses.replace(form_policy, max_input_length=limit)
        self.html_policy = html_policy
        self.strict_policy = strict_policy
        self.form_policy = form_policy
        self.metrics = ShieldMetrics()

        if settings.cache_enabled:
            self._html_cache = LRUCache(settings.cache_max_entries)
            self._strict_cache = LRUCache(settings.cache_max_entries)
            self._form_cache = LRUCache(settings.cache_max_entries)
        else:
            self._html_cache = self._strict_cache = self._form_cache = None

        self._api_matcher = PathMatcher(settings.api_patterns, settings.exclude_cache_max_entries)
        self._exclude_matcher = PathMatcher(
            settings.exclude_patterns,
            settings.exclude_cache_max_entries,
            static_fast_path=True,
        )
        logger.debug(
            f"Shield ready: level={level.value}, on_error={settings.on_error.value}, "
            f"cache={'on' if settings.cache_enabled else 'off'}"
        )

    @classmethod
    def from_file(cls, path: str | Path, **policies: Policy) -> Shield:
        """Build a shield from a YAML or JSON settings file."""
        return cls(load_settings(path), **policies)

    def __repr__(self) -> str:
        return f"<Shield level={self.settings.policy_level.value} enabled={self.settings.enabled}>"

    # Sanitizing

    def _clean(self, value: str | None, policy: Policy, cache: LRUCache | None, metric: str) -> str | None:
        if value is None:
            return None
        if cache is None:
            clean = sanitize(value, policy).html
        else:
            clean = cache.get_or_compute(value, lambda text: sanitize(text, policy).html)
        self.metrics.increment(metric)
        return clean

    def sanitize(self, value: str | None) -> str | None:
        """Sanitize with the general HTML policy."""
        return self._clean(value, self.html_policy, self._html_cache, "sanitized")

    def strict_sanitize(self, value: str | None) -> str | None:
        """Sanitize with the strict policy: no markup survives."""
        return self._clean(value, self.strict_policy, self._strict_cache, "strict_sanitized")

    def sanitize_form_input(self, value: str | None) -> str | None:
        """Sanitize with the form-input policy: basic inline formatting only."""
        return self._clean(value, self.form_policy, self._form_cache, "form_sanitized")

    def sanitize_result(self, value: str, policy: Policy | None = None) -> SanitizeResult:
        """Sanitize uncached and return the full result, reports included."""
        result = sanitize(value, policy or self.html_policy)
        if result.violations:
            logger.debug(f"Sanitizer removed {result.violations} construct(s): {'; '.join(result.reports)}")
        return result

    def handle_sanitization_error(self, exc: BaseException, value: Any) -> Any:
        """Apply the configured error mode to a failed sanitize of `value`."""
        on_error = self.settings.on_error
        if on_error is OnError.THROW_EXCEPTION:
            raise SanitizationError(f"Sanitization failed: {exc}") from exc
        if on_error is OnError.LOG_AND_CONTINUE:
            logger.opt(exception=exc).error("Sanitization failed. Returning original value.")
        return value

    # Helpers

    def escape(self, value: str | None) -> str | None:
        if value is None:
            return None
        return escape_html(value)

    def contains_xss_pattern(self, value: str | None, context: RequestInfo | None = None) -> bool:
        found = detect.contains_xss_pattern(
            value,
            log_level=self.settings.log_level,
            context=context,
            max_length=self.html_policy.max_input_length,
        )
        if found:
            self.metrics.increment("pattern_detected")
        return found

    def is_safe_string(self, value: str | None) -> bool:
        """True when no XSS pattern is found and sanitizing would not change `value`.

        Values over the length cap are never safe and are not scanned.
        """
        if value is None:
            return True
        if len(value) > self.html_policy.max_input_length:
            return False
        if self.contains_xss_pattern(value):
            return False
        try:
            return self.sanitize(value) == value
        except ValidationError:
            return False

    def to_safe_output(self, value: str | None) -> str:
        """Sanitize, then escape the result for plain-text output."""
        if value is None:
            return ""
        return escape_html(self.sanitize(value))

    # Paths

    def is_api_request(self, path: str | None) -> bool:
        return self._api_matcher.matches(path)

    def should_skip(self, path: str | None) -> bool:
        """True for paths matching the exclude patterns (static resources and the like)."""
        return self._exclude_matcher.matches(path)

    # Values

    def sanitize_value(self, value: str | None, path: str | None = None) -> str | None:
        """Sanitize a form or query parameter received on `path`.

        Excluded paths pass through. API paths use the strict policy,
        everything else the form-input policy.
        """
        if value is None or not self.settings.enabled:
            return value
        if self.should_skip(path):
            self.metrics.increment("param_skipped")
            return value
        try:
            if self.is_api_request(path):
                return self.strict_sanitize(value)
            return self.sanitize_form_input(value)
        except Exception as exc:
            return self.handle_sanitization_error(exc, value)

    def sanitize_json_value(self, value: str | None, path: str | None = None) -> str | None:
        """Sanitize one decoded JSON string received on `path`.

        API paths use the strict policy, everything else the general HTML policy.
        """
        if value is None or not self.settings.enabled or not self.settings.json_enabled:
            return value
        try:
            if self.is_api_request(path):
                return self.strict_sanitize(value)
            return self.sanitize(value)
        except Exception as exc:
            return self.handle_sanitization_error(exc, value)

    def sanitize_payload(self, data: Any, path: str | None = None, ignore_fields: Collection[str] = ()) -> Any:
        """Return a copy of decoded JSON with every string value sanitized.

        Values under a key in `ignore_fields` or `settings.ignore_fields` are
        kept as they are, at any depth.
        """
        if not self.settings.enabled or not self.settings.json_enabled:
            return data
        if isinstance(ignore_fields, str):
            ignore_fields = (ignore_fields,)
        ignored = self.settings.ignore_fields | frozenset(ignore_fields)
        return self._sanitize_tree(data, path, ignored)

    def _sanitize_tree(self, data: Any, path: str | None, ignored: frozenset[str]) -> Any:
        if isinstance(data, str):
            return self.sanitize_json_value(data, path)
        if isinstance(data, Mapping):
            clean = {}
            for key, value in data.items():
                if key in ignored:
                    self.metrics.increment("json_skipped")
                    clean[key] = value
                else:
                    clean[key] = self._sanitize_tree(value, path, ignored)
            return clean
        if isinstance(data, list):
            return [self._sanitize_tree(item, path, ignored) for item in data]
        if isinstance(data, tuple):
            return tuple(self._sanitize_tree(item, path, ignored) for item in data)
        return data
