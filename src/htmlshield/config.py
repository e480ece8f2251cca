"""Shield settings and policies from plain data, YAML or JSON.

Settings mirror a `shield:` block such as::

    shield:
      enabled: true
      policy-level: NORMAL
      on-error: LOG_AND_CONTINUE
      log-level: WARN
      cache-enabled: true
      api-patterns: ["/api/**"]
      ignore-fields: [password]
      policy:
        extends: NORMAL
        allowed-tags: [p, b, i, a]

Keys may be written with dashes or underscores.
"""

from __future__ import annotations

import dataclasses
import json
from collections.abc import Collection, Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml
from loguru import logger

from .errors import PolicyError
from .presets import PolicyLevel, _StrEnum, preset
from .sanitize import Policy


class OnError(_StrEnum):
    LOG_AND_CONTINUE = "LOG_AND_CONTINUE"
    THROW_EXCEPTION = "THROW_EXCEPTION"
    RETURN_ORIGINAL = "RETURN_ORIGINAL"


class LogLevel(_StrEnum):
    INFO = "INFO"
    WARN = "WARN"
    ERROR = "ERROR"

    @property
    def loguru_level(self) -> str:
        if self is LogLevel.WARN:
            return "WARNING"
        return self.value


DEFAULT_CACHE_MAX_ENTRIES = 1000
DEFAULT_EXCLUDE_CACHE_MAX_ENTRIES = 10000

DEFAULT_API_PATTERNS: tuple[str, ...] = ("/api/**", "/v1/**", "/v2/**")

DEFAULT_EXCLUDE_PATTERNS: tuple[str, ...] = (
    "/favicon.ico",
    "/robots.txt",
    "/humans.txt",
    "/manifest.json",
    "/sitemap.xml",
    "/csp-report",
    "**/*.css",
    "**/*.js",
    "**/*.map",
    "**/*.png",
    "**/*.jpg",
    "**/*.jpeg",
    "**/*.gif",
    "**/*.webp",
    "**/*.svg",
    "**/*.ico",
)


def _coerce_enum(enum_cls, value: Any, ctx: str):
    if isinstance(value, enum_cls):
        return value
    if isinstance(value, str):
        try:
            return enum_cls(value.strip().upper().replace("-", "_"))
        except ValueError:
            pass
    choices = ", ".join(member.value for member in enum_cls)
    raise PolicyError(f"{ctx}: expected one of {choices}, got {value!r}")


def _as_patterns(value: str | Collection[str]) -> tuple[str, ...]:
    if isinstance(value, str):
        value = [value]
    return tuple(p.strip() for p in value if p and p.strip())


@dataclass(frozen=True, slots=True)
class ShieldSettings:
    """Runtime switches for `Shield`.

    Enum fields also accept their names as strings. `html_policy`, when set,
    replaces the preset chosen by `policy_level` for `Shield.sanitize`.
    `max_input_length`, when set, overrides the cap of every policy the
    shield uses.
    """

    enabled: bool = True
    policy_level: PolicyLevel = PolicyLevel.NORMAL
    on_error: OnError = OnError.LOG_AND_CONTINUE
    log_level: LogLevel = LogLevel.WARN
    cache_enabled: bool = False
    cache_max_entries: int = DEFAULT_CACHE_MAX_ENTRIES
    exclude_cache_max_entries: int = DEFAULT_EXCLUDE_CACHE_MAX_ENTRIES
    api_patterns: tuple[str, ...] = DEFAULT_API_PATTERNS
    exclude_patterns: tuple[str, ...] = DEFAULT_EXCLUDE_PATTERNS
    json_enabled: bool = True
    ignore_fields: frozenset[str] = frozenset()
    max_input_length: int | None = None
    html_policy: Policy | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "policy_level", _coerce_enum(PolicyLevel, self.policy_level, "policy_level"))
        object.__setattr__(self, "on_error", _coerce_enum(OnError, self.on_error, "on_error"))
        object.__setattr__(self, "log_level", _coerce_enum(LogLevel, self.log_level, "log_level"))
        object.__setattr__(self, "api_patterns", _as_patterns(self.api_patterns))
        object.__setattr__(self, "exclude_patterns", _as_patterns(self.exclude_patterns))
        fields = [self.ignore_fields] if isinstance(self.ignore_fields, str) else self.ignore_fields
        object.__setattr__(self, "ignore_fields", frozenset(str(f) for f in fields))
        if self.html_policy is not None and not isinstance(self.html_policy, Policy):
            raise PolicyError("html_policy must be a Policy")

    def validate(self) -> ShieldSettings:
        """Return a copy with out-of-range values reset to their defaults.

        Each correction is logged as a warning.
        """
        changes: dict[str, Any] = {}
        if self.cache_max_entries < 1:
            logger.warning(
                f"cache_max_entries is {self.cache_max_entries}, which is less than 1. "
                f"Setting to default {DEFAULT_CACHE_MAX_ENTRIES}."
            )
            changes["cache_max_entries"] = DEFAULT_CACHE_MAX_ENTRIES
        if self.exclude_cache_max_entries < 1:
            logger.warning(
                f"exclude_cache_max_entries is {self.exclude_cache_max_entries}, which is less than 1. "
                f"Setting to default {DEFAULT_EXCLUDE_CACHE_MAX_ENTRIES}."
            )
            changes["exclude_cache_max_entries"] = DEFAULT_EXCLUDE_CACHE_MAX_ENTRIES
        if not self.api_patterns:
            logger.warning(f"api_patterns is empty. Setting to defaults {list(DEFAULT_API_PATTERNS)}.")
            changes["api_patterns"] = DEFAULT_API_PATTERNS
        if self.max_input_length is not None and self.max_input_length < 1:
            logger.warning(f"max_input_length is {self.max_input_length}. Using each policy's own limit.")
            changes["max_input_length"] = None
        if not changes:
            return self
        return dataclasses.replace(self, **changes)


def _require_mapping(value: Any, ctx: str) -> Mapping[str, Any]:
    if not isinstance(value, Mapping):
        raise PolicyError(f"{ctx}: expected mapping")
    return value


def _require_list(value: Any, ctx: str) -> list[Any]:
    if isinstance(value, str) or not isinstance(value, (list, tuple, set, frozenset)):
        raise PolicyError(f"{ctx}: expected list")
    return list(value)


def _require_str(value: Any, ctx: str) -> str:
    if not isinstance(value, str):
        raise PolicyError(f"{ctx}: expected string")
    s = value.strip()
    if not s:
        raise PolicyError(f"{ctx}: must be non-empty")
    return s


def _require_str_list(value: Any, ctx: str) -> list[str]:
    raw = _require_list(value, ctx)
    out: list[str] = []
    for idx, item in enumerate(raw):
        out.append(_require_str(item, f"{ctx}[{idx}]"))
    return out


def _require_bool(value: Any, ctx: str) -> bool:
    if not isinstance(value, bool):
        raise PolicyError(f"{ctx}: expected boolean")
    return value


def _require_int(value: Any, ctx: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise PolicyError(f"{ctx}: expected integer")
    return value


def _require_positive_int(value: Any, ctx: str) -> int:
    value = _require_int(value, ctx)
    if value < 1:
        raise PolicyError(f"{ctx}: must be >= 1")
    return value


def _normalize_keys(data: Mapping[str, Any], ctx: str) -> dict[str, Any]:
    out: dict[str, Any] = {}
    for key, value in data.items():
        name = _require_str(key, f"{ctx} key {key!r}").lower().replace("-", "_")
        if name in out:
            raise PolicyError(f"{ctx}.{name}: given more than once")
        out[name] = value
    return out


def _reject_unknown(cfg: Mapping[str, Any], known: Collection[str], ctx: str) -> None:
    unknown = sorted(set(cfg) - set(known))
    if unknown:
        raise PolicyError(f"{ctx}: unknown key(s): {', '.join(unknown)}")


_POLICY_LIST_KEYS = ("allowed_tags", "allowed_schemes", "drop_content_tags", "allowed_style_properties")
_POLICY_BOOL_KEYS = ("strip_disallowed_tags", "allow_relative_urls", "drop_comments")
_POLICY_KEYS = frozenset(
    (*_POLICY_LIST_KEYS, *_POLICY_BOOL_KEYS, "allowed_attributes", "max_input_length", "extends")
)


def policy_from_mapping(data: Any, ctx: str = "policy") -> Policy:
    """Build a `Policy` from plain data.

    With `extends: <preset>`, the named built-in policy supplies every field
    the mapping leaves out; fields that are given replace the preset's.
    Without it, `allowed_tags` is required.
    """
    cfg = _normalize_keys(_require_mapping(data, ctx), ctx)
    _reject_unknown(cfg, _POLICY_KEYS, ctx)

    kwargs: dict[str, Any] = {}
    for key in _POLICY_LIST_KEYS:
        if key in cfg:
            kwargs[key] = _require_str_list(cfg[key], f"{ctx}.{key}")
    for key in _POLICY_BOOL_KEYS:
        if key in cfg:
            kwargs[key] = _require_bool(cfg[key], f"{ctx}.{key}")
    if "max_input_length" in cfg:
        kwargs["max_input_length"] = _require_positive_int(cfg["max_input_length"], f"{ctx}.max_input_length")
    if "allowed_attributes" in cfg:
        attrs_map = _require_mapping(cfg["allowed_attributes"], f"{ctx}.allowed_attributes")
        attributes: dict[str, list[str]] = {}
        for tag, names in attrs_map.items():
            tag_name = _require_str(tag, f"{ctx}.allowed_attributes key {tag!r}")
            attributes[tag_name] = _require_str_list(names, f"{ctx}.allowed_attributes[{tag_name}]")
        kwargs["allowed_attributes"] = attributes

    if "extends" in cfg:
        base = preset(_require_str(cfg["extends"], f"{ctx}.extends"))
        return dataclasses.replace(base, **kwargs)

    if "allowed_tags" not in kwargs:
        raise PolicyError(f"{ctx}.allowed_tags: missing required key")
    kwargs.setdefault("allowed_attributes", {})
    return Policy(**kwargs)


_SETTINGS_BOOL_KEYS = ("enabled", "cache_enabled", "json_enabled")
_SETTINGS_INT_KEYS = ("cache_max_entries", "exclude_cache_max_entries")
_SETTINGS_LIST_KEYS = ("api_patterns", "exclude_patterns", "ignore_fields")
_SETTINGS_ENUM_KEYS = {"policy_level": PolicyLevel, "on_error": OnError, "log_level": LogLevel}
_SETTINGS_KEYS = frozenset(
    (*_SETTINGS_BOOL_KEYS, *_SETTINGS_INT_KEYS, *_SETTINGS_LIST_KEYS, *_SETTINGS_ENUM_KEYS, "max_input_length", "policy")
)


def settings_from_mapping(data: Any, ctx: str = "shield") -> ShieldSettings:
    """Build validated `ShieldSettings` from plain data.

    A mapping whose only key is `shield` is unwrapped first. A nested
    `policy:` block becomes `html_policy`.
    """
    if data is None:
        data = {}
    cfg = _normalize_keys(_require_mapping(data, ctx), ctx)
    if set(cfg) == {"shield"}:
        cfg = _normalize_keys(_require_mapping(cfg["shield"] or {}, ctx), ctx)
    _reject_unknown(cfg, _SETTINGS_KEYS, ctx)

    kwargs: dict[str, Any] = {}
    for key in _SETTINGS_BOOL_KEYS:
        if key in cfg:
            kwargs[key] = _require_bool(cfg[key], f"{ctx}.{key}")
    for key in _SETTINGS_INT_KEYS:
        if key in cfg:
            kwargs[key] = _require_int(cfg[key], f"{ctx}.{key}")
    for key in _SETTINGS_LIST_KEYS:
        if key in cfg:
            kwargs[key] = tuple(_require_str_list(cfg[key], f"{ctx}.{key}"))
    for key, enum_cls in _SETTINGS_ENUM_KEYS.items():
        if key in cfg:
            kwargs[key] = _coerce_enum(enum_cls, cfg[key], f"{ctx}.{key}")
    if cfg.get("max_input_length") is not None:
        kwargs["max_input_length"] = _require_int(cfg["max_input_length"], f"{ctx}.max_input_length")
    if cfg.get("policy") is not None:
        kwargs["html_policy"] = policy_from_mapping(cfg["policy"], f"{ctx}.policy")
    if "ignore_fields" in kwargs:
        kwargs["ignore_fields"] = frozenset(kwargs["ignore_fields"])

    return ShieldSettings(**kwargs).validate()


def _load_document(path: str | Path) -> Any:
    path = Path(path)
    suffix = path.suffix.lower()
    if suffix not in (".yaml", ".yml", ".json"):
        raise PolicyError(f"unsupported config format {suffix or '(none)'!r} for {path}: use .yaml, .yml or .json")
    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        raise PolicyError(f"missing config file: {path}") from None
    if suffix == ".json":
        try:
            return json.loads(text)
        except json.JSONDecodeError as e:
            raise PolicyError(f"invalid JSON in {path}: {e}") from e
    try:
        return yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise PolicyError(f"invalid YAML in {path}: {e}") from e


def load_settings(path: str | Path) -> ShieldSettings:
    """Load `ShieldSettings` from a YAML or JSON file (chosen by suffix)."""
    settings = settings_from_mapping(_load_document(path), ctx=str(path))
    logger.debug(f"Loaded shield settings from {path}")
    return settings


def load_policy(path: str | Path) -> Policy:
    """Load a `Policy` from a YAML or JSON file (chosen by suffix)."""
    policy = policy_from_mapping(_load_document(path), ctx=str(path))
    logger.debug(f"Loaded HTML policy from {path}")
    return policy
