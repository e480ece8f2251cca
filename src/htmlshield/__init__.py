from loguru import logger

from .config import LogLevel, OnError, ShieldSettings, load_policy, load_settings, policy_from_mapping
from .detect import XSS_PATTERNS, RequestInfo, contains_xss_pattern, find_xss_pattern
from .errors import PolicyError, SanitizationError, ValidationError
from .parser import parse_fragment
from .paths import PathMatcher, match_path
from .presets import FORM_INPUT, LENIENT, NORMAL, STRICT, PolicyLevel, policy_for_level, preset
from .sanitize import DEFAULT_POLICY, Policy, SanitizeRequest, SanitizeResult, sanitize
from .serialize import escape_html, to_html
from .metrics import ShieldMetrics
from .shield import Shield

# Library convention: silent until the host opts in with logger.enable("htmlshield").
logger.disable("htmlshield")

__all__ = [
    "DEFAULT_POLICY",
    "FORM_INPUT",
    "LENIENT",
    "NORMAL",
    "STRICT",
    "XSS_PATTERNS",
    "LogLevel",
    "OnError",
    "PathMatcher",
    "Policy",
    "PolicyError",
    "PolicyLevel",
    "RequestInfo",
    "SanitizationError",
    "SanitizeRequest",
    "SanitizeResult",
    "Shield",
    "ShieldMetrics",
    "ShieldSettings",
    "ValidationError",
    "contains_xss_pattern",
    "escape_html",
    "find_xss_pattern",
    "load_policy",
    "load_settings",
    "match_path",
    "parse_fragment",
    "policy_for_level",
    "policy_from_mapping",
    "preset",
    "sanitize",
    "to_html",
]
