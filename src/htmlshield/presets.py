"""Built-in policies, one per policy level."""

from __future__ import annotations

from enum import Enum

from .errors import PolicyError
from .sanitize import DEFAULT_POLICY, Policy


class _StrEnum(str, Enum):
    """Backport of enum.StrEnum (Python 3.11+)."""


class PolicyLevel(_StrEnum):
    STRICT = "STRICT"
    NORMAL = "NORMAL"
    LENIENT = "LENIENT"


# No markup at all: every tag is unwrapped, text is escaped.
STRICT: Policy = Policy(allowed_tags=[], allowed_attributes={})

NORMAL: Policy = DEFAULT_POLICY

# NORMAL plus images. data: URLs are accepted for raster image types only.
LENIENT: Policy = Policy(
    allowed_tags=[*NORMAL.allowed_tags, "img"],
    allowed_attributes={
        **NORMAL.allowed_attributes,
        "img": ["src", "alt", "width", "height"],
    },
    allowed_schemes=["http", "https", "mailto", "data"],
)

# Basic inline formatting for form fields.
FORM_INPUT: Policy = Policy(
    allowed_tags=["strong", "b", "em", "i", "br"],
    allowed_attributes={},
)

_BY_LEVEL = {
    PolicyLevel.STRICT: STRICT,
    PolicyLevel.NORMAL: NORMAL,
    PolicyLevel.LENIENT: LENIENT,
}

_BY_NAME = {
    "STRICT": STRICT,
    "NORMAL": NORMAL,
    "LENIENT": LENIENT,
    "FORM_INPUT": FORM_INPUT,
}


def policy_for_level(level: PolicyLevel | str) -> Policy:
    """Return the HTML policy for a policy level (enum or case-insensitive name)."""
    if isinstance(level, PolicyLevel):
        return _BY_LEVEL[level]
    try:
        return _BY_LEVEL[PolicyLevel(str(level).strip().upper())]
    except ValueError:
        raise PolicyError(f"Unknown policy level: {level!r}") from None


def form_policy_for_level(level: PolicyLevel | str) -> Policy:
    """Form fields get FORM_INPUT, or STRICT when the whole shield runs at STRICT."""
    if policy_for_level(level) is STRICT:
        return STRICT
    return FORM_INPUT


def preset(name: str) -> Policy:
    """Look up a built-in policy by name, including FORM_INPUT."""
    try:
        return _BY_NAME[str(name).strip().upper()]
    except KeyError:
        raise PolicyError(f"Unknown preset: {name!r}") from None
