"""Policy-driven HTML sanitization.

`sanitize()` is the whole engine: parse an untrusted fragment, walk the tree
against an allow-list `Policy`, and serialize what survives. It is a pure
function of (text, policy): no I/O, no logging, no shared mutable state, so
any number of threads may call it with the same policy.

Every construct the policy removes is counted as a violation and described in
`SanitizeResult.reports`; removal never raises. The one input the engine
refuses is text longer than `policy.max_input_length`, which raises
`ValidationError` before any parsing happens.
"""

from __future__ import annotations

import re
from collections.abc import Collection, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType

from .constants import FORBIDDEN_ELEMENTS, SAFE_DATA_IMAGE_TYPES, URL_ATTRIBUTES
from .errors import PolicyError, ValidationError
from .node import COMMENT, FRAGMENT, TEXT, Node
from .parser import parse_fragment
from .serialize import to_html

DEFAULT_MAX_INPUT_LENGTH = 100_000

DEFAULT_DROP_CONTENT_TAGS = frozenset({
    "applet", "embed", "iframe", "math", "noembed", "noframes", "noscript",
    "object", "script", "style", "svg", "template", "xmp",
})

DEFAULT_STYLE_PROPERTIES = frozenset({
    "background-color", "border", "color", "font-size", "font-weight",
    "height", "margin", "padding", "text-align", "width",
})

# Schemes that always execute script; no policy may allow them.
_FORBIDDEN_SCHEMES = frozenset({"javascript", "livescript", "vbscript"})

# Browsers ignore ASCII whitespace and control characters while reading a
# scheme, so "java\tscript:" is "javascript:".
_URL_IGNORED_PATTERN = re.compile(r"[\x00-\x20\x7f]+")
_SCHEME_PATTERN = re.compile(r"([a-zA-Z][a-zA-Z0-9+.\-]*):")

_STYLE_PROPERTY_PATTERN = re.compile(r"[a-z-]+")
_STYLE_VALUE_PATTERN = re.compile(r"[a-zA-Z0-9\s#%.,()-]+")
_STYLE_VALUE_BLOCKLIST = ("expression", "url(", "image-set(")

_CONDITIONAL_COMMENT_PATTERN = re.compile(r"^\s*\[if\b|<!\[endif\]", re.IGNORECASE)

_VALID_NAME_PATTERN = re.compile(r"[a-z][a-z0-9_.:-]*")


def _normalize_names(values: Collection[str], kind: str | None = None) -> frozenset[str]:
    names = frozenset(str(v).strip().lower() for v in values if str(v).strip())
    if kind is not None:
        invalid = sorted(name for name in names if not _VALID_NAME_PATTERN.fullmatch(name))
        if invalid:
            raise PolicyError(f"Invalid {kind} name(s): {', '.join(invalid)}")
    return names


@dataclass(frozen=True, slots=True)
class Policy:
    """An allow-list of tags, attributes and URL schemes.

    - Tags not in `allowed_tags` are disallowed. With `strip_disallowed_tags`
      (the default) a disallowed element is unwrapped and its children are
      kept; otherwise its whole subtree is dropped. Elements in
      `drop_content_tags` always lose their subtree.
    - Attributes not in `allowed_attributes[tag]` or `allowed_attributes["*"]`
      are dropped.
    - URL-valued attributes must use a scheme in `allowed_schemes`, or be
      relative when `allow_relative_urls` is set.
    - An allowed `style` attribute keeps only declarations whose property is
      in `allowed_style_properties` and whose value is plain tokens.

    Names and schemes are normalized to lowercase frozensets on construction.
    """

    allowed_tags: Collection[str]
    allowed_attributes: Mapping[str, Collection[str]]
    allowed_schemes: Collection[str] = field(default_factory=lambda: {"http", "https", "mailto"})
    strip_disallowed_tags: bool = True
    max_input_length: int = DEFAULT_MAX_INPUT_LENGTH
    allow_relative_urls: bool = True
    drop_content_tags: Collection[str] = DEFAULT_DROP_CONTENT_TAGS
    allowed_style_properties: Collection[str] = DEFAULT_STYLE_PROPERTIES
    drop_comments: bool = True

    def __post_init__(self) -> None:
        allowed_tags = _normalize_names(self.allowed_tags, "tag")
        forbidden = sorted(allowed_tags & FORBIDDEN_ELEMENTS)
        if forbidden:
            raise PolicyError(f"Tags can never be allowed: {', '.join(forbidden)}")
        object.__setattr__(self, "allowed_tags", allowed_tags)

        if not isinstance(self.allowed_attributes, Mapping):
            raise PolicyError("allowed_attributes must be a mapping of tag name to attribute names")
        normalized_attrs: dict[str, frozenset[str]] = {}
        for tag, attrs in self.allowed_attributes.items():
            if isinstance(attrs, str):
                raise PolicyError(f"Attributes for '{tag}' must be a collection of names, not a string")
            names = _normalize_names(attrs, "attribute")
            handlers = sorted(name for name in names if name.startswith("on"))
            if handlers:
                raise PolicyError(f"Event handler attributes can never be allowed: {', '.join(handlers)}")
            key = str(tag).strip().lower()
            normalized_attrs[key] = normalized_attrs.get(key, frozenset()) | names
        object.__setattr__(self, "allowed_attributes", MappingProxyType(normalized_attrs))

        schemes = frozenset(str(s).strip().lower().rstrip(":") for s in self.allowed_schemes if str(s).strip())
        dangerous = sorted(schemes & _FORBIDDEN_SCHEMES)
        if dangerous:
            raise PolicyError(f"URL schemes can never be allowed: {', '.join(dangerous)}")
        object.__setattr__(self, "allowed_schemes", schemes)

        object.__setattr__(self, "drop_content_tags", _normalize_names(self.drop_content_tags))
        object.__setattr__(self, "allowed_style_properties", _normalize_names(self.allowed_style_properties))

        if isinstance(self.max_input_length, bool) or not isinstance(self.max_input_length, int):
            raise PolicyError("max_input_length must be an integer")
        if self.max_input_length < 1:
            raise PolicyError("max_input_length must be at least 1")

    def allows_attribute(self, tag: str, attr: str) -> bool:
        attrs = self.allowed_attributes
        return attr in attrs.get(tag, ()) or attr in attrs.get("*", ())

    def allows_url(self, value: str) -> bool:
        """Return True when `value` may stay in a URL-valued attribute."""
        compact = _URL_IGNORED_PATTERN.sub("", value)
        match = _SCHEME_PATTERN.match(compact)
        if match is None:
            if not self.allow_relative_urls:
                return False
            # Browsers read backslashes as slashes, so "/\host" is "//host".
            if compact.replace("\\", "/").startswith("//"):
                return bool(self.allowed_schemes & {"http", "https"})
            return True

        scheme = match.group(1).lower()
        if scheme not in self.allowed_schemes:
            return False
        if scheme == "data":
            media_type = compact[match.end():].split(",", 1)[0].split(";", 1)[0].lower()
            return media_type in SAFE_DATA_IMAGE_TYPES
        return True


@dataclass(frozen=True, slots=True)
class SanitizeResult:
    """Sanitized HTML plus what was removed to get there."""

    html: str
    violations: int = 0
    reports: tuple[str, ...] = ()

    def __str__(self) -> str:
        return self.html


DEFAULT_POLICY: Policy = Policy(
    allowed_tags=[
        # Structure
        "p",
        "div",
        "span",
        "br",
        # Headings
        "h1",
        "h2",
        "h3",
        "h4",
        "h5",
        "h6",
        # Lists
        "ul",
        "ol",
        "li",
        # Text formatting
        "b",
        "strong",
        "i",
        "em",
        "u",
        # Tables
        "table",
        "thead",
        "tbody",
        "tr",
        "td",
        "th",
        # Links
        "a",
    ],
    allowed_attributes={
        "*": ["class", "id", "style"],
        "a": ["href"],
    },
    allowed_schemes=["http", "https", "mailto"],
)


@dataclass(frozen=True, slots=True)
class SanitizeRequest:
    """The input string and the policy to apply to it."""

    text: str
    policy: Policy = DEFAULT_POLICY

    def execute(self) -> SanitizeResult:
        return sanitize(self.text, self.policy)


def _sanitize_srcset_value(policy: Policy, value: str) -> bool:
    for candidate in value.split(","):
        url = candidate.strip().split(None, 1)
        if url and not policy.allows_url(url[0]):
            return False
    return True


def _sanitize_inline_style(allowed_properties: Collection[str], value: str) -> tuple[str | None, int]:
    """Keep only allowed declarations. Returns (style or None, dropped count)."""
    kept: list[str] = []
    dropped = 0
    for declaration in value.split(";"):
        if not declaration.strip():
            continue
        prop, sep, prop_value = declaration.partition(":")
        prop = prop.strip().lower()
        prop_value = prop_value.strip()
        if (
            not sep
            or prop not in allowed_properties
            or not _STYLE_PROPERTY_PATTERN.fullmatch(prop)
            or not _STYLE_VALUE_PATTERN.fullmatch(prop_value)
            or any(token in prop_value.lower() for token in _STYLE_VALUE_BLOCKLIST)
        ):
            dropped += 1
            continue
        kept.append(f"{prop}: {prop_value}")
    if not kept:
        return None, dropped
    return "; ".join(kept), dropped


class _Sanitizer:
    """Tree walk that copies what the policy allows into a new fragment.

    Dispatches on node kind (text, comment, element). The walk uses an
    explicit stack so nesting depth is bounded only by input length.
    """

    __slots__ = ("policy", "reports")

    def __init__(self, policy: Policy) -> None:
        self.policy = policy
        self.reports: list[str] = []

    def run(self, source: Node) -> Node:
        out = Node(FRAGMENT)
        stack = [(iter(source.children), out)]
        while stack:
            children, target = stack[-1]
            node = next(children, None)
            if node is None:
                stack.pop()
                continue
            name = node.name
            if name == TEXT:
                # Unwrapping can leave adjacent text nodes; they serialize the same as one.
                target.append_child(Node(TEXT, data=node.data or ""))
            elif name == COMMENT:
                self._visit_comment(node, target)
            elif node.is_element:
                descend_into = self._visit_element(node, target)
                if descend_into is not None:
                    stack.append((iter(node.children), descend_into))
            else:
                self.reports.append(f"Dropped {name.lstrip('#!')}")
        return out

    def _visit_comment(self, node: Node, target: Node) -> None:
        if self.policy.drop_comments:
            self.reports.append("Dropped comment")
            return
        if _CONDITIONAL_COMMENT_PATTERN.search(node.data or ""):
            self.reports.append("Dropped conditional comment")
            return
        target.append_child(Node(COMMENT, data=node.data))

    def _visit_element(self, node: Node, target: Node) -> Node | None:
        """Copy or unwrap `node`; return the node its children belong to, or None to drop them."""
        policy = self.policy
        tag = node.name
        if tag not in policy.allowed_tags:
            if tag in policy.drop_content_tags:
                self.reports.append(f"Unsafe tag '{tag}' (dropped content)")
                return None
            if not policy.strip_disallowed_tags:
                self.reports.append(f"Unsafe tag '{tag}' (dropped subtree)")
                return None
            self.reports.append(f"Unsafe tag '{tag}' (unwrapped)")
            return target

        clone = Node(tag, attrs=self._sanitize_attrs(tag, node.attrs))
        target.append_child(clone)
        return clone

    def _sanitize_attrs(self, tag: str, attrs: dict[str, str]) -> dict[str, str]:
        policy = self.policy
        out: dict[str, str] = {}
        for name, value in attrs.items():
            if not policy.allows_attribute(tag, name):
                self.reports.append(f"Unsafe attribute '{name}' on '{tag}'")
                continue
            if name in URL_ATTRIBUTES:
                if not policy.allows_url(value):
                    self.reports.append(f"Unsafe URL in attribute '{name}' on '{tag}'")
                    continue
            elif name == "srcset":
                if not _sanitize_srcset_value(policy, value):
                    self.reports.append(f"Unsafe URL in attribute '{name}' on '{tag}'")
                    continue
            elif name == "style":
                style, dropped = _sanitize_inline_style(policy.allowed_style_properties, value)
                if style is None:
                    self.reports.append(f"Unsafe inline style on '{tag}'")
                    continue
                if dropped:
                    self.reports.append(f"Dropped {dropped} inline style declaration(s) on '{tag}'")
                value = style
            out[name] = value
        return out


def sanitize(text: str, policy: Policy = DEFAULT_POLICY) -> SanitizeResult:
    """Sanitize an untrusted HTML fragment according to `policy`.

    Raises ValidationError when `text` is longer than `policy.max_input_length`.
    Every other input, however malformed, produces a result.
    """
    if not isinstance(text, str):
        raise TypeError(f"sanitize() expects str, got {type(text).__name__}")
    if len(text) > policy.max_input_length:
        raise ValidationError(len(text), policy.max_input_length)
    if not text:
        return SanitizeResult("")

    sanitizer = _Sanitizer(policy)
    clean = sanitizer.run(parse_fragment(text))
    reports = tuple(sanitizer.reports)
    return SanitizeResult(to_html(clean), len(reports), reports)
