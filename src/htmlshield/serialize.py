"""HTML serialization for sanitized trees."""

from __future__ import annotations

from .constants import VOID_ELEMENTS
from .node import COMMENT, FRAGMENT, TEXT, Node


def escape_html(text: str | None) -> str:
    """Escape the five characters that can end a text run or an attribute value."""
    if not text:
        return ""
    return (
        str(text)
        .replace("&", "&amp;")
        .replace("<", "&lt;")
        .replace(">", "&gt;")
        .replace('"', "&quot;")
        .replace("'", "&#x27;")
    )


def _comment_data(data: str | None) -> str:
    # Keep the comment closed exactly where the serializer closes it.
    data = data or ""
    while "--" in data:
        data = data.replace("--", "- -")
    if data.startswith((">", "->")):
        data = " " + data
    if data.endswith("-"):
        data += " "
    return data


def serialize_start_tag(name: str, attrs: dict[str, str] | None) -> str:
    parts: list[str] = ["<", name]
    for key, value in (attrs or {}).items():
        if value is None or value == "":
            parts.extend([" ", key])
            continue
        parts.extend([" ", key, '="', escape_html(value), '"'])
    parts.append(">")
    return "".join(parts)


def serialize_end_tag(name: str) -> str:
    return f"</{name}>"


def to_html(node: Node) -> str:
    """Serialize `node` and its descendants without any reformatting.

    Uses an explicit stack; pending end tags are pushed as plain strings.
    """
    parts: list[str] = []
    stack: list[Node | str] = [node]
    while stack:
        item = stack.pop()
        if isinstance(item, str):
            parts.append(item)
            continue

        name = item.name
        if name == TEXT:
            parts.append(escape_html(item.data))
        elif name == COMMENT:
            parts.extend(["<!--", _comment_data(item.data), "-->"])
        elif name == FRAGMENT:
            stack.extend(reversed(item.children))
        elif item.is_element:
            parts.append(serialize_start_tag(name, item.attrs))
            if name not in VOID_ELEMENTS:
                stack.append(serialize_end_tag(name))
                stack.extend(reversed(item.children))
        # Doctypes are never part of a sanitized fragment.
    return "".join(parts)
