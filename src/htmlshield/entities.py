"""HTML character reference decoding.

Decodes named references (&amp;, &nbsp;) and numeric references (&#60;,
&#x3C;) the way a browser would before the sanitizer looks at text or
attribute values. Decoding first means the policy checks see what the browser
sees: `&#106;avascript:` is checked as `javascript:`.
"""

import html.entities
import re

# Keys in html.entities.html5 carry the trailing semicolon ("amp;") for most
# names and also appear without it for the legacy set.
NAMED_ENTITIES = {}
for _key, _value in html.entities.html5.items():
    NAMED_ENTITIES.setdefault(_key.rstrip(";"), _value)

# Legacy references that browsers decode without a trailing semicolon.
LEGACY_ENTITIES = frozenset(key for key in html.entities.html5 if not key.endswith(";"))

_LONGEST_NAME = max(len(name) for name in NAMED_ENTITIES)

# C1 remapping for numeric references (windows-1252 compatibility).
NUMERIC_REPLACEMENTS = {
    0x00: "\ufffd",
    0x80: "\u20ac",
    0x82: "\u201a",
    0x83: "\u0192",
    0x84: "\u201e",
    0x85: "\u2026",
    0x86: "\u2020",
    0x87: "\u2021",
    0x88: "\u02c6",
    0x89: "\u2030",
    0x8A: "\u0160",
    0x8B: "\u2039",
    0x8C: "\u0152",
    0x8E: "\u017d",
    0x91: "\u2018",
    0x92: "\u2019",
    0x93: "\u201c",
    0x94: "\u201d",
    0x95: "\u2022",
    0x96: "\u2013",
    0x97: "\u2014",
    0x98: "\u02dc",
    0x99: "\u2122",
    0x9A: "\u0161",
    0x9B: "\u203a",
    0x9C: "\u0153",
    0x9E: "\u017e",
    0x9F: "\u0178",
}

_NUMERIC_PATTERN = re.compile(r"#(?:[xX]([0-9a-fA-F]+)|([0-9]+));?")
_NAME_PATTERN = re.compile(r"[A-Za-z][A-Za-z0-9]*")


def decode_numeric_entity(digits, is_hex=False):
    """Decode the digits of a numeric reference into a single character."""
    try:
        codepoint = int(digits, 16 if is_hex else 10)
    except (ValueError, OverflowError):
        return None

    if codepoint in NUMERIC_REPLACEMENTS:
        return NUMERIC_REPLACEMENTS[codepoint]
    if codepoint > 0x10FFFF or 0xD800 <= codepoint <= 0xDFFF:
        return "\ufffd"
    return chr(codepoint)


def _decode_named(text, start, in_attribute):
    """Decode a named reference starting after '&' at `start`.

    Returns (decoded, end) or (None, start) when nothing should be decoded.
    """
    match = _NAME_PATTERN.match(text, start)
    if not match:
        return None, start
    name = match.group(0)[:_LONGEST_NAME]
    end = start + len(name)

    if end < len(text) and text[end] == ";" and name in NAMED_ENTITIES:
        return NAMED_ENTITIES[name], end + 1

    # Without a semicolon only the legacy names decode, longest prefix first.
    for k in range(len(name), 0, -1):
        prefix = name[:k]
        if prefix not in LEGACY_ENTITIES:
            continue
        after = start + k
        next_char = text[after] if after < len(text) else ""
        if in_attribute and (next_char.isalnum() or next_char == "="):
            return None, start
        return NAMED_ENTITIES[prefix], after
    return None, start


def decode_entities_in_text(text, in_attribute=False):
    """Decode all character references in `text`.

    Unknown or malformed references are left as literal text; the serializer
    escapes the '&' on output.
    """
    if "&" not in text:
        return text

    result = []
    i = 0
    length = len(text)
    while i < length:
        amp = text.find("&", i)
        if amp == -1:
            result.append(text[i:])
            break
        if amp > i:
            result.append(text[i:amp])

        numeric = _NUMERIC_PATTERN.match(text, amp + 1)
        if numeric:
            hex_digits, dec_digits = numeric.groups()
            decoded = decode_numeric_entity(hex_digits or dec_digits, is_hex=hex_digits is not None)
            if decoded is not None:
                result.append(decoded)
                i = numeric.end()
                continue

        decoded, end = _decode_named(text, amp + 1, in_attribute)
        if decoded is not None:
            result.append(decoded)
            i = end
            continue

        result.append("&")
        i = amp + 1

    return "".join(result)
