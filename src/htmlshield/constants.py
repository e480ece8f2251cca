"""Element and attribute name sets shared by the tokenizer, tree builder and sanitizer."""

# Elements that never have content or an end tag.
VOID_ELEMENTS = frozenset({
    "area", "base", "br", "col", "embed", "hr", "img", "input",
    "link", "meta", "param", "source", "track", "wbr",
})

# Content up to the matching end tag is raw text (no tags, no references).
RAWTEXT_ELEMENTS = frozenset({"script", "style", "xmp", "iframe", "noembed", "noframes", "noscript"})

# Content up to the matching end tag is text with character references decoded.
RCDATA_ELEMENTS = frozenset({"title", "textarea"})

# Everything after the start tag is text.
PLAINTEXT_ELEMENTS = frozenset({"plaintext"})

# Elements that no policy may allow: they execute script, load active
# content, change document-level behavior, or switch the browser into a
# parsing mode the serializer does not model.
FORBIDDEN_ELEMENTS = frozenset({
    "applet", "base", "embed", "frame", "frameset", "iframe", "link", "math",
    "meta", "noembed", "noframes", "noscript", "object", "param", "plaintext",
    "script", "style", "svg", "template", "xmp",
})

# Attributes whose value is a URL and therefore subject to scheme checks.
URL_ATTRIBUTES = frozenset({
    "action", "background", "cite", "codebase", "data", "formaction", "href",
    "icon", "longdesc", "manifest", "poster", "profile", "src", "usemap",
    "xlink:href",
})

# Raster image media types accepted in data: URLs.
SAFE_DATA_IMAGE_TYPES = frozenset({
    "image/avif", "image/bmp", "image/gif", "image/jpeg", "image/jpg",
    "image/png", "image/webp",
})

WHITESPACE = "\t\n\f\r "
