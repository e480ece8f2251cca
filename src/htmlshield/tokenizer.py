import re

from .constants import PLAINTEXT_ELEMENTS, RAWTEXT_ELEMENTS, RCDATA_ELEMENTS, WHITESPACE
from .entities import decode_entities_in_text
from .tokens import CharacterTokens, CommentToken, DoctypeToken, EOFToken, Tag

_ASCII_LOWER_TABLE = str.maketrans({chr(code): chr(code + 32) for code in range(65, 91)})

_TAG_NAME_TERMINATOR_PATTERN = re.compile(r"[\t\n\f\r />]")
_ATTR_NAME_TERMINATOR_PATTERN = re.compile(r"[\t\n\f\r />=]")
_ATTR_VALUE_UNQUOTED_PATTERN = re.compile(r"[\t\n\f\r >]")
# "-->" or "--!>", whichever comes first
_COMMENT_END_PATTERN = re.compile(r"--!?>")

_RAWTEXT_END_PATTERNS = {
    name: re.compile(rf"</{name}(?=[\t\n\f\r />])", re.IGNORECASE)
    for name in RAWTEXT_ELEMENTS | RCDATA_ELEMENTS
}


def _is_ascii_alpha(c):
    return c is not None and c.isascii() and c.isalpha()


class TokenizerOpts:
    __slots__ = ("discard_bom",)

    def __init__(self, discard_bom=True):
        self.discard_bom = bool(discard_bom)


class Tokenizer:
    """Forgiving HTML tokenizer.

    Follows the shape of the WHATWG tokenizer closely enough that the tree the
    sanitizer inspects matches what a browser would build from the same bytes,
    but never raises: every malformed construct degrades to text, a bogus
    comment, or a discarded tag. Tokens are pushed to `sink.process_token()`.
    """

    DATA = 0
    TAG_OPEN = 1
    END_TAG_OPEN = 2
    TAG_NAME = 3
    BEFORE_ATTRIBUTE_NAME = 4
    ATTRIBUTE_NAME = 5
    AFTER_ATTRIBUTE_NAME = 6
    BEFORE_ATTRIBUTE_VALUE = 7
    ATTRIBUTE_VALUE_DOUBLE = 8
    ATTRIBUTE_VALUE_SINGLE = 9
    ATTRIBUTE_VALUE_UNQUOTED = 10
    AFTER_ATTRIBUTE_VALUE_QUOTED = 11
    SELF_CLOSING_START_TAG = 12
    MARKUP_DECLARATION_OPEN = 13
    COMMENT = 14
    BOGUS_COMMENT = 15
    RAWTEXT = 16
    PLAINTEXT = 17

    __slots__ = (
        "buffer",
        "current_attr_name",
        "current_attr_value",
        "current_char",
        "current_tag_attrs",
        "current_tag_kind",
        "current_tag_name",
        "length",
        "opts",
        "pos",
        "rawtext_tag_name",
        "reconsume",
        "sink",
        "state",
        "text_buffer",
    )

    def __init__(self, sink, opts=None):
        self.sink = sink
        self.opts = opts or TokenizerOpts()

        self.state = self.DATA
        self.buffer = ""
        self.length = 0
        self.pos = 0
        self.reconsume = False
        self.current_char = ""

        self.text_buffer = []
        self.current_tag_name = []
        self.current_tag_attrs = {}
        self.current_attr_name = []
        self.current_attr_value = []
        self.current_tag_kind = Tag.START
        self.rawtext_tag_name = None

    def run(self, html):
        if html and html[0] == "\ufeff" and self.opts.discard_bom:
            html = html[1:]

        self.buffer = html or ""
        self.length = len(self.buffer)
        self.pos = 0
        self.reconsume = False
        self.current_char = ""
        self.text_buffer.clear()
        self._reset_tag(Tag.START)

        self.rawtext_tag_name = None
        self.state = self.DATA

        while True:
            state = self.state
            if state == self.DATA:
                if self._state_data():
                    break
            elif state == self.TAG_OPEN:
                if self._state_tag_open():
                    break
            elif state == self.END_TAG_OPEN:
                if self._state_end_tag_open():
                    break
            elif state == self.TAG_NAME:
                if self._state_tag_name():
                    break
            elif state == self.BEFORE_ATTRIBUTE_NAME:
                if self._state_before_attribute_name():
                    break
            elif state == self.ATTRIBUTE_NAME:
                if self._state_attribute_name():
                    break
            elif state == self.AFTER_ATTRIBUTE_NAME:
                if self._state_after_attribute_name():
                    break
            elif state == self.BEFORE_ATTRIBUTE_VALUE:
                if self._state_before_attribute_value():
                    break
            elif state == self.ATTRIBUTE_VALUE_DOUBLE:
                if self._state_attribute_value_quoted('"'):
                    break
            elif state == self.ATTRIBUTE_VALUE_SINGLE:
                if self._state_attribute_value_quoted("'"):
                    break
            elif state == self.ATTRIBUTE_VALUE_UNQUOTED:
                if self._state_attribute_value_unquoted():
                    break
            elif state == self.AFTER_ATTRIBUTE_VALUE_QUOTED:
                if self._state_after_attribute_value_quoted():
                    break
            elif state == self.SELF_CLOSING_START_TAG:
                if self._state_self_closing_start_tag():
                    break
            elif state == self.MARKUP_DECLARATION_OPEN:
                if self._state_markup_declaration_open():
                    break
            elif state == self.COMMENT:
                if self._state_comment():
                    break
            elif state == self.BOGUS_COMMENT:
                if self._state_bogus_comment():
                    break
            elif state == self.RAWTEXT:
                if self._state_rawtext():
                    break
            elif state == self.PLAINTEXT:
                if self._state_plaintext():
                    break
            else:
                # Unknown state fallback to data.
                self.state = self.DATA

    # ---------------------
    # Helper methods
    # ---------------------

    def _get_char(self):
        if self.reconsume:
            self.reconsume = False
            return self.current_char
        if self.pos >= self.length:
            self.current_char = None
            return None
        c = self.buffer[self.pos]
        self.pos += 1
        self.current_char = c
        return c

    def _reconsume_current(self):
        self.reconsume = True

    def _skip_whitespace(self):
        while True:
            c = self._get_char()
            if c is None or c not in WHITESPACE:
                return c

    def _flush_text(self, decode=True):
        if not self.text_buffer:
            return
        data = "".join(self.text_buffer)
        self.text_buffer.clear()
        if decode:
            data = decode_entities_in_text(data)
        data = data.replace("\0", "\ufffd")
        if data:
            self._emit_token(CharacterTokens(data))

    def _reset_tag(self, kind):
        self.current_tag_kind = kind
        self.current_tag_name.clear()
        self.current_tag_attrs = {}
        self.current_attr_name.clear()
        self.current_attr_value.clear()

    def _append_tag_name(self, chunk):
        self.current_tag_name.append(chunk.translate(_ASCII_LOWER_TABLE).replace("\0", "\ufffd"))

    def _start_attribute(self):
        self._finish_attribute()
        self.current_attr_name.clear()
        self.current_attr_value.clear()

    def _finish_attribute(self):
        if not self.current_attr_name:
            return
        name = "".join(self.current_attr_name).translate(_ASCII_LOWER_TABLE).replace("\0", "\ufffd")
        self.current_attr_name.clear()
        value = "".join(self.current_attr_value)
        self.current_attr_value.clear()
        # First occurrence wins, like the browser.
        if name in self.current_tag_attrs:
            return
        value = decode_entities_in_text(value, in_attribute=True).replace("\0", "\ufffd")
        self.current_tag_attrs[name] = value

    def _emit_current_tag(self):
        self._finish_attribute()
        name = "".join(self.current_tag_name)
        tag = Tag(self.current_tag_kind, name, self.current_tag_attrs)
        self._reset_tag(Tag.START)
        self.state = self.DATA
        if tag.kind == Tag.START:
            if name in RAWTEXT_ELEMENTS or name in RCDATA_ELEMENTS:
                self.state = self.RAWTEXT
                self.rawtext_tag_name = name
            elif name in PLAINTEXT_ELEMENTS:
                self.state = self.PLAINTEXT
        self._emit_token(tag)

    def _emit_eof(self):
        self._flush_text()
        self._emit_token(EOFToken())
        return True

    def _discard_tag_at_eof(self):
        # An unterminated tag is dropped entirely, never emitted as text.
        self._reset_tag(Tag.START)
        return self._emit_eof()

    def _emit_token(self, token):
        self.sink.process_token(token)

    # ---------------------
    # State handlers
    # ---------------------

    def _state_data(self):
        buffer = self.buffer
        lt = buffer.find("<", self.pos)
        if lt == -1:
            self.text_buffer.append(buffer[self.pos:])
            self.pos = self.length
            return self._emit_eof()
        if lt > self.pos:
            self.text_buffer.append(buffer[self.pos:lt])
        self.pos = lt + 1
        self.state = self.TAG_OPEN
        return False

    def _state_tag_open(self):
        c = self._get_char()
        if c == "!":
            self.state = self.MARKUP_DECLARATION_OPEN
            return False
        if c == "/":
            self.state = self.END_TAG_OPEN
            return False
        if c == "?":
            self._flush_text()
            self._reconsume_current()
            self.state = self.BOGUS_COMMENT
            return False
        if _is_ascii_alpha(c):
            self._flush_text()
            self._reset_tag(Tag.START)
            self._reconsume_current()
            self.state = self.TAG_NAME
            return False

        # Not a tag: the '<' is literal text.
        self.text_buffer.append("<")
        if c is None:
            return self._emit_eof()
        self._reconsume_current()
        self._resume_data()
        return False

    def _state_end_tag_open(self):
        c = self._get_char()
        if _is_ascii_alpha(c):
            self._flush_text()
            self._reset_tag(Tag.END)
            self._reconsume_current()
            self.state = self.TAG_NAME
            return False
        if c == ">":
            self.state = self.DATA
            return False
        if c is None:
            self.text_buffer.append("</")
            return self._emit_eof()
        self._flush_text()
        self._reconsume_current()
        self.state = self.BOGUS_COMMENT
        return False

    def _resume_data(self):
        # A reconsumed character in the data state is plain text.
        if self.reconsume:
            self.reconsume = False
            self.pos -= 1
        self.state = self.DATA

    def _state_tag_name(self):
        if self.reconsume:
            self.reconsume = False
            self.pos -= 1
        match = _TAG_NAME_TERMINATOR_PATTERN.search(self.buffer, self.pos)
        if match is None:
            return self._discard_tag_at_eof()
        end = match.start()
        self._append_tag_name(self.buffer[self.pos:end])
        self.pos = end + 1
        c = match.group(0)
        if c == ">":
            self._emit_current_tag()
        elif c == "/":
            self.state = self.SELF_CLOSING_START_TAG
        else:
            self.state = self.BEFORE_ATTRIBUTE_NAME
        return False

    def _state_before_attribute_name(self):
        c = self._skip_whitespace()
        if c is None:
            return self._discard_tag_at_eof()
        if c in "/>":
            self._reconsume_current()
            self.state = self.AFTER_ATTRIBUTE_NAME
            return False
        self._start_attribute()
        if c == "=":
            self.current_attr_name.append(c)
        else:
            self._reconsume_current()
        self.state = self.ATTRIBUTE_NAME
        return False

    def _state_attribute_name(self):
        if self.reconsume:
            self.reconsume = False
            self.pos -= 1
        match = _ATTR_NAME_TERMINATOR_PATTERN.search(self.buffer, self.pos)
        if match is None:
            return self._discard_tag_at_eof()
        end = match.start()
        self.current_attr_name.append(self.buffer[self.pos:end])
        self.pos = end + 1
        if match.group(0) == "=":
            self.state = self.BEFORE_ATTRIBUTE_VALUE
        else:
            self.pos = end
            self.state = self.AFTER_ATTRIBUTE_NAME
        return False

    def _state_after_attribute_name(self):
        c = self._skip_whitespace()
        if c is None:
            return self._discard_tag_at_eof()
        if c == "/":
            self.state = self.SELF_CLOSING_START_TAG
        elif c == "=":
            self.state = self.BEFORE_ATTRIBUTE_VALUE
        elif c == ">":
            self._emit_current_tag()
        else:
            self._start_attribute()
            self._reconsume_current()
            self.state = self.ATTRIBUTE_NAME
        return False

    def _state_before_attribute_value(self):
        c = self._skip_whitespace()
        if c == '"':
            self.state = self.ATTRIBUTE_VALUE_DOUBLE
        elif c == "'":
            self.state = self.ATTRIBUTE_VALUE_SINGLE
        elif c == ">":
            # Missing value: the attribute is kept with an empty value.
            self._emit_current_tag()
        elif c is None:
            return self._discard_tag_at_eof()
        else:
            self._reconsume_current()
            self.state = self.ATTRIBUTE_VALUE_UNQUOTED
        return False

    def _state_attribute_value_quoted(self, quote):
        end = self.buffer.find(quote, self.pos)
        if end == -1:
            return self._discard_tag_at_eof()
        self.current_attr_value.append(self.buffer[self.pos:end])
        self.pos = end + 1
        self.state = self.AFTER_ATTRIBUTE_VALUE_QUOTED
        return False

    def _state_attribute_value_unquoted(self):
        if self.reconsume:
            self.reconsume = False
            self.pos -= 1
        match = _ATTR_VALUE_UNQUOTED_PATTERN.search(self.buffer, self.pos)
        if match is None:
            return self._discard_tag_at_eof()
        end = match.start()
        self.current_attr_value.append(self.buffer[self.pos:end])
        self.pos = end + 1
        if match.group(0) == ">":
            self._emit_current_tag()
        else:
            self.state = self.BEFORE_ATTRIBUTE_NAME
        return False

    def _state_after_attribute_value_quoted(self):
        c = self._get_char()
        if c is None:
            return self._discard_tag_at_eof()
        if c in WHITESPACE:
            self.state = self.BEFORE_ATTRIBUTE_NAME
        elif c == "/":
            self.state = self.SELF_CLOSING_START_TAG
        elif c == ">":
            self._emit_current_tag()
        else:
            self._reconsume_current()
            self.state = self.BEFORE_ATTRIBUTE_NAME
        return False

    def _state_self_closing_start_tag(self):
        c = self._get_char()
        if c is None:
            return self._discard_tag_at_eof()
        if c == ">":
            # "/>" is accepted and ignored; void elements are known by name.
            self._emit_current_tag()
        else:
            self._reconsume_current()
            self.state = self.BEFORE_ATTRIBUTE_NAME
        return False

    def _state_markup_declaration_open(self):
        self._flush_text()
        buffer = self.buffer
        pos = self.pos
        if buffer.startswith("--", pos):
            self.pos = pos + 2
            self.state = self.COMMENT
            return False
        if buffer[pos:pos + 7].upper() == "DOCTYPE":
            end = buffer.find(">", pos + 7)
            if end == -1:
                end = self.length
            name = buffer[pos + 7:end].strip(WHITESPACE).split(None, 1)
            self._emit_token(DoctypeToken(name[0].translate(_ASCII_LOWER_TABLE) if name else None))
            self.pos = min(end + 1, self.length)
            self.state = self.DATA
            return False
        # CDATA sections and anything else outside foreign content are bogus comments.
        self.state = self.BOGUS_COMMENT
        return False

    def _state_comment(self):
        buffer = self.buffer
        pos = self.pos
        # Abruptly closed empty comments: <!--> and <!--->
        if buffer.startswith(">", pos):
            self._emit_token(CommentToken(""))
            self.pos = pos + 1
            self.state = self.DATA
            return False
        if buffer.startswith("->", pos):
            self._emit_token(CommentToken(""))
            self.pos = pos + 2
            self.state = self.DATA
            return False

        match = _COMMENT_END_PATTERN.search(buffer, pos)
        if match is None:
            self._emit_token(CommentToken(buffer[pos:]))
            self.pos = self.length
            return self._emit_eof()
        self._emit_token(CommentToken(buffer[pos:match.start()]))
        self.pos = match.end()
        self.state = self.DATA
        return False

    def _state_bogus_comment(self):
        if self.reconsume:
            self.reconsume = False
            self.pos -= 1
        end = self.buffer.find(">", self.pos)
        if end == -1:
            self._emit_token(CommentToken(self.buffer[self.pos:].replace("\0", "\ufffd")))
            self.pos = self.length
            return self._emit_eof()
        self._emit_token(CommentToken(self.buffer[self.pos:end].replace("\0", "\ufffd")))
        self.pos = end + 1
        self.state = self.DATA
        return False

    def _state_rawtext(self):
        name = self.rawtext_tag_name
        match = _RAWTEXT_END_PATTERNS[name].search(self.buffer, self.pos)
        end = match.start() if match else self.length
        self.text_buffer.append(self.buffer[self.pos:end])
        self._flush_text(decode=name in RCDATA_ELEMENTS)
        self.rawtext_tag_name = None
        if match is None:
            self.pos = self.length
            return self._emit_eof()
        self._reset_tag(Tag.END)
        self.current_tag_name.append(name)
        self.pos = match.end()
        self.state = self.BEFORE_ATTRIBUTE_NAME
        return False

    def _state_plaintext(self):
        self.text_buffer.append(self.buffer[self.pos:])
        self.pos = self.length
        self._flush_text(decode=False)
        return self._emit_eof()
