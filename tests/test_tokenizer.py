"""Tests for the forgiving tokenizer."""

import unittest

from htmlshield.tokenizer import Tokenizer, TokenizerOpts
from htmlshield.tokens import CharacterTokens, CommentToken, DoctypeToken, EOFToken, Tag


class _Sink:
    def __init__(self):
        self.tokens = []

    def process_token(self, token):
        self.tokens.append(token)


def tokenize(html, opts=None):
    sink = _Sink()
    Tokenizer(sink, opts).run(html)
    return sink.tokens


class TestTags(unittest.TestCase):
    def test_names_and_attributes_are_lowercased(self):
        tokens = tokenize('<DIV Class="a" ID=x>')
        tag = tokens[0]
        assert isinstance(tag, Tag)
        assert tag.kind == Tag.START
        assert tag.name == "div"
        assert tag.attrs == {"class": "a", "id": "x"}
        assert isinstance(tokens[-1], EOFToken)

    def test_first_duplicate_attribute_wins(self):
        tag = tokenize('<p class="a" class="b">')[0]
        assert tag.attrs == {"class": "a"}

    def test_single_quoted_and_valueless_attributes(self):
        tag = tokenize("<input value='v' disabled>")[0]
        assert tag.attrs == {"value": "v", "disabled": ""}

    def test_self_closing_slash_is_ignored(self):
        tokens = tokenize("<br/><div/>")
        assert [(t.name, t.attrs) for t in tokens[:2]] == [("br", {}), ("div", {})]
        assert all(t.kind == Tag.START for t in tokens[:2])

    def test_end_tag(self):
        tokens = tokenize("</B >")
        assert tokens[0].kind == Tag.END
        assert tokens[0].name == "b"

    def test_empty_end_tag_is_ignored(self):
        tokens = tokenize("a</>b")
        assert [t.data for t in tokens if isinstance(t, CharacterTokens)] == ["ab"]

    def test_unterminated_tag_is_discarded(self):
        tokens = tokenize('x<a href="y')
        assert len(tokens) == 2
        assert tokens[0].data == "x"
        assert isinstance(tokens[1], EOFToken)

    def test_repr(self):
        tag = tokenize("<img src=a />")[0]
        assert repr(tag) == "<start:img src='a'>"


class TestText(unittest.TestCase):
    def test_lone_less_than_is_text(self):
        tokens = tokenize("a < b")
        assert tokens[0].data == "a < b"

    def test_less_than_at_eof_is_text(self):
        tokens = tokenize("a<")
        assert tokens[0].data == "a<"

    def test_character_references_are_decoded(self):
        tokens = tokenize("&lt;&amp;&copy &#x41;&#66;")
        assert tokens[0].data == "<&\u00a9 AB"

    def test_unknown_reference_is_literal(self):
        tokens = tokenize("&bogus; & done")
        assert tokens[0].data == "&bogus; & done"

    def test_attribute_reference_followed_by_equals_is_literal(self):
        tag = tokenize('<a title="&copy=1" href="&#106;avascript:x">')[0]
        assert tag.attrs["title"] == "&copy=1"
        assert tag.attrs["href"] == "javascript:x"

    def test_nul_is_replaced(self):
        tokens = tokenize("a\x00b")
        assert tokens[0].data == "a\ufffdb"

    def test_bom_is_discarded_by_default(self):
        assert tokenize("\ufeffhi")[0].data == "hi"
        assert tokenize("\ufeffhi", TokenizerOpts(discard_bom=False))[0].data == "\ufeffhi"


class TestRawText(unittest.TestCase):
    def test_script_content_is_raw(self):
        tokens = tokenize("<script><b>&amp;</b></script>after")
        assert tokens[0].name == "script"
        assert tokens[1].data == "<b>&amp;</b>"
        assert tokens[2].kind == Tag.END
        assert tokens[2].name == "script"
        assert tokens[3].data == "after"

    def test_end_tag_match_is_case_insensitive(self):
        tokens = tokenize("<style>x</STYLE>")
        assert tokens[1].data == "x"
        assert tokens[2].kind == Tag.END

    def test_unclosed_rawtext_runs_to_eof(self):
        tokens = tokenize("<script>alert(1)</scriptx")
        assert tokens[1].data == "alert(1)</scriptx"
        assert isinstance(tokens[2], EOFToken)

    def test_rcdata_decodes_references(self):
        tokens = tokenize("<textarea><b>&amp;</textarea>")
        assert tokens[1].data == "<b>&"

    def test_plaintext_swallows_everything(self):
        tokens = tokenize("<plaintext><b>x</b>")
        assert tokens[1].data == "<b>x</b>"


class TestMarkupDeclarations(unittest.TestCase):
    def test_comment(self):
        tokens = tokenize("a<!-- hi -->b")
        assert isinstance(tokens[1], CommentToken)
        assert tokens[1].data == " hi "
        assert tokens[2].data == "b"

    def test_abrupt_empty_comments(self):
        tokens = tokenize("<!--><!--->")
        assert [t.data for t in tokens if isinstance(t, CommentToken)] == ["", ""]

    def test_comment_ends_at_first_terminator(self):
        tokens = tokenize("<!--a--!>b<!--c--->d<!--e-->")
        assert [t.data for t in tokens if isinstance(t, CommentToken)] == ["a", "c-", "e"]
        assert [t.data for t in tokens if isinstance(t, CharacterTokens)] == ["b", "d"]

    def test_unclosed_comment_runs_to_eof(self):
        tokens = tokenize("<!-- open")
        assert tokens[0].data == " open"

    def test_processing_instruction_is_bogus_comment(self):
        tokens = tokenize("<?php x ?>")
        assert isinstance(tokens[0], CommentToken)
        assert tokens[0].data == "?php x ?"

    def test_cdata_is_bogus_comment(self):
        tokens = tokenize("<![CDATA[x]]>")
        assert tokens[0].data == "[CDATA[x]]"

    def test_doctype(self):
        tokens = tokenize("<!DOCTYPE HTML>")
        assert isinstance(tokens[0], DoctypeToken)
        assert tokens[0].name == "html"


if __name__ == "__main__":
    unittest.main()
