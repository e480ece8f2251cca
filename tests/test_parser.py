"""Tests for fragment tree building and serialization."""

import unittest

from htmlshield.node import COMMENT, DOCTYPE, FRAGMENT, TEXT, Node
from htmlshield.parser import parse_fragment
from htmlshield.serialize import escape_html, serialize_start_tag, to_html
from htmlshield.tokens import CharacterTokens, Tag
from htmlshield.treebuilder import TreeBuilder


def names(node):
    return [child.name for child in node.children]


class TestTreeBuilder(unittest.TestCase):
    def test_misnested_end_tag_closes_inner_elements(self):
        root = parse_fragment("<b>bold<i>mixed</b></i>")
        assert root.name == FRAGMENT
        assert names(root) == ["b"]
        b = root.children[0]
        assert names(b) == [TEXT, "i"]
        assert b.children[1].children[0].data == "mixed"

    def test_unmatched_end_tag_is_ignored(self):
        root = parse_fragment("</div>text</span>")
        assert names(root) == [TEXT]
        assert root.children[0].data == "text"

    def test_void_elements_are_leaves(self):
        root = parse_fragment("<p>a<br>b<img src=x>c</p>")
        p = root.children[0]
        assert names(p) == [TEXT, "br", TEXT, "img", TEXT]
        assert p.children[3].attrs == {"src": "x"}

    def test_open_elements_are_closed_at_eof(self):
        root = parse_fragment("<div><span>x")
        assert names(root) == ["div"]
        assert names(root.children[0]) == ["span"]

    def test_no_implied_end_tags(self):
        root = parse_fragment("<p>one<p>two")
        assert names(root) == ["p"]
        assert names(root.children[0]) == [TEXT, "p"]

    def test_comments_and_doctypes_are_kept_in_the_tree(self):
        root = parse_fragment("<!DOCTYPE html><!--c-->x")
        assert names(root) == [DOCTYPE, COMMENT, TEXT]
        assert root.children[0].data == "html"
        assert root.children[1].data == "c"

    def test_adjacent_text_is_merged(self):
        root = parse_fragment("a&amp;b<!x>c")
        assert names(root) == [TEXT, COMMENT, TEXT]
        assert root.children[0].data == "a&b"

    def test_text_across_stray_end_tags_is_one_node(self):
        root = parse_fragment("a</i>b</i><b>c</u>d</b>e")
        assert names(root) == [TEXT, "b", TEXT]
        assert root.children[0].data == "ab"
        assert root.children[1].children[0].data == "cd"
        assert root.children[2].data == "e"

    def test_open_counts_follow_the_stack(self):
        builder = TreeBuilder()
        for token in (
            Tag(Tag.START, "p", None),
            Tag(Tag.START, "b", None),
            Tag(Tag.START, "p", None),
            Tag(Tag.START, "i", None),
            CharacterTokens("x"),
            Tag(Tag.END, "b", None),
            CharacterTokens("y"),
        ):
            builder.process_token(token)
        assert [node.name for node in builder.open_elements] == ["p"]
        assert +builder.open_counts == {"p": 1}
        root = builder.finish()
        assert builder.open_elements == []
        assert +builder.open_counts == {}
        assert names(root.children[0]) == ["b", TEXT]
        assert root.children[0].children[1].data == "y"

    def test_none_and_empty_input(self):
        assert parse_fragment(None).children == []
        assert parse_fragment("").children == []


class TestNode(unittest.TestCase):
    def test_empty_name_is_rejected(self):
        with self.assertRaises(ValueError):
            Node("")

    def test_append_child_reparents(self):
        a = Node("div")
        b = Node("span")
        child = Node("em")
        a.append_child(child)
        b.append_child(child)
        assert a.children == []
        assert b.children == [child]
        assert child.parent is b

    def test_is_element(self):
        assert Node("p").is_element
        assert not Node(TEXT, data="x").is_element
        assert not Node(DOCTYPE).is_element


class TestSerialize(unittest.TestCase):
    def test_escape_html(self):
        assert escape_html("<a href=\"x\">'&'</a>") == "&lt;a href=&quot;x&quot;&gt;&#x27;&amp;&#x27;&lt;/a&gt;"
        assert escape_html(None) == ""

    def test_start_tag_quotes_and_escapes_values(self):
        assert serialize_start_tag("p", {"title": 'a"b<', "hidden": ""}) == '<p title="a&quot;b&lt;" hidden>'

    def test_to_html(self):
        root = Node(FRAGMENT)
        p = Node("p", attrs={"class": "c"})
        p.append_text("x & y")
        p.append_child(Node("br"))
        root.append_child(p)
        assert to_html(root) == '<p class="c">x &amp; y<br></p>'

    def test_comment_data_cannot_close_early(self):
        root = Node(FRAGMENT)
        root.append_child(Node(COMMENT, data="a--b"))
        root.append_child(Node(COMMENT, data="->x"))
        root.append_child(Node(COMMENT, data="x-"))
        assert to_html(root) == "<!--a- -b--><!-- ->x--><!--x- -->"

    def test_doctype_is_not_serialized(self):
        assert to_html(parse_fragment("<!DOCTYPE html><p>x</p>")) == "<p>x</p>"

    def test_deep_nesting_does_not_recurse(self):
        html = "<div>" * 5000 + "x"
        assert to_html(parse_fragment(html)) == html + "</div>" * 5000


if __name__ == "__main__":
    unittest.main()
