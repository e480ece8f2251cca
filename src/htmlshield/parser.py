"""Fragment parsing entry point."""

from .tokenizer import Tokenizer
from .treebuilder import TreeBuilder


def parse_fragment(html, *, tokenizer_opts=None):
    """Parse an HTML fragment into a '#fragment' rooted tree. Never raises on malformed markup."""
    tree_builder = TreeBuilder()
    Tokenizer(tree_builder, tokenizer_opts).run(html or "")
    return tree_builder.finish()
