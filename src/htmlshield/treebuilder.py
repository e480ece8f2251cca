from collections import Counter

from .constants import VOID_ELEMENTS
from .node import COMMENT, DOCTYPE, FRAGMENT, Node
from .tokens import CharacterTokens, CommentToken, DoctypeToken, EOFToken, Tag


class TreeBuilder:
    """Token sink that builds a fragment tree from tokenizer output.

    Balance repair is stack based and nothing else:
    - a start tag for a void element adds a leaf
    - any other start tag opens an element on the stack
    - an end tag whose name is open closes everything above it too
    - an end tag with no matching open element is ignored
    - elements still open at EOF are closed

    There are no implied end tags or foster parenting. Serializing the tree
    and parsing the result again gives back the same tree, which is what
    makes sanitizing idempotent.

    `open_counts` mirrors the stack by name so a stray end tag is rejected
    without walking the stack, and text is collected in `pending_text` until
    the tree shape changes. Both keep a parse linear in the input length.
    """

    __slots__ = ("open_counts", "open_elements", "pending_text", "root")

    def __init__(self):
        self.root = Node(FRAGMENT)
        self.open_elements = []
        self.open_counts = Counter()
        self.pending_text = []

    @property
    def current_node(self):
        return self.open_elements[-1] if self.open_elements else self.root

    def process_token(self, token):
        if isinstance(token, CharacterTokens):
            self.pending_text.append(token.data)
        elif isinstance(token, Tag):
            if token.kind == Tag.START:
                self._start_tag(token)
            else:
                self._end_tag(token.name)
        elif isinstance(token, CommentToken):
            self._flush_text()
            self.current_node.append_child(Node(COMMENT, data=token.data))
        elif isinstance(token, DoctypeToken):
            self._flush_text()
            self.current_node.append_child(Node(DOCTYPE, data=token.name))
        elif isinstance(token, EOFToken):
            self._close_all()

    def _flush_text(self):
        if self.pending_text:
            self.current_node.append_text("".join(self.pending_text))
            self.pending_text.clear()

    def _start_tag(self, tag):
        self._flush_text()
        node = Node(tag.name, attrs=tag.attrs)
        self.current_node.append_child(node)
        if tag.name not in VOID_ELEMENTS:
            self.open_elements.append(node)
            self.open_counts[tag.name] += 1

    def _end_tag(self, name):
        if not self.open_counts[name]:
            return
        self._flush_text()
        open_elements = self.open_elements
        while open_elements:
            node = open_elements.pop()
            self.open_counts[node.name] -= 1
            if node.name == name:
                return

    def _close_all(self):
        self._flush_text()
        self.open_elements.clear()
        self.open_counts.clear()

    def finish(self):
        self._close_all()
        return self.root
