FRAGMENT = "#fragment"
TEXT = "#text"
COMMENT = "#comment"
DOCTYPE = "!doctype"


class Node:
    """A node in the parsed tree.

    One class covers every node kind; the kind is carried by `name`:
    - '#fragment': the root returned by the tree builder
    - '#text': text, stored in `data`
    - '#comment': comment text, stored in `data`
    - '!doctype': doctype name, stored in `data`
    - anything else: an element with lowercased tag name `name`
    """

    __slots__ = ("attrs", "children", "data", "name", "parent")

    def __init__(self, name, attrs=None, data=None):
        # Empty names would serialize as "<>" and must never reach the tree.
        if not name:
            msg = "Empty name passed to Node constructor"
            raise ValueError(msg)
        self.name = name
        self.attrs = dict(attrs) if attrs else {}
        self.data = data
        self.children = []
        self.parent = None

    @property
    def is_element(self):
        return self.name[0] not in "#!"

    def append_child(self, child):
        if child.parent is not None:
            child.parent.children.remove(child)
        child.parent = self
        self.children.append(child)

    def append_text(self, data):
        """Append text, merging with a trailing text child."""
        if self.children and self.children[-1].name == TEXT:
            self.children[-1].data += data
            return
        self.append_child(Node(TEXT, data=data))

    def __repr__(self):
        if self.is_element:
            return f"<Node {self.name} attrs={self.attrs!r} children={len(self.children)}>"
        return f"<Node {self.name} {self.data!r}>"
