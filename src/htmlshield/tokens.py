class Tag:
    __slots__ = ("attrs", "kind", "name")

    START = 0
    END = 1

    def __init__(self, kind, name, attrs):
        self.kind = kind
        self.name = name
        self.attrs = attrs if attrs is not None else {}

    def __repr__(self):
        attrs = " ".join(f"{name}={value!r}" for name, value in self.attrs.items())
        kind_str = "start" if self.kind == self.START else "end"
        return f"<{kind_str}:{self.name} {attrs}>"


class CharacterTokens:
    __slots__ = ("data",)

    def __init__(self, data):
        self.data = data


class CommentToken:
    __slots__ = ("data",)

    def __init__(self, data):
        self.data = data


class DoctypeToken:
    __slots__ = ("name",)

    def __init__(self, name=None):
        self.name = name


class EOFToken:
    __slots__ = ()
