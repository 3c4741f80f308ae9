from typing import Any, Iterable, Mapping, Optional


class BlankSlate:
    """An object with nothing beyond what every Python object has."""

    def __repr__(self):
        return f"<{type(self).__name__}>"


class ToInt(BlankSlate):
    def __init__(self, value: int = 3):
        self.value = value

    def __index__(self) -> int:
        return self.value

    def __repr__(self):
        return f"ToInt({self.value!r})"


class ToF(BlankSlate):
    def __init__(self, value: float = 0.1):
        self.value = value

    def __float__(self) -> float:
        return self.value

    def __repr__(self):
        return f"ToF({self.value!r})"


class ToStr(BlankSlate):
    def __init__(self, value: str = ""):
        self.value = value

    def __str__(self) -> str:
        return self.value

    def __repr__(self):
        return f"ToStr({self.value!r})"


class ToBytes(BlankSlate):
    def __init__(self, value: bytes = b""):
        self.value = value

    def __bytes__(self) -> bytes:
        return self.value

    def __repr__(self):
        return f"ToBytes({self.value!r})"


class ToPath(BlankSlate):
    def __init__(self, value: str = "/tmp/foo.txt"):
        self.value = value

    def __fspath__(self) -> str:
        return self.value

    def __repr__(self):
        return f"ToPath({self.value!r})"


class ToArray(BlankSlate):
    """Iterable over fixed elements, without being a list."""

    def __init__(self, *elements: Any):
        self.elements = list(elements)

    def __iter__(self):
        return iter(self.elements)

    def __len__(self) -> int:
        return len(self.elements)

    def __repr__(self):
        return f"ToArray({', '.join(repr(e) for e in self.elements)})"


class ToHash(BlankSlate):
    """Supports `keys()` and item lookup, which is enough for `dict(obj)` and `dict.update`."""

    def __init__(self, mapping: Optional[Mapping] = None):
        self.mapping = dict(mapping or {})

    def keys(self) -> Iterable:
        return self.mapping.keys()

    def __getitem__(self, key: Any) -> Any:
        return self.mapping[key]

    def __repr__(self):
        return f"ToHash({self.mapping!r})"


class ToIO(BlankSlate):
    """Delegates reads and writes to a real stream."""

    def __init__(self, io: Any):
        self.io = io

    def read(self, *args):
        return self.io.read(*args)

    def write(self, data):
        return self.io.write(data)

    def fileno(self) -> int:
        return self.io.fileno()

    def __repr__(self):
        return f"ToIO({self.io!r})"
