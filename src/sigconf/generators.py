"""Representative argument values for exercising one signature many ways.

Each generator yields the plain value first, then a duck-typed stand-in from
`sigconf.convertibles`. Sequences are finite, deterministic and restartable:

    for count in with_int(1):
        harness.assert_send_type("(str?, index) -> list[str]", "a b c", "split", None, count)
"""
import itertools
import pathlib
import sys
from typing import Any, Callable, Iterable, Iterator, Mapping, Optional

from sigconf.convertibles import BlankSlate, ToArray, ToBytes, ToF, ToHash, ToInt, ToIO, ToPath, ToStr


class WithEnum:
    def __init__(self, factory: Callable[[], Iterable[Any]]):
        self._factory = factory

    def __iter__(self) -> Iterator[Any]:
        return iter(self._factory())

    def and_(self, *values: Any) -> "WithEnum":
        """Append values; other WithEnums are flattened in."""
        def generate():
            yield from self
            for value in values:
                if isinstance(value, WithEnum):
                    yield from value
                else:
                    yield value
        return WithEnum(generate)

    def and_nil(self) -> "WithEnum":
        return self.and_(None)

    def but(self, *cases: Any) -> "WithEnum":
        """Drop values that are instances of a case (for classes) or equal to it."""
        def excluded(value):
            for case in cases:
                if isinstance(case, type):
                    if isinstance(value, case):
                        return True
                elif type(value) is type(case) and value == case:
                    return True
            return False

        return WithEnum(lambda: (value for value in self if not excluded(value)))

    def chain(self, *others: Iterable[Any]) -> "WithEnum":
        return WithEnum(lambda: itertools.chain(self, *others))

    def product(self, *others: Iterable[Any]) -> "WithEnum":
        """Cartesian tuples of this sequence and `others`, for argument matrices."""
        return WithEnum(lambda: itertools.product(self, *others))

    def __repr__(self):
        return f"WithEnum({list(self)!r})"


def with_(*values: Any) -> WithEnum:
    return WithEnum(lambda: values)


def with_int(value: int = 3) -> WithEnum:
    return WithEnum(lambda: (value, ToInt(value)))


def with_float(value: float = 0.1) -> WithEnum:
    return WithEnum(lambda: (value, ToF(value)))


def with_string(value: str = "") -> WithEnum:
    return WithEnum(lambda: (value, ToStr(value)))


def with_bytes(value: bytes = b"") -> WithEnum:
    return WithEnum(lambda: (value, ToBytes(value)))


def with_array(*elements: Any) -> WithEnum:
    return WithEnum(lambda: (list(elements), ToArray(*elements)))


def with_hash(mapping: Optional[Mapping] = None) -> WithEnum:
    mapping = dict(mapping or {})
    return WithEnum(lambda: (dict(mapping), ToHash(mapping)))


def with_path(path: str = "/tmp/foo.txt") -> WithEnum:
    return WithEnum(lambda: (path, pathlib.PurePath(path), ToPath(path)))


def with_io(io: Any = None) -> WithEnum:
    def generate():
        stream = sys.stdout if io is None else io
        yield stream
        yield ToIO(stream)
    return WithEnum(generate)


def with_bool() -> WithEnum:
    return WithEnum(lambda: (True, False))


def with_boolish() -> WithEnum:
    return with_bool().chain([None, 1, object(), BlankSlate(), "hello, world!"])


with_untyped = with_boolish


def with_range(start: WithEnum, stop: WithEnum, step: Optional[WithEnum] = None) -> WithEnum:
    """Ranges over every combination of bounds, e.g. `with_range(with_int(1), with_int(4))`."""
    for name, bound in (("start", start), ("stop", stop), ("step", step)):
        if bound is not None and not isinstance(bound, WithEnum):
            raise TypeError(f"`{name}` must come from a with_* generator")

    def generate():
        steps = [None] if step is None else step
        for lower, upper, stride in itertools.product(start, stop, steps):
            if stride is None:
                yield range(lower, upper)
            else:
                yield range(lower, upper, stride)
    return WithEnum(generate)
