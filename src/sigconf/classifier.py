import collections.abc
import inspect
import logging
import types
from dataclasses import dataclass
from itertools import islice
from typing import Any, Dict, Iterator, Optional, Tuple

from sigconf.type_nodes import (
    TypeExpr, Untyped, Base, ClassRef, Singleton, Interface, Union, Intersection,
    TupleType, Shape, Literal, TypeVar, OptionalType, Proc, Params,
)

logger = logging.getLogger(__name__)

DEFAULT_SAMPLE_SIZE = 100

# --- Classification results ---


class Classification:
    ok = False


@dataclass(frozen=True)
class Yes(Classification):
    ok = True


@dataclass(frozen=True)
class No(Classification):
    reason: str
    path: str
    expected: str
    actual: str
    conflict: Optional[str] = None  # Type variable whose binding was violated


@dataclass(frozen=True)
class Maybe(Classification):
    """Satisfied unless the named type variable is bound to something else."""
    requires_binding: str
    ok = True


YES = Yes()

# --- Type variable bindings ---


@dataclass(frozen=True)
class Binding:
    types: Tuple[type, ...]
    origin: str  # Slot that bound the variable, e.g. "argument 0"


class Bindings:
    """Type variables bound during one resolution pass of one signature."""

    def __init__(self, entries: Optional[Dict[str, Binding]] = None):
        self._entries: Dict[str, Binding] = dict(entries or {})

    def get(self, name: str) -> Optional[Binding]:
        return self._entries.get(name)

    def bind(self, name: str, cls: type, origin: str):
        self._entries[name] = Binding((cls,), origin)

    def widen(self, name: str, cls: type):
        binding = self._entries[name]
        if cls not in binding.types:
            self._entries[name] = Binding(binding.types + (cls,), binding.origin)

    def fork(self) -> "Bindings":
        return Bindings(self._entries)

    def adopt(self, other: "Bindings"):
        self._entries = dict(other._entries)

    def as_dict(self) -> Dict[str, Tuple[type, ...]]:
        return {name: binding.types for name, binding in self._entries.items()}

    def __contains__(self, name: str) -> bool:
        return name in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __repr__(self):
        bound = ", ".join(
            f"{name}={'|'.join(type_name_of(t) for t in b.types)}" for name, b in self._entries.items()
        )
        return f"Bindings({bound})"


# --- Classifier ---

_NO_RECEIVER = object()


class ValueClassifier:
    def __init__(self, registry, sample_size: Optional[int] = DEFAULT_SAMPLE_SIZE,
                 doubles: Tuple[type, ...] = (), receiver: Any = _NO_RECEIVER):
        self.registry = registry
        self.sample_size = sample_size
        self.doubles = doubles
        self.receiver = receiver

    def for_receiver(self, receiver: Any) -> "ValueClassifier":
        return ValueClassifier(self.registry, self.sample_size, self.doubles, receiver)

    def satisfies(self, value: Any, type_expr: TypeExpr, bindings: Optional[Bindings] = None,
                  path: str = "value") -> Classification:
        """Classify `value` against `type_expr`.

        `path` names the slot being checked ("argument 0", "return value"); it prefixes
        failure paths and is the origin recorded for type variables bound here. With no
        `bindings`, type variables yield Maybe.
        """
        return self._classify(value, type_expr, bindings, path, path)

    def _classify(self, value, node: TypeExpr, bindings, path: str, slot: str) -> Classification:
        if self.doubles and isinstance(value, self.doubles):
            logger.info("A double (%r) is detected!", value)
            return YES

        if isinstance(node, Untyped):
            return YES
        if isinstance(node, Base):
            return self._check_base(value, node, path)
        if isinstance(node, ClassRef):
            return self._check_class_ref(value, node, bindings, path, slot)
        if isinstance(node, Singleton):
            return self._check_singleton(value, node, path)
        if isinstance(node, Interface):
            return self._check_interface(value, node, path)
        if isinstance(node, Union):
            return self._check_union(value, node, bindings, path, slot)
        if isinstance(node, Intersection):
            for part in node.parts:
                result = self._classify(value, part, bindings, path, slot)
                if not result.ok:
                    return result
            return YES
        if isinstance(node, TupleType):
            return self._check_tuple(value, node, bindings, path, slot)
        if isinstance(node, Shape):
            return self._check_shape(value, node, bindings, path, slot)
        if isinstance(node, Literal):
            if type(value) is type(node.value) and value == node.value:
                return YES
            return self._no(f"expected literal {node}", path, node, value)
        if isinstance(node, TypeVar):
            return self._check_type_var(value, node, bindings, path, slot)
        if isinstance(node, OptionalType):
            if value is None:
                return YES
            return self._classify(value, node.inner, bindings, path, slot)
        if isinstance(node, Proc):
            if not callable(value):
                return self._no("expected a callable", path, node, value)
            if not accepts(value, node.params):
                return self._no(f"callable cannot be called as {node.params}", path, node, value)
            return YES

        raise TypeError(f"Unknown type expression: {node!r}")

    def _check_base(self, value, node: Base, path: str) -> Classification:
        kind = node.kind
        if kind in ("top", "void", "boolish"):
            return YES
        if kind == "bot":
            return self._no("no value satisfies bot", path, node, value)
        if kind == "bool":
            if isinstance(value, bool):
                return YES
            return self._no("expected true or false", path, node, value)
        if kind == "nil":
            if value is None:
                return YES
            return self._no("expected nil", path, node, value)

        # self, instance, class
        if self.receiver is _NO_RECEIVER:
            logger.debug("`%s` checked without a receiver; accepting %r", kind, value)
            return YES
        if self._matches_receiver(value, kind):
            return YES
        return self._no(f"expected {kind} of {describe_receiver(self.receiver)}", path, node, value)

    def _matches_receiver(self, value, kind: str) -> bool:
        receiver = self.receiver
        if isinstance(receiver, types.ModuleType):
            return value is receiver
        if isinstance(receiver, type):
            if kind == "instance":
                return isinstance(value, receiver)
            return isinstance(value, type) and issubclass(value, receiver)
        if kind == "class":
            return isinstance(value, type) and issubclass(value, type(receiver))
        return isinstance(value, type(receiver))

    def _check_class_ref(self, value, node: ClassRef, bindings, path: str, slot: str) -> Classification:
        if self.registry.is_alias(node.name):
            return self._classify(value, self.registry.expand_alias(node.name), bindings, path, slot)

        cls = self.registry.resolve_class(node.name)
        if isinstance(cls, types.ModuleType):
            if value is cls:
                return YES
            return self._no(f"expected module {cls.__name__}", path, node, value)
        if not isinstance(value, cls):
            return self._no(f"expected an instance of {type_name_of(cls)}", path, node, value)
        if node.type_args:
            return self._check_members(value, node, bindings, path, slot)
        return YES

    def _check_members(self, value, node: ClassRef, bindings, path: str, slot: str) -> Classification:
        args = node.type_args

        if isinstance(value, collections.abc.Mapping) and len(args) >= 2:
            for _, key in self._sample(value.keys()):
                result = self._classify(key, args[0], bindings, f"key {key!r} of {path}", slot)
                if not result.ok:
                    return result
                result = self._classify(value[key], args[1], bindings, f"value at {key!r} of {path}", slot)
                if not result.ok:
                    return result
            return YES

        if isinstance(value, range):
            for label, bound in (("start", value.start), ("stop", value.stop)):
                result = self._classify(bound, args[0], bindings, f"{label} of {path}", slot)
                if not result.ok:
                    return result
            return YES

        if isinstance(value, (str, bytes, bytearray)):
            # Characters of a str are str again; treat text as atomic
            return YES

        if isinstance(value, collections.abc.Iterable) and not isinstance(value, collections.abc.Iterator):
            for index, element in self._sample(value):
                result = self._classify(element, args[0], bindings, f"element {index} of {path}", slot)
                if not result.ok:
                    return result
            return YES

        # One-shot iterators would be consumed by the check
        logger.debug("Element types of %s (%s) are not checked", path, type_name_of(type(value)))
        return YES

    def _sample(self, iterable) -> Iterator[Tuple[int, Any]]:
        """Yield (index, element) for every element, or for an evenly strided subset."""
        limit = self.sample_size
        if limit is None:
            yield from enumerate(iterable)
            return

        size = len(iterable) if isinstance(iterable, collections.abc.Sized) else None
        if size is None or size <= limit:
            yield from islice(enumerate(iterable), limit)
            return

        step = size / limit
        wanted = [int(i * step) for i in range(limit)]
        if isinstance(iterable, collections.abc.Sequence):
            for index in wanted:
                yield index, iterable[index]
            return

        wanted_set = set(wanted)
        for index, element in enumerate(iterable):
            if index in wanted_set:
                yield index, element
            if index >= wanted[-1]:
                break

    def _check_singleton(self, value, node: Singleton, path: str) -> Classification:
        cls = self.registry.resolve_class(node.name)
        if isinstance(cls, types.ModuleType):
            if value is cls:
                return YES
        elif isinstance(value, type) and issubclass(value, cls):
            return YES
        return self._no(f"expected {node}", path, node, value)

    def _check_interface(self, value, node: Interface, path: str) -> Classification:
        for method in node.methods:
            attribute = capability_of(value, method.name)
            if attribute is None or not callable(attribute):
                return self._no(f"does not respond to `{method.name}`", path, node, value)
            if method.explicit and _lookup_special(type(value), method.name) is vars(object).get(method.name):
                return self._no(f"does not define its own `{method.name}`", path, node, value)
            if method.params is not None and not accepts(attribute, method.params):
                return self._no(f"`{method.name}` cannot be called as {method.params}", path, node, value)
        return YES

    def _check_union(self, value, node: Union, bindings, path: str, slot: str) -> Classification:
        failures = []
        for alternative in node.alternatives:
            scratch = bindings.fork() if bindings is not None else None
            result = self._classify(value, alternative, scratch, path, slot)
            if result.ok:
                # Earliest matching alternative wins, with its bindings
                if bindings is not None:
                    bindings.adopt(scratch)
                return result
            failures.append(result)

        reasons = "; ".join(f.reason for f in failures)
        conflict = next((f.conflict for f in failures if f.conflict), None)
        return self._no(f"no alternative matched ({reasons})", path, node, value, conflict)

    def _check_tuple(self, value, node: TupleType, bindings, path: str, slot: str) -> Classification:
        if not isinstance(value, (tuple, list)):
            return self._no("expected a tuple", path, node, value)
        if len(value) != len(node.elements):
            return self._no(f"expected {len(node.elements)} elements, got {len(value)}", path, node, value)
        for index, (element, element_type) in enumerate(zip(value, node.elements)):
            result = self._classify(element, element_type, bindings, f"element {index} of {path}", slot)
            if not result.ok:
                return result
        return YES

    def _check_shape(self, value, node: Shape, bindings, path: str, slot: str) -> Classification:
        if not isinstance(value, collections.abc.Mapping):
            return self._no("expected a mapping", path, node, value)

        fields = node.field_map()
        for key, field in fields.items():
            if key not in value:
                if field.required:
                    return self._no(f"missing key {key!r}", path, node, value)
                continue
            result = self._classify(value[key], field.type, bindings, f"value at {key!r} of {path}", slot)
            if not result.ok:
                return result

        for key in value:
            if key in fields:
                continue
            if node.closed:
                return self._no(f"unexpected key {key!r}", path, node, value)
            result = self._classify(value[key], node.extra, bindings, f"value at {key!r} of {path}", slot)
            if not result.ok:
                return result
        return YES

    def _check_type_var(self, value, node: TypeVar, bindings, path: str, slot: str) -> Classification:
        if bindings is None:
            return Maybe(node.name)

        binding = bindings.get(node.name)
        if binding is None:
            bindings.bind(node.name, type(value), slot)
            return YES
        if isinstance(value, binding.types):
            return YES
        if binding.origin == slot:
            bindings.widen(node.name, type(value))
            return YES

        bound = " | ".join(type_name_of(t) for t in binding.types)
        return self._no(f"type variable {node.name} is bound to {bound} by {binding.origin}",
                        path, node, value, conflict=node.name)

    def _no(self, reason: str, path: str, node: TypeExpr, value, conflict: Optional[str] = None) -> No:
        return No(reason, path, str(node), type_name_of(type(value)), conflict)


def accepts(function, params: Params) -> bool:
    """Whether `function` can be called with the required arguments of `params`."""
    try:
        signature = inspect.signature(function)
    except (TypeError, ValueError):
        # Builtins without introspectable signatures
        return True

    positionals = [None] * params.min_positionals
    keywords = {name: None for name, _ in params.required_keywords}
    try:
        signature.bind(*positionals, **keywords)
    except TypeError:
        return False
    return True


def _lookup_special(cls: type, name: str) -> Any:
    for klass in cls.__mro__:
        if name in vars(klass):
            return vars(klass)[name]
    return None


def capability_of(value: Any, name: str) -> Any:
    """The attribute `name` of `value`, bound to it, or None.

    Dunder protocols are looked up on the type only, as the interpreter does: a class
    object does not gain the special methods of its instances.
    """
    if not (name.startswith("__") and name.endswith("__")):
        return getattr(value, name, None)

    found = _lookup_special(type(value), name)
    if found is None:
        return None
    getter = getattr(type(found), "__get__", None)
    if getter is None:
        return found
    return getter(found, value, type(value))


def type_name_of(cls: Any) -> str:
    if not isinstance(cls, type):
        return repr(cls)
    if cls.__module__ == "builtins":
        return cls.__qualname__
    return f"{cls.__module__}.{cls.__qualname__}"


def describe_receiver(receiver: Any) -> str:
    if isinstance(receiver, types.ModuleType):
        return receiver.__name__
    if isinstance(receiver, type):
        return f"singleton({type_name_of(receiver)})"
    return type_name_of(type(receiver))
