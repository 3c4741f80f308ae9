from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

# --- Type expressions ---
# Every node is immutable and compared structurally; parsed signatures are shared
# read-only between concurrent checks.


@dataclass(frozen=True)
class TypeExpr:
    pass


@dataclass(frozen=True)
class Untyped(TypeExpr):
    def __str__(self) -> str:
        return "untyped"


BASE_NAMES = ("top", "bot", "void", "bool", "boolish", "nil", "self", "instance", "class")


@dataclass(frozen=True)
class Base(TypeExpr):
    """Built-in base type: top, bot, void, bool, boolish, nil, self, instance, class"""
    kind: str

    def __str__(self) -> str:
        return self.kind


@dataclass(frozen=True)
class ClassRef(TypeExpr):
    """Nominal type, optionally parameterized: Array[Integer], pathlib.Path"""
    name: str
    type_args: Tuple[TypeExpr, ...] = ()

    def __str__(self) -> str:
        if not self.type_args:
            return self.name
        args_str = ", ".join(str(arg) for arg in self.type_args)
        return f"{self.name}[{args_str}]"


@dataclass(frozen=True)
class Singleton(TypeExpr):
    """The class object itself: singleton(Integer)"""
    name: str

    def __str__(self) -> str:
        return f"singleton({self.name})"


@dataclass(frozen=True)
class InterfaceMethod:
    """One capability. `explicit` rejects the default every object inherits."""
    name: str
    params: Optional["Params"] = None
    explicit: bool = False


@dataclass(frozen=True)
class Interface(TypeExpr):
    """Structural requirement: the value must expose every listed capability."""
    name: str
    methods: Tuple[InterfaceMethod, ...] = ()

    @property
    def required_methods(self) -> Tuple[str, ...]:
        return tuple(method.name for method in self.methods)

    def __str__(self) -> str:
        return self.name


@dataclass(frozen=True)
class Union(TypeExpr):
    alternatives: Tuple[TypeExpr, ...]

    def __str__(self) -> str:
        return " | ".join(_wrap(alt) for alt in self.alternatives)


@dataclass(frozen=True)
class Intersection(TypeExpr):
    parts: Tuple[TypeExpr, ...]

    def __str__(self) -> str:
        return " & ".join(_wrap(part) for part in self.parts)


@dataclass(frozen=True)
class TupleType(TypeExpr):
    elements: Tuple[TypeExpr, ...]

    def __str__(self) -> str:
        return "[" + ", ".join(str(e) for e in self.elements) + "]"


@dataclass(frozen=True)
class Field:
    key: Any
    type: TypeExpr
    required: bool = True

    def __str__(self) -> str:
        prefix = "" if self.required else "?"
        if isinstance(self.key, str) and self.key.isidentifier():
            return f"{prefix}{self.key}: {self.type}"
        return f"{prefix}{self.key!r} => {self.type}"


@dataclass(frozen=True)
class Shape(TypeExpr):
    """Record type. Closed unless `extra` types the values of undeclared keys."""
    fields: Tuple[Field, ...]
    extra: Optional[TypeExpr] = None

    @property
    def closed(self) -> bool:
        return self.extra is None

    def field_map(self) -> Dict[Any, Field]:
        return {f.key: f for f in self.fields}

    def __str__(self) -> str:
        parts = [str(f) for f in self.fields]
        if self.extra is not None:
            parts.append(f"**{self.extra}")
        return "{ " + ", ".join(parts) + " }" if parts else "{}"


@dataclass(frozen=True)
class Literal(TypeExpr):
    value: Any
    symbol: bool = False

    def __str__(self) -> str:
        if self.symbol:
            return f":{self.value}"
        if isinstance(self.value, bool):
            return "true" if self.value else "false"
        return repr(self.value)


@dataclass(frozen=True)
class TypeVar(TypeExpr):
    name: str

    def __str__(self) -> str:
        return self.name


@dataclass(frozen=True)
class OptionalType(TypeExpr):
    inner: TypeExpr

    def __str__(self) -> str:
        return f"{_wrap(self.inner)}?"


@dataclass(frozen=True)
class Proc(TypeExpr):
    """Callable contract: ^(Integer) -> String"""
    params: "Params"
    return_type: TypeExpr
    block: Optional["Block"] = None

    def __str__(self) -> str:
        block = f" {self.block}" if self.block else ""
        return f"^{self.params}{block} -> {_wrap(self.return_type)}"


def _wrap(node: TypeExpr) -> str:
    if isinstance(node, (Union, Intersection, Proc)):
        return f"({node})"
    return str(node)


# --- Call shapes ---


@dataclass(frozen=True)
class Param:
    type: TypeExpr
    name: Optional[str] = None

    def __str__(self) -> str:
        return f"{self.type} {self.name}" if self.name else str(self.type)


@dataclass(frozen=True)
class Params:
    required: Tuple[Param, ...] = ()
    optional: Tuple[Param, ...] = ()
    rest: Optional[Param] = None
    trailing: Tuple[Param, ...] = ()
    required_keywords: Tuple[Tuple[str, Param], ...] = ()
    optional_keywords: Tuple[Tuple[str, Param], ...] = ()
    rest_keywords: Optional[Param] = None

    @property
    def min_positionals(self) -> int:
        return len(self.required) + len(self.trailing)

    @property
    def max_positionals(self) -> Optional[int]:
        if self.rest is not None:
            return None
        return self.min_positionals + len(self.optional)

    def keyword(self, name: str) -> Optional[Param]:
        for key, param in self.required_keywords + self.optional_keywords:
            if key == name:
                return param
        return None

    def __str__(self) -> str:
        parts = [str(p) for p in self.required]
        parts += [f"?{p}" for p in self.optional]
        if self.rest:
            parts.append(f"*{self.rest}")
        parts += [str(p) for p in self.trailing]
        parts += [f"{k}: {p}" for k, p in self.required_keywords]
        parts += [f"?{k}: {p}" for k, p in self.optional_keywords]
        if self.rest_keywords:
            parts.append(f"**{self.rest_keywords}")
        return "(" + ", ".join(parts) + ")"


@dataclass(frozen=True)
class Block:
    proc: Proc
    required: bool = True

    def __str__(self) -> str:
        prefix = "" if self.required else "?"
        return f"{prefix}{{ {self.proc.params} -> {self.proc.return_type} }}"


@dataclass(frozen=True)
class Signature:
    """One overload: type parameters, call shape, optional block and return type."""
    params: Params
    return_type: TypeExpr
    block: Optional[Block] = None
    type_params: Tuple[str, ...] = ()
    text: str = ""

    @property
    def declares_error(self) -> bool:
        return self.return_type == Base("bot")

    def __str__(self) -> str:
        prefix = f"[{', '.join(self.type_params)}] " if self.type_params else ""
        block = f" {self.block}" if self.block else ""
        return f"{prefix}{self.params}{block} -> {self.return_type}"
