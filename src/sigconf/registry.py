import builtins
import collections.abc
import datetime
import decimal
import fractions
import importlib
import io
import logging
import numbers
import pathlib
import re
import threading
import types
from typing import Any, Dict, Iterable, Tuple, Union

from sigconf.diagnostics import UnknownTypeError
from sigconf.parser import parse_signature, parse_type
from sigconf.type_nodes import (
    ClassRef, Interface, InterfaceMethod, Intersection, OptionalType, Params, Proc, Shape, Signature,
    Singleton, TupleType, TypeExpr, Union as UnionType,
)

logger = logging.getLogger(__name__)

# Core class names as written in signatures. Python builtins and collections.abc
# names resolve without being listed here.
CORE_CLASSES: Dict[str, Any] = {
    "Object": object,
    "BasicObject": object,
    "Integer": int,
    "Float": float,
    "Complex": complex,
    "Rational": fractions.Fraction,
    "Numeric": numbers.Number,
    "BigDecimal": decimal.Decimal,
    "String": str,
    "Symbol": str,
    "Array": list,
    "Hash": dict,
    "Set": set,
    "Range": range,
    "NilClass": type(None),
    "NoneType": type(None),
    "Proc": collections.abc.Callable,
    "Method": types.MethodType,
    "Module": types.ModuleType,
    "Class": type,
    "IO": io.IOBase,
    "Exception": Exception,
    "StandardError": Exception,
    "Enumerator": collections.abc.Iterator,
    "Enumerable": collections.abc.Iterable,
    "Time": datetime.datetime,
    "Date": datetime.date,
    "Regexp": re.Pattern,
    "MatchData": re.Match,
    "Pathname": pathlib.PurePath,
    "Thread": threading.Thread,
}

# Interface name -> capabilities. A capability is a method name, optionally paired
# with the parameter list its method must accept, or an InterfaceMethod.
Capability = Union[str, Tuple[str, str], InterfaceMethod]

CORE_INTERFACES: Dict[str, Tuple[Capability, ...]] = {
    "_ToInt": ("__index__",),
    "_ToF": ("__float__",),
    "_ToS": ("__str__",),
    "_ToStr": (InterfaceMethod("__str__", explicit=True),),
    "_ToPath": ("__fspath__",),
    "_ToBytes": ("__bytes__",),
    "_Each": ("__iter__",),
    "_Iterable": ("__iter__",),
    "_Iterator": ("__iter__", "__next__"),
    "_Sized": ("__len__",),
    "_Container": (("__contains__", "(untyped)"),),
    "_Hashable": ("__hash__",),
    "_Callable": ("__call__",),
    "_Reader": ("read",),
    "_Writer": (("write", "(untyped)"),),
    "_ToHash": ("keys", ("__getitem__", "(untyped)")),
    "_Mapping": ("keys", ("__getitem__", "(untyped)")),
}

CORE_ALIASES: Dict[str, str] = {
    "string": "str | _ToStr",
    "real": "int | float",
    "index": "int | _ToInt",
    "path": "str | bytes | _ToPath",
    "buffer": "bytes | bytearray | memoryview",
}


class TypeRegistry:
    """Resolves the names used in signature text and caches parsed signatures."""

    def __init__(self):
        self._lock = threading.RLock()
        self._classes: Dict[str, Any] = dict(CORE_CLASSES)
        self._interfaces: Dict[str, Tuple[Capability, ...]] = dict(CORE_INTERFACES)
        self._aliases: Dict[str, str] = dict(CORE_ALIASES)
        self._resolved: Dict[str, Any] = {}
        self._interface_nodes: Dict[str, Interface] = {}
        self._expanded: Dict[str, TypeExpr] = {}
        self._signatures: Dict[str, Signature] = {}

    # --- Registration ---

    def register_class(self, name: str, cls: Any):
        with self._lock:
            self._classes[_normalize(name)] = cls
            self._resolved.pop(_normalize(name), None)

    def register_interface(self, name: str, methods: Iterable[Capability]):
        if not name.split("::")[-1].startswith("_"):
            raise ValueError(f"Interface names start with '_': {name}")
        with self._lock:
            self._interfaces[name] = tuple(methods)
            self._interface_nodes.pop(name, None)

    def register_alias(self, name: str, text: str):
        with self._lock:
            self._aliases[_normalize(name)] = text
            self._expanded.pop(_normalize(name), None)

    # --- Lookup ---

    def signature(self, text: str) -> Signature:
        with self._lock:
            cached = self._signatures.get(text)
        if cached is not None:
            return cached
        signature = parse_signature(text, self)
        # Unknown names are reported before any call is made
        self._check_params(signature.params)
        if signature.block is not None:
            self._check_names(signature.block.proc)
        self._check_names(signature.return_type)
        with self._lock:
            return self._signatures.setdefault(text, signature)

    def _check_params(self, params: Params):
        for param in params.required + params.optional + params.trailing:
            self._check_names(param.type)
        for _, param in params.required_keywords + params.optional_keywords:
            self._check_names(param.type)
        for param in (params.rest, params.rest_keywords):
            if param is not None:
                self._check_names(param.type)

    def _check_names(self, node: TypeExpr):
        """Resolve every class name in `node`. Raises UnknownTypeError."""
        if isinstance(node, ClassRef):
            if self.is_alias(node.name):
                return
            self.resolve_class(node.name)
            for arg in node.type_args:
                self._check_names(arg)
        elif isinstance(node, Singleton):
            self.resolve_class(node.name)
        elif isinstance(node, UnionType):
            for alternative in node.alternatives:
                self._check_names(alternative)
        elif isinstance(node, Intersection):
            for part in node.parts:
                self._check_names(part)
        elif isinstance(node, TupleType):
            for element in node.elements:
                self._check_names(element)
        elif isinstance(node, Shape):
            for field in node.fields:
                self._check_names(field.type)
            if node.extra is not None:
                self._check_names(node.extra)
        elif isinstance(node, OptionalType):
            self._check_names(node.inner)
        elif isinstance(node, Proc):
            self._check_params(node.params)
            self._check_names(node.return_type)
            if node.block is not None:
                self._check_names(node.block.proc)

    def parse_type(self, text: str) -> TypeExpr:
        return parse_type(text, self)

    def interface(self, name: str) -> Interface:
        with self._lock:
            node = self._interface_nodes.get(name)
            if node is not None:
                return node
            if name not in self._interfaces:
                raise UnknownTypeError(name, "interface")
            capabilities = self._interfaces[name]

        methods = []
        for capability in capabilities:
            if isinstance(capability, InterfaceMethod):
                methods.append(capability)
            elif isinstance(capability, tuple):
                method_name, params_text = capability
                params = parse_signature(f"{params_text} -> untyped", self).params
                methods.append(InterfaceMethod(method_name, params))
            else:
                methods.append(InterfaceMethod(capability))
        node = Interface(name, tuple(methods))
        with self._lock:
            return self._interface_nodes.setdefault(name, node)

    def is_alias(self, name: str) -> bool:
        return _normalize(name) in self._aliases

    def expand_alias(self, name: str) -> TypeExpr:
        key = _normalize(name)
        with self._lock:
            expanded = self._expanded.get(key)
            if expanded is not None:
                return expanded
            text = self._aliases[key]
        expanded = parse_type(text, self)
        with self._lock:
            return self._expanded.setdefault(key, expanded)

    def resolve_class(self, name: str) -> Any:
        """Resolve a class (or module) name. Raises UnknownTypeError."""
        key = _normalize(name)
        with self._lock:
            if key in self._resolved:
                return self._resolved[key]
            cls = self._classes.get(key)

        if cls is None:
            builtin = getattr(builtins, key, None)
            if isinstance(builtin, type):
                cls = builtin
            elif isinstance(getattr(collections.abc, key, None), type):
                cls = getattr(collections.abc, key)
            else:
                found = _import_path(key)
                cls = None if found is _MISSING else found

        if cls is None:
            raise UnknownTypeError(name)
        if not isinstance(cls, (type, types.ModuleType)):
            raise UnknownTypeError(name)

        logger.debug("Resolved `%s` to %r", name, cls)
        with self._lock:
            self._resolved[key] = cls
        return cls

    def resolve_object(self, path: str) -> Any:
        """Resolve a dotted constant path such as `math.pi` or `os::sep`."""
        key = _normalize(path)
        if "." not in key:
            if hasattr(builtins, key):
                return getattr(builtins, key)
            raise UnknownTypeError(path, "constant")
        value = _import_path(key)
        if value is _MISSING:
            raise UnknownTypeError(path, "constant")
        return value


def _normalize(name: str) -> str:
    if name.startswith("::"):
        name = name[2:]
    return name.replace("::", ".")


_MISSING = object()


def _import_path(path: str) -> Any:
    parts = path.split(".")
    for index in range(len(parts), 0, -1):
        module_name = ".".join(parts[:index])
        try:
            target = importlib.import_module(module_name)
        except ImportError:
            continue
        for attribute in parts[index:]:
            target = getattr(target, attribute, _MISSING)
            if target is _MISSING:
                return _MISSING
        return target
    return _MISSING
