import collections
import collections.abc
import math
import os
import pathlib

import pytest

from sigconf.diagnostics import UnknownTypeError
from sigconf.registry import TypeRegistry
from sigconf.type_nodes import Union

def test_registry_core_names():
    registry = TypeRegistry()

    assert registry.resolve_class("Integer") is int
    assert registry.resolve_class("String") is str
    assert registry.resolve_class("Array") is list
    assert registry.resolve_class("Hash") is dict
    assert registry.resolve_class("::Integer") is int

def test_registry_python_names():
    registry = TypeRegistry()

    assert registry.resolve_class("int") is int
    assert registry.resolve_class("Iterable") is collections.abc.Iterable
    assert registry.resolve_class("pathlib.Path") is pathlib.Path
    assert registry.resolve_class("collections::OrderedDict") is collections.OrderedDict
    assert registry.resolve_class("math") is math

def test_registry_unknown_class():
    registry = TypeRegistry()

    with pytest.raises(UnknownTypeError) as excinfo:
        registry.resolve_class("Klass")
    assert excinfo.value.name == "Klass"

    with pytest.raises(UnknownTypeError):
        registry.resolve_class("math.pi")

def test_registry_register_class():
    class Widget:
        pass

    registry = TypeRegistry()
    registry.register_class("app::Widget", Widget)

    assert registry.resolve_class("app.Widget") is Widget

def test_registry_aliases():
    registry = TypeRegistry()

    assert registry.is_alias("string")
    assert registry.is_alias("::real")
    assert isinstance(registry.expand_alias("real"), Union)
    assert registry.expand_alias("index") is registry.expand_alias("index")

def test_registry_register_alias():
    registry = TypeRegistry()
    registry.register_alias("number", "int | float | complex")

    assert len(registry.expand_alias("number").alternatives) == 3

def test_registry_register_interface():
    registry = TypeRegistry()
    registry.register_interface("_Quack", ["quack", ("swim", "(untyped)")])
    node = registry.interface("_Quack")

    assert node.required_methods == ("quack", "swim")
    assert node.methods[0].params is None
    assert node.methods[1].params.min_positionals == 1

def test_registry_interface_names_start_with_underscore():
    with pytest.raises(ValueError):
        TypeRegistry().register_interface("Quack", ["quack"])

def test_registry_signature_cache():
    registry = TypeRegistry()

    assert registry.signature("(Integer) -> String") is registry.signature("(Integer) -> String")

def test_registry_signature_resolves_names():
    registry = TypeRegistry()

    for text in ["(Klass) -> void", "() -> Array[Klass]", "() { (Klass) -> void } -> void",
                 "(^(Integer) -> Klass) -> void", "(key: singleton(Klass)) -> void", "() -> { a: Klass? }"]:
        with pytest.raises(UnknownTypeError):
            registry.signature(text)
    assert registry.signature("(string, real) -> pathlib.Path").return_type.name == "pathlib.Path"

def test_registry_resolve_object():
    registry = TypeRegistry()

    assert registry.resolve_object("math.pi") == math.pi
    assert registry.resolve_object("os::sep") == os.sep
    assert registry.resolve_object("len") is len

    with pytest.raises(UnknownTypeError):
        registry.resolve_object("math.tau_squared")
    with pytest.raises(UnknownTypeError):
        registry.resolve_object("no_such_builtin")
