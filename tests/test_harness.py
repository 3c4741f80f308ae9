import math
import sys
import operator
import threading
from types import SimpleNamespace
from unittest import mock

import pytest

from sigconf.config import CheckerConfig
from sigconf.coverage import CoverageKey, CoverageLedger
from sigconf.diagnostics import DiagnosticKind, SignatureSyntaxError, TypeConformanceError, UnknownTypeError
from sigconf.generators import with_int, with_string
from sigconf.harness import InvocationHarness
from sigconf.invocation import Block

class Counter:
    def __init__(self):
        self.calls = 0

    def bump(self, by=1):
        self.calls += 1
        return self.calls * by

def test_harness_add_passes():
    harness = InvocationHarness()
    outcome = harness.check("(Integer, Integer) -> Integer", operator, "add", 1, 2)

    assert outcome.passed
    assert outcome.result == 3
    assert outcome.diagnostics == []

def test_harness_add_argument_failure():
    harness = InvocationHarness()
    outcome = harness.check("(Integer, Integer) -> Integer", operator, "add", "2", "1")

    assert not outcome.passed
    diagnostic = outcome.diagnostics[0]
    assert diagnostic.kind == DiagnosticKind.CLASSIFY_FAILURE
    assert diagnostic.slot == "argument 0"
    assert diagnostic.expected == "Integer"
    assert diagnostic.actual == "str"
    assert diagnostic.signature == "(Integer, Integer) -> Integer"

def test_harness_identity_type_variable():
    harness = InvocationHarness()
    receiver = SimpleNamespace(identity=lambda x: x, stringify=lambda x: str(x))

    assert harness.check("[T] (T) -> T", receiver, "identity", 42).passed

    outcome = harness.check("[T] (T) -> T", receiver, "stringify", 42)
    assert not outcome.passed
    assert outcome.diagnostics[0].kind == DiagnosticKind.BINDING_CONFLICT

def test_harness_required_block_never_invoked():
    harness = InvocationHarness()
    receiver = SimpleNamespace(run=lambda callback: 0)
    outcome = harness.check("() { (Integer) -> void } -> Integer", receiver, "run", Block(lambda x: None))

    assert not outcome.passed
    assert outcome.diagnostics[0].kind == DiagnosticKind.BLOCK_NOT_CALLED

def test_harness_calls_exactly_once():
    harness = InvocationHarness()
    counter = Counter()

    harness.check(["(String) -> String", "(?Integer) -> Integer"], counter, "bump", 2)
    assert counter.calls == 1

def test_harness_receiver_self_types():
    harness = InvocationHarness()

    assert harness.check("() -> self", "abc", "upper").passed
    assert not harness.check("(Integer) -> instance", int, "from_bytes", b"\x01", "big").passed
    assert harness.check("(bytes, String) -> instance", int, "from_bytes", b"\x01", "big").passed

def test_harness_keyword_named_like_parameters():
    harness = InvocationHarness()
    receiver = SimpleNamespace(configure=lambda signature, method: (signature, method))

    outcome = harness.check("(signature: String, method: String) -> [String, String]",
                            receiver, "configure", signature="s", method="m")
    assert outcome.passed

def test_assert_send_type_returns_result():
    harness = InvocationHarness()

    assert harness.assert_send_type("(String) -> Array[String]", "a,b", "split", ",") == ["a", "b"]

def test_assert_send_type_raises_conformance_error():
    harness = InvocationHarness()

    with pytest.raises(TypeConformanceError) as excinfo:
        harness.assert_send_type("(Integer, Integer) -> Integer", operator, "add", "2", "1")

    error = excinfo.value
    assert isinstance(error, AssertionError)
    assert not error.outcome.passed
    assert "ClassifyFailure" in str(error)
    assert "operator.add" in str(error)

def test_assert_send_type_keeps_cause():
    harness = InvocationHarness()

    with pytest.raises(TypeConformanceError) as excinfo:
        harness.assert_send_type("(Integer, Integer) -> Integer", operator, "truediv", 1, 0)

    assert isinstance(excinfo.value.__cause__, ZeroDivisionError)
    assert excinfo.value.diagnostics[0].kind == DiagnosticKind.UNEXPECTED_ERROR

def test_assert_send_type_bot_accepts_error():
    harness = InvocationHarness()

    assert harness.assert_send_type("(Integer, Integer) -> bot", operator, "truediv", 1, 0) is None

def test_refute_send_type():
    harness = InvocationHarness()

    outcome = harness.refute_send_type("(Integer, Integer) -> String", operator, "add", 1, 2)
    assert outcome.passed

    with pytest.raises(TypeConformanceError) as excinfo:
        harness.refute_send_type("(Integer, Integer) -> Integer", operator, "add", 1, 2)
    assert excinfo.value.diagnostics[0].kind == DiagnosticKind.MISSING_EXPECTED_ERROR

def test_refute_is_dual_of_check():
    harness = InvocationHarness()
    cases = [
        ("(Integer, Integer) -> Integer", operator, "add", (1, 2)),
        ("(Integer, Integer) -> Integer", operator, "add", ("1", "2")),
        ("(String) -> Integer", operator, "neg", (1,)),
        ("(Integer) -> Integer", operator, "neg", (1,)),
        ("(Integer, Integer) -> bot", operator, "floordiv", (1, 0)),
        ("(Integer, Integer) -> Integer", operator, "floordiv", (1, 0)),
    ]
    for signature, receiver, method, args in cases:
        checked = harness.check(signature, receiver, method, *args).passed
        refuted = harness.refute(signature, receiver, method, *args).passed
        assert checked != refuted

def test_harness_with_generators():
    harness = InvocationHarness()

    for count in with_int(1):
        assert harness.assert_send_type("(String?, int | _ToInt) -> list[str]",
                                        "a b c", "split", None, count) == ["a", "b c"]
    for sep in with_string(",").but(str):
        with pytest.raises(TypeConformanceError):
            harness.assert_send_type("(String) -> Array[String]", "a,b", "split", sep)

def test_harness_malformed_signature_is_fatal():
    harness = InvocationHarness()
    counter = Counter()

    with pytest.raises(SignatureSyntaxError):
        harness.check("(Integer -> Integer", counter, "bump")
    assert counter.calls == 0

def test_harness_unknown_class_is_fatal():
    harness = InvocationHarness()
    counter = Counter()

    with pytest.raises(UnknownTypeError):
        harness.check("(Integer) -> Klass[Integer]", counter, "bump", 1)
    assert counter.calls == 0

def test_harness_unknown_class_in_later_overload_is_fatal():
    harness = InvocationHarness()
    counter = Counter()

    with pytest.raises(UnknownTypeError) as excinfo:
        harness.check(["(?Integer) -> Integer", "(String) -> Strng"], counter, "bump")
    assert excinfo.value.name == "Strng"
    assert counter.calls == 0

def test_harness_system_exit_satisfies_bot():
    harness = InvocationHarness()
    outcome = harness.check("(Integer) -> bot", sys, "exit", 3)

    assert outcome.passed
    assert isinstance(outcome.error, SystemExit)
    assert outcome.error.code == 3

def test_harness_system_exit_is_cause_of_failure():
    harness = InvocationHarness()

    with pytest.raises(TypeConformanceError) as excinfo:
        harness.assert_send_type("(Integer) -> Integer", sys, "exit", 3)
    assert isinstance(excinfo.value.__cause__, SystemExit)

def test_harness_records_coverage():
    ledger = CoverageLedger()
    harness = InvocationHarness(ledger=ledger)
    signatures = ["(String, String) -> String", "(Integer, Integer) -> Integer", "(Float, Float) -> Float"]

    harness.check(signatures, operator, "add", 1, 2)
    snapshot = ledger.snapshot()

    assert snapshot[CoverageKey("operator", "add", 0)].attempted == 1
    assert snapshot[CoverageKey("operator", "add", 0)].satisfied == 0
    assert snapshot[CoverageKey("operator", "add", 1)].satisfied == 1
    assert snapshot[CoverageKey("operator", "add", 2)].attempted == 0
    assert CoverageKey("operator", "add", 2) in ledger.unexercised()

def test_harness_coverage_across_threads():
    ledger = CoverageLedger()
    harness = InvocationHarness(ledger=ledger)

    def work():
        for i in range(50):
            harness.check("(Integer, Integer) -> Integer", operator, "add", i, 1)

    threads = [threading.Thread(target=work) for _ in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    entry = ledger.snapshot()[CoverageKey("operator", "add", 0)]
    assert entry.attempted == 400
    assert entry.satisfied == 400

def test_harness_block_called_from_other_thread():
    def run_in_thread(callback):
        worker = threading.Thread(target=callback, args=(7,))
        worker.start()
        worker.join()
        return 0

    harness = InvocationHarness()
    receiver = SimpleNamespace(run=run_in_thread)
    outcome = harness.check("() { (Integer) -> void } -> Integer", receiver, "run", Block(lambda x: None))

    assert outcome.passed
    assert outcome.invocation.block.call_count == 1
    assert outcome.invocation.block_calls[0].thread != threading.current_thread().name

def test_harness_unchecked_classes():
    harness = InvocationHarness(config=CheckerConfig(unchecked_classes=("unittest.mock.Mock",)))

    assert harness.check("(Integer, Integer) -> Integer", operator, "add", mock.MagicMock(), 1).passed

def test_assert_const_type():
    harness = InvocationHarness()

    assert harness.assert_const_type("Float", "math.pi") == math.pi
    with pytest.raises(TypeConformanceError) as excinfo:
        harness.assert_const_type("Integer", "math.pi")
    assert "math.pi" in str(excinfo.value)

def test_assert_type():
    harness = InvocationHarness()

    assert harness.assert_type("Array[Integer]", [1, 2]) == [1, 2]
    with pytest.raises(TypeConformanceError):
        harness.assert_type("Array[Integer]", [1, "2"])

def test_outcome_render():
    harness = InvocationHarness()
    outcome = harness.check(["(String) -> String", "(Integer, Integer) -> String"], operator, "add", 1, 2)
    text = outcome.render()

    assert text.startswith("`operator.add` failed:")
    assert "[ShapeMismatch]" in text
    assert "slot: return value" in text
    assert harness.check("(Integer, Integer) -> Integer", operator, "add", 1, 2).render() == "`operator.add` passed"
