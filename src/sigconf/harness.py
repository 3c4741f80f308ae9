import logging
from dataclasses import dataclass, field
from typing import Any, List, Optional, Sequence, Tuple, Union

from sigconf.classifier import ValueClassifier
from sigconf.config import CheckerConfig
from sigconf.coverage import CoverageLedger
from sigconf.diagnostics import (
    Diagnostic, DiagnosticEngine, DiagnosticKind, TypeConformanceError,
)
from sigconf.invocation import Invocation
from sigconf.registry import TypeRegistry
from sigconf.resolver import MatchResult, OverloadResolver
from sigconf.type_nodes import Signature

logger = logging.getLogger(__name__)

SignatureText = Union[str, Sequence[str]]


@dataclass
class Outcome:
    passed: bool
    invocation: Optional[Invocation] = None
    match: Optional[MatchResult] = None
    diagnostics: List[Diagnostic] = field(default_factory=list)
    subject: str = ""

    @property
    def result(self) -> Any:
        return self.invocation.result if self.invocation is not None else None

    @property
    def error(self) -> Optional[BaseException]:
        return self.invocation.error if self.invocation is not None else None

    def render(self) -> str:
        if self.passed:
            return f"`{self.subject}` passed"
        engine = DiagnosticEngine()
        engine.extend(self.diagnostics)
        return f"`{self.subject}` failed:\n{engine.render()}"


class InvocationHarness:
    """Performs one call and checks it against its declared overloads.

    Every entry point takes its own leading parameters positionally, so the call under
    test may pass any keyword arguments, including `signature` or `method`.
    """

    def __init__(self, registry: Optional[TypeRegistry] = None, ledger: Optional[CoverageLedger] = None,
                 config: Optional[CheckerConfig] = None):
        self.registry = registry or TypeRegistry()
        self.ledger = ledger if ledger is not None else CoverageLedger()
        self.config = config or CheckerConfig()
        doubles = tuple(self.registry.resolve_class(name) for name in self.config.unchecked_classes)
        self.classifier = ValueClassifier(self.registry, self.config.sample_size, doubles)

    def signatures(self, signature: SignatureText) -> List[Signature]:
        texts = [signature] if isinstance(signature, str) else list(signature)
        if not texts:
            raise ValueError("At least one signature is required")
        return [self.registry.signature(text) for text in texts]

    # --- Outcome-returning checks ---

    def check(self, signature: SignatureText, receiver: Any, method: str, /, *args, **kwargs) -> Outcome:
        invocation, match = self._run(signature, receiver, method, args, kwargs)
        if match.ok:
            return Outcome(True, invocation, match, [], invocation.label)
        logger.debug("`%s` failed with %d diagnostics", invocation.label, len(match.diagnostics))
        return Outcome(False, invocation, match, match.diagnostics, invocation.label)

    def refute(self, signature: SignatureText, receiver: Any, method: str, /, *args, **kwargs) -> Outcome:
        invocation, match = self._run(signature, receiver, method, args, kwargs)
        if not match.ok:
            return Outcome(True, invocation, match, [], invocation.label)

        matched = match.signature
        diagnostic = Diagnostic(
            DiagnosticKind.MISSING_EXPECTED_ERROR,
            f"`{invocation.label}` unexpectedly satisfies overload {match.matched_index}",
            signature=matched.text or str(matched),
            hint="the signature accepts a call it was expected to reject",
        )
        logger.debug("`%s` unexpectedly conforms", invocation.label)
        return Outcome(False, invocation, match, [diagnostic], invocation.label)

    # --- Asserting entry points ---

    def assert_send_type(self, signature: SignatureText, receiver: Any, method: str, /, *args, **kwargs) -> Any:
        """Call `receiver.method(*args, **kwargs)` and return its result if it conforms."""
        outcome = self.check(signature, receiver, method, *args, **kwargs)
        if not outcome.passed:
            raise TypeConformanceError(outcome.render(), outcome, outcome.diagnostics) from outcome.error
        return outcome.result

    def refute_send_type(self, signature: SignatureText, receiver: Any, method: str, /, *args, **kwargs) -> Outcome:
        outcome = self.refute(signature, receiver, method, *args, **kwargs)
        if not outcome.passed:
            raise TypeConformanceError(outcome.render(), outcome, outcome.diagnostics)
        return outcome

    def assert_const_type(self, type_text: str, constant_path: str) -> Any:
        """Check the value of an importable constant such as `math.pi`."""
        value = self.registry.resolve_object(constant_path)
        self._assert_value(type_text, value, constant_path)
        return value

    def assert_type(self, type_text: str, value: Any) -> Any:
        self._assert_value(type_text, value, "value")
        return value

    # --- Internals ---

    def _run(self, signature: SignatureText, receiver: Any, method: str,
             args: Tuple[Any, ...], kwargs: dict) -> Tuple[Invocation, MatchResult]:
        # Malformed signatures fail before the call is made
        signatures = self.signatures(signature)
        invocation = Invocation.prepare(receiver, method, args, kwargs)
        logger.debug("Type checking `%s`...", invocation.label)

        invocation.perform()
        resolver = OverloadResolver(self.classifier.for_receiver(receiver))
        match = resolver.resolve(invocation, signatures)
        self._record(invocation, signatures, match)
        return invocation, match

    def _record(self, invocation: Invocation, signatures: List[Signature], match: MatchResult):
        receiver_type = invocation.receiver_type
        texts = [s.text or str(s) for s in signatures]
        self.ledger.declare(receiver_type, invocation.method, texts)
        for attempt in match.attempts:
            self.ledger.record(receiver_type, invocation.method, texts[attempt.index], attempt.ok)

    def _assert_value(self, type_text: str, value: Any, subject: str):
        type_expr = self.registry.parse_type(type_text)
        result = self.classifier.satisfies(value, type_expr, None, subject)
        if result.ok:
            return

        diagnostic = Diagnostic(DiagnosticKind.CLASSIFY_FAILURE, f"{result.path}: {result.reason}",
                                signature=type_text, slot=result.path,
                                expected=result.expected, actual=result.actual)
        outcome = Outcome(False, diagnostics=[diagnostic], subject=subject)
        raise TypeConformanceError(outcome.render(), outcome, outcome.diagnostics)
