import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

from sigconf.classifier import Bindings, ValueClassifier, type_name_of
from sigconf.diagnostics import Diagnostic, DiagnosticKind
from sigconf.invocation import BlockCall, Invocation
from sigconf.type_nodes import Param, Params, Signature

logger = logging.getLogger(__name__)


@dataclass
class Attempt:
    index: int
    signature: Signature
    failure: Optional[Diagnostic] = None

    @property
    def ok(self) -> bool:
        return self.failure is None


@dataclass
class MatchResult:
    matched_index: Optional[int]
    attempts: List[Attempt] = field(default_factory=list)
    bindings: Optional[Bindings] = None

    @property
    def ok(self) -> bool:
        return self.matched_index is not None

    @property
    def signature(self) -> Optional[Signature]:
        if self.matched_index is None:
            return None
        return self.attempts[self.matched_index].signature

    @property
    def diagnostics(self) -> List[Diagnostic]:
        return [a.failure for a in self.attempts if a.failure is not None]


class ShapeMismatch(Exception):
    pass


class OverloadResolver:
    """Tries overloads in declaration order; the first satisfied one wins."""

    def __init__(self, classifier: ValueClassifier):
        self.classifier = classifier

    def resolve(self, invocation: Invocation, signatures: Sequence[Signature]) -> MatchResult:
        attempts = []
        for index, signature in enumerate(signatures):
            bindings = Bindings()
            failure = self.check_signature(invocation, signature, bindings)
            attempts.append(Attempt(index, signature, failure))
            if failure is None:
                logger.debug("`%s` matches overload %d: %s", invocation.label, index, signature)
                return MatchResult(index, attempts, bindings)
            logger.debug("`%s` does not match overload %d: %s", invocation.label, index, failure.message)
        return MatchResult(None, attempts, None)

    def check_signature(self, invocation: Invocation, signature: Signature,
                        bindings: Bindings) -> Optional[Diagnostic]:
        """Return the first failing slot of `signature`, or None if it is satisfied."""
        text = signature.text or str(signature)

        # (a) arity and keyword shape
        try:
            slots = zip_arguments(signature.params, invocation.args, invocation.kwargs)
        except ShapeMismatch as mismatch:
            return Diagnostic(DiagnosticKind.SHAPE_MISMATCH, str(mismatch), signature=text,
                              expected=str(signature.params))

        # (b) argument values, sharing one set of bindings
        for label, value, param in slots:
            failure = self._classify(value, param, bindings, label, text)
            if failure is not None:
                return failure

        # (c) block presence, then every recorded block call
        failure = self._check_block(invocation, signature, bindings, text)
        if failure is not None:
            return failure

        # (d) return value with the bindings gathered so far
        if invocation.raised:
            if signature.declares_error:
                return None
            error = invocation.error
            return Diagnostic(DiagnosticKind.UNEXPECTED_ERROR,
                              f"raised {type(error).__name__}: {error}",
                              signature=text, slot="return value", expected=str(signature.return_type),
                              actual=type_name_of(type(error)), cause=error)

        result = self.classifier.satisfies(invocation.result, signature.return_type, bindings, "return value")
        if not result.ok:
            return _classify_failure(result, text)
        return None

    def _check_block(self, invocation: Invocation, signature: Signature, bindings: Bindings,
                     text: str) -> Optional[Diagnostic]:
        declared = signature.block
        if declared is None:
            if invocation.block_given:
                return Diagnostic(DiagnosticKind.UNEXPECTED_BLOCK, "block given but none is declared",
                                  signature=text, slot="block")
            return None

        if not invocation.block_given:
            if declared.required:
                return Diagnostic(DiagnosticKind.MISSING_BLOCK, "required block is not given",
                                  signature=text, slot="block", expected=str(declared))
            return None

        calls = invocation.block_calls
        if declared.required and not calls:
            return Diagnostic(DiagnosticKind.BLOCK_NOT_CALLED, "required block was never called",
                              signature=text, slot="block", expected=str(declared),
                              hint="a required block must be invoked at least once")

        for number, call in enumerate(calls):
            failure = self._check_block_call(call, number, declared.proc, bindings, text)
            if failure is not None:
                return failure
        return None

    def _check_block_call(self, call: BlockCall, number: int, proc, bindings: Bindings,
                          text: str) -> Optional[Diagnostic]:
        suffix = f"of block call {number}"
        try:
            slots = zip_arguments(proc.params, call.args, call.kwargs, prefix="block argument")
        except ShapeMismatch as mismatch:
            return Diagnostic(DiagnosticKind.SHAPE_MISMATCH, f"{mismatch} ({suffix})", signature=text,
                              slot=f"block call {number}", expected=str(proc.params))

        for label, value, param in slots:
            failure = self._classify(value, param, bindings, f"{label} {suffix}", text)
            if failure is not None:
                return failure

        if call.returned:
            result = self.classifier.satisfies(call.result, proc.return_type, bindings,
                                               f"block return value {suffix}")
            if not result.ok:
                return _classify_failure(result, text)
        return None

    def _classify(self, value: Any, param: Param, bindings: Bindings, label: str,
                  text: str) -> Optional[Diagnostic]:
        result = self.classifier.satisfies(value, param.type, bindings, label)
        if result.ok:
            return None
        return _classify_failure(result, text)


def _classify_failure(result, text: str) -> Diagnostic:
    kind = DiagnosticKind.BINDING_CONFLICT if result.conflict else DiagnosticKind.CLASSIFY_FAILURE
    return Diagnostic(kind, f"{result.path}: {result.reason}", signature=text, slot=result.path,
                      expected=result.expected, actual=result.actual)


def zip_arguments(params: Params, args: Sequence[Any], kwargs: Dict[str, Any],
                  prefix: str = "argument") -> List[Tuple[str, Any, Param]]:
    """Pair each supplied argument with its parameter. Raises ShapeMismatch."""
    count = len(args)
    if count < params.min_positionals:
        raise ShapeMismatch(f"expected at least {params.min_positionals} positional arguments, got {count}")
    if params.max_positionals is not None and count > params.max_positionals:
        raise ShapeMismatch(f"expected at most {params.max_positionals} positional arguments, got {count}")

    slots = []
    required = len(params.required)
    middle_end = count - len(params.trailing)
    optional = min(len(params.optional), middle_end - required)

    for index in range(count):
        if index < required:
            param = params.required[index]
        elif index < required + optional:
            param = params.optional[index - required]
        elif index < middle_end:
            param = params.rest
        else:
            param = params.trailing[index - middle_end]
        slots.append((f"{prefix} {index}", args[index], param))

    for name, _ in params.required_keywords:
        if name not in kwargs:
            raise ShapeMismatch(f"missing required keyword `{name}`")

    for name, value in kwargs.items():
        param = params.keyword(name) or params.rest_keywords
        if param is None:
            raise ShapeMismatch(f"unknown keyword `{name}`")
        slots.append((f"keyword `{name}`", value, param))

    return slots
