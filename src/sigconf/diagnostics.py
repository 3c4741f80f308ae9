from dataclasses import dataclass
from enum import Enum
from io import StringIO
from typing import List, Optional

from rich.console import Console
from rich.markup import escape


@dataclass(frozen=True)
class Span:
    start: int
    end: int
    line: int
    column: int

    def __repr__(self):
        return f"{self.line}:{self.column}"


class DiagnosticKind(Enum):
    SHAPE_MISMATCH = "ShapeMismatch"
    CLASSIFY_FAILURE = "ClassifyFailure"
    BINDING_CONFLICT = "BindingConflict"
    UNEXPECTED_ERROR = "UnexpectedError"
    MISSING_EXPECTED_ERROR = "MissingExpectedError"
    MISSING_BLOCK = "MissingBlock"
    UNEXPECTED_BLOCK = "UnexpectedBlock"
    BLOCK_NOT_CALLED = "BlockNotCalled"
    SYNTAX = "SyntaxError"


@dataclass
class Diagnostic:
    kind: DiagnosticKind
    message: str
    signature: Optional[str] = None
    slot: Optional[str] = None          # e.g. "argument 0", "element 2 of return value"
    expected: Optional[str] = None
    actual: Optional[str] = None
    hint: Optional[str] = None
    cause: Optional[BaseException] = None
    span: Optional[Span] = None

    def __str__(self):
        text = f"[{self.kind.value}] {self.message}"
        if self.signature:
            text += f" in `{self.signature}`"
        if self.span:
            text += f" at {self.span}"
        return text


class DiagnosticEngine:
    def __init__(self, console: Optional[Console] = None):
        self.diagnostics: List[Diagnostic] = []
        self.has_errors = False
        self.console = console

    def report(self, diagnostic: Diagnostic) -> Diagnostic:
        self.diagnostics.append(diagnostic)
        self.has_errors = True

        if self.console is not None:
            self.console.print(f"[red bold]{diagnostic.kind.value}:[/] {escape(diagnostic.message)}")
            if diagnostic.signature:
                self.console.print(f"  [dim]signature:[/dim] {escape(diagnostic.signature)}")
            if diagnostic.hint:
                self.console.print(f"  [blue]Hint:[/blue] {escape(diagnostic.hint)}")
        return diagnostic

    def error(self, kind: DiagnosticKind, message: str, **details) -> Diagnostic:
        return self.report(Diagnostic(kind, message, **details))

    def extend(self, diagnostics: List[Diagnostic]):
        for diagnostic in diagnostics:
            self.report(diagnostic)

    def render(self) -> str:
        """Render collected diagnostics as plain text, one block per diagnostic."""
        buffer = StringIO()
        console = Console(file=buffer, no_color=True, width=120, highlight=False)
        for diagnostic in self.diagnostics:
            console.print(str(diagnostic), markup=False)
            if diagnostic.slot:
                console.print(f"  slot: {diagnostic.slot}", markup=False)
            if diagnostic.expected or diagnostic.actual:
                console.print(f"  expected: {diagnostic.expected}, actual: {diagnostic.actual}", markup=False)
            if diagnostic.hint:
                console.print(f"  hint: {diagnostic.hint}", markup=False)
            if diagnostic.cause is not None:
                console.print(f"  cause: {type(diagnostic.cause).__name__}: {diagnostic.cause}", markup=False)
        return buffer.getvalue().rstrip()


class SignatureError(Exception):
    """Signature text or name that cannot be turned into a type: a bug in the test."""


class SignatureSyntaxError(SignatureError):
    def __init__(self, text: str, diagnostics: List[Diagnostic]):
        self.text = text
        self.diagnostics = diagnostics
        details = "; ".join(str(d) for d in diagnostics)
        super().__init__(f"Malformed signature `{text}`: {details}")


class UnknownTypeError(SignatureError):
    def __init__(self, name: str, kind: str = "class"):
        self.name = name
        self.kind = kind
        super().__init__(f"Unknown {kind} `{name}`")


class TypeConformanceError(AssertionError):
    def __init__(self, message: str, outcome=None, diagnostics: List[Diagnostic] = None):
        super().__init__(message)
        self.outcome = outcome
        self.diagnostics = list(diagnostics or [])
