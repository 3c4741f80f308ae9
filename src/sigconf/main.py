from pathlib import Path

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table
from rich.text import Text

from sigconf.config import CheckerConfig, configure_logging
from sigconf.coverage import CoverageLedger
from sigconf.diagnostics import DiagnosticEngine, SignatureError, SignatureSyntaxError, TypeConformanceError
from sigconf.harness import InvocationHarness
from sigconf.registry import TypeRegistry

app = typer.Typer(
    name="sigconf",
    help="Runtime signature-conformance checker",
    add_completion=False,
)
console = Console()


@app.callback()
def main(
    log_level: str = typer.Option("WARNING", "--log-level", "-l", help="Logging level for sigconf"),
):
    configure_logging(log_level)


def _report_signature_error(error: SignatureError):
    if isinstance(error, SignatureSyntaxError):
        DiagnosticEngine(console).extend(error.diagnostics)
    else:
        console.print(f"[bold red]Error:[/bold red] {escape(str(error))}")


def _add_param_row(table: Table, slot: str, name, type_expr):
    table.add_row(slot, name or "", Text(str(type_expr)))


@app.command()
def parse(
    signature: str = typer.Argument(..., help="Method type, e.g. '[T] (T, ?int) -> list[T]'"),
):
    """
    Parse a signature and show its normalized form.
    """
    try:
        parsed = TypeRegistry().signature(signature)
    except SignatureError as e:
        _report_signature_error(e)
        raise typer.Exit(code=2)

    console.print(str(parsed), markup=False, highlight=False)

    table = Table(title="Parameters")
    table.add_column("Slot")
    table.add_column("Name")
    table.add_column("Type")
    params = parsed.params
    for param in params.required:
        _add_param_row(table, "required", param.name, param.type)
    for param in params.optional:
        _add_param_row(table, "optional", param.name, param.type)
    if params.rest is not None:
        _add_param_row(table, "rest", params.rest.name, params.rest.type)
    for param in params.trailing:
        _add_param_row(table, "trailing", param.name, param.type)
    for name, param in params.required_keywords:
        _add_param_row(table, "keyword", name, param.type)
    for name, param in params.optional_keywords:
        _add_param_row(table, "optional keyword", name, param.type)
    if params.rest_keywords is not None:
        _add_param_row(table, "keyword rest", params.rest_keywords.name, params.rest_keywords.type)
    if parsed.block is not None:
        _add_param_row(table, "block" if parsed.block.required else "optional block", None, parsed.block.proc)
    _add_param_row(table, "return", None, parsed.return_type)
    console.print(table)


@app.command()
def const(
    type_text: str = typer.Argument(..., metavar="TYPE", help="Type the constant must satisfy"),
    path: str = typer.Argument(..., help="Dotted path of the constant, e.g. math.pi"),
):
    """
    Check the value of an importable constant against a type.
    """
    harness = InvocationHarness(config=CheckerConfig.from_env())
    try:
        value = harness.assert_const_type(type_text, path)
    except SignatureError as e:
        _report_signature_error(e)
        raise typer.Exit(code=2)
    except TypeConformanceError as e:
        console.print(f"[bold red]Failed:[/bold red] {path}")
        console.print(str(e), markup=False, highlight=False)
        raise typer.Exit(code=1)
    console.print(f"[green]{path}[/green] = {escape(repr(value))} conforms to {escape(type_text)}", highlight=False)


@app.command()
def coverage(
    report: Path = typer.Argument(..., exists=True, dir_okay=False, help="JSON report written by the pytest plugin"),
    missing: bool = typer.Option(False, "--missing", "-m", help="Only show overloads never satisfied"),
):
    """
    Show which overloads a test run exercised.
    """
    try:
        ledger = CoverageLedger.load(report)
    except (ValueError, KeyError) as e:
        console.print(f"[bold red]Error:[/bold red] Cannot read {report}: {e}")
        raise typer.Exit(code=1)

    table = Table(title=f"Signature coverage: {report.name}")
    table.add_column("Receiver")
    table.add_column("Method")
    table.add_column("#", justify="right")
    table.add_column("Signature")
    table.add_column("Attempted", justify="right")
    table.add_column("Satisfied", justify="right")
    for key, entry in sorted(ledger.snapshot().items()):
        if missing and entry.satisfied:
            continue
        style = "red" if entry.satisfied == 0 else None
        table.add_row(key.receiver_type, key.method, str(key.signature_index), Text(entry.signature),
                      str(entry.attempted), str(entry.satisfied), style=style)
    console.print(table)

    totals = ledger.totals()
    console.print(f"{totals['overloads']} overloads, {totals['satisfied']} satisfied checks, "
                  f"{totals['unexercised']} never satisfied", highlight=False)


if __name__ == "__main__":
    app()
