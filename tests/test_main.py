import logging

from typer.testing import CliRunner

from sigconf.config import configure_logging
from sigconf.coverage import CoverageLedger
from sigconf.main import app

runner = CliRunner()

def test_cli_parse():
    result = runner.invoke(app, ["parse", "(Integer, ?String name, key: bool) -> Array[String]"])

    assert result.exit_code == 0
    assert "(Integer, ?String name, key: bool) -> Array[String]" in result.output
    assert "optional" in result.output
    assert "keyword" in result.output

def test_cli_parse_error():
    result = runner.invoke(app, ["parse", "(Integer -> Integer"])

    assert result.exit_code == 2
    assert "SyntaxError" in result.output

def test_cli_const():
    result = runner.invoke(app, ["const", "Float", "math.pi"])

    assert result.exit_code == 0
    assert "conforms" in result.output

def test_cli_const_failure():
    result = runner.invoke(app, ["const", "String", "math.pi"])

    assert result.exit_code == 1
    assert "ClassifyFailure" in result.output

def test_cli_const_unknown_constant():
    result = runner.invoke(app, ["const", "Float", "math.not_here"])

    assert result.exit_code == 2
    assert "Unknown constant" in result.output

def test_cli_coverage(tmp_path):
    ledger = CoverageLedger()
    ledger.declare("str", "split", ["(String) -> Array[String]", "() -> Array[String]"])
    ledger.record("str", "split", "() -> Array[String]", True)
    path = tmp_path / "coverage.json"
    ledger.dump(path)

    result = runner.invoke(app, ["coverage", str(path)])
    assert result.exit_code == 0
    assert "split" in result.output
    assert "2 overloads" in result.output
    assert "1 never satisfied" in result.output

def test_cli_coverage_missing_only(tmp_path):
    ledger = CoverageLedger()
    ledger.record("str", "upper", "() -> String", True)
    ledger.record("str", "lower", "() -> String", False)
    path = tmp_path / "coverage.json"
    ledger.dump(path)

    result = runner.invoke(app, ["coverage", str(path), "--missing"])
    assert result.exit_code == 0
    assert "lower" in result.output
    assert "upper" not in result.output

def test_cli_coverage_bad_report(tmp_path):
    path = tmp_path / "coverage.json"
    path.write_text('{"version": 2, "entries": []}')

    result = runner.invoke(app, ["coverage", str(path)])
    assert result.exit_code == 1

def test_cli_log_level():
    result = runner.invoke(app, ["--log-level", "DEBUG", "const", "Float", "math.pi"])

    assert result.exit_code == 0
    assert logging.getLogger("sigconf").level == logging.DEBUG

    configure_logging("WARNING")
