"""pytest integration: `send_type` fixture and a coverage summary at the end of the run.

Enable with `pytest_plugins = ["sigconf.pytest_plugin"]` in a conftest.py.
"""
import logging

import pytest

from sigconf.config import CheckerConfig, InvalidSampleSizeError, configure_logging, get_sample_size
from sigconf.coverage import CoverageLedger
from sigconf.harness import InvocationHarness
from sigconf.registry import TypeRegistry

logger = logging.getLogger(__name__)

ledger_key = pytest.StashKey[CoverageLedger]()
config_key = pytest.StashKey[CheckerConfig]()

# Unexercised overloads listed in the terminal summary
SUMMARY_LIMIT = 20


def pytest_addoption(parser):
    group = parser.getgroup("sigconf", "signature conformance")
    group.addoption("--sigconf-report", dest="sigconf_report", default=None, metavar="PATH",
                    help="Write overload coverage as JSON to PATH")
    group.addoption("--sigconf-sample-size", dest="sigconf_sample_size", default=None, metavar="N",
                    help="Container elements checked per value (integer or ALL)")


def pytest_configure(config):
    checker_config = CheckerConfig.from_env()
    option = config.getoption("sigconf_sample_size", None)
    if option is not None:
        try:
            sample_size = get_sample_size(option)
        except InvalidSampleSizeError as e:
            raise pytest.UsageError(str(e)) from e
        checker_config = CheckerConfig(sample_size, checker_config.unchecked_classes, checker_config.log_level)

    configure_logging(checker_config.log_level)
    config.stash[config_key] = checker_config
    config.stash[ledger_key] = CoverageLedger()


@pytest.fixture(scope="session")
def sigconf_ledger(request) -> CoverageLedger:
    return request.config.stash[ledger_key]


@pytest.fixture(scope="session")
def sigconf_registry() -> TypeRegistry:
    return TypeRegistry()


@pytest.fixture
def send_type(request, sigconf_registry, sigconf_ledger) -> InvocationHarness:
    return InvocationHarness(sigconf_registry, sigconf_ledger, request.config.stash[config_key])


def pytest_sessionfinish(session):
    path = session.config.getoption("sigconf_report", None)
    if path and ledger_key in session.config.stash:
        session.config.stash[ledger_key].dump(path)


def pytest_terminal_summary(terminalreporter, config):
    if ledger_key not in config.stash:
        return
    ledger = config.stash[ledger_key]
    totals = ledger.totals()
    if not totals["overloads"]:
        return

    terminalreporter.write_sep("-", "signature coverage")
    terminalreporter.write_line(
        f"{totals['overloads']} overloads, {totals['attempted']} attempted, "
        f"{totals['satisfied']} satisfied, {totals['unexercised']} never satisfied"
    )
    snapshot = ledger.snapshot()
    unexercised = ledger.unexercised()
    for key in unexercised[:SUMMARY_LIMIT]:
        terminalreporter.write_line(
            f"  {key.receiver_type}#{key.method} [{key.signature_index}] {snapshot[key].signature}"
        )
    if len(unexercised) > SUMMARY_LIMIT:
        terminalreporter.write_line(f"  ... and {len(unexercised) - SUMMARY_LIMIT} more")
