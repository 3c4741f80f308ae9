import logging

import pytest
from rich.logging import RichHandler

from sigconf.config import (
    DEFAULT_SAMPLE_SIZE, CheckerConfig, InvalidSampleSizeError, configure_logging, get_sample_size,
)

def test_get_sample_size():
    assert get_sample_size(None) == DEFAULT_SAMPLE_SIZE
    assert get_sample_size("") == DEFAULT_SAMPLE_SIZE
    assert get_sample_size("25") == 25
    assert get_sample_size("ALL") is None
    assert get_sample_size("all") is None

def test_get_sample_size_invalid():
    for value in ["0", "-3", "many", "1.5"]:
        with pytest.raises(InvalidSampleSizeError) as excinfo:
            get_sample_size(value)
        assert isinstance(excinfo.value, ValueError)
        assert excinfo.value.value == value

def test_config_defaults():
    config = CheckerConfig()

    assert config.sample_size == 100
    assert config.unchecked_classes == ()
    assert config.log_level == "WARNING"

def test_config_from_env():
    config = CheckerConfig.from_env({
        "SIGCONF_SAMPLE_SIZE": "10",
        "SIGCONF_UNCHECKED": "unittest.mock.Mock, unittest.mock.MagicMock,",
        "SIGCONF_LOGLEVEL": "debug",
    })

    assert config.sample_size == 10
    assert config.unchecked_classes == ("unittest.mock.Mock", "unittest.mock.MagicMock")
    assert config.log_level == "DEBUG"

def test_config_from_env_no_sampling():
    assert CheckerConfig.from_env({"SIGCONF_NO_SAMPLING": "1", "SIGCONF_SAMPLE_SIZE": "10"}).sample_size is None
    assert CheckerConfig.from_env({"SIGCONF_NO_SAMPLING": "false"}).sample_size == 100

def test_config_from_process_env(monkeypatch):
    monkeypatch.setenv("SIGCONF_SAMPLE_SIZE", "ALL")

    assert CheckerConfig.from_env().sample_size is None

def test_config_from_env_invalid():
    with pytest.raises(InvalidSampleSizeError):
        CheckerConfig.from_env({"SIGCONF_SAMPLE_SIZE": "lots"})

def test_configure_logging_is_idempotent():
    logger = configure_logging("info")
    configure_logging("debug")

    assert logger is logging.getLogger("sigconf")
    assert sum(isinstance(h, RichHandler) for h in logger.handlers) == 1
    assert logger.level == logging.DEBUG

    configure_logging("WARNING")
