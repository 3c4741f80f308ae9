import logging
import os
from dataclasses import dataclass
from typing import Mapping, Optional, Tuple

from rich.logging import RichHandler

from sigconf.classifier import DEFAULT_SAMPLE_SIZE

LOGGER_NAME = "sigconf"


class InvalidSampleSizeError(ValueError):
    def __init__(self, value: str):
        self.value = value
        super().__init__(f"Sample size should be a positive integer or `ALL`: {value!r}")


def get_sample_size(value: Optional[str]) -> Optional[int]:
    """Parse a sample size setting. `None` means every element is checked."""
    if value is None or value == "":
        return DEFAULT_SAMPLE_SIZE
    if value.strip().upper() == "ALL":
        return None
    try:
        size = int(value)
    except ValueError:
        raise InvalidSampleSizeError(value) from None
    if size <= 0:
        raise InvalidSampleSizeError(value)
    return size


def _truthy(value: Optional[str]) -> bool:
    return bool(value) and value.strip().lower() not in ("0", "false", "no", "off")


@dataclass(frozen=True)
class CheckerConfig:
    sample_size: Optional[int] = DEFAULT_SAMPLE_SIZE
    unchecked_classes: Tuple[str, ...] = ()
    log_level: str = "WARNING"

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "CheckerConfig":
        env = os.environ if environ is None else environ

        if _truthy(env.get("SIGCONF_NO_SAMPLING")):
            sample_size = None
        else:
            sample_size = get_sample_size(env.get("SIGCONF_SAMPLE_SIZE"))

        unchecked = tuple(name.strip() for name in env.get("SIGCONF_UNCHECKED", "").split(",") if name.strip())
        log_level = env.get("SIGCONF_LOGLEVEL", "WARNING").upper()
        return cls(sample_size, unchecked, log_level)


def configure_logging(level: str = "WARNING") -> logging.Logger:
    """Route `sigconf` logs through rich. Calling again only changes the level."""
    logger = logging.getLogger(LOGGER_NAME)
    if not any(isinstance(h, RichHandler) for h in logger.handlers):
        handler = RichHandler(show_time=False, show_path=False, markup=False)
        handler.setFormatter(logging.Formatter("%(name)s: %(message)s"))
        logger.addHandler(handler)
    logger.setLevel(level.upper())
    return logger
