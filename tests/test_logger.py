import logging

import pytest

from docchat.src.utils.logger import LIBRARY_LOGGERS, get_logger, quiet_library_loggers, resolve_level


@pytest.mark.parametrize(
    "env, override, expected",
    [
        ("dev", None, logging.DEBUG),
        ("prod", None, logging.WARNING),
        ("prod", "INFO", logging.INFO),
        ("dev", "error", logging.ERROR),
    ],
)
def test_level_comes_from_override_then_env(env, override, expected):
    assert resolve_level(env, override) == expected


def test_repeated_get_logger_adds_one_handler():
    first = get_logger("docchat.tests.single_handler", level=logging.INFO)
    second = get_logger("docchat.tests.single_handler", level=logging.DEBUG)

    assert first is second
    assert len(first.handlers) == 1
    assert first.level == logging.INFO
    assert first.propagate is False


def test_library_loggers_are_pinned():
    saved = {name: logging.getLogger(name).level for name in LIBRARY_LOGGERS}
    try:
        quiet_library_loggers("ERROR")

        assert all(logging.getLogger(name).level == logging.ERROR for name in LIBRARY_LOGGERS)
    finally:
        for name, level in saved.items():
            logging.getLogger(name).setLevel(level)
