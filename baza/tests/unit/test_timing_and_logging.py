from __future__ import annotations

import logging

import pytest

from baza.utils import logging as baza_logging
from baza.utils.timing import elapsed


def test_elapsed_logs_message_on_success(caplog: pytest.LogCaptureFixture) -> None:
    log = logging.getLogger("tests.timing")
    caplog.set_level(logging.INFO, logger="tests.timing")
    ticks = iter([10.0, 12.5])

    with elapsed(log, clock=lambda: next(ticks)) as timer:
        timer.message = "Pushed 3 bytes"

    assert timer.seconds == 2.5
    assert [r.getMessage() for r in caplog.records] == ["Pushed 3 bytes in 2.50s"]


def test_elapsed_reraises_without_logging(caplog: pytest.LogCaptureFixture) -> None:
    log = logging.getLogger("tests.timing")
    caplog.set_level(logging.DEBUG, logger="tests.timing")

    with pytest.raises(KeyError):
        with elapsed(log) as timer:
            timer.message = "never"
            raise KeyError("boom")

    assert caplog.records == []


def test_elapsed_without_message_is_silent(caplog: pytest.LogCaptureFixture) -> None:
    log = logging.getLogger("tests.timing")
    caplog.set_level(logging.DEBUG, logger="tests.timing")

    with elapsed(log):
        pass

    assert caplog.records == []


@pytest.fixture
def restore_levels():
    names = ("", "urllib3", "requests")
    saved = {name: logging.getLogger(name).level for name in names}
    yield
    for name, level in saved.items():
        logging.getLogger(name).setLevel(level)


def test_configure_root_uses_default_without_env(monkeypatch, restore_levels) -> None:
    for var in ("BAZA_LOG_LEVEL", "BAZA_DEBUG", "BAZA_DEBUG_LOGGING"):
        monkeypatch.delenv(var, raising=False)

    level = baza_logging.configure_root("warning")

    assert level == logging.WARNING
    assert logging.getLogger().level == logging.WARNING
    assert logging.getLogger("urllib3").level == logging.WARNING
    assert baza_logging.env_requests_debug() is False


def test_configure_root_honors_level_env(monkeypatch, restore_levels) -> None:
    monkeypatch.setenv("BAZA_LOG_LEVEL", "error")

    assert baza_logging.configure_root(logging.DEBUG) == logging.ERROR


def test_debug_flag_enables_transport_logging(monkeypatch, restore_levels) -> None:
    monkeypatch.delenv("BAZA_LOG_LEVEL", raising=False)
    monkeypatch.setenv("BAZA_DEBUG", "yes")

    level = baza_logging.configure_root()

    assert level == logging.DEBUG
    assert baza_logging.env_requests_debug() is True
    assert logging.getLogger("urllib3").level == logging.DEBUG
