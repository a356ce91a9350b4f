"""Command-line entry point and terminal helpers."""

import io

import pytest

from agora import main as entry
from agora.common import (
    AnsiColors,
    paint,
)


class FakeTTY(io.StringIO):
    def isatty(self) -> bool:
        return True


def test_cli_mode_requires_api_key() -> None:
    with pytest.raises(SystemExit) as excinfo:
        entry.main(["--mode", "cli"])

    assert excinfo.value.code == 2


def test_api_mode_passes_bind_address(monkeypatch) -> None:
    calls = []
    monkeypatch.setattr(entry, "run_api", lambda **kwargs: calls.append(kwargs))
    monkeypatch.setattr(entry, "_init_logging", lambda level: None)
    monkeypatch.setattr(entry.settings, "LOG_LEVEL", entry.settings.LOG_LEVEL)

    entry.main(["--port", "9001", "--host", "127.0.0.1", "--log-level", "WARNING"])

    assert calls == [{"host": "127.0.0.1", "port": 9001, "reload": entry.settings.DEBUG}]
    assert entry.settings.LOG_LEVEL == "warning"


def test_paint_only_colors_terminals(monkeypatch) -> None:
    monkeypatch.delenv("NO_COLOR", raising=False)

    assert paint("hi", AnsiColors.RED, io.StringIO()) == "hi"
    assert paint("hi", AnsiColors.RED, FakeTTY()) == "\033[91mhi\033[0m"

    monkeypatch.setenv("NO_COLOR", "1")
    assert paint("hi", AnsiColors.RED, FakeTTY()) == "hi"
