"""Tests for terminal + log file logging setup."""

from __future__ import annotations

import logging
from pathlib import Path

import pytest

from pulso.config import PulsoSettings
from pulso.logging import _parse_log_level, log_file_path, setup_logging


@pytest.fixture(autouse=True)
def _reset_logging(monkeypatch: pytest.MonkeyPatch):  # type: ignore[no-untyped-def]
    """Clear PULSO_LOG_LEVEL and restore the root logger afterwards."""
    monkeypatch.delenv("PULSO_LOG_LEVEL", raising=False)
    yield
    root = logging.getLogger()
    for handler in root.handlers[:]:
        root.removeHandler(handler)
        handler.close()
    logging.basicConfig(level=logging.WARNING, force=True)


def _settings(output_dir: Path, **kwargs: object) -> PulsoSettings:
    return PulsoSettings(_env_file=None, output_dir=output_dir, **kwargs)  # type: ignore[call-arg, arg-type]


def _file_handlers() -> list[logging.Handler]:
    return [h for h in logging.getLogger().handlers if hasattr(h, "baseFilename")]


class TestSetupLogging:
    def test_terminal_only_without_settings(self) -> None:
        assert setup_logging() is None
        (handler,) = logging.getLogger().handlers
        assert isinstance(handler, logging.StreamHandler)
        assert handler.level == logging.WARNING

    def test_verbose_terminal_is_debug(self) -> None:
        setup_logging(verbose=True)
        assert logging.getLogger().handlers[0].level == logging.DEBUG

    def test_no_file_when_output_dir_missing(self, tmp_path: Path) -> None:
        settings = _settings(tmp_path / "not-yet")
        assert setup_logging(settings) is None
        assert _file_handlers() == []
        assert not (tmp_path / "not-yet").exists()

    def test_log_file_location(self, tmp_path: Path) -> None:
        settings = _settings(tmp_path)
        path = setup_logging(settings)
        assert path == tmp_path / ".pulso" / "pulso.log"
        assert path == log_file_path(settings)
        assert len(logging.getLogger().handlers) == 2

    def test_file_level_defaults_to_info(self, tmp_path: Path) -> None:
        setup_logging(_settings(tmp_path))
        (handler,) = _file_handlers()
        assert handler.level == logging.INFO

    def test_file_level_from_settings(self, tmp_path: Path) -> None:
        setup_logging(_settings(tmp_path, log_level="debug"))
        (handler,) = _file_handlers()
        assert handler.level == logging.DEBUG

    def test_file_level_from_env(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("PULSO_LOG_LEVEL", "error")
        setup_logging(_settings(tmp_path))
        (handler,) = _file_handlers()
        assert handler.level == logging.ERROR

    def test_row_cap_warning_reaches_file(self, tmp_path: Path) -> None:
        setup_logging(_settings(tmp_path))
        logging.getLogger("pulso.analysis.distribution").warning("Row cap reached (3000 rows)")
        for handler in _file_handlers():
            handler.flush()
        content = (tmp_path / ".pulso" / "pulso.log").read_text(encoding="utf-8")
        assert "Row cap reached" in content
        assert "pulso.analysis.distribution" in content

    def test_repeat_setup_does_not_duplicate(self, tmp_path: Path) -> None:
        settings = _settings(tmp_path)
        setup_logging(settings)
        setup_logging(settings)
        assert len(logging.getLogger().handlers) == 2

    def test_http_loggers_clamped(self) -> None:
        setup_logging(verbose=True)
        assert logging.getLogger("httpx").level == logging.WARNING
        assert logging.getLogger("httpcore").level == logging.WARNING


class TestParseLogLevel:
    @pytest.mark.parametrize(
        ("name", "level"),
        [("DEBUG", logging.DEBUG), ("warning", logging.WARNING), (" Error ", logging.ERROR)],
    )
    def test_known_levels(self, name: str, level: int) -> None:
        assert _parse_log_level(name) == level

    def test_unknown_falls_back_to_info(self) -> None:
        assert _parse_log_level("loud") == logging.INFO
