"""Tests for sshjump.config and sshjump.logging."""

import logging

import pytest

from sshjump.config import Config, _env_number
from sshjump.logging import setup_logging


class TestConfigValidate:
    def test_defaults_are_valid(self):
        Config.validate()

    @pytest.mark.parametrize("attr,value,match", [
        ("LOCAL_PORT", 0, "port"),
        ("REMOTE_PORT", 70000, "port"),
        ("WAIT_ATTEMPTS", 0, "attempts"),
        ("WAIT_INTERVAL", -1, "interval"),
        ("FORWARD_DELAY", -0.5, "delay"),
        ("POD_NAME", "", "pod name"),
    ])
    def test_invalid(self, monkeypatch, attr, value, match):
        monkeypatch.setattr(Config, attr, value)
        with pytest.raises(ValueError, match=match):
            Config.validate()

    def test_malformed_env_value_named(self, monkeypatch):
        monkeypatch.setattr(Config, "INVALID_ENV", {"SSHJUMP_LOCAL_PORT": "22x"})
        with pytest.raises(ValueError, match="SSHJUMP_LOCAL_PORT: '22x'"):
            Config.validate()


class TestEnvNumber:
    @pytest.fixture(autouse=True)
    def invalid(self, monkeypatch):
        invalid = {}
        monkeypatch.setattr("sshjump.config._invalid_env", invalid)
        return invalid

    def test_parsed(self, monkeypatch, invalid):
        monkeypatch.setenv("SSHJUMP_LOCAL_PORT", "2022")
        assert _env_number("SSHJUMP_LOCAL_PORT", "2222", int) == 2022
        assert invalid == {}

    def test_unset_uses_default(self, monkeypatch, invalid):
        monkeypatch.delenv("SSHJUMP_FORWARD_DELAY", raising=False)
        assert _env_number("SSHJUMP_FORWARD_DELAY", "2", float) == 2.0
        assert invalid == {}

    def test_malformed_falls_back_and_is_recorded(self, monkeypatch, invalid):
        monkeypatch.setenv("SSHJUMP_LOCAL_PORT", "abc")
        assert _env_number("SSHJUMP_LOCAL_PORT", "2222", int) == 2222
        assert invalid == {"SSHJUMP_LOCAL_PORT": "abc"}


class TestSetupLogging:
    def test_file_and_console_handlers(self, tmp_path):
        log_file = tmp_path / "logs" / "sshjump.log"
        logger = setup_logging(log_file=str(log_file))
        assert len(logger.handlers) == 2
        logger.info("hello")
        assert "hello" in log_file.read_text()

    def test_verbose(self, tmp_path):
        logger = setup_logging(verbose=True, log_file=str(tmp_path / "l.log"))
        assert logger.level == logging.DEBUG

    def test_unwritable_log_file_keeps_console(self, tmp_path):
        blocker = tmp_path / "file"
        blocker.write_text("")
        logger = setup_logging(log_file=str(blocker / "sub" / "x.log"))
        assert len(logger.handlers) == 1
