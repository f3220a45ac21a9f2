"""
Tests for environment-driven settings and logging setup
"""
import pytest
from pydantic import ValidationError
from loguru import logger

from shared.config.settings import LedgerSettings
from shared.utils.logging import setup_logging


class TestLedgerSettings:
    """Test LEDGER_* environment variables"""

    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("LEDGER_STORAGE_BACKEND", raising=False)
        config = LedgerSettings()

        assert config.storage_backend == "file"
        assert config.snapshot_retention_days == 365

    def test_env_override(self, monkeypatch):
        monkeypatch.setenv("LEDGER_STORAGE_BACKEND", "sqlite")
        monkeypatch.setenv("LEDGER_SNAPSHOT_INTERVAL", "3600")

        config = LedgerSettings()

        assert config.storage_backend == "sqlite"
        assert config.snapshot_interval == 3600.0

    def test_invalid_backend(self, monkeypatch):
        monkeypatch.setenv("LEDGER_STORAGE_BACKEND", "redis")

        with pytest.raises(ValidationError):
            LedgerSettings()


class TestLogging:
    """Test loguru sink setup"""

    def test_file_sink(self, tmp_path):
        log_file = tmp_path / "ledger.log"

        setup_logging("WARNING", str(log_file))
        logger.debug("debug line")
        logger.complete()

        assert "debug line" in log_file.read_text()

        setup_logging("INFO")


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
