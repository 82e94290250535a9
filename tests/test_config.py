import logging

from packing.core.config import Settings
from packing.core.logging_config import setup_logging


def test_settings_read_environment(monkeypatch):
    monkeypatch.setenv("LOG_LEVEL", "DEBUG")
    monkeypatch.setenv("DRAFT_AUTOSAVE", "false")

    settings = Settings()
    assert settings.LOG_LEVEL == "DEBUG"
    assert settings.DRAFT_AUTOSAVE is False
    assert settings.APP_DATABASE_URL.startswith("sqlite:///")


def test_setup_logging_writes_to_file(tmp_path):
    log_file = tmp_path / "packing.log"
    setup_logging(level="debug", log_file=str(log_file))
    try:
        logging.getLogger("packing.test").debug("hello from the packer")
        for h in logging.getLogger().handlers:
            h.flush()
        assert "hello from the packer" in log_file.read_text()
        assert logging.getLogger().level == logging.DEBUG
        assert logging.getLogger("sqlalchemy.engine").level == logging.WARNING
    finally:
        setup_logging(level="INFO")
