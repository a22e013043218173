"""
Tests for settings and logging setup
"""

import logging

from genedash.core.config import Settings
from genedash.core.logging import setup_logging


class TestSettings:

    def test_defaults(self):
        settings = Settings()

        assert settings.API_PREFIX == "/api"
        assert settings.LLM_PROVIDER == "ollama"
        assert settings.ANALYSIS_BATCH_SIZE == 5
        assert settings.REFERENCE_FALLBACK is True

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("ANALYSIS_CONCURRENCY", "7")
        monkeypatch.setenv("REFERENCE_FALLBACK", "false")

        settings = Settings()

        assert settings.ANALYSIS_CONCURRENCY == 7
        assert settings.REFERENCE_FALLBACK is False


class TestLogging:

    def test_file_handler_and_directory(self, tmp_path):
        log_file = tmp_path / "logs" / "app.log"
        root = logging.getLogger()
        saved_handlers, saved_level = root.handlers[:], root.level
        try:
            setup_logging(level="debug", log_file=str(log_file))
            logging.getLogger("genedash.test").info("✅ ready")

            assert root.level == logging.DEBUG
            assert any(isinstance(h, logging.FileHandler) for h in root.handlers)
            for handler in root.handlers:
                handler.flush()
            assert "✅ ready" in log_file.read_text(encoding="utf-8")
        finally:
            for handler in root.handlers:
                handler.close()
            root.handlers = saved_handlers
            root.setLevel(saved_level)
