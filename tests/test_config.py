"""Tests for settings and logging setup."""

import logging
from unittest.mock import patch

import pytest

from marvelvault.config import MAX_SAMPLE_CARDS, Settings
from marvelvault.logging_config import LOG_FORMAT, configure_logging


class TestSettings:
    def test_defaults(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Defaults apply when nothing is set in the environment."""
        monkeypatch.delenv("SAMPLE_CARDS_LIMIT", raising=False)

        settings = Settings(_env_file=None)

        assert settings.app_name == "MarvelVault"
        assert settings.sample_cards_limit == 12
        assert settings.sample_cards_limit <= MAX_SAMPLE_CARDS
        assert settings.database_url.startswith("postgresql+asyncpg://")

    def test_environment_overrides(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Environment variables override defaults."""
        monkeypatch.setenv("SAMPLE_CARDS_LIMIT", "20")
        monkeypatch.setenv("LOG_LEVEL", "DEBUG")

        settings = Settings(_env_file=None)

        assert settings.sample_cards_limit == 20
        assert settings.log_level == "DEBUG"


class TestConfigureLogging:
    @pytest.mark.parametrize(
        ("level", "expected"),
        [
            ("debug", logging.DEBUG),
            ("WARNING", logging.WARNING),
            (logging.ERROR, logging.ERROR),
            ("not-a-level", logging.INFO),
        ],
    )
    def test_level_resolution(self, level: str | int, expected: int) -> None:
        """Level names and numbers resolve; unknown names fall back to INFO."""
        with patch("marvelvault.logging_config.logging.basicConfig") as basic_config:
            configure_logging(level)

        basic_config.assert_called_once_with(level=expected, format=LOG_FORMAT)
