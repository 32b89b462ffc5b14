"""Tests for kinship/settings module."""

from __future__ import annotations

from unittest.mock import patch

import pytest
from pydantic import ValidationError

from kinship.settings import Settings, get_settings


class TestSettings:
    """Defaults, environment overrides and validation."""

    def test_defaults(self):
        with patch.dict("os.environ", {}, clear=True):
            settings = Settings(_env_file=None)

        assert settings.kinship_api_url == "http://127.0.0.1:3000"
        assert settings.kinship_api_token == ""
        assert settings.page_size == 50
        assert settings.max_pages == 50

    def test_environment_overrides(self):
        env = {
            "KINSHIP_API_URL": "https://kinship.example.org/",
            "KINSHIP_API_TOKEN": "abc",
            "PAGE_SIZE": "25",
            "REQUEST_TIMEOUT_SECONDS": "2.5",
        }
        with patch.dict("os.environ", env, clear=True):
            settings = Settings(_env_file=None)

        assert settings.kinship_api_url == "https://kinship.example.org"
        assert settings.kinship_api_token == "abc"
        assert settings.page_size == 25
        assert settings.request_timeout_seconds == 2.5

    def test_missing_token_warns(self, caplog):
        with patch.dict("os.environ", {}, clear=True):
            Settings(_env_file=None)

        assert "KINSHIP_API_TOKEN is not set" in caplog.text

    @pytest.mark.parametrize("field,value", [("page_size", 0), ("page_size", 501), ("max_pages", 0)])
    def test_bounds_are_validated(self, field, value):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, kinship_api_token="t", **{field: value})

    def test_get_settings_is_cached(self):
        get_settings.cache_clear()
        try:
            assert get_settings() is get_settings()
        finally:
            get_settings.cache_clear()
