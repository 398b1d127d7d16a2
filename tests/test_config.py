"""
Tests for configuration loading.
"""

import pytest

from finance_tracker.config import get_settings, validate_all_settings


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch, tmp_path):
    """Run without a .env file from the working tree."""
    monkeypatch.chdir(tmp_path)


class TestValidateAllSettings:

    def test_missing_gemini_key_is_reported(self, monkeypatch):
        monkeypatch.delenv("GEMINI_API_KEY", raising=False)

        results = validate_all_settings()

        assert results["gemini"] is False
        assert "api_key" in results["gemini_error"]
        assert results["gateway"] is True
        assert results["store"] is True
        assert results["app"] is True

    def test_configured_gemini_key(self, monkeypatch):
        monkeypatch.setenv("GEMINI_API_KEY", "test-key")

        results = validate_all_settings()

        assert results["gemini"] is True
        assert "gemini_error" not in results

    def test_invalid_group_does_not_hide_the_others(self, monkeypatch):
        monkeypatch.setenv("CATEGORIZATION_BATCH_SIZE", "0")

        results = validate_all_settings()

        assert results["app"] is False
        assert results["gateway"] is True


class TestAppSettings:

    def test_defaults(self):
        app = get_settings().app
        assert app.language == "de"
        assert app.default_currency == "EUR"
        assert app.categorization_batch_size == 50
        assert app.max_transaction_pages == 5

    def test_currency_is_upper_cased(self, monkeypatch):
        monkeypatch.setenv("DEFAULT_CURRENCY", "sek")
        assert get_settings().app.default_currency == "SEK"


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
