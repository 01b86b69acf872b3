"""Unit tests for configuration loading."""

from fundhost.config import Settings, get_settings, settings


class TestSettings:
    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("FUNDHOST_LOG_LEVEL", raising=False)
        loaded = Settings(_env_file=None)
        assert loaded.log_level == "INFO"
        assert loaded.tax_form_threshold_amount == 60000
        assert loaded.max_core_contributors_per_account == 30

    def test_environment_prefix(self, monkeypatch):
        monkeypatch.setenv("FUNDHOST_WEBSITE_URL", "https://fund.example.org")
        monkeypatch.setenv("FUNDHOST_PLATFORM_COLLECTIVE_ID", "1")
        monkeypatch.setenv("WEBSITE_URL", "https://ignored.example.org")

        loaded = Settings(_env_file=None)
        assert loaded.website_url == "https://fund.example.org"
        assert loaded.platform_collective_id == 1

    def test_get_settings_returns_the_shared_instance(self):
        assert get_settings() is settings
