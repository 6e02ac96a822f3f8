"""Tests for YAML configuration loading."""

import pytest

from grant_tracker.config.loader import (
    CONFIG_ENV_VAR,
    AppConfig,
    ConfigLoader,
    load_config,
    substitute_env_vars,
)

CUSTOM_SETTINGS = """
server:
  port: ${TEST_GT_PORT:-9000}
storage:
  backend: APIFY
search:
  basic_ttl: 60
adapters:
  - name: grants.gov
    type: grants_gov
    api_key: ${TEST_GT_KEY}
  - name: Missing type
  - name: Bad timeout
    type: usaspending
    timeout: soon
  - name: Disabled
    type: nih_reporter
    enabled: false
feeds:
  - url: https://example.org/rss.xml
    name: Example
  - name: No url
"""


@pytest.fixture
def settings_file(tmp_path):
    path = tmp_path / "custom.yml"
    path.write_text(CUSTOM_SETTINGS, encoding="utf-8")
    return path


class TestSubstituteEnvVars:
    """Tests for substitute_env_vars function."""

    def test_set_variable(self, monkeypatch):
        monkeypatch.setenv("TEST_GT_VALUE", "abc")
        assert substitute_env_vars("key: ${TEST_GT_VALUE}") == "key: abc"

    def test_default(self, monkeypatch):
        monkeypatch.delenv("TEST_GT_VALUE", raising=False)
        assert substitute_env_vars("port: ${TEST_GT_VALUE:-8080}") == "port: 8080"

    def test_missing_without_default(self, monkeypatch):
        monkeypatch.delenv("TEST_GT_VALUE", raising=False)
        assert substitute_env_vars("key: ${TEST_GT_VALUE}") == "key: "


class TestPackagedSettings:
    """Tests for the settings.yml shipped with the package."""

    def test_defaults(self, monkeypatch):
        for var in ("PORT", "GRANT_TRACKER_HOST", "GRANT_TRACKER_STORAGE", "GRANTS_GOV_API_KEY", CONFIG_ENV_VAR):
            monkeypatch.delenv(var, raising=False)

        config = load_config()

        assert config.server.host == "0.0.0.0"
        assert config.server.port == 8080
        assert config.storage.backend == "memory"
        assert config.search.basic_ttl == 3600
        assert config.search.enhanced_ttl == 900
        assert config.search.basic_limit == 10
        assert config.search.enhanced_limit == 20
        assert config.monitor.grants_ttl == 7 * 86400
        assert config.monitor.status_ttl == 30 * 86400

    def test_adapters(self, monkeypatch):
        monkeypatch.delenv("GRANTS_GOV_API_KEY", raising=False)
        monkeypatch.delenv(CONFIG_ENV_VAR, raising=False)
        config = load_config()

        assert [a.type for a in config.adapters] == [
            "grants_gov", "usaspending", "nih_reporter", "rss", "cache_scan",
        ]
        assert config.adapters[0].api_key is None
        assert [a.name for a in config.adapters_for("basic")] == ["grants.gov", "USAspending", "NIH RePORTER"]
        assert len(config.adapters_for("enhanced")) == 5
        assert config.adapters[3].options["items_per_feed"] == 10

    def test_feeds(self, monkeypatch):
        monkeypatch.delenv(CONFIG_ENV_VAR, raising=False)
        config = load_config()

        assert len(config.feeds) == 4
        assert all(feed.active for feed in config.feeds)
        categories = {feed.name: feed.category for feed in config.feeds}
        assert categories["NSF Funding Opportunities"] == "Research"

    def test_port_from_environment(self, monkeypatch):
        monkeypatch.delenv(CONFIG_ENV_VAR, raising=False)
        monkeypatch.setenv("PORT", "3000")
        assert load_config().server.port == 3000


class TestCustomSettings:
    """Tests for loading a settings file from another location."""

    def test_explicit_path(self, settings_file, monkeypatch):
        monkeypatch.setenv("TEST_GT_KEY", "secret")
        monkeypatch.delenv("TEST_GT_PORT", raising=False)

        config = load_config(str(settings_file))

        assert config.server.port == 9000
        assert config.storage.backend == "apify"
        assert config.search.basic_ttl == 60
        assert config.search.enhanced_ttl == 900
        assert config.adapters[0].api_key == "secret"

    def test_invalid_entries_skipped(self, settings_file):
        config = load_config(str(settings_file))

        assert [a.name for a in config.adapters] == ["grants.gov", "Disabled"]
        assert config.adapters_for("basic") == config.adapters[:1]
        assert [f.name for f in config.feeds] == ["Example"]
        assert config.feeds[0].type == "federal"

    def test_env_var_path(self, settings_file, monkeypatch):
        monkeypatch.setenv(CONFIG_ENV_VAR, str(settings_file))
        assert load_config().search.basic_ttl == 60

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            ConfigLoader(str(tmp_path)).load_app_config("nope.yml")

    def test_empty_file(self, tmp_path):
        (tmp_path / "empty.yml").write_text("", encoding="utf-8")
        config = ConfigLoader(str(tmp_path)).load_app_config("empty.yml")
        assert config == AppConfig()
