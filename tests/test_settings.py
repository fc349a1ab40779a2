"""Tests for engine settings and the allow-list configuration."""

import pytest

from settings import AllowedSecretsConfig, ConfigError, EngineSettings


class TestEngineSettings:

    def test_defaults(self):
        settings = EngineSettings()

        assert settings.break_glass_max_ttl_seconds == 3600
        assert settings.nonce_store_url is None
        assert settings.log_format == "json"

    def test_from_env(self):
        settings = EngineSettings.from_env({
            "SECRETS_AUTHZ_BREAK_GLASS_MAX_TTL_SECONDS": "1800",
            "SECRETS_AUTHZ_NONCE_STORE_URL": "redis://cache:6379/1",
            "SECRETS_AUTHZ_NONCE_STORE_TIMEOUT_SECONDS": "0.2",
            "SECRETS_AUTHZ_LOG_LEVEL": "debug",
            "SECRETS_AUTHZ_LOG_FORMAT": "Console",
        })

        assert settings.break_glass_max_ttl_seconds == 1800
        assert settings.nonce_store_url == "redis://cache:6379/1"
        assert settings.nonce_store_timeout_seconds == 0.2
        assert settings.log_level == "DEBUG"
        assert settings.log_format == "console"

    def test_from_env_blank_values_keep_defaults(self):
        settings = EngineSettings.from_env({"SECRETS_AUTHZ_NONCE_STORE_URL": "  "})

        assert settings == EngineSettings()

    def test_from_env_rejects_non_integer(self):
        with pytest.raises(ConfigError, match="BREAK_GLASS_MAX_TTL_SECONDS"):
            EngineSettings.from_env({"SECRETS_AUTHZ_BREAK_GLASS_MAX_TTL_SECONDS": "1h"})

    @pytest.mark.parametrize("kwargs", [
        {"break_glass_max_ttl_seconds": 0},
        {"nonce_retention_seconds": -1},
        {"nonce_store_timeout_seconds": 0},
        {"log_format": "xml"},
    ])
    def test_invalid_values(self, kwargs):
        with pytest.raises(ConfigError):
            EngineSettings(**kwargs)


class TestAllowedSecretsConfig:

    def test_names_lower_cased(self):
        config = AllowedSecretsConfig.from_mapping({"OAuth": ["OAuth-Key"]})

        assert config.category_names == frozenset({"oauth"})
        assert config.category_for("oauth-key") == "oauth"

    def test_read_only(self):
        config = AllowedSecretsConfig.from_mapping({"oauth": ["a"]})

        with pytest.raises(TypeError):
            config.categories["oauth"] = frozenset()

    @pytest.mark.parametrize("mapping", [
        {"": ["a"]},
        {"oauth": "single-string"},
        {"oauth": ["ok", ""]},
        ["not", "a", "mapping"],
    ])
    def test_malformed(self, mapping):
        with pytest.raises(ConfigError):
            AllowedSecretsConfig.from_mapping(mapping)

    def test_default_has_three_categories(self):
        assert AllowedSecretsConfig.default().category_names == {"oauth", "betterauth", "infrastructure"}
