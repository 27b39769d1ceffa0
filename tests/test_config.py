"""Tests for the central configuration loader (tiercache/config.py)."""

import logging

import pytest
import yaml

from tiercache.cache.models import CacheConfig, CachePolicy
from tiercache.config import (
    CACHE_PRESETS,
    CacheSettings,
    Settings,
    _apply_dict,
    _load_yaml,
    cache_config_for_preset,
    cache_config_from_settings,
    configure_logging,
    get_settings,
    reset_settings,
)
from tiercache.exceptions import ConfigurationError


@pytest.fixture(autouse=True)
def _clean_settings():
    """Reset the singleton before and after each test."""
    reset_settings()
    yield
    reset_settings()


def _write_config(tmp_path, data):
    f = tmp_path / "config.yaml"
    f.write_text(yaml.dump(data))
    return f


# ── YAML loading ────────────────────────────────────────


class TestLoadYaml:
    def test_loads_valid_yaml(self, tmp_path):
        f = tmp_path / "cfg.yaml"
        f.write_text("cache:\n  max_entries: 42\n")
        data = _load_yaml(f)
        assert data["cache"]["max_entries"] == 42

    def test_returns_empty_dict_for_missing_file(self, tmp_path):
        assert _load_yaml(tmp_path / "nonexistent.yaml") == {}

    def test_returns_empty_dict_for_non_dict_yaml(self, tmp_path):
        f = tmp_path / "cfg.yaml"
        f.write_text("- item1\n- item2\n")
        assert _load_yaml(f) == {}


# ── Settings defaults ───────────────────────────────────


class TestSettingsDefaults:
    def test_default_settings_have_expected_values(self):
        s = Settings()
        assert s.cache.enabled is True
        assert s.cache.ttl_seconds == 300
        assert s.cache.policy == "lru"
        assert s.remote.enabled is False
        assert s.remote.port == 6379
        assert s.logging.level == "INFO"


# ── get_settings() from YAML ────────────────────────────


class TestGetSettings:
    def test_loads_yaml_values(self, tmp_path):
        cfg = _write_config(tmp_path, {
            "cache": {"ttl_seconds": 1234, "policy": "lfu"},
            "remote": {"host": "cache.internal"},
        })
        s = get_settings(yaml_path=cfg, _force_reload=True)
        assert s.cache.ttl_seconds == 1234
        assert s.cache.policy == "lfu"
        assert s.remote.host == "cache.internal"

    def test_missing_yaml_uses_defaults(self, tmp_path):
        s = get_settings(yaml_path=tmp_path / "nope.yaml", _force_reload=True)
        assert s.cache.max_entries == 1000

    def test_singleton_returns_same_object(self, tmp_path):
        cfg = _write_config(tmp_path, {"cache": {"max_entries": 5}})
        s1 = get_settings(yaml_path=cfg, _force_reload=True)
        s2 = get_settings()
        assert s1 is s2

    def test_force_reload_reloads(self, tmp_path):
        cfg = _write_config(tmp_path, {"cache": {"max_entries": 11}})
        assert get_settings(yaml_path=cfg, _force_reload=True).cache.max_entries == 11

        cfg.write_text(yaml.dump({"cache": {"max_entries": 22}}))
        assert get_settings(yaml_path=cfg, _force_reload=True).cache.max_entries == 22


# ── Environment variable overrides ──────────────────────


class TestEnvOverrides:
    def test_env_override_int(self, tmp_path, monkeypatch):
        cfg = _write_config(tmp_path, {"cache": {"max_entries": 10}})
        monkeypatch.setenv("TIERCACHE_CACHE_MAX_ENTRIES", "99")
        s = get_settings(yaml_path=cfg, _force_reload=True)
        assert s.cache.max_entries == 99

    def test_env_override_float(self, tmp_path, monkeypatch):
        cfg = _write_config(tmp_path, {})
        monkeypatch.setenv("TIERCACHE_REMOTE_SOCKET_TIMEOUT_SECONDS", "1.5")
        s = get_settings(yaml_path=cfg, _force_reload=True)
        assert s.remote.socket_timeout_seconds == 1.5

    def test_env_override_bool(self, tmp_path, monkeypatch):
        cfg = _write_config(tmp_path, {})
        monkeypatch.setenv("TIERCACHE_CACHE_ENABLED", "false")
        s = get_settings(yaml_path=cfg, _force_reload=True)
        assert s.cache.enabled is False

    def test_invalid_env_override_is_ignored(self, tmp_path, monkeypatch):
        cfg = _write_config(tmp_path, {})
        monkeypatch.setenv("TIERCACHE_CACHE_MAX_ENTRIES", "lots")
        s = get_settings(yaml_path=cfg, _force_reload=True)
        assert s.cache.max_entries == 1000


# ── _apply_dict helper ──────────────────────────────────


class TestApplyDict:
    def test_applies_known_keys(self):
        target = CacheSettings()
        _apply_dict(target, {"max_entries": 7, "policy": "fifo"})
        assert target.max_entries == 7
        assert target.policy == "fifo"

    def test_ignores_unknown_keys(self):
        target = CacheSettings()
        _apply_dict(target, {"unknown_field": "value"})
        assert target.max_entries == 1000


# ── CacheConfig builders ────────────────────────────────


class TestCacheConfigFromSettings:
    def test_memory_only_by_default(self):
        config = cache_config_from_settings(Settings())
        assert isinstance(config, CacheConfig)
        assert config.policy is CachePolicy.LRU
        assert config.remote is None

    def test_remote_attached_when_enabled(self):
        s = Settings()
        s.remote.enabled = True
        s.remote.host = "redis.example"
        s.remote.db = 3
        config = cache_config_from_settings(s)
        assert config.remote is not None
        assert config.remote.host == "redis.example"
        assert config.remote.db == 3
        assert config.remote.password is None

    def test_invalid_policy_raises_configuration_error(self):
        s = Settings()
        s.cache.policy = "random"
        with pytest.raises(ConfigurationError):
            cache_config_from_settings(s)

    def test_zero_capacity_rejected(self):
        s = Settings()
        s.cache.max_entries = 0
        with pytest.raises(ConfigurationError):
            cache_config_from_settings(s)


class TestPresets:
    def test_development_preset(self):
        config = cache_config_for_preset("development")
        assert config.default_ttl_seconds == 300
        assert config.max_entries == 1000
        assert config.remote is None

    def test_staging_preset(self):
        config = cache_config_for_preset("staging")
        assert config.default_ttl_seconds == 600
        assert config.max_entries == 5000

    def test_production_preset_reads_redis_env(self, monkeypatch):
        monkeypatch.setenv("REDIS_HOST", "redis.prod")
        monkeypatch.setenv("REDIS_PORT", "6380")
        monkeypatch.setenv("REDIS_DB", "2")
        monkeypatch.delenv("REDIS_PASSWORD", raising=False)
        config = cache_config_for_preset("production")
        assert config.default_ttl_seconds == 1800
        assert config.max_entries == 10000
        assert config.remote.host == "redis.prod"
        assert config.remote.port == 6380
        assert config.remote.db == 2

    def test_production_preset_bad_port(self, monkeypatch):
        monkeypatch.setenv("REDIS_PORT", "not-a-port")
        with pytest.raises(ConfigurationError):
            cache_config_for_preset("production")

    def test_unknown_preset(self):
        with pytest.raises(ConfigurationError, match="Unknown cache preset"):
            cache_config_for_preset("qa")

    def test_presets_all_use_lru(self):
        assert {p["policy"] for p in CACHE_PRESETS.values()} == {"lru"}


class TestConfigureLogging:
    def test_sets_root_level(self):
        s = Settings()
        s.logging.level = "debug"
        s.logging.format = "text"
        root = logging.getLogger()
        saved = (root.handlers[:], root.level)
        try:
            configure_logging(s)
            assert root.level == logging.DEBUG
            assert len(root.handlers) == 1
        finally:
            root.handlers, level = saved
            root.setLevel(level)


# ── Integration: real config/config.yaml ─────────────────


class TestRealConfig:
    def test_loads_project_config_yaml(self):
        """Verify that the actual config/config.yaml is loaded correctly."""
        s = get_settings(_force_reload=True)
        assert s.cache.ttl_seconds == 300
        assert s.cache.max_entries == 1000
        assert s.remote.enabled is False
        assert s.logging.format == "json"
