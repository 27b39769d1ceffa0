"""
Central configuration loader for tiercache.

Reads ``config/config.yaml`` and ``.env``, merges environment-variable
overrides (``TIERCACHE_`` prefix), and exposes a typed :class:`Settings`
singleton via :func:`get_settings`.  Cache objects themselves are never
global: build a :class:`~tiercache.cache.models.CacheConfig` with
:func:`cache_config_from_settings` or :func:`cache_config_for_preset`
and hand it to an explicitly constructed cache.
"""

import json
import logging
import os
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from dotenv import load_dotenv

from tiercache.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Resolve project root (directory containing ``config/``)
# ---------------------------------------------------------------------------

_THIS_DIR = Path(__file__).resolve().parent          # tiercache/
_PROJECT_ROOT = _THIS_DIR.parent                     # repo root


def _project_path(*parts: str) -> Path:
    """Build an absolute path relative to the project root."""
    return _PROJECT_ROOT.joinpath(*parts)


# ---------------------------------------------------------------------------
# Nested settings dataclasses
# ---------------------------------------------------------------------------


@dataclass
class CacheSettings:
    enabled: bool = True
    ttl_seconds: int = 300
    max_entries: int = 1000
    policy: str = "lru"
    warmup_workers: int = 8


@dataclass
class RemoteSettings:
    enabled: bool = False
    host: str = "localhost"
    port: int = 6379
    password: str = ""
    db: int = 0
    socket_timeout_seconds: float = 0.5


@dataclass
class LoggingSettings:
    level: str = "INFO"
    format: str = "json"


@dataclass
class Settings:
    """Top-level settings container."""
    cache: CacheSettings = field(default_factory=CacheSettings)
    remote: RemoteSettings = field(default_factory=RemoteSettings)
    logging: LoggingSettings = field(default_factory=LoggingSettings)


# ---------------------------------------------------------------------------
# YAML loader
# ---------------------------------------------------------------------------

def _load_yaml(path: Path) -> Dict[str, Any]:
    """Read and parse a YAML file.  Returns ``{}`` if the file is missing."""
    if not path.exists():
        logger.warning("Config file not found: %s", path)
        return {}
    with open(path, "r", encoding="utf-8") as fh:
        data = yaml.safe_load(fh)
    return data if isinstance(data, dict) else {}


def _apply_dict(target: object, data: Dict[str, Any]) -> None:
    """Apply *data* values onto a settings dataclass, ignoring unknown keys."""
    for key, value in data.items():
        if not hasattr(target, key):
            continue
        setattr(target, key, value)


# ---------------------------------------------------------------------------
# Env-var overrides  (TIERCACHE_SECTION_KEY  e.g. TIERCACHE_CACHE_MAX_ENTRIES)
# ---------------------------------------------------------------------------

_SECTIONS = ["cache", "remote", "logging"]

_TYPE_MAP = {
    int: int,
    float: float,
    bool: lambda v: v.lower() in ("1", "true", "yes"),
    str: str,
}


def _apply_env_overrides(settings: Settings) -> None:
    """Override scalar fields via ``TIERCACHE_<SECTION>_<KEY>`` env vars."""
    for section_name in _SECTIONS:
        section = getattr(settings, section_name, None)
        if section is None:
            continue
        prefix = f"TIERCACHE_{section_name.upper()}_"
        for key in list(vars(section)):
            env_key = prefix + key.upper()
            env_val = os.environ.get(env_key)
            if env_val is None:
                continue
            current = getattr(section, key)
            cast = _TYPE_MAP.get(type(current), str)
            try:
                setattr(section, key, cast(env_val))
                logger.debug("Env override applied: %s", env_key)
            except (ValueError, TypeError):
                logger.warning("Invalid env override %s=%s", env_key, env_val)


# ---------------------------------------------------------------------------
# Singleton
# ---------------------------------------------------------------------------

_settings: Optional[Settings] = None
_lock = threading.Lock()


def get_settings(
    *,
    yaml_path: Optional[Path] = None,
    env_path: Optional[Path] = None,
    _force_reload: bool = False,
) -> Settings:
    """Return the application-wide :class:`Settings` singleton.

    On first call (or when ``_force_reload=True``) the function:

    1. Calls ``load_dotenv()`` to populate env vars from ``.env``.
    2. Reads ``config/config.yaml``.
    3. Applies ``TIERCACHE_*`` environment-variable overrides.

    Args:
        yaml_path: Override the YAML config file path (testing).
        env_path: Override the ``.env`` file path (testing).
        _force_reload: Re-read everything even if already loaded.

    Returns:
        The global ``Settings`` instance.
    """
    global _settings

    if _settings is not None and not _force_reload:
        return _settings

    with _lock:
        # Double-check after acquiring lock
        if _settings is not None and not _force_reload:
            return _settings

        dotenv_path = env_path or _project_path(".env")
        load_dotenv(dotenv_path, override=True)

        config_path = yaml_path or _project_path("config", "config.yaml")
        raw = _load_yaml(config_path)

        settings = Settings()
        for section_name in _SECTIONS:
            section_data = raw.get(section_name)
            if isinstance(section_data, dict):
                _apply_dict(getattr(settings, section_name), section_data)

        _apply_env_overrides(settings)

        _settings = settings
        logger.info("Settings loaded from %s", config_path)
        return _settings


def reset_settings() -> None:
    """Clear the cached singleton (for testing)."""
    global _settings
    with _lock:
        _settings = None


# ---------------------------------------------------------------------------
# CacheConfig builders
# ---------------------------------------------------------------------------


def cache_config_from_settings(settings: Optional[Settings] = None) -> Any:
    """Build a :class:`CacheConfig` from the loaded settings.

    Args:
        settings: Settings to read; defaults to :func:`get_settings`.

    Returns:
        A validated ``CacheConfig``.

    Raises:
        ConfigurationError: If the settings do not form a valid config.
    """
    from pydantic import ValidationError

    from tiercache.cache.models import CacheConfig, RemoteConfig

    settings = settings or get_settings()
    remote = None
    if settings.remote.enabled:
        remote = {
            "host": settings.remote.host,
            "port": settings.remote.port,
            "password": settings.remote.password or None,
            "db": settings.remote.db,
            "socket_timeout_seconds": settings.remote.socket_timeout_seconds,
        }
    try:
        return CacheConfig(
            enabled=settings.cache.enabled,
            default_ttl_seconds=settings.cache.ttl_seconds,
            max_entries=settings.cache.max_entries,
            policy=settings.cache.policy,
            warmup_workers=settings.cache.warmup_workers,
            remote=RemoteConfig(**remote) if remote else None,
        )
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid cache settings: {exc}") from exc


CACHE_PRESETS: Dict[str, Dict[str, Any]] = {
    "development": {
        "enabled": True,
        "default_ttl_seconds": 300,
        "max_entries": 1000,
        "policy": "lru",
    },
    "staging": {
        "enabled": True,
        "default_ttl_seconds": 600,
        "max_entries": 5000,
        "policy": "lru",
    },
    "production": {
        "enabled": True,
        "default_ttl_seconds": 1800,
        "max_entries": 10000,
        "policy": "lru",
    },
}


def cache_config_for_preset(name: str) -> Any:
    """Build a :class:`CacheConfig` from a named preset.

    The ``production`` preset attaches a remote tier described by the
    ``REDIS_HOST``, ``REDIS_PORT``, ``REDIS_PASSWORD`` and ``REDIS_DB``
    environment variables.

    Args:
        name: One of ``development``, ``staging`` or ``production``.

    Returns:
        A validated ``CacheConfig``.

    Raises:
        ConfigurationError: If the preset is unknown or the environment
            holds malformed values.
    """
    from tiercache.cache.models import CacheConfig, RemoteConfig

    if name not in CACHE_PRESETS:
        raise ConfigurationError(
            f"Unknown cache preset '{name}'; expected one of {sorted(CACHE_PRESETS)}"
        )
    values = dict(CACHE_PRESETS[name])
    if name == "production":
        try:
            values["remote"] = RemoteConfig(
                host=os.environ.get("REDIS_HOST", "localhost"),
                port=int(os.environ.get("REDIS_PORT", "6379")),
                password=os.environ.get("REDIS_PASSWORD") or None,
                db=int(os.environ.get("REDIS_DB", "0")),
            )
        except ValueError as exc:
            raise ConfigurationError(f"Invalid Redis environment: {exc}") from exc
    return CacheConfig(**values)


# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

_RESERVED_RECORD_ATTRS = set(vars(logging.makeLogRecord({}))) | {"message"}


class _JsonFormatter(logging.Formatter):
    """Render records as one JSON object per line, including ``extra`` fields."""

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key, value in vars(record).items():
            if key not in _RESERVED_RECORD_ATTRS:
                payload[key] = value
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


def configure_logging(settings: Optional[Settings] = None) -> None:
    """Install a root handler according to the ``logging`` settings section."""
    settings = settings or get_settings()
    handler = logging.StreamHandler()
    if settings.logging.format == "json":
        handler.setFormatter(_JsonFormatter())
    else:
        handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")
        )
    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(settings.logging.level.upper())
