"""
Centralized configuration with environment variable overrides.

Storage paths, cloud endpoint, sync cadence and lifecycle windows are all
configurable here. Nothing is hardcoded in the store, sync or service logic.
"""

import logging
import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

from studiosync.logging_context import LOG_FORMAT, install_operation_id_filter

load_dotenv()

logger = logging.getLogger(__name__)

BRIDGE_MODES = ("process", "inline", "disabled")


def _safe_int(env_var: str, default: str) -> int:
    """Parse an integer from an env var with a clear error on bad values."""
    raw = os.getenv(env_var, default)
    try:
        return int(raw)
    except (ValueError, TypeError):
        raise ValueError(
            f"Invalid integer for {env_var}: {raw!r}"
        ) from None


def _safe_float(env_var: str, default: str) -> float:
    """Parse a float from an env var with a clear error on bad values."""
    raw = os.getenv(env_var, default)
    try:
        return float(raw)
    except (ValueError, TypeError):
        raise ValueError(
            f"Invalid float for {env_var}: {raw!r}"
        ) from None


@dataclass(frozen=True)
class StoreConfig:
    """Local embedded store settings."""

    db_path: str = os.getenv("LOCAL_DB_PATH", "studio_local.db")
    bridge_mode: str = os.getenv("LOCAL_BRIDGE_MODE", "process")


@dataclass(frozen=True)
class CloudConfig:
    """Cloud relational store endpoint and timeouts."""

    url: str = os.getenv("CLOUD_URL", "")
    api_key: str = os.getenv("CLOUD_API_KEY", "")
    write_timeout_sec: float = _safe_float("CLOUD_WRITE_TIMEOUT", "15.0")
    health_timeout_sec: float = _safe_float("CLOUD_HEALTH_TIMEOUT", "5.0")

    @property
    def enabled(self) -> bool:
        return bool(self.url)


@dataclass(frozen=True)
class SyncConfig:
    """Outbound queue drain cadence and retry policy."""

    interval_sec: float = _safe_float("SYNC_INTERVAL", "60.0")
    max_retries: int = _safe_int("SYNC_MAX_RETRIES", "0")
    backoff_base_sec: float = _safe_float("SYNC_BACKOFF_BASE", "10.0")
    backoff_max_sec: float = _safe_float("SYNC_BACKOFF_MAX", "300.0")
    busy_retry_delay_sec: float = _safe_float("SYNC_BUSY_RETRY_DELAY", "5.0")


@dataclass(frozen=True)
class LifecycleConfig:
    """Retention window, deadline offsets and notification retention."""

    retention_days: int = _safe_int("SOFT_DELETE_RETENTION_DAYS", "30")
    selection_deadline_days: int = _safe_int("SELECTION_DEADLINE_DAYS", "60")
    delivery_deadline_days: int = _safe_int("DELIVERY_DEADLINE_DAYS", "60")
    notification_cap: int = _safe_int("NOTIFICATION_CAP", "50")


@dataclass(frozen=True)
class AppConfig:
    """Root configuration aggregating all sub-configs."""

    store: StoreConfig = field(default_factory=StoreConfig)
    cloud: CloudConfig = field(default_factory=CloudConfig)
    sync: SyncConfig = field(default_factory=SyncConfig)
    lifecycle: LifecycleConfig = field(default_factory=LifecycleConfig)
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    app_name: str = os.getenv("APP_NAME", "studio-sync")


def _validate_config(config: AppConfig) -> None:
    """Validate configuration values are within acceptable ranges."""
    if config.store.bridge_mode not in BRIDGE_MODES:
        raise ValueError(
            f"LOCAL_BRIDGE_MODE must be one of {BRIDGE_MODES}, got {config.store.bridge_mode!r}"
        )
    if config.cloud.write_timeout_sec <= 0:
        raise ValueError(
            f"CLOUD_WRITE_TIMEOUT must be > 0, got {config.cloud.write_timeout_sec}"
        )
    if config.cloud.health_timeout_sec <= 0:
        raise ValueError(
            f"CLOUD_HEALTH_TIMEOUT must be > 0, got {config.cloud.health_timeout_sec}"
        )
    if config.sync.interval_sec <= 0:
        raise ValueError(f"SYNC_INTERVAL must be > 0, got {config.sync.interval_sec}")
    if config.sync.max_retries < 0:
        raise ValueError(f"SYNC_MAX_RETRIES must be >= 0, got {config.sync.max_retries}")
    if config.sync.backoff_base_sec <= 0:
        raise ValueError(
            f"SYNC_BACKOFF_BASE must be > 0, got {config.sync.backoff_base_sec}"
        )
    if config.sync.backoff_max_sec < config.sync.backoff_base_sec:
        raise ValueError(
            "SYNC_BACKOFF_MAX must be >= SYNC_BACKOFF_BASE, "
            f"got {config.sync.backoff_max_sec}"
        )
    if config.sync.busy_retry_delay_sec <= 0:
        raise ValueError(
            f"SYNC_BUSY_RETRY_DELAY must be > 0, got {config.sync.busy_retry_delay_sec}"
        )

    for name, value in [
        ("SOFT_DELETE_RETENTION_DAYS", config.lifecycle.retention_days),
        ("SELECTION_DEADLINE_DAYS", config.lifecycle.selection_deadline_days),
        ("DELIVERY_DEADLINE_DAYS", config.lifecycle.delivery_deadline_days),
        ("NOTIFICATION_CAP", config.lifecycle.notification_cap),
    ]:
        if value < 1:
            raise ValueError(f"{name} must be >= 1, got {value}")


def load_config() -> AppConfig:
    """Load and validate application configuration."""
    config = AppConfig()
    _validate_config(config)
    logging.basicConfig(
        level=getattr(logging, config.log_level.upper(), logging.INFO),
        format=LOG_FORMAT,
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    install_operation_id_filter()
    logger.info(
        "Configuration loaded for '%s' (cloud %s)",
        config.app_name, "enabled" if config.cloud.enabled else "disabled",
    )
    return config


# Singleton instance
settings = load_config()
