"""Tests for configuration loading and validation."""

from dataclasses import replace

import pytest

from studiosync.config import (
    AppConfig,
    CloudConfig,
    LifecycleConfig,
    StoreConfig,
    SyncConfig,
    _validate_config,
)


class TestConfigValidation:
    def test_default_config_passes_validation(self):
        config = AppConfig()
        _validate_config(config)  # should not raise

    def test_defaults_match_studio_policy(self):
        lifecycle = LifecycleConfig()
        assert lifecycle.retention_days == 30
        assert lifecycle.selection_deadline_days == 60
        assert lifecycle.delivery_deadline_days == 60
        assert lifecycle.notification_cap == 50

    def test_unknown_bridge_mode(self):
        config = replace(AppConfig(), store=replace(StoreConfig(), bridge_mode="shared-memory"))
        with pytest.raises(ValueError, match="LOCAL_BRIDGE_MODE"):
            _validate_config(config)

    def test_non_positive_write_timeout(self):
        config = replace(AppConfig(), cloud=replace(CloudConfig(), write_timeout_sec=0))
        with pytest.raises(ValueError, match="CLOUD_WRITE_TIMEOUT"):
            _validate_config(config)

    def test_negative_max_retries(self):
        config = replace(AppConfig(), sync=replace(SyncConfig(), max_retries=-1))
        with pytest.raises(ValueError, match="SYNC_MAX_RETRIES"):
            _validate_config(config)

    def test_backoff_max_below_base(self):
        config = replace(
            AppConfig(), sync=replace(SyncConfig(), backoff_base_sec=30.0, backoff_max_sec=10.0)
        )
        with pytest.raises(ValueError, match="SYNC_BACKOFF_MAX"):
            _validate_config(config)

    def test_zero_retention_days(self):
        config = replace(AppConfig(), lifecycle=replace(LifecycleConfig(), retention_days=0))
        with pytest.raises(ValueError, match="SOFT_DELETE_RETENTION_DAYS"):
            _validate_config(config)

    def test_cloud_enabled_only_with_url(self):
        assert not CloudConfig(url="").enabled
        assert CloudConfig(url="https://example.supabase.co").enabled

    def test_safe_int_parsing(self):
        from studiosync.config import _safe_int

        assert _safe_int("NONEXISTENT_VAR_12345", "42") == 42

    def test_safe_int_rejects_garbage(self, monkeypatch):
        from studiosync.config import _safe_int

        monkeypatch.setenv("STUDIO_TEST_INT", "thirty")
        with pytest.raises(ValueError, match="STUDIO_TEST_INT"):
            _safe_int("STUDIO_TEST_INT", "30")

    def test_safe_float_parsing(self):
        from studiosync.config import _safe_float

        assert _safe_float("NONEXISTENT_VAR_12345", "3.14") == pytest.approx(3.14)
