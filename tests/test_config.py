"""Tests for engine configuration and environment overrides."""

import pytest

from devmon.config import DEFAULT_DEVICES, DeviceConfig, MonitorConfig


class TestMonitorConfigDefaults:
    def test_defaults(self):
        config = MonitorConfig()

        assert config.interval_ms == 5000
        assert config.probe_timeout_ms == 3000
        assert config.fail_threshold == 3
        assert config.retention_seconds == 3600
        assert config.fault_duration_seconds == 30
        assert config.timezone == "Asia/Jakarta"
        assert [d.id for d in config.devices] == ["router-1", "switch-1", "firewall-1"]

    def test_default_devices(self):
        router = DEFAULT_DEVICES[0]
        assert router.ip == "192.168.1.1"
        assert router.base_bandwidth == 45.0
        assert router.base_packet_loss == 0.5


class TestValidate:
    """validate() rejects out-of-range settings."""

    @pytest.mark.parametrize(
        "name", ["interval_ms", "probe_timeout_ms", "fail_threshold", "retention_seconds"]
    )
    def test_non_positive(self, name):
        config = MonitorConfig(**{name: 0})
        with pytest.raises(ValueError, match=f"{name} must be positive"):
            config.validate()

    def test_duplicate_device_ids(self):
        device = DeviceConfig("dup", "A", "10.0.0.1", "Router", 10.0, 0.1)
        config = MonitorConfig(devices=(device, device))
        with pytest.raises(ValueError, match="device ids must be unique"):
            config.validate()


class TestFromEnv:
    """DEVMON_* environment overrides."""

    def test_empty_environment_gives_defaults(self):
        assert MonitorConfig.from_env({}) == MonitorConfig()

    def test_overrides(self):
        config = MonitorConfig.from_env(
            {
                "DEVMON_INTERVAL_MS": "2000",
                "DEVMON_FAIL_THRESHOLD": " 5 ",
                "DEVMON_TIMEZONE": "UTC",
            }
        )

        assert config.interval_ms == 2000
        assert config.fail_threshold == 5
        assert config.timezone == "UTC"

    @pytest.mark.parametrize("raw", ["abc", "0", "-10", ""])
    def test_invalid_value_ignored(self, raw, caplog):
        with caplog.at_level("WARNING", logger="devmon.config"):
            config = MonitorConfig.from_env({"DEVMON_INTERVAL_MS": raw})

        assert config.interval_ms == 5000
        if raw:
            assert "DEVMON_INTERVAL_MS" in caplog.text

    def test_unknown_timezone_ignored(self):
        config = MonitorConfig.from_env({"DEVMON_TIMEZONE": "Mars/Olympus_Mons"})
        assert config.timezone == "Asia/Jakarta"
