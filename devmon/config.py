"""Configuration for the DevMon monitoring engine."""

import logging
import os
from dataclasses import dataclass, field, replace

from devmon.clock import DEFAULT_TIMEZONE, get_timezone

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DeviceConfig:
    """Static description of a device to monitor."""

    id: str
    name: str
    ip: str
    type: str
    base_bandwidth: float
    base_packet_loss: float


DEFAULT_DEVICES = (
    DeviceConfig(
        id="router-1",
        name="Main Router",
        ip="192.168.1.1",
        type="Router",
        base_bandwidth=45.0,
        base_packet_loss=0.5,
    ),
    DeviceConfig(
        id="switch-1",
        name="Core Switch",
        ip="192.168.1.2",
        type="Switch",
        base_bandwidth=65.0,
        base_packet_loss=0.3,
    ),
    DeviceConfig(
        id="firewall-1",
        name="Security Firewall",
        ip="192.168.1.3",
        type="Firewall",
        base_bandwidth=55.0,
        base_packet_loss=0.8,
    ),
)


def _parse_timezone(raw: str) -> str:
    try:
        get_timezone(raw)
    except (KeyError, ValueError) as e:
        raise ValueError(f"unknown timezone: {raw}") from e
    return raw


# Environment variable -> (field name, parser)
_ENV_OVERRIDES = {
    "DEVMON_INTERVAL_MS": ("interval_ms", int),
    "DEVMON_PROBE_TIMEOUT_MS": ("probe_timeout_ms", int),
    "DEVMON_FAIL_THRESHOLD": ("fail_threshold", int),
    "DEVMON_RETENTION_SECONDS": ("retention_seconds", int),
    "DEVMON_FAULT_DURATION_SECONDS": ("fault_duration_seconds", int),
    "DEVMON_TIMEZONE": ("timezone", _parse_timezone),
}


@dataclass(frozen=True)
class MonitorConfig:
    """Tunable constants for probing, alerting and retention."""

    interval_ms: int = 5000
    probe_timeout_ms: int = 3000
    fail_threshold: int = 3
    retention_seconds: int = 3600
    fault_duration_seconds: int = 30
    timezone: str = DEFAULT_TIMEZONE

    latency_threshold_ms: float = 200.0
    bandwidth_threshold_mbps: float = 80.0
    packet_loss_threshold_pct: float = 3.0

    alert_query_default_limit: int = 100
    alert_query_max_limit: int = 1000

    devices: tuple[DeviceConfig, ...] = field(default=DEFAULT_DEVICES)

    def validate(self) -> None:
        """Raise ValueError if any setting is out of range."""
        for name in (
            "interval_ms",
            "probe_timeout_ms",
            "fail_threshold",
            "retention_seconds",
            "fault_duration_seconds",
        ):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive")

        ids = [device.id for device in self.devices]
        if len(ids) != len(set(ids)):
            raise ValueError("device ids must be unique")

    @classmethod
    def from_env(cls, environ=None) -> "MonitorConfig":
        """Build a config, overriding defaults from DEVMON_* environment variables.

        Unparseable values are ignored with a warning so a typo in the
        environment never prevents startup.
        """
        if environ is None:
            environ = os.environ

        overrides = {}
        for var, (name, parser) in _ENV_OVERRIDES.items():
            raw = environ.get(var)
            if raw is None or not raw.strip():
                continue
            try:
                value = parser(raw.strip())
            except ValueError:
                logger.warning("Ignoring invalid %s=%r", var, raw)
                continue
            if parser is int and value <= 0:
                logger.warning("Ignoring non-positive %s=%r", var, raw)
                continue
            overrides[name] = value

        config = replace(cls(), **overrides)
        logger.debug("MonitorConfig loaded: %s", overrides or "defaults")
        return config
