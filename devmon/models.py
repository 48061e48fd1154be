"""Data models for monitored devices, history samples and alerts."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from devmon.clock import format_timestamp


class DeviceStatus(str, Enum):
    """Reachability status of a device."""

    ONLINE = "online"
    OFFLINE = "offline"


class Severity(str, Enum):
    """Alert severity levels."""

    SUCCESS = "success"
    WARNING = "warning"
    DANGER = "danger"


class EventType(str, Enum):
    """Kinds of alert the engine can raise."""

    DEVICE_DOWN = "DEVICE_DOWN"
    RECOVERY = "RECOVERY"
    HIGH_LATENCY = "HIGH_LATENCY"
    HIGH_BANDWIDTH = "HIGH_BANDWIDTH"
    HIGH_PACKET_LOSS = "HIGH_PACKET_LOSS"
    SIMULATED_FAULT_START = "SIMULATED_FAULT_START"


@dataclass
class Device:
    """A monitored network device and its live state.

    Identity and baseline fields are set once at startup. The live state
    fields are overwritten in place by the engine on every probe.
    """

    id: str
    name: str
    ip: str
    type: str
    base_bandwidth: float
    base_packet_loss: float

    status: DeviceStatus = DeviceStatus.ONLINE
    latency: float = 0.0
    bandwidth: float = 0.0
    packet_loss: float = 0.0
    consecutive_fails: int = 0
    injected_fault: bool = False
    injected_fault_until: datetime | None = None

    @property
    def is_offline(self) -> bool:
        return self.status == DeviceStatus.OFFLINE

    def fault_active(self, now: datetime) -> bool:
        """Return True while an injected fault has not yet expired."""
        return (
            self.injected_fault
            and self.injected_fault_until is not None
            and now < self.injected_fault_until
        )

    def set_down_telemetry(self):
        """Overwrite telemetry with the fixed values reported for a down device."""
        self.latency = 0.0
        self.bandwidth = 0.0
        self.packet_loss = 100.0

    def to_dict(self, tz=None) -> dict:
        """Serialize live state using the wire field names."""
        until = self.injected_fault_until
        return {
            "id": self.id,
            "name": self.name,
            "ip": self.ip,
            "type": self.type,
            "status": self.status.value,
            "latency": self.latency,
            "bandwidth": self.bandwidth,
            "packetLoss": self.packet_loss,
            "injectedFault": self.injected_fault,
            "injectedFaultUntil": format_timestamp(until, tz) if until is not None else None,
        }


@dataclass(frozen=True)
class HistorySample:
    """One probe outcome for a single device."""

    ts: datetime
    latency: float
    bandwidth: float
    packet_loss: float
    status: DeviceStatus

    def to_dict(self, tz=None) -> dict:
        return {
            "timestamp": format_timestamp(self.ts, tz),
            "latency": self.latency,
            "bandwidth": self.bandwidth,
            "packetLoss": self.packet_loss,
            "status": self.status.value,
        }


@dataclass(frozen=True)
class AlertRecord:
    """An entry in the global alert log."""

    ts: datetime
    device_id: str
    device_name: str
    device_ip: str
    event_type: EventType
    severity: Severity
    message: str

    def to_dict(self, tz=None) -> dict:
        return {
            "timestamp": format_timestamp(self.ts, tz),
            "deviceId": self.device_id,
            "deviceName": self.device_name,
            "deviceIp": self.device_ip,
            "eventType": self.event_type.value,
            "severity": self.severity.value,
            "message": self.message,
        }
