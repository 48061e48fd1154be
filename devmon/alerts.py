"""Alert evaluation and the global alert log."""

import logging
from dataclasses import dataclass
from datetime import datetime

from devmon.config import MonitorConfig
from devmon.history import TimeWindowBuffer
from devmon.models import AlertRecord, Device, EventType, Severity

logger = logging.getLogger(__name__)

SEVERITY_BY_EVENT = {
    EventType.DEVICE_DOWN: Severity.DANGER,
    EventType.SIMULATED_FAULT_START: Severity.DANGER,
    EventType.RECOVERY: Severity.SUCCESS,
    EventType.HIGH_LATENCY: Severity.WARNING,
    EventType.HIGH_BANDWIDTH: Severity.WARNING,
    EventType.HIGH_PACKET_LOSS: Severity.WARNING,
}

_LOG_LEVEL_BY_SEVERITY = {
    Severity.SUCCESS: logging.INFO,
    Severity.WARNING: logging.WARNING,
    Severity.DANGER: logging.WARNING,
}


def device_label(device: Device) -> str:
    return f"{device.name} ({device.ip})"


class AlertEngine:
    """Builds alert records and checks live telemetry against thresholds."""

    def __init__(self, config: MonitorConfig | None = None):
        config = config or MonitorConfig()
        self.latency_threshold = config.latency_threshold_ms
        self.bandwidth_threshold = config.bandwidth_threshold_mbps
        self.packet_loss_threshold = config.packet_loss_threshold_pct

    def build(
        self, device: Device, event_type: EventType, message: str, ts: datetime
    ) -> AlertRecord:
        return AlertRecord(
            ts=ts,
            device_id=device.id,
            device_name=device.name,
            device_ip=device.ip,
            event_type=event_type,
            severity=SEVERITY_BY_EVENT[event_type],
            message=message,
        )

    def evaluate_thresholds(self, device: Device) -> list[tuple[EventType, str]]:
        """Check each metric independently against its threshold.

        Returns:
            Zero to three (event_type, message) pairs, in latency, bandwidth,
            packet loss order
        """
        label = device_label(device)
        triggered = []

        if device.latency > self.latency_threshold:
            triggered.append(
                (EventType.HIGH_LATENCY, f"{label} high latency: {device.latency:.2f}ms")
            )
        if device.bandwidth > self.bandwidth_threshold:
            triggered.append(
                (EventType.HIGH_BANDWIDTH, f"{label} high bandwidth: {device.bandwidth:.2f} Mbps")
            )
        if device.packet_loss > self.packet_loss_threshold:
            triggered.append(
                (
                    EventType.HIGH_PACKET_LOSS,
                    f"{label} high packet loss: {device.packet_loss:.2f}%",
                )
            )

        return triggered


@dataclass(frozen=True)
class AlertQuery:
    """Result of an alert log query."""

    records: list[AlertRecord]  # newest first
    total: int  # size of the retained log before filtering


class AlertLog(TimeWindowBuffer[AlertRecord]):
    """Global, chronologically ordered alert log with age-based eviction."""

    def append(self, record: AlertRecord):
        super().append(record)
        logger.log(
            _LOG_LEVEL_BY_SEVERITY[record.severity],
            "[ALERT] %s - %s: %s",
            record.event_type.value,
            record.severity.value.upper(),
            record.message,
        )

    def query(self, severity: Severity | None = None, limit: int | None = None) -> AlertQuery:
        """Return the most recent alerts first, optionally filtered and capped."""
        records = self.snapshot()
        total = len(records)

        if severity is not None:
            records = [record for record in records if record.severity == severity]
        if limit is not None:
            records = records[-limit:] if limit > 0 else []

        records.reverse()
        return AlertQuery(records=records, total=total)
