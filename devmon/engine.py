"""Device monitoring engine: probe handling, state machine, queries and commands."""

import logging
import re
import threading
import time
from dataclasses import dataclass
from datetime import datetime, timedelta
from math import ceil
from typing import Iterable

from devmon.alerts import AlertEngine, AlertLog, AlertQuery, device_label
from devmon.clock import Clock, format_time_of_day
from devmon.config import MonitorConfig
from devmon.errors import DeviceNotFoundError, FaultConflictError, InvalidInputError
from devmon.events import EventKind, EventSink, FanOutEventSink, MonitorEvent
from devmon.history import HistoryStore
from devmon.models import AlertRecord, Device, DeviceStatus, EventType, HistorySample, Severity
from devmon.prober import SIMULATED_FAULT_REASON, Prober, ProbeResult
from devmon.synthetic import MetricGenerator

logger = logging.getLogger(__name__)

DEVICE_ID_PATTERN = re.compile(r"[a-zA-Z0-9-]+")

SERVICE_NAME = "Network Monitor"
SERVICE_VERSION = "1.0.0"


@dataclass(frozen=True)
class FaultInjection:
    """Confirmation returned when a simulated outage starts."""

    device_id: str
    device_name: str
    duration_seconds: int
    recovery_at: datetime
    recovery_time: str  # HH:MM:SS in the display timezone

    def to_dict(self) -> dict:
        return {
            "message": f"Simulated outage started for {self.device_name}",
            "duration": self.duration_seconds,
            "recoveryTime": self.recovery_time,
        }


class MonitorEngine:
    """Owns the device set, their history and the alert log.

    Device state is only changed by ``poll_device`` (one probe round for one
    device) and ``inject_fault``; both hold that device's lock while mutating,
    so a probe completing and an operator forcing the device down cannot
    overwrite each other. The network probe itself runs outside the lock, and
    events are handed to subscribers only after the lock is released, so a
    subscriber may call back into the query methods.

    Everything else reads state through the query methods, which return
    plain dicts or immutable records.
    """

    def __init__(
        self,
        prober: Prober,
        config: MonitorConfig | None = None,
        sinks: Iterable[EventSink] = (),
        generator: MetricGenerator | None = None,
        clock: Clock | None = None,
    ):
        self.config = config or MonitorConfig()
        self.config.validate()

        self.prober = prober
        self.clock = clock or Clock(self.config.timezone)
        self.generator = generator or MetricGenerator()
        self.alert_engine = AlertEngine(self.config)

        self.retention = timedelta(seconds=self.config.retention_seconds)
        self.fault_duration = timedelta(seconds=self.config.fault_duration_seconds)

        self._devices = {
            cfg.id: Device(
                id=cfg.id,
                name=cfg.name,
                ip=cfg.ip,
                type=cfg.type,
                base_bandwidth=cfg.base_bandwidth,
                base_packet_loss=cfg.base_packet_loss,
            )
            for cfg in self.config.devices
        }
        self._locks = {device_id: threading.Lock() for device_id in self._devices}

        self.history = HistoryStore(self._devices)
        self.alerts = AlertLog()
        self._sink = FanOutEventSink(*sinks)
        self._started = time.monotonic()

        logger.info(
            "MonitorEngine initialized: devices=%d, fail_threshold=%d, retention=%ds",
            len(self._devices),
            self.config.fail_threshold,
            self.config.retention_seconds,
        )

    @property
    def device_ids(self) -> list[str]:
        return list(self._devices)

    @property
    def tz(self):
        return self.clock.tz

    def subscribe(self, sink: EventSink):
        """Register an additional event sink."""
        self._sink.add(sink)

    # ------------------------------------------------------------------
    # Probe cycle
    # ------------------------------------------------------------------

    def poll_device(self, device_id: str) -> ProbeResult:
        """Probe one device and apply the outcome to its state.

        Safe to call from a worker thread. Never raises for probe failures;
        whatever the prober does, the device ends up on the success or the
        failure path.

        Returns:
            The result that was applied
        """
        device = self._devices[device_id]
        lock = self._locks[device_id]

        pending = []
        with lock:
            simulated = self._resolve_fault(device, self.clock.now(), pending)
        self._publish(pending)

        result = simulated or self._probe(device)

        pending = []
        with lock:
            now = self.clock.now()
            if simulated is None:
                # Operator may have forced the device down while the probe was in flight
                result = self._resolve_fault(device, now, pending) or result
            self._apply_probe_result(device, result, now, pending)
        self._publish(pending)

        return result

    def run_round(self):
        """Probe every device in turn, then evict expired entries.

        Synchronous counterpart of a MonitorScheduler round, for callers
        without a Qt event loop such as scripts and tests.
        """
        for device_id in self._devices:
            self.poll_device(device_id)
        self.evict_expired()

    def evict_expired(self, now: datetime | None = None) -> int:
        """Drop history samples and alerts older than the retention window."""
        cutoff = (now or self.clock.now()) - self.retention
        removed = self.history.evict_older_than(cutoff)
        removed += self.alerts.evict_older_than(cutoff)
        return removed

    def _probe(self, device: Device) -> ProbeResult:
        try:
            return self.prober.probe(device.ip)
        except Exception as e:
            logger.warning(
                "Probe raised: device=%s, ip=%s, error=%s", device.id, device.ip, e, exc_info=True
            )
            return ProbeResult.unreachable(str(e) or type(e).__name__)

    def _resolve_fault(
        self, device: Device, now: datetime, pending: list[MonitorEvent]
    ) -> ProbeResult | None:
        """Handle an injected fault, if any, before a real probe.

        While the fault is active this returns the simulated failure. Once
        it has expired the injection is cleared and the device is reported
        recovered; None is returned so a real probe follows.
        """
        if not device.injected_fault:
            return None

        if device.fault_active(now):
            return ProbeResult.unreachable(SIMULATED_FAULT_REASON)

        device.injected_fault = False
        device.injected_fault_until = None
        device.consecutive_fails = 0
        device.status = DeviceStatus.ONLINE
        logger.info("Simulated outage expired: device=%s", device.id)
        self._raise_alert(
            device,
            EventType.RECOVERY,
            f"{device_label(device)} is back online after simulated outage",
            now,
            pending,
        )
        return None

    def _apply_probe_result(
        self, device: Device, result: ProbeResult, now: datetime, pending: list[MonitorEvent]
    ):
        if result.alive:
            self._handle_success(device, result.latency_ms, now, pending)
        else:
            self._handle_failure(device, result.reason, now, pending)

        self._record_sample(device, now)
        pending.append(self._device_event(device, now))

    def _handle_success(
        self,
        device: Device,
        latency_ms: float | None,
        now: datetime,
        pending: list[MonitorEvent],
    ):
        was_down = device.is_offline

        device.status = DeviceStatus.ONLINE
        device.consecutive_fails = 0
        device.latency = latency_ms if latency_ms is not None else self.generator.fallback_latency()
        device.bandwidth = self.generator.bandwidth(device.base_bandwidth)
        device.packet_loss = self.generator.packet_loss(device.base_packet_loss)

        logger.debug(
            "Probe ok: device=%s, latency=%.2f, bandwidth=%.2f, loss=%.2f",
            device.id,
            device.latency,
            device.bandwidth,
            device.packet_loss,
        )

        if was_down:
            logger.info("Device recovered: device=%s", device.id)
            self._raise_alert(
                device, EventType.RECOVERY, f"{device_label(device)} is back online", now, pending
            )

        for event_type, message in self.alert_engine.evaluate_thresholds(device):
            self._raise_alert(device, event_type, message, now, pending)

    def _handle_failure(
        self, device: Device, reason: str, now: datetime, pending: list[MonitorEvent]
    ):
        device.consecutive_fails += 1
        device.set_down_telemetry()

        logger.debug(
            "Probe failed: device=%s, fails=%d, reason=%s",
            device.id,
            device.consecutive_fails,
            reason,
        )

        if device.consecutive_fails >= self.config.fail_threshold and not device.is_offline:
            device.status = DeviceStatus.OFFLINE
            logger.info("Device down: device=%s, reason=%s", device.id, reason)
            self._raise_alert(
                device,
                EventType.DEVICE_DOWN,
                f"{device_label(device)} is not responding - {reason}",
                now,
                pending,
            )

    def _record_sample(self, device: Device, now: datetime):
        self.history.append(
            device.id,
            HistorySample(
                ts=now,
                latency=device.latency,
                bandwidth=device.bandwidth,
                packet_loss=device.packet_loss,
                status=device.status,
            ),
        )

    def _raise_alert(
        self,
        device: Device,
        event_type: EventType,
        message: str,
        now: datetime,
        pending: list[MonitorEvent],
    ):
        record = self.alert_engine.build(device, event_type, message, now)
        self.alerts.append(record)
        pending.append(MonitorEvent(EventKind.ALERT, record.to_dict(self.tz)))

    def _device_event(self, device: Device, now: datetime) -> MonitorEvent:
        payload = device.to_dict(self.tz)
        payload["timestamp"] = self.clock.format(now)
        return MonitorEvent(EventKind.DEVICE_UPDATE, payload)

    def _publish(self, events: list[MonitorEvent]):
        """Hand events to the sinks. Never called with a device lock held."""
        for event in events:
            self._sink.publish(event)

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def inject_fault(self, device_id: str) -> FaultInjection:
        """Force a device down for the configured fault duration.

        The device goes offline immediately. It comes back through the
        normal probe round once the duration has elapsed.

        Raises:
            InvalidInputError: ``device_id`` is malformed
            DeviceNotFoundError: no such device
            FaultConflictError: an injected fault is already in progress
        """
        device = self._resolve(device_id)

        pending = []
        with self._locks[device.id]:
            now = self.clock.now()

            if device.injected_fault:
                remaining = 0.0
                if device.injected_fault_until is not None:
                    remaining = max(0.0, (device.injected_fault_until - now).total_seconds())
                raise FaultConflictError(device.id, ceil(remaining))

            device.injected_fault = True
            device.injected_fault_until = now + self.fault_duration
            device.consecutive_fails = self.config.fail_threshold
            device.status = DeviceStatus.OFFLINE
            device.set_down_telemetry()

            duration = self.config.fault_duration_seconds
            logger.info("Simulated outage started: device=%s, duration=%ds", device.id, duration)
            self._raise_alert(
                device,
                EventType.SIMULATED_FAULT_START,
                f"{device_label(device)} - simulated outage started ({duration} seconds)",
                now,
                pending,
            )
            pending.append(self._device_event(device, now))

            injection = FaultInjection(
                device_id=device.id,
                device_name=device.name,
                duration_seconds=duration,
                recovery_at=device.injected_fault_until,
                recovery_time=format_time_of_day(device.injected_fault_until, self.tz),
            )

        self._publish(pending)
        return injection

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def list_devices(self) -> list[dict]:
        """Current live state of every device, in configuration order."""
        timestamp = self.clock.timestamp()
        devices = []
        for device_id in self._devices:
            snapshot = self._snapshot(device_id)
            snapshot["lastUpdate"] = timestamp
            devices.append(snapshot)
        return devices

    def get_device(self, device_id: str) -> dict:
        """Live state of one device plus its retained history.

        Raises:
            InvalidInputError: ``device_id`` is malformed
            DeviceNotFoundError: no such device
        """
        device = self._resolve(device_id)
        snapshot = self._snapshot(device.id)
        snapshot["history"] = [
            sample.to_dict(self.tz) for sample in self.history.samples(device.id)
        ]
        return snapshot

    def device_history(self, device_id: str) -> list[HistorySample]:
        device = self._resolve(device_id)
        return self.history.samples(device.id)

    def get_alerts(
        self, severity: Severity | str | None = None, limit: int | None = None
    ) -> AlertQuery:
        """Most recent alerts first, optionally filtered by severity.

        An unrecognized severity string applies no filter. ``limit``
        defaults to 100 and is capped at 1000.
        """
        if isinstance(severity, str) and not isinstance(severity, Severity):
            try:
                severity = Severity(severity)
            except ValueError:
                logger.debug("Ignoring unknown severity filter: %r", severity)
                severity = None

        if limit is None or limit <= 0:
            limit = self.config.alert_query_default_limit
        limit = min(limit, self.config.alert_query_max_limit)

        return self.alerts.query(severity=severity, limit=limit)

    def alert_log(self) -> list[AlertRecord]:
        """Every retained alert in chronological order."""
        return self.alerts.snapshot()

    def status(self) -> dict:
        return {
            "server": SERVICE_NAME,
            "version": SERVICE_VERSION,
            "uptime": time.monotonic() - self._started,
            "timestamp": self.clock.timestamp(),
            "devices": len(self._devices),
            "alerts": len(self.alerts),
        }

    def replay_events(self, recent_alerts: int = 20) -> list[MonitorEvent]:
        """Events that bring a newly attached subscriber up to date.

        One device update per device followed by the most recent alerts,
        oldest first.
        """
        timestamp = self.clock.timestamp()
        events = []
        for device_id in self._devices:
            payload = self._snapshot(device_id)
            payload["timestamp"] = timestamp
            events.append(MonitorEvent(EventKind.DEVICE_UPDATE, payload))
        for record in self.alerts.tail(recent_alerts):
            events.append(MonitorEvent(EventKind.ALERT, record.to_dict(self.tz)))
        return events

    def _snapshot(self, device_id: str) -> dict:
        with self._locks[device_id]:
            return self._devices[device_id].to_dict(self.tz)

    def _resolve(self, device_id: str) -> Device:
        if not isinstance(device_id, str) or not DEVICE_ID_PATTERN.fullmatch(device_id):
            raise InvalidInputError(f"Invalid device ID format: {device_id!r}")
        device = self._devices.get(device_id)
        if device is None:
            raise DeviceNotFoundError(device_id)
        return device
