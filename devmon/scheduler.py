"""Periodic probe scheduler with one concurrent probe per device."""

import logging

from PySide6.QtCore import QObject, QThreadPool, QTimer, Signal

from devmon.engine import MonitorEngine
from devmon.workers import ProbeWorker

logger = logging.getLogger(__name__)


class MonitorScheduler(QObject):
    """Drives probe rounds for every device of a MonitorEngine.

    Key features:
    - One timer firing = one round: a probe worker per device
    - Per-device in-flight tracking (a device still being probed is skipped,
      so a slow probe never delays the other devices)
    - Retention eviction once every probe dispatched in a round has finished
    - ``tick_now()`` runs a round on demand

    Thread-safe: All scheduler state access on Qt main thread via signals/slots.
    """

    # Signals
    round_finished = Signal(int)  # round_id
    error = Signal(str, str)  # (device_id, error_msg)

    def __init__(
        self,
        engine: MonitorEngine,
        interval_ms: int | None = None,
        parent=None,
    ):
        """Initialize scheduler.

        Args:
            engine: Engine whose devices are probed
            interval_ms: Round interval in milliseconds (default: engine config)
            parent: Qt parent object
        """
        super().__init__(parent)

        self.engine = engine
        self.interval_ms = interval_ms or engine.config.interval_ms

        # Per-device in-flight flags
        self._in_flight = {device_id: False for device_id in engine.device_ids}

        # round_id -> device ids still outstanding in that round
        self._pending_rounds: dict[int, set[str]] = {}
        self._round_id = 0

        # Keep workers referenced until they report back
        self._workers: dict[str, ProbeWorker] = {}

        # Dedicated pool sized so every device can be probed at once
        self.thread_pool = QThreadPool(self)
        self.thread_pool.setMaxThreadCount(max(1, len(self._in_flight)))

        self.timer = QTimer(self)
        self.timer.timeout.connect(self.tick_now)

        self.is_running = False

    def start(self):
        """Run an initial round immediately, then one every interval."""
        if self.is_running:
            return

        self.is_running = True
        self.tick_now()
        self.timer.start(self.interval_ms)
        logger.info(
            "Monitoring started: %d devices, interval=%dms",
            len(self._in_flight),
            self.interval_ms,
        )

    def stop(self):
        """Stop the timer. Probes already in flight complete normally."""
        if not self.is_running:
            return

        self.is_running = False
        self.timer.stop()
        logger.info("Monitoring stopped (round_id=%d)", self._round_id)

    def set_interval(self, interval_ms: int):
        """Update round interval.

        Args:
            interval_ms: New interval in milliseconds
        """
        if interval_ms <= 0:
            raise ValueError("interval_ms must be positive")
        self.interval_ms = interval_ms
        if self.timer.isActive():
            self.timer.setInterval(interval_ms)
        logger.debug("Interval updated: %dms", interval_ms)

    def tick_now(self) -> int:
        """Start one probe round.

        Returns:
            The id of the round that was started
        """
        self._round_id += 1
        round_id = self._round_id

        scheduled = set()
        for device_id, busy in self._in_flight.items():
            if busy:
                logger.debug("Device still in flight, skipped: device=%s", device_id)
                continue
            self._schedule_probe(device_id, round_id)
            scheduled.add(device_id)

        if not scheduled:
            self._finish_round(round_id)
        else:
            self._pending_rounds[round_id] = scheduled
            logger.debug("Round %d: scheduled %d probes", round_id, len(scheduled))

        return round_id

    def _schedule_probe(self, device_id: str, round_id: int):
        self._in_flight[device_id] = True

        worker = ProbeWorker(self.engine, device_id, round_id)
        worker.signals.error.connect(self._on_probe_error)
        worker.signals.finished.connect(self._on_probe_finished)
        self._workers[device_id] = worker

        self.thread_pool.start(worker)

    def _on_probe_error(self, device_id: str, error_msg: str):
        logger.error("Probe error: device=%s, error=%s", device_id, error_msg)
        self.error.emit(device_id, error_msg)

    def _on_probe_finished(self, device_id: str, round_id: int):
        """Clear the in-flight flag and close the round if it was the last probe."""
        self._in_flight[device_id] = False
        self._workers.pop(device_id, None)

        pending = self._pending_rounds.get(round_id)
        if pending is None:
            return

        pending.discard(device_id)
        if not pending:
            del self._pending_rounds[round_id]
            self._finish_round(round_id)

    def _finish_round(self, round_id: int):
        try:
            removed = self.engine.evict_expired()
        except Exception:
            logger.exception("Retention eviction failed: round_id=%d", round_id)
        else:
            logger.debug("Round %d finished: evicted=%d", round_id, removed)
        self.round_finished.emit(round_id)

    def in_flight_count(self) -> int:
        return sum(1 for busy in self._in_flight.values() if busy)

    def get_stats(self):
        """Get scheduler statistics.

        Returns:
            Dict with scheduler state info
        """
        return {
            "devices": len(self._in_flight),
            "in_flight": self.in_flight_count(),
            "pending_rounds": len(self._pending_rounds),
            "running": self.is_running,
            "round_id": self._round_id,
            "interval_ms": self.interval_ms,
        }
