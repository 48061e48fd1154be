"""Worker classes for background probe tasks."""

import logging

from PySide6.QtCore import QObject, QRunnable, Signal

from devmon.engine import MonitorEngine

logger = logging.getLogger(__name__)


class WorkerSignals(QObject):
    """Signals for communicating between worker threads and main thread."""

    error = Signal(str, str)  # Emits (device_id, error message)
    finished = Signal(str, int)  # Emits (device_id, round_id) when worker completes


class ProbeWorker(QRunnable):
    """Worker that executes engine.poll_device() in background thread."""

    def __init__(self, engine: MonitorEngine, device_id: str, round_id: int):
        super().__init__()
        self.engine = engine
        self.device_id = device_id
        self.round_id = round_id
        self.signals = WorkerSignals()

    def run(self):
        """Execute the probe and state update in background thread."""
        try:
            logger.debug("Worker starting: device=%s, round_id=%d", self.device_id, self.round_id)

            # May block for the full probe timeout on an unreachable device
            result = self.engine.poll_device(self.device_id)

            logger.debug(
                "Worker completed: device=%s, round_id=%d, alive=%s",
                self.device_id,
                self.round_id,
                result.alive,
            )

        except Exception as e:
            logger.exception(
                "Worker exception: device=%s, round_id=%d, error=%s",
                self.device_id,
                self.round_id,
                str(e),
            )
            self.signals.error.emit(self.device_id, str(e))

        finally:
            # Always signal completion so the round can close
            self.signals.finished.emit(self.device_id, self.round_id)
