"""Publication boundary between the monitoring engine and its subscribers."""

import logging
import queue
import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Protocol

from PySide6.QtCore import QObject, Signal

logger = logging.getLogger(__name__)


class EventKind(str, Enum):
    DEVICE_UPDATE = "deviceUpdate"
    ALERT = "alert"


@dataclass(frozen=True)
class MonitorEvent:
    """A typed event published by the engine."""

    kind: EventKind
    payload: dict = field(default_factory=dict)


class EventSink(Protocol):
    """Protocol for anything that receives engine events.

    ``publish`` is called from probe worker threads and must return promptly.
    """

    def publish(self, event: MonitorEvent) -> None:
        ...


class SignalEventSink(QObject):
    """Re-emits engine events as Qt signals.

    Slots living on another thread (e.g. the GUI thread) receive the events
    through queued connections, so publishing never waits on a subscriber.
    """

    device_update = Signal(object)  # device payload dict
    alert = Signal(object)  # alert payload dict

    def publish(self, event: MonitorEvent) -> None:
        if event.kind == EventKind.DEVICE_UPDATE:
            self.device_update.emit(event.payload)
        elif event.kind == EventKind.ALERT:
            self.alert.emit(event.payload)


class QueueEventSink:
    """Buffers events in a bounded queue for a consumer thread.

    When the queue is full the oldest event is dropped to make room; the
    producer never blocks. Headless mode drains one from a timer on the main
    thread, and an external transport can consume it the same way.
    """

    def __init__(self, maxsize: int = 1000):
        if maxsize <= 0:
            raise ValueError("maxsize must be positive")
        self._queue = queue.Queue(maxsize=maxsize)
        self._dropped_lock = threading.Lock()
        self.dropped = 0

    def publish(self, event: MonitorEvent) -> None:
        while True:
            try:
                self._queue.put_nowait(event)
                return
            except queue.Full:
                try:
                    self._queue.get_nowait()
                    with self._dropped_lock:
                        self.dropped += 1
                    logger.debug("Event queue full, dropped oldest event (total=%d)", self.dropped)
                except queue.Empty:
                    pass

    def get(self, timeout: float | None = None) -> MonitorEvent | None:
        """Wait up to ``timeout`` seconds for the next event."""
        try:
            return self._queue.get(timeout=timeout)
        except queue.Empty:
            return None

    def take_dropped(self) -> int:
        """Return the number of events dropped since the last call and reset it."""
        with self._dropped_lock:
            dropped, self.dropped = self.dropped, 0
        return dropped

    def drain(self) -> list[MonitorEvent]:
        """Remove and return every queued event without waiting."""
        events = []
        while True:
            try:
                events.append(self._queue.get_nowait())
            except queue.Empty:
                return events


class FanOutEventSink:
    """Forwards each event to several sinks; one failing sink does not stop the rest."""

    def __init__(self, *sinks: EventSink):
        self._sinks = list(sinks)

    def add(self, sink: EventSink):
        self._sinks.append(sink)

    def publish(self, event: MonitorEvent) -> None:
        for sink in self._sinks:
            try:
                sink.publish(event)
            except Exception:
                logger.exception(
                    "Event sink failed: sink=%s, kind=%s",
                    type(sink).__name__,
                    event.kind.value,
                )
