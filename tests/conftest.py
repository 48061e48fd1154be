"""Shared fixtures for DevMon tests."""

import os
from datetime import datetime, timedelta

import pytest

os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

from devmon.clock import Clock  # noqa: E402
from devmon.config import MonitorConfig  # noqa: E402
from devmon.engine import MonitorEngine  # noqa: E402
from devmon.events import EventKind  # noqa: E402
from devmon.prober import ProbeResult  # noqa: E402
from devmon.synthetic import MetricGenerator  # noqa: E402


class ManualClock(Clock):
    """Clock whose time only moves when advanced."""

    def __init__(self, start: datetime | None = None, timezone: str = "Asia/Jakarta"):
        super().__init__(timezone)
        self._now = start or datetime(2024, 5, 1, 12, 0, 0, tzinfo=self.tz)

    def now(self) -> datetime:
        return self._now

    def advance(self, seconds: float):
        self._now += timedelta(seconds=seconds)


class ScriptedProber:
    """Prober returning a configured result per ip (reachable by default)."""

    def __init__(self, latency_ms: float | None = 12.5):
        self.default = ProbeResult.reachable(latency_ms)
        self.results = {}
        self.errors = {}
        self.calls = []

    def set_down(self, ip: str, reason: str = "Ping timeout"):
        self.results[ip] = ProbeResult.unreachable(reason)

    def set_up(self, ip: str, latency_ms: float | None = 12.5):
        self.results[ip] = ProbeResult.reachable(latency_ms)

    def set_error(self, ip: str, error: Exception):
        self.errors[ip] = error

    def probe(self, ip: str) -> ProbeResult:
        self.calls.append(ip)
        if ip in self.errors:
            raise self.errors[ip]
        return self.results.get(ip, self.default)


class ScriptedRandom:
    """Stand-in for random.Random that replays fixed values."""

    def __init__(self, *values: float, default: float = 0.5):
        self.values = list(values)
        self.default = default

    def random(self) -> float:
        if self.values:
            return self.values.pop(0)
        return self.default


class RecordingSink:
    """Event sink that keeps everything it receives."""

    def __init__(self):
        self.events = []

    def publish(self, event):
        self.events.append(event)

    def of_kind(self, kind: EventKind):
        return [event.payload for event in self.events if event.kind == kind]

    @property
    def alerts(self):
        return self.of_kind(EventKind.ALERT)

    @property
    def device_updates(self):
        return self.of_kind(EventKind.DEVICE_UPDATE)


@pytest.fixture
def clock():
    return ManualClock()


@pytest.fixture
def prober():
    return ScriptedProber()


@pytest.fixture
def sink():
    return RecordingSink()


@pytest.fixture
def calm_generator():
    """Generator whose draws are all 0.5: baseline values, no spikes."""
    return MetricGenerator(rng=ScriptedRandom())


@pytest.fixture
def config():
    return MonitorConfig()


@pytest.fixture
def engine(prober, config, sink, calm_generator, clock):
    return MonitorEngine(
        prober, config=config, sinks=[sink], generator=calm_generator, clock=clock
    )


@pytest.fixture(scope="session")
def qapp():
    """Create QApplication instance for tests."""
    from PySide6.QtWidgets import QApplication

    app = QApplication.instance()
    if app is None:
        app = QApplication([])
    yield app
