"""Entry point for DevMon application."""

import logging
import os
import signal
import sys

from PySide6.QtCore import QCoreApplication, QTimer

from devmon.config import MonitorConfig
from devmon.engine import MonitorEngine
from devmon.events import EventKind, QueueEventSink, SignalEventSink
from devmon.fake_prober import FakeProber
from devmon.logging_config import configure_logging
from devmon.scheduler import MonitorScheduler

# Configure logging early
configure_logging()
logger = logging.getLogger(__name__)


def build_prober(config: MonitorConfig):
    """Pick the ping prober, falling back to the simulated one.

    Returns:
        (prober, fallback message or None)
    """
    if os.environ.get("DEVMON_PROBER", "").lower() == "fake":
        logger.info("Fake prober explicitly requested via environment variable")
        return FakeProber(), "Using simulated probes (DEVMON_PROBER=fake)"

    try:
        from devmon.prober_ping import PingProber

        prober = PingProber(timeout_ms=config.probe_timeout_ms)
        logger.info("PingProber initialized successfully")
        return prober, None
    except ImportError as e:
        logger.warning("PingProber unavailable: %s", e)
        return FakeProber(), "Using simulated probes (real probing unavailable)"
    except ValueError as e:
        logger.error("PingProber configuration invalid: %s", e)
        return FakeProber(), "Using simulated probes (configuration error)"
    except OSError as e:
        logger.warning("Ping command unavailable: %s", e)
        return FakeProber(), "Using simulated probes (ping command not available)"


def log_device_update(payload: dict):
    logger.info(
        "[DEVICE] %s %s latency=%.2fms bandwidth=%.2fMbps loss=%.2f%%",
        payload.get("id"),
        payload.get("status"),
        payload.get("latency", 0),
        payload.get("bandwidth", 0),
        payload.get("packetLoss", 0),
    )


def drain_events(queue_sink: QueueEventSink) -> int:
    """Log every queued device update; alerts are already logged by the alert log."""
    events = queue_sink.drain()
    for event in events:
        if event.kind == EventKind.DEVICE_UPDATE:
            log_device_update(event.payload)
    dropped = queue_sink.take_dropped()
    if dropped:
        logger.warning("Event queue overflowed: dropped=%d", dropped)
    return len(events)


def main():
    """Main entry point for the DevMon application."""
    headless = os.environ.get("DEVMON_HEADLESS", "").lower() in ("1", "true", "yes")

    if headless:
        app = QCoreApplication(sys.argv)
    else:
        from PySide6.QtWidgets import QApplication

        app = QApplication(sys.argv)

    config = MonitorConfig.from_env()
    prober, user_message = build_prober(config)

    sink = SignalEventSink()
    engine = MonitorEngine(prober, config=config, sinks=[sink])
    scheduler = MonitorScheduler(engine)

    logger.info(
        "%s: timezone=%s, interval=%dms, devices=%d",
        engine.status()["server"],
        config.timezone,
        config.interval_ms,
        len(engine.device_ids),
    )

    # Let Ctrl+C stop the Qt event loop (handlers run only when Python gets control)
    signal.signal(signal.SIGINT, lambda *_: app.quit())
    signal.signal(signal.SIGTERM, lambda *_: app.quit())
    wakeup_timer = QTimer()
    wakeup_timer.timeout.connect(lambda: None)
    wakeup_timer.start(200)

    if headless:
        # Workers publish into the queue; the main thread drains it
        queue_sink = QueueEventSink()
        engine.subscribe(queue_sink)
        drain_timer = QTimer()
        drain_timer.timeout.connect(lambda: drain_events(queue_sink))
        drain_timer.start(500)
        scheduler.start()
        exit_code = app.exec()
        scheduler.stop()
        scheduler.thread_pool.waitForDone(config.probe_timeout_ms + 1000)
        drain_events(queue_sink)
        sys.exit(exit_code)

    from devmon.ui.main_window import MainWindow

    window = MainWindow(engine, scheduler, sink)
    window.show()
    window.start_monitoring()

    if user_message:
        window.status_label.setText(f"Status: {user_message}")
        window.status_label.setStyleSheet("font-weight: bold; color: orange;")

    sys.exit(app.exec())


if __name__ == "__main__":
    main()
