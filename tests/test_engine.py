"""Tests for the device state machine in MonitorEngine."""

from datetime import timedelta

import pytest

from devmon.config import DeviceConfig, MonitorConfig
from devmon.engine import MonitorEngine
from devmon.models import DeviceStatus, EventType, Severity
from devmon.synthetic import MetricGenerator

from conftest import ScriptedRandom

ROUTER = "router-1"
ROUTER_IP = "192.168.1.1"


def device_state(engine, device_id=ROUTER):
    return engine.get_device(device_id)


def alert_types(engine):
    return [record.event_type for record in engine.alert_log()]


class TestInitialState:
    """Engine construction."""

    def test_devices_start_online_with_zeroed_state(self, engine):
        """Every configured device starts online with no failures."""
        devices = engine.list_devices()

        assert [d["id"] for d in devices] == ["router-1", "switch-1", "firewall-1"]
        for device in devices:
            assert device["status"] == "online"
            assert device["latency"] == 0
            assert device["bandwidth"] == 0
            assert device["packetLoss"] == 0
            assert device["injectedFault"] is False
            assert device["injectedFaultUntil"] is None
            assert device["lastUpdate"] == "2024-05-01 12:00:00"

    def test_history_and_alerts_start_empty(self, engine):
        assert engine.alert_log() == []
        for device_id in engine.device_ids:
            assert engine.device_history(device_id) == []

    def test_invalid_config_rejected(self, prober):
        with pytest.raises(ValueError, match="fail_threshold must be positive"):
            MonitorEngine(prober, config=MonitorConfig(fail_threshold=0))


class TestProbeSuccess:
    """Success path of the state machine."""

    def test_success_sets_telemetry(self, engine, prober):
        """Latency comes from the prober, bandwidth and loss from the generator."""
        prober.set_up(ROUTER_IP, latency_ms=17.25)

        engine.poll_device(ROUTER)

        state = device_state(engine)
        assert state["status"] == "online"
        assert state["latency"] == 17.25
        assert state["bandwidth"] == 45.0
        assert state["packetLoss"] == 0.5

    def test_missing_latency_uses_fallback(self, engine, prober):
        """A reply without a round-trip time gets a latency in [5, 55]."""
        prober.set_up(ROUTER_IP, latency_ms=None)

        engine.poll_device(ROUTER)

        assert device_state(engine)["latency"] == 30.0

    def test_success_appends_history_and_publishes(self, engine, sink, clock):
        engine.poll_device(ROUTER)

        history = engine.device_history(ROUTER)
        assert len(history) == 1
        assert history[0].ts == clock.now()
        assert history[0].status == DeviceStatus.ONLINE

        updates = sink.device_updates
        assert len(updates) == 1
        assert updates[0]["id"] == ROUTER
        assert updates[0]["timestamp"] == "2024-05-01 12:00:00"

    def test_success_while_online_emits_no_alert(self, engine):
        engine.poll_device(ROUTER)
        assert engine.alert_log() == []

    def test_only_polled_device_changes(self, engine, prober):
        prober.set_down(ROUTER_IP)

        engine.poll_device(ROUTER)

        assert device_state(engine)["packetLoss"] == 100
        assert device_state(engine, "switch-1")["packetLoss"] == 0
        assert engine.device_history("switch-1") == []


class TestProbeFailure:
    """Failure path and the consecutive-failure threshold."""

    def test_failure_sets_down_telemetry(self, engine, prober):
        prober.set_down(ROUTER_IP)

        engine.poll_device(ROUTER)

        state = device_state(engine)
        assert (state["latency"], state["bandwidth"], state["packetLoss"]) == (0, 0, 100)
        # One failure is below the threshold
        assert state["status"] == "online"

    def test_consecutive_fails_increment_by_one(self, engine, prober):
        prober.set_down(ROUTER_IP)

        for expected in range(1, 6):
            engine.poll_device(ROUTER)
            assert engine._devices[ROUTER].consecutive_fails == expected

    def test_success_resets_fail_counter(self, engine, prober):
        prober.set_down(ROUTER_IP)
        engine.poll_device(ROUTER)
        engine.poll_device(ROUTER)

        prober.set_up(ROUTER_IP)
        engine.poll_device(ROUTER)

        assert engine._devices[ROUTER].consecutive_fails == 0
        assert engine.alert_log() == []

    def test_offline_exactly_at_threshold(self, engine, prober):
        """Status flips on the third failure, not before."""
        prober.set_down(ROUTER_IP, reason="Ping timeout")

        engine.poll_device(ROUTER)
        engine.poll_device(ROUTER)
        assert device_state(engine)["status"] == "online"

        engine.poll_device(ROUTER)
        assert device_state(engine)["status"] == "offline"

        alerts = engine.alert_log()
        assert len(alerts) == 1
        assert alerts[0].event_type == EventType.DEVICE_DOWN
        assert alerts[0].severity == Severity.DANGER
        assert alerts[0].message == "Main Router (192.168.1.1) is not responding - Ping timeout"

    def test_device_down_is_edge_triggered(self, engine, prober):
        """Further failures while offline do not repeat DEVICE_DOWN."""
        prober.set_down(ROUTER_IP)

        for _ in range(8):
            engine.poll_device(ROUTER)

        assert alert_types(engine) == [EventType.DEVICE_DOWN]

    def test_custom_threshold(self, prober, sink, calm_generator, clock):
        config = MonitorConfig(fail_threshold=1)
        engine = MonitorEngine(
            prober, config=config, sinks=[sink], generator=calm_generator, clock=clock
        )
        prober.set_down(ROUTER_IP)

        engine.poll_device(ROUTER)

        assert device_state(engine)["status"] == "offline"

    def test_every_failure_recorded_in_history(self, engine, prober, sink):
        prober.set_down(ROUTER_IP)

        for _ in range(4):
            engine.poll_device(ROUTER)

        statuses = [sample.status for sample in engine.device_history(ROUTER)]
        assert statuses == [
            DeviceStatus.ONLINE,
            DeviceStatus.ONLINE,
            DeviceStatus.OFFLINE,
            DeviceStatus.OFFLINE,
        ]
        assert len(sink.device_updates) == 4


class TestProbeErrors:
    """A prober that raises is treated as an unreachable device."""

    def test_exception_becomes_failure(self, engine, prober):
        prober.set_error(ROUTER_IP, OSError("Network is unreachable"))

        result = engine.poll_device(ROUTER)

        assert result.alive is False
        assert result.reason == "Network is unreachable"
        assert engine._devices[ROUTER].consecutive_fails == 1

    def test_exception_reason_used_in_down_alert(self, engine, prober):
        prober.set_error(ROUTER_IP, RuntimeError("boom"))

        engine.run_round()
        engine.run_round()
        engine.run_round()

        assert engine.alert_log()[0].message.endswith("- boom")

    def test_one_failing_device_does_not_stop_round(self, engine, prober):
        prober.set_error(ROUTER_IP, RuntimeError("boom"))

        engine.run_round()

        assert prober.calls == ["192.168.1.1", "192.168.1.2", "192.168.1.3"]
        assert device_state(engine, "switch-1")["bandwidth"] == 65.0


class TestRecovery:
    """Offline to online transitions."""

    def test_recovery_emitted_once(self, engine, prober):
        prober.set_down(ROUTER_IP)
        for _ in range(3):
            engine.poll_device(ROUTER)

        prober.set_up(ROUTER_IP)
        engine.poll_device(ROUTER)
        engine.poll_device(ROUTER)

        assert alert_types(engine) == [EventType.DEVICE_DOWN, EventType.RECOVERY]
        recovery = engine.alert_log()[1]
        assert recovery.severity == Severity.SUCCESS
        assert recovery.message == "Main Router (192.168.1.1) is back online"

    def test_recovery_before_threshold_alerts(self, prober, sink, clock):
        """RECOVERY precedes any threshold alert raised on the same tick."""
        engine = MonitorEngine(
            prober,
            sinks=[sink],
            generator=MetricGenerator(rng=ScriptedRandom(1.0, 0.01)),
            clock=clock,
        )
        prober.set_down(ROUTER_IP)
        for _ in range(3):
            engine.poll_device(ROUTER)

        prober.set_up(ROUTER_IP, latency_ms=250.0)
        engine.poll_device(ROUTER)

        assert alert_types(engine) == [
            EventType.DEVICE_DOWN,
            EventType.RECOVERY,
            EventType.HIGH_LATENCY,
            EventType.HIGH_BANDWIDTH,
        ]


class TestThresholdAlerts:
    """Threshold evaluation on the success path."""

    def make_engine(self, prober, sink, clock, *draws):
        return MonitorEngine(
            prober,
            sinks=[sink],
            generator=MetricGenerator(rng=ScriptedRandom(*draws)),
            clock=clock,
        )

    def test_high_latency(self, engine, prober):
        prober.set_up(ROUTER_IP, latency_ms=200.01)

        engine.poll_device(ROUTER)

        alerts = engine.alert_log()
        assert [a.event_type for a in alerts] == [EventType.HIGH_LATENCY]
        assert alerts[0].severity == Severity.WARNING
        assert alerts[0].message == "Main Router (192.168.1.1) high latency: 200.01ms"

    def test_latency_at_threshold_does_not_alert(self, engine, prober):
        prober.set_up(ROUTER_IP, latency_ms=200.0)
        engine.poll_device(ROUTER)
        assert engine.alert_log() == []

    def test_high_bandwidth(self, prober, sink, clock):
        # base 45 + (1.0 - 0.5) * 40 = 65, spike draw 0.01 -> 85
        engine = self.make_engine(prober, sink, clock, 1.0, 0.01)

        engine.poll_device(ROUTER)

        alerts = engine.alert_log()
        assert [a.event_type for a in alerts] == [EventType.HIGH_BANDWIDTH]
        assert alerts[0].message == "Main Router (192.168.1.1) high bandwidth: 85.00 Mbps"

    def test_high_packet_loss(self, prober, sink, clock):
        # bandwidth draws 0.5, 0.5; loss spike draw 0.05 then 0.6 -> 3 + 1.2
        engine = self.make_engine(prober, sink, clock, 0.5, 0.5, 0.05, 0.6)

        engine.poll_device(ROUTER)

        alerts = engine.alert_log()
        assert [a.event_type for a in alerts] == [EventType.HIGH_PACKET_LOSS]
        assert alerts[0].message == "Main Router (192.168.1.1) high packet loss: 4.20%"

    def test_all_three_on_one_tick(self, prober, sink, clock):
        engine = self.make_engine(prober, sink, clock, 1.0, 0.01, 0.05, 0.6)
        prober.set_up(ROUTER_IP, latency_ms=350.0)

        engine.poll_device(ROUTER)

        assert alert_types(engine) == [
            EventType.HIGH_LATENCY,
            EventType.HIGH_BANDWIDTH,
            EventType.HIGH_PACKET_LOSS,
        ]

    def test_threshold_alerts_repeat_each_tick(self, engine, prober):
        """Threshold alerts are level-triggered, unlike DEVICE_DOWN."""
        prober.set_up(ROUTER_IP, latency_ms=500.0)

        engine.poll_device(ROUTER)
        engine.poll_device(ROUTER)

        assert alert_types(engine) == [EventType.HIGH_LATENCY, EventType.HIGH_LATENCY]

    def test_no_threshold_alerts_on_failure(self, engine, prober):
        prober.set_down(ROUTER_IP)
        engine.poll_device(ROUTER)
        assert engine.alert_log() == []

    def test_alerts_published_immediately(self, engine, prober, sink):
        prober.set_up(ROUTER_IP, latency_ms=500.0)

        engine.poll_device(ROUTER)

        kinds = [event.kind.value for event in sink.events]
        assert kinds == ["alert", "deviceUpdate"]
        assert sink.alerts[0]["eventType"] == "HIGH_LATENCY"
        assert sink.alerts[0]["deviceId"] == ROUTER


class TestScenarios:
    """End-to-end behavior over several ticks."""

    def test_down_then_recovery(self, engine, prober):
        """Three failed probes take a device down; one success brings it back."""
        assert engine._devices[ROUTER].base_bandwidth == 45
        prober.set_down(ROUTER_IP)

        for _ in range(3):
            engine.run_round()

        state = device_state(engine)
        assert state["status"] == "offline"
        assert (state["latency"], state["bandwidth"], state["packetLoss"]) == (0, 0, 100)
        assert [a.event_type for a in engine.alert_log()] == [EventType.DEVICE_DOWN]

        prober.set_up(ROUTER_IP)
        engine.run_round()

        state = device_state(engine)
        assert state["status"] == "online"
        assert engine._devices[ROUTER].consecutive_fails == 0
        assert alert_types(engine) == [EventType.DEVICE_DOWN, EventType.RECOVERY]

    def test_status_invariant_holds_every_tick(self, engine, prober, clock):
        """Offline exactly when fails reach the threshold or a fault is injected."""
        pattern = [False, False, False, False, True, False, True, True, False, False, False]
        threshold = engine.config.fail_threshold

        for up in pattern:
            if up:
                prober.set_up(ROUTER_IP)
            else:
                prober.set_down(ROUTER_IP)
            engine.poll_device(ROUTER)
            clock.advance(5)

            device = engine._devices[ROUTER]
            expected_offline = device.consecutive_fails >= threshold or device.injected_fault
            assert device.is_offline == expected_offline


class TestCustomDevices:
    def test_engine_uses_configured_devices(self, prober, clock):
        config = MonitorConfig(
            devices=(DeviceConfig("ap-7", "Access Point", "10.0.0.7", "AP", 30.0, 1.0),)
        )
        engine = MonitorEngine(prober, config=config, clock=clock)

        engine.run_round()

        assert engine.device_ids == ["ap-7"]
        assert prober.calls == ["10.0.0.7"]
        assert len(engine.device_history("ap-7")) == 1

    def test_duplicate_ids_rejected(self, prober):
        device = DeviceConfig("ap-7", "Access Point", "10.0.0.7", "AP", 30.0, 1.0)
        with pytest.raises(ValueError, match="unique"):
            MonitorEngine(prober, config=MonitorConfig(devices=(device, device)))


class TestRetentionThroughEngine:
    def test_run_round_evicts_old_history(self, engine, clock):
        engine.run_round()
        clock.advance(engine.retention.total_seconds() + 1)

        engine.run_round()

        history = engine.device_history(ROUTER)
        assert len(history) == 1
        assert history[0].ts == clock.now()

    def test_entries_inside_window_survive(self, engine, clock):
        engine.run_round()
        clock.advance((engine.retention - timedelta(seconds=1)).total_seconds())

        engine.run_round()

        assert len(engine.device_history(ROUTER)) == 2
