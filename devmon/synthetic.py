"""Synthetic bandwidth and packet-loss telemetry.

Real bandwidth measurement is out of scope. These values only need to be
internally consistent and cross the alert thresholds at a steady rate, so
the ranges below are fixed design constants rather than measurements.
"""

import random
import threading

BANDWIDTH_MIN = 10.0
BANDWIDTH_MAX = 100.0
BANDWIDTH_FLUCTUATION = 20.0  # half-width around the baseline
BANDWIDTH_SPIKE_PROBABILITY = 0.05
BANDWIDTH_SPIKE = 20.0

PACKET_LOSS_MIN = 0.0
PACKET_LOSS_MAX = 2.0
PACKET_LOSS_FLUCTUATION = 0.5
PACKET_LOSS_SPIKE_PROBABILITY = 0.10
PACKET_LOSS_SPIKE_MIN = 3.0
PACKET_LOSS_SPIKE_MAX = 5.0

FALLBACK_LATENCY_MIN = 5.0
FALLBACK_LATENCY_SPAN = 50.0


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


class MetricGenerator:
    """Produces synthetic telemetry from a device's baseline constants.

    The random source is injected so tests can drive exact values. Calls may
    come from several probe workers at once, so draws are serialized.
    """

    def __init__(self, rng: random.Random | None = None, seed: int | None = None):
        self._random = rng if rng is not None else random.Random(seed)
        self._lock = threading.Lock()

    def bandwidth(self, base_bandwidth: float) -> float:
        """Return a bandwidth sample in Mbps, always within [10, 100]."""
        with self._lock:
            fluctuation = (self._random.random() - 0.5) * 2 * BANDWIDTH_FLUCTUATION
            value = _clamp(base_bandwidth + fluctuation, BANDWIDTH_MIN, BANDWIDTH_MAX)

            if self._random.random() < BANDWIDTH_SPIKE_PROBABILITY:
                value = min(BANDWIDTH_MAX, value + BANDWIDTH_SPIKE)

        return round(value, 2)

    def packet_loss(self, base_packet_loss: float) -> float:
        """Return a packet-loss sample in percent, always within [0, 5]."""
        with self._lock:
            if self._random.random() < PACKET_LOSS_SPIKE_PROBABILITY:
                span = PACKET_LOSS_SPIKE_MAX - PACKET_LOSS_SPIKE_MIN
                return round(PACKET_LOSS_SPIKE_MIN + self._random.random() * span, 2)

            fluctuation = (self._random.random() - 0.5) * 2 * PACKET_LOSS_FLUCTUATION

        value = _clamp(base_packet_loss + fluctuation, PACKET_LOSS_MIN, PACKET_LOSS_MAX)
        return round(value, 2)

    def fallback_latency(self) -> float:
        """Latency to report when a reply carried no round-trip time."""
        with self._lock:
            return round(FALLBACK_LATENCY_MIN + self._random.random() * FALLBACK_LATENCY_SPAN, 2)
