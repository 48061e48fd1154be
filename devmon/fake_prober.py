"""Simulated prober for DevMon demos and development without network access."""

import logging
import random
import threading

from devmon.prober import ProbeResult

logger = logging.getLogger(__name__)


class FakeProber:
    """Generates plausible reachability results without touching the network."""

    def __init__(self, seed: int | None = None):
        """Initialize with optional random seed for deterministic behavior."""
        # Isolated random instance; probes run on worker threads
        self._random = random.Random(seed)
        self._lock = threading.Lock()
        self._forced_down: set[str] = set()

        # Simulation parameters
        self.base_latency = 25.0  # Base latency in ms
        self.latency_variance = 5.0  # Normal variance
        self.spike_probability = 0.05  # 5% chance of latency spike
        self.spike_multiplier = 10.0  # Spikes cross the high-latency threshold
        self.loss_probability = 0.02  # 2% chance of a lost reply

    def set_reachable(self, ip: str, reachable: bool):
        """Force ``ip`` to stay unreachable until re-enabled."""
        with self._lock:
            if reachable:
                self._forced_down.discard(ip)
            else:
                self._forced_down.add(ip)
        logger.debug("FakeProber override: ip=%s, reachable=%s", ip, reachable)

    def probe(self, ip: str) -> ProbeResult:
        if not ip or not ip.strip():
            return ProbeResult.unreachable("No address")

        with self._lock:
            if ip in self._forced_down:
                return ProbeResult.unreachable("Ping timeout")

            if self._random.random() < self.loss_probability:
                return ProbeResult.unreachable("Ping timeout")

            if self._random.random() < self.spike_probability:
                latency = self.base_latency * self.spike_multiplier + self._random.gauss(
                    0, self.latency_variance
                )
            else:
                latency = self.base_latency + self._random.gauss(0, self.latency_variance)

        latency = max(0.1, latency)
        return ProbeResult.reachable(round(latency, 2))
