"""Prober abstraction for DevMon reachability checks."""

from dataclasses import dataclass
from typing import Protocol

SIMULATED_FAULT_REASON = "Simulated device down"


@dataclass(frozen=True)
class ProbeResult:
    """Outcome of one reachability check.

    ``alive`` results may carry ``latency_ms=None`` when the device answered
    but no round-trip time could be read. Unreachable results always carry a
    reason and never a latency.
    """

    alive: bool
    latency_ms: float | None = None
    reason: str | None = None

    def __post_init__(self):
        """Ensure consistency between alive, latency_ms and reason fields."""
        if not self.alive:
            object.__setattr__(self, "latency_ms", None)
            if not self.reason:
                object.__setattr__(self, "reason", "Unreachable")
        else:
            object.__setattr__(self, "reason", None)

    @classmethod
    def reachable(cls, latency_ms: float | None) -> "ProbeResult":
        return cls(alive=True, latency_ms=latency_ms)

    @classmethod
    def unreachable(cls, reason: str) -> "ProbeResult":
        return cls(alive=False, reason=reason)


class Prober(Protocol):
    """Protocol defining the interface for reachability probers."""

    def probe(self, ip: str) -> ProbeResult:
        """Check whether ``ip`` answers. Must not raise on network errors."""
        ...
