"""Real ICMP ping prober for DevMon using system ping command."""

import logging
import platform
import re
import subprocess
from math import ceil

from devmon.prober import ProbeResult

logger = logging.getLogger(__name__)

_LESS_THAN_PATTERN = re.compile(r"time<(\d+)", re.IGNORECASE)
_LATENCY_PATTERN = re.compile(r"time\s*[=<]\s*(\d+(?:\.\d+)?)\s*ms", re.IGNORECASE)
_TTL_PATTERN = re.compile(r"\bTTL=\d+", re.IGNORECASE)


def parse_ping_latency_ms(output: str) -> float | None:
    """Parse latency value from ping command output (pure function).

    Handles various ping output formats across platforms:
    - Linux/macOS: "time=12.3 ms"
    - Windows: "time=12ms" or "time<1ms"

    Windows "time<Nms" is interpreted as N/2 ms (midpoint estimate).
    For example, "time<1ms" => 0.5ms, "time<10ms" => 5.0ms.

    Args:
        output: Raw ping command output (stdout or combined stdout+stderr)

    Returns:
        Latency in milliseconds (float), or None if parsing failed

    Examples:
        >>> parse_ping_latency_ms("time=12.3 ms")
        12.3
        >>> parse_ping_latency_ms("time<1ms")
        0.5
        >>> parse_ping_latency_ms("Request timed out.")
    """
    if not output:
        return None

    match = _LESS_THAN_PATTERN.search(output)
    if match:
        return float(match.group(1)) / 2.0

    match = _LATENCY_PATTERN.search(output)
    if match:
        try:
            return float(match.group(1))
        except (ValueError, IndexError):
            return None

    return None


class PingProber:
    """Prober that uses OS ping command to check device reachability.

    Cross-platform implementation supporting Windows, Linux, and macOS.
    Uses subprocess to execute system ping with configurable timeout.

    A zero exit status means the device replied. If the round-trip time
    cannot be read from the output (e.g. a non-English Windows locale where
    "time" is localized), the result is still reachable but carries no
    latency; the engine substitutes a fallback value.
    On Windows a zero exit status is also returned when a gateway answers
    "Destination host unreachable", so there the output must show a TTL
    before a reply without a parseable time counts as reachable.
    """

    def __init__(self, timeout_ms: int = 3000):
        """Initialize ping prober with timeout.

        Args:
            timeout_ms: Maximum time to wait for a reply in milliseconds.
                        Default is 3000ms.
        """
        if timeout_ms <= 0:
            raise ValueError("timeout_ms must be positive")

        self.timeout_ms = timeout_ms
        self.timeout_seconds = timeout_ms / 1000.0
        self.system = platform.system()

        logger.debug(
            "PingProber initialized: timeout_ms=%d, system=%s",
            timeout_ms,
            self.system,
        )

    def probe(self, ip: str) -> ProbeResult:
        """Ping ``ip`` once and report the outcome.

        Never raises: timeouts, non-zero exit codes and errors launching the
        command are all reported as unreachable results.
        """
        if not ip or not ip.strip():
            return ProbeResult.unreachable("No address")

        try:
            cmd = self._build_ping_command(ip)

            logger.debug("Executing ping: ip=%s, timeout=%.1fs", ip, self.timeout_seconds)

            result = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                timeout=self.timeout_seconds + 0.5,
                shell=False,
            )

            if result.returncode != 0:
                logger.debug(
                    "Ping failed (non-zero returncode): ip=%s, returncode=%d",
                    ip,
                    result.returncode,
                )
                return ProbeResult.unreachable("Ping timeout")

            latency = parse_ping_latency_ms(result.stdout)
            if latency is None and not self._is_echo_reply(result.stdout):
                # Windows exits 0 for "Destination host unreachable" relayed by a gateway
                logger.debug("Ping exited 0 without an echo reply: ip=%s", ip)
                return ProbeResult.unreachable("Ping timeout")
            if latency is None:
                logger.debug(
                    "Reply without parseable latency: ip=%s, output_preview=%s",
                    ip,
                    result.stdout[:100] if result.stdout else "(empty)",
                )
            else:
                logger.debug("Parsed latency: ip=%s, latency=%.2fms", ip, latency)
            return ProbeResult.reachable(latency)

        except subprocess.TimeoutExpired:
            logger.debug("Ping timeout: ip=%s, timeout=%.1fs", ip, self.timeout_seconds)
            return ProbeResult.unreachable("Ping timeout")
        except Exception as e:
            logger.warning("Ping error: ip=%s, error=%s", ip, str(e), exc_info=True)
            return ProbeResult.unreachable(str(e) or type(e).__name__)

    def _is_echo_reply(self, output: str) -> bool:
        """Whether output without a parseable time still shows an echo reply.

        Only Windows needs the check; elsewhere a zero exit status already
        means a reply arrived.
        """
        if self.system != "Windows":
            return True
        return bool(output) and _TTL_PATTERN.search(output) is not None

    def _build_ping_command(self, ip: str) -> list[str]:
        """Build platform-specific ping command.

        Args:
            ip: Target address to ping

        Returns:
            List of command arguments for subprocess
        """
        if self.system == "Windows":
            return ["ping", "-n", "1", "-w", str(self.timeout_ms), ip]

        elif self.system == "Linux":
            timeout_secs = max(1, ceil(self.timeout_seconds))
            return ["ping", "-c", "1", "-W", str(timeout_secs), ip]

        else:
            # macOS -W has different semantics, rely on subprocess timeout
            return ["ping", "-c", "1", ip]
