"""Exceptions raised by the monitoring engine's query and command surface."""


class MonitorError(Exception):
    """Base class for errors reported to engine callers."""


class InvalidInputError(MonitorError, ValueError):
    """A request carried a malformed argument, such as a bad device id."""


class DeviceNotFoundError(MonitorError, LookupError):
    """No device with the requested id exists."""

    def __init__(self, device_id: str):
        super().__init__(f"Device not found: {device_id}")
        self.device_id = device_id


class FaultConflictError(MonitorError):
    """A fault injection was requested while one is already in progress."""

    def __init__(self, device_id: str, remaining_seconds: int):
        super().__init__(
            f"Device {device_id} is already in simulated down mode "
            f"({remaining_seconds}s remaining)"
        )
        self.device_id = device_id
        self.remaining_seconds = remaining_seconds
