"""Error taxonomy for device control."""

from __future__ import annotations

from typing import Any, Optional


class DeviceControlError(Exception):
    """Base class for every failure raised by the control layer."""


class TransportError(DeviceControlError):
    """The device could not be reached (refused, timed out, DNS failure...)."""

    def __init__(self, message: str, *, address: Optional[str] = None, endpoint: Optional[str] = None) -> None:
        super().__init__(message)
        self.address = address
        self.endpoint = endpoint


class ProtocolError(DeviceControlError):
    """The device answered with an HTTP status of 400 or above."""

    def __init__(self, status: int, body: str, *, address: Optional[str] = None, endpoint: Optional[str] = None) -> None:
        super().__init__(f"HTTP error: {status} - Response: {body}")
        self.status = status
        self.body = body
        self.address = address
        self.endpoint = endpoint


class ParseError(DeviceControlError):
    """The response body was not JSON or lacked the expected field."""


class ValidationError(DeviceControlError):
    """Operator input failed a bounds or format check."""

    def __init__(self, field: str, value: Any, reason: str = "invalid") -> None:
        super().__init__(f"Invalid {field}: {value!r} ({reason})")
        self.field = field
        self.value = value
        self.reason = reason
