"""Data model shared by the reader, dispatcher and panel."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Tuple


@dataclass(frozen=True)
class Device:
    """A configured receiver: display name plus the address used for routing."""

    name: str
    address: str


@dataclass(frozen=True)
class Bounds:
    """Inclusive integer range."""

    minimum: int
    maximum: int

    def __contains__(self, value: object) -> bool:
        if isinstance(value, bool) or not isinstance(value, int):
            return False
        return self.minimum <= value <= self.maximum


@dataclass(frozen=True)
class DeviceState:
    """Live state of one receiver, rebuilt on every read."""

    name: str
    address: str
    channel: int
    volume: Optional[int]
    supports_volume: bool
    reachable: bool = True

    def as_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class ControlRequest:
    """A validated operator command for a single receiver.

    ``volume_input`` keeps the raw volume when it did not validate so the
    panel can report it if the device turns out to support volume control.
    """

    address: str
    channel: int
    volume: Optional[int] = None
    volume_input: Optional[Any] = None

    @property
    def volume_invalid(self) -> bool:
        return self.volume is None and self.volume_input not in (None, "")


class SubmissionState(str, Enum):
    RECEIVED = "received"
    VALIDATING = "validating"
    REJECTED = "rejected"
    DISPATCHING = "dispatching"
    PARTIAL_SUCCESS = "partial_success"
    FULL_SUCCESS = "full_success"
    FAILED = "failed"
    REPORTED = "reported"


@dataclass(frozen=True)
class CommandResult:
    """Outcome of one sub-command (channel or volume)."""

    field: str
    success: bool
    message: str


@dataclass(frozen=True)
class ControlResult:
    """Aggregate result of one operator submission."""

    outcome: SubmissionState
    message: str
    commands: Tuple[CommandResult, ...] = field(default_factory=tuple)

    @property
    def success(self) -> bool:
        return self.outcome is SubmissionState.FULL_SUCCESS

    def as_response(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "message": self.message,
            "outcome": self.outcome.value,
        }
