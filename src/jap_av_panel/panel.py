"""Per-receiver state rendering and operator submission handling."""

from __future__ import annotations

import asyncio
from typing import Any, List, Optional, Sequence

from .capabilities import CapabilityResolver
from .config import Config
from .dispatcher import CommandDispatcher
from .errors import ValidationError
from .logging import get_logger
from .metrics import record_submission
from .models import (
    CommandResult,
    ControlRequest,
    ControlResult,
    Device,
    DeviceState,
    SubmissionState,
)
from .reader import DEFAULT_CHANNEL, DeviceStateReader
from .transport import DeviceTransport
from .validation import ADDRESS, INTEGER, validate

UPDATED = "Successfully updated"
FAILED = "Update failed"
INVALID = "Invalid value"


class ControlPanel:
    """Caller-facing entry points: ``render_state`` and ``apply_control``."""

    def __init__(
        self,
        config: Config,
        transport: Optional[DeviceTransport] = None,
    ) -> None:
        self.config = config
        self.transport = transport or DeviceTransport(timeout=config.request_timeout)
        self.reader = DeviceStateReader(self.transport, config)
        self.capabilities = CapabilityResolver(self.reader, config.volume_control_models)
        self.dispatcher = CommandDispatcher(self.transport, config)
        self.logger = get_logger("jap.panel")

    async def aclose(self) -> None:
        await self.transport.aclose()

    async def render_state(self, device: Device) -> DeviceState:
        unreachable = DeviceState(
            name=device.name,
            address=device.address,
            channel=DEFAULT_CHANNEL,
            volume=None,
            supports_volume=False,
            reachable=False,
        )
        if validate(device.address, ADDRESS) is None:
            self.logger.warning(
                "Refusing to query %s: invalid address %r", device.name, device.address
            )
            return unreachable
        answered, channel = await self.reader.poll_channel(device.address)
        if not answered:
            return unreachable
        supports_volume = await self.capabilities.supports_volume(device.address)
        volume = await self.reader.get_volume(device.address) if supports_volume else None
        return DeviceState(
            name=device.name,
            address=device.address,
            channel=DEFAULT_CHANNEL if channel is None else channel,
            volume=volume,
            supports_volume=supports_volume,
        )

    async def render_panel(self, devices: Optional[Sequence[Device]] = None) -> List[DeviceState]:
        """Read every receiver concurrently; order follows ``devices``."""

        targets = self.config.receivers if devices is None else devices
        return list(await asyncio.gather(*(self.render_state(device) for device in targets)))

    def build_request(self, address: Any, channel: Any, volume: Any = None) -> ControlRequest:
        """Validate raw operator input; raises ``ValidationError`` on rejection.

        An invalid volume does not reject the request because it only matters
        for receivers that turn out to support volume control.
        """

        valid_address = validate(address, ADDRESS)
        if valid_address is None:
            raise ValidationError("address", address)
        valid_channel = validate(channel, INTEGER, self.config.channel_bounds)
        if valid_channel is None:
            raise ValidationError(
                "channel", channel, f"expected 1..{self.config.max_channels}"
            )
        valid_volume = None
        if volume not in (None, ""):
            valid_volume = validate(volume, INTEGER, self.config.volume_bounds)
        return ControlRequest(
            address=str(valid_address),
            channel=int(valid_channel),
            volume=None if valid_volume is None else int(valid_volume),
            volume_input=volume,
        )

    async def submit(self, address: Any, channel: Any, volume: Any = None) -> ControlResult:
        """Validate and apply raw operator input in one step."""

        self._transition(SubmissionState.RECEIVED, address)
        self._transition(SubmissionState.VALIDATING, address)
        try:
            request = self.build_request(address, channel, volume)
        except ValidationError as exc:
            self.logger.warning("Rejected control request: %s", exc)
            return self._report(
                ControlResult(
                    outcome=SubmissionState.REJECTED,
                    message=f"Invalid input: {exc}",
                )
            )
        return await self.apply_control(request)

    async def apply_control(self, request: ControlRequest) -> ControlResult:
        commands: List[CommandResult] = []
        self._transition(SubmissionState.DISPATCHING, request.address)
        try:
            channel_ok = await self.dispatcher.set_channel(request.address, request.channel)
            commands.append(_command("channel", channel_ok))

            if await self.capabilities.supports_volume(request.address):
                if request.volume is not None:
                    volume_ok = await self.dispatcher.set_volume(request.address, request.volume)
                    commands.append(_command("volume", volume_ok))
                elif request.volume_invalid:
                    self.logger.warning(
                        "Volume %r for %s rejected: expected %s..%s",
                        request.volume_input,
                        request.address,
                        self.config.min_volume,
                        self.config.max_volume,
                    )
                    commands.append(CommandResult("volume", False, f"Volume: {INVALID}\n"))
        except ValidationError as exc:
            self.logger.error("Control request bypassed validation: %s", exc)
            return self._report(
                ControlResult(
                    outcome=SubmissionState.FAILED,
                    message=f"Update failed: {exc}",
                    commands=tuple(commands),
                )
            )

        succeeded = sum(1 for command in commands if command.success)
        if succeeded == len(commands):
            outcome = SubmissionState.FULL_SUCCESS
        elif succeeded:
            outcome = SubmissionState.PARTIAL_SUCCESS
        else:
            outcome = SubmissionState.FAILED
        return self._report(
            ControlResult(
                outcome=outcome,
                message="".join(command.message for command in commands),
                commands=tuple(commands),
            )
        )

    def _transition(self, state: SubmissionState, detail: Any) -> None:
        self.logger.debug("Submission %s (%s)", state.value, detail)

    def _report(self, result: ControlResult) -> ControlResult:
        record_submission(result.outcome.value)
        self.logger.info(
            "Control request %s: %s",
            result.outcome.value,
            result.message.strip().replace("\n", "; ") or "nothing sent",
            extra={"outcome": result.outcome.value},
        )
        self._transition(SubmissionState.REPORTED, result.outcome.value)
        return result


def _command(field: str, success: bool) -> CommandResult:
    label = field.capitalize()
    return CommandResult(field, success, f"{label}: {UPDATED if success else FAILED}\n")
