"""Channel and volume commands sent to receivers."""

from __future__ import annotations

from .config import Config
from .errors import DeviceControlError, ValidationError
from .logging import get_logger
from .models import Bounds
from .reader import extract_data
from .transport import TEXT, DeviceTransport
from .validation import validate_address

CHANNEL_COMMAND = "command/channel"
VOLUME_COMMAND = "command/audio/stereo/volume"

ACK = "OK"


class CommandDispatcher:
    """Sends set-channel and set-volume commands.

    Device failures come back as ``False``; only a value that skipped
    validation raises ``ValidationError``.
    """

    def __init__(self, transport: DeviceTransport, config: Config) -> None:
        self.transport = transport
        self.config = config
        self.logger = get_logger("jap.device")

    async def set_channel(self, address: str, channel: int) -> bool:
        return await self._send(address, CHANNEL_COMMAND, "channel", channel, self.config.channel_bounds)

    async def set_volume(self, address: str, volume: int) -> bool:
        return await self._send(address, VOLUME_COMMAND, "volume", volume, self.config.volume_bounds)

    async def _send(self, address: str, endpoint: str, label: str, value: int, bounds: Bounds) -> bool:
        if validate_address(address) is None:
            raise ValidationError("address", address)
        if value not in bounds:
            raise ValidationError(label, value, f"outside {bounds.minimum}..{bounds.maximum}")

        try:
            result = await self.transport.call(
                "POST", address, endpoint, str(value), content_type=TEXT
            )
            data = extract_data(result.unwrap())
        except DeviceControlError as exc:
            self.logger.error(
                "Error setting %s to %s on %s: %s",
                label,
                value,
                address,
                exc,
                extra={"address": address, "endpoint": endpoint, "value": value},
            )
            return False
        if data != ACK:
            self.logger.error(
                "Error setting %s to %s on %s: device answered %r",
                label,
                value,
                address,
                data,
                extra={"address": address, "endpoint": endpoint, "value": value},
            )
            return False
        self.logger.info("Set %s to %s on %s", label, value, address)
        return True
