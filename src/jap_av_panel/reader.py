"""Read-only queries of receiver state with safe defaults."""

from __future__ import annotations

import json
from typing import Any, Optional, Tuple

from .config import Config
from .errors import DeviceControlError, ParseError
from .logging import get_logger
from .models import Bounds
from .transport import DeviceTransport
from .validation import validate_int

CHANNEL_ENDPOINT = "details/channel"
VOLUME_ENDPOINT = "details/audio/stereo/volume"
MODEL_ENDPOINT = "details/device/model"

DEFAULT_CHANNEL = 1


def extract_data(body: str) -> Any:
    """Return the ``data`` field of a receiver's JSON envelope."""

    try:
        payload = json.loads(body)
    except (TypeError, ValueError) as exc:
        raise ParseError(f"Response is not valid JSON: {body!r}") from exc
    if not isinstance(payload, dict) or payload.get("data") is None:
        raise ParseError(f"Response has no 'data' field: {body!r}")
    return payload["data"]


def _parse_int(data: Any, bounds: Bounds, label: str) -> int:
    value = validate_int(data)
    if value is None:
        raise ParseError(f"Unexpected {label} value {data!r}")
    if value not in bounds:
        raise ParseError(
            f"{label} {value} outside {bounds.minimum}..{bounds.maximum}"
        )
    return value


class DeviceStateReader:
    """Fetches channel, volume and model from a receiver.

    Every read is a single attempt. Failures are logged and reported as
    ``None`` by the ``read_*`` methods; the ``get_*`` methods substitute the
    panel-wide defaults (channel 1, minimum volume).
    """

    def __init__(self, transport: DeviceTransport, config: Config) -> None:
        self.transport = transport
        self.config = config
        self.logger = get_logger("jap.device")

    async def _read(self, address: str, endpoint: str) -> Any:
        result = await self.transport.call("GET", address, endpoint)
        return extract_data(result.unwrap())

    async def poll_channel(self, address: str) -> Tuple[bool, Optional[int]]:
        """Return ``(answered, channel)`` for a receiver.

        ``answered`` is false when the call or the envelope failed. A receiver
        that answers with an unusable channel gives ``(True, None)``.
        """

        try:
            data = await self._read(address, CHANNEL_ENDPOINT)
        except DeviceControlError as exc:
            self._log_channel_error(address, exc)
            return False, None
        try:
            return True, _parse_int(data, self.config.channel_bounds, "channel")
        except ParseError as exc:
            self._log_channel_error(address, exc)
            return True, None

    async def read_channel(self, address: str) -> Optional[int]:
        _, channel = await self.poll_channel(address)
        return channel

    def _log_channel_error(self, address: str, exc: Exception) -> None:
        self.logger.error(
            "Error getting current channel: %s",
            exc,
            extra={"address": address, "endpoint": CHANNEL_ENDPOINT},
        )

    async def read_volume(self, address: str) -> Optional[int]:
        try:
            data = await self._read(address, VOLUME_ENDPOINT)
            return _parse_int(data, self.config.volume_bounds, "volume")
        except DeviceControlError as exc:
            self.logger.error(
                "Error getting current volume: %s",
                exc,
                extra={"address": address, "endpoint": VOLUME_ENDPOINT},
            )
            return None

    async def get_channel(self, address: str) -> int:
        channel = await self.read_channel(address)
        return DEFAULT_CHANNEL if channel is None else channel

    async def get_volume(self, address: str) -> int:
        volume = await self.read_volume(address)
        return self.config.min_volume if volume is None else volume

    async def get_model(self, address: str) -> Optional[str]:
        try:
            data = await self._read(address, MODEL_ENDPOINT)
        except DeviceControlError as exc:
            self.logger.error(
                "Error getting device model: %s",
                exc,
                extra={"address": address, "endpoint": MODEL_ENDPOINT},
            )
            return None
        if not isinstance(data, str):
            self.logger.error(
                "Error getting device model: unexpected value %r",
                data,
                extra={"address": address, "endpoint": MODEL_ENDPOINT},
            )
            return None
        return data
