"""Volume-control capability detection by model string."""

from __future__ import annotations

from typing import FrozenSet, Iterable

from .logging import get_logger
from .reader import DeviceStateReader


class CapabilityResolver:
    """Decides whether a receiver offers volume control.

    The model is queried fresh on every call and matched exactly
    (case-sensitive) against the configured allow-list. Any failure answers
    ``False``.
    """

    def __init__(self, reader: DeviceStateReader, models: Iterable[str]) -> None:
        self.reader = reader
        self.models: FrozenSet[str] = frozenset(models)
        self.logger = get_logger("jap.device")

    async def supports_volume(self, address: str) -> bool:
        model = await self.reader.get_model(address)
        if model is None:
            self.logger.warning(
                "Volume control disabled for %s: model unknown", address
            )
            return False
        supported = model in self.models
        self.logger.debug(
            "Resolved volume capability",
            extra={"address": address, "model": model, "supported": supported},
        )
        return supported
