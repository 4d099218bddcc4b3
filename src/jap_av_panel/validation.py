"""Input validation gate in front of the command dispatcher.

Validators never raise; a ``None`` return means the value was rejected and
the caller must branch on it before touching the network.
"""

from __future__ import annotations

import ipaddress
import re
from typing import Any, Optional, Union

from .logging import get_logger
from .models import Bounds

INTEGER = "int"
ADDRESS = "ip"

_INT_PATTERN = re.compile(r"^[+-]?(0|[1-9][0-9]*)$")

logger = get_logger("jap.validation")


def validate_int(
    value: Any,
    minimum: Optional[int] = None,
    maximum: Optional[int] = None,
) -> Optional[int]:
    """Return ``value`` as an int when it is a whole number within the bounds."""

    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, int):
        parsed = value
    elif isinstance(value, float):
        if not value.is_integer():
            return None
        parsed = int(value)
    elif isinstance(value, (str, bytes)):
        text = value.decode("ascii", "replace") if isinstance(value, bytes) else value
        text = text.strip()
        if not _INT_PATTERN.match(text):
            return None
        parsed = int(text)
    else:
        return None
    if minimum is not None and parsed < minimum:
        return None
    if maximum is not None and parsed > maximum:
        return None
    return parsed


def validate_address(value: Any) -> Optional[str]:
    """Return ``value`` unchanged when it is an IPv4 or IPv6 literal."""

    if not isinstance(value, str) or not value:
        return None
    try:
        ipaddress.ip_address(value)
    except ValueError:
        return None
    return value


def validate(value: Any, kind: str, bounds: Optional[Bounds] = None) -> Optional[Union[int, str]]:
    if kind == INTEGER:
        if bounds is None:
            return validate_int(value)
        return validate_int(value, bounds.minimum, bounds.maximum)
    if kind == ADDRESS:
        return validate_address(value)
    logger.warning("Unknown validation kind %s", kind)
    return None
