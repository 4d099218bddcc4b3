"""HTTP transport to a receiver's local ``/cgi-bin/api`` endpoints."""

from __future__ import annotations

import json
import time
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Union
from urllib.parse import urlencode

import httpx

from .errors import DeviceControlError, ProtocolError, TransportError
from .logging import get_logger
from .metrics import observe_device_call

API_PREFIX = "/cgi-bin/api/"
DEFAULT_TIMEOUT = 10.0

FORM = "application/x-www-form-urlencoded"
JSON = "application/json"
TEXT = "text/plain"


@dataclass(frozen=True)
class CallResult:
    """Either the raw response body or the error that prevented one."""

    body: Optional[str] = None
    error: Optional[DeviceControlError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> str:
        if self.error is not None:
            raise self.error
        return self.body or ""


def build_url(address: str, endpoint: str) -> str:
    host = f"[{address}]" if ":" in address else address
    return f"http://{host}{API_PREFIX}{endpoint.lstrip('/')}"


def _encode_body(body: Any, content_type: str) -> Union[str, bytes]:
    if isinstance(body, (str, bytes)):
        return body
    if content_type == JSON:
        return json.dumps(body)
    if content_type == FORM and isinstance(body, Mapping):
        return urlencode(body)
    return str(body)


class DeviceTransport:
    """Issues single, bounded HTTP calls to receivers.

    One ``httpx.AsyncClient`` is shared across calls. Failures are returned in
    the ``CallResult`` instead of raised; nothing is retried.
    """

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        self.timeout = timeout
        self.logger = get_logger("jap.device")
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def call(
        self,
        method: str,
        address: str,
        endpoint: str,
        body: Any = None,
        content_type: str = FORM,
        timeout: Optional[float] = None,
    ) -> CallResult:
        url = build_url(address, endpoint)
        headers = {}
        content = None
        if body is not None:
            content = _encode_body(body, content_type)
            headers["Content-Type"] = content_type
        start = time.perf_counter()
        try:
            response = await self._client.request(
                method.upper(),
                url,
                content=content,
                headers=headers,
                timeout=timeout if timeout is not None else self.timeout,
            )
        except httpx.HTTPError as exc:
            observe_device_call(endpoint, "transport_error", time.perf_counter() - start)
            detail = str(exc) or exc.__class__.__name__
            self.logger.debug(
                "Receiver call failed",
                extra={"address": address, "endpoint": endpoint, "error": detail},
            )
            return CallResult(
                error=TransportError(
                    f"Transport error: {detail}", address=address, endpoint=endpoint
                )
            )
        duration = time.perf_counter() - start
        if response.status_code >= 400:
            observe_device_call(endpoint, "protocol_error", duration)
            return CallResult(
                error=ProtocolError(
                    response.status_code, response.text, address=address, endpoint=endpoint
                )
            )
        observe_device_call(endpoint, "ok", duration)
        return CallResult(body=response.text)
