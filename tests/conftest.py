from __future__ import annotations

from typing import Any, Callable, Dict, List, Optional, Tuple

import httpx
import pytest

from jap_av_panel.config import Config
from jap_av_panel.models import Device
from jap_av_panel.transport import API_PREFIX, DeviceTransport

TIMEOUT = object()
REFUSED = object()


class StubDevice:
    """httpx mock handler emulating a receiver's /cgi-bin/api endpoints."""

    def __init__(self, responses: Optional[Dict[Tuple[str, str], Any]] = None) -> None:
        self.responses: Dict[Tuple[str, str], Any] = dict(responses or {})
        self.requests: List[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        endpoint = request.url.path[len(API_PREFIX):]
        entry = self.responses.get((request.method, endpoint))
        if entry is None:
            return httpx.Response(404, text="no such endpoint")
        if entry is TIMEOUT:
            raise httpx.ConnectTimeout("timed out", request=request)
        if entry is REFUSED:
            raise httpx.ConnectError("connection refused", request=request)
        if isinstance(entry, httpx.Response):
            return entry
        if callable(entry):
            return entry(request)
        return httpx.Response(200, json=entry)

    def endpoints(self, method: Optional[str] = None) -> List[str]:
        return [
            request.url.path[len(API_PREFIX):]
            for request in self.requests
            if method is None or request.method == method
        ]

    @property
    def posts(self) -> List[Tuple[str, str]]:
        return [
            (request.url.path[len(API_PREFIX):], request.content.decode())
            for request in self.requests
            if request.method == "POST"
        ]


def receiver(channel: Any = 2, volume: Any = 4, model: Any = "3G+AVP RX", ack: Any = "OK") -> StubDevice:
    return StubDevice(
        {
            ("GET", "details/channel"): {"data": channel},
            ("GET", "details/audio/stereo/volume"): {"data": volume},
            ("GET", "details/device/model"): {"data": model},
            ("POST", "command/channel"): {"data": ack},
            ("POST", "command/audio/stereo/volume"): {"data": ack},
        }
    )


def corrupt_gzip() -> httpx.Response:
    """A response whose body does not match its declared gzip encoding."""

    return httpx.Response(200, headers={"Content-Encoding": "gzip"}, content=b"not gzip")


def stub_transport(handler: Callable[[httpx.Request], httpx.Response], timeout: float = 10.0) -> DeviceTransport:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return DeviceTransport(client=client, timeout=timeout)


@pytest.fixture
def config() -> Config:
    return Config(receivers=(Device(name="Bowling Music", address="192.168.8.16"),))


@pytest.fixture(autouse=True)
def _isolate_panel_env(monkeypatch: pytest.MonkeyPatch):
    for key in ("JAP_PANEL_CONFIG", "JAP_PANEL_RECEIVERS", "JAP_PANEL_MAX_VOLUME", "JAP_PANEL_LOG_LEVEL"):
        monkeypatch.delenv(key, raising=False)
    yield
