import json

import httpx
import pytest

from jap_av_panel.errors import ProtocolError, TransportError
from jap_av_panel.transport import JSON, TEXT, build_url

from conftest import REFUSED, TIMEOUT, StubDevice, corrupt_gzip, stub_transport


def test_build_url_for_ipv4_and_ipv6() -> None:
    assert build_url("192.168.8.16", "details/channel") == "http://192.168.8.16/cgi-bin/api/details/channel"
    assert build_url("fe80::1", "/details/channel") == "http://[fe80::1]/cgi-bin/api/details/channel"


@pytest.mark.asyncio
async def test_get_returns_raw_body_without_content_type() -> None:
    device = StubDevice({("GET", "details/channel"): httpx.Response(200, text='{"data":"2"}')})
    transport = stub_transport(device)

    result = await transport.call("GET", "192.168.8.16", "details/channel")

    assert result.ok
    assert result.unwrap() == '{"data":"2"}'
    request = device.requests[0]
    assert str(request.url) == "http://192.168.8.16/cgi-bin/api/details/channel"
    assert "content-type" not in request.headers
    assert request.content == b""


@pytest.mark.asyncio
async def test_plain_text_body_and_content_type_are_sent() -> None:
    device = StubDevice({("POST", "command/channel"): {"data": "OK"}})
    transport = stub_transport(device)

    result = await transport.call("POST", "192.168.8.16", "command/channel", "3", content_type=TEXT)

    assert result.ok
    request = device.requests[0]
    assert request.headers["content-type"] == "text/plain"
    assert request.content == b"3"


@pytest.mark.asyncio
async def test_json_and_form_bodies_are_encoded() -> None:
    device = StubDevice(
        {
            ("POST", "command/json"): {"data": "OK"},
            ("POST", "command/form"): {"data": "OK"},
        }
    )
    transport = stub_transport(device)

    await transport.call("POST", "10.0.0.2", "command/json", {"value": 3}, content_type=JSON)
    await transport.call("POST", "10.0.0.2", "command/form", {"value": 3})

    assert json.loads(device.requests[0].content) == {"value": 3}
    assert device.requests[0].headers["content-type"] == "application/json"
    assert device.requests[1].content == b"value=3"
    assert device.requests[1].headers["content-type"] == "application/x-www-form-urlencoded"


@pytest.mark.asyncio
async def test_error_status_becomes_protocol_error_with_body() -> None:
    device = StubDevice({("GET", "details/channel"): httpx.Response(503, text="busy")})
    transport = stub_transport(device)

    result = await transport.call("GET", "192.168.8.16", "details/channel")

    assert not result.ok
    assert isinstance(result.error, ProtocolError)
    assert result.error.status == 503
    assert result.error.body == "busy"
    with pytest.raises(ProtocolError, match="503"):
        result.unwrap()


@pytest.mark.asyncio
@pytest.mark.parametrize("failure", [TIMEOUT, REFUSED])
async def test_network_failures_become_transport_errors(failure: object) -> None:
    device = StubDevice({("GET", "details/channel"): failure})
    transport = stub_transport(device)

    result = await transport.call("GET", "192.168.8.16", "details/channel")

    assert isinstance(result.error, TransportError)
    assert result.error.address == "192.168.8.16"
    assert result.error.endpoint == "details/channel"
    assert len(device.requests) == 1


@pytest.mark.asyncio
async def test_timeout_is_applied_per_call() -> None:
    device = StubDevice({("GET", "details/channel"): {"data": 1}})
    transport = stub_transport(device, timeout=4.0)

    await transport.call("GET", "192.168.8.16", "details/channel")
    await transport.call("GET", "192.168.8.16", "details/channel", timeout=1.5)

    assert device.requests[0].extensions["timeout"]["read"] == 4.0
    assert device.requests[1].extensions["timeout"]["read"] == 1.5


@pytest.mark.asyncio
async def test_undecodable_body_becomes_transport_error() -> None:
    device = StubDevice({("GET", "details/channel"): lambda request: corrupt_gzip()})
    transport = stub_transport(device)

    result = await transport.call("GET", "192.168.8.16", "details/channel")

    assert not result.ok
    assert isinstance(result.error, TransportError)
    assert result.error.endpoint == "details/channel"
