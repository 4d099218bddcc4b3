import pytest
from fastapi.testclient import TestClient
from httpx import ASGITransport, AsyncClient

from jap_av_panel.api import create_app, render_receiver
from jap_av_panel.config import Config
from jap_av_panel.models import Device, DeviceState
from jap_av_panel.panel import ControlPanel

from conftest import REFUSED, StubDevice, receiver, stub_transport

ADDRESS = "192.168.8.16"


def _app(device: StubDevice, config: Config):
    return create_app(config, ControlPanel(config, transport=stub_transport(device)))


async def _client(app) -> AsyncClient:
    return AsyncClient(transport=ASGITransport(app=app), base_url="http://test")


def test_health_endpoint(config: Config) -> None:
    client = TestClient(_app(receiver(), config))
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


@pytest.mark.asyncio
async def test_index_renders_receiver_controls(config: Config) -> None:
    app = _app(receiver(channel=2, volume=4), config)

    async with await _client(app) as client:
        response = await client.get("/")

    assert response.status_code == 200
    body = response.text
    assert "Bowling Music" in body
    assert "<option value='2' selected>Channel 2</option>" in body
    assert "<option value='4'>Channel 4</option>" in body
    assert "name='volume' min='1' max='11' step='1' value='4'" in body
    assert f"name='receiver_ip' value='{ADDRESS}'" in body


@pytest.mark.asyncio
async def test_index_renders_error_card_for_unreachable_receiver(config: Config) -> None:
    device = StubDevice({("GET", "details/channel"): REFUSED, ("GET", "details/device/model"): REFUSED})
    app = _app(device, config)

    async with await _client(app) as client:
        response = await client.get("/")

    assert f"Unable to reach Bowling Music ({ADDRESS})" in response.text
    assert "<select" not in response.text


def test_receiver_card_escapes_names() -> None:
    state = DeviceState(
        name="<Bar & Grill>",
        address=ADDRESS,
        channel=1,
        volume=None,
        supports_volume=False,
    )

    card = render_receiver(state, Config())

    assert "&lt;Bar &amp; Grill&gt;" in card
    assert "<Bar" not in card
    assert "Volume control is not supported for this device." in card


@pytest.mark.asyncio
async def test_form_post_returns_json_result(config: Config) -> None:
    device = receiver()
    app = _app(device, config)

    async with await _client(app) as client:
        response = await client.post("/", data={"receiver_ip": ADDRESS, "channel": "3", "volume": "5"})

    assert response.status_code == 200
    assert response.json() == {
        "success": True,
        "message": "Channel: Successfully updated\nVolume: Successfully updated\n",
        "outcome": "full_success",
    }
    assert device.posts == [("command/channel", "3"), ("command/audio/stereo/volume", "5")]


@pytest.mark.asyncio
async def test_control_endpoint_rejects_invalid_input(config: Config) -> None:
    device = receiver()
    app = _app(device, config)

    async with await _client(app) as client:
        response = await client.post("/api/control", json={"address": "999.1.1.1", "channel": 3})

    assert response.status_code == 200
    payload = response.json()
    assert payload["success"] is False
    assert payload["outcome"] == "rejected"
    assert payload["message"].startswith("Invalid input")
    assert device.requests == []


@pytest.mark.asyncio
async def test_control_endpoint_channel_only_for_unsupported_model(config: Config) -> None:
    device = receiver(model="3G+4+ TX")
    app = _app(device, config)

    async with await _client(app) as client:
        response = await client.post("/api/control", json={"address": ADDRESS, "channel": 3, "volume": 5})

    assert response.json()["message"] == "Channel: Successfully updated\n"
    assert device.posts == [("command/channel", "3")]


@pytest.mark.asyncio
async def test_receivers_endpoints(config: Config) -> None:
    app = _app(receiver(channel=2, volume=4), config)

    async with await _client(app) as client:
        listing = await client.get("/api/receivers")
        single = await client.get("/api/receivers/Bowling Music")
        missing = await client.get("/api/receivers/Lobby")

    expected = {
        "name": "Bowling Music",
        "address": ADDRESS,
        "channel": 2,
        "volume": 4,
        "supports_volume": True,
        "reachable": True,
    }
    assert listing.json() == [expected]
    assert single.json() == expected
    assert missing.status_code == 404


@pytest.mark.asyncio
async def test_metrics_endpoint_exposes_device_calls(config: Config) -> None:
    app = _app(receiver(), config)

    async with await _client(app) as client:
        await client.get("/api/receivers")
        response = await client.get("/metrics")

    assert response.status_code == 200
    assert "jap_device_calls_total" in response.text
    assert "jap_api_requests_total" in response.text


def test_docs_can_be_disabled() -> None:
    config = Config(api_docs=False, receivers=(Device("Rink Music", "192.168.8.15"),))
    client = TestClient(_app(receiver(), config))
    assert client.get("/docs").status_code == 404


@pytest.mark.asyncio
async def test_request_metrics_use_route_template(config: Config) -> None:
    app = _app(receiver(), config)

    async with await _client(app) as client:
        await client.get("/api/receivers/Bowling Music")
        response = await client.get("/metrics")

    assert 'path="/api/receivers/{name}"' in response.text
    assert "Bowling" not in response.text
