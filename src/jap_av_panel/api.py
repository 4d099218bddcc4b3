"""HTTP server: HTML control page plus a small JSON API."""

from __future__ import annotations

import asyncio
import html
import time
from typing import Any, Callable, Optional

from fastapi import FastAPI, HTTPException, Request, Response, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import HTMLResponse, JSONResponse
from pydantic import BaseModel
import uvicorn

from .config import Config
from .logging import get_logger
from .metrics import METRICS_CONTENT_TYPE, latest_metrics, observe_request
from .models import DeviceState
from .panel import ControlPanel


class ControlIn(BaseModel):
    """Operator command; values are validated by the panel, not here."""

    address: Any = None
    channel: Any = None
    volume: Any = None


class ControlOut(BaseModel):
    success: bool
    message: str
    outcome: str


class ReceiverOut(BaseModel):
    name: str
    address: str
    channel: int
    volume: Optional[int]
    supports_volume: bool
    reachable: bool


_STYLE = """
body{font-family:'Segoe UI',Tahoma,sans-serif;margin:0;padding:20px;background:#121212;color:#e0e0e0}
h1{color:#bb86fc;text-align:center}
.receivers{display:grid;grid-template-columns:repeat(auto-fit,minmax(280px,1fr));gap:20px;max-width:1200px;margin:0 auto}
.receiver{background:#1e1e1e;border-radius:10px;padding:20px}
.receiver form{display:flex;flex-direction:column}
.receiver select,.receiver input[type=range]{margin-bottom:15px}
button{background:#03dac6;color:#121212;padding:12px 20px;border:none;border-radius:5px;font-weight:bold}
.error-message,.error{color:#cf6679}
.success{color:#03dac6}
#response-message{display:none;text-align:center;margin-top:20px}
"""

_SCRIPT = """
function updateVolumeLabel(slider) {
  slider.parentElement.querySelector('.volume-label').textContent = slider.value;
}
document.querySelectorAll('.receiver form').forEach(function (form) {
  form.addEventListener('submit', function (e) {
    e.preventDefault();
    var box = document.getElementById('response-message');
    fetch('', {method: 'POST', body: new URLSearchParams(new FormData(form))})
      .then(function (r) { return r.json(); })
      .then(function (r) {
        box.className = r.success ? 'success' : 'error';
        box.textContent = r.message;
      })
      .catch(function () {
        box.className = 'error';
        box.textContent = 'An error occurred. Please try again.';
      })
      .finally(function () {
        box.style.display = 'block';
        setTimeout(function () { box.style.display = 'none'; }, 5000);
      });
  });
});
"""


def render_receiver(state: DeviceState, config: Config) -> str:
    """Return the HTML card for one receiver."""

    name = html.escape(state.name, quote=True)
    address = html.escape(state.address, quote=True)
    if not state.reachable:
        return (
            "<div class='receiver error'>"
            f"<h2>{name}</h2>"
            f"<p class='error-message'>Unable to reach {name} ({address}). "
            "Please check that it is powered on and connected to the network.</p>"
            "</div>"
        )

    parts = [
        "<div class='receiver'><form method='POST'>",
        f"<h2>{name}</h2>",
        f"<label for='channel_{name}'>Channel:</label>",
        f"<select id='channel_{name}' name='channel'>",
    ]
    for channel in range(1, config.max_channels + 1):
        selected = " selected" if channel == state.channel else ""
        parts.append(f"<option value='{channel}'{selected}>Channel {channel}</option>")
    parts.append("</select>")
    if state.supports_volume:
        volume = config.min_volume if state.volume is None else state.volume
        parts.append(f"<label for='volume_{name}'>Volume:</label>")
        parts.append(
            f"<input type='range' id='volume_{name}' name='volume' "
            f"min='{config.min_volume}' max='{config.max_volume}' step='{config.volume_step}' "
            f"value='{volume}' oninput='updateVolumeLabel(this)'>"
        )
        parts.append(f"<span class='volume-label'>{volume}</span>")
    else:
        parts.append("<p class='warning'>Volume control is not supported for this device.</p>")
    parts.append(f"<input type='hidden' name='receiver_ip' value='{address}'>")
    parts.append("<button type='submit'>Update</button></form></div>")
    return "".join(parts)


def render_page(states: list[DeviceState], config: Config) -> str:
    title = html.escape(config.page_title)
    cards = "".join(render_receiver(state, config) for state in states)
    return (
        "<!DOCTYPE html><html lang='en'><head><meta charset='UTF-8'>"
        "<meta name='viewport' content='width=device-width, initial-scale=1.0'>"
        f"<title>{title}</title><style>{_STYLE}</style></head><body>"
        f"<h1>{title}</h1><div class='receivers'>{cards}</div>"
        "<div id='response-message'></div>"
        f"<script>{_SCRIPT}</script></body></html>"
    )


def create_app(config: Config, panel: Optional[ControlPanel] = None) -> FastAPI:
    """Create and configure a FastAPI application."""

    logger = get_logger("jap.api")
    request_logger = get_logger("jap.api.middleware")
    control = panel or ControlPanel(config)
    app = FastAPI(
        title="Just Add Power Control Panel",
        docs_url="/docs" if config.api_docs else None,
        redoc_url="/redoc" if config.api_docs else None,
        openapi_url="/openapi.json" if config.api_docs else None,
    )
    app.state.panel = control

    @app.middleware("http")
    async def _logging_middleware(request: Request, call_next: Callable[..., Any]) -> Response:
        start = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception:
            logger.exception("Unhandled API error")
            response = JSONResponse(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                content={"success": False, "message": "Internal server error"},
            )
        path_template = getattr(request.scope.get("route"), "path", request.url.path)
        duration_seconds = time.perf_counter() - start
        observe_request(request.method, path_template, response.status_code, duration_seconds)
        request_logger.info(
            "Handled request",
            extra={
                "method": request.method,
                "path": path_template,
                "status": response.status_code,
                "duration_ms": round(duration_seconds * 1000, 2),
                "client": request.client.host if request.client else None,
            },
        )
        return response

    @app.exception_handler(HTTPException)
    async def _http_exc_handler(request: Request, exc: HTTPException) -> JSONResponse:
        request_logger.warning(
            "API error",
            extra={"path": request.url.path, "status": exc.status_code, "detail": exc.detail},
        )
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})

    @app.exception_handler(RequestValidationError)
    async def _validation_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        request_logger.warning(
            "Validation error",
            extra={"path": request.url.path, "errors": exc.errors()},
        )
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content={"success": False, "message": "Invalid input", "detail": exc.errors()},
        )

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    @app.get("/metrics")
    async def metrics() -> Response:
        return Response(content=latest_metrics(), media_type=METRICS_CONTENT_TYPE)

    @app.get("/", response_class=HTMLResponse)
    async def index() -> HTMLResponse:
        states = await control.render_panel()
        return HTMLResponse(render_page(states, config))

    @app.post("/", response_model=ControlOut)
    async def submit_form(request: Request) -> ControlOut:
        form = await request.form()
        result = await control.submit(
            form.get("receiver_ip"),
            form.get("channel"),
            form.get("volume"),
        )
        return ControlOut(**result.as_response())

    @app.get("/api/receivers", response_model=list[ReceiverOut])
    async def list_receivers() -> list[ReceiverOut]:
        states = await control.render_panel()
        return [ReceiverOut(**state.as_dict()) for state in states]

    @app.get("/api/receivers/{name}", response_model=ReceiverOut)
    async def get_receiver(name: str) -> ReceiverOut:
        device = config.receiver(name)
        if device is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Receiver not found")
        state = await control.render_state(device)
        return ReceiverOut(**state.as_dict())

    @app.post("/api/control", response_model=ControlOut)
    async def apply_control(payload: ControlIn) -> ControlOut:
        result = await control.submit(payload.address, payload.channel, payload.volume)
        return ControlOut(**result.as_response())

    return app


class ApiService:
    """Lifecycle wrapper for the FastAPI/uvicorn server."""

    def __init__(self, config: Config) -> None:
        self.config = config
        self.logger = get_logger("jap.api")
        self._panel: Optional[ControlPanel] = None
        self._server: Optional[uvicorn.Server] = None
        self._server_task: Optional[asyncio.Task[None]] = None

    async def start(self) -> None:
        if self._server:
            return
        self._panel = ControlPanel(self.config)
        app = create_app(self.config, self._panel)
        uvicorn_config = uvicorn.Config(
            app,
            host=self.config.api_host,
            port=self.config.api_port,
            log_config=None,
            loop="asyncio",
        )
        self._server = uvicorn.Server(config=uvicorn_config)
        self._server_task = asyncio.create_task(self._server.serve())
        self.logger.info(
            "API server starting",
            extra={"host": self.config.api_host, "port": self.config.api_port},
        )

    async def stop(self) -> None:
        if not self._server:
            return
        self.logger.info("Stopping API server")
        self._server.should_exit = True
        if self._server_task:
            await self._server_task
        if self._panel:
            await self._panel.aclose()
        self._panel = None
        self._server = None
        self._server_task = None
