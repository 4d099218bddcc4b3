"""Command-line client for the control panel HTTP API."""

from __future__ import annotations

import argparse
import json
import os
import sys
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, Optional
from urllib.parse import quote

import httpx
import yaml


DEFAULT_SERVER_URL = "http://127.0.0.1:8000"
ENV_PREFIX = "JAP_PANEL_"


class CliError(Exception):
    """Raised when the CLI encounters an expected error condition."""


@dataclass(frozen=True)
class ClientConfig:
    """Configuration for the API client."""

    server_url: str
    output: str
    timeout: float = 30.0


def _env(name: str, default: Optional[str] = None) -> Optional[str]:
    return os.environ.get(f"{ENV_PREFIX}{name}", default)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="jap-av-panel-cli",
        description=(
            "CLI for the Just Add Power control panel API. Uses JAP_PANEL_* env vars "
            "for defaults and prints JSON (default) or YAML. Examples: "
            "`jap-av-panel-cli receivers list`, `jap-av-panel-cli control "
            "--address 192.168.8.25 --channel 3 --volume 5`."
        ),
    )
    parser.add_argument(
        "--server-url",
        default=_env("SERVER_URL", DEFAULT_SERVER_URL),
        help=(
            f"Base URL for the panel API (env: {ENV_PREFIX}SERVER_URL). "
            f"Defaults to {DEFAULT_SERVER_URL}."
        ),
    )
    parser.add_argument(
        "--output",
        choices=["json", "yaml"],
        default=_env("OUTPUT", "json"),
        help=f"Output format for responses (env: {ENV_PREFIX}OUTPUT).",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    health = subparsers.add_parser(
        "health",
        help="Check API health (GET /health returns {'status': 'ok'} when healthy)",
    )
    health.set_defaults(func=_cmd_health)

    receivers = subparsers.add_parser(
        "receivers",
        help="Show receiver state (list/show)",
        description="Reads live channel, volume and capability for configured receivers.",
    )
    receiver_sub = receivers.add_subparsers(dest="receiver_command", required=True)
    list_cmd = receiver_sub.add_parser("list", help="List all receivers (GET /api/receivers)")
    list_cmd.set_defaults(func=_cmd_receivers_list)
    show_cmd = receiver_sub.add_parser("show", help="Show one receiver (GET /api/receivers/{name})")
    show_cmd.add_argument("name", help="Receiver display name")
    show_cmd.set_defaults(func=_cmd_receivers_show)

    control = subparsers.add_parser(
        "control",
        help="Set channel and volume (POST /api/control)",
        description=(
            "Sends a channel command and, when the receiver supports it, a volume "
            "command. Prints the per-field result message."
        ),
    )
    control.add_argument("--address", required=True, help="Receiver IP address")
    control.add_argument("--channel", required=True, type=int, help="Channel number")
    control.add_argument("--volume", type=int, help="Volume level")
    control.set_defaults(func=_cmd_control)

    return parser


def _load_config(args: argparse.Namespace) -> ClientConfig:
    output = args.output or "json"
    if output not in {"json", "yaml"}:
        raise CliError("Output format must be 'json' or 'yaml'")
    return ClientConfig(server_url=args.server_url, output=output)


def _build_client(config: ClientConfig) -> httpx.Client:
    return httpx.Client(base_url=config.server_url, timeout=config.timeout)


def _print_output(data: Any, output: str) -> None:
    if output == "yaml":
        yaml.safe_dump(data, sys.stdout, sort_keys=False)
    else:
        json.dump(data, sys.stdout, indent=2)
        sys.stdout.write("\n")


def _handle_response(response: httpx.Response) -> Any:
    try:
        response.raise_for_status()
    except httpx.HTTPStatusError as exc:
        detail = None
        try:
            detail = response.json().get("detail")
        except ValueError:
            detail = response.text
        raise CliError(f"Request failed ({response.status_code}): {detail}") from exc
    if response.content:
        return response.json()
    return None


def _cmd_health(config: ClientConfig, client: httpx.Client, args: argparse.Namespace) -> None:
    data = _handle_response(client.get("/health"))
    _print_output(data, config.output)


def _cmd_receivers_list(config: ClientConfig, client: httpx.Client, args: argparse.Namespace) -> None:
    data = _handle_response(client.get("/api/receivers"))
    _print_output(data, config.output)


def _cmd_receivers_show(config: ClientConfig, client: httpx.Client, args: argparse.Namespace) -> None:
    data = _handle_response(client.get(f"/api/receivers/{quote(args.name, safe='')}"))
    _print_output(data, config.output)


def _cmd_control(config: ClientConfig, client: httpx.Client, args: argparse.Namespace) -> None:
    payload: Dict[str, Any] = {"address": args.address, "channel": args.channel}
    if args.volume is not None:
        payload["volume"] = args.volume
    data = _handle_response(client.post("/api/control", json=payload))
    _print_output(data, config.output)
    if not data or not data.get("success"):
        raise CliError((data or {}).get("message", "Update failed").strip())


def main(argv: Optional[Iterable[str]] = None) -> None:
    parser = _build_parser()
    args = parser.parse_args(args=argv)

    try:
        config = _load_config(args)
        client = _build_client(config)
        with client:
            func: Callable[[ClientConfig, httpx.Client, argparse.Namespace], None] = args.func
            func(config, client, args)
    except CliError as exc:  # pragma: no cover - CLI feedback path
        sys.stderr.write(f"Error: {exc}\n")
        sys.exit(1)
    except httpx.RequestError as exc:  # pragma: no cover - CLI feedback path
        sys.stderr.write(f"HTTP request failed: {exc}\n")
        sys.exit(1)


if __name__ == "__main__":
    main()
