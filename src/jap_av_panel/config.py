"""Configuration loading for the Just Add Power control panel."""

from __future__ import annotations

import argparse
import json
import os
import re
import sys
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, MutableMapping, Optional, Sequence

try:  # Python 3.11+
    import tomllib
except ModuleNotFoundError:  # pragma: no cover - fallback for older interpreters
    import tomli as tomllib  # type: ignore

from .models import Bounds, Device
from .validation import validate_address


CONFIG_ENV_PREFIX = "JAP_PANEL_"
CONFIG_VERSION = 1
MIN_SUPPORTED_CONFIG_VERSION = 1

DEFAULT_VOLUME_CONTROL_MODELS = ("3G+AVP RX",)
_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass(frozen=True)
class Config:
    """Application configuration, loaded once and passed to each component."""

    receivers: Sequence[Device] = ()
    min_volume: int = 1
    max_volume: int = 11
    volume_step: int = 1
    max_channels: int = 4
    request_timeout: float = 10.0
    volume_control_models: Sequence[str] = DEFAULT_VOLUME_CONTROL_MODELS
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    api_docs: bool = True
    page_title: str = "Music Control"
    log_format: str = "plain"
    log_level: str = "INFO"
    device_log_level: Optional[str] = None
    api_log_level: Optional[str] = None
    log_file: Optional[Path] = None
    config_version: int = CONFIG_VERSION

    def __post_init__(self) -> None:
        _validate_config(self)

    @property
    def volume_bounds(self) -> Bounds:
        return Bounds(self.min_volume, self.max_volume)

    @property
    def channel_bounds(self) -> Bounds:
        return Bounds(1, self.max_channels)

    def receiver(self, name: str) -> Optional[Device]:
        for device in self.receivers:
            if device.name == name:
                return device
        return None

    def logging_dict(self) -> Dict[str, Any]:
        """Return a mapping suitable for structured logging."""

        return {
            "config_version": self.config_version,
            "receivers": [{"name": d.name, "address": d.address} for d in self.receivers],
            "min_volume": self.min_volume,
            "max_volume": self.max_volume,
            "volume_step": self.volume_step,
            "max_channels": self.max_channels,
            "request_timeout": self.request_timeout,
            "volume_control_models": list(self.volume_control_models),
            "api_host": self.api_host,
            "api_port": self.api_port,
            "api_docs": self.api_docs,
            "page_title": self.page_title,
            "log_format": self.log_format,
            "log_level": self.log_level,
            "device_log_level": self.device_log_level,
            "api_log_level": self.api_log_level,
            "log_file": str(self.log_file) if self.log_file else None,
        }

    @classmethod
    def from_sources(cls, cli_args: Optional[Iterable[str]] = None) -> "Config":
        """Load configuration from defaults, file, env, and CLI (in that order)."""

        args = _parse_cli(cli_args)
        file_config = _load_file_config(
            args.config
            or _coerce_path(os.environ.get(f"{CONFIG_ENV_PREFIX}CONFIG"))
            or None
        )
        env_config = _load_env_config(CONFIG_ENV_PREFIX)
        cli_config = _cli_overrides(args)

        config = cls()
        config = _apply_mapping(config, file_config)
        config = _apply_mapping(config, env_config)
        config = _apply_mapping(config, cli_config)
        return config


def _validate_config(config: Config) -> None:
    _validate_version(config.config_version)
    _validate_range("min_volume", config.min_volume, 0, 100)
    _validate_range("max_volume", config.max_volume, 0, 100)
    if config.min_volume > config.max_volume:
        raise ValueError(
            f"min_volume must not exceed max_volume; got {config.min_volume} > {config.max_volume}."
        )
    _validate_range("volume_step", config.volume_step, 1, 100)
    _validate_range("max_channels", config.max_channels, 1, 999)
    _validate_range("request_timeout", config.request_timeout, 0.1, 120.0)
    _validate_range("api_port", config.api_port, 1, 65535)
    if config.log_format not in {"plain", "json"}:
        raise ValueError(f"log_format must be 'plain' or 'json'; got {config.log_format}.")
    for field_name, value in (
        ("log_level", config.log_level),
        ("device_log_level", config.device_log_level),
        ("api_log_level", config.api_log_level),
    ):
        _validate_log_level_value(value, field_name)
    for model in config.volume_control_models:
        if not isinstance(model, str) or not model:
            raise ValueError(f"volume_control_models entries must be non-empty strings; got {model!r}.")
    _validate_receivers(config.receivers)


def _validate_version(version: int) -> None:
    if version < MIN_SUPPORTED_CONFIG_VERSION:
        raise ValueError(
            f"Config version {version} is too old; minimum supported is {MIN_SUPPORTED_CONFIG_VERSION}."
        )
    if version > CONFIG_VERSION:
        raise ValueError(
            f"Config version {version} is newer than supported ({CONFIG_VERSION}); please upgrade the panel."
        )


def _validate_range(name: str, value: float, minimum: float, maximum: float) -> None:
    if value < minimum or value > maximum:
        raise ValueError(f"{name} must be between {minimum} and {maximum}; got {value}.")


def _validate_log_level_value(value: Optional[str], name: str) -> None:
    if value is None:
        return
    if value.upper() not in _LOG_LEVELS:
        raise ValueError(f"{name} must be one of {sorted(_LOG_LEVELS)}; got {value}.")


def _validate_receivers(receivers: Sequence[Device]) -> None:
    seen = set()
    for device in receivers:
        if device.name in seen:
            raise ValueError(f"receivers contains duplicate name {device.name!r}.")
        seen.add(device.name)
        if validate_address(device.address) is None:
            raise ValueError(
                f"receivers entry {device.name!r} has invalid address {device.address!r}."
            )


def _parse_cli(cli_args: Optional[Iterable[str]]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="jap-av-panel",
        description="Serve the Just Add Power receiver control panel.",
    )
    parser.add_argument("--config", type=Path, help="Path to TOML config file.")
    parser.add_argument(
        "--receiver",
        action="append",
        dest="receivers",
        help="Receiver to control as 'Name=address'; may be repeated.",
    )
    parser.add_argument("--min-volume", type=int, help="Lowest volume offered to operators.")
    parser.add_argument("--max-volume", type=int, help="Highest volume offered to operators.")
    parser.add_argument("--volume-step", type=int, help="Step size of the volume slider.")
    parser.add_argument("--max-channels", type=int, help="Number of selectable channels.")
    parser.add_argument(
        "--request-timeout",
        type=float,
        help="Seconds to wait for a receiver before giving up on a call.",
    )
    parser.add_argument(
        "--volume-control-model",
        action="append",
        dest="volume_control_models",
        help="Model string that supports volume control; may be repeated.",
    )
    parser.add_argument("--api-host", type=str, help="Interface the HTTP server binds to.")
    parser.add_argument("--api-port", type=int, help="TCP port for the HTTP server.")
    parser.add_argument(
        "--no-api-docs",
        action="store_true",
        help="Disable interactive API docs.",
    )
    parser.add_argument("--page-title", type=str, help="Heading shown on the control page.")
    parser.add_argument(
        "--log-format",
        choices=["plain", "json"],
        help="Structured logging format.",
    )
    parser.add_argument(
        "--log-level",
        choices=list(_LOG_LEVELS),
        help="Log verbosity level.",
    )
    parser.add_argument(
        "--device-log-level",
        choices=list(_LOG_LEVELS),
        help="Log verbosity for receiver calls.",
    )
    parser.add_argument(
        "--api-log-level",
        choices=list(_LOG_LEVELS),
        help="Log verbosity for the HTTP server.",
    )
    parser.add_argument("--log-file", type=Path, help="Append log records to this file.")
    parser.add_argument(
        "--config-version",
        type=int,
        help="Version of the configuration schema being supplied.",
    )
    return parser.parse_args(args=cli_args)


def _load_file_config(path: Optional[Path]) -> Dict[str, Any]:
    if path is None:
        return {}
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")
    with path.open("rb") as f:
        parsed = tomllib.load(f)
    if not isinstance(parsed, Mapping):
        raise ValueError("Configuration file must contain a TOML table.")
    return {k.replace("-", "_"): v for k, v in parsed.items()}


def _load_env_config(prefix: str) -> Dict[str, Any]:
    mapping: Dict[str, Any] = {}
    for field in Config.__dataclass_fields__:
        env_key = f"{prefix}{field}".upper()
        if env_key in os.environ:
            mapping[field] = os.environ[env_key]
    return mapping


def _cli_overrides(args: argparse.Namespace) -> Dict[str, Any]:
    mapping = {k: v for k, v in vars(args).items() if k not in ("config", "no_api_docs") and v is not None}
    if args.no_api_docs:
        mapping["api_docs"] = False
    return mapping


def _apply_mapping(config: Config, overrides: Mapping[str, Any]) -> Config:
    data: MutableMapping[str, Any] = {}
    for key, value in overrides.items():
        if value is None:
            continue
        if key == "log_file":
            data[key] = _coerce_path(value)
        elif key in {
            "min_volume",
            "max_volume",
            "volume_step",
            "max_channels",
            "api_port",
            "config_version",
        }:
            data[key] = int(value)
        elif key == "request_timeout":
            data[key] = float(value)
        elif key in {"log_level", "device_log_level", "api_log_level"}:
            data[key] = str(value).upper()
        elif key == "log_format":
            data[key] = str(value).lower()
        elif key == "api_docs":
            data[key] = _coerce_bool(value)
        elif key == "receivers":
            data[key] = _coerce_receivers(value)
        elif key == "volume_control_models":
            data[key] = _coerce_models(value)
        elif key in Config.__dataclass_fields__:
            data[key] = value
        else:
            raise ValueError(f"Unknown configuration key: {key}")
    return replace(config, **data)


def _coerce_path(value: Any) -> Optional[Path]:
    if value is None or value == "":
        return None
    return value if isinstance(value, Path) else Path(str(value)).expanduser()


def _coerce_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes", "on"}
    return bool(value)


def _coerce_models(value: Any) -> Sequence[str]:
    if isinstance(value, str):
        try:
            parsed = json.loads(value)
        except json.JSONDecodeError:
            return tuple(part.strip() for part in value.split(",") if part.strip())
        return _coerce_models(parsed)
    if isinstance(value, Iterable):
        return tuple(str(item) for item in value)
    raise ValueError("Unsupported volume_control_models configuration")


def _coerce_receivers(value: Any) -> Sequence[Device]:
    if value is None:
        return ()
    if isinstance(value, Device):
        return (value,)
    if isinstance(value, str):
        try:
            parsed = json.loads(value)
        except json.JSONDecodeError:
            return (_receiver_from_str(value),)
        return _coerce_receivers(parsed)
    if isinstance(value, Mapping):
        if "name" in value and "address" in value:
            return (_receiver_from_mapping(value),)
        # ``{"Rink Music": "192.168.8.15", ...}`` as written in a TOML table
        return tuple(Device(name=str(name), address=str(address)) for name, address in value.items())

    if isinstance(value, Iterable):
        devices: List[Device] = []
        for item in value:
            if isinstance(item, Device):
                devices.append(item)
            elif isinstance(item, Mapping):
                devices.append(_receiver_from_mapping(item))
            elif isinstance(item, str):
                devices.extend(_coerce_receivers(item))
            else:
                raise ValueError("Unsupported receiver entry")
        return tuple(devices)

    raise ValueError("Unsupported receivers configuration")


def _receiver_from_mapping(value: Mapping[str, Any]) -> Device:
    if "name" not in value or "address" not in value:
        raise ValueError("Receivers require 'name' and 'address' fields")
    return Device(name=str(value["name"]), address=str(value["address"]).strip())


_PAIR = re.compile(r"(?P<name>.+)=(?P<address>[^=]+)")


def _receiver_from_str(value: str) -> Device:
    match = _PAIR.match(value.strip())
    if not match:
        raise ValueError("Receiver arguments must look like 'Name=address'")
    return Device(name=match.group("name").strip(), address=match.group("address").strip())


def load_config(cli_args: Optional[Iterable[str]] = None) -> Config:
    """Public helper used by the entrypoint."""

    try:
        return Config.from_sources(cli_args)
    except Exception as exc:  # pragma: no cover - defensive logging path
        print(f"Failed to load configuration: {exc}", file=sys.stderr)
        raise
