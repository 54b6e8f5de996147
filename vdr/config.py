"""Watcher configuration file loading.

Precedence (first match wins):

1. config path: first CLI argument, ``VDR_CONFIG_PATH``, then ``./config.yml``
2. Steam API key: ``steam_api_key`` in the file, then ``VDR_STEAM_API_KEY``
3. state directory: ``state_directory`` in the file, then ``VDR_STATE_PATH``, then ``./state``
4. poll interval: ``check_interval`` in the file, then ``VDR_POLL_INTERVAL_S``
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from .errors import ConfigError
from .models import ContainerDescriptor
from .settings import Settings

log = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = "./config.yml"
DEFAULT_STATE_PATH = "./state"
CONNECT_MODES = ("unix_socket", "http", "ssl")

_DURATION_PART_RE = re.compile(r"(\d+)\s*(ms|s|m|h|d)")
_DURATION_UNITS = {"ms": 0.001, "s": 1, "m": 60, "h": 3600, "d": 86400}


@dataclass(frozen=True)
class WatcherConfig:
    containers: list[ContainerDescriptor]
    steam_api_key: str
    check_interval_s: float
    state_directory: Path
    connect_mode: str
    source: Path


def parse_duration(value: Any) -> float:
    """Parse ``300``, ``"90s"``, ``"5m"`` or ``"1h 30m"`` into seconds."""
    if isinstance(value, bool):
        raise ConfigError(f"Invalid duration: {value!r}")
    if isinstance(value, (int, float)):
        seconds = float(value)
    else:
        text = str(value).strip().lower()
        if text.isdigit():
            seconds = float(text)
        else:
            parts = _DURATION_PART_RE.findall(text)
            if not parts or _DURATION_PART_RE.sub("", text).strip():
                raise ConfigError(f"Invalid duration: {value!r}")
            seconds = sum(int(n) * _DURATION_UNITS[unit] for n, unit in parts)
    if seconds <= 0:
        raise ConfigError(f"Duration must be positive: {value!r}")
    return seconds


def resolve_config_path(argv_path: str | None, settings: Settings) -> Path:
    if argv_path:
        log.info("Got config file path %s from arguments", argv_path)
        return Path(argv_path)
    if settings.config_path and settings.config_path != DEFAULT_CONFIG_PATH:
        log.info("Got config file path %s from environment", settings.config_path)
        return Path(settings.config_path)
    log.info("Default config path %s selected", DEFAULT_CONFIG_PATH)
    return Path(DEFAULT_CONFIG_PATH)


def _parse_containers(raw: Any) -> list[ContainerDescriptor]:
    if not isinstance(raw, list) or not raw:
        raise ConfigError("Config must define a non-empty 'containers' list")
    out: list[ContainerDescriptor] = []
    seen: set[str] = set()
    for i, item in enumerate(raw):
        try:
            desc = ContainerDescriptor.model_validate(item)
        except ValidationError as e:
            raise ConfigError(f"Invalid container entry #{i}: {e}") from e
        if desc.name in seen:
            raise ConfigError(f"Duplicate container name '{desc.name}'")
        seen.add(desc.name)
        out.append(desc)
    return out


def load_config(argv_path: str | None, settings: Settings) -> WatcherConfig:
    path = resolve_config_path(argv_path, settings)
    if not path.is_file():
        raise ConfigError(f"Config file {path} not found!")

    try:
        with path.open("r", encoding="utf-8") as fh:
            data = yaml.safe_load(fh) or {}
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError(f"Could not read config file {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"Config file {path} must contain a mapping")

    containers = _parse_containers(data.get("containers"))

    key = data.get("steam_api_key") or ""
    if not key:
        if not settings.steam_api_key:
            raise ConfigError("Steam API key not found in configuration file or environment")
        log.info("Got steam API key from environment")
        key = settings.steam_api_key

    if data.get("check_interval") is not None:
        interval = parse_duration(data["check_interval"])
    else:
        interval = parse_duration(settings.poll_interval_s)

    state_dir = data.get("state_directory") or ""
    if not state_dir:
        if settings.state_directory:
            log.info("Got state directory %s from environment", settings.state_directory)
            state_dir = settings.state_directory
        else:
            log.info("State directory defaulting to %s", DEFAULT_STATE_PATH)
            state_dir = DEFAULT_STATE_PATH

    mode = str(data.get("connect_mode") or settings.docker_connect_mode)
    if mode not in CONNECT_MODES:
        raise ConfigError(f"Unknown connect_mode '{mode}' (expected one of {', '.join(CONNECT_MODES)})")

    return WatcherConfig(
        containers=containers,
        steam_api_key=str(key),
        check_interval_s=interval,
        state_directory=Path(state_dir),
        connect_mode=mode,
        source=path,
    )
