from __future__ import annotations

import os
from dataclasses import dataclass


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


@dataclass(frozen=True)
class Settings:
    # Core
    config_path: str = os.getenv("VDR_CONFIG_PATH", "./config.yml")
    state_directory: str | None = os.getenv("VDR_STATE_PATH")
    poll_interval_s: int = _env_int("VDR_POLL_INTERVAL_S", 300)
    max_workers: int = _env_int("VDR_MAX_WORKERS", 1)
    log_level: str = os.getenv("VDR_LOG_LEVEL", "INFO")
    events_db_path: str = os.getenv("VDR_EVENTS_DB_PATH", "vdr-events.db")

    # Version oracle (Steam Web API)
    steam_api_key: str | None = os.getenv("VDR_STEAM_API_KEY")
    steam_api_url: str = os.getenv("VDR_STEAM_API_URL", "https://api.steampowered.com")
    oracle_timeout_s: int = _env_int("VDR_ORACLE_TIMEOUT_S", 10)

    # Docker daemon
    docker_connect_mode: str = os.getenv("VDR_DOCKER_CONNECT_MODE", "unix_socket")
    docker_url: str | None = os.getenv("VDR_DOCKER_URL")

    # Status API basic auth (disabled when no password is set)
    api_user: str = os.getenv("VDR_API_USER", "admin")
    api_password: str | None = os.getenv("VDR_API_PASSWORD")

    # Email alerting (optional)
    enable_email: bool = _env_bool("VDR_ENABLE_EMAIL", False)
    smtp_host: str = os.getenv("VDR_SMTP_HOST", "smtp.gmail.com")
    smtp_port: int = _env_int("VDR_SMTP_PORT", 587)
    smtp_user: str | None = os.getenv("VDR_SMTP_USER")
    smtp_password: str | None = os.getenv("VDR_SMTP_PASSWORD")
    email_from: str | None = os.getenv("VDR_EMAIL_FROM")
    email_to: str | None = os.getenv("VDR_EMAIL_TO")


settings = Settings()
