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


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


@dataclass(frozen=True)
class Settings:
    # Desired state
    service: str = os.getenv("LSR_SERVICE", "web")
    image: str = os.getenv("LSR_IMAGE", "nginx:alpine")
    replicas: int = _env_int("LSR_REPLICAS", 1)

    # Loop timing
    poll_interval_s: float = _env_float("LSR_POLL_INTERVAL_S", 5)
    stop_grace_s: int = _env_int("LSR_STOP_GRACE_S", 5)
    settle_delay_s: float = _env_float("LSR_SETTLE_DELAY_S", 3)

    # Respawn backoff
    failure_threshold: int = _env_int("LSR_FAILURE_THRESHOLD", 5)
    backoff_s: float = _env_float("LSR_BACKOFF_S", 30)
    failure_reset_s: float = _env_float("LSR_FAILURE_RESET_S", 300)

    # Docker connection
    docker_timeout_s: int = _env_int("LSR_DOCKER_TIMEOUT_S", 30)
    connect_retry_s: float = _env_float("LSR_CONNECT_RETRY_S", 2)

    # Event journal
    db_path: str = os.getenv("LSR_DB_PATH", "lsr.db")

    # Email alerting (optional)
    enable_email: bool = _env_bool("LSR_ENABLE_EMAIL", False)
    smtp_host: str = os.getenv("LSR_SMTP_HOST", "smtp.gmail.com")
    smtp_port: int = _env_int("LSR_SMTP_PORT", 587)
    smtp_user: str | None = os.getenv("LSR_SMTP_USER")
    smtp_password: str | None = os.getenv("LSR_SMTP_PASSWORD")
    email_from: str | None = os.getenv("LSR_EMAIL_FROM")
    email_to: str | None = os.getenv("LSR_EMAIL_TO")


settings = Settings()
