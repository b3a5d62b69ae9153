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
    # Store
    db_path: str = os.getenv("DSB_DB_PATH", "dynstandby.db")
    api_url: str | None = os.getenv("DSB_API_URL")
    api_token: str | None = os.getenv("DSB_API_TOKEN")
    request_timeout_s: float = _env_float("DSB_REQUEST_TIMEOUT_S", 10.0)

    # Resource identity
    namespace: str = os.getenv("DSB_NAMESPACE", "default")
    api_group: str = os.getenv("DSB_API_GROUP", "mps.playfab.com")
    api_version: str = os.getenv("DSB_API_VERSION", "v1alpha1")
    build_kind: str = os.getenv("DSB_BUILD_KIND", "GameServerBuild")
    build_plural: str = os.getenv("DSB_BUILD_PLURAL", "gameserverbuilds")

    # Controller
    workers: int = _env_int("DSB_WORKERS", 2)
    resync_interval_s: float = _env_float("DSB_RESYNC_INTERVAL_S", 30.0)
    pass_timeout_s: float = _env_float("DSB_PASS_TIMEOUT_S", 15.0)
    backoff_base_s: float = _env_float("DSB_BACKOFF_BASE_S", 0.5)
    backoff_max_s: float = _env_float("DSB_BACKOFF_MAX_S", 60.0)

    # Email alerting (optional)
    enable_email: bool = _env_bool("DSB_ENABLE_EMAIL", False)
    smtp_host: str = os.getenv("DSB_SMTP_HOST", "smtp.gmail.com")
    smtp_port: int = _env_int("DSB_SMTP_PORT", 587)
    smtp_user: str | None = os.getenv("DSB_SMTP_USER")
    smtp_password: str | None = os.getenv("DSB_SMTP_PASSWORD")
    email_from: str | None = os.getenv("DSB_EMAIL_FROM")
    email_to: str | None = os.getenv("DSB_EMAIL_TO")

    @property
    def group_version(self) -> str:
        return f"{self.api_group}/{self.api_version}"


settings = Settings()
