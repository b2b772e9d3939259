"""Configuration management for the uptime monitor."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Optional

import structlog
import yaml
from pydantic import BaseModel, Field

from .models import NotificationConfig


logger = structlog.get_logger(__name__)

DEFAULT_CHECK_INTERVAL_SECONDS = 60
DEFAULT_CONFIG_PATH = "config/gjallarhorn.yaml"


class MonitorConfig(BaseModel):
    """Main configuration for the monitoring service."""

    # Scheduling
    check_interval_seconds: int = Field(
        default=DEFAULT_CHECK_INTERVAL_SECONDS, ge=1, description="Seconds between probe cycles"
    )
    reminder_interval_seconds: int = Field(default=3600, ge=1, description="Seconds between reminder sweeps")
    scheduler_enabled: bool = Field(default=True, description="Start the background check/reminder jobs")

    # Probing
    probe_timeout_seconds: float = Field(default=30.0, gt=0, description="Hard deadline per probe")
    max_concurrent_checks: int = Field(default=10, ge=1, description="Maximum in-flight probes per cycle")
    failure_threshold: int = Field(default=3, ge=1, description="Consecutive failures before going offline")
    skip_tls_verify: bool = Field(default=False, description="Accept self-signed certificates")
    user_agent: str = Field(default="Gjallarhorn/1.0", description="User-Agent sent with every probe")

    # Persistence
    data_dir: str = Field(default="/data", description="Directory holding services.json and config.json")

    # Notifications (initial values; a stored config replaces them at startup)
    pushover_user_key: str = Field(default="", description="Pushover user key")
    pushover_app_token: str = Field(default="", description="Pushover application token")
    pushover_enabled: bool = Field(default=False, description="Send Pushover alerts")

    # Server
    host: str = Field(default="0.0.0.0", description="Bind address for the API server")
    port: int = Field(default=8080, ge=1, le=65535, description="Port for the API server")
    log_level: str = Field(default="INFO", description="Logging level")

    def notification_defaults(self) -> NotificationConfig:
        return NotificationConfig(
            user_key=self.pushover_user_key,
            app_token=self.pushover_app_token,
            enabled=self.pushover_enabled,
        )


def _env_bool(raw: str) -> bool:
    return raw.strip().lower() in ("true", "1", "yes", "y", "on")


def _parse_check_interval(raw: str) -> int:
    try:
        interval = int(raw.strip())
    except ValueError:
        interval = 0
    if interval < 1:
        logger.warning(
            "Invalid CHECK_INTERVAL, using default",
            value=raw,
            default_seconds=DEFAULT_CHECK_INTERVAL_SECONDS,
        )
        return DEFAULT_CHECK_INTERVAL_SECONDS
    return interval


def load_config(config_path: Optional[str] = None) -> MonitorConfig:
    """Load configuration from an optional YAML file, then apply environment overrides."""
    if config_path is None:
        config_path = os.getenv("GJALLARHORN_CONFIG", DEFAULT_CONFIG_PATH)

    config_data: dict[str, Any] = {}

    path = Path(config_path)
    if path.exists():
        with open(path, "r", encoding="utf-8") as f:
            loaded = yaml.safe_load(f) or {}
        if not isinstance(loaded, dict):
            raise ValueError(f"Config YAML must be a mapping: {path}")
        config_data.update(loaded)

    env_overrides = {
        "check_interval_seconds": os.getenv("CHECK_INTERVAL"),
        "skip_tls_verify": os.getenv("SKIP_TLS_VERIFY"),
        "data_dir": os.getenv("DATA_DIR"),
        "pushover_user_key": os.getenv("PUSHOVER_USER_KEY"),
        "pushover_app_token": os.getenv("PUSHOVER_APP_TOKEN"),
        "pushover_enabled": os.getenv("PUSHOVER_ENABLED"),
        "log_level": os.getenv("LOG_LEVEL"),
        "host": os.getenv("HOST"),
        "port": os.getenv("PORT"),
    }

    for key, value in env_overrides.items():
        if value is None or value == "":
            continue
        if key == "check_interval_seconds":
            config_data[key] = _parse_check_interval(value)
        elif key in ("skip_tls_verify", "pushover_enabled"):
            config_data[key] = _env_bool(value)
        elif key == "port":
            config_data[key] = int(value)
        else:
            config_data[key] = value

    config = MonitorConfig(**config_data)
    if config.skip_tls_verify:
        logger.warning("TLS certificate verification is disabled (SKIP_TLS_VERIFY=true)")
    return config
