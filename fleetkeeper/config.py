"""Configuration loading from environment variables."""

from __future__ import annotations

import os

from fleetkeeper.errors import ConfigError
from fleetkeeper.models.config import (
    FleetkeeperConfig,
    HealthConfig,
    LogConfig,
    MetricsConfig,
    NotificationConfig,
    RegistryConfig,
    RunConfig,
)


def _env(key: str, default: str = "") -> str:
    return os.environ.get(f"FLEETKEEPER_{key}", default)


def _env_bool(key: str, default: bool = False) -> bool:
    val = _env(key, str(default).lower())
    return val.lower() in ("true", "1", "yes")


def _env_int(key: str, default: int, min_val: int | None = None, max_val: int | None = None) -> int:
    raw = _env(key, str(default))
    try:
        val = int(raw)
    except ValueError as exc:
        raise ConfigError(f"FLEETKEEPER_{key} must be an integer, got {raw!r}") from exc
    if min_val is not None:
        val = max(val, min_val)
    if max_val is not None:
        val = min(val, max_val)
    return val


def _env_float(key: str, default: float) -> float:
    raw = _env(key, str(default))
    try:
        return float(raw)
    except ValueError as exc:
        raise ConfigError(f"FLEETKEEPER_{key} must be a number, got {raw!r}") from exc


def _env_list(key: str) -> list[str]:
    return [item.strip() for item in _env(key, "").split(",") if item.strip()]


def _validate_choice(key: str, value: str, valid: set[str]) -> str:
    if value.lower() not in valid:
        raise ConfigError(f"Invalid FLEETKEEPER_{key}: {value}. Must be one of {sorted(valid)}")
    return value.lower()


def _validate_log_level(value: str) -> str:
    return _validate_choice("LOG_LEVEL", value, {"debug", "info", "warning", "error"})


def load_config() -> FleetkeeperConfig:
    """Load configuration from FLEETKEEPER_* environment variables.

    Keep count is not clamped here: a non-positive value is a policy
    error and must surface as one when the pipeline is built.
    """
    return FleetkeeperConfig(
        registry=RegistryConfig(
            backend=_validate_choice("REGISTRY_BACKEND", _env("REGISTRY_BACKEND", "azure"), {"azure", "distribution"}),
            name=_env("REGISTRY_NAME", ""),
            url=_env("REGISTRY_URL", ""),
            username=_env("REGISTRY_USERNAME", ""),
            secret_ref=_env("REGISTRY_SECRET_REF", ""),
            subscription=_env("SUBSCRIPTION", ""),
        ),
        health=HealthConfig(
            hosts=_env_list("HEALTH_HOSTS"),
            hosts_file=_env("HEALTH_HOSTS_FILE", ""),
            services=_env_list("HEALTH_SERVICES"),
            transport=_validate_choice("HEALTH_TRANSPORT", _env("HEALTH_TRANSPORT", "local"), {"local", "ssh"}),
            ssh_user=_env("HEALTH_SSH_USER", ""),
            restart_services=_env_bool("HEALTH_RESTART_SERVICES", False),
            disk_threshold_gb=_env_float("DISK_THRESHOLD_GB", 10.0),
            cpu_threshold_percent=_env_float("CPU_THRESHOLD_PERCENT", 90.0),
            memory_threshold_percent=_env_float("MEMORY_THRESHOLD_PERCENT", 90.0),
        ),
        notifications=NotificationConfig(
            email_secret_ref=_env("NOTIFICATIONS_EMAIL_SECRET_REF", ""),
            email_to=_env("NOTIFICATIONS_EMAIL_TO", ""),
            teams_secret_ref=_env("NOTIFICATIONS_TEAMS_SECRET_REF", ""),
            slack_secret_ref=_env("NOTIFICATIONS_SLACK_SECRET_REF", ""),
            sms_secret_ref=_env("NOTIFICATIONS_SMS_SECRET_REF", ""),
            sms_to=_env("NOTIFICATIONS_SMS_TO", ""),
        ),
        run=RunConfig(
            keep_count=_env_int("KEEP_COUNT", 5),
            workers=_env_int("WORKERS", 4, min_val=1, max_val=32),
            simulate=_env_bool("SIMULATE", True),
            outcome_log=_env("OUTCOME_LOG", ""),
        ),
        log=LogConfig(
            level=_validate_log_level(_env("LOG_LEVEL", "info")),
        ),
        metrics=MetricsConfig(
            pushgateway=_env("METRICS_PUSHGATEWAY", ""),
        ),
    )
