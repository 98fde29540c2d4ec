"""Configuration data structures."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class RegistryConfig:
    """Container registry configuration."""

    backend: str = "azure"
    name: str = ""
    url: str = ""
    username: str = ""
    secret_ref: str = ""
    subscription: str = ""


@dataclass
class HealthConfig:
    """Health-check inventory and thresholds."""

    hosts: list[str] = field(default_factory=list)
    hosts_file: str = ""
    services: list[str] = field(default_factory=list)
    transport: str = "local"
    ssh_user: str = ""
    restart_services: bool = False
    disk_threshold_gb: float = 10.0
    cpu_threshold_percent: float = 90.0
    memory_threshold_percent: float = 90.0


@dataclass
class NotificationConfig:
    """Notification channel configuration.

    ``*_secret_ref`` fields hold the *name* of the environment variable
    that carries the secret, never the secret itself.
    """

    email_secret_ref: str = ""
    email_to: str = ""
    teams_secret_ref: str = ""
    slack_secret_ref: str = ""
    sms_secret_ref: str = ""
    sms_to: str = ""


@dataclass
class RunConfig:
    """Settings shared by every pipeline run."""

    keep_count: int = 5
    workers: int = 4
    simulate: bool = True
    outcome_log: str = ""


@dataclass
class LogConfig:
    """Logging configuration."""

    level: str = "info"


@dataclass
class MetricsConfig:
    """Metrics configuration."""

    pushgateway: str = ""


@dataclass
class FleetkeeperConfig:
    """Top-level fleetkeeper configuration."""

    registry: RegistryConfig = field(default_factory=RegistryConfig)
    health: HealthConfig = field(default_factory=HealthConfig)
    notifications: NotificationConfig = field(default_factory=NotificationConfig)
    run: RunConfig = field(default_factory=RunConfig)
    log: LogConfig = field(default_factory=LogConfig)
    metrics: MetricsConfig = field(default_factory=MetricsConfig)
