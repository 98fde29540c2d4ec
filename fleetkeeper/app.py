"""Application bootstrap for fleetkeeper.

Wires clients, enumerators and processors from configuration and runs a
pipeline under an asyncio loop with SIGINT/SIGTERM mapped to cooperative
cancellation.  The CLI is a thin layer over the functions here.
"""

from __future__ import annotations

import asyncio
import os
import signal
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field

from fleetkeeper.engine.audit import OutcomeLog
from fleetkeeper.engine.runner import MaintenanceRun, ResourceEnumerator, ResourceProcessor
from fleetkeeper.errors import ConfigError
from fleetkeeper.health.checker import HealthChecker
from fleetkeeper.health.enumerator import HostEnumerator
from fleetkeeper.health.probe import HostProbe, LocalHostProbe, SSHHostProbe
from fleetkeeper.models.config import FleetkeeperConfig, HealthConfig, RegistryConfig
from fleetkeeper.models.outcomes import RunSummary
from fleetkeeper.models.policy import HealthThresholds, RetentionPolicy
from fleetkeeper.models.resources import Scope
from fleetkeeper.notifications import build_alert_dispatcher
from fleetkeeper.notifications.manager import AlertDispatcher, ChannelKind
from fleetkeeper.observability.logging import get_logger
from fleetkeeper.registry.client import AzureCliRegistryClient, DistributionRegistryClient, RegistryClient
from fleetkeeper.registry.enumerator import RegistryEnumerator
from fleetkeeper.registry.pruner import ImagePruner

_log = get_logger("app")


@dataclass
class Pipeline:
    """Everything needed to run one invocation."""

    enumerator: ResourceEnumerator
    processor: ResourceProcessor
    cleanup: list[Callable[[], Awaitable[None]]] = field(default_factory=list)


def build_registry_client(config: RegistryConfig) -> RegistryClient:
    """Create the registry client selected by ``config.backend``."""
    if config.backend == "azure":
        if not config.name:
            raise ConfigError("registry name is required for the azure backend (FLEETKEEPER_REGISTRY_NAME)")
        return AzureCliRegistryClient(registry=config.name, subscription=config.subscription or None)
    if config.backend == "distribution":
        if not config.url:
            raise ConfigError("registry url is required for the distribution backend (FLEETKEEPER_REGISTRY_URL)")
        password = os.environ.get(config.secret_ref, "") if config.secret_ref else ""
        return DistributionRegistryClient(base_url=config.url, username=config.username, password=password)
    raise ConfigError(f"unknown registry backend: {config.backend!r}")


def build_prune_pipeline(config: FleetkeeperConfig, client: RegistryClient | None = None) -> Pipeline:
    """Image-tag retention pipeline.  Raises PolicyError for a bad keep count."""
    policy = RetentionPolicy(config.run.keep_count)
    client = client or build_registry_client(config.registry)
    return Pipeline(
        enumerator=RegistryEnumerator(client),
        processor=ImagePruner(client, policy),
        cleanup=[client.aclose],
    )


def build_host_probe(config: HealthConfig) -> HostProbe:
    if config.transport == "ssh":
        return SSHHostProbe(user=config.ssh_user or None)
    if config.transport == "local":
        return LocalHostProbe()
    raise ConfigError(f"unknown health transport: {config.transport!r}")


def build_health_pipeline(
    config: FleetkeeperConfig,
    channels: list[ChannelKind] | None = None,
    probe: HostProbe | None = None,
    dispatcher: AlertDispatcher | None = None,
) -> Pipeline:
    """Health-check pipeline.  Raises PolicyError for bad thresholds."""
    health = config.health
    thresholds = HealthThresholds(
        disk_free_gb=health.disk_threshold_gb,
        cpu_percent=health.cpu_threshold_percent,
        memory_percent=health.memory_threshold_percent,
    )
    probe = probe or build_host_probe(health)
    hosts = list(health.hosts)
    if not hosts and not health.hosts_file and health.transport == "local":
        hosts = ["localhost"]
    enumerator = HostEnumerator(
        probe,
        hosts=hosts,
        hosts_file=health.hosts_file or None,
        services=health.services,
        concurrency=config.run.workers,
    )
    checker = HealthChecker(
        probe,
        dispatcher or build_alert_dispatcher(config.notifications),
        thresholds=thresholds,
        channels=channels,
        restart_services=health.restart_services,
    )
    return Pipeline(enumerator=enumerator, processor=checker)


async def run_pipeline(pipeline: Pipeline, scope: Scope, config: FleetkeeperConfig) -> RunSummary:
    """Run *pipeline* once; SIGINT/SIGTERM request cooperative cancellation."""
    cancel = asyncio.Event()
    loop = asyncio.get_running_loop()
    installed: list[signal.Signals] = []

    def _request_cancel() -> None:
        if not cancel.is_set():
            _log.warning("cancellation_requested")
            cancel.set()

    for sig in (signal.SIGTERM, signal.SIGINT):
        try:
            loop.add_signal_handler(sig, _request_cancel)
            installed.append(sig)
        except (NotImplementedError, RuntimeError):
            # Not supported off the main thread or on this platform.
            pass

    sinks = [OutcomeLog(config.run.outcome_log)] if config.run.outcome_log else []
    run = MaintenanceRun(
        pipeline.enumerator,
        pipeline.processor,
        simulate=config.run.simulate,
        workers=config.run.workers,
        cancel_event=cancel,
        sinks=sinks,
    )
    try:
        return await run.run(scope)
    finally:
        for sig in installed:
            loop.remove_signal_handler(sig)
        for close in pipeline.cleanup:
            try:
                await close()
            except Exception as exc:  # noqa: BLE001
                _log.debug("pipeline_cleanup_failed", error=str(exc))
