"""fleetkeeper command-line interface.

Exit codes:
    0 -- the run completed, even if individual items failed.
    1 -- run-fatal error (configuration, policy or enumeration).
    2 -- usage error (click).
"""

from __future__ import annotations

import asyncio
import copy
import json

import click

from fleetkeeper import __version__
from fleetkeeper.app import Pipeline, build_health_pipeline, build_prune_pipeline, run_pipeline
from fleetkeeper.config import load_config
from fleetkeeper.errors import RunFatalError
from fleetkeeper.models.config import FleetkeeperConfig
from fleetkeeper.models.events import OutcomeStatus
from fleetkeeper.models.outcomes import RunSummary
from fleetkeeper.models.resources import Scope
from fleetkeeper.notifications.manager import ChannelKind
from fleetkeeper.observability.logging import setup_logging
from fleetkeeper.observability.metrics import push_metrics

_STATUS_MARK = {
    OutcomeStatus.ACTED: "done",
    OutcomeStatus.SIMULATED: "would",
    OutcomeStatus.FAILED: "FAILED",
    OutcomeStatus.SKIPPED: "skip",
}


def _fatal(ctx: click.Context, message: str) -> None:
    click.echo(f"error: {message}", err=True)
    ctx.exit(1)


def render_summary(summary: RunSummary, verbose: bool = False) -> str:
    """Human-readable run summary; skipped items only when *verbose*."""
    mode = "simulate" if summary.simulate else "execute"
    lines = [
        f"{summary.pipeline} run {summary.run_id} ({mode}): {summary.state.value}"
        + (" [cancelled]" if summary.cancelled else ""),
        f"  considered={summary.considered} succeeded={summary.succeeded} simulated={summary.simulated} "
        f"failed={summary.failed} skipped={summary.skipped}",
    ]
    for outcome in summary.outcomes:
        if outcome.status is OutcomeStatus.SKIPPED and not verbose:
            continue
        note = outcome.error or outcome.detail
        line = f"  {_STATUS_MARK[outcome.status]:<6} {outcome.action:<15} {outcome.target}"
        lines.append(line + (f"  ({note})" if note else ""))
    return "\n".join(lines)


def _execute(
    ctx: click.Context,
    pipeline: Pipeline,
    scope: Scope,
    config: FleetkeeperConfig,
    as_json: bool,
    verbose: bool,
) -> None:
    fatal: RunFatalError | None = None
    try:
        summary = asyncio.run(run_pipeline(pipeline, scope, config))
    except RunFatalError as exc:
        fatal = exc
        summary = exc.summary

    if summary is not None:
        click.echo(json.dumps(summary.to_dict(), indent=2) if as_json else render_summary(summary, verbose=verbose))
    if config.metrics.pushgateway:
        push_metrics(config.metrics.pushgateway, job=f"fleetkeeper-{pipeline.processor.pipeline}")
    if fatal is not None:
        _fatal(ctx, str(fatal))


def _apply_run_options(
    config: FleetkeeperConfig,
    execute: bool | None,
    workers: int | None,
    log_file: str | None,
) -> None:
    if execute is not None:
        config.run.simulate = not execute
    if workers is not None:
        config.run.workers = workers
    if log_file:
        config.run.outcome_log = log_file


_run_options = [
    click.option("--target", "-t", default="all", show_default=True, help="Resource name, or 'all'."),
    click.option(
        "--execute/--simulate",
        "execute",
        default=None,
        help="Perform mutating actions. Simulate is the default unless FLEETKEEPER_SIMULATE=false.",
    ),
    click.option("--workers", type=click.IntRange(1, 32), default=None, help="Resources processed concurrently."),
    click.option("--log-file", type=click.Path(dir_okay=False), default=None, help="Append one JSON line per outcome."),
    click.option("--json", "as_json", is_flag=True, help="Print the run summary as JSON."),
    click.option("--verbose", "-v", is_flag=True, help="Also list skipped items."),
]


def run_options(func):  # type: ignore[no-untyped-def]
    for option in reversed(_run_options):
        func = option(func)
    return func


@click.group()
@click.option(
    "--log-level",
    type=click.Choice(["debug", "info", "warning", "error"], case_sensitive=False),
    default=None,
    help="Overrides FLEETKEEPER_LOG_LEVEL.",
)
@click.version_option(__version__, prog_name="fleetkeeper")
@click.pass_context
def cli(ctx: click.Context, log_level: str | None) -> None:
    """Prune stale registry tags and health-check hosts."""
    try:
        config = load_config()
    except RunFatalError as exc:
        _fatal(ctx, str(exc))
        return
    setup_logging((log_level or config.log.level).lower())
    ctx.obj = config


@cli.command("prune-images")
@click.option("--keep", type=int, default=None, help="Tags to keep per repository (>= 1).")
@click.option("--registry", default=None, help="Registry name (azure backend).")
@click.option("--url", default=None, help="Registry URL (distribution backend).")
@click.option("--backend", type=click.Choice(["azure", "distribution"]), default=None)
@click.option("--subscription", default=None, help="Subscription or context passed to the registry client.")
@run_options
@click.pass_context
def prune_images(
    ctx: click.Context,
    keep: int | None,
    registry: str | None,
    url: str | None,
    backend: str | None,
    subscription: str | None,
    target: str,
    execute: bool | None,
    workers: int | None,
    log_file: str | None,
    as_json: bool,
    verbose: bool,
) -> None:
    """Delete all but the newest KEEP tags of each repository."""
    config: FleetkeeperConfig = copy.deepcopy(ctx.obj)
    _apply_run_options(config, execute, workers, log_file)
    if keep is not None:
        config.run.keep_count = keep
    if registry:
        config.registry.name = registry
    if url:
        config.registry.url = url
    if backend:
        config.registry.backend = backend
    if subscription:
        config.registry.subscription = subscription

    try:
        pipeline = build_prune_pipeline(config)
    except (RunFatalError, ValueError) as exc:
        _fatal(ctx, str(exc))
        return
    _execute(ctx, pipeline, Scope.parse(target), config, as_json, verbose)


@cli.command("health-check")
@click.option("--host", "hosts", multiple=True, help="Host to check; repeatable.")
@click.option("--hosts-file", type=click.Path(dir_okay=False), default=None, help="File with one host per line.")
@click.option("--service", "services", multiple=True, help="Service whose status is checked; repeatable.")
@click.option("--disk-threshold-gb", type=float, default=None, help="Alert when free space drops below this.")
@click.option("--cpu-threshold", type=float, default=None, help="Alert when CPU usage percent exceeds this.")
@click.option("--memory-threshold", type=float, default=None, help="Alert when memory usage percent exceeds this.")
@click.option("--restart-stopped/--no-restart-stopped", default=None, help="Restart services found stopped.")
@click.option(
    "--channel",
    "channels",
    multiple=True,
    type=click.Choice([kind.value for kind in ChannelKind]),
    help="Alert channel; repeatable. Default: every channel.",
)
@click.option("--transport", type=click.Choice(["local", "ssh"]), default=None)
@click.option("--ssh-user", default=None)
@run_options
@click.pass_context
def health_check(
    ctx: click.Context,
    hosts: tuple[str, ...],
    hosts_file: str | None,
    services: tuple[str, ...],
    disk_threshold_gb: float | None,
    cpu_threshold: float | None,
    memory_threshold: float | None,
    restart_stopped: bool | None,
    channels: tuple[str, ...],
    transport: str | None,
    ssh_user: str | None,
    target: str,
    execute: bool | None,
    workers: int | None,
    log_file: str | None,
    as_json: bool,
    verbose: bool,
) -> None:
    """Check disk, CPU, memory and services; alert on breached thresholds."""
    config: FleetkeeperConfig = copy.deepcopy(ctx.obj)
    _apply_run_options(config, execute, workers, log_file)
    health = config.health
    if hosts:
        health.hosts = list(hosts)
    if hosts_file:
        health.hosts_file = hosts_file
    if services:
        health.services = list(services)
    if disk_threshold_gb is not None:
        health.disk_threshold_gb = disk_threshold_gb
    if cpu_threshold is not None:
        health.cpu_threshold_percent = cpu_threshold
    if memory_threshold is not None:
        health.memory_threshold_percent = memory_threshold
    if restart_stopped is not None:
        health.restart_services = restart_stopped
    if transport:
        health.transport = transport
    if ssh_user:
        health.ssh_user = ssh_user

    try:
        pipeline = build_health_pipeline(config, channels=[ChannelKind(c) for c in channels] or None)
    except (RunFatalError, ValueError) as exc:
        _fatal(ctx, str(exc))
        return
    _execute(ctx, pipeline, Scope.parse(target), config, as_json, verbose)
