"""Alert dispatcher for fleetkeeper.

NotificationChannel -- ABC every channel must implement.
AlertDispatcher     -- Fans one alert out to the requested channels;
                       failures in one channel never block the others
                       and never fail the dispatch call itself.
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from enum import StrEnum

from fleetkeeper.models.alerts import Alert
from fleetkeeper.observability.logging import get_logger
from fleetkeeper.observability.metrics import notifications_total

_log = get_logger("notifications.manager")


class ChannelKind(StrEnum):
    """Notification channels an alert can be routed to."""

    EMAIL = "email"
    TEAMS = "teams"
    SLACK = "slack"
    SMS = "sms"


class ChannelStatus(StrEnum):
    """Result of one channel delivery attempt."""

    SENT = "sent"
    FAILED = "failed"
    SKIPPED = "skipped"
    SIMULATED = "simulated"


class NotificationChannel(ABC):
    """Abstract base class for all notification channels.

    Every concrete channel must implement ``send``, which should not
    raise; return ``False`` instead.
    """

    @property
    @abstractmethod
    def kind(self) -> ChannelKind:
        """Channel identifier used for routing, metrics and logs."""

    @abstractmethod
    async def send(self, alert: Alert) -> bool:
        """Deliver *alert* via this channel.

        Returns:
            True  -- message accepted by the remote endpoint.
            False -- delivery failed (already logged inside implementation).
        """


@dataclass(frozen=True)
class DispatchResult:
    """Per-channel outcome of one ``dispatch`` call."""

    alert_id: str
    results: dict[ChannelKind, ChannelStatus] = field(default_factory=dict)

    def channels_with(self, status: ChannelStatus) -> list[ChannelKind]:
        return [kind for kind, result in self.results.items() if result is status]

    @property
    def sent(self) -> list[ChannelKind]:
        return self.channels_with(ChannelStatus.SENT)

    @property
    def failed(self) -> list[ChannelKind]:
        return self.channels_with(ChannelStatus.FAILED)

    @property
    def skipped(self) -> list[ChannelKind]:
        return self.channels_with(ChannelStatus.SKIPPED)

    def describe(self) -> str:
        if not self.results:
            return "no channels requested"
        return ", ".join(f"{kind.value}={status.value}" for kind, status in self.results.items())


class AlertDispatcher:
    """Fan-out dispatcher that sends an alert to each requested channel.

    * Never raises: exceptions from individual channels are caught and logged.
    * Requesting a channel that is not configured yields ``skipped``.
    * In simulate mode no channel is contacted; configured channels
      report ``simulated``.
    * No retries: callers re-invoke ``dispatch`` if they want another try.
    """

    def __init__(self, channels: Iterable[NotificationChannel] = ()) -> None:
        self._channels: dict[ChannelKind, NotificationChannel] = {}
        for channel in channels:
            self._channels[channel.kind] = channel

    @property
    def configured(self) -> Mapping[ChannelKind, NotificationChannel]:
        return dict(self._channels)

    async def dispatch(
        self,
        alert: Alert,
        channels: Iterable[ChannelKind] | None = None,
        simulate: bool = False,
    ) -> DispatchResult:
        """Deliver *alert* to *channels* (all kinds when None)."""
        requested = list(dict.fromkeys(channels if channels is not None else ChannelKind))
        results: dict[ChannelKind, ChannelStatus] = {}
        pending: list[NotificationChannel] = []

        for kind in requested:
            channel = self._channels.get(kind)
            if channel is None:
                results[kind] = ChannelStatus.SKIPPED
            elif simulate:
                results[kind] = ChannelStatus.SIMULATED
                _log.info("notification_simulated", channel=kind.value, alert_id=alert.alert_id, subject=alert.subject)
            else:
                pending.append(channel)

        statuses = await asyncio.gather(*(self._send_one(channel, alert) for channel in pending))
        for channel, status in zip(pending, statuses, strict=True):
            results[channel.kind] = status

        for kind, status in results.items():
            notifications_total.labels(channel=kind.value, status=status.value).inc()

        # Preserve the requested order in the result map.
        return DispatchResult(alert_id=alert.alert_id, results={kind: results[kind] for kind in requested})

    async def _send_one(self, channel: NotificationChannel, alert: Alert) -> ChannelStatus:
        try:
            success = await channel.send(alert)
        except Exception as exc:  # noqa: BLE001
            _log.error(
                "notification_channel_unexpected_error",
                channel=channel.kind.value,
                alert_id=alert.alert_id,
                error=str(exc),
            )
            success = False

        if success:
            _log.info(
                "notification_sent",
                channel=channel.kind.value,
                alert_id=alert.alert_id,
                severity=alert.severity.value,
                category=alert.category.value,
                subject=alert.subject,
            )
            return ChannelStatus.SENT
        _log.warning("notification_failed", channel=channel.kind.value, alert_id=alert.alert_id)
        return ChannelStatus.FAILED
