"""Chat webhook notification channels.

Both channels POST a JSON card to an incoming-webhook URL:

    TeamsWebhookChannel -- Microsoft Teams MessageCard.
    SlackWebhookChannel -- Slack Block Kit message.
"""

from __future__ import annotations

from abc import abstractmethod

import httpx

from fleetkeeper.models.alerts import Alert
from fleetkeeper.notifications.formatting import SEVERITY_COLOR, alert_facts, alert_title
from fleetkeeper.notifications.manager import ChannelKind, NotificationChannel
from fleetkeeper.observability.logging import get_logger

_log = get_logger("notifications.webhook")


class WebhookNotificationChannel(NotificationChannel):
    """Delivers alerts by POSTing a JSON card to a webhook URL.

    Args:
        url:       Incoming-webhook URL.
        timeout:   HTTP request timeout in seconds. Defaults to 10.
        transport: Optional httpx transport, used by tests.
    """

    def __init__(
        self,
        url: str,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if not url:
            raise ValueError("Webhook url must not be empty")
        if not url.startswith(("https://", "http://")):
            raise ValueError(f"Webhook url must be http(s), got: {url!r}")
        self._url = url
        self._timeout = timeout
        self._transport = transport

    @abstractmethod
    def build_payload(self, alert: Alert) -> dict[str, object]:
        """Render *alert* as the channel's card payload."""

    async def send(self, alert: Alert) -> bool:
        """POST the card; True on a 2xx response."""
        payload = self.build_payload(alert)
        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                response = await client.post(self._url, json=payload)
                if response.is_success:
                    return True
                _log.warning(
                    "webhook_non_2xx_response",
                    channel=self.kind.value,
                    status_code=response.status_code,
                    body=response.text[:200],
                    alert_id=alert.alert_id,
                )
                return False
        except httpx.TimeoutException:
            _log.warning("webhook_request_timeout", channel=self.kind.value, alert_id=alert.alert_id)
            return False
        except httpx.HTTPError as exc:
            _log.warning("webhook_http_error", channel=self.kind.value, error=str(exc), alert_id=alert.alert_id)
            return False


class TeamsWebhookChannel(WebhookNotificationChannel):
    """Microsoft Teams incoming webhook (MessageCard)."""

    @property
    def kind(self) -> ChannelKind:
        return ChannelKind.TEAMS

    def build_payload(self, alert: Alert) -> dict[str, object]:
        return {
            "@type": "MessageCard",
            "@context": "https://schema.org/extensions",
            "summary": alert_title(alert),
            "themeColor": SEVERITY_COLOR[alert.severity],
            "title": alert_title(alert),
            "sections": [
                {
                    "facts": [{"name": name, "value": value} for name, value in alert_facts(alert)],
                    "text": alert.message,
                    "markdown": True,
                }
            ],
        }


class SlackWebhookChannel(WebhookNotificationChannel):
    """Slack incoming webhook (Block Kit)."""

    @property
    def kind(self) -> ChannelKind:
        return ChannelKind.SLACK

    def build_payload(self, alert: Alert) -> dict[str, object]:
        return {
            "text": alert_title(alert),
            "attachments": [
                {
                    "color": f"#{SEVERITY_COLOR[alert.severity]}",
                    "blocks": [
                        {
                            "type": "header",
                            "text": {"type": "plain_text", "text": alert_title(alert)[:150]},
                        },
                        {
                            "type": "section",
                            "fields": [
                                {"type": "mrkdwn", "text": f"*{name}*\n{value}"} for name, value in alert_facts(alert)
                            ],
                        },
                        {
                            "type": "section",
                            "text": {"type": "mrkdwn", "text": alert.message},
                        },
                    ],
                }
            ],
        }
