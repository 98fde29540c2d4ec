"""SMS notification channel for fleetkeeper.

Posts to a Twilio-compatible Messages REST endpoint with HTTP basic auth.
"""

from __future__ import annotations

import httpx

from fleetkeeper.models.alerts import Alert
from fleetkeeper.notifications.formatting import format_sms
from fleetkeeper.notifications.manager import ChannelKind, NotificationChannel
from fleetkeeper.observability.logging import get_logger

_log = get_logger("notifications.sms")

_DEFAULT_API = "https://api.twilio.com"


class SMSGatewayConfig:
    """SMS gateway credentials.

    Args:
        account_sid: Account identifier, used as the basic-auth username.
        auth_token:  Basic-auth password.
        from_number: Sender number in E.164 form.
        base_url:    Gateway base URL. Defaults to the Twilio API.
    """

    def __init__(self, account_sid: str, auth_token: str, from_number: str, base_url: str = _DEFAULT_API) -> None:
        if not account_sid or not auth_token:
            raise ValueError("SMS account_sid and auth_token must not be empty")
        if not from_number:
            raise ValueError("SMS from_number must not be empty")
        self.account_sid = account_sid
        self.auth_token = auth_token
        self.from_number = from_number
        self.base_url = base_url.rstrip("/")

    @property
    def messages_url(self) -> str:
        return f"{self.base_url}/2010-04-01/Accounts/{self.account_sid}/Messages.json"


class SMSNotificationChannel(NotificationChannel):
    """Sends one text message per recipient.

    Delivery succeeds only if every recipient was accepted.
    """

    def __init__(
        self,
        gateway: SMSGatewayConfig,
        to_numbers: list[str],
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        recipients = [n for n in to_numbers if n]
        if not recipients:
            raise ValueError("SMS recipients must not be empty")
        self._gateway = gateway
        self._to_numbers = recipients
        self._timeout = timeout
        self._transport = transport

    @property
    def kind(self) -> ChannelKind:
        return ChannelKind.SMS

    async def send(self, alert: Alert) -> bool:
        body = format_sms(alert)
        auth = (self._gateway.account_sid, self._gateway.auth_token)
        delivered = True
        try:
            async with httpx.AsyncClient(timeout=self._timeout, auth=auth, transport=self._transport) as client:
                for number in self._to_numbers:
                    response = await client.post(
                        self._gateway.messages_url,
                        data={"To": number, "From": self._gateway.from_number, "Body": body},
                    )
                    if not response.is_success:
                        _log.warning(
                            "sms_non_2xx_response",
                            status_code=response.status_code,
                            to=number,
                            alert_id=alert.alert_id,
                        )
                        delivered = False
        except httpx.HTTPError as exc:
            _log.warning("sms_http_error", error=str(exc), alert_id=alert.alert_id)
            return False
        return delivered
