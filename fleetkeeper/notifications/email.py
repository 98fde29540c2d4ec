"""Email notification channel for fleetkeeper.

Sends alerts as plain-text email via SMTP using the standard-library
``smtplib``, executed in a thread-pool executor so the event loop is
never blocked.
"""

from __future__ import annotations

import asyncio
import smtplib
import ssl
from email.message import EmailMessage

from fleetkeeper.models.alerts import Alert
from fleetkeeper.notifications.formatting import alert_title, format_plain
from fleetkeeper.notifications.manager import ChannelKind, NotificationChannel
from fleetkeeper.observability.logging import get_logger

_log = get_logger("notifications.email")


class SMTPConfig:
    """SMTP connection parameters.

    Args:
        host:       SMTP server hostname.
        port:       SMTP server port (587 for STARTTLS, 465 for SSL).
        username:   SMTP authentication username.
        password:   SMTP authentication password.
        from_addr:  Sender email address.
        use_tls:    If True, use SMTP_SSL (port 465). Defaults to False
                    (STARTTLS on port 587).
        timeout:    Socket timeout in seconds. Defaults to 10.
    """

    def __init__(
        self,
        host: str,
        port: int,
        username: str,
        password: str,
        from_addr: str,
        use_tls: bool = False,
        timeout: float = 10.0,
    ) -> None:
        if not host:
            raise ValueError("SMTP host must not be empty")
        if not from_addr:
            raise ValueError("SMTP from_addr must not be empty")
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.from_addr = from_addr
        self.use_tls = use_tls
        self.timeout = timeout


class EmailNotificationChannel(NotificationChannel):
    """Delivers alerts as plain-text emails via SMTP.

    Args:
        smtp_config: Connection and authentication parameters.
        to_addrs:    One or more recipient addresses.
    """

    def __init__(self, smtp_config: SMTPConfig, to_addrs: list[str]) -> None:
        recipients = [addr for addr in to_addrs if addr]
        if not recipients:
            raise ValueError("Email recipients must not be empty")
        self._smtp = smtp_config
        self._to_addrs = recipients

    @property
    def kind(self) -> ChannelKind:
        return ChannelKind.EMAIL

    async def send(self, alert: Alert) -> bool:
        """Send *alert* by email; True on successful hand-off to the server."""
        loop = asyncio.get_running_loop()
        try:
            await loop.run_in_executor(None, self._send_sync, alert)
            return True
        except smtplib.SMTPException as exc:
            _log.warning("email_smtp_error", error=str(exc), alert_id=alert.alert_id)
            return False
        except OSError as exc:
            _log.warning("email_connection_error", error=str(exc), alert_id=alert.alert_id)
            return False

    def _send_sync(self, alert: Alert) -> None:
        """Blocking SMTP delivery; runs inside a thread executor."""
        msg = self.build_message(alert)
        context = ssl.create_default_context()

        if self._smtp.use_tls:
            with smtplib.SMTP_SSL(
                self._smtp.host,
                self._smtp.port,
                context=context,
                timeout=self._smtp.timeout,
            ) as server:
                if self._smtp.username:
                    server.login(self._smtp.username, self._smtp.password)
                server.send_message(msg)
        else:
            with smtplib.SMTP(
                self._smtp.host,
                self._smtp.port,
                timeout=self._smtp.timeout,
            ) as server:
                server.ehlo()
                server.starttls(context=context)
                server.ehlo()
                if self._smtp.username:
                    server.login(self._smtp.username, self._smtp.password)
                server.send_message(msg)

    def build_message(self, alert: Alert) -> EmailMessage:
        msg = EmailMessage()
        msg["Subject"] = f"[fleetkeeper] {alert_title(alert)}"
        msg["From"] = self._smtp.from_addr
        msg["To"] = ", ".join(self._to_addrs)
        msg["X-Priority"] = "1" if alert.severity.value == "critical" else "3"
        msg.set_content(format_plain(alert))
        return msg
