"""Channel-independent alert rendering.

Every channel carries the same five facts (severity, category, subject,
timestamp, message); only the envelope differs.
"""

from __future__ import annotations

from fleetkeeper.models.alerts import Alert
from fleetkeeper.models.events import Severity

SEVERITY_COLOR: dict[Severity, str] = {
    Severity.INFO: "2E7D32",
    Severity.WARNING: "E65100",
    Severity.CRITICAL: "B71C1C",
}

SMS_MAX_CHARS = 320


def format_timestamp(alert: Alert) -> str:
    return alert.timestamp.strftime("%Y-%m-%d %H:%M:%S %Z").strip()


def alert_title(alert: Alert) -> str:
    return f"[{alert.severity.value.upper()}] {alert.category.value.upper()} on {alert.subject}"


def alert_facts(alert: Alert) -> list[tuple[str, str]]:
    return [
        ("Severity", alert.severity.value.upper()),
        ("Category", alert.category.value),
        ("Subject", alert.subject),
        ("Time", format_timestamp(alert)),
    ]


def format_plain(alert: Alert) -> str:
    """Multi-line plain-text body used by email."""
    lines = [f"{label + ':':<10} {value}" for label, value in alert_facts(alert)]
    return (
        "fleetkeeper alert\n"
        f"{'=' * 60}\n\n"
        + "\n".join(lines)
        + f"\nAlert ID:  {alert.alert_id}\n\n"
        f"{alert.message}\n"
    )


def format_sms(alert: Alert) -> str:
    """Single-line text truncated to fit a concatenated SMS."""
    text = f"{alert_title(alert)} at {format_timestamp(alert)}: {alert.message}"
    if len(text) > SMS_MAX_CHARS:
        text = text[: SMS_MAX_CHARS - 3] + "..."
    return text
