"""Alert data structures."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from uuid import uuid4

from fleetkeeper.models.events import AlertCategory, Severity


@dataclass(frozen=True)
class Alert:
    """Raised by the health checker, consumed by the notification system.

    Immutable: channel delivery attempts never modify the alert.
    """

    severity: Severity
    category: AlertCategory
    subject: str
    message: str
    timestamp: datetime
    alert_id: str = field(default_factory=lambda: str(uuid4()))
