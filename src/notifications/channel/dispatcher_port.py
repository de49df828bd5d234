"""Notification dispatcher port: abstract interface for outbound notifications."""

from abc import ABC, abstractmethod
from enum import Enum

from notifications.notification.notification import RenderedNotification
from notifications.templates import get_template


class NotificationDeliveryError(Exception):
    """Raised by a dispatcher that could not hand a notification off."""


class NotificationDispatcher(ABC):
    """Abstract interface for notification dispatch adapters."""

    @abstractmethod
    def notify(self, kind: str, audience: str, payload: dict) -> dict:
        """Dispatch a notification of ``kind`` to ``audience``.

        Returns:
            dict with keys: message_id, status ("sent")

        Raises:
            NotificationDeliveryError: the notification could not be sent.
        """
        ...


def render(kind, audience: str, payload: dict) -> RenderedNotification:
    """Render ``payload`` through the template registered for ``kind``."""
    kind = kind.value if isinstance(kind, Enum) else kind
    template = get_template(kind)
    content = template.render(payload)
    return RenderedNotification(
        kind=kind,
        audience=audience,
        subject=content["subject"],
        body=content["body"],
        channels=tuple(template.default_channels),
        payload=dict(payload),
    )
