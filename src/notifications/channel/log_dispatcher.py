"""Log dispatcher: writes rendered notifications to the application log.

Used in development, where no mail or chat integration is configured.
"""

from uuid import uuid4

import structlog

from notifications.channel.dispatcher_port import NotificationDispatcher, render

logger = structlog.get_logger(__name__)


class LogDispatcher(NotificationDispatcher):
    def notify(self, kind, audience: str, payload: dict) -> dict:
        rendered = render(kind, audience, payload)
        message_id = f"log-{uuid4().hex[:12]}"
        logger.info(
            "Notification dispatched",
            message_id=message_id,
            kind=rendered.kind,
            audience=audience,
            channels=list(rendered.channels),
            subject=rendered.subject,
        )
        return {"message_id": message_id, "status": "sent"}
