"""Fake dispatcher: records rendered notifications for testing."""

from uuid import uuid4

from notifications.channel.dispatcher_port import NotificationDeliveryError, NotificationDispatcher, render


class FakeDispatcher(NotificationDispatcher):
    """Dispatcher that records messages in memory for test assertions."""

    def __init__(self):
        self.sent_messages: list[dict] = []
        self.should_succeed = True
        self.failure_reason = "Notification delivery failed"

    def configure(self, should_succeed: bool = True, failure_reason: str = "Notification delivery failed"):
        """Configure the fake dispatcher behavior for testing."""
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason

    def notify(self, kind, audience: str, payload: dict) -> dict:
        if not self.should_succeed:
            raise NotificationDeliveryError(self.failure_reason)

        rendered = render(kind, audience, payload)
        message_id = f"notif-{uuid4().hex[:12]}"
        self.sent_messages.append(
            {
                "message_id": message_id,
                "kind": rendered.kind,
                "audience": audience,
                "subject": rendered.subject,
                "body": rendered.body,
                "payload": rendered.payload,
            }
        )
        return {"message_id": message_id, "status": "sent"}

    def messages_of(self, kind) -> list[dict]:
        kind = getattr(kind, "value", kind)
        return [m for m in self.sent_messages if m["kind"] == kind]

    def reset(self):
        """Clear sent messages (useful between tests)."""
        self.sent_messages.clear()
        self.should_succeed = True
        self.failure_reason = "Notification delivery failed"
