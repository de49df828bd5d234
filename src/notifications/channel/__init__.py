"""Dispatcher registry: pluggable notification dispatch.

Provides singleton access to the active dispatcher. Uses the log dispatcher
by default; tests install a FakeDispatcher via set_dispatcher().
"""

from notifications.channel.dispatcher_port import NotificationDeliveryError, NotificationDispatcher

__all__ = ["NotificationDeliveryError", "NotificationDispatcher", "get_dispatcher", "reset_dispatcher", "set_dispatcher"]

_current_dispatcher: NotificationDispatcher | None = None


def get_dispatcher() -> NotificationDispatcher:
    """Return the configured dispatcher. Defaults to LogDispatcher."""
    global _current_dispatcher
    if _current_dispatcher is None:
        from notifications.channel.log_dispatcher import LogDispatcher

        _current_dispatcher = LogDispatcher()
    return _current_dispatcher


def set_dispatcher(dispatcher: NotificationDispatcher) -> None:
    """Override the active dispatcher (useful for tests)."""
    global _current_dispatcher
    _current_dispatcher = dispatcher


def reset_dispatcher() -> None:
    """Reset to default dispatcher."""
    global _current_dispatcher
    _current_dispatcher = None
