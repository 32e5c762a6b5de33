import logging
from typing import Protocol

log = logging.getLogger("notifications")


class NotificationSink(Protocol):
    """Delivery side of user notifications (push, email, in-app feed...)."""

    async def send(self, user_id: str, notification_type: str, message: str) -> None:
        ...


class LoggingNotificationSink:
    """Default sink: records the notification in the service log."""

    async def send(self, user_id: str, notification_type: str, message: str) -> None:
        log.info(f"NOTIFY user={user_id} type={notification_type}: {message}")


_sink: NotificationSink = LoggingNotificationSink()


def get_notification_sink() -> NotificationSink:
    return _sink


def set_notification_sink(sink: NotificationSink) -> None:
    global _sink
    _sink = sink
