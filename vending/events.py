from __future__ import annotations
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Optional
import enum
import logging

logger = logging.getLogger(__name__)


class NotificationKind(enum.Enum):
    STATUS = enum.auto()
    ERROR = enum.auto()
    LISTING = enum.auto()


@dataclass(frozen=True)
class Notification:
    """One entry in a session's notification feed. ERROR entries carry the
    exception that was rejected; LISTING entries carry the queried data in
    payload."""
    kind: NotificationKind
    message: str
    error: Optional[Exception] = None
    payload: Any = None

    @property
    def is_error(self) -> bool:
        return self.kind == NotificationKind.ERROR


Subscriber = Callable[[Notification], None]


class NotificationFeed:
    """Fans notifications out to subscribers in subscription order."""
    __slots__ = ('_subscribers',)

    def __init__(self) -> None:
        self._subscribers: list[Subscriber] = []

    def subscribe(self, subscriber: Subscriber) -> None:
        self._subscribers.append(subscriber)

    def unsubscribe(self, subscriber: Subscriber) -> None:
        self._subscribers.remove(subscriber)

    def publish(self, notification: Notification) -> Notification:
        for subscriber in list(self._subscribers):
            subscriber(notification)
        return notification

    def status(self, message: str) -> Notification:
        return self.publish(Notification(NotificationKind.STATUS, message))

    def error(self, error: Exception, message: Optional[str] = None,
              payload: Any = None) -> Notification:
        message = str(error) if message is None else message
        logger.warning('Rejected: %s', message)
        return self.publish(Notification(NotificationKind.ERROR, message, error=error, payload=payload))

    def listing(self, message: str, payload: Any) -> Notification:
        return self.publish(Notification(NotificationKind.LISTING, message, payload=payload))
