# src/reservation_engine/infrastructure/collaborators/notifications.py

from enum import Enum
import logging
from typing import Protocol

logger = logging.getLogger(__name__)


class NotificationKind(str, Enum):
    WAITING_APPROVAL = "WAITING_APPROVAL"
    TRANSACTION_ACCEPTED = "TRANSACTION_ACCEPTED"
    TRANSACTION_REJECTED = "TRANSACTION_REJECTED"
    TRANSACTION_CANCELLED = "TRANSACTION_CANCELLED"
    TRANSACTION_EXPIRED = "TRANSACTION_EXPIRED"
    NEW_PURCHASE = "NEW_PURCHASE"
    EVENT_SOLD_OUT = "EVENT_SOLD_OUT"


class NotificationSink(Protocol):
    def notify(
        self,
        user_id: str,
        kind: NotificationKind,
        title: str,
        message: str,
        link: str | None = None,
    ) -> None: ...


class LoggingNotificationSink:
    """
    Default sink: in-app delivery belongs to the notification service,
    this one only records what would have been delivered.
    """

    def notify(
        self,
        user_id: str,
        kind: NotificationKind,
        title: str,
        message: str,
        link: str | None = None,
    ) -> None:
        logger.info(
            "Notification user_id=%s kind=%s title=%r link=%s message=%r",
            user_id,
            kind.value,
            title,
            link,
            message,
        )
