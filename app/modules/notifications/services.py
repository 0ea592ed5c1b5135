from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import SQLAlchemyError
from typing import Any, Dict, Optional
from datetime import datetime
import json
import logging

from app.modules.notifications.models import Notification, NotificationType, NotificationStatus

logger = logging.getLogger(__name__)


# event -> (type, title, message template)
EVENT_TEMPLATES = {
    "loan_approved": (NotificationType.LOAN, "Loan approved",
                      "Your {loan_type} loan of ${principal} has been approved."),
    "loan_rejected": (NotificationType.LOAN, "Loan application declined",
                      "Your {loan_type} loan application was declined: {reason}"),
    "loan_disbursed": (NotificationType.LOAN, "Loan disbursed",
                       "${principal} has been credited to your account. Reference {reference}."),
    "loan_payment_recorded": (NotificationType.LOAN, "Loan payment received",
                              "We received your payment of ${amount}. Remaining balance: ${new_balance}."),
    "loan_closed": (NotificationType.LOAN, "Loan paid in full",
                    "Congratulations, your {loan_type} loan has been paid in full and closed."),
    "account_activated": (NotificationType.ACCOUNT, "Account activated",
                          "Your account {account_number} is now active."),
    "account_suspended": (NotificationType.ACCOUNT, "Account suspended",
                          "Your account {account_number} has been suspended."),
    "account_closed": (NotificationType.ACCOUNT, "Account closed",
                       "Your account {account_number} has been closed."),
    "account_rejected": (NotificationType.ACCOUNT, "Account application declined",
                         "Your account application {account_number} was declined."),
}


class _DefaultDict(dict):
    def __missing__(self, key):
        return ""


class NotificationService:
    """
    In-app notifications for lifecycle events.

    Notifications are written after the transition has committed; a failure
    here is logged and never undoes the transition.
    """

    @staticmethod
    def render(event: str, payload: Dict[str, Any]) -> tuple:
        notification_type, title, template = EVENT_TEMPLATES.get(
            event, (NotificationType.ACCOUNT, event.replace("_", " ").capitalize(), "")
        )
        message = template.format_map(_DefaultDict({k: v for k, v in payload.items() if v is not None}))
        return notification_type, title, message or title

    @staticmethod
    async def notify_user(
        db: AsyncSession,
        user_id: int,
        event: str,
        payload: Optional[Dict[str, Any]] = None,
        related_entity_type: Optional[str] = None,
        related_entity_id: Optional[int] = None
    ) -> Optional[Notification]:
        """Store an in-app notification for ``user_id``"""
        payload = payload or {}
        notification_type, title, message = NotificationService.render(event, payload)

        notification = Notification(
            user_id=user_id,
            type=notification_type,
            event=event,
            title=title,
            message=message,
            related_entity_type=related_entity_type,
            related_entity_id=related_entity_id,
            extra_data=json.loads(json.dumps(payload, default=str)),
            status=NotificationStatus.DELIVERED,
            delivered_at=datetime.utcnow()
        )

        # Only the savepoint is rolled back on failure, so entities the caller
        # already committed stay loaded.
        try:
            async with db.begin_nested():
                db.add(notification)
            await db.commit()
        except SQLAlchemyError as e:
            logger.error(f"Failed to store {event} notification for user {user_id}: {str(e)}")
            return None

        logger.info(f"Notification {event} queued for user {user_id}")
        return notification
