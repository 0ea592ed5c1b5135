# Notifications module
from app.modules.notifications.models import Notification, NotificationType, NotificationStatus

__all__ = ["Notification", "NotificationType", "NotificationStatus"]
