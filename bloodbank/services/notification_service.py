import logging

from bloodbank.extensions import db
from bloodbank.models.enums import NotificationStatus
from bloodbank.models.notification_model import Notification
from bloodbank.utils.timeutils import local_now

logger = logging.getLogger(__name__)


def queue_notification(user_id, message, notification_type):
    """Append a user-facing message to the notification outbox.

    The row joins the caller's transaction; delivery is someone else's job.
    Returns None when there is nobody to notify.
    """
    if user_id is None:
        logger.debug("No recipient for %s notification, skipped: %s", notification_type, message)
        return None

    notification = Notification(
        user_id=user_id,
        message=message,
        type=notification_type,
        status=NotificationStatus.UNREAD,
        sent_at=local_now(),
    )
    db.session.add(notification)
    logger.info("Notification queued for user_id=%s: %s", user_id, message)
    return notification
