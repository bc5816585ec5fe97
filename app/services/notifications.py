from ..extensions import db
from ..models import Notification


def create_notification(
    type,
    title,
    message,
    user_id=None,
    link_url=None,
    image=None,
    details=None,
    is_scheduled=False,
    scheduled_for=None,
):
    """Queue a notification on the session; ``user_id=None`` targets admins."""
    notification = Notification(
        type=type,
        title=title,
        message=message,
        user_id=user_id,
        link_url=link_url,
        image=image,
        details=details,
        is_scheduled=is_scheduled,
        scheduled_for=scheduled_for,
    )
    db.session.add(notification)
    return notification


def notify_admins(type, title, message, link_url=None, details=None):
    return create_notification(
        type, title, message, user_id=None, link_url=link_url, details=details
    )
