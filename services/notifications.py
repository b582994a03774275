import logging

from core.imports import Message, current_app
from core.extensions import db, mail
from core.errors import NotFoundError
from models.supportModels import Notification
from models.userModel import User

logger = logging.getLogger(__name__)


def send_email(to, subject, body):
    if not current_app.config.get("MAIL_SERVER"):
        logger.debug("Mail not configured, skipping email to %s", to)
        return False

    msg = Message(subject=subject, recipients=[to])
    msg.html = body
    try:
        mail.send(msg)
    except Exception:
        # delivery is best effort, the notification row is the record
        logger.exception("Error sending email to %s", to)
        return False
    return True


def notify(user_id, type_, title, message, link=None, email=False):
    """Stage a notification row; the caller's commit persists it.

    With ``email`` set the user is also mailed when mail is configured.
    """
    notification = Notification(user_id=user_id, type=type_, title=title, message=message, link=link)
    db.session.add(notification)

    if email:
        user = db.session.get(User, user_id)
        if user:
            send_email(user.email, title, f"<p>{message}</p>")
    return notification


def list_notifications(user_id, unread_only=False, limit=50):
    query = Notification.query.filter_by(user_id=user_id)
    if unread_only:
        query = query.filter_by(is_read=False)
    return query.order_by(Notification.created_at.desc()).limit(limit).all()


def unread_count(user_id):
    return Notification.query.filter_by(user_id=user_id, is_read=False).count()


def _get_own(user_id, notification_id):
    notification = Notification.query.filter_by(id=notification_id, user_id=user_id).first()
    if not notification:
        raise NotFoundError("Notification not found")
    return notification


def mark_read(user_id, notification_id):
    notification = _get_own(user_id, notification_id)
    notification.is_read = True
    db.session.commit()
    return notification


def mark_all_read(user_id):
    updated = Notification.query.filter_by(user_id=user_id, is_read=False).update({"is_read": True})
    db.session.commit()
    return updated


def delete_notification(user_id, notification_id):
    db.session.delete(_get_own(user_id, notification_id))
    db.session.commit()
