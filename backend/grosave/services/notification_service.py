# Overview: Service-layer operations for notifications; encapsulates business logic and database work.

from __future__ import annotations

from ..extensions import db
from ..exceptions import NotFoundError
from ..models import Notification
from ..models.notifications import NOTIFICATION_ORDER


NOTIFICATION_LIST_LIMIT = 100


def notify(
    *,
    user_id: int,
    title: str,
    message: str,
    kind: str = NOTIFICATION_ORDER,
    order_id: int | None = None,
) -> Notification:
    """
    Append a notification inside the caller's unit of work.

    Does not commit: lifecycle operations write the notification in the
    same transaction as the state change it reports.
    """
    note = Notification(
        user_id=user_id,
        type=kind,
        title=title,
        message=message,
        order_id=order_id,
        is_read=False,
    )
    db.session.add(note)
    return note


def list_notifications(user_id: int, *, limit: int = NOTIFICATION_LIST_LIMIT) -> list[Notification]:
    return (
        db.session.query(Notification)
        .filter_by(user_id=user_id)
        .order_by(Notification.created_at.desc(), Notification.id.desc())
        .limit(limit)
        .all()
    )


def unread_count(user_id: int) -> int:
    return db.session.query(Notification).filter_by(user_id=user_id, is_read=False).count()


def mark_read(notification_id: int, user_id: int) -> Notification:
    note = db.session.query(Notification).filter_by(id=notification_id, user_id=user_id).first()
    if not note:
        raise NotFoundError("Notification not found")

    note.is_read = True
    db.session.commit()
    return note


def mark_all_read(user_id: int) -> int:
    updated = (
        db.session.query(Notification)
        .filter_by(user_id=user_id, is_read=False)
        .update({Notification.is_read: True}, synchronize_session=False)
    )
    db.session.commit()
    return updated
