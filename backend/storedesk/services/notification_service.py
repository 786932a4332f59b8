# Overview: In-app notifications, including the once-per-session low-stock advisory.

from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..errors import ValidationError
from ..models import NOTIFICATION_TYPES, Notification, SessionToken
from . import data_access
from .concurrency import run_with_retry
from .reporting_service import low_stock_products


def list_notifications(business_id: int, *, unread_only: bool = False) -> list[Notification]:
    query = db.session.query(Notification).filter(Notification.business_id == business_id)
    if unread_only:
        query = query.filter(Notification.read.is_(False))
    return query.order_by(Notification.created_at.desc(), Notification.id.desc()).all()


def _build(business_id: int, title: str, message: str, type: str) -> Notification:
    if type not in NOTIFICATION_TYPES:
        raise ValidationError(f"type must be one of: {', '.join(NOTIFICATION_TYPES)}")
    title = (title or "").strip()
    message = (message or "").strip()
    if not title or not message:
        raise ValidationError("title and message are required")
    return Notification(business_id=business_id, title=title[:255], message=message, type=type, read=False)


def create_notification(business_id: int, *, title: str, message: str, type: str = "info") -> Notification:
    notification = _build(business_id, title, message, type)

    def _op():
        db.session.add(notification)
        db.session.commit()
        return notification

    return run_with_retry(_op)


def mark_read(business_id: int, notification_id: int) -> Notification:
    def _op():
        notification = data_access.get_scoped(Notification, business_id, notification_id, label="Notification")
        notification.read = True
        db.session.commit()
        return notification

    return run_with_retry(_op)


def mark_all_read(business_id: int) -> int:
    def _op():
        count = db.session.query(Notification).filter(
            Notification.business_id == business_id,
            Notification.read.is_(False),
        ).update({Notification.read: True}, synchronize_session=False)
        db.session.commit()
        return count

    return run_with_retry(_op)


def low_stock_message(names: list[str]) -> str:
    if len(names) == 1:
        return f'Warning: "{names[0]}" is running low on stock!'
    return f"Warning: {len(names)} items are running low: {', '.join(names)}"


def low_stock_advisory(business_id: int, session: SessionToken) -> Notification | None:
    """
    Raise the low-stock warning at most once per login session.

    Returns the new Notification, or None when nothing is low or this
    session was already notified.
    """
    if session.low_stock_notified:
        return None
    low = low_stock_products(business_id)
    if not low:
        return None

    names = [p.name for p in low]

    def _op():
        notification = _build(business_id, "Low Inventory Alert", low_stock_message(names), "warning")
        db.session.add(notification)
        session.low_stock_notified = True
        db.session.commit()
        return notification

    notification = run_with_retry(_op)
    current_app.logger.info("Low-stock advisory: business=%s products=%d", business_id, len(names))
    return notification
