# ledger/notifications.py
import logging
from typing import List, Optional
from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from extensions import db
from models import Notification, NotificationType, utcnow
from ledger.exceptions import NotFoundError, ForbiddenError

logger = logging.getLogger(__name__)


class NotificationHelper:

    # ------------------------------------------------------------------
    # Builders: return unsaved rows so callers can add them to their own
    # transaction.
    # ------------------------------------------------------------------
    @staticmethod
    def build(user_id: int, kind: NotificationType, title: str, message: str,
              amount: Optional[int] = None, ticket_id: Optional[int] = None) -> Notification:
        return Notification(
            user_id=user_id,
            type=kind.value,
            title=title,
            message=message,
            amount=amount,
            ticket_id=ticket_id,
            read=False,
            created_at=utcnow(),
        )

    @staticmethod
    def send_best_effort(notification: Notification) -> Optional[str]:
        """
        Commit a single notification on its own.
        Returns an error text instead of raising; the caller's main write has
        already committed.
        """
        try:
            db.session.add(notification)
            db.session.commit()
            return None
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error(f"Notification {notification.type} for user {notification.user_id} failed: {e}")
            return f"Notification could not be stored: {e.__class__.__name__}"

    # ------------------------------------------------------------------
    # Read path (notification bell)
    # ------------------------------------------------------------------
    @staticmethod
    def list_for_user(user_id: int, limit: int = 10, unread_only: bool = False) -> List[Notification]:
        query = Notification.query.filter_by(user_id=user_id)
        if unread_only:
            query = query.filter_by(read=False)
        return query.order_by(Notification.created_at.desc(), Notification.id.desc()).limit(limit).all()

    @staticmethod
    def unread_count(user_id: int) -> int:
        return Notification.query.filter_by(user_id=user_id, read=False).count()

    @staticmethod
    def mark_read(notification_id: int, user_id: int) -> Notification:
        notification = db.session.get(Notification, notification_id)
        if not notification:
            raise NotFoundError("Notification not found")
        if notification.user_id != user_id:
            raise ForbiddenError("Not your notification")

        if not notification.read:
            notification.read = True
            notification.read_at = utcnow()
            db.session.commit()
        return notification

    @staticmethod
    def mark_all_read(user_id: int) -> int:
        result = db.session.execute(
            update(Notification)
            .where(Notification.user_id == user_id, Notification.read.is_(False))
            .values(read=True, read_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        db.session.commit()
        return result.rowcount
