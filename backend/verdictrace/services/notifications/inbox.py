"""
In-app Notification Inbox

Read side of the NotificationDB rows written by CaseNotifier. The only
mutation is marking rows read.
"""
from typing import List

from sqlalchemy.orm import Session

from ...exceptions import NotificationNotFoundError
from ...models.db_models import NotificationDB


class NotificationInbox:

    def __init__(self, db: Session):
        self.db = db

    def list_notifications(self, unread_only: bool = False, limit: int = 100) -> List[NotificationDB]:
        """Notifications, newest first."""
        query = self.db.query(NotificationDB)
        if unread_only:
            query = query.filter(NotificationDB.is_read.is_(False))
        return query.order_by(NotificationDB.created_at.desc()).limit(limit).all()

    def unread_count(self) -> int:
        return self.db.query(NotificationDB).filter(NotificationDB.is_read.is_(False)).count()

    def mark_read(self, notification_id: str) -> NotificationDB:
        notification = self.db.query(NotificationDB).filter(NotificationDB.id == notification_id).first()
        if notification is None:
            raise NotificationNotFoundError(f"Notification {notification_id} not found")
        notification.is_read = True
        self.db.commit()
        return notification

    def mark_all_read(self) -> int:
        """Mark every unread notification read. Returns how many changed."""
        updated = (
            self.db.query(NotificationDB)
            .filter(NotificationDB.is_read.is_(False))
            .update({NotificationDB.is_read: True}, synchronize_session=False)
        )
        self.db.commit()
        return updated

    @staticmethod
    def serialize(notification: NotificationDB) -> dict:
        return {
            "id": notification.id,
            "case_id": notification.case_id,
            "type": notification.type,
            "title": notification.title,
            "message": notification.message,
            "is_read": notification.is_read,
            "created_at": notification.created_at.isoformat() if notification.created_at else None,
        }
