"""
Alert Recipient Management

Investigators who receive case alert emails. A recipient is never deleted;
turning off notify_email opts them out while keeping the record.
"""
import logging
from typing import List
from uuid import uuid4

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ...exceptions import DuplicateRecipientError, RecipientNotFoundError
from ...models.db_models import RecipientDB


logger = logging.getLogger(__name__)


class RecipientService:
    """Adds, lists and opts recipients in or out of email alerts."""

    def __init__(self, db: Session):
        self.db = db

    def list_recipients(self) -> List[RecipientDB]:
        return self.db.query(RecipientDB).order_by(RecipientDB.created_at).all()

    def get(self, recipient_id: str) -> RecipientDB:
        recipient = self.db.query(RecipientDB).filter(RecipientDB.id == recipient_id).first()
        if recipient is None:
            raise RecipientNotFoundError(f"Recipient {recipient_id} not found")
        return recipient

    def add(self, name: str, email: str, notify_email: bool = True) -> RecipientDB:
        """
        Register a recipient.

        Raises:
            DuplicateRecipientError: the email is already registered
        """
        email = email.strip().lower()
        if self.db.query(RecipientDB).filter(RecipientDB.email == email).first():
            raise DuplicateRecipientError(f"Recipient {email} already exists")

        recipient = RecipientDB(id=str(uuid4()), name=name.strip(), email=email, notify_email=notify_email)
        self.db.add(recipient)
        try:
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            raise DuplicateRecipientError(f"Recipient {email} already exists") from e

        logger.info(f"Recipient {recipient.id} added (notify_email={notify_email})")
        return recipient

    def set_notify_email(self, recipient_id: str, enabled: bool) -> RecipientDB:
        """Opt a recipient in to or out of alert emails."""
        recipient = self.get(recipient_id)
        recipient.notify_email = enabled
        self.db.commit()
        logger.info(f"Recipient {recipient_id} notify_email={enabled}")
        return recipient

    @staticmethod
    def serialize(recipient: RecipientDB) -> dict:
        return {
            "id": recipient.id,
            "name": recipient.name,
            "email": recipient.email,
            "notify_email": recipient.notify_email,
            "created_at": recipient.created_at.isoformat() if recipient.created_at else None,
        }
