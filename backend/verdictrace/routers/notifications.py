"""
Notification API Routes

- In-app alert inbox: list, mark one read, mark all read
- Alert email recipients: list, add, opt in/out (internal key required)
"""
from typing import List

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from ..database import get_db
from ..exceptions import (
    DuplicateRecipientError,
    NotificationNotFoundError,
    RecipientNotFoundError,
)
from ..services.notifications import NotificationInbox, RecipientService
from .scan import verify_internal_key


router = APIRouter(prefix="/notifications", tags=["notifications"])


class AddRecipientRequest(BaseModel):
    name: str = Field(..., min_length=1)
    email: str = Field(..., pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
    notify_email: bool = True


class RecipientOptRequest(BaseModel):
    notify_email: bool


# =============================================================================
# INBOX
# =============================================================================

@router.get("", response_model=dict)
def list_notifications(unread_only: bool = False, db: Session = Depends(get_db)):
    inbox = NotificationInbox(db)
    return {
        "unread": inbox.unread_count(),
        "notifications": [NotificationInbox.serialize(n) for n in inbox.list_notifications(unread_only)],
    }


@router.post("/read-all", response_model=dict)
def mark_all_notifications_read(db: Session = Depends(get_db)):
    return {"marked_read": NotificationInbox(db).mark_all_read()}


@router.post("/{notification_id}/read", response_model=dict)
def mark_notification_read(notification_id: str, db: Session = Depends(get_db)):
    try:
        notification = NotificationInbox(db).mark_read(notification_id)
    except NotificationNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return NotificationInbox.serialize(notification)


# =============================================================================
# RECIPIENTS
# =============================================================================

@router.get("/recipients", response_model=List[dict])
def list_recipients(db: Session = Depends(get_db), _: bool = Depends(verify_internal_key)):
    return [RecipientService.serialize(r) for r in RecipientService(db).list_recipients()]


@router.post("/recipients", response_model=dict, status_code=201)
def add_recipient(
    request: AddRecipientRequest,
    db: Session = Depends(get_db),
    _: bool = Depends(verify_internal_key),
):
    try:
        recipient = RecipientService(db).add(request.name, request.email, request.notify_email)
    except DuplicateRecipientError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return RecipientService.serialize(recipient)


@router.put("/recipients/{recipient_id}", response_model=dict)
def set_recipient_notify_email(
    recipient_id: str,
    request: RecipientOptRequest,
    db: Session = Depends(get_db),
    _: bool = Depends(verify_internal_key),
):
    try:
        recipient = RecipientService(db).set_notify_email(recipient_id, request.notify_email)
    except RecipientNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return RecipientService.serialize(recipient)
