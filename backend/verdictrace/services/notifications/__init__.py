"""
Outbound case alerts and their bookkeeping.

- CaseNotifier: email + in-app alert per case event
- RecipientService: who receives alert emails
- NotificationInbox: read / mark-read of in-app alerts
"""
from .notifier import CaseNotifier, build_alert_email, KIND_CREATED, KIND_ESCALATION
from .recipient_service import RecipientService
from .inbox import NotificationInbox

__all__ = [
    "CaseNotifier",
    "build_alert_email",
    "KIND_CREATED",
    "KIND_ESCALATION",
    "RecipientService",
    "NotificationInbox",
]
