"""
Case Notifier

Fire-and-forget alerts for new and escalated cases:
- one in-app NotificationDB row per event
- one transactional email per opted-in recipient (Brevo REST API)

Failures never roll back the case mutation that triggered them. They are
collected and raised once as NotificationFailed for the caller to log.
"""
import logging
from typing import Dict, List, Optional
from uuid import uuid4

import requests
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ...config import get_config
from ...exceptions import NotificationFailed
from ...models.db_models import CaseDB, NotificationDB, RecipientDB
from ...models.signals import SeverityTier


logger = logging.getLogger(__name__)

NARRATIVE_EXCERPT_CHARS = 200

# NotificationDB.type values
KIND_CREATED = "case_created"
KIND_ESCALATION = "escalation"

TIER_COLORS = {
    SeverityTier.MONITOR: "#0dcaf0",
    SeverityTier.INVESTIGATE: "#ffc107",
    SeverityTier.ESCALATE: "#fd7e14",
    SeverityTier.CRITICAL: "#dc3545",
}


def build_alert_email(case: CaseDB, app_url: str, kind: str = KIND_ESCALATION) -> Dict[str, str]:
    """Subject and HTML body of a case alert."""
    tier = case.tier
    excerpt = (case.narrative or "")[:NARRATIVE_EXCERPT_CHARS]
    if kind == KIND_CREATED:
        subject = f"[VerdictTrace] New case {case.id} opened at {tier.label}"
        heading = f"Case {case.id} Opened"
    else:
        subject = f"[VerdictTrace] Case {case.id} escalated to {tier.label}"
        heading = f"Case {case.id} Escalated"
    html = f"""<!DOCTYPE html>
<html>
<head><meta charset="UTF-8"></head>
<body style="font-family: Arial, sans-serif; background: #f8f9fa; padding: 20px;">
  <div style="max-width: 600px; margin: 0 auto; background: #ffffff; border-radius: 8px;">
    <div style="background: #003c8a; padding: 20px 24px;">
      <h1 style="color: #ffffff; margin: 0; font-size: 20px;">VerdictTrace Alert</h1>
    </div>
    <div style="padding: 24px;">
      <div style="display: inline-block; padding: 4px 12px; border-radius: 4px; background: {TIER_COLORS[tier]}; color: #fff; font-weight: 600;">{tier.label}</div>
      <h2 style="color: #001d42;">{heading}</h2>
      <table style="width: 100%; border-collapse: collapse; margin: 16px 0;">
        <tr><td style="color: #666; width: 140px;">Product SKU</td><td style="font-weight: 600;">{case.product_sku}</td></tr>
        <tr><td style="color: #666;">Failure Mode</td><td style="font-weight: 600;">{case.failure_mode}</td></tr>
        <tr><td style="color: #666;">Tier</td><td style="font-weight: 600;">{tier.label}</td></tr>
      </table>
      <p style="color: #333; line-height: 1.6;">{excerpt}</p>
      <a href="{app_url.rstrip('/')}/cases/{case.id}">View Case</a>
    </div>
  </div>
</body>
</html>"""
    return {"subject": subject, "html": html}


class CaseNotifier:
    """
    Sends case alerts.

    Usage:
        notifier = CaseNotifier(db)
        try:
            notifier.notify(case, title="New case: ...", message="...")
        except NotificationFailed as e:
            logger.warning(str(e))
    """

    def __init__(self, db: Session, session: Optional[requests.Session] = None):
        self.db = db
        self.config = get_config()
        self.http = session or requests.Session()

    def recipients(self) -> List[RecipientDB]:
        return self.db.query(RecipientDB).filter(RecipientDB.notify_email.is_(True)).all()

    def notify(self, case: CaseDB, title: str, message: str, kind: str = KIND_ESCALATION) -> int:
        """
        Record an in-app notification and email every opted-in recipient.

        Returns:
            Number of emails delivered

        Raises:
            NotificationFailed: any delivery failed (the others still went out)
        """
        failures = []

        try:
            self.db.add(NotificationDB(
                id=str(uuid4()),
                case_id=case.id,
                type=kind,
                title=title,
                message=message,
            ))
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            failures.append(f"in-app: {e}")

        delivered = 0
        email = build_alert_email(case, self.config.app_url, kind)
        for recipient in self.recipients():
            error = self.send_email(recipient.email, recipient.name, email["subject"], email["html"])
            if error:
                failures.append(f"{recipient.email}: {error}")
            else:
                delivered += 1

        if failures:
            raise NotificationFailed(case.id, failures)

        logger.info(f"Case {case.id} alert delivered to {delivered} recipients")
        return delivered

    def send_email(self, to_email: str, to_name: str, subject: str, html_body: str) -> Optional[str]:
        """
        Send one transactional email.

        Returns:
            None on success, otherwise an error description
        """
        if not self.config.brevo_api_key:
            return "email API key not configured"

        payload = {
            "sender": {
                "name": self.config.brevo_sender_name,
                "email": self.config.brevo_sender_email,
            },
            "to": [{"email": to_email, "name": to_name}],
            "subject": subject,
            "htmlContent": html_body,
        }
        try:
            response = self.http.post(
                self.config.brevo_api_url,
                json=payload,
                headers={
                    "Accept": "application/json",
                    "api-key": self.config.brevo_api_key,
                },
                timeout=self.config.notification_timeout,
            )
        except requests.RequestException as e:
            return f"transport error: {e}"

        # Brevo returns 201 on success
        if response.status_code == 201:
            return None
        return f"HTTP {response.status_code}"
