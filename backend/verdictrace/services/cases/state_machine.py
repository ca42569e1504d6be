"""
Case Action State Machine

Human actions on an existing case (never on the scan path):

    escalate  open/investigating/escalated -> investigating | escalated (tier + 1)
    dismiss   any live status              -> dismissed (terminal)
    resolve   any live status              -> resolved (terminal)
    comment   any status                   -> unchanged

There is no transition out of resolved/dismissed. A recurring signal opens
a new case through the scan path instead.
"""
import logging
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ...exceptions import (
    CaseNotFoundError,
    CasePersistError,
    InvalidCaseTransition,
    NotificationFailed,
)
from ...models.db_models import CaseAuditEntryDB, CaseDB, utcnow
from ...models.signals import (
    AuditAction,
    AuditActor,
    CaseStatus,
    SeverityTier,
    TERMINAL_STATUSES,
)
from ..notifications.notifier import KIND_ESCALATION
from .audit_trail import AuditTrail


logger = logging.getLogger(__name__)


LIVE_STATUSES = [s for s in CaseStatus if s not in TERMINAL_STATUSES]


# =============================================================================
# ACTION CONFIGURATION
# =============================================================================

ACTION_CONFIG: Dict[AuditAction, Dict[str, Any]] = {
    AuditAction.ESCALATE: {
        "description": "Raise severity one tier and notify investigators",
        "allowed_from": LIVE_STATUSES,
        "to_status": None,  # Derived from the new tier
        "notifies": True,
    },
    AuditAction.DISMISS: {
        "description": "Close the case as not a genuine signal",
        "allowed_from": LIVE_STATUSES,
        "to_status": CaseStatus.DISMISSED,
        "notifies": False,
    },
    AuditAction.RESOLVE: {
        "description": "Close the case as investigated and resolved",
        "allowed_from": LIVE_STATUSES,
        "to_status": CaseStatus.RESOLVED,
        "notifies": False,
    },
    AuditAction.COMMENT: {
        "description": "Add a note to the audit trail",
        "allowed_from": list(CaseStatus),
        "to_status": None,
        "notifies": False,
    },
}


def escalated_status(tier: SeverityTier) -> CaseStatus:
    """Status after a human escalation to the given tier."""
    return CaseStatus.ESCALATED if tier >= SeverityTier.ESCALATE else CaseStatus.INVESTIGATING


class CaseActionService:
    """
    Applies human actions to cases.

    Core Principles:
    - Every action appends exactly one audit entry
    - Terminal statuses reject everything except comments
    - Every action sets updated_at
    """

    def __init__(self, db: Session, notifier=None, audit: Optional[AuditTrail] = None):
        self.db = db
        self.notifier = notifier
        self.audit = audit or AuditTrail()

    def get_case(self, case_id: str) -> CaseDB:
        case = self.db.query(CaseDB).filter(CaseDB.id == case_id).first()
        if case is None:
            raise CaseNotFoundError(f"Case {case_id} not found")
        return case

    def can_apply(self, case: CaseDB, action: AuditAction) -> Tuple[bool, str]:
        """
        Check if an action is allowed from the case's current status.

        Returns (allowed, reason)
        """
        config = ACTION_CONFIG.get(action)
        if config is None:
            return False, f"Unknown action {action}"
        if case.status in config["allowed_from"]:
            return True, "Action allowed"
        return False, f"Cannot {action.value} a case that is {case.status.value}"

    # =========================================================================
    # ACTIONS
    # =========================================================================

    def escalate(self, case_id: str, actor: AuditActor, reason: str = "") -> CaseDB:
        case = self._apply(case_id, AuditAction.ESCALATE, actor, reason)
        self._notify_escalated(case, reason)
        return case

    def dismiss(self, case_id: str, actor: AuditActor, reason: str = "") -> CaseDB:
        return self._apply(case_id, AuditAction.DISMISS, actor, reason)

    def resolve(self, case_id: str, actor: AuditActor, reason: str = "") -> CaseDB:
        return self._apply(case_id, AuditAction.RESOLVE, actor, reason)

    def comment(self, case_id: str, actor: AuditActor, reason: str = "") -> CaseDB:
        return self._apply(case_id, AuditAction.COMMENT, actor, reason)

    def timeline(self, case_id: str) -> List[CaseAuditEntryDB]:
        """Audit entries for a case, most recent first."""
        return self.audit.timeline(self.get_case(case_id))

    # =========================================================================
    # INTERNALS
    # =========================================================================

    def _apply(self, case_id: str, action: AuditAction, actor: AuditActor, reason: str) -> CaseDB:
        case = self.get_case(case_id)

        allowed, message = self.can_apply(case, action)
        if not allowed:
            raise InvalidCaseTransition(message)

        if action == AuditAction.ESCALATE:
            new_tier = SeverityTier(min(case.severity_tier + 1, SeverityTier.CRITICAL))
            case.severity_tier = int(new_tier)
            case.status = escalated_status(new_tier)
        elif ACTION_CONFIG[action]["to_status"] is not None:
            case.status = ACTION_CONFIG[action]["to_status"]

        if case.status in TERMINAL_STATUSES:
            # Frees the (product, failure mode) key for a future case
            case.live_flag = None

        case.updated_at = utcnow()
        self.audit.append(case, action, actor, reason)

        try:
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise CasePersistError(f"Could not apply {action.value} to case {case_id}: {e}") from e

        logger.info(f"Case {case.id}: {action.value} by {actor.actor_id} -> {case.status.value}")
        return case

    def _notify_escalated(self, case: CaseDB, reason: str) -> None:
        if self.notifier is None:
            return
        label = case.tier.label
        try:
            self.notifier.notify(
                case,
                title=f"Case escalated to {label}",
                message=f"Case {case.id} was escalated to {label}. Reason: {reason}",
                kind=KIND_ESCALATION,
            )
        except NotificationFailed as e:
            logger.warning(str(e))
