"""
Audit Trail Manager

Append-only log per case. The only mutation is insertion; the ORM refuses
updates and deletes of CaseAuditEntryDB rows. Canonical order is insertion
order (sequence); consumers display most-recent-first via timeline().
"""
from typing import List, Optional
from uuid import uuid4

from ...models.db_models import CaseAuditEntryDB, CaseDB, utcnow
from ...models.signals import AuditAction, AuditActor


class AuditTrail:
    """Appends and reads case audit entries. Does not commit."""

    def append(
        self,
        case: CaseDB,
        action: AuditAction,
        actor: AuditActor,
        reason: Optional[str] = None,
    ) -> CaseAuditEntryDB:
        """Append an entry to the case's audit log (in the case's session)."""
        entry = CaseAuditEntryDB(
            id=str(uuid4()),
            sequence=len(case.audit_log) + 1,
            action=action,
            actor_id=actor.actor_id,
            actor_name=actor.actor_name,
            reason=reason or "",
            created_at=utcnow(),
        )
        case.audit_log.append(entry)
        return entry

    def timeline(self, case: CaseDB) -> List[CaseAuditEntryDB]:
        """Audit entries, most recent first."""
        return sorted(case.audit_log, key=lambda e: e.sequence, reverse=True)

    @staticmethod
    def serialize(entry: CaseAuditEntryDB) -> dict:
        return {
            "id": entry.id,
            "sequence": entry.sequence,
            "action": entry.action.value,
            "actor_id": entry.actor_id,
            "actor_name": entry.actor_name,
            "reason": entry.reason,
            "timestamp": entry.created_at.isoformat() if entry.created_at else None,
        }
