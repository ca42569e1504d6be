"""
Case Lifecycle Services

- CaseResolver: live-case lookup and scan upserts
- CaseActionService: human escalate/dismiss/resolve/comment
- AuditTrail: append-only audit log
"""
from .audit_trail import AuditTrail
from .case_resolver import CaseResolver, UpsertResult
from .state_machine import CaseActionService, ACTION_CONFIG

__all__ = [
    "AuditTrail",
    "CaseResolver",
    "UpsertResult",
    "CaseActionService",
    "ACTION_CONFIG",
]
