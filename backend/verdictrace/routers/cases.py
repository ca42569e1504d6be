"""
Case Action API Routes

Human actions on existing cases. Cases are never created here;
only the scan path opens cases.
"""
from typing import List

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from ..database import get_db
from ..exceptions import CaseNotFoundError, CasePersistError, InvalidCaseTransition
from ..models.signals import AuditActor
from ..services.cases import AuditTrail, CaseActionService
from ..services.notifications import CaseNotifier


router = APIRouter(prefix="/cases", tags=["cases"])


class CaseActionRequest(BaseModel):
    """Who is acting and why."""
    actor_id: str = Field(..., description="Identity of the investigator")
    actor_name: str = Field(..., description="Display name of the investigator")
    reason: str = Field(default="", description="Free-text reason recorded in the audit trail")


def _service(db: Session) -> CaseActionService:
    return CaseActionService(db, notifier=CaseNotifier(db))


def _case_state(case) -> dict:
    return {
        "case_id": case.id,
        "status": case.status.value,
        "severity_tier": case.severity_tier,
        "tier": case.tier.label,
        "updated_at": case.updated_at.isoformat() if case.updated_at else None,
    }


def _run(action, case_id: str, request: CaseActionRequest) -> dict:
    try:
        case = action(case_id, AuditActor(request.actor_id, request.actor_name), request.reason)
    except CaseNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except InvalidCaseTransition as e:
        raise HTTPException(status_code=409, detail=str(e))
    except CasePersistError as e:
        raise HTTPException(status_code=500, detail=str(e))
    return _case_state(case)


@router.post("/{case_id}/escalate", response_model=dict)
def escalate_case(case_id: str, request: CaseActionRequest, db: Session = Depends(get_db)):
    """Raise the case one tier and notify investigators."""
    return _run(_service(db).escalate, case_id, request)


@router.post("/{case_id}/dismiss", response_model=dict)
def dismiss_case(case_id: str, request: CaseActionRequest, db: Session = Depends(get_db)):
    return _run(_service(db).dismiss, case_id, request)


@router.post("/{case_id}/resolve", response_model=dict)
def resolve_case(case_id: str, request: CaseActionRequest, db: Session = Depends(get_db)):
    return _run(_service(db).resolve, case_id, request)


@router.post("/{case_id}/comment", response_model=dict)
def comment_on_case(case_id: str, request: CaseActionRequest, db: Session = Depends(get_db)):
    return _run(_service(db).comment, case_id, request)


@router.get("/{case_id}/audit", response_model=List[dict])
def get_case_audit(case_id: str, db: Session = Depends(get_db)):
    """Audit trail, most recent first."""
    try:
        entries = _service(db).timeline(case_id)
    except CaseNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return [AuditTrail.serialize(entry) for entry in entries]
