"""
Scan API Routes

Internal endpoints for the scheduler and operators:
- run a cluster detection scan
- read/update the scan thresholds
"""
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from ..config import get_config
from ..database import get_db
from ..exceptions import AggregationFetchError, SettingsValidationError
from ..services.scan import ScanOrchestrator
from ..services.settings_service import SettingsService


router = APIRouter(prefix="/internal", tags=["scan"])


# =============================================================================
# INTERNAL API KEY VALIDATION
# =============================================================================

async def verify_internal_key(x_internal_key: str = Header(...)):
    """Verify internal API key for scheduler endpoints."""
    if x_internal_key != get_config().internal_api_key:
        raise HTTPException(status_code=403, detail="Invalid internal API key")
    return True


# =============================================================================
# REQUEST MODELS
# =============================================================================

class ScanRequest(BaseModel):
    """Optional window overrides; thresholds always come from settings."""
    window_days: Optional[int] = Field(None, ge=1, description="Days of complaints to aggregate")
    bucket_interval: Optional[str] = Field(None, description="Histogram interval, e.g. 1w or 1d")


class UpdateSettingsRequest(BaseModel):
    confidence_threshold: Optional[float] = Field(None, description="Confidence gate (0-1)")
    cluster_min_docs: Optional[int] = Field(None, description="Minimum complaints per cluster")


# =============================================================================
# ENDPOINTS
# =============================================================================

@router.post("/scan", response_model=dict)
def run_cluster_scan(
    request: Optional[ScanRequest] = None,
    db: Session = Depends(get_db),
    _: bool = Depends(verify_internal_key),
):
    """
    Run cluster detection.

    System-automatic - triggered by the scheduler or an operator.
    """
    overrides = request.model_dump() if request else {}
    config = SettingsService(db).get_scan_config(**overrides)

    try:
        summary = ScanOrchestrator(db).run_scan(config)
    except AggregationFetchError as e:
        raise HTTPException(
            status_code=502,
            detail={
                "message": f"Scan aborted: {e}",
                "summary": e.summary.to_dict() if e.summary else None,
            },
        )

    return summary.to_dict()


@router.get("/settings", response_model=dict)
def get_scan_settings(
    db: Session = Depends(get_db),
    _: bool = Depends(verify_internal_key),
):
    config = SettingsService(db).get_scan_config()
    return {
        "confidence_threshold": config.confidence_threshold,
        "cluster_min_docs": config.cluster_min_docs,
    }


@router.put("/settings", response_model=dict)
def update_scan_settings(
    request: UpdateSettingsRequest,
    db: Session = Depends(get_db),
    _: bool = Depends(verify_internal_key),
):
    try:
        return SettingsService(db).update(
            confidence_threshold=request.confidence_threshold,
            cluster_min_docs=request.cluster_min_docs,
        )
    except SettingsValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
