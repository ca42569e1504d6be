"""
VerdictTrace - FastAPI Application

Signal detection and case lifecycle engine for product-complaint data.

Pipeline:
- Complaint store -> AggregationAdapter -> ClusterCandidates
- ClusterCandidate -> velocity / confidence / tier -> ScoredCluster
- ScoredCluster -> confidence gate -> CaseResolver -> Case + audit trail
"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from .database import init_db
from .routers import scan_router, cases_router, notifications_router


logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize database on startup."""
    init_db()
    yield

# Create FastAPI app
app = FastAPI(
    lifespan=lifespan,
    title="VerdictTrace",
    description="""
    VerdictTrace - Complaint Signal Detection

    Groups complaints by product and failure mode, scores each cluster's
    evidentiary strength, and keeps one live investigation case per signal.

    ## Key Principles
    - Scoring is deterministic (fixed weights, fixed tier rules)
    - Only the scanner opens cases
    - Every case mutation is recorded in an append-only audit trail
    - The agent builds the case. The verdict belongs to humans.
    """,
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc"
)

# Include routers
app.include_router(scan_router)
app.include_router(cases_router)
app.include_router(notifications_router)


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "version": "1.0.0"}


# For running with: python -m verdictrace.main
if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8001)
