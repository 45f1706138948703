"""
app/api/routers/ingestion.py

Portal ingestion trigger and session pool endpoints.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, status

from app.ingestion.browser import SessionPool
from app.ingestion.errors import RunAborted
from app.schemas.ingestion import PoolStatsResponse, RunSummaryResponse
from app.services.ingestion_service import (
    PortalIngestionService,
    get_portal_ingestion_service,
    get_session_pool,
)

router = APIRouter(tags=["portal-ingestion"])


@router.post("/ingest-portals/{portal}", response_model=RunSummaryResponse)
def ingest_portal(
    portal: str,
    sub_target: list[str] | None = Query(
        default=None,
        description="Optional sub-target filter (network, state); repeat for several",
    ),
    ingestion_service: PortalIngestionService = Depends(get_portal_ingestion_service),
) -> RunSummaryResponse:
    """
    Refresh one portal's catalog synchronously and return the run summary.

    Sub-target failures are reported in the summary; only a run that could
    not proceed at all is an error response.
    """

    try:
        summary = ingestion_service.refresh(portal, sub_targets=sub_target)
    except LookupError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(exc),
        ) from exc
    except (ValueError, FileNotFoundError) as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc
    except RunAborted as exc:
        detail: dict[str, object] = {"message": str(exc)}
        if exc.summary is not None:
            detail["summary"] = RunSummaryResponse.from_summary(exc.summary).model_dump(mode="json")
        raise HTTPException(
            status_code=(
                status.HTTP_503_SERVICE_UNAVAILABLE
                if exc.pool_related
                else status.HTTP_502_BAD_GATEWAY
            ),
            detail=detail,
        ) from exc

    return RunSummaryResponse.from_summary(summary)


@router.get("/ingestion/pool", response_model=PoolStatsResponse)
def session_pool_stats(pool: SessionPool = Depends(get_session_pool)) -> PoolStatsResponse:
    return PoolStatsResponse(**pool.stats())
