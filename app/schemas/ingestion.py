"""
app/schemas/ingestion.py

Request and response schemas for portal ingestion and catalog reads.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, Field

from app.domain.ingestion import RunSummary


class SubTargetErrorResponse(BaseModel):
    sub_target: str
    error: str


class SubTargetOutcomeResponse(BaseModel):
    name: str
    state: str
    records_extracted: int = Field(..., ge=0)
    records_upserted: int = Field(..., ge=0)
    error: str | None = None


class RunSummaryResponse(BaseModel):
    """
    API response model for one portal run.
    """

    portal: str
    catalog: str
    status: str
    attempted: int = Field(..., ge=0)
    succeeded: int = Field(..., ge=0)
    failed: int = Field(..., ge=0)
    skipped: list[str] = Field(default_factory=list)
    records_extracted: int = Field(..., ge=0)
    records_upserted: int = Field(..., ge=0)
    cancelled: bool = False
    error: str | None = None
    errors: list[SubTargetErrorResponse] = Field(default_factory=list)
    outcomes: list[SubTargetOutcomeResponse] = Field(default_factory=list)
    started_at: datetime
    finished_at: datetime

    @classmethod
    def from_summary(cls, summary: RunSummary) -> "RunSummaryResponse":
        return cls(
            portal=summary.portal,
            catalog=summary.catalog,
            status=summary.status,
            attempted=summary.attempted,
            succeeded=summary.succeeded,
            failed=summary.failed,
            skipped=summary.skipped,
            records_extracted=summary.records_extracted,
            records_upserted=summary.records_upserted,
            cancelled=summary.cancelled,
            error=summary.error,
            errors=[
                SubTargetErrorResponse(sub_target=item.sub_target, error=item.error)
                for item in summary.errors
            ],
            outcomes=[
                SubTargetOutcomeResponse(
                    name=item.name,
                    state=item.state.value,
                    records_extracted=item.records_extracted,
                    records_upserted=item.records_upserted,
                    error=item.error,
                )
                for item in summary.outcomes
            ],
            started_at=summary.started_at,
            finished_at=summary.finished_at,
        )


class CatalogEntryResponse(BaseModel):
    id: uuid.UUID
    catalog: str
    domain: str
    natural_key: str
    display_name: str
    cost_price: Decimal
    retail_price: Decimal
    reseller_price: Decimal
    is_active: bool
    attributes: dict[str, Any] | None = None
    last_refreshed_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class CatalogActivationRequest(BaseModel):
    is_active: bool


class PoolStatsResponse(BaseModel):
    total: int = Field(..., ge=0)
    idle: int = Field(..., ge=0)
    checked_out: int = Field(..., ge=0)
    launching: int = Field(..., ge=0)
    waiting: int = Field(..., ge=0)
    max_sessions: int = Field(..., ge=1)
