"""
app/api/routers/catalog.py

Catalog read and administrative activation endpoints.
"""

from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from app.repositories.catalog_repository import CatalogRepository
from app.schemas.ingestion import CatalogActivationRequest, CatalogEntryResponse
from db.session import get_db

router = APIRouter(prefix="/catalog", tags=["catalog"])


@router.get("/{catalog}", response_model=list[CatalogEntryResponse])
def list_catalog_entries(
    catalog: str,
    domain: str | None = Query(default=None, description="Network or state filter"),
    active_only: bool = Query(default=True),
    stale_before: datetime | None = Query(
        default=None,
        description="Only entries not refreshed since this timestamp",
    ),
    limit: int | None = Query(default=None, ge=1, le=5000),
    db: Session = Depends(get_db),
) -> list[CatalogEntryResponse]:
    entries = CatalogRepository(db).list_entries(
        catalog=catalog,
        domain=domain,
        active_only=active_only,
        stale_before=stale_before,
        limit=limit,
    )
    return [CatalogEntryResponse.model_validate(entry) for entry in entries]


@router.get("/{catalog}/{domain}/{natural_key:path}", response_model=CatalogEntryResponse)
def get_catalog_entry(
    catalog: str,
    domain: str,
    natural_key: str,
    db: Session = Depends(get_db),
) -> CatalogEntryResponse:
    entry = CatalogRepository(db).get_entry(catalog=catalog, domain=domain, natural_key=natural_key)
    if entry is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Catalog entry {catalog}/{domain}/{natural_key} not found.",
        )
    return CatalogEntryResponse.model_validate(entry)


@router.patch("/{catalog}/{domain}/{natural_key:path}", response_model=CatalogEntryResponse)
def set_catalog_entry_active(
    catalog: str,
    domain: str,
    natural_key: str,
    body: CatalogActivationRequest,
    db: Session = Depends(get_db),
) -> CatalogEntryResponse:
    """
    Explicitly activate or deactivate one entry. Runs never deactivate.
    """

    entry = CatalogRepository(db).set_active(
        catalog=catalog,
        domain=domain,
        natural_key=natural_key,
        is_active=body.is_active,
    )
    if entry is None:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Catalog entry {catalog}/{domain}/{natural_key} not found.",
        )
    db.commit()
    return CatalogEntryResponse.model_validate(entry)
