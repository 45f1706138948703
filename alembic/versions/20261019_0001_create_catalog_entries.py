"""create catalog_entries table

Revision ID: 20261019_0001
Revises:
Create Date: 2026-10-19 09:00:00
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

revision = "20261019_0001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "catalog_entries",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("catalog", sa.String(length=64), nullable=False,
                  comment="Catalog family, e.g. data_plans or nbais_schools"),
        sa.Column("domain", sa.String(length=100), nullable=False,
                  comment="Domain discriminator within the catalog: network, state, portal"),
        sa.Column("natural_key", sa.String(length=500), nullable=False,
                  comment="Portal-side identifier (option value, plan id, school value)"),
        sa.Column("display_name", sa.String(length=500), nullable=False),
        sa.Column("cost_price", sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column("retail_price", sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column("reseller_price", sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column("is_active", sa.Boolean(), server_default=sa.true(), nullable=False),
        sa.Column(
            "attributes",
            postgresql.JSONB(astext_type=sa.Text()),
            nullable=True,
            comment="Source-specific extras: raw text, source url",
        ),
        sa.Column(
            "last_refreshed_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "catalog",
            "domain",
            "natural_key",
            name="uq_catalog_entries_catalog_domain_key",
        ),
        sa.CheckConstraint("cost_price >= 0", name="ck_catalog_entries_cost_non_negative"),
        sa.CheckConstraint(
            "retail_price >= cost_price",
            name="ck_catalog_entries_retail_gte_cost",
        ),
        sa.CheckConstraint(
            "reseller_price >= cost_price",
            name="ck_catalog_entries_reseller_gte_cost",
        ),
    )
    op.create_index(
        "ix_catalog_entries_catalog_domain_active",
        "catalog_entries",
        ["catalog", "domain", "is_active"],
        unique=False,
    )
    op.create_index(
        "ix_catalog_entries_last_refreshed_at",
        "catalog_entries",
        ["last_refreshed_at"],
        unique=False,
    )


def downgrade() -> None:
    op.drop_index("ix_catalog_entries_last_refreshed_at", table_name="catalog_entries")
    op.drop_index("ix_catalog_entries_catalog_domain_active", table_name="catalog_entries")
    op.drop_table("catalog_entries")
