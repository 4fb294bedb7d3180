"""Initial schema: regions, carbon_intensity, carbon_forecasts, forecast_refreshes.

Revision ID: 0001
Revises:
Create Date: 2026-10-19 00:00:00
"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

revision: str = "0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

_SEED_REGIONS = [
    {"code": "US-CAL-CISO", "name": "California (US)", "country": "US"},
    {"code": "FR", "name": "France", "country": "FR"},
    {"code": "DE", "name": "Germany", "country": "DE"},
    {"code": "GB", "name": "United Kingdom", "country": "GB"},
    {"code": "SE", "name": "Sweden", "country": "SE"},
    {"code": "NO", "name": "Norway", "country": "NO"},
]


def upgrade() -> None:
    # ── 1. regions ─────────────────────────────────────────────────────────────
    regions = op.create_table(
        "regions",
        sa.Column("code", sa.String(32), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("country", sa.String(10), nullable=False),
        sa.Column("enabled", sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("NOW()"),
        ),
        sa.PrimaryKeyConstraint("code", name="pk_regions"),
    )
    op.bulk_insert(regions, [{**r, "enabled": True} for r in _SEED_REGIONS])

    # ── 2. carbon_intensity (one row per region per instant) ───────────────────
    op.create_table(
        "carbon_intensity",
        sa.Column("region", sa.String(32), nullable=False),
        sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False),
        sa.Column("carbon_intensity", sa.Float, nullable=False),
        sa.Column(
            "source",
            sa.Enum("PROVIDER", "DERIVED", name="intensitysource"),
            nullable=False,
            server_default="PROVIDER",
        ),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("NOW()"),
        ),
        sa.PrimaryKeyConstraint("region", "timestamp", name="pk_carbon_intensity"),
        sa.CheckConstraint(
            "carbon_intensity >= 0", name="ck_carbon_intensity_non_negative_intensity"
        ),
    )
    op.execute(
        "CREATE INDEX IF NOT EXISTS ix_carbon_intensity_region_ts "
        "ON carbon_intensity (region, timestamp DESC)"
    )

    # ── 3. carbon_forecasts (audit; first write per key wins) ──────────────────
    op.create_table(
        "carbon_forecasts",
        sa.Column("region", sa.String(32), nullable=False),
        sa.Column("forecast_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("predicted_intensity", sa.Float, nullable=False),
        sa.Column("confidence", sa.Float, nullable=False),
        sa.Column("model_version", sa.String(20), nullable=False),
        sa.Column("features", sa.JSON, nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("NOW()"),
        ),
        sa.PrimaryKeyConstraint("region", "forecast_time", name="pk_carbon_forecasts"),
    )

    # ── 4. forecast_refreshes (append-only run log) ────────────────────────────
    op.create_table(
        "forecast_refreshes",
        sa.Column("id", sa.Uuid, nullable=False),
        sa.Column("region", sa.String(32), nullable=False),
        sa.Column("records_ingested", sa.Integer, nullable=False, server_default="0"),
        sa.Column("forecasts_generated", sa.Integer, nullable=False, server_default="0"),
        sa.Column(
            "status",
            sa.Enum("SUCCESS", "FAILURE", name="refreshstatus"),
            nullable=False,
        ),
        sa.Column("message", sa.Text, nullable=True),
        sa.Column(
            "refreshed_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("NOW()"),
        ),
        sa.PrimaryKeyConstraint("id", name="pk_forecast_refreshes"),
    )
    op.create_index("ix_forecast_refreshes_region", "forecast_refreshes", ["region"])
    op.create_index("ix_forecast_refreshes_refreshed_at", "forecast_refreshes", ["refreshed_at"])


def downgrade() -> None:
    op.drop_table("forecast_refreshes")
    op.drop_table("carbon_forecasts")
    op.drop_table("carbon_intensity")
    op.drop_table("regions")
    op.execute("DROP TYPE IF EXISTS refreshstatus")
    op.execute("DROP TYPE IF EXISTS intensitysource")
