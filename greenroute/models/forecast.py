from datetime import datetime

from sqlalchemy import JSON, DateTime, Float, String
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from greenroute.db.base import Base


class CarbonForecastRecord(Base):
    """Audit copy of an emitted forecast point.

    The first write for a (region, forecast_time) wins; later duplicates are
    dropped by the insert's ON CONFLICT clause.
    """

    __tablename__ = "carbon_forecasts"

    region: Mapped[str] = mapped_column(String(32), primary_key=True, nullable=False)
    forecast_time: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), primary_key=True, nullable=False
    )
    predicted_intensity: Mapped[float] = mapped_column(Float, nullable=False)
    confidence: Mapped[float] = mapped_column(Float, nullable=False)
    model_version: Mapped[str] = mapped_column(String(20), nullable=False)
    features: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
