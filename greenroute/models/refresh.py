import enum
import uuid
from datetime import datetime

from sqlalchemy import DateTime, Enum, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from greenroute.db.base import Base


class RefreshStatus(str, enum.Enum):
    SUCCESS = "SUCCESS"
    FAILURE = "FAILURE"


class ForecastRefresh(Base):
    """One row per region per scheduled refresh tick (append-only)."""

    __tablename__ = "forecast_refreshes"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    region: Mapped[str] = mapped_column(String(32), nullable=False, index=True)
    records_ingested: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    forecasts_generated: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    status: Mapped[RefreshStatus] = mapped_column(
        Enum(RefreshStatus, name="refreshstatus"), nullable=False
    )
    message: Mapped[str | None] = mapped_column(Text, nullable=True)
    refreshed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now(), index=True
    )
