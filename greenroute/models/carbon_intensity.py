import enum
from datetime import datetime

from sqlalchemy import CheckConstraint, DateTime, Enum, Float, String
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from greenroute.db.base import Base


class IntensitySource(str, enum.Enum):
    PROVIDER = "PROVIDER"
    DERIVED = "DERIVED"


class CarbonIntensity(Base):
    """Historical carbon-intensity sample in gCO2-eq/kWh.

    Keyed by (region, timestamp): re-ingesting the same instant overwrites
    carbon_intensity and source instead of adding a row.
    """

    __tablename__ = "carbon_intensity"
    __table_args__ = (
        CheckConstraint("carbon_intensity >= 0", name="non_negative_intensity"),
    )

    region: Mapped[str] = mapped_column(String(32), primary_key=True, nullable=False)
    timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), primary_key=True, nullable=False
    )
    carbon_intensity: Mapped[float] = mapped_column(Float, nullable=False)
    source: Mapped[IntensitySource] = mapped_column(
        Enum(IntensitySource, name="intensitysource"),
        nullable=False,
        default=IntensitySource.PROVIDER,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
