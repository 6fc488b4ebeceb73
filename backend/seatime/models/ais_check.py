"""AISCheck entity: append-only audit row for every AIS poll of a vessel."""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import Integer, Float, String, Boolean, DateTime, ForeignKey, Index, func
from sqlalchemy.orm import Mapped, mapped_column, relationship
from seatime.models.base import Base


class AISCheck(Base):
    __tablename__ = "ais_checks"
    __table_args__ = (
        Index("ix_ais_checks_vessel_time", "vessel_id", "check_time"),
    )

    check_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True, index=True)
    vessel_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("vessels.vessel_id", ondelete="CASCADE"), nullable=False
    )
    # Observation time of the sample (poll time when the provider had no data)
    check_time: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    # NULL = unknown (no data, stale position or missing speed) - never coerced to False
    is_moving: Mapped[Optional[bool]] = mapped_column(Boolean, nullable=True)
    speed_knots: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    latitude: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    longitude: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    position_time: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    raw_status: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    api_source: Mapped[Optional[str]] = mapped_column(String(50), nullable=True, default="myshiptracking")
    force_refresh: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=func.now())

    vessel: Mapped["Vessel"] = relationship("Vessel", back_populates="ais_checks")
