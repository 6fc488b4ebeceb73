"""SeaTimeEntry entity: one contiguous interval of vessel movement.

Opened and closed by modules.interval_machine; status leaves ``pending`` only
through modules.confirmation.
"""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import (
    Integer, Float, String, Boolean, DateTime, Text, ForeignKey, Index, CheckConstraint, func, text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship
from seatime.models.base import Base


class SeaTimeEntry(Base):
    __tablename__ = "sea_time_entries"
    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'confirmed', 'rejected')", name="ck_sea_time_status"
        ),
        CheckConstraint(
            "end_time IS NULL OR end_time >= start_time", name="ck_sea_time_end_after_start"
        ),
        # Open-interval invariant: at most one entry per vessel with end_time IS NULL
        Index(
            "uq_sea_time_open_interval",
            "vessel_id",
            unique=True,
            sqlite_where=text("end_time IS NULL"),
            postgresql_where=text("end_time IS NULL"),
        ),
        Index("ix_sea_time_vessel_start", "vessel_id", "start_time"),
        Index("ix_sea_time_status_closed", "status", "closed_at"),
    )

    entry_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True, index=True)
    vessel_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("vessels.vessel_id", ondelete="CASCADE"), nullable=False
    )
    start_time: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    end_time: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    # Derived from (end_time - start_time); NULL while open
    duration_hours: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending", index=True)
    # Set on confirmation - see ServiceTypeEnum
    service_type: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    start_latitude: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    start_longitude: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    end_latitude: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    end_longitude: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    # True = meets the 4h MCA minimum, False = flagged for review, NULL = still open
    mca_compliant: Mapped[Optional[bool]] = mapped_column(Boolean, nullable=True, index=True)
    distance_nm: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    # Check that opened the interval; NULL for entries created outside the state machine
    open_check_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("ais_checks.check_id", ondelete="SET NULL"), nullable=True
    )
    # Set when the interval closes: the review watermark for new pending entries
    closed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=func.now())
    resolved_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    vessel: Mapped["Vessel"] = relationship("Vessel", back_populates="sea_time_entries")
