"""Vessel entity: a vessel a mariner has registered for sea-time tracking."""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import String, Integer, Float, Boolean, DateTime, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column, relationship
from seatime.models.base import Base


class Vessel(Base):
    __tablename__ = "vessels"
    __table_args__ = (
        # Same MMSI may be tracked by different users, once per user
        UniqueConstraint("user_id", "mmsi", name="uq_vessels_user_mmsi"),
    )

    vessel_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True, index=True)
    mmsi: Mapped[str] = mapped_column(String(9), nullable=False, index=True)
    vessel_name: Mapped[str] = mapped_column(String(255), nullable=False)
    callsign: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    flag: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    official_number: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    # "Motor" or "Sail"
    vessel_type: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    length_metres: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    gross_tonnes: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    engine_kilowatts: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    engine_type: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    # At most one active vessel per user - maintained by modules.vessels.activate_vessel
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=func.now(), onupdate=func.now()
    )

    # Relationships
    ais_checks: Mapped[list] = relationship(
        "AISCheck", back_populates="vessel", cascade="all, delete-orphan", passive_deletes=True
    )
    sea_time_entries: Mapped[list] = relationship(
        "SeaTimeEntry", back_populates="vessel", cascade="all, delete-orphan", passive_deletes=True
    )
    scheduled_tasks: Mapped[list] = relationship(
        "ScheduledTask", back_populates="vessel", cascade="all, delete-orphan", passive_deletes=True
    )
