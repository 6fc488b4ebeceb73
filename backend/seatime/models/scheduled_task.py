"""ScheduledTask entity: one recurring AIS polling task per tracked vessel."""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import Integer, Float, String, Boolean, DateTime, Text, ForeignKey, Index, func
from sqlalchemy.orm import Mapped, mapped_column, relationship
from seatime.models.base import Base


class ScheduledTask(Base):
    __tablename__ = "scheduled_tasks"
    __table_args__ = (
        Index("ix_scheduled_tasks_vessel_type", "vessel_id", "task_type"),
        Index("ix_scheduled_tasks_due", "is_active", "next_run"),
    )

    task_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True, index=True)
    task_type: Mapped[str] = mapped_column(String(50), nullable=False, default="ais_check")
    vessel_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("vessels.vessel_id", ondelete="CASCADE"), nullable=False
    )
    interval_hours: Mapped[float] = mapped_column(Float, nullable=False, default=2.0)
    last_run: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    next_run: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    # Outcome of the last run - see TaskRunStatusEnum
    last_status: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    last_error: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=func.now())

    vessel: Mapped["Vessel"] = relationship("Vessel", back_populates="scheduled_tasks")
