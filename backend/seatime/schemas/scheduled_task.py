"""Pydantic schemas for scheduled tasks and the reconciliation sweep."""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class ScheduledTaskRead(BaseModel):
    task_id: int
    vessel_id: int
    user_id: Optional[str] = None
    task_type: str
    interval_hours: float
    last_run: Optional[datetime] = None
    next_run: datetime
    is_active: bool
    last_status: Optional[str] = None
    last_error: Optional[str] = None

    model_config = {"from_attributes": True}


class ReconcileSummaryRead(BaseModel):
    total_active_vessels: int
    tasks_created: int
    tasks_reactivated: int
    tasks_already_active: int
    details: list[dict] = Field(default_factory=list)
