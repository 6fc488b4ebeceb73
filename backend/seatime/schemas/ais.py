"""Pydantic schemas for AIS checks and manual check results."""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel


class AISCheckRead(BaseModel):
    check_id: int
    vessel_id: int
    check_time: datetime
    is_moving: Optional[bool] = None
    speed_knots: Optional[float] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    position_time: Optional[datetime] = None
    raw_status: Optional[str] = None
    api_source: Optional[str] = None
    force_refresh: bool = False

    model_config = {"from_attributes": True}


class AISSampleRead(BaseModel):
    speed_knots: Optional[float] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    timestamp: datetime
    raw_status: Optional[str] = None
    source: str
    is_stale: bool = False

    model_config = {"from_attributes": True}


class CheckResultRead(BaseModel):
    vessel_id: int
    check_id: int
    verdict: str
    transition: str
    entry_id: Optional[int] = None
    no_data: bool = False
    sample: Optional[AISSampleRead] = None
    compliance: Optional[str] = None
    confirmable: Optional[bool] = None


class AISStatusRead(BaseModel):
    vessel_id: int
    is_moving: Optional[bool] = None
    current_check: Optional[AISCheckRead] = None
    recent_checks: list[AISCheckRead]
    open_entry_id: Optional[int] = None
