"""Pydantic schemas for sea time entries and the confirmation workflow."""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from seatime.models.base import ServiceTypeEnum


class SeaTimeEntryRead(BaseModel):
    entry_id: int
    vessel_id: int
    user_id: Optional[str] = None
    start_time: datetime
    end_time: Optional[datetime] = None
    duration_hours: Optional[float] = None
    status: str
    service_type: Optional[str] = None
    notes: Optional[str] = None
    start_latitude: Optional[float] = None
    start_longitude: Optional[float] = None
    end_latitude: Optional[float] = None
    end_longitude: Optional[float] = None
    mca_compliant: Optional[bool] = None
    distance_nm: Optional[float] = None
    closed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    resolved_at: Optional[datetime] = None
    # Validity filter output
    compliance: Optional[str] = None
    confirmable: bool = False
    validity_reasons: list[str] = Field(default_factory=list)

    model_config = {"from_attributes": True}


class ConfirmEntryRequest(BaseModel):
    service_type: ServiceTypeEnum = ServiceTypeEnum.ACTUAL_SEA_SERVICE
    notes: Optional[str] = Field(None, max_length=2000)


class RejectEntryRequest(BaseModel):
    notes: Optional[str] = Field(None, max_length=2000)


class PositionCorrectionRequest(BaseModel):
    start_latitude: Optional[float] = Field(None, ge=-90, le=90)
    start_longitude: Optional[float] = Field(None, ge=-180, le=180)
    end_latitude: Optional[float] = Field(None, ge=-90, le=90)
    end_longitude: Optional[float] = Field(None, ge=-180, le=180)
    notes: Optional[str] = Field(None, max_length=2000)


class ManualEntryCreate(BaseModel):
    vessel_id: int
    start_time: datetime
    end_time: datetime
    notes: Optional[str] = Field(None, max_length=2000)
    start_latitude: Optional[float] = Field(None, ge=-90, le=90)
    start_longitude: Optional[float] = Field(None, ge=-180, le=180)
    end_latitude: Optional[float] = Field(None, ge=-90, le=90)
    end_longitude: Optional[float] = Field(None, ge=-180, le=180)
