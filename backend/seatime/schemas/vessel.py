"""Pydantic schemas for Vessel entity: used by FastAPI for request/response typing."""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, field_validator


class VesselParticulars(BaseModel):
    callsign: Optional[str] = None
    flag: Optional[str] = None
    official_number: Optional[str] = None
    vessel_type: Optional[str] = None
    length_metres: Optional[float] = None
    gross_tonnes: Optional[float] = None
    engine_kilowatts: Optional[float] = None
    engine_type: Optional[str] = None


class VesselCreate(VesselParticulars):
    mmsi: str
    vessel_name: str
    user_id: Optional[str] = None
    is_active: bool = False

    @field_validator("mmsi")
    @classmethod
    def mmsi_must_be_9_digits(cls, v: str) -> str:
        v = v.strip()
        if not v.isdigit() or len(v) != 9:
            raise ValueError("MMSI must be exactly 9 digits")
        return v


class VesselUpdate(VesselParticulars):
    vessel_name: Optional[str] = None


class VesselRead(VesselParticulars):
    vessel_id: int
    user_id: Optional[str] = None
    mmsi: str
    vessel_name: str
    is_active: bool
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = {"from_attributes": True}
