"""Shared declarative base and enums for all models."""
from __future__ import annotations

import enum
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    pass


class EntryStatusEnum(str, enum.Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    REJECTED = "rejected"


class ServiceTypeEnum(str, enum.Enum):
    ACTUAL_SEA_SERVICE = "actual_sea_service"
    WATCHKEEPING_SERVICE = "watchkeeping_service"
    STANDBY_SERVICE = "standby_service"
    YARD_SERVICE = "yard_service"
    SERVICE_IN_PORT = "service_in_port"


class TaskTypeEnum(str, enum.Enum):
    AIS_CHECK = "ais_check"


class TaskRunStatusEnum(str, enum.Enum):
    OK = "ok"
    NO_DATA = "no_data"
    RATE_LIMITED = "rate_limited"
    UNAVAILABLE = "unavailable"
    TIMEOUT = "timeout"
    ERROR = "error"
