"""Sea time entry accessors and manual logbook entries.

Callers that poll for new pending entries keep the largest ``closed_at`` they
have seen and pass it back as ``since``. ``entry_id`` is assigned when an
interval opens, so it does not order entries by when they became reviewable.
"""
from __future__ import annotations

import logging
from datetime import datetime, timedelta

from sqlalchemy.orm import Session

from seatime.errors import EntryNotFound
from seatime.models.ais_check import AISCheck
from seatime.models.base import EntryStatusEnum
from seatime.models.sea_time_entry import SeaTimeEntry
from seatime.modules.interval_machine import recompute_duration
from seatime.modules.vessels import get_vessel
from seatime.utils.geo import valid_coordinates
from seatime.utils.timestamps import to_naive_utc, utcnow

logger = logging.getLogger(__name__)


def get_entry(db: Session, entry_id: int) -> SeaTimeEntry:
    entry = db.query(SeaTimeEntry).filter(SeaTimeEntry.entry_id == entry_id).first()
    if entry is None:
        raise EntryNotFound(f"Sea time entry {entry_id} not found")
    return entry


def get_sea_time_entries(
    db: Session,
    vessel_id: int | None = None,
    user_id: str | None = None,
    status: str | None = None,
    start: datetime | None = None,
    end: datetime | None = None,
) -> list[SeaTimeEntry]:
    """Entries newest first. ``start``/``end`` bound the entry's start_time, inclusive."""
    q = db.query(SeaTimeEntry)
    if vessel_id is not None:
        q = q.filter(SeaTimeEntry.vessel_id == vessel_id)
    if user_id is not None:
        q = q.filter(SeaTimeEntry.user_id == user_id)
    if status is not None:
        q = q.filter(SeaTimeEntry.status == EntryStatusEnum(status).value)
    if start is not None:
        q = q.filter(SeaTimeEntry.start_time >= to_naive_utc(start))
    if end is not None:
        q = q.filter(SeaTimeEntry.start_time <= to_naive_utc(end))
    return q.order_by(SeaTimeEntry.start_time.desc(), SeaTimeEntry.entry_id.desc()).all()


def get_pending_entries(
    db: Session,
    user_id: str | None = None,
    since: datetime | None = None,
) -> list[SeaTimeEntry]:
    """Closed pending entries in the order they closed.

    Open intervals are excluded: they are not yet reviewable.
    """
    q = db.query(SeaTimeEntry).filter(
        SeaTimeEntry.status == EntryStatusEnum.PENDING.value,
        SeaTimeEntry.closed_at.isnot(None),
    )
    if user_id is not None:
        q = q.filter(SeaTimeEntry.user_id == user_id)
    if since is not None:
        q = q.filter(SeaTimeEntry.closed_at > to_naive_utc(since))
    return q.order_by(SeaTimeEntry.closed_at.asc(), SeaTimeEntry.entry_id.asc()).all()


def create_manual_entry(
    db: Session,
    vessel_id: int,
    start_time: datetime,
    end_time: datetime,
    notes: str | None = None,
    start_latitude: float | None = None,
    start_longitude: float | None = None,
    end_latitude: float | None = None,
    end_longitude: float | None = None,
) -> SeaTimeEntry:
    """Log a passage by hand.

    The entry is created closed and pending, so it goes through the same
    review as tracked entries. Duration, compliance and distance are derived
    from the given times and positions.
    """
    vessel = get_vessel(db, vessel_id)
    start_time, end_time = to_naive_utc(start_time), to_naive_utc(end_time)
    if end_time <= start_time:
        raise ValueError("end_time must be after start_time")
    for lat, lon in ((start_latitude, start_longitude), (end_latitude, end_longitude)):
        if lat is not None and lon is not None and not valid_coordinates(lat, lon):
            raise ValueError(f"Invalid position ({lat}, {lon})")

    entry = SeaTimeEntry(
        user_id=vessel.user_id,
        vessel_id=vessel.vessel_id,
        start_time=start_time,
        end_time=end_time,
        status=EntryStatusEnum.PENDING.value,
        notes=notes,
        start_latitude=start_latitude,
        start_longitude=start_longitude,
        end_latitude=end_latitude,
        end_longitude=end_longitude,
        closed_at=utcnow(),
    )
    recompute_duration(entry)
    db.add(entry)
    db.commit()
    logger.info(
        "Manual sea time entry %s for vessel %s (MMSI %s): %s -> %s, %.2f hours",
        entry.entry_id, vessel.vessel_id, vessel.mmsi,
        entry.start_time.isoformat(), entry.end_time.isoformat(), entry.duration_hours,
    )
    return entry


def get_recent_checks(db: Session, vessel_id: int, hours: float = 24, limit: int = 50) -> list[AISCheck]:
    cutoff = utcnow() - timedelta(hours=hours)
    return (
        db.query(AISCheck)
        .filter(AISCheck.vessel_id == vessel_id, AISCheck.check_time >= cutoff)
        .order_by(AISCheck.check_time.desc(), AISCheck.check_id.desc())
        .limit(limit)
        .all()
    )


def get_latest_check(db: Session, vessel_id: int) -> AISCheck | None:
    return (
        db.query(AISCheck)
        .filter(AISCheck.vessel_id == vessel_id)
        .order_by(AISCheck.check_time.desc(), AISCheck.check_id.desc())
        .first()
    )
