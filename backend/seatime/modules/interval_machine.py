"""Interval state machine: turns classified AIS samples into sea-time entries.

Per vessel there are two states: Closed (no entry with end_time NULL) and
Open (exactly one). Transitions:

    Closed + moving      -> opened     new pending entry at the sample
    Open   + moving      -> continued  no mutation
    Open   + not moving  -> closed     end_time/position set, duration derived
    Closed + not moving  -> none
    any    + unknown     -> unknown    no mutation; missing data is not a stop

Every sample is committed as an AISCheck before the transition is decided,
so the audit trail is complete even when nothing else changes. Durations are
always derived from the interval timestamps, so closing or recomputing an
already-closed entry never changes it.

Callers must hold the vessel's lock (modules.locks). The partial unique
index ``uq_sea_time_open_interval`` backs the invariant across processes: a
lost race to open is rolled back and reported as ``continued``.
"""
from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from seatime.config import settings
from seatime.models.ais_check import AISCheck
from seatime.models.base import EntryStatusEnum
from seatime.models.sea_time_entry import SeaTimeEntry
from seatime.models.vessel import Vessel
from seatime.modules.ais_client import AISSample
from seatime.modules.movement import MovementVerdict
from seatime.modules.validity import ComplianceEnum, compliance_for_duration, has_positions
from seatime.utils.geo import haversine_nm
from seatime.utils.timestamps import utcnow

logger = logging.getLogger(__name__)


class Transition(str, enum.Enum):
    OPENED = "opened"
    CONTINUED = "continued"
    CLOSED = "closed"
    NONE = "none"
    UNKNOWN = "unknown"


@dataclass
class IntervalOutcome:
    check: AISCheck
    transition: Transition
    entry: SeaTimeEntry | None = None


def find_open_entry(db: Session, vessel_id: int) -> SeaTimeEntry | None:
    return (
        db.query(SeaTimeEntry)
        .filter(SeaTimeEntry.vessel_id == vessel_id, SeaTimeEntry.end_time.is_(None))
        .first()
    )


def record_check(
    db: Session,
    vessel: Vessel,
    sample: AISSample | None,
    verdict: MovementVerdict,
    *,
    force_refresh: bool = False,
) -> AISCheck:
    """Append and commit the audit row for one poll.

    ``sample`` is None when the provider had no data; the row is still
    written with NULL speed/position and NULL is_moving.
    """
    check = AISCheck(
        user_id=vessel.user_id,
        vessel_id=vessel.vessel_id,
        check_time=sample.timestamp if sample is not None else utcnow(),
        is_moving=verdict.is_moving,
        speed_knots=sample.speed_knots if sample is not None else None,
        latitude=sample.latitude if sample is not None else None,
        longitude=sample.longitude if sample is not None else None,
        position_time=sample.timestamp if sample is not None else None,
        raw_status=sample.raw_status if sample is not None else None,
        api_source=sample.source if sample is not None else None,
        force_refresh=force_refresh,
    )
    db.add(check)
    db.commit()
    return check


def recompute_duration(entry: SeaTimeEntry) -> float | None:
    """Derive duration, compliance and distance from the stored timestamps/positions."""
    if entry.end_time is None:
        entry.duration_hours = None
        entry.mca_compliant = None
        return None

    duration = (entry.end_time - entry.start_time).total_seconds() / 3600
    entry.duration_hours = duration
    entry.mca_compliant = compliance_for_duration(duration) is ComplianceEnum.COMPLIANT
    if has_positions(entry):
        entry.distance_nm = round(
            haversine_nm(
                entry.start_latitude, entry.start_longitude,
                entry.end_latitude, entry.end_longitude,
            ),
            2,
        )
    else:
        entry.distance_nm = None
    return duration


def close_entry(
    entry: SeaTimeEntry,
    end_time: datetime,
    latitude: float | None,
    longitude: float | None,
) -> bool:
    """Close an open entry. Returns False (and changes nothing) if already closed."""
    if entry.end_time is not None:
        return False
    # Out-of-order provider timestamps must not produce a negative interval
    entry.end_time = max(end_time, entry.start_time)
    entry.end_latitude = latitude
    entry.end_longitude = longitude
    entry.closed_at = utcnow()
    recompute_duration(entry)
    return True


def apply_sample(
    db: Session,
    vessel: Vessel,
    sample: AISSample | None,
    verdict: MovementVerdict,
    *,
    force_refresh: bool = False,
) -> IntervalOutcome:
    """Record the sample and apply the resulting transition for the vessel."""
    check = record_check(db, vessel, sample, verdict, force_refresh=force_refresh)
    open_entry = find_open_entry(db, vessel.vessel_id)

    if verdict is MovementVerdict.UNKNOWN:
        logger.info(
            "Vessel %s (MMSI %s): movement unknown at %s - interval left as is",
            vessel.vessel_id, vessel.mmsi, check.check_time.isoformat(),
        )
        return IntervalOutcome(check=check, transition=Transition.UNKNOWN, entry=open_entry)

    if verdict is MovementVerdict.MOVING:
        if open_entry is not None:
            return IntervalOutcome(check=check, transition=Transition.CONTINUED, entry=open_entry)
        return _open_interval(db, vessel, sample, check)

    if open_entry is None:
        return IntervalOutcome(check=check, transition=Transition.NONE, entry=None)

    stop_check = _closing_check(db, open_entry, settings.INTERVAL_CLOSE_AFTER_STOPPED_SAMPLES)
    if stop_check is None:
        logger.debug(
            "Vessel %s: stop not yet confirmed, entry %s stays open",
            vessel.vessel_id, open_entry.entry_id,
        )
        return IntervalOutcome(check=check, transition=Transition.CONTINUED, entry=open_entry)

    close_entry(open_entry, stop_check.check_time, stop_check.latitude, stop_check.longitude)
    db.commit()
    logger.info(
        "Closed sea time entry %s for vessel %s (MMSI %s): %s -> %s, %.2f hours, mca_compliant=%s",
        open_entry.entry_id, vessel.vessel_id, vessel.mmsi,
        open_entry.start_time.isoformat(), open_entry.end_time.isoformat(),
        open_entry.duration_hours, open_entry.mca_compliant,
    )
    return IntervalOutcome(check=check, transition=Transition.CLOSED, entry=open_entry)


def _open_interval(db: Session, vessel: Vessel, sample: AISSample, check: AISCheck) -> IntervalOutcome:
    entry = SeaTimeEntry(
        user_id=vessel.user_id,
        vessel_id=vessel.vessel_id,
        start_time=sample.timestamp,
        start_latitude=sample.latitude,
        start_longitude=sample.longitude,
        status=EntryStatusEnum.PENDING.value,
        open_check_id=check.check_id,
    )
    db.add(entry)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        existing = find_open_entry(db, vessel.vessel_id)
        if existing is None:
            raise
        logger.warning(
            "Vessel %s: concurrent poll already opened entry %s - continuing it",
            vessel.vessel_id, existing.entry_id,
        )
        return IntervalOutcome(check=check, transition=Transition.CONTINUED, entry=existing)

    logger.info(
        "Opened sea time entry %s for vessel %s (MMSI %s) at %s, speed %.1f kn",
        entry.entry_id, vessel.vessel_id, vessel.mmsi,
        entry.start_time.isoformat(), sample.speed_knots,
    )
    return IntervalOutcome(check=check, transition=Transition.OPENED, entry=entry)


def _closing_check(db: Session, entry: SeaTimeEntry, required: int) -> AISCheck | None:
    """First check of the trailing run of ``required`` not-moving checks, if complete.

    Ordered and bounded by poll order, not check_time: no-data checks carry
    the poll time, and a provider may report a stop timestamped before the
    interval's start.
    """
    required = max(1, required)
    q = db.query(AISCheck).filter(AISCheck.vessel_id == entry.vessel_id)
    if entry.open_check_id is not None:
        q = q.filter(AISCheck.check_id > entry.open_check_id)
    recent = q.order_by(AISCheck.check_id.desc()).limit(required).all()
    if len(recent) < required or any(c.is_moving is not False for c in recent):
        return None
    return recent[-1]
