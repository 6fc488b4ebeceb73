"""Vessel registration and the one-active-vessel-per-user invariant.

Activation is an explicit operation: the user's other vessels are
deactivated and the target activated in one transaction, and the polling
tasks follow (old vessel's task deactivated, new vessel's task ensured).
"""
from __future__ import annotations

import logging

from sqlalchemy.orm import Session

from seatime.errors import VesselNotFound
from seatime.models.scheduled_task import ScheduledTask
from seatime.models.vessel import Vessel
from seatime.modules.scheduler import ensure_task_for_vessel
from seatime.utils.timestamps import utcnow

logger = logging.getLogger(__name__)

_EDITABLE_FIELDS = frozenset({
    "vessel_name", "callsign", "flag", "official_number", "vessel_type",
    "length_metres", "gross_tonnes", "engine_kilowatts", "engine_type",
})


def get_vessel(db: Session, vessel_id: int) -> Vessel:
    vessel = db.query(Vessel).filter(Vessel.vessel_id == vessel_id).first()
    if vessel is None:
        raise VesselNotFound(f"Vessel {vessel_id} not found")
    return vessel


def list_vessels(db: Session, user_id: str | None = None) -> list[Vessel]:
    q = db.query(Vessel)
    if user_id is not None:
        q = q.filter(Vessel.user_id == user_id)
    return q.order_by(Vessel.created_at.desc(), Vessel.vessel_id.desc()).all()


def _deactivate_others(db: Session, user_id: str | None, keep_vessel_id: int | None) -> list[int]:
    q = db.query(Vessel).filter(Vessel.is_active.is_(True))
    q = q.filter(Vessel.user_id.is_(None) if user_id is None else Vessel.user_id == user_id)
    if keep_vessel_id is not None:
        q = q.filter(Vessel.vessel_id != keep_vessel_id)
    deactivated = []
    for other in q.all():
        other.is_active = False
        deactivated.append(other.vessel_id)
    if deactivated:
        (
            db.query(ScheduledTask)
            .filter(ScheduledTask.vessel_id.in_(deactivated))
            .update({"is_active": False}, synchronize_session=False)
        )
    return deactivated


def register_vessel(
    db: Session,
    mmsi: str,
    vessel_name: str,
    user_id: str | None = None,
    is_active: bool = False,
    **particulars,
) -> Vessel:
    """Create a vessel; if ``is_active`` it becomes the user's tracked vessel."""
    unknown = set(particulars) - _EDITABLE_FIELDS
    if unknown:
        raise ValueError(f"Unknown vessel fields: {sorted(unknown)}")

    vessel = Vessel(user_id=user_id, mmsi=mmsi, vessel_name=vessel_name, is_active=False, **particulars)
    db.add(vessel)
    try:
        db.flush()
        if is_active:
            _activate(db, vessel)
        db.commit()
    except Exception:
        db.rollback()
        raise
    logger.info(
        "Registered vessel %s (%s, MMSI %s) for user %s, active=%s",
        vessel.vessel_id, vessel_name, mmsi, user_id, vessel.is_active,
    )
    return vessel


def _activate(db: Session, vessel: Vessel) -> list[int]:
    deactivated = _deactivate_others(db, vessel.user_id, vessel.vessel_id)
    vessel.is_active = True
    db.flush()
    ensure_task_for_vessel(db, vessel, utcnow())
    return deactivated


def activate_vessel(db: Session, vessel_id: int) -> Vessel:
    """Make ``vessel_id`` the user's only active vessel (single transaction)."""
    vessel = get_vessel(db, vessel_id)
    try:
        deactivated = _activate(db, vessel)
        db.commit()
    except Exception:
        db.rollback()
        raise
    logger.info(
        "Activated vessel %s (%s); deactivated %s",
        vessel.vessel_id, vessel.vessel_name, deactivated or "none",
    )
    return vessel


def deactivate_vessel(db: Session, vessel_id: int) -> Vessel:
    vessel = get_vessel(db, vessel_id)
    vessel.is_active = False
    (
        db.query(ScheduledTask)
        .filter(ScheduledTask.vessel_id == vessel_id)
        .update({"is_active": False}, synchronize_session=False)
    )
    db.commit()
    logger.info("Deactivated vessel %s (%s)", vessel.vessel_id, vessel.vessel_name)
    return vessel


def update_vessel(db: Session, vessel_id: int, **changes) -> Vessel:
    unknown = set(changes) - _EDITABLE_FIELDS
    if unknown:
        raise ValueError(f"Unknown vessel fields: {sorted(unknown)}")
    vessel = get_vessel(db, vessel_id)
    for key, value in changes.items():
        setattr(vessel, key, value)
    db.commit()
    return vessel


def delete_vessel(db: Session, vessel_id: int) -> None:
    """Delete a vessel; checks, entries and tasks go with it."""
    vessel = get_vessel(db, vessel_id)
    name, mmsi = vessel.vessel_name, vessel.mmsi
    db.delete(vessel)
    db.commit()
    logger.info("Deleted vessel %s (%s, MMSI %s)", vessel_id, name, mmsi)
