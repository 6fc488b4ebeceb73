"""Confirmation workflow: pending -> confirmed | rejected, both terminal.

Each transition is one conditional UPDATE guarded by ``status = 'pending'``,
so two concurrent calls on the same entry serialise in the database: the
loser updates zero rows and gets AlreadyResolved instead of overwriting.
"""
from __future__ import annotations

import logging

from sqlalchemy.orm import Session

from seatime.errors import AlreadyResolved, EntryNotConfirmable, EntryNotFound
from seatime.models.base import EntryStatusEnum, ServiceTypeEnum
from seatime.models.sea_time_entry import SeaTimeEntry
from seatime.modules.validity import REASON_STILL_OPEN, evaluate_entry
from seatime.utils.geo import haversine_nm
from seatime.utils.timestamps import utcnow

logger = logging.getLogger(__name__)

_PENDING = EntryStatusEnum.PENDING.value


def _load(db: Session, entry_id: int) -> SeaTimeEntry:
    entry = db.query(SeaTimeEntry).filter(SeaTimeEntry.entry_id == entry_id).first()
    if entry is None:
        raise EntryNotFound(f"Sea time entry {entry_id} not found")
    return entry


def _conditional_update(db: Session, entry_id: int, values: dict) -> SeaTimeEntry:
    updated = (
        db.query(SeaTimeEntry)
        .filter(SeaTimeEntry.entry_id == entry_id, SeaTimeEntry.status == _PENDING)
        .update(values, synchronize_session=False)
    )
    if updated == 0:
        db.rollback()
        current = _load(db, entry_id)
        raise AlreadyResolved(entry_id, current.status)
    db.commit()
    return _load(db, entry_id)


def confirm_entry(
    db: Session,
    entry_id: int,
    service_type: ServiceTypeEnum | str = ServiceTypeEnum.ACTUAL_SEA_SERVICE,
    notes: str | None = None,
) -> SeaTimeEntry:
    """Confirm a pending, confirmable entry and record its service type."""
    service = ServiceTypeEnum(service_type)
    entry = _load(db, entry_id)
    if entry.status != _PENDING:
        raise AlreadyResolved(entry_id, entry.status)

    validity = evaluate_entry(entry)
    if not validity.confirmable:
        raise EntryNotConfirmable(entry_id, validity.reasons)

    values = {
        "status": EntryStatusEnum.CONFIRMED.value,
        "service_type": service.value,
        "resolved_at": utcnow(),
    }
    if notes:
        values["notes"] = notes
    confirmed = _conditional_update(db, entry_id, values)
    logger.info(
        "Sea time entry %s confirmed as %s: %.2f hours (mca_compliant=%s)",
        entry_id, service.value, confirmed.duration_hours, confirmed.mca_compliant,
    )
    return confirmed


def reject_entry(db: Session, entry_id: int, notes: str | None = None) -> SeaTimeEntry:
    """Reject a closed pending entry. Open intervals cannot be resolved yet."""
    entry = _load(db, entry_id)
    if entry.status != _PENDING:
        raise AlreadyResolved(entry_id, entry.status)
    if entry.end_time is None:
        raise EntryNotConfirmable(entry_id, [REASON_STILL_OPEN])

    values = {"status": EntryStatusEnum.REJECTED.value, "resolved_at": utcnow()}
    if notes:
        values["notes"] = notes
    rejected = _conditional_update(db, entry_id, values)
    logger.info("Sea time entry %s rejected", entry_id)
    return rejected


def correct_entry_positions(
    db: Session,
    entry_id: int,
    start_latitude: float | None = None,
    start_longitude: float | None = None,
    end_latitude: float | None = None,
    end_longitude: float | None = None,
    notes: str | None = None,
) -> SeaTimeEntry:
    """Fill in positions of a pending entry so it can become confirmable.

    Only the coordinates passed are changed; distance is re-derived from the
    merged positions. Guarded like the status transitions, so a concurrent
    confirm/reject wins and the resolved row is left untouched.
    """
    entry = _load(db, entry_id)
    if entry.status != _PENDING:
        raise AlreadyResolved(entry_id, entry.status)

    values: dict = {}
    for attr, value in (
        ("start_latitude", start_latitude),
        ("start_longitude", start_longitude),
        ("end_latitude", end_latitude),
        ("end_longitude", end_longitude),
    ):
        if value is not None:
            values[attr] = value
    if not values and not notes:
        return entry

    merged = {
        attr: values.get(attr, getattr(entry, attr))
        for attr in ("start_latitude", "start_longitude", "end_latitude", "end_longitude")
    }
    if None not in merged.values():
        values["distance_nm"] = round(
            haversine_nm(
                merged["start_latitude"], merged["start_longitude"],
                merged["end_latitude"], merged["end_longitude"],
            ),
            2,
        )
    if notes:
        values["notes"] = notes

    corrected = _conditional_update(db, entry_id, values)
    logger.info("Sea time entry %s positions corrected: %s", entry_id, sorted(values))
    return corrected
