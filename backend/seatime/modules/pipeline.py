"""One pass of the sea-time pipeline for a single vessel.

    AIS sample -> movement verdict -> interval transition -> validity

Shared by the scheduler and by user-triggered checks. Both go through the
same per-vessel lock: scheduled runs skip a vessel that is busy, manual
checks queue behind the run in flight.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy.orm import Session

from seatime.config import settings
from seatime.errors import NoDataForVessel, VesselNotActive, VesselNotFound
from seatime.models.vessel import Vessel
from seatime.modules.ais_client import AISClient, AISSample, get_default_client
from seatime.modules.interval_machine import Transition, apply_sample
from seatime.modules.locks import VesselLockRegistry, vessel_locks
from seatime.modules.movement import MovementVerdict, classify
from seatime.modules.validity import EntryValidity, evaluate_entry

logger = logging.getLogger(__name__)


@dataclass
class CheckResult:
    vessel_id: int
    sample: AISSample | None
    verdict: MovementVerdict
    transition: Transition
    check_id: int
    entry_id: int | None = None
    validity: EntryValidity | None = None
    no_data: bool = False


def check_vessel_ais(
    db: Session,
    vessel_id: int,
    force_refresh: bool = False,
    client: AISClient | None = None,
    manual: bool = True,
    locks: VesselLockRegistry | None = None,
) -> CheckResult:
    """Run the pipeline once for ``vessel_id``.

    Manual checks require an active vessel and wait for the vessel's lock;
    scheduled checks (``manual=False``) fail fast with VesselBusy instead.
    Transient provider errors propagate to the caller; NoDataForVessel is
    recorded as an unknown check and reported through ``no_data``.
    """
    vessel = db.query(Vessel).filter(Vessel.vessel_id == vessel_id).first()
    if vessel is None:
        raise VesselNotFound(f"Vessel {vessel_id} not found")
    if manual and not vessel.is_active:
        raise VesselNotActive(f"Vessel {vessel_id} is not the active vessel")

    client = client or get_default_client()
    locks = locks or vessel_locks
    with locks.hold(
        vessel.vessel_id,
        blocking=manual,
        timeout=settings.MANUAL_CHECK_LOCK_TIMEOUT_SECONDS if manual else None,
    ):
        return _run(db, vessel, client, force_refresh)


def _run(db: Session, vessel: Vessel, client: AISClient, force_refresh: bool) -> CheckResult:
    try:
        sample = client.fetch_sample(vessel.mmsi, force_refresh=force_refresh)
    except NoDataForVessel as exc:
        logger.info("No AIS data for vessel %s (MMSI %s): %s", vessel.vessel_id, vessel.mmsi, exc)
        outcome = apply_sample(db, vessel, None, MovementVerdict.UNKNOWN, force_refresh=force_refresh)
        return CheckResult(
            vessel_id=vessel.vessel_id,
            sample=None,
            verdict=MovementVerdict.UNKNOWN,
            transition=outcome.transition,
            check_id=outcome.check.check_id,
            entry_id=outcome.entry.entry_id if outcome.entry is not None else None,
            no_data=True,
        )

    verdict = classify(sample)
    outcome = apply_sample(db, vessel, sample, verdict, force_refresh=force_refresh)

    validity = None
    if outcome.transition is Transition.CLOSED and outcome.entry is not None:
        validity = evaluate_entry(outcome.entry)
        if not validity.confirmable:
            logger.warning(
                "Sea time entry %s closed without usable positions: %s",
                outcome.entry.entry_id, validity.reasons,
            )

    logger.info(
        "AIS check for vessel %s (MMSI %s): verdict=%s transition=%s",
        vessel.vessel_id, vessel.mmsi, verdict.value, outcome.transition.value,
    )
    return CheckResult(
        vessel_id=vessel.vessel_id,
        sample=sample,
        verdict=verdict,
        transition=outcome.transition,
        check_id=outcome.check.check_id,
        entry_id=outcome.entry.entry_id if outcome.entry is not None else None,
        validity=validity,
    )
