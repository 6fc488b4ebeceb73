from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from seatime.database import get_db
from seatime.models.sea_time_entry import SeaTimeEntry
from seatime.models.scheduled_task import ScheduledTask
from seatime.modules import confirmation, entries, vessels
from seatime.modules.ais_client import AISClient, get_default_client
from seatime.modules.interval_machine import find_open_entry
from seatime.modules.pipeline import check_vessel_ais
from seatime.modules.scheduler import reconcile_scheduled_tasks
from seatime.modules.validity import evaluate_entry
from seatime.schemas.ais import AISCheckRead, AISSampleRead, AISStatusRead, CheckResultRead
from seatime.schemas.error import ErrorResponse
from seatime.schemas.scheduled_task import ReconcileSummaryRead, ScheduledTaskRead
from seatime.schemas.sea_time import (
    ConfirmEntryRequest,
    ManualEntryCreate,
    PositionCorrectionRequest,
    RejectEntryRequest,
    SeaTimeEntryRead,
)
from seatime.schemas.vessel import VesselCreate, VesselRead, VesselUpdate

logger = logging.getLogger(__name__)

router = APIRouter()

_CHECK_ERRORS = {
    404: {"model": ErrorResponse},
    409: {"model": ErrorResponse},
    429: {"model": ErrorResponse},
    503: {"model": ErrorResponse},
    504: {"model": ErrorResponse},
}
_RESOLVE_ERRORS = {
    404: {"model": ErrorResponse},
    409: {"model": ErrorResponse},
    422: {"model": ErrorResponse},
}


def get_ais_client() -> AISClient:
    return get_default_client()


def _entry_read(entry: SeaTimeEntry) -> SeaTimeEntryRead:
    """Serialise an entry together with its validity classification."""
    validity = evaluate_entry(entry)
    data = SeaTimeEntryRead.model_validate(entry)
    data.compliance = validity.compliance.value if validity.compliance else None
    data.confirmable = validity.confirmable
    data.validity_reasons = validity.reasons
    return data


# ---------------------------------------------------------------------------
# Vessels
# ---------------------------------------------------------------------------


@router.get("/vessels", tags=["vessels"], response_model=list[VesselRead])
def list_vessels(user_id: Optional[str] = Query(None), db: Session = Depends(get_db)):
    return vessels.list_vessels(db, user_id=user_id)


@router.post("/vessels", tags=["vessels"], response_model=VesselRead, status_code=201)
def create_vessel(body: VesselCreate, db: Session = Depends(get_db)):
    """Register a vessel. If is_active=true, the user's other vessels are deactivated."""
    particulars = body.model_dump(exclude={"mmsi", "vessel_name", "user_id", "is_active"}, exclude_none=True)
    return vessels.register_vessel(
        db, mmsi=body.mmsi, vessel_name=body.vessel_name,
        user_id=body.user_id, is_active=body.is_active, **particulars,
    )


@router.patch("/vessels/{vessel_id}", tags=["vessels"], response_model=VesselRead)
def update_vessel(vessel_id: int, body: VesselUpdate, db: Session = Depends(get_db)):
    return vessels.update_vessel(db, vessel_id, **body.model_dump(exclude_unset=True))


@router.put("/vessels/{vessel_id}/activate", tags=["vessels"], response_model=VesselRead)
def activate_vessel(vessel_id: int, db: Session = Depends(get_db)):
    """Activate a vessel and deactivate the user's other vessels."""
    return vessels.activate_vessel(db, vessel_id)


@router.delete("/vessels/{vessel_id}", tags=["vessels"])
def delete_vessel(vessel_id: int, db: Session = Depends(get_db)):
    vessels.delete_vessel(db, vessel_id)
    return {"status": "ok", "vessel_id": vessel_id}


# ---------------------------------------------------------------------------
# AIS checks
# ---------------------------------------------------------------------------


@router.post("/ais/check/{vessel_id}", tags=["ais"], response_model=CheckResultRead, responses=_CHECK_ERRORS)
def check_ais(
    vessel_id: int,
    force_refresh: bool = Query(True, description="Bypass the local and provider-side sample cache"),
    db: Session = Depends(get_db),
    client: AISClient = Depends(get_ais_client),
):
    """Run the sea-time pipeline once for the vessel (user-triggered check)."""
    result = check_vessel_ais(db, vessel_id, force_refresh=force_refresh, client=client, manual=True)
    return CheckResultRead(
        vessel_id=result.vessel_id,
        check_id=result.check_id,
        verdict=result.verdict.value,
        transition=result.transition.value,
        entry_id=result.entry_id,
        no_data=result.no_data,
        sample=AISSampleRead.model_validate(result.sample) if result.sample is not None else None,
        compliance=(
            result.validity.compliance.value
            if result.validity is not None and result.validity.compliance is not None else None
        ),
        confirmable=result.validity.confirmable if result.validity is not None else None,
    )


@router.get("/ais/status/{vessel_id}", tags=["ais"], response_model=AISStatusRead)
def ais_status(vessel_id: int, db: Session = Depends(get_db)):
    """Current movement state and the last 24 hours of checks."""
    vessels.get_vessel(db, vessel_id)
    latest = entries.get_latest_check(db, vessel_id)
    recent = entries.get_recent_checks(db, vessel_id)
    open_entry = find_open_entry(db, vessel_id)
    return AISStatusRead(
        vessel_id=vessel_id,
        is_moving=latest.is_moving if latest is not None else None,
        current_check=AISCheckRead.model_validate(latest) if latest is not None else None,
        recent_checks=[AISCheckRead.model_validate(c) for c in recent],
        open_entry_id=open_entry.entry_id if open_entry is not None else None,
    )


# ---------------------------------------------------------------------------
# Sea time entries
# ---------------------------------------------------------------------------


@router.get("/sea-time", tags=["sea-time"], response_model=list[SeaTimeEntryRead])
def list_sea_time(
    vessel_id: Optional[int] = Query(None),
    user_id: Optional[str] = Query(None),
    status: Optional[str] = Query(None, pattern="^(pending|confirmed|rejected)$"),
    start: Optional[datetime] = Query(None, description="Entries starting at or after this time"),
    end: Optional[datetime] = Query(None, description="Entries starting at or before this time"),
    db: Session = Depends(get_db),
):
    """Logbook view, newest first, optionally limited to a date range."""
    rows = entries.get_sea_time_entries(
        db, vessel_id=vessel_id, user_id=user_id, status=status, start=start, end=end,
    )
    return [_entry_read(e) for e in rows]


@router.post(
    "/sea-time/manual", tags=["sea-time"], response_model=SeaTimeEntryRead, status_code=201,
    responses={404: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
)
def create_manual_entry(body: ManualEntryCreate, db: Session = Depends(get_db)):
    """Log a passage by hand. The entry starts pending like a tracked one."""
    return _entry_read(entries.create_manual_entry(db, **body.model_dump()))


@router.get("/sea-time/pending", tags=["sea-time"], response_model=list[SeaTimeEntryRead])
def list_pending(
    user_id: Optional[str] = Query(None),
    since: Optional[datetime] = Query(None, description="Only entries closed after this time (last closed_at seen)"),
    db: Session = Depends(get_db),
):
    """Closed pending entries awaiting review, in the order they closed."""
    return [_entry_read(e) for e in entries.get_pending_entries(db, user_id=user_id, since=since)]


@router.get("/sea-time/{entry_id}", tags=["sea-time"], response_model=SeaTimeEntryRead)
def get_sea_time_entry(entry_id: int, db: Session = Depends(get_db)):
    return _entry_read(entries.get_entry(db, entry_id))


@router.put("/sea-time/{entry_id}/confirm", tags=["sea-time"], response_model=SeaTimeEntryRead, responses=_RESOLVE_ERRORS)
def confirm_sea_time(entry_id: int, body: ConfirmEntryRequest, db: Session = Depends(get_db)):
    entry = confirmation.confirm_entry(db, entry_id, body.service_type, notes=body.notes)
    return _entry_read(entry)


@router.put("/sea-time/{entry_id}/reject", tags=["sea-time"], response_model=SeaTimeEntryRead, responses=_RESOLVE_ERRORS)
def reject_sea_time(entry_id: int, body: RejectEntryRequest, db: Session = Depends(get_db)):
    return _entry_read(confirmation.reject_entry(db, entry_id, notes=body.notes))


@router.patch("/sea-time/{entry_id}/positions", tags=["sea-time"], response_model=SeaTimeEntryRead)
def correct_positions(entry_id: int, body: PositionCorrectionRequest, db: Session = Depends(get_db)):
    entry = confirmation.correct_entry_positions(db, entry_id, **body.model_dump())
    return _entry_read(entry)


# ---------------------------------------------------------------------------
# Scheduler
# ---------------------------------------------------------------------------


@router.get("/scheduled-tasks", tags=["scheduler"], response_model=list[ScheduledTaskRead])
def list_scheduled_tasks(vessel_id: Optional[int] = Query(None), db: Session = Depends(get_db)):
    q = db.query(ScheduledTask)
    if vessel_id is not None:
        q = q.filter(ScheduledTask.vessel_id == vessel_id)
    return q.order_by(ScheduledTask.next_run.asc()).all()


@router.post("/admin/verify-vessel-tasks", tags=["scheduler"], response_model=ReconcileSummaryRead)
def verify_vessel_tasks(db: Session = Depends(get_db)):
    """Create or reactivate the tracking task of every active vessel."""
    summary = reconcile_scheduled_tasks(db)
    return ReconcileSummaryRead(
        total_active_vessels=summary.total_active_vessels,
        tasks_created=summary.created,
        tasks_reactivated=summary.reactivated,
        tasks_already_active=summary.already_active,
        details=summary.details,
    )
