"""AIS polling scheduler: due-task query, per-vessel runs, self-healing sweep.

What runs next is always a database question (``next_run <= now``), never an
in-process timer, so a pass can be driven by the loop below, by cron through
``seatime run-due``, or directly from tests with an explicit ``now``.

A run always consumes its slot (``last_run = now``,
``next_run = now + interval_hours``), whether the poll succeeded or not, so a
failing provider is retried on the next slot instead of hot-looping. The only
exception is a vessel whose previous run is still in flight: that task is
left due and picked up by a later pass.
"""
from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable

from sqlalchemy.orm import Session

from seatime.config import settings
from seatime.errors import ProviderTimeout, ProviderUnavailable, RateLimited, VesselBusy
from seatime.models.base import TaskRunStatusEnum, TaskTypeEnum
from seatime.models.scheduled_task import ScheduledTask
from seatime.models.vessel import Vessel
from seatime.modules.ais_client import AISClient
from seatime.modules.pipeline import check_vessel_ais
from seatime.utils.timestamps import utcnow

logger = logging.getLogger(__name__)

SKIPPED_IN_FLIGHT = "skipped_in_flight"


@dataclass
class TaskRunResult:
    task_id: int
    vessel_id: int
    status: str
    transition: str | None = None
    error: str | None = None


@dataclass
class SchedulerPass:
    now: datetime
    results: list[TaskRunResult] = field(default_factory=list)

    @property
    def due(self) -> int:
        return len(self.results)

    def count(self, status: str) -> int:
        return sum(1 for r in self.results if r.status == status)


@dataclass
class ReconcileSummary:
    total_active_vessels: int = 0
    created: int = 0
    reactivated: int = 0
    already_active: int = 0
    details: list[dict] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Task bookkeeping
# ---------------------------------------------------------------------------


def find_due_tasks(db: Session, now: datetime) -> list[ScheduledTask]:
    return (
        db.query(ScheduledTask)
        .join(Vessel, Vessel.vessel_id == ScheduledTask.vessel_id)
        .filter(
            ScheduledTask.task_type == TaskTypeEnum.AIS_CHECK.value,
            ScheduledTask.is_active.is_(True),
            Vessel.is_active.is_(True),
            ScheduledTask.next_run <= now,
        )
        .order_by(ScheduledTask.next_run.asc(), ScheduledTask.task_id.asc())
        .all()
    )


def ensure_task_for_vessel(
    db: Session,
    vessel: Vessel,
    now: datetime,
    interval_hours: float | None = None,
) -> tuple[ScheduledTask, str]:
    """Make sure ``vessel`` has exactly one active AIS task. Flushes, does not commit.

    Returns the task and the action taken: ``created``, ``reactivated`` or
    ``already_active``. A new task is due immediately.
    """
    tasks = (
        db.query(ScheduledTask)
        .filter(
            ScheduledTask.vessel_id == vessel.vessel_id,
            ScheduledTask.task_type == TaskTypeEnum.AIS_CHECK.value,
        )
        .order_by(ScheduledTask.task_id.asc())
        .all()
    )
    if not tasks:
        task = ScheduledTask(
            user_id=vessel.user_id,
            task_type=TaskTypeEnum.AIS_CHECK.value,
            vessel_id=vessel.vessel_id,
            interval_hours=interval_hours or settings.DEFAULT_TASK_INTERVAL_HOURS,
            next_run=now,
            last_run=None,
            is_active=True,
        )
        db.add(task)
        db.flush()
        return task, "created"

    primary = next((t for t in tasks if t.is_active), tasks[0])
    for duplicate in tasks:
        if duplicate is not primary and duplicate.is_active:
            logger.warning(
                "Vessel %s had duplicate active task %s - deactivating",
                vessel.vessel_id, duplicate.task_id,
            )
            duplicate.is_active = False

    if primary.is_active:
        db.flush()
        return primary, "already_active"

    primary.is_active = True
    db.flush()
    return primary, "reactivated"


def reconcile_scheduled_tasks(db: Session, now: datetime | None = None) -> ReconcileSummary:
    """Create or reactivate the AIS task of every active vessel.

    Per-vessel failures are logged and reported in ``details``; they do not
    stop the sweep.
    """
    now = now or utcnow()
    summary = ReconcileSummary()
    active_vessels = db.query(Vessel).filter(Vessel.is_active.is_(True)).order_by(Vessel.vessel_id).all()
    summary.total_active_vessels = len(active_vessels)
    logger.info("Verifying scheduled tasks for %d active vessel(s)", len(active_vessels))

    for vessel in active_vessels:
        detail = {"vessel_id": vessel.vessel_id, "vessel_name": vessel.vessel_name, "mmsi": vessel.mmsi}
        try:
            task, action = ensure_task_for_vessel(db, vessel, now)
            db.commit()
        except Exception as exc:
            db.rollback()
            logger.exception("Failed to verify/repair task for vessel %s", detail["vessel_id"])
            detail.update(action="failed", error=str(exc))
            summary.details.append(detail)
            continue

        if action == "created":
            summary.created += 1
            logger.info("Created missing tracking task %s for vessel %s", task.task_id, vessel.vessel_id)
        elif action == "reactivated":
            summary.reactivated += 1
            logger.info("Reactivated tracking task %s for vessel %s", task.task_id, vessel.vessel_id)
        else:
            summary.already_active += 1
        detail.update(action=action, task_id=task.task_id)
        summary.details.append(detail)

    logger.info(
        "Scheduled task verification complete: created=%d reactivated=%d already_active=%d",
        summary.created, summary.reactivated, summary.already_active,
    )
    return summary


def _mark_run(db: Session, task_id: int, now: datetime, status: str, error: str | None) -> None:
    task = db.get(ScheduledTask, task_id)
    if task is None:
        # Vessel deleted mid-run; cascade already removed the task
        return
    task.last_run = now
    task.next_run = now + timedelta(hours=task.interval_hours)
    task.last_status = status
    task.last_error = error
    db.commit()


# ---------------------------------------------------------------------------
# Running tasks
# ---------------------------------------------------------------------------


def run_task(
    session_factory: Callable[[], Session],
    task_id: int,
    now: datetime,
    client: AISClient | None = None,
) -> TaskRunResult:
    """Run one due task in its own session. Never raises for pipeline failures."""
    db = session_factory()
    try:
        task = db.get(ScheduledTask, task_id)
        if task is None:
            return TaskRunResult(task_id=task_id, vessel_id=-1, status=TaskRunStatusEnum.ERROR.value,
                                 error="task not found")
        vessel_id = task.vessel_id
        transition = None
        error = None
        try:
            result = check_vessel_ais(db, vessel_id, client=client, manual=False)
            status = TaskRunStatusEnum.NO_DATA.value if result.no_data else TaskRunStatusEnum.OK.value
            transition = result.transition.value
        except VesselBusy:
            logger.info("Vessel %s check already in flight - task %s left due", vessel_id, task_id)
            return TaskRunResult(task_id=task_id, vessel_id=vessel_id, status=SKIPPED_IN_FLIGHT)
        except RateLimited as exc:
            status, error = TaskRunStatusEnum.RATE_LIMITED.value, str(exc)
            logger.warning("Task %s (vessel %s): AIS provider rate limited", task_id, vessel_id)
        except ProviderTimeout as exc:
            status, error = TaskRunStatusEnum.TIMEOUT.value, str(exc)
            logger.warning("Task %s (vessel %s): AIS provider timed out", task_id, vessel_id)
        except ProviderUnavailable as exc:
            status, error = TaskRunStatusEnum.UNAVAILABLE.value, str(exc)
            logger.warning("Task %s (vessel %s): AIS provider unavailable: %s", task_id, vessel_id, exc)
        except Exception as exc:
            db.rollback()
            status, error = TaskRunStatusEnum.ERROR.value, str(exc)
            logger.exception("Task %s (vessel %s) failed", task_id, vessel_id)

        _mark_run(db, task_id, now, status, error)
        return TaskRunResult(task_id=task_id, vessel_id=vessel_id, status=status,
                             transition=transition, error=error)
    finally:
        db.close()


def run_due_tasks(
    session_factory: Callable[[], Session] | None = None,
    now: datetime | None = None,
    client: AISClient | None = None,
    max_workers: int | None = None,
) -> SchedulerPass:
    """Run every due task once. Different vessels run concurrently."""
    if session_factory is None:
        from seatime.database import SessionLocal
        session_factory = SessionLocal
    now = now or utcnow()
    scheduler_pass = SchedulerPass(now=now)

    db = session_factory()
    try:
        due = find_due_tasks(db, now)
        # One run per vessel per pass, even if bookkeeping left duplicates behind
        by_vessel: dict[int, int] = {}
        for task in due:
            by_vessel.setdefault(task.vessel_id, task.task_id)
        task_ids = list(by_vessel.values())
    finally:
        db.close()

    if not task_ids:
        logger.debug("No due tasks at %s", now.isoformat())
        return scheduler_pass

    logger.info("Found %d due scheduled task(s)", len(task_ids))
    workers = max(1, min(max_workers or settings.SCHEDULER_MAX_WORKERS, len(task_ids)))
    with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="seatime-task") as pool:
        futures = [pool.submit(run_task, session_factory, task_id, now, client) for task_id in task_ids]
        for future in as_completed(futures):
            scheduler_pass.results.append(future.result())

    scheduler_pass.results.sort(key=lambda r: r.task_id)
    logger.info(
        "Scheduler pass complete: %d run, %d ok, %d no data, %d failed, %d in flight",
        scheduler_pass.due,
        scheduler_pass.count(TaskRunStatusEnum.OK.value),
        scheduler_pass.count(TaskRunStatusEnum.NO_DATA.value),
        sum(scheduler_pass.count(s.value) for s in (
            TaskRunStatusEnum.RATE_LIMITED, TaskRunStatusEnum.UNAVAILABLE,
            TaskRunStatusEnum.TIMEOUT, TaskRunStatusEnum.ERROR,
        )),
        scheduler_pass.count(SKIPPED_IN_FLIGHT),
    )
    return scheduler_pass


class SchedulerLoop:
    """Single driver thread: a due-task pass every ``poll_seconds``.

    Reconciles tasks on start and every ``reconcile_every`` passes.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session] | None = None,
        client: AISClient | None = None,
        poll_seconds: int | None = None,
        reconcile_every: int | None = None,
    ):
        if session_factory is None:
            from seatime.database import SessionLocal
            session_factory = SessionLocal
        self.session_factory = session_factory
        self.client = client
        self.poll_seconds = poll_seconds if poll_seconds is not None else settings.SCHEDULER_POLL_SECONDS
        self.reconcile_every = reconcile_every if reconcile_every is not None else settings.RECONCILE_EVERY_PASSES
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None
        self._passes = 0

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.running:
            logger.warning("Scheduler is already running")
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self.run_forever, name="seatime-scheduler", daemon=True)
        self._thread.start()

    def stop(self, timeout: float | None = None) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None
        logger.info("Scheduler stopped")

    def run_once(self, now: datetime | None = None) -> SchedulerPass:
        if self.reconcile_every > 0 and self._passes % self.reconcile_every == 0:
            self.reconcile(now)
        self._passes += 1
        return run_due_tasks(self.session_factory, now=now, client=self.client)

    def reconcile(self, now: datetime | None = None) -> ReconcileSummary:
        db = self.session_factory()
        try:
            return reconcile_scheduled_tasks(db, now)
        finally:
            db.close()

    def run_forever(self) -> None:
        logger.info("Scheduler starting (interval=%ds)", self.poll_seconds)
        while not self._stop.is_set():
            try:
                self.run_once()
            except Exception:
                logger.exception("Scheduler pass failed")
            self._stop.wait(self.poll_seconds)
