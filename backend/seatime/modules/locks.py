"""Per-vessel in-flight locks shared by scheduled and manual checks.

Scheduled runs try-acquire and skip a vessel that is already being checked;
manual checks wait their turn. Neither path may overlap a run for the same
vessel. Cross-process safety for the open interval comes from the partial
unique index on sea_time_entries, not from these locks.
"""
from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Iterator

from seatime.errors import VesselBusy


class VesselLockRegistry:
    def __init__(self):
        self._locks: dict[int, threading.Lock] = {}
        self._guard = threading.Lock()

    def _lock_for(self, vessel_id: int) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(vessel_id)
            if lock is None:
                lock = threading.Lock()
                self._locks[vessel_id] = lock
            return lock

    def is_in_flight(self, vessel_id: int) -> bool:
        return self._lock_for(vessel_id).locked()

    @contextmanager
    def hold(self, vessel_id: int, blocking: bool = True, timeout: float | None = None) -> Iterator[None]:
        """Hold the vessel's lock; raises VesselBusy if it cannot be acquired."""
        lock = self._lock_for(vessel_id)
        if not blocking:
            acquired = lock.acquire(blocking=False)
        elif timeout is None:
            acquired = lock.acquire()
        else:
            acquired = lock.acquire(timeout=timeout)
        if not acquired:
            raise VesselBusy(f"A check for vessel {vessel_id} is already in progress")
        try:
            yield
        finally:
            lock.release()


vessel_locks = VesselLockRegistry()
