"""Exception hierarchy for the sea-time pipeline.

Every error carries a stable ``code`` so the HTTP layer and the CLI can tell
the caller whether to retry immediately (``vessel_busy``), wait
(``rate_limited``, ``provider_unavailable``, ``timeout``) or fix something
(``vessel_not_active``, ``already_resolved``).
"""
from __future__ import annotations


class SeaTimeError(Exception):
    code = "error"


# ── AIS provider failures ────────────────────────────────────────────────────

class ProviderError(SeaTimeError):
    """Base for failures of the outbound AIS call. Never a movement verdict."""

    code = "provider_error"
    transient = True


class ProviderUnavailable(ProviderError):
    code = "provider_unavailable"


class RateLimited(ProviderError):
    code = "rate_limited"

    def __init__(self, message: str = "AIS provider rate limit reached", retry_after: float | None = None):
        super().__init__(message)
        self.retry_after = retry_after


class ProviderTimeout(ProviderError):
    code = "timeout"


class NoDataForVessel(ProviderError):
    """Provider answered but has no current position for the vessel."""

    code = "no_data"
    transient = False


# ── Vessel lookups ───────────────────────────────────────────────────────────

class VesselNotFound(SeaTimeError):
    code = "vessel_not_found"


class VesselNotActive(SeaTimeError):
    code = "vessel_not_active"


class VesselBusy(SeaTimeError):
    """Another check for the same vessel did not finish within the wait budget."""

    code = "vessel_busy"


# ── Confirmation workflow ────────────────────────────────────────────────────

class EntryNotFound(SeaTimeError):
    code = "entry_not_found"


class AlreadyResolved(SeaTimeError):
    code = "already_resolved"

    def __init__(self, entry_id: int, status: str):
        super().__init__(f"Sea time entry {entry_id} is already {status}")
        self.entry_id = entry_id
        self.status = status


class EntryNotConfirmable(SeaTimeError):
    code = "entry_not_confirmable"

    def __init__(self, entry_id: int, reasons: list[str]):
        super().__init__(
            f"Sea time entry {entry_id} cannot be confirmed: {', '.join(reasons)}"
        )
        self.entry_id = entry_id
        self.reasons = reasons
