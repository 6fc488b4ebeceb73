"""Regulatory validity filter for closed sea-time intervals.

Two independent questions per entry:
  compliance   - does it meet the MCA minimum (duration_hours >= 4.0)?
                 Under-threshold entries are flagged, never hidden: short
                 intervals often mean fragmented tracking a human should see.
  confirmable  - can it be presented for confirmation at all? Requires a
                 closed interval with both start and end positions. Entries
                 missing position data stay out until corrected.
"""
from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Iterable

from seatime.config import settings
from seatime.models.sea_time_entry import SeaTimeEntry

REASON_STILL_OPEN = "still_open"
REASON_BELOW_MINIMUM = "below_minimum_duration"
REASON_MISSING_POSITION = "missing_position_data"


class ComplianceEnum(str, enum.Enum):
    COMPLIANT = "compliant"
    NON_COMPLIANT = "non_compliant"


@dataclass
class EntryValidity:
    compliance: ComplianceEnum | None
    confirmable: bool
    reasons: list[str] = field(default_factory=list)

    @property
    def missing_position_data(self) -> bool:
        return REASON_MISSING_POSITION in self.reasons


def has_positions(entry: SeaTimeEntry) -> bool:
    return None not in (
        entry.start_latitude, entry.start_longitude,
        entry.end_latitude, entry.end_longitude,
    )


def compliance_for_duration(duration_hours: float | None, min_hours: float | None = None) -> ComplianceEnum | None:
    if duration_hours is None:
        return None
    minimum = min_hours if min_hours is not None else settings.MCA_MIN_DURATION_HOURS
    return ComplianceEnum.COMPLIANT if duration_hours >= minimum else ComplianceEnum.NON_COMPLIANT


def evaluate_entry(entry: SeaTimeEntry, min_hours: float | None = None) -> EntryValidity:
    if entry.end_time is None or entry.duration_hours is None:
        return EntryValidity(compliance=None, confirmable=False, reasons=[REASON_STILL_OPEN])

    reasons: list[str] = []
    compliance = compliance_for_duration(entry.duration_hours, min_hours)
    if compliance is ComplianceEnum.NON_COMPLIANT:
        reasons.append(REASON_BELOW_MINIMUM)

    positions_ok = has_positions(entry)
    if not positions_ok:
        reasons.append(REASON_MISSING_POSITION)

    return EntryValidity(compliance=compliance, confirmable=positions_ok, reasons=reasons)


def filter_confirmable(entries: Iterable[SeaTimeEntry], min_hours: float | None = None) -> list[SeaTimeEntry]:
    """Entries that may be presented for confirmation, compliant or flagged."""
    return [e for e in entries if evaluate_entry(e, min_hours).confirmable]
