"""Movement classifier: speed threshold verdict for a single AIS sample.

Stateless. Debouncing of spurious stop samples happens in the interval state
machine. ``recent_samples`` is accepted and currently unused.
"""
from __future__ import annotations

import enum
from typing import Iterable

from seatime.config import settings
from seatime.modules.ais_client import AISSample


class MovementVerdict(str, enum.Enum):
    MOVING = "moving"
    NOT_MOVING = "not_moving"
    UNKNOWN = "unknown"

    @property
    def is_moving(self) -> bool | None:
        if self is MovementVerdict.UNKNOWN:
            return None
        return self is MovementVerdict.MOVING


def classify(
    sample: AISSample | None,
    recent_samples: Iterable[AISSample] = (),
    threshold_knots: float | None = None,
) -> MovementVerdict:
    """Moving iff speed is known, fresh, and strictly above the threshold."""
    threshold = threshold_knots if threshold_knots is not None else settings.MOVING_SPEED_THRESHOLD_KNOTS
    if sample is None or sample.speed_knots is None or sample.is_stale:
        return MovementVerdict.UNKNOWN
    if sample.speed_knots > threshold:
        return MovementVerdict.MOVING
    return MovementVerdict.NOT_MOVING
