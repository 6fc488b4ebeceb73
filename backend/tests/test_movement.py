"""Tests for the movement classifier."""
from datetime import datetime

import pytest

from seatime.modules.ais_client import AISSample
from seatime.modules.movement import MovementVerdict, classify

AT = datetime(2026, 3, 14, 10, 0, 0)


def _sample(speed, stale=False):
    return AISSample(speed_knots=speed, latitude=50.1, longitude=-1.2, timestamp=AT, is_stale=stale)


class TestClassify:

    @pytest.mark.parametrize("speed,expected", [
        (0.0, MovementVerdict.NOT_MOVING),
        (1.9, MovementVerdict.NOT_MOVING),
        (2.0, MovementVerdict.NOT_MOVING),
        (2.1, MovementVerdict.MOVING),
        (14.5, MovementVerdict.MOVING),
    ])
    def test_threshold_is_strictly_greater_than(self, speed, expected):
        assert classify(_sample(speed), threshold_knots=2.0) is expected

    def test_default_threshold_comes_from_settings(self):
        assert classify(_sample(2.5)) is MovementVerdict.MOVING
        assert classify(_sample(1.5)) is MovementVerdict.NOT_MOVING

    def test_missing_sample_is_unknown(self):
        assert classify(None) is MovementVerdict.UNKNOWN

    def test_missing_speed_is_unknown_not_stationary(self):
        assert classify(_sample(None)) is MovementVerdict.UNKNOWN

    def test_stale_sample_is_unknown(self):
        assert classify(_sample(12.0, stale=True)) is MovementVerdict.UNKNOWN

    def test_recent_samples_do_not_change_verdict(self):
        history = [_sample(0.0), _sample(0.0), _sample(0.0)]
        assert classify(_sample(8.0), history) is MovementVerdict.MOVING


class TestVerdictIsMoving:

    def test_tri_state(self):
        assert MovementVerdict.MOVING.is_moving is True
        assert MovementVerdict.NOT_MOVING.is_moving is False
        assert MovementVerdict.UNKNOWN.is_moving is None
