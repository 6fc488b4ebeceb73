"""Tests for the MCA validity filter."""
from datetime import datetime, timedelta

import pytest

from seatime.models.sea_time_entry import SeaTimeEntry
from seatime.modules.interval_machine import recompute_duration
from seatime.modules.validity import (
    REASON_BELOW_MINIMUM,
    REASON_MISSING_POSITION,
    REASON_STILL_OPEN,
    ComplianceEnum,
    compliance_for_duration,
    evaluate_entry,
    filter_confirmable,
)

START = datetime(2026, 3, 14, 8, 0, 0)


def _entry(duration=None, end_latitude=50.9, **kwargs):
    entry = SeaTimeEntry(
        vessel_id=1,
        start_time=START,
        end_time=START + duration if duration is not None else None,
        status="pending",
        start_latitude=50.1,
        start_longitude=-1.2,
        end_latitude=end_latitude if duration is not None else None,
        end_longitude=-1.4 if duration is not None else None,
        **kwargs,
    )
    recompute_duration(entry)
    return entry


class TestComplianceBoundary:

    def test_exactly_four_hours_is_compliant(self):
        assert compliance_for_duration(4.0, 4.0) is ComplianceEnum.COMPLIANT

    def test_just_under_four_hours_is_non_compliant(self):
        assert compliance_for_duration(3.99, 4.0) is ComplianceEnum.NON_COMPLIANT

    def test_unknown_duration_has_no_compliance(self):
        assert compliance_for_duration(None) is None

    def test_minimum_defaults_to_settings(self):
        assert compliance_for_duration(4.0) is ComplianceEnum.COMPLIANT
        assert compliance_for_duration(3.5) is ComplianceEnum.NON_COMPLIANT


class TestEvaluateEntry:

    def test_compliant_entry_with_positions(self):
        validity = evaluate_entry(_entry(timedelta(hours=6)))
        assert validity.compliance is ComplianceEnum.COMPLIANT
        assert validity.confirmable is True
        assert validity.reasons == []

    def test_short_entry_is_flagged_but_still_confirmable(self):
        validity = evaluate_entry(_entry(timedelta(hours=3, minutes=59, seconds=24)))
        assert validity.compliance is ComplianceEnum.NON_COMPLIANT
        assert validity.confirmable is True
        assert validity.reasons == [REASON_BELOW_MINIMUM]

    def test_missing_end_latitude_is_never_confirmable(self):
        validity = evaluate_entry(_entry(timedelta(hours=8), end_latitude=None))
        assert validity.compliance is ComplianceEnum.COMPLIANT
        assert validity.confirmable is False
        assert validity.missing_position_data
        assert REASON_MISSING_POSITION in validity.reasons

    def test_open_entry_is_not_confirmable(self):
        validity = evaluate_entry(_entry(None))
        assert validity.compliance is None
        assert validity.confirmable is False
        assert validity.reasons == [REASON_STILL_OPEN]

    def test_explicit_minimum_overrides_settings(self):
        validity = evaluate_entry(_entry(timedelta(hours=5)), min_hours=6.0)
        assert validity.compliance is ComplianceEnum.NON_COMPLIANT


class TestFilterConfirmable:

    def test_keeps_flagged_entries_and_drops_incomplete_ones(self):
        compliant = _entry(timedelta(hours=5))
        short = _entry(timedelta(hours=1))
        no_position = _entry(timedelta(hours=5), end_latitude=None)
        still_open = _entry(None)

        result = filter_confirmable([compliant, short, no_position, still_open])

        assert result == [compliant, short]


class TestRecomputeDuration:

    def test_duration_is_exact_hours_between_timestamps(self):
        entry = _entry(timedelta(hours=2, minutes=30))
        assert entry.duration_hours == pytest.approx(2.5)
        assert entry.mca_compliant is False

    def test_distance_derived_from_positions(self):
        entry = _entry(timedelta(hours=5))
        # 0.8 deg of latitude plus 0.2 deg of longitude at 50N
        assert entry.distance_nm == pytest.approx(48.6, abs=0.5)

    def test_open_entry_has_no_duration(self):
        entry = _entry(None)
        assert entry.duration_hours is None
        assert entry.mca_compliant is None
