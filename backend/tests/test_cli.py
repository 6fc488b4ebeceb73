"""Tests for the seatime CLI commands."""
from __future__ import annotations

from datetime import datetime, timedelta
from unittest.mock import MagicMock, patch

import pytest
from typer.testing import CliRunner

from seatime.cli import app
from seatime.errors import VesselNotActive
from seatime.modules.scheduler import SchedulerPass, TaskRunResult

runner = CliRunner()

START = datetime(2026, 3, 14, 6, 0, 0)


@pytest.fixture
def cli_db(session_factory):
    """Point the CLI's SessionLocal at the test database."""
    with patch("seatime.database.SessionLocal", session_factory):
        yield session_factory


@patch("seatime.database.init_db")
def test_init_db(mock_init):
    result = runner.invoke(app, ["init-db"])
    assert result.exit_code == 0
    mock_init.assert_called_once()
    assert "Database ready" in result.output


def test_no_args_shows_help():
    result = runner.invoke(app, [])
    assert "check-vessel" in result.output


# ---------------------------------------------------------------------------
# pending / confirm / reject
# ---------------------------------------------------------------------------


def test_pending_lists_closed_entries(cli_db, vessel, make_entry):
    entry = make_entry(vessel, START, START + timedelta(hours=2, minutes=30))
    result = runner.invoke(app, ["pending"])
    assert result.exit_code == 0
    assert "Pending sea time" in result.output
    assert "2.50" in result.output
    assert str(entry.entry_id) in result.output


def test_pending_empty(cli_db):
    result = runner.invoke(app, ["pending"])
    assert result.exit_code == 0
    assert "Nothing pending" in result.output


def test_confirm(cli_db, db, vessel, make_entry):
    entry = make_entry(vessel, START, START + timedelta(hours=5))
    result = runner.invoke(app, ["confirm", str(entry.entry_id), "--service-type", "standby_service"])
    assert result.exit_code == 0
    assert "confirmed" in result.output
    db.expire_all()
    assert entry.status == "confirmed"
    assert entry.service_type == "standby_service"


def test_confirm_twice_fails(cli_db, vessel, make_entry):
    entry = make_entry(vessel, START, START + timedelta(hours=5))
    runner.invoke(app, ["confirm", str(entry.entry_id)])
    result = runner.invoke(app, ["confirm", str(entry.entry_id)])
    assert result.exit_code == 1
    assert "already confirmed" in result.output


def test_confirm_bad_service_type(cli_db, vessel, make_entry):
    entry = make_entry(vessel, START, START + timedelta(hours=5))
    result = runner.invoke(app, ["confirm", str(entry.entry_id), "--service-type", "shore_leave"])
    assert result.exit_code == 1


def test_reject(cli_db, db, vessel, make_entry):
    entry = make_entry(vessel, START, START + timedelta(hours=5))
    result = runner.invoke(app, ["reject", str(entry.entry_id), "--notes", "Not aboard"])
    assert result.exit_code == 0
    db.expire_all()
    assert entry.status == "rejected"


# ---------------------------------------------------------------------------
# scheduler commands
# ---------------------------------------------------------------------------


def test_verify_tasks(cli_db, make_vessel):
    make_vessel(mmsi="235000001", user_id="user-1")
    result = runner.invoke(app, ["verify-tasks"])
    assert result.exit_code == 0
    assert "created 1" in result.output


@patch("seatime.modules.scheduler.run_due_tasks")
def test_run_due_prints_results(mock_run):
    now = datetime(2026, 3, 14, 12, 0)
    mock_run.return_value = SchedulerPass(now=now, results=[
        TaskRunResult(task_id=1, vessel_id=3, status="ok", transition="opened"),
        TaskRunResult(task_id=2, vessel_id=4, status="unavailable", error="HTTP 503"),
    ])
    result = runner.invoke(app, ["run-due"])
    assert result.exit_code == 0
    assert "opened" in result.output
    assert "unavailable" in result.output


@patch("seatime.modules.scheduler.run_due_tasks")
def test_run_due_nothing_due(mock_run):
    mock_run.return_value = SchedulerPass(now=datetime(2026, 3, 14, 12, 0))
    result = runner.invoke(app, ["run-due"])
    assert result.exit_code == 0
    assert "No tasks due" in result.output


@patch("seatime.modules.scheduler.SchedulerLoop")
@patch("seatime.database.init_db")
def test_run_scheduler_stops_on_ctrl_c(mock_init, mock_loop_cls):
    loop = MagicMock()
    loop.poll_seconds = 60
    loop.run_forever.side_effect = KeyboardInterrupt
    mock_loop_cls.return_value = loop

    result = runner.invoke(app, ["run-scheduler"])

    assert result.exit_code == 0
    assert "Stopped" in result.output
    mock_init.assert_called_once()


# ---------------------------------------------------------------------------
# check-vessel
# ---------------------------------------------------------------------------


@patch("seatime.modules.pipeline.check_vessel_ais", side_effect=VesselNotActive("Vessel 1 is not the active vessel"))
def test_check_vessel_inactive(mock_check, cli_db):
    result = runner.invoke(app, ["check-vessel", "1"])
    assert result.exit_code == 1
    assert "vessel_not_active" in result.output


def test_check_vessel_opens_entry(cli_db, vessel, fake_ais, make_sample):
    fake_ais.queue(make_sample(9.0, START))
    with patch("seatime.modules.pipeline.get_default_client", return_value=fake_ais):
        result = runner.invoke(app, ["check-vessel", str(vessel.vessel_id)])
    assert result.exit_code == 0
    assert "moving" in result.output
    assert "opened" in result.output
    assert fake_ais.calls == [(vessel.mmsi, True)]
