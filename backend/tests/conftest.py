"""Shared test fixtures: file-backed SQLite per test, fake AIS client, API client."""
import os

# Must be set before seatime.config is imported anywhere
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SCHEDULER_ENABLED"] = "false"
os.environ.pop("SEATIME_API_KEY", None)

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker

from seatime.models import Base  # noqa: F401 -- registers all models
from seatime.models.sea_time_entry import SeaTimeEntry
from seatime.models.vessel import Vessel
from seatime.modules.ais_client import AISSample


class FakeAISClient:
    """Stands in for AISClient: returns (or raises) queued responses in order."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls = []

    def queue(self, *responses):
        self.responses.extend(responses)

    def fetch_sample(self, mmsi, force_refresh=False):
        self.calls.append((mmsi, force_refresh))
        if not self.responses:
            raise AssertionError(f"unexpected AIS fetch for MMSI {mmsi}")
        item = self.responses.pop(0)
        if isinstance(item, Exception):
            raise item
        return item


@pytest.fixture
def engine(tmp_path):
    """File-backed SQLite so scheduler worker threads see the same data."""
    engine = create_engine(
        f"sqlite:///{tmp_path / 'seatime-test.db'}",
        connect_args={"check_same_thread": False},
    )

    @event.listens_for(engine, "connect")
    def _set_sqlite_pragmas(dbapi_conn, connection_record):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def make_vessel(db):
    def _make(mmsi="235000001", vessel_name="SEA BREEZE", user_id="user-1", is_active=True):
        vessel = Vessel(mmsi=mmsi, vessel_name=vessel_name, user_id=user_id, is_active=is_active)
        db.add(vessel)
        db.commit()
        return vessel
    return _make


@pytest.fixture
def vessel(make_vessel):
    return make_vessel()


@pytest.fixture
def make_sample():
    def _make(speed, at, lat=50.10, lon=-1.20, stale=False):
        return AISSample(speed_knots=speed, latitude=lat, longitude=lon, timestamp=at, is_stale=stale)
    return _make


@pytest.fixture
def make_entry(db):
    """Insert a sea time entry directly, bypassing the state machine."""
    def _make(vessel, start, end=None, status="pending", positions=True, **overrides):
        duration = (end - start).total_seconds() / 3600 if end is not None else None
        entry = SeaTimeEntry(
            user_id=vessel.user_id,
            vessel_id=vessel.vessel_id,
            start_time=start,
            end_time=end,
            duration_hours=duration,
            mca_compliant=(duration >= 4.0) if duration is not None else None,
            status=status,
            start_latitude=50.10 if positions else None,
            start_longitude=-1.20 if positions else None,
            end_latitude=(50.90 if positions else None) if end is not None else None,
            end_longitude=(-1.40 if positions else None) if end is not None else None,
            # Closes in end_time order unless a test overrides it
            closed_at=end,
        )
        for key, value in overrides.items():
            setattr(entry, key, value)
        db.add(entry)
        db.commit()
        return entry
    return _make


@pytest.fixture
def fake_ais():
    return FakeAISClient()


@pytest.fixture
def api_client(session_factory, fake_ais):
    """TestClient with the DB and AIS client dependencies overridden."""
    from seatime.api.routes import get_ais_client
    from seatime.database import get_db
    from seatime.main import app

    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_ais_client] = lambda: fake_ais
    with TestClient(app) as client:
        yield client
    app.dependency_overrides.clear()

