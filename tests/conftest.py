import os

os.environ["ENV"] = "test"
os.environ["DATABASE_URL"] = "sqlite+pysqlite:///:memory:"

import uuid
from datetime import timedelta

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from gathering_push.main import app
from gathering_push.db import Base, get_db
from gathering_push.models.event import Gathering, Event, Member, EventGuest
from gathering_push.models.push_config import GatheringPushConfig

# Use SQLite in-memory for test DB
TEST_DATABASE_URL = "sqlite+pysqlite:///:memory:"
# For in-memory SQLite we must use a StaticPool so multiple connections share the
# same in-memory database (TestClient requests vs test DB setup).
engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Dependency override
def override_get_db():
    try:
        db = TestingSessionLocal()
        yield db
    finally:
        db.close()


app.dependency_overrides[get_db] = override_get_db


@pytest.fixture(autouse=True)
def setup_test_db():
    # recreate schema for each test to ensure isolation
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture
def db_session():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.rollback()
        db.close()


@pytest.fixture
def admin_headers():
    return {"Authorization": "Bearer mock-admin-token"}


@pytest.fixture
def member_headers():
    return {"Authorization": "Bearer mock-member-token"}


@pytest.fixture
def make_config(db_session):
    def _make(**overrides):
        fields = dict(
            enabled=True,
            min_attendees_per_event=5,
            upcoming_window_days=7,
            reminder_days_before=1,
            total_events_threshold=5,
            qualified_events_threshold=2,
        )
        fields.update(overrides)
        db_session.query(GatheringPushConfig).update({GatheringPushConfig.is_active: False})
        cfg = GatheringPushConfig(is_active=True, **fields)
        db_session.add(cfg)
        db_session.commit()
        return cfg
    return _make


@pytest.fixture
def make_gathering(db_session):
    def _make(uid=None, location="Lisbon", **fields):
        gathering = Gathering(
            uid=uid or f"gathering-{uuid.uuid4().hex[:8]}",
            location=location,
            country=fields.pop("country", "Portugal"),
            timezone=fields.pop("timezone", "Europe/Lisbon"),
            **fields,
        )
        db_session.add(gathering)
        db_session.commit()
        return gathering
    return _make


@pytest.fixture
def add_guests(db_session):
    """Attach members to an event; returns the member uids."""
    def _add(event, count=0, member_uids=None):
        uids = list(member_uids or [])
        uids += [f"{event.uid}-m{i}" for i in range(count)]
        for member_uid in uids:
            if not db_session.get(Member, member_uid):
                db_session.add(Member(uid=member_uid, name=f"Member {member_uid}"))
            db_session.add(EventGuest(event_uid=event.uid, member_uid=member_uid))
        db_session.commit()
        return uids
    return _add


@pytest.fixture
def make_event(db_session, add_guests):
    def _make(gathering, start, end=None, attendees=0, uid=None, name=None):
        uid = uid or f"event-{uuid.uuid4().hex[:8]}"
        event = Event(
            uid=uid,
            gathering_uid=gathering.uid if gathering is not None else None,
            slug=uid,
            name=name or f"Event {uid}",
            start_date=start,
            end_date=end or start + timedelta(hours=4),
            logo_url=f"https://cdn.example.com/{uid}.png",
        )
        db_session.add(event)
        db_session.commit()
        if attendees:
            add_guests(event, attendees)
        return event
    return _make
