"""
conftest.py - Shared fixtures for the transaction automation tests.

Provides an in-memory SQLite database, in-memory doubles of the Gmail,
Calendar and Drive adapters, and a fully wired NotificationHandler.
"""

from datetime import datetime
from zoneinfo import ZoneInfo

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.database import Base, init_db
from app.services.archive_dispatcher import ArchivalDispatcher
from app.services.artifacts import ArtifactExtractor
from app.services.calendar_reconciler import CalendarReconciler
from app.services.checkpoint_store import CheckpointStore
from app.services.classifier import TransactionClassifier
from app.services.history_sync import HistorySynchronizer
from app.services.ledger import IdempotencyLedger
from app.services.notification_handler import NotificationHandler

from tests.fakes import FakeCalendar, FakeDrive, FakeMailbox

CALENDAR_NAME = "Bills"
TIMEZONE = "America/New_York"
NOW = datetime(2024, 3, 15, 12, 0, tzinfo=ZoneInfo(TIMEZONE))

# ── In-memory SQLite engine ──────────────────────────────────────────

engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestSessionLocal = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


@pytest.fixture(autouse=True)
def session_factory():
    """Create all tables, yield the session factory, then tear down."""
    init_db(engine)
    try:
        yield TestSessionLocal
    finally:
        Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def mailbox():
    return FakeMailbox()


@pytest.fixture()
def calendar():
    return FakeCalendar(calendars=[{"id": "cal_123", "summary": CALENDAR_NAME}])


@pytest.fixture()
def drive():
    return FakeDrive()


@pytest.fixture()
def checkpoints(session_factory):
    return CheckpointStore(session_factory)


@pytest.fixture()
def ledger(session_factory):
    return IdempotencyLedger(session_factory)


@pytest.fixture()
def reconciler(calendar):
    return CalendarReconciler(calendar, TIMEZONE, clock=lambda: NOW)


@pytest.fixture()
def dispatcher(drive):
    return ArchivalDispatcher(drive)


@pytest.fixture()
def handler(mailbox, calendar, drive, checkpoints, ledger, reconciler, dispatcher):
    return NotificationHandler(
        mailbox=mailbox,
        checkpoints=checkpoints,
        ledger=ledger,
        synchronizer=HistorySynchronizer(mailbox),
        classifier=TransactionClassifier(),
        reconciler=reconciler,
        dispatcher=dispatcher,
        extractor=ArtifactExtractor(mailbox),
        calendar_name=CALENDAR_NAME,
    )
