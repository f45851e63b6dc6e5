"""
test_checkpoint_store.py - Per-mailbox checkpoint persistence.
"""

from sqlalchemy import inspect

from app.models import SyncCheckpoint

from tests.conftest import engine


def test_absent_checkpoint_is_none(checkpoints):
    assert checkpoints.get("me@example.com") is None


def test_set_then_get(checkpoints):
    checkpoints.set("me@example.com", "1200")
    assert checkpoints.get("me@example.com") == "1200"


def test_advance_keeps_single_row(checkpoints, session_factory):
    checkpoints.set("me@example.com", "1200")
    checkpoints.set("me@example.com", "1300")

    assert checkpoints.get("me@example.com") == "1300"
    with session_factory() as db:
        assert db.query(SyncCheckpoint).count() == 1


def test_mailboxes_are_independent(checkpoints):
    checkpoints.set("a@example.com", "10")
    checkpoints.set("b@example.com", "20")
    assert checkpoints.get("a@example.com") == "10"
    assert checkpoints.get("b@example.com") == "20"


def test_numeric_ids_stored_as_strings(checkpoints):
    checkpoints.set("me", 4242)
    assert checkpoints.get("me") == "4242"


def test_older_position_does_not_move_checkpoint_back(checkpoints):
    checkpoints.set("me@example.com", "3000")

    assert checkpoints.set("me@example.com", "2000") is False
    assert checkpoints.get("me@example.com") == "3000"


def test_same_position_is_not_rewritten(checkpoints):
    assert checkpoints.set("me@example.com", "3000") is True
    assert checkpoints.set("me@example.com", "3000") is False


def test_positions_compare_numerically(checkpoints):
    checkpoints.set("me@example.com", "999")
    assert checkpoints.set("me@example.com", "1000") is True
    assert checkpoints.get("me@example.com") == "1000"


def test_init_db_creates_tables(session_factory):
    assert {"sync_checkpoints", "processed_messages"} <= set(inspect(engine).get_table_names())
