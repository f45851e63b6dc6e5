"""
test_ledger.py - Idempotency ledger tests.

Covers first-claim-wins semantics, TTL, release, purge of expired claims,
and propagation of storage errors other than the duplicate conflict.
"""

from datetime import datetime, timedelta
from unittest.mock import MagicMock

import pytest
from sqlalchemy.exc import OperationalError

from app.models import ProcessedMessage
from app.services.ledger import IdempotencyLedger

T0 = datetime(2024, 3, 1, 12, 0)


class TestClaim:
    def test_first_claim_wins(self, ledger):
        assert ledger.claim("msg_123") is True

    def test_second_claim_is_duplicate(self, ledger):
        ledger.claim("msg_123")
        assert ledger.claim("msg_123") is False
        assert ledger.claim("msg_123") is False

    def test_independent_ledgers_share_state(self, session_factory):
        """Two invocations with their own ledger objects still see one claim."""
        first = IdempotencyLedger(session_factory)
        second = IdempotencyLedger(session_factory)
        assert second.claim("msg_1") is True
        assert first.claim("msg_1") is False

    def test_different_ids_are_independent(self, ledger):
        assert ledger.claim("a") is True
        assert ledger.claim("b") is True

    def test_record_outlives_redelivery_window(self, session_factory):
        ledger = IdempotencyLedger(session_factory, ttl_days=1, clock=lambda: T0)
        ledger.claim("msg_ttl")
        with session_factory() as db:
            record = db.get(ProcessedMessage, "msg_ttl")
        assert record.first_seen_at == T0
        assert record.expires_at - record.first_seen_at >= timedelta(days=7)

    def test_other_storage_errors_propagate(self):
        session = MagicMock()
        session.__enter__.return_value = session
        session.commit.side_effect = OperationalError("INSERT", {}, Exception("db down"))
        ledger = IdempotencyLedger(lambda: session)
        with pytest.raises(OperationalError):
            ledger.claim("msg_123")


class TestReleaseAndPurge:
    def test_release_allows_reclaim(self, ledger):
        ledger.claim("msg_1")
        ledger.release("msg_1")
        assert ledger.claim("msg_1") is True

    def test_purge_removes_only_expired(self, session_factory):
        clock = {"now": T0}
        ledger = IdempotencyLedger(session_factory, ttl_days=7, clock=lambda: clock["now"])
        ledger.claim("old")
        clock["now"] = T0 + timedelta(days=5)
        ledger.claim("recent")

        removed = ledger.purge_expired(T0 + timedelta(days=8))

        assert removed == 1
        assert ledger.claim("old") is True
        assert ledger.claim("recent") is False
