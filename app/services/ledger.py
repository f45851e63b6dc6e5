"""
Idempotency ledger for Gmail messages.

Pub/Sub delivers at-least-once and two notifications can cover the same
history range, so every message is claimed before any side effect runs.
A claim is a create-only INSERT keyed by message ID: the first caller
wins, everybody else gets an IntegrityError and skips the message.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from sqlalchemy import delete
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.config import MIN_LEDGER_TTL_DAYS
from app.models.processed_message import ProcessedMessage

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class IdempotencyLedger:
    """Records which Gmail message IDs have already been handled."""

    def __init__(
        self,
        session_factory: Callable[[], Session],
        ttl_days: int = MIN_LEDGER_TTL_DAYS,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self._session_factory = session_factory
        # Never shorter than the transport's redelivery window
        self._ttl = timedelta(days=max(ttl_days, MIN_LEDGER_TTL_DAYS))
        self._clock = clock

    def claim(self, message_id: str) -> bool:
        """
        Try to claim a message for processing.

        Returns:
            True if this call created the record (message is new),
            False if the message was already claimed.

        Any storage error other than the conflict propagates.
        """
        now = self._clock()
        record = ProcessedMessage(
            message_id=message_id,
            first_seen_at=now,
            expires_at=now + self._ttl,
        )

        with self._session_factory() as db:
            db.add(record)
            try:
                db.commit()
            except IntegrityError:
                # Another invocation already claimed it
                db.rollback()
                return False
        return True

    def release(self, message_id: str) -> None:
        """Drop a claim so a failed message can be retried by a later notification."""
        with self._session_factory() as db:
            db.execute(delete(ProcessedMessage).where(ProcessedMessage.message_id == message_id))
            db.commit()
        logger.info(f"↩️ Released claim on message {message_id}")

    def purge_expired(self, now: Optional[datetime] = None) -> int:
        """Delete claims past their expiry. Returns the number of rows removed."""
        cutoff = now or self._clock()
        with self._session_factory() as db:
            result = db.execute(delete(ProcessedMessage).where(ProcessedMessage.expires_at < cutoff))
            db.commit()
        removed = result.rowcount or 0
        if removed:
            logger.info(f"🧹 Purged {removed} expired ledger entries")
        return removed
