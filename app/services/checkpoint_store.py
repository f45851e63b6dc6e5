"""
Checkpoint store: last fully-processed Gmail historyId per mailbox.

Checkpoints only move forward. The write is a single conditional UPDATE
comparing historyIds numerically, so an older invocation finishing late
cannot roll back a newer one.
"""

from typing import Callable, Optional

from sqlalchemy import BigInteger, cast
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.models.sync_state import SyncCheckpoint


class CheckpointStore:
    """Read and advance the sync checkpoint of each mailbox."""

    def __init__(self, session_factory: Callable[[], Session]):
        self._session_factory = session_factory

    def get(self, mailbox_key: str) -> Optional[str]:
        """Return the stored historyId for the mailbox, or None on first run."""
        with self._session_factory() as db:
            checkpoint = db.query(SyncCheckpoint).filter(
                SyncCheckpoint.mailbox_key == mailbox_key
            ).first()
            return checkpoint.history_id if checkpoint else None

    @staticmethod
    def _advance(db: Session, mailbox_key: str, history_id: str) -> int:
        return db.query(SyncCheckpoint).filter(
            SyncCheckpoint.mailbox_key == mailbox_key,
            cast(SyncCheckpoint.history_id, BigInteger) < int(history_id),
        ).update({SyncCheckpoint.history_id: history_id}, synchronize_session=False)

    def set(self, mailbox_key: str, history_id: str) -> bool:
        """
        Create the checkpoint, or advance it if `history_id` is newer.

        Returns False when the stored checkpoint is already at or past
        `history_id` and was left untouched.
        """
        history_id = str(history_id)
        with self._session_factory() as db:
            if self._advance(db, mailbox_key, history_id):
                db.commit()
                return True

            exists = db.query(SyncCheckpoint.id).filter(
                SyncCheckpoint.mailbox_key == mailbox_key
            ).first()
            if exists:
                db.rollback()
                return False

            db.add(SyncCheckpoint(mailbox_key=mailbox_key, history_id=history_id))
            try:
                db.commit()
                return True
            except IntegrityError:
                # Race condition - another request created it
                db.rollback()
                advanced = self._advance(db, mailbox_key, history_id)
                db.commit()
                return bool(advanced)
