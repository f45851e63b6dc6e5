"""
SyncCheckpoint model for per-mailbox incremental sync state.

Stores the last Gmail historyId that was fully processed for each mailbox.
"""

from sqlalchemy import Column, Integer, String, DateTime
from sqlalchemy.sql import func
from app.database import Base


class SyncCheckpoint(Base):
    """
    One row per mailbox, advanced (never moved back) after every successful batch.

    Persists across server restarts, unlike in-memory variables.
    """
    __tablename__ = "sync_checkpoints"

    id = Column(Integer, primary_key=True)
    mailbox_key = Column(String(255), unique=True, nullable=False, index=True)
    history_id = Column(String(64), nullable=False)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    def __repr__(self):
        return f"<SyncCheckpoint(mailbox={self.mailbox_key}, history_id={self.history_id})>"
