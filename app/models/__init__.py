"""
SQLAlchemy models for the transaction automation service.

This package contains:
- SyncCheckpoint: Last fully-processed Gmail historyId per mailbox
- ProcessedMessage: Idempotency ledger of claimed Gmail message IDs
"""

from app.models.sync_state import SyncCheckpoint
from app.models.processed_message import ProcessedMessage

__all__ = ["SyncCheckpoint", "ProcessedMessage"]
