"""
ProcessedMessage model - the idempotency ledger.

The primary key on message_id is what makes a claim conditional:
a second INSERT for the same message fails with an IntegrityError.
"""

from sqlalchemy import Column, String, DateTime
from app.database import Base


class ProcessedMessage(Base):
    """A Gmail message that has been claimed for processing."""
    __tablename__ = "processed_messages"

    message_id = Column(String(64), primary_key=True)
    first_seen_at = Column(DateTime, nullable=False)
    expires_at = Column(DateTime, nullable=False, index=True)

    def __repr__(self):
        return f"<ProcessedMessage(id={self.message_id}, expires_at={self.expires_at})>"
