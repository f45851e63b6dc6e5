"""
Incremental Gmail sync using the History API.

Given the last processed historyId, pull every history record since then
and return the IDs of added messages in arrival order.
"""

import logging
from dataclasses import dataclass, field
from typing import List

from app.services.errors import BaselineLost, RemoteApiError
from app.services.gmail_service import MailboxApi

logger = logging.getLogger(__name__)

# Gmail answers 404 for a startHistoryId that is too old; 400 has been
# observed for malformed or otherwise rejected positions
INVALID_POSITION_STATUSES = (400, 404)


@dataclass
class SyncResult:
    message_ids: List[str] = field(default_factory=list)
    has_changes: bool = False


class HistorySynchronizer:
    """Flattens mailbox history pages into an ordered list of new message IDs."""

    def __init__(self, mailbox: MailboxApi):
        self._mailbox = mailbox

    def sync(self, start_history_id: str) -> SyncResult:
        """
        Collect messages added since `start_history_id`.

        Raises:
            BaselineLost: the start position is invalid or expired
            RemoteApiError: any other remote failure
        """
        result = SyncResult()
        seen = set()
        page_token = None

        while True:
            try:
                page = self._mailbox.list_history(start_history_id, page_token)
            except RemoteApiError as e:
                if e.status_code in INVALID_POSITION_STATUSES:
                    raise BaselineLost(start_history_id, e) from e
                raise

            for record in page.get("history") or []:
                result.has_changes = True
                for added in record.get("messagesAdded", []):
                    message_id = added.get("message", {}).get("id")
                    if message_id and message_id not in seen:
                        seen.add(message_id)
                        result.message_ids.append(message_id)

            page_token = page.get("nextPageToken")
            if not page_token:
                break

        logger.info(f"📬 Gmail history since {start_history_id}: {len(result.message_ids)} new messages")
        return result
