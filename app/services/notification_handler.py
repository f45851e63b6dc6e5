"""
Gmail push notification handler.

Orchestrates one notification end to end:
1. Decode the Pub/Sub payload (emailAddress, historyId)
2. Load the mailbox checkpoint
3. Drop stale / out-of-order notifications
4. Incremental sync via the History API (reset baseline if it was lost)
5. Per message: claim → fetch → classify → reconcile / archive → mark read
6. Advance the checkpoint when every message was handled
"""

import base64
import binascii
import json
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from app.services.archive_dispatcher import ArchivalDispatcher
from app.services.artifacts import ArtifactExtractor
from app.services.calendar_reconciler import CalendarReconciler
from app.services.checkpoint_store import CheckpointStore
from app.services.classifier import (
    ArchiveArtifact,
    DeleteEvents,
    PatchEvents,
    TransactionClassifier,
)
from app.services.errors import BaselineLost, RemoteApiError
from app.services.gmail_service import MailboxApi
from app.services.history_sync import HistorySynchronizer
from app.services.ledger import IdempotencyLedger
from app.services.message_parser import ParsedMessage, parse_message

logger = logging.getLogger(__name__)

DEFAULT_MAILBOX_KEY = "me"


class HandlerStatus(str, Enum):
    """Terminal state of one notification."""
    IGNORED = "ignored"              # Malformed or empty payload
    STALE = "stale"                  # Not newer than the checkpoint
    BASELINE_RESET = "baseline_reset"
    NO_CHANGES = "no_changes"
    PROCESSED = "processed"
    PARTIAL = "partial"              # Some messages failed, checkpoint kept


@dataclass(frozen=True)
class Notification:
    email_address: str
    history_id: str


@dataclass
class HandlerResult:
    status: HandlerStatus
    email_address: Optional[str] = None
    history_id: Optional[str] = None
    processed: List[str] = field(default_factory=list)
    applied: List[str] = field(default_factory=list)
    duplicates: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "status": self.status.value,
            "email": self.email_address,
            "historyId": self.history_id,
            "processed": len(self.processed),
            "applied": len(self.applied),
            "duplicates": len(self.duplicates),
            "skipped": len(self.skipped),
            "failed": len(self.failed),
        }


def decode_notification(data) -> Optional[Notification]:
    """
    Decode the base64 JSON Gmail notification.

    Returns None for anything malformed: empty data, bad base64, bad JSON,
    or a missing/non-numeric historyId.
    """
    if not data:
        return None
    try:
        raw = base64.b64decode(data, validate=False)
        payload = json.loads(raw.decode("utf-8"))
    except (binascii.Error, UnicodeDecodeError, ValueError):
        return None

    if not isinstance(payload, dict):
        return None

    history_id = str(payload.get("historyId") or "")
    if not history_id.isdigit():
        return None

    return Notification(
        email_address=payload.get("emailAddress") or DEFAULT_MAILBOX_KEY,
        history_id=history_id,
    )


def is_newer(position: str, checkpoint: str) -> bool:
    """historyIds are monotonically increasing integers serialized as strings."""
    return int(position) > int(checkpoint)


class NotificationHandler:

    def __init__(
        self,
        mailbox: MailboxApi,
        checkpoints: CheckpointStore,
        ledger: IdempotencyLedger,
        synchronizer: HistorySynchronizer,
        classifier: TransactionClassifier,
        reconciler: CalendarReconciler,
        dispatcher: ArchivalDispatcher,
        extractor: ArtifactExtractor,
        calendar_name: str,
    ):
        self.mailbox = mailbox
        self.checkpoints = checkpoints
        self.ledger = ledger
        self.synchronizer = synchronizer
        self.classifier = classifier
        self.reconciler = reconciler
        self.dispatcher = dispatcher
        self.extractor = extractor
        self.calendar_name = calendar_name

    @classmethod
    def from_context(cls, ctx) -> "NotificationHandler":
        """Wire a handler from a ServiceContext."""
        return cls(
            mailbox=ctx.gmail,
            checkpoints=CheckpointStore(ctx.session_factory),
            ledger=IdempotencyLedger(ctx.session_factory, ctx.settings.ledger_ttl_days),
            synchronizer=HistorySynchronizer(ctx.gmail),
            classifier=TransactionClassifier(ctx.rules),
            reconciler=CalendarReconciler(ctx.calendar, ctx.settings.timezone),
            dispatcher=ArchivalDispatcher(ctx.drive, ctx.settings.drive_root_folder),
            extractor=ArtifactExtractor(ctx.gmail, ctx.bill_portal),
            calendar_name=ctx.settings.calendar_name,
        )

    def handle(self, data) -> HandlerResult:
        """
        Handle one Pub/Sub message `data` field.

        Remote errors during sync (other than a lost baseline) propagate;
        the checkpoint is not advanced so the next notification retries.
        """
        notification = decode_notification(data)
        if notification is None:
            logger.warning("⚠️ Malformed or empty Gmail notification, dropping.")
            return HandlerResult(status=HandlerStatus.IGNORED)

        mailbox_key = notification.email_address
        new_history_id = notification.history_id
        logger.info(f"📩 Gmail notification: {mailbox_key} historyId={new_history_id}")

        result = HandlerResult(
            status=HandlerStatus.PROCESSED,
            email_address=mailbox_key,
            history_id=new_history_id,
        )

        last_history_id = self.checkpoints.get(mailbox_key)
        if last_history_id is not None and not is_newer(new_history_id, last_history_id):
            logger.info(f"⏭ Stale notification {new_history_id} (checkpoint {last_history_id}), dropping.")
            result.status = HandlerStatus.STALE
            return result

        start_history_id = last_history_id or new_history_id
        logger.info(f"🔍 Fetching Gmail history since {start_history_id}")

        try:
            sync = self.synchronizer.sync(start_history_id)
        except BaselineLost as e:
            reset_history_id = self.mailbox.get_current_history_id()
            self.checkpoints.set(mailbox_key, reset_history_id)
            logger.warning(f"⚠️ {e}. Baseline reset → {reset_history_id}")
            result.status = HandlerStatus.BASELINE_RESET
            result.history_id = reset_history_id
            return result

        if not sync.has_changes:
            result.status = HandlerStatus.NO_CHANGES

        for message_id in sync.message_ids:
            self._process_message(message_id, result)

        if result.failed:
            logger.error(
                f"❌ {len(result.failed)} message(s) failed; keeping checkpoint at {last_history_id}"
            )
            result.status = HandlerStatus.PARTIAL
            return result

        if self.checkpoints.set(mailbox_key, new_history_id):
            logger.info(f"✅ Updated checkpoint → {new_history_id}")
        else:
            logger.info(f"⏭ Checkpoint already past {new_history_id}, left unchanged.")
        return result

    def _process_message(self, message_id: str, result: HandlerResult) -> None:
        if not self.ledger.claim(message_id):
            logger.info(f"⏭ Message {message_id} already processed, skipping.")
            result.duplicates.append(message_id)
            return

        try:
            raw = self._fetch(message_id)
            if raw is None:
                result.skipped.append(message_id)
                return

            message = parse_message(raw)
            result.processed.append(message_id)

            if self._apply(message):
                self.mailbox.mark_read(message_id)
                result.applied.append(message_id)
        except Exception:
            # One bad message must not abort the rest of the batch
            self._fail(message_id, result)

    def _fetch(self, message_id: str) -> Optional[dict]:
        """Full message, or None when it was deleted before we got to it."""
        try:
            return self.mailbox.get_message(message_id)
        except RemoteApiError as e:
            if not e.is_not_found:
                raise
            logger.warning(f"Skipping missing message: {message_id}")
            return None

    def _fail(self, message_id: str, result: HandlerResult) -> None:
        logger.exception(f"❌ Error processing message {message_id}")
        # Effects are idempotent, so the next notification may retry it
        self.ledger.release(message_id)
        result.failed.append(message_id)

    def _apply(self, message: ParsedMessage) -> bool:
        effect = self.classifier.classify(message.sender, message.subject, message.body_text)
        if effect is None:
            return False

        if isinstance(effect, (DeleteEvents, PatchEvents)):
            return self.reconciler.apply(effect, self.calendar_name)

        if isinstance(effect, ArchiveArtifact):
            artifact = self.extractor.extract(effect.source, message)
            if artifact is None:
                return False
            self.dispatcher.archive(artifact, effect.folder_path)
            return True

        raise TypeError(f"Unhandled effect: {effect!r}")
