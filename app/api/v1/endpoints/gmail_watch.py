"""
Gmail Watch Management

Endpoints to register and manage Gmail push notification watches.
"""

import datetime
import logging

from fastapi import APIRouter, Depends, HTTPException

from app.context import ServiceContext, get_context
from app.services.checkpoint_store import CheckpointStore
from app.services.errors import RemoteApiError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/gmail", tags=["Gmail Watch"])


@router.post("/watch/start")
def start_gmail_watch(ctx: ServiceContext = Depends(get_context)):
    """
    Register Gmail push notifications (watch).

    Prerequisites:
    1. Pub/Sub topic created (PUBSUB_TOPIC)
    2. Gmail publisher permission granted
    3. Push subscription created with your webhook URL
    4. GCP_PROJECT_ID set in .env

    The watch expires in ~7 days and must be renewed. When the mailbox has
    no checkpoint yet, the returned historyId becomes its baseline, stored
    under the same address Gmail puts in its notifications.
    """
    project_id = ctx.settings.gcp_project_id
    if not project_id:
        raise HTTPException(
            status_code=500,
            detail="GCP_PROJECT_ID not configured in .env file"
        )

    topic_name = f"projects/{project_id}/topics/{ctx.settings.pubsub_topic}"
    try:
        response = ctx.gmail.watch(topic_name)
        mailbox_key = ctx.gmail.get_email_address()
    except RemoteApiError as e:
        raise HTTPException(
            status_code=502,
            detail=f"Failed to register Gmail watch: {e}"
        )

    history_id = str(response.get("historyId", ""))
    if not history_id.isdigit():
        raise HTTPException(
            status_code=502,
            detail=f"Gmail watch returned no usable historyId: {response.get('historyId')!r}"
        )

    expiration = response.get("expiration")

    checkpoints = CheckpointStore(ctx.session_factory)
    seeded = checkpoints.get(mailbox_key) is None
    if seeded:
        checkpoints.set(mailbox_key, history_id)
        logger.info(f"📝 Seeded checkpoint for {mailbox_key} → {history_id}")

    expiration_date = None
    if expiration:
        expiration_date = datetime.datetime.fromtimestamp(
            int(expiration) / 1000, tz=datetime.timezone.utc
        ).isoformat()

    return {
        "status": "success",
        "message": "Gmail watch registered successfully",
        "emailAddress": mailbox_key,
        "historyId": history_id,
        "expiration": expiration,
        "expiration_date": expiration_date,
        "checkpoint_seeded": seeded,
    }


@router.post("/watch/stop")
def stop_gmail_watch(ctx: ServiceContext = Depends(get_context)):
    """Stop Gmail push notifications."""
    try:
        ctx.gmail.stop()
    except RemoteApiError as e:
        raise HTTPException(
            status_code=502,
            detail=f"Failed to stop Gmail watch: {e}"
        )

    return {
        "status": "success",
        "message": "Gmail watch stopped successfully"
    }
