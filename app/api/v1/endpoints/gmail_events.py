"""
Gmail Push Notification Webhook

This endpoint receives real-time notifications from Google Cloud Pub/Sub
whenever Gmail detects changes in the mailbox.

Pipeline:
1. Receive push notification with historyId
2. Fetch new emails using Gmail History API (incremental sync)
3. Classify each new email against the transaction rules
4. Delete/patch calendar reminders or archive bills to Drive
"""

import logging

from fastapi import APIRouter, Depends, Request
from starlette.concurrency import run_in_threadpool

from app.context import ServiceContext, get_context
from app.services.notification_handler import NotificationHandler

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/gmail", tags=["Gmail Push"])


def get_notification_handler(ctx: ServiceContext = Depends(get_context)) -> NotificationHandler:
    return NotificationHandler.from_context(ctx)


@router.post("/events")
async def gmail_events(request: Request, handler: NotificationHandler = Depends(get_notification_handler)):
    """
    Webhook endpoint for Gmail push notifications via Pub/Sub.

    Always answers 200: a malformed payload will never get better on
    redelivery, and a failed sync leaves the checkpoint in place so the
    next notification retries the same history range.
    """
    try:
        body = await request.json()
    except ValueError:
        logger.warning("⚠️ Push body is not JSON, ignoring.")
        return {"status": "ignored", "reason": "invalid json"}

    # Pub/Sub wraps the notification in a 'message' object
    message = body.get("message") if isinstance(body, dict) else None
    if not isinstance(message, dict) or not message.get("data"):
        logger.warning("⚠️ No message data found.")
        return {"status": "ignored", "reason": "no message data"}

    try:
        result = await run_in_threadpool(handler.handle, message["data"])
    except Exception as e:
        logger.exception("❌ Error processing Gmail Pub/Sub message")
        return {"status": "error", "reason": str(e)}

    return result.to_dict()
