"""
Debug endpoints for checking Gmail and Calendar connectivity.
"""

import logging
from datetime import datetime, timedelta, timezone

from fastapi import APIRouter, Depends, Query

from app.context import ServiceContext, get_context
from app.services.calendar_reconciler import CalendarReconciler, occurrence_date
from app.services.errors import RemoteApiError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/debug", tags=["Debug"])


@router.get("/connectivity")
def connectivity_check(limit: int = Query(10, ge=1, le=50), ctx: ServiceContext = Depends(get_context)):
    """
    Smoke test of the Gmail and Calendar credentials.

    Lists the most recent messages (From / Subject) and the events of the
    configured calendar starting 30 days ago. Failures are reported per
    service instead of failing the request.
    """
    gmail = {"ok": True, "messages": []}
    try:
        gmail["messages"] = ctx.gmail.list_recent_messages(limit)
    except RemoteApiError as e:
        logger.error(f"❌ Failed to list Gmail messages: {e}")
        gmail = {"ok": False, "error": str(e)}

    calendar = {"ok": True, "name": ctx.settings.calendar_name, "events": []}
    try:
        calendar_id = CalendarReconciler(ctx.calendar).find_calendar_id(ctx.settings.calendar_name)
        if calendar_id is None:
            calendar = {"ok": False, "name": ctx.settings.calendar_name, "error": "calendar not found"}
        else:
            now = datetime.now(timezone.utc)
            events = ctx.calendar.list_events(
                calendar_id,
                (now - timedelta(days=30)).isoformat(),
                (now + timedelta(days=365)).isoformat(),
                max_results=limit,
            )
            calendar["events"] = [
                {"start": occurrence_date(e), "summary": e.get("summary", "<no summary>")}
                for e in events[:limit]
            ]
    except RemoteApiError as e:
        logger.error(f"❌ Failed to list calendar events: {e}")
        calendar = {"ok": False, "name": ctx.settings.calendar_name, "error": str(e)}

    return {"gmail": gmail, "calendar": calendar}
