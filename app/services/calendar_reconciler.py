"""
Calendar reconciler.

Finds the bill reminders a human pre-created in a named calendar and
deletes or relabels them once the bill has been paid. Events are never
created here.
"""

import logging
from datetime import datetime
from typing import Callable, Optional, Tuple
from zoneinfo import ZoneInfo

from app.services.calendar_service import CalendarApi
from app.services.classifier import DeleteEvents, PatchEvents

logger = logging.getLogger(__name__)


def month_window(now: datetime, month_offset: int = 0) -> Tuple[datetime, datetime]:
    """
    First instant of the month `month_offset` months after `now`, and the
    first instant of the month after that (exclusive end).
    """
    month_index = now.year * 12 + (now.month - 1) + month_offset
    start = now.replace(
        year=month_index // 12, month=month_index % 12 + 1, day=1,
        hour=0, minute=0, second=0, microsecond=0,
    )
    month_index += 1
    end = start.replace(year=month_index // 12, month=month_index % 12 + 1)
    return start, end


def occurrence_date(event: dict) -> str:
    """
    Scheduled date of an event occurrence.

    For an instance of a recurring series the original scheduled time wins
    over the (possibly moved) start.
    """
    for key in ("originalStartTime", "start"):
        when = event.get(key) or {}
        value = when.get("date") or when.get("dateTime")
        if value:
            return value
    return "unknown date"


class CalendarReconciler:
    """Applies DeleteEvents / PatchEvents effects to a named calendar."""

    def __init__(self, calendar: CalendarApi, timezone: str = "UTC",
                 clock: Optional[Callable[[], datetime]] = None):
        self._calendar = calendar
        self._tz = ZoneInfo(timezone)
        self._clock = clock or (lambda: datetime.now(self._tz))

    def find_calendar_id(self, calendar_name: str) -> Optional[str]:
        for cal in self._calendar.list_calendars():
            if cal.get("summary") == calendar_name:
                return cal["id"]
        return None

    def apply(self, effect, calendar_name: str) -> bool:
        """
        Delete or relabel every reminder matching the effect's title prefix
        in the effect's month window.

        Returns:
            True if at least one event was changed, False if the calendar
            or any matching event is absent.
        """
        if not isinstance(effect, (DeleteEvents, PatchEvents)):
            raise TypeError(f"Not a calendar effect: {effect!r}")

        calendar_id = self.find_calendar_id(calendar_name)
        if not calendar_id:
            logger.warning(f"No calendar named \"{calendar_name}\".")
            return False

        start, end = month_window(self._clock().astimezone(self._tz), effect.month_offset)
        logger.info(f"🔍 Checking \"{effect.title_prefix}\" reminders between {start.date()} and {end.date()}")

        events = self._calendar.list_events(calendar_id, start.isoformat(), end.isoformat())
        matching = [e for e in events if (e.get("summary") or "").startswith(effect.title_prefix)]
        if not matching:
            logger.info(f"No \"{effect.title_prefix}\" reminders in window.")
            return False

        for event in matching:
            if isinstance(effect, DeleteEvents):
                logger.info(f"🗑 Deleting \"{event['summary']}\" on {occurrence_date(event)}")
                self._calendar.delete_event(calendar_id, event["id"])
            else:
                new_title = effect.render_title()
                logger.info(f"✏️ Updating \"{event['summary']}\" → \"{new_title}\"")
                self._calendar.patch_event(calendar_id, event["id"], new_title)

        return True
