"""
Google Calendar adapter.

Only the four calls the reconciler needs: list calendars, list event
occurrences in a window, delete an event, and patch an event's title.
"""

from typing import Optional, Protocol

from googleapiclient.discovery import build

from app.services.gmail_service import remote_call


def get_calendar_service(creds):
    """Creates and returns an authenticated Calendar API service instance."""
    return build("calendar", "v3", credentials=creds, cache_discovery=False)


class CalendarApi(Protocol):
    def list_calendars(self) -> list: ...

    def list_events(self, calendar_id: str, time_min: str, time_max: str,
                    max_results: Optional[int] = None) -> list: ...

    def delete_event(self, calendar_id: str, event_id: str) -> None: ...

    def patch_event(self, calendar_id: str, event_id: str, summary: str) -> dict: ...


class GoogleCalendar:
    """CalendarApi backed by the Calendar v3 API."""

    def __init__(self, service):
        self._service = service

    @remote_call
    def list_calendars(self) -> list:
        calendars = []
        page_token = None
        while True:
            result = self._service.calendarList().list(pageToken=page_token).execute()
            calendars.extend(result.get("items", []))
            page_token = result.get("nextPageToken")
            if not page_token:
                return calendars

    @remote_call
    def list_events(self, calendar_id: str, time_min: str, time_max: str,
                    max_results: Optional[int] = None) -> list:
        """
        List event occurrences in [time_min, time_max).

        singleEvents=True expands recurring series into one entry per
        occurrence, each carrying its originalStartTime.
        """
        events = []
        page_token = None
        while True:
            params = {
                "calendarId": calendar_id,
                "timeMin": time_min,
                "timeMax": time_max,
                "singleEvents": True,
                "orderBy": "startTime",
                "pageToken": page_token,
            }
            if max_results:
                params["maxResults"] = max_results
            result = self._service.events().list(**params).execute()
            events.extend(result.get("items", []))
            page_token = result.get("nextPageToken")
            if not page_token or (max_results and len(events) >= max_results):
                return events

    @remote_call
    def delete_event(self, calendar_id: str, event_id: str) -> None:
        self._service.events().delete(calendarId=calendar_id, eventId=event_id).execute()

    @remote_call
    def patch_event(self, calendar_id: str, event_id: str, summary: str) -> dict:
        return self._service.events().patch(
            calendarId=calendar_id,
            eventId=event_id,
            body={"summary": summary}
        ).execute()
