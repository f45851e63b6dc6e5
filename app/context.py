"""
Service context: every remote client and store, built once at startup.

Components receive their collaborators from here instead of creating
Google API clients at import time, so each one can be tested with
in-memory doubles.
"""

from dataclasses import dataclass
from typing import Callable, Optional, Sequence

from fastapi import Request
from sqlalchemy.orm import Session

from app.config import Settings
from app.services.artifacts import BillPortal
from app.services.calendar_service import CalendarApi, GoogleCalendar, get_calendar_service
from app.services.classifier import DEFAULT_RULES, TransactionRule
from app.services.drive_service import GoogleDrive, StorageApi, get_drive_service
from app.services.gmail_service import GmailMailbox, MailboxApi, get_credentials, get_gmail_service


@dataclass
class ServiceContext:
    settings: Settings
    gmail: MailboxApi
    calendar: CalendarApi
    drive: StorageApi
    session_factory: Callable[[], Session]
    rules: Sequence[TransactionRule] = DEFAULT_RULES
    bill_portal: Optional[BillPortal] = None


def build_context(settings: Settings, session_factory: Callable[[], Session],
                  bill_portal: Optional[BillPortal] = None) -> ServiceContext:
    """Authenticate once and build the Gmail, Calendar and Drive adapters."""
    creds = get_credentials(settings.oauth_client_info())
    return ServiceContext(
        settings=settings,
        gmail=GmailMailbox(get_gmail_service(creds)),
        calendar=GoogleCalendar(get_calendar_service(creds)),
        drive=GoogleDrive(get_drive_service(creds)),
        session_factory=session_factory,
        bill_portal=bill_portal,
    )


def get_context(request: Request) -> ServiceContext:
    """
    FastAPI dependency returning the context built at startup.

    Usage:
        @router.post("/events")
        def handler(ctx: ServiceContext = Depends(get_context)):
            ...
    """
    return request.app.state.context
