"""
Artifact extraction for archive effects.

Sources:
- Sunrun: first PDF attachment of the email; bill date read from the PDF
- Bill portal (National Grid): current bill downloaded by an external client
"""

import logging
import re
from datetime import date
from typing import Callable, Dict, List, Optional, Protocol

import fitz  # PyMuPDF

from app.services.archive_dispatcher import Artifact
from app.services.classifier import ArtifactSource
from app.services.gmail_service import MailboxApi
from app.services.message_parser import ParsedMessage, decode_body_data, find_first_part

logger = logging.getLogger(__name__)

# "Billing Period: 10/01 - 10/31" or "Billing Period: Oct 15 - Nov 14"
BILLING_PERIOD_PATTERN = re.compile(
    r"Billing Period[:\s]+([A-Za-z]{3}\s+\d{1,2}|\d{1,2}/\d{1,2})\s*-\s*([A-Za-z]{3}\s+\d{1,2}|\d{1,2}/\d{1,2})",
    re.IGNORECASE,
)
# "Due Date: 11/16/2023"
DUE_DATE_PATTERN = re.compile(r"Due Date[:\s]+(\d{1,2})/(\d{1,2})/(\d{4})", re.IGNORECASE)

MONTHS = {
    "jan": 1, "feb": 2, "mar": 3, "apr": 4, "may": 5, "jun": 6,
    "jul": 7, "aug": 8, "sep": 9, "oct": 10, "nov": 11, "dec": 12,
}


class BillPortal(Protocol):
    """Scripted bill-portal session (login flow lives outside this service)."""

    def login(self) -> None: ...

    def get_bill_history(self) -> List[dict]: ...

    def get_current_bill(self) -> Artifact: ...


def _month_day(value: str):
    if "/" in value:
        month, day = value.split("/")
        return int(month), int(day)
    month_name, day = value.split()
    return MONTHS.get(month_name[:3].lower()), int(day)


def pdf_text(pdf_bytes: bytes) -> str:
    with fitz.open(stream=pdf_bytes, filetype="pdf") as doc:
        return "\n".join(page.get_text() for page in doc)


def billing_end_date(text: str) -> Optional[date]:
    """
    Billing-period end date from bill text.

    The statement only prints month/day for the period, so the year comes
    from the due date; a period ending in a later month than the due date
    (December period, January due) belongs to the previous year.
    """
    billing = BILLING_PERIOD_PATTERN.search(text)
    due = DUE_DATE_PATTERN.search(text)
    if not billing or not due:
        logger.warning("Could not find Billing Period or Due Date in PDF text")
        return None

    end_month, end_day = _month_day(billing.group(2))
    if not end_month:
        return None
    due_month, due_year = int(due.group(1)), int(due.group(3))

    year = due_year - 1 if end_month > due_month else due_year
    try:
        return date(year, end_month, end_day)
    except ValueError:
        return None


def extract_sunrun_bill(message: ParsedMessage, mailbox: MailboxApi,
                        today: Callable[[], date] = date.today) -> Optional[Artifact]:
    """Return the Sunrun bill PDF named by its billing date, or None without a PDF."""
    pdf_part = find_first_part(
        message.payload,
        lambda part: part.get("mimeType") == "application/pdf"
        and bool(part.get("body", {}).get("attachmentId") or part.get("body", {}).get("data")),
    )
    if not pdf_part:
        logger.error("❌ No PDF attachment found in Sunrun email")
        return None

    body = pdf_part["body"]
    if body.get("attachmentId"):
        content = mailbox.get_attachment(message.id, body["attachmentId"])
    else:
        content = decode_body_data(body["data"])

    bill_date = None
    try:
        bill_date = billing_end_date(pdf_text(content))
    except (RuntimeError, ValueError) as e:
        # PyMuPDF raises RuntimeError subclasses for unreadable documents
        logger.warning(f"⚠️ PDF date extraction failed: {e}")

    if bill_date:
        logger.info(f"📅 Extracted date from PDF: {bill_date}")
    else:
        logger.warning("⚠️ Falling back to email date for Sunrun bill")
        bill_date = message.date or today()

    return Artifact(content=content, file_name=f"Sunrun_Bill_{bill_date.isoformat()}.pdf")


def extract_portal_bill(portal: Optional[BillPortal]) -> Optional[Artifact]:
    if portal is None:
        logger.warning("⚠️ No bill portal client configured, skipping archive")
        return None
    portal.login()
    return portal.get_current_bill()


class ArtifactExtractor:
    """Resolves an ArtifactSource to the artifact for one message."""

    def __init__(self, mailbox: MailboxApi, bill_portal: Optional[BillPortal] = None):
        self._mailbox = mailbox
        self._bill_portal = bill_portal
        self._sources: Dict[ArtifactSource, Callable[[ParsedMessage], Optional[Artifact]]] = {
            ArtifactSource.SUNRUN_PDF_ATTACHMENT: lambda msg: extract_sunrun_bill(msg, self._mailbox),
            ArtifactSource.BILL_PORTAL: lambda msg: extract_portal_bill(self._bill_portal),
        }

    def extract(self, source: ArtifactSource, message: ParsedMessage) -> Optional[Artifact]:
        return self._sources[source](message)
