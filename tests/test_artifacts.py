"""
test_artifacts.py - Sunrun PDF extraction and bill-portal artifacts.

PDF fixtures are generated with PyMuPDF so the anchor patterns are read
back from real PDF text.
"""

from datetime import date
from unittest.mock import MagicMock

import fitz
import pytest

from app.services.archive_dispatcher import Artifact
from app.services.artifacts import (
    ArtifactExtractor,
    billing_end_date,
    extract_portal_bill,
    extract_sunrun_bill,
    pdf_text,
)
from app.services.classifier import ArtifactSource
from app.services.message_parser import parse_message

from tests.fakes import make_message


def make_pdf(*lines) -> bytes:
    doc = fitz.open()
    page = doc.new_page()
    for i, line in enumerate(lines):
        page.insert_text((72, 72 + 20 * i), line)
    data = doc.tobytes()
    doc.close()
    return data


def sunrun_message(date_header="Wed, 15 Nov 2023 10:00:00 -0500"):
    parts = [
        {"mimeType": "text/plain", "body": {"data": ""}},
        {"mimeType": "application/pdf", "filename": "sunrun_bill.pdf", "body": {"attachmentId": "att_123"}},
    ]
    return parse_message(make_message("msg_sunrun_123", "billing@sunrun.com", "Your Sunrun Bill is Ready",
                                      parts=parts, date=date_header))


class TestBillingEndDate:
    def test_numeric_period(self):
        text = "Billing Period: 10/01 - 10/31\nDue Date: 11/16/2023"
        assert billing_end_date(text) == date(2023, 10, 31)

    def test_month_name_period(self):
        text = "Billing Period: Oct 15 - Nov 14\nDue Date: 12/01/2023"
        assert billing_end_date(text) == date(2023, 11, 14)

    def test_december_period_due_in_january(self):
        text = "Billing Period: Dec 01 - Dec 31\nDue Date: 01/15/2024"
        assert billing_end_date(text) == date(2023, 12, 31)

    def test_missing_anchor(self):
        assert billing_end_date("Billing Period: 10/01 - 10/31") is None


def test_pdf_text_reads_generated_pdf():
    text = pdf_text(make_pdf("Billing Period: 10/01 - 10/31", "Due Date: 11/16/2023"))
    assert "Billing Period" in text
    assert "Due Date" in text


class TestSunrun:
    def test_names_file_by_billing_date(self, mailbox):
        pdf = make_pdf("Billing Period: 10/01 - 10/31", "Due Date: 11/16/2023")
        mailbox.attachments[("msg_sunrun_123", "att_123")] = pdf

        artifact = extract_sunrun_bill(sunrun_message(), mailbox)

        assert artifact.file_name == "Sunrun_Bill_2023-10-31.pdf"
        assert artifact.content == pdf
        assert artifact.mime_type == "application/pdf"

    def test_falls_back_to_email_date(self, mailbox):
        mailbox.attachments[("msg_sunrun_123", "att_123")] = make_pdf("Thanks for going solar")

        artifact = extract_sunrun_bill(sunrun_message(), mailbox)

        assert artifact.file_name == "Sunrun_Bill_2023-11-15.pdf"

    def test_unreadable_pdf_falls_back_to_today(self, mailbox):
        mailbox.attachments[("msg_sunrun_123", "att_123")] = b"not a pdf"

        artifact = extract_sunrun_bill(sunrun_message(date_header=None), mailbox, today=lambda: date(2024, 2, 3))

        assert artifact.file_name == "Sunrun_Bill_2024-02-03.pdf"

    def test_no_pdf_part(self, mailbox):
        message = parse_message(make_message("m1", "billing@sunrun.com", "Your Sunrun Bill", body="no pdf"))
        assert extract_sunrun_bill(message, mailbox) is None


class TestBillPortal:
    def test_without_portal(self):
        assert extract_portal_bill(None) is None

    def test_logs_in_then_downloads(self):
        portal = MagicMock()
        portal.get_current_bill.return_value = Artifact(b"ng", "NG_Bill_2024-03-01.pdf")

        artifact = extract_portal_bill(portal)

        portal.login.assert_called_once()
        assert artifact.file_name == "NG_Bill_2024-03-01.pdf"


def test_extractor_dispatches_by_source(mailbox):
    portal = MagicMock()
    portal.get_current_bill.return_value = Artifact(b"ng", "bill.pdf")
    extractor = ArtifactExtractor(mailbox, portal)

    assert extractor.extract(ArtifactSource.BILL_PORTAL, sunrun_message()).file_name == "bill.pdf"

    with pytest.raises(KeyError):
        extractor.extract("unknown", sunrun_message())
