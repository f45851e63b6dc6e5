"""
Gmail message parsing utilities.

This module provides functions to:
- Read headers (From, Subject, Date) from a full Gmail message
- Walk the MIME part tree depth-first to find the first matching part
- Decode the body to plain text (text/plain preferred, HTML converted)
"""

import base64
import re
from dataclasses import dataclass
from datetime import date
from email.utils import parsedate_to_datetime
from typing import Callable, Iterator, Optional

from bs4 import BeautifulSoup


@dataclass(frozen=True)
class ParsedMessage:
    """Read-only view of a Gmail message used by the classifier and extractors."""
    id: str
    sender: str
    subject: str
    date: Optional[date]
    payload: dict
    body_text: str


def iter_parts(payload: dict) -> Iterator[dict]:
    """Yield the part tree in depth-first pre-order (root part first)."""
    stack = [payload]
    while stack:
        part = stack.pop()
        yield part
        # Reverse so the first child is visited first
        stack.extend(reversed(part.get("parts") or []))


def find_first_part(payload: dict, predicate: Callable[[dict], bool]) -> Optional[dict]:
    """Return the first part (depth-first) for which predicate is true."""
    for part in iter_parts(payload or {}):
        if predicate(part):
            return part
    return None


def decode_body_data(data: str) -> bytes:
    """Decode Gmail's base64url body data, tolerating missing padding."""
    return base64.urlsafe_b64decode(data + "=" * (-len(data) % 4))


def html_to_text(raw_html: str) -> str:
    """
    Convert HTML email content to plain text with normalized whitespace.
    """
    if not raw_html:
        return ""

    soup = BeautifulSoup(raw_html, "html.parser")

    # Remove script, style, and head tags
    for tag in soup(["script", "style", "head", "meta", "link"]):
        tag.decompose()

    text = soup.get_text(separator=" ")
    return re.sub(r"\s+", " ", text).strip()


def _has_inline_data(mime_type: str) -> Callable[[dict], bool]:
    return lambda part: part.get("mimeType") == mime_type and bool(part.get("body", {}).get("data"))


def extract_body_text(payload: dict) -> str:
    """Body as text: first inline text/plain part, else first text/html part."""
    part = find_first_part(payload, _has_inline_data("text/plain"))
    if part:
        return decode_body_data(part["body"]["data"]).decode("utf-8", errors="ignore")

    part = find_first_part(payload, _has_inline_data("text/html"))
    if part:
        return html_to_text(decode_body_data(part["body"]["data"]).decode("utf-8", errors="ignore"))

    return ""


def get_header(payload: dict, name: str) -> str:
    for header in payload.get("headers", []):
        if header.get("name", "").lower() == name.lower():
            return header.get("value", "")
    return ""


def parse_header_date(value: str) -> Optional[date]:
    if not value:
        return None
    try:
        return parsedate_to_datetime(value).date()
    except (TypeError, ValueError):
        return None


def parse_message(raw: dict) -> ParsedMessage:
    """
    Build a ParsedMessage from a Gmail API message resource (format=full).

    Args:
        raw: Message dict with 'id' and 'payload'

    Returns:
        ParsedMessage with sender, subject, date and decoded body text
    """
    payload = raw.get("payload") or {}
    return ParsedMessage(
        id=raw.get("id", ""),
        sender=get_header(payload, "From"),
        subject=get_header(payload, "Subject"),
        date=parse_header_date(get_header(payload, "Date")),
        payload=payload,
        body_text=extract_body_text(payload),
    )
