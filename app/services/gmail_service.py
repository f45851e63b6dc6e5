import base64
import functools
from typing import Optional, Protocol

from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from app.services.errors import RemoteApiError

SCOPES = [
    "https://www.googleapis.com/auth/gmail.readonly",
    "https://www.googleapis.com/auth/gmail.modify",
    "https://www.googleapis.com/auth/calendar",
    "https://www.googleapis.com/auth/drive",
]

TOKEN_URI = "https://oauth2.googleapis.com/token"


def remote_call(func):
    """Translate googleapiclient HttpError into RemoteApiError."""
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except HttpError as e:
            raise RemoteApiError(e.resp.status, str(e)) from e
    return wrapper


def get_credentials(client_info: dict) -> Credentials:
    """
    Build OAuth credentials from a stored refresh token.

    The refresh token is obtained out of band; here it is only exchanged
    for an access token.

    Args:
        client_info: Dict with 'client_id', 'client_secret' and 'refresh_token'
    """
    creds = Credentials(
        token=None,
        refresh_token=client_info["refresh_token"],
        token_uri=TOKEN_URI,
        client_id=client_info["client_id"],
        client_secret=client_info["client_secret"],
        scopes=SCOPES,
    )
    creds.refresh(Request())
    return creds


def get_gmail_service(creds: Credentials):
    """Creates and returns an authenticated Gmail API service instance."""
    return build("gmail", "v1", credentials=creds, cache_discovery=False)


class MailboxApi(Protocol):
    """Capabilities the sync pipeline needs from the mailbox."""

    def list_history(self, start_history_id: str, page_token: Optional[str] = None) -> dict: ...

    def get_current_history_id(self) -> str: ...

    def get_email_address(self) -> str: ...

    def get_message(self, message_id: str) -> dict: ...

    def get_attachment(self, message_id: str, attachment_id: str) -> bytes: ...

    def mark_read(self, message_id: str) -> None: ...

    def list_recent_messages(self, limit: int = 10) -> list: ...

    def watch(self, topic_name: str, label_ids: Optional[list] = None) -> dict: ...

    def stop(self) -> None: ...


class GmailMailbox:
    """MailboxApi backed by the Gmail v1 API for the authenticated user."""

    def __init__(self, service, user_id: str = "me"):
        self._service = service
        self._user_id = user_id

    @remote_call
    def list_history(self, start_history_id: str, page_token: Optional[str] = None) -> dict:
        """
        Fetch one page of mailbox history since a historyId.

        Returns the raw response: {'history': [...], 'nextPageToken': ...,
        'historyId': ...}. The 'history' key is absent when nothing changed.
        """
        params = {
            "userId": self._user_id,
            "startHistoryId": start_history_id,
            "historyTypes": ["messageAdded"],
        }
        if page_token:
            params["pageToken"] = page_token
        return self._service.users().history().list(**params).execute()

    @remote_call
    def get_current_history_id(self) -> str:
        profile = self._service.users().getProfile(userId=self._user_id).execute()
        return str(profile["historyId"])

    @remote_call
    def get_email_address(self) -> str:
        """Address Gmail puts in push notifications for this mailbox."""
        profile = self._service.users().getProfile(userId=self._user_id).execute()
        return profile["emailAddress"]

    @remote_call
    def get_message(self, message_id: str) -> dict:
        """Fetch full email message including the MIME part tree."""
        return self._service.users().messages().get(
            userId=self._user_id,
            id=message_id,
            format="full"
        ).execute()

    @remote_call
    def get_attachment(self, message_id: str, attachment_id: str) -> bytes:
        attachment = self._service.users().messages().attachments().get(
            userId=self._user_id,
            messageId=message_id,
            id=attachment_id
        ).execute()
        return base64.urlsafe_b64decode(attachment["data"])

    @remote_call
    def mark_read(self, message_id: str) -> None:
        self._service.users().messages().modify(
            userId=self._user_id,
            id=message_id,
            body={"removeLabelIds": ["UNREAD"]}
        ).execute()

    @remote_call
    def list_recent_messages(self, limit: int = 10) -> list:
        """Return From/Subject metadata for the most recent messages."""
        results = self._service.users().messages().list(
            userId=self._user_id,
            maxResults=limit
        ).execute()

        messages = []
        for meta in results.get("messages", []):
            detail = self._service.users().messages().get(
                userId=self._user_id,
                id=meta["id"],
                format="metadata",
                metadataHeaders=["Subject", "From"]
            ).execute()
            headers = {h["name"]: h["value"] for h in detail.get("payload", {}).get("headers", [])}
            messages.append({
                "id": meta["id"],
                "from": headers.get("From", "<no from>"),
                "subject": headers.get("Subject", "<no subject>"),
            })
        return messages

    @remote_call
    def watch(self, topic_name: str, label_ids: Optional[list] = None) -> dict:
        """
        Register Gmail push notifications via Cloud Pub/Sub.

        Watch expires after ~7 days and must be renewed.

        Returns:
            Dictionary with 'historyId' (baseline) and 'expiration' (timestamp in ms)
        """
        request_body = {
            "topicName": topic_name,
            "labelIds": label_ids or ["INBOX"]
        }
        return self._service.users().watch(
            userId=self._user_id,
            body=request_body
        ).execute()

    @remote_call
    def stop(self) -> None:
        self._service.users().stop(userId=self._user_id).execute()
