"""
Google Drive adapter used by the archival dispatcher.
"""

import io
from typing import Optional, Protocol

from googleapiclient.discovery import build
from googleapiclient.http import MediaIoBaseUpload

from app.services.gmail_service import remote_call

FOLDER_MIME_TYPE = "application/vnd.google-apps.folder"


def get_drive_service(creds):
    """Creates and returns an authenticated Drive API service instance."""
    return build("drive", "v3", credentials=creds, cache_discovery=False)


def escape_query_value(value: str) -> str:
    """Escape a literal for the Drive query language."""
    return value.replace("\\", "\\\\").replace("'", "\\'")


class StorageApi(Protocol):
    def find(self, name: str, parent_id: str, mime_type: Optional[str] = None) -> list: ...

    def create_folder(self, name: str, parent_id: str) -> str: ...

    def create_file(self, name: str, parent_id: str, content: bytes, mime_type: str) -> str: ...

    def update_file(self, file_id: str, content: bytes, mime_type: str) -> str: ...


class GoogleDrive:
    """StorageApi backed by the Drive v3 API."""

    def __init__(self, service):
        self._service = service

    @remote_call
    def find(self, name: str, parent_id: str, mime_type: Optional[str] = None) -> list:
        """
        Return non-trashed items named exactly `name` directly under `parent_id`.

        Without `mime_type` only non-folder files match.
        """
        query = (
            f"name = '{escape_query_value(name)}' "
            f"and '{escape_query_value(parent_id)}' in parents "
            f"and trashed = false"
        )
        if mime_type:
            query += f" and mimeType = '{mime_type}'"
        else:
            query += f" and mimeType != '{FOLDER_MIME_TYPE}'"

        result = self._service.files().list(
            q=query,
            fields="files(id, name)",
            spaces="drive"
        ).execute()
        return result.get("files", [])

    @remote_call
    def create_folder(self, name: str, parent_id: str) -> str:
        folder = self._service.files().create(
            body={"name": name, "mimeType": FOLDER_MIME_TYPE, "parents": [parent_id]},
            fields="id"
        ).execute()
        return folder["id"]

    @remote_call
    def create_file(self, name: str, parent_id: str, content: bytes, mime_type: str) -> str:
        media = MediaIoBaseUpload(io.BytesIO(content), mimetype=mime_type, resumable=False)
        created = self._service.files().create(
            body={"name": name, "parents": [parent_id]},
            media_body=media,
            fields="id"
        ).execute()
        return created["id"]

    @remote_call
    def update_file(self, file_id: str, content: bytes, mime_type: str) -> str:
        media = MediaIoBaseUpload(io.BytesIO(content), mimetype=mime_type, resumable=False)
        updated = self._service.files().update(
            fileId=file_id,
            media_body=media,
            fields="id"
        ).execute()
        return updated["id"]
