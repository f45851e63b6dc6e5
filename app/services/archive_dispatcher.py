"""
Archival dispatcher: upload-or-overwrite an artifact into a nested Drive folder.

Both folder resolution and file upload are find-then-create, so calling
archive() again with the same artifact (a re-sent bill, a retried
notification) overwrites instead of duplicating.
"""

import logging
from dataclasses import dataclass

from app.services.drive_service import FOLDER_MIME_TYPE, StorageApi

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Artifact:
    content: bytes
    file_name: str
    mime_type: str = "application/pdf"


class ArchivalDispatcher:

    def __init__(self, storage: StorageApi, root_folder_id: str = "root"):
        self._storage = storage
        self._root_folder_id = root_folder_id

    def resolve_folder(self, folder_path: str) -> str:
        """Resolve (creating missing levels) a '/'-delimited folder path. Returns the leaf id."""
        parent_id = self._root_folder_id
        for name in (segment.strip() for segment in folder_path.split("/")):
            if not name:
                continue
            found = self._storage.find(name, parent_id, mime_type=FOLDER_MIME_TYPE)
            if found:
                parent_id = found[0]["id"]
            else:
                parent_id = self._storage.create_folder(name, parent_id)
                logger.info(f"📁 Created folder \"{name}\" ({parent_id})")
        return parent_id

    def archive(self, artifact: Artifact, folder_path: str) -> str:
        """
        Upload the artifact into folder_path, overwriting a same-named file.

        Returns:
            The Drive file id (unchanged when an existing file was overwritten)
        """
        folder_id = self.resolve_folder(folder_path)

        existing = self._storage.find(artifact.file_name, folder_id)
        if existing:
            file_id = self._storage.update_file(existing[0]["id"], artifact.content, artifact.mime_type)
            logger.info(f"♻️ Overwrote {folder_path}/{artifact.file_name} ({file_id})")
            return file_id

        file_id = self._storage.create_file(artifact.file_name, folder_id, artifact.content, artifact.mime_type)
        logger.info(f"✅ Uploaded {folder_path}/{artifact.file_name} ({file_id})")
        return file_id
