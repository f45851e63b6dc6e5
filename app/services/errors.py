"""
Error taxonomy shared by the remote adapters and the sync pipeline.

Adapters translate googleapiclient HttpError into RemoteApiError so the
rest of the service (and the in-memory test doubles) never depend on
the Google client library's exception types.
"""

from typing import Optional


class RemoteApiError(Exception):
    """A Gmail / Calendar / Drive call failed with an HTTP status."""

    def __init__(self, status_code: Optional[int], message: str = ""):
        super().__init__(f"{status_code}: {message}" if message else str(status_code))
        self.status_code = status_code
        self.message = message

    @property
    def is_not_found(self) -> bool:
        return self.status_code in (404, 410)


class BaselineLost(Exception):
    """The stored history position is no longer valid against the remote log."""

    def __init__(self, start_history_id: str, cause: Optional[RemoteApiError] = None):
        super().__init__(f"historyId {start_history_id} is no longer valid")
        self.start_history_id = start_history_id
        self.cause = cause
