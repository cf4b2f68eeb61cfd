"""Object storage contract used by the catalog and the download gate."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import timedelta
from typing import Iterable, Optional


@dataclass(frozen=True)
class StoredFile:
    """Metadata of an uploaded object.  ``storage_key`` is opaque to callers."""

    storage_key: str
    original_name: str
    size_bytes: int
    mime_type: str


class IObjectStorage(ABC):
    @abstractmethod
    def put_file(self, data: bytes, name: str, mime_type: str) -> StoredFile:
        """Upload *data* and return its handle.

        Raises:
            StorageUnavailable: the upload failed.
            CollaboratorTimeout: the provider did not answer in time.
        """

    @abstractmethod
    def get_signed_url(
        self, storage_key: str, ttl: timedelta, filename: Optional[str] = None
    ) -> str:
        """Return a short-lived read URL for one object.

        ``filename`` (optional) is suggested to the browser via
        ``Content-Disposition``.
        """

    @abstractmethod
    def delete_files(self, storage_keys: Iterable[str]) -> None:
        """Delete objects; missing objects are ignored."""
