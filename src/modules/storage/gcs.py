"""Google Cloud Storage implementation of ``IObjectStorage``.

Objects are written under ``products/<stem>-<unix-ms><ext>`` and read back
through V4 signed GET URLs.  The bucket is private: nothing is ever made
public, signed URLs are the only read path.
"""

from __future__ import annotations

import os
import time
from datetime import timedelta
from typing import Any, Iterable, Optional

import structlog
from google.api_core import exceptions as gcs_exceptions
from google.auth import exceptions as auth_exceptions
from google.cloud import storage

from modules.core.exceptions import CollaboratorTimeout, StorageUnavailable
from modules.storage.interfaces import IObjectStorage, StoredFile

logger = structlog.get_logger(__name__)

OBJECT_PREFIX = "products"


def build_object_key(filename: str, now_ms: Optional[int] = None) -> str:
    """Derive a collision-resistant object key from the uploaded filename."""
    stem, ext = os.path.splitext(os.path.basename(filename))
    stamp = now_ms if now_ms is not None else int(time.time() * 1000)
    return f"{OBJECT_PREFIX}/{stem or 'file'}-{stamp}{ext}"


class GCSObjectStorage(IObjectStorage):
    def __init__(self, bucket: Any) -> None:
        self._bucket = bucket

    def put_file(self, data: bytes, name: str, mime_type: str) -> StoredFile:
        key = build_object_key(name)
        blob = self._bucket.blob(key)
        blob.metadata = {"originalName": name}
        try:
            blob.upload_from_string(data, content_type=mime_type)
        except gcs_exceptions.DeadlineExceeded as exc:
            raise CollaboratorTimeout(f"Upload of {name} timed out.") from exc
        except gcs_exceptions.GoogleAPIError as exc:
            logger.error("storage.upload_failed", key=key, error=str(exc))
            raise StorageUnavailable(f"Upload of {name} failed.") from exc

        logger.info("storage.uploaded", key=key, size=len(data))
        return StoredFile(
            storage_key=key,
            original_name=name,
            size_bytes=len(data),
            mime_type=mime_type,
        )

    def get_signed_url(
        self, storage_key: str, ttl: timedelta, filename: Optional[str] = None
    ) -> str:
        blob = self._bucket.blob(storage_key)
        disposition = f'attachment; filename="{filename}"' if filename else None
        try:
            return blob.generate_signed_url(
                version="v4",
                expiration=ttl,
                method="GET",
                response_disposition=disposition,
            )
        except gcs_exceptions.DeadlineExceeded as exc:
            raise CollaboratorTimeout("Signing request timed out.") from exc
        except (gcs_exceptions.GoogleAPIError, AttributeError, ValueError) as exc:
            # AttributeError: credentials without a private key cannot sign
            logger.error("storage.sign_failed", key=storage_key, error=str(exc))
            raise StorageUnavailable("Could not sign download URL.") from exc

    def delete_files(self, storage_keys: Iterable[str]) -> None:
        for key in storage_keys:
            try:
                self._bucket.blob(key).delete()
            except gcs_exceptions.NotFound:
                logger.info("storage.delete_missing", key=key)
                continue
            except gcs_exceptions.GoogleAPIError as exc:
                logger.error("storage.delete_failed", key=key, error=str(exc))
                raise StorageUnavailable(f"Could not delete {key}.") from exc
            logger.info("storage.deleted", key=key)


def build_gcs_storage(settings: Any) -> Optional[GCSObjectStorage]:
    """Return a configured adapter, or ``None`` when no bucket or credentials are set."""
    bucket_name = getattr(settings, "GCS_BUCKET_NAME", "")
    if not bucket_name:
        logger.warning("storage.not_configured")
        return None

    project = getattr(settings, "GCS_PROJECT_ID", "") or None
    credentials_file = getattr(settings, "GCS_CREDENTIALS_FILE", "")
    if credentials_file and os.path.exists(credentials_file):
        client = storage.Client.from_service_account_json(
            credentials_file, project=project
        )
    else:
        try:
            client = storage.Client(project=project)
        except auth_exceptions.DefaultCredentialsError as exc:
            logger.warning("storage.not_configured", bucket=bucket_name, error=str(exc))
            return None
    return GCSObjectStorage(client.bucket(bucket_name))
