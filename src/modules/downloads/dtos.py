"""Download gate DTOs (Pydantic v2, immutable).

``TokenDetailsDTO`` is what a buyer sees when opening their download
link; ``DownloadLinkDTO`` carries one signed URL.  Neither contains
storage keys.
"""

from __future__ import annotations

from datetime import datetime
from typing import List
from uuid import UUID

from pydantic import BaseModel, ConfigDict


class TokenFileDTO(BaseModel):
    model_config = ConfigDict(frozen=True)

    index: int
    name: str
    size_bytes: int
    mime_type: str = ""


class TokenDetailsDTO(BaseModel):
    model_config = ConfigDict(frozen=True)

    order_number: str
    customer_email: str
    product_id: UUID
    product_name: str
    download_count: int
    max_downloads: int
    remaining_downloads: int
    expires_at: datetime
    state: str
    files: List[TokenFileDTO]


class DownloadLinkDTO(BaseModel):
    model_config = ConfigDict(frozen=True)

    url: str
    filename: str
    size_bytes: int
    mime_type: str = ""
    download_count: int
    remaining_downloads: int
    url_expires_in_seconds: int
