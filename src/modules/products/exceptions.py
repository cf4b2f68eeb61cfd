"""Product domain exceptions.

Raised by the Service Layer when business rules are violated.
The API layer (Views) catches these and translates them into
appropriate HTTP responses.
"""

from __future__ import annotations


class ProductError(Exception):
    """Base class for catalog errors."""

    code = "product_error"


class ProductNotFound(ProductError):
    """The requested product does not exist or has been soft-deleted."""

    code = "product_not_found"


class NoFilesUploaded(ProductError):
    """An upload request carried no files."""

    code = "no_files"


class FileUploadFailed(ProductError):
    """Every file of an upload request failed to reach storage."""

    code = "upload_failed"
