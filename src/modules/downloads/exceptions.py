"""Entitlement and download gate exceptions.

Each condition gets its own class so the client can tell "expired" from
"limit exceeded" from "never existed".
"""

from __future__ import annotations


class DownloadError(Exception):
    """Base class for entitlement and download errors."""

    code = "download_error"


class OrderNotPaid(DownloadError):
    """Entitlements were requested for an order that is not paid."""

    code = "order_not_paid"


class TokenNotFound(DownloadError):
    code = "token_not_found"


class TokenExpired(DownloadError):
    code = "token_expired"


class DownloadLimitExceeded(DownloadError):
    code = "download_limit_exceeded"


class InvalidFileIndex(DownloadError):
    code = "invalid_file_index"
