"""Errors raised by external collaborators (storage, payments, mail).

Shared by every module that talks to the outside world so views can map
them to 502/503 consistently.
"""

from __future__ import annotations


class StorageUnavailable(Exception):
    """The object storage call failed."""

    code = "storage_unavailable"


class StorageNotConfigured(StorageUnavailable):
    """No object storage adapter is configured."""

    code = "storage_not_configured"


class CollaboratorTimeout(Exception):
    """An external collaborator did not answer in time. Safe to retry."""

    code = "collaborator_timeout"
