"""Translation of domain exceptions into HTTP responses.

Every error body has the same shape: ``{"detail": ..., "code": ...}``.
Each module declares a ``{ExceptionClass: status}`` table; the most
specific class in the exception's MRO wins.
"""

from __future__ import annotations

from typing import Dict, Type

from rest_framework import status
from rest_framework.response import Response

from modules.core.exceptions import (
    CollaboratorTimeout,
    StorageNotConfigured,
    StorageUnavailable,
)

CORE_ERROR_STATUS: Dict[Type[Exception], int] = {
    StorageNotConfigured: status.HTTP_503_SERVICE_UNAVAILABLE,
    StorageUnavailable: status.HTTP_502_BAD_GATEWAY,
    CollaboratorTimeout: status.HTTP_502_BAD_GATEWAY,
}


def error_body(detail: str, code: str) -> Dict[str, str]:
    return {"detail": detail, "code": code}


def error_response(exc: Exception, status_map: Dict[Type[Exception], int]) -> Response:
    """Build the response for a domain exception listed in *status_map*.

    Raises the exception again when nothing in its MRO is mapped, so that
    unexpected failures still surface as 500s.
    """
    table = {**CORE_ERROR_STATUS, **status_map}
    for klass in type(exc).__mro__:
        if klass in table:
            code = getattr(exc, "code", "error")
            return Response(error_body(str(exc), code), status=table[klass])
    raise exc
