"""Download API views.

Both endpoints are public: the token in the path is the only credential.
Responses map each gate failure to its own status so the client can tell
an expired link (410) from a used-up one (403, ``download_limit_exceeded``)
from an unknown one (404).
"""

from __future__ import annotations

from rest_framework import status
from rest_framework.permissions import AllowAny
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.views import APIView

from modules.core.container import get_collaborators
from modules.core.exceptions import CollaboratorTimeout, StorageUnavailable
from modules.core.responses import error_response
from modules.downloads.exceptions import (
    DownloadError,
    DownloadLimitExceeded,
    InvalidFileIndex,
    OrderNotPaid,
    TokenExpired,
    TokenNotFound,
)
from modules.downloads.repositories.django_repository import DownloadTokenDjangoRepository
from modules.downloads.serializers import RetrieveFileSerializer
from modules.downloads.services import DownloadGate
from modules.products.repositories.django_repository import ProductDjangoRepository

DOWNLOAD_ERROR_STATUS = {
    TokenNotFound: status.HTTP_404_NOT_FOUND,
    TokenExpired: status.HTTP_410_GONE,
    DownloadLimitExceeded: status.HTTP_403_FORBIDDEN,
    InvalidFileIndex: status.HTTP_400_BAD_REQUEST,
    OrderNotPaid: status.HTTP_409_CONFLICT,
    DownloadError: status.HTTP_400_BAD_REQUEST,
}

_GATE_ERRORS = (DownloadError, StorageUnavailable, CollaboratorTimeout)


class _DownloadView(APIView):
    permission_classes = [AllowAny]
    authentication_classes = []
    throttle_scope = "downloads"

    def get_gate(self) -> DownloadGate:
        return DownloadGate(
            token_repository=DownloadTokenDjangoRepository(),
            product_repository=ProductDjangoRepository(),
            storage=get_collaborators().storage,
        )


class ResolveTokenView(_DownloadView):
    def get(self, request: Request, token: str) -> Response:
        """GET /api/v1/downloads/{token}/"""
        try:
            details = self.get_gate().resolve_token(token)
        except _GATE_ERRORS as exc:
            return error_response(exc, DOWNLOAD_ERROR_STATUS)
        return Response(details.model_dump(mode="json"))


class RetrieveFileView(_DownloadView):
    def post(self, request: Request, token: str) -> Response:
        """POST /api/v1/downloads/{token}/file/  ``{"file_index": N}``"""
        serializer = RetrieveFileSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            link = self.get_gate().retrieve_file(token, serializer.validated_data["file_index"])
        except _GATE_ERRORS as exc:
            return error_response(exc, DOWNLOAD_ERROR_STATUS)
        return Response(link.model_dump(mode="json"))
