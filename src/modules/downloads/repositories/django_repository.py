"""Django ORM implementation of the download token repository.

``consume`` is the only writer of ``download_count``: a single
``UPDATE ... WHERE download_count < max_downloads AND expires_at >= now``,
so concurrent redemptions can never push a token over its quota.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

import structlog
from django.core.exceptions import ValidationError
from django.db import transaction
from django.db.models import F

from modules.core.models import OutboxEvent
from modules.downloads.constants import OUTBOX_TOPIC, TOKEN_PATTERN
from modules.downloads.events import EntitlementsIssued
from modules.downloads.models import DownloadToken
from modules.downloads.repositories.interfaces import IDownloadTokenRepository

logger = structlog.get_logger(__name__)


class DownloadTokenDjangoRepository(IDownloadTokenRepository):
    def get_by_id(self, id: str) -> Optional[DownloadToken]:
        try:
            return DownloadToken.objects.select_related("order", "product").filter(id=id).first()
        except (ValueError, ValidationError):
            return None

    def list(self, filters: Optional[Dict[str, Any]] = None) -> List[DownloadToken]:
        queryset = DownloadToken.objects.select_related("product")
        if filters:
            queryset = queryset.filter(**filters)
        return list(queryset)

    def list_for_order(self, order_id: str) -> List[DownloadToken]:
        return self.list({"order_id": order_id})

    def get_by_token(self, token: str) -> Optional[DownloadToken]:
        if not token or not TOKEN_PATTERN.match(token):
            return None
        return DownloadToken.objects.select_related("order", "product").filter(token=token).first()

    @transaction.atomic
    def save(self, entity: DownloadToken) -> DownloadToken:
        entity.save()
        return entity

    @transaction.atomic
    def create_many(
        self, order_id: str, specs: Sequence[Dict[str, Any]]
    ) -> List[DownloadToken]:
        tokens = [
            DownloadToken.objects.create(
                order_id=order_id,
                product_id=spec["product_id"],
                max_downloads=spec["max_downloads"],
                expires_at=spec["expires_at"],
            )
            for spec in specs
        ]
        logger.info("download_tokens.created", order_id=str(order_id), count=len(tokens))
        return tokens

    def consume(self, id: str, now: datetime) -> bool:
        updated = DownloadToken.objects.filter(
            pk=id,
            download_count__lt=F("max_downloads"),
            expires_at__gte=now,
        ).update(
            download_count=F("download_count") + 1,
            last_downloaded_at=now,
            updated_at=now,
        )
        return updated == 1

    def record_issued(self, event: EntitlementsIssued) -> None:
        OutboxEvent.record(event, topic=OUTBOX_TOPIC)
