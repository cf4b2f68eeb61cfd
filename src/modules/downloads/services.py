"""Entitlement issuer and download gate (Use Cases).

``EntitlementService`` turns a paid order into one download token per
purchased product that has files.  It runs inside the payment
confirmation transaction and holds the order row lock while it reads and
mints, so duplicate confirmations converge on a single token set.

``DownloadGate`` redeems tokens:

- ``resolve_token`` answers "what does this link give me?"
- ``retrieve_file`` signs a short-lived URL for one file and only then
  counts the download, through a conditional UPDATE that re-checks quota
  and expiry.  A storage failure therefore never costs the buyer a
  download, and two racing requests cannot both take the last one.

Token strings are never logged; token primary keys are.
"""

from __future__ import annotations

from datetime import timedelta
from typing import TYPE_CHECKING, Callable, Dict, List, Optional
from uuid import UUID

import structlog
from django.conf import settings
from django.db import transaction
from django.utils import timezone

from modules.core.exceptions import StorageNotConfigured
from modules.downloads.dtos import DownloadLinkDTO, TokenDetailsDTO, TokenFileDTO
from modules.downloads.events import EntitlementsIssued
from modules.downloads.exceptions import (
    DownloadLimitExceeded,
    InvalidFileIndex,
    OrderNotPaid,
    TokenExpired,
    TokenNotFound,
)
from modules.orders.exceptions import OrderNotFound

if TYPE_CHECKING:
    from datetime import datetime

    from modules.downloads.models import DownloadToken
    from modules.downloads.repositories.interfaces import IDownloadTokenRepository
    from modules.orders.models import Order
    from modules.orders.repositories.interfaces import IOrderRepository
    from modules.products.models import Product
    from modules.products.repositories.interfaces import IProductRepository
    from modules.storage.interfaces import IObjectStorage

logger = structlog.get_logger(__name__)


class EntitlementService:
    """Mints download tokens for paid orders.

    Receives repositories via constructor injection (DIP).
    """

    def __init__(
        self,
        order_repository: IOrderRepository,
        token_repository: IDownloadTokenRepository,
        product_repository: IProductRepository,
    ) -> None:
        self._order_repo = order_repository
        self._token_repo = token_repository
        self._product_repo = product_repository

    @transaction.atomic
    def issue_entitlements(self, order_id: UUID | str) -> Order:
        """Issue one token per distinct purchased product with files.

        Idempotent: if the order already has tokens they are returned
        unchanged.  Products without files, or deleted since purchase,
        are skipped.

        Raises:
            OrderNotFound: order does not exist.
            OrderNotPaid: order payment status is not ``completed``.
        """
        order = self._order_repo.get_for_update(str(order_id))
        if not order:
            raise OrderNotFound(f"Order {order_id} not found.")

        log = logger.bind(order_id=str(order.id), order_number=order.order_number)

        if not order.is_paid:
            log.warning("entitlement.order_not_paid", payment_status=order.payment_status)
            raise OrderNotPaid(f"Order {order.order_number} is not paid.")

        existing = self._token_repo.list_for_order(str(order.id))
        if existing:
            log.info("entitlement.already_issued", token_count=len(existing))
            return self._order_repo.get_by_id(str(order.id))

        product_ids: List[str] = []
        for item in order.items.all():
            if str(item.product_id) not in product_ids:
                product_ids.append(str(item.product_id))

        products = self._product_repo.get_with_file_counts(product_ids)
        now = timezone.now()
        specs = []
        for product_id in product_ids:
            product = products.get(product_id)
            if product is None:
                log.warning("entitlement.product_unavailable", product_id=product_id)
                continue
            if product.file_count == 0:
                log.info("entitlement.skipped_no_files", product_id=product_id)
                continue
            specs.append(self._token_spec(product, now))

        tokens = self._token_repo.create_many(str(order.id), specs)
        if tokens:
            self._token_repo.record_issued(
                EntitlementsIssued(
                    aggregate_id=order.id,
                    order_number=order.order_number,
                    token_ids=tuple(str(t.id) for t in tokens),
                    product_ids=tuple(str(t.product_id) for t in tokens),
                )
            )
        log.info("entitlement.issued", token_count=len(tokens))
        return self._order_repo.get_by_id(str(order.id))

    @staticmethod
    def _token_spec(product: Product, now: datetime) -> Dict:
        limit = product.download_limit or settings.DEFAULT_DOWNLOAD_LIMIT
        hours = product.download_expiry_hours or settings.DEFAULT_DOWNLOAD_EXPIRY_HOURS
        return {
            "product_id": product.id,
            "max_downloads": limit,
            "expires_at": now + timedelta(hours=hours),
        }


class DownloadGate:
    """Redeems bearer download tokens against the object store."""

    def __init__(
        self,
        token_repository: IDownloadTokenRepository,
        product_repository: IProductRepository,
        storage: Optional[IObjectStorage],
        signed_url_ttl: Optional[timedelta] = None,
        clock: Callable[[], datetime] = timezone.now,
    ) -> None:
        self._token_repo = token_repository
        self._product_repo = product_repository
        self._storage = storage
        self._ttl = signed_url_ttl or timedelta(minutes=settings.SIGNED_URL_TTL_MINUTES)
        self._clock = clock

    def _lookup(self, token: str) -> DownloadToken:
        record = self._token_repo.get_by_token(token)
        if record is None:
            logger.info("download.token_not_found")
            raise TokenNotFound("Download link not found.")
        if record.is_expired(self._clock()):
            logger.info("download.token_expired", token_id=str(record.id))
            raise TokenExpired("This download link has expired.")
        return record

    def resolve_token(self, token: str) -> TokenDetailsDTO:
        """Describe what *token* grants.

        Raises:
            TokenNotFound: no token with this string.
            TokenExpired: the token is past its expiry, whatever its quota.
        """
        record = self._lookup(token)
        files = self._product_repo.list_files(str(record.product_id))
        logger.info("download.token_resolved", token_id=str(record.id))
        return TokenDetailsDTO(
            order_number=record.order.order_number,
            customer_email=record.order.customer_email,
            product_id=record.product_id,
            product_name=record.product.name,
            download_count=record.download_count,
            max_downloads=record.max_downloads,
            remaining_downloads=record.remaining_downloads,
            expires_at=record.expires_at,
            state=record.state(self._clock()),
            files=[
                TokenFileDTO(
                    index=index,
                    name=f.original_name,
                    size_bytes=f.size_bytes,
                    mime_type=f.mime_type,
                )
                for index, f in enumerate(files)
            ],
        )

    def retrieve_file(self, token: str, file_index: int) -> DownloadLinkDTO:
        """Sign a URL for one file of the token's product and count it.

        Raises:
            TokenNotFound: no token with this string.
            TokenExpired: the token is past its expiry.
            DownloadLimitExceeded: the quota is used up, including when a
                concurrent request took the last download first.
            InvalidFileIndex: *file_index* is outside the product's files.
            StorageNotConfigured: no object storage adapter.
            StorageUnavailable / CollaboratorTimeout: signing failed; the
                download count is unchanged.
        """
        record = self._lookup(token)
        log = logger.bind(token_id=str(record.id), file_index=file_index)

        if record.download_count >= record.max_downloads:
            log.info("download.limit_exceeded", download_count=record.download_count)
            raise DownloadLimitExceeded("Download limit reached for this link.")

        files = self._product_repo.list_files(str(record.product_id))
        if file_index < 0 or file_index >= len(files):
            log.info("download.invalid_file_index", file_count=len(files))
            raise InvalidFileIndex(f"File index {file_index} is out of range.")
        product_file = files[file_index]

        if self._storage is None:
            raise StorageNotConfigured("File storage is not configured.")

        url = self._storage.get_signed_url(
            product_file.storage_key, self._ttl, filename=product_file.original_name
        )

        if not self._token_repo.consume(str(record.id), self._clock()):
            current = self._token_repo.get_by_id(str(record.id))
            if current is not None and current.is_expired(self._clock()):
                log.info("download.lost_race", reason="expired")
                raise TokenExpired("This download link has expired.")
            log.info("download.lost_race", reason="limit")
            raise DownloadLimitExceeded("Download limit reached for this link.")

        current = self._token_repo.get_by_id(str(record.id))
        download_count = current.download_count if current else record.download_count + 1
        log.info(
            "download.file_served",
            download_count=download_count,
            max_downloads=record.max_downloads,
        )
        return DownloadLinkDTO(
            url=url,
            filename=product_file.original_name,
            size_bytes=product_file.size_bytes,
            mime_type=product_file.mime_type,
            download_count=download_count,
            remaining_downloads=max(record.max_downloads - download_count, 0),
            url_expires_in_seconds=int(self._ttl.total_seconds()),
        )
