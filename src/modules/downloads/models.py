"""Download token (entitlement) model.

A token is a bearer credential: whoever holds the string may redeem it up
to ``max_downloads`` times until ``expires_at``.  Exhaustion and expiry are
evaluated at read time from the stored fields; nothing sweeps old tokens.

Invariants:
- One token per ``(order, product)``, backed by a unique constraint.
- ``download_count`` only moves through ``DownloadTokenDjangoRepository.consume``,
  a single conditional UPDATE that never pushes it past ``max_downloads``.
"""

from __future__ import annotations

import secrets
from datetime import datetime
from typing import Optional

from django.db import models
from django.utils import timezone

from modules.core.models import BaseModel
from modules.downloads.constants import TOKEN_BYTES, TOKEN_LENGTH, TokenState


def generate_token() -> str:
    """Return 256 bits of randomness as 64 lower-case hex characters."""
    return secrets.token_hex(TOKEN_BYTES)


class DownloadToken(BaseModel):
    order = models.ForeignKey(
        "orders.Order",
        on_delete=models.CASCADE,
        related_name="downloads",
    )
    product = models.ForeignKey(
        "products.Product",
        on_delete=models.PROTECT,
        related_name="download_tokens",
    )
    token = models.CharField(
        max_length=TOKEN_LENGTH,
        unique=True,
        default=generate_token,
        editable=False,
    )
    download_count = models.PositiveIntegerField(default=0)
    max_downloads = models.PositiveIntegerField()
    expires_at = models.DateTimeField()
    last_downloaded_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        db_table = "download_tokens"
        ordering = ["created_at", "id"]
        constraints = [
            models.UniqueConstraint(
                fields=["order", "product"],
                name="download_tokens_order_product_uniq",
            ),
        ]

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        return (now or timezone.now()) > self.expires_at

    @property
    def remaining_downloads(self) -> int:
        return max(self.max_downloads - self.download_count, 0)

    def state(self, now: Optional[datetime] = None) -> TokenState:
        if self.is_expired(now):
            return TokenState.EXPIRED
        if self.download_count >= self.max_downloads:
            return TokenState.EXHAUSTED
        if self.download_count == 0:
            return TokenState.VALID_UNUSED
        return TokenState.VALID_PARTIALLY_USED

    def __str__(self) -> str:
        # Never render the token string itself.
        return f"DownloadToken {self.id} ({self.download_count}/{self.max_downloads})"
