"""Download token repository interface."""

from __future__ import annotations

from abc import abstractmethod
from datetime import datetime
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Sequence

from modules.core.repositories.interfaces import IRepository

if TYPE_CHECKING:
    from modules.downloads.events import EntitlementsIssued
    from modules.downloads.models import DownloadToken


class IDownloadTokenRepository(IRepository["DownloadToken"]):
    @abstractmethod
    def list_for_order(self, order_id: str) -> List[DownloadToken]:
        """Return the order's tokens in issue order."""

    @abstractmethod
    def create_many(
        self, order_id: str, specs: Sequence[Dict[str, Any]]
    ) -> List[DownloadToken]:
        """Mint one token per spec (``product_id``, ``max_downloads``, ``expires_at``)."""

    @abstractmethod
    def get_by_token(self, token: str) -> Optional[DownloadToken]:
        """Look a token up by its bearer string, with order and product loaded."""

    @abstractmethod
    def consume(self, id: str, now: datetime) -> bool:
        """Count one download if the token is still within quota and unexpired.

        Returns ``False`` (and changes nothing) otherwise.
        """

    @abstractmethod
    def record_issued(self, event: EntitlementsIssued) -> None:
        """Write the issuance event to the outbox."""
