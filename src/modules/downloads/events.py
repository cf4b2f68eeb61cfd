"""Domain events for the Downloads bounded context."""

from __future__ import annotations

from dataclasses import dataclass, field

from shared.domain.events import DomainEvent


@dataclass(frozen=True)
class EntitlementsIssued(DomainEvent):
    """Raised once per order when its download tokens are minted.

    Carries token primary keys only; token strings never leave the
    ``download_tokens`` table.
    """

    order_number: str = ""
    token_ids: tuple = field(default_factory=tuple)
    product_ids: tuple = field(default_factory=tuple)
