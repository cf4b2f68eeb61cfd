"""Tax calculation extension point.

Orders are currently tax free; ``OrderService`` takes any
``TaxCalculator`` so a VAT rule can be plugged in without touching the
ledger.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Sequence


class TaxCalculator(ABC):
    @abstractmethod
    def calculate(self, subtotal: Decimal, lines: Sequence[dict]) -> Decimal:
        """Return the tax owed on *subtotal* (``lines`` are the priced items)."""


class NoTaxCalculator(TaxCalculator):
    def calculate(self, subtotal: Decimal, lines: Sequence[dict]) -> Decimal:
        return Decimal("0.00")
