"""
Fee value objects -- outputs of the fee engine.

Both breakdowns are computed on demand and never persisted as a source of
truth.  Amounts are whole rupees (rounded once at output); the savings
percentage carries two decimal places.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Any

from homestay_kernel.domain.values import Category


@dataclass(frozen=True)
class FeeBreakdown:
    category: Category
    base_fee: Decimal
    validity_years: int
    total_before_discount: Decimal
    validity_discount: Decimal
    female_owner_discount: Decimal
    sub_division_discount: Decimal
    total_fee: Decimal
    savings_amount: Decimal
    savings_percentage: Decimal

    @property
    def total_discount(self) -> Decimal:
        return self.validity_discount + self.female_owner_discount + self.sub_division_discount

    def to_dict(self) -> dict[str, Any]:
        return {
            "category": self.category.value,
            "base_fee": str(self.base_fee),
            "validity_years": self.validity_years,
            "total_before_discount": str(self.total_before_discount),
            "validity_discount": str(self.validity_discount),
            "female_owner_discount": str(self.female_owner_discount),
            "sub_division_discount": str(self.sub_division_discount),
            "total_fee": str(self.total_fee),
            "savings_amount": str(self.savings_amount),
            "savings_percentage": str(self.savings_percentage),
        }


@dataclass(frozen=True)
class UpgradeFeeBreakdown:
    """Fee charged for a category upgrade: the difference of two full quotes."""

    previous: FeeBreakdown
    new: FeeBreakdown
    upgrade_fee: Decimal

    @property
    def previous_category(self) -> Category:
        return self.previous.category

    @property
    def new_category(self) -> Category:
        return self.new.category

    def to_dict(self) -> dict[str, Any]:
        return {
            "previous": self.previous.to_dict(),
            "new": self.new.to_dict(),
            "upgrade_fee": str(self.upgrade_fee),
        }
