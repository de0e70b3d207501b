"""
Rules -- Frozen rule-set value objects consumed by the engines.

Responsibility:
    Typed, immutable containers for the tariff and eligibility rules of the
    homestay scheme: category bands, the base fee table, discount rates,
    room/bed limits and document requirements.  ``homestay_config`` builds
    them from YAML; engines and services only ever see these objects.

Architecture position:
    Kernel > Domain -- pure value objects, zero I/O.

Invariants enforced:
    - Every (category, location type) pair has a base fee.
    - Discount rates are fractions in [0, 1].
    - Category bands are ordered: gold minimum <= diamond threshold.

Failure modes:
    - ValueError at construction on an incomplete fee table or bad bands.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal

from homestay_kernel.domain.values import ApplicationKind, Category, LocationType


@dataclass(frozen=True)
class CategoryBands:
    """Nightly-rate bands.

    silver below ``gold_min_rate``; gold from ``gold_min_rate`` up to and
    including ``diamond_above_rate``; diamond above it.
    """

    gold_min_rate: Decimal = Decimal("3000")
    diamond_above_rate: Decimal = Decimal("10000")

    def __post_init__(self) -> None:
        if self.gold_min_rate > self.diamond_above_rate:
            raise ValueError(
                f"gold_min_rate {self.gold_min_rate} exceeds "
                f"diamond_above_rate {self.diamond_above_rate}"
            )


@dataclass(frozen=True)
class FeeSchedule:
    """Base annual registration fee per category and location type."""

    base_fees: dict[tuple[Category, LocationType], Decimal]

    def __post_init__(self) -> None:
        missing = [
            f"{c.value}/{loc.value}"
            for c in Category
            for loc in LocationType
            if (c, loc) not in self.base_fees
        ]
        if missing:
            raise ValueError(f"Fee schedule missing base fees for: {', '.join(missing)}")

    def base_fee(self, category: Category, location_type: LocationType) -> Decimal:
        return self.base_fees[(category, location_type)]


@dataclass(frozen=True)
class DiscountRates:
    three_year_validity: Decimal = Decimal("0.10")
    female_owner: Decimal = Decimal("0.05")
    sub_division: Decimal = Decimal("0.50")
    discounted_sub_divisions: frozenset[str] = frozenset({"pangi"})

    def __post_init__(self) -> None:
        for name in ("three_year_validity", "female_owner", "sub_division"):
            rate = getattr(self, name)
            if not Decimal("0") <= rate <= Decimal("1"):
                raise ValueError(f"Discount rate {name}={rate} outside [0, 1]")

    def qualifies_for_sub_division(self, sub_division: str | None) -> bool:
        if not sub_division:
            return False
        return sub_division.strip().lower() in self.discounted_sub_divisions


@dataclass(frozen=True)
class RoomLimits:
    max_rooms: int = 6
    max_beds: int = 12
    max_beds_per_room: int = 6
    min_rooms: int = 1


@dataclass(frozen=True)
class DocumentRequirements:
    """Documents that must be on file before (re)submission."""

    by_kind: dict[ApplicationKind, tuple[str, ...]] = field(default_factory=dict)
    premium_documents: tuple[str, ...] = (
        "commercial_electricity_bill",
        "commercial_water_bill",
    )
    ownership_transfer_document: str = "ownership_transfer_deed"

    def required_for(self, kind: ApplicationKind) -> tuple[str, ...]:
        return self.by_kind.get(kind, ())


@dataclass(frozen=True)
class RegistrationRules:
    """Everything the engines and the workflow executor need to decide."""

    bands: CategoryBands
    fees: FeeSchedule
    discounts: DiscountRates
    room_limits: dict[Category, RoomLimits]
    documents: DocumentRequirements
    validity_options: tuple[int, ...] = (1, 3)
    inspection_exempt_kinds: frozenset[ApplicationKind] = frozenset()
    gstin_pattern: str = r"^[0-9A-Z]{15}$"

    def limits_for(self, category: Category | None) -> RoomLimits:
        if category is None:
            category = Category.SILVER
        return self.room_limits.get(category, RoomLimits())
