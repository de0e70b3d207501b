"""
Registration Fee Engine.

Pure functions with deterministic behavior. No I/O.

Computes the payable registration fee from the base annual fee of the
property's category and location type, the certificate validity and the
owner's attributes.  Discounts are stacked additively as percentages of the
total before discount, never compounded:

    1. total_before_discount = base_fee x (3 if validity is 3 years else 1)
    2. validity_discount     = 10% of (1) when validity is 3 years
    3. female_owner_discount =  5% of (1) when the owner is female
    4. sub_division_discount = 50% of (1) for a discounted sub-division (Pangi)
    5. total_fee             = (1) - (2) - (3) - (4), floored at 0
    6. savings_amount        = (1) - (5); savings_percentage = (6)/(1) x 100

All arithmetic is exact Decimal.  Amounts are rounded to whole rupees
(ROUND_HALF_UP) once, at output; the savings percentage to two places.
Savings are taken from the rounded totals so that
``savings_amount + total_fee == total_before_discount`` holds exactly.

A category upgrade is charged the difference of two full quotes computed
with identical validity, gender and sub-division inputs.

Usage:
    from homestay_engines.fees import quote_fee

    breakdown = quote_fee(rooms, LocationType.GRAM_PANCHAYAT, 3, owner, rules=rules)
    breakdown.total_fee
"""

from __future__ import annotations

import time
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

from homestay_engines.category import classify_rooms
from homestay_engines.tracer import traced_engine
from homestay_kernel.domain.fees import FeeBreakdown, UpgradeFeeBreakdown
from homestay_kernel.domain.rules import DiscountRates, RegistrationRules
from homestay_kernel.domain.values import (
    Category,
    Gender,
    LocationType,
    OwnerAttributes,
    RoomConfiguration,
)
from homestay_kernel.exceptions import ValidationError
from homestay_kernel.logging_config import get_logger
from homestay_kernel.utils.hashing import hash_payload

logger = get_logger("engines.fees")

_WHOLE_RUPEE = Decimal("1")
_TWO_PLACES = Decimal("0.01")
_ZERO = Decimal("0")
_HUNDRED = Decimal("100")
_THREE_YEARS = 3


def _round_rupees(amount: Decimal) -> Decimal:
    return amount.quantize(_WHOLE_RUPEE, rounding=ROUND_HALF_UP)


def _validate_validity(validity_years: Any, options: tuple[int, ...]) -> int:
    if isinstance(validity_years, bool) or not isinstance(validity_years, int):
        raise ValidationError("validity_years", f"must be an integer, got {validity_years!r}")
    if validity_years not in options:
        raise ValidationError(
            "validity_years",
            f"must be one of {', '.join(str(o) for o in options)}, got {validity_years}",
        )
    return validity_years


def compute_fee(
    category: Category,
    base_fee: Decimal,
    validity_years: int,
    owner: OwnerAttributes,
    discounts: DiscountRates,
    validity_options: tuple[int, ...] = (1, 3),
) -> FeeBreakdown:
    """Steps 1-6 for an explicit base fee."""
    _validate_validity(validity_years, validity_options)
    base = Decimal(str(base_fee))
    if base < 0:
        raise ValidationError("base_fee", f"must not be negative, got {base}")

    multiplier = Decimal(_THREE_YEARS if validity_years == _THREE_YEARS else 1)
    before = base * multiplier

    validity_discount = before * discounts.three_year_validity if validity_years == _THREE_YEARS else _ZERO
    female_discount = before * discounts.female_owner if owner.gender == Gender.FEMALE else _ZERO
    sub_division_discount = (
        before * discounts.sub_division
        if discounts.qualifies_for_sub_division(owner.sub_division)
        else _ZERO
    )

    total = before - validity_discount - female_discount - sub_division_discount
    if total < 0:
        total = _ZERO

    before_out = _round_rupees(before)
    total_out = _round_rupees(total)
    savings = before_out - total_out
    percentage = (
        (savings / before_out * _HUNDRED).quantize(_TWO_PLACES, rounding=ROUND_HALF_UP)
        if before_out > 0
        else _ZERO.quantize(_TWO_PLACES)
    )

    return FeeBreakdown(
        category=category,
        base_fee=_round_rupees(base),
        validity_years=validity_years,
        total_before_discount=before_out,
        validity_discount=_round_rupees(validity_discount),
        female_owner_discount=_round_rupees(female_discount),
        sub_division_discount=_round_rupees(sub_division_discount),
        total_fee=total_out,
        savings_amount=savings,
        savings_percentage=percentage,
    )


def _resolve_category(
    rooms: RoomConfiguration,
    category: Category | None,
    rules: RegistrationRules,
) -> Category:
    if category is not None:
        return category
    implied = classify_rooms(rooms, rules.bands)
    if implied is None:
        raise ValidationError("rooms", "at least one room is required to determine the category")
    return implied


@traced_engine(
    "fees", "1.0",
    fingerprint_fields=("rooms", "location_type", "validity_years", "owner", "category"),
)
def quote_fee(
    rooms: RoomConfiguration,
    location_type: LocationType,
    validity_years: int,
    owner: OwnerAttributes,
    *,
    rules: RegistrationRules,
    category: Category | None = None,
) -> FeeBreakdown:
    """
    Quote the registration fee for a property.

    The category is taken from ``category`` when given (an owner may choose
    a higher category than the rates imply), otherwise from the rooms.

    Raises:
        ValidationError: no rooms and no category, or an unsupported
            validity period.
    """
    t0 = time.monotonic()
    resolved = _resolve_category(rooms, category, rules)
    location = LocationType(location_type)
    breakdown = compute_fee(
        resolved,
        rules.fees.base_fee(resolved, location),
        validity_years,
        owner,
        rules.discounts,
        rules.validity_options,
    )
    logger.debug(
        "fee_quoted",
        extra={
            "category": resolved.value,
            "location_type": location.value,
            "validity_years": validity_years,
            "total_fee": breakdown.total_fee,
            "duration_ms": round((time.monotonic() - t0) * 1000, 2),
        },
    )
    return breakdown


@traced_engine(
    "fees.upgrade", "1.0",
    fingerprint_fields=(
        "previous_category", "new_category", "location_type", "validity_years", "owner",
    ),
)
def quote_upgrade_fee(
    previous_category: Category,
    new_category: Category,
    location_type: LocationType,
    validity_years: int,
    owner: OwnerAttributes,
    *,
    rules: RegistrationRules,
) -> UpgradeFeeBreakdown:
    """
    Fee for moving an approved property to a higher category.

    Raises:
        ValidationError: ``new_category`` is not above ``previous_category``.
    """
    if new_category.rank <= previous_category.rank:
        raise ValidationError(
            "new_category",
            f"{new_category.value} is not an upgrade from {previous_category.value}",
        )
    location = LocationType(location_type)
    previous = compute_fee(
        previous_category,
        rules.fees.base_fee(previous_category, location),
        validity_years,
        owner,
        rules.discounts,
        rules.validity_options,
    )
    new = compute_fee(
        new_category,
        rules.fees.base_fee(new_category, location),
        validity_years,
        owner,
        rules.discounts,
        rules.validity_options,
    )
    upgrade_fee = new.total_fee - previous.total_fee
    if upgrade_fee < 0:
        upgrade_fee = _ZERO
    return UpgradeFeeBreakdown(previous=previous, new=new, upgrade_fee=upgrade_fee)


def fee_inputs_hash(
    category: Category,
    location_type: LocationType,
    validity_years: int,
    owner: OwnerAttributes,
    rules: RegistrationRules,
    *,
    kind: str | None = None,
    previous_category: Category | None = None,
) -> str:
    """
    Fingerprint of everything a fee snapshot depends on, including the
    base fee and discount rates in force.  Stored beside ``total_fee`` at
    submission so the snapshot can be verified later.
    """
    location = LocationType(location_type)
    return hash_payload({
        "kind": kind,
        "category": category.value,
        "previous_category": previous_category.value if previous_category else None,
        "location_type": location.value,
        "validity_years": validity_years,
        "gender": owner.gender.value if owner.gender else None,
        "sub_division_discounted": rules.discounts.qualifies_for_sub_division(owner.sub_division),
        "base_fee": rules.fees.base_fee(category, location),
        "previous_base_fee": (
            rules.fees.base_fee(previous_category, location) if previous_category else None
        ),
        "rates": {
            "three_year_validity": rules.discounts.three_year_validity,
            "female_owner": rules.discounts.female_owner,
            "sub_division": rules.discounts.sub_division,
        },
    })
