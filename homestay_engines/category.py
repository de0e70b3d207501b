"""
Category Classifier.

Pure functions with deterministic behavior. No I/O.

Maps the highest nightly room rate of a property to its tariff category:

    silver   rate <  gold_min_rate                      (default: up to 2999)
    gold     gold_min_rate <= rate <= diamond_above_rate (default: 3000..10000)
    diamond  rate >  diamond_above_rate                  (default: 10001 upward)

Bands are inclusive on the lower bound.  The band edges come from the
active rule set so the gold/diamond edge can be changed without a code
change.

Usage:
    from homestay_engines.category import classify_category

    classify_category(Decimal("3000"))  # Category.GOLD
"""

from __future__ import annotations

from decimal import Decimal

from homestay_kernel.domain.rules import CategoryBands
from homestay_kernel.domain.values import Category, RoomConfiguration
from homestay_kernel.exceptions import ValidationError

DEFAULT_BANDS = CategoryBands()


def classify_category(
    highest_rate: Decimal | int | str,
    bands: CategoryBands = DEFAULT_BANDS,
) -> Category:
    """Category implied by ``highest_rate``."""
    rate = Decimal(str(highest_rate))
    if rate < 0:
        raise ValidationError("nightly_rate", f"must not be negative, got {rate}")
    if rate > bands.diamond_above_rate:
        return Category.DIAMOND
    if rate >= bands.gold_min_rate:
        return Category.GOLD
    return Category.SILVER


def classify_rooms(
    rooms: RoomConfiguration,
    bands: CategoryBands = DEFAULT_BANDS,
) -> Category | None:
    """Category implied by a room configuration; None when no rooms are set."""
    if rooms.total_rooms == 0:
        return None
    return classify_category(rooms.highest_rate, bands)


def is_below(chosen: Category, implied: Category) -> bool:
    """True when ``chosen`` ranks lower than the rate-implied category."""
    return chosen.rank < implied.rank
