"""
Configuration Loader (``homestay_config.loader``).

Responsibility
--------------
Loads a rule-set YAML file and parses it into the typed kernel rule
objects (``homestay_kernel.domain.rules``).  The single public entry
point for runtime rules is ``homestay_config.get_active_rules()``.

Invariants enforced
-------------------
* No silent defaults for required sections: a missing ``base_fees``,
  ``category_bands`` or ``documents`` section is an error.
* Money and rates are parsed as ``Decimal`` from their string form, never
  through float.
* ``compute_checksum`` is a deterministic SHA-256 of the parsed document.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing keys / bad values  -> ``ConfigurationError`` naming the file.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from homestay_config.schema import HomestayRuleSet, RuleSetIdentity
from homestay_kernel.domain.rules import (
    CategoryBands,
    DiscountRates,
    DocumentRequirements,
    FeeSchedule,
    RegistrationRules,
    RoomLimits,
)
from homestay_kernel.domain.values import ApplicationKind, Category, LocationType
from homestay_kernel.exceptions import ConfigurationError
from homestay_kernel.utils.hashing import hash_payload


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        data = yaml.safe_load(f)
    return data or {}


def compute_checksum(data: dict[str, Any]) -> str:
    return hash_payload(data)


def _decimal(value: Any) -> Decimal:
    try:
        return Decimal(str(value))
    except InvalidOperation as exc:
        raise ValueError(f"not a number: {value!r}") from exc


def parse_category_bands(data: dict[str, Any]) -> CategoryBands:
    return CategoryBands(
        gold_min_rate=_decimal(data["gold_min_rate"]),
        diamond_above_rate=_decimal(data["diamond_above_rate"]),
    )


def parse_fee_schedule(data: dict[str, Any]) -> FeeSchedule:
    base_fees: dict[tuple[Category, LocationType], Decimal] = {}
    for category_name, by_location in data.items():
        category = Category(category_name)
        for location_name, amount in by_location.items():
            base_fees[(category, LocationType(location_name))] = _decimal(amount)
    return FeeSchedule(base_fees=base_fees)


def parse_discounts(data: dict[str, Any]) -> DiscountRates:
    return DiscountRates(
        three_year_validity=_decimal(data["three_year_validity"]),
        female_owner=_decimal(data["female_owner"]),
        sub_division=_decimal(data["sub_division"]),
        discounted_sub_divisions=frozenset(
            s.strip().lower() for s in data.get("discounted_sub_divisions", ())
        ),
    )


def _parse_limits(data: dict[str, Any], fallback: RoomLimits) -> RoomLimits:
    return RoomLimits(
        max_rooms=int(data.get("max_rooms", fallback.max_rooms)),
        max_beds=int(data.get("max_beds", fallback.max_beds)),
        max_beds_per_room=int(data.get("max_beds_per_room", fallback.max_beds_per_room)),
        min_rooms=int(data.get("min_rooms", fallback.min_rooms)),
    )


def parse_room_limits(data: dict[str, Any]) -> dict[Category, RoomLimits]:
    """``default`` applies to every category; per-category keys override it."""
    default = _parse_limits(data.get("default", {}), RoomLimits())
    return {
        category: _parse_limits(data.get(category.value, {}), default)
        for category in Category
    }


def parse_documents(data: dict[str, Any]) -> DocumentRequirements:
    return DocumentRequirements(
        by_kind={
            ApplicationKind(kind): tuple(docs or ())
            for kind, docs in data["required"].items()
        },
        premium_documents=tuple(data.get("premium", ())),
        ownership_transfer_document=data.get("ownership_transfer", "ownership_transfer_deed"),
    )


def parse_rules(data: dict[str, Any]) -> RegistrationRules:
    return RegistrationRules(
        bands=parse_category_bands(data["category_bands"]),
        fees=parse_fee_schedule(data["base_fees"]),
        discounts=parse_discounts(data["discounts"]),
        room_limits=parse_room_limits(data.get("room_limits", {})),
        documents=parse_documents(data["documents"]),
        validity_options=tuple(int(v) for v in data.get("validity_options", (1, 3))),
        inspection_exempt_kinds=frozenset(
            ApplicationKind(k) for k in data.get("inspection_exempt_kinds", ())
        ),
        gstin_pattern=data.get("gstin_pattern", r"^[0-9A-Z]{15}$"),
    )


def parse_identity(data: dict[str, Any], checksum: str) -> RuleSetIdentity:
    effective = data["effective_from"]
    if not isinstance(effective, date):
        effective = date.fromisoformat(str(effective))
    return RuleSetIdentity(
        name=data["name"],
        version=int(data["version"]),
        effective_from=effective,
        checksum=checksum,
        description=data.get("description", ""),
    )


def load_rule_set(path: Path) -> HomestayRuleSet:
    """Load and parse one rule-set file."""
    data = load_yaml_file(path)
    try:
        return HomestayRuleSet(
            identity=parse_identity(data, compute_checksum(data)),
            rules=parse_rules(data),
        )
    except KeyError as exc:
        raise ConfigurationError(str(path), f"missing key {exc.args[0]!r}") from exc
    except (TypeError, ValueError, AttributeError) as exc:
        raise ConfigurationError(str(path), str(exc)) from exc
