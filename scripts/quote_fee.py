#!/usr/bin/env python3
"""
Quote a homestay registration fee from the command line.

Loads the active rule set, classifies the rooms and prints the fee
breakdown as JSON.  With --upgrade-to, prints the upgrade fee from the
category given with --category instead.

Usage:
    python3 scripts/quote_fee.py --room double:2:3500 --location gp --validity 3 --female
    python3 scripts/quote_fee.py --room single:1:2500 --location mc --sub-division Pangi
    python3 scripts/quote_fee.py --category silver --upgrade-to gold --location tcp
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))


def _room_line(spec: str):
    """``type:count:rate[:beds]`` -> RoomLine."""
    from homestay_kernel.domain.values import RoomLine
    from homestay_kernel.exceptions import ValidationError

    parts = spec.split(":")
    if len(parts) not in (3, 4):
        raise argparse.ArgumentTypeError(
            f"expected type:count:rate[:beds_per_room], got {spec!r}"
        )
    try:
        return RoomLine(
            room_type=parts[0],
            count=int(parts[1]),
            nightly_rate=parts[2],
            beds_per_room=int(parts[3]) if len(parts) == 4 else None,
        )
    except (ValueError, ValidationError) as exc:
        raise argparse.ArgumentTypeError(str(exc)) from exc


def main() -> int:
    parser = argparse.ArgumentParser(description="Homestay registration fee quote")
    parser.add_argument("--room", action="append", default=[], type=_room_line,
                        help="Room line as type:count:rate[:beds] (repeatable)")
    parser.add_argument("--location", required=True, choices=("gp", "mc", "tcp"),
                        help="Location type")
    parser.add_argument("--validity", type=int, default=1, help="Validity in years (1 or 3)")
    parser.add_argument("--female", action="store_true", help="Owner is female")
    parser.add_argument("--sub-division", default=None, help="Owner's sub-division")
    parser.add_argument("--category", default=None, choices=("silver", "gold", "diamond"),
                        help="Chosen category (defaults to the rate-implied one)")
    parser.add_argument("--upgrade-to", default=None, choices=("gold", "diamond"),
                        help="Quote the upgrade fee from --category to this category")
    parser.add_argument("--rule-set", default=None, help="Rule set name")
    parser.add_argument("-v", "--verbose", action="store_true", help="Emit JSON logs to stderr")
    args = parser.parse_args()

    from homestay_config import DEFAULT_RULE_SET, get_active_rules
    from homestay_engines.fees import quote_fee, quote_upgrade_fee
    from homestay_kernel.domain.values import (
        Category,
        Gender,
        LocationType,
        OwnerAttributes,
        RoomConfiguration,
    )
    from homestay_kernel.exceptions import HomestayKernelError
    from homestay_kernel.logging_config import configure_logging

    if args.verbose:
        configure_logging(level=logging.DEBUG, stream=sys.stderr)

    rules = get_active_rules(args.rule_set or DEFAULT_RULE_SET)
    owner = OwnerAttributes(
        gender=Gender.FEMALE if args.female else None,
        sub_division=args.sub_division,
    )
    location = LocationType(args.location)

    try:
        if args.upgrade_to:
            if not args.category:
                parser.error("--upgrade-to requires --category")
            result = quote_upgrade_fee(
                Category(args.category), Category(args.upgrade_to), location,
                args.validity, owner, rules=rules,
            )
        else:
            result = quote_fee(
                RoomConfiguration(tuple(args.room)), location, args.validity, owner,
                rules=rules,
                category=Category(args.category) if args.category else None,
            )
    except HomestayKernelError as exc:
        print(json.dumps({"error": exc.code, "message": str(exc)}), file=sys.stderr)
        return 1

    print(json.dumps(result.to_dict(), indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
