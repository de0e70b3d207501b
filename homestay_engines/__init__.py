"""
Module: homestay_engines
Responsibility:
    Package entrypoint that re-exports the pure calculation engines: category
    classification, fee quotes, room limits, stage derivation and the role
    policy gate.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import homestay_kernel (domain, exceptions, logging).
    MUST NOT import homestay_services or homestay_config.

Invariants enforced:
    - Purity: engines never read the clock; timestamps arrive on the
      records passed in.
    - Decimal-only arithmetic for money.
    - Determinism: identical inputs always produce identical outputs.
"""

from homestay_engines.category import classify_category, classify_rooms
from homestay_engines.fees import (
    compute_fee,
    fee_inputs_hash,
    quote_fee,
    quote_upgrade_fee,
)
from homestay_engines.policy_gate import GateDecision, allowed, check_action
from homestay_engines.rooms import ensure_within_limits, room_limit_violations
from homestay_engines.stage import Progress, StageView, derive_progress, derive_stage

__all__ = [
    "classify_category",
    "classify_rooms",
    "compute_fee",
    "fee_inputs_hash",
    "quote_fee",
    "quote_upgrade_fee",
    "GateDecision",
    "allowed",
    "check_action",
    "ensure_within_limits",
    "room_limit_violations",
    "Progress",
    "StageView",
    "derive_progress",
    "derive_stage",
]
