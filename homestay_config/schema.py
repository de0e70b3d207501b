"""
Configuration schema (``homestay_config.schema``).

Responsibility
--------------
Frozen dataclass describing one loaded rule set: its identity (name,
version, effective date, checksum) and the kernel ``RegistrationRules``
parsed from it.

Architecture position
---------------------
**Config layer** -- pure data definitions.  Imports kernel domain value
objects; the kernel never imports from here.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date

from homestay_kernel.domain.rules import RegistrationRules


@dataclass(frozen=True)
class RuleSetIdentity:
    name: str
    version: int
    effective_from: date
    checksum: str
    description: str = ""


@dataclass(frozen=True)
class HomestayRuleSet:
    identity: RuleSetIdentity
    rules: RegistrationRules
