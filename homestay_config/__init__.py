"""
homestay_config -- single public entrypoint for registration rules.

Responsibility:
    Provides the ONLY way to obtain the tariff and eligibility rules at
    runtime through ``get_active_rules()``.  No other component reads rule
    files directly.

Architecture position:
    Configuration -- YAML-driven.  Sits above ``homestay_kernel`` and below
    ``homestay_services``.  The kernel MUST NEVER import from
    ``homestay_config``.

Failure modes:
    - ``FileNotFoundError`` -- the requested rule-set file does not exist.
    - ``ConfigurationError`` -- the file is structurally invalid.

Audit relevance:
    Every successful ``get_active_rules()`` call emits a
    ``HOMESTAY_CONFIG_TRACE`` log entry with the rule-set name, version and
    checksum, tying every fee quote to the exact tariff that produced it.
"""

from __future__ import annotations

from pathlib import Path

from homestay_config.loader import load_rule_set
from homestay_config.schema import HomestayRuleSet, RuleSetIdentity
from homestay_kernel.domain.rules import RegistrationRules
from homestay_kernel.logging_config import get_logger

_logger = get_logger("config")

_DEFAULT_CONFIG_DIR = Path(__file__).parent / "sets"
DEFAULT_RULE_SET = "hp_homestay_2025"


def get_active_rule_set(
    name: str = DEFAULT_RULE_SET,
    config_dir: Path | None = None,
) -> HomestayRuleSet:
    """Load the named rule set (with identity) from the sets directory."""
    sets_dir = config_dir or _DEFAULT_CONFIG_DIR
    rule_set = load_rule_set(sets_dir / f"{name}.yaml")

    _logger.info(
        "HOMESTAY_CONFIG_TRACE",
        extra={
            "rule_set": rule_set.identity.name,
            "version": rule_set.identity.version,
            "effective_from": rule_set.identity.effective_from,
            "checksum": rule_set.identity.checksum,
        },
    )
    return rule_set


def get_active_rules(
    name: str = DEFAULT_RULE_SET,
    config_dir: Path | None = None,
) -> RegistrationRules:
    """The public configuration entrypoint: rules only."""
    return get_active_rule_set(name, config_dir).rules


__all__ = [
    "get_active_rules",
    "get_active_rule_set",
    "HomestayRuleSet",
    "RuleSetIdentity",
    "DEFAULT_RULE_SET",
]
