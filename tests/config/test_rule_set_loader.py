"""
Tests for rule-set loading (homestay_config).

Tests cover:
- get_active_rules(): the shipped HP Homestay 2025 rule set
- Decimal parsing, per-category room limits, inspection-exempt kinds
- Missing files, missing sections and bad values
- Checksum determinism and the HOMESTAY_CONFIG_TRACE log entry
"""

from decimal import Decimal
from pathlib import Path

import pytest
import yaml

from homestay_config import DEFAULT_RULE_SET, get_active_rule_set, get_active_rules
from homestay_config.loader import load_yaml_file
from homestay_engines.category import classify_category
from homestay_kernel.domain.values import ApplicationKind, Category, LocationType
from homestay_kernel.exceptions import ConfigurationError

SETS_DIR = Path(__file__).resolve().parents[2] / "homestay_config" / "sets"


def _write_variant(tmp_path: Path, name: str, mutate) -> Path:
    data = load_yaml_file(SETS_DIR / f"{DEFAULT_RULE_SET}.yaml")
    mutate(data)
    data["name"] = name
    (tmp_path / f"{name}.yaml").write_text(yaml.safe_dump(data))
    return tmp_path


class TestShippedRuleSet:
    def test_base_fee_table(self):
        rules = get_active_rules()
        assert rules.fees.base_fee(Category.SILVER, LocationType.GRAM_PANCHAYAT) == Decimal("3000")
        assert rules.fees.base_fee(Category.DIAMOND, LocationType.MUNICIPAL_CORPORATION) == Decimal("18000")

    def test_discount_rates_are_decimal(self):
        rules = get_active_rules()
        assert rules.discounts.three_year_validity == Decimal("0.10")
        assert rules.discounts.female_owner == Decimal("0.05")
        assert rules.discounts.sub_division == Decimal("0.50")
        assert rules.discounts.qualifies_for_sub_division("Pangi")

    def test_category_bands(self):
        rules = get_active_rules()
        assert rules.bands.gold_min_rate == Decimal("3000")
        assert rules.bands.diamond_above_rate == Decimal("10000")

    def test_room_limits_apply_to_every_category(self):
        rules = get_active_rules()
        for category in Category:
            limits = rules.limits_for(category)
            assert (limits.max_rooms, limits.max_beds, limits.max_beds_per_room) == (6, 12, 6)

    def test_documents(self):
        rules = get_active_rules()
        assert "affidavit_section_29" in rules.documents.required_for(ApplicationKind.NEW_REGISTRATION)
        assert rules.documents.required_for(ApplicationKind.ADD_ROOMS) == ()
        assert rules.documents.ownership_transfer_document == "ownership_transfer_deed"

    def test_inspection_exempt_kinds(self):
        rules = get_active_rules()
        assert ApplicationKind.EXISTING_RC_ONBOARDING in rules.inspection_exempt_kinds
        assert ApplicationKind.NEW_REGISTRATION not in rules.inspection_exempt_kinds

    def test_validity_options(self):
        assert get_active_rules().validity_options == (1, 3)

    def test_identity_and_checksum(self):
        first = get_active_rule_set()
        second = get_active_rule_set()
        assert first.identity.name == DEFAULT_RULE_SET
        assert first.identity.version == 1
        assert first.identity.effective_from.isoformat() == "2025-04-01"
        assert first.identity.checksum == second.identity.checksum
        assert len(first.identity.checksum) == 64

    def test_load_emits_config_trace(self, captured_logs):
        get_active_rules()
        traces = [r for r in captured_logs() if r["message"] == "HOMESTAY_CONFIG_TRACE"]
        assert traces
        assert traces[-1]["rule_set"] == DEFAULT_RULE_SET


class TestVariantRuleSets:
    def test_diamond_edge_is_configurable(self, tmp_path):
        def mutate(data):
            data["category_bands"]["diamond_above_rate"] = 8000

        config_dir = _write_variant(tmp_path, "lower_diamond", mutate)
        rules = get_active_rules("lower_diamond", config_dir)
        assert classify_category(8001, rules.bands) is Category.DIAMOND
        assert classify_category(8000, rules.bands) is Category.GOLD

    def test_per_category_room_limit_override(self, tmp_path):
        def mutate(data):
            data["room_limits"]["diamond"] = {"max_rooms": 4}

        rules = get_active_rules("small_diamond", _write_variant(tmp_path, "small_diamond", mutate))
        assert rules.limits_for(Category.DIAMOND).max_rooms == 4
        assert rules.limits_for(Category.DIAMOND).max_beds == 12
        assert rules.limits_for(Category.GOLD).max_rooms == 6

    def test_changed_file_changes_checksum(self, tmp_path):
        def mutate(data):
            data["base_fees"]["gold"]["gp"] = 6500

        variant = get_active_rule_set("pricier", _write_variant(tmp_path, "pricier", mutate))
        assert variant.identity.checksum != get_active_rule_set().identity.checksum

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            get_active_rules("nope", tmp_path)

    def test_missing_section(self, tmp_path):
        def mutate(data):
            del data["base_fees"]

        config_dir = _write_variant(tmp_path, "no_fees", mutate)
        with pytest.raises(ConfigurationError) as exc_info:
            get_active_rules("no_fees", config_dir)
        assert "base_fees" in exc_info.value.reason

    def test_incomplete_fee_table(self, tmp_path):
        def mutate(data):
            del data["base_fees"]["silver"]["tcp"]

        config_dir = _write_variant(tmp_path, "partial_fees", mutate)
        with pytest.raises(ConfigurationError) as exc_info:
            get_active_rules("partial_fees", config_dir)
        assert "silver/tcp" in exc_info.value.reason

    def test_discount_rate_out_of_range(self, tmp_path):
        def mutate(data):
            data["discounts"]["female_owner"] = "1.5"

        config_dir = _write_variant(tmp_path, "generous", mutate)
        with pytest.raises(ConfigurationError):
            get_active_rules("generous", config_dir)

    def test_unknown_category(self, tmp_path):
        def mutate(data):
            data["base_fees"]["platinum"] = {"mc": 1, "tcp": 1, "gp": 1}

        config_dir = _write_variant(tmp_path, "platinum", mutate)
        with pytest.raises(ConfigurationError):
            get_active_rules("platinum", config_dir)
