"""
Tests for the registration vocabulary and value objects.

Tests cover:
- ApplicationStatus.parse: known and unknown persisted values
- ActorRole: district officer alias, administrative roles
- RoomLine / RoomConfiguration: validation, totals, merge and removal
- OwnerAttributes: gender coercion
"""

from decimal import Decimal

import pytest

from homestay_kernel.domain.values import (
    CORRECTION_STATUSES,
    PRIMARY_KINDS,
    SERVICE_REQUEST_KINDS,
    TERMINAL_STATUSES,
    ActorRole,
    ApplicationKind,
    ApplicationStatus,
    Category,
    Gender,
    OwnerAttributes,
    RoomConfiguration,
    RoomLine,
    RoomType,
)
from homestay_kernel.exceptions import ValidationError


class TestApplicationStatus:
    def test_parse_known_status(self):
        assert ApplicationStatus.parse("forwarded_to_dtdo") is ApplicationStatus.FORWARDED_TO_DTDO

    def test_parse_unknown_status_returns_none(self):
        assert ApplicationStatus.parse("pending_magic") is None
        assert ApplicationStatus.parse("") is None

    def test_terminal_statuses(self):
        assert TERMINAL_STATUSES == {
            ApplicationStatus.APPROVED,
            ApplicationStatus.REJECTED,
            ApplicationStatus.CERTIFICATE_CANCELLED,
        }

    def test_correction_statuses_are_not_terminal(self):
        assert not (CORRECTION_STATUSES & TERMINAL_STATUSES)


class TestKinds:
    def test_primary_and_service_request_kinds_partition_the_enum(self):
        assert PRIMARY_KINDS | SERVICE_REQUEST_KINDS == set(ApplicationKind)
        assert not (PRIMARY_KINDS & SERVICE_REQUEST_KINDS)

    @pytest.mark.parametrize("kind", sorted(SERVICE_REQUEST_KINDS, key=lambda k: k.value))
    def test_service_request_flag(self, kind):
        assert kind.is_service_request

    def test_new_registration_is_not_a_service_request(self):
        assert not ApplicationKind.NEW_REGISTRATION.is_service_request


class TestRoles:
    def test_district_officer_is_an_alias_for_dtdo(self):
        assert ActorRole.DISTRICT_OFFICER.canonical() is ActorRole.DISTRICT_TOURISM_OFFICER

    def test_other_roles_are_their_own_canonical_form(self):
        assert ActorRole.DEALING_ASSISTANT.canonical() is ActorRole.DEALING_ASSISTANT

    def test_administrative_roles(self):
        assert ActorRole.ADMIN.is_administrative
        assert ActorRole.SUPER_ADMIN.is_administrative
        assert not ActorRole.DISTRICT_TOURISM_OFFICER.is_administrative


class TestCategory:
    def test_rank_order(self):
        assert Category.SILVER.rank < Category.GOLD.rank < Category.DIAMOND.rank

    def test_premium_categories(self):
        assert not Category.SILVER.is_premium()
        assert Category.GOLD.is_premium()
        assert Category.DIAMOND.is_premium()


class TestRoomLine:
    def test_defaults_beds_from_room_type(self):
        assert RoomLine("single", 1, "1500").beds_per_room == 1
        assert RoomLine("double", 1, "1500").beds_per_room == 2
        assert RoomLine("family_suite", 1, "1500").beds_per_room == 4

    def test_rate_is_decimal(self):
        line = RoomLine(RoomType.DOUBLE, 2, 2500.5)
        assert line.nightly_rate == Decimal("2500.5")

    def test_unknown_room_type_rejected(self):
        with pytest.raises(ValidationError) as exc_info:
            RoomLine("penthouse", 1, "1000")
        assert exc_info.value.field == "room_type"

    def test_negative_count_rejected(self):
        with pytest.raises(ValidationError):
            RoomLine("double", -1, "1000")

    def test_negative_rate_rejected(self):
        with pytest.raises(ValidationError):
            RoomLine("double", 1, "-1")

    def test_non_numeric_rate_rejected(self):
        with pytest.raises(ValidationError) as exc_info:
            RoomLine("double", 1, "cheap")
        assert exc_info.value.field == "nightly_rate"

    @pytest.mark.parametrize("rate", ["NaN", "sNaN", "Infinity", "-Infinity", float("nan")])
    def test_non_finite_rate_rejected(self, rate):
        with pytest.raises(ValidationError) as exc_info:
            RoomLine("double", 1, rate)
        assert exc_info.value.field == "nightly_rate"

    def test_boolean_count_rejected(self):
        with pytest.raises(ValidationError) as exc_info:
            RoomLine("double", True, "1000")
        assert exc_info.value.field == "count"

    def test_boolean_beds_rejected(self):
        with pytest.raises(ValidationError) as exc_info:
            RoomLine("double", 1, "1000", beds_per_room=True)
        assert exc_info.value.field == "beds_per_room"

    def test_zero_beds_rejected(self):
        with pytest.raises(ValidationError):
            RoomLine("double", 1, "1000", beds_per_room=0)

    def test_from_dict_missing_key(self):
        with pytest.raises(ValidationError) as exc_info:
            RoomLine.from_dict({"room_type": "double", "count": 1})
        assert "nightly_rate" in exc_info.value.reason


class TestRoomConfiguration:
    def _rooms(self):
        return RoomConfiguration((
            RoomLine("double", 2, "2500"),
            RoomLine("family_suite", 1, "4000"),
        ))

    def test_totals(self):
        rooms = self._rooms()
        assert rooms.total_rooms == 3
        assert rooms.total_beds == 8
        assert rooms.max_beds_in_a_room == 4

    def test_highest_rate_ignores_empty_lines(self):
        rooms = RoomConfiguration((
            RoomLine("double", 2, "2500"),
            RoomLine("single", 0, "12000"),
        ))
        assert rooms.highest_rate == Decimal("2500")

    def test_empty_configuration(self):
        rooms = RoomConfiguration()
        assert rooms.total_rooms == 0
        assert rooms.highest_rate == Decimal("0")

    def test_merge_combines_identical_lines(self):
        merged = self._rooms().merged_with([RoomLine("double", 1, "2500")])
        assert merged.total_rooms == 4
        assert len(merged.lines) == 2

    def test_merge_keeps_distinct_rates_apart(self):
        merged = self._rooms().merged_with([RoomLine("double", 1, "2800")])
        assert len(merged.lines) == 3

    def test_without_removes_most_expensive_first(self):
        rooms = RoomConfiguration((
            RoomLine("double", 1, "2000"),
            RoomLine("double", 1, "2600"),
        ))
        remaining = rooms.without({RoomType.DOUBLE: 1})
        assert remaining.total_rooms == 1
        assert remaining.highest_rate == Decimal("2000")

    def test_without_more_than_configured(self):
        with pytest.raises(ValidationError):
            self._rooms().without({RoomType.SINGLE: 1})

    def test_json_round_trip(self):
        rooms = self._rooms()
        assert RoomConfiguration.from_json(rooms.to_json()) == rooms


class TestOwnerAttributes:
    def test_gender_coerced(self):
        assert OwnerAttributes(gender="female").gender is Gender.FEMALE

    def test_unknown_gender_rejected(self):
        with pytest.raises(ValidationError):
            OwnerAttributes(gender="unknown")
