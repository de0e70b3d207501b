"""
Values -- Enumerations and immutable value objects of the registration domain.

Responsibility:
    Defines the closed vocabularies (status, kind, category, role, location)
    and the small value objects the workflow and fee engine compute over:
    room lines, room configurations, owner attributes and identity.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.
    Imported by every other domain module, the engines and the services.

Invariants enforced:
    - The status set is closed: anything outside ``ApplicationStatus`` is
      treated as corruption by the workflow executor.
    - Room counts and nightly rates are non-negative, beds per room at least 1
      (checked at construction).
    - Category ordering is silver < gold < diamond.

Failure modes:
    - ValidationError on construction with malformed room lines.

Audit relevance:
    ``RoomConfiguration.to_json()`` is the persisted form of an application's
    rooms and feeds the fee-input hash recorded at submission.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Iterable

from homestay_kernel.exceptions import ValidationError


class ApplicationStatus(str, Enum):
    """Every status an application or service request may hold."""

    DRAFT = "draft"
    SUBMITTED = "submitted"
    UNDER_SCRUTINY = "under_scrutiny"
    SENT_BACK_FOR_CORRECTIONS = "sent_back_for_corrections"
    FORWARDED_TO_DTDO = "forwarded_to_dtdo"
    REVERTED_BY_DTDO = "reverted_by_dtdo"
    OBJECTION_RAISED = "objection_raised"
    INSPECTION_SCHEDULED = "inspection_scheduled"
    INSPECTION_COMPLETED = "inspection_completed"
    PAYMENT_PENDING = "payment_pending"
    VERIFIED_FOR_PAYMENT = "verified_for_payment"
    APPROVED = "approved"
    REJECTED = "rejected"
    CERTIFICATE_CANCELLED = "certificate_cancelled"

    @classmethod
    def parse(cls, raw: str) -> ApplicationStatus | None:
        """Return the member for ``raw`` or None when it is not a known status."""
        try:
            return cls(raw)
        except ValueError:
            return None


TERMINAL_STATUSES: frozenset[ApplicationStatus] = frozenset({
    ApplicationStatus.APPROVED,
    ApplicationStatus.REJECTED,
    ApplicationStatus.CERTIFICATE_CANCELLED,
})

# Statuses in which the next move belongs to the owner.
CORRECTION_STATUSES: frozenset[ApplicationStatus] = frozenset({
    ApplicationStatus.SENT_BACK_FOR_CORRECTIONS,
    ApplicationStatus.REVERTED_BY_DTDO,
    ApplicationStatus.OBJECTION_RAISED,
})

# Payment may be recorded against a record in these statuses.
PAYMENT_STATUSES: frozenset[ApplicationStatus] = frozenset({
    ApplicationStatus.PAYMENT_PENDING,
    ApplicationStatus.VERIFIED_FOR_PAYMENT,
})


class ApplicationKind(str, Enum):
    NEW_REGISTRATION = "new_registration"
    RENEWAL = "renewal"
    EXISTING_RC_ONBOARDING = "existing_rc_onboarding"
    ADD_ROOMS = "add_rooms"
    DELETE_ROOMS = "delete_rooms"
    CHANGE_CATEGORY = "change_category"
    CHANGE_OWNERSHIP = "change_ownership"
    CANCEL_CERTIFICATE = "cancel_certificate"

    @property
    def is_service_request(self) -> bool:
        return self in SERVICE_REQUEST_KINDS


PRIMARY_KINDS: frozenset[ApplicationKind] = frozenset({
    ApplicationKind.NEW_REGISTRATION,
    ApplicationKind.RENEWAL,
    ApplicationKind.EXISTING_RC_ONBOARDING,
})

SERVICE_REQUEST_KINDS: frozenset[ApplicationKind] = frozenset({
    ApplicationKind.ADD_ROOMS,
    ApplicationKind.DELETE_ROOMS,
    ApplicationKind.CHANGE_CATEGORY,
    ApplicationKind.CHANGE_OWNERSHIP,
    ApplicationKind.CANCEL_CERTIFICATE,
})


class Category(str, Enum):
    SILVER = "silver"
    GOLD = "gold"
    DIAMOND = "diamond"

    @property
    def rank(self) -> int:
        return _CATEGORY_RANK[self]

    def is_premium(self) -> bool:
        """Gold and diamond carry the commercial-utility document rules."""
        return self in (Category.GOLD, Category.DIAMOND)


_CATEGORY_RANK = {Category.SILVER: 1, Category.GOLD: 2, Category.DIAMOND: 3}


class LocationType(str, Enum):
    GRAM_PANCHAYAT = "gp"
    MUNICIPAL_CORPORATION = "mc"
    TOWN_COUNTRY_PLANNING = "tcp"


class Gender(str, Enum):
    MALE = "male"
    FEMALE = "female"
    OTHER = "other"


class ActorRole(str, Enum):
    PROPERTY_OWNER = "property_owner"
    DEALING_ASSISTANT = "dealing_assistant"
    DISTRICT_TOURISM_OFFICER = "district_tourism_officer"
    DISTRICT_OFFICER = "district_officer"
    ADMIN = "admin"
    SUPER_ADMIN = "super_admin"
    SYSTEM = "system"

    def canonical(self) -> ActorRole:
        """Collapse aliases: a district officer acts as the DTDO."""
        if self is ActorRole.DISTRICT_OFFICER:
            return ActorRole.DISTRICT_TOURISM_OFFICER
        return self

    @property
    def is_administrative(self) -> bool:
        return self in (ActorRole.ADMIN, ActorRole.SUPER_ADMIN)


class RoomType(str, Enum):
    SINGLE = "single"
    DOUBLE = "double"
    FAMILY_SUITE = "family_suite"


DEFAULT_BEDS_PER_ROOM: dict[RoomType, int] = {
    RoomType.SINGLE: 1,
    RoomType.DOUBLE: 2,
    RoomType.FAMILY_SUITE: 4,
}


class PaymentStatus(str, Enum):
    UNPAID = "unpaid"
    PAID = "paid"


# =============================================================================
# Value objects
# =============================================================================


def _to_decimal(value: Any, field: str) -> Decimal:
    if isinstance(value, float):
        value = str(value)
    try:
        number = Decimal(value)
    except (InvalidOperation, TypeError, ValueError) as exc:
        raise ValidationError(field, f"not a number: {value!r}") from exc
    if not number.is_finite():
        raise ValidationError(field, f"not a finite number: {value!r}")
    return number


@dataclass(frozen=True)
class RoomLine:
    """One group of identical rooms.

    Contract: ``count`` rooms of ``room_type``, each with ``beds_per_room``
    beds, let at ``nightly_rate`` rupees.
    """

    room_type: RoomType
    count: int
    nightly_rate: Decimal
    beds_per_room: int | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.room_type, RoomType):
            try:
                object.__setattr__(self, "room_type", RoomType(self.room_type))
            except ValueError as exc:
                raise ValidationError("room_type", f"unknown room type {self.room_type!r}") from exc
        if self.beds_per_room is None:
            object.__setattr__(self, "beds_per_room", DEFAULT_BEDS_PER_ROOM[self.room_type])
        object.__setattr__(self, "nightly_rate", _to_decimal(self.nightly_rate, "nightly_rate"))

        if isinstance(self.count, bool) or not isinstance(self.count, int) or self.count < 0:
            raise ValidationError("count", f"room count must be a non-negative integer, got {self.count!r}")
        if (
            isinstance(self.beds_per_room, bool)
            or not isinstance(self.beds_per_room, int)
            or self.beds_per_room < 1
        ):
            raise ValidationError("beds_per_room", f"must be at least 1, got {self.beds_per_room!r}")
        if self.nightly_rate < 0:
            raise ValidationError("nightly_rate", f"must not be negative, got {self.nightly_rate}")

    @property
    def total_beds(self) -> int:
        return self.count * self.beds_per_room

    def to_dict(self) -> dict[str, Any]:
        return {
            "room_type": self.room_type.value,
            "count": self.count,
            "beds_per_room": self.beds_per_room,
            "nightly_rate": str(self.nightly_rate),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RoomLine:
        try:
            return cls(
                room_type=data["room_type"],
                count=data["count"],
                nightly_rate=data["nightly_rate"],
                beds_per_room=data.get("beds_per_room"),
            )
        except KeyError as exc:
            raise ValidationError("rooms", f"room line missing {exc.args[0]}") from exc


@dataclass(frozen=True)
class RoomConfiguration:
    """All room lines of a property.

    Guarantees:
        - ``highest_rate`` considers only lines that actually have rooms.
        - ``merged_with`` / ``without`` return new configurations.
    """

    lines: tuple[RoomLine, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "lines", tuple(self.lines))

    @property
    def total_rooms(self) -> int:
        return sum(line.count for line in self.lines)

    @property
    def total_beds(self) -> int:
        return sum(line.total_beds for line in self.lines)

    @property
    def highest_rate(self) -> Decimal:
        rates = [line.nightly_rate for line in self.lines if line.count > 0]
        return max(rates) if rates else Decimal("0")

    @property
    def max_beds_in_a_room(self) -> int:
        beds = [line.beds_per_room for line in self.lines if line.count > 0]
        return max(beds) if beds else 0

    def merged_with(self, additions: Iterable[RoomLine]) -> RoomConfiguration:
        """Add rooms; lines with the same type, beds and rate are combined."""
        merged: dict[tuple, RoomLine] = {}
        for line in (*self.lines, *additions):
            key = (line.room_type, line.beds_per_room, line.nightly_rate)
            existing = merged.get(key)
            if existing is None:
                merged[key] = line
            else:
                merged[key] = RoomLine(
                    room_type=line.room_type,
                    count=existing.count + line.count,
                    nightly_rate=line.nightly_rate,
                    beds_per_room=line.beds_per_room,
                )
        return RoomConfiguration(tuple(merged.values()))

    def without(self, removals: dict[RoomType, int]) -> RoomConfiguration:
        """Remove ``count`` rooms per room type, most expensive lines first."""
        remaining = list(self.lines)
        for room_type, to_remove in removals.items():
            available = sum(ln.count for ln in remaining if ln.room_type == room_type)
            if to_remove > available:
                raise ValidationError(
                    "rooms",
                    f"cannot remove {to_remove} {room_type.value} room(s); only {available} configured",
                )
            order = sorted(
                (i for i, ln in enumerate(remaining) if ln.room_type == room_type),
                key=lambda i: remaining[i].nightly_rate,
                reverse=True,
            )
            for i in order:
                if to_remove == 0:
                    break
                line = remaining[i]
                taken = min(line.count, to_remove)
                to_remove -= taken
                remaining[i] = RoomLine(
                    room_type=line.room_type,
                    count=line.count - taken,
                    nightly_rate=line.nightly_rate,
                    beds_per_room=line.beds_per_room,
                )
        return RoomConfiguration(tuple(ln for ln in remaining if ln.count > 0))

    def to_json(self) -> list[dict[str, Any]]:
        return [line.to_dict() for line in self.lines]

    @classmethod
    def from_json(cls, data: Iterable[dict[str, Any]] | None) -> RoomConfiguration:
        return cls(tuple(RoomLine.from_dict(d) for d in (data or ())))


@dataclass(frozen=True)
class OwnerAttributes:
    """Owner facts that influence the fee."""

    gender: Gender | None = None
    sub_division: str | None = None

    def __post_init__(self) -> None:
        if self.gender is not None and not isinstance(self.gender, Gender):
            try:
                object.__setattr__(self, "gender", Gender(self.gender))
            except ValueError as exc:
                raise ValidationError("gender", f"unknown gender {self.gender!r}") from exc


@dataclass(frozen=True)
class OwnerIdentity:
    name: str
    mobile: str
    email: str | None = None
    aadhaar: str | None = None
