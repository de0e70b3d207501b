"""
Amendment payloads -- one tagged variant per service-request kind.

Responsibility:
    Parses the free-form dict a caller supplies with a service request into
    the typed payload for its kind, rejecting missing or malformed fields.
    Persisted service requests store ``payload.to_json()`` and are parsed
    again with ``parse_payload`` whenever the router needs them.

Architecture position:
    Kernel > Domain -- pure, zero I/O.

Failure modes:
    - ValidationError naming the offending field.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Union

from homestay_kernel.domain.values import (
    ApplicationKind,
    Category,
    Gender,
    OwnerIdentity,
    RoomLine,
    RoomType,
)
from homestay_kernel.exceptions import ValidationError


@dataclass(frozen=True)
class AddRoomsPayload:
    rooms: tuple[RoomLine, ...]
    kind: ApplicationKind = ApplicationKind.ADD_ROOMS

    def to_json(self) -> dict[str, Any]:
        return {"rooms": [r.to_dict() for r in self.rooms]}


@dataclass(frozen=True)
class DeleteRoomsPayload:
    removals: dict[RoomType, int]
    kind: ApplicationKind = ApplicationKind.DELETE_ROOMS

    def to_json(self) -> dict[str, Any]:
        return {"removals": {rt.value: n for rt, n in self.removals.items()}}


@dataclass(frozen=True)
class ChangeCategoryPayload:
    new_category: Category
    kind: ApplicationKind = ApplicationKind.CHANGE_CATEGORY

    def to_json(self) -> dict[str, Any]:
        return {"new_category": self.new_category.value}


@dataclass(frozen=True)
class ChangeOwnershipPayload:
    new_owner: OwnerIdentity
    transfer_document_ref: str
    new_owner_id: str | None = None
    new_owner_gender: Gender | None = None
    kind: ApplicationKind = ApplicationKind.CHANGE_OWNERSHIP

    def to_json(self) -> dict[str, Any]:
        return {
            "new_owner": {
                "name": self.new_owner.name,
                "mobile": self.new_owner.mobile,
                "email": self.new_owner.email,
                "aadhaar": self.new_owner.aadhaar,
            },
            "transfer_document_ref": self.transfer_document_ref,
            "new_owner_id": self.new_owner_id,
            "new_owner_gender": self.new_owner_gender.value if self.new_owner_gender else None,
        }


@dataclass(frozen=True)
class CancelCertificatePayload:
    reason: str
    kind: ApplicationKind = ApplicationKind.CANCEL_CERTIFICATE

    def to_json(self) -> dict[str, Any]:
        return {"reason": self.reason}


AmendmentPayload = Union[
    AddRoomsPayload,
    DeleteRoomsPayload,
    ChangeCategoryPayload,
    ChangeOwnershipPayload,
    CancelCertificatePayload,
]


# =============================================================================
# Per-kind parsers
# =============================================================================


def _require(data: dict[str, Any], key: str) -> Any:
    value = data.get(key)
    if value is None or (isinstance(value, str) and not value.strip()):
        raise ValidationError(key, "is required")
    return value


def _parse_add_rooms(data: dict[str, Any]) -> AddRoomsPayload:
    raw = _require(data, "rooms")
    if not isinstance(raw, list) or not raw:
        raise ValidationError("rooms", "at least one room line is required")
    rooms = tuple(RoomLine.from_dict(r) for r in raw)
    if sum(r.count for r in rooms) < 1:
        raise ValidationError("rooms", "must add at least one room")
    return AddRoomsPayload(rooms=rooms)


def _parse_delete_rooms(data: dict[str, Any]) -> DeleteRoomsPayload:
    raw = _require(data, "removals")
    if not isinstance(raw, dict) or not raw:
        raise ValidationError("removals", "expected a mapping of room type to count")
    removals: dict[RoomType, int] = {}
    for key, count in raw.items():
        try:
            room_type = RoomType(key)
        except ValueError as exc:
            raise ValidationError("removals", f"unknown room type {key!r}") from exc
        if not isinstance(count, int) or count < 1:
            raise ValidationError("removals", f"count for {key} must be a positive integer")
        removals[room_type] = count
    return DeleteRoomsPayload(removals=removals)


def _parse_change_category(data: dict[str, Any]) -> ChangeCategoryPayload:
    raw = _require(data, "new_category")
    try:
        return ChangeCategoryPayload(new_category=Category(raw))
    except ValueError as exc:
        raise ValidationError("new_category", f"unknown category {raw!r}") from exc


def _parse_change_ownership(data: dict[str, Any]) -> ChangeOwnershipPayload:
    owner = _require(data, "new_owner")
    if not isinstance(owner, dict):
        raise ValidationError("new_owner", "expected an object")
    gender = data.get("new_owner_gender")
    try:
        parsed_gender = Gender(gender) if gender else None
    except ValueError as exc:
        raise ValidationError("new_owner_gender", f"unknown gender {gender!r}") from exc
    return ChangeOwnershipPayload(
        new_owner=OwnerIdentity(
            name=_require(owner, "name"),
            mobile=_require(owner, "mobile"),
            email=owner.get("email"),
            aadhaar=owner.get("aadhaar"),
        ),
        transfer_document_ref=_require(data, "transfer_document_ref"),
        new_owner_id=data.get("new_owner_id"),
        new_owner_gender=parsed_gender,
    )


def _parse_cancel_certificate(data: dict[str, Any]) -> CancelCertificatePayload:
    return CancelCertificatePayload(reason=_require(data, "reason"))


_PARSERS: dict[ApplicationKind, Callable[[dict[str, Any]], AmendmentPayload]] = {
    ApplicationKind.ADD_ROOMS: _parse_add_rooms,
    ApplicationKind.DELETE_ROOMS: _parse_delete_rooms,
    ApplicationKind.CHANGE_CATEGORY: _parse_change_category,
    ApplicationKind.CHANGE_OWNERSHIP: _parse_change_ownership,
    ApplicationKind.CANCEL_CERTIFICATE: _parse_cancel_certificate,
}


def parse_payload(kind: ApplicationKind, data: dict[str, Any] | None) -> AmendmentPayload:
    """Validate ``data`` against the schema for ``kind``."""
    parser = _PARSERS.get(kind)
    if parser is None:
        raise ValidationError("kind", f"{kind.value} is not a service request kind")
    if not isinstance(data, dict):
        raise ValidationError("payload", "expected an object")
    return parser(data)
