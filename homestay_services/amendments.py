"""
homestay_services.amendments -- Validate service-request payloads against
their parent and apply approved amendments to it.

Responsibility:
    ``validate_amendment`` checks a payload for its kind and for the
    parent it amends (room limits after the change, upward-only category
    moves, a room left after deletion).  ``apply_amendment`` writes the
    outcome of an approved request onto the parent application inside the
    approving transaction.

Architecture position:
    Services.  Used by the service request router (at creation and draft
    edits) and the workflow executor (guard at submission, effect at
    approval).

Invariants enforced:
    - Adding rooms may not push the property into a higher category; that
      needs a change_category request.
    - A change of ownership rewrites owner identity only; certificate
      number, issue time and expiry stay as issued.
    - Cancelling a certificate moves the parent to ``certificate_cancelled``
      and is irreversible (a terminal status).

Failure modes:
    - ValidationError for a payload that is malformed or would break a
      limit.
    - InvalidTransitionError when the parent is no longer approved.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from homestay_engines.category import classify_rooms, is_below
from homestay_engines.rooms import ensure_within_limits
from homestay_kernel.domain.payloads import (
    AddRoomsPayload,
    AmendmentPayload,
    CancelCertificatePayload,
    ChangeCategoryPayload,
    ChangeOwnershipPayload,
    DeleteRoomsPayload,
    parse_payload,
)
from homestay_kernel.domain.rules import RegistrationRules
from homestay_kernel.domain.values import (
    ApplicationKind,
    ApplicationStatus,
    Category,
)
from homestay_kernel.exceptions import InvalidTransitionError, ValidationError
from homestay_kernel.logging_config import get_logger
from homestay_kernel.models.application import ApplicationModel
from homestay_kernel.models.service_request import ServiceRequestModel

logger = get_logger("services.amendments")


@dataclass(frozen=True)
class AmendmentOutcome:
    """What an approved request did to its parent, for the parent's log entry."""

    action: str
    from_status: str
    to_status: str
    details: dict[str, Any] = field(default_factory=dict)


def _parent_category(parent: ApplicationModel) -> Category:
    if parent.category is None:
        raise ValidationError("category", f"parent application {parent.id} has no category")
    return Category(parent.category)


def validate_amendment(
    kind: ApplicationKind,
    data: dict[str, Any] | None,
    parent: ApplicationModel,
    rules: RegistrationRules,
) -> AmendmentPayload:
    """Parse ``data`` for ``kind`` and check it against ``parent``."""
    payload = parse_payload(kind, data)
    category = _parent_category(parent)
    limits = rules.limits_for(category)

    if isinstance(payload, AddRoomsPayload):
        rooms = parent.room_configuration.merged_with(payload.rooms)
        ensure_within_limits(rooms, limits)
        implied = classify_rooms(rooms, rules.bands)
        if implied is not None and is_below(category, implied):
            raise ValidationError(
                "rooms",
                f"new room rates imply {implied.value}; "
                f"request a change of category from {category.value} first",
            )
    elif isinstance(payload, DeleteRoomsPayload):
        rooms = parent.room_configuration.without(payload.removals)
        if rooms.total_rooms < 1:
            raise ValidationError("rooms", "at least one room must remain")
        ensure_within_limits(rooms, limits)
    elif isinstance(payload, ChangeCategoryPayload):
        if payload.new_category.rank <= category.rank:
            raise ValidationError(
                "new_category",
                f"{payload.new_category.value} is not an upgrade from {category.value}",
            )
    return payload


def apply_amendment(
    request: ServiceRequestModel,
    parent: ApplicationModel,
    *,
    now: datetime,
) -> AmendmentOutcome:
    """Write the approved request's outcome onto ``parent``.  Does not flush."""
    kind = ApplicationKind(request.kind)
    if parent.status != ApplicationStatus.APPROVED.value:
        raise InvalidTransitionError(str(parent.id), parent.status, kind.value)

    payload = parse_payload(kind, request.payload)
    details: dict[str, Any] = {
        "service_request_id": str(request.id),
        "service_request_number": request.application_number,
    }
    to_status = parent.status

    if isinstance(payload, AddRoomsPayload):
        rooms = parent.room_configuration.merged_with(payload.rooms)
        parent.rooms = rooms.to_json()
        details["total_rooms"] = rooms.total_rooms
    elif isinstance(payload, DeleteRoomsPayload):
        rooms = parent.room_configuration.without(payload.removals)
        parent.rooms = rooms.to_json()
        details["total_rooms"] = rooms.total_rooms
    elif isinstance(payload, ChangeCategoryPayload):
        details["previous_category"] = parent.category
        parent.category = payload.new_category.value
        details["new_category"] = parent.category
    elif isinstance(payload, ChangeOwnershipPayload):
        details["previous_owner_id"] = parent.owner_id
        parent.owner_name = payload.new_owner.name
        parent.owner_mobile = payload.new_owner.mobile
        parent.owner_email = payload.new_owner.email
        parent.owner_aadhaar = payload.new_owner.aadhaar
        if payload.new_owner_gender is not None:
            parent.owner_gender = payload.new_owner_gender.value
        if payload.new_owner_id:
            parent.owner_id = payload.new_owner_id
        details["new_owner_id"] = parent.owner_id
    elif isinstance(payload, CancelCertificatePayload):
        to_status = ApplicationStatus.CERTIFICATE_CANCELLED.value
        parent.status = to_status
        parent.certificate_cancelled_at = now
        details["reason"] = payload.reason
        details["certificate_number"] = parent.certificate_number

    parent.updated_at = now
    logger.info(
        "amendment_applied",
        extra={
            "parent_application_id": str(parent.id),
            "service_request_id": str(request.id),
            "kind": kind.value,
            "parent_status": to_status,
        },
    )
    return AmendmentOutcome(
        action=kind.value,
        from_status=ApplicationStatus.APPROVED.value,
        to_status=to_status,
        details=details,
    )
