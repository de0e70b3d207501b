"""
Owner edits to an application or service request.

``apply_changes`` validates a dict of field changes and writes it onto the
ORM row.  Only the fields listed in ``EDITABLE_FIELDS`` may be changed; a
service request exposes its payload only, re-validated against its parent.
Workflow columns (status, counters, numbers, fee snapshot, certificate)
are never editable this way.
"""

from __future__ import annotations

from typing import Any, Callable

from homestay_kernel.domain.rules import RegistrationRules
from homestay_kernel.domain.values import (
    ApplicationKind,
    Category,
    Gender,
    LocationType,
    RoomConfiguration,
)
from homestay_kernel.exceptions import ValidationError
from homestay_kernel.models.application import ApplicationModel
from homestay_kernel.models.service_request import ServiceRequestModel
from homestay_services.amendments import validate_amendment

# Carried alongside edits made in a correction status; not a column.
CORRECTION_NOTE = "correction_note"


def _text(max_len: int) -> Callable[[str, Any], str | None]:
    def parse(name: str, value: Any) -> str | None:
        if value is None:
            return None
        if not isinstance(value, str):
            raise ValidationError(name, "expected text")
        value = value.strip()
        if len(value) > max_len:
            raise ValidationError(name, f"longer than {max_len} characters")
        return value or None
    return parse


def _enum(enum_cls: type) -> Callable[[str, Any], str | None]:
    def parse(name: str, value: Any) -> str | None:
        if value is None:
            return None
        try:
            return enum_cls(value).value
        except ValueError as exc:
            raise ValidationError(name, f"unknown value {value!r}") from exc
    return parse


def _rooms(name: str, value: Any) -> list[dict[str, Any]]:
    if not isinstance(value, list):
        raise ValidationError(name, "expected a list of room lines")
    return RoomConfiguration.from_json(value).to_json()


def _validity(name: str, value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(name, f"must be an integer, got {value!r}")
    return value


_PARSERS: dict[str, Callable[[str, Any], Any]] = {
    "property_name": _text(200),
    "district": _text(100),
    "address": _text(2000),
    "sub_division": _text(100),
    "location_type": _enum(LocationType),
    "rooms": _rooms,
    "category": _enum(Category),
    "validity_years": _validity,
    "gstin": _text(15),
    "legacy_certificate_number": _text(100),
    "owner_gender": _enum(Gender),
}

_OWNER_COLUMNS = {
    "name": ("owner_name", _text(200)),
    "mobile": ("owner_mobile", _text(20)),
    "email": ("owner_email", _text(200)),
    "aadhaar": ("owner_aadhaar", _text(12)),
}

EDITABLE_FIELDS = frozenset(_PARSERS) | {"owner"}


def _apply_owner(record: ApplicationModel, value: Any) -> None:
    if not isinstance(value, dict):
        raise ValidationError("owner", "expected an object")
    for key, raw in value.items():
        if key not in _OWNER_COLUMNS:
            raise ValidationError(f"owner.{key}", "is not editable")
        column, parse = _OWNER_COLUMNS[key]
        setattr(record, column, parse(f"owner.{key}", raw))


def apply_application_changes(
    record: ApplicationModel,
    changes: dict[str, Any],
    rules: RegistrationRules,
) -> list[str]:
    """Write ``changes`` onto a primary application.  Returns changed field names."""
    changed: list[str] = []
    for name, value in changes.items():
        if name == CORRECTION_NOTE:
            continue
        if name == "owner":
            _apply_owner(record, value)
        elif name in _PARSERS:
            parsed = _PARSERS[name](name, value)
            if name == "validity_years" and parsed not in rules.validity_options:
                raise ValidationError(
                    name,
                    f"must be one of {', '.join(str(o) for o in rules.validity_options)}",
                )
            setattr(record, name, parsed)
        else:
            raise ValidationError(name, "is not editable")
        changed.append(name)
    return changed


def apply_service_request_changes(
    request: ServiceRequestModel,
    parent: ApplicationModel,
    changes: dict[str, Any],
    rules: RegistrationRules,
) -> list[str]:
    """Replace a service request's payload after validating it against ``parent``."""
    unknown = [k for k in changes if k not in ("payload", CORRECTION_NOTE)]
    if unknown:
        raise ValidationError(unknown[0], "is not editable on a service request")
    if "payload" not in changes:
        return []
    payload = validate_amendment(ApplicationKind(request.kind), changes["payload"], parent, rules)
    request.payload = payload.to_json()
    return ["payload"]
