"""
homestay_services.guards -- Evaluation of workflow guards and routes.

Responsibility:
    Transitions declare their guards by name (``Guard`` in
    ``homestay_kernel.domain.workflow``); this module holds the logic
    behind each name.  An evaluator returns the list of missing items, so
    a refused submission can tell the owner everything that is missing at
    once rather than one item per attempt.

Architecture position:
    Services.  Reads records and the document store; never writes.

Invariants enforced:
    - A guard with no registered evaluator fails (fail closed).
    - Guards of a transition are evaluated in declaration order and their
      missing items are aggregated.

Failure modes:
    - ValidationError propagates from the amendment-payload, inspection
      date and payment amount evaluators when the supplied value is
      malformed, as opposed to merely absent.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Callable

from homestay_engines.category import classify_rooms, is_below
from homestay_engines.rooms import room_limit_violations
from homestay_kernel.domain.payloads import ChangeOwnershipPayload
from homestay_kernel.domain.registration_workflow import (
    AMENDMENT_PAYLOAD,
    CATEGORY_FLOOR,
    FEE_SETTLED,
    INSPECTION_DATE,
    INSPECTION_EXEMPT,
    INSPECTION_REPORT,
    PAYMENT_COVERS_FEE,
    PAYMENT_REFERENCE,
    PREMIUM_REQUIREMENTS,
    REQUIRED_DOCUMENTS,
    REQUIRED_FIELDS,
    ROOM_LIMITS,
)
from homestay_kernel.domain.rules import RegistrationRules
from homestay_kernel.domain.values import ApplicationKind, Category
from homestay_kernel.domain.workflow import Guard
from homestay_kernel.exceptions import ValidationError
from homestay_kernel.logging_config import get_logger
from homestay_kernel.models.application import ApplicationModel
from homestay_kernel.services.record_store import WorkflowRecord
from homestay_services.amendments import validate_amendment
from homestay_services.collaborators import DocumentStore

logger = get_logger("services.guards")


@dataclass
class GuardContext:
    """Everything a guard may look at."""

    record: WorkflowRecord
    rules: RegistrationRules
    documents: DocumentStore
    payload: dict[str, Any] = field(default_factory=dict)
    parent: ApplicationModel | None = None

    @property
    def kind(self) -> ApplicationKind:
        return ApplicationKind(self.record.kind)

    @property
    def is_service_request(self) -> bool:
        return self.kind.is_service_request


Evaluator = Callable[[GuardContext], list[str]]


# ---------------------------------------------------------------------------
# Value parsing
# ---------------------------------------------------------------------------


def parse_date(value: Any, field_name: str) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value))
    except ValueError as exc:
        raise ValidationError(field_name, f"not an ISO date: {value!r}") from exc


def parse_amount(value: Any, field_name: str = "amount") -> Decimal:
    if isinstance(value, float):
        value = str(value)
    try:
        amount = Decimal(value)
    except (InvalidOperation, TypeError, ValueError) as exc:
        raise ValidationError(field_name, f"not a number: {value!r}") from exc
    if amount < 0:
        raise ValidationError(field_name, f"must not be negative, got {amount}")
    return amount


def _blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


# ---------------------------------------------------------------------------
# Submission guards
# ---------------------------------------------------------------------------

_PRIMARY_FIELDS = (
    "property_name",
    "district",
    "address",
    "location_type",
    "owner_name",
    "owner_mobile",
    "category",
)


def _required_fields(ctx: GuardContext) -> list[str]:
    if ctx.is_service_request:
        return []
    record = ctx.record
    missing = [name for name in _PRIMARY_FIELDS if _blank(getattr(record, name))]
    if record.room_configuration.total_rooms == 0:
        missing.append("rooms")
    if record.validity_years not in ctx.rules.validity_options:
        missing.append("validity_years")
    if ctx.kind is ApplicationKind.EXISTING_RC_ONBOARDING and _blank(record.legacy_certificate_number):
        missing.append("legacy_certificate_number")
    return missing


def _required_documents(ctx: GuardContext) -> list[str]:
    required = ctx.rules.documents.required_for(ctx.kind)
    return [
        f"document:{doc}"
        for doc in required
        if not ctx.documents.has_document(ctx.record.id, doc)
    ]


def _premium_requirements(ctx: GuardContext) -> list[str]:
    if ctx.is_service_request or ctx.record.category is None:
        return []
    if not Category(ctx.record.category).is_premium():
        return []
    missing: list[str] = []
    gstin = (ctx.record.gstin or "").strip().upper()
    if not gstin or not re.match(ctx.rules.gstin_pattern, gstin):
        missing.append("gstin")
    missing.extend(
        f"document:{doc}"
        for doc in ctx.rules.documents.premium_documents
        if not ctx.documents.has_document(ctx.record.id, doc)
    )
    return missing


def _room_limits(ctx: GuardContext) -> list[str]:
    if ctx.is_service_request:
        return []
    record = ctx.record
    category = Category(record.category) if record.category else None
    limits = ctx.rules.limits_for(category)
    return [f"rooms: {v}" for v in room_limit_violations(record.room_configuration, limits)]


def _category_floor(ctx: GuardContext) -> list[str]:
    if ctx.is_service_request or ctx.record.category is None:
        return []
    implied = classify_rooms(ctx.record.room_configuration, ctx.rules.bands)
    chosen = Category(ctx.record.category)
    if implied is not None and is_below(chosen, implied):
        return [f"category: room rates require at least {implied.value}"]
    return []


def _amendment_payload(ctx: GuardContext) -> list[str]:
    if not ctx.is_service_request:
        return []
    if ctx.parent is None:
        return ["parent_application"]
    payload = validate_amendment(ctx.kind, ctx.record.payload, ctx.parent, ctx.rules)
    if isinstance(payload, ChangeOwnershipPayload):
        doc = ctx.rules.documents.ownership_transfer_document
        if not ctx.documents.has_document(ctx.record.id, doc):
            return [f"document:{doc}"]
    return []


# ---------------------------------------------------------------------------
# Review and payment guards
# ---------------------------------------------------------------------------


def _inspection_date(ctx: GuardContext) -> list[str]:
    value = ctx.payload.get("inspection_date")
    if _blank(value):
        return ["inspection_date"]
    parse_date(value, "inspection_date")
    return []


def _inspection_report(ctx: GuardContext) -> list[str]:
    return [name for name in ("findings", "recommendation") if _blank(ctx.payload.get(name))]


def _payment_reference(ctx: GuardContext) -> list[str]:
    reference = ctx.payload.get("payment_reference") or ctx.record.payment_reference
    return ["payment_reference"] if _blank(reference) else []


def _payment_covers_fee(ctx: GuardContext) -> list[str]:
    raw = ctx.payload.get("amount")
    amount = parse_amount(raw) if raw is not None else ctx.record.paid_amount
    if amount is None:
        return ["amount"]
    due = ctx.record.total_fee or Decimal("0")
    if amount < due:
        return [f"amount: {amount} is below the fee due {due}"]
    return []


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------


def _inspection_exempt(ctx: GuardContext) -> list[str]:
    if ctx.kind in ctx.rules.inspection_exempt_kinds:
        return []
    return ["inspection: a site inspection is required before approval"]


def _fee_settled(ctx: GuardContext) -> list[str]:
    return [] if ctx.record.is_fee_settled else ["payment"]


class GuardExecutor:
    """Evaluates workflow guards against a GuardContext.

    Guards are declared on transitions (name + description).  This executor
    holds the evaluation logic per guard name and is called by the workflow
    executor before a transition is allowed.
    """

    def __init__(self) -> None:
        self._evaluators: dict[str, Evaluator] = {}

    def register(self, guard: Guard | str, evaluator: Evaluator) -> None:
        name = guard.name if isinstance(guard, Guard) else guard
        self._evaluators[name] = evaluator

    def missing(self, guard: Guard, ctx: GuardContext) -> list[str]:
        """Missing items for one guard; empty when it passes."""
        fn = self._evaluators.get(guard.name)
        if fn is None:
            logger.warning("guard_no_evaluator", extra={"guard_name": guard.name})
            return [f"guard:{guard.name}"]
        return fn(ctx)

    def missing_for(self, guards: tuple[Guard, ...], ctx: GuardContext) -> list[str]:
        missing: list[str] = []
        for guard in guards:
            for item in self.missing(guard, ctx):
                if item not in missing:
                    missing.append(item)
        return missing

    def passes(self, guard: Guard, ctx: GuardContext) -> bool:
        return not self.missing(guard, ctx)


def default_guard_executor() -> GuardExecutor:
    """Return a GuardExecutor with the registration evaluators registered."""
    ex = GuardExecutor()
    ex.register(REQUIRED_FIELDS, _required_fields)
    ex.register(REQUIRED_DOCUMENTS, _required_documents)
    ex.register(PREMIUM_REQUIREMENTS, _premium_requirements)
    ex.register(ROOM_LIMITS, _room_limits)
    ex.register(CATEGORY_FLOOR, _category_floor)
    ex.register(AMENDMENT_PAYLOAD, _amendment_payload)
    ex.register(INSPECTION_DATE, _inspection_date)
    ex.register(INSPECTION_REPORT, _inspection_report)
    ex.register(PAYMENT_REFERENCE, _payment_reference)
    ex.register(PAYMENT_COVERS_FEE, _payment_covers_fee)
    ex.register(INSPECTION_EXEMPT, _inspection_exempt)
    ex.register(FEE_SETTLED, _fee_settled)
    return ex
