"""
homestay_services.workflow_executor -- Workflow transition execution.

Responsibility:
    Executes state transitions of applications and service requests:
    role gate, remark and guard evaluation, routing between alternative
    targets, effects (numbers, fee snapshot, certificate, amendments),
    the transition log, and post-commit side effects.  Also hosts the
    record operations around the graph: create, edit, discard, payment
    callbacks and reads.

Architecture position:
    Services.  May import from homestay_engines/ (pure engines) and
    homestay_kernel/ (domain, db, models, services).  Receives the rules
    from homestay_config at construction; never reads configuration.

Invariants enforced:
    - Every operation runs in its own transaction (session_scope); the
      status change and its transition-log row commit together or not at
      all.
    - A lost optimistic-concurrency race or an ``expected_status``
      mismatch raises StaleStateError and changes nothing.
    - A persisted status outside the enumeration fails closed:
      CorruptedStatusError for every transition on that record.
    - Administrative overrides bypass only the role check; remarks and
      guards still apply.  Overrides are logged at WARNING and flagged on
      the transition log.
    - Side effects run after commit; their failures are queued on the
      SideEffectDispatcher and never undo the transition.

Failure modes:
    - InvalidTransitionError, ForbiddenActionError, PreconditionNotMetError,
      StaleStateError, CorruptedStatusError, ValidationError,
      RecordNotFoundError, DuplicateApplicationError.  Nothing retries.

Audit relevance:
    Each attempt, successful or refused, emits a ``workflow_transition``
    log record with its outcome and duration.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from datetime import UTC, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Callable
from uuid import UUID

from sqlalchemy.orm import Session, sessionmaker

from homestay_engines.fees import fee_inputs_hash, quote_fee, quote_upgrade_fee
from homestay_engines.policy_gate import allowed, check_action
from homestay_engines.stage import Progress, StageView, derive_progress, derive_stage
from homestay_kernel.db.engine import session_scope
from homestay_kernel.db.immutability import register_immutability_listeners
from homestay_kernel.domain.application import Application, ServiceRequest
from homestay_kernel.domain.clock import Clock, SystemClock
from homestay_kernel.domain.payloads import parse_payload
from homestay_kernel.domain.registration_workflow import (
    CONFIRM_PAYMENT,
    DISCARD,
    EFFECT_APPROVED,
    EFFECT_CORRECTION_RESUBMITTED,
    EFFECT_FIRST_SUBMISSION,
    EFFECT_INSPECTION_COMPLETED,
    EFFECT_INSPECTION_SCHEDULED,
    EFFECT_PAYMENT_RECORDED,
    EFFECT_REVERTED,
    REGISTRATION_WORKFLOW,
    SUBMIT,
    UPDATE_DRAFT,
)
from homestay_kernel.domain.rules import RegistrationRules
from homestay_kernel.domain.values import (
    CORRECTION_STATUSES,
    PRIMARY_KINDS,
    TERMINAL_STATUSES,
    ActorRole,
    ApplicationKind,
    ApplicationStatus,
    Category,
    LocationType,
    PaymentStatus,
)
from homestay_kernel.domain.workflow import Transition, Workflow
from homestay_kernel.exceptions import (
    CorruptedStatusError,
    DuplicateApplicationError,
    ForbiddenActionError,
    HomestayKernelError,
    InvalidTransitionError,
    PreconditionNotMetError,
    StaleStateError,
    ValidationError,
)
from homestay_kernel.logging_config import LogContext, get_logger
from homestay_kernel.models.application import ApplicationModel
from homestay_kernel.models.service_request import ServiceRequestModel
from homestay_kernel.services.record_store import RecordStore, WorkflowRecord
from homestay_kernel.services.transition_log_service import (
    TransitionLogService,
    TransitionRecord,
)
from homestay_services.amendments import AmendmentOutcome, apply_amendment
from homestay_services.collaborators import (
    DocumentStore,
    InMemoryDocumentStore,
    InMemoryInspectionService,
    InMemoryNotificationService,
    InMemoryPaymentGateway,
    InspectionService,
    NotificationService,
    PaymentGateway,
    SideEffectDispatcher,
)
from homestay_services.drafts import (
    CORRECTION_NOTE,
    apply_application_changes,
    apply_service_request_changes,
)
from homestay_services.guards import (
    GuardContext,
    GuardExecutor,
    default_guard_executor,
    parse_amount,
    parse_date,
)
from homestay_services.numbering import RecordNumbering, add_years

logger = get_logger("services.workflow_executor")

# Trace message and outcome codes for structured logging
TRACE_TYPE_WORKFLOW_TRANSITION = "WORKFLOW_TRANSITION"
OUTCOME_SUCCESS = "success"

RECORD_TYPE_APPLICATION = "application"
RECORD_TYPE_SERVICE_REQUEST = "service_request"

CREATE = "create"
RECORD_PAYMENT = "record_payment"

_OWNER_EDITABLE = frozenset({ApplicationStatus.DRAFT}) | CORRECTION_STATUSES

Record = Application | ServiceRequest


def _emit_workflow_trace(
    *,
    action: str,
    record_id: UUID | str,
    from_state: str | None,
    outcome: str,
    duration_ms: float,
    to_state: str | None = None,
    reason: str = "",
    override: bool = False,
) -> None:
    """Emit a structured workflow transition record."""
    record: dict[str, Any] = {
        "trace_type": TRACE_TYPE_WORKFLOW_TRANSITION,
        "ts": datetime.now(UTC).isoformat(),
        "workflow": REGISTRATION_WORKFLOW.name,
        "action": action,
        "entity_id": str(record_id),
        "from_state": from_state,
        "outcome": outcome,
        "reason": reason,
        "override": override,
        "duration_ms": round(duration_ms, 3),
    }
    if to_state is not None:
        record["to_state"] = to_state
    logger.info("workflow_transition", extra=record)


def _value(member: Enum | str) -> str:
    return member.value if isinstance(member, Enum) else str(member)


def _record_type(record: WorkflowRecord) -> str:
    if isinstance(record, ServiceRequestModel):
        return RECORD_TYPE_SERVICE_REQUEST
    return RECORD_TYPE_APPLICATION


@dataclass
class _PostCommit:
    name: str
    record_id: UUID
    call: Callable[[], None]


@dataclass
class _Attempt:
    """Mutable trace state for one transition attempt."""

    from_state: str | None = None
    to_state: str | None = None
    override: bool = False


class ApplicationWorkflowService:
    """The application state machine: every status change goes through here.

    Contract:
        Public methods return frozen DTOs (Application / ServiceRequest),
        never ORM instances.  Each call is one transaction.

    Usage:
        service = ApplicationWorkflowService(get_session_factory(), get_active_rules())
        app = service.create_application("owner-1", ApplicationKind.NEW_REGISTRATION, {...})
        app = service.submit_application(app.id)
        app = service.transition(app.id, ActorRole.DEALING_ASSISTANT, "forward_to_dtdo")
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        rules: RegistrationRules,
        *,
        clock: Clock | None = None,
        documents: DocumentStore | None = None,
        payments: PaymentGateway | None = None,
        notifications: NotificationService | None = None,
        inspections: InspectionService | None = None,
        dispatcher: SideEffectDispatcher | None = None,
        guards: GuardExecutor | None = None,
        workflow: Workflow = REGISTRATION_WORKFLOW,
    ) -> None:
        self._session_factory = session_factory
        self._rules = rules
        self._clock = clock or SystemClock()
        self._documents = documents or InMemoryDocumentStore()
        self._payments = payments or InMemoryPaymentGateway()
        self._notifications = notifications or InMemoryNotificationService()
        self._inspections = inspections or InMemoryInspectionService()
        self._dispatcher = dispatcher or SideEffectDispatcher()
        self._guards = guards or default_guard_executor()
        self._workflow = workflow
        register_immutability_listeners()

    @property
    def rules(self) -> RegistrationRules:
        return self._rules

    @property
    def clock(self) -> Clock:
        return self._clock

    @property
    def documents(self) -> DocumentStore:
        return self._documents

    @property
    def dispatcher(self) -> SideEffectDispatcher:
        return self._dispatcher

    @property
    def session_factory(self) -> sessionmaker[Session]:
        return self._session_factory

    # =========================================================================
    # Record lifecycle outside the status graph
    # =========================================================================

    def create_application(
        self,
        owner_id: str,
        kind: ApplicationKind | str = ApplicationKind.NEW_REGISTRATION,
        payload: dict[str, Any] | None = None,
        *,
        actor_id: str | None = None,
    ) -> Application:
        """Create a primary application in ``draft``.

        Raises:
            ValidationError: not a primary kind, or malformed payload.
            DuplicateApplicationError: the owner already has a live
                primary application.  A renewal may be opened while the
                live one is approved.
        """
        try:
            kind = ApplicationKind(kind)
        except ValueError as exc:
            raise ValidationError("kind", f"unknown kind {kind!r}") from exc
        if kind not in PRIMARY_KINDS:
            raise ValidationError(
                "kind", f"{kind.value} is a service request; use create_service_request",
            )
        if not owner_id:
            raise ValidationError("owner_id", "is required")

        now = self._clock.now()
        with session_scope(self._session_factory) as session:
            store = RecordStore(session)
            existing = store.live_primary_for_owner(owner_id)
            if existing is not None and not (
                kind is ApplicationKind.RENEWAL
                and existing.status == ApplicationStatus.APPROVED.value
            ):
                raise DuplicateApplicationError(owner_id, str(existing.id), existing.status)

            record = ApplicationModel(
                owner_id=owner_id,
                kind=kind.value,
                status=ApplicationStatus.DRAFT.value,
                created_at=now,
                updated_at=now,
                rooms=[],
                validity_years=self._rules.validity_options[0],
                correction_submission_count=0,
                payment_status=PaymentStatus.UNPAID.value,
            )
            apply_application_changes(record, payload or {}, self._rules)
            store.add(record)
            store.flush(record)
            TransitionLogService(session).append(
                record_id=record.id,
                record_type=RECORD_TYPE_APPLICATION,
                action=CREATE,
                from_status=None,
                to_status=ApplicationStatus.DRAFT.value,
                actor_role=ActorRole.PROPERTY_OWNER.value,
                actor_id=actor_id,
                occurred_at=now,
            )
            dto = record.to_dto()

        logger.info(
            "application_created",
            extra={"record_id": str(dto.id), "owner_id": owner_id, "kind": kind.value},
        )
        return dto

    def update_draft(
        self,
        record_id: UUID,
        actor_role: ActorRole | str,
        changes: dict[str, Any],
        *,
        actor_id: str | None = None,
    ) -> Record:
        """Owner edits while in ``draft`` or a correction-required status.

        In a correction-required status an optional ``correction_note`` is
        kept for the resubmission; the record stays awaiting the owner until
        it is resubmitted.
        """
        now = self._clock.now()
        with session_scope(self._session_factory) as session:
            store = RecordStore(session)
            record = store.get_record(record_id)
            status = self._parse_status(record)
            if status not in _OWNER_EDITABLE:
                raise InvalidTransitionError(str(record.id), status.value, UPDATE_DRAFT)
            if not check_action(actor_role, status, UPDATE_DRAFT, self._workflow).allowed:
                raise ForbiddenActionError(
                    str(record.id), _value(actor_role), UPDATE_DRAFT, status.value,
                )

            if isinstance(record, ServiceRequestModel):
                parent = store.get_application(record.parent_application_id)
                changed = apply_service_request_changes(record, parent, changes, self._rules)
            else:
                changed = apply_application_changes(record, changes, self._rules)

            # The correction time moves only on resubmission; an edit keeps
            # the record awaiting the owner.
            if status in CORRECTION_STATUSES:
                note = changes.get(CORRECTION_NOTE)
                if note:
                    record.latest_correction_note = str(note)
            record.updated_at = now
            store.flush(record)
            dto = record.to_dto()

        logger.info(
            "draft_updated",
            extra={"record_id": str(record_id), "status": status.value, "fields": changed},
        )
        return dto

    def discard(
        self,
        record_id: UUID,
        actor_role: ActorRole | str,
        *,
        actor_id: str | None = None,
    ) -> None:
        """Delete a draft.  Any other status raises InvalidTransitionError."""
        now = self._clock.now()
        with session_scope(self._session_factory) as session:
            store = RecordStore(session)
            record = store.get_record(record_id)
            status = self._parse_status(record)
            if status is not ApplicationStatus.DRAFT:
                raise InvalidTransitionError(str(record.id), status.value, DISCARD)
            if not check_action(actor_role, status, DISCARD, self._workflow).allowed:
                raise ForbiddenActionError(
                    str(record.id), _value(actor_role), DISCARD, status.value,
                )
            record_type = _record_type(record)
            store.delete(record)
            store.flush(record)
            TransitionLogService(session).append(
                record_id=record_id,
                record_type=record_type,
                action=DISCARD,
                from_status=status.value,
                to_status=None,
                actor_role=_value(actor_role),
                actor_id=actor_id,
                occurred_at=now,
            )

        logger.info("record_discarded", extra={"record_id": str(record_id)})

    # =========================================================================
    # Transitions
    # =========================================================================

    def submit_application(
        self,
        record_id: UUID,
        actor_role: ActorRole | str = ActorRole.PROPERTY_OWNER,
        payload: dict[str, Any] | None = None,
        *,
        expected_status: ApplicationStatus | str | None = None,
        actor_id: str | None = None,
    ) -> Record:
        """Owner submission of a draft (``transition(..., "submit")``)."""
        return self.transition(
            record_id, actor_role, SUBMIT, payload,
            expected_status=expected_status, actor_id=actor_id,
        )

    def transition(
        self,
        record_id: UUID,
        actor_role: ActorRole | str,
        action: str,
        payload: dict[str, Any] | None = None,
        *,
        expected_status: ApplicationStatus | str | None = None,
        actor_id: str | None = None,
    ) -> Record:
        """Move a record along the registration workflow.

        Args:
            payload: action inputs -- ``remark`` for reverts, objections and
                rejections; ``inspection_date``; ``findings`` and
                ``recommendation``; ``payment_reference`` and ``amount``;
                ``correction_note`` on resubmission.
            expected_status: the status the caller last saw.  A mismatch
                raises StaleStateError instead of acting on a record that
                moved on.

        Returns:
            The record after the transition.
        """
        t0 = time.monotonic()
        attempt = _Attempt()
        role = _value(actor_role)
        with LogContext.bind(record_id=str(record_id), actor_id=actor_id, actor_role=role):
            try:
                with session_scope(self._session_factory) as session:
                    dto, post_commit = self._transition_in_session(
                        session, record_id, role, action, dict(payload or {}),
                        expected_status, actor_id, attempt,
                    )
            except HomestayKernelError as exc:
                _emit_workflow_trace(
                    action=action,
                    record_id=record_id,
                    from_state=attempt.from_state,
                    outcome=exc.code.lower(),
                    reason=str(exc),
                    duration_ms=(time.monotonic() - t0) * 1000,
                    override=attempt.override,
                )
                raise

            _emit_workflow_trace(
                action=action,
                record_id=record_id,
                from_state=attempt.from_state,
                to_state=attempt.to_state,
                outcome=OUTCOME_SUCCESS,
                duration_ms=(time.monotonic() - t0) * 1000,
                override=attempt.override,
            )
            self._run_post_commit(post_commit)
        return dto

    def _transition_in_session(
        self,
        session: Session,
        record_id: UUID,
        role: str,
        action: str,
        payload: dict[str, Any],
        expected_status: ApplicationStatus | str | None,
        actor_id: str | None,
        attempt: _Attempt,
    ) -> tuple[Record, list[_PostCommit]]:
        store = RecordStore(session)
        record = store.get_record(record_id)
        from_status = self._parse_status(record)
        attempt.from_state = from_status.value

        if expected_status is not None:
            expected = ApplicationStatus.parse(_value(expected_status))
            if expected is not from_status:
                raise StaleStateError(
                    str(record.id), _value(expected_status), from_status.value,
                )

        candidates = self._workflow.candidates(from_status.value, action)
        if not candidates:
            raise InvalidTransitionError(str(record.id), from_status.value, action)

        decision = check_action(role, from_status, action, self._workflow)
        if not decision.allowed:
            raise ForbiddenActionError(str(record.id), role, action, from_status.value)
        if decision.override:
            attempt.override = True
            logger.warning(
                "admin_override",
                extra={
                    "record_id": str(record.id),
                    "action": action,
                    "from_status": from_status.value,
                    "actor_role": role,
                },
            )

        parent = None
        if isinstance(record, ServiceRequestModel):
            parent = store.get_application(record.parent_application_id)
        ctx = GuardContext(
            record=record,
            rules=self._rules,
            documents=self._documents,
            payload=payload,
            parent=parent,
        )
        selected = self._select_transition(record, action, candidates, ctx)
        remark = str(payload.get("remark") or "").strip() or None

        missing: list[str] = []
        if selected.requires_remark and remark is None:
            missing.append("remark")
        missing.extend(self._guards.missing_for(selected.guards, ctx))
        if missing:
            raise PreconditionNotMetError(str(record.id), action, missing)

        now = self._clock.now()
        attempt.to_state = selected.to_state
        post_commit: list[_PostCommit] = []

        record.status = selected.to_state
        record.updated_at = now
        if selected.requires_remark:
            record.last_remark = remark
        amendment = self._apply_effects(selected, record, parent, payload, remark, now, post_commit)
        if selected.to_state in (ApplicationStatus.APPROVED.value, ApplicationStatus.REJECTED.value):
            if isinstance(record, ServiceRequestModel):
                record.active_slot = None

        # Conditional UPDATE on the version read above; numbers and log
        # sequences are allocated only once it has succeeded.
        store.flush(record)
        self._allocate_numbers(selected, record, parent, session, now)

        log = TransitionLogService(session)
        log.append(
            record_id=record.id,
            record_type=_record_type(record),
            action=action,
            from_status=from_status.value,
            to_status=selected.to_state,
            actor_role=role,
            actor_id=actor_id,
            remark=remark,
            override=decision.override,
            occurred_at=now,
            details=self._log_details(selected, record, payload),
        )
        if amendment is not None and parent is not None:
            log.append(
                record_id=parent.id,
                record_type=RECORD_TYPE_APPLICATION,
                action=amendment.action,
                from_status=amendment.from_status,
                to_status=amendment.to_status,
                actor_role=role,
                actor_id=actor_id,
                override=decision.override,
                occurred_at=now,
                details=amendment.details,
            )
        store.flush(record)

        dto = record.to_dto()
        details = {"from_status": from_status.value, "to_status": selected.to_state, "remark": remark}
        post_commit.append(self._notify(action, dto, details))
        if amendment is not None and parent is not None and amendment.to_status != amendment.from_status:
            post_commit.append(self._notify(amendment.to_status, parent.to_dto(), amendment.details))
        if selected.to_state == ApplicationStatus.PAYMENT_PENDING.value:
            reference = record.application_number or str(record.id)
            amount = record.total_fee or Decimal("0")
            post_commit.append(_PostCommit(
                "payment_requested", record.id,
                lambda rid=record.id, ref=reference, amt=amount: self._payments.request_payment(rid, ref, amt),
            ))
        return dto, post_commit

    def _select_transition(
        self,
        record: WorkflowRecord,
        action: str,
        candidates: tuple[Transition, ...],
        ctx: GuardContext,
    ) -> Transition:
        """First candidate whose routing condition holds."""
        missing: list[str] = []
        for candidate in candidates:
            if candidate.route is None:
                return candidate
            route_missing = self._guards.missing(candidate.route, ctx)
            if not route_missing:
                return candidate
            missing.extend(route_missing)
        raise PreconditionNotMetError(str(record.id), action, missing)

    # -------------------------------------------------------------------------
    # Effects
    # -------------------------------------------------------------------------

    def _apply_effects(
        self,
        transition: Transition,
        record: WorkflowRecord,
        parent: ApplicationModel | None,
        payload: dict[str, Any],
        remark: str | None,
        now: datetime,
        post_commit: list[_PostCommit],
    ) -> AmendmentOutcome | None:
        amendment = None
        for effect in transition.effects:
            if effect == EFFECT_FIRST_SUBMISSION:
                record.submitted_at = now
                self._snapshot_fee(record, parent)
            elif effect == EFFECT_CORRECTION_RESUBMITTED:
                record.correction_submission_count += 1
                record.latest_correction_at = now
                note = payload.get(CORRECTION_NOTE)
                if note:
                    record.latest_correction_note = str(note)
                self._snapshot_fee(record, parent)
            elif effect == EFFECT_REVERTED:
                record.last_reverted_at = now
            elif effect == EFFECT_INSPECTION_SCHEDULED:
                record.inspection_scheduled_at = now
                inspection_date = parse_date(payload["inspection_date"], "inspection_date")
                details = {"notes": payload.get("notes")}
                post_commit.append(_PostCommit(
                    "inspection_scheduled", record.id,
                    lambda rid=record.id: self._inspections.schedule(rid, inspection_date, details),
                ))
            elif effect == EFFECT_INSPECTION_COMPLETED:
                record.inspection_completed_at = now
                report = {
                    "findings": payload["findings"],
                    "recommendation": payload["recommendation"],
                    "submitted_at": now.isoformat(),
                }
                record.inspection_report = report
                post_commit.append(_PostCommit(
                    "inspection_report_recorded", record.id,
                    lambda rid=record.id: self._inspections.record_report(rid, report),
                ))
            elif effect == EFFECT_PAYMENT_RECORDED:
                self._record_payment_fields(
                    record,
                    payload.get("payment_reference") or record.payment_reference,
                    parse_amount(payload["amount"]) if payload.get("amount") is not None
                    else record.paid_amount,
                    now,
                )
            elif effect == EFFECT_APPROVED:
                record.approved_at = now
                if isinstance(record, ApplicationModel):
                    record.certificate_issued_at = now
                    record.certificate_expiry_date = add_years(now.date(), record.validity_years)
                elif parent is not None:
                    amendment = apply_amendment(record, parent, now=now)
        return amendment

    def _allocate_numbers(
        self,
        transition: Transition,
        record: WorkflowRecord,
        parent: ApplicationModel | None,
        session: Session,
        now: datetime,
    ) -> None:
        numbering = RecordNumbering(session)
        if EFFECT_FIRST_SUBMISSION in transition.effects and record.application_number is None:
            if isinstance(record, ServiceRequestModel):
                district = parent.district if parent is not None else None
                record.application_number = numbering.service_request_number(district, now)
            else:
                record.application_number = numbering.application_number(record.district, now)
        if EFFECT_APPROVED in transition.effects and isinstance(record, ApplicationModel):
            record.certificate_number = numbering.certificate_number(now)
            logger.info(
                "certificate_issued",
                extra={
                    "record_id": str(record.id),
                    "certificate_number": record.certificate_number,
                    "expiry_date": record.certificate_expiry_date,
                },
            )

    def _record_payment_fields(
        self,
        record: WorkflowRecord,
        reference: str | None,
        amount: Decimal | None,
        now: datetime,
    ) -> None:
        record.payment_status = PaymentStatus.PAID.value
        record.payment_reference = reference
        record.paid_amount = amount
        record.paid_at = now

    @staticmethod
    def _log_details(
        transition: Transition,
        record: WorkflowRecord,
        payload: dict[str, Any],
    ) -> dict[str, Any] | None:
        details: dict[str, Any] = {}
        if EFFECT_FIRST_SUBMISSION in transition.effects:
            details["application_number"] = record.application_number
            details["total_fee"] = str(record.total_fee) if record.total_fee is not None else None
        if EFFECT_INSPECTION_SCHEDULED in transition.effects:
            details["inspection_date"] = str(payload.get("inspection_date"))
        if EFFECT_PAYMENT_RECORDED in transition.effects:
            details["payment_reference"] = record.payment_reference
            details["amount"] = str(record.paid_amount) if record.paid_amount is not None else None
        if EFFECT_APPROVED in transition.effects and isinstance(record, ApplicationModel):
            details["certificate_number"] = record.certificate_number
        return details or None

    # -------------------------------------------------------------------------
    # Fee snapshot
    # -------------------------------------------------------------------------

    def _compute_fee_snapshot(
        self,
        record: WorkflowRecord,
        parent: ApplicationModel | None,
    ) -> tuple[Decimal, str]:
        """Fee due and the hash of its inputs, for the record as it stands."""
        kind = ApplicationKind(record.kind)
        if isinstance(record, ServiceRequestModel):
            if parent is None:
                raise ValidationError("parent_application", "service request has no parent")
            category = Category(parent.category)
            location = LocationType(parent.location_type)
            owner = parent.owner_attributes
            if kind is ApplicationKind.CHANGE_CATEGORY:
                payload = parse_payload(kind, record.payload)
                upgrade = quote_upgrade_fee(
                    category, payload.new_category, location, parent.validity_years, owner,
                    rules=self._rules,
                )
                return upgrade.upgrade_fee, fee_inputs_hash(
                    payload.new_category, location, parent.validity_years, owner, self._rules,
                    kind=kind.value, previous_category=category,
                )
            return Decimal("0"), fee_inputs_hash(
                category, location, parent.validity_years, owner, self._rules, kind=kind.value,
            )

        category = Category(record.category)
        location = LocationType(record.location_type)
        breakdown = quote_fee(
            record.room_configuration, location, record.validity_years, record.owner_attributes,
            rules=self._rules, category=category,
        )
        return breakdown.total_fee, fee_inputs_hash(
            category, location, record.validity_years, record.owner_attributes, self._rules,
            kind=kind.value,
        )

    def _snapshot_fee(self, record: WorkflowRecord, parent: ApplicationModel | None) -> None:
        if record.payment_status == PaymentStatus.PAID.value:
            return
        record.total_fee, record.fee_inputs_hash = self._compute_fee_snapshot(record, parent)

    def verify_fee_snapshot(self, record_id: UUID) -> bool:
        """True when the stored fee snapshot matches a fresh computation."""
        with session_scope(self._session_factory) as session:
            store = RecordStore(session)
            record = store.get_record(record_id)
            if record.fee_inputs_hash is None:
                return False
            parent = None
            if isinstance(record, ServiceRequestModel):
                parent = store.get_application(record.parent_application_id)
            total, inputs_hash = self._compute_fee_snapshot(record, parent)
            matches = inputs_hash == record.fee_inputs_hash and total == record.total_fee
        if not matches:
            logger.warning("fee_snapshot_mismatch", extra={"record_id": str(record_id)})
        return matches

    # =========================================================================
    # Payment callbacks
    # =========================================================================

    def record_payment(
        self,
        record_id: UUID,
        reference: str,
        amount: Decimal | str | int,
        *,
        actor_id: str | None = None,
    ) -> Record:
        """Payment gateway confirmation.

        In ``payment_pending`` this drives ``confirm_payment`` (and so
        approval).  Earlier in review it records an upfront payment, which
        lets the DTDO's approval go straight to ``approved``.
        """
        if not reference or not str(reference).strip():
            raise ValidationError("payment_reference", "is required")
        paid = parse_amount(amount)

        with session_scope(self._session_factory) as session:
            record = RecordStore(session).get_record(record_id)
            status = self._parse_status(record)
        if status is ApplicationStatus.PAYMENT_PENDING:
            return self.transition(
                record_id,
                ActorRole.SYSTEM,
                CONFIRM_PAYMENT,
                {"payment_reference": reference, "amount": paid},
                expected_status=ApplicationStatus.PAYMENT_PENDING,
                actor_id=actor_id,
            )

        now = self._clock.now()
        with session_scope(self._session_factory) as session:
            store = RecordStore(session)
            record = store.get_record(record_id)
            status = self._parse_status(record)
            if (
                status in TERMINAL_STATUSES
                or status is ApplicationStatus.DRAFT
                or record.payment_status == PaymentStatus.PAID.value
            ):
                raise InvalidTransitionError(str(record.id), status.value, RECORD_PAYMENT)
            due = record.total_fee or Decimal("0")
            if paid < due:
                raise PreconditionNotMetError(
                    str(record.id), RECORD_PAYMENT, [f"amount: {paid} is below the fee due {due}"],
                )
            self._record_payment_fields(record, reference, paid, now)
            record.updated_at = now
            store.flush(record)
            TransitionLogService(session).append(
                record_id=record.id,
                record_type=_record_type(record),
                action=RECORD_PAYMENT,
                from_status=status.value,
                to_status=status.value,
                actor_role=ActorRole.SYSTEM.value,
                actor_id=actor_id,
                occurred_at=now,
                details={"payment_reference": reference, "amount": str(paid)},
            )
            dto = record.to_dto()

        logger.info(
            "payment_recorded",
            extra={"record_id": str(record_id), "status": status.value, "amount": paid},
        )
        self._run_post_commit([self._notify("payment_received", dto, {"amount": str(paid)})])
        return dto

    def record_payment_failure(
        self,
        record_id: UUID,
        reference: str | None = None,
        reason: str | None = None,
    ) -> Record:
        """Payment gateway failure.  The status does not change; the owner is told."""
        dto = self.get(record_id)
        logger.warning(
            "payment_failed",
            extra={"record_id": str(record_id), "payment_reference": reference, "reason": reason},
        )
        self._run_post_commit([
            self._notify("payment_failed", dto, {"payment_reference": reference, "reason": reason}),
        ])
        return dto

    # =========================================================================
    # Reads
    # =========================================================================

    def get(self, record_id: UUID) -> Record:
        with session_scope(self._session_factory) as session:
            return RecordStore(session).get_record(record_id).to_dto()

    def history(self, record_id: UUID) -> list[TransitionRecord]:
        with session_scope(self._session_factory) as session:
            return TransitionLogService(session).history(record_id)

    def stage(self, record_id: UUID) -> StageView:
        return derive_stage(self.get(record_id))

    def progress(self, record_id: UUID) -> Progress:
        return derive_progress(self.get(record_id), self._rules.inspection_exempt_kinds)

    def allowed_actions(self, record_id: UUID, actor_role: ActorRole | str) -> frozenset[str]:
        """Actions ``actor_role`` may attempt on the record right now."""
        return allowed(actor_role, self.get(record_id).status, self._workflow)

    # =========================================================================
    # Helpers
    # =========================================================================

    def _parse_status(self, record: WorkflowRecord) -> ApplicationStatus:
        status = ApplicationStatus.parse(record.status)
        if status is None:
            logger.error(
                "corrupted_status_detected",
                extra={"record_id": str(record.id), "raw_status": record.status},
            )
            raise CorruptedStatusError(str(record.id), record.status)
        return status

    def _notify(self, event: str, dto: Record, details: dict[str, Any]) -> _PostCommit:
        return _PostCommit(
            f"notify:{event}", dto.id,
            lambda: self._notifications.notify(event, dto, details),
        )

    def _run_post_commit(self, effects: list[_PostCommit]) -> None:
        for effect in effects:
            self._dispatcher.dispatch(effect.name, effect.record_id, effect.call)
