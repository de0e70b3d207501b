"""
homestay_services.service_request_router -- Amendments to approved applications.

Responsibility:
    Opens service requests (add rooms, delete rooms, change category,
    change ownership, cancel certificate) against an approved parent
    application and answers questions about them.  Once created, a request
    moves through the same transition table as an application, via
    ``ApplicationWorkflowService.transition``; its outcome is applied to
    the parent when it is approved.

Architecture position:
    Services.  Thin layer over the workflow service, sharing its session
    factory, rules and clock.

Invariants enforced:
    - Only an ``approved`` parent may be amended.
    - At most one active (non-terminal, drafts included) request per
      parent.  The ``active_slot`` unique column enforces this at INSERT
      time, so two concurrent creators cannot both succeed.
    - Payloads are validated per kind against the parent before the
      request exists.

Failure modes:
    - ConflictingServiceRequestError when the parent already has an
      active request.
    - InvalidTransitionError when the parent is not approved.
    - ForbiddenActionError when ``owner_id`` is not the parent's owner.
    - ValidationError for a malformed or limit-breaking payload.
"""

from __future__ import annotations

from typing import Any
from uuid import UUID

from homestay_engines.fees import quote_upgrade_fee
from homestay_kernel.db.engine import session_scope
from homestay_kernel.domain.application import ServiceRequest
from homestay_kernel.domain.fees import UpgradeFeeBreakdown
from homestay_kernel.domain.registration_workflow import SUBMIT
from homestay_kernel.domain.values import (
    ActorRole,
    ApplicationKind,
    ApplicationStatus,
    Category,
    LocationType,
    PaymentStatus,
)
from homestay_kernel.exceptions import (
    ConflictingServiceRequestError,
    CorruptedStatusError,
    ForbiddenActionError,
    InvalidTransitionError,
    ValidationError,
)
from homestay_kernel.logging_config import LogContext, get_logger
from homestay_kernel.models.service_request import ServiceRequestModel
from homestay_kernel.services.record_store import RecordStore
from homestay_kernel.services.transition_log_service import TransitionLogService
from homestay_services.amendments import validate_amendment
from homestay_services.workflow_executor import (
    CREATE,
    RECORD_TYPE_SERVICE_REQUEST,
    ApplicationWorkflowService,
)

logger = get_logger("services.service_request_router")


class ServiceRequestRouter:
    """Creates and looks up amendment requests against approved applications."""

    def __init__(self, workflow: ApplicationWorkflowService):
        self._workflow = workflow

    def create_service_request(
        self,
        parent_id: UUID,
        kind: ApplicationKind | str,
        payload: dict[str, Any] | None,
        owner_id: str | None = None,
        *,
        actor_id: str | None = None,
    ) -> ServiceRequest:
        """Open a draft request of ``kind`` against ``parent_id``.

        Preconditions:
            The parent is approved and has no active request.

        Postconditions:
            A draft request owning the parent's active slot.
        """
        try:
            kind = ApplicationKind(kind)
        except ValueError as exc:
            raise ValidationError("kind", f"unknown kind {kind!r}") from exc
        if not kind.is_service_request:
            raise ValidationError("kind", f"{kind.value} is not a service request kind")

        now = self._workflow.clock.now()
        with LogContext.bind(record_id=str(parent_id), actor_id=actor_id):
            with session_scope(self._workflow.session_factory) as session:
                store = RecordStore(session)
                parent = store.get_application(parent_id)
                parent_status = ApplicationStatus.parse(parent.status)
                if parent_status is None:
                    raise CorruptedStatusError(str(parent.id), parent.status)
                if parent_status is not ApplicationStatus.APPROVED:
                    raise InvalidTransitionError(str(parent.id), parent.status, kind.value)
                if owner_id is not None and owner_id != parent.owner_id:
                    raise ForbiddenActionError(
                        str(parent.id), ActorRole.PROPERTY_OWNER.value, kind.value, parent.status,
                    )

                active = store.active_service_request(parent.id)
                if active is not None:
                    raise ConflictingServiceRequestError(str(parent.id), str(active.id))

                validated = validate_amendment(kind, payload, parent, self._workflow.rules)
                request = ServiceRequestModel(
                    parent_application_id=parent.id,
                    owner_id=parent.owner_id,
                    kind=kind.value,
                    status=ApplicationStatus.DRAFT.value,
                    payload=validated.to_json(),
                    active_slot=parent.id,
                    created_at=now,
                    updated_at=now,
                    correction_submission_count=0,
                    payment_status=PaymentStatus.UNPAID.value,
                )
                store.add(request)
                store.flush(request)
                TransitionLogService(session).append(
                    record_id=request.id,
                    record_type=RECORD_TYPE_SERVICE_REQUEST,
                    action=CREATE,
                    from_status=None,
                    to_status=ApplicationStatus.DRAFT.value,
                    actor_role=ActorRole.PROPERTY_OWNER.value,
                    actor_id=actor_id,
                    occurred_at=now,
                    details={"parent_application_id": str(parent.id), "kind": kind.value},
                )
                dto = request.to_dto()

        logger.info(
            "service_request_created",
            extra={
                "service_request_id": str(dto.id),
                "parent_application_id": str(parent_id),
                "kind": kind.value,
            },
        )
        return dto

    def submit(
        self,
        request_id: UUID,
        payload: dict[str, Any] | None = None,
        *,
        actor_id: str | None = None,
    ) -> ServiceRequest:
        """Owner submission of a draft request."""
        return self._workflow.transition(
            request_id, ActorRole.PROPERTY_OWNER, SUBMIT, payload, actor_id=actor_id,
        )

    def active_request(self, parent_id: UUID) -> ServiceRequest | None:
        with session_scope(self._workflow.session_factory) as session:
            request = RecordStore(session).active_service_request(parent_id)
            return request.to_dto() if request is not None else None

    def requests_for(self, parent_id: UUID) -> list[ServiceRequest]:
        with session_scope(self._workflow.session_factory) as session:
            return [r.to_dto() for r in RecordStore(session).service_requests_for(parent_id)]

    def quote_upgrade(self, parent_id: UUID, new_category: Category | str) -> UpgradeFeeBreakdown:
        """Upgrade fee the parent would pay to move to ``new_category``."""
        with session_scope(self._workflow.session_factory) as session:
            parent = RecordStore(session).get_application(parent_id)
            if parent.category is None or parent.location_type is None:
                raise ValidationError("category", f"application {parent.id} has no category yet")
            previous = Category(parent.category)
            location = LocationType(parent.location_type)
            validity = parent.validity_years
            owner = parent.owner_attributes
        return quote_upgrade_fee(
            previous, Category(new_category), location, validity, owner,
            rules=self._workflow.rules,
        )
