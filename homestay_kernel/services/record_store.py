"""
RecordStore -- load and persist workflow records under optimistic concurrency.

Responsibility:
    Looks up applications and service requests by id, finds a parent's
    active request or an owner's live application, and flushes changes,
    translating SQLAlchemy's version-mismatch and unique-slot failures
    into kernel exceptions.

Architecture position:
    Kernel > Services.  Used by ``homestay_services``; never commits.

Invariants enforced:
    - A flush that updates or deletes a row whose version moved on since it
      was read raises StaleStateError; the caller's transaction is then
      rolled back by session_scope().

Failure modes:
    - RecordNotFoundError for an unknown id.
    - StaleStateError on a lost optimistic-concurrency race.
    - ConflictingServiceRequestError when the active-slot unique
      constraint rejects a second active request.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from homestay_kernel.domain.values import ApplicationStatus, PRIMARY_KINDS
from homestay_kernel.exceptions import (
    ConflictingServiceRequestError,
    RecordNotFoundError,
    StaleStateError,
)
from homestay_kernel.logging_config import get_logger
from homestay_kernel.models.application import ApplicationModel
from homestay_kernel.models.service_request import (
    ACTIVE_SLOT_CONSTRAINT,
    ServiceRequestModel,
)

logger = get_logger("services.record_store")

WorkflowRecord = ApplicationModel | ServiceRequestModel

# A primary application in one of these no longer blocks a new one.
_CLOSED_PRIMARY_STATUSES = (
    ApplicationStatus.REJECTED.value,
    ApplicationStatus.CERTIFICATE_CANCELLED.value,
)


class RecordStore:
    def __init__(self, session: Session):
        self._session = session

    @property
    def session(self) -> Session:
        return self._session

    # -------------------------------------------------------------------------
    # Lookups
    # -------------------------------------------------------------------------

    def get_application(self, record_id: UUID) -> ApplicationModel:
        record = self._session.get(ApplicationModel, record_id)
        if record is None:
            raise RecordNotFoundError(str(record_id))
        return record

    def get_service_request(self, record_id: UUID) -> ServiceRequestModel:
        record = self._session.get(ServiceRequestModel, record_id)
        if record is None:
            raise RecordNotFoundError(str(record_id))
        return record

    def get_record(self, record_id: UUID) -> WorkflowRecord:
        """Application or service request with this id."""
        record = self._session.get(ApplicationModel, record_id)
        if record is None:
            record = self._session.get(ServiceRequestModel, record_id)
        if record is None:
            raise RecordNotFoundError(str(record_id))
        return record

    def live_primary_for_owner(self, owner_id: str) -> ApplicationModel | None:
        """The owner's primary application that still blocks a new one."""
        return self._session.execute(
            select(ApplicationModel)
            .where(ApplicationModel.owner_id == owner_id)
            .where(ApplicationModel.kind.in_([k.value for k in PRIMARY_KINDS]))
            .where(ApplicationModel.status.not_in(_CLOSED_PRIMARY_STATUSES))
            .order_by(ApplicationModel.created_at.desc())
            .limit(1)
        ).scalar_one_or_none()

    def active_service_request(self, parent_id: UUID) -> ServiceRequestModel | None:
        return self._session.execute(
            select(ServiceRequestModel).where(ServiceRequestModel.active_slot == parent_id)
        ).scalar_one_or_none()

    def service_requests_for(self, parent_id: UUID) -> list[ServiceRequestModel]:
        return list(
            self._session.execute(
                select(ServiceRequestModel)
                .where(ServiceRequestModel.parent_application_id == parent_id)
                .order_by(ServiceRequestModel.created_at)
            ).scalars()
        )

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    def add(self, record: WorkflowRecord) -> None:
        self._session.add(record)

    def delete(self, record: WorkflowRecord) -> None:
        self._session.delete(record)

    def flush(self, record: WorkflowRecord) -> None:
        """Flush pending changes, translating concurrency failures.

        Identifiers are read before flushing: a failed flush leaves the
        session pending rollback, and an expired attribute cannot be
        loaded from it.
        """
        record_id = record.id
        parent_id = getattr(record, "parent_application_id", None)
        try:
            self._session.flush()
        except StaleDataError as exc:
            logger.info(
                "stale_write_rejected",
                extra={"record_id": str(record_id)},
            )
            raise StaleStateError(str(record_id)) from exc
        except IntegrityError as exc:
            if ACTIVE_SLOT_CONSTRAINT in str(exc.orig) or "active_slot" in str(exc.orig):
                raise ConflictingServiceRequestError(str(parent_id)) from exc
            raise
