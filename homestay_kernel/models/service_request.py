"""
Module: homestay_kernel.models.service_request
Responsibility: ORM persistence for amendment (service request) records
    against an approved parent application.

Architecture position: Kernel > Models.  May import from db/base.py and
    domain value objects only.

Invariants enforced:
    - At most one active request per parent: ``active_slot`` holds the
      parent id while the request is non-terminal and NULL afterwards; a
      UNIQUE constraint on it makes a second concurrent creator fail at
      INSERT time rather than after a racy existence check.
    - Optimistic concurrency via ``version`` (version_id_col).

Failure modes:
    - IntegrityError on ``uq_service_requests_active_slot`` (mapped to
      ConflictingServiceRequestError by the router).
"""

from __future__ import annotations

from typing import Any
from uuid import UUID

from sqlalchemy import CheckConstraint, ForeignKey, JSON, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from homestay_kernel.db.base import Base, UUIDString
from homestay_kernel.domain.application import ServiceRequest
from homestay_kernel.domain.values import ApplicationKind, PaymentStatus
from homestay_kernel.models.workflow_record import WorkflowRecordMixin

ACTIVE_SLOT_CONSTRAINT = "uq_service_requests_active_slot"


class ServiceRequestModel(WorkflowRecordMixin, Base):
    """Persistent service request."""

    __tablename__ = "service_requests"

    __table_args__ = (
        UniqueConstraint("active_slot", name=ACTIVE_SLOT_CONSTRAINT),
        CheckConstraint(
            "correction_submission_count >= 0",
            name="ck_service_requests_correction_count_non_negative",
        ),
    )

    version: Mapped[int] = mapped_column(nullable=False)

    parent_application_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("applications.id"), nullable=False, index=True,
    )
    payload: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    active_slot: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self) -> str:
        return (
            f"<ServiceRequest {self.id} {self.kind} parent={self.parent_application_id} "
            f"status={self.status} v{self.version}>"
        )

    def to_dto(self) -> ServiceRequest:
        """Convert ORM model to frozen domain DTO."""
        return ServiceRequest(
            id=self.id,
            parent_application_id=self.parent_application_id,
            owner_id=self.owner_id,
            kind=ApplicationKind(self.kind),
            status=self.status,
            version=self.version,
            created_at=self.created_at,
            updated_at=self.updated_at,
            payload=dict(self.payload or {}),
            application_number=self.application_number,
            submitted_at=self.submitted_at,
            approved_at=self.approved_at,
            inspection_scheduled_at=self.inspection_scheduled_at,
            inspection_completed_at=self.inspection_completed_at,
            last_reverted_at=self.last_reverted_at,
            latest_correction=self.latest_correction,
            correction_submission_count=self.correction_submission_count,
            last_remark=self.last_remark,
            total_fee=self.total_fee,
            fee_inputs_hash=self.fee_inputs_hash,
            payment_status=PaymentStatus(self.payment_status),
            payment_reference=self.payment_reference,
            paid_amount=self.paid_amount,
        )
