"""
Module: homestay_kernel.models.application
Responsibility: ORM persistence for primary homestay applications
    (new registration, renewal, existing-RC onboarding).

Architecture position: Kernel > Models.  May import from db/base.py and
    domain value objects only.

Invariants enforced:
    - Optimistic concurrency: ``version`` is the mapper's version_id_col,
      so every UPDATE/DELETE is conditional on the version that was read.
    - Certificate number, issue time and expiry are write-once
      (db/immutability.py).
    - A row may only be deleted while in ``draft``.

Failure modes:
    - StaleDataError (mapped to StaleStateError by the record store) on a
      lost race.
    - ImmutabilityViolationError on certificate rewrite or non-draft delete.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Any

from sqlalchemy import CheckConstraint, Date, Index, JSON, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from homestay_kernel.db.base import Base
from homestay_kernel.domain.application import Application, Certificate
from homestay_kernel.domain.values import (
    ApplicationKind,
    Category,
    Gender,
    LocationType,
    OwnerAttributes,
    OwnerIdentity,
    PaymentStatus,
    RoomConfiguration,
)
from homestay_kernel.models.workflow_record import WorkflowRecordMixin


class ApplicationModel(WorkflowRecordMixin, Base):
    """Persistent primary application.

    Contract:
        Status is stored as the raw string; the executor, not the database,
        validates it against the status enumeration so that a corrupted row
        is detected and refused rather than silently coerced.
    """

    __tablename__ = "applications"

    __table_args__ = (
        CheckConstraint(
            "correction_submission_count >= 0",
            name="ck_applications_correction_count_non_negative",
        ),
        Index("ix_applications_owner_kind", "owner_id", "kind"),
    )

    version: Mapped[int] = mapped_column(nullable=False)

    # Property
    property_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    district: Mapped[str | None] = mapped_column(String(100), nullable=True)
    address: Mapped[str | None] = mapped_column(Text, nullable=True)
    sub_division: Mapped[str | None] = mapped_column(String(100), nullable=True)
    location_type: Mapped[str | None] = mapped_column(String(10), nullable=True)
    rooms: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False, default=list)
    category: Mapped[str | None] = mapped_column(String(20), nullable=True)
    validity_years: Mapped[int] = mapped_column(nullable=False, default=1)
    gstin: Mapped[str | None] = mapped_column(String(15), nullable=True)
    legacy_certificate_number: Mapped[str | None] = mapped_column(String(100), nullable=True)

    # Owner
    owner_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    owner_mobile: Mapped[str | None] = mapped_column(String(20), nullable=True)
    owner_email: Mapped[str | None] = mapped_column(String(200), nullable=True)
    owner_aadhaar: Mapped[str | None] = mapped_column(String(12), nullable=True)
    owner_gender: Mapped[str | None] = mapped_column(String(10), nullable=True)

    # Certificate (write-once)
    certificate_number: Mapped[str | None] = mapped_column(
        String(40), nullable=True, unique=True,
    )
    certificate_issued_at: Mapped[datetime | None] = mapped_column(nullable=True)
    certificate_expiry_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    certificate_cancelled_at: Mapped[datetime | None] = mapped_column(nullable=True)

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self) -> str:
        return f"<Application {self.id} {self.kind} status={self.status} v{self.version}>"

    @property
    def room_configuration(self) -> RoomConfiguration:
        return RoomConfiguration.from_json(self.rooms)

    @property
    def owner_attributes(self) -> OwnerAttributes:
        return OwnerAttributes(gender=self.owner_gender, sub_division=self.sub_division)

    def to_dto(self) -> Application:
        """Convert ORM model to frozen domain DTO."""
        owner = None
        if self.owner_name or self.owner_mobile:
            owner = OwnerIdentity(
                name=self.owner_name or "",
                mobile=self.owner_mobile or "",
                email=self.owner_email,
                aadhaar=self.owner_aadhaar,
            )
        certificate = None
        if self.certificate_number is not None:
            certificate = Certificate(
                number=self.certificate_number,
                issued_at=self.certificate_issued_at,
                expiry_date=self.certificate_expiry_date,
            )
        return Application(
            id=self.id,
            owner_id=self.owner_id,
            kind=ApplicationKind(self.kind),
            status=self.status,
            version=self.version,
            created_at=self.created_at,
            updated_at=self.updated_at,
            application_number=self.application_number,
            property_name=self.property_name,
            district=self.district,
            address=self.address,
            location_type=LocationType(self.location_type) if self.location_type else None,
            owner=owner,
            owner_attributes=OwnerAttributes(
                gender=Gender(self.owner_gender) if self.owner_gender else None,
                sub_division=self.sub_division,
            ),
            rooms=self.room_configuration,
            category=Category(self.category) if self.category else None,
            validity_years=self.validity_years,
            gstin=self.gstin,
            legacy_certificate_number=self.legacy_certificate_number,
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
            certificate=certificate,
            certificate_cancelled_at=self.certificate_cancelled_at,
        )
