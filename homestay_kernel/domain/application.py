"""
Application DTOs -- immutable snapshots of persisted workflow records.

Responsibility:
    Read-side representations of a primary application and of a service
    request, detached from the ORM.  Every service operation returns one of
    these; callers never see live ORM instances.

Architecture position:
    Kernel > Domain -- pure value objects.  Built by
    ``homestay_kernel.models`` (``to_dto``), consumed by engines
    (``derive_stage``) and by callers.

Invariants enforced:
    - ``status`` is the raw persisted string so that a corrupted value
      survives the trip to the caller instead of being coerced;
      ``status_enum`` is None for such a value.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from homestay_kernel.domain.values import (
    ApplicationKind,
    ApplicationStatus,
    Category,
    LocationType,
    OwnerAttributes,
    OwnerIdentity,
    PaymentStatus,
    RoomConfiguration,
)


@dataclass(frozen=True)
class CorrectionNote:
    """Owner's latest correction: when it was made and what it says."""

    at: datetime
    note: str | None = None


@dataclass(frozen=True)
class Certificate:
    number: str
    issued_at: datetime
    expiry_date: date


@dataclass(frozen=True)
class Application:
    id: UUID
    owner_id: str
    kind: ApplicationKind
    status: str
    version: int
    created_at: datetime
    updated_at: datetime
    application_number: str | None = None
    property_name: str | None = None
    district: str | None = None
    address: str | None = None
    location_type: LocationType | None = None
    owner: OwnerIdentity | None = None
    owner_attributes: OwnerAttributes = field(default_factory=OwnerAttributes)
    rooms: RoomConfiguration = field(default_factory=RoomConfiguration)
    category: Category | None = None
    validity_years: int = 1
    gstin: str | None = None
    legacy_certificate_number: str | None = None
    submitted_at: datetime | None = None
    approved_at: datetime | None = None
    inspection_scheduled_at: datetime | None = None
    inspection_completed_at: datetime | None = None
    last_reverted_at: datetime | None = None
    latest_correction: CorrectionNote | None = None
    correction_submission_count: int = 0
    last_remark: str | None = None
    total_fee: Decimal | None = None
    fee_inputs_hash: str | None = None
    payment_status: PaymentStatus = PaymentStatus.UNPAID
    payment_reference: str | None = None
    paid_amount: Decimal | None = None
    certificate: Certificate | None = None
    certificate_cancelled_at: datetime | None = None

    @property
    def status_enum(self) -> ApplicationStatus | None:
        return ApplicationStatus.parse(self.status)

    @property
    def is_service_request(self) -> bool:
        return False


@dataclass(frozen=True)
class ServiceRequest:
    """An amendment against an approved parent application."""

    id: UUID
    parent_application_id: UUID
    owner_id: str
    kind: ApplicationKind
    status: str
    version: int
    created_at: datetime
    updated_at: datetime
    payload: dict[str, Any] = field(default_factory=dict)
    application_number: str | None = None
    submitted_at: datetime | None = None
    approved_at: datetime | None = None
    inspection_scheduled_at: datetime | None = None
    inspection_completed_at: datetime | None = None
    last_reverted_at: datetime | None = None
    latest_correction: CorrectionNote | None = None
    correction_submission_count: int = 0
    last_remark: str | None = None
    total_fee: Decimal | None = None
    fee_inputs_hash: str | None = None
    payment_status: PaymentStatus = PaymentStatus.UNPAID
    payment_reference: str | None = None
    paid_amount: Decimal | None = None

    @property
    def status_enum(self) -> ApplicationStatus | None:
        return ApplicationStatus.parse(self.status)

    @property
    def fee_delta(self) -> Decimal | None:
        """Amount charged for the amendment (the upgrade difference for a category change)."""
        return self.total_fee

    @property
    def is_service_request(self) -> bool:
        return True
