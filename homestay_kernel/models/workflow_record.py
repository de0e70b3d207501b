"""
Module: homestay_kernel.models.workflow_record
Responsibility: Columns shared by every record that moves through the
    registration workflow -- primary applications and service requests.

Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - correction_submission_count >= 0 (check constraint on each table) and
      never decreases (ORM listener in db/immutability.py).
    - application_number is unique per table and write-once.

Audit relevance:
    The correction, revert and payment columns are exactly what
    derive_stage and the fee routing read; they are written only by the
    workflow executor.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import JSON, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from homestay_kernel.domain.application import CorrectionNote
from homestay_kernel.domain.values import PaymentStatus


class WorkflowRecordMixin:
    """Status, counters, review and payment columns of a workflow record."""

    owner_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    kind: Mapped[str] = mapped_column(String(40), nullable=False)
    status: Mapped[str] = mapped_column(String(40), nullable=False, index=True)
    application_number: Mapped[str | None] = mapped_column(
        String(40), nullable=True, unique=True,
    )

    created_at: Mapped[datetime] = mapped_column(nullable=False)
    updated_at: Mapped[datetime] = mapped_column(nullable=False)
    submitted_at: Mapped[datetime | None] = mapped_column(nullable=True)
    approved_at: Mapped[datetime | None] = mapped_column(nullable=True)
    inspection_scheduled_at: Mapped[datetime | None] = mapped_column(nullable=True)
    inspection_completed_at: Mapped[datetime | None] = mapped_column(nullable=True)
    inspection_report: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)

    # Correction loop
    correction_submission_count: Mapped[int] = mapped_column(nullable=False, default=0)
    latest_correction_at: Mapped[datetime | None] = mapped_column(nullable=True)
    latest_correction_note: Mapped[str | None] = mapped_column(Text, nullable=True)
    last_reverted_at: Mapped[datetime | None] = mapped_column(nullable=True)
    last_remark: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Fee snapshot and payment
    total_fee: Mapped[Decimal | None] = mapped_column(nullable=True)
    fee_inputs_hash: Mapped[str | None] = mapped_column(String(64), nullable=True)
    payment_status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=PaymentStatus.UNPAID.value,
    )
    payment_reference: Mapped[str | None] = mapped_column(String(100), nullable=True)
    paid_amount: Mapped[Decimal | None] = mapped_column(nullable=True)
    paid_at: Mapped[datetime | None] = mapped_column(nullable=True)

    @property
    def latest_correction(self) -> CorrectionNote | None:
        if self.latest_correction_at is None:
            return None
        return CorrectionNote(at=self.latest_correction_at, note=self.latest_correction_note)

    @property
    def is_fee_settled(self) -> bool:
        """Paid in full, or nothing due."""
        if self.payment_status == PaymentStatus.PAID.value:
            return True
        return (self.total_fee or Decimal("0")) <= 0
