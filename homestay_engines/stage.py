"""
Stage Derivation -- the single status classification function.

Pure functions with deterministic behavior. No I/O.

Every queue, dashboard and detail screen asks the same questions of a
record: which stage is it in, which sub-filter ("pill") does it fall
under, is the owner expected to act, and has the owner already responded
to a revert.  ``derive_stage`` answers all of them from the record's own
fields; screens are read-only consumers and never re-derive.

Inputs (read from the record):
    status, latest_correction, correction_submission_count, approved_at,
    last_reverted_at

Awaiting owner vs resubmitted:
    In a correction-required status (sent back, reverted by DTDO, objection
    raised) a record is *resubmitted* once its latest correction postdates
    the revert, and *awaiting owner* until then.  In a reviewer status it
    is *resubmitted* when it has been corrected at least once.  The answer
    does not depend on who is looking: the dealing assistant and the DTDO
    see the same classification.

Failure modes:
    - CorruptedStatusError for a status outside the enumeration.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Protocol

from homestay_kernel.domain.application import CorrectionNote
from homestay_kernel.domain.values import (
    CORRECTION_STATUSES,
    ApplicationKind,
    ApplicationStatus as S,
)
from homestay_kernel.exceptions import CorruptedStatusError


class StageInputs(Protocol):
    status: str
    latest_correction: CorrectionNote | None
    correction_submission_count: int
    approved_at: datetime | None
    last_reverted_at: datetime | None


@dataclass(frozen=True)
class StageView:
    stage: str
    pill: str
    label: str
    is_awaiting_owner: bool
    is_resubmitted: bool


# Consolidated display stages
DRAFT = "draft"
SUBMITTED = "submitted"
UNDER_REVIEW = "under_review"
CORRECTION_REQUIRED = "correction_required"
INSPECTION_PENDING = "inspection_pending"
PAYMENT_PENDING = "payment_pending"
APPROVED = "approved"
REJECTED = "rejected"
CANCELLED = "cancelled"

_STAGES: dict[S, str] = {
    S.DRAFT: DRAFT,
    S.SUBMITTED: SUBMITTED,
    S.UNDER_SCRUTINY: UNDER_REVIEW,
    S.FORWARDED_TO_DTDO: UNDER_REVIEW,
    S.SENT_BACK_FOR_CORRECTIONS: CORRECTION_REQUIRED,
    S.REVERTED_BY_DTDO: CORRECTION_REQUIRED,
    S.OBJECTION_RAISED: CORRECTION_REQUIRED,
    S.INSPECTION_SCHEDULED: INSPECTION_PENDING,
    S.INSPECTION_COMPLETED: INSPECTION_PENDING,
    S.PAYMENT_PENDING: PAYMENT_PENDING,
    S.VERIFIED_FOR_PAYMENT: PAYMENT_PENDING,
    S.APPROVED: APPROVED,
    S.REJECTED: REJECTED,
    S.CERTIFICATE_CANCELLED: CANCELLED,
}

_LABELS: dict[S, str] = {
    S.DRAFT: "Draft",
    S.SUBMITTED: "Submitted",
    S.UNDER_SCRUTINY: "Under scrutiny",
    S.FORWARDED_TO_DTDO: "Forwarded to DTDO",
    S.SENT_BACK_FOR_CORRECTIONS: "Sent back for corrections",
    S.REVERTED_BY_DTDO: "Reverted by DTDO",
    S.OBJECTION_RAISED: "Objection raised",
    S.INSPECTION_SCHEDULED: "Inspection scheduled",
    S.INSPECTION_COMPLETED: "Inspection completed",
    S.PAYMENT_PENDING: "Payment pending",
    S.VERIFIED_FOR_PAYMENT: "Payment verified",
    S.APPROVED: "Approved",
    S.REJECTED: "Rejected",
    S.CERTIFICATE_CANCELLED: "Certificate cancelled",
}

_FIXED_PILLS: dict[S, str] = {
    S.DRAFT: "draft",
    S.FORWARDED_TO_DTDO: "forwarded",
    S.INSPECTION_SCHEDULED: "scheduled",
    S.INSPECTION_COMPLETED: "report_submitted",
    S.PAYMENT_PENDING: "awaiting_payment",
    S.VERIFIED_FOR_PAYMENT: "payment_verified",
    S.APPROVED: "approved",
    S.REJECTED: "rejected",
    S.CERTIFICATE_CANCELLED: "cancelled",
}

_REVIEWER_STATUSES = frozenset({S.SUBMITTED, S.UNDER_SCRUTINY, S.FORWARDED_TO_DTDO})


def _parse_status(record: Any) -> S:
    status = S.parse(record.status)
    if status is None:
        raise CorruptedStatusError(str(getattr(record, "id", "?")), record.status)
    return status


def _corrected_after_revert(record: StageInputs) -> bool:
    correction = record.latest_correction
    if correction is None:
        return False
    if record.last_reverted_at is None:
        return True
    return correction.at > record.last_reverted_at


def derive_stage(record: StageInputs) -> StageView:
    """Classify a record for display.  Pure and idempotent."""
    status = _parse_status(record)

    if status in CORRECTION_STATUSES:
        resubmitted = _corrected_after_revert(record)
        return StageView(
            stage=_STAGES[status],
            pill="resubmitted" if resubmitted else "returned",
            label=_LABELS[status],
            is_awaiting_owner=not resubmitted,
            is_resubmitted=resubmitted,
        )

    resubmitted = (
        status in _REVIEWER_STATUSES
        and record.correction_submission_count > 0
        and record.latest_correction is not None
    )
    if status in _FIXED_PILLS:
        pill = _FIXED_PILLS[status]
    else:
        pill = "resubmitted" if resubmitted else "new"
    label = _LABELS[status]
    if status is S.APPROVED and record.approved_at is not None:
        label = f"Approved on {record.approved_at.date().isoformat()}"

    return StageView(
        stage=_STAGES[status],
        pill=pill,
        label=label,
        is_awaiting_owner=False,
        is_resubmitted=resubmitted,
    )


# =============================================================================
# Owner progress milestones
# =============================================================================


@dataclass(frozen=True)
class Progress:
    index: int
    milestones: tuple[str, ...]

    @property
    def current(self) -> str:
        return self.milestones[self.index]


_FULL_MILESTONES = (
    "submitted", "dtdo_review", "inspection_scheduled",
    "inspection_completed", "payment", "decision",
)
_SHORT_MILESTONES = ("submitted", "dtdo_review", "decision")

_FULL_INDEX: dict[S, int] = {
    S.DRAFT: 0,
    S.SUBMITTED: 0,
    S.UNDER_SCRUTINY: 0,
    S.SENT_BACK_FOR_CORRECTIONS: 0,
    S.FORWARDED_TO_DTDO: 1,
    S.REVERTED_BY_DTDO: 1,
    S.OBJECTION_RAISED: 1,
    S.INSPECTION_SCHEDULED: 2,
    S.INSPECTION_COMPLETED: 3,
    S.PAYMENT_PENDING: 4,
    S.VERIFIED_FOR_PAYMENT: 4,
    S.APPROVED: 5,
    S.REJECTED: 5,
    S.CERTIFICATE_CANCELLED: 5,
}

_SHORT_INDEX: dict[S, int] = {
    S.DRAFT: 0,
    S.SUBMITTED: 0,
    S.UNDER_SCRUTINY: 0,
    S.SENT_BACK_FOR_CORRECTIONS: 0,
    S.FORWARDED_TO_DTDO: 1,
    S.REVERTED_BY_DTDO: 1,
    S.OBJECTION_RAISED: 1,
    S.APPROVED: 2,
    S.REJECTED: 2,
    S.CERTIFICATE_CANCELLED: 2,
}


def derive_progress(
    record: Any,
    inspection_exempt_kinds: frozenset[ApplicationKind] = frozenset(),
) -> Progress:
    """Owner-dashboard milestone for a record.

    Inspection-exempt kinds (e.g. existing-RC onboarding) follow the short
    three-step track; everything else follows the full six-step track.
    """
    status = _parse_status(record)
    kind = ApplicationKind(record.kind)
    if kind in inspection_exempt_kinds and status in _SHORT_INDEX:
        return Progress(index=_SHORT_INDEX[status], milestones=_SHORT_MILESTONES)
    return Progress(index=_FULL_INDEX[status], milestones=_FULL_MILESTONES)
