"""
Registration workflow -- the single transition table for applications and
service requests (``homestay_kernel.domain.registration_workflow``).

Responsibility
--------------
Enumerates every legal ``(from_state, action) -> to_state`` move, the
roles allowed to make it, its preconditions and its effects.  Primary
applications and service requests share this table; kind-specific rules
live in the guard implementations, not in separate tables.

Architecture position
---------------------
**Kernel domain layer** -- pure data.  Consumed by the policy gate
(``homestay_engines.policy_gate``) and the workflow executor
(``homestay_services.workflow_executor``).

Invariants enforced
-------------------
* Every revert, objection and rejection requires a remark.
* Approval is the only move whose effects issue a certificate.
* ``approved``, ``rejected`` and ``certificate_cancelled`` are terminal.
* ``certificate_cancelled`` is reachable only through an approved
  cancellation request, never through this table.
"""

from __future__ import annotations

from homestay_kernel.domain.values import ApplicationStatus as S
from homestay_kernel.domain.values import ActorRole, TERMINAL_STATUSES
from homestay_kernel.domain.workflow import Guard, Transition, Workflow

OWNER = ActorRole.PROPERTY_OWNER.value
DA = ActorRole.DEALING_ASSISTANT.value
DTDO = ActorRole.DISTRICT_TOURISM_OFFICER.value
SYSTEM = ActorRole.SYSTEM.value


# -----------------------------------------------------------------------------
# Actions
# -----------------------------------------------------------------------------

SUBMIT = "submit"
START_SCRUTINY = "start_scrutiny"
FORWARD_TO_DTDO = "forward_to_dtdo"
REVERT = "revert"
RESUBMIT = "resubmit"
RESUBMIT_TO_DTDO = "resubmit_to_dtdo"
SCHEDULE_INSPECTION = "schedule_inspection"
SUBMIT_REPORT = "submit_report"
RAISE_OBJECTION = "raise_objection"
APPROVE = "approve"
CONFIRM_PAYMENT = "confirm_payment"
VERIFY_OFFLINE_PAYMENT = "verify_offline_payment"
REJECT = "reject"

# Record actions outside the status graph (no status change).
UPDATE_DRAFT = "update_draft"
DISCARD = "discard"


# -----------------------------------------------------------------------------
# Effects applied by the executor
# -----------------------------------------------------------------------------

EFFECT_FIRST_SUBMISSION = "first_submission"
EFFECT_CORRECTION_RESUBMITTED = "correction_resubmitted"
EFFECT_REVERTED = "reverted"
EFFECT_INSPECTION_SCHEDULED = "inspection_scheduled"
EFFECT_INSPECTION_COMPLETED = "inspection_completed"
EFFECT_PAYMENT_RECORDED = "payment_recorded"
EFFECT_APPROVED = "approved"


# -----------------------------------------------------------------------------
# Guards
# -----------------------------------------------------------------------------

REQUIRED_FIELDS = Guard("required_fields", "Property, owner and room details are complete")
REQUIRED_DOCUMENTS = Guard("required_documents", "Mandatory documents are on file")
PREMIUM_REQUIREMENTS = Guard(
    "premium_requirements",
    "Gold/Diamond: GSTIN and commercial electricity and water bills",
)
ROOM_LIMITS = Guard("room_limits", "Room and bed counts within category limits")
CATEGORY_FLOOR = Guard(
    "category_floor", "Chosen category not below the category implied by room rates",
)
AMENDMENT_PAYLOAD = Guard("amendment_payload", "Service request payload valid for its kind")
INSPECTION_DATE = Guard("inspection_date", "Inspection date supplied")
INSPECTION_REPORT = Guard("inspection_report", "Inspection findings and recommendation supplied")
PAYMENT_REFERENCE = Guard("payment_reference", "Payment reference supplied")
PAYMENT_COVERS_FEE = Guard("payment_covers_fee", "Paid amount covers the fee due")

# Routing conditions
INSPECTION_EXEMPT = Guard("inspection_exempt", "Kind does not require a site inspection")
FEE_SETTLED = Guard("fee_settled", "Fee already paid or nothing is due")

SUBMISSION_GUARDS = (
    REQUIRED_FIELDS,
    REQUIRED_DOCUMENTS,
    PREMIUM_REQUIREMENTS,
    ROOM_LIMITS,
    CATEGORY_FLOOR,
    AMENDMENT_PAYLOAD,
)

_NON_TERMINAL_REVIEW_STATES = tuple(
    s.value for s in S if s not in TERMINAL_STATUSES and s is not S.DRAFT
)

_CORRECTION_REENTRY_STATES = (S.REVERTED_BY_DTDO.value, S.OBJECTION_RAISED.value)


def _reject_from(state: str) -> Transition:
    return Transition(
        from_state=state,
        to_state=S.REJECTED.value,
        action=REJECT,
        roles=(DA, DTDO),
        requires_remark=True,
    )


REGISTRATION_WORKFLOW = Workflow(
    name="homestay_registration",
    description="Homestay certificate application and amendment lifecycle",
    initial_state=S.DRAFT.value,
    states=tuple(s.value for s in S),
    terminal_states=tuple(s.value for s in TERMINAL_STATUSES),
    transitions=(
        # Owner submission
        Transition(
            S.DRAFT.value, S.SUBMITTED.value, SUBMIT, (OWNER,),
            guards=SUBMISSION_GUARDS, effects=(EFFECT_FIRST_SUBMISSION,),
        ),
        # Dealing assistant scrutiny
        Transition(S.SUBMITTED.value, S.UNDER_SCRUTINY.value, START_SCRUTINY, (DA,)),
        Transition(S.SUBMITTED.value, S.FORWARDED_TO_DTDO.value, FORWARD_TO_DTDO, (DA,)),
        Transition(S.UNDER_SCRUTINY.value, S.FORWARDED_TO_DTDO.value, FORWARD_TO_DTDO, (DA,)),
        Transition(
            S.SUBMITTED.value, S.SENT_BACK_FOR_CORRECTIONS.value, REVERT, (DA,),
            requires_remark=True, effects=(EFFECT_REVERTED,),
        ),
        Transition(
            S.UNDER_SCRUTINY.value, S.SENT_BACK_FOR_CORRECTIONS.value, REVERT, (DA,),
            requires_remark=True, effects=(EFFECT_REVERTED,),
        ),
        # Owner correction loop
        Transition(
            S.SENT_BACK_FOR_CORRECTIONS.value, S.SUBMITTED.value, RESUBMIT, (OWNER,),
            guards=SUBMISSION_GUARDS, effects=(EFFECT_CORRECTION_RESUBMITTED,),
        ),
        *(
            Transition(
                state, S.SUBMITTED.value, RESUBMIT, (OWNER,),
                guards=SUBMISSION_GUARDS, effects=(EFFECT_CORRECTION_RESUBMITTED,),
            )
            for state in _CORRECTION_REENTRY_STATES
        ),
        *(
            Transition(
                state, S.FORWARDED_TO_DTDO.value, RESUBMIT_TO_DTDO, (OWNER,),
                guards=SUBMISSION_GUARDS, effects=(EFFECT_CORRECTION_RESUBMITTED,),
            )
            for state in _CORRECTION_REENTRY_STATES
        ),
        # DTDO review
        Transition(
            S.FORWARDED_TO_DTDO.value, S.INSPECTION_SCHEDULED.value, SCHEDULE_INSPECTION,
            (DTDO,), guards=(INSPECTION_DATE,), effects=(EFFECT_INSPECTION_SCHEDULED,),
        ),
        Transition(
            S.FORWARDED_TO_DTDO.value, S.APPROVED.value, APPROVE, (DTDO,),
            route=INSPECTION_EXEMPT, effects=(EFFECT_APPROVED,),
        ),
        Transition(
            S.FORWARDED_TO_DTDO.value, S.REVERTED_BY_DTDO.value, REVERT, (DTDO,),
            requires_remark=True, effects=(EFFECT_REVERTED,),
        ),
        Transition(
            S.FORWARDED_TO_DTDO.value, S.OBJECTION_RAISED.value, RAISE_OBJECTION, (DTDO,),
            requires_remark=True, effects=(EFFECT_REVERTED,),
        ),
        # Inspection
        Transition(
            S.INSPECTION_SCHEDULED.value, S.INSPECTION_COMPLETED.value, SUBMIT_REPORT,
            (DA,), guards=(INSPECTION_REPORT,), effects=(EFFECT_INSPECTION_COMPLETED,),
        ),
        Transition(
            S.INSPECTION_COMPLETED.value, S.APPROVED.value, APPROVE, (DTDO,),
            route=FEE_SETTLED, effects=(EFFECT_APPROVED,),
        ),
        Transition(S.INSPECTION_COMPLETED.value, S.PAYMENT_PENDING.value, APPROVE, (DTDO,)),
        Transition(
            S.INSPECTION_COMPLETED.value, S.REVERTED_BY_DTDO.value, REVERT, (DTDO,),
            requires_remark=True, effects=(EFFECT_REVERTED,),
        ),
        Transition(
            S.INSPECTION_COMPLETED.value, S.OBJECTION_RAISED.value, RAISE_OBJECTION, (DTDO,),
            requires_remark=True, effects=(EFFECT_REVERTED,),
        ),
        # Payment
        Transition(
            S.PAYMENT_PENDING.value, S.APPROVED.value, CONFIRM_PAYMENT, (SYSTEM,),
            guards=(PAYMENT_REFERENCE, PAYMENT_COVERS_FEE),
            effects=(EFFECT_PAYMENT_RECORDED, EFFECT_APPROVED),
        ),
        Transition(
            S.PAYMENT_PENDING.value, S.VERIFIED_FOR_PAYMENT.value, VERIFY_OFFLINE_PAYMENT,
            (DA,), guards=(PAYMENT_REFERENCE, PAYMENT_COVERS_FEE),
            effects=(EFFECT_PAYMENT_RECORDED,),
        ),
        Transition(
            S.VERIFIED_FOR_PAYMENT.value, S.APPROVED.value, APPROVE, (DTDO,),
            route=FEE_SETTLED, effects=(EFFECT_APPROVED,),
        ),
        # Rejection from any live review state
        *(_reject_from(state) for state in _NON_TERMINAL_REVIEW_STATES),
    ),
)
