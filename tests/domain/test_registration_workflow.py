"""
Tests for the registration transition table and the Workflow value type.

Tests cover:
- Workflow construction: unknown states, terminal states with exits
- The registration table: terminal states have no exits, every revert,
  objection and rejection needs a remark, only approval issues a certificate
- Routing: approve from forwarded_to_dtdo is guarded by the inspection
  exemption; approve from inspection_completed routes on the fee
"""

import pytest

from homestay_kernel.domain.registration_workflow import (
    APPROVE,
    EFFECT_APPROVED,
    FEE_SETTLED,
    INSPECTION_EXEMPT,
    RAISE_OBJECTION,
    REGISTRATION_WORKFLOW,
    REJECT,
    REVERT,
    SUBMIT,
    SUBMISSION_GUARDS,
)
from homestay_kernel.domain.values import ApplicationStatus as S
from homestay_kernel.domain.values import TERMINAL_STATUSES
from homestay_kernel.domain.workflow import Transition, Workflow


class TestWorkflowConstruction:
    def test_unknown_state_rejected(self):
        with pytest.raises(ValueError, match="unknown state"):
            Workflow(
                name="w",
                description="",
                initial_state="a",
                states=("a", "b"),
                transitions=(Transition("a", "c", "go", ("r",)),),
            )

    def test_initial_state_must_be_known(self):
        with pytest.raises(ValueError, match="initial state"):
            Workflow(name="w", description="", initial_state="x", states=("a",), transitions=())

    def test_terminal_state_may_not_have_exits(self):
        with pytest.raises(ValueError, match="terminal state"):
            Workflow(
                name="w",
                description="",
                initial_state="a",
                states=("a", "b"),
                transitions=(Transition("b", "a", "undo", ("r",)),),
                terminal_states=("b",),
            )

    def test_candidates_keep_declaration_order(self):
        first = Transition("a", "b", "go", ("r",))
        second = Transition("a", "c", "go", ("r",))
        wf = Workflow(
            name="w", description="", initial_state="a",
            states=("a", "b", "c"), transitions=(first, second),
        )
        assert wf.candidates("a", "go") == (first, second)
        assert wf.candidates("a", "stop") == ()


class TestRegistrationTable:
    def test_initial_state_is_draft(self):
        assert REGISTRATION_WORKFLOW.initial_state == S.DRAFT.value

    def test_every_status_is_a_state(self):
        assert set(REGISTRATION_WORKFLOW.states) == {s.value for s in S}

    @pytest.mark.parametrize("status", sorted(s.value for s in TERMINAL_STATUSES))
    def test_terminal_states_have_no_exits(self, status):
        assert REGISTRATION_WORKFLOW.is_terminal(status)
        assert REGISTRATION_WORKFLOW.transitions_from(status) == ()

    def test_reverts_objections_and_rejections_require_a_remark(self):
        for t in REGISTRATION_WORKFLOW.transitions:
            if t.action in (REVERT, RAISE_OBJECTION, REJECT):
                assert t.requires_remark, t

    def test_only_approval_transitions_issue_certificates(self):
        for t in REGISTRATION_WORKFLOW.transitions:
            if EFFECT_APPROVED in t.effects:
                assert t.to_state == S.APPROVED.value

    def test_certificate_cancelled_not_reachable_from_the_table(self):
        targets = {t.to_state for t in REGISTRATION_WORKFLOW.transitions}
        assert S.CERTIFICATE_CANCELLED.value not in targets

    def test_reject_not_offered_from_draft(self):
        assert REJECT not in REGISTRATION_WORKFLOW.actions_from(S.DRAFT.value)

    def test_reject_offered_from_every_review_state(self):
        for status in S:
            if status in TERMINAL_STATUSES or status is S.DRAFT:
                continue
            assert REJECT in REGISTRATION_WORKFLOW.actions_from(status.value), status

    def test_submission_runs_every_submission_guard(self):
        (submit,) = REGISTRATION_WORKFLOW.candidates(S.DRAFT.value, SUBMIT)
        assert submit.guards == SUBMISSION_GUARDS
        assert submit.to_state == S.SUBMITTED.value

    def test_direct_approval_requires_inspection_exemption(self):
        (direct,) = REGISTRATION_WORKFLOW.candidates(S.FORWARDED_TO_DTDO.value, APPROVE)
        assert direct.route == INSPECTION_EXEMPT
        assert direct.to_state == S.APPROVED.value

    def test_approval_after_inspection_routes_on_fee(self):
        settled, unsettled = REGISTRATION_WORKFLOW.candidates(S.INSPECTION_COMPLETED.value, APPROVE)
        assert settled.route == FEE_SETTLED
        assert settled.to_state == S.APPROVED.value
        assert unsettled.route is None
        assert unsettled.to_state == S.PAYMENT_PENDING.value
