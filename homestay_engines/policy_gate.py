"""
Role Policy Gate.

Pure functions with deterministic behavior. No I/O, no state.

Answers ``allowed(role, status) -> frozenset[action]`` from the
registration transition table plus the owner-only record actions
(editing and discarding a draft).  Consulted before every transition.

Roles:
    property_owner, dealing_assistant, district_tourism_officer
    (district_officer is an alias), system (payment callbacks), and the
    administrative roles admin / super_admin.

Administrative override:
    admin and super_admin may perform any table action defined from the
    current status.  The gate marks such a decision as an override; the
    executor logs it and records it on the transition log.  Preconditions
    are still enforced downstream.

A status outside the enumeration allows nothing (fail closed).
"""

from __future__ import annotations

from dataclasses import dataclass

from homestay_kernel.domain.registration_workflow import (
    DISCARD,
    REGISTRATION_WORKFLOW,
    UPDATE_DRAFT,
)
from homestay_kernel.domain.values import (
    CORRECTION_STATUSES,
    ActorRole,
    ApplicationStatus,
)
from homestay_kernel.domain.workflow import Workflow

_OWNER_EDITABLE = frozenset({ApplicationStatus.DRAFT}) | CORRECTION_STATUSES


@dataclass(frozen=True)
class GateDecision:
    allowed: bool
    override: bool = False
    reason: str = ""


def _coerce_role(role: ActorRole | str) -> ActorRole | None:
    try:
        return ActorRole(role).canonical()
    except ValueError:
        return None


def _record_actions(role: ActorRole, status: ApplicationStatus) -> frozenset[str]:
    if role is not ActorRole.PROPERTY_OWNER:
        return frozenset()
    actions: set[str] = set()
    if status in _OWNER_EDITABLE:
        actions.add(UPDATE_DRAFT)
    if status is ApplicationStatus.DRAFT:
        actions.add(DISCARD)
    return frozenset(actions)


def allowed(
    role: ActorRole | str,
    status: ApplicationStatus | str,
    workflow: Workflow = REGISTRATION_WORKFLOW,
) -> frozenset[str]:
    """Actions ``role`` may take on a record in ``status``."""
    parsed_role = _coerce_role(role)
    parsed_status = ApplicationStatus.parse(status)
    if parsed_role is None or parsed_status is None:
        return frozenset()

    transitions = workflow.transitions_from(parsed_status.value)
    if parsed_role.is_administrative:
        table_actions = {t.action for t in transitions}
    else:
        table_actions = {t.action for t in transitions if parsed_role.value in t.roles}
    return frozenset(table_actions) | _record_actions(parsed_role, parsed_status)


def check_action(
    role: ActorRole | str,
    status: ApplicationStatus | str,
    action: str,
    workflow: Workflow = REGISTRATION_WORKFLOW,
) -> GateDecision:
    """Decide a single action, distinguishing ordinary grants from overrides."""
    parsed_role = _coerce_role(role)
    if parsed_role is None:
        return GateDecision(False, reason=f"unknown role '{role}'")
    parsed_status = ApplicationStatus.parse(status)
    if parsed_status is None:
        return GateDecision(False, reason=f"unknown status '{status}'")

    if parsed_role.is_administrative:
        if action in allowed(parsed_role, parsed_status, workflow):
            return GateDecision(True, override=True)
        return GateDecision(False, reason=f"no '{action}' from '{parsed_status.value}'")

    if action in allowed(parsed_role, parsed_status, workflow):
        return GateDecision(True)
    return GateDecision(
        False,
        reason=f"role '{parsed_role.value}' may not '{action}' in '{parsed_status.value}'",
    )
