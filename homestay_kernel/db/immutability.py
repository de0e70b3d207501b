"""
ORM-Level Immutability Enforcement.

===============================================================================
WHY THIS EXISTS
===============================================================================

An issued registration certificate is a legal document.  Once approval has
stamped a certificate number, issue time and expiry on an application,
nothing may rewrite them: not an ownership change, not a category upgrade,
not a careless admin script.  The same holds for the transition log, which
is the record of who did what.

SQLAlchemy fires events before UPDATE/DELETE operations reach the database.
We register listeners that intercept these events and check the rules:

    session.flush()
         |
         v
    [before_update event] --> _check_*() --> ImmutabilityViolationError
         |
         v
    [before_delete event] --> _check_*_delete()
         |
         v
    SQL sent to database (only if checks pass)

If a check fails the flush aborts and the database is never modified.

===============================================================================
PROTECTED ENTITIES
===============================================================================

Entity               | When Immutable                 | What
---------------------|--------------------------------|------------------------------
ApplicationModel     | once set                       | application_number,
                     |                                | certificate number/issue/expiry
ApplicationModel     | always                         | correction count never decreases
ApplicationModel     | after leaving draft            | row cannot be deleted
ServiceRequestModel  | once set / after leaving draft | application_number; delete
TransitionLogEntry   | ALWAYS                         | no update, no delete

Bulk ``update()``/``delete()`` statements bypass ORM events; the kernel
never issues them against these tables.
"""

from sqlalchemy import event
from sqlalchemy.orm.attributes import get_history

from homestay_kernel.domain.values import ApplicationStatus
from homestay_kernel.exceptions import ImmutabilityViolationError
from homestay_kernel.logging_config import get_logger

logger = get_logger("db.immutability")

WRITE_ONCE_APPLICATION_FIELDS = (
    "application_number",
    "certificate_number",
    "certificate_issued_at",
    "certificate_expiry_date",
)

WRITE_ONCE_SERVICE_REQUEST_FIELDS = ("application_number",)


def _blocked(entity_type: str, entity_id, operation: str, reason: str) -> None:
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": entity_type,
            "entity_id": str(entity_id),
            "operation": operation,
            "reason": reason,
        },
    )
    raise ImmutabilityViolationError(
        entity_type=entity_type,
        entity_id=str(entity_id),
        reason=reason,
    )


def _check_write_once(entity_type: str, target, fields) -> None:
    for field in fields:
        history = get_history(target, field)
        if not history.has_changes():
            continue
        old = history.deleted[0] if history.deleted else None
        if old is not None:
            _blocked(entity_type, target.id, "UPDATE", f"{field} is write-once")


def _check_correction_count(entity_type: str, target) -> None:
    history = get_history(target, "correction_submission_count")
    if history.deleted and history.added:
        old, new = history.deleted[0], history.added[0]
        if old is not None and new is not None and new < old:
            _blocked(
                entity_type, target.id, "UPDATE",
                "correction_submission_count cannot decrease",
            )


# =============================================================================
# Applications
# =============================================================================


def _check_application_update(mapper, connection, target):
    _check_write_once("Application", target, WRITE_ONCE_APPLICATION_FIELDS)
    _check_correction_count("Application", target)


def _check_application_delete(mapper, connection, target):
    if target.status != ApplicationStatus.DRAFT.value:
        _blocked(
            "Application", target.id, "DELETE",
            f"only draft applications can be discarded (status '{target.status}')",
        )


# =============================================================================
# Service requests
# =============================================================================


def _check_service_request_update(mapper, connection, target):
    _check_write_once("ServiceRequest", target, WRITE_ONCE_SERVICE_REQUEST_FIELDS)
    _check_correction_count("ServiceRequest", target)


def _check_service_request_delete(mapper, connection, target):
    if target.status != ApplicationStatus.DRAFT.value:
        _blocked(
            "ServiceRequest", target.id, "DELETE",
            f"only draft service requests can be discarded (status '{target.status}')",
        )


# =============================================================================
# Transition log
# =============================================================================


def _check_transition_log_update(mapper, connection, target):
    _blocked("TransitionLogEntry", target.id, "UPDATE", "transition log is append-only")


def _check_transition_log_delete(mapper, connection, target):
    _blocked("TransitionLogEntry", target.id, "DELETE", "transition log is append-only")


# =============================================================================
# Registration
# =============================================================================


def _listeners():
    from homestay_kernel.models.application import ApplicationModel
    from homestay_kernel.models.service_request import ServiceRequestModel
    from homestay_kernel.models.transition_log import TransitionLogEntry

    return (
        (ApplicationModel, "before_update", _check_application_update),
        (ApplicationModel, "before_delete", _check_application_delete),
        (ServiceRequestModel, "before_update", _check_service_request_update),
        (ServiceRequestModel, "before_delete", _check_service_request_delete),
        (TransitionLogEntry, "before_update", _check_transition_log_update),
        (TransitionLogEntry, "before_delete", _check_transition_log_delete),
    )


def register_immutability_listeners() -> None:
    """
    Register all immutability enforcement event listeners.

    Idempotent; called by the workflow service on construction and by
    test fixtures.
    """
    for model, identifier, fn in _listeners():
        if not event.contains(model, identifier, fn):
            event.listen(model, identifier, fn)


def unregister_immutability_listeners() -> None:
    """Remove all immutability listeners. FOR TESTING ONLY."""
    for model, identifier, fn in _listeners():
        if event.contains(model, identifier, fn):
            event.remove(model, identifier, fn)
