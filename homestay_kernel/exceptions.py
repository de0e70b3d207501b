"""
Typed Exception Hierarchy for the Homestay Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

A registration desk answers the same question many different ways: "you
cannot do that", "you may not do that", "not yet, something is missing",
"someone else got there first". Callers (HTTP routes, batch tools, tests)
must be able to tell those apart without parsing message text.

Every error therefore:
  1. Has a TYPED exception class (catch by type, not message)
  2. Has a CODE attribute (machine-readable, API-safe)
  3. Carries structured DATA (record id, status, missing items...)

Example - WRONG way to handle errors:
    try:
        service.transition(app_id, role, "submit", payload)
    except Exception as e:
        if "missing" in str(e):           # FRAGILE
            show_checklist()

Example - RIGHT way:
    try:
        service.transition(app_id, role, "submit", payload)
    except PreconditionNotMetError as e:
        show_checklist(e.missing)          # Structured data
        api_response(code=e.code)          # Machine-readable

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    HomestayKernelError (base)
    |
    +-- WorkflowError
    |   +-- InvalidTransitionError
    |   +-- ForbiddenActionError
    |   +-- PreconditionNotMetError
    |   +-- CorruptedStatusError
    |
    +-- ServiceRequestError
    |   +-- ConflictingServiceRequestError
    |
    +-- ConcurrencyError
    |   +-- StaleStateError
    |
    +-- RecordError
    |   +-- RecordNotFoundError
    |   +-- DuplicateApplicationError
    |
    +-- ValidationError
    +-- ImmutabilityViolationError
    +-- ConfigurationError

Errors are raised synchronously to the caller. Nothing in the kernel
retries automatically.
"""

from typing import Iterable


class HomestayKernelError(Exception):
    """Base exception for all homestay kernel errors."""

    code: str = "HOMESTAY_KERNEL_ERROR"


# =============================================================================
# Workflow errors
# =============================================================================


class WorkflowError(HomestayKernelError):
    """Base for state machine errors."""

    code: str = "WORKFLOW_ERROR"


class InvalidTransitionError(WorkflowError):
    """No transition is defined for (status, action)."""

    code: str = "INVALID_TRANSITION"

    def __init__(self, record_id: str, current_status: str, action: str):
        self.record_id = record_id
        self.current_status = current_status
        self.action = action
        super().__init__(
            f"No transition '{action}' from status '{current_status}' "
            f"(record {record_id})"
        )


class ForbiddenActionError(WorkflowError):
    """The acting role may not perform this action in this status."""

    code: str = "FORBIDDEN"

    def __init__(self, record_id: str, role: str, action: str, current_status: str):
        self.record_id = record_id
        self.role = role
        self.action = action
        self.current_status = current_status
        super().__init__(
            f"Role '{role}' may not '{action}' while record {record_id} "
            f"is '{current_status}'"
        )


class PreconditionNotMetError(WorkflowError):
    """The transition exists and is permitted, but its preconditions fail."""

    code: str = "PRECONDITION_NOT_MET"

    def __init__(self, record_id: str, action: str, missing: Iterable[str]):
        self.record_id = record_id
        self.action = action
        self.missing = list(missing)
        super().__init__(
            f"Cannot '{action}' record {record_id}: missing "
            f"{', '.join(self.missing)}"
        )


class CorruptedStatusError(WorkflowError):
    """Persisted status is not a member of the status enumeration."""

    code: str = "CORRUPTED_STATUS"

    def __init__(self, record_id: str, raw_status: str):
        self.record_id = record_id
        self.raw_status = raw_status
        super().__init__(
            f"Record {record_id} has unknown persisted status '{raw_status}'; "
            f"all transitions are refused"
        )


# =============================================================================
# Service request errors
# =============================================================================


class ServiceRequestError(HomestayKernelError):
    """Base for amendment (service request) errors."""

    code: str = "SERVICE_REQUEST_ERROR"


class ConflictingServiceRequestError(ServiceRequestError):
    """The parent already has an active service request."""

    code: str = "CONFLICTING_SERVICE_REQUEST"

    def __init__(self, parent_id: str, active_request_id: str | None = None):
        self.parent_id = parent_id
        self.active_request_id = active_request_id
        detail = f" ({active_request_id})" if active_request_id else ""
        super().__init__(
            f"Application {parent_id} already has an active service request{detail}"
        )


# =============================================================================
# Concurrency errors
# =============================================================================


class ConcurrencyError(HomestayKernelError):
    """Base for concurrency errors."""

    code: str = "CONCURRENCY_ERROR"


class StaleStateError(ConcurrencyError):
    """The record changed between read and write."""

    code: str = "STALE_STATE"

    def __init__(
        self,
        record_id: str,
        expected_status: str | None = None,
        actual_status: str | None = None,
    ):
        self.record_id = record_id
        self.expected_status = expected_status
        self.actual_status = actual_status
        if expected_status is not None:
            msg = (
                f"Record {record_id} is '{actual_status}', "
                f"caller expected '{expected_status}'"
            )
        else:
            msg = f"Record {record_id} was modified concurrently"
        super().__init__(msg)


# =============================================================================
# Record errors
# =============================================================================


class RecordError(HomestayKernelError):
    """Base for record lookup/creation errors."""

    code: str = "RECORD_ERROR"


class RecordNotFoundError(RecordError):
    """Application or service request does not exist."""

    code: str = "RECORD_NOT_FOUND"

    def __init__(self, record_id: str):
        self.record_id = record_id
        super().__init__(f"Record not found: {record_id}")


class DuplicateApplicationError(RecordError):
    """Owner already has a live primary application."""

    code: str = "DUPLICATE_APPLICATION"

    def __init__(self, owner_id: str, existing_id: str, existing_status: str):
        self.owner_id = owner_id
        self.existing_id = existing_id
        self.existing_status = existing_status
        super().__init__(
            f"Owner {owner_id} already has application {existing_id} "
            f"(status '{existing_status}')"
        )


# =============================================================================
# Validation / immutability / configuration
# =============================================================================


class ValidationError(HomestayKernelError):
    """Input failed validation (fee inputs, room limits, payloads)."""

    code: str = "VALIDATION_ERROR"

    def __init__(self, field: str, reason: str):
        self.field = field
        self.reason = reason
        super().__init__(f"Invalid {field}: {reason}")


class ImmutabilityViolationError(HomestayKernelError):
    """Attempted to modify a write-once or append-only value."""

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Cannot modify {entity_type} {entity_id}: {reason}"
        )


class ConfigurationError(HomestayKernelError):
    """Rule set file is missing or malformed."""

    code: str = "CONFIGURATION_ERROR"

    def __init__(self, source: str, reason: str):
        self.source = source
        self.reason = reason
        super().__init__(f"Invalid configuration {source}: {reason}")
