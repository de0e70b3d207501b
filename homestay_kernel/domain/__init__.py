"""
Pure domain layer.

This module contains pure data transfer objects and domain logic
with NO dependencies on:
- ORM (SQLAlchemy)
- Database
- Time/clock (other than the injectable Clock interface)
- I/O

All domain objects are immutable and deterministic.
"""

from homestay_kernel.domain.application import (
    Application,
    Certificate,
    CorrectionNote,
    ServiceRequest,
)
from homestay_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from homestay_kernel.domain.fees import FeeBreakdown, UpgradeFeeBreakdown
from homestay_kernel.domain.registration_workflow import REGISTRATION_WORKFLOW
from homestay_kernel.domain.rules import (
    CategoryBands,
    DiscountRates,
    DocumentRequirements,
    FeeSchedule,
    RegistrationRules,
    RoomLimits,
)
from homestay_kernel.domain.values import (
    CORRECTION_STATUSES,
    TERMINAL_STATUSES,
    ActorRole,
    ApplicationKind,
    ApplicationStatus,
    Category,
    Gender,
    LocationType,
    OwnerAttributes,
    OwnerIdentity,
    PaymentStatus,
    RoomConfiguration,
    RoomLine,
    RoomType,
)
from homestay_kernel.domain.workflow import Guard, Transition, Workflow

__all__ = [
    # Records
    "Application",
    "ServiceRequest",
    "Certificate",
    "CorrectionNote",
    # Time
    "Clock",
    "DeterministicClock",
    "SystemClock",
    # Fees and rules
    "FeeBreakdown",
    "UpgradeFeeBreakdown",
    "CategoryBands",
    "DiscountRates",
    "DocumentRequirements",
    "FeeSchedule",
    "RegistrationRules",
    "RoomLimits",
    # Vocabulary
    "ActorRole",
    "ApplicationKind",
    "ApplicationStatus",
    "Category",
    "Gender",
    "LocationType",
    "PaymentStatus",
    "RoomType",
    "CORRECTION_STATUSES",
    "TERMINAL_STATUSES",
    # Value objects
    "OwnerAttributes",
    "OwnerIdentity",
    "RoomConfiguration",
    "RoomLine",
    # Workflow
    "Guard",
    "Transition",
    "Workflow",
    "REGISTRATION_WORKFLOW",
]
