"""ORM models for the homestay kernel."""

from homestay_kernel.models.application import ApplicationModel
from homestay_kernel.models.service_request import ServiceRequestModel
from homestay_kernel.models.transition_log import TransitionLogEntry
from homestay_kernel.services.sequence_service import SequenceCounter

__all__ = [
    "ApplicationModel",
    "ServiceRequestModel",
    "TransitionLogEntry",
    "SequenceCounter",
]
