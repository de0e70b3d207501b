"""
Module: homestay_services
Responsibility:
    Stateful orchestration over the homestay engines and kernel: the
    application workflow service (transitions, drafts, payments), the
    service request router, guard evaluation, record numbering and the
    collaborator interfaces for documents, payments, notifications and
    inspections.

Architecture position:
    Services -- the outermost layer.  May import homestay_engines and
    homestay_kernel.  Rules are passed in (from homestay_config), never
    read here.
"""

from homestay_services.collaborators import (
    DocumentStore,
    InMemoryDocumentStore,
    InMemoryInspectionService,
    InMemoryNotificationService,
    InMemoryPaymentGateway,
    InspectionService,
    NotificationService,
    PaymentGateway,
    SideEffectDispatcher,
)
from homestay_services.guards import GuardContext, GuardExecutor, default_guard_executor
from homestay_services.service_request_router import ServiceRequestRouter
from homestay_services.workflow_executor import ApplicationWorkflowService

__all__ = [
    "ApplicationWorkflowService",
    "ServiceRequestRouter",
    "GuardContext",
    "GuardExecutor",
    "default_guard_executor",
    "DocumentStore",
    "PaymentGateway",
    "NotificationService",
    "InspectionService",
    "InMemoryDocumentStore",
    "InMemoryPaymentGateway",
    "InMemoryNotificationService",
    "InMemoryInspectionService",
    "SideEffectDispatcher",
]
