"""
Pytest fixtures for the homestay registration test suite.

Provides:
- A fresh SQLite database per test (file-backed, so that two sessions
  really are two connections)
- DeterministicClock, the active rule set and in-memory collaborators
- The workflow service and service request router wired together
- Builders that drive an application to a given point in its lifecycle

Environment Variables:
- DATABASE_URL: run the database tests against another backend (e.g.
  PostgreSQL).  Tables are dropped and recreated around every test.
"""

import json
import logging
import os
from io import StringIO
from typing import Any, Callable
from uuid import uuid4

import pytest

from homestay_config import get_active_rules
from homestay_kernel.db.engine import (
    create_tables,
    drop_tables,
    get_session_factory,
    init_engine_from_url,
    reset_engine,
)
from homestay_kernel.db.immutability import register_immutability_listeners
from homestay_kernel.domain.application import Application
from homestay_kernel.domain.clock import DeterministicClock
from homestay_kernel.domain.registration_workflow import (
    APPROVE,
    FORWARD_TO_DTDO,
    SCHEDULE_INSPECTION,
    SUBMIT_REPORT,
)
from homestay_kernel.domain.values import ActorRole, ApplicationKind
from homestay_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from homestay_services.collaborators import (
    InMemoryDocumentStore,
    InMemoryInspectionService,
    InMemoryNotificationService,
    InMemoryPaymentGateway,
    SideEffectDispatcher,
)
from homestay_services.service_request_router import ServiceRequestRouter
from homestay_services.workflow_executor import ApplicationWorkflowService

NEW_REGISTRATION_DOCUMENTS = (
    "revenue_papers",
    "affidavit_section_29",
    "undertaking_form_c",
    "property_photos",
)

PREMIUM_DOCUMENTS = ("commercial_electricity_bill", "commercial_water_bill")


def complete_payload(**overrides: Any) -> dict[str, Any]:
    """A new-registration payload that passes every submission guard.

    Two double rooms at 2500 a night in a gram panchayat: silver, base fee
    3000, one-year validity.
    """
    payload: dict[str, Any] = {
        "property_name": "Pine View Homestay",
        "district": "Kullu",
        "address": "Ward 3, Village Naggar, Kullu",
        "location_type": "gp",
        "rooms": [{"room_type": "double", "count": 2, "nightly_rate": "2500"}],
        "category": "silver",
        "validity_years": 1,
        "owner": {"name": "Asha Devi", "mobile": "9816000001"},
    }
    payload.update(overrides)
    return payload


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture homestay_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, service):
            service.transition(...)
            logs = captured_logs()
            assert any(r["message"] == "workflow_transition" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("homestay_kernel")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


# =============================================================================
# Database fixtures
# =============================================================================


def get_database_url(tmp_path) -> str:
    return os.environ.get("DATABASE_URL") or f"sqlite:///{tmp_path / 'homestay_test.db'}"


@pytest.fixture
def db_engine(tmp_path):
    engine = init_engine_from_url(get_database_url(tmp_path), echo=False)
    drop_tables()
    create_tables()
    register_immutability_listeners()
    yield engine
    drop_tables()
    reset_engine()


@pytest.fixture
def session_factory(db_engine):
    return get_session_factory()


@pytest.fixture
def session(session_factory):
    """A plain session for direct inspection; the caller commits."""
    s = session_factory()
    yield s
    s.close()


# =============================================================================
# Clock, rules and collaborators
# =============================================================================


@pytest.fixture
def deterministic_clock():
    return DeterministicClock()


@pytest.fixture(scope="session")
def rules():
    return get_active_rules()


@pytest.fixture
def documents():
    return InMemoryDocumentStore()


@pytest.fixture
def payments():
    return InMemoryPaymentGateway()


@pytest.fixture
def notifications():
    return InMemoryNotificationService()


@pytest.fixture
def inspections():
    return InMemoryInspectionService()


@pytest.fixture
def dispatcher():
    return SideEffectDispatcher()


# =============================================================================
# Service fixtures
# =============================================================================


@pytest.fixture
def service(
    session_factory,
    rules,
    deterministic_clock,
    documents,
    payments,
    notifications,
    inspections,
    dispatcher,
) -> ApplicationWorkflowService:
    return ApplicationWorkflowService(
        session_factory,
        rules,
        clock=deterministic_clock,
        documents=documents,
        payments=payments,
        notifications=notifications,
        inspections=inspections,
        dispatcher=dispatcher,
    )


@pytest.fixture
def router(service) -> ServiceRequestRouter:
    return ServiceRequestRouter(service)


# =============================================================================
# Lifecycle builders
# =============================================================================


@pytest.fixture
def owner_id() -> str:
    return f"owner-{uuid4().hex[:8]}"


@pytest.fixture
def create_complete_application(service, documents, owner_id):
    """Factory: a draft with every field and document in place."""

    def _create(
        owner: str | None = None,
        kind: ApplicationKind = ApplicationKind.NEW_REGISTRATION,
        **overrides: Any,
    ) -> Application:
        app = service.create_application(
            owner or owner_id, kind, complete_payload(**overrides), actor_id="owner",
        )
        documents.add(app.id, *NEW_REGISTRATION_DOCUMENTS)
        return app

    return _create


@pytest.fixture
def forwarded_application(service, create_complete_application, deterministic_clock):
    """Factory: a submitted application forwarded to the DTDO."""

    def _create(**overrides: Any) -> Application:
        app = create_complete_application(**overrides)
        service.submit_application(app.id, actor_id="owner")
        deterministic_clock.advance(60)
        return service.transition(app.id, ActorRole.DEALING_ASSISTANT, FORWARD_TO_DTDO, actor_id="da")

    return _create


@pytest.fixture
def inspected_application(service, forwarded_application, deterministic_clock):
    """Factory: an application whose inspection report is in."""

    def _create(**overrides: Any) -> Application:
        app = forwarded_application(**overrides)
        deterministic_clock.advance(3600)
        service.transition(
            app.id, ActorRole.DISTRICT_TOURISM_OFFICER, SCHEDULE_INSPECTION,
            {"inspection_date": "2025-04-10"}, actor_id="dtdo",
        )
        deterministic_clock.advance(3600)
        return service.transition(
            app.id, ActorRole.DEALING_ASSISTANT, SUBMIT_REPORT,
            {"findings": "Rooms and amenities as declared", "recommendation": "approve"},
            actor_id="da",
        )

    return _create


@pytest.fixture
def approved_application(service, inspected_application, deterministic_clock) -> Callable[..., Application]:
    """Factory: an approved application with its fee paid and certificate issued."""

    def _create(**overrides: Any) -> Application:
        app = inspected_application(**overrides)
        deterministic_clock.advance(60)
        pending = service.transition(app.id, ActorRole.DISTRICT_TOURISM_OFFICER, APPROVE, actor_id="dtdo")
        deterministic_clock.advance(60)
        return service.record_payment(pending.id, "PAY-0001", pending.total_fee)

    return _create
