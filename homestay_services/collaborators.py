"""
homestay_services.collaborators -- Outside systems the workflow talks to.

Responsibility:
    Declares the narrow interfaces the workflow executor needs from the
    document store, the payment gateway, the notification channel and the
    inspection scheduler, with in-memory implementations for tests and
    local tooling.  Also provides SideEffectDispatcher, which runs
    post-commit side effects and keeps the failures for operator retry.

Architecture position:
    Services.  Protocols only depend on the kernel domain.

Invariants enforced:
    - A side effect runs only after the transition it belongs to has
      committed.  Its failure never rolls the transition back; it is
      logged and queued on the dispatcher.

Failure modes:
    - None raised by the dispatcher; failed side effects are returned by
      ``pending_failures()`` and rerun by ``retry_failed()``.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Any, Callable, Protocol, runtime_checkable
from uuid import UUID

from homestay_kernel.domain.application import Application, ServiceRequest
from homestay_kernel.logging_config import get_logger

logger = get_logger("services.collaborators")

Record = Application | ServiceRequest


# ---------------------------------------------------------------------------
# Protocols
# ---------------------------------------------------------------------------


@runtime_checkable
class DocumentStore(Protocol):
    """Answers whether a document of a given type is on file for a record."""

    def has_document(self, record_id: UUID, document_type: str) -> bool: ...


@runtime_checkable
class PaymentGateway(Protocol):
    """Starts an online payment.  Confirmations arrive via ``record_payment``."""

    def request_payment(self, record_id: UUID, reference: str, amount: Decimal) -> None: ...


@runtime_checkable
class NotificationService(Protocol):
    def notify(self, event: str, record: Record, details: dict[str, Any]) -> None: ...


@runtime_checkable
class InspectionService(Protocol):
    def schedule(self, record_id: UUID, inspection_date: date, details: dict[str, Any]) -> None: ...

    def record_report(self, record_id: UUID, report: dict[str, Any]) -> None: ...


# ---------------------------------------------------------------------------
# In-memory implementations
# ---------------------------------------------------------------------------


class InMemoryDocumentStore:
    def __init__(self) -> None:
        self._documents: dict[UUID, set[str]] = defaultdict(set)

    def add(self, record_id: UUID, *document_types: str) -> None:
        self._documents[record_id].update(document_types)

    def remove(self, record_id: UUID, document_type: str) -> None:
        self._documents[record_id].discard(document_type)

    def has_document(self, record_id: UUID, document_type: str) -> bool:
        return document_type in self._documents.get(record_id, ())


@dataclass
class PaymentRequest:
    record_id: UUID
    reference: str
    amount: Decimal


class InMemoryPaymentGateway:
    def __init__(self) -> None:
        self.requests: list[PaymentRequest] = []

    def request_payment(self, record_id: UUID, reference: str, amount: Decimal) -> None:
        self.requests.append(PaymentRequest(record_id, reference, amount))


@dataclass
class Notification:
    event: str
    record_id: UUID
    status: str
    details: dict[str, Any] = field(default_factory=dict)


class InMemoryNotificationService:
    def __init__(self) -> None:
        self.sent: list[Notification] = []

    def notify(self, event: str, record: Record, details: dict[str, Any]) -> None:
        self.sent.append(Notification(event, record.id, record.status, dict(details)))

    def events_for(self, record_id: UUID) -> list[str]:
        return [n.event for n in self.sent if n.record_id == record_id]


class InMemoryInspectionService:
    def __init__(self) -> None:
        self.scheduled: dict[UUID, date] = {}
        self.reports: dict[UUID, dict[str, Any]] = {}

    def schedule(self, record_id: UUID, inspection_date: date, details: dict[str, Any]) -> None:
        self.scheduled[record_id] = inspection_date

    def record_report(self, record_id: UUID, report: dict[str, Any]) -> None:
        self.reports[record_id] = dict(report)


# ---------------------------------------------------------------------------
# Post-commit dispatch
# ---------------------------------------------------------------------------


@dataclass
class FailedSideEffect:
    """A side effect that raised; kept until an operator retries it."""

    name: str
    record_id: UUID
    call: Callable[[], None]
    error: str
    attempts: int = 1


class SideEffectDispatcher:
    """Runs post-commit side effects, capturing failures instead of raising."""

    def __init__(self) -> None:
        self._failures: list[FailedSideEffect] = []

    def dispatch(self, name: str, record_id: UUID, call: Callable[[], None]) -> bool:
        """Run ``call``; on failure log it and queue it.  Returns success."""
        try:
            call()
        except Exception as exc:  # noqa: BLE001
            logger.error(
                "side_effect_failed",
                extra={"side_effect": name, "record_id": str(record_id), "error": str(exc)},
                exc_info=True,
            )
            self._failures.append(FailedSideEffect(name, record_id, call, str(exc)))
            return False
        logger.debug(
            "side_effect_dispatched",
            extra={"side_effect": name, "record_id": str(record_id)},
        )
        return True

    def pending_failures(self) -> tuple[FailedSideEffect, ...]:
        return tuple(self._failures)

    def retry_failed(self) -> int:
        """Rerun every queued failure once.  Returns how many succeeded."""
        queued, self._failures = self._failures, []
        succeeded = 0
        for failure in queued:
            try:
                failure.call()
            except Exception as exc:  # noqa: BLE001
                failure.attempts += 1
                failure.error = str(exc)
                self._failures.append(failure)
                logger.warning(
                    "side_effect_retry_failed",
                    extra={
                        "side_effect": failure.name,
                        "record_id": str(failure.record_id),
                        "attempts": failure.attempts,
                        "error": str(exc),
                    },
                )
            else:
                succeeded += 1
                logger.info(
                    "side_effect_retried",
                    extra={"side_effect": failure.name, "record_id": str(failure.record_id)},
                )
        return succeeded
