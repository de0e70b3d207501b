"""
Tests for ServiceRequestRouter and the amendment lifecycle.

A service request is opened against an approved application, walks the
same transition table as an application, and on approval is applied to
its parent inside the approving transaction.
"""

from decimal import Decimal

import pytest

from homestay_kernel.domain.registration_workflow import (
    APPROVE,
    FORWARD_TO_DTDO,
    REJECT,
    SCHEDULE_INSPECTION,
    SUBMIT_REPORT,
)
from homestay_kernel.domain.values import (
    ActorRole,
    ApplicationKind,
    ApplicationStatus as S,
    Category,
    Gender,
    PaymentStatus,
    RoomType,
)
from homestay_kernel.exceptions import (
    ConflictingServiceRequestError,
    ForbiddenActionError,
    InvalidTransitionError,
    PreconditionNotMetError,
    ValidationError,
)

DA = ActorRole.DEALING_ASSISTANT
DTDO = ActorRole.DISTRICT_TOURISM_OFFICER

ADD_ONE_SINGLE = {"rooms": [{"room_type": "single", "count": 1, "nightly_rate": "2000"}]}

NEW_OWNER = {
    "new_owner": {"name": "Ramesh Thakur", "mobile": "9816000002"},
    "transfer_document_ref": "SALE-DEED-2025-118",
    "new_owner_id": "owner-ramesh",
}


@pytest.fixture
def parent(approved_application):
    return approved_application()


@pytest.fixture
def review(service, deterministic_clock):
    """Drive a submitted request through DTDO review to the DTDO's approval."""

    def _review(request_id, *, inspect: bool = True):
        deterministic_clock.advance(60)
        service.transition(request_id, DA, FORWARD_TO_DTDO)
        if inspect:
            deterministic_clock.advance(60)
            service.transition(request_id, DTDO, SCHEDULE_INSPECTION, {"inspection_date": "2025-05-15"})
            deterministic_clock.advance(60)
            service.transition(
                request_id, DA, SUBMIT_REPORT,
                {"findings": "Rooms verified", "recommendation": "approve"},
            )
        deterministic_clock.advance(60)
        return service.transition(request_id, DTDO, APPROVE)

    return _review


class TestCreation:
    def test_opens_a_draft_holding_the_active_slot(self, router, parent):
        request = router.create_service_request(parent.id, ApplicationKind.ADD_ROOMS, ADD_ONE_SINGLE)
        assert request.status == S.DRAFT.value
        assert request.parent_application_id == parent.id
        assert request.owner_id == parent.owner_id
        assert request.payload["rooms"][0]["room_type"] == "single"
        assert router.active_request(parent.id).id == request.id

    def test_second_active_request_conflicts(self, router, parent):
        first = router.create_service_request(parent.id, "add_rooms", ADD_ONE_SINGLE)
        with pytest.raises(ConflictingServiceRequestError) as exc_info:
            router.create_service_request(parent.id, "cancel_certificate", {"reason": "Closing"})
        assert exc_info.value.active_request_id == str(first.id)

    def test_parent_must_be_approved(self, router, forwarded_application):
        app = forwarded_application()
        with pytest.raises(InvalidTransitionError):
            router.create_service_request(app.id, "add_rooms", ADD_ONE_SINGLE)

    def test_owner_must_match(self, router, parent):
        with pytest.raises(ForbiddenActionError):
            router.create_service_request(parent.id, "add_rooms", ADD_ONE_SINGLE, owner_id="someone-else")

    def test_primary_kind_rejected(self, router, parent):
        with pytest.raises(ValidationError):
            router.create_service_request(parent.id, ApplicationKind.RENEWAL, {})

    def test_malformed_payload_rejected(self, router, parent):
        with pytest.raises(ValidationError) as exc_info:
            router.create_service_request(parent.id, "change_ownership", {"new_owner": {"name": "x"}})
        assert exc_info.value.field == "mobile"
        assert router.active_request(parent.id) is None

    def test_deleting_every_room_rejected(self, router, parent):
        with pytest.raises(ValidationError) as exc_info:
            router.create_service_request(parent.id, "delete_rooms", {"removals": {"double": 2}})
        assert "at least one room" in exc_info.value.reason

    def test_adding_past_the_room_limit_rejected(self, router, parent):
        with pytest.raises(ValidationError):
            router.create_service_request(
                parent.id, "add_rooms",
                {"rooms": [{"room_type": "single", "count": 5, "nightly_rate": "2000"}]},
            )

    def test_rooms_implying_higher_category_rejected(self, router, parent):
        with pytest.raises(ValidationError) as exc_info:
            router.create_service_request(
                parent.id, "add_rooms",
                {"rooms": [{"room_type": "single", "count": 1, "nightly_rate": "4000"}]},
            )
        assert "change of category" in exc_info.value.reason

    def test_downgrade_rejected(self, router, parent):
        with pytest.raises(ValidationError) as exc_info:
            router.create_service_request(parent.id, "change_category", {"new_category": "silver"})
        assert exc_info.value.field == "new_category"


class TestAddRooms:
    def test_approval_merges_rooms_into_parent(self, service, router, parent, review):
        request = router.create_service_request(parent.id, "add_rooms", ADD_ONE_SINGLE)
        submitted = router.submit(request.id)
        assert submitted.application_number == "HP-SR-2025-KUL-000001"
        assert submitted.total_fee == Decimal("0")

        approved = review(request.id)
        assert approved.status == S.APPROVED.value

        updated = service.get(parent.id)
        assert updated.status == S.APPROVED.value
        assert updated.rooms.total_rooms == 3
        assert updated.rooms.total_beds == 5
        assert updated.certificate == parent.certificate
        assert router.active_request(parent.id) is None

    def test_parent_history_records_the_amendment(self, service, router, parent, review):
        request = router.create_service_request(parent.id, "add_rooms", ADD_ONE_SINGLE)
        router.submit(request.id)
        review(request.id)
        last = service.history(parent.id)[-1]
        assert last.action == "add_rooms"
        assert last.details["service_request_id"] == str(request.id)
        assert last.details["total_rooms"] == 3

    def test_new_request_allowed_once_the_previous_closes(
        self, service, router, parent, deterministic_clock,
    ):
        request = router.create_service_request(parent.id, "add_rooms", ADD_ONE_SINGLE)
        router.submit(request.id)
        service.transition(request.id, DA, REJECT, {"remark": "Rooms not built yet"})
        deterministic_clock.advance(60)
        again = router.create_service_request(parent.id, "add_rooms", ADD_ONE_SINGLE)
        assert again.status == S.DRAFT.value
        assert [r.id for r in router.requests_for(parent.id)] == [request.id, again.id]

    def test_draft_payload_can_be_replaced(self, service, router, parent):
        request = router.create_service_request(parent.id, "add_rooms", ADD_ONE_SINGLE)
        updated = service.update_draft(
            request.id, ActorRole.PROPERTY_OWNER,
            {"payload": {"rooms": [{"room_type": "double", "count": 1, "nightly_rate": "2800"}]}},
        )
        assert updated.payload["rooms"][0]["room_type"] == "double"

    def test_draft_request_can_be_discarded(self, service, router, parent):
        request = router.create_service_request(parent.id, "add_rooms", ADD_ONE_SINGLE)
        service.discard(request.id, ActorRole.PROPERTY_OWNER)
        assert router.active_request(parent.id) is None


class TestDeleteRooms:
    def test_removes_from_the_parent_without_inspection(self, service, router, parent, review):
        request = router.create_service_request(parent.id, "delete_rooms", {"removals": {"double": 1}})
        router.submit(request.id)
        review(request.id, inspect=False)
        rooms = service.get(parent.id).rooms
        assert rooms.total_rooms == 1
        assert rooms.lines[0].room_type is RoomType.DOUBLE


class TestChangeCategory:
    def test_upgrade_is_charged_then_applied(self, service, router, parent, review, payments):
        request = router.create_service_request(parent.id, "change_category", {"new_category": "gold"})
        submitted = router.submit(request.id)
        assert submitted.total_fee == Decimal("3000")
        assert submitted.fee_delta == Decimal("3000")

        pending = review(request.id)
        assert pending.status == S.PAYMENT_PENDING.value
        assert payments.requests[-1].amount == Decimal("3000")
        assert service.get(parent.id).category is Category.SILVER

        paid = service.record_payment(request.id, "PG-UPG-1", "3000")
        assert paid.status == S.APPROVED.value
        assert paid.payment_status is PaymentStatus.PAID
        assert service.get(parent.id).category is Category.GOLD

    def test_quote_upgrade(self, router, parent):
        quote = router.quote_upgrade(parent.id, "diamond")
        assert quote.previous_category is Category.SILVER
        assert quote.new_category is Category.DIAMOND
        assert quote.upgrade_fee == Decimal("7000")

    def test_fee_snapshot_verifies(self, service, router, parent):
        request = router.create_service_request(parent.id, "change_category", {"new_category": "gold"})
        router.submit(request.id)
        assert service.verify_fee_snapshot(request.id)


class TestChangeOwnership:
    def test_requires_the_transfer_deed(self, router, parent):
        request = router.create_service_request(parent.id, "change_ownership", NEW_OWNER)
        with pytest.raises(PreconditionNotMetError) as exc_info:
            router.submit(request.id)
        assert exc_info.value.missing == ["document:ownership_transfer_deed"]

    def test_rewrites_owner_and_keeps_certificate(self, service, router, parent, review, documents):
        request = router.create_service_request(parent.id, "change_ownership", NEW_OWNER)
        documents.add(request.id, "ownership_transfer_deed")
        router.submit(request.id)
        review(request.id, inspect=False)

        updated = service.get(parent.id)
        assert updated.owner_id == "owner-ramesh"
        assert updated.owner.name == "Ramesh Thakur"
        assert updated.certificate.number == parent.certificate.number
        assert updated.certificate.expiry_date == parent.certificate.expiry_date

    def test_omitted_gender_keeps_the_recorded_one(
        self, service, router, approved_application, review, documents,
    ):
        parent = approved_application(owner_gender="female")
        assert parent.owner_attributes.gender is Gender.FEMALE

        request = router.create_service_request(parent.id, "change_ownership", NEW_OWNER)
        documents.add(request.id, "ownership_transfer_deed")
        router.submit(request.id)
        review(request.id, inspect=False)

        updated = service.get(parent.id)
        assert updated.owner_id == "owner-ramesh"
        assert updated.owner_attributes.gender is Gender.FEMALE

    def test_stated_gender_replaces_the_recorded_one(
        self, service, router, approved_application, review, documents,
    ):
        parent = approved_application(owner_gender="female")
        request = router.create_service_request(
            parent.id, "change_ownership", {**NEW_OWNER, "new_owner_gender": "male"},
        )
        documents.add(request.id, "ownership_transfer_deed")
        router.submit(request.id)
        review(request.id, inspect=False)

        assert service.get(parent.id).owner_attributes.gender is Gender.MALE


class TestCancelCertificate:
    def test_cancellation_is_terminal(self, service, router, parent, review, notifications):
        request = router.create_service_request(parent.id, "cancel_certificate", {"reason": "Property sold"})
        router.submit(request.id)
        review(request.id, inspect=False)

        cancelled = service.get(parent.id)
        assert cancelled.status == S.CERTIFICATE_CANCELLED.value
        assert cancelled.certificate_cancelled_at is not None
        assert cancelled.certificate is not None
        assert S.CERTIFICATE_CANCELLED.value in notifications.events_for(parent.id)

        with pytest.raises(InvalidTransitionError):
            router.create_service_request(parent.id, "add_rooms", ADD_ONE_SINGLE)

    def test_owner_may_apply_again_after_cancellation(self, service, router, parent, review):
        request = router.create_service_request(parent.id, "cancel_certificate", {"reason": "Closing"})
        router.submit(request.id)
        review(request.id, inspect=False)
        fresh = service.create_application(parent.owner_id)
        assert fresh.status == S.DRAFT.value
