"""
Write-once and append-only enforcement.

Verifies:
- Certificate number, issue time and expiry cannot be rewritten once issued
- Application numbers are write-once
- The correction counter never decreases
- Only drafts can be deleted
- The transition log is append-only
"""

import pytest
from sqlalchemy import select

from homestay_kernel.domain.values import ApplicationStatus as S
from homestay_kernel.exceptions import ImmutabilityViolationError
from homestay_kernel.models.transition_log import TransitionLogEntry
from homestay_kernel.services.record_store import RecordStore


@pytest.fixture
def store(session):
    return RecordStore(session)


class TestCertificateIsWriteOnce:
    def test_certificate_number_cannot_be_rewritten(self, approved_application, store, session):
        app = approved_application()
        model = store.get_application(app.id)
        assert model.certificate_number is not None

        model.certificate_number = "HP-HST-2025-99999"
        with pytest.raises(ImmutabilityViolationError) as exc_info:
            store.flush(model)
        session.rollback()

        assert exc_info.value.entity_type == "Application"
        assert "certificate_number" in exc_info.value.reason

    def test_expiry_cannot_be_extended_in_place(self, approved_application, store, session):
        app = approved_application()
        model = store.get_application(app.id)
        model.certificate_expiry_date = model.certificate_expiry_date.replace(year=2030)
        with pytest.raises(ImmutabilityViolationError):
            store.flush(model)
        session.rollback()

    def test_blocked_write_is_logged(self, approved_application, store, session, captured_logs):
        app = approved_application()
        model = store.get_application(app.id)
        model.certificate_number = "FORGED"
        with pytest.raises(ImmutabilityViolationError):
            store.flush(model)
        session.rollback()

        blocked = [r for r in captured_logs() if r["message"] == "immutability_violation_blocked"]
        assert blocked[-1]["operation"] == "UPDATE"
        assert blocked[-1]["entity_id"] == str(app.id)


class TestApplicationRows:
    def test_application_number_is_write_once(self, create_complete_application, service, store, session):
        app = create_complete_application()
        service.submit_application(app.id)
        model = store.get_application(app.id)
        assert model.application_number

        model.application_number = "HP-HS-2025-KUL-999999"
        with pytest.raises(ImmutabilityViolationError):
            store.flush(model)
        session.rollback()

    def test_correction_count_cannot_decrease(self, create_complete_application, service, store, session):
        app = create_complete_application()
        service.submit_application(app.id)
        model = store.get_application(app.id)
        model.correction_submission_count = 1
        store.flush(model)
        session.commit()
        assert model.correction_submission_count == 1

        model.correction_submission_count = 0
        with pytest.raises(ImmutabilityViolationError):
            store.flush(model)
        session.rollback()

    def test_submitted_application_cannot_be_deleted(self, create_complete_application, service, store, session):
        app = create_complete_application()
        service.submit_application(app.id)
        model = store.get_application(app.id)
        assert model.status == S.SUBMITTED.value

        store.delete(model)
        with pytest.raises(ImmutabilityViolationError) as exc_info:
            store.flush(model)
        session.rollback()
        assert "only draft" in exc_info.value.reason


class TestTransitionLogIsAppendOnly:
    def _first_entry(self, session, record_id):
        return session.execute(
            select(TransitionLogEntry)
            .where(TransitionLogEntry.record_id == record_id)
            .order_by(TransitionLogEntry.seq)
        ).scalars().first()

    def test_entry_cannot_be_edited(self, create_complete_application, service, session):
        app = create_complete_application()
        service.submit_application(app.id)
        entry = self._first_entry(session, app.id)
        assert entry is not None

        entry.remark = "rewritten"
        with pytest.raises(ImmutabilityViolationError):
            session.flush()
        session.rollback()

    def test_entry_cannot_be_deleted(self, create_complete_application, service, session):
        app = create_complete_application()
        service.submit_application(app.id)
        entry = self._first_entry(session, app.id)

        session.delete(entry)
        with pytest.raises(ImmutabilityViolationError):
            session.flush()
        session.rollback()
        assert [e.action for e in service.history(app.id)] == ["create", "submit"]
