from datetime import time

import pytest
from sqlalchemy.exc import IntegrityError

from infrabook.core.constants import (
    EVENT_BOOKING_REQUESTED,
    KIND_RESERVATION,
    QUESTION_NUMBER,
    STATUS_AVAILABLE,
    STATUS_PENDING,
    STATUS_REJECTED,
)
from infrabook.core.errors import MissingRequiredAnswers, SlotUnavailable
from infrabook.db.session import SessionLocal
from infrabook.models.answer import Answer
from infrabook.models.capability_token import CapabilityToken
from infrabook.models.infrastructure_manager import InfrastructureManager
from infrabook.models.question import QuestionDefinition
from infrabook.models.slot import SlotRecord
from infrabook.services.claim_service import claim
from infrabook.services import token_service
from infrabook.services.collaborators import ManagerTableAccessControl
from tests.helpers import DAY, MANAGER_EMAIL, NOW, USER_EMAIL, FailingNotifier, FakeNotifier, make_slot


def test_claim_moves_slot_to_pending_and_notifies_managers(db, infra, access, notifier):
    slot = make_slot(db, infra.id)
    result = claim(db, slot.id, USER_EMAIL, "wing test", {}, access, notifier, now=NOW)

    assert result.slot.id == slot.id
    assert result.slot.kind == KIND_RESERVATION
    assert result.slot.status == STATUS_PENDING
    assert result.slot.claimant == USER_EMAIL
    assert result.notification_sent is True
    assert len(result.action_token) == 64
    assert result.reject_token and result.reject_token != result.action_token

    event, recipients, payload = notifier.sent[0]
    assert event == EVENT_BOOKING_REQUESTED
    assert recipients == [MANAGER_EMAIL]
    assert payload["approve_url"].endswith(f"/email-action/approve/{result.action_token}")
    assert payload["reject_url"].endswith(f"/email-action/reject/{result.reject_token}")
    assert payload["infrastructure_name"] == "Wind Tunnel"


def test_second_claimer_loses_the_race(db, infra, notifier):
    slot = make_slot(db, infra.id)
    first, second = SessionLocal(), SessionLocal()
    try:
        winner = claim(first, slot.id, "a@example.com", None, {}, ManagerTableAccessControl(first), notifier, now=NOW)
        assert winner.slot.claimant == "a@example.com"
        with pytest.raises(SlotUnavailable):
            claim(second, slot.id, "b@example.com", None, {}, ManagerTableAccessControl(second), notifier, now=NOW)
    finally:
        first.close()
        second.close()

    db.expire_all()
    assert db.get(SlotRecord, slot.id).claimant == "a@example.com"
    assert db.query(SlotRecord).filter(SlotRecord.status == STATUS_PENDING).count() == 1


def test_claim_unknown_or_taken_slot(db, infra, access, notifier):
    with pytest.raises(SlotUnavailable):
        claim(db, 12345, USER_EMAIL, None, {}, access, notifier, now=NOW)

    taken = make_slot(db, infra.id, status=STATUS_PENDING, claimant="other@example.com")
    with pytest.raises(SlotUnavailable):
        claim(db, taken.id, USER_EMAIL, None, {}, access, notifier, now=NOW)


def test_claim_started_slot_is_refused(db, infra, access, notifier):
    slot = make_slot(db, infra.id, day=NOW.date(), start=time(7, 30), end=time(9, 0))
    with pytest.raises(SlotUnavailable):
        claim(db, slot.id, USER_EMAIL, None, {}, access, notifier, now=NOW)
    db.expire_all()
    assert db.get(SlotRecord, slot.id).status == STATUS_AVAILABLE


def test_claim_inactive_infrastructure_is_refused(db, infra, access, notifier):
    slot = make_slot(db, infra.id)
    infra.is_active = False
    db.commit()
    with pytest.raises(SlotUnavailable):
        claim(db, slot.id, USER_EMAIL, None, {}, access, notifier, now=NOW)


def test_missing_required_document_leaves_slot_untouched(db, infra, access, notifier, document_question):
    slot = make_slot(db, infra.id)
    with pytest.raises(MissingRequiredAnswers) as exc:
        claim(db, slot.id, USER_EMAIL, None, {}, access, notifier, now=NOW)
    assert exc.value.question_ids == [document_question.id]

    db.expire_all()
    row = db.get(SlotRecord, slot.id)
    assert row.status == STATUS_AVAILABLE
    assert row.claimant is None
    assert db.query(Answer).count() == 0
    assert db.query(CapabilityToken).count() == 0
    assert notifier.sent == []


def test_inline_value_does_not_satisfy_document_question(db, infra, access, notifier, document_question):
    slot = make_slot(db, infra.id)
    with pytest.raises(MissingRequiredAnswers):
        claim(db, slot.id, USER_EMAIL, None, {document_question.id: "see attached"}, access, notifier, now=NOW)


def test_document_handle_satisfies_question_and_is_persisted(db, infra, access, notifier, document_question):
    slot = make_slot(db, infra.id)
    answers = {str(document_question.id): {"document_handle": "doc-1", "filename": "cert.pdf"}}
    result = claim(db, slot.id, USER_EMAIL, None, answers, access, notifier, now=NOW)

    assert result.slot.status == STATUS_PENDING
    saved = db.query(Answer).filter(Answer.reservation_id == slot.id).one()
    assert saved.document_handle == "doc-1"
    assert saved.answer_text == "cert.pdf"


def test_number_question_needs_a_number(db, infra, access, notifier):
    q = QuestionDefinition(infrastructure_id=infra.id, question_text="Crew size", question_type=QUESTION_NUMBER, is_required=True)
    db.add(q)
    db.commit()
    slot = make_slot(db, infra.id)

    with pytest.raises(MissingRequiredAnswers):
        claim(db, slot.id, USER_EMAIL, None, {q.id: "several"}, access, notifier, now=NOW)
    result = claim(db, slot.id, USER_EMAIL, None, {q.id: "4"}, access, notifier, now=NOW)
    assert result.slot.status == STATUS_PENDING


def test_notification_failure_does_not_undo_claim(db, infra, access):
    slot = make_slot(db, infra.id)
    result = claim(db, slot.id, USER_EMAIL, None, {}, access, FailingNotifier(), now=NOW)
    assert result.notification_sent is False
    db.expire_all()
    assert db.get(SlotRecord, slot.id).status == STATUS_PENDING


def test_no_managers_means_no_notification(db, infra, access):
    db.query(InfrastructureManager).delete()
    db.commit()
    slot = make_slot(db, infra.id)
    notifier = FakeNotifier()

    result = claim(db, slot.id, USER_EMAIL, None, {}, access, notifier, now=NOW)
    assert result.slot.status == STATUS_PENDING
    assert result.notification_sent is False
    assert notifier.sent == []


def test_interval_can_be_held_by_one_row_only(db, infra):
    make_slot(db, infra.id)
    db.add(SlotRecord(
        infrastructure_id=infra.id,
        slot_date=DAY,
        start_time=time(10, 0),
        end_time=time(11, 0),
        kind="availability",
        status=STATUS_AVAILABLE,
    ))
    with pytest.raises(IntegrityError):
        db.commit()
    db.rollback()


def test_terminal_rows_do_not_block_the_interval(db, infra):
    make_slot(db, infra.id, status=STATUS_REJECTED, claimant=USER_EMAIL)
    make_slot(db, infra.id)
    assert db.query(SlotRecord).count() == 2


def test_token_issuance_failure_keeps_the_claim(db, infra, access, notifier, monkeypatch):
    real_mint = token_service.mint
    calls = []

    def flaky_mint(*args, **kwargs):
        calls.append(args)
        if len(calls) == 2:
            raise RuntimeError("token table unavailable")
        return real_mint(*args, **kwargs)

    monkeypatch.setattr(token_service, "mint", flaky_mint)
    slot = make_slot(db, infra.id)
    result = claim(db, slot.id, USER_EMAIL, None, {}, access, notifier, now=NOW)

    assert result.action_token is None
    assert result.reject_token is None
    db.expire_all()
    assert db.get(SlotRecord, slot.id).status == STATUS_PENDING
    # The savepoint discarded the token minted before the failure
    assert db.query(CapabilityToken).count() == 0
    assert "approve_url" not in notifier.sent[0][2]
