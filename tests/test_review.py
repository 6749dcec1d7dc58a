from datetime import datetime, timezone

import pytest
from sqlalchemy import select

from bgv_portal.core.errors import CommentRequired, StateGuardError, TokenNotFound, ValidationError
from bgv_portal.core.workflow import (
    ADDRESS_VERIFICATION,
    APPROVED,
    COMPLETED,
    DOCUMENT_COLLECTION,
    FAILED,
    INSUFFICIENCY,
    LINK_SENT,
    PENDING,
    REJECTED,
    VERIFIED,
)
from bgv_portal.models.event import BgvRecordEvent
from bgv_portal.schemas.record import AddressVerificationUpdate, RecordUpdate, VerificationData
from bgv_portal.services import review, tokens


async def _completed(db_session, make_record, kind=DOCUMENT_COLLECTION):
    record = await make_record(kind)
    link = await tokens.issue(db_session, record)
    record.verification_status = COMPLETED
    await db_session.flush()
    return record, link


async def _actions(db_session, record) -> list[str]:
    rows = await db_session.execute(
        select(BgvRecordEvent.action_type)
        .where(BgvRecordEvent.record_kind == record.RECORD_KIND, BgvRecordEvent.record_id == record.record_id)
        .order_by(BgvRecordEvent.event_id)
    )
    return list(rows.scalars().all())


async def test_approve_needs_completed_submission(db_session, make_record):
    record = await make_record()
    with pytest.raises(StateGuardError):
        await review.approve_record(db_session, record, reviewer="reviewer@example.com")
    assert record.status == PENDING

    record, _ = await _completed(db_session, make_record)
    await review.approve_record(db_session, record, comment="All clear", reviewer="reviewer@example.com")
    assert record.status == APPROVED
    assert record.verified_at is not None
    assert record.verified_by == "reviewer@example.com"
    assert record.admin_comments == "All clear"
    assert (await _actions(db_session, record))[-1] == "record_approved"


async def test_reject_needs_comment(db_session, make_record):
    record, _ = await _completed(db_session, make_record)
    with pytest.raises(CommentRequired):
        await review.reject_record(db_session, record, comment="   ")
    assert record.status == PENDING

    rejected, link = await review.reject_record(db_session, record, comment="Blurry PAN copy", reviewer="r1")
    assert link is None
    assert rejected.status == REJECTED
    assert rejected.verification_status == COMPLETED
    assert rejected.admin_comments == "Blurry PAN copy"


async def test_reject_with_new_link_reopens(db_session, make_record):
    record, old_link = await _completed(db_session, make_record)
    rejected, link = await review.reject_record(
        db_session, record, comment="Upload a clearer PAN", reissue_link=True, reviewer="r1"
    )

    assert link is not None and link.token != old_link.token
    assert rejected.status == PENDING
    assert rejected.verification_status == LINK_SENT
    assert rejected.verified_at is None and rejected.verified_by is None
    assert rejected.admin_comments == "Upload a clearer PAN"
    with pytest.raises(TokenNotFound):
        await tokens.resolve(db_session, DOCUMENT_COLLECTION, old_link.token)
    assert (await _actions(db_session, record))[-3:] == ["record_rejected", "record_reopened", "link_issued"]


async def test_insufficiency_is_an_address_outcome(db_session, make_record):
    dc, _ = await _completed(db_session, make_record)
    with pytest.raises(StateGuardError):
        await review.mark_record_insufficient(db_session, dc, comment="Missing page")

    av, _ = await _completed(db_session, make_record, ADDRESS_VERIFICATION)
    with pytest.raises(CommentRequired):
        await review.mark_record_insufficient(db_session, av, comment="")
    await review.mark_record_insufficient(db_session, av, comment="House image is dark", reviewer="r2")
    assert av.status == INSUFFICIENCY
    assert av.verification_status == COMPLETED


async def test_admin_update_edits_and_sets_outcome(db_session, make_record):
    record, _ = await _completed(db_session, make_record, ADDRESS_VERIFICATION)
    verified_at = datetime(2026, 3, 1, 10, 30, tzinfo=timezone.utc)
    update = AddressVerificationUpdate(
        city="Mysuru",
        status="verified",
        verification_status="completed",
        verification_data=VerificationData(verifier_comments="Neighbour confirmed", verified_at=verified_at),
    )
    await review.apply_admin_update(db_session, record, update, reviewer="r3")

    assert record.city == "Mysuru"
    assert record.status == VERIFIED
    assert record.verified_at == datetime(2026, 3, 1, 10, 30)
    assert record.admin_comments == "Neighbour confirmed"
    assert "workflow_updated" not in await _actions(db_session, record)

    await review.apply_admin_update(
        db_session,
        record,
        AddressVerificationUpdate(status="failed", verification_data=VerificationData(verifier_comments="Moved out")),
    )
    assert record.status == FAILED


async def test_admin_update_guards(db_session, make_record):
    record = await make_record()
    with pytest.raises(StateGuardError):
        await review.apply_admin_update(db_session, record, RecordUpdate(verification_status="completed"))
    with pytest.raises(StateGuardError):
        await review.apply_admin_update(db_session, record, RecordUpdate(status="approved"))
    with pytest.raises(ValidationError):
        await review.apply_admin_update(db_session, record, RecordUpdate(status="verified"))

    await review.apply_admin_update(db_session, record, RecordUpdate(verification_status="sent"))
    assert record.verification_status == LINK_SENT

    await review.apply_admin_update(
        db_session, record, RecordUpdate(verification_data=VerificationData(verifier_comments="Call on Monday"))
    )
    assert record.admin_comments == "Call on Monday"
    assert record.status == PENDING


async def test_edit_ignores_workflow_columns(db_session, make_record):
    record = await make_record()
    await review.edit_record(
        db_session, record, {"email": "Asha.Rao@Example.com", "verification_status": "completed"}
    )
    assert record.email == "asha.rao@example.com"
    assert record.verification_status != COMPLETED
