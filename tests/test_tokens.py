from datetime import timedelta

import pytest

from bgv_portal.core.datetime_utils import utc_now
from bgv_portal.core.errors import AlreadyCompleted, StateGuardError, TokenExpired, TokenNotFound
from bgv_portal.core.workflow import (
    ADDRESS_VERIFICATION,
    COMPLETED,
    DOCUMENT_COLLECTION,
    EXPIRED,
    IN_PROGRESS,
    LINK_SENT,
)
from bgv_portal.services import tokens


async def test_issue_sends_link_with_kind_ttl(db_session, make_record):
    record = await make_record(DOCUMENT_COLLECTION)
    now = utc_now()
    link = await tokens.issue(db_session, record, now=now)

    assert record.verification_status == LINK_SENT
    assert record.verification_token == link.token
    assert len(link.token) >= 43
    assert link.expires_at == now + timedelta(days=30)
    assert link.link == f"https://bgv.example.com/document-collections/{link.token}"

    av = await make_record(ADDRESS_VERIFICATION, candidate_name="Ravi")
    av_link = await tokens.issue(db_session, av, now=now)
    assert av_link.expires_at == now + timedelta(hours=24)
    assert "/address-verifications/" in av_link.link


async def test_reissue_invalidates_previous_token(db_session, make_record):
    record = await make_record()
    first = await tokens.issue(db_session, record)
    second = await tokens.issue(db_session, record)

    assert first.token != second.token
    with pytest.raises(TokenNotFound):
        await tokens.resolve(db_session, DOCUMENT_COLLECTION, first.token)
    assert (await tokens.resolve(db_session, DOCUMENT_COLLECTION, second.token)).record_id == record.record_id


async def test_token_of_other_kind_does_not_resolve(db_session, make_record):
    record = await make_record(DOCUMENT_COLLECTION)
    link = await tokens.issue(db_session, record)
    with pytest.raises(TokenNotFound):
        await tokens.resolve(db_session, ADDRESS_VERIFICATION, link.token)
    with pytest.raises(TokenNotFound):
        await tokens.resolve(db_session, DOCUMENT_COLLECTION, "  ")


async def test_first_write_moves_to_in_progress(db_session, make_record):
    record = await make_record()
    link = await tokens.issue(db_session, record)

    await tokens.resolve(db_session, DOCUMENT_COLLECTION, link.token)
    assert record.verification_status == LINK_SENT
    await tokens.resolve(db_session, DOCUMENT_COLLECTION, link.token, for_write=True)
    assert record.verification_status == IN_PROGRESS


async def test_expired_link_marks_record_and_can_be_reissued(db_session, make_record):
    record = await make_record()
    link = await tokens.issue(db_session, record, now=utc_now() - timedelta(days=31))

    with pytest.raises(TokenExpired):
        await tokens.resolve(db_session, DOCUMENT_COLLECTION, link.token)
    assert record.verification_status == EXPIRED
    with pytest.raises(TokenExpired):
        await tokens.resolve(db_session, DOCUMENT_COLLECTION, link.token, for_write=True)

    fresh = await tokens.issue(db_session, record)
    assert record.verification_status == LINK_SENT
    assert (await tokens.resolve(db_session, DOCUMENT_COLLECTION, fresh.token)).record_id == record.record_id


async def test_completed_record_is_read_only_even_after_expiry(db_session, make_record):
    record = await make_record()
    link = await tokens.issue(db_session, record, now=utc_now() - timedelta(days=40))
    record.verification_status = COMPLETED
    await db_session.flush()

    assert (await tokens.resolve(db_session, DOCUMENT_COLLECTION, link.token)).record_id == record.record_id
    with pytest.raises(AlreadyCompleted):
        await tokens.resolve(db_session, DOCUMENT_COLLECTION, link.token, for_write=True)


async def test_completed_record_needs_explicit_reset(db_session, make_record):
    record = await make_record()
    await tokens.issue(db_session, record)
    record.verification_status = COMPLETED
    await db_session.flush()

    with pytest.raises(StateGuardError):
        await tokens.issue(db_session, record)
    await tokens.issue(db_session, record, allow_reset=True)
    assert record.verification_status == LINK_SENT
