from datetime import timedelta

from bgv_portal.core.datetime_utils import utc_now
from bgv_portal.core.errors import ConflictError
from bgv_portal.core.workflow import (
    ADDRESS_VERIFICATION,
    APPROVED,
    COMPLETED,
    DOCUMENT_COLLECTION,
    LINK_SENT,
    NOT_INITIATED,
    REJECTED,
)
from bgv_portal.schemas.customer import CustomerCreate
from bgv_portal.services import companies, customers, tokens


async def _acme(db_session):
    return await customers.create_customer(db_session, CustomerCreate(company_name="Acme Corp"))


async def test_company_summaries_group_and_order(db_session, make_record):
    customer = await _acme(db_session)
    first = await make_record(candidate_name="A One")
    await make_record(candidate_name="A Two")
    globex = await make_record(company_name="Globex", candidate_name="G One")
    globex.created_at = utc_now() + timedelta(minutes=5)
    first.verification_status = COMPLETED
    first.status = APPROVED
    await db_session.flush()

    summaries = await companies.company_summaries(db_session)
    assert [summary.company_name for summary in summaries] == ["Globex", "Acme Corp"]
    acme = summaries[1]
    assert acme.customer_id == customer.customer_id
    assert (acme.total, acme.approved, acme.pending, acme.completed, acme.not_initiated) == (2, 1, 1, 1, 1)
    assert summaries[0].customer_id is None

    searched = await companies.company_summaries(db_session, search="glob")
    assert [summary.company_name for summary in searched] == ["Globex"]


async def test_record_stats_success_rate(db_session, make_record):
    approved = await make_record(candidate_name="One")
    rejected = await make_record(candidate_name="Two")
    await make_record(candidate_name="Three")
    for record, outcome in ((approved, APPROVED), (rejected, REJECTED)):
        record.verification_status = COMPLETED
        record.status = outcome
    await db_session.flush()

    stats = await companies.record_stats(db_session, DOCUMENT_COLLECTION)
    assert (stats.total, stats.approved, stats.rejected, stats.pending) == (3, 1, 1, 1)
    assert stats.completed == 2 and stats.not_initiated == 1
    assert stats.success_rate == 33.3

    empty = await companies.record_stats(db_session, ADDRESS_VERIFICATION)
    assert empty.total == 0 and empty.success_rate == 0.0


async def test_send_all_links_reports_failures(db_session, make_record, monkeypatch):
    customer = await _acme(db_session)
    ok_one = await make_record(candidate_name="One")
    broken = await make_record(candidate_name="Two")
    ok_two = await make_record(candidate_name="Three")
    already_sent = await make_record(candidate_name="Four")
    await tokens.issue(db_session, already_sent)
    other = await make_record(company_name="Globex", candidate_name="Elsewhere")

    original_issue = tokens.issue

    async def flaky_issue(session, record, **kwargs):
        if record.record_id == broken.record_id:
            raise ConflictError("Mail relay refused the message.")
        return await original_issue(session, record, **kwargs)

    monkeypatch.setattr(tokens, "issue", flaky_issue)
    result = await companies.send_all_links(db_session, customer.customer_id, performed_by="ops@example.com")

    assert (result.sent_count, result.failed_count) == (2, 1)
    assert [(error.record_id, error.message) for error in result.errors] == [
        (broken.record_id, "Mail relay refused the message.")
    ]
    for record in (ok_one, ok_two, broken, other):
        await db_session.refresh(record)
    assert ok_one.verification_status == LINK_SENT and ok_one.verification_token
    assert ok_two.verification_status == LINK_SENT
    assert broken.verification_status == NOT_INITIATED and broken.verification_token is None
    assert other.verification_status == NOT_INITIATED
