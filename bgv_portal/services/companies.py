from __future__ import annotations

import logging

from sqlalchemy import case, func, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from bgv_portal.core.errors import BGVError
from bgv_portal.core.workflow import (
    COMPLETED,
    EXPIRED,
    IN_PROGRESS,
    INSUFFICIENCY,
    LINK_SENT,
    NOT_INITIATED,
    PENDING,
    outcome_vocabulary,
)
from bgv_portal.models.submission import BgvDocumentCollection
from bgv_portal.request_context import RequestContext
from bgv_portal.schemas.company import BulkSendError, BulkSendResult, CompanySummary, RecordStats
from bgv_portal.services import tokens
from bgv_portal.services.customers import get_customer
from bgv_portal.services.records import record_model

logger = logging.getLogger("bgv.companies")


def _count_where(condition):
    return func.coalesce(func.sum(case((condition, 1), else_=0)), 0)


async def company_summaries(session: AsyncSession, *, search: str | None = None) -> list[CompanySummary]:
    """Document-collection rollup per company, most recently active first."""
    model = BgvDocumentCollection
    vocab = outcome_vocabulary(model.RECORD_KIND)
    last_created = func.max(model.created_at)
    query = (
        select(
            model.customer_id,
            model.company_name,
            func.count(model.record_id),
            _count_where(model.status == PENDING),
            _count_where(model.status == vocab.approved),
            _count_where(model.status == vocab.rejected),
            _count_where(model.verification_status == COMPLETED),
            _count_where(model.verification_status == NOT_INITIATED),
            last_created,
        )
        .group_by(model.customer_id, model.company_name)
        .order_by(last_created.desc())
    )
    if search and search.strip():
        query = query.where(model.company_name.ilike(f"%{search.strip()}%"))

    rows = (await session.execute(query)).all()
    return [
        CompanySummary(
            customer_id=customer_id,
            company_name=company_name,
            total=total,
            pending=pending,
            approved=approved,
            rejected=rejected,
            completed=completed,
            not_initiated=not_initiated,
            last_created_at=last_created_at,
        )
        for (
            customer_id,
            company_name,
            total,
            pending,
            approved,
            rejected,
            completed,
            not_initiated,
            last_created_at,
        ) in rows
    ]


async def send_all_links(
    session: AsyncSession,
    customer_id: int,
    *,
    performed_by: str | None = None,
    context: RequestContext | None = None,
) -> BulkSendResult:
    """Issue a link for every not-yet-initiated record of a company.

    Each record is issued in its own savepoint; a failure is reported and the
    rest still go out.
    """
    customer = await get_customer(session, customer_id)
    model = BgvDocumentCollection
    records = (
        await session.execute(
            select(model)
            .where(
                or_(model.customer_id == customer.customer_id, model.company_name == customer.company_name),
                model.verification_status == NOT_INITIATED,
            )
            .order_by(model.record_id)
        )
    ).scalars().all()

    result = BulkSendResult()
    for record in records:
        record_id, code = record.record_id, record.code
        try:
            async with session.begin_nested():
                await tokens.issue(session, record, performed_by=performed_by, context=context)
        except (BGVError, SQLAlchemyError) as exc:
            message = exc.message if isinstance(exc, BGVError) else "Unable to issue link."
            logger.warning("bulk_link_failed", extra={"record_id": record_id, "error": str(exc)})
            result.errors.append(BulkSendError(record_id=record_id, code=code, message=message))
            continue
        result.sent_count += 1
    result.failed_count = len(result.errors)
    logger.info(
        "bulk_links_sent",
        extra={"customer_id": customer_id, "sent": result.sent_count, "failed": result.failed_count},
    )
    return result


async def record_stats(session: AsyncSession, kind: str, *, customer_id: int | None = None) -> RecordStats:
    model = record_model(kind)
    vocab = outcome_vocabulary(kind)
    query = select(
        func.count(model.record_id),
        _count_where(model.status == PENDING),
        _count_where(model.status == vocab.approved),
        _count_where(model.status == vocab.rejected),
        _count_where(model.status == INSUFFICIENCY),
        _count_where(model.verification_status == NOT_INITIATED),
        _count_where(model.verification_status == LINK_SENT),
        _count_where(model.verification_status == IN_PROGRESS),
        _count_where(model.verification_status == COMPLETED),
        _count_where(model.verification_status == EXPIRED),
    )
    if customer_id is not None:
        query = query.where(model.customer_id == customer_id)

    (
        total,
        pending,
        approved,
        rejected,
        insufficiency,
        not_initiated,
        link_sent,
        in_progress,
        completed,
        expired,
    ) = (await session.execute(query)).one()
    success_rate = round(approved / total * 100, 1) if total else 0.0
    return RecordStats(
        total=total,
        pending=pending,
        approved=approved,
        rejected=rejected,
        insufficiency=insufficiency,
        not_initiated=not_initiated,
        link_sent=link_sent,
        in_progress=in_progress,
        completed=completed,
        expired=expired,
        success_rate=success_rate,
    )
