"""Candidate link tokens.

A record stores at most one token. Issuing a new one overwrites the column,
so a previously handed-out link stops resolving immediately.
"""

from __future__ import annotations

import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from bgv_portal.core.datetime_utils import utc_now
from bgv_portal.core.errors import AlreadyCompleted, TokenExpired, TokenNotFound
from bgv_portal.core.workflow import (
    COMPLETED,
    EXPIRED,
    IN_PROGRESS,
    LINK_SENT,
    NOT_INITIATED,
    ensure_transition,
)
from bgv_portal.models.submission import SubmissionRecord
from bgv_portal.request_context import RequestContext
from bgv_portal.services.events import log_event
from bgv_portal.services.public_links import candidate_link
from bgv_portal.services.records import link_ttl, record_model

TOKEN_BYTES = 32


@dataclass(frozen=True)
class IssuedLink:
    token: str
    link: str
    expires_at: datetime


def new_token() -> str:
    return secrets.token_urlsafe(TOKEN_BYTES)


async def issue(
    session: AsyncSession,
    record: SubmissionRecord,
    *,
    ttl: timedelta | None = None,
    allow_reset: bool = False,
    performed_by: str | None = None,
    context: RequestContext | None = None,
    now: datetime | None = None,
) -> IssuedLink:
    """Mint a fresh link for ``record``; re-sending while the candidate is mid-way keeps the workflow."""
    now = now or utc_now()
    from_status = record.verification_status
    if from_status in {NOT_INITIATED, EXPIRED, COMPLETED}:
        record.verification_status = ensure_transition(from_status, LINK_SENT, allow_reset=allow_reset)

    token = new_token()
    expires_at = now + (ttl or link_ttl(record.RECORD_KIND))
    record.verification_token = token
    record.expires_at = expires_at
    record.link_sent_at = now
    record.updated_at = now
    await session.flush()

    await log_event(
        session,
        record_kind=record.RECORD_KIND,
        record_id=record.record_id,
        action_type="link_issued",
        from_status=from_status,
        to_status=record.verification_status,
        performed_by=performed_by,
        meta_json={"expires_at": expires_at.isoformat()},
        context=context,
    )
    return IssuedLink(token=token, link=candidate_link(record.RECORD_KIND, token), expires_at=expires_at)


async def resolve(
    session: AsyncSession,
    kind: str,
    token: str,
    *,
    for_write: bool = False,
    context: RequestContext | None = None,
    now: datetime | None = None,
) -> SubmissionRecord:
    """Look up the record behind a candidate link.

    Raises ``TokenNotFound`` for unknown or replaced tokens, ``TokenExpired``
    past ``expires_at`` (flagging the record ``expired``) and
    ``AlreadyCompleted`` when writing to a finished submission. A completed
    record stays readable after expiry. A write on a fresh link moves the
    workflow to ``in_progress``.
    """
    model = record_model(kind)
    token = (token or "").strip()
    if not token:
        raise TokenNotFound()
    record = (await session.execute(select(model).where(model.verification_token == token))).scalars().first()
    if record is None:
        raise TokenNotFound()

    if record.verification_status == COMPLETED:
        if for_write:
            raise AlreadyCompleted()
        return record

    now = now or utc_now()
    if record.verification_status == EXPIRED or (record.expires_at is not None and record.expires_at <= now):
        if record.verification_status != EXPIRED:
            from_status = record.verification_status
            record.verification_status = ensure_transition(from_status, EXPIRED)
            record.updated_at = now
            await session.flush()
            await log_event(
                session,
                record_kind=kind,
                record_id=record.record_id,
                action_type="link_expired",
                from_status=from_status,
                to_status=EXPIRED,
                context=context,
            )
        raise TokenExpired()

    if for_write and record.verification_status == LINK_SENT:
        record.verification_status = ensure_transition(LINK_SENT, IN_PROGRESS)
        record.updated_at = now
        await session.flush()
        await log_event(
            session,
            record_kind=kind,
            record_id=record.record_id,
            action_type="candidate_started",
            from_status=LINK_SENT,
            to_status=IN_PROGRESS,
            performed_by="candidate",
            context=context,
        )
    return record
