from __future__ import annotations

from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession

from bgv_portal.core.datetime_utils import to_utc_naive, utc_now
from bgv_portal.core.workflow import (
    ReviewState,
    advance_workflow,
    approve,
    check_invariants,
    mark_insufficient,
    normalize_status,
    reject,
    reopen,
    set_outcome,
)
from bgv_portal.models.submission import SubmissionRecord
from bgv_portal.request_context import RequestContext
from bgv_portal.schemas.record import RecordUpdate
from bgv_portal.services import tokens
from bgv_portal.services.events import log_event

# Admin-correctable columns; status fields only move through the workflow.
EDITABLE_FIELDS = frozenset(
    {
        "code",
        "candidate_name",
        "phone",
        "email",
        "initiator_name",
        "applicant_no",
        "fathers_name",
        "address",
        "city",
        "state",
        "pin",
        "landmark",
        "address_type",
        "verification_method",
    }
)


def review_state(record: SubmissionRecord) -> ReviewState:
    return ReviewState(
        status=record.status,
        verification_status=record.verification_status,
        admin_comments=record.admin_comments,
        verified_at=record.verified_at,
    )


async def _apply(
    session: AsyncSession,
    record: SubmissionRecord,
    new_state: ReviewState,
    *,
    action_type: str,
    reviewer: str | None,
    context: RequestContext | None,
) -> SubmissionRecord:
    old_state = review_state(record)
    record.status = new_state.status
    record.verification_status = new_state.verification_status
    record.admin_comments = new_state.admin_comments
    record.verified_at = new_state.verified_at
    if new_state.verified_at != old_state.verified_at:
        record.verified_by = reviewer if new_state.verified_at else None
    record.updated_at = utc_now()
    await session.flush()
    await log_event(
        session,
        record_kind=record.RECORD_KIND,
        record_id=record.record_id,
        action_type=action_type,
        from_status=old_state.status,
        to_status=new_state.status,
        performed_by=reviewer,
        meta_json={
            "verification_status": new_state.verification_status,
            "comment": new_state.admin_comments,
        },
        context=context,
    )
    return record


async def approve_record(
    session: AsyncSession,
    record: SubmissionRecord,
    *,
    comment: str | None = None,
    reviewer: str | None = None,
    context: RequestContext | None = None,
) -> SubmissionRecord:
    new_state = approve(review_state(record), kind=record.RECORD_KIND, comment=comment)
    return await _apply(session, record, new_state, action_type="record_approved", reviewer=reviewer, context=context)


async def reject_record(
    session: AsyncSession,
    record: SubmissionRecord,
    *,
    comment: str | None,
    reissue_link: bool = False,
    reviewer: str | None = None,
    context: RequestContext | None = None,
) -> tuple[SubmissionRecord, tokens.IssuedLink | None]:
    """Reject a completed submission; ``reissue_link`` sends it back to the candidate with a new token."""
    kind = record.RECORD_KIND
    new_state = reject(review_state(record), kind=kind, comment=comment)
    await _apply(session, record, new_state, action_type="record_rejected", reviewer=reviewer, context=context)
    if not reissue_link:
        return record, None

    await _apply(
        session,
        record,
        reopen(new_state, kind=kind),
        action_type="record_reopened",
        reviewer=reviewer,
        context=context,
    )
    link = await tokens.issue(session, record, performed_by=reviewer, context=context)
    return record, link


async def mark_record_insufficient(
    session: AsyncSession,
    record: SubmissionRecord,
    *,
    comment: str | None,
    reviewer: str | None = None,
    context: RequestContext | None = None,
) -> SubmissionRecord:
    new_state = mark_insufficient(review_state(record), kind=record.RECORD_KIND, comment=comment)
    return await _apply(
        session, record, new_state, action_type="record_insufficient", reviewer=reviewer, context=context
    )


async def edit_record(
    session: AsyncSession,
    record: SubmissionRecord,
    patch: dict,
    *,
    performed_by: str | None = None,
    context: RequestContext | None = None,
) -> SubmissionRecord:
    """Correct admin-owned fields at any workflow state."""
    changed = {}
    for name, value in patch.items():
        if name not in EDITABLE_FIELDS or not hasattr(record, name):
            continue
        if name == "email" and value:
            value = str(value).lower()
        if getattr(record, name) != value:
            setattr(record, name, value)
            changed[name] = value
    if not changed:
        return record

    record.updated_at = utc_now()
    await session.flush()
    await log_event(
        session,
        record_kind=record.RECORD_KIND,
        record_id=record.record_id,
        action_type="record_edited",
        performed_by=performed_by,
        meta_json={"fields": sorted(changed)},
        context=context,
    )
    return record


async def apply_admin_update(
    session: AsyncSession,
    record: SubmissionRecord,
    update: RecordUpdate,
    *,
    reviewer: str | None = None,
    context: RequestContext | None = None,
) -> SubmissionRecord:
    """Partial admin patch: field edits, then workflow moves, then the outcome."""
    patch = update.model_dump(exclude_unset=True, exclude={"status", "verification_status", "verification_data"})
    await edit_record(session, record, patch, performed_by=reviewer, context=context)

    comment = update.verification_data.verifier_comments if update.verification_data else None
    verified_at: datetime | None = None
    if update.verification_data and update.verification_data.verified_at:
        verified_at = to_utc_naive(update.verification_data.verified_at)

    if update.verification_status and normalize_status(update.verification_status) != record.verification_status:
        new_state = advance_workflow(review_state(record), update.verification_status)
        await _apply(
            session, record, new_state, action_type="workflow_updated", reviewer=reviewer, context=context
        )

    if update.status:
        new_state = check_invariants(
            set_outcome(
                review_state(record),
                kind=record.RECORD_KIND,
                status=update.status,
                comment=comment,
                now=verified_at,
            )
        )
        await _apply(session, record, new_state, action_type="status_updated", reviewer=reviewer, context=context)
    elif comment is not None and comment.strip() != (record.admin_comments or ""):
        record.admin_comments = comment.strip() or None
        record.updated_at = utc_now()
        await session.flush()
    return record
