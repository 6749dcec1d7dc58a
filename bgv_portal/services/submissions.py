from __future__ import annotations

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from bgv_portal.core.datetime_utils import utc_now
from bgv_portal.core.errors import AlreadyCompleted, ConflictError, IncompleteForm, MissingDocuments, ValidationError
from bgv_portal.core.forms import (
    apply_step,
    normalize_bgv_form,
    prefill_bgv_form,
    validate_address_form,
    validate_bgv_form,
)
from bgv_portal.core.slots import missing_slots
from bgv_portal.core.workflow import ADDRESS_VERIFICATION, COMPLETED, IN_PROGRESS
from bgv_portal.models.submission import BgvAddressVerification, BgvDocumentCollection, SubmissionRecord
from bgv_portal.request_context import RequestContext
from bgv_portal.schemas.bgv_form import MAX_EMPLOYMENTS, AddressVerificationForm, BGVFormData, BGVFormStepIn
from bgv_portal.schemas.customer import BGVFormConfig
from bgv_portal.services.document_slots import uploaded_slots
from bgv_portal.services.events import log_event


def current_bgv_form(record: BgvDocumentCollection) -> BGVFormData:
    """Saved form with the admin-entered identity filled into blank fields."""
    return prefill_bgv_form(record.form_data, name=record.candidate_name, phone=record.phone, email=record.email)


def current_address_form(record: BgvAddressVerification) -> AddressVerificationForm:
    form = AddressVerificationForm.model_validate(record.form_data) if record.form_data else AddressVerificationForm()
    if not form.landmark and record.landmark:
        form = form.model_copy(update={"landmark": record.landmark})
    return form


def _ensure_open(record: SubmissionRecord) -> None:
    if record.verification_status == COMPLETED:
        raise AlreadyCompleted()


def _check_employment_cap(form: BGVFormData) -> None:
    if len(form.employment_history) > MAX_EMPLOYMENTS:
        raise ValidationError.for_field("employment_history", f"at most {MAX_EMPLOYMENTS} entries")


async def _store_draft(
    session: AsyncSession,
    record: SubmissionRecord,
    form_data: dict,
    *,
    action_type: str,
    meta: dict | None = None,
    context: RequestContext | None = None,
) -> None:
    record.form_data = form_data
    record.updated_at = utc_now()
    await session.flush()
    await log_event(
        session,
        record_kind=record.RECORD_KIND,
        record_id=record.record_id,
        action_type=action_type,
        performed_by="candidate",
        meta_json=meta,
        context=context,
    )


async def save_draft(
    session: AsyncSession,
    record: BgvDocumentCollection,
    form: BGVFormData,
    *,
    context: RequestContext | None = None,
) -> BGVFormData:
    _ensure_open(record)
    _check_employment_cap(form)
    normalized = normalize_bgv_form(form, current_bgv_form(record))
    await _store_draft(session, record, normalized.model_dump(), action_type="form_draft_saved", context=context)
    return normalized


async def save_step(
    session: AsyncSession,
    record: BgvDocumentCollection,
    step: str,
    payload: BGVFormStepIn,
    *,
    context: RequestContext | None = None,
) -> BGVFormData:
    """Save one step; employment edits re-derive gap entries in the same write."""
    _ensure_open(record)
    form = apply_step(current_bgv_form(record), step, payload)
    await _store_draft(
        session,
        record,
        form.model_dump(),
        action_type="form_step_saved",
        meta={"step": step},
        context=context,
    )
    return form


async def save_address_draft(
    session: AsyncSession,
    record: BgvAddressVerification,
    form: AddressVerificationForm,
    *,
    context: RequestContext | None = None,
) -> AddressVerificationForm:
    _ensure_open(record)
    await _store_draft(session, record, form.model_dump(), action_type="form_draft_saved", context=context)
    return form


async def _complete(
    session: AsyncSession,
    record: SubmissionRecord,
    form_data: dict,
    *,
    context: RequestContext | None,
    extra_values: dict | None = None,
) -> SubmissionRecord:
    """Persist the final form and flip the workflow to ``completed`` iff it is still ``in_progress``."""
    model = type(record)
    now = utc_now()
    result = await session.execute(
        update(model)
        .where(model.record_id == record.record_id, model.verification_status == IN_PROGRESS)
        .values(
            verification_status=COMPLETED,
            form_data=form_data,
            submitted_at=now,
            ip_address=context.ip if context else None,
            user_agent=context.user_agent if context else None,
            updated_at=now,
            **(extra_values or {}),
        )
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        raise ConflictError(
            "This form was submitted from another session.",
            {"verification_status": record.verification_status},
        )
    await session.refresh(record)
    await log_event(
        session,
        record_kind=record.RECORD_KIND,
        record_id=record.record_id,
        action_type="form_submitted",
        from_status=IN_PROGRESS,
        to_status=COMPLETED,
        performed_by="candidate",
        context=context,
    )
    return record


async def submit_document_collection(
    session: AsyncSession,
    record: BgvDocumentCollection,
    form: BGVFormData,
    *,
    config: BGVFormConfig | None,
    context: RequestContext | None = None,
) -> BgvDocumentCollection:
    """Validate every step and slot at once, then complete the workflow."""
    _ensure_open(record)
    normalized = normalize_bgv_form(form, current_bgv_form(record))
    issues = validate_bgv_form(normalized, config)
    missing = missing_slots(record.RECORD_KIND, await uploaded_slots(session, record), config)
    if issues:
        raise IncompleteForm(issues, missing)
    if missing:
        raise MissingDocuments(missing)
    return await _complete(session, record, normalized.model_dump(), context=context)


async def submit_address_verification(
    session: AsyncSession,
    record: BgvAddressVerification,
    form: AddressVerificationForm,
    *,
    context: RequestContext | None = None,
) -> BgvAddressVerification:
    _ensure_open(record)
    issues = validate_address_form(form)
    missing = missing_slots(ADDRESS_VERIFICATION, await uploaded_slots(session, record))
    if issues:
        raise IncompleteForm(issues, missing)
    if missing:
        raise MissingDocuments(missing)

    extra = {"latitude": form.latitude, "longitude": form.longitude}
    if form.landmark.strip():
        extra["landmark"] = form.landmark.strip()
    return await _complete(session, record, form.model_dump(), context=context, extra_values=extra)
