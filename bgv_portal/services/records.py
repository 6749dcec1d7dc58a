from __future__ import annotations

from datetime import timedelta
from typing import Any

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from bgv_portal.core.config import settings
from bgv_portal.core.datetime_utils import utc_now
from bgv_portal.core.errors import ConflictError, NotFoundError, ValidationError
from bgv_portal.core.workflow import (
    ADDRESS_VERIFICATION,
    DOCUMENT_COLLECTION,
    NOT_INITIATED,
    PENDING,
    normalize_status,
    outcome_vocabulary,
)
from bgv_portal.models.customer import BgvCustomer
from bgv_portal.models.document_upload import BgvDocumentUpload
from bgv_portal.models.submission import RECORD_MODELS, SubmissionRecord
from bgv_portal.request_context import RequestContext
from bgv_portal.schemas.customer import BGVFormConfig
from bgv_portal.schemas.record import RecordCreate
from bgv_portal.services.customers import find_customer_by_name, form_config
from bgv_portal.services.events import log_event

_MAX_CODE_ATTEMPTS = 20


def record_model(kind: str):
    outcome_vocabulary(kind)
    return RECORD_MODELS[kind]


def link_ttl(kind: str) -> timedelta:
    if kind == ADDRESS_VERIFICATION:
        return timedelta(hours=settings.address_link_ttl_hours)
    return timedelta(days=settings.document_link_ttl_days)


async def get_record(session: AsyncSession, kind: str, record_id: int) -> SubmissionRecord:
    model = record_model(kind)
    record = await session.get(model, record_id)
    if not record:
        raise NotFoundError(kind.replace("_", " ").capitalize(), record_id)
    return record


async def list_records(
    session: AsyncSession,
    kind: str,
    *,
    status: str | None = None,
    verification_status: str | None = None,
    customer_id: int | None = None,
    search: str | None = None,
    limit: int = 200,
    offset: int = 0,
) -> list[SubmissionRecord]:
    model = record_model(kind)
    query = select(model)
    if status:
        query = query.where(model.status == status.strip().lower())
    if verification_status:
        query = query.where(model.verification_status == normalize_status(verification_status))
    if customer_id is not None:
        query = query.where(model.customer_id == customer_id)
    if search and search.strip():
        pattern = f"%{search.strip()}%"
        query = query.where(
            or_(
                model.candidate_name.ilike(pattern),
                model.email.ilike(pattern),
                model.phone.ilike(pattern),
                model.code.ilike(pattern),
                model.company_name.ilike(pattern),
            )
        )
    query = query.order_by(model.created_at.desc(), model.record_id.desc()).limit(limit).offset(offset)
    return list((await session.execute(query)).scalars().all())


async def _resolve_company(session: AsyncSession, payload: RecordCreate) -> tuple[int | None, str]:
    if payload.customer_id is not None:
        customer = await session.get(BgvCustomer, payload.customer_id)
        if not customer:
            raise NotFoundError("Customer", payload.customer_id)
        return customer.customer_id, customer.company_name

    company_name = (payload.company_name or "").strip()
    if not company_name:
        raise ValidationError.for_field("company_name", "required when customer_id is not given")
    customer = await find_customer_by_name(session, company_name)
    if customer:
        return customer.customer_id, customer.company_name
    return None, company_name


async def _code_taken(session: AsyncSession, model, company_name: str, code: str) -> bool:
    found = (
        await session.execute(
            select(model.record_id).where(model.company_name == company_name, model.code == code).limit(1)
        )
    ).scalar_one_or_none()
    return found is not None


async def _next_code(session: AsyncSession, model, company_name: str) -> str:
    count = (
        await session.execute(select(func.count()).select_from(model).where(model.company_name == company_name))
    ).scalar_one()
    for offset in range(1, _MAX_CODE_ATTEMPTS + 1):
        code = f"{model.CODE_PREFIX}-{count + offset:05d}"
        if not await _code_taken(session, model, company_name, code):
            return code
    raise ConflictError("Unable to allocate a record code.", {"company_name": company_name})


async def create_record(
    session: AsyncSession,
    kind: str,
    payload: RecordCreate,
    *,
    performed_by: str | None = None,
    context: RequestContext | None = None,
) -> SubmissionRecord:
    model = record_model(kind)
    customer_id, company_name = await _resolve_company(session, payload)

    code = (payload.code or "").strip()
    if code:
        if await _code_taken(session, model, company_name, code):
            raise ConflictError(
                f'Code "{code}" is already used for {company_name}.',
                {"code": code, "company_name": company_name},
            )
    else:
        code = await _next_code(session, model, company_name)

    fields: dict[str, Any] = payload.model_dump(exclude={"code", "customer_id", "company_name"})
    if fields.get("email"):
        fields["email"] = str(fields["email"]).lower()
    now = utc_now()
    record = model(
        **fields,
        code=code,
        customer_id=customer_id,
        company_name=company_name,
        status=PENDING,
        verification_status=NOT_INITIATED,
        created_at=now,
        updated_at=now,
    )
    session.add(record)
    await session.flush()
    await log_event(
        session,
        record_kind=kind,
        record_id=record.record_id,
        action_type="record_created",
        to_status=NOT_INITIATED,
        performed_by=performed_by,
        meta_json={"code": code, "company_name": company_name},
        context=context,
    )
    return record


async def record_uploads(session: AsyncSession, record: SubmissionRecord) -> list[BgvDocumentUpload]:
    return list(
        (
            await session.execute(
                select(BgvDocumentUpload)
                .where(
                    BgvDocumentUpload.record_kind == record.RECORD_KIND,
                    BgvDocumentUpload.record_id == record.record_id,
                )
                .order_by(BgvDocumentUpload.upload_id)
            )
        ).scalars().all()
    )


async def delete_record(
    session: AsyncSession,
    record: SubmissionRecord,
    *,
    performed_by: str | None = None,
    context: RequestContext | None = None,
) -> list[str]:
    """Delete the record and its upload rows; returns the storage keys to discard after commit."""
    uploads = await record_uploads(session, record)
    storage_keys = [upload.storage_key for upload in uploads]
    for upload in uploads:
        await session.delete(upload)

    kind, record_id = record.RECORD_KIND, record.record_id
    await session.delete(record)
    await session.flush()
    await log_event(
        session,
        record_kind=kind,
        record_id=record_id,
        action_type="record_deleted",
        performed_by=performed_by,
        meta_json={"documents": len(storage_keys)},
        context=context,
    )
    return storage_keys


async def config_for_record(session: AsyncSession, record: SubmissionRecord) -> BGVFormConfig | None:
    """Company form configuration; address verification has none."""
    if record.RECORD_KIND != DOCUMENT_COLLECTION:
        return None
    customer = None
    if record.customer_id is not None:
        customer = await session.get(BgvCustomer, record.customer_id)
    if customer is None and record.company_name:
        customer = await find_customer_by_name(session, record.company_name)
    return form_config(customer)
