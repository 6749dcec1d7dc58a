"""Route sets shared by both submission kinds.

Admin and candidate surfaces are identical for address verifications and
document collections apart from schemas, so each kind's module registers them
on its own router and then adds the kind-specific endpoints.
"""

from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Query, Response, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession

from bgv_portal.api import deps
from bgv_portal.core.auth import require_roles
from bgv_portal.core.errors import ValidationError
from bgv_portal.core.roles import READ_ROLES, STAFF_ROLES
from bgv_portal.core.workflow import DOCUMENT_COLLECTION, outcome_vocabulary
from bgv_portal.models.submission import SubmissionRecord
from bgv_portal.request_context import RequestContext
from bgv_portal.schemas.company import RecordStats
from bgv_portal.schemas.record import (
    BatchUploadOut,
    DocumentOut,
    IssuedLinkOut,
    PublicRecordOut,
    RecordOut,
    RejectOut,
    ReviewActionIn,
    SlotFailureOut,
)
from bgv_portal.schemas.user import UserContext
from bgv_portal.services import companies, document_slots, records, review, tokens
from bgv_portal.services.blob_store import BlobStore
from bgv_portal.services.submissions import current_address_form, current_bgv_form


async def record_view(session: AsyncSession, record: SubmissionRecord, out_model: type[RecordOut]) -> RecordOut:
    config = await records.config_for_record(session, record)
    documents, custom_documents = await document_slots.split_documents(session, record, config)
    out = out_model.model_validate(record)
    return out.model_copy(update={"documents": documents, "custom_documents": custom_documents})


async def public_view(session: AsyncSession, record: SubmissionRecord) -> PublicRecordOut:
    config = await records.config_for_record(session, record)
    documents, custom_documents = await document_slots.split_documents(session, record, config)
    if record.RECORD_KIND == DOCUMENT_COLLECTION:
        form_data = current_bgv_form(record).model_dump()
    else:
        form_data = current_address_form(record).model_dump()
    return PublicRecordOut(
        code=record.code,
        company_name=record.company_name,
        candidate_name=record.candidate_name,
        verification_status=record.verification_status,
        expires_at=record.expires_at,
        submitted_at=record.submitted_at,
        form_data=form_data,
        slots=document_slots.slot_catalog(record.RECORD_KIND, config),
        documents=documents,
        custom_documents=custom_documents,
        bgv_form_config=config,
    )


def _link_out(link: tokens.IssuedLink) -> IssuedLinkOut:
    return IssuedLinkOut(token=link.token, link=link.link, expires_at=link.expires_at)


def register_admin_routes(
    router: APIRouter,
    *,
    kind: str,
    create_model: type,
    update_model: type,
    out_model: type[RecordOut],
) -> APIRouter:
    read_guard = require_roles(READ_ROLES)
    write_guard = require_roles(STAFF_ROLES)

    @router.get("/stats", response_model=RecordStats)
    async def record_stats(
        customer_id: Optional[int] = None,
        session: AsyncSession = Depends(deps.get_db_session),
        user: UserContext = Depends(read_guard),
    ):
        return await companies.record_stats(session, kind, customer_id=customer_id)

    @router.get("", response_model=list[out_model])
    async def list_records(
        status_filter: Optional[str] = Query(default=None, alias="status"),
        verification_status: Optional[str] = None,
        customer_id: Optional[int] = None,
        search: Optional[str] = None,
        limit: int = Query(default=200, ge=1, le=1000),
        offset: int = Query(default=0, ge=0),
        session: AsyncSession = Depends(deps.get_db_session),
        user: UserContext = Depends(read_guard),
    ):
        rows = await records.list_records(
            session,
            kind,
            status=status_filter,
            verification_status=verification_status,
            customer_id=customer_id,
            search=search,
            limit=limit,
            offset=offset,
        )
        return [out_model.model_validate(row) for row in rows]

    @router.post("", response_model=out_model, status_code=status.HTTP_201_CREATED)
    async def create_record(
        payload: create_model,
        session: AsyncSession = Depends(deps.get_db_session),
        user: UserContext = Depends(write_guard),
        context: RequestContext = Depends(deps.get_context),
    ):
        record = await records.create_record(session, kind, payload, performed_by=user.email, context=context)
        await session.commit()
        return await record_view(session, record, out_model)

    @router.get("/{record_id}", response_model=out_model)
    async def get_record(
        record_id: int,
        session: AsyncSession = Depends(deps.get_db_session),
        user: UserContext = Depends(read_guard),
    ):
        record = await records.get_record(session, kind, record_id)
        return await record_view(session, record, out_model)

    @router.put("/{record_id}", response_model=out_model)
    async def update_record(
        record_id: int,
        payload: update_model,
        session: AsyncSession = Depends(deps.get_db_session),
        user: UserContext = Depends(write_guard),
        context: RequestContext = Depends(deps.get_context),
    ):
        record = await records.get_record(session, kind, record_id)
        await review.apply_admin_update(session, record, payload, reviewer=user.email, context=context)
        await session.commit()
        return await record_view(session, record, out_model)

    @router.delete("/{record_id}", status_code=status.HTTP_204_NO_CONTENT)
    async def delete_record(
        record_id: int,
        session: AsyncSession = Depends(deps.get_db_session),
        blob_store: BlobStore = Depends(deps.get_storage),
        user: UserContext = Depends(write_guard),
        context: RequestContext = Depends(deps.get_context),
    ):
        record = await records.get_record(session, kind, record_id)
        stale_keys = await records.delete_record(session, record, performed_by=user.email, context=context)
        await session.commit()
        await document_slots.discard_blobs(blob_store, stale_keys, record_id=record_id)
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    @router.post("/{record_id}/approve", response_model=out_model)
    async def approve_record(
        record_id: int,
        payload: Optional[ReviewActionIn] = None,
        session: AsyncSession = Depends(deps.get_db_session),
        user: UserContext = Depends(write_guard),
        context: RequestContext = Depends(deps.get_context),
    ):
        record = await records.get_record(session, kind, record_id)
        await review.approve_record(
            session,
            record,
            comment=payload.comment if payload else None,
            reviewer=user.email,
            context=context,
        )
        await session.commit()
        return await record_view(session, record, out_model)

    @router.post("/{record_id}/reject", response_model=RejectOut[out_model])
    async def reject_record(
        record_id: int,
        payload: ReviewActionIn,
        session: AsyncSession = Depends(deps.get_db_session),
        user: UserContext = Depends(write_guard),
        context: RequestContext = Depends(deps.get_context),
    ):
        record = await records.get_record(session, kind, record_id)
        _, link = await review.reject_record(
            session,
            record,
            comment=payload.comment,
            reissue_link=payload.reissue_link,
            reviewer=user.email,
            context=context,
        )
        await session.commit()
        return RejectOut[out_model](
            record=await record_view(session, record, out_model),
            link=_link_out(link) if link else None,
        )

    if outcome_vocabulary(kind).supports_insufficiency:

        @router.post("/{record_id}/insufficiency", response_model=out_model)
        async def mark_insufficient(
            record_id: int,
            payload: ReviewActionIn,
            session: AsyncSession = Depends(deps.get_db_session),
            user: UserContext = Depends(write_guard),
            context: RequestContext = Depends(deps.get_context),
        ):
            record = await records.get_record(session, kind, record_id)
            await review.mark_record_insufficient(
                session, record, comment=payload.comment, reviewer=user.email, context=context
            )
            await session.commit()
            return await record_view(session, record, out_model)

    @router.post("/{record_id}/send-link", response_model=IssuedLinkOut)
    async def send_link(
        record_id: int,
        session: AsyncSession = Depends(deps.get_db_session),
        user: UserContext = Depends(write_guard),
        context: RequestContext = Depends(deps.get_context),
    ):
        record = await records.get_record(session, kind, record_id)
        link = await tokens.issue(session, record, performed_by=user.email, context=context)
        await session.commit()
        return _link_out(link)

    @router.post("/{record_id}/documents/{slot_key}", response_model=DocumentOut)
    async def upload_document(
        record_id: int,
        slot_key: str,
        file: UploadFile = File(...),
        session: AsyncSession = Depends(deps.get_db_session),
        blob_store: BlobStore = Depends(deps.get_storage),
        user: UserContext = Depends(write_guard),
        context: RequestContext = Depends(deps.get_context),
    ):
        record = await records.get_record(session, kind, record_id)
        config = await records.config_for_record(session, record)
        written = await document_slots.upload(
            session,
            record,
            raw_slot=slot_key,
            upload=await deps.read_upload(file),
            config=config,
            blob_store=blob_store,
            uploaded_by="admin",
            context=context,
        )
        await session.commit()
        await document_slots.discard_blobs(blob_store, [written.stale_key], record_id=record.record_id)
        return document_slots.document_out(kind, written.row, config)

    @router.delete("/{record_id}/documents/{slot_key}", status_code=status.HTTP_204_NO_CONTENT)
    async def remove_document(
        record_id: int,
        slot_key: str,
        session: AsyncSession = Depends(deps.get_db_session),
        blob_store: BlobStore = Depends(deps.get_storage),
        user: UserContext = Depends(write_guard),
        context: RequestContext = Depends(deps.get_context),
    ):
        record = await records.get_record(session, kind, record_id)
        config = await records.config_for_record(session, record)
        removed_key = await document_slots.remove(
            session, record, slot_key, performed_by=user.email, config=config, context=context
        )
        await session.commit()
        await document_slots.discard_blobs(blob_store, [removed_key], record_id=record.record_id)
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    return router


def register_candidate_routes(router: APIRouter, *, kind: str) -> APIRouter:
    """Token-gated read and document endpoints; form and submit live with each kind."""

    @router.get("/{token}", response_model=PublicRecordOut)
    async def get_by_token(
        token: str,
        session: AsyncSession = Depends(deps.get_db_session),
        context: RequestContext = Depends(deps.get_context),
    ):
        record = await deps.resolve_candidate_record(session, kind, token, context=context)
        return await public_view(session, record)

    @router.post("/{token}/documents", response_model=DocumentOut)
    async def upload_document(
        token: str,
        doc_type: str = Form(...),
        file: UploadFile = File(...),
        session: AsyncSession = Depends(deps.get_db_session),
        blob_store: BlobStore = Depends(deps.get_storage),
        context: RequestContext = Depends(deps.get_context),
    ):
        record = await deps.resolve_candidate_record(session, kind, token, for_write=True, context=context)
        config = await records.config_for_record(session, record)
        written = await document_slots.upload(
            session,
            record,
            raw_slot=doc_type,
            upload=await deps.read_upload(file),
            config=config,
            blob_store=blob_store,
            uploaded_by="candidate",
            context=context,
        )
        await session.commit()
        await document_slots.discard_blobs(blob_store, [written.stale_key], record_id=record.record_id)
        return document_slots.document_out(kind, written.row, config)

    @router.post("/{token}/documents/batch", response_model=BatchUploadOut)
    async def upload_documents(
        token: str,
        doc_types: list[str] = Form(...),
        files: list[UploadFile] = File(...),
        session: AsyncSession = Depends(deps.get_db_session),
        blob_store: BlobStore = Depends(deps.get_storage),
        context: RequestContext = Depends(deps.get_context),
    ):
        if len(doc_types) != len(files):
            raise ValidationError.for_field("doc_types", "must list one document type per file")
        record = await deps.resolve_candidate_record(session, kind, token, for_write=True, context=context)
        config = await records.config_for_record(session, record)
        incoming = [(doc_type, await deps.read_upload(file)) for doc_type, file in zip(doc_types, files)]
        result = await document_slots.upload_many(
            session,
            record,
            incoming,
            config=config,
            blob_store=blob_store,
            uploaded_by="candidate",
            context=context,
        )
        await session.commit()
        await document_slots.discard_blobs(blob_store, result.stale_keys, record_id=record.record_id)
        return BatchUploadOut(
            uploaded=[document_slots.document_out(kind, row, config) for row in result.uploaded],
            failed=[
                SlotFailureOut(slot_key=failure.slot_key, code=failure.code, message=failure.message)
                for failure in result.failed
            ],
        )

    @router.delete("/{token}/documents/{slot_key}", status_code=status.HTTP_204_NO_CONTENT)
    async def remove_document(
        token: str,
        slot_key: str,
        session: AsyncSession = Depends(deps.get_db_session),
        blob_store: BlobStore = Depends(deps.get_storage),
        context: RequestContext = Depends(deps.get_context),
    ):
        record = await deps.resolve_candidate_record(session, kind, token, for_write=True, context=context)
        config = await records.config_for_record(session, record)
        removed_key = await document_slots.remove(
            session, record, slot_key, performed_by="candidate", config=config, context=context
        )
        await session.commit()
        await document_slots.discard_blobs(blob_store, [removed_key], record_id=record.record_id)
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    return router
