from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable, Sequence

import anyio
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from bgv_portal.core.config import settings
from bgv_portal.core.datetime_utils import utc_now
from bgv_portal.core.errors import BGVError, InvalidSlot, StorageError
from bgv_portal.core.slots import (
    enabled_built_in_slots,
    enabled_custom_keys,
    is_custom_slot,
    normalize_slot_key,
    slot_label,
)
from bgv_portal.core.uploads import IncomingFile, normalize_content_type, validate_file
from bgv_portal.models.document_upload import BgvDocumentUpload
from bgv_portal.models.submission import SubmissionRecord
from bgv_portal.request_context import RequestContext
from bgv_portal.schemas.customer import BGVFormConfig
from bgv_portal.schemas.record import DocumentOut, SlotOut
from bgv_portal.services.blob_store import BlobStore, StoredBlob, build_storage_key
from bgv_portal.services.events import log_event
from bgv_portal.services.records import record_uploads

logger = logging.getLogger("bgv.documents")


@dataclass(frozen=True)
class SlotFailure:
    slot_key: str
    code: str
    message: str


@dataclass(frozen=True)
class SlotWrite:
    """A recorded slot plus the blob it replaced, to be discarded once the transaction commits."""

    row: BgvDocumentUpload
    stale_key: str | None = None


@dataclass
class BatchUploadResult:
    uploaded: list[BgvDocumentUpload] = field(default_factory=list)
    failed: list[SlotFailure] = field(default_factory=list)
    stale_keys: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class _PreparedUpload:
    slot_key: str
    safe_name: str
    upload: IncomingFile


async def uploaded_slots(session: AsyncSession, record: SubmissionRecord) -> set[str]:
    rows = (
        await session.execute(
            select(BgvDocumentUpload.slot_key).where(
                BgvDocumentUpload.record_kind == record.RECORD_KIND,
                BgvDocumentUpload.record_id == record.record_id,
            )
        )
    ).scalars().all()
    return set(rows)


def _prepare(
    record: SubmissionRecord,
    raw_slot: str | None,
    upload: IncomingFile,
    config: BGVFormConfig | None,
    max_bytes: int | None,
) -> _PreparedUpload:
    slot_key = normalize_slot_key(record.RECORD_KIND, raw_slot, config)
    safe_name = validate_file(upload, max_bytes=max_bytes or settings.max_upload_bytes)
    return _PreparedUpload(slot_key=slot_key, safe_name=safe_name, upload=upload)


async def _put(blob_store: BlobStore, record: SubmissionRecord, item: _PreparedUpload) -> StoredBlob:
    key = build_storage_key(record.RECORD_KIND, record.record_id, item.slot_key, item.safe_name)
    return await blob_store.put(key, item.upload.data, content_type=normalize_content_type(item.upload.content_type))


async def _discard_blob(blob_store: BlobStore, key: str, *, record_id: int) -> None:
    try:
        await blob_store.delete(key)
    except StorageError:
        logger.warning("orphaned_blob", extra={"storage_key": key, "record_id": record_id})


async def discard_blobs(blob_store: BlobStore, keys: Iterable[str | None], *, record_id: int) -> None:
    """Delete blobs no longer referenced by a committed row. Call only after ``session.commit()``."""
    for key in keys:
        if key:
            await _discard_blob(blob_store, key, record_id=record_id)


async def _slot_row(session: AsyncSession, record: SubmissionRecord, slot_key: str) -> BgvDocumentUpload | None:
    return (
        await session.execute(
            select(BgvDocumentUpload).where(
                BgvDocumentUpload.record_kind == record.RECORD_KIND,
                BgvDocumentUpload.record_id == record.record_id,
                BgvDocumentUpload.slot_key == slot_key,
            )
        )
    ).scalars().first()


async def _record_slot(
    session: AsyncSession,
    record: SubmissionRecord,
    item: _PreparedUpload,
    stored: StoredBlob,
    *,
    uploaded_by: str,
) -> SlotWrite:
    """Upsert the slot row; the result carries the storage key it replaced."""
    now = utc_now()
    values = {
        "original_name": item.safe_name,
        "storage_key": stored.key,
        "url": stored.url,
        "content_type": normalize_content_type(item.upload.content_type) or None,
        "size_bytes": item.upload.size,
        "uploaded_by": uploaded_by,
        "uploaded_at": now,
    }

    existing = await _slot_row(session, record, item.slot_key)
    if existing is None:
        row = BgvDocumentUpload(
            record_kind=record.RECORD_KIND,
            record_id=record.record_id,
            slot_key=item.slot_key,
            is_custom=is_custom_slot(record.RECORD_KIND, item.slot_key),
            **values,
        )
        try:
            async with session.begin_nested():
                session.add(row)
                await session.flush()
        except IntegrityError:
            # A concurrent request filled the slot first; fall through to replacing its row.
            existing = await _slot_row(session, record, item.slot_key)
            if existing is None:
                raise
        else:
            record.updated_at = now
            await session.flush()
            return SlotWrite(row=row)

    stale_key = existing.storage_key
    for name, value in values.items():
        setattr(existing, name, value)
    record.updated_at = now
    await session.flush()
    return SlotWrite(row=existing, stale_key=stale_key if stale_key != stored.key else None)


async def upload(
    session: AsyncSession,
    record: SubmissionRecord,
    *,
    raw_slot: str | None,
    upload: IncomingFile,
    config: BGVFormConfig | None,
    blob_store: BlobStore,
    uploaded_by: str,
    max_bytes: int | None = None,
    context: RequestContext | None = None,
) -> SlotWrite:
    """Store one file into a slot, replacing whatever the slot held.

    The replaced blob is left in place; pass ``stale_key`` to :func:`discard_blobs`
    after the caller commits.
    """
    item = _prepare(record, raw_slot, upload, config, max_bytes)
    stored = await _put(blob_store, record, item)
    try:
        written = await _record_slot(session, record, item, stored, uploaded_by=uploaded_by)
    except SQLAlchemyError:
        await _discard_blob(blob_store, stored.key, record_id=record.record_id)
        raise

    await log_event(
        session,
        record_kind=record.RECORD_KIND,
        record_id=record.record_id,
        action_type="document_replaced" if written.stale_key else "document_uploaded",
        performed_by=uploaded_by,
        meta_json={"slot_key": item.slot_key, "storage_key": stored.key},
        context=context,
    )
    return written


async def upload_many(
    session: AsyncSession,
    record: SubmissionRecord,
    files: Sequence[tuple[str | None, IncomingFile]],
    *,
    config: BGVFormConfig | None,
    blob_store: BlobStore,
    uploaded_by: str,
    max_bytes: int | None = None,
    context: RequestContext | None = None,
) -> BatchUploadResult:
    """Upload several slots at once.

    Blobs are stored concurrently; each slot is then recorded in its own
    savepoint so one failure never undoes a sibling. Within a batch the later
    file for a slot wins. Replaced blobs are collected in ``stale_keys``.
    """
    result = BatchUploadResult()
    prepared: list[_PreparedUpload] = []
    for raw_slot, incoming in files:
        try:
            prepared.append(_prepare(record, raw_slot, incoming, config, max_bytes))
        except BGVError as exc:
            result.failed.append(SlotFailure(slot_key=(raw_slot or "").strip(), code=exc.code, message=exc.message))
    prepared = list({item.slot_key: item for item in prepared}.values())

    stored: dict[int, StoredBlob | StorageError] = {}

    async def _store(index: int, item: _PreparedUpload) -> None:
        try:
            stored[index] = await _put(blob_store, record, item)
        except StorageError as exc:
            stored[index] = exc

    async with anyio.create_task_group() as task_group:
        for index, item in enumerate(prepared):
            task_group.start_soon(_store, index, item)

    for index, item in enumerate(prepared):
        outcome = stored[index]
        if isinstance(outcome, StorageError):
            result.failed.append(SlotFailure(slot_key=item.slot_key, code=outcome.code, message=outcome.message))
            continue
        try:
            async with session.begin_nested():
                written = await _record_slot(session, record, item, outcome, uploaded_by=uploaded_by)
        except SQLAlchemyError as exc:
            logger.warning("slot_write_failed", extra={"slot_key": item.slot_key, "error": str(exc)})
            await _discard_blob(blob_store, outcome.key, record_id=record.record_id)
            result.failed.append(
                SlotFailure(slot_key=item.slot_key, code="STORAGE_ERROR", message="Unable to save the document.")
            )
            continue
        result.uploaded.append(written.row)
        if written.stale_key:
            result.stale_keys.append(written.stale_key)

    if result.uploaded:
        await log_event(
            session,
            record_kind=record.RECORD_KIND,
            record_id=record.record_id,
            action_type="documents_uploaded",
            performed_by=uploaded_by,
            meta_json={
                "slots": [row.slot_key for row in result.uploaded],
                "failed": [failure.slot_key for failure in result.failed],
            },
            context=context,
        )
    return result


async def remove(
    session: AsyncSession,
    record: SubmissionRecord,
    slot_key: str,
    *,
    performed_by: str,
    config: BGVFormConfig | None = None,
    context: RequestContext | None = None,
) -> str | None:
    """Empty a slot, accepting the same aliases as upload.

    Returns the storage key of the removed blob for :func:`discard_blobs`, or
    ``None`` when the slot was already empty.
    """
    try:
        slot_key = normalize_slot_key(record.RECORD_KIND, slot_key, config)
    except InvalidSlot:
        # Slots disabled since the upload still hold rows under their stored key.
        slot_key = (slot_key or "").strip()
    row = await _slot_row(session, record, slot_key)
    if row is None:
        return None

    storage_key = row.storage_key
    await session.delete(row)
    record.updated_at = utc_now()
    await session.flush()
    await log_event(
        session,
        record_kind=record.RECORD_KIND,
        record_id=record.record_id,
        action_type="document_removed",
        performed_by=performed_by,
        meta_json={"slot_key": slot_key, "storage_key": storage_key},
        context=context,
    )
    return storage_key


def document_out(kind: str, row: BgvDocumentUpload, config: BGVFormConfig | None = None) -> DocumentOut:
    out = DocumentOut.model_validate(row)
    return out.model_copy(update={"label": slot_label(kind, row.slot_key, config)})


async def split_documents(
    session: AsyncSession,
    record: SubmissionRecord,
    config: BGVFormConfig | None = None,
) -> tuple[dict[str, DocumentOut], dict[str, DocumentOut]]:
    """Uploads keyed by slot, built-in and custom apart."""
    documents: dict[str, DocumentOut] = {}
    custom_documents: dict[str, DocumentOut] = {}
    for row in await record_uploads(session, record):
        target = custom_documents if row.is_custom else documents
        target[row.slot_key] = document_out(record.RECORD_KIND, row, config)
    return documents, custom_documents


def slot_catalog(kind: str, config: BGVFormConfig | None = None) -> list[SlotOut]:
    slots = [
        SlotOut(key=slot.key, label=slot.label, required=slot.required)
        for slot in enabled_built_in_slots(kind, config)
    ]
    slots.extend(
        SlotOut(key=key, label=slot_label(kind, key, config), required=False, custom=True)
        for key in enabled_custom_keys(kind, config)
    )
    return slots


