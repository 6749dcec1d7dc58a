from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from bgv_portal.api import deps
from bgv_portal.api.record_routes import register_admin_routes, register_candidate_routes
from bgv_portal.core.auth import require_roles
from bgv_portal.core.roles import READ_ROLES, STAFF_ROLES
from bgv_portal.core.workflow import DOCUMENT_COLLECTION
from bgv_portal.request_context import RequestContext
from bgv_portal.schemas.bgv_form import BGVFormData, BGVFormStepIn, BGVFormSubmitIn
from bgv_portal.schemas.company import BulkSendResult, CompanySummary
from bgv_portal.schemas.record import RecordCreate, RecordOut, RecordUpdate, SubmitOut
from bgv_portal.schemas.user import UserContext
from bgv_portal.services import companies, records, submissions

router = APIRouter(prefix="/document-collections", tags=["document-collections"])
public_router = APIRouter(prefix="/document-collection-by-token", tags=["document-collections-public"])


# Registered before the shared routes so "/companies" is not read as a record id.
@router.get("/companies", response_model=list[CompanySummary])
async def list_companies(
    search: Optional[str] = None,
    session: AsyncSession = Depends(deps.get_db_session),
    user: UserContext = Depends(require_roles(READ_ROLES)),
):
    return await companies.company_summaries(session, search=search)


@router.post("/send-all-links", response_model=BulkSendResult)
async def send_all_links(
    customer_id: int = Query(...),
    session: AsyncSession = Depends(deps.get_db_session),
    user: UserContext = Depends(require_roles(STAFF_ROLES)),
    context: RequestContext = Depends(deps.get_context),
):
    result = await companies.send_all_links(session, customer_id, performed_by=user.email, context=context)
    await session.commit()
    return result


register_admin_routes(
    router,
    kind=DOCUMENT_COLLECTION,
    create_model=RecordCreate,
    update_model=RecordUpdate,
    out_model=RecordOut,
)
register_candidate_routes(public_router, kind=DOCUMENT_COLLECTION)


@public_router.put("/{token}/form", response_model=BGVFormData)
async def save_form(
    token: str,
    payload: BGVFormData,
    session: AsyncSession = Depends(deps.get_db_session),
    context: RequestContext = Depends(deps.get_context),
):
    record = await deps.resolve_candidate_record(session, DOCUMENT_COLLECTION, token, for_write=True, context=context)
    form = await submissions.save_draft(session, record, payload, context=context)
    await session.commit()
    return form


@public_router.patch("/{token}/form/{step}", response_model=BGVFormData)
async def save_form_step(
    token: str,
    step: str,
    payload: BGVFormStepIn,
    session: AsyncSession = Depends(deps.get_db_session),
    context: RequestContext = Depends(deps.get_context),
):
    record = await deps.resolve_candidate_record(session, DOCUMENT_COLLECTION, token, for_write=True, context=context)
    form = await submissions.save_step(session, record, step, payload, context=context)
    await session.commit()
    return form


@public_router.post("/{token}/submit", response_model=SubmitOut)
async def submit_form(
    token: str,
    payload: BGVFormSubmitIn,
    session: AsyncSession = Depends(deps.get_db_session),
    context: RequestContext = Depends(deps.get_context),
):
    record = await deps.resolve_candidate_record(session, DOCUMENT_COLLECTION, token, for_write=True, context=context)
    # Persist the in_progress move even if validation rejects the submit.
    await session.commit()
    config = await records.config_for_record(session, record)
    record = await submissions.submit_document_collection(
        session, record, payload.form_data, config=config, context=context
    )
    await session.commit()
    return SubmitOut(verification_status=record.verification_status, submitted_at=record.submitted_at)
