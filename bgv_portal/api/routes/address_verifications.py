from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from bgv_portal.api import deps
from bgv_portal.api.record_routes import register_admin_routes, register_candidate_routes
from bgv_portal.core.workflow import ADDRESS_VERIFICATION
from bgv_portal.request_context import RequestContext
from bgv_portal.schemas.bgv_form import AddressVerificationForm
from bgv_portal.schemas.record import (
    AddressVerificationCreate,
    AddressVerificationOut,
    AddressVerificationUpdate,
    SubmitOut,
)
from bgv_portal.services import submissions

router = APIRouter(prefix="/address-verifications", tags=["address-verifications"])
public_router = APIRouter(prefix="/verification-by-token", tags=["address-verifications-public"])

register_admin_routes(
    router,
    kind=ADDRESS_VERIFICATION,
    create_model=AddressVerificationCreate,
    update_model=AddressVerificationUpdate,
    out_model=AddressVerificationOut,
)
register_candidate_routes(public_router, kind=ADDRESS_VERIFICATION)


@public_router.put("/{token}/form", response_model=AddressVerificationForm)
async def save_address_form(
    token: str,
    payload: AddressVerificationForm,
    session: AsyncSession = Depends(deps.get_db_session),
    context: RequestContext = Depends(deps.get_context),
):
    record = await deps.resolve_candidate_record(session, ADDRESS_VERIFICATION, token, for_write=True, context=context)
    form = await submissions.save_address_draft(session, record, payload, context=context)
    await session.commit()
    return form


@public_router.post("/{token}/submit", response_model=SubmitOut)
async def submit_address_form(
    token: str,
    payload: AddressVerificationForm,
    session: AsyncSession = Depends(deps.get_db_session),
    context: RequestContext = Depends(deps.get_context),
):
    record = await deps.resolve_candidate_record(session, ADDRESS_VERIFICATION, token, for_write=True, context=context)
    # Persist the in_progress move even if validation rejects the submit.
    await session.commit()
    record = await submissions.submit_address_verification(session, record, payload, context=context)
    await session.commit()
    return SubmitOut(verification_status=record.verification_status, submitted_at=record.submitted_at)
