from typing import Optional

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from bgv_portal.api import deps
from bgv_portal.core.auth import require_roles
from bgv_portal.core.roles import ADMIN_ROLES, READ_ROLES, STAFF_ROLES
from bgv_portal.schemas.customer import (
    BGVFormConfig,
    BGVFormConfigUpdate,
    CustomDocumentTypeIn,
    CustomDocumentTypeToggle,
    CustomerCreate,
    CustomerOut,
)
from bgv_portal.schemas.user import UserContext
from bgv_portal.services import customers

router = APIRouter(prefix="/customers", tags=["customers"])


@router.get("", response_model=list[CustomerOut])
async def list_customers(
    search: Optional[str] = None,
    session: AsyncSession = Depends(deps.get_db_session),
    user: UserContext = Depends(require_roles(READ_ROLES)),
):
    rows = await customers.list_customers(session, search=search)
    return [customers.to_out(row) for row in rows]


@router.post("", response_model=CustomerOut, status_code=status.HTTP_201_CREATED)
async def create_customer(
    payload: CustomerCreate,
    session: AsyncSession = Depends(deps.get_db_session),
    user: UserContext = Depends(require_roles(STAFF_ROLES)),
):
    customer = await customers.create_customer(session, payload)
    await session.commit()
    return customers.to_out(customer)


@router.get("/{customer_id}", response_model=CustomerOut)
async def get_customer(
    customer_id: int,
    session: AsyncSession = Depends(deps.get_db_session),
    user: UserContext = Depends(require_roles(READ_ROLES)),
):
    return customers.to_out(await customers.get_customer(session, customer_id))


@router.put("/{customer_id}/bgv-form-config", response_model=BGVFormConfig)
async def update_bgv_form_config(
    customer_id: int,
    payload: BGVFormConfigUpdate,
    session: AsyncSession = Depends(deps.get_db_session),
    user: UserContext = Depends(require_roles(ADMIN_ROLES)),
):
    customer = await customers.get_customer(session, customer_id)
    config = await customers.update_form_config(session, customer, payload)
    await session.commit()
    return config


@router.post(
    "/{customer_id}/custom-document-types",
    response_model=BGVFormConfig,
    status_code=status.HTTP_201_CREATED,
)
async def add_custom_document_type(
    customer_id: int,
    payload: CustomDocumentTypeIn,
    session: AsyncSession = Depends(deps.get_db_session),
    user: UserContext = Depends(require_roles(ADMIN_ROLES)),
):
    customer = await customers.get_customer(session, customer_id)
    config = await customers.add_custom_type(session, customer, payload.label)
    await session.commit()
    return config


@router.patch("/{customer_id}/custom-document-types/{key}", response_model=BGVFormConfig)
async def toggle_custom_document_type(
    customer_id: int,
    key: str,
    payload: CustomDocumentTypeToggle,
    session: AsyncSession = Depends(deps.get_db_session),
    user: UserContext = Depends(require_roles(ADMIN_ROLES)),
):
    customer = await customers.get_customer(session, customer_id)
    config = await customers.toggle_custom_type(session, customer, key, payload.enabled)
    await session.commit()
    return config


@router.delete("/{customer_id}/custom-document-types/{key}", response_model=BGVFormConfig)
async def remove_custom_document_type(
    customer_id: int,
    key: str,
    session: AsyncSession = Depends(deps.get_db_session),
    user: UserContext = Depends(require_roles(ADMIN_ROLES)),
):
    customer = await customers.get_customer(session, customer_id)
    config = await customers.remove_custom_type(session, customer, key)
    await session.commit()
    return config
