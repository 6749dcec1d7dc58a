from __future__ import annotations

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from bgv_portal.core.datetime_utils import utc_now
from bgv_portal.core.errors import ConflictError, NotFoundError, ValidationError
from bgv_portal.core.slots import (
    add_custom_document_type,
    remove_custom_document_type,
    set_custom_document_type_enabled,
)
from bgv_portal.models.customer import BgvCustomer
from bgv_portal.schemas.customer import BGVFormConfig, BGVFormConfigUpdate, CustomerCreate, CustomerOut


def form_config(customer: BgvCustomer | None) -> BGVFormConfig:
    if customer is None or not customer.bgv_form_config:
        return BGVFormConfig()
    return BGVFormConfig.model_validate(customer.bgv_form_config)


def to_out(customer: BgvCustomer) -> CustomerOut:
    return CustomerOut(
        customer_id=customer.customer_id,
        company_name=customer.company_name,
        emails=list(customer.emails or []),
        bgv_form_config=form_config(customer),
        created_at=customer.created_at,
        updated_at=customer.updated_at,
    )


async def list_customers(session: AsyncSession, *, search: str | None = None) -> list[BgvCustomer]:
    query = select(BgvCustomer).order_by(BgvCustomer.company_name)
    if search and search.strip():
        query = query.where(BgvCustomer.company_name.ilike(f"%{search.strip()}%"))
    return list((await session.execute(query)).scalars().all())


async def get_customer(session: AsyncSession, customer_id: int) -> BgvCustomer:
    customer = await session.get(BgvCustomer, customer_id)
    if not customer:
        raise NotFoundError("Customer", customer_id)
    return customer


async def find_customer_by_name(session: AsyncSession, company_name: str) -> BgvCustomer | None:
    return (
        await session.execute(
            select(BgvCustomer).where(func.lower(BgvCustomer.company_name) == company_name.strip().lower())
        )
    ).scalars().first()


async def create_customer(session: AsyncSession, payload: CustomerCreate) -> BgvCustomer:
    company_name = payload.company_name.strip()
    if not company_name:
        raise ValidationError.for_field("company_name", "required")
    if await find_customer_by_name(session, company_name):
        raise ConflictError(f'Customer "{company_name}" already exists.', {"company_name": company_name})

    now = utc_now()
    customer = BgvCustomer(
        company_name=company_name,
        emails=[str(email).lower() for email in payload.emails],
        bgv_form_config=(payload.bgv_form_config or BGVFormConfig()).model_dump(),
        created_at=now,
        updated_at=now,
    )
    session.add(customer)
    await session.flush()
    return customer


def _store_config(customer: BgvCustomer, config: BGVFormConfig) -> BGVFormConfig:
    # Reassign so the JSON column is flagged dirty.
    customer.bgv_form_config = config.model_dump()
    customer.updated_at = utc_now()
    return config


async def update_form_config(
    session: AsyncSession,
    customer: BgvCustomer,
    update: BGVFormConfigUpdate,
) -> BGVFormConfig:
    current = form_config(customer)
    data = current.model_dump()
    if update.steps is not None:
        data["steps"] = update.steps.model_dump()
    if update.document_types is not None:
        data["document_types"] = {**data["document_types"], **update.document_types}
    try:
        config = BGVFormConfig.model_validate(data)
    except ValueError as exc:
        raise ValidationError.for_field("bgv_form_config", str(exc)) from exc
    _store_config(customer, config)
    await session.flush()
    return config


async def add_custom_type(session: AsyncSession, customer: BgvCustomer, label: str) -> BGVFormConfig:
    config = _store_config(customer, add_custom_document_type(form_config(customer), label))
    await session.flush()
    return config


async def toggle_custom_type(
    session: AsyncSession,
    customer: BgvCustomer,
    key: str,
    enabled: bool,
) -> BGVFormConfig:
    config = _store_config(customer, set_custom_document_type_enabled(form_config(customer), key, enabled))
    await session.flush()
    return config


async def remove_custom_type(session: AsyncSession, customer: BgvCustomer, key: str) -> BGVFormConfig:
    config = _store_config(customer, remove_custom_document_type(form_config(customer), key))
    await session.flush()
    return config
