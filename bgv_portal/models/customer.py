from datetime import datetime

from sqlalchemy import JSON, DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from bgv_portal.core.datetime_utils import utc_now
from bgv_portal.db.base import Base


class BgvCustomer(Base):
    __tablename__ = "bgv_customer"

    customer_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    company_name: Mapped[str] = mapped_column(String(200), unique=True, index=True)
    emails: Mapped[list] = mapped_column(JSON, default=list)
    bgv_form_config: Mapped[dict | None] = mapped_column(JSON, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now, onupdate=utc_now)
