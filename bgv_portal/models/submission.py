from datetime import datetime
from typing import ClassVar

from sqlalchemy import JSON, DateTime, Float, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from bgv_portal.core.datetime_utils import utc_now
from bgv_portal.core.workflow import ADDRESS_VERIFICATION, DOCUMENT_COLLECTION, NOT_INITIATED, PENDING
from bgv_portal.db.base import Base


class SubmissionRecordMixin:
    """Columns shared by every token-gated submission record."""

    RECORD_KIND: ClassVar[str]
    CODE_PREFIX: ClassVar[str]

    record_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    code: Mapped[str | None] = mapped_column(String(100), nullable=True, index=True)

    customer_id: Mapped[int | None] = mapped_column(Integer, nullable=True, index=True)
    company_name: Mapped[str] = mapped_column(String(200), index=True)

    candidate_name: Mapped[str] = mapped_column(String(200))
    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True, index=True)
    initiator_name: Mapped[str | None] = mapped_column(String(200), nullable=True)

    status: Mapped[str] = mapped_column(String(30), default=PENDING, index=True)
    verification_status: Mapped[str] = mapped_column(String(30), default=NOT_INITIATED, index=True)

    verification_token: Mapped[str | None] = mapped_column(String(64), unique=True, nullable=True, index=True)
    expires_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    link_sent_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    form_data: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    submitted_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    ip_address: Mapped[str | None] = mapped_column(String(64), nullable=True)
    user_agent: Mapped[str | None] = mapped_column(Text, nullable=True)

    admin_comments: Mapped[str | None] = mapped_column(Text, nullable=True)
    verified_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    verified_by: Mapped[str | None] = mapped_column(String(255), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now, index=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now, onupdate=utc_now)


class BgvAddressVerification(SubmissionRecordMixin, Base):
    __tablename__ = "bgv_address_verification"
    __table_args__ = (UniqueConstraint("company_name", "code", name="uq_bgv_av_company_code"),)

    RECORD_KIND = ADDRESS_VERIFICATION
    CODE_PREFIX = "AV"

    applicant_no: Mapped[str | None] = mapped_column(String(100), nullable=True)
    fathers_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    address: Mapped[str] = mapped_column(Text, default="")
    city: Mapped[str | None] = mapped_column(String(100), nullable=True)
    state: Mapped[str | None] = mapped_column(String(100), nullable=True)
    pin: Mapped[str | None] = mapped_column(String(20), nullable=True)
    landmark: Mapped[str | None] = mapped_column(String(255), nullable=True)
    address_type: Mapped[str] = mapped_column(String(20), default="current")
    verification_method: Mapped[str] = mapped_column(String(20), default="self")
    latitude: Mapped[float | None] = mapped_column(Float, nullable=True)
    longitude: Mapped[float | None] = mapped_column(Float, nullable=True)


class BgvDocumentCollection(SubmissionRecordMixin, Base):
    __tablename__ = "bgv_document_collection"
    __table_args__ = (UniqueConstraint("company_name", "code", name="uq_bgv_dc_company_code"),)

    RECORD_KIND = DOCUMENT_COLLECTION
    CODE_PREFIX = "DC"


SubmissionRecord = BgvAddressVerification | BgvDocumentCollection

RECORD_MODELS: dict[str, type[BgvAddressVerification] | type[BgvDocumentCollection]] = {
    ADDRESS_VERIFICATION: BgvAddressVerification,
    DOCUMENT_COLLECTION: BgvDocumentCollection,
}
