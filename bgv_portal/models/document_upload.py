from datetime import datetime

from sqlalchemy import Boolean, DateTime, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from bgv_portal.core.datetime_utils import utc_now
from bgv_portal.db.base import Base


class BgvDocumentUpload(Base):
    """Current file of one slot; at most one row per (record, slot)."""

    __tablename__ = "bgv_document_upload"
    __table_args__ = (UniqueConstraint("record_kind", "record_id", "slot_key", name="uq_bgv_upload_slot"),)

    upload_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    record_kind: Mapped[str] = mapped_column(String(40), index=True)
    record_id: Mapped[int] = mapped_column(Integer, index=True)
    slot_key: Mapped[str] = mapped_column(String(100))
    is_custom: Mapped[bool] = mapped_column(Boolean, default=False)

    original_name: Mapped[str] = mapped_column(String(255))
    storage_key: Mapped[str] = mapped_column(String(500))
    url: Mapped[str] = mapped_column(String(1000))
    content_type: Mapped[str | None] = mapped_column(String(100), nullable=True)
    size_bytes: Mapped[int] = mapped_column(Integer, default=0)
    uploaded_by: Mapped[str] = mapped_column(String(20))
    uploaded_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now)
