from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class CompanySummary(BaseModel):
    customer_id: Optional[int] = None
    company_name: str
    total: int = 0
    pending: int = 0
    approved: int = 0
    rejected: int = 0
    completed: int = 0
    not_initiated: int = 0
    last_created_at: Optional[datetime] = None


class BulkSendError(BaseModel):
    record_id: int
    code: Optional[str] = None
    message: str


class BulkSendResult(BaseModel):
    sent_count: int = 0
    failed_count: int = 0
    errors: list[BulkSendError] = Field(default_factory=list)


class RecordStats(BaseModel):
    total: int = 0
    pending: int = 0
    approved: int = 0
    rejected: int = 0
    insufficiency: int = 0
    not_initiated: int = 0
    link_sent: int = 0
    in_progress: int = 0
    completed: int = 0
    expired: int = 0
    success_rate: float = 0.0
