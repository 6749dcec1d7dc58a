from datetime import datetime
from typing import Generic, Literal, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from bgv_portal.schemas.customer import BGVFormConfig

AddressType = Literal["current", "permanent", "office"]
VerificationMethod = Literal["self", "physical", "document"]


class RecordCreate(BaseModel):
    code: Optional[str] = None
    customer_id: Optional[int] = None
    company_name: Optional[str] = None
    candidate_name: str = Field(min_length=1)
    phone: Optional[str] = None
    email: Optional[EmailStr] = None
    initiator_name: Optional[str] = None


class AddressVerificationCreate(RecordCreate):
    applicant_no: Optional[str] = None
    fathers_name: Optional[str] = None
    address: str = ""
    city: Optional[str] = None
    state: Optional[str] = None
    pin: Optional[str] = None
    landmark: Optional[str] = None
    address_type: AddressType = "current"
    verification_method: VerificationMethod = "self"


class VerificationData(BaseModel):
    verifier_comments: Optional[str] = None
    verified_at: Optional[datetime] = None


class RecordUpdate(BaseModel):
    code: Optional[str] = None
    candidate_name: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[EmailStr] = None
    initiator_name: Optional[str] = None

    status: Optional[str] = None
    verification_status: Optional[str] = None
    verification_data: Optional[VerificationData] = None


class AddressVerificationUpdate(RecordUpdate):
    applicant_no: Optional[str] = None
    fathers_name: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    pin: Optional[str] = None
    landmark: Optional[str] = None
    address_type: Optional[AddressType] = None
    verification_method: Optional[VerificationMethod] = None


class ReviewActionIn(BaseModel):
    comment: Optional[str] = None
    reissue_link: bool = False


class DocumentOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    slot_key: str
    label: str = ""
    original_name: str
    url: str
    content_type: Optional[str] = None
    size_bytes: int = 0
    uploaded_by: str
    uploaded_at: datetime


class SlotFailureOut(BaseModel):
    slot_key: str
    code: str
    message: str


class BatchUploadOut(BaseModel):
    uploaded: list[DocumentOut] = Field(default_factory=list)
    failed: list[SlotFailureOut] = Field(default_factory=list)


class IssuedLinkOut(BaseModel):
    token: str
    link: str
    expires_at: datetime


class SlotOut(BaseModel):
    key: str
    label: str
    required: bool
    custom: bool = False


class RecordOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    record_id: int
    code: Optional[str] = None
    customer_id: Optional[int] = None
    company_name: str
    candidate_name: str
    phone: Optional[str] = None
    email: Optional[str] = None
    initiator_name: Optional[str] = None

    status: str
    verification_status: str
    expires_at: Optional[datetime] = None
    link_sent_at: Optional[datetime] = None

    form_data: Optional[dict] = None
    submitted_at: Optional[datetime] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None

    admin_comments: Optional[str] = None
    verified_at: Optional[datetime] = None
    verified_by: Optional[str] = None

    created_at: datetime
    updated_at: datetime

    documents: dict[str, DocumentOut] = Field(default_factory=dict)
    custom_documents: dict[str, DocumentOut] = Field(default_factory=dict)


class AddressVerificationOut(RecordOut):
    applicant_no: Optional[str] = None
    fathers_name: Optional[str] = None
    address: str = ""
    city: Optional[str] = None
    state: Optional[str] = None
    pin: Optional[str] = None
    landmark: Optional[str] = None
    address_type: str = "current"
    verification_method: str = "self"
    latitude: Optional[float] = None
    longitude: Optional[float] = None


class PublicRecordOut(BaseModel):
    """What a candidate sees when opening a link."""

    code: Optional[str] = None
    company_name: str
    candidate_name: str
    verification_status: str
    expires_at: Optional[datetime] = None
    submitted_at: Optional[datetime] = None
    form_data: Optional[dict] = None
    slots: list[SlotOut] = Field(default_factory=list)
    documents: dict[str, DocumentOut] = Field(default_factory=dict)
    custom_documents: dict[str, DocumentOut] = Field(default_factory=dict)
    bgv_form_config: Optional[BGVFormConfig] = None


class SubmitOut(BaseModel):
    verification_status: str
    submitted_at: Optional[datetime] = None


RecordT = TypeVar("RecordT", bound=RecordOut)


class RejectOut(BaseModel, Generic[RecordT]):
    record: RecordT
    link: Optional[IssuedLinkOut] = None
