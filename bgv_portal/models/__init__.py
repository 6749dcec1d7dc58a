from bgv_portal.db.base import Base
from bgv_portal.models.customer import BgvCustomer
from bgv_portal.models.document_upload import BgvDocumentUpload
from bgv_portal.models.event import BgvRecordEvent
from bgv_portal.models.submission import (
    RECORD_MODELS,
    BgvAddressVerification,
    BgvDocumentCollection,
    SubmissionRecord,
)

__all__ = [
    "Base",
    "BgvAddressVerification",
    "BgvCustomer",
    "BgvDocumentCollection",
    "BgvDocumentUpload",
    "BgvRecordEvent",
    "RECORD_MODELS",
    "SubmissionRecord",
]
