from datetime import datetime
from typing import Optional

from pydantic import BaseModel, EmailStr, Field, field_validator, model_validator

from bgv_portal.core.slots import DOCUMENT_TYPE_KEYS


def _default_document_types() -> dict[str, bool]:
    return {key: True for key in DOCUMENT_TYPE_KEYS}


class BGVFormSteps(BaseModel):
    education: bool = True
    employment: bool = True
    references: bool = True
    gap_details: bool = True


class CustomDocumentType(BaseModel):
    key: str
    label: str
    enabled: bool = True


class BGVFormConfig(BaseModel):
    steps: BGVFormSteps = Field(default_factory=BGVFormSteps)
    document_types: dict[str, bool] = Field(default_factory=_default_document_types)
    custom_document_types: list[CustomDocumentType] = Field(default_factory=list)

    @field_validator("document_types")
    @classmethod
    def _known_document_types(cls, value: dict[str, bool]) -> dict[str, bool]:
        unknown = sorted(set(value) - set(DOCUMENT_TYPE_KEYS))
        if unknown:
            raise ValueError(f"Unknown document types: {', '.join(unknown)}")
        return {**_default_document_types(), **value}

    @model_validator(mode="after")
    def _gap_details_need_employment(self) -> "BGVFormConfig":
        if not self.steps.employment and self.steps.gap_details:
            self.steps = self.steps.model_copy(update={"gap_details": False})
        return self


class BGVFormConfigUpdate(BaseModel):
    steps: Optional[BGVFormSteps] = None
    document_types: Optional[dict[str, bool]] = None


class CustomDocumentTypeIn(BaseModel):
    label: str


class CustomDocumentTypeToggle(BaseModel):
    enabled: bool


class CustomerCreate(BaseModel):
    company_name: str
    emails: list[EmailStr] = Field(default_factory=list)
    bgv_form_config: Optional[BGVFormConfig] = None


class CustomerOut(BaseModel):
    customer_id: int
    company_name: str
    emails: list[str]
    bgv_form_config: BGVFormConfig
    created_at: datetime
    updated_at: datetime
