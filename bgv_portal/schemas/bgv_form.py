from typing import Literal, Optional

from pydantic import BaseModel, Field


GapAnswer = Literal["yes", "no", ""]
CourseType = Literal["regular", "part_time", "correspondence", ""]
LoaTitle = Literal["Mr", "Ms", "Mrs", ""]

MAX_EMPLOYMENTS = 3


class Address(BaseModel):
    address: str = ""
    duration: str = ""


class PersonalInfo(BaseModel):
    full_name: str = ""
    dob: str = ""
    nationality: str = "Indian"
    fathers_name: str = ""
    mobile: str = ""
    alternate_number: str = ""
    addresses: list[Address] = Field(default_factory=lambda: [Address()])
    gender: str = ""
    email: str = ""
    aadhaar_number: str = ""
    pan_number: str = ""


class Education(BaseModel):
    degree: str = ""
    enrollment_no: str = ""
    year_of_passing: str = ""
    university_name: str = ""
    university_location: str = ""
    period_of_study_from: str = ""
    period_of_study_to: str = ""
    course_type: CourseType = ""


class EmploymentEntry(BaseModel):
    entry_id: str = ""
    company_name: str = ""
    period_from: str = ""
    period_to: str = ""
    designation: str = ""
    ctc: str = ""
    employee_id: str = ""
    supervisor_name: str = ""
    supervisor_designation: str = ""
    supervisor_contact: str = ""
    supervisor_email: str = ""
    hr_name: str = ""
    hr_contact: str = ""
    hr_email: str = ""
    reason_for_leaving: str = ""
    nature_of_employment: str = ""
    type_of_employment: str = ""


class Reference(BaseModel):
    name: str = ""
    designation: str = ""
    organization: str = ""
    relationship: str = ""
    contact: str = ""
    email: str = ""


class GapEntry(BaseModel):
    key: str
    label: str = ""
    anchor: str = ""
    has_gap: GapAnswer = ""
    duration: str = ""
    reason: str = ""


class LetterOfAuthorization(BaseModel):
    auth_checkbox1: bool = False
    auth_checkbox2: bool = False
    auth_checkbox3: bool = False
    title: LoaTitle = ""
    name_in_capitals: str = ""
    date: str = ""


class BGVFormData(BaseModel):
    personal_info: PersonalInfo = Field(default_factory=PersonalInfo)
    education: Education = Field(default_factory=Education)
    employment_history: list[EmploymentEntry] = Field(default_factory=list)
    references: list[Reference] = Field(default_factory=lambda: [Reference()])
    gap_details: list[GapEntry] = Field(default_factory=list)
    loa: LetterOfAuthorization = Field(default_factory=LetterOfAuthorization)


IdProofType = Literal["aadhaar", "pan", "voter_id", "passport", "driving_license", "other", ""]
ResidentialStatus = Literal["owned", "rented", "company_provided", "pg", "other", ""]


class AddressVerificationForm(BaseModel):
    contact_person_name: str = ""
    contact_person_relation: str = ""
    number_of_family_members: Optional[int] = None
    contact_phone_no: str = ""

    id_proof_type: IdProofType = ""
    id_proof_number: str = ""

    period_of_stay: str = ""
    different_address: str = ""
    residential_status: ResidentialStatus = ""
    landmark: str = ""
    remarks: str = ""

    latitude: Optional[float] = None
    longitude: Optional[float] = None
    gps_address: str = ""


class BGVFormStepIn(BaseModel):
    """One step of the BGV form; only the field matching the step is read."""

    personal_info: Optional[PersonalInfo] = None
    education: Optional[Education] = None
    employment_history: Optional[list[EmploymentEntry]] = None
    references: Optional[list[Reference]] = None
    gap_details: Optional[list[GapEntry]] = None
    loa: Optional[LetterOfAuthorization] = None


class BGVFormSubmitIn(BaseModel):
    form_data: BGVFormData
