from __future__ import annotations

from typing import Any, Sequence
from uuid import uuid4

from bgv_portal.core.errors import FieldIssue, ValidationError
from bgv_portal.core.gaps import derive_gaps
from bgv_portal.schemas.bgv_form import (
    MAX_EMPLOYMENTS,
    AddressVerificationForm,
    BGVFormData,
    BGVFormStepIn,
    EmploymentEntry,
)
from bgv_portal.schemas.customer import BGVFormConfig

BGV_STEPS: tuple[str, ...] = (
    "personal_info",
    "education",
    "employment_history",
    "references",
    "gap_details",
    "loa",
)

# Config toggle guarding each optional step.
_STEP_TOGGLES = {
    "education": "education",
    "employment_history": "employment",
    "references": "references",
    "gap_details": "gap_details",
}

_PERSONAL_REQUIRED = ("full_name", "dob", "fathers_name", "mobile", "email", "aadhaar_number", "pan_number")
_EDUCATION_REQUIRED = ("degree", "year_of_passing", "university_name")
_REFERENCE_REQUIRED = ("name", "contact")
_LOA_REQUIRED = ("name_in_capitals", "date")
_LOA_TITLES = {"Mr", "Ms", "Mrs"}
_ADDRESS_FORM_REQUIRED = ("contact_person_name", "contact_person_relation", "id_proof_type", "residential_status")


def _blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    return False


def step_enabled(step: str, config: BGVFormConfig | None) -> bool:
    toggle = _STEP_TOGGLES.get(step)
    if toggle is None or config is None:
        return True
    return bool(getattr(config.steps, toggle))


def ensure_entry_ids(
    employments: Sequence[EmploymentEntry],
    stored: Sequence[EmploymentEntry] = (),
) -> list[EmploymentEntry]:
    """Fill blank ``entry_id``s; an id-less entry takes the stored id at its position when unused."""
    taken = {entry.entry_id.strip() for entry in employments if entry.entry_id.strip()}
    result: list[EmploymentEntry] = []
    for index, entry in enumerate(employments):
        if entry.entry_id.strip():
            result.append(entry)
            continue
        inherited = stored[index].entry_id.strip() if index < len(stored) else ""
        entry_id = inherited if inherited and inherited not in taken else uuid4().hex[:12]
        taken.add(entry_id)
        result.append(entry.model_copy(update={"entry_id": entry_id}))
    return result


def normalize_bgv_form(form: BGVFormData, previous: BGVFormData | None = None) -> BGVFormData:
    """Give employments stable ids and re-derive gap entries from them."""
    employments = ensure_entry_ids(form.employment_history, previous.employment_history if previous else ())
    return form.model_copy(
        update={
            "employment_history": employments,
            "gap_details": derive_gaps(employments, form.gap_details),
        }
    )


def apply_step(form: BGVFormData, step: str, payload: BGVFormStepIn) -> BGVFormData:
    """Return a new form with one step replaced; employment edits re-derive gaps in the same write."""
    if step not in BGV_STEPS:
        raise ValidationError.for_field("step", f"must be one of {', '.join(BGV_STEPS)}")
    value = getattr(payload, step)
    if value is None:
        raise ValidationError.for_field(step, "required")

    if step == "employment_history":
        if len(value) > MAX_EMPLOYMENTS:
            raise ValidationError.for_field(step, f"at most {MAX_EMPLOYMENTS} entries")
        employments = ensure_entry_ids(value, form.employment_history)
        return form.model_copy(
            update={
                "employment_history": employments,
                "gap_details": derive_gaps(employments, form.gap_details),
            }
        )
    if step == "gap_details":
        return form.model_copy(update={"gap_details": derive_gaps(form.employment_history, value)})
    return form.model_copy(update={step: value})


def validate_bgv_form(form: BGVFormData, config: BGVFormConfig | None = None) -> list[FieldIssue]:
    """Collect every required-field violation across all enabled steps."""
    issues: list[FieldIssue] = []

    personal = form.personal_info
    for field in _PERSONAL_REQUIRED:
        if _blank(getattr(personal, field)):
            issues.append(FieldIssue(f"personal_info.{field}", "required"))
    if not any(not _blank(item.address) for item in personal.addresses):
        issues.append(FieldIssue("personal_info.addresses[0].address", "required"))

    if step_enabled("education", config):
        for field in _EDUCATION_REQUIRED:
            if _blank(getattr(form.education, field)):
                issues.append(FieldIssue(f"education.{field}", "required"))

    if step_enabled("employment_history", config):
        if len(form.employment_history) > MAX_EMPLOYMENTS:
            issues.append(FieldIssue("employment_history", f"at most {MAX_EMPLOYMENTS} entries"))
        for index, entry in enumerate(form.employment_history):
            if _blank(entry.company_name):
                issues.append(FieldIssue(f"employment_history[{index}].company_name", "required"))

    if step_enabled("references", config):
        if not form.references:
            issues.append(FieldIssue("references", "at least one reference is required"))
        for index, reference in enumerate(form.references):
            for field in _REFERENCE_REQUIRED:
                if _blank(getattr(reference, field)):
                    issues.append(FieldIssue(f"references[{index}].{field}", "required"))

    if step_enabled("gap_details", config) and step_enabled("employment_history", config):
        for gap in derive_gaps(form.employment_history, form.gap_details):
            if gap.has_gap not in {"yes", "no"}:
                issues.append(FieldIssue(f"gap_details.{gap.key}.has_gap", "required"))
            elif gap.has_gap == "yes":
                for field in ("duration", "reason"):
                    if _blank(getattr(gap, field)):
                        issues.append(FieldIssue(f"gap_details.{gap.key}.{field}", "required"))

    loa = form.loa
    for field in ("auth_checkbox1", "auth_checkbox2", "auth_checkbox3"):
        if not getattr(loa, field):
            issues.append(FieldIssue(f"loa.{field}", "must be accepted"))
    if loa.title not in _LOA_TITLES:
        issues.append(FieldIssue("loa.title", "required"))
    for field in _LOA_REQUIRED:
        if _blank(getattr(loa, field)):
            issues.append(FieldIssue(f"loa.{field}", "required"))

    return issues


def validate_address_form(form: AddressVerificationForm) -> list[FieldIssue]:
    issues = [
        FieldIssue(field, "required") for field in _ADDRESS_FORM_REQUIRED if _blank(getattr(form, field))
    ]
    if form.latitude is None or form.longitude is None:
        issues.append(FieldIssue("location", "location access is required"))
    return issues


def prefill_bgv_form(
    saved: dict[str, Any] | None,
    *,
    name: str | None,
    phone: str | None,
    email: str | None,
) -> BGVFormData:
    """Admin identity fills blank personal fields; anything the candidate typed wins per field."""
    form = BGVFormData.model_validate(saved) if saved else BGVFormData()
    defaults = {"full_name": name, "mobile": phone, "email": email}
    updates = {
        field: value.strip()
        for field, value in defaults.items()
        if value and _blank(getattr(form.personal_info, field))
    }
    if updates:
        form = form.model_copy(update={"personal_info": form.personal_info.model_copy(update=updates)})
    return form.model_copy(update={"gap_details": derive_gaps(form.employment_history, form.gap_details)})
