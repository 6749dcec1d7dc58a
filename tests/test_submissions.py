import pytest
from sqlalchemy import text

from bgv_portal.core.errors import AlreadyCompleted, ConflictError, IncompleteForm, MissingDocuments
from bgv_portal.core.workflow import ADDRESS_VERIFICATION, COMPLETED, IN_PROGRESS
from bgv_portal.request_context import RequestContext
from bgv_portal.schemas.bgv_form import AddressVerificationForm, BGVFormData, BGVFormStepIn, EmploymentEntry, GapEntry
from bgv_portal.services import document_slots, review, submissions, tokens

from conftest import AV_SLOTS, REQUIRED_DC_SLOTS

CANDIDATE = RequestContext(request_id="req-1", ip="203.0.113.7", user_agent="pytest-browser")


async def _started(db_session, record):
    link = await tokens.issue(db_session, record)
    return await tokens.resolve(db_session, record.RECORD_KIND, link.token, for_write=True)


async def _fill_slots(db_session, record, blob_store, pdf, slots):
    for slot in slots:
        await document_slots.upload(
            db_session,
            record,
            raw_slot=slot,
            upload=pdf(f"{slot}.pdf"),
            config=None,
            blob_store=blob_store,
            uploaded_by="candidate",
        )


def _address_form(**overrides) -> AddressVerificationForm:
    values = {
        "contact_person_name": "Meera Rao",
        "contact_person_relation": "Mother",
        "id_proof_type": "aadhaar",
        "residential_status": "owned",
        "landmark": "Near City Park",
        "latitude": 12.9716,
        "longitude": 77.5946,
    }
    values.update(overrides)
    return AddressVerificationForm(**values)


async def test_empty_submission_lists_fields_and_slots(db_session, make_record):
    record = await _started(db_session, await make_record())
    with pytest.raises(IncompleteForm) as caught:
        await submissions.submit_document_collection(db_session, record, BGVFormData(), config=None)

    fields = {issue.field for issue in caught.value.missing_fields}
    assert "personal_info.full_name" in fields
    assert "loa.title" in fields
    assert caught.value.missing_slots == list(REQUIRED_DC_SLOTS)
    assert record.verification_status == IN_PROGRESS


async def test_complete_form_without_documents_is_rejected(db_session, make_record, blob_store, pdf, complete_form):
    record = await _started(db_session, await make_record())
    await _fill_slots(db_session, record, blob_store, pdf, ["aadhaar", "pan"])
    with pytest.raises(MissingDocuments) as caught:
        await submissions.submit_document_collection(db_session, record, complete_form, config=None)
    assert caught.value.missing_slots == ["degreeMarksheet", "addressProof", "signature"]


async def test_submit_completes_and_locks_record(db_session, make_record, blob_store, pdf, complete_form):
    record = await _started(db_session, await make_record())
    await _fill_slots(db_session, record, blob_store, pdf, REQUIRED_DC_SLOTS)

    submitted = await submissions.submit_document_collection(
        db_session, record, complete_form, config=None, context=CANDIDATE
    )
    assert submitted.verification_status == COMPLETED
    assert submitted.submitted_at is not None
    assert submitted.ip_address == "203.0.113.7"
    assert submitted.user_agent == "pytest-browser"
    assert submitted.form_data["personal_info"]["full_name"] == "Asha Rao"

    with pytest.raises(AlreadyCompleted):
        await submissions.submit_document_collection(db_session, record, complete_form, config=None)
    with pytest.raises(AlreadyCompleted):
        await submissions.save_draft(db_session, record, complete_form)

    await review.edit_record(db_session, record, {"candidate_name": "Asha R."}, performed_by="admin")
    assert record.candidate_name == "Asha R."


async def test_concurrent_submission_loses(db_session, make_record, blob_store, pdf, complete_form):
    record = await _started(db_session, await make_record())
    await _fill_slots(db_session, record, blob_store, pdf, REQUIRED_DC_SLOTS)
    await db_session.execute(
        text("UPDATE bgv_document_collection SET verification_status = 'completed' WHERE record_id = :id"),
        {"id": record.record_id},
    )
    with pytest.raises(ConflictError):
        await submissions.submit_document_collection(db_session, record, complete_form, config=None)


async def test_draft_and_prefill(db_session, make_record):
    record = await _started(db_session, await make_record(phone="9876543210"))
    form = submissions.current_bgv_form(record)
    assert form.personal_info.full_name == "Asha Rao"
    assert form.personal_info.mobile == "9876543210"
    assert [gap.key for gap in form.gap_details] == ["educationToCurrent"]

    draft = BGVFormData(employment_history=[EmploymentEntry(company_name="Acme Corp")])
    saved = await submissions.save_draft(db_session, record, draft)
    assert saved.employment_history[0].entry_id
    assert [gap.key for gap in saved.gap_details] == ["educationToEmp1", "emp1ToCurrent"]
    assert record.form_data["personal_info"]["full_name"] == ""
    assert submissions.current_bgv_form(record).personal_info.full_name == "Asha Rao"


async def test_employment_step_rederives_gaps(db_session, make_record):
    record = await _started(db_session, await make_record())
    step = BGVFormStepIn(
        employment_history=[
            EmploymentEntry(entry_id="a", company_name="Alpha"),
            EmploymentEntry(entry_id="b", company_name="Beta"),
        ]
    )
    form = await submissions.save_step(db_session, record, "employment_history", step)
    assert [gap.key for gap in form.gap_details] == ["educationToEmp1", "emp1ToEmp2", "emp2ToCurrent"]

    answers = BGVFormStepIn(
        gap_details=[
            GapEntry(key="educationToEmp1", has_gap="yes", duration="6 months", reason="Exams"),
            GapEntry(key="emp1ToEmp2", has_gap="no"),
            GapEntry(key="emp2ToCurrent", has_gap="no"),
        ]
    )
    form = await submissions.save_step(db_session, record, "gap_details", answers)
    assert form.gap_details[0].reason == "Exams"

    # Alpha leaves the timeline; Beta becomes the first employment.
    form = await submissions.save_step(
        db_session,
        record,
        "employment_history",
        BGVFormStepIn(employment_history=[EmploymentEntry(entry_id="b", company_name="Beta")]),
    )
    assert [gap.key for gap in form.gap_details] == ["educationToEmp1", "emp1ToCurrent"]
    assert [gap.has_gap for gap in form.gap_details] == ["", ""]
    assert form.gap_details[0].label == "Gap between Education and Beta"
    assert record.form_data["gap_details"][0]["reason"] == ""


async def test_address_submission_requires_location(db_session, make_record, blob_store, pdf):
    record = await _started(db_session, await make_record(ADDRESS_VERIFICATION, address="12 MG Road"))
    await _fill_slots(db_session, record, blob_store, pdf, AV_SLOTS)

    with pytest.raises(IncompleteForm) as caught:
        await submissions.submit_address_verification(db_session, record, _address_form(latitude=None))
    assert [issue.field for issue in caught.value.missing_fields] == ["location"]
    assert caught.value.missing_slots == []

    submitted = await submissions.submit_address_verification(db_session, record, _address_form())
    assert submitted.verification_status == COMPLETED
    assert submitted.latitude == pytest.approx(12.9716)
    assert submitted.longitude == pytest.approx(77.5946)
    assert submitted.landmark == "Near City Park"


async def test_address_submission_without_uploads(db_session, make_record):
    record = await _started(db_session, await make_record(ADDRESS_VERIFICATION))
    with pytest.raises(MissingDocuments) as caught:
        await submissions.submit_address_verification(db_session, record, _address_form())
    assert caught.value.missing_slots == list(AV_SLOTS)


async def test_rename_without_entry_ids_keeps_gap_answers(db_session, make_record):
    record = await _started(db_session, await make_record())
    await submissions.save_step(
        db_session, record, "employment_history", BGVFormStepIn(employment_history=[EmploymentEntry(company_name="Acme")])
    )
    await submissions.save_step(
        db_session,
        record,
        "gap_details",
        BGVFormStepIn(
            gap_details=[
                GapEntry(key="educationToEmp1", has_gap="yes", duration="4 months", reason="Relocation"),
                GapEntry(key="emp1ToCurrent", has_gap="no"),
            ]
        ),
    )

    renamed = await submissions.save_step(
        db_session,
        record,
        "employment_history",
        BGVFormStepIn(employment_history=[EmploymentEntry(company_name="Acme Labs")]),
    )
    assert [(gap.key, gap.has_gap) for gap in renamed.gap_details] == [
        ("educationToEmp1", "yes"),
        ("emp1ToCurrent", "no"),
    ]
    assert renamed.gap_details[0].reason == "Relocation"
    assert renamed.gap_details[0].label == "Gap between Education and Acme Labs"

    # Full-form draft saves from the same client keep the answers too.
    resaved = submissions.current_bgv_form(record).model_dump()
    resaved["employment_history"][0]["entry_id"] = ""
    draft = await submissions.save_draft(db_session, record, BGVFormData.model_validate(resaved))
    assert [gap.has_gap for gap in draft.gap_details] == ["yes", "no"]
