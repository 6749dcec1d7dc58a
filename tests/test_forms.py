from __future__ import annotations

import unittest

from bgv_portal.core.errors import ValidationError
from bgv_portal.core.forms import (
    apply_step,
    ensure_entry_ids,
    prefill_bgv_form,
    step_enabled,
    validate_address_form,
    validate_bgv_form,
)
from bgv_portal.schemas.bgv_form import (
    AddressVerificationForm,
    BGVFormData,
    BGVFormStepIn,
    EmploymentEntry,
    GapEntry,
    PersonalInfo,
)
from bgv_portal.schemas.customer import BGVFormConfig, BGVFormSteps

from conftest import build_complete_form


def _fields(issues) -> set[str]:
    return {issue.field for issue in issues}


class RequiredFieldPolicyTests(unittest.TestCase):
    def test_complete_form_has_no_issues(self) -> None:
        self.assertEqual(validate_bgv_form(build_complete_form()), [])

    def test_blank_form_reports_every_step(self) -> None:
        fields = _fields(validate_bgv_form(BGVFormData()))
        self.assertTrue(
            {
                "personal_info.full_name",
                "personal_info.addresses[0].address",
                "education.degree",
                "references[0].name",
                "gap_details.educationToCurrent.has_gap",
                "loa.auth_checkbox1",
                "loa.title",
            }.issubset(fields)
        )

    def test_disabled_steps_are_skipped(self) -> None:
        config = BGVFormConfig(steps=BGVFormSteps(education=False, references=False, employment=False))
        fields = _fields(validate_bgv_form(BGVFormData(), config))
        self.assertFalse(any(field.startswith(("education.", "references", "gap_details")) for field in fields))
        self.assertFalse(step_enabled("gap_details", config))

    def test_gap_yes_needs_duration_and_reason(self) -> None:
        form = build_complete_form().model_copy(
            update={"gap_details": [GapEntry(key="educationToEmp1", has_gap="yes"), GapEntry(key="emp1ToCurrent", has_gap="no")]}
        )
        self.assertSetEqual(
            _fields(validate_bgv_form(form)),
            {"gap_details.educationToEmp1.duration", "gap_details.educationToEmp1.reason"},
        )

    def test_employment_needs_company_name(self) -> None:
        form = build_complete_form().model_copy(
            update={"employment_history": [EmploymentEntry(entry_id="acme", designation="Engineer")]}
        )
        self.assertIn("employment_history[0].company_name", _fields(validate_bgv_form(form)))

    def test_address_form_requires_location(self) -> None:
        form = AddressVerificationForm(
            contact_person_name="Meena",
            contact_person_relation="Mother",
            id_proof_type="aadhaar",
            residential_status="owned",
        )
        self.assertEqual(_fields(validate_address_form(form)), {"location"})
        located = form.model_copy(update={"latitude": 12.97, "longitude": 77.59})
        self.assertEqual(validate_address_form(located), [])


class StepEditTests(unittest.TestCase):
    def test_employment_step_assigns_ids_and_rederives_gaps(self) -> None:
        payload = BGVFormStepIn(
            employment_history=[EmploymentEntry(company_name="Acme"), EmploymentEntry(company_name="Beta")]
        )
        form = apply_step(BGVFormData(), "employment_history", payload)
        self.assertTrue(all(entry.entry_id for entry in form.employment_history))
        self.assertEqual([gap.key for gap in form.gap_details], ["educationToEmp1", "emp1ToEmp2", "emp2ToCurrent"])

    def test_id_less_entries_inherit_stored_ids_by_position(self) -> None:
        stored = [EmploymentEntry(entry_id="a", company_name="Acme"), EmploymentEntry(entry_id="b", company_name="Beta")]
        incoming = [
            EmploymentEntry(company_name="Acme Labs"),
            EmploymentEntry(entry_id="a", company_name="Beta"),
            EmploymentEntry(company_name="Gamma"),
        ]
        ids = [entry.entry_id for entry in ensure_entry_ids(incoming, stored)]
        self.assertEqual(ids[1], "a")
        # Position 0 cannot reuse "a" (claimed by the second entry); position 2 has no stored entry.
        self.assertNotIn(ids[0], {"", "a"})
        self.assertEqual(len(set(ids)), 3)

    def test_rename_without_ids_keeps_gap_answers(self) -> None:
        form = apply_step(
            BGVFormData(),
            "employment_history",
            BGVFormStepIn(employment_history=[EmploymentEntry(company_name="Acme")]),
        )
        form = apply_step(
            form,
            "gap_details",
            BGVFormStepIn(
                gap_details=[GapEntry(key="educationToEmp1", has_gap="no"), GapEntry(key="emp1ToCurrent", has_gap="no")]
            ),
        )
        renamed = apply_step(
            form,
            "employment_history",
            BGVFormStepIn(employment_history=[EmploymentEntry(company_name="Acme Labs")]),
        )
        self.assertEqual(renamed.employment_history[0].entry_id, form.employment_history[0].entry_id)
        self.assertEqual([gap.has_gap for gap in renamed.gap_details], ["no", "no"])

    def test_more_than_three_employments_is_refused(self) -> None:
        payload = BGVFormStepIn(employment_history=[EmploymentEntry(company_name=f"C{i}") for i in range(4)])
        with self.assertRaises(ValidationError):
            apply_step(BGVFormData(), "employment_history", payload)

    def test_unknown_or_empty_step_is_refused(self) -> None:
        with self.assertRaises(ValidationError):
            apply_step(BGVFormData(), "documents", BGVFormStepIn())
        with self.assertRaises(ValidationError):
            apply_step(BGVFormData(), "education", BGVFormStepIn())

    def test_gap_step_cannot_invent_keys(self) -> None:
        payload = BGVFormStepIn(gap_details=[GapEntry(key="emp5ToCurrent", has_gap="yes")])
        form = apply_step(BGVFormData(), "gap_details", payload)
        self.assertEqual([gap.key for gap in form.gap_details], ["educationToCurrent"])


class PrefillTests(unittest.TestCase):
    def test_admin_identity_fills_blank_fields(self) -> None:
        form = prefill_bgv_form(None, name="Asha Rao", phone="98765", email="asha@example.com")
        self.assertEqual(form.personal_info.full_name, "Asha Rao")
        self.assertEqual(form.personal_info.mobile, "98765")
        self.assertEqual(len(form.gap_details), 1)

    def test_candidate_values_win(self) -> None:
        saved = BGVFormData(personal_info=PersonalInfo(full_name="Asha R.", mobile="")).model_dump()
        form = prefill_bgv_form(saved, name="Asha Rao", phone="98765", email=None)
        self.assertEqual(form.personal_info.full_name, "Asha R.")
        self.assertEqual(form.personal_info.mobile, "98765")
        self.assertEqual(form.personal_info.email, "")


if __name__ == "__main__":
    unittest.main()
