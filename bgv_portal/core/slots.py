from __future__ import annotations

import re
from dataclasses import dataclass
from typing import TYPE_CHECKING, Iterable

from bgv_portal.core.errors import DuplicateSlotKey, InvalidSlot, NotFoundError, ValidationError
from bgv_portal.core.workflow import ADDRESS_VERIFICATION, DOCUMENT_COLLECTION, outcome_vocabulary

if TYPE_CHECKING:
    from bgv_portal.schemas.customer import BGVFormConfig


@dataclass(frozen=True)
class SlotDefinition:
    key: str
    label: str
    required: bool
    aliases: tuple[str, ...] = ()


ADDRESS_SLOTS: tuple[SlotDefinition, ...] = (
    SlotDefinition("id_proof_one", "ID Proof One", True, ("idProofOne",)),
    SlotDefinition("id_proof_two", "ID Proof Two", True, ("idProofTwo",)),
    SlotDefinition("house_image_one", "House Image One", True, ("houseImageOne",)),
    SlotDefinition("house_image_two", "House Image Two", True, ("houseImageTwo",)),
    SlotDefinition("signature", "Signature", True),
    SlotDefinition("selfie", "Selfie (Candidate Image)", True, ("candidate_selfie", "candidateSelfie")),
)

DOCUMENT_SLOTS: tuple[SlotDefinition, ...] = (
    SlotDefinition("aadhaar", "Aadhaar Card", True, ("aadhar",)),
    SlotDefinition("pan", "PAN Card", True),
    SlotDefinition("degreeMarksheet", "Degree / Marksheet", True, ("degree_marksheet", "marksheet")),
    SlotDefinition("addressProof", "Address Proof", True, ("address_proof",)),
    SlotDefinition("passport", "Passport", False),
    SlotDefinition("passportDeclaration", "Passport Declaration", False, ("passport_declaration",)),
    SlotDefinition("relievingLetter", "Relieving Letter", False, ("relieving_letter",)),
    SlotDefinition("paySlip", "Pay Slip", False, ("pay_slip", "salary_slip")),
    SlotDefinition("offerLetter", "Offer Letter", False, ("offer_letter",)),
    SlotDefinition("cv", "CV / Resume", False, ("resume",)),
    SlotDefinition("signature", "Signature", True),
)

BUILT_IN_SLOTS: dict[str, tuple[SlotDefinition, ...]] = {
    ADDRESS_VERIFICATION: ADDRESS_SLOTS,
    DOCUMENT_COLLECTION: DOCUMENT_SLOTS,
}

DOCUMENT_TYPE_KEYS: tuple[str, ...] = tuple(slot.key for slot in DOCUMENT_SLOTS)

_NON_ALNUM_RE = re.compile(r"[^a-zA-Z0-9\s]")
_WHITESPACE_RE = re.compile(r"\s+")


def built_in_slots(kind: str) -> tuple[SlotDefinition, ...]:
    outcome_vocabulary(kind)
    return BUILT_IN_SLOTS[kind]


def _document_type_enabled(config: "BGVFormConfig | None", key: str) -> bool:
    if config is None:
        return True
    return bool(config.document_types.get(key, True))


def enabled_built_in_slots(kind: str, config: "BGVFormConfig | None" = None) -> list[SlotDefinition]:
    slots = built_in_slots(kind)
    if kind != DOCUMENT_COLLECTION:
        return list(slots)
    return [slot for slot in slots if _document_type_enabled(config, slot.key)]


def enabled_custom_keys(kind: str, config: "BGVFormConfig | None" = None) -> list[str]:
    if kind != DOCUMENT_COLLECTION or config is None:
        return []
    return [item.key for item in config.custom_document_types if item.enabled]


def allowed_slot_keys(kind: str, config: "BGVFormConfig | None" = None) -> frozenset[str]:
    keys = {slot.key for slot in enabled_built_in_slots(kind, config)}
    keys.update(enabled_custom_keys(kind, config))
    return frozenset(keys)


def required_slots(kind: str, config: "BGVFormConfig | None" = None) -> list[str]:
    return [slot.key for slot in enabled_built_in_slots(kind, config) if slot.required]


def missing_slots(kind: str, uploaded: Iterable[str], config: "BGVFormConfig | None" = None) -> list[str]:
    present = set(uploaded)
    return [key for key in required_slots(kind, config) if key not in present]


def is_custom_slot(kind: str, key: str) -> bool:
    return key not in {slot.key for slot in built_in_slots(kind)}


def normalize_slot_key(kind: str, raw: str | None, config: "BGVFormConfig | None" = None) -> str:
    """Map an uploaded ``doc_type`` to a slot key accepted for this record, or raise ``InvalidSlot``."""
    value = (raw or "").strip()
    allowed = allowed_slot_keys(kind, config)
    if value in allowed:
        return value

    lowered = value.lower().replace(" ", "_").replace("-", "_")
    for slot in built_in_slots(kind):
        candidates = {slot.key.lower(), *(alias.lower() for alias in slot.aliases)}
        if lowered in candidates and slot.key in allowed:
            return slot.key
    raise InvalidSlot(value or "<empty>")


def slot_label(kind: str, key: str, config: "BGVFormConfig | None" = None) -> str:
    for slot in built_in_slots(kind):
        if slot.key == key:
            return slot.label
    if config is not None:
        for item in config.custom_document_types:
            if item.key == key:
                return item.label
    return key


def derive_slot_key(label: str) -> str:
    """Camel-case machine key for a custom document label ("Bank Statement" -> "bankStatement")."""
    cleaned = _NON_ALNUM_RE.sub("", (label or "").strip())
    words = _WHITESPACE_RE.split(cleaned)
    return "".join(
        word.lower() if index == 0 else word[:1].upper() + word[1:].lower()
        for index, word in enumerate(words)
    )


def add_custom_document_type(config: "BGVFormConfig", label: str) -> "BGVFormConfig":
    cleaned_label = (label or "").strip()
    if not cleaned_label:
        raise ValidationError.for_field("label", "required")
    key = derive_slot_key(cleaned_label)
    if not key:
        raise ValidationError.for_field("label", "must contain letters or digits")

    existing = {item.key for item in config.custom_document_types}
    if key in DOCUMENT_TYPE_KEYS or key in existing:
        raise DuplicateSlotKey(key)

    from bgv_portal.schemas.customer import CustomDocumentType

    custom = [*config.custom_document_types, CustomDocumentType(key=key, label=cleaned_label, enabled=True)]
    return config.model_copy(update={"custom_document_types": custom})


def set_custom_document_type_enabled(config: "BGVFormConfig", key: str, enabled: bool) -> "BGVFormConfig":
    if key not in {item.key for item in config.custom_document_types}:
        raise NotFoundError("Custom document type", key)
    custom = [
        item.model_copy(update={"enabled": enabled}) if item.key == key else item
        for item in config.custom_document_types
    ]
    return config.model_copy(update={"custom_document_types": custom})


def remove_custom_document_type(config: "BGVFormConfig", key: str) -> "BGVFormConfig":
    custom = [item for item in config.custom_document_types if item.key != key]
    if len(custom) == len(config.custom_document_types):
        raise NotFoundError("Custom document type", key)
    return config.model_copy(update={"custom_document_types": custom})
