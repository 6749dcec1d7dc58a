"""Error taxonomy for the submission workflow.

Every error carries a stable ``code`` and the HTTP status the API layer maps it
to, so candidate-facing pages can show a specific reason instead of a generic
failure.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any


class BGVError(Exception):
    """Base exception for workflow errors."""

    code = "BGV_ERROR"
    status_code = 400

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


@dataclass(frozen=True)
class FieldIssue:
    field: str
    reason: str

    def as_dict(self) -> dict[str, str]:
        return {"field": self.field, "reason": self.reason}


class ValidationError(BGVError):
    """Missing or malformed input. Carries every violated field."""

    code = "VALIDATION_ERROR"
    status_code = 422

    def __init__(self, message: str, issues: list[FieldIssue] | None = None):
        self.issues = list(issues or [])
        super().__init__(message, {"fields": [issue.as_dict() for issue in self.issues]})

    @classmethod
    def for_field(cls, field: str, reason: str) -> "ValidationError":
        return cls(f"Invalid value for {field}: {reason}", [FieldIssue(field, reason)])


class IncompleteForm(ValidationError):
    code = "INCOMPLETE_FORM"

    def __init__(self, missing_fields: list[FieldIssue], missing_slots: list[str] | None = None):
        self.missing_fields = list(missing_fields)
        self.missing_slots = list(missing_slots or [])
        super().__init__("Form is incomplete.", self.missing_fields)
        self.details["missing_fields"] = [issue.as_dict() for issue in self.missing_fields]
        self.details["missing_slots"] = self.missing_slots


class MissingDocuments(ValidationError):
    code = "MISSING_DOCUMENTS"

    def __init__(self, missing_slots: list[str]):
        self.missing_slots = list(missing_slots)
        super().__init__(
            "Required documents are missing.",
            [FieldIssue(f"documents.{slot}", "required") for slot in self.missing_slots],
        )
        self.details["missing_slots"] = self.missing_slots


class TokenError(BGVError):
    code = "TOKEN_ERROR"
    status_code = 400


class TokenNotFound(TokenError):
    code = "TOKEN_NOT_FOUND"
    status_code = 404

    def __init__(self, message: str = "This link is invalid or has been replaced by a newer one."):
        super().__init__(message)


class TokenExpired(TokenError):
    code = "TOKEN_EXPIRED"
    status_code = 410

    def __init__(self, message: str = "This link has expired. Please ask for a new one."):
        super().__init__(message)


class AlreadyCompleted(TokenError):
    code = "ALREADY_COMPLETED"
    status_code = 409

    def __init__(self, message: str = "This form has already been submitted."):
        super().__init__(message)


class SlotError(BGVError):
    code = "SLOT_ERROR"
    status_code = 400


class InvalidSlot(SlotError):
    code = "INVALID_SLOT"
    status_code = 400

    def __init__(self, slot_key: str):
        super().__init__(f"'{slot_key}' is not an accepted document type for this form.", {"slot_key": slot_key})


class DuplicateSlotKey(SlotError):
    code = "DUPLICATE_SLOT_KEY"
    status_code = 409

    def __init__(self, slot_key: str):
        super().__init__(f'A document type with key "{slot_key}" already exists.', {"slot_key": slot_key})


class FileTooLarge(SlotError):
    code = "FILE_TOO_LARGE"
    status_code = 413

    def __init__(self, max_bytes: int, size: int):
        max_mb = max_bytes / (1024 * 1024)
        super().__init__(
            f"File too large. Max allowed is {max_mb:g}MB.",
            {"max_bytes": max_bytes, "size": size},
        )


class UnsupportedType(SlotError):
    code = "UNSUPPORTED_TYPE"
    status_code = 415

    def __init__(self, message: str = "Unsupported file type.", content_type: str | None = None):
        super().__init__(message, {"content_type": content_type} if content_type else None)


class StateGuardError(BGVError):
    code = "STATE_GUARD"
    status_code = 409


class CommentRequired(StateGuardError):
    code = "COMMENT_REQUIRED"
    status_code = 422

    def __init__(self, message: str = "Please add comments explaining the reason for rejection."):
        super().__init__(message)


class NotFoundError(BGVError):
    code = "NOT_FOUND"
    status_code = 404

    def __init__(self, resource: str, identifier: str | int):
        super().__init__(f"{resource} not found", {"resource": resource, "id": identifier})


class ConflictError(BGVError):
    code = "CONFLICT"
    status_code = 409


class StorageError(BGVError):
    code = "STORAGE_ERROR"
    status_code = 503
