from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from typing import Iterable

from bgv_portal.core.datetime_utils import utc_now
from bgv_portal.core.errors import CommentRequired, StateGuardError, ValidationError


# Record kinds sharing one submission workflow.
ADDRESS_VERIFICATION = "address_verification"
DOCUMENT_COLLECTION = "document_collection"

RECORD_KINDS: tuple[str, ...] = (ADDRESS_VERIFICATION, DOCUMENT_COLLECTION)


# Workflow (verification_status) identifiers.
NOT_INITIATED = "not_initiated"
LINK_SENT = "link_sent"
IN_PROGRESS = "in_progress"
COMPLETED = "completed"
EXPIRED = "expired"

ALL_WORKFLOW_STATUSES: tuple[str, ...] = (
    NOT_INITIATED,
    LINK_SENT,
    IN_PROGRESS,
    COMPLETED,
    EXPIRED,
)

# Outcome (status) identifiers.
PENDING = "pending"
VERIFIED = "verified"
FAILED = "failed"
INSUFFICIENCY = "insufficiency"
APPROVED = "approved"
REJECTED = "rejected"

TERMINAL_OUTCOMES: frozenset[str] = frozenset({VERIFIED, FAILED, APPROVED, REJECTED})

# Labels seen in the dashboard filters.
_ALIASES = {
    "not_sent": NOT_INITIATED,
    "sent": LINK_SENT,
    "submitted": COMPLETED,
}


# Explicit workflow diagram for normal progression.
WORKFLOW_GRAPH: dict[str, frozenset[str]] = {
    NOT_INITIATED: frozenset({LINK_SENT}),
    LINK_SENT: frozenset({IN_PROGRESS, EXPIRED}),
    IN_PROGRESS: frozenset({COMPLETED, EXPIRED}),
    EXPIRED: frozenset({LINK_SENT}),
    COMPLETED: frozenset(),
}

# Edges only an admin reset may take (new link after rejection).
RESET_GRAPH: dict[str, frozenset[str]] = {
    COMPLETED: frozenset({LINK_SENT}),
}


@dataclass(frozen=True)
class OutcomeVocabulary:
    approved: str
    rejected: str
    statuses: tuple[str, ...]
    supports_insufficiency: bool = False


OUTCOMES: dict[str, OutcomeVocabulary] = {
    ADDRESS_VERIFICATION: OutcomeVocabulary(
        approved=VERIFIED,
        rejected=FAILED,
        statuses=(PENDING, VERIFIED, FAILED, INSUFFICIENCY),
        supports_insufficiency=True,
    ),
    DOCUMENT_COLLECTION: OutcomeVocabulary(
        approved=APPROVED,
        rejected=REJECTED,
        statuses=(PENDING, APPROVED, REJECTED),
    ),
}


def outcome_vocabulary(kind: str) -> OutcomeVocabulary:
    try:
        return OUTCOMES[kind]
    except KeyError:
        raise ValidationError.for_field("kind", f"unknown record kind '{kind}'") from None


def normalize_status(raw: str | None) -> str | None:
    if raw is None:
        return None
    normalized = raw.strip().lower().replace(" ", "_").replace("-", "_")
    if not normalized:
        return None
    return _ALIASES.get(normalized, normalized)


def is_known_workflow_status(value: str | None) -> bool:
    return normalize_status(value) in WORKFLOW_GRAPH


def can_transition(from_status: str | None, to_status: str | None, *, allow_reset: bool = False) -> bool:
    from_normalized = normalize_status(from_status)
    to_normalized = normalize_status(to_status)

    if to_normalized is None or to_normalized not in WORKFLOW_GRAPH:
        return False

    # Records start without a link.
    if from_normalized is None:
        return to_normalized == NOT_INITIATED

    if from_normalized not in WORKFLOW_GRAPH:
        return False

    if to_normalized in WORKFLOW_GRAPH[from_normalized]:
        return True
    return allow_reset and to_normalized in RESET_GRAPH.get(from_normalized, frozenset())


def ensure_transition(from_status: str | None, to_status: str, *, allow_reset: bool = False) -> str:
    if not can_transition(from_status, to_status, allow_reset=allow_reset):
        raise StateGuardError(
            f"Cannot move verification status from {from_status or 'none'} to {to_status}.",
            {"from": from_status, "to": to_status},
        )
    return normalize_status(to_status) or to_status


def path_is_valid(path: Iterable[str], *, allow_reset: bool = False) -> bool:
    items = [normalize_status(item) for item in path]
    if len(items) < 2:
        return False
    for index in range(len(items) - 1):
        if not can_transition(items[index], items[index + 1], allow_reset=allow_reset):
            return False
    return True


@dataclass(frozen=True)
class ReviewState:
    status: str
    verification_status: str
    admin_comments: str | None = None
    verified_at: datetime | None = None


def check_invariants(state: ReviewState) -> ReviewState:
    if state.status in TERMINAL_OUTCOMES and state.verification_status != COMPLETED:
        raise StateGuardError(
            f"Status {state.status} requires a completed submission.",
            {"status": state.status, "verification_status": state.verification_status},
        )
    return state


def _clean_comment(comment: str | None) -> str | None:
    cleaned = (comment or "").strip()
    return cleaned or None


def _require_completed(state: ReviewState, action: str) -> None:
    if state.verification_status != COMPLETED:
        raise StateGuardError(
            f"Cannot {action} before the candidate has completed the form.",
            {"action": action, "verification_status": state.verification_status},
        )


def approve(
    state: ReviewState,
    *,
    kind: str,
    comment: str | None = None,
    now: datetime | None = None,
) -> ReviewState:
    vocab = outcome_vocabulary(kind)
    _require_completed(state, "approve")
    return replace(
        state,
        status=vocab.approved,
        verification_status=COMPLETED,
        admin_comments=_clean_comment(comment) or state.admin_comments,
        verified_at=now or utc_now(),
    )


def reject(
    state: ReviewState,
    *,
    kind: str,
    comment: str | None,
    now: datetime | None = None,
) -> ReviewState:
    vocab = outcome_vocabulary(kind)
    cleaned = _clean_comment(comment)
    if cleaned is None:
        raise CommentRequired()
    _require_completed(state, "reject")
    return replace(
        state,
        status=vocab.rejected,
        verification_status=COMPLETED,
        admin_comments=cleaned,
        verified_at=now or utc_now(),
    )


def mark_insufficient(
    state: ReviewState,
    *,
    kind: str,
    comment: str | None,
    now: datetime | None = None,
) -> ReviewState:
    vocab = outcome_vocabulary(kind)
    if not vocab.supports_insufficiency:
        raise StateGuardError(f"Insufficiency is not an outcome for {kind}.", {"kind": kind})
    cleaned = _clean_comment(comment)
    if cleaned is None:
        raise CommentRequired("Please describe what is insufficient.")
    _require_completed(state, "mark insufficient")
    return replace(
        state,
        status=INSUFFICIENCY,
        admin_comments=cleaned,
        verified_at=now or utc_now(),
    )


def reset_outcome(state: ReviewState) -> ReviewState:
    return replace(state, status=PENDING, verified_at=None)


def reopen(state: ReviewState, *, kind: str) -> ReviewState:
    """Send a rejected (or insufficient) submission back to the candidate."""
    vocab = outcome_vocabulary(kind)
    if state.status not in {vocab.rejected, INSUFFICIENCY}:
        raise StateGuardError(
            "Only rejected submissions can be sent back to the candidate.",
            {"status": state.status},
        )
    to_status = ensure_transition(state.verification_status, LINK_SENT, allow_reset=True)
    return replace(state, status=PENDING, verification_status=to_status, verified_at=None)


def advance_workflow(state: ReviewState, to_status: str, *, allow_reset: bool = False) -> ReviewState:
    normalized = ensure_transition(state.verification_status, to_status, allow_reset=allow_reset)
    if normalized == state.verification_status:
        return state
    return check_invariants(replace(state, verification_status=normalized))


def set_outcome(
    state: ReviewState,
    *,
    kind: str,
    status: str,
    comment: str | None = None,
    now: datetime | None = None,
) -> ReviewState:
    """Dispatch an admin status patch to the matching guarded transition."""
    vocab = outcome_vocabulary(kind)
    target = normalize_status(status)
    if target not in vocab.statuses:
        raise ValidationError.for_field("status", f"must be one of {', '.join(vocab.statuses)}")
    if target == vocab.approved:
        return approve(state, kind=kind, comment=comment, now=now)
    if target == vocab.rejected:
        return reject(state, kind=kind, comment=comment, now=now)
    if target == INSUFFICIENCY:
        return mark_insufficient(state, kind=kind, comment=comment, now=now)
    return reset_outcome(replace(state, admin_comments=_clean_comment(comment) or state.admin_comments))
