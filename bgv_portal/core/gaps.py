"""Gap-period questions derived from the employment timeline.

Keys are positional (``emp2ToEmp3``) and labels use company names. Each entry
also records an ``anchor`` naming the two timeline points it sits between
(``education``, an employment ``entry_id`` or ``current``). An earlier answer
is carried over only when both the key and the anchor still match, so renaming
a company keeps answers while inserting or removing an employment drops the
answers of every gap whose neighbours changed.

Entries without ``entry_id`` produce no anchor and fall back to key-only
matching.
"""

from __future__ import annotations

from typing import Any, Mapping, Sequence

from bgv_portal.schemas.bgv_form import GapEntry

EDUCATION_TO_CURRENT = "educationToCurrent"
EDUCATION_TO_FIRST = "educationToEmp1"

_EDUCATION = "education"
_CURRENT = "current"


def _field(entry: Any, name: str) -> str:
    if isinstance(entry, Mapping):
        value = entry.get(name)
    else:
        value = getattr(entry, name, None)
    return (value or "").strip()


def _display_name(employments: Sequence[Any], index: int) -> str:
    return _field(employments[index], "company_name") or f"Employment {index + 1}"


def _anchor(left: str, right: str) -> str:
    if not left or not right:
        return ""
    return f"{left}>{right}"


def gap_placeholders(employments: Sequence[Any]) -> list[GapEntry]:
    count = len(employments)
    if count == 0:
        return [
            GapEntry(
                key=EDUCATION_TO_CURRENT,
                label="Gap between Education and Current",
                anchor=_anchor(_EDUCATION, _CURRENT),
            )
        ]

    ids = [_field(entry, "entry_id") for entry in employments]
    entries = [
        GapEntry(
            key=EDUCATION_TO_FIRST,
            label=f"Gap between Education and {_display_name(employments, 0)}",
            anchor=_anchor(_EDUCATION, ids[0]),
        ),
    ]
    for index in range(count - 1):
        entries.append(
            GapEntry(
                key=f"emp{index + 1}ToEmp{index + 2}",
                label=f"Gap between {_display_name(employments, index)} and {_display_name(employments, index + 1)}",
                anchor=_anchor(ids[index], ids[index + 1]),
            )
        )
    entries.append(
        GapEntry(
            key=f"emp{count}ToCurrent",
            label=f"Gap between {_display_name(employments, count - 1)} and Current",
            anchor=_anchor(ids[-1], _CURRENT),
        )
    )
    return entries


def _as_gap(entry: Any) -> GapEntry | None:
    if isinstance(entry, GapEntry):
        return entry
    if isinstance(entry, Mapping) and entry.get("key"):
        return GapEntry.model_validate(entry)
    return None


def _same_position(new: GapEntry, old: GapEntry) -> bool:
    if not new.anchor or not old.anchor:
        return True
    return new.anchor == old.anchor


def derive_gaps(employments: Sequence[Any], previous_gaps: Sequence[Any] | None = None) -> list[GapEntry]:
    """Return exactly ``len(employments) + 1`` gap entries, keeping answers whose position survived."""
    previous: dict[str, GapEntry] = {}
    for raw in previous_gaps or ():
        gap = _as_gap(raw)
        if gap is not None and gap.key not in previous:
            previous[gap.key] = gap

    merged: list[GapEntry] = []
    for entry in gap_placeholders(employments):
        existing = previous.get(entry.key)
        if existing is not None and _same_position(entry, existing):
            entry = entry.model_copy(
                update={"has_gap": existing.has_gap, "duration": existing.duration, "reason": existing.reason}
            )
        merged.append(entry)
    return merged
