# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Matching and keying rules shared by the reconciliation engine.

Name normalization is the only key that ties a typed roster name to a
person, so every read and write path must go through the helpers here.
"""

import datetime as dt
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from typing import Any, Literal, NamedTuple

from src.models.common import AttendanceStatus, SessionKind
from src.models.enrollee import AssignedSlot

MatchMode = Literal["date_start", "full"]


class SlotKey(NamedTuple):
    """Structural identity of an assigned slot."""

    date: dt.date
    start_time: dt.time
    end_time: dt.time


def slot_key(slot: AssignedSlot) -> SlotKey:
    """Key a slot by (date, start_time, end_time)."""
    return SlotKey(slot.date, slot.start_time, slot.end_time)


def normalize_display_name(name: str) -> str:
    """Normalize a display name for matching.

    Trims, collapses whitespace runs and upper-cases. Punctuation is
    kept, so "Ana-María" and "Ana María" stay different people.

    Example:
        >>> normalize_display_name("  ana   gómez ")
        'ANA GÓMEZ'
    """
    return " ".join(name.split()).upper()


def normalize_name(first_name: str, last_name: str | None = None) -> str:
    """Normalize first and last name as one display name."""
    return normalize_display_name(f"{first_name} {last_name or ''}")


def link_status_from_intent(intent: AttendanceStatus | str | None) -> AttendanceStatus:
    """Map a slot's attendance intent to a link status.

    present and absent pass through; anything else is pending.
    """
    if intent in (AttendanceStatus.PRESENT, AttendanceStatus.PRESENT.value):
        return AttendanceStatus.PRESENT
    if intent in (AttendanceStatus.ABSENT, AttendanceStatus.ABSENT.value):
        return AttendanceStatus.ABSENT
    return AttendanceStatus.PENDING


@dataclass(frozen=True)
class SessionMatcher:
    """The one tuple used to tie slots to sessions.

    ``date_start`` matches on (date, start_time): slots that share a start
    but end at different times attach to the same session. ``full``
    matches on (date, start_time, end_time, kind).
    """

    mode: MatchMode = "date_start"

    def slot_filters(
        self,
        slot: AssignedSlot,
        kind: SessionKind | None = None,
    ) -> dict[str, Any]:
        """Session-store filters locating the session of a slot.

        ``kind=None`` widens a ``full`` match to any kind.
        """
        filters: dict[str, Any] = {"date": slot.date, "start_time": slot.start_time}
        if self.mode == "full":
            filters["end_time"] = slot.end_time
            if kind is not None:
                filters["kind"] = kind
        return filters

    def session_filters(
        self,
        date: dt.date,
        start_time: dt.time,
        end_time: dt.time,
        kind: SessionKind,
    ) -> dict[str, Any]:
        """Session-store filters locating sessions that collide with a new one."""
        filters: dict[str, Any] = {"date": date, "start_time": start_time}
        if self.mode == "full":
            filters["end_time"] = end_time
            filters["kind"] = kind
        return filters


@dataclass(frozen=True)
class SlotDiff:
    """Result of comparing two slot lists by slot key.

    Attributes:
        removed: Slots only in the previous list.
        added: Slots only in the next list.
        changed: Slots in both lists whose attendance intent differs
            (the next version is kept).
    """

    removed: tuple[AssignedSlot, ...] = ()
    added: tuple[AssignedSlot, ...] = ()
    changed: tuple[AssignedSlot, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not (self.removed or self.added or self.changed)


def _by_key(slots: Iterable[AssignedSlot]) -> dict[SlotKey, AssignedSlot]:
    # Later duplicates win, keeping first-seen order.
    keyed: dict[SlotKey, AssignedSlot] = {}
    for slot in slots:
        keyed[slot_key(slot)] = slot
    return keyed


def diff_slots(
    previous: Sequence[AssignedSlot],
    next_slots: Sequence[AssignedSlot],
) -> SlotDiff:
    """Compute removed, added and changed slots.

    Example:
        previous {A, B}, next {B, C} gives removed (A,), added (C,) and
        nothing for B.
    """
    before = _by_key(previous)
    after = _by_key(next_slots)
    return SlotDiff(
        removed=tuple(slot for key, slot in before.items() if key not in after),
        added=tuple(slot for key, slot in after.items() if key not in before),
        changed=tuple(
            slot
            for key, slot in after.items()
            if key in before
            and link_status_from_intent(before[key].attendance_intent)
            != link_status_from_intent(slot.attendance_intent)
        ),
    )


def unique_names(names: Iterable[str]) -> list[str]:
    """Normalize names, dropping blanks and duplicates, keeping order."""
    seen: dict[str, None] = {}
    for name in names:
        normalized = normalize_display_name(name)
        if normalized:
            seen.setdefault(normalized, None)
    return list(seen)
