# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Enrollee and assigned slot models.

An enrollee's slot list is the source of intent: every slot says "this
person should attend on this date, between these times". The
reconciliation engine derives sessions and link rows from it.
"""

import datetime as dt
from typing import Any, Self
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from src.models.common import AttendanceStatus, SessionKind


def _coerce_kind(value: Any) -> Any:
    if isinstance(value, str):
        value = value.strip().lower() or None
    if value in (SessionKind.FERIADO, SessionKind.FERIADO.value):
        raise ValueError("feriado is not an enrollable session kind")
    return value


def _clean_first_name(value: str | None) -> str | None:
    if value is None:
        return None
    value = value.strip()
    if not value:
        raise ValueError("first_name cannot be blank")
    return value


def _clean_last_name(value: str | None) -> str | None:
    if value is None:
        return None
    return value.strip() or None


class AssignedSlot(BaseModel):
    """One intended attendance of an enrollee.

    Has no identity of its own; (date, start_time, end_time) is its key.
    """

    model_config = ConfigDict(frozen=True)

    date: dt.date
    start_time: dt.time
    end_time: dt.time
    attendance_intent: AttendanceStatus = AttendanceStatus.PENDING

    @field_validator("attendance_intent", mode="before")
    @classmethod
    def default_unknown_intent(cls, value: Any) -> Any:
        """Treat an empty intent as pending."""
        if value is None or value == "":
            return AttendanceStatus.PENDING
        return value

    @model_validator(mode="after")
    def check_time_span(self) -> Self:
        """Reject slots that end before they start."""
        if self.start_time >= self.end_time:
            raise ValueError(
                f"Slot on {self.date} must start before it ends "
                f"({self.start_time} >= {self.end_time})"
            )
        return self


class Enrollee(BaseModel):
    """A person enrolled in workshop classes.

    Attributes:
        id: Enrollee identifier.
        first_name: Given name.
        last_name: Family name, optional.
        preferred_kind: Declared class preference used when a session has
            to be created for one of the enrollee's slots.
        assigned_slots: Current slot list.
    """

    id: UUID
    first_name: str = Field(min_length=1)
    last_name: str | None = None
    preferred_kind: SessionKind | None = None
    assigned_slots: list[AssignedSlot] = Field(default_factory=list)

    @field_validator("first_name")
    @classmethod
    def strip_first_name(cls, value: str) -> str:
        """Trim the given name and refuse a blank one."""
        return _clean_first_name(value)

    @field_validator("last_name")
    @classmethod
    def strip_last_name(cls, value: str | None) -> str | None:
        """Trim the family name; a blank one means none."""
        return _clean_last_name(value)

    @field_validator("preferred_kind", mode="before")
    @classmethod
    def normalize_kind(cls, value: Any) -> Any:
        """Lower-case the declared kind and refuse holidays."""
        return _coerce_kind(value)

    @property
    def display_name(self) -> str:
        """First and last name joined and trimmed."""
        return f"{self.first_name} {self.last_name or ''}".strip()


class EnrolleeCreateRequest(BaseModel):
    """Request to create an enrollee."""

    first_name: str = Field(min_length=1)
    last_name: str | None = None
    preferred_kind: SessionKind | None = None
    assigned_slots: list[AssignedSlot] = Field(default_factory=list)

    @field_validator("first_name")
    @classmethod
    def strip_first_name(cls, value: str) -> str:
        """Trim the given name and refuse a blank one."""
        return _clean_first_name(value)

    @field_validator("last_name")
    @classmethod
    def strip_last_name(cls, value: str | None) -> str | None:
        """Trim the family name; a blank one means none."""
        return _clean_last_name(value)

    @field_validator("preferred_kind", mode="before")
    @classmethod
    def normalize_kind(cls, value: Any) -> Any:
        """Lower-case the declared kind and refuse holidays."""
        return _coerce_kind(value)


class EnrolleeUpdateRequest(BaseModel):
    """Partial update of an enrollee.

    ``assigned_slots=None`` leaves the slot list untouched; an empty list
    removes every slot.
    """

    first_name: str | None = Field(default=None, min_length=1)
    last_name: str | None = None
    preferred_kind: SessionKind | None = None
    assigned_slots: list[AssignedSlot] | None = None

    @field_validator("first_name")
    @classmethod
    def strip_first_name(cls, value: str | None) -> str | None:
        """Trim the given name and refuse a blank one."""
        return _clean_first_name(value)

    @field_validator("last_name")
    @classmethod
    def strip_last_name(cls, value: str | None) -> str | None:
        """Trim the family name; a blank one means none."""
        return _clean_last_name(value)

    @field_validator("preferred_kind", mode="before")
    @classmethod
    def normalize_kind(cls, value: Any) -> Any:
        """Lower-case the declared kind and refuse holidays."""
        return _coerce_kind(value)

    def profile_patch(self) -> dict[str, Any]:
        """Fields of the enrollee row this request changes."""
        return self.model_dump(
            include={"first_name", "last_name", "preferred_kind"},
            exclude_unset=True,
            mode="json",
        )
