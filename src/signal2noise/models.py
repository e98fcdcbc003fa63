from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


Priority = Literal["Top", "Medium", "Low"]
TaskStatus = Literal["pending", "in_progress", "completed"]
Verdict = Literal["Signal", "Noise"]
Toggle = Literal["enabled", "disabled"]

IMPORTANT_PRIORITIES = frozenset({"Top", "Medium"})


def _check_iso_date(v: str) -> str:
    # date.fromisoformat accepts "20260101" on newer interpreters, so pin the shape first
    if len(v) != 10 or v[4] != "-" or v[7] != "-":
        raise ValueError(f"dueDate must be YYYY-MM-DD, got {v!r}")
    date.fromisoformat(v)
    return v


class WireModel(BaseModel):
    """Snake_case in Python, camelCase on the wire and in the task store."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ExtractionResult(WireModel):
    """Response of the extraction endpoint.

    Every field must be present; each may be null. A non-null follow-up
    question marks the extraction as incomplete.
    """

    task_name: Optional[str] = Field(...)
    priority: Optional[Priority] = Field(...)
    due_date: Optional[str] = Field(...)
    follow_up_question: Optional[str] = Field(...)

    @field_validator("due_date", "follow_up_question", mode="before")
    @classmethod
    def blank_is_null(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator("due_date")
    @classmethod
    def due_date_is_iso(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        return _check_iso_date(v)

    @property
    def is_complete(self) -> bool:
        return self.follow_up_question is None


class TaskRecord(WireModel):
    task_name: str = ""
    priority: Priority = "Medium"
    due_date: str = ""
    status: TaskStatus = "pending"
    created_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    time_tracked: int = Field(0, ge=0)

    @field_validator("due_date")
    @classmethod
    def due_date_empty_or_iso(cls, v: str) -> str:
        return v if v == "" else _check_iso_date(v)


class StoredTask(TaskRecord):
    # Assigned by the store on create
    id: str


@dataclass(frozen=True)
class Fresh:
    """First turn of a conversation: nothing inferred yet."""

    def to_wire(self) -> None:
        return None


@dataclass(frozen=True)
class Resuming:
    """Follow-up turn carrying the previous, incomplete extraction."""

    prior: ExtractionResult

    def to_wire(self) -> dict:
        return {"prior": self.prior.model_dump(by_alias=True)}


ConversationContext = Union[Fresh, Resuming]
FRESH = Fresh()


def finalize(result: ExtractionResult) -> TaskRecord:
    """Turn a complete extraction into the record that gets persisted.

    This is the only place null response fields are defaulted.
    """
    if not result.is_complete:
        raise ValueError("cannot finalize an extraction with a pending follow-up question")
    return TaskRecord(
        task_name=(result.task_name or "").strip(),
        priority=result.priority or "Medium",
        due_date=result.due_date or "",
        status="pending",
        completed_at=None,
        time_tracked=0,
    )


class FocusVerdict(WireModel):
    verdict: Verdict


class UserSettings(WireModel):
    voice_output: Toggle = "enabled"
    notifications: Toggle = "enabled"


class UserProfile(WireModel):
    name: str = ""
    email: str = ""
    created_at: Optional[datetime] = None
    settings: UserSettings = Field(default_factory=UserSettings)
