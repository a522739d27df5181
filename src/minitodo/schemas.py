from __future__ import annotations

from datetime import datetime
from typing import Annotated, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .errors import TaskValidationError
from .reminders import REMIND_TIME_FORMAT, parse_remind_time

TITLE_MAX_LENGTH = 200

EMPTY_TITLE_MESSAGE = "Task title cannot be empty"
TITLE_TOO_LONG_MESSAGE = f"Task title is too long (max {TITLE_MAX_LENGTH} characters)"


# PUBLIC_INTERFACE
def normalize_title(raw: Optional[str]) -> str:
    """
    Strip surrounding whitespace and enforce 1..200 characters.

    Raises:
        TaskValidationError with a user-facing message.
    """
    s = (raw or "").strip()
    if not s:
        raise TaskValidationError(EMPTY_TITLE_MESSAGE)
    if len(s) > TITLE_MAX_LENGTH:
        raise TaskValidationError(TITLE_TOO_LONG_MESSAGE)
    return s


def _check_remind_time_format(value: str) -> str:
    s = value.strip()
    if s and parse_remind_time(s) is None:
        raise ValueError(f"Invalid remind_time format. Use '{REMIND_TIME_FORMAT}' (e.g., '2026-01-15 14:30').")
    return s


# PUBLIC_INTERFACE
class TaskCreate(BaseModel):
    """
    Schema for adding a task. Validation of the title is left to the engine so
    that a rejected title is reported through its error message.
    """

    model_config = ConfigDict(json_schema_extra={"example": {"title": "Buy milk"}})

    title: str = Field(..., description="Short title for the task (trimmed, 1..200 characters)")


# PUBLIC_INTERFACE
class TaskReplace(BaseModel):
    """
    Schema for replacing an existing task. id and created_at are kept from the stored task.
    """

    model_config = ConfigDict(
        json_schema_extra={
            "example": {"title": "Buy oat milk", "is_done": False, "remind_time": "2026-01-15 14:30"}
        }
    )

    title: str = Field(..., description="Short title for the task")
    is_done: bool = Field(default=False, description="Completion status flag")
    remind_time: str = Field(default="", description="'YYYY-MM-DD HH:MM' or empty for no reminder")

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: str) -> str:
        return normalize_title(v)

    @field_validator("remind_time")
    @classmethod
    def validate_remind_time(cls, v: str) -> str:
        return _check_remind_time_format(v)


# PUBLIC_INTERFACE
class ReminderIn(BaseModel):
    """
    Schema for setting (or clearing, with an empty string) a task's reminder.
    """

    model_config = ConfigDict(json_schema_extra={"example": {"remind_time": "2026-01-15 14:30"}})

    remind_time: str = Field(..., description="'YYYY-MM-DD HH:MM' in the future, or empty to clear")

    @field_validator("remind_time")
    @classmethod
    def validate_remind_time(cls, v: str) -> str:
        """
        Require the fixed format and a time later than now.
        """
        s = _check_remind_time_format(v)
        parsed = parse_remind_time(s)
        if parsed is not None and parsed <= datetime.now():
            raise ValueError("remind_time must be in the future")
        return s


# PUBLIC_INTERFACE
class TaskOut(BaseModel):
    """
    Schema returned by the API for a task.
    """

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "id": 7,
                "title": "Buy milk",
                "is_done": False,
                "created_at": 1768481400000,
                "remind_time": "2026-01-15 14:30",
                "reminder_reached": False,
            }
        }
    )

    id: int = Field(..., description="Unique identifier assigned by the store")
    title: str = Field(..., description="Short title for the task")
    is_done: bool = Field(..., description="Completion status flag")
    created_at: int = Field(..., description="Creation time in milliseconds since epoch")
    remind_time: str = Field(..., description="'YYYY-MM-DD HH:MM' or empty for no reminder")
    reminder_reached: bool = Field(default=False, description="True when the reminder time has passed")


class StatsOut(BaseModel):
    total_count: int = Field(..., description="Number of tasks")
    completed_count: int = Field(..., description="Number of completed tasks")
    uncompleted_count: int = Field(..., description="Number of tasks still open")


# PUBLIC_INTERFACE
class TaskListOut(StatsOut):
    """
    Ordered task list plus the engine's UI state.
    """

    items: List[TaskOut] = Field(..., description="Tasks in display order")
    error_message: Optional[str] = Field(default=None, description="Last failure, until cleared")
    should_scroll_to_top: bool = Field(default=False, description="Set after a task is added, until cleared")


class HeaderItemOut(BaseModel):
    kind: Literal["header"] = "header"
    group_key: str
    expanded: bool
    count: int


class RowItemOut(BaseModel):
    kind: Literal["row"] = "row"
    task: TaskOut


GroupedItemOut = Annotated[Union[HeaderItemOut, RowItemOut], Field(discriminator="kind")]


class GroupedListOut(BaseModel):
    items: List[GroupedItemOut] = Field(..., description="Group headers followed by their rows")


class AcceptedOut(BaseModel):
    accepted: bool = Field(default=True, description="The request was handed to the task engine")
