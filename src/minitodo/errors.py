from __future__ import annotations


class TaskError(Exception):
    """Base class for task list failures."""


# PUBLIC_INTERFACE
class TaskValidationError(TaskError, ValueError):
    """
    Raised when user input is rejected before any persistence attempt.

    Subclasses ValueError so pydantic field validators report it as a regular
    validation error.
    """


# PUBLIC_INTERFACE
class StorageError(TaskError):
    """Raised by the task store when a read, write or subscription fails."""
