"""Typed failures raised by the analysis flows.

Every failure carries the task it belongs to (``None`` when raised by the
contract registry directly) and the stage that failed, so a presentation
layer can say more than "analysis failed" if it wants to.
"""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from codeclarity.schemas.contracts import TaskName


class Stage(str, Enum):
    """Where in a task's lifecycle a failure happened."""

    INPUT = "input"
    SERVICE = "service"
    OUTPUT = "output"


class AnalysisError(Exception):
    """Base class for every analysis failure."""

    kind = "analysis_error"

    def __init__(
        self,
        message: str,
        *,
        task: TaskName | None = None,
        stage: Stage | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.task = task
        self.stage = stage

    def __str__(self) -> str:
        if self.task is None:
            return self.message
        return f"[{self.task.label}] {self.message}"


class InputRejected(AnalysisError):
    """Code is blank or the language is outside the task's enumeration."""

    kind = "input_rejected"

    def __init__(
        self,
        message: str,
        *,
        task: TaskName | None = None,
        fields: list[str] | None = None,
    ) -> None:
        super().__init__(message, task=task, stage=Stage.INPUT)
        self.fields = fields or []


class SchemaViolation(AnalysisError):
    """A value does not satisfy the shape it was validated against."""

    kind = "schema_violation"

    def __init__(
        self,
        message: str,
        *,
        task: TaskName | None = None,
        stage: Stage | None = None,
        fields: list[str] | None = None,
    ) -> None:
        super().__init__(message, task=task, stage=stage)
        self.fields = fields or []


class ServiceFailure(AnalysisError):
    """The model-invocation call failed before a payload could be checked."""

    kind = "service_failure"

    def __init__(self, message: str, *, task: TaskName | None = None) -> None:
        super().__init__(message, task=task, stage=Stage.SERVICE)
