"""Contract registry — the input and output shape of every analysis task.

Shapes are pydantic models. The registry is a plain lookup table, so adding
a task means adding one ``TaskContract`` entry (plus its prompt template).
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, TypeVar

from pydantic import BaseModel, ValidationError

from codeclarity.errors import SchemaViolation
from codeclarity.schemas.contracts import (
    AnalysisInput,
    ComplexityOutput,
    DocumentationOutput,
    RefactoringInput,
    RefactoringOutput,
    TaskName,
    UnitTestsOutput,
)

ModelT = TypeVar("ModelT", bound=BaseModel)


@dataclass(frozen=True)
class TaskContract:
    """Input/output shape pair for one task."""

    task: TaskName
    input_shape: type[BaseModel]
    output_shape: type[BaseModel]


CONTRACTS: dict[TaskName, TaskContract] = {
    TaskName.DOCUMENTATION: TaskContract(
        TaskName.DOCUMENTATION, AnalysisInput, DocumentationOutput,
    ),
    TaskName.REFACTORING: TaskContract(
        TaskName.REFACTORING, RefactoringInput, RefactoringOutput,
    ),
    TaskName.COMPLEXITY: TaskContract(
        TaskName.COMPLEXITY, AnalysisInput, ComplexityOutput,
    ),
    TaskName.UNIT_TESTS: TaskContract(
        TaskName.UNIT_TESTS, AnalysisInput, UnitTestsOutput,
    ),
}

# Dispatch order; also the order failures are reported in.
TASK_ORDER: tuple[TaskName, ...] = tuple(CONTRACTS)


def contract_for(task: TaskName) -> TaskContract:
    try:
        return CONTRACTS[task]
    except KeyError:
        raise KeyError(f"No contract registered for task {task!r}") from None


def input_shape_for(task: TaskName) -> type[BaseModel]:
    return contract_for(task).input_shape


def output_shape_for(task: TaskName) -> type[BaseModel]:
    return contract_for(task).output_shape


def _field_name(loc: tuple[int | str, ...]) -> str:
    return ".".join(str(part) for part in loc) or "<root>"


def validate(shape: type[ModelT], value: Mapping[str, Any] | BaseModel | Any) -> ModelT:
    """Check ``value`` against ``shape`` and return the validated model.

    Only structure is checked (required fields present, primitive kinds,
    enumeration membership, sequences). Raises ``SchemaViolation`` naming
    every offending field.
    """
    if isinstance(value, shape):
        return value
    if isinstance(value, BaseModel):
        value = value.model_dump(mode="json", by_alias=True)
    if not isinstance(value, Mapping):
        raise SchemaViolation(
            f"{shape.__name__} expects an object, got {type(value).__name__}",
            fields=["<root>"],
        )

    try:
        return shape.model_validate(dict(value))
    except ValidationError as exc:
        errors = exc.errors()
        fields = list(dict.fromkeys(_field_name(err["loc"]) for err in errors))
        details = "; ".join(
            f"{_field_name(err['loc'])}: {err['msg']}" for err in errors
        )
        raise SchemaViolation(
            f"{shape.__name__} validation failed ({details})",
            fields=fields,
        ) from exc
