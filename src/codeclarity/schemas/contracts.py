"""Pydantic models for each analysis task's input and output contract."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator


class TaskName(str, Enum):
    """The four independent analysis kinds."""

    DOCUMENTATION = "documentation"
    REFACTORING = "refactoring"
    COMPLEXITY = "complexity"
    UNIT_TESTS = "unit_tests"

    @property
    def label(self) -> str:
        return _TASK_LABELS[self]


_TASK_LABELS = {
    TaskName.DOCUMENTATION: "Documentation",
    TaskName.REFACTORING: "Refactoring",
    TaskName.COMPLEXITY: "Complexity",
    TaskName.UNIT_TESTS: "UnitTests",
}


class Language(str, Enum):
    """Languages accepted by the documentation, complexity and unit-test tasks."""

    CPP = "C++"
    PYTHON = "Python"
    JAVASCRIPT = "JavaScript"


class RefactoringLanguage(str, Enum):
    """Languages accepted by the refactoring task (``JS`` instead of ``JavaScript``)."""

    CPP = "C++"
    PYTHON = "Python"
    JS = "JS"


# ---------------------------------------------------------------------------
# Inputs
# ---------------------------------------------------------------------------


class _CodeInput(BaseModel):
    """Shared ``code`` field: the snippet, passed through verbatim."""

    model_config = ConfigDict(frozen=True)

    code: str = Field(description="The code to analyze.")

    @field_validator("code")
    @classmethod
    def code_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("code must not be empty")
        return v


class AnalysisInput(_CodeInput):
    """Input for documentation, complexity and unit-test tasks."""

    language: Language = Field(description="The programming language of the code.")


class RefactoringInput(_CodeInput):
    """Input for the refactoring task."""

    language: RefactoringLanguage = Field(description="The programming language of the code.")


# ---------------------------------------------------------------------------
# Outputs — field aliases are the names the model must emit
# ---------------------------------------------------------------------------


class DocumentationOutput(BaseModel):
    documentation: str = Field(description="The generated documentation for the code.")


class RefactoringOutput(BaseModel):
    refactorings: list[str] = Field(
        description="An array of refactoring suggestions for the code."
    )


class ComplexityOutput(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    complexity_analysis: str = Field(
        alias="complexityAnalysis",
        description="The algorithmic complexity (Big O notation) of the code.",
    )


class UnitTestsOutput(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    unit_tests: str = Field(
        alias="unitTests",
        description="The generated unit tests for the code.",
    )
