"""Composite analysis result and the report wrapper written by the CLI."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from codeclarity.schemas.contracts import Language


class AnalysisResult(BaseModel):
    """All four task outputs for one request, renamed for presentation."""

    model_config = ConfigDict(populate_by_name=True)

    documentation: str
    refactorings: list[str]
    complexity: str
    unit_tests: str = Field(alias="unitTests")


class AnalysisReport(BaseModel):
    """A finished analysis plus the request it answered."""

    generated_at: str = Field(default_factory=lambda: datetime.now().isoformat())
    language: Language
    code: str
    model: str = ""
    result: AnalysisResult
