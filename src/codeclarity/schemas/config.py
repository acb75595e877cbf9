"""Configuration schema — validates codeclarity.yml."""

from typing import Literal

from pydantic import BaseModel, field_validator

from codeclarity.shared.model_client import MAX_TOKENS, MODEL, REQUEST_TIMEOUT

ReportFormat = Literal["markdown", "html"]


class AppConfig(BaseModel):
    """Top-level configuration loaded from codeclarity.yml.

    Every key is optional; an empty file gives the defaults.
    """

    # Model
    model: str = MODEL
    max_tokens: int = MAX_TOKENS
    request_timeout: float = REQUEST_TIMEOUT  # seconds, per model request

    # Output
    output_directory: str = "./output"
    formats: list[ReportFormat] = ["markdown", "html"]

    @field_validator("model")
    @classmethod
    def model_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("model must not be empty")
        return v

    @field_validator("max_tokens", "request_timeout")
    @classmethod
    def must_be_positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("must be positive")
        return v
