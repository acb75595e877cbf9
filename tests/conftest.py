"""Shared test fixtures."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock

import pytest
from pydantic import BaseModel

from codeclarity.shared.model_client import ModelClient, ModelServiceError

# Conforming payloads for every output shape, keyed by shape class name
GOOD_PAYLOADS: dict[str, dict[str, Any]] = {
    "DocumentationOutput": {"documentation": "Prints hi."},
    "RefactoringOutput": {"refactorings": ["Use f-strings"]},
    "ComplexityOutput": {"complexityAnalysis": "O(1)"},
    "UnitTestsOutput": {"unitTests": "def test_hi(): ..."},
}


class FakeModelClient:
    """Stands in for ModelClient: canned payloads, optional per-shape delays and failures.

    Records every (shape name, prompt) pair it is asked for.
    """

    model = "fake-model"

    def __init__(
        self,
        payloads: dict[str, Any] | None = None,
        *,
        delays: dict[str, float] | None = None,
        errors: dict[str, Exception] | None = None,
    ) -> None:
        self.payloads = dict(GOOD_PAYLOADS if payloads is None else payloads)
        self.delays = delays or {}
        self.errors = errors or {}
        self.calls: list[tuple[str, str]] = []
        self.closed = False

    async def structured_completion(
        self,
        *,
        prompt: str,
        output_schema: type[BaseModel],
        on_tokens: Any = None,
    ) -> Any:
        name = output_schema.__name__
        self.calls.append((name, prompt))
        if name in self.delays:
            await asyncio.sleep(self.delays[name])
        if name in self.errors:
            raise self.errors[name]
        if on_tokens:
            on_tokens(10, 5)
        return self.payloads.get(name)

    async def close(self) -> None:
        self.closed = True

    def prompt_for(self, shape_name: str) -> str:
        return next(prompt for name, prompt in self.calls if name == shape_name)


@pytest.fixture
def fake_client() -> FakeModelClient:
    return FakeModelClient()


@pytest.fixture
def make_fake_client() -> type[FakeModelClient]:
    """The FakeModelClient class, for tests that need custom payloads, delays or errors."""
    return FakeModelClient


@pytest.fixture
def failing_client() -> FakeModelClient:
    """Complexity call fails at the transport level; the rest succeed."""
    return FakeModelClient(
        errors={"ComplexityOutput": ModelServiceError("Model call failed: connection reset")},
    )


@pytest.fixture
def mock_model_client() -> ModelClient:
    """Return a ModelClient with a mocked OpenAI SDK underneath."""
    client = ModelClient.__new__(ModelClient)
    client.model = "gpt-4o"
    client.max_tokens = 1024
    client._client = AsyncMock()
    return client


@pytest.fixture
def tmp_config(tmp_path: Path) -> Path:
    """Write a minimal valid config YAML and return its path."""
    cfg = tmp_path / "codeclarity.yml"
    cfg.write_text(
        """\
model: "gpt-4o-mini"
output_directory: "{out}"
""".format(out=str(tmp_path / "output"))
    )
    return cfg
