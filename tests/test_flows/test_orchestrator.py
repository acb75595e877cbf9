"""Tests for the Orchestrator — fan-out, join, all-or-nothing aggregation."""

from __future__ import annotations

import asyncio
import io
import time
from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest
from rich.console import Console

from codeclarity.errors import InputRejected, SchemaViolation, ServiceFailure, Stage
from codeclarity.flows import orchestrator
from codeclarity.flows.orchestrator import Orchestrator, analyze
from codeclarity.schemas.analysis import AnalysisResult
from codeclarity.schemas.contracts import Language, TaskName
from codeclarity.shared.model_client import DryRunClient, ModelServiceError
from codeclarity.shared.progress import AnalysisProgress

ALL_SHAPES = {"DocumentationOutput", "RefactoringOutput", "ComplexityOutput", "UnitTestsOutput"}


class TestEndToEnd:
    @pytest.mark.asyncio
    async def test_composite_result(self, fake_client) -> None:
        result = await Orchestrator(fake_client).run("print('hi')", Language.PYTHON)

        assert isinstance(result, AnalysisResult)
        assert result.documentation == "Prints hi."
        assert result.refactorings == ["Use f-strings"]
        assert result.complexity == "O(1)"
        assert result.unit_tests == "def test_hi(): ..."

    @pytest.mark.asyncio
    async def test_presentation_field_names(self, fake_client) -> None:
        result = await Orchestrator(fake_client).run("print('hi')", "Python")

        assert result.model_dump(by_alias=True) == {
            "documentation": "Prints hi.",
            "refactorings": ["Use f-strings"],
            "complexity": "O(1)",
            "unitTests": "def test_hi(): ...",
        }

    @pytest.mark.asyncio
    async def test_one_call_per_task(self, fake_client) -> None:
        await Orchestrator(fake_client).run("print('hi')", Language.PYTHON)
        assert sorted(name for name, _ in fake_client.calls) == sorted(ALL_SHAPES)

    @pytest.mark.asyncio
    async def test_analyze_entry_point(self, fake_client) -> None:
        result = await analyze("print('hi')", Language.PYTHON, client=fake_client)
        assert result.complexity == "O(1)"

    @pytest.mark.asyncio
    async def test_analyze_leaves_passed_client_open(self, fake_client) -> None:
        await analyze("print('hi')", Language.PYTHON, client=fake_client)
        assert not fake_client.closed

    @pytest.mark.asyncio
    async def test_analyze_closes_client_it_creates(self, fake_client, monkeypatch) -> None:
        monkeypatch.setattr(orchestrator, "ModelClient", lambda: fake_client)

        result = await analyze("print('hi')", Language.PYTHON)

        assert result.documentation == "Prints hi."
        assert fake_client.closed

    @pytest.mark.asyncio
    async def test_analyze_closes_client_on_failure(self, make_fake_client, monkeypatch) -> None:
        client = make_fake_client(errors={"ComplexityOutput": ModelServiceError("down")})
        monkeypatch.setattr(orchestrator, "ModelClient", lambda: client)

        with pytest.raises(ServiceFailure):
            await analyze("print('hi')", Language.PYTHON)
        assert client.closed

    @pytest.mark.asyncio
    async def test_dry_run_client_conforms(self) -> None:
        result = await Orchestrator(DryRunClient()).run("int main() {}", Language.CPP)
        assert result.documentation
        assert result.refactorings
        assert result.complexity
        assert result.unit_tests


class TestAllOrNothing:
    @pytest.mark.asyncio
    async def test_missing_complexity_field_fails_run(self, make_fake_client) -> None:
        client = make_fake_client(payloads={
            "DocumentationOutput": {"documentation": "Prints hi."},
            "RefactoringOutput": {"refactorings": ["Use f-strings"]},
            "ComplexityOutput": {},
            "UnitTestsOutput": {"unitTests": "def test_hi(): ..."},
        })

        with pytest.raises(SchemaViolation) as exc_info:
            await Orchestrator(client).run("print('hi')", Language.PYTHON)

        err = exc_info.value
        assert err.task is TaskName.COMPLEXITY
        assert err.fields == ["complexityAnalysis"]
        # The other three still ran to completion before the join failed
        assert {name for name, _ in client.calls} == ALL_SHAPES

    @pytest.mark.asyncio
    async def test_single_bad_sequence_fails_run(self, make_fake_client) -> None:
        client = make_fake_client()
        client.payloads["RefactoringOutput"] = {"refactorings": "Use f-strings"}

        with pytest.raises(SchemaViolation) as exc_info:
            await Orchestrator(client).run("print('hi')", Language.PYTHON)
        assert exc_info.value.task is TaskName.REFACTORING

    @pytest.mark.asyncio
    async def test_service_failure_propagates(self, failing_client) -> None:
        with pytest.raises(ServiceFailure) as exc_info:
            await Orchestrator(failing_client).run("print('hi')", Language.PYTHON)

        assert exc_info.value.task is TaskName.COMPLEXITY
        assert exc_info.value.stage is Stage.SERVICE

    @pytest.mark.asyncio
    async def test_untyped_client_error_is_tagged(self, make_fake_client) -> None:
        client = make_fake_client(errors={"ComplexityOutput": TimeoutError("deadline")})

        with pytest.raises(ServiceFailure) as exc_info:
            await Orchestrator(client).run("print('hi')", Language.PYTHON)

        assert exc_info.value.task is TaskName.COMPLEXITY
        assert isinstance(exc_info.value.__cause__, TimeoutError)

    @pytest.mark.asyncio
    async def test_empty_choices_from_provider(self, mock_model_client) -> None:
        mock_model_client._client.chat.completions.create = AsyncMock(
            return_value=SimpleNamespace(choices=[], usage=None)
        )

        with pytest.raises(ServiceFailure) as exc_info:
            await Orchestrator(mock_model_client).run("print('hi')", Language.PYTHON)

        assert exc_info.value.task is TaskName.DOCUMENTATION
        assert "no choices" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_first_failure_in_dispatch_order(self, make_fake_client) -> None:
        client = make_fake_client(
            errors={"UnitTestsOutput": ModelServiceError("down")},
            delays={"DocumentationOutput": 0.05},
        )
        client.payloads["DocumentationOutput"] = {"documentation": None}

        # UnitTests fails first in time, but Documentation comes first in dispatch order
        with pytest.raises(SchemaViolation) as exc_info:
            await Orchestrator(client).run("print('hi')", Language.PYTHON)
        assert exc_info.value.task is TaskName.DOCUMENTATION


class TestInputRejection:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("code", ["", "    ", "\n\n\t"])
    async def test_empty_code_makes_no_calls(self, fake_client, code: str) -> None:
        with pytest.raises(InputRejected) as exc_info:
            await Orchestrator(fake_client).run(code, Language.PYTHON)

        assert exc_info.value.stage is Stage.INPUT
        assert exc_info.value.kind == "input_rejected"
        assert fake_client.calls == []

    @pytest.mark.asyncio
    async def test_unknown_language_makes_no_calls(self, fake_client) -> None:
        with pytest.raises(InputRejected) as exc_info:
            await Orchestrator(fake_client).run("x = 1", "Rust")

        assert exc_info.value.fields == ["language"]
        assert fake_client.calls == []

    @pytest.mark.asyncio
    async def test_js_spelling_not_accepted_from_caller(self, fake_client) -> None:
        with pytest.raises(InputRejected) as exc_info:
            await Orchestrator(fake_client).run("f()", "JS")

        assert exc_info.value.task is TaskName.DOCUMENTATION
        assert fake_client.calls == []


class TestLanguageMapping:
    @pytest.mark.asyncio
    async def test_javascript_becomes_js_for_refactoring_only(self, fake_client) -> None:
        await Orchestrator(fake_client).run("console.log(1)", Language.JAVASCRIPT)

        refactoring = fake_client.prompt_for("RefactoringOutput")
        assert "Language: JS" in refactoring
        assert "JavaScript" not in refactoring

        for shape in ("DocumentationOutput", "ComplexityOutput", "UnitTestsOutput"):
            prompt = fake_client.prompt_for(shape)
            assert "Language: JavaScript" in prompt
            assert "Language: JS\n" not in prompt

    @pytest.mark.asyncio
    @pytest.mark.parametrize("language", [Language.PYTHON, Language.CPP])
    async def test_other_languages_unchanged(self, fake_client, language: Language) -> None:
        await Orchestrator(fake_client).run("x", language)

        for shape in ALL_SHAPES:
            assert f"Language: {language.value}" in fake_client.prompt_for(shape)


class TestConcurrency:
    @pytest.mark.asyncio
    async def test_latency_bounded_by_slowest_task(self, make_fake_client) -> None:
        client = make_fake_client(delays={
            "DocumentationOutput": 0.2,
            "RefactoringOutput": 0.2,
            "ComplexityOutput": 0.2,
            "UnitTestsOutput": 0.3,
        })

        start = time.perf_counter()
        await Orchestrator(client).run("print('hi')", Language.PYTHON)
        elapsed = time.perf_counter() - start

        # Sequential would take 0.9s
        assert 0.3 <= elapsed < 0.6

    @pytest.mark.asyncio
    async def test_cancellation_propagates(self, make_fake_client) -> None:
        client = make_fake_client(delays={name: 5.0 for name in ALL_SHAPES})

        run = asyncio.create_task(Orchestrator(client).run("print('hi')", Language.PYTHON))
        await asyncio.sleep(0.05)
        run.cancel()

        with pytest.raises(asyncio.CancelledError):
            await run
        assert len(client.calls) == 4


class TestProgress:
    @pytest.mark.asyncio
    async def test_tokens_recorded_per_task(self, fake_client) -> None:
        console = Console(file=io.StringIO())
        with AnalysisProgress(console) as progress:
            await Orchestrator(fake_client, progress=progress).run("x = 1", Language.PYTHON)

        assert set(progress.tokens) == {"Documentation", "Refactoring", "Complexity", "UnitTests"}
        assert progress.total_tokens == (40, 20)

    @pytest.mark.asyncio
    async def test_failure_still_raises_with_progress(self, failing_client) -> None:
        console = Console(file=io.StringIO())
        with AnalysisProgress(console) as progress:
            with pytest.raises(ServiceFailure):
                await Orchestrator(failing_client, progress=progress).run("x = 1", Language.PYTHON)
