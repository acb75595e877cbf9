"""Orchestrator — fans the four analysis tasks out and joins them into one result."""

from __future__ import annotations

import asyncio
import logging

from pydantic import BaseModel

from codeclarity.errors import AnalysisError
from codeclarity.flows.registry import TASK_ORDER
from codeclarity.flows.task import AnalysisTask
from codeclarity.schemas.analysis import AnalysisResult
from codeclarity.schemas.contracts import Language, RefactoringLanguage, TaskName
from codeclarity.shared.model_client import ModelClient
from codeclarity.shared.progress import AnalysisProgress

logger = logging.getLogger(__name__)

# The refactoring contract spells JavaScript as "JS"; no other task does.
_REFACTORING_LANGUAGE = {Language.JAVASCRIPT.value: RefactoringLanguage.JS.value}


class Orchestrator:
    """Runs Documentation, Refactoring, Complexity and UnitTests for one snippet.

    Flow:
        validate all four inputs → dispatch concurrently → join →
        composite result, or the first failure in dispatch order
    """

    def __init__(
        self,
        client: ModelClient,
        *,
        progress: AnalysisProgress | None = None,
    ) -> None:
        self.client = client
        self.progress = progress
        self.tasks = {task: AnalysisTask(task, client) for task in TASK_ORDER}

    @staticmethod
    def _input_for(task: TaskName, code: str, language: Language | str) -> dict[str, str]:
        lang = language.value if isinstance(language, Language) else language
        if task is TaskName.REFACTORING:
            lang = _REFACTORING_LANGUAGE.get(lang, lang)
        return {"code": code, "language": lang}

    async def run(self, code: str, language: Language | str) -> AnalysisResult:
        """Analyze ``code`` with all four tasks; all-or-nothing.

        Raises ``InputRejected`` before any model call if any task rejects
        the input, otherwise the first task failure (in dispatch order)
        once all four have finished.
        """
        inputs = {
            task: self.tasks[task].validate_input(self._input_for(task, code, language))
            for task in TASK_ORDER
        }

        logger.info(
            "Dispatching %d analysis tasks (%d chars of %s)",
            len(inputs), len(code), getattr(language, "value", language),
        )
        results = await asyncio.gather(
            *(self._run_task(task, inputs[task]) for task in TASK_ORDER),
            return_exceptions=True,
        )
        outcomes = dict(zip(TASK_ORDER, results))

        failures = [
            (task, outcome) for task, outcome in outcomes.items()
            if isinstance(outcome, BaseException)
        ]
        for task, exc in failures:
            logger.error("Task %s failed: %s", task.label, exc)
        if failures:
            raise failures[0][1]

        logger.info("All %d analysis tasks succeeded", len(outcomes))
        return AnalysisResult(
            documentation=outcomes[TaskName.DOCUMENTATION].documentation,
            refactorings=outcomes[TaskName.REFACTORING].refactorings,
            complexity=outcomes[TaskName.COMPLEXITY].complexity_analysis,
            unit_tests=outcomes[TaskName.UNIT_TESTS].unit_tests,
        )

    async def _run_task(self, task: TaskName, payload: BaseModel) -> BaseModel:
        agent = self.tasks[task]
        progress = self.progress
        if progress is None:
            return await agent.invoke(payload)

        progress.start_task(agent.name)
        try:
            output = await agent.invoke(
                payload,
                on_progress=lambda msg: progress.update_task(agent.name, msg),
                on_tokens=lambda inp, out: progress.record_tokens(agent.name, inp, out),
            )
        except AnalysisError as exc:
            progress.fail_task(agent.name, exc.kind)
            raise
        progress.finish_task(agent.name)
        return output


async def analyze(
    code: str,
    language: Language | str,
    *,
    client: ModelClient | None = None,
) -> AnalysisResult:
    """Caller-facing entry point: run all four analyses for one snippet.

    A ``client`` passed in is left open for reuse; one created here is
    closed before returning.
    """
    if client is not None:
        return await Orchestrator(client).run(code, language)

    owned = ModelClient()
    try:
        return await Orchestrator(owned).run(code, language)
    finally:
        await owned.close()
