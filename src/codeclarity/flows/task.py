"""AnalysisTask — runs one analysis task end-to-end against the model service."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any, Callable

from pydantic import BaseModel

from codeclarity.errors import InputRejected, SchemaViolation, ServiceFailure, Stage
from codeclarity.flows import prompts, registry
from codeclarity.schemas.contracts import TaskName
from codeclarity.shared.model_client import (
    MalformedOutputError,
    ModelClient,
    ModelServiceError,
    TokensCallback,
)

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[str], None]
"""Called with a short status message as the task moves through its stages."""


class AnalysisTask:
    """One registry entry + one template, bound to a model client.

    ``invoke`` makes exactly one call to the model service and never
    retries; retry policy belongs to the client.
    """

    def __init__(self, task: TaskName, client: ModelClient) -> None:
        self.task = task
        self.client = client
        self.contract = registry.contract_for(task)

    @property
    def name(self) -> str:
        return self.task.label

    def validate_input(self, value: Mapping[str, Any] | BaseModel) -> BaseModel:
        """Check ``{code, language}`` against this task's input shape.

        Raises ``InputRejected`` naming the offending fields.
        """
        try:
            return registry.validate(self.contract.input_shape, value)
        except SchemaViolation as exc:
            raise InputRejected(
                f"input rejected: {exc.message}", task=self.task, fields=exc.fields,
            ) from exc

    async def invoke(
        self,
        value: Mapping[str, Any] | BaseModel,
        *,
        on_progress: ProgressCallback | None = None,
        on_tokens: TokensCallback | None = None,
    ) -> BaseModel:
        """Validate input, render the prompt, call the model, validate the payload.

        Returns the validated output model, or raises ``InputRejected``,
        ``ServiceFailure`` or ``SchemaViolation`` tagged with this task.
        """
        payload = self.validate_input(value)
        prompt = prompts.render(self.task, payload)

        if on_progress:
            on_progress("Waiting for model…")
        logger.debug("Task %s prompt (%d chars)", self.name, len(prompt))

        try:
            raw = await self.client.structured_completion(
                prompt=prompt,
                output_schema=self.contract.output_shape,
                on_tokens=on_tokens,
            )
        except ModelServiceError as exc:
            raise ServiceFailure(str(exc), task=self.task) from exc
        except MalformedOutputError as exc:
            raise SchemaViolation(
                str(exc), task=self.task, stage=Stage.OUTPUT, fields=["<root>"],
            ) from exc
        except Exception as exc:
            # Anything else the client raises is a service-side failure
            raise ServiceFailure(
                f"Model call failed: {type(exc).__name__}: {exc}", task=self.task,
            ) from exc

        if on_progress:
            on_progress("Validating response…")
        try:
            return registry.validate(self.contract.output_shape, raw)
        except SchemaViolation as exc:
            raise SchemaViolation(
                exc.message, task=self.task, stage=Stage.OUTPUT, fields=exc.fields,
            ) from exc
