"""Async OpenAI wrapper that answers a prompt with JSON matching a pydantic shape.

This is the model-invocation service the analysis flows talk to. It owns
everything provider-specific: rate-limit and connection retries, JSON mode,
and one re-format request when the model answers with something that is
not JSON.
"""

from __future__ import annotations

import asyncio
import json
import logging
import random
import re
from typing import Any, Callable

from openai import (
    APIConnectionError,
    APITimeoutError,
    AsyncOpenAI,
    OpenAIError,
    RateLimitError,
)
from pydantic import BaseModel

logger = logging.getLogger(__name__)

MODEL = "gpt-4o"
MAX_TOKENS = 4096
REQUEST_TIMEOUT = 120.0

# Retry settings for rate-limit (429) and transient connection errors
_MAX_RETRIES = 6
_BASE_DELAY = 2  # seconds, minimum floor for exponential backoff

_STRUCTURED_SYSTEM_PROMPT = """\
You are a code analysis assistant. Respond with a single JSON object \
(no markdown, no explanation, just raw JSON) that conforms to this JSON Schema:

{schema}
"""

_JSON_RETRY_MSG = (
    "Your answer is useful, but I need it as a single JSON object "
    "(no markdown, no explanation, just raw JSON) matching the schema "
    "described in your instructions. Please re-format your response now."
)

TokensCallback = Callable[[int, int], None]
"""Called with (input_tokens, output_tokens) when a completion finishes."""


class ModelServiceError(RuntimeError):
    """The provider call failed (transport, timeout, refusal, exhausted retries)."""


class MalformedOutputError(ValueError):
    """The model's reply could not be turned into a JSON object, even after re-formatting."""


def _parse_retry_after(exc: RateLimitError) -> float | None:
    """Extract the suggested retry delay from an OpenAI rate limit error.

    Checks the ``Retry-After`` header first, then falls back to parsing
    the "Please try again in Xs / Xms" substring from the error message.
    Returns seconds as a float, or None if not found.
    """
    try:
        headers = exc.response.headers  # type: ignore[union-attr]
        if retry_after := headers.get("retry-after"):
            return float(retry_after)
    except (AttributeError, TypeError, ValueError):
        pass

    m = re.search(r"try again in (\d+(?:\.\d+)?)\s*(ms|s)\b", str(exc), re.IGNORECASE)
    if m:
        value = float(m.group(1))
        return value / 1000 if m.group(2).lower() == "ms" else value

    return None


def extract_json(text: str) -> dict[str, Any]:
    """Extract a JSON object from text that may contain markdown fences."""
    text = text.strip()

    # 1. Direct parse (clean JSON response)
    if text.startswith("{"):
        try:
            return json.loads(text)
        except json.JSONDecodeError:
            # Might have trailing text
            try:
                obj, _ = json.JSONDecoder().raw_decode(text)
                return obj
            except json.JSONDecodeError:
                pass

    # 2. ```json ... ``` or ``` ... ``` fenced blocks
    match = re.search(r"```(?:json)?\s*\n?(.*?)\n?```", text, re.DOTALL)
    if match:
        return json.loads(match.group(1).strip())

    # 3. First { onwards
    try:
        start = text.index("{")
        obj, _ = json.JSONDecoder().raw_decode(text, idx=start)
        return obj
    except (ValueError, json.JSONDecodeError):
        pass

    raise ValueError(
        f"Could not extract JSON from model response (length={len(text)}). "
        f"First 300 chars: {text[:300]!r}"
    )


def schema_instructions(output_schema: type[BaseModel]) -> str:
    """System prompt telling the model which JSON shape to produce."""
    schema = json.dumps(output_schema.model_json_schema(by_alias=True), indent=2)
    return _STRUCTURED_SYSTEM_PROMPT.format(schema=schema)


class ModelClient:
    """Thin async wrapper around the OpenAI SDK.

    - ``simple_completion`` — single request/response in JSON mode.
    - ``structured_completion`` — prompt + output shape in, JSON mapping out.

    One instance is safe to share between concurrent tasks; the underlying
    ``AsyncOpenAI`` client pools its HTTP connections.
    """

    def __init__(
        self,
        api_key: str | None = None,
        *,
        model: str = MODEL,
        max_tokens: int = MAX_TOKENS,
        timeout: float = REQUEST_TIMEOUT,
    ) -> None:
        self.model = model
        self.max_tokens = max_tokens
        self._client = AsyncOpenAI(api_key=api_key, timeout=timeout)

    async def _call_with_retry(self, **kwargs: Any) -> Any:
        """Call chat.completions.create with exponential backoff on 429 and connection errors.

        Waits at least as long as OpenAI's suggested retry-after time, uses
        exponential backoff as a floor, and adds ±25% jitter so the four
        concurrent tasks don't retry in lockstep.

        Fails immediately if the request itself exceeds the token limit.
        """
        for attempt in range(_MAX_RETRIES):
            try:
                return await self._client.chat.completions.create(**kwargs)
            except RateLimitError as exc:
                msg = str(exc).lower()
                if "request too large" in msg or "context_length_exceeded" in msg:
                    logger.error("Request exceeds token limit (not retryable): %s", exc)
                    raise
                if attempt == _MAX_RETRIES - 1:
                    raise

                backoff = _BASE_DELAY * (2 ** attempt)
                suggested = _parse_retry_after(exc)
                base_delay = max(suggested or 0.0, backoff)
                jitter = random.uniform(-0.25 * base_delay, 0.25 * base_delay)
                delay = max(1.0, base_delay + jitter)

                logger.warning(
                    "Rate limited (429), retrying in %.1fs (attempt %d/%d, "
                    "suggested=%.1fs, backoff=%ds): %s",
                    delay, attempt + 1, _MAX_RETRIES,
                    suggested or 0.0, backoff, exc,
                )
                await asyncio.sleep(delay)
            except (APIConnectionError, APITimeoutError) as exc:
                if attempt == _MAX_RETRIES - 1:
                    raise
                # capped at ~16 s
                backoff = _BASE_DELAY * (2 ** min(attempt, 3))
                jitter = random.uniform(-0.25 * backoff, 0.25 * backoff)
                delay = max(1.0, backoff + jitter)
                logger.warning(
                    "Connection error, retrying in %.1fs (attempt %d/%d): %s",
                    delay, attempt + 1, _MAX_RETRIES, exc,
                )
                await asyncio.sleep(delay)

    async def simple_completion(
        self,
        *,
        system: str,
        user_message: str,
        on_tokens: TokensCallback | None = None,
    ) -> str:
        """Single request/response in JSON mode.

        The OpenAI API guarantees the response is valid JSON. Raises
        ``ModelServiceError`` if the provider answers with no choices.
        """
        response = await self._call_with_retry(
            model=self.model,
            max_tokens=self.max_tokens,
            messages=[
                {"role": "system", "content": system},
                {"role": "user", "content": user_message},
            ],
            response_format={"type": "json_object"},
        )
        usage = getattr(response, "usage", None)
        if on_tokens and usage:
            on_tokens(getattr(usage, "prompt_tokens", 0), getattr(usage, "completion_tokens", 0))
        if not response.choices:
            raise ModelServiceError(f"Model {self.model} returned no choices")
        return response.choices[0].message.content or ""

    async def close(self) -> None:
        """Release the underlying HTTP connection pool."""
        await self._client.close()

    async def structured_completion(
        self,
        *,
        prompt: str,
        output_schema: type[BaseModel],
        on_tokens: TokensCallback | None = None,
    ) -> dict[str, Any]:
        """Answer ``prompt`` with a JSON object shaped like ``output_schema``.

        Returns the decoded mapping without validating it; the caller owns
        the contract check. Raises ``ModelServiceError`` if the provider call
        fails and ``MalformedOutputError`` if no JSON object can be recovered
        after one re-format request.
        """
        system = schema_instructions(output_schema)
        try:
            raw = await self.simple_completion(
                system=system, user_message=prompt, on_tokens=on_tokens,
            )
            logger.debug("%s raw output:\n%s", output_schema.__name__, raw[:500])
            try:
                return extract_json(raw)
            except (ValueError, json.JSONDecodeError) as err:
                logger.warning(
                    "%s output was not valid JSON, requesting re-format. Error: %s",
                    output_schema.__name__, err,
                )

            retry_msg = f"{prompt}\n\nAssistant's previous response:\n{raw}\n\n{_JSON_RETRY_MSG}"
            raw_retry = await self.simple_completion(
                system=system, user_message=retry_msg, on_tokens=on_tokens,
            )
        except OpenAIError as exc:
            raise ModelServiceError(f"Model call failed: {exc}") from exc

        logger.debug("%s retry output:\n%s", output_schema.__name__, raw_retry[:500])
        try:
            return extract_json(raw_retry)
        except (ValueError, json.JSONDecodeError) as exc:
            raise MalformedOutputError(
                f"{output_schema.__name__}: model did not return JSON after re-format"
            ) from exc


# ======================================================================
# Dry-run mock client — zero API calls
# ======================================================================

_DRY_RUN_PAYLOADS: dict[str, dict[str, Any]] = {
    "DocumentationOutput": {
        "documentation": (
            "This snippet defines a small greeting routine and calls it once. "
            "(dry-run: no model was called)"
        ),
    },
    "RefactoringOutput": {
        "refactorings": [
            "Add a docstring or header comment describing the function's purpose.",
            "Validate the input before formatting it into the output string.",
        ],
    },
    "ComplexityOutput": {
        "complexityAnalysis": "Time: O(n) in the length of the name. Space: O(n).",
    },
    "UnitTestsOutput": {
        "unitTests": "# dry-run: no model was called\ndef test_placeholder():\n    assert True\n",
    },
}


class DryRunClient:
    """Drop-in replacement for ModelClient that makes zero API calls.

    Returns a canned conforming payload for each output shape, keyed by the
    shape's class name.
    """

    model = "dry-run"

    async def close(self) -> None:
        pass

    async def structured_completion(
        self,
        *,
        prompt: str,
        output_schema: type[BaseModel],
        on_tokens: TokensCallback | None = None,
    ) -> dict[str, Any]:
        logger.info("[dry-run] %s (%d-char prompt)", output_schema.__name__, len(prompt))
        if on_tokens:
            on_tokens(0, 0)
        return dict(_DRY_RUN_PAYLOADS.get(output_schema.__name__, {}))
