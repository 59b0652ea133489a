"""
Structured Generation Service

Every model call in the pipeline goes through `StructuredGenerator.generate`:
a system prompt, a user prompt and a pydantic schema in, a validated
instance of that schema out.

## Retry Policy

| Failure | Behaviour |
|---------|-----------|
| Schema mismatch | Retry at once, appending the validation errors to the prompt |
| Rate limit / quota | Raise GenerationRateLimitError at once, no retry |
| Network / timeout | Retry after RETRY_BACKOFF_SECONDS * attempt |
| Anything else | Retry after a short pause |

`max_retries=2` means 3 attempts. When they are all spent,
GenerationExhaustedError carries the attempt count and the last error.

## Injection

The generator is passed to each stage explicitly (through the graph's
`configurable`), never looked up globally, so tests can hand in a fake
chat model or a fake generator.
"""
import asyncio
from dataclasses import dataclass, field
from typing import Optional, Type, TypeVar

from langchain_core.language_models import BaseChatModel
from langchain_core.messages import HumanMessage, SystemMessage
from pydantic import BaseModel, ValidationError
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    RetryError,
    retry_if_not_exception_type,
    stop_after_attempt,
)

from config import Config, get_model
from .errors import (
    GenerationExhaustedError,
    GenerationRateLimitError,
    GenerationTransportError,
    GenerationValidationError,
)


SchemaT = TypeVar("SchemaT", bound=BaseModel)

RATE_LIMIT_PATTERNS = (
    "429",
    "resource_exhausted",
    "resourceexhausted",
    "quota",
    "rate limit",
    "too many requests",
)

TRANSPORT_PATTERNS = (
    "fetch failed",
    "econnreset",
    "connection",
    "timeout",
    "timed out",
)

VALIDATION_FEEDBACK = """

IMPORTANT: Your previous response failed validation. Fix these issues:
{errors}

Generate a valid response that matches the schema exactly."""


@dataclass
class GenerationResult:
    data: BaseModel
    attempts: int
    token_usage: dict[str, int] = field(default_factory=lambda: {"input": 0, "output": 0})


# ─────────────────────────────────────────────────────────────
# Error Classification
# ─────────────────────────────────────────────────────────────

def _error_text(error: BaseException) -> str:
    return f"{type(error).__name__} {error}".lower()


def is_rate_limit_error(error: BaseException) -> bool:
    """Quota / rate-limit signal from the model provider."""
    text = _error_text(error)
    return any(pattern in text for pattern in RATE_LIMIT_PATTERNS)


def is_transport_error(error: BaseException) -> bool:
    """Network failure or timeout."""
    if isinstance(error, (ConnectionError, TimeoutError, asyncio.TimeoutError)):
        return True
    text = _error_text(error)
    return any(pattern in text for pattern in TRANSPORT_PATTERNS)


def render_validation_errors(error: BaseException) -> list[str]:
    """Render a schema failure as `path: message` lines for the retry prompt."""
    cause = error if isinstance(error, ValidationError) else error.__cause__
    if isinstance(cause, ValidationError):
        lines = []
        for err in cause.errors():
            path = ".".join(str(part) for part in err.get("loc", ())) or "(root)"
            lines.append(f"{path}: {err.get('msg', 'invalid value')}")
        return lines
    return [f"(root): {error}"]


def with_validation_feedback(prompt: str, errors: list[str]) -> str:
    return prompt + VALIDATION_FEEDBACK.format(errors="\n".join(errors))


def _token_usage(response) -> dict[str, int]:
    raw = response.get("raw") if isinstance(response, dict) else None
    usage = getattr(raw, "usage_metadata", None) or {}
    return {
        "input": usage.get("input_tokens", 0),
        "output": usage.get("output_tokens", 0),
    }


# ─────────────────────────────────────────────────────────────
# Generator
# ─────────────────────────────────────────────────────────────

class StructuredGenerator:
    """
    Schema-validated generation on top of a LangChain chat model.

    Args:
        model: Chat model to use for every call. When omitted, a Gemini model
            is built per temperature via `config.get_model`.
        model_name: Model id used when building models (default Config.MODEL_NAME)
        max_retries: Retries after the first attempt
    """

    def __init__(
        self,
        model: Optional[BaseChatModel] = None,
        model_name: Optional[str] = None,
        max_retries: Optional[int] = None,
        backoff_seconds: Optional[float] = None,
        pause_seconds: Optional[float] = None,
    ):
        self._model = model
        self.model_name = model_name
        self.max_retries = Config.MAX_GENERATION_RETRIES if max_retries is None else max_retries
        self.backoff_seconds = Config.RETRY_BACKOFF_SECONDS if backoff_seconds is None else backoff_seconds
        self.pause_seconds = Config.RETRY_PAUSE_SECONDS if pause_seconds is None else pause_seconds
        self._models: dict[float, BaseChatModel] = {}

    def _model_for(self, temperature: Optional[float]) -> BaseChatModel:
        if self._model is not None:
            return self._model
        key = 0.0 if temperature is None else temperature
        if key not in self._models:
            self._models[key] = get_model(self.model_name, temperature=key)
        return self._models[key]

    @staticmethod
    def _extract(response, schema: Type[SchemaT]) -> SchemaT:
        """Pull the parsed object out of an include_raw response and validate it."""
        if isinstance(response, dict) and "parsed" in response:
            parsed = response.get("parsed")
            parsing_error = response.get("parsing_error")
        else:
            parsed, parsing_error = response, None

        if parsing_error is not None:
            raise GenerationValidationError(
                f"Response did not match {schema.__name__}",
                errors=render_validation_errors(parsing_error),
            )
        if parsed is None:
            raise GenerationValidationError(
                "Model returned no structured output",
                errors=[f"(root): expected a {schema.__name__} object, got nothing"],
            )
        if isinstance(parsed, schema):
            return parsed

        try:
            return schema.model_validate(parsed)
        except ValidationError as e:
            raise GenerationValidationError(
                f"Response did not match {schema.__name__}",
                errors=render_validation_errors(e),
            ) from e

    def retry_wait(self, retry_state: RetryCallState) -> float:
        """Seconds to wait before the next attempt, by the previous failure."""
        error = retry_state.outcome.exception() if retry_state.outcome else None
        if isinstance(error, GenerationValidationError):
            return 0
        if isinstance(error, GenerationTransportError):
            return self.backoff_seconds * retry_state.attempt_number
        return self.pause_seconds

    async def generate(
        self,
        system_prompt: str,
        user_prompt: str,
        schema: Type[SchemaT],
        temperature: Optional[float] = None,
    ) -> GenerationResult:
        """
        Generate an instance of `schema`.

        Raises:
            GenerationRateLimitError: quota hit (not retried)
            GenerationExhaustedError: every attempt failed
        """
        structured = self._model_for(temperature).with_structured_output(schema, include_raw=True)
        prompt = user_prompt

        def before_retry(retry_state: RetryCallState) -> None:
            nonlocal prompt
            error = retry_state.outcome.exception()
            attempts = retry_state.attempt_number
            if isinstance(error, GenerationValidationError):
                print(f"   ⚠️  {schema.__name__}: attempt {attempts} failed validation, retrying with feedback...")
                if Config.DEBUG:
                    for line in error.errors:
                        print(f"      - {line}")
                prompt = with_validation_feedback(user_prompt, error.errors)
            elif isinstance(error, GenerationTransportError):
                print(f"   ⚠️  {schema.__name__}: attempt {attempts} network error, retrying...")
            else:
                print(f"   ⚠️  {schema.__name__}: attempt {attempts} failed: {error}, retrying...")

        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.max_retries + 1),
            wait=self.retry_wait,
            retry=retry_if_not_exception_type(GenerationRateLimitError),
            before_sleep=before_retry,
        )

        try:
            async for attempt in retrying:
                with attempt:
                    attempts = attempt.retry_state.attempt_number
                    try:
                        response = await structured.ainvoke([
                            SystemMessage(content=system_prompt),
                            HumanMessage(content=prompt),
                        ])
                    except Exception as e:
                        if is_rate_limit_error(e):
                            print(f"   ❌ {schema.__name__}: rate limit hit on attempt {attempts}")
                            raise GenerationRateLimitError(
                                "AI rate limit exceeded. Wait a moment and try again, or switch to a different model.",
                                attempts,
                            ) from e
                        if is_transport_error(e):
                            raise GenerationTransportError(str(e), attempts) from e
                        raise

                    try:
                        data = self._extract(response, schema)
                    except GenerationValidationError as e:
                        e.attempts = attempts
                        raise
        except RetryError as e:
            attempts = e.last_attempt.attempt_number
            last_error = e.last_attempt.exception()
            raise GenerationExhaustedError(
                f"Failed after {attempts} attempts: {last_error}",
                attempts,
                last_error,
            ) from last_error

        return GenerationResult(
            data=data,
            attempts=attempts,
            token_usage=_token_usage(response),
        )
