"""
StructuredGenerator retry policy, against a fake chat model.
"""
import asyncio
from concurrent.futures import Future
from types import SimpleNamespace

import pytest
from pydantic import BaseModel, ValidationError

from video_generation.errors import (
    GenerationExhaustedError,
    GenerationRateLimitError,
    GenerationTransportError,
    GenerationValidationError,
)
from video_generation.generation import (
    StructuredGenerator,
    is_rate_limit_error,
    is_transport_error,
    render_validation_errors,
)


class Headline(BaseModel):
    text: str
    emphasis: int


class FakeStructuredRunnable:
    def __init__(self, model):
        self.model = model

    async def ainvoke(self, messages):
        self.model.prompts.append(messages[-1].content)
        outcome = self.model.outcomes.pop(0) if len(self.model.outcomes) > 1 else self.model.outcomes[0]
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


class FakeChatModel:
    """Mimics `with_structured_output(schema, include_raw=True)`."""

    def __init__(self, outcomes):
        self.outcomes = list(outcomes)
        self.prompts = []

    def with_structured_output(self, schema, include_raw=False):
        assert include_raw
        return FakeStructuredRunnable(self)


def parsed(data):
    return {"raw": None, "parsed": data, "parsing_error": None}


def parse_failure(error):
    return {"raw": None, "parsed": None, "parsing_error": error}


def make_generator(outcomes, max_retries=2):
    model = FakeChatModel(outcomes)
    generator = StructuredGenerator(model=model, max_retries=max_retries, backoff_seconds=0, pause_seconds=0)
    return generator, model


def test_returns_validated_instance():
    generator, model = make_generator([parsed(Headline(text="Ship faster", emphasis=2))])

    result = asyncio.run(generator.generate("system", "user", Headline))

    assert result.data == Headline(text="Ship faster", emphasis=2)
    assert result.attempts == 1
    assert len(model.prompts) == 1


def test_dict_output_is_validated_against_schema():
    generator, _ = make_generator([parsed({"text": "Hi", "emphasis": "3"})])

    result = asyncio.run(generator.generate("system", "user", Headline))

    assert isinstance(result.data, Headline)
    assert result.data.emphasis == 3


def test_schema_failure_retries_with_feedback():
    generator, model = make_generator([
        parsed({"text": "Missing emphasis"}),
        parsed(Headline(text="Fixed", emphasis=1)),
    ])

    result = asyncio.run(generator.generate("system", "make a headline", Headline))

    assert result.data.text == "Fixed"
    assert result.attempts == 2
    assert model.prompts[0] == "make a headline"
    assert "IMPORTANT: Your previous response failed validation" in model.prompts[1]
    assert "emphasis" in model.prompts[1]


def test_missing_parse_counts_as_validation_failure():
    generator, model = make_generator([
        parse_failure(ValueError("not json")),
        parsed(Headline(text="ok", emphasis=0)),
    ])

    result = asyncio.run(generator.generate("system", "user", Headline))

    assert result.attempts == 2
    assert "(root): not json" in model.prompts[1]


def test_rate_limit_raises_immediately():
    generator, model = make_generator([RuntimeError("429 RESOURCE_EXHAUSTED: quota exceeded")])

    with pytest.raises(GenerationRateLimitError) as exc_info:
        asyncio.run(generator.generate("system", "user", Headline))

    assert exc_info.value.attempts == 1
    assert len(model.prompts) == 1


def test_exhausted_after_three_attempts():
    generator, model = make_generator([parsed({"text": "never valid"})])

    with pytest.raises(GenerationExhaustedError) as exc_info:
        asyncio.run(generator.generate("system", "user", Headline))

    assert exc_info.value.attempts == 3
    assert exc_info.value.last_error is not None
    assert len(model.prompts) == 3


def test_transport_errors_are_retried():
    generator, model = make_generator([
        ConnectionError("connection reset by peer"),
        parsed(Headline(text="back", emphasis=1)),
    ])

    result = asyncio.run(generator.generate("system", "user", Headline))

    assert result.attempts == 2
    assert model.prompts[0] == model.prompts[1] == "user"


def test_error_classification():
    assert is_rate_limit_error(RuntimeError("Too Many Requests"))
    assert not is_rate_limit_error(RuntimeError("bad gateway"))
    assert is_transport_error(TimeoutError())
    assert is_transport_error(RuntimeError("fetch failed"))
    assert not is_transport_error(ValueError("bad schema"))


def test_render_validation_errors_lists_paths():
    with pytest.raises(ValidationError) as exc_info:
        Headline.model_validate({"text": 3})

    lines = render_validation_errors(exc_info.value)
    assert any(line.startswith("text:") for line in lines)
    assert any(line.startswith("emphasis:") for line in lines)


def test_exhausted_error_carries_last_failure():
    generator, model = make_generator([RuntimeError("bad gateway")], max_retries=1)

    with pytest.raises(GenerationExhaustedError) as exc_info:
        asyncio.run(generator.generate("system", "user", Headline))

    assert exc_info.value.attempts == 2
    assert str(exc_info.value.last_error) == "bad gateway"
    assert len(model.prompts) == 2


def failed_attempt(error, attempt_number):
    outcome = Future()
    outcome.set_exception(error)
    return SimpleNamespace(outcome=outcome, attempt_number=attempt_number)


def test_retry_wait_scales_network_backoff_with_attempt():
    generator = StructuredGenerator(model=FakeChatModel([]), backoff_seconds=1.5, pause_seconds=0.5)

    assert generator.retry_wait(failed_attempt(GenerationTransportError("reset", 1), 1)) == 1.5
    assert generator.retry_wait(failed_attempt(GenerationTransportError("reset", 2), 2)) == 3.0
    assert generator.retry_wait(failed_attempt(RuntimeError("bad gateway"), 2)) == 0.5
    assert generator.retry_wait(failed_attempt(GenerationValidationError("bad", ["x: missing"]), 1)) == 0
