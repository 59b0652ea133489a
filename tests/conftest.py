"""
Shared fixtures. Nothing here talks to a real model.
"""
import pytest
from pydantic import BaseModel

from video_generation.errors import GenerationExhaustedError
from video_generation.generation import GenerationResult
from video_generation.models import (
    ComponentInfo,
    CompositionSettings,
    GenerationContext,
    SceneOutline,
    VideoGenerationRequest,
    VideoPlan,
)


class FakeGenerator:
    """
    Stand-in for StructuredGenerator that returns canned schema instances.

    `responses` maps a schema class name to one of:
    - a model instance (returned on every call)
    - a list of instances / exceptions (consumed in order, last one repeats)
    - a callable taking the user prompt
    - an exception instance (raised)
    """

    def __init__(self, responses=None):
        self.responses = {k: (list(v) if isinstance(v, list) else v) for k, v in (responses or {}).items()}
        self.calls = []

    async def generate(self, system_prompt, user_prompt, schema, temperature=None):
        self.calls.append({
            "schema": schema.__name__,
            "system": system_prompt,
            "user": user_prompt,
            "temperature": temperature,
        })

        response = self.responses.get(schema.__name__)
        if isinstance(response, list):
            response = response.pop(0) if len(response) > 1 else response[0]
        if isinstance(response, Exception):
            raise response
        if callable(response) and not isinstance(response, BaseModel):
            response = response(user_prompt)
            if isinstance(response, Exception):
                raise response
        if response is None:
            raise GenerationExhaustedError(f"No canned response for {schema.__name__}", 3)

        return GenerationResult(data=response, attempts=1)

    def count(self, schema_name: str) -> int:
        return sum(1 for call in self.calls if call["schema"] == schema_name)


@pytest.fixture
def pricing_component():
    return ComponentInfo(
        id="comp-pricing",
        name="PricingCard",
        category="card",
        description="Three-tier pricing card",
        props=["plan", "price", "highlighted"],
        demo_props={"plan": "Pro", "price": "$29"},
        interactive_elements="button.select-plan (click)",
    )


@pytest.fixture
def request_300(pricing_component):
    """10 seconds at 30fps with one catalog component."""
    return VideoGenerationRequest(
        user_request="A short promo for our pricing card",
        composition=CompositionSettings(width=1920, height=1080, fps=30, duration_in_frames=300),
        components=[pricing_component],
        target_duration_seconds=10,
    )


@pytest.fixture
def context_300(request_300):
    return GenerationContext.from_request(request_300)


@pytest.fixture
def two_scene_plan():
    return VideoPlan(
        title="Pricing, simplified",
        audience="SaaS founders",
        core_message="Pick a plan in seconds",
        tone="professional",
        style="minimal",
        duration_in_frames=300,
        scenes=[
            SceneOutline(
                id="scene-1",
                type="intro",
                purpose="Introduce the new pricing page",
                duration_in_frames=180,
                key_points=["New pricing"],
            ),
            SceneOutline(
                id="scene-2",
                type="feature",
                purpose="Show the pricing card",
                duration_in_frames=120,
                component_id="comp-pricing",
                component_name="PricingCard",
                key_points=["Three tiers"],
            ),
        ],
    )
