"""
Request Loader

Load a VideoGenerationRequest from a JSON file (camelCase, as sent by the
editor), or create a sample request for development without an editor.
"""
import json
from pathlib import Path
from typing import Union

from .models import ComponentInfo, CompositionSettings, VideoGenerationRequest


def load_request(path: Union[str, Path]) -> VideoGenerationRequest:
    """
    Load a request from disk.

    Raises:
        FileNotFoundError: If the file doesn't exist
        pydantic.ValidationError: If the JSON doesn't describe a request
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Request file not found: {path}")
    return VideoGenerationRequest.model_validate_json(path.read_text())


def save_result(result: dict, path: Union[str, Path]) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(result, indent=2, default=str))
    return path


def sample_components() -> list[ComponentInfo]:
    return [
        ComponentInfo(
            id="comp-pricing",
            name="PricingCard",
            category="card",
            description="Three-tier pricing card with monthly/yearly toggle",
            props=["plan", "price", "features", "highlighted", "onSelect"],
            demo_props={"plan": "Pro", "price": "$29", "highlighted": True},
            interactive_elements='[{"selector": "[data-testid=\'toggle-yearly\']", "action": "click"}, '
                                 '{"selector": "button.select-plan", "action": "click"}]',
            related_components=["CheckoutForm"],
        ),
        ComponentInfo(
            id="comp-checkout",
            name="CheckoutForm",
            category="form",
            description="Card payment form with inline validation",
            props=["amount", "currency", "onSubmit"],
            demo_props={"amount": 29, "currency": "USD"},
            interactive_elements='[{"selector": "input[name=\'email\']", "action": "type"}, '
                                 '{"selector": "button[type=\'submit\']", "action": "click"}]',
            uses_components=["Button", "Input"],
            related_components=["PricingCard"],
        ),
    ]


def create_test_request(
    user_request: str = "A 20 second launch video for our new pricing page",
    target_duration_seconds: float = 20,
) -> VideoGenerationRequest:
    """
    Create a sample request for testing without the editor.
    """
    fps = 30
    return VideoGenerationRequest(
        user_request=user_request,
        composition=CompositionSettings(
            width=1920,
            height=1080,
            fps=fps,
            duration_in_frames=int(target_duration_seconds * fps),
        ),
        components=sample_components(),
        target_duration_seconds=target_duration_seconds,
        project_id="test-project",
    )
