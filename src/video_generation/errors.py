"""
Error taxonomy for the generation pipeline.

Only TerminalStageFailure is allowed to end a run. Everything else is
absorbed by the stage that hit it: retried inside the generation service,
degraded into a fallback scene, or reflected in the refinement score.
"""
from dataclasses import dataclass


class VideoGenerationError(Exception):
    """Base class for every error raised by the pipeline."""


# ─────────────────────────────────────────────────────────────
# Generation service
# ─────────────────────────────────────────────────────────────

class GenerationError(VideoGenerationError):
    """A structured generation call did not produce usable data."""

    def __init__(self, message: str, attempts: int = 0):
        super().__init__(message)
        self.attempts = attempts


class GenerationValidationError(GenerationError):
    """The model answered, but the answer does not match the output schema."""

    def __init__(self, message: str, errors: list[str] = None, attempts: int = 0):
        super().__init__(message, attempts)
        self.errors = errors or []


class GenerationRateLimitError(GenerationError):
    """Quota or rate limit hit. Never retried."""


class GenerationTransportError(GenerationError):
    """Network failure or timeout talking to the model."""


class GenerationExhaustedError(GenerationError):
    """Every attempt failed. Carries the attempt count and the last error."""

    def __init__(self, message: str, attempts: int, last_error: Exception = None):
        super().__init__(message, attempts)
        self.last_error = last_error


# ─────────────────────────────────────────────────────────────
# Stage outcomes
# ─────────────────────────────────────────────────────────────

class TerminalStageFailure(VideoGenerationError):
    """A stage with no meaningful fallback (director, assembly) failed."""

    def __init__(self, stage: str, message: str, cause: Exception = None):
        super().__init__(f"{stage}: {message}")
        self.stage = stage
        self.message = message
        self.cause = cause


@dataclass(frozen=True)
class StageDegradation:
    """Record of a scene that was replaced by its deterministic fallback."""
    stage: str
    scene_id: str
    reason: str

    def to_dict(self) -> dict:
        return {"stage": self.stage, "sceneId": self.scene_id, "reason": self.reason}
