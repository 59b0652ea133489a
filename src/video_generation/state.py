"""
Generation Pipeline State Definitions

State flows: director → plan_scene (one per scene, in parallel) → assemble
→ refine ⇄ apply_fixes → finalize

## Composition Output

The assembled composition is plain camelCase dicts, not models: it is
handed to the editor as-is and the refinement loop patches items in place
on deep copies. Every element gets its own track so the editor can lock
and reorder them independently. Track order is z-order.

## Keyframe Frames Are Relative

`PropertyKeyframe.frame` is relative to the owning item's own start
(frame 0 = the instant the item appears), never the composition timeline.
"""
from typing import Annotated, Any, Literal, Optional
from typing_extensions import TypedDict
import operator

from .errors import StageDegradation
from .models import DetailedScene, GenerationContext, RefinementResult, VideoPlan


# ─────────────────────────────────────────────────────────────
# Composition Output
# ─────────────────────────────────────────────────────────────

EasingType = Literal["linear", "ease-in", "ease-out", "ease-in-out", "spring"]

TrackType = Literal["component", "text", "shape", "cursor", "audio", "video", "image"]


class PropertyKeyframe(TypedDict):
    """Editor keyframe. `frame` is relative to the item start."""
    frame: float
    values: dict[str, float]
    easing: EasingType


# Items carry type-specific fields (text, shapeType, componentId, ...)
GeneratedItem = dict[str, Any]


class GeneratedTrack(TypedDict, total=False):
    id: str                     # Only set once converted for the editor
    name: str
    type: TrackType
    locked: bool
    visible: bool
    items: list[GeneratedItem]


class GeneratedComposition(TypedDict):
    name: str
    width: int
    height: int
    fps: int
    durationInFrames: int
    tracks: list[GeneratedTrack]


class CompositionVersion(TypedDict):
    """One scored composition from the refinement loop."""
    composition: GeneratedComposition
    quality: RefinementResult
    iteration: int


# ─────────────────────────────────────────────────────────────
# Graph State
# ─────────────────────────────────────────────────────────────

def merge_timings(left: dict[str, float], right: dict[str, float]) -> dict[str, float]:
    """Reducer: later stage timings add to (or extend) earlier ones."""
    merged = dict(left or {})
    for stage, ms in (right or {}).items():
        merged[stage] = merged.get(stage, 0) + ms
    return merged


class GenerationState(TypedDict, total=False):
    """
    LangGraph state for one generation run.

    Fields:
    - context: immutable request context, set once at START
    - min_quality_score / max_refinement_iterations: quality gate for this run
    - video_plan: director output
    - detailed_scenes: appended by each parallel plan_scene branch
    - degradations: scenes that fell back to their minimal version
    - composition: the current composition (replaced by each fix pass)
    - quality: the current composition's score
    - versions: every scored composition, in order
    - refinement_iterations: fix passes applied so far
    - stage_timings: wall time per stage in ms
    - error: set when a stage failed terminally
    """
    context: GenerationContext
    min_quality_score: float
    max_refinement_iterations: int

    video_plan: Optional[VideoPlan]
    detailed_scenes: Annotated[list[DetailedScene], operator.add]
    degradations: Annotated[list[StageDegradation], operator.add]

    composition: Optional[GeneratedComposition]
    quality: Optional[RefinementResult]
    versions: Annotated[list[CompositionVersion], operator.add]
    refinement_iterations: int

    stage_timings: Annotated[dict[str, float], merge_timings]
    error: Optional[str]


class ScenePlanTask(TypedDict):
    """Payload sent to each parallel plan_scene branch."""
    context: GenerationContext
    video_plan: VideoPlan
    scene_index: int
    scene_start_frame: int
