"""
Director

Reads the request and the component catalog and produces the VideoPlan:
title, audience, message, tone, style and an ordered list of scene outlines.

The model assigns each scene a PERCENTAGE of the total, not frames. That
keeps narrative planning independent of frame math; conversion (with
clamping) happens here via `percentage_to_frames`.

There is no fallback plan. If the generation service never produces one,
the run fails with TerminalStageFailure.
"""
import time
from typing import Optional

from langchain_core.runnables import RunnableConfig
from pydantic import BaseModel, Field

from config import Config
from .errors import GenerationError, TerminalStageFailure
from .generation import StructuredGenerator
from .models import (
    AnimationIntensity,
    ComponentInfo,
    GenerationContext,
    SceneOutline,
    SceneType,
    Style,
    Tone,
    VideoPlan,
)
from .runtime import (
    ProgressCallback,
    elapsed_ms,
    get_generator,
    get_progress_callback,
    report_progress,
)
from .timing import percentage_to_frames


MIN_SCENES = 2
MAX_SCENES = 15
DURATION_TOLERANCE = 0.10
MIN_SCENE_SECONDS = 1
MIN_TUTORIAL_SECONDS = 3


# ─────────────────────────────────────────────────────────────
# Output Contract
# ─────────────────────────────────────────────────────────────

class PlannedScene(BaseModel):
    type: SceneType
    purpose: str = Field(description="What this scene accomplishes")
    durationPercentage: Optional[float] = Field(
        None,
        description="Share of the total duration, 5-50 (percent)",
    )
    componentName: Optional[str] = Field(
        None,
        description="Exact name of the catalog component to showcase, if any",
    )
    keyPoints: list[str] = Field(default_factory=list, description="Key messages to communicate")
    interactionGoals: Optional[list[str]] = Field(
        None,
        description="For tutorials: the interactions to demonstrate, in order",
    )
    animationIntensity: AnimationIntensity = "medium"


class DirectorPlanOutput(BaseModel):
    """Structured video plan returned by the director."""
    title: str = Field(description="Video title that captures the essence")
    audience: str = Field(description='Target audience, e.g. "developers evaluating UI libraries"')
    coreMessage: str = Field(description="The main value proposition or takeaway")
    tone: Tone
    style: Style
    scenes: list[PlannedScene] = Field(min_length=1, description="Ordered list of scenes")


# ─────────────────────────────────────────────────────────────
# Director Prompt
# ─────────────────────────────────────────────────────────────

DIRECTOR_SYSTEM_PROMPT = """You are a video director planning professional motion-graphics videos that showcase UI components.

## Narrative Structure (REQUIRED)

1. **HOOK** (first 2-3s): bold title, one-line value proposition
2. **CONTEXT** (3-5s): what the product solves
3. **SHOWCASE** (50-70% of the video): the components in action, in device frames
4. **CALL-TO-ACTION** (last 2-3s): strong closing message and next step

## Scene Types

| Type | Purpose | Typical Length |
|------|---------|----------------|
| intro | Hook + title | 2-4s |
| feature | Show a component | 4-8s |
| tutorial | Interactive demo with a cursor | 6-12s |
| transition | Connector between scenes | 0.5-1s |
| outro | CTA + closing | 2-3s |

## Pacing

- Short videos (15-20s): 2-3 scenes, one component
- Medium videos (30-45s): 4-5 scenes, 2-3 components
- Long videos (60s+): 6-8 scenes, room for tutorials

## Rules

- Every video has an intro and an outro
- Feature 1-3 components at most; give each 4-8 seconds
- Tutorials plan COMPLETE user journeys (hover → click → type → submit)
- Duration is a PERCENTAGE of the total per scene (5-50); percentages should add up to ~100
- Only name components that appear in the catalog, spelled exactly as listed
- Match animation intensity to tone: playful = high, professional = medium

Return the complete plan."""


def format_components_for_prompt(components: tuple[ComponentInfo, ...]) -> str:
    """Catalog summary for the director. Props are capped at five per component."""
    if not components:
        return "No components discovered yet."

    lines = []
    for component in components:
        line = f"- **{component.name}** ({component.category})"
        if component.description:
            line += f": {component.description}"
        if component.interactive_elements:
            line += f"\n  Interactive elements (for cursor): {component.interactive_elements}"
        if component.props:
            line += f"\n  Props: {', '.join(component.props[:5])}"
        if component.uses_components:
            line += f"\n  Uses: [{', '.join(component.uses_components)}]"
        if component.used_by_components:
            line += f"\n  Used by: [{', '.join(component.used_by_components)}]"
        if component.related_components:
            line += f"\n  Related: [{', '.join(component.related_components)}]"
        lines.append(line)

    return "\n".join(lines)


def build_director_prompt(context: GenerationContext) -> str:
    settings = context.composition
    seconds = context.target_duration_seconds

    return f"""## User Request
"{context.user_request}"

## Video Specifications
- Duration: {seconds:g} seconds ({settings.fps} fps = {settings.duration_in_frames} frames)
- Resolution: {settings.width}x{settings.height}
- Voiceover: {"Yes" if context.include_voiceover else "No"}

## Available Components
{format_components_for_prompt(context.components)}

## Your Task
Create a video plan that:
1. Addresses the user's request directly
2. Showcases the available components effectively
3. Keeps good pacing for a {seconds:g}s video
4. Uses the right scene types in a logical order
5. Takes the component relationships into account

Think step by step about the narrative flow, then return the plan."""


# ─────────────────────────────────────────────────────────────
# Plan Conversion & Validation
# ─────────────────────────────────────────────────────────────

def resolve_component(
    name: Optional[str],
    components: tuple[ComponentInfo, ...],
) -> Optional[ComponentInfo]:
    """Case-insensitive exact name match against the catalog."""
    if not name:
        return None
    wanted = name.strip().lower()
    for component in components:
        if component.name.lower() == wanted:
            return component
    return None


def build_video_plan(output: DirectorPlanOutput, context: GenerationContext) -> VideoPlan:
    """Turn the director's percentages into a frame-based VideoPlan."""
    total_frames = context.composition.duration_in_frames
    scene_count = len(output.scenes)

    scenes = []
    for i, planned in enumerate(output.scenes):
        component = resolve_component(planned.componentName, context.components)
        if planned.componentName and component is None:
            print(f"   ⚠️  Unknown component \"{planned.componentName}\" in scene-{i + 1}, scene will have no component")

        scenes.append(SceneOutline(
            id=f"scene-{i + 1}",
            type=planned.type,
            purpose=planned.purpose,
            duration_in_frames=percentage_to_frames(
                planned.durationPercentage, total_frames, scene_count
            ),
            component_id=component.id if component else None,
            component_name=planned.componentName,
            key_points=planned.keyPoints,
            interaction_goals=planned.interactionGoals,
            animation_intensity=planned.animationIntensity,
        ))

    return VideoPlan(
        title=output.title,
        audience=output.audience,
        core_message=output.coreMessage,
        tone=output.tone,
        style=output.style,
        duration_in_frames=total_frames,
        scenes=scenes,
    )


def validate_video_plan(plan: VideoPlan, fps: int = 30) -> tuple[bool, list[str]]:
    """
    Advisory checks on a plan. Never fatal.

    Returns:
        (is_valid, list_of_issues)
    """
    issues = []

    scene_total = sum(s.duration_in_frames for s in plan.scenes)
    if abs(scene_total - plan.duration_in_frames) > plan.duration_in_frames * DURATION_TOLERANCE:
        issues.append(
            f"Scene durations ({scene_total}) don't match total ({plan.duration_in_frames})"
        )

    if len(plan.scenes) < MIN_SCENES:
        issues.append(f"Video should have at least {MIN_SCENES} scenes")
    if len(plan.scenes) > MAX_SCENES:
        issues.append(f"Too many scenes (>{MAX_SCENES}) may make the video feel rushed")

    scene_types = {s.type for s in plan.scenes}
    if "intro" not in scene_types:
        issues.append("Missing intro scene")
    if "outro" not in scene_types:
        issues.append("Missing outro scene")

    for scene in plan.scenes:
        seconds = scene.duration_in_frames / fps
        if seconds < MIN_SCENE_SECONDS:
            issues.append(f'Scene "{scene.id}" is too short ({seconds:.1f}s)')
        if scene.type == "tutorial" and seconds < MIN_TUTORIAL_SECONDS:
            issues.append(f'Tutorial scene "{scene.id}" needs more time for interactions')

    return len(issues) == 0, issues


def print_plan_summary(plan: VideoPlan, fps: int = 30):
    print(f"\n📋 Plan: \"{plan.title}\" ({plan.tone}, {plan.style})")
    print(f"   Audience: {plan.audience}")
    for scene in plan.scenes:
        component = f" [{scene.component_name}]" if scene.component_id else ""
        print(f"   {scene.id} {scene.type:<10} {scene.duration_in_frames / fps:5.1f}s{component} - {scene.purpose[:60]}")


# ─────────────────────────────────────────────────────────────
# Stage Entry Points
# ─────────────────────────────────────────────────────────────

async def run_director(
    context: GenerationContext,
    generator: StructuredGenerator,
    on_progress: Optional[ProgressCallback] = None,
) -> VideoPlan:
    """
    Plan the video.

    Raises:
        TerminalStageFailure: the generation service never returned a plan
    """
    report_progress(on_progress, "🎬 Director: Analyzing request and planning video structure...")

    try:
        result = await generator.generate(
            DIRECTOR_SYSTEM_PROMPT,
            build_director_prompt(context),
            DirectorPlanOutput,
            temperature=Config.DIRECTOR_TEMPERATURE,
        )
    except GenerationError as e:
        raise TerminalStageFailure("director", f"Director failed to create a video plan: {e}", e) from e

    plan = build_video_plan(result.data, context)

    report_progress(on_progress, f'✅ Director: Created plan with {len(plan.scenes)} scenes - "{plan.title}"')
    return plan


async def director_node(state: dict, config: RunnableConfig) -> dict:
    """LangGraph node: create the VideoPlan."""
    print("\n🎬 Director starting...")

    context: GenerationContext = state["context"]
    on_progress = get_progress_callback(config)
    started = time.perf_counter()

    report_progress(on_progress, "📋 Stage 1/4: Director planning video structure...")

    try:
        plan = await run_director(context, get_generator(config), on_progress)
    except TerminalStageFailure as e:
        print(f"   ❌ {e}")
        return {
            "error": str(e),
            "stage_timings": {"director": elapsed_ms(started)},
        }

    is_valid, issues = validate_video_plan(plan, context.composition.fps)
    if not is_valid:
        print("   ⚠️  Plan validation issues:")
        for issue in issues:
            print(f"      - {issue}")

    print_plan_summary(plan, context.composition.fps)

    return {
        "video_plan": plan,
        "stage_timings": {"director": elapsed_ms(started)},
    }
