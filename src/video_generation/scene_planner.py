"""
Scene Planner

Turns one SceneOutline into a DetailedScene: concrete texts, shapes,
images, cursor path, component display config and narration.

Every scene is planned independently (it only needs the VideoPlan and its
own absolute start frame), so the graph fans out one plan_scene branch per
scene with `Send`. `plan_all_scenes` does the same with `asyncio.gather`
for standalone use.

## Graceful Degradation

A scene whose generation fails never sinks the run. It becomes a single
centered title built from the outline's purpose, and a StageDegradation
record reports it in the result metadata.
"""
import asyncio
import json
import time
from typing import Any, Optional

from langchain_core.runnables import RunnableConfig
from pydantic import BaseModel, Field

from config import Config
from .errors import GenerationError, StageDegradation
from .generation import StructuredGenerator
from .models import (
    AnimationSpec,
    ComponentInfo,
    DetailedScene,
    DisplaySize,
    GenerationContext,
    Position,
    RawKeyframe,
    SceneComponent,
    SceneCursor,
    SceneImage,
    SceneOutline,
    SceneShape,
    SceneText,
    VideoPlan,
)
from .prompts import DESIGN_TOKENS, GLOSSARY, SPRING_CONFIGS
from .runtime import (
    ProgressCallback,
    elapsed_ms,
    get_generator,
    get_progress_callback,
    report_progress,
)
from .state import ScenePlanTask
from .timing import is_number


FALLBACK_SCENE_DURATION = 150  # 5s at 30fps


# ─────────────────────────────────────────────────────────────
# Output Contract
# ─────────────────────────────────────────────────────────────

class ComponentDisplayConfig(BaseModel):
    """How the scene's component is presented."""
    displaySize: DisplaySize = Field(description="Device frame: phone, laptop, or full")
    containerWidth: Optional[float] = None
    containerHeight: Optional[float] = None
    objectPosition: Optional[str] = None
    propsJson: Optional[str] = Field(
        None,
        description="JSON object of prop overrides for the component; omit to use its demo props",
    )
    keyframes: Optional[list[RawKeyframe]] = None
    enterAnimation: Optional[AnimationSpec] = None


class ScenePlanOutput(BaseModel):
    """Detailed scene specification returned by the scene planner."""
    component: Optional[ComponentDisplayConfig] = Field(
        None,
        description="Only when the scene features a component",
    )
    texts: list[SceneText] = Field(default_factory=list)
    shapes: list[SceneShape] = Field(default_factory=list)
    images: list[SceneImage] = Field(
        default_factory=list,
        description="Logos, icons or screenshots from the available assets",
    )
    cursor: Optional[SceneCursor] = Field(None, description="Cursor path for tutorial scenes")
    narrationScript: Optional[str] = Field(
        None,
        description="Voiceover script for this scene (only when voiceover is enabled)",
    )


# ─────────────────────────────────────────────────────────────
# Scene Planner Prompt
# ─────────────────────────────────────────────────────────────

SCENE_PLANNER_SYSTEM_PROMPT = f"""## ROLE
You are a motion graphics designer. You turn scene intents into precise element positions, animations and timing.

## RULE #1: KEYFRAME FRAMES ARE RELATIVE

**frame: 0 = the instant THIS element appears, NOT the start of the video.**

```
WRONG: [{{frame: 0, opacity: 0}}, {{frame: 300, opacity: 1}}]  // a 10 second fade
RIGHT: [{{frame: 0, opacity: 0}}, {{frame: 20, opacity: 1}}]   // a 0.67 second fade
```

Entrances run from frame 0 to frame 15-30 (never past 60).
`offsetFrames` is what places an element on the scene timeline.

{GLOSSARY}

## CORE RULES

1. Keyframes start at frame 0, always
2. Keep elements inside the safe zone (x 0.03-0.97, y 0.055-0.945)
3. Stagger entrances 10-20 frames apart, never all at once
4. Spring animations only: spring-scale, spring-slide, spring-bounce
5. Text goes on the black canvas, not over light components
6. Elements stay on screen 90+ frames
7. Tutorials show full cursor journeys: hover → click → type → submit
8. Cursor targets use the component's interactive-element selectors; x/y (0-1) only as fallback

{DESIGN_TOKENS}

{SPRING_CONFIGS}

## LAYOUT PATTERNS

Centered showcase (phone):
- Title x 0.5, y 0.10 | Subtitle x 0.5, y 0.18 | Component x 0.5, y 0.50 | CTA x 0.5, y 0.88

Full-width feature (laptop):
- Title x 0.5, y 0.08 | Component x 0.5, y 0.52 | Label x 0.5, y 0.92 with a dark backgroundColor

Positions are normalized 0-1. Return the complete scene."""


def format_component_for_prompt(component: Optional[ComponentInfo]) -> str:
    if component is None:
        return ""

    relationships = []
    if component.uses_components:
        relationships.append(f"- Uses: [{', '.join(component.uses_components)}]")
    if component.used_by_components:
        relationships.append(f"- Used by: [{', '.join(component.used_by_components)}]")
    if component.related_components:
        relationships.append(f"- Related: [{', '.join(component.related_components)}]")

    return f"""
## Component to Feature
- Name: {component.name}
- Category: {component.category}
- Description: {component.description or "No description"}
- Props: {", ".join(component.props) or "None"}
- Demo Props: {json.dumps(component.demo_props or {}, indent=2)}

### Interactive Elements (use these for cursor targeting)
{component.interactive_elements or "None identified - use fallback x/y positioning"}

### Component Relationships
{chr(10).join(relationships) or "None"}

The component most likely has a light background. Put text beside or below
it on the black canvas, or give the text a dark backgroundColor.
"""


def format_image_assets_for_prompt(context: GenerationContext) -> str:
    if not context.available_assets:
        return ""

    images = [a for a in context.available_assets if a.type == "image"]
    lines = "\n".join(f"- **{a.name}**: {a.url}" for a in images) or "No images available"
    return f"""
## Available Assets (Images)
Reference these uploaded images by their exact URL in the "images" array:
{lines}
"""


def build_scene_planner_prompt(
    scene: SceneOutline,
    plan: VideoPlan,
    context: GenerationContext,
    scene_start_frame: int,
    component: Optional[ComponentInfo] = None,
) -> str:
    fps = context.composition.fps
    key_points = "\n".join(f"{i}. {p}" for i, p in enumerate(scene.key_points, 1))

    interaction_goals = ""
    if scene.interaction_goals:
        goals = "\n".join(f"{i}. {g}" for i, g in enumerate(scene.interaction_goals, 1))
        interaction_goals = f"\n## Interaction Goals (Tutorial)\n{goals}\n"

    if context.include_voiceover:
        voiceover = "Enabled - write a narration script that fits the scene duration and key points."
    else:
        voiceover = "Disabled - no narration needed."

    showcase = (
        "Creates realistic cursor interactions demonstrating the component"
        if scene.type == "tutorial"
        else "Showcases the component attractively"
    )

    return f"""## Video Context
- Title: "{plan.title}"
- Tone: {plan.tone}
- Style: {plan.style}
- Target Audience: {plan.audience}
- Core Message: {plan.core_message}

## Scene to Detail
- Scene ID: {scene.id}
- Type: {scene.type}
- Purpose: {scene.purpose}
- Start Frame: {scene_start_frame}
- Duration: {scene.duration_in_frames} frames ({scene.duration_in_frames / fps:.1f}s)
- Animation Intensity: {scene.animation_intensity}

## Key Points to Communicate
{key_points or "- (none given)"}
{interaction_goals}{format_component_for_prompt(component)}{format_image_assets_for_prompt(context)}
## Composition
- Width: {context.composition.width}px
- Height: {context.composition.height}px
- FPS: {fps}

## Voiceover
{voiceover}

## Your Task
Create a detailed scene that:
1. Positions elements with a clear visual hierarchy
2. Uses animations matching the "{scene.animation_intensity}" intensity
3. Communicates every key point
4. {showcase}
5. Keeps the {plan.tone} tone and {plan.style} style

Remember: keyframe frames are relative to the element start (0 = when it appears after offsetFrames)."""


# ─────────────────────────────────────────────────────────────
# Scene Construction
# ─────────────────────────────────────────────────────────────

def compute_scene_starts(plan: VideoPlan) -> list[int]:
    """Absolute start frame of every scene (running offset)."""
    starts = []
    current = 0
    for scene in plan.scenes:
        starts.append(current)
        current += scene_duration(scene)
    return starts


def scene_duration(scene: SceneOutline) -> int:
    """The outline's duration, or 5 seconds when it is unusable."""
    duration = scene.duration_in_frames
    if not is_number(duration) or duration <= 0:
        print(f"   ⚠️  Scene {scene.id} has invalid durationInFrames {duration!r}, using {FALLBACK_SCENE_DURATION}")
        return FALLBACK_SCENE_DURATION
    return int(duration)


def fallback_title(scene: SceneOutline) -> SceneText:
    return SceneText(
        text=scene.purpose,
        role="title",
        font_size=48,
        color="#ffffff",
        position=Position(x=0.5, y=0.5),
        offset_frames=0,
        text_align="center",
    )


def build_fallback_scene(scene: SceneOutline, scene_start_frame: int) -> DetailedScene:
    """Minimal scene: the outline's purpose as a single centered title."""
    return DetailedScene(
        scene_id=scene.id,
        from_=scene_start_frame,
        duration_in_frames=scene_duration(scene),
        texts=[fallback_title(scene)],
        shapes=[],
    )


def _parse_props(props_json: Optional[str], component: ComponentInfo) -> dict[str, Any]:
    defaults = dict(component.demo_props or {})
    if not props_json:
        return defaults
    try:
        overrides = json.loads(props_json)
    except json.JSONDecodeError:
        print(f"   ⚠️  Ignoring malformed props for {component.name}")
        return defaults
    if not isinstance(overrides, dict):
        return defaults
    return {**defaults, **overrides}


def build_detailed_scene(
    output: ScenePlanOutput,
    scene: SceneOutline,
    scene_start_frame: int,
    component: Optional[ComponentInfo] = None,
) -> DetailedScene:
    """
    Combine the planner output with the outline's timing.

    The component block is kept only when the outline resolved to a catalog
    component AND the planner configured it. A scene that comes back empty
    gets the fallback title so it is never blank.
    """
    component_block = None
    if component is not None and output.component is not None:
        config = output.component
        component_block = SceneComponent(
            component_id=component.id,
            display_size=config.displaySize,
            container_width=config.containerWidth,
            container_height=config.containerHeight,
            object_position=config.objectPosition,
            props=_parse_props(config.propsJson, component),
            keyframes=config.keyframes,
            enter_animation=config.enterAnimation,
        )

    texts = list(output.texts)
    if not (texts or output.shapes or output.images or component_block):
        texts = [fallback_title(scene)]

    return DetailedScene(
        scene_id=scene.id,
        from_=scene_start_frame,
        duration_in_frames=scene_duration(scene),
        texts=texts,
        shapes=list(output.shapes),
        images=list(output.images),
        cursor=output.cursor,
        component=component_block,
        narration_script=output.narrationScript,
    )


# ─────────────────────────────────────────────────────────────
# Stage Entry Points
# ─────────────────────────────────────────────────────────────

async def plan_scene(
    scene: SceneOutline,
    plan: VideoPlan,
    context: GenerationContext,
    scene_start_frame: int,
    generator: StructuredGenerator,
    on_progress: Optional[ProgressCallback] = None,
) -> tuple[DetailedScene, Optional[StageDegradation]]:
    """
    Plan one scene.

    Returns:
        (detailed_scene, degradation) - degradation is None unless the
        fallback scene was used
    """
    report_progress(on_progress, f'🎨 Scene Planner: Designing "{scene.type}" scene - {scene.purpose[:50]}...')

    component = context.find_component(scene.component_id)

    try:
        result = await generator.generate(
            SCENE_PLANNER_SYSTEM_PROMPT,
            build_scene_planner_prompt(scene, plan, context, scene_start_frame, component),
            ScenePlanOutput,
            temperature=Config.SCENE_PLANNER_TEMPERATURE,
        )
    except GenerationError as e:
        print(f"   ⚠️  Scene planner failed for {scene.id}, using fallback: {e}")
        report_progress(on_progress, f"⚠️ Scene Planner: {scene.id} fell back to a title card")
        degradation = StageDegradation(stage="scene_planner", scene_id=scene.id, reason=str(e))
        return build_fallback_scene(scene, scene_start_frame), degradation

    detailed = build_detailed_scene(result.data, scene, scene_start_frame, component)

    images = f", {len(detailed.images)} images" if detailed.images else ""
    report_progress(
        on_progress,
        f'✅ Scene Planner: Completed "{scene.id}" with {len(detailed.texts)} texts, {len(detailed.shapes)} shapes{images}',
    )
    return detailed, None


async def plan_all_scenes(
    plan: VideoPlan,
    context: GenerationContext,
    generator: StructuredGenerator,
    on_progress: Optional[ProgressCallback] = None,
) -> tuple[list[DetailedScene], list[StageDegradation]]:
    """Plan every scene concurrently. Results keep the plan's scene order."""
    report_progress(on_progress, f"🎨 Scene Planner: Planning {len(plan.scenes)} scenes in parallel...")

    starts = compute_scene_starts(plan)
    results = await asyncio.gather(*[
        plan_scene(scene, plan, context, starts[i], generator, on_progress)
        for i, scene in enumerate(plan.scenes)
    ])

    scenes = [scene for scene, _ in results]
    degradations = [d for _, d in results if d is not None]

    report_progress(on_progress, f"✅ Scene Planner: All {len(scenes)} scenes planned")
    return scenes, degradations


async def plan_scene_node(task: ScenePlanTask, config: RunnableConfig) -> dict:
    """
    LangGraph node: plan a single scene.

    Reached through `Send`, one branch per scene. Results are appended to
    `detailed_scenes` by the reducer, in completion order.
    """
    plan = task["video_plan"]
    scene = plan.scenes[task["scene_index"]]
    started = time.perf_counter()

    detailed, degradation = await plan_scene(
        scene,
        plan,
        task["context"],
        task["scene_start_frame"],
        get_generator(config),
        get_progress_callback(config),
    )

    marker = "⚠️ " if degradation else "✓"
    print(f"   {marker} {scene.id}: {len(detailed.texts)} texts, {len(detailed.shapes)} shapes"
          f"{', component' if detailed.component else ''}{', cursor' if detailed.cursor else ''}")

    return {
        "detailed_scenes": [detailed],
        "degradations": [degradation] if degradation else [],
        "stage_timings": {f"scene_planner:{scene.id}": elapsed_ms(started)},
    }
