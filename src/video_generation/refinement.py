"""
Refinement

A model acts as the critic: it scores the assembled composition against the
plan (0-100) and lists issues, some with a mechanical fix attached.

## The Loop (driven by the graph)

    refine → below threshold and budget left? → apply_fixes → refine → ...

Every scored version is kept. When the budget runs out without reaching
the threshold, the best-scoring version wins, so the run always ends with a
usable, quality-disclosed composition.

## Auto-applied Fixes

| Action | Applied | Effect |
|--------|---------|--------|
| adjust-timing | yes | `from` / `durationInFrames` |
| adjust-position | yes | position merged over the current one |
| modify-animation | yes | keyframes replaced (repaired + normalized; cursor paths stay in pixels) |
| add-element | no | left for the score to reflect |
| remove-element | no | left for the score to reflect |

The critic never sees the full composition, only a compact digest, to
keep the prompt bounded.
"""
import copy
import json
import time
from typing import Optional

from langchain_core.runnables import RunnableConfig
from pydantic import BaseModel, Field

from config import Config
from .errors import GenerationError
from .generation import StructuredGenerator
from .models import (
    DetailedScene,
    GenerationContext,
    RefinementIssue,
    RefinementResult,
    VideoPlan,
)
from .prompts import SHARED_AGENT_CONTEXT
from .runtime import (
    ProgressCallback,
    elapsed_ms,
    get_generator,
    get_progress_callback,
    report_progress,
)
from .assembler import build_cursor_keyframes
from .state import CompositionVersion, GeneratedComposition, GeneratedItem
from .timing import repair_keyframes


MAX_PREVIEWS_PER_TRACK = 5
MAX_SAMPLES_PER_TRACK = 3
MAX_SAMPLE_ITEMS = 5

FALLBACK_SCORE = 70
FALLBACK_SUMMARY = "Unable to analyze composition in detail"


# ─────────────────────────────────────────────────────────────
# Output Contract
# ─────────────────────────────────────────────────────────────

class RefinementOutput(BaseModel):
    """Quality analysis returned by the critic."""
    overallScore: float = Field(ge=0, le=100, description="Quality score from 0-100")
    summary: str = Field(description="Brief summary of the composition quality")
    issues: list[RefinementIssue] = Field(default_factory=list)


# ─────────────────────────────────────────────────────────────
# Refinement Prompt
# ─────────────────────────────────────────────────────────────

CRITIC_INSTRUCTIONS = """## ROLE
You are a video quality critic. You score compositions and return SPECIFIC fixes, not vague suggestions.

## SCORING WEIGHTS (sum to 100%)
- Visual composition: 30% (safe zones, no text over components, clear hierarchy, 3-4 colors max)
- Timing: 25% (90+ frames on screen, no rushed sections under 60 frames, pacing fits the tone)
- Narrative flow: 25% (hook in the first 15%, showcase in the middle, CTA at the end)
- Animation quality: 15% (spring animations, 10-20 frame stagger, no linear easing)
- Accessibility: 5% (readable sizes, contrast, calm motion)

## FIX RECIPES
Reference items by the `id` shown in the sample items.

| Problem | Fix |
|---------|-----|
| Text overlaps component (both at y ~0.5) | adjust-position, details.position {y: 0.10} or {y: 0.88} |
| Entrance completes in < 10 frames | modify-animation, details.keyframes [{frame: 0, scale: 0}, {frame: 20, scale: 1}] |
| Elements appear at the same time | adjust-timing, details.from shifted by 12 frames |
| Element on screen too briefly | adjust-timing, details.durationInFrames |
| Missing intro or outro | add-element, details.sceneType |

Keyframe frames are relative to the item start (0 = when it appears).

## SCORE THRESHOLDS
| Score | Meaning |
|-------|---------|
| 90-100 | Ship it |
| 75-89 | Minor patches |
| 60-74 | Several patches |
| 40-59 | Major patches |
| 0-39 | Fundamentally broken; mark as critical |

"Improve the timing" is not a fix. {action: "adjust-timing", details: {from: 60, durationInFrames: 120}} is.

Return your complete assessment."""

REFINEMENT_SYSTEM_PROMPT = f"{CRITIC_INSTRUCTIONS}\n\n{SHARED_AGENT_CONTEXT}"


def _item_preview(item: GeneratedItem) -> str:
    item_type = item.get("type")
    if item_type == "text":
        return f'"{str(item.get("text", ""))[:30]}..."'
    if item_type == "component":
        return f"Component({item.get('componentId')})"
    if item_type == "shape":
        return f"Shape({item.get('shapeType')})"
    if item_type == "cursor":
        return "Cursor"
    return str(item_type)


def build_composition_summary(
    composition: GeneratedComposition,
    scenes: list[DetailedScene],
    fps: int,
) -> dict[str, str]:
    """
    Compact digest of a composition for the critic.

    Returns:
        {"tracks": ..., "timeline": ..., "samples": ...}
    """
    track_lines = []
    samples = []
    for track in composition["tracks"]:
        items = track["items"]
        previews = ", ".join(_item_preview(i) for i in items[:MAX_PREVIEWS_PER_TRACK])
        more = "..." if len(items) > MAX_PREVIEWS_PER_TRACK else ""
        track_lines.append(f"- {track['name']} ({track['type']}): {len(items)} items [{previews}{more}]")

        for item in items[:MAX_SAMPLES_PER_TRACK]:
            samples.append(json.dumps(item, indent=2, default=str))

    timeline_lines = []
    for scene in scenes:
        end = scene.from_ + scene.duration_in_frames
        parts = [f"{len(scene.texts)} texts", f"{len(scene.shapes)} shapes"]
        if scene.images:
            parts.append(f"{len(scene.images)} images")
        if scene.component:
            parts.append("1 component")
        if scene.cursor:
            parts.append("cursor")
        timeline_lines.append(
            f"- {scene.scene_id}: frames {scene.from_}-{end} "
            f"({scene.duration_in_frames / fps:.1f}s) - {', '.join(parts)}"
        )

    return {
        "tracks": "\n".join(track_lines) or "- (no tracks)",
        "timeline": "\n".join(timeline_lines) or "- (no scenes)",
        "samples": "\n\n".join(samples[:MAX_SAMPLE_ITEMS]),
    }


def build_refinement_prompt(
    composition: GeneratedComposition,
    plan: VideoPlan,
    scenes: list[DetailedScene],
    context: GenerationContext,
) -> str:
    fps = context.composition.fps
    summary = build_composition_summary(composition, scenes, fps)
    outline = "\n".join(f"- {s.id} ({s.type}): {s.purpose}" for s in plan.scenes)

    return f"""## Original Video Plan
- Title: "{plan.title}"
- Audience: {plan.audience}
- Core Message: {plan.core_message}
- Tone: {plan.tone}
- Style: {plan.style}
- Planned Scenes: {len(plan.scenes)}

## Scene Outline
{outline}

## Generated Composition
- Duration: {composition["durationInFrames"]} frames ({composition["durationInFrames"] / fps:.1f}s)
- Resolution: {composition["width"]}x{composition["height"]}
- FPS: {composition["fps"]}

## Tracks
{summary["tracks"]}

## Scene Timeline
{summary["timeline"]}

## Sample Items (for detailed review)
```json
{summary["samples"]}
```

## Your Task
Review the composition against the plan and list:
1. Critical issues that must be fixed
2. Warnings that should be addressed
3. Suggestions for improvement

Consider whether it delivers on the plan, whether pacing fits tone and
audience, whether elements are readable and well placed, and whether the
animations help or distract."""


# ─────────────────────────────────────────────────────────────
# Quality Gate
# ─────────────────────────────────────────────────────────────

def meets_quality_threshold(result: RefinementResult, min_score: float = 60) -> bool:
    """Score at or above the minimum AND no critical issue."""
    return result.overall_score >= min_score and result.critical_count == 0


def fallback_result() -> RefinementResult:
    return RefinementResult(
        overall_score=FALLBACK_SCORE,
        summary=FALLBACK_SUMMARY,
        issues=[],
        recommended_changes=0,
    )


def select_best_version(versions: list[CompositionVersion]) -> CompositionVersion:
    """Highest score wins; the earliest version wins a tie."""
    best = versions[0]
    for version in versions[1:]:
        if version["quality"].overall_score > best["quality"].overall_score:
            best = version
    return best


# ─────────────────────────────────────────────────────────────
# Fix Application
# ─────────────────────────────────────────────────────────────

def _fix_timing(item: GeneratedItem, issue: RefinementIssue, composition: GeneratedComposition) -> bool:
    details = issue.suggested_fix.details
    changed = False
    if details.from_ is not None:
        item["from"] = max(0, int(round(details.from_)))
        changed = True
    if details.duration_in_frames is not None:
        item["durationInFrames"] = max(1, int(round(details.duration_in_frames)))
        changed = True
    return changed


def _fix_position(item: GeneratedItem, issue: RefinementIssue, composition: GeneratedComposition) -> bool:
    patch = issue.suggested_fix.details.position
    if patch is None:
        return False
    updates = patch.model_dump(exclude_none=True)
    if not updates:
        return False
    item["position"] = {**(item.get("position") or {"x": 0.5, "y": 0.5}), **updates}
    return True


def _fix_animation(item: GeneratedItem, issue: RefinementIssue, composition: GeneratedComposition) -> bool:
    keyframes = issue.suggested_fix.details.keyframes
    if not keyframes:
        return False
    raw = [kf.model_dump(by_alias=True, exclude_none=True) for kf in keyframes]
    if item.get("type") == "cursor":
        # Cursor paths stay in pixels and span their whole scene
        item["keyframes"] = build_cursor_keyframes(
            raw,
            item.get("durationInFrames", 1),
            composition.get("width", 1920),
            composition.get("height", 1080),
        )
    else:
        item["keyframes"] = repair_keyframes(raw)
    return True


FIX_HANDLERS = {
    "adjust-timing": _fix_timing,
    "adjust-position": _fix_position,
    "modify-animation": _fix_animation,
}


def apply_fixes(
    composition: GeneratedComposition,
    issues: list[RefinementIssue],
) -> tuple[GeneratedComposition, int]:
    """
    Apply every machine-actionable fix to a copy of the composition.

    Fixes are matched to items by id. add-element / remove-element and
    issues without an item id are skipped.

    Returns:
        (fixed_composition, number_of_fixes_applied)
    """
    fixed = copy.deepcopy(composition)
    items_by_id = {
        item["id"]: item
        for track in fixed["tracks"]
        for item in track["items"]
        if item.get("id")
    }

    applied = 0
    for issue in issues:
        if issue.suggested_fix is None or not issue.item_id:
            continue

        handler = FIX_HANDLERS.get(issue.suggested_fix.action)
        item = items_by_id.get(issue.item_id)
        if handler is None or item is None:
            continue

        if handler(item, issue, fixed):
            applied += 1

    return fixed, applied


# ─────────────────────────────────────────────────────────────
# Stage Entry Points
# ─────────────────────────────────────────────────────────────

async def run_refinement(
    composition: GeneratedComposition,
    plan: VideoPlan,
    scenes: list[DetailedScene],
    context: GenerationContext,
    generator: StructuredGenerator,
    on_progress: Optional[ProgressCallback] = None,
) -> RefinementResult:
    """Score the composition. A failed critic call yields the neutral fallback result."""
    report_progress(on_progress, "🔍 Refinement: Analyzing composition quality...")

    try:
        response = await generator.generate(
            REFINEMENT_SYSTEM_PROMPT,
            build_refinement_prompt(composition, plan, scenes, context),
            RefinementOutput,
            temperature=Config.REFINEMENT_TEMPERATURE,
        )
    except GenerationError as e:
        print(f"   ⚠️  Critic unavailable, using fallback score: {e}")
        return fallback_result()

    output = response.data
    result = RefinementResult(
        overall_score=output.overallScore,
        summary=output.summary,
        issues=output.issues,
        recommended_changes=sum(1 for i in output.issues if i.severity in ("critical", "warning")),
    )

    report_progress(
        on_progress,
        f"✅ Refinement: Score {result.overall_score:g}/100 - "
        f"{result.critical_count} critical, {result.warning_count} warnings",
    )
    return result


async def refine_node(state: dict, config: RunnableConfig) -> dict:
    """LangGraph node: score the current composition and record it as a version."""
    iteration = state.get("refinement_iterations", 0)
    print(f"\n🔍 Refinement pass {iteration + 1}...")

    on_progress = get_progress_callback(config)
    started = time.perf_counter()
    if iteration == 0:
        report_progress(on_progress, "🔍 Stage 4/4: Quality verification and refinement...")

    composition = state["composition"]
    quality = await run_refinement(
        composition,
        state["video_plan"],
        state.get("detailed_scenes", []),
        state["context"],
        get_generator(config),
        on_progress,
    )

    print(f"   Score: {quality.overall_score:g}/100 ({quality.critical_count} critical, {quality.warning_count} warnings)")
    if Config.DEBUG:
        for issue in quality.issues:
            print(f"      [{issue.severity}] {issue.description}")

    return {
        "quality": quality,
        "versions": [{"composition": composition, "quality": quality, "iteration": iteration}],
        "stage_timings": {"refinement": elapsed_ms(started)},
    }


def apply_fixes_node(state: dict, config: RunnableConfig) -> dict:
    """LangGraph node: apply the critic's fixes to a fresh copy of the composition."""
    iteration = state.get("refinement_iterations", 0) + 1
    max_iterations = state.get("max_refinement_iterations", Config.DEFAULT_MAX_REFINEMENT_ITERATIONS)
    quality: RefinementResult = state["quality"]

    started = time.perf_counter()
    fixable = sum(1 for i in quality.issues if i.suggested_fix)
    report_progress(
        get_progress_callback(config),
        f"🔄 Refinement iteration {iteration}/{max_iterations}: "
        f"Applying {fixable} fixes (current score: {quality.overall_score:g})...",
    )

    fixed, applied = apply_fixes(state["composition"], quality.issues)
    print(f"   🔧 Applied {applied}/{fixable} suggested fixes")

    return {
        "composition": fixed,
        "refinement_iterations": iteration,
        "stage_timings": {"refinement": elapsed_ms(started)},
    }
