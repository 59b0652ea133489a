"""
Video Generation Graph

Orchestrates: director → plan_scene (×N, parallel) → assemble → refine ⇄ apply_fixes → finalize

Complete flow:
- Director turns the request into a VideoPlan (scene outlines, percentages → frames)
- One plan_scene branch per scene via `Send`; failures degrade to a title scene
- Assembler flattens the scenes into editor tracks (one element per track)
- Refinement scores the composition and auto-applies fixes until the
  threshold is met or the iteration budget is spent
- Finalize keeps the best-scoring version when the threshold was never met

Only the director and the assembler can fail a run. Everything else
degrades and is reported in the result metadata.
"""
import asyncio
import time
from typing import Literal, Optional, Union

from langchain_core.runnables import RunnableConfig
from langgraph.graph import StateGraph, START, END
from langgraph.types import Send

from config import Config
from .assembler import assemble_node, to_editor_tracks
from .director import director_node
from .generation import StructuredGenerator
from .models import DetailedScene, GenerationContext, VideoGenerationRequest, VideoPlan
from .refinement import (
    apply_fixes_node,
    meets_quality_threshold,
    refine_node,
    select_best_version,
)
from .runtime import ProgressCallback, elapsed_ms, get_progress_callback, report_progress
from .scene_planner import compute_scene_starts, plan_scene_node
from .state import GenerationState


# ─────────────────────────────────────────────────────────────
# Routing
# ─────────────────────────────────────────────────────────────

def route_after_director(state: GenerationState) -> Union[list[Send], str]:
    """Fan out one plan_scene branch per scene, or stop on a director failure."""
    if state.get("error"):
        return END

    plan = state.get("video_plan")
    if plan is None or not plan.scenes:
        return "assemble"

    starts = compute_scene_starts(plan)
    return [
        Send("plan_scene", {
            "context": state["context"],
            "video_plan": plan,
            "scene_index": i,
            "scene_start_frame": starts[i],
        })
        for i in range(len(plan.scenes))
    ]


def route_after_assembly(state: GenerationState) -> Literal["refine", "end"]:
    if state.get("error") or not state.get("composition"):
        return "end"
    return "refine"


def route_after_refinement(state: GenerationState) -> Literal["apply_fixes", "finalize"]:
    """Keep fixing while below threshold and budget remains."""
    quality = state.get("quality")
    min_score = state.get("min_quality_score", Config.DEFAULT_MIN_QUALITY_SCORE)
    max_iterations = state.get("max_refinement_iterations", Config.DEFAULT_MAX_REFINEMENT_ITERATIONS)

    if quality is None or meets_quality_threshold(quality, min_score):
        return "finalize"
    if state.get("refinement_iterations", 0) >= max_iterations:
        return "finalize"
    return "apply_fixes"


# ─────────────────────────────────────────────────────────────
# Finalize
# ─────────────────────────────────────────────────────────────

def finalize_node(state: GenerationState, config: RunnableConfig) -> dict:
    """LangGraph node: settle on the composition to return."""
    quality = state.get("quality")
    versions = state.get("versions", [])
    min_score = state.get("min_quality_score", Config.DEFAULT_MIN_QUALITY_SCORE)

    if quality is None or meets_quality_threshold(quality, min_score) or len(versions) <= 1:
        if quality is not None:
            print(f"\n✅ Final score: {quality.overall_score:g}/100")
        return {}

    best = select_best_version(versions)
    print(f"\n🏁 Threshold not met after {state.get('refinement_iterations', 0)} iterations, "
          f"keeping best version (iteration {best['iteration']}, score {best['quality'].overall_score:g})")

    report_progress(
        get_progress_callback(config),
        f"⚠️ Max refinement iterations reached. Using best version "
        f"(score: {best['quality'].overall_score:g}/100)",
    )

    return {
        "composition": best["composition"],
        "quality": best["quality"],
    }


# ─────────────────────────────────────────────────────────────
# Graph Builder
# ─────────────────────────────────────────────────────────────

def build_generation_graph(checkpointer=None):
    """
    Build the generation graph.

    Flow:
        director → plan_scene (×N) → assemble → refine ⇄ apply_fixes → finalize

    Args:
        checkpointer: Optional LangGraph checkpointer (e.g. InMemorySaver)
            for persistence. Requires a thread_id in the run config.
    """
    builder = StateGraph(GenerationState)

    # ─────────────────────────────────────────────────────────
    # Nodes
    # ─────────────────────────────────────────────────────────
    builder.add_node("director", director_node)
    builder.add_node("plan_scene", plan_scene_node)
    builder.add_node("assemble", assemble_node)
    builder.add_node("refine", refine_node)
    builder.add_node("apply_fixes", apply_fixes_node)
    builder.add_node("finalize", finalize_node)

    # ─────────────────────────────────────────────────────────
    # Edges
    # ─────────────────────────────────────────────────────────
    builder.add_edge(START, "director")

    # Parallel scene planning via Send
    builder.add_conditional_edges(
        "director",
        route_after_director,
        ["plan_scene", "assemble", END],
    )

    builder.add_edge("plan_scene", "assemble")

    builder.add_conditional_edges(
        "assemble",
        route_after_assembly,
        {
            "refine": "refine",
            "end": END,
        }
    )

    # Refinement loop
    builder.add_conditional_edges(
        "refine",
        route_after_refinement,
        {
            "apply_fixes": "apply_fixes",
            "finalize": "finalize",
        }
    )
    builder.add_edge("apply_fixes", "refine")
    builder.add_edge("finalize", END)

    return builder.compile(checkpointer=checkpointer)


def recursion_limit_for(max_iterations: int) -> int:
    """director + plan_scene + assemble + finalize, plus two steps per fix pass."""
    return 2 * max_iterations + 10


# ─────────────────────────────────────────────────────────────
# Result Envelope
# ─────────────────────────────────────────────────────────────

def order_scenes(plan: Optional[VideoPlan], scenes: list[DetailedScene]) -> list[DetailedScene]:
    """Parallel branches finish in any order; results follow the plan."""
    if plan is None:
        return scenes
    by_id = {s.scene_id: s for s in scenes}
    return [by_id[s.id] for s in plan.scenes if s.id in by_id]


def build_result(final_state: dict, total_ms: float) -> dict:
    plan = final_state.get("video_plan")
    composition = final_state.get("composition")
    quality = final_state.get("quality")
    error = final_state.get("error")
    scenes = order_scenes(plan, final_state.get("detailed_scenes", []))

    success = error is None and composition is not None
    if error is None and composition is None:
        error = "Generation finished without a composition"

    return {
        "success": success,
        "tracks": to_editor_tracks(composition) if success else [],
        "video_plan": plan.model_dump(by_alias=True) if plan else None,
        "scenes": [s.model_dump(by_alias=True) for s in scenes],
        "composition": composition,
        "quality": quality.model_dump(by_alias=True) if quality else None,
        "error": error,
        "metadata": {
            "total_duration_ms": total_ms,
            "stage_timings": final_state.get("stage_timings", {}),
            "refinement_iterations": final_state.get("refinement_iterations", 0),
            "final_score": quality.overall_score if quality else None,
            "degraded_scenes": [d.to_dict() for d in final_state.get("degradations", [])],
        },
    }


def _failure(error: str, total_ms: float) -> dict:
    return {
        "success": False,
        "tracks": [],
        "video_plan": None,
        "scenes": [],
        "composition": None,
        "quality": None,
        "error": error,
        "metadata": {
            "total_duration_ms": total_ms,
            "stage_timings": {},
            "refinement_iterations": 0,
            "final_score": None,
            "degraded_scenes": [],
        },
    }


# ─────────────────────────────────────────────────────────────
# Entry Points
# ─────────────────────────────────────────────────────────────

async def generate_video(
    request: VideoGenerationRequest,
    generator: Optional[StructuredGenerator] = None,
    on_progress: Optional[ProgressCallback] = None,
) -> dict:
    """
    Run the full pipeline for one request. Never raises.

    Usage:
        result = await generate_video(request, on_progress=print)
        if result["success"]:
            editor.load(result["tracks"])
    """
    started = time.perf_counter()

    min_score = request.min_quality_score
    if min_score is None:
        min_score = Config.DEFAULT_MIN_QUALITY_SCORE
    max_iterations = request.max_refinement_iterations
    if max_iterations is None:
        max_iterations = Config.DEFAULT_MAX_REFINEMENT_ITERATIONS

    print(f"\n{'='*60}")
    print(f"Video Generation - \"{request.user_request[:50]}\"")
    print(f"{'='*60}")

    if generator is None:
        generator = StructuredGenerator(model_name=request.model_id)

    initial_state: GenerationState = {
        "context": GenerationContext.from_request(request),
        "min_quality_score": min_score,
        "max_refinement_iterations": max_iterations,
        "video_plan": None,
        "detailed_scenes": [],
        "degradations": [],
        "composition": None,
        "quality": None,
        "versions": [],
        "refinement_iterations": 0,
        "stage_timings": {},
        "error": None,
    }

    config = {
        "configurable": {"generator": generator, "on_progress": on_progress},
        "recursion_limit": recursion_limit_for(max_iterations),
    }

    try:
        final_state = await build_generation_graph().ainvoke(initial_state, config=config)
    except Exception as e:
        print(f"\n❌ Generation failed: {e}")
        return _failure(str(e), elapsed_ms(started))

    result = build_result(final_state, elapsed_ms(started))

    if result["success"]:
        meta = result["metadata"]
        print(f"\n✅ Generated {len(result['tracks'])} tracks in {meta['total_duration_ms'] / 1000:.1f}s "
              f"(score {meta['final_score']:g}, {meta['refinement_iterations']} refinement iterations)")
        if meta["degraded_scenes"]:
            print(f"   ⚠️  {len(meta['degraded_scenes'])} scene(s) fell back to a title card")
    else:
        print(f"\n❌ Generation failed: {result['error']}")

    return result


async def generate_video_quick(
    request: VideoGenerationRequest,
    generator: Optional[StructuredGenerator] = None,
    on_progress: Optional[ProgressCallback] = None,
) -> dict:
    """Single scoring pass, no fix iterations, no threshold."""
    quick = request.model_copy(update={"min_quality_score": 0, "max_refinement_iterations": 0})
    return await generate_video(quick, generator=generator, on_progress=on_progress)


def run_generation_test(
    request: Optional[VideoGenerationRequest] = None,
    quick: bool = False,
) -> dict:
    """
    Run the pipeline on the bundled sample request. Needs a GEMINI_API_KEY.
    """
    from .loader import create_test_request

    print("\n" + "="*60)
    print("Video Generation - TEST MODE")
    print("="*60)

    request = request or create_test_request()
    runner = generate_video_quick if quick else generate_video
    return asyncio.run(runner(request, on_progress=lambda msg: print(f"   → {msg}")))
