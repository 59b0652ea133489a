"""
Scene planner: construction from planner output, fallbacks, parallel planning.
"""
import asyncio

from video_generation.errors import GenerationExhaustedError
from video_generation.models import Position, SceneShape, SceneText
from video_generation.scene_planner import (
    ComponentDisplayConfig,
    ScenePlanOutput,
    build_detailed_scene,
    build_fallback_scene,
    build_scene_planner_prompt,
    compute_scene_starts,
    plan_all_scenes,
    plan_scene,
)

from conftest import FakeGenerator


def planner_output(**overrides):
    fields = {
        "component": ComponentDisplayConfig(displaySize="laptop", propsJson='{"price": "$19"}'),
        "texts": [SceneText(text="Choose your plan", role="subtitle", position=Position(x=0.5, y=0.12))],
        "shapes": [SceneShape(shape_type="badge", width=0.1, height=0.05, text="New")],
    }
    fields.update(overrides)
    return ScenePlanOutput(**fields)


def test_scene_starts_are_running_offsets(two_scene_plan):
    assert compute_scene_starts(two_scene_plan) == [0, 180]


def test_component_block_built_with_merged_props(two_scene_plan, context_300):
    scene = two_scene_plan.scenes[1]
    component = context_300.find_component(scene.component_id)

    detailed = build_detailed_scene(planner_output(), scene, 180, component)

    assert detailed.from_ == 180
    assert detailed.duration_in_frames == 120
    assert detailed.component.component_id == "comp-pricing"
    assert detailed.component.display_size == "laptop"
    assert detailed.component.props == {"plan": "Pro", "price": "$19"}


def test_malformed_props_fall_back_to_demo_props(two_scene_plan, context_300):
    scene = two_scene_plan.scenes[1]
    component = context_300.find_component(scene.component_id)
    output = planner_output(component=ComponentDisplayConfig(displaySize="full", propsJson="{not json"))

    detailed = build_detailed_scene(output, scene, 180, component)

    assert detailed.component.props == {"plan": "Pro", "price": "$29"}


def test_unresolvable_component_drops_block_but_keeps_elements(two_scene_plan):
    scene = two_scene_plan.scenes[1].model_copy(update={"component_id": None, "component_name": "Ghost"})

    detailed = build_detailed_scene(planner_output(), scene, 180, component=None)

    assert detailed.component is None
    assert detailed.texts[0].text == "Choose your plan"
    assert len(detailed.shapes) == 1


def test_empty_planner_output_gets_title(two_scene_plan):
    scene = two_scene_plan.scenes[0]

    detailed = build_detailed_scene(ScenePlanOutput(), scene, 0)

    assert len(detailed.texts) == 1
    assert detailed.texts[0].text == scene.purpose
    assert detailed.texts[0].role == "title"


def test_fallback_scene_is_a_centered_title(two_scene_plan):
    detailed = build_fallback_scene(two_scene_plan.scenes[0], 0)

    title = detailed.texts[0]
    assert title.text == "Introduce the new pricing page"
    assert (title.position.x, title.position.y) == (0.5, 0.5)
    assert title.font_size == 48
    assert detailed.shapes == []
    assert detailed.component is None


def test_invalid_outline_duration_uses_five_seconds(two_scene_plan):
    scene = two_scene_plan.scenes[0].model_copy(update={"duration_in_frames": 0})
    assert build_fallback_scene(scene, 0).duration_in_frames == 150


def test_prompt_includes_component_and_assets(two_scene_plan, context_300):
    scene = two_scene_plan.scenes[1]
    component = context_300.find_component(scene.component_id)

    prompt = build_scene_planner_prompt(scene, two_scene_plan, context_300, 180, component)

    assert "Scene ID: scene-2" in prompt
    assert "Start Frame: 180" in prompt
    assert "## Component to Feature" in prompt
    assert "button.select-plan" in prompt
    assert "Available Assets" not in prompt


def test_failed_scene_degrades_to_fallback(two_scene_plan, context_300):
    generator = FakeGenerator({"ScenePlanOutput": GenerationExhaustedError("schema never matched", 3)})

    detailed, degradation = asyncio.run(
        plan_scene(two_scene_plan.scenes[0], two_scene_plan, context_300, 0, generator)
    )

    assert detailed.texts[0].text == "Introduce the new pricing page"
    assert degradation.stage == "scene_planner"
    assert degradation.scene_id == "scene-1"
    assert "schema never matched" in degradation.reason


def test_plan_all_scenes_keeps_plan_order(two_scene_plan, context_300):
    def respond(prompt):
        if "Scene ID: scene-1" in prompt:
            return GenerationExhaustedError("boom", 3)
        return planner_output()

    generator = FakeGenerator({"ScenePlanOutput": respond})

    scenes, degradations = asyncio.run(plan_all_scenes(two_scene_plan, context_300, generator))

    assert [s.scene_id for s in scenes] == ["scene-1", "scene-2"]
    assert [s.from_ for s in scenes] == [0, 180]
    assert scenes[1].component is not None
    assert [d.scene_id for d in degradations] == ["scene-1"]
    assert generator.count("ScenePlanOutput") == 2
