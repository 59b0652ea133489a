"""
Refinement: quality gate, fix application, critic fallback.
"""
import asyncio

import pytest

from video_generation.errors import GenerationRateLimitError
from video_generation.models import (
    FixDetails,
    PositionPatch,
    RawKeyframe,
    RefinementIssue,
    RefinementResult,
    SuggestedFix,
)
from video_generation.refinement import (
    RefinementOutput,
    apply_fixes,
    build_composition_summary,
    meets_quality_threshold,
    run_refinement,
    select_best_version,
)

from conftest import FakeGenerator


def composition():
    return {
        "name": "Test",
        "width": 1920,
        "height": 1080,
        "fps": 30,
        "durationInFrames": 300,
        "tracks": [
            {"name": "Headline", "type": "text", "locked": False, "visible": True, "items": [{
                "id": "text-1",
                "type": "text",
                "text": "Headline",
                "from": 0,
                "durationInFrames": 90,
                "position": {"x": 0.3, "y": 0.5},
                "keyframes": [],
            }]},
            {"name": "Shape 1", "type": "shape", "locked": False, "visible": True, "items": [{
                "id": "shape-1",
                "type": "shape",
                "shapeType": "badge",
                "from": 30,
                "durationInFrames": 60,
                "keyframes": [],
            }]},
        ],
    }


def issue(severity="warning", item_id=None, action=None, **details):
    fix = SuggestedFix(action=action, details=FixDetails(**details)) if action else None
    return RefinementIssue(
        severity=severity,
        category="visual",
        description="something off",
        item_id=item_id,
        suggested_fix=fix,
    )


def result(score, issues=()):
    return RefinementResult(overall_score=score, summary="", issues=list(issues))


# ─────────────────────────────────────────────────────────────
# Quality Gate
# ─────────────────────────────────────────────────────────────

def test_threshold_needs_score_and_no_critical():
    assert meets_quality_threshold(result(60))
    assert not meets_quality_threshold(result(59.5))
    assert not meets_quality_threshold(result(95, [issue("critical")]))
    assert meets_quality_threshold(result(80, [issue("warning"), issue("suggestion")]))
    assert meets_quality_threshold(result(40), min_score=40)


def test_best_version_earliest_wins_ties():
    versions = [
        {"composition": {"name": "a"}, "quality": result(50), "iteration": 0},
        {"composition": {"name": "b"}, "quality": result(70), "iteration": 1},
        {"composition": {"name": "c"}, "quality": result(70), "iteration": 2},
    ]
    assert select_best_version(versions)["iteration"] == 1


# ─────────────────────────────────────────────────────────────
# Fix Application
# ─────────────────────────────────────────────────────────────

def test_adjust_timing():
    original = composition()
    fixed, applied = apply_fixes(original, [
        issue(item_id="text-1", action="adjust-timing", from_=12, duration_in_frames=120),
    ])

    item = fixed["tracks"][0]["items"][0]
    assert (item["from"], item["durationInFrames"]) == (12, 120)
    assert applied == 1
    # input untouched
    assert original["tracks"][0]["items"][0]["from"] == 0


def test_adjust_position_merges_over_existing():
    fixed, _ = apply_fixes(composition(), [
        issue(item_id="text-1", action="adjust-position", position=PositionPatch(y=0.1)),
        issue(item_id="shape-1", action="adjust-position", position=PositionPatch(x=0.8)),
    ])

    assert fixed["tracks"][0]["items"][0]["position"] == {"x": 0.3, "y": 0.1}
    assert fixed["tracks"][1]["items"][0]["position"] == {"x": 0.8, "y": 0.5}


def test_modify_animation_repairs_keyframes():
    fixed, _ = apply_fixes(composition(), [
        issue(item_id="shape-1", action="modify-animation", keyframes=[
            RawKeyframe(frame=0, scale=0),
            RawKeyframe(frame=240, scale=1),
        ]),
    ])

    assert fixed["tracks"][1]["items"][0]["keyframes"] == [
        {"frame": 0, "values": {"scale": 0}, "easing": "ease-out"},
        {"frame": 30, "values": {"scale": 1}, "easing": "ease-out"},
    ]


def test_modify_animation_keeps_cursor_path_in_pixels():
    original = composition()
    original["tracks"].append({"name": "Cursor", "type": "cursor", "locked": False, "visible": True, "items": [{
        "id": "cursor-1",
        "type": "cursor",
        "from": 0,
        "durationInFrames": 120,
        "keyframes": [{"frame": 0, "x": 960, "y": 540}],
    }]})

    fixed, applied = apply_fixes(original, [
        issue(item_id="cursor-1", action="modify-animation", keyframes=[
            RawKeyframe(frame=0, x=0.5, y=0.5),
            RawKeyframe(frame=100, x=0.8, y=0.6),
        ]),
    ])

    keyframes = fixed["tracks"][2]["items"][0]["keyframes"]
    assert applied == 1
    assert [kf["frame"] for kf in keyframes] == [0, 100]
    assert (keyframes[0]["x"], keyframes[0]["y"]) == (960, 540)
    assert keyframes[1]["x"] == pytest.approx(1536)
    assert keyframes[1]["y"] == pytest.approx(648)
    assert all("values" not in kf for kf in keyframes)


def test_structural_and_unmatched_fixes_are_skipped():
    original = composition()
    fixed, applied = apply_fixes(original, [
        issue(item_id="text-1", action="remove-element"),
        issue(action="add-element", scene_type="outro"),
        issue(item_id="missing", action="adjust-timing", from_=5),
        issue(item_id="text-1"),
    ])

    assert applied == 0
    assert fixed == original
    assert fixed is not original


# ─────────────────────────────────────────────────────────────
# Critic
# ─────────────────────────────────────────────────────────────

def test_summary_is_bounded():
    big = composition()
    big["tracks"][0]["items"] = [dict(big["tracks"][0]["items"][0], id=f"t{i}") for i in range(8)]

    summary = build_composition_summary(big, [], fps=30)

    assert "8 items" in summary["tracks"]
    assert summary["tracks"].count('"Headline..."') == 5
    assert summary["samples"].count('"id"') == 4   # 3 from text, 1 from shape
    assert summary["timeline"] == "- (no scenes)"


def test_critic_score_and_recommended_changes(two_scene_plan, context_300):
    generator = FakeGenerator({"RefinementOutput": RefinementOutput(
        overallScore=72,
        summary="Solid",
        issues=[issue("critical"), issue("warning"), issue("suggestion")],
    )})

    quality = asyncio.run(run_refinement(composition(), two_scene_plan, [], context_300, generator))

    assert quality.overall_score == 72
    assert quality.recommended_changes == 2
    assert quality.critical_count == 1
    assert generator.calls[0]["temperature"] == 0.3


def test_critic_failure_falls_back_to_neutral_score(two_scene_plan, context_300):
    generator = FakeGenerator({"RefinementOutput": GenerationRateLimitError("quota", 1)})

    quality = asyncio.run(run_refinement(composition(), two_scene_plan, [], context_300, generator))

    assert quality.overall_score == 70
    assert quality.summary == "Unable to analyze composition in detail"
    assert quality.issues == []
    assert meets_quality_threshold(quality)
