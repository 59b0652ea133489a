"""
Pure timing and keyframe helpers.
"""
from video_generation.timing import (
    find_track_insert_index,
    fix_relative_frame_misuse,
    insert_track,
    normalize_keyframe,
    percentage_to_frames,
    repair_keyframes,
    sort_tracks_by_layer,
    track_layer_priority,
)


# ─────────────────────────────────────────────────────────────
# Percentage → Frames
# ─────────────────────────────────────────────────────────────

def test_sixty_forty_split_of_ten_seconds():
    assert percentage_to_frames(60, 300, scene_count=2) == 180
    assert percentage_to_frames(40, 300, scene_count=2) == 120


def test_percentage_clamped_for_longer_plans():
    assert percentage_to_frames(80, 900, scene_count=5) == 450   # capped at 50%
    assert percentage_to_frames(1, 900, scene_count=5) == 45     # raised to 5%
    assert percentage_to_frames(-20, 900, scene_count=5) == 45


def test_invalid_percentage_falls_back_to_even_split():
    assert percentage_to_frames(None, 900, scene_count=3) == 300
    assert percentage_to_frames("lots", 900, scene_count=3) == 300
    assert percentage_to_frames(float("nan"), 900, scene_count=3) == 300
    assert percentage_to_frames(True, 900, scene_count=3) == 300


def test_frames_never_below_one():
    assert percentage_to_frames(5, 4, scene_count=10) == 1
    assert percentage_to_frames(None, 0, scene_count=3) == 1


# ─────────────────────────────────────────────────────────────
# Absolute-Frame Repair
# ─────────────────────────────────────────────────────────────

def test_absolute_keyframes_squeezed_into_entrance():
    fixed = fix_relative_frame_misuse([{"frame": 0, "opacity": 0}, {"frame": 360, "opacity": 1}])
    assert [kf["frame"] for kf in fixed] == [0, 30]
    assert fixed[1]["opacity"] == 1


def test_rescale_preserves_order_and_maps_min_to_zero():
    fixed = fix_relative_frame_misuse([{"frame": 120}, {"frame": 180}, {"frame": 300}])
    frames = [kf["frame"] for kf in fixed]
    assert frames[0] == 0
    assert frames == sorted(frames)
    assert frames[-1] == 30


def test_relative_keyframes_untouched_and_repair_is_idempotent():
    keyframes = [{"frame": 0, "opacity": 0}, {"frame": 90, "opacity": 1}]
    once = fix_relative_frame_misuse(keyframes)
    assert once == keyframes
    assert once is not keyframes
    assert fix_relative_frame_misuse(once) == once

    rescaled = fix_relative_frame_misuse([{"frame": 10}, {"frame": 500}])
    assert fix_relative_frame_misuse(rescaled) == rescaled


def test_all_frames_equal_beyond_threshold_collapse_to_zero():
    fixed = fix_relative_frame_misuse([{"frame": 200}, {"frame": 200}])
    assert [kf["frame"] for kf in fixed] == [0, 0]


def test_empty_keyframes():
    assert fix_relative_frame_misuse([]) == []
    assert repair_keyframes(None) == []


# ─────────────────────────────────────────────────────────────
# Keyframe Normalization
# ─────────────────────────────────────────────────────────────

def test_normalize_flat_properties():
    assert normalize_keyframe({"frame": 10, "opacity": 0, "scale": 0.8}) == {
        "frame": 10,
        "values": {"opacity": 0, "scale": 0.8},
        "easing": "ease-out",
    }


def test_normalize_merges_nested_values_flat_wins():
    kf = normalize_keyframe({"frame": 5, "values": {"opacity": 0.2, "blur": 4}, "opacity": 0.5, "easing": "spring"})
    assert kf["values"] == {"opacity": 0.5, "blur": 4}
    assert kf["easing"] == "spring"


def test_normalize_is_total():
    assert normalize_keyframe({}) == {"frame": 0, "values": {"opacity": 1}, "easing": "ease-out"}
    assert normalize_keyframe(None) == {"frame": 0, "values": {"opacity": 1}, "easing": "ease-out"}
    assert normalize_keyframe({"frame": "soon", "opacity": "high"})["values"] == {"opacity": 1}


def test_repair_keyframes_rescales_then_normalizes():
    repaired = repair_keyframes([{"frame": 0, "opacity": 0}, {"frame": 360, "opacity": 1}])
    assert repaired == [
        {"frame": 0, "values": {"opacity": 0}, "easing": "ease-out"},
        {"frame": 30, "values": {"opacity": 1}, "easing": "ease-out"},
    ]


# ─────────────────────────────────────────────────────────────
# Track Layering
# ─────────────────────────────────────────────────────────────

def test_layer_priority_order():
    assert track_layer_priority("gradient") < track_layer_priority("image")
    assert track_layer_priority("image") < track_layer_priority("component")
    assert track_layer_priority("component") < track_layer_priority("shape")
    assert track_layer_priority("shape") < track_layer_priority("text")
    assert track_layer_priority("text") < track_layer_priority("cursor")
    assert track_layer_priority("cursor") < track_layer_priority("audio")
    assert track_layer_priority("something-new") == 5


def test_insert_index_goes_before_first_higher_layer():
    tracks = [{"type": "image"}, {"type": "text"}, {"type": "cursor"}]
    assert find_track_insert_index(tracks, "component") == 1
    assert find_track_insert_index(tracks, "text") == 2
    assert find_track_insert_index(tracks, "audio") == 3
    assert find_track_insert_index([], "text") == 0


def test_repeated_insertion_stays_sorted():
    tracks = []
    for track_type in ["cursor", "text", "gradient", "audio", "shape", "component", "text", "image"]:
        tracks = insert_track(tracks, {"type": track_type})

    priorities = [track_layer_priority(t["type"]) for t in tracks]
    assert priorities == sorted(priorities)


def test_sort_is_stable_within_a_layer():
    tracks = [{"type": "text", "name": "a"}, {"type": "shape"}, {"type": "text", "name": "b"}]
    ordered = sort_tracks_by_layer(tracks)
    assert [t.get("name") for t in ordered if t["type"] == "text"] == ["a", "b"]
    assert ordered[0]["type"] == "shape"
