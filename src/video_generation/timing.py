"""
Timing & Keyframe Utilities

Pure functions shared by every stage. No I/O, no model calls.

## Coordinate Spaces

- Percentage of total: what the director hands out per scene
- Absolute frame: scene/item `from` on the composition timeline
- Element-relative frame: keyframe `frame` (0 = the instant the element appears)
- Normalized position: 0-1 fractions of the canvas

## Absolute-Frame Heuristic

Models routinely write keyframes on the absolute timeline
(`[{frame: 0}, {frame: 360}]` for a fade that should last 20 frames).
`fix_relative_frame_misuse` treats any keyframe past ~3s as that mistake and
squeezes the whole set into a 1s entrance. A legitimate 4-second relative
entrance is rescaled too; that false positive is accepted.
"""
import math
from typing import Any, Optional

from config import Config


MIN_SCENE_PERCENTAGE = 5.0
MAX_SCENE_PERCENTAGE = 50.0

RELATIVE_ENTRANCE_SPAN = 30
DEFAULT_EASING = "ease-out"

ANIMATABLE_PROPERTIES = (
    "opacity",
    "scale",
    "x",
    "y",
    "rotation",
    "blur",
    "brightness",
    "contrast",
    "positionX",
    "positionY",
)

# Lower renders first (beneath). Audio has no visual layer and sits last.
TRACK_LAYER_PRIORITY = {
    "gradient": 0,
    "blob": 0,
    "film-grain": 1,
    "vignette": 1,
    "color-grade": 1,
    "video": 2,
    "image": 2,
    "component": 3,
    "custom-html": 3,
    "shape": 4,
    "text": 5,
    "particles": 6,
    "cursor": 7,
    "audio": 8,
}
DEFAULT_LAYER_PRIORITY = 5


def is_number(value: Any) -> bool:
    """True for real numbers. Booleans and NaN don't count."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return not math.isnan(value)


# ─────────────────────────────────────────────────────────────
# Percentage → Frames
# ─────────────────────────────────────────────────────────────

def percentage_to_frames(
    pct: Any,
    total_frames: int,
    scene_count: Optional[int] = None,
) -> int:
    """
    Convert a director-assigned percentage into a frame count.

    The percentage is clamped to [5, 50] so no single scene can claim
    (almost) none or (almost) all of the timeline. A plan with two scenes
    can only ever split the timeline, so its ceiling is 95 instead.

    Missing or non-numeric percentages fall back to an even split.
    The result is never below 1 frame.
    """
    count = scene_count if scene_count and scene_count > 0 else 1

    if not is_number(pct):
        return max(1, round(total_frames / count))

    ceiling = MAX_SCENE_PERCENTAGE
    if scene_count is not None and scene_count <= 2:
        ceiling = 100.0 - MIN_SCENE_PERCENTAGE

    clamped = min(max(float(pct), MIN_SCENE_PERCENTAGE), ceiling)
    return max(1, round(clamped / 100 * total_frames))


# ─────────────────────────────────────────────────────────────
# Keyframe Repair
# ─────────────────────────────────────────────────────────────

def _frame_of(keyframe: dict) -> float:
    frame = keyframe.get("frame") if isinstance(keyframe, dict) else None
    return frame if is_number(frame) else 0


def fix_relative_frame_misuse(
    keyframes: list[dict],
    threshold: Optional[int] = None,
    target_span: int = RELATIVE_ENTRANCE_SPAN,
) -> list[dict]:
    """
    Rescale keyframes that were written on the absolute timeline.

    If the largest frame exceeds `threshold` (default ~3s), every frame is
    mapped linearly into [0, target_span]: the smallest frame becomes 0,
    ordering is preserved, values are rounded. Keyframes at or under the
    threshold come back unchanged, so the repair is idempotent.
    """
    if not keyframes:
        return []

    if threshold is None:
        threshold = Config.ABSOLUTE_FRAME_THRESHOLD

    frames = [_frame_of(kf) for kf in keyframes]
    max_frame = max(frames)

    if max_frame <= threshold:
        return [dict(kf) for kf in keyframes]

    min_frame = min(frames)
    frame_range = max_frame - min_frame

    if Config.DEBUG:
        print(f"   🔧 Rescaling absolute keyframes (max frame {max_frame}) into 0-{target_span}")

    rescaled = []
    for kf, frame in zip(keyframes, frames):
        if frame_range > 0:
            new_frame = round((frame - min_frame) / frame_range * target_span)
        else:
            new_frame = 0
        rescaled.append({**kf, "frame": new_frame})
    return rescaled


def normalize_keyframe(raw: dict) -> dict:
    """
    Convert a model-authored keyframe into the editor shape.

    Models write either flat properties (`{frame: 10, opacity: 0}`) or a
    nested map (`{frame: 10, values: {opacity: 0}}`), sometimes both. Both
    are merged, flat properties winning. A keyframe with nothing animatable
    becomes fully visible.

    Returns:
        {"frame": number, "values": {prop: number}, "easing": str}
    """
    raw = raw if isinstance(raw, dict) else {}

    values = {}
    nested = raw.get("values")
    if isinstance(nested, dict):
        values.update({k: v for k, v in nested.items() if is_number(v)})

    for prop in ANIMATABLE_PROPERTIES:
        if is_number(raw.get(prop)):
            values[prop] = raw[prop]

    if not values:
        values = {"opacity": 1}

    easing = raw.get("easing")
    return {
        "frame": raw["frame"] if is_number(raw.get("frame")) else 0,
        "values": values,
        "easing": easing if isinstance(easing, str) and easing else DEFAULT_EASING,
    }


def repair_keyframes(
    keyframes: Optional[list[dict]],
    threshold: Optional[int] = None,
    target_span: int = RELATIVE_ENTRANCE_SPAN,
) -> list[dict]:
    """Fix absolute-frame misuse, then normalize every keyframe."""
    fixed = fix_relative_frame_misuse(keyframes or [], threshold, target_span)
    return [normalize_keyframe(kf) for kf in fixed]


# ─────────────────────────────────────────────────────────────
# Track Layering
# ─────────────────────────────────────────────────────────────

def track_layer_priority(track_type: str) -> int:
    """Z-order rank for a track type. Lower renders beneath higher."""
    return TRACK_LAYER_PRIORITY.get(track_type, DEFAULT_LAYER_PRIORITY)


def find_track_insert_index(tracks: list[dict], new_type: str) -> int:
    """
    Where a new track of `new_type` belongs.

    Before the first track that renders above it, otherwise at the end.
    """
    new_priority = track_layer_priority(new_type)
    for index, track in enumerate(tracks):
        if track_layer_priority(track.get("type", "")) > new_priority:
            return index
    return len(tracks)


def insert_track(tracks: list[dict], track: dict) -> list[dict]:
    """Return a new track list with `track` inserted at its layer position."""
    index = find_track_insert_index(tracks, track.get("type", ""))
    return [*tracks[:index], track, *tracks[index:]]


def sort_tracks_by_layer(tracks: list[dict]) -> list[dict]:
    """Stable sort by layer priority (insertion order kept within a layer)."""
    return sorted(tracks, key=lambda t: track_layer_priority(t.get("type", "")))
