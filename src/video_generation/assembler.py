"""
Assembler

Builds the GeneratedComposition from the VideoPlan and the DetailedScenes.

This is NOT an LLM stage - it's a deterministic transform. Same plan and
scenes in, same composition out (apart from freshly minted ids).

## What It Does Per Element

1. Absolute start = scene start + element offsetFrames
2. Duration = explicit duration, or whatever is left of the scene
3. Keyframes: repair absolute-frame misuse, then normalize
4. No keyframes at all → a short default entrance so nothing pops in
5. One track per element, sorted by layer priority (z-order)
"""
import time
import uuid
from typing import Optional

from langchain_core.runnables import RunnableConfig

from .errors import TerminalStageFailure
from .models import (
    AnimationSpec,
    DetailedScene,
    GenerationContext,
    RawKeyframe,
    SceneComponent,
    SceneCursor,
    SceneImage,
    SceneShape,
    SceneText,
    VideoPlan,
)
from .prompts import SPRING_PRESETS
from .runtime import elapsed_ms, get_progress_callback, report_progress
from .state import GeneratedComposition, GeneratedItem, GeneratedTrack
from .timing import (
    fix_relative_frame_misuse,
    is_number,
    repair_keyframes,
    sort_tracks_by_layer,
)


DEFAULT_CONTAINER_WIDTHS = {
    "phone": 375,
    "laptop": 1280,
}
DEFAULT_CONTAINER_WIDTH = 800

FONT_WEIGHT_BY_ROLE = {
    "title": 700,
    "subtitle": 600,
    "cta": 700,
}
DEFAULT_FONT_WEIGHT = 400


def generate_id() -> str:
    return str(uuid.uuid4())


# ─────────────────────────────────────────────────────────────
# Shared Helpers
# ─────────────────────────────────────────────────────────────

def _keyframe_dicts(keyframes: Optional[list[RawKeyframe]]) -> list[dict]:
    return [kf.model_dump(by_alias=True, exclude_none=True) for kf in keyframes or []]


def _element_timing(
    offset_frames: float,
    duration_in_frames: Optional[float],
    scene_start: int,
    scene_duration: int,
) -> tuple[int, int]:
    """(absolute start, duration) for an element placed inside a scene."""
    offset = int(round(offset_frames)) if is_number(offset_frames) and offset_frames > 0 else 0
    if is_number(duration_in_frames) and duration_in_frames > 0:
        duration = int(round(duration_in_frames))
    else:
        duration = scene_duration - offset
    return scene_start + offset, max(1, duration)


def _entrance(start: dict, end: dict, frames: int) -> list[dict]:
    return [
        {"frame": 0, "values": start, "easing": "ease-out"},
        {"frame": frames, "values": end, "easing": "ease-out"},
    ]


def _animation(spec: Optional[AnimationSpec]) -> Optional[dict]:
    """Animation config for the editor, with the spring preset resolved to physics values."""
    if spec is None:
        return None
    animation = spec.model_dump(by_alias=True, exclude_none=True)
    if spec.spring_preset in SPRING_PRESETS:
        animation["springConfig"] = dict(SPRING_PRESETS[spec.spring_preset])
    return animation


def _drop_none(item: dict) -> dict:
    return {k: v for k, v in item.items() if v is not None}


def get_default_width(display_size: str) -> int:
    return DEFAULT_CONTAINER_WIDTHS.get(display_size, DEFAULT_CONTAINER_WIDTH)


def get_font_weight_for_role(role: str) -> int:
    return FONT_WEIGHT_BY_ROLE.get(role, DEFAULT_FONT_WEIGHT)


# ─────────────────────────────────────────────────────────────
# Item Builders
# ─────────────────────────────────────────────────────────────

def create_component_item(
    component: SceneComponent,
    scene_start: int,
    scene_duration: int,
) -> GeneratedItem:
    """Component spans the whole scene, centered, inside its device frame."""
    keyframes = repair_keyframes(_keyframe_dicts(component.keyframes))
    if not keyframes:
        keyframes = _entrance({"opacity": 0, "scale": 0.95}, {"opacity": 1, "scale": 1}, 20)

    return _drop_none({
        "id": generate_id(),
        "type": "component",
        "componentId": component.component_id,
        "from": scene_start,
        "durationInFrames": scene_duration,
        "displaySize": component.display_size,
        "containerWidth": component.container_width or get_default_width(component.display_size),
        "containerHeight": component.container_height,
        "objectPosition": component.object_position or "center",
        "props": dict(component.props),
        "keyframes": keyframes,
        "position": {"x": 0.5, "y": 0.5},
        "enterAnimation": _animation(component.enter_animation),
    })


def create_text_item(
    text: SceneText,
    scene_start: int,
    scene_duration: int,
) -> GeneratedItem:
    start, duration = _element_timing(text.offset_frames, text.duration_in_frames, scene_start, scene_duration)

    keyframes = repair_keyframes(_keyframe_dicts(text.keyframes))
    if not keyframes:
        y = text.position.y
        frames = 25 if text.role == "title" else 20
        keyframes = _entrance(
            {"opacity": 0, "positionY": round(y + 0.02, 4)},
            {"opacity": 1, "positionY": y},
            frames,
        )

    return _drop_none({
        "id": generate_id(),
        "type": "text",
        "text": text.text,
        "from": start,
        "durationInFrames": duration,
        "fontSize": text.font_size,
        "fontWeight": text.font_weight or get_font_weight_for_role(text.role),
        "color": text.color,
        "backgroundColor": text.background_color,
        "position": text.position.model_dump(),
        "keyframes": keyframes,
        "letterSpacing": text.letter_spacing,
        "lineHeight": text.line_height,
        "textAlign": text.text_align or "center",
        "role": text.role,
        "enterAnimation": _animation(text.enter_animation),
        "exitAnimation": _animation(text.exit_animation),
    })


def create_shape_item(
    shape: SceneShape,
    scene_start: int,
    scene_duration: int,
) -> GeneratedItem:
    start, duration = _element_timing(shape.offset_frames, shape.duration_in_frames, scene_start, scene_duration)
    opacity = shape.opacity if shape.opacity is not None else 1

    keyframes = repair_keyframes(_keyframe_dicts(shape.keyframes))
    # Gradient backgrounds are the canvas: they are simply there
    if not keyframes and shape.shape_type != "gradient":
        keyframes = _entrance({"opacity": 0, "scale": 0.9}, {"opacity": opacity, "scale": 1}, 15)

    return _drop_none({
        "id": generate_id(),
        "type": "shape",
        "shapeType": shape.shape_type,
        "from": start,
        "durationInFrames": duration,
        "width": shape.width,
        "height": shape.height,
        "position": shape.position.model_dump(),
        "fill": shape.fill,
        "stroke": shape.stroke,
        "strokeWidth": shape.stroke_width,
        "borderRadius": shape.border_radius,
        "opacity": opacity,
        "gradientFrom": shape.gradient_from,
        "gradientTo": shape.gradient_to,
        "gradientDirection": shape.gradient_direction,
        "text": shape.text,
        "fontSize": shape.font_size,
        "color": shape.color,
        "svgContent": shape.svg_content,
        "viewBox": shape.view_box,
        "keyframes": keyframes,
    })


def create_image_item(
    image: SceneImage,
    scene_start: int,
    scene_duration: int,
) -> GeneratedItem:
    start, duration = _element_timing(image.offset_frames, image.duration_in_frames, scene_start, scene_duration)

    keyframes = repair_keyframes(_keyframe_dicts(image.keyframes))
    if not keyframes:
        keyframes = _entrance({"opacity": 0, "scale": 0.9}, {"opacity": 1, "scale": 1}, 15)

    return _drop_none({
        "id": generate_id(),
        "type": "image",
        "src": image.src,
        "alt": image.alt,
        "from": start,
        "durationInFrames": duration,
        "position": image.position.model_dump(),
        "width": image.width,
        "height": image.height,
        "clipShape": image.clip_shape,
        "keyframes": keyframes,
        "enterAnimation": _animation(image.enter_animation),
    })


def create_cursor_item(
    cursor: Optional[SceneCursor],
    scene_start: int,
    scene_duration: int,
    width: int,
    height: int,
) -> GeneratedItem:
    """
    Cursor spans the scene. Its path legitimately runs the whole scene, so
    frames are only rescaled when they overshoot the scene itself.

    x/y at or below 1 are normalized and converted to pixels; larger values
    are already pixels. A keyframe with neither target nor coordinates sits
    at the canvas center.
    """
    center_x, center_y = width / 2, height / 2

    if cursor is None or not cursor.keyframes:
        return {
            "id": generate_id(),
            "type": "cursor",
            "from": scene_start,
            "durationInFrames": scene_duration,
            "cursorStyle": cursor.cursor_style if cursor else "default",
            "clickEffect": cursor.click_effect if cursor else "ripple",
            "keyframes": [{"frame": 0, "x": center_x, "y": center_y}],
        }

    raw = _keyframe_dicts(cursor.keyframes)

    return {
        "id": generate_id(),
        "type": "cursor",
        "from": scene_start,
        "durationInFrames": scene_duration,
        "cursorStyle": cursor.cursor_style or "default",
        "clickEffect": cursor.click_effect or "ripple",
        "keyframes": build_cursor_keyframes(raw, scene_duration, width, height),
    }


def build_cursor_keyframes(
    raw_keyframes: list[dict],
    scene_duration: int,
    width: int,
    height: int,
) -> list[dict]:
    """
    Repair a raw cursor path against its scene length and convert
    normalized x/y to pixels. Targets, clicks and actions pass through.
    """
    center_x, center_y = width / 2, height / 2
    raw = repair_cursor_frames(raw_keyframes, scene_duration)

    keyframes = []
    for kf in raw:
        x = kf.get("x")
        y = kf.get("y")
        if is_number(x):
            x = x * width if x <= 1 else x
        else:
            x = None
        if is_number(y):
            y = y * height if y <= 1 else y
        else:
            y = None

        if not kf.get("target") and (x is None or y is None):
            x = center_x if x is None else x
            y = center_y if y is None else y

        keyframes.append(_drop_none({
            "frame": kf.get("frame", 0),
            "target": kf.get("target"),
            "x": x,
            "y": y,
            "click": kf.get("click"),
            "action": kf.get("action"),
            "value": kf.get("value"),
            "speed": kf.get("speed"),
            "holdDuration": kf.get("holdDuration"),
        }))

    return keyframes


def repair_cursor_frames(keyframes: list[dict], scene_duration: int) -> list[dict]:
    """Absolute-frame repair for cursor paths, bounded by the scene instead of ~3s."""
    return fix_relative_frame_misuse(
        keyframes,
        threshold=scene_duration,
        target_span=max(1, scene_duration - 1),
    )


def create_narration_item(scene: DetailedScene) -> GeneratedItem:
    """Placeholder the TTS step later swaps for real audio."""
    return {
        "id": generate_id(),
        "type": "narration-placeholder",
        "sceneId": scene.scene_id,
        "script": scene.narration_script,
        "from": scene.from_,
        "durationInFrames": scene.duration_in_frames,
    }


# ─────────────────────────────────────────────────────────────
# Assembly
# ─────────────────────────────────────────────────────────────

def _track(name: str, track_type: str, item: GeneratedItem) -> GeneratedTrack:
    return {
        "name": name,
        "type": track_type,
        "locked": False,
        "visible": True,
        "items": [item],
    }


def _shape_track_name(item: GeneratedItem, index: int) -> str:
    text = item.get("text") if isinstance(item.get("text"), str) else ""
    if item.get("shapeType") == "badge" and text:
        return f"Badge: {text[:15]}"
    return f"Shape {index}"


def assemble_composition(
    plan: VideoPlan,
    scenes: list[DetailedScene],
    context: GenerationContext,
) -> GeneratedComposition:
    """
    Deterministically build the composition.

    Scenes are processed in plan order regardless of the order they arrive in.
    """
    settings = context.composition
    order = {outline.id: i for i, outline in enumerate(plan.scenes)}
    ordered = sorted(scenes, key=lambda s: order.get(s.scene_id, len(order)))

    tracks: list[GeneratedTrack] = []
    counters = {"shape": 0, "image": 0, "cursor": 0, "audio": 0}

    for scene in ordered:
        start, duration = scene.from_, scene.duration_in_frames

        if scene.component:
            item = create_component_item(scene.component, start, duration)
            component = context.find_component(scene.component.component_id)
            tracks.append(_track(component.name if component else "Component", "component", item))

        for text in scene.texts:
            item = create_text_item(text, start, duration)
            tracks.append(_track(text.text[:20] or "Text", "text", item))

        for shape in scene.shapes:
            counters["shape"] += 1
            item = create_shape_item(shape, start, duration)
            tracks.append(_track(_shape_track_name(item, counters["shape"]), "shape", item))

        for image in scene.images:
            counters["image"] += 1
            item = create_image_item(image, start, duration)
            tracks.append(_track(image.alt or f"Image {counters['image']}", "image", item))

        if scene.cursor:
            counters["cursor"] += 1
            item = create_cursor_item(scene.cursor, start, duration, settings.width, settings.height)
            tracks.append(_track(f"Cursor {counters['cursor']}", "cursor", item))

        if scene.narration_script and context.include_voiceover:
            counters["audio"] += 1
            tracks.append(_track(f"Narration {counters['audio']}", "audio", create_narration_item(scene)))

    return {
        "name": plan.title,
        "width": settings.width,
        "height": settings.height,
        "fps": settings.fps,
        "durationInFrames": settings.duration_in_frames,
        "tracks": sort_tracks_by_layer(tracks),
    }


def count_items(composition: GeneratedComposition) -> int:
    return sum(len(track["items"]) for track in composition["tracks"])


def validate_composition(composition: GeneratedComposition) -> tuple[bool, list[str]]:
    """
    Post-build checks. Never fatal.

    Returns:
        (is_valid, list_of_issues)
    """
    issues = []

    if count_items(composition) == 0:
        issues.append("Composition has no items")

    total = composition["durationInFrames"]
    for track in composition["tracks"]:
        for item in track["items"]:
            item_end = item.get("from", 0) + item.get("durationInFrames", 0)
            if item_end > total:
                issues.append(f'Item "{item.get("id")}" extends beyond composition ({item_end} > {total})')

            if track["type"] == "component" and not item.get("componentId"):
                issues.append(f'Component item "{item.get("id")}" has no componentId')

    return len(issues) == 0, issues


def to_editor_tracks(composition: GeneratedComposition) -> list[GeneratedTrack]:
    """
    Convert to the editor's persisted track list.

    Total: every track and item comes out with an id, minted where missing.
    The composition itself is left untouched.
    """
    return [
        {
            "id": track.get("id") or generate_id(),
            "name": track.get("name", ""),
            "type": track.get("type", ""),
            "locked": track.get("locked", False),
            "visible": track.get("visible", True),
            "items": [{**item, "id": item.get("id") or generate_id()} for item in track.get("items", [])],
        }
        for track in composition.get("tracks", [])
    ]


def print_composition_summary(composition: GeneratedComposition):
    """Print a human-readable summary of the composition."""
    fps = composition.get("fps", 30)
    tracks = composition.get("tracks", [])

    print("\n📹 Composition Summary")
    print(f"   Name: {composition.get('name', 'Untitled')}")
    print(f"   Duration: {composition.get('durationInFrames', 0) / fps:.1f}s")
    print(f"   Resolution: {composition.get('width', 0)}x{composition.get('height', 0)}")
    print(f"   Tracks: {len(tracks)}")

    for track in tracks:
        for item in track["items"]:
            start_s = item.get("from", 0) / fps
            duration_s = item.get("durationInFrames", 0) / fps
            print(f"      [{track['type']:<9}] {start_s:5.1f}s +{duration_s:4.1f}s  {track['name']}")


# ─────────────────────────────────────────────────────────────
# Node Function
# ─────────────────────────────────────────────────────────────

def assemble_node(state: dict, config: RunnableConfig) -> dict:
    """LangGraph node: assemble the composition."""
    print("\n📦 Assembling composition...")

    on_progress = get_progress_callback(config)
    started = time.perf_counter()
    report_progress(on_progress, "🔧 Stage 3/4: Assembling composition...")

    try:
        composition = assemble_composition(
            state["video_plan"],
            state.get("detailed_scenes", []),
            state["context"],
        )
    except Exception as e:
        failure = TerminalStageFailure("assembly", f"Assembly failed: {e}", e)
        print(f"   ❌ {failure}")
        return {
            "error": str(failure),
            "stage_timings": {"assembly": elapsed_ms(started)},
        }

    is_valid, issues = validate_composition(composition)
    if not is_valid:
        print("   ⚠️  Validation issues:")
        for issue in issues:
            print(f"      - {issue}")

    print_composition_summary(composition)

    report_progress(
        on_progress,
        f"🔧 Assembly complete: {len(composition['tracks'])} tracks, {count_items(composition)} items",
    )

    return {
        "composition": composition,
        "stage_timings": {"assembly": elapsed_ms(started)},
    }
