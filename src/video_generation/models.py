"""
Domain records for the generation pipeline.

Pydantic models with snake_case attributes and camelCase aliases, so
`model_dump(by_alias=True)` is exactly the shape the editor stores.
The same element models double as the structured-output contract for the
scene planner, so their Field descriptions are written for the model.

Flow of records:
    VideoGenerationRequest → GenerationContext (frozen, shared by every stage)
    director      → VideoPlan (frozen) with SceneOutline[]
    scene planner → DetailedScene (one per outline)
    refinement    → RefinementResult
"""
from dataclasses import dataclass
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


SceneType = Literal["intro", "feature", "transition", "tutorial", "outro"]
Tone = Literal["professional", "playful", "technical", "inspirational"]
Style = Literal["minimal", "motion-rich", "cinematic", "energetic"]
AnimationIntensity = Literal["low", "medium", "high"]
TextRole = Literal["title", "subtitle", "description", "label", "cta"]
ShapeType = Literal["rectangle", "circle", "gradient", "line", "badge", "svg"]
DisplaySize = Literal["phone", "laptop", "full"]
AnimationType = Literal[
    "none", "fade", "slide", "scale",
    "spring-scale", "spring-slide", "spring-bounce", "flip", "zoom-blur",
]
SpringPreset = Literal["smooth", "snappy", "heavy", "bouncy", "gentle"]
Direction = Literal["left", "right", "top", "bottom"]


class CamelModel(BaseModel):
    """Base for every record that crosses into the editor."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ─────────────────────────────────────────────────────────────
# Inbound Interfaces
# ─────────────────────────────────────────────────────────────

class ComponentInfo(CamelModel):
    """A catalog entry for a UI component the video can feature."""
    id: str
    name: str
    category: str = "component"
    description: Optional[str] = None
    props: list[str] = Field(default_factory=list)
    demo_props: Optional[dict[str, Any]] = None
    interactive_elements: Optional[str] = None  # selector/action summary for cursor targeting
    uses_components: Optional[list[str]] = None
    used_by_components: Optional[list[str]] = None
    related_components: Optional[list[str]] = None


class AvailableAsset(CamelModel):
    """An uploaded media file the scene planner may reference."""
    name: str
    url: str
    type: Literal["image", "video", "audio", "other"] = "image"


class CompositionSettings(CamelModel):
    width: int = 1920
    height: int = 1080
    fps: int = 30
    duration_in_frames: int = 900


class VideoGenerationRequest(CamelModel):
    """Everything a caller provides to generate one composition."""
    user_request: str
    composition: CompositionSettings = Field(default_factory=CompositionSettings)
    components: list[ComponentInfo] = Field(default_factory=list)
    include_voiceover: bool = False
    voice_name: str = "Kore"
    target_duration_seconds: float = 30
    project_id: Optional[str] = None
    available_assets: list[AvailableAsset] = Field(default_factory=list)
    model_id: Optional[str] = None
    min_quality_score: Optional[float] = None
    max_refinement_iterations: Optional[int] = None


@dataclass(frozen=True)
class GenerationContext:
    """
    Immutable per-run context handed to every stage.

    Built once from the request. Stages read from it and return new
    records; nothing writes back into it.
    """
    user_request: str
    composition: CompositionSettings
    components: tuple[ComponentInfo, ...] = ()
    include_voiceover: bool = False
    voice_name: str = "Kore"
    target_duration_seconds: float = 30
    project_id: Optional[str] = None
    available_assets: tuple[AvailableAsset, ...] = ()
    model_id: Optional[str] = None

    @classmethod
    def from_request(cls, request: VideoGenerationRequest) -> "GenerationContext":
        return cls(
            user_request=request.user_request,
            composition=request.composition,
            components=tuple(request.components),
            include_voiceover=request.include_voiceover,
            voice_name=request.voice_name,
            target_duration_seconds=request.target_duration_seconds,
            project_id=request.project_id,
            available_assets=tuple(request.available_assets),
            model_id=request.model_id,
        )

    def find_component(self, component_id: Optional[str]) -> Optional[ComponentInfo]:
        if not component_id:
            return None
        for component in self.components:
            if component.id == component_id:
                return component
        return None


# ─────────────────────────────────────────────────────────────
# Director Output
# ─────────────────────────────────────────────────────────────

class SceneOutline(CamelModel):
    """One narrative segment as planned by the director."""
    model_config = ConfigDict(frozen=True)

    id: str
    type: SceneType
    purpose: str
    duration_in_frames: int
    component_id: Optional[str] = None
    component_name: Optional[str] = None
    key_points: list[str] = Field(default_factory=list)
    interaction_goals: Optional[list[str]] = None
    animation_intensity: AnimationIntensity = "medium"


class VideoPlan(CamelModel):
    """Global narrative plan. Created once by the director, read-only after."""
    model_config = ConfigDict(frozen=True)

    title: str
    audience: str
    core_message: str
    tone: Tone
    style: Style
    duration_in_frames: int
    scenes: list[SceneOutline] = Field(default_factory=list)


# ─────────────────────────────────────────────────────────────
# Scene Elements
# ─────────────────────────────────────────────────────────────

class Position(CamelModel):
    x: float = Field(0.5, description="Horizontal position, 0-1 of canvas width")
    y: float = Field(0.5, description="Vertical position, 0-1 of canvas height")


class RawKeyframe(CamelModel):
    """A keyframe as the model writes it: flat animatable properties."""
    frame: float = Field(description="Frame RELATIVE to the element's own start (0 = the instant it appears)")
    opacity: Optional[float] = Field(None, description="Opacity 0-1")
    scale: Optional[float] = Field(None, description="Scale factor")
    x: Optional[float] = Field(None, description="X position 0-1")
    y: Optional[float] = Field(None, description="Y position 0-1")
    rotation: Optional[float] = Field(None, description="Rotation in degrees")
    blur: Optional[float] = None
    brightness: Optional[float] = None
    contrast: Optional[float] = None
    position_x: Optional[float] = None
    position_y: Optional[float] = None
    easing: Optional[Literal["linear", "ease-in", "ease-out", "ease-in-out", "spring"]] = None


class AnimationSpec(CamelModel):
    """Spring-based enter/exit animation config."""
    type: Optional[AnimationType] = Field(None, description="Prefer spring-scale for a professional look")
    direction: Optional[Direction] = None
    spring_preset: Optional[SpringPreset] = Field(None, description="Spring physics preset (default: smooth)")
    stagger_delay: Optional[float] = Field(None, description="Frames to delay start for stagger effect")


class SceneText(CamelModel):
    text: str
    role: TextRole = "label"
    font_size: float = 48
    font_weight: Optional[int] = None
    color: str = "#ffffff"
    background_color: Optional[str] = None
    position: Position = Field(default_factory=Position)
    offset_frames: float = Field(0, description="Frames after scene start")
    duration_in_frames: Optional[float] = None
    keyframes: Optional[list[RawKeyframe]] = None
    letter_spacing: Optional[float] = None
    line_height: Optional[float] = None
    text_align: Optional[Literal["left", "center", "right"]] = None
    enter_animation: Optional[AnimationSpec] = None
    exit_animation: Optional[AnimationSpec] = None


class SceneShape(CamelModel):
    shape_type: ShapeType
    width: float
    height: float
    position: Position = Field(default_factory=Position)
    fill: Optional[str] = None
    stroke: Optional[str] = None
    stroke_width: Optional[float] = None
    border_radius: Optional[float] = None
    opacity: Optional[float] = None
    gradient_from: Optional[str] = None
    gradient_to: Optional[str] = None
    gradient_direction: Optional[float] = None
    text: Optional[str] = Field(None, description="Label text for badge shapes")
    font_size: Optional[float] = None
    color: Optional[str] = None
    svg_content: Optional[str] = None
    view_box: Optional[str] = None
    offset_frames: float = Field(0, description="Frames after scene start")
    duration_in_frames: Optional[float] = None
    keyframes: Optional[list[RawKeyframe]] = None


class SceneImage(CamelModel):
    src: str = Field(description="Image URL, taken verbatim from the available assets")
    alt: Optional[str] = None
    position: Position = Field(default_factory=Position)
    width: float = Field(description="Width as fraction of canvas (0-1)")
    height: float = Field(description="Height as fraction of canvas (0-1)")
    clip_shape: Optional[Literal["none", "circle", "rounded-rect", "hexagon", "diamond"]] = None
    offset_frames: float = Field(0, description="Frames after scene start")
    duration_in_frames: Optional[float] = None
    keyframes: Optional[list[RawKeyframe]] = None
    enter_animation: Optional[AnimationSpec] = None


class CursorKeyframe(CamelModel):
    frame: float = Field(description="Frame relative to cursor start (0 = when the cursor appears)")
    target: Optional[str] = Field(None, description="CSS selector from the component's interactive elements (preferred)")
    x: Optional[float] = Field(None, description="Fallback x position (0-1) if no target")
    y: Optional[float] = Field(None, description="Fallback y position (0-1) if no target")
    click: Optional[bool] = None
    action: Optional[Literal["click", "hover", "focus", "type", "select", "check"]] = None
    value: Optional[str] = Field(None, description="Text to type, or option value to select")
    speed: Optional[float] = Field(None, description="For type: frames per character")
    hold_duration: Optional[float] = Field(None, description="Frames to hold the visual effect")


class SceneCursor(CamelModel):
    cursor_style: Literal["default", "pointer", "hand"] = "default"
    click_effect: Literal["ripple", "highlight", "none"] = "ripple"
    keyframes: list[CursorKeyframe] = Field(default_factory=list)


class SceneComponent(CamelModel):
    """The catalog component featured in a scene, resolved to its id."""
    component_id: str
    display_size: DisplaySize = "full"
    container_width: Optional[float] = None
    container_height: Optional[float] = None
    object_position: Optional[str] = None
    props: dict[str, Any] = Field(default_factory=dict)
    keyframes: Optional[list[RawKeyframe]] = None
    enter_animation: Optional[AnimationSpec] = None


class DetailedScene(CamelModel):
    """A fully specified scene, positioned on the absolute timeline."""
    scene_id: str
    from_: int = Field(alias="from")
    duration_in_frames: int
    texts: list[SceneText] = Field(default_factory=list)
    shapes: list[SceneShape] = Field(default_factory=list)
    images: list[SceneImage] = Field(default_factory=list)
    cursor: Optional[SceneCursor] = None
    component: Optional[SceneComponent] = None
    narration_script: Optional[str] = None


# ─────────────────────────────────────────────────────────────
# Refinement
# ─────────────────────────────────────────────────────────────

FixAction = Literal[
    "adjust-timing",
    "adjust-position",
    "add-element",
    "remove-element",
    "modify-animation",
]


class PositionPatch(CamelModel):
    x: Optional[float] = None
    y: Optional[float] = None


class FixDetails(CamelModel):
    """Parameters for a suggested fix. Only the fields relevant to the action are set."""
    from_: Optional[float] = Field(None, alias="from", description="adjust-timing: new absolute start frame")
    duration_in_frames: Optional[float] = Field(None, description="adjust-timing: new duration")
    position: Optional[PositionPatch] = Field(None, description="adjust-position: new normalized position")
    keyframes: Optional[list[RawKeyframe]] = Field(None, description="modify-animation: replacement keyframes, frames relative to item start")
    stagger_delay: Optional[float] = None
    display_size: Optional[DisplaySize] = None
    container_width: Optional[float] = None
    scene_type: Optional[SceneType] = Field(None, description="add-element: kind of scene that is missing")


class SuggestedFix(CamelModel):
    action: FixAction
    details: FixDetails = Field(default_factory=FixDetails)


class RefinementIssue(CamelModel):
    severity: Literal["critical", "warning", "suggestion"]
    category: Literal["timing", "visual", "narrative", "animation", "accessibility"]
    description: str
    item_id: Optional[str] = Field(None, description="ID of the affected item, copied from the sample items")
    scene_id: Optional[str] = Field(None, description="ID of the affected scene")
    suggested_fix: Optional[SuggestedFix] = None


class RefinementResult(CamelModel):
    overall_score: float
    summary: str
    issues: list[RefinementIssue] = Field(default_factory=list)
    recommended_changes: int = 0

    @property
    def critical_count(self) -> int:
        return sum(1 for issue in self.issues if issue.severity == "critical")

    @property
    def warning_count(self) -> int:
        return sum(1 for issue in self.issues if issue.severity == "warning")
