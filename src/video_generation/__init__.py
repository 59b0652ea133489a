"""
Video Generation - Natural-language request to editor-ready tracks.

Turns a request ("a 20s launch video for our pricing page") plus a catalog
of UI components into a multi-track composition the editor can load
directly: component showcases, text, shapes, images, cursor demos and
narration, each element on its own track.

## Stages

1. **Director** plans the video: title, audience, tone, style and scene
   outlines with a share of the total duration each
2. **Scene planner** details every scene in parallel: elements, positions,
   keyframes, cursor paths. A failed scene degrades to a title card
3. **Assembler** flattens the scenes into tracks, deterministically
4. **Refinement** scores the result and auto-applies fixes until the
   quality gate passes or the iteration budget runs out

## Usage

```python
from video_generation import generate_video, VideoGenerationRequest

request = VideoGenerationRequest.model_validate(payload_from_editor)
result = await generate_video(request, on_progress=print)

if result["success"]:
    tracks = result["tracks"]
    print(result["metadata"]["final_score"])
```

## Testing

```python
from video_generation import create_test_request, build_generation_graph

# Sample request with a two-component catalog
request = create_test_request(target_duration_seconds=15)

# Any object with `async generate(system, user, schema, temperature)`
# can stand in for the model
result = await generate_video(request, generator=fake_generator)
```

## Pipeline Flow

```
VideoGenerationRequest
    ↓
director (VideoPlan)
    ↓
plan_scene ×N (DetailedScene per scene, parallel)
    ↓
assemble (GeneratedComposition)
    ↓
refine ⇄ apply_fixes (scored versions)
    ↓
finalize (best version)
```
"""

from .graph import (
    build_generation_graph,
    generate_video,
    generate_video_quick,
    run_generation_test,
)
from .models import (
    VideoGenerationRequest,
    CompositionSettings,
    ComponentInfo,
    AvailableAsset,
    GenerationContext,
    VideoPlan,
    SceneOutline,
    DetailedScene,
    RefinementResult,
    RefinementIssue,
)
from .state import (
    GenerationState,
    GeneratedComposition,
    GeneratedTrack,
    GeneratedItem,
    PropertyKeyframe,
)
from .errors import (
    VideoGenerationError,
    GenerationError,
    GenerationValidationError,
    GenerationRateLimitError,
    GenerationTransportError,
    GenerationExhaustedError,
    TerminalStageFailure,
    StageDegradation,
)
from .generation import StructuredGenerator, GenerationResult
from .assembler import assemble_composition, validate_composition, to_editor_tracks
from .refinement import apply_fixes, meets_quality_threshold
from .timing import (
    percentage_to_frames,
    fix_relative_frame_misuse,
    normalize_keyframe,
    track_layer_priority,
    find_track_insert_index,
)
from .loader import load_request, save_result, create_test_request

__all__ = [
    # Entry points
    "build_generation_graph",
    "generate_video",
    "generate_video_quick",
    "run_generation_test",

    # Request & plan types
    "VideoGenerationRequest",
    "CompositionSettings",
    "ComponentInfo",
    "AvailableAsset",
    "GenerationContext",
    "VideoPlan",
    "SceneOutline",
    "DetailedScene",
    "RefinementResult",
    "RefinementIssue",

    # Composition types
    "GenerationState",
    "GeneratedComposition",
    "GeneratedTrack",
    "GeneratedItem",
    "PropertyKeyframe",

    # Errors
    "VideoGenerationError",
    "GenerationError",
    "GenerationValidationError",
    "GenerationRateLimitError",
    "GenerationTransportError",
    "GenerationExhaustedError",
    "TerminalStageFailure",
    "StageDegradation",

    # Generation service
    "StructuredGenerator",
    "GenerationResult",

    # Pure helpers
    "assemble_composition",
    "validate_composition",
    "to_editor_tracks",
    "apply_fixes",
    "meets_quality_threshold",
    "percentage_to_frames",
    "fix_relative_frame_misuse",
    "normalize_keyframe",
    "track_layer_priority",
    "find_track_insert_index",

    # Loaders
    "load_request",
    "save_result",
    "create_test_request",
]
