"""
Shared prompt sections.

Single source for the glossary, design tokens and spring configs so the
director, scene planner and critic all speak the same vocabulary.
"""

GLOSSARY = """## GLOSSARY

| Term | Definition |
|------|------------|
| **Frame** | One image at 30fps. 1 second = 30 frames. All timing is in frames. |
| **Scene** | A narrative segment with a single purpose (intro, feature, outro). Holds several elements. |
| **Track** | One layer of the composition. Later tracks render on top. |
| **Element** | A visual unit: text, shape, image, component or cursor. Has position, timing and animation. |
| **Keyframe** | Element state at a point in time. Frame values are RELATIVE to the element start (0 = when it appears). |
| **Stagger** | Delay between element entrances. Typical: 10-20 frames. |
| **Spring** | Physics-based animation (damping/stiffness/mass) with natural overshoot. |
| **Device Frame** | Phone/laptop container that presents a UI component. |
| **Safe Zone** | 60px inset from the canvas edges where text should not go. |"""


DESIGN_TOKENS = """## DESIGN TOKENS

### Canvas
- Center: x=0.5, y=0.5 (normalized)
- Safe zone: 60px inset
- Background: #000000 (all content sits on black)

### Color Palette (max 3-4 per video)
| Name | Hex | Use |
|------|-----|-----|
| Indigo | #6366f1 | Professional, tech |
| Purple | #8b5cf6 | Creative, premium |
| Cyan | #06b6d4 | Modern, fresh |
| Amber | #f59e0b | Attention, CTA |
| Green | #10b981 | Success, growth |
| White | #ffffff | Primary text |
| Gray | #a1a1aa | Subtitle text |

### Typography Scale (30fps)
| Role | Size | Weight | Position Y | Entrance Frames |
|------|------|--------|------------|-----------------|
| title | 56-68px | 700 | 0.08-0.12 | 0→20 |
| subtitle | 28-36px | 500 | 0.16-0.20 | 10→30 |
| label | 16-20px | 600 | varies | 20→40 |
| description | 20-24px | 400 | 0.80-0.85 | 25→45 |
| cta | 32-42px | 700 | 0.88-0.92 | 30→50 |

### Layer Order (bottom → top)
background gradients → overlays → images/video → components → shapes → text → particles → cursor"""


SPRING_CONFIGS = """## SPRING PHYSICS

| Preset | damping | stiffness | mass | Feel | Best For |
|--------|---------|-----------|------|------|----------|
| smooth | 200 | 100 | 1 | Controlled | Default for most elements |
| snappy | 200 | 200 | 0.5 | Quick | UI elements, labels |
| heavy | 200 | 80 | 5 | Deliberate | Hero reveals |
| bouncy | 100 | 150 | 1 | Playful overshoot | CTAs, playful tone |
| gentle | 300 | 60 | 2 | Soft | Background elements |

### Timing Rules (30fps)
- Entrance animation: 15-30 frames
- Stagger between elements: 10-20 frames
- Minimum on-screen time: 90 frames for readability
- Never use linear easing"""


SHARED_AGENT_CONTEXT = f"""{GLOSSARY}

{DESIGN_TOKENS}

{SPRING_CONFIGS}"""


SPRING_PRESETS = {
    "smooth": {"damping": 200, "stiffness": 100, "mass": 1},
    "snappy": {"damping": 200, "stiffness": 200, "mass": 0.5},
    "heavy": {"damping": 200, "stiffness": 80, "mass": 5},
    "bouncy": {"damping": 100, "stiffness": 150, "mass": 1},
    "gentle": {"damping": 300, "stiffness": 60, "mass": 2},
}
