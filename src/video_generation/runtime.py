"""
Per-run dependencies for graph nodes.

The generator and the progress callback are not state: they travel in
`config["configurable"]` so the graph state stays plain data.

    config = {"configurable": {"generator": gen, "on_progress": print}}
"""
import time
from typing import Callable, Optional

from langchain_core.runnables import RunnableConfig

from .generation import StructuredGenerator


ProgressCallback = Callable[[str], None]


def get_generator(config: Optional[RunnableConfig]) -> StructuredGenerator:
    configurable = (config or {}).get("configurable", {})
    generator = configurable.get("generator")
    if generator is None:
        generator = StructuredGenerator()
    return generator


def get_progress_callback(config: Optional[RunnableConfig]) -> Optional[ProgressCallback]:
    return (config or {}).get("configurable", {}).get("on_progress")


def report_progress(on_progress: Optional[ProgressCallback], message: str) -> None:
    """Fire the caller's progress callback. It never influences the run."""
    if on_progress is None:
        return
    try:
        on_progress(message)
    except Exception as e:
        print(f"   ⚠️  Progress callback failed: {e}")


def elapsed_ms(started: float) -> float:
    """Milliseconds since a `time.perf_counter()` reading."""
    return round((time.perf_counter() - started) * 1000, 1)
