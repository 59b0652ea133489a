"""
Centralized configuration. Load once, use everywhere.
"""
import os
from dotenv import load_dotenv
from langchain_google_genai import ChatGoogleGenerativeAI

load_dotenv()


class Config:
    GEMINI_API_KEY = os.getenv("GEMINI_API_KEY")

    MODEL_NAME = os.getenv("VIDEOGEN_MODEL", "gemini-3-flash-preview")

    # ─────────────────────────────────────────────────────────────
    # Per-stage sampling temperatures
    # ─────────────────────────────────────────────────────────────
    # Planning stages are creative, the critic should be consistent
    DIRECTOR_TEMPERATURE = float(os.getenv("DIRECTOR_TEMPERATURE", "0.7"))
    SCENE_PLANNER_TEMPERATURE = float(os.getenv("SCENE_PLANNER_TEMPERATURE", "0.7"))
    REFINEMENT_TEMPERATURE = float(os.getenv("REFINEMENT_TEMPERATURE", "0.3"))

    # ─────────────────────────────────────────────────────────────
    # Structured generation retries
    # ─────────────────────────────────────────────────────────────
    # 2 retries = 3 attempts total
    MAX_GENERATION_RETRIES = int(os.getenv("MAX_GENERATION_RETRIES", "2"))

    # Transport errors wait RETRY_BACKOFF_SECONDS * attempt before retrying
    RETRY_BACKOFF_SECONDS = float(os.getenv("RETRY_BACKOFF_SECONDS", "1.0"))
    RETRY_PAUSE_SECONDS = float(os.getenv("RETRY_PAUSE_SECONDS", "0.5"))

    # ─────────────────────────────────────────────────────────────
    # Quality gate
    # ─────────────────────────────────────────────────────────────
    DEFAULT_MIN_QUALITY_SCORE = int(os.getenv("MIN_QUALITY_SCORE", "60"))
    DEFAULT_MAX_REFINEMENT_ITERATIONS = int(os.getenv("MAX_REFINEMENT_ITERATIONS", "2"))

    # Keyframes beyond this frame are assumed to be absolute-timeline values (~3s at 30fps)
    ABSOLUTE_FRAME_THRESHOLD = int(os.getenv("ABSOLUTE_FRAME_THRESHOLD", "90"))

    # Debug mode - set DEBUG=1 in env to enable verbose logging
    DEBUG = os.getenv("DEBUG", "").lower() in ("1", "true", "yes")


def get_model(
    model_name: str = None,
    temperature: float = 0,
) -> ChatGoogleGenerativeAI:
    """Get the Gemini model used by every generation stage."""
    return ChatGoogleGenerativeAI(
        model=model_name or Config.MODEL_NAME,
        google_api_key=Config.GEMINI_API_KEY,
        temperature=temperature,
    )
