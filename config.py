"""
Configuration file for the Product Video Ad Generator.
Contains all global constants and prompt engineering templates.
"""

import os

# --- Constants ---
PROJECT_ROOT = os.getcwd()
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./adgen.db")

CELERY_BROKER_URL = os.getenv("CELERY_BROKER_URL", "redis://localhost:6379/0")
CELERY_RESULT_BACKEND = os.getenv("CELERY_RESULT_BACKEND", "redis://localhost:6379/0")
# Number of render worker processes; this is the cap on concurrent renders.
RENDER_WORKERS = int(os.getenv("RENDER_WORKERS", "2"))

CORS_ORIGINS = [
    origin.strip()
    for origin in os.getenv("CORS_ORIGINS", "http://localhost:3000,http://127.0.0.1:3000").split(",")
    if origin.strip()
]

# --- Script generation ---
LLM_PROVIDER = os.getenv("LLM_PROVIDER", "openai")
LLM_MODEL = os.getenv("LLM_MODEL", "gpt-4.1")
LLM_API_KEY = os.getenv("LLM_API_KEY")
LLM_BASE_URL = os.getenv("LLM_BASE_URL") or None
OLLAMA_API_URL = os.getenv("OLLAMA_API_URL", "http://localhost:11434/api/chat")
LLM_TIMEOUT = 180

# --- Voiceover ---
TTS_MODEL = os.getenv("TTS_MODEL", "tts-1")
TTS_VOICE = os.getenv("TTS_VOICE", "nova")
TTS_SPEED = float(os.getenv("TTS_SPEED", "1.0"))
TTS_MAX_CHARS = 4000
TTS_WORDS_PER_MINUTE = 150
TTS_VOICES = ("alloy", "echo", "fable", "onyx", "nova", "shimmer")
TTS_QUALITY_MODELS = {"standard": "tts-1", "hd": "tts-1-hd"}

# --- Rendering ---
VIDEOS_DIR = os.path.abspath(os.getenv("VIDEOS_DIR", os.path.join(PROJECT_ROOT, "videos")))
AUDIO_DIR = os.path.abspath(os.getenv("AUDIO_DIR", os.path.join(PROJECT_ROOT, "audio")))
REMOTION_PROJECT_DIR = os.path.abspath(
    os.getenv("REMOTION_PROJECT_DIR", os.path.join(PROJECT_ROOT, "..", "video-templates"))
)
REMOTION_PUBLIC_DIR = os.path.join(REMOTION_PROJECT_DIR, "public")
RENDER_TIMEOUT = int(os.getenv("RENDER_TIMEOUT", "300"))

ON_RENDER_FAILURE_PROPAGATE = "propagate"
ON_RENDER_FAILURE_PLACEHOLDER = "substitute_placeholder"
ON_RENDER_FAILURE = os.getenv("ON_RENDER_FAILURE", ON_RENDER_FAILURE_PROPAGATE)

VIDEO_FPS = 30
VIDEO_DURATION_SECONDS = 30
ASPECT_RATIOS = {
    "16:9": {"composition": "ProductShowcase", "width": 1920, "height": 1080},
    "9:16": {"composition": "ProductShowcaseVertical", "width": 1080, "height": 1920},
}
DEFAULT_ASPECT_RATIO = "16:9"
DEFAULT_TEMPLATE = "default"

# --- Stuck job sweep ---
RECONCILE_STUCK_JOBS_ON_STARTUP = os.getenv("RECONCILE_STUCK_JOBS_ON_STARTUP", "false").lower() in ("1", "true", "yes")
STUCK_JOB_MAX_AGE = int(os.getenv("STUCK_JOB_MAX_AGE", "900"))

# --- Scraping ---
SCRAPE_TIMEOUT = 30
USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/123.0 Safari/537.36"
)
MIN_TITLE_LENGTH = 3
MAX_IMAGES = 5
MAX_FEATURES = 5
MAX_DESCRIPTION_CHARS = 500


def validate_settings():
    """Fail fast on configuration the service cannot run without."""
    if not LLM_API_KEY:
        raise RuntimeError("LLM_API_KEY environment variable is required")
    if ON_RENDER_FAILURE not in (ON_RENDER_FAILURE_PROPAGATE, ON_RENDER_FAILURE_PLACEHOLDER):
        raise RuntimeError(
            f"ON_RENDER_FAILURE must be '{ON_RENDER_FAILURE_PROPAGATE}' or "
            f"'{ON_RENDER_FAILURE_PLACEHOLDER}', got '{ON_RENDER_FAILURE}'"
        )


# --- Prompt Engineering Section ---

SYSTEM_PROMPT = (
    "You are an expert copywriter specializing in video advertisements. "
    "Always respond with valid JSON only."
)

SCRIPT_PROMPT_TEMPLATE = """
Create a compelling 30-second video ad script for this product:

Product: {title}
Description: {description}
Price: {price}
Features: {features}

Generate a JSON response with the following structure:
{{
  "hook": "Attention-grabbing opening line (6-10 words)",
  "problem": "Problem this product solves (12-18 words)",
  "solution": "How the product solves it (15-25 words)",
  "benefits": ["benefit 1 (5-8 words)", "benefit 2 (5-8 words)", "benefit 3 (5-8 words)"],
  "callToAction": "Strong call to action (8-12 words)",
  "duration": 30
}}

IMPORTANT: Create a script that will last approximately 25-30 seconds when spoken. Total word count should be 70-90 words.
Make it engaging and conversational while maintaining energy throughout.
"""
