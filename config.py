import os

# ── Database ──────────────────────────────────────────────────
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./fabino.db")

# Set to "0" to run the storefront against the bundled catalogue only
BACKEND_ENABLED = os.getenv("BACKEND_ENABLED", "1") == "1"

# ── Object storage ────────────────────────────────────────────
STORAGE_DIR = os.getenv("STORAGE_DIR", "./storage")
STORAGE_BUCKET = os.getenv("STORAGE_BUCKET", "products")
PUBLIC_STORAGE_URL = os.getenv("PUBLIC_STORAGE_URL", "/storage")

# ── Artifact Muse (OpenAI-compatible chat completions) ────────
MUSE_API_KEY = os.getenv("MUSE_API_KEY", "")
MUSE_INVOKE_URL = os.getenv("MUSE_INVOKE_URL", "https://integrate.api.nvidia.com/v1/chat/completions")
MUSE_MODEL_ID = os.getenv("MUSE_MODEL_ID", "deepseek-ai/deepseek-v3.1-terminus")
MUSE_TEMPERATURE = float(os.getenv("MUSE_TEMPERATURE", "0.7"))
MUSE_MAX_TOKENS = int(os.getenv("MUSE_MAX_TOKENS", "1024"))
MUSE_TOP_P = float(os.getenv("MUSE_TOP_P", "0.9"))
MUSE_TIMEOUT = float(os.getenv("MUSE_TIMEOUT", "30"))
MUSE_EXTRA_BODY = {"chat_template_kwargs": {"thinking": False}}

# ── Checkout ──────────────────────────────────────────────────
# Seconds spent on each cosmetic "processing" message
CHECKOUT_STEP_DELAYS = [
    float(d) for d in os.getenv("CHECKOUT_STEP_DELAYS", "0.8,0.8,1.0").split(",") if d.strip()
]
# Seconds the "saving to local session" notice stays up after a failed write
CHECKOUT_FAILURE_DELAY = float(os.getenv("CHECKOUT_FAILURE_DELAY", "1.5"))

# ── Logging ───────────────────────────────────────────────────
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# ── Session cookie ────────────────────────────────────────────
SESSION_COOKIE = "fabino_session"
# Visitor sessions idle longer than this are dropped (seconds)
SESSION_IDLE_TIMEOUT = float(os.getenv("SESSION_IDLE_TIMEOUT", "1800"))


def get_muse_config():
    """Return the Artifact Muse model configuration."""
    return {
        "api_key": MUSE_API_KEY,
        "invoke_url": MUSE_INVOKE_URL,
        "model_id": MUSE_MODEL_ID,
        "temperature": MUSE_TEMPERATURE,
        "max_tokens": MUSE_MAX_TOKENS,
        "top_p": MUSE_TOP_P,
        "timeout": MUSE_TIMEOUT,
        "extra_body": MUSE_EXTRA_BODY
    }


def is_backend_configured():
    return BACKEND_ENABLED and bool(DATABASE_URL)


def is_muse_configured():
    return bool(get_muse_config()["api_key"])


# ── Muse prompt template ──────────────────────────────────────
MUSE_PROMPT_TEMPLATE = """You are 'The Artifact Muse', an expert in generative design and personalized 3D printing.
Based on this user's story: "{story}", suggest 3 creative, emotional 3D-printable gift concepts.
Focus on items that use data (sound waves, maps, dates, coordinates) to drive their physical form.
Keep descriptions brief, evocative, and focused on the 3D-printed nature of the object.

Respond ONLY with a JSON array. Each element must be an object with exactly these string fields:
"title", "description", "sentiment".
"""
