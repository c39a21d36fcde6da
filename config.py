"""App-wide configuration and environment settings."""

import os
from dotenv import load_dotenv

load_dotenv()  # Load from .env file


def get_secret(key, default=None):
    """Read a setting from the environment (populated from .env above)."""
    return os.getenv(key, default)


# LLM (Google Gemini), used only by the content-generation service
GOOGLE_API_KEY = get_secret("GOOGLE_API_KEY", "")
LLM_MODEL = get_secret("LLM_MODEL", "gemini-2.5-flash-lite")
LLM_TEMPERATURE = float(get_secret("LLM_TEMPERATURE", "0.7"))

# Workflow thresholds
MIN_STATEMENT_LENGTH = int(get_secret("MIN_STATEMENT_LENGTH", "10"))

# Persistence
STORE_NAMESPACE = get_secret("STORE_NAMESPACE", "user_module_data")

# UI status
ERROR_BANNER_TTL_SECONDS = float(get_secret("ERROR_BANNER_TTL_SECONDS", "6"))

# LangSmith
LANGSMITH_TRACING = os.getenv("LANGSMITH_TRACING", "false").lower() in ("true", "1")
LANGSMITH_PROJECT = os.getenv("LANGSMITH_PROJECT", "guided-authoring")

# Server
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", "8000"))
