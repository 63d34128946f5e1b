"""
config.py - Configuration constants and utilities for CrossRank
"""

import logging
import os

from dotenv import load_dotenv

load_dotenv(override=True)

# Token limits
MAX_TOKENS_GENERATE = 1000
MAX_TOKENS_EVAL = 2000
MAX_TOKENS_RANK = 2000

# Per-call timeout in seconds; a timed-out call counts as a transport failure
DEFAULT_TIMEOUT = float(os.getenv("CROSSRANK_TIMEOUT", "60"))

# Temperature settings (None = vendor default)
TEMPERATURE_GENERATE = None
TEMPERATURE_EVAL = 0.3
TEMPERATURE_RANK = 0.3

# Model selection bounds for a full run
MIN_SELECTED_MODELS = 4
MAX_SELECTED_MODELS = 5

# Placeholder texts substituted into GeneratedResponse.text
SENTINEL_TEMPLATE = "Error: Failed to generate response from {name}"
EMPTY_RESPONSE_TEXT = "No response"

# Final-judgment model
DEFAULT_ARBITER_MODEL = "gemini-1.5-pro"
ARBITER_MODEL = os.getenv("CROSSRANK_ARBITER_MODEL", DEFAULT_ARBITER_MODEL)

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

API_KEY_ENV = {
    "openai": "OPENAI_API_KEY",
    "anthropic": "ANTHROPIC_API_KEY",
    "google": "GOOGLE_API_KEY",
    "mistral": "MISTRAL_API_KEY",
}


def get_arbiter_model() -> str:
    """Get the model id used for the final ranking."""
    return ARBITER_MODEL


def set_arbiter_model(model_id: str):
    """Set the model id used for the final ranking."""
    global ARBITER_MODEL
    ARBITER_MODEL = model_id.strip() or DEFAULT_ARBITER_MODEL


def get_api_key(provider: str) -> str:
    env_var = API_KEY_ENV.get(str(getattr(provider, "value", provider)))
    if not env_var:
        raise ValueError(f"Unknown provider: {provider}")
    key = os.getenv(env_var)
    if not key:
        raise ValueError(f"{env_var} not set")
    return key


def sentinel_text(display_name: str) -> str:
    return SENTINEL_TEMPLATE.format(name=display_name)


def is_sentinel(text: str) -> bool:
    prefix = SENTINEL_TEMPLATE.split("{name}")[0]
    return text.startswith(prefix)


def format_duration(seconds: float) -> str:
    if seconds < 60:
        return f"{seconds:.1f}s"
    return f"{int(seconds // 60)}m {seconds % 60:.1f}s"


def setup_logging(level: str | int | None = None, log_format: str | None = None) -> None:
    """Configure the root logger for the CLI and the API server."""
    if level is None:
        level = LOG_LEVEL
    if isinstance(level, str):
        level = getattr(logging, level.upper(), logging.INFO)
    if log_format is None:
        log_format = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers.clear()

    handler = logging.StreamHandler()
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(log_format))
    root_logger.addHandler(handler)

    # Vendor SDKs log every HTTP request at INFO
    for noisy in ("httpx", "httpcore", "openai", "anthropic", "google_genai"):
        logging.getLogger(noisy).setLevel(max(level, logging.WARNING))
