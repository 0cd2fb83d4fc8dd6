"""Configuration loading and validation for the forge."""

import logging
import os
from pathlib import Path

import structlog
from dotenv import load_dotenv
from rich.logging import RichHandler

from utils.logging import add_run_id

# Get the project root directory (parent of src)
PROJECT_ROOT = Path(__file__).parent.parent.parent

# Load environment variables from .env file in project root
load_dotenv(PROJECT_ROOT / ".env")

DEFAULT_CORS_ORIGINS = "http://localhost:5173,http://localhost:3000"


def load_config() -> dict:
    """Load configuration from environment variables."""

    # Helper function to resolve paths relative to project root
    def resolve_path(path: str | None, default_relative: str) -> str:
        if not path:
            return str(PROJECT_ROOT / default_relative)
        if Path(path).is_absolute():
            return path
        return str(PROJECT_ROOT / path)

    config = {
        # Required API key
        "gemini_api_key": os.getenv("GEMINI_API_KEY"),
        # Model configurations
        "text_model": os.getenv("GEMINI_TEXT_MODEL", "gemini-3-flash-preview"),
        "image_model": os.getenv("GEMINI_IMAGE_MODEL", "gemini-2.5-flash-image"),
        "video_model": os.getenv("VEO_MODEL", "veo-3.1-fast-generate-preview"),
        # Run shape
        "variation_count": int(os.getenv("VARIATION_COUNT", "20")),
        "pacing_delay_ms": int(os.getenv("PACING_DELAY_MS", "4000")),
        # Backoff for upstream calls
        "retry_max_attempts": int(os.getenv("RETRY_MAX_ATTEMPTS", "5")),
        "retry_initial_delay_ms": int(os.getenv("RETRY_INITIAL_DELAY_MS", "4000")),
        "video_poll_interval_seconds": float(os.getenv("VIDEO_POLL_INTERVAL_SECONDS", "15")),
        # Daily quota
        "daily_generation_limit": int(os.getenv("DAILY_GENERATION_LIMIT", "3")),
        "quota_db_path": resolve_path(os.getenv("QUOTA_DB_PATH"), ".forge/quota.db"),
        # Near-white cutoff for background removal (0-255)
        "transparency_threshold": int(os.getenv("TRANSPARENCY_THRESHOLD", "245")),
        # Server
        "cors_origins": [
            origin.strip()
            for origin in os.getenv("CORS_ORIGINS", DEFAULT_CORS_ORIGINS).split(",")
            if origin.strip()
        ],
        "log_level": os.getenv("LOG_LEVEL", "INFO"),
        "log_json": os.getenv("LOG_JSON", "false").lower() == "true",
    }

    return config


def validate_config(config: dict) -> list[str]:
    """Validate configuration and return list of errors."""
    errors = []

    # Check required API key
    if not config.get("gemini_api_key"):
        errors.append("GEMINI_API_KEY is required")

    for key in (
        "variation_count",
        "retry_max_attempts",
        "daily_generation_limit",
    ):
        if config.get(key, 0) < 1:
            errors.append(f"{key.upper()} must be at least 1")

    for key in ("pacing_delay_ms", "retry_initial_delay_ms", "video_poll_interval_seconds"):
        if config.get(key, 0) <= 0:
            errors.append(f"{key.upper()} must be positive")

    threshold = config.get("transparency_threshold", 245)
    if not 0 <= threshold <= 255:
        errors.append("TRANSPARENCY_THRESHOLD must be between 0 and 255")

    return errors


def setup_logging(log_level: str = "INFO") -> None:
    """Set up logging configuration with Rich for terminal output."""
    # Clear any existing handlers
    logging.root.handlers.clear()

    rich_handler = RichHandler(
        show_time=True,
        show_level=True,
        show_path=False,
        rich_tracebacks=True,
        markup=False,  # Disable markup to avoid conflicts
    )

    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        handlers=[rich_handler],
        format="%(message)s",
    )

    # structlog events render as key=value lines through the Rich handler
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            add_run_id,
            structlog.processors.KeyValueRenderer(key_order=["event"]),
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
    )

    # Suppress noisy third-party loggers
    noisy_loggers = [
        "httpx",
        "httpcore",
        "google_genai",
        "google_genai.models",
        "aiosqlite",
        "PIL",
    ]

    for logger_name in noisy_loggers:
        logging.getLogger(logger_name).setLevel(logging.WARNING)
