"""
Application configuration
Reads a .env file and the process environment into an explicit AppConfig
that is handed to the session at construction.
"""

import logging
import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

from .constants import (
    BEDROCK_MODEL_ID,
    BEDROCK_REGION,
    OLLAMA_HOST,
    OLLAMA_MODEL,
    TIMEOUTS,
)

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


@dataclass(frozen=True)
class AppConfig:
    """Settings for one classroom-screen session."""
    data_dir: str = "./data"
    ai_backend: str = "bedrock"
    bedrock_region: str = BEDROCK_REGION
    bedrock_model_id: str = BEDROCK_MODEL_ID
    ollama_host: str = OLLAMA_HOST
    ollama_model: str = OLLAMA_MODEL
    ai_timeout: int = TIMEOUTS["ai_generation"]
    teacher_id: Optional[str] = None
    sound_enabled: bool = True
    log_level: str = "INFO"


def _env_flag(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def load_config(env_file: Optional[str] = None) -> AppConfig:
    """Load configuration from the environment (and .env if present)."""
    load_dotenv(env_file)

    backend = os.getenv("CLASSROOM_AI_BACKEND", "bedrock").strip().lower()
    if backend not in ("bedrock", "ollama"):
        logging.getLogger(__name__).warning(
            "Unknown AI backend %r, falling back to bedrock", backend
        )
        backend = "bedrock"

    return AppConfig(
        data_dir=os.getenv("CLASSROOM_DATA_DIR", "./data"),
        ai_backend=backend,
        bedrock_region=os.getenv("BEDROCK_REGION", BEDROCK_REGION),
        bedrock_model_id=os.getenv("BEDROCK_MODEL_ID", BEDROCK_MODEL_ID),
        ollama_host=os.getenv("OLLAMA_HOST", OLLAMA_HOST),
        ollama_model=os.getenv("OLLAMA_MODEL", OLLAMA_MODEL),
        ai_timeout=int(os.getenv("CLASSROOM_AI_TIMEOUT", TIMEOUTS["ai_generation"])),
        teacher_id=os.getenv("CLASSROOM_TEACHER_ID") or None,
        sound_enabled=_env_flag("CLASSROOM_SOUND", True),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
    )


def configure_logging(level: str = "INFO"):
    """Configure root logging once for the app process."""
    logging.basicConfig(level=level, format=LOG_FORMAT)
    logging.getLogger("classroom_screen").setLevel(level)
