import logging
import os
from dataclasses import dataclass, field
from typing import List, Optional

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

DEFAULT_MAX_UPLOAD_SIZE_BYTES = 10 * 1024 * 1024
DEFAULT_MAX_RECOMMENDATIONS = 5
DEFAULT_LLM_MODEL = "gpt-4o-mini"
DEFAULT_CORS_ORIGINS = [
    "http://localhost:3000",
    "http://localhost:5173",
]
SUMMARY_MODES = ("template", "llm")

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


@dataclass(frozen=True)
class EngineConfig:
    max_upload_size_bytes: int = DEFAULT_MAX_UPLOAD_SIZE_BYTES
    max_recommendations: int = DEFAULT_MAX_RECOMMENDATIONS
    enable_summary_generation: bool = True
    summary_mode: str = "template"
    llm_model: str = DEFAULT_LLM_MODEL
    taxonomy_path: Optional[str] = None
    cors_origins: List[str] = field(default_factory=lambda: list(DEFAULT_CORS_ORIGINS))

    def __post_init__(self) -> None:
        if self.max_upload_size_bytes <= 0:
            raise ValueError("max_upload_size_bytes must be positive")
        if self.max_recommendations < 0:
            raise ValueError("max_recommendations must not be negative")
        if self.summary_mode not in SUMMARY_MODES:
            raise ValueError(
                f"summary_mode must be one of {', '.join(SUMMARY_MODES)}, got {self.summary_mode!r}"
            )

    @classmethod
    def from_env(cls, dotenv: bool = True) -> "EngineConfig":
        """Build a config from environment variables (and a .env file, if present)."""
        if dotenv:
            load_dotenv()

        max_size = _env_int("MAX_UPLOAD_SIZE_BYTES")
        if max_size is None:
            max_size_mb = _env_int("MAX_UPLOAD_SIZE_MB")
            max_size = max_size_mb * 1024 * 1024 if max_size_mb is not None else DEFAULT_MAX_UPLOAD_SIZE_BYTES

        max_recommendations = _env_int("MAX_RECOMMENDATIONS")
        if max_recommendations is None:
            max_recommendations = DEFAULT_MAX_RECOMMENDATIONS

        origins_raw = os.getenv("CORS_ALLOW_ORIGINS", "")
        origins = [origin.strip() for origin in origins_raw.split(",") if origin.strip()]

        config = cls(
            max_upload_size_bytes=max_size,
            max_recommendations=max_recommendations,
            enable_summary_generation=_env_bool("FEATURE_SUMMARY_GEN", True),
            summary_mode=os.getenv("SUMMARY_MODE", "template").strip().lower(),
            llm_model=os.getenv("RESUME_LLM_MODEL", DEFAULT_LLM_MODEL),
            taxonomy_path=os.getenv("SKILL_TAXONOMY_PATH") or None,
            cors_origins=origins or list(DEFAULT_CORS_ORIGINS),
        )
        logger.debug("Loaded engine config: %s", config)
        return config


def _env_int(name: str) -> Optional[int]:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return None
    try:
        return int(raw.strip())
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    lowered = raw.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise ValueError(f"{name} must be a boolean flag, got {raw!r}")
