"""
Runtime configuration for the score extraction pipeline.

Values are loaded from the .env file / environment. Every value can be
overridden by passing it explicitly to ``get_runtime_config``.

Example .env:
    SCORE_OCR_ENGINE=tesseract
    SCORE_OCR_FRAME_RATE=60
    SCORE_OCR_VARIANT_COUNT=3
    SCORE_OCR_VARIANT_STEP=10
    SCORE_OCR_MAX_WORKERS=4
    SCORE_OCR_SUGGESTION_LIMIT=20
    TESSERACT_CMD=/usr/bin/tesseract
"""

import os
from dataclasses import dataclass
from typing import Callable, Optional, TypeVar

from dotenv import load_dotenv

from .errors import ConfigurationError

load_dotenv()

SUPPORTED_ENGINES = ("tesseract", "paddleocr")

T = TypeVar("T")


@dataclass(frozen=True)
class RuntimeConfig:
    engine: str = "tesseract"
    frame_rate: float = 60.0
    variant_count: int = 3
    variant_step: int = 10
    max_workers: int = 4
    suggestion_limit: int = 20
    tesseract_cmd: Optional[str] = None


def _env(name: str, default: T, cast: Callable[[str], T]) -> T:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return cast(raw.strip())
    except ValueError as e:
        raise ConfigurationError(f"Invalid value for {name}: {raw!r}") from e


def get_runtime_config(
    engine: Optional[str] = None,
    frame_rate: Optional[float] = None,
    variant_count: Optional[int] = None,
    variant_step: Optional[int] = None,
    max_workers: Optional[int] = None,
    suggestion_limit: Optional[int] = None,
) -> RuntimeConfig:
    """
    Build the runtime configuration from arguments and environment.

    Returns:
        RuntimeConfig with explicit arguments taking priority over env vars

    Raises:
        ConfigurationError: If a value is malformed or out of range
    """
    config = RuntimeConfig(
        engine=engine or _env("SCORE_OCR_ENGINE", "tesseract", str),
        frame_rate=frame_rate if frame_rate is not None else _env("SCORE_OCR_FRAME_RATE", 60.0, float),
        variant_count=variant_count if variant_count is not None else _env("SCORE_OCR_VARIANT_COUNT", 3, int),
        variant_step=variant_step if variant_step is not None else _env("SCORE_OCR_VARIANT_STEP", 10, int),
        max_workers=max_workers if max_workers is not None else _env("SCORE_OCR_MAX_WORKERS", 4, int),
        suggestion_limit=suggestion_limit if suggestion_limit is not None else _env("SCORE_OCR_SUGGESTION_LIMIT", 20, int),
        tesseract_cmd=os.getenv("TESSERACT_CMD") or None,
    )

    if config.engine not in SUPPORTED_ENGINES:
        raise ConfigurationError(
            f"Unknown OCR engine '{config.engine}' (expected one of {', '.join(SUPPORTED_ENGINES)})"
        )
    if config.frame_rate <= 0:
        raise ConfigurationError("Frame rate must be positive")
    if config.variant_count < 1:
        raise ConfigurationError("Variant count must be at least 1")
    if config.max_workers < 1:
        raise ConfigurationError("Max workers must be at least 1")
    if config.suggestion_limit < 1:
        raise ConfigurationError("Suggestion limit must be at least 1")

    return config
