"""Configuration utilities.

Settings come from environment variables, optionally loaded from a .env
file. Read on every get_settings() call so tests can patch the env.
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

from dotenv import load_dotenv

MIN_SAVE_DEBOUNCE_S = 0.3


def _float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError as e:
        raise ValueError(f"{name} must be a number, got {raw!r}") from e


def _int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError as e:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from e


@dataclass(frozen=True)
class Settings:
    """
    Engine settings.

    Attributes:
        openai_api_key: OPENAI_API_KEY (None -> client cannot be built)
        model: NUTRISCAN_MODEL, text analysis model
        vision_model: NUTRISCAN_VISION_MODEL, photo analysis model
        temperature: NUTRISCAN_TEMPERATURE
        max_tokens: NUTRISCAN_MAX_TOKENS, analysis output cap
        ingredient_max_tokens: NUTRISCAN_INGREDIENT_MAX_TOKENS
        timeout_s: NUTRISCAN_TIMEOUT_S, model request timeout
        result_cache_ttl_s: NUTRISCAN_RESULT_CACHE_TTL_S
        save_debounce_s: NUTRISCAN_SAVE_DEBOUNCE_S (>= 0.3)
        model_max_attempts: NUTRISCAN_MODEL_MAX_ATTEMPTS (1 = no retry)
        log_level: LOG_LEVEL
    """

    openai_api_key: Optional[str] = None
    model: str = "gpt-4o-mini"
    vision_model: str = "gpt-4o"
    temperature: float = 0.1
    max_tokens: int = 2048
    ingredient_max_tokens: int = 256
    timeout_s: float = 15.0
    result_cache_ttl_s: float = 60.0
    save_debounce_s: float = 0.5
    model_max_attempts: int = 1
    log_level: str = "INFO"

    def __post_init__(self) -> None:
        if self.save_debounce_s < MIN_SAVE_DEBOUNCE_S:
            raise ValueError(f"save_debounce_s must be >= {MIN_SAVE_DEBOUNCE_S}")
        if self.result_cache_ttl_s <= 0:
            raise ValueError("result_cache_ttl_s must be positive")
        if self.model_max_attempts < 1:
            raise ValueError("model_max_attempts must be >= 1")


def get_settings(env_file: Optional[Union[str, Path]] = None) -> Settings:
    """
    Build settings from the environment.

    Args:
        env_file: Optional .env path; variables already set win

    Returns:
        Settings

    Raises:
        ValueError: On malformed numeric values
    """
    if env_file is not None:
        load_dotenv(env_file, override=False)

    return Settings(
        openai_api_key=os.getenv("OPENAI_API_KEY") or None,
        model=os.getenv("NUTRISCAN_MODEL", "gpt-4o-mini"),
        vision_model=os.getenv("NUTRISCAN_VISION_MODEL", "gpt-4o"),
        temperature=_float("NUTRISCAN_TEMPERATURE", 0.1),
        max_tokens=_int("NUTRISCAN_MAX_TOKENS", 2048),
        ingredient_max_tokens=_int("NUTRISCAN_INGREDIENT_MAX_TOKENS", 256),
        timeout_s=_float("NUTRISCAN_TIMEOUT_S", 15.0),
        result_cache_ttl_s=_float("NUTRISCAN_RESULT_CACHE_TTL_S", 60.0),
        save_debounce_s=_float("NUTRISCAN_SAVE_DEBOUNCE_S", 0.5),
        model_max_attempts=_int("NUTRISCAN_MODEL_MAX_ATTEMPTS", 1),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
    )
