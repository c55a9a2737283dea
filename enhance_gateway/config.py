"""Configuration management for the enhance gateway."""

import os
from dataclasses import dataclass
from typing import List
from dotenv import load_dotenv

LOG_LEVELS = ("CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG")

DEFAULT_SYSTEM_PROMPT = (
    "You are an expert prompt engineer. Enhance the user's prompt by improving "
    "its structure, clarity, and effectiveness. Preserve every original point, "
    "requirement, and specific detail. Return ONLY the enhanced prompt, no "
    "explanations."
)


@dataclass
class Config:
    """Application configuration loaded from environment variables."""

    api_keys: List[str]
    port: int = 8000
    host: str = "0.0.0.0"
    upstream_base_url: str = "https://api.openai.com"
    upstream_model: str = "gpt-4o-mini"
    upstream_timeout_seconds: float = 30.0
    system_prompt: str = DEFAULT_SYSTEM_PROMPT
    quota_limit: int = 50
    quota_window_seconds: float = 3600.0
    min_interval_seconds: float = 2.0
    key_cooldown_seconds: float = 60.0
    max_attempts: int = 3
    max_input_length: int = 10000
    idle_sweep_seconds: float = 300.0
    idle_cutoff_seconds: float = 900.0
    trust_forwarded_for: bool = True
    log_level: str = "INFO"

    def __post_init__(self):
        if not self.api_keys:
            raise ValueError(
                "UPSTREAM_API_KEYS environment variable must be set and non-empty"
            )
        for name in ("quota_limit", "max_attempts", "max_input_length"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be a positive integer")
        for name in (
            "upstream_timeout_seconds",
            "quota_window_seconds",
            "key_cooldown_seconds",
            "idle_sweep_seconds",
            "idle_cutoff_seconds",
        ):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive")
        if self.min_interval_seconds < 0:
            raise ValueError("min_interval_seconds must not be negative")
        self.log_level = self.log_level.strip().upper()
        if self.log_level not in LOG_LEVELS:
            raise ValueError(
                f"LOG_LEVEL must be one of {', '.join(LOG_LEVELS)}"
            )


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


def load_config(use_dotenv: bool = True) -> Config:
    """Load configuration from environment variables.

    Args:
        use_dotenv: Read a ``.env`` file into the environment first.

    Returns:
        Config: Configured application settings

    Raises:
        ValueError: If required environment variables are missing or invalid
    """
    if use_dotenv:
        load_dotenv()

    api_keys_raw = os.getenv("UPSTREAM_API_KEYS", "")
    api_keys = [key.strip() for key in api_keys_raw.split(",") if key.strip()]

    return Config(
        api_keys=api_keys,
        port=int(os.getenv("PORT", "8000")),
        host=os.getenv("HOST", "0.0.0.0"),
        upstream_base_url=os.getenv("UPSTREAM_BASE_URL", "https://api.openai.com"),
        upstream_model=os.getenv("UPSTREAM_MODEL", "gpt-4o-mini"),
        upstream_timeout_seconds=float(os.getenv("UPSTREAM_TIMEOUT_SECONDS", "30")),
        system_prompt=os.getenv("SYSTEM_PROMPT", DEFAULT_SYSTEM_PROMPT),
        quota_limit=int(os.getenv("QUOTA_LIMIT", "50")),
        quota_window_seconds=float(os.getenv("QUOTA_WINDOW_SECONDS", "3600")),
        min_interval_seconds=float(os.getenv("MIN_INTERVAL_SECONDS", "2")),
        key_cooldown_seconds=float(os.getenv("KEY_COOLDOWN_SECONDS", "60")),
        max_attempts=int(os.getenv("MAX_ATTEMPTS", "3")),
        max_input_length=int(os.getenv("MAX_INPUT_LENGTH", "10000")),
        idle_sweep_seconds=float(os.getenv("IDLE_SWEEP_SECONDS", "300")),
        idle_cutoff_seconds=float(os.getenv("IDLE_CUTOFF_SECONDS", "900")),
        trust_forwarded_for=_env_bool("TRUST_FORWARDED_FOR", "true"),
        log_level=os.getenv("LOG_LEVEL", "INFO"),
    )
