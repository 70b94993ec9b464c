"""Configuration management for the YouTube key pool proxy."""

import os
from dataclasses import dataclass
from typing import List, Mapping

from dotenv import load_dotenv

DEFAULT_YOUTUBE_BASE_URL = "https://www.googleapis.com/youtube/v3"


@dataclass
class Config:
    """Application configuration loaded from environment variables."""

    api_keys: List[str]
    port: int = 8000
    host: str = "0.0.0.0"
    failure_threshold: int = 3
    max_attempts: int = 3
    quota_backoff_seconds: float = 1.0
    transient_base_delay_seconds: float = 1.0
    cache_capacity: int = 500
    cache_ttl_seconds: float = 1800.0
    quota_reset_utc_offset_hours: float = -8.0
    request_timeout_seconds: float = 30.0
    youtube_base_url: str = DEFAULT_YOUTUBE_BASE_URL
    log_level: str = "INFO"

    def __post_init__(self):
        if not self.api_keys:
            raise ValueError(
                "YOUTUBE_API_KEY environment variable must be set and non-empty"
            )
        if self.failure_threshold < 1:
            raise ValueError("FAILURE_THRESHOLD must be a positive integer")
        if self.max_attempts < 1:
            raise ValueError("MAX_ATTEMPTS must be a positive integer")
        if self.cache_capacity < 1:
            raise ValueError("CACHE_CAPACITY must be a positive integer")
        if self.cache_ttl_seconds <= 0:
            raise ValueError("CACHE_TTL_SECONDS must be positive")
        if not -12 <= self.quota_reset_utc_offset_hours <= 14:
            raise ValueError("QUOTA_RESET_UTC_OFFSET_HOURS must be within -12..14")


def collect_api_keys(environ: Mapping[str, str]) -> List[str]:
    """Gather keys from YOUTUBE_API_KEY, YOUTUBE_API_KEY_1..N and YOUTUBE_API_KEYS.

    Numbered keys are read until the first gap. Duplicates are dropped,
    keeping the first occurrence so pool indices stay stable.
    """
    candidates: List[str] = []

    primary = environ.get("YOUTUBE_API_KEY", "")
    if primary.strip():
        candidates.append(primary.strip())

    index = 1
    while environ.get(f"YOUTUBE_API_KEY_{index}", "").strip():
        candidates.append(environ[f"YOUTUBE_API_KEY_{index}"].strip())
        index += 1

    listed = environ.get("YOUTUBE_API_KEYS", "")
    candidates.extend(key.strip() for key in listed.split(",") if key.strip())

    keys: List[str] = []
    for key in candidates:
        if key not in keys:
            keys.append(key)
    return keys


def load_config(use_dotenv: bool = True) -> Config:
    """Load configuration from environment variables.

    Args:
        use_dotenv: Read a local ``.env`` file before inspecting the environment.

    Returns:
        Config: Configured application settings

    Raises:
        ValueError: If required environment variables are missing or invalid
    """
    if use_dotenv:
        load_dotenv()

    return Config(
        api_keys=collect_api_keys(os.environ),
        port=int(os.getenv("PORT", "8000")),
        host=os.getenv("HOST", "0.0.0.0"),
        failure_threshold=int(os.getenv("FAILURE_THRESHOLD", "3")),
        max_attempts=int(os.getenv("MAX_ATTEMPTS", "3")),
        quota_backoff_seconds=float(os.getenv("QUOTA_BACKOFF_SECONDS", "1")),
        transient_base_delay_seconds=float(
            os.getenv("TRANSIENT_BASE_DELAY_SECONDS", "1")
        ),
        cache_capacity=int(os.getenv("CACHE_CAPACITY", "500")),
        cache_ttl_seconds=float(os.getenv("CACHE_TTL_SECONDS", "1800")),
        quota_reset_utc_offset_hours=float(
            os.getenv("QUOTA_RESET_UTC_OFFSET_HOURS", "-8")
        ),
        request_timeout_seconds=float(os.getenv("REQUEST_TIMEOUT_SECONDS", "30")),
        youtube_base_url=os.getenv("YOUTUBE_BASE_URL", DEFAULT_YOUTUBE_BASE_URL),
        log_level=os.getenv("LOG_LEVEL", "INFO"),
    )
