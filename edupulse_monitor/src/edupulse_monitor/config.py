"""
Monitor Configuration

Runtime settings for the topic monitor, read from environment variables
(a local .env file is loaded first).
"""

import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

load_dotenv()


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class MonitorConfig:
    """Settings shared by the controller, sources and report store."""
    simulation_interval_seconds: float = 3.0
    source_max_restarts: int = 3
    source_restart_backoff_seconds: float = 0.5
    fallback_on_source_error: bool = False  # False: halt live input on SourceError
    transcript_language: str = "en-IN"
    curriculum_topics_file: Optional[str] = None
    on_topic_alert_threshold: int = 70

    @classmethod
    def from_env(cls) -> "MonitorConfig":
        """Build config from environment variables, falling back to defaults."""
        return cls(
            simulation_interval_seconds=float(os.getenv("SIMULATION_INTERVAL_SECONDS", "3.0")),
            source_max_restarts=int(os.getenv("SOURCE_MAX_RESTARTS", "3")),
            source_restart_backoff_seconds=float(os.getenv("SOURCE_RESTART_BACKOFF_SECONDS", "0.5")),
            fallback_on_source_error=_env_bool("FALLBACK_TO_SIMULATION_ON_ERROR", False),
            transcript_language=os.getenv("TRANSCRIPT_LANGUAGE", "en-IN"),
            curriculum_topics_file=os.getenv("CURRICULUM_TOPICS_FILE") or None,
            on_topic_alert_threshold=int(os.getenv("ON_TOPIC_ALERT_THRESHOLD", "70")),
        )
