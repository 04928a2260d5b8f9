# Logging adapter for application-wide logging
from cutscene.adapters.logging_adapter import LoggingAdapter

from pathlib import Path

from pydantic import HttpUrl, SecretStr, field_validator
from pydantic_settings import BaseSettings
from rich import print

from cutscene.core.interfaces.logging import LoggingPort

# using pydantic_settings to manage environment variables
# and do automatic type casting in a central place
class CutsceneSettings(BaseSettings):
    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": True,
        "extra": "ignore"
    }
    CUTSCENE_LOG_LEVEL: str = "INFO"
    CUTSCENE_API_HOST: str = "0.0.0.0"
    CUTSCENE_API_PORT: int = 3000
    OPENAI_API_KEY: SecretStr | None = None
    OPENAI_BASE_URL: HttpUrl = HttpUrl("https://api.openai.com/v1")
    REPLICATE_API_TOKEN: SecretStr | None = None
    REPLICATE_BASE_URL: HttpUrl = HttpUrl("https://api.replicate.com/v1")
    # Polling cadence (seconds)
    CUTSCENE_POLL_INTERVAL: float = 60
    CUTSCENE_COMPLETION_RETRY_INTERVAL: float = 10
    CUTSCENE_FALLBACK_RETRY_INTERVAL: float = 15
    # Stall / fallback heuristics (seconds)
    CUTSCENE_FALLBACK_AFTER: float = 180
    CUTSCENE_FALLBACK_SPACING: float = 30
    CUTSCENE_STALL_THRESHOLD: float = 600
    CUTSCENE_COUNTDOWN_TICK: float = 1
    # Unset keeps polling completed-but-undownloadable jobs forever
    CUTSCENE_COMPLETION_RETRY_LIMIT: int | None = None
    CUTSCENE_ARTIFACT_DIR: Path = Path("scratch/cutscene_artifacts")

    def print_settings(self, logger: LoggingPort):
        """Prints the settings for debugging purposes"""
        logger.info("Cutscene Settings:")
        print(self)

    @field_validator("OPENAI_BASE_URL", "REPLICATE_BASE_URL", mode="before")
    def strip_trailing_slash(cls, value):
        """Base URLs are joined with '/<path>', so drop a trailing slash."""
        if isinstance(value, str):
            return value.rstrip("/")
        return value


app_settings = CutsceneSettings()

logger = LoggingAdapter("cutscene", app_settings.CUTSCENE_LOG_LEVEL)
