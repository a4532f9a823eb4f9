"""Environment-bound configuration objects.

Settings load from environment variables and an optional ``.env`` file:

    from infrastructure.config.settings import get_settings

    settings = get_settings()  # Cached singleton
    delay = settings.orchestrator.task_retention_seconds
    model = settings.reasoning.model
"""

from functools import lru_cache
from typing import Optional

from pydantic import AliasChoices, BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class OrchestratorSettings(BaseSettings):
    """Behaviour of the command orchestrator.

    Environment variables use the ``JARVIS_`` prefix, e.g.
    ``JARVIS_TASK_RETENTION_SECONDS=5``.
    """

    model_config = SettingsConfigDict(
        env_prefix="JARVIS_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    assistant_name: str = "JARVIS"
    # How long a completed task stays visible to progress observers
    task_retention_seconds: float = Field(default=5.0, ge=0)
    # Pause between steps so observers can render each transition
    step_delay_seconds: float = Field(default=0.3, ge=0)
    # Transcript entries sent along with a simple command
    conversation_window: int = Field(default=6, ge=0)
    # Sessions with no socket and no activity for this long are released
    session_idle_seconds: float = Field(default=1800.0, ge=0)


class ReasoningSettings(BaseSettings):
    """Model used behind the reasoning service boundary."""

    model_config = SettingsConfigDict(
        env_prefix="JARVIS_LLM_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    model: str = Field(
        default="openai:gpt-4o-mini",
        validation_alias=AliasChoices("JARVIS_LLM_MODEL", "MODEL_ID"),
    )
    temperature: float = 0.2
    timeout: Optional[float] = Field(default=None, description="Seconds; None leaves it to the provider")


class LoggingSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    log_level: str = Field(default="INFO", validation_alias=AliasChoices("LOG_LEVEL"))
    log_format: str = Field(default="json", validation_alias=AliasChoices("LOG_FORMAT"))
    service_name: str = Field(default="jarvis-orchestrator", validation_alias=AliasChoices("SERVICE_NAME"))


class Settings(BaseModel):
    orchestrator: OrchestratorSettings = Field(default_factory=OrchestratorSettings)
    reasoning: ReasoningSettings = Field(default_factory=ReasoningSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
