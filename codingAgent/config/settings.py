"""Environment-bound configuration objects.

This module provides Pydantic BaseSettings-based configuration loading from .env files.
All settings classes automatically load from environment variables with support for
multiple alias names (e.g., MODEL_FAST and MODEL_FAST_ID both work).

Example:
    from codingAgent.config.settings import get_settings

    settings = get_settings()  # Cached singleton
    fast_model = settings.models.fast
    max_turns = settings.governance.subagent_max_turns
"""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


load_dotenv()

_ENV_CONFIG = SettingsConfigDict(
    env_file=".env",
    env_file_encoding="utf-8",
    extra="ignore",
    populate_by_name=True,
)


class ModelRoutingSettings(BaseSettings):
    """Model tier identifiers and credentials.

    Three tiers are configured, each with id, api_key and base_url:
    - fast: cheap, low-latency model for simple operational turns
    - capable: strongest model for multi-step or ambiguous work
    - classifier: auxiliary model used by the "auto" router (falls back to fast)

    default_selector is the routing selector used when the user has not
    picked one; "auto" enables the classifier strategy.
    """

    model_config = _ENV_CONFIG

    fast: str = Field(
        default="fast-lite",
        validation_alias=AliasChoices("MODEL_FAST", "MODEL_FAST_ID", "MODEL_BASE"),
    )
    fast_api_key: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("MODEL_FAST_API_KEY", "MODEL_BASE_API_KEY"),
    )
    fast_base_url: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("MODEL_FAST_URL", "MODEL_FAST_BASE_URL"),
    )

    capable: str = Field(
        default="capable-pro",
        validation_alias=AliasChoices("MODEL_CAPABLE", "MODEL_CAPABLE_ID", "MODEL_REASON"),
    )
    capable_api_key: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("MODEL_CAPABLE_API_KEY", "MODEL_REASON_API_KEY"),
    )
    capable_base_url: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("MODEL_CAPABLE_URL", "MODEL_CAPABLE_BASE_URL"),
    )

    classifier: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("MODEL_CLASSIFIER", "MODEL_CLASSIFIER_ID"),
    )
    classifier_api_key: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("MODEL_CLASSIFIER_API_KEY"),
    )
    classifier_base_url: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("MODEL_CLASSIFIER_URL", "MODEL_CLASSIFIER_BASE_URL"),
    )

    default_selector: str = Field(
        default="auto",
        validation_alias=AliasChoices("MODEL_SELECTOR", "MODEL_DEFAULT_SELECTOR"),
    )
    default_tier: str = Field(
        default="capable",
        validation_alias=AliasChoices("MODEL_DEFAULT_TIER"),
    )


class GovernanceSettings(BaseSettings):
    """Runtime governance and control settings.

    - auto_approve_writes: Skip confirmation for edit-kind tools (default: False)
    - max_loops: Maximum main-conversation loop iterations per turn (1-500)
    - subagent_max_turns: Default turn budget for delegated sub-agents
    - subagent_max_time_minutes: Default wall-clock budget for sub-agents
    - hook_timeout_seconds: How long BeforeModel waits for a hook response
    """

    model_config = _ENV_CONFIG

    auto_approve_writes: bool = Field(default=False, validation_alias=AliasChoices("AUTO_APPROVE_WRITES"))
    max_loops: int = Field(default=100, ge=1, le=500, validation_alias=AliasChoices("MAX_LOOPS"))
    subagent_max_turns: int = Field(
        default=25, ge=1, le=500, validation_alias=AliasChoices("SUBAGENT_MAX_TURNS")
    )
    subagent_max_time_minutes: float = Field(
        default=10.0, gt=0, validation_alias=AliasChoices("SUBAGENT_MAX_TIME_MINUTES")
    )
    hook_timeout_seconds: float = Field(
        default=60.0, gt=0, validation_alias=AliasChoices("HOOK_TIMEOUT_SECONDS")
    )


class ObservabilitySettings(BaseSettings):
    """Logging configuration.

    - log_level: Level of the file handler (console only shows warnings)
    - log_dir: Directory for log files, relative to the project root
    - log_prompt_max_length: Truncation length for logged prompts
    """

    model_config = _ENV_CONFIG

    log_level: str = Field(default="INFO", validation_alias=AliasChoices("LOG_LEVEL"))
    log_dir: str = Field(default="logs", validation_alias=AliasChoices("LOG_DIR"))
    log_prompt_max_length: int = Field(
        default=500, ge=100, le=5000, validation_alias=AliasChoices("LOG_PROMPT_MAX_LENGTH")
    )


class PathSettings(BaseSettings):
    """Workspace and state directory layout.

    The workspace is the repository the agent operates on. Agent-owned state
    (workflow prompts, task prompt audits, memory notes) lives under
    <workspace>/<state_dir>.
    """

    model_config = _ENV_CONFIG

    workspace_root: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("AGENT_WORKSPACE_PATH", "WORKSPACE_ROOT")
    )
    state_dir: str = Field(default=".agent", validation_alias=AliasChoices("AGENT_STATE_DIR"))

    @property
    def workspace(self) -> Path:
        return Path(self.workspace_root or os.getcwd()).resolve()

    @property
    def state_path(self) -> Path:
        return self.workspace / self.state_dir

    @property
    def prompts_dir(self) -> Path:
        return self.state_path / "prompts"

    @property
    def task_prompts_dir(self) -> Path:
        return self.state_path / "task_prompts"

    @property
    def memory_dir(self) -> Path:
        return self.state_path / "memory"


class Settings(BaseSettings):
    """Root application settings loaded from .env file.

    Hierarchical structure containing four nested settings groups:
    - models: Model tiers and API credentials (ModelRoutingSettings)
    - governance: Agent behavior controls (GovernanceSettings)
    - observability: Logging (ObservabilitySettings)
    - paths: Workspace and state layout (PathSettings)

    Use get_settings() to obtain a cached singleton instance.
    """

    environment: str = Field(default="dev", validation_alias=AliasChoices("APP_ENV"))
    models: ModelRoutingSettings = Field(default_factory=ModelRoutingSettings)
    governance: GovernanceSettings = Field(default_factory=GovernanceSettings)
    observability: ObservabilitySettings = Field(default_factory=ObservabilitySettings)
    paths: PathSettings = Field(default_factory=PathSettings)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
        validate_assignment=True,
        case_sensitive=False,
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached singleton Settings instance."""
    return Settings()
