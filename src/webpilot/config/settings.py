"""
Configuration management.

Settings are read from (lowest to highest precedence) field defaults, a
`.env` file, `WEBPILOT_*` environment variables and, when loaded through
`load_from_file`, the YAML file plus explicit overrides.
"""

from pathlib import Path
from typing import Any

import yaml
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_CONFIG_PATH = Path.home() / ".webpilot" / "config.yaml"


class WebPilotSettings(BaseSettings):
    """Agent configuration with environment variable support."""

    # Execution bounds
    max_steps: int = Field(default=100, ge=1, description="Maximum navigator turns per task")
    max_actions_per_step: int = Field(default=5, ge=1, description="Maximum actions per turn")
    max_failures: int = Field(default=3, ge=1, description="Consecutive failures before abort")
    planning_interval: int = Field(default=1, ge=1, description="Replan every N steps")
    max_memory_messages: int = Field(default=60, ge=4, description="Conversation memory bound")

    # Features
    use_vision: bool = Field(default=False, description="Send screenshots to the navigator")
    replay_historical_tasks: bool = Field(default=False, description="Persist step histories")
    history_dir: str = Field(default=".webpilot/history", description="Step history directory")

    # Models
    llm_config_path: str = Field(default="configs/llm_config.yaml", description="LLM config file")
    navigator_model: str = Field(default="main", description="Model alias for the navigator")
    planner_model: str = Field(default="main", description="Model alias for the planner")
    ranker_model: str = Field(default="fast", description="Model alias for search ranking")

    # Search ranking
    ranker_top_n: int = Field(default=4, ge=1, description="Search results kept after ranking")
    ranker_fetch_concurrency: int = Field(default=4, ge=1, description="Parallel page fetches")

    # URL policy
    allowed_urls: list[str] = Field(default_factory=list, description="Allowed URL prefixes")
    denied_urls: list[str] = Field(default_factory=list, description="Denied URL prefixes")

    # Output
    locale: str = Field(default="en", description="Locale for user-facing messages")
    log_level: str = Field(default="INFO", description="Logging level")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="WEBPILOT_",
        case_sensitive=False,
        extra="ignore",
    )

    @classmethod
    def load_from_file(cls, config_path: Path | None = None, **overrides: Any) -> "WebPilotSettings":
        """Load settings from a YAML configuration file, if it exists."""
        config_path = config_path or DEFAULT_CONFIG_PATH
        config_data: dict[str, Any] = {}
        if config_path.exists():
            with open(config_path, "r", encoding="utf-8") as f:
                config_data = yaml.safe_load(f) or {}

        return cls(**{**config_data, **overrides})

    def save_to_file(self, config_path: Path | None = None) -> Path:
        """Save settings to a YAML configuration file."""
        config_path = config_path or DEFAULT_CONFIG_PATH
        config_path.parent.mkdir(parents=True, exist_ok=True)

        with open(config_path, "w", encoding="utf-8") as f:
            yaml.dump(self.model_dump(), f, default_flow_style=False, indent=2)
        return config_path
