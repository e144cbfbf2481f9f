"""
Configuration management for Jubilee.

Settings come from field defaults, ``.env`` and ``JUBILEE_*`` environment
variables. Values saved in ``~/.jubilee/config.yaml`` are passed explicitly
by ``load_from_file()`` and take precedence over the environment.
"""

from pathlib import Path
from typing import Any, List, Optional

import yaml
from pydantic import Field, ValidationError
from pydantic_settings import BaseSettings

from jubilee.core.domain.errors import ConfigurationError
from jubilee.core.domain.models import FeatureMode
from jubilee.core.tools.registry import DEFAULT_MIND_TOOLS, DEFAULT_PROPHET_TOOLS

DEFAULT_CONFIG_DIR = Path.home() / ".jubilee"


class JubileeSettings(BaseSettings):
    """Runtime settings with environment variable support."""

    # Model
    model: str = Field(default="main", description="Model alias for agents")
    guard_model: Optional[str] = Field(default="guard", description="Model alias for the safety guard")
    llm_config_path: Optional[str] = Field(default="configs/llm_config.yaml", description="LiteLLM config file")

    # Loop budgets
    max_iterations: int = Field(default=10, ge=1, description="Iteration budget of top-level agents")
    angel_iterations: int = Field(default=10, ge=1, description="Default iteration budget of ad-hoc angels")
    max_dispatch_depth: int = Field(default=3, ge=1, description="Deepest allowed angel nesting")
    parallel_tool_calls: bool = Field(default=False, description="Run tool calls of one turn concurrently")

    # Timeouts (seconds, None disables)
    model_timeout: Optional[float] = Field(default=120, description="Per model call")
    tool_timeout: Optional[float] = Field(default=60, description="Per tool call")
    run_timeout: Optional[float] = Field(default=900, description="Per run")
    guard_timeout: Optional[float] = Field(default=30, description="Per guard check")

    # Capabilities and modes
    strict_capabilities: bool = Field(default=True, description="Unknown capabilities are an error")
    stewardship_mode: bool = Field(default=True, description="Enable stewardship roles")
    builder_mode: bool = Field(default=False, description="Enable builder roles")
    mind_tools: List[str] = Field(default_factory=lambda: list(DEFAULT_MIND_TOOLS))
    prophet_tools: List[str] = Field(default_factory=lambda: list(DEFAULT_PROPHET_TOOLS))

    # Files
    tools_config_path: Optional[str] = Field(default="configs/tools.yaml", description="Tool profile")
    roles_path: Optional[str] = Field(default="~/.jubilee/roles.yaml", description="Angel archetype overrides")
    guard_policy_path: Optional[str] = Field(default=None, description="Guard policy YAML")
    allowlist_path: str = Field(default="~/.jubilee/allowlist.yaml", description="Transfer allowlist")
    confirmation_token: str = Field(default="CONFIRM", description="Token sensitive tools require")
    tasks_dir: str = Field(default="~/.jubilee/tasks", description="Task context storage")
    skills_dirs: List[str] = Field(
        default_factory=lambda: ["./skills", "~/.jubilee/skills"],
        description="Directories searched for SKILL.md files",
    )

    # Logging
    log_level: str = Field(default="WARNING", description="Logging level")

    model_config = {
        "env_file": ".env",
        "env_prefix": "JUBILEE_",
        "case_sensitive": False,
        "extra": "ignore",
        "protected_namespaces": (),
    }

    @classmethod
    def get_config_path(cls) -> Path:
        return DEFAULT_CONFIG_DIR / "config.yaml"

    @classmethod
    def load_from_file(cls, config_path: Optional[Path] = None) -> "JubileeSettings":
        """Load settings from a YAML configuration file (defaults if absent)."""
        config_path = config_path or cls.get_config_path()
        if not config_path.exists():
            return cls()

        with open(config_path, "r", encoding="utf-8") as f:
            config_data = yaml.safe_load(f) or {}

        return cls(**config_data)

    def save_to_file(self, config_path: Optional[Path] = None) -> None:
        config_path = config_path or self.get_config_path()
        config_path.parent.mkdir(parents=True, exist_ok=True)
        with open(config_path, "w", encoding="utf-8") as f:
            yaml.safe_dump(self.model_dump(), f, default_flow_style=False, indent=2, sort_keys=False)

    def update_setting(self, key: str, value: Any, config_path: Optional[Path] = None) -> None:
        """
        Validate and update a single setting, then save.

        Raises:
            ConfigurationError: Unknown key or invalid value
        """
        if key not in type(self).model_fields:
            raise ConfigurationError(f"Unknown setting: {key}")

        try:
            validated = type(self).model_validate({**self.model_dump(), key: value})
        except ValidationError as e:
            raise ConfigurationError(f"Invalid value for {key}: {e.errors()[0]['msg']}") from e

        setattr(self, key, getattr(validated, key))
        self.save_to_file(config_path)

    def mode_enabled(self, mode: FeatureMode) -> bool:
        if mode is FeatureMode.ANY:
            return True
        if mode is FeatureMode.BUILDER:
            return self.builder_mode
        return self.stewardship_mode

    def set_mode(self, mode: FeatureMode, enabled: bool, config_path: Optional[Path] = None) -> None:
        if mode is FeatureMode.ANY:
            raise ConfigurationError("The 'any' mode cannot be toggled")
        self.update_setting(f"{mode.value}_mode", enabled, config_path)
