"""
Orchestration Configuration for Night Orders.

Settings can come from three places, in increasing precedence when
combined by callers:
- Dataclass defaults
- A YAML file (orchestration_config.yaml ships next to this module)
- NIGHTORDERS_* environment variables
"""

import logging
import os
from dataclasses import dataclass, field, fields, replace
from typing import Any, Dict, Optional, Tuple

import yaml

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = os.path.join(os.path.dirname(__file__), "orchestration_config.yaml")

DEFAULT_AVAILABLE_TOOLS: Tuple[str, ...] = (
    "read_file",
    "write_file",
    "search_files",
    "run_terminal",
    "git_operations",
    "code_analysis",
)


@dataclass(frozen=True)
class OrchestrationConfig:
    """
    Configuration for mission execution.

    Attributes:
        max_retries: Failed attempts before a step is permanently failed
        auto_escalate: Notify immediately on critical deviations
        context_window_size: Recent decisions/deviations kept in context
        upcoming_window_size: Upcoming steps summarised in context
        enable_reflexion: Run the reflexion checkpoint after successes
        autonomous_interval_ms: Tick period of the autonomous loop
        pause_on_error: Halt the autonomous loop on the first failure
        working_directory: Directory reported to agents in their context
        available_tools: Tool names reported to agents in their context
    """

    max_retries: int = 3
    auto_escalate: bool = True
    context_window_size: int = 5
    upcoming_window_size: int = 3
    enable_reflexion: bool = True
    autonomous_interval_ms: int = 2000
    pause_on_error: bool = True
    working_directory: str = field(default_factory=os.getcwd)
    available_tools: Tuple[str, ...] = DEFAULT_AVAILABLE_TOOLS

    def __post_init__(self):
        if self.max_retries < 1:
            raise ValueError(f"max_retries must be >= 1, got {self.max_retries}")
        if self.context_window_size < 0:
            raise ValueError(f"context_window_size must be >= 0, got {self.context_window_size}")
        if self.upcoming_window_size < 0:
            raise ValueError(f"upcoming_window_size must be >= 0, got {self.upcoming_window_size}")
        if self.autonomous_interval_ms <= 0:
            raise ValueError(
                f"autonomous_interval_ms must be > 0, got {self.autonomous_interval_ms}"
            )
        # YAML and env loaders hand us lists
        object.__setattr__(self, "available_tools", tuple(self.available_tools))

    @property
    def autonomous_interval_seconds(self) -> float:
        return self.autonomous_interval_ms / 1000.0

    def with_overrides(self, **overrides: Any) -> "OrchestrationConfig":
        """Return a copy with the given fields replaced."""
        known = {f.name for f in fields(self)}
        unknown = set(overrides) - known
        if unknown:
            raise ValueError(f"Unknown configuration option(s): {', '.join(sorted(unknown))}")
        return replace(self, **overrides)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "OrchestrationConfig":
        """Build from a mapping, ignoring keys that are not config fields."""
        known = {f.name for f in fields(cls)}
        ignored = set(data) - known
        if ignored:
            logger.warning(f"[CONFIG] Ignoring unknown option(s): {', '.join(sorted(ignored))}")
        return cls(**{k: v for k, v in data.items() if k in known})

    @classmethod
    def from_yaml(cls, yaml_path: str) -> "OrchestrationConfig":
        """Load configuration from a YAML file."""
        with open(yaml_path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}

        # Accept either a flat mapping or one nested under "orchestration"
        if "orchestration" in data and isinstance(data["orchestration"], dict):
            data = data["orchestration"]

        return cls.from_dict(data)

    @classmethod
    def from_env(cls, base: Optional["OrchestrationConfig"] = None) -> "OrchestrationConfig":
        """
        Create configuration from environment variables.

        Environment variables:
            NIGHTORDERS_MAX_RETRIES: int
            NIGHTORDERS_AUTO_ESCALATE: "true"/"false"
            NIGHTORDERS_CONTEXT_WINDOW: int
            NIGHTORDERS_UPCOMING_WINDOW: int
            NIGHTORDERS_ENABLE_REFLEXION: "true"/"false"
            NIGHTORDERS_INTERVAL_MS: int
            NIGHTORDERS_PAUSE_ON_ERROR: "true"/"false"
            NIGHTORDERS_WORKDIR: path string
            NIGHTORDERS_TOOLS: comma-separated tool names

        Args:
            base: Values used when a variable is unset (defaults otherwise)
        """
        base = base or cls()

        def get_bool(key: str, default: bool) -> bool:
            val = os.environ.get(key, "").lower()
            if val in ("true", "1", "yes"):
                return True
            elif val in ("false", "0", "no"):
                return False
            return default

        def get_int(key: str, default: int) -> int:
            try:
                return int(os.environ.get(key, default))
            except (ValueError, TypeError):
                logger.warning(f"[CONFIG] Invalid integer in {key}, using {default}")
                return default

        tools_env = os.environ.get("NIGHTORDERS_TOOLS")
        tools = (
            tuple(t.strip() for t in tools_env.split(",") if t.strip())
            if tools_env
            else base.available_tools
        )

        return cls(
            max_retries=get_int("NIGHTORDERS_MAX_RETRIES", base.max_retries),
            auto_escalate=get_bool("NIGHTORDERS_AUTO_ESCALATE", base.auto_escalate),
            context_window_size=get_int("NIGHTORDERS_CONTEXT_WINDOW", base.context_window_size),
            upcoming_window_size=get_int("NIGHTORDERS_UPCOMING_WINDOW", base.upcoming_window_size),
            enable_reflexion=get_bool("NIGHTORDERS_ENABLE_REFLEXION", base.enable_reflexion),
            autonomous_interval_ms=get_int("NIGHTORDERS_INTERVAL_MS", base.autonomous_interval_ms),
            pause_on_error=get_bool("NIGHTORDERS_PAUSE_ON_ERROR", base.pause_on_error),
            working_directory=os.environ.get("NIGHTORDERS_WORKDIR", base.working_directory),
            available_tools=tools,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "max_retries": self.max_retries,
            "auto_escalate": self.auto_escalate,
            "context_window_size": self.context_window_size,
            "upcoming_window_size": self.upcoming_window_size,
            "enable_reflexion": self.enable_reflexion,
            "autonomous_interval_ms": self.autonomous_interval_ms,
            "pause_on_error": self.pause_on_error,
            "working_directory": self.working_directory,
            "available_tools": list(self.available_tools),
        }


def load_config(config_path: Optional[str] = None, use_env: bool = True) -> OrchestrationConfig:
    """
    Load orchestration configuration.

    Args:
        config_path: Optional path to a YAML file. If None, uses the packaged default.
        use_env: Apply NIGHTORDERS_* environment overrides on top of the file

    Returns:
        Loaded OrchestrationConfig
    """
    if config_path is None:
        config_path = DEFAULT_CONFIG_PATH

    if os.path.exists(config_path):
        config = OrchestrationConfig.from_yaml(config_path)
    else:
        logger.warning(f"[CONFIG] Config not found at {config_path}, using defaults")
        config = OrchestrationConfig()

    if use_env:
        config = OrchestrationConfig.from_env(base=config)
    return config


# Global config instance (lazy-loaded)
_config: Optional[OrchestrationConfig] = None


def get_config(force_reload: bool = False) -> OrchestrationConfig:
    """
    Get the process-wide default configuration.

    Lazy-loads from the packaged YAML file plus environment variables.
    """
    global _config

    if _config is None or force_reload:
        _config = load_config()
        logger.debug(f"[CONFIG] Loaded orchestration config: {_config.to_dict()}")

    return _config


def reset_config() -> None:
    """Reset global config (mainly for testing)."""
    global _config
    _config = None
