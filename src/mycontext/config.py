"""MyContext configuration management.

Loads configuration from .mycontext/config.yaml with sensible defaults.
All settings can be overridden via environment variables (MYCONTEXT_*).

Config locations (in priority order):
1. Explicit path passed to load_config()
2. <project>/.mycontext/config.yaml (project-local)
3. ~/.mycontext/config.yaml (user-global)
4. Built-in defaults

Thread Safety:
    Uses threading.Lock for thread-safe lazy initialization.
"""

from __future__ import annotations

import logging
import os
import threading
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any

import yaml

from mycontext.core.errors import ErrorCode, MyContextError

logger = logging.getLogger(__name__)


@dataclass
class WorkflowConfig:
    """Configuration for the workflow scheduler."""

    state_file: str = ".mycontext/workflow-state.json"
    """Progress document, relative to the project root."""

    definitions_dir: str = ".mycontext/workflows"
    """Directory scanned for extra YAML workflow definitions."""

    auto_continue: bool = False
    """Run auto-continue steps without asking."""

    self_heal: bool = True
    """Route step commands through the sentinel."""

    default_step_minutes: int = 5
    """Estimate used for steps that declare none."""


@dataclass
class SentinelConfig:
    """Configuration for the self-healing command executor."""

    max_retries: int = 3
    """Fix attempts before giving up on a command."""

    error_excerpt_chars: int = 4000
    """Captured output sent to the model is cut to this many characters."""

    stop_on_skip: bool = False
    """Give up as soon as the model answers SKIP instead of re-attempting."""

    backoff_seconds: float = 0.0
    """Delay before each re-attempt (doubles per retry)."""


@dataclass
class RouterConfig:
    """Configuration for client selection and retries."""

    preferred_client: str = "auto"
    """One of direct-api, agent-sdk or auto."""

    auto_select_by_complexity: bool = True
    """With auto, choose the client from the operation's complexity."""

    metrics_capacity: int = 100
    """Performance samples kept per operation kind."""

    max_retries: int = 0
    """Retries for retryable client errors (0 = single attempt)."""

    backoff_seconds: float = 0.0
    """Delay before the first retry."""


@dataclass
class ModelConfig:
    """Defaults for the model backends."""

    default_model: str = "claude-sonnet-4-20250514"
    temperature: float = 0.7
    max_tokens: int = 4096
    request_timeout: float = 60.0
    max_tool_turns: int = 10
    """Upper bound on tool round-trips in one agent call."""


@dataclass
class BrainConfig:
    """Configuration for the shared context document."""

    path: str = ".mycontext/context.json"
    """Context document, relative to the project root."""

    echo: bool = True
    """Print every update to the console."""


@dataclass
class MyContextConfig:
    """Root configuration for MyContext."""

    workflow: WorkflowConfig = field(default_factory=WorkflowConfig)
    sentinel: SentinelConfig = field(default_factory=SentinelConfig)
    router: RouterConfig = field(default_factory=RouterConfig)
    model: ModelConfig = field(default_factory=ModelConfig)
    brain: BrainConfig = field(default_factory=BrainConfig)

    debug: bool = False
    """Enable debug logging by default."""


_SECTIONS: dict[str, type] = {
    "workflow": WorkflowConfig,
    "sentinel": SentinelConfig,
    "router": RouterConfig,
    "model": ModelConfig,
    "brain": BrainConfig,
}

# Global config instance (lazy-loaded, thread-safe)
_config: MyContextConfig | None = None
_config_lock = threading.Lock()


def _deep_update(base: dict, updates: dict) -> dict:
    """Recursively update a dict with another dict."""
    for key, value in updates.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            _deep_update(base[key], value)
        else:
            base[key] = value
    return base


def _coerce(value: str) -> bool | int | float | str:
    if value.lower() in ("true", "false"):
        return value.lower() == "true"
    if value.isdigit() or (value.startswith("-") and value[1:].isdigit()):
        return int(value)
    try:
        return float(value)
    except ValueError:
        return value


def _apply_env_overrides(config_dict: dict, environ: dict[str, str] | None = None) -> dict:
    """Apply environment variable overrides.

    Environment variables follow pattern: MYCONTEXT_SECTION_KEY
    Keys are matched against the known fields of each section, so keys
    containing underscores split correctly.

    Examples:
        MYCONTEXT_SENTINEL_MAX_RETRIES=5
        MYCONTEXT_ROUTER_PREFERRED_CLIENT=direct-api
        MYCONTEXT_DEBUG=true
    """
    prefix = "MYCONTEXT_"
    environ = os.environ if environ is None else environ

    for key, value in environ.items():
        if not key.startswith(prefix):
            continue

        path_str = key[len(prefix):].lower()

        if path_str == "debug":
            config_dict["debug"] = _coerce(value)
            continue

        for section, section_type in _SECTIONS.items():
            if not path_str.startswith(section + "_"):
                continue
            remaining = path_str[len(section) + 1:]
            known = {f.name for f in fields(section_type)}
            if remaining in known:
                config_dict.setdefault(section, {})[remaining] = _coerce(value)
            break

    return config_dict


def _default_dict() -> dict[str, Any]:
    """Built-in defaults as a plain dict."""
    defaults: dict[str, Any] = {
        name: {f.name: getattr(section_type(), f.name) for f in fields(section_type)}
        for name, section_type in _SECTIONS.items()
    }
    defaults["debug"] = False
    return defaults


def _dict_to_config(data: dict) -> MyContextConfig:
    """Convert a dict to MyContextConfig."""
    sections: dict[str, Any] = {}
    for name, section_type in _SECTIONS.items():
        section_data = data.get(name) or {}
        if not isinstance(section_data, dict):
            raise MyContextError(
                ErrorCode.CONFIG_INVALID,
                context={"key": name, "detail": "expected a mapping"},
            )
        try:
            sections[name] = section_type(**section_data)
        except TypeError as e:
            raise MyContextError(
                ErrorCode.CONFIG_INVALID,
                context={"key": name, "detail": str(e)},
                cause=e,
            ) from e

    preferred = sections["router"].preferred_client
    if preferred not in ("direct-api", "agent-sdk", "auto"):
        raise MyContextError(
            ErrorCode.CONFIG_INVALID,
            context={"key": "router.preferred_client", "detail": f"unknown client '{preferred}'"},
        )

    return MyContextConfig(**sections, debug=bool(data.get("debug", False)))


def load_config(
    path: str | Path | None = None,
    project_root: str | Path | None = None,
) -> MyContextConfig:
    """Load configuration from file with defaults and env overrides.

    Priority (highest to lowest):
    1. Environment variables (MYCONTEXT_*)
    2. Explicit path if provided
    3. <project_root>/.mycontext/config.yaml (project-local)
    4. ~/.mycontext/config.yaml (user-global)
    5. Built-in defaults

    Args:
        path: Optional explicit config file path.
        project_root: Project directory (defaults to the current directory).

    Returns:
        Merged MyContextConfig instance.

    Raises:
        MyContextError: CONFIG_INVALID when a section has unknown keys.
    """
    global _config

    config_dict = _default_dict()
    root = Path(project_root) if project_root else Path.cwd()

    config_paths = []
    if path:
        config_paths.append(Path(path))
    config_paths.extend([
        root / ".mycontext" / "config.yaml",
        Path.home() / ".mycontext" / "config.yaml",
    ])

    for config_path in config_paths:
        if config_path.exists():
            try:
                with open(config_path) as f:
                    file_config = yaml.safe_load(f) or {}
            except (OSError, yaml.YAMLError) as e:
                logger.warning("Skipping invalid config file %s: %s", config_path, e)
                continue
            if isinstance(file_config, dict):
                _deep_update(config_dict, file_config)
                logger.debug("Loaded config from %s", config_path)
                break  # Use first found config

    config_dict = _apply_env_overrides(config_dict)

    _config = _dict_to_config(config_dict)
    return _config


def get_config() -> MyContextConfig:
    """Get the current configuration, loading if needed.

    Thread-safe with double-check locking.
    """
    global _config

    if _config is not None:
        return _config

    with _config_lock:
        if _config is None:
            _config = load_config()
        return _config


def reset_config() -> None:
    """Reset the global config (useful for testing)."""
    global _config
    with _config_lock:
        _config = None


def save_default_config(path: str | Path = ".mycontext/config.yaml") -> Path:
    """Save the default configuration to a file.

    Creates a documented config file with all options.

    Args:
        path: Where to save the config.

    Returns:
        Path to the saved config file.
    """
    config_content = '''# MyContext Configuration

# Workflow scheduler
workflow:
  # Progress document (relative to the project root)
  state_file: ".mycontext/workflow-state.json"

  # Extra workflow definitions (*.yaml)
  definitions_dir: ".mycontext/workflows"

  # Run auto-continue steps without asking
  auto_continue: false

  # Route step commands through the self-healing sentinel
  self_heal: true

  # Estimate for steps that declare none (minutes)
  default_step_minutes: 5

# Self-healing command executor
sentinel:
  # Fix attempts before giving up on a command
  max_retries: 3

  # Captured output sent to the model is cut to this many characters
  error_excerpt_chars: 4000

  # Give up as soon as the model answers SKIP
  stop_on_skip: false

  # Delay before each re-attempt, doubling per retry (seconds)
  backoff_seconds: 0

# Client router
router:
  # direct-api, agent-sdk or auto
  preferred_client: "auto"

  # With auto, pick the client from the operation's complexity
  auto_select_by_complexity: true

  # Performance samples kept per operation kind
  metrics_capacity: 100

  # Retries for retryable client errors (0 = single attempt)
  max_retries: 0
  backoff_seconds: 0

# Model defaults
model:
  default_model: "claude-sonnet-4-20250514"
  temperature: 0.7
  max_tokens: 4096

  # Request timeout in seconds
  request_timeout: 60.0

  # Upper bound on tool round-trips in one agent call
  max_tool_turns: 10

# Shared context document
brain:
  path: ".mycontext/context.json"

  # Print every update to the console
  echo: true

# Global settings
debug: false
'''

    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(config_content)
    return path
