"""
Configuration for stack operations and completion tracking.

Settings come from, in increasing priority: built-in defaults, a YAML file,
environment variables and explicit overrides. The resolved values are passed
into clients and trackers; nothing reads the environment after loading.
"""

import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml
from jsonschema import ValidationError, validate

DEFAULT_REGION = "us-east-1"
CONFIG_ENV_VAR = "STACKCTL_CONFIG"

CONFIG_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "additionalProperties": False,
    "properties": {
        "region": {"type": "string", "minLength": 1},
        "profile": {"type": ["string", "null"]},
        "endpoint_url": {"type": ["string", "null"]},
        "poll_interval": {"type": "number", "exclusiveMinimum": 0},
        "timeout": {"type": "number", "minimum": 0},
        "lookback": {"type": "number", "minimum": 0},
        "request_timeout": {"type": "number", "exclusiveMinimum": 0},
        "default_tags": {
            "type": "object",
            "additionalProperties": {"type": "string"},
        },
    },
}


@dataclass
class ConfigurationError(Exception):
    """Raised when configuration is invalid or cannot be loaded."""

    message: str
    details: Optional[str] = None

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} ({self.details})"
        return self.message


@dataclass
class TrackerConfig:
    """Settings shared by the stack client, manager and tracker."""

    region: str = DEFAULT_REGION
    profile: Optional[str] = None
    endpoint_url: Optional[str] = None

    # Polling
    poll_interval: float = 5.0
    timeout: float = 1800.0
    lookback: float = 2.0

    # HTTP
    request_timeout: float = 30.0

    # Tags added to every created stack
    default_tags: Dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Convert config to dictionary."""
        return {f.name: getattr(self, f.name) for f in fields(self)}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TrackerConfig":
        """Create config from dictionary, validating it first."""
        try:
            validate(instance=data, schema=CONFIG_SCHEMA)
        except ValidationError as e:
            raise ConfigurationError(
                f"Configuration validation failed: {e.message}",
                details=f"Path: {' -> '.join(str(p) for p in e.absolute_path)}",
            )
        return cls(**data)

    def tag_options(self) -> Dict[str, str]:
        """Default tags in the ``tag.KEY`` option form."""
        return {f"tag.{key}": value for key, value in self.default_tags.items()}


def _env_overrides() -> Dict[str, Any]:
    overrides: Dict[str, Any] = {}
    # AWS_REGION isn't used by the aws-cli, but check it just in case
    for var in ("AWS_REGION", "AWS_DEFAULT_REGION"):
        if os.environ.get(var):
            overrides["region"] = os.environ[var]
    return overrides


def load_config(
    path: Optional[Union[str, Path]] = None, **overrides: Any
) -> TrackerConfig:
    """
    Load configuration.

    Args:
        path: YAML config file; defaults to $STACKCTL_CONFIG when set
        **overrides: Explicit values; ``None`` values are ignored

    Returns:
        Validated configuration
    """
    data: Dict[str, Any] = {}

    path = path or os.environ.get(CONFIG_ENV_VAR)
    if path:
        config_file = Path(path)
        if not config_file.exists():
            raise ConfigurationError(f"Configuration file not found: {config_file}")
        try:
            with open(config_file, "r") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Failed to parse configuration: {e}")
        if not isinstance(data, dict):
            raise ConfigurationError(
                f"Configuration must be a mapping: {config_file}"
            )

    data.update(_env_overrides())
    data.update({k: v for k, v in overrides.items() if v is not None})

    return TrackerConfig.from_dict(data)


def save_config(config: TrackerConfig, path: Union[str, Path]) -> None:
    """Save configuration to a YAML file."""
    with open(path, "w") as f:
        yaml.dump(config.to_dict(), f, default_flow_style=False)
