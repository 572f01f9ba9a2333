"""
Configuration handling for push_forks.

Defines the configuration schema, populated once at startup from the
environment Homebrew exports to external commands, optionally overlaid
with settings from a YAML file.
"""

import os
import sys
from collections.abc import Mapping
from pathlib import Path

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .errors import ConfigError


# Name of this command; the tap that ships it is skipped during discovery
COMMAND_NAME = "push-forks"

DEFAULT_REPOSITORY = Path("/usr/local/Homebrew")

# The only platform this command has been validated on
SUPPORTED_PLATFORM = "macos"


def _env_flag(environ: Mapping[str, str], name: str) -> bool:
    """Homebrew treats any non-empty value as set."""
    return bool(environ.get(name))


def detect_platform(environ: Mapping[str, str]) -> str:
    """Determine the host platform from Homebrew's flags, falling back to sys.platform."""
    if _env_flag(environ, "HOMEBREW_MACOS"):
        return "macos"
    if _env_flag(environ, "HOMEBREW_LINUX"):
        return "linux"
    if sys.platform == "darwin":
        return "macos"
    return sys.platform


class PushForksConfig(BaseModel):
    """Main configuration for the push-forks command."""

    model_config = ConfigDict(extra="forbid")

    # Host environment
    repository_path: Path = Field(
        default=DEFAULT_REPOSITORY, description="Path to the Homebrew repository checkout"
    )
    taps_root: Path = Field(
        default=DEFAULT_REPOSITORY / "Library" / "Taps",
        description="Directory holding taps as <user>/<repo> subdirectories",
    )
    git_path: Path | None = Field(
        default=None, description="git executable to use (defaults to the shim or PATH)"
    )
    shims_path: Path | None = Field(
        default=None, description="Directory holding Homebrew's git shim"
    )
    platform: str = Field(default=SUPPORTED_PLATFORM, description="Host platform name")

    # Push behavior
    upstream_remote: str = Field(
        default="origin", description="Remote name of the canonical upstream"
    )
    primary_branches: list[str] = Field(
        default_factory=lambda: ["master", "stable"],
        description="Branches pushed for the Homebrew repository, in order",
    )
    tap_branches: list[str] = Field(
        default_factory=lambda: ["master"],
        description="Branches pushed for every tap, in order",
    )
    command_name: str = Field(
        default=COMMAND_NAME, description="Taps whose name ends with this are skipped"
    )

    # Output settings
    verbose: bool = Field(default=False, description="Narrate phases and skip reasons")
    debug: bool = Field(default=False, description="Trace every git command executed")
    dry_run: bool = Field(default=False, description="Report what would be pushed only")

    @field_validator("primary_branches", "tap_branches")
    @classmethod
    def _branches_not_empty(cls, value: list[str]) -> list[str]:
        if not value or any(not branch.strip() for branch in value):
            raise ValueError("branch lists must contain non-empty branch names")
        return value

    @field_validator("upstream_remote", "command_name")
    @classmethod
    def _name_not_empty(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("must not be empty")
        return value

    @property
    def is_supported_platform(self) -> bool:
        return self.platform == SUPPORTED_PLATFORM

    @property
    def git_shim(self) -> Path | None:
        """Homebrew's git shim, if a shims directory is known."""
        if self.shims_path is None:
            return None
        return self.shims_path / "git"

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "PushForksConfig":
        """Build the configuration from the variables Homebrew exports."""
        if environ is None:
            environ = os.environ

        repository = Path(environ.get("HOMEBREW_REPOSITORY") or DEFAULT_REPOSITORY)
        library = Path(environ.get("HOMEBREW_LIBRARY") or repository / "Library")
        git_path = environ.get("HOMEBREW_GIT_PATH") or environ.get("HOMEBREW_GIT")

        return cls(
            repository_path=repository,
            taps_root=library / "Taps",
            git_path=Path(git_path) if git_path else None,
            shims_path=library / "Homebrew" / "shims" / "shared",
            platform=detect_platform(environ),
            verbose=_env_flag(environ, "HOMEBREW_VERBOSE"),
            debug=_env_flag(environ, "HOMEBREW_DEBUG"),
        )

    @classmethod
    def from_yaml(cls, path: Path, base: "PushForksConfig | None" = None) -> "PushForksConfig":
        """Overlay settings from a YAML file on top of a base configuration."""
        if base is None:
            base = cls()

        try:
            with open(path) as f:
                data = yaml.safe_load(f)
        except OSError as e:
            raise ConfigError(f"Cannot read config file {path}: {e}") from e
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {path}: {e}") from e

        if data is None:
            return base
        if not isinstance(data, dict):
            raise ConfigError(f"Config file {path} must contain a mapping")

        merged = base.model_dump()
        merged.update(data)
        try:
            return cls.model_validate(merged)
        except ValidationError as e:
            raise ConfigError(f"Invalid configuration in {path}: {e}") from e

