"""Configuration management for dot-sync."""

from __future__ import annotations

import copy
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from rich.console import Console

console = Console()

CONFIG_FILE_NAME = "config.yaml"

DEFAULT_CONFIG: Dict[str, Any] = {
    "state_dir": ".dot-sync",
    "files_dir": "files",
    "database": "state.db",
    "exclude_patterns": [".git"],
    "git": {
        "branch": "main",
        "commit_message": "sync: update dotfiles",
        "force_push": True,
    },
    "log_file": None,
}


class Config:
    """Configuration class for dot-sync.

    Directory settings are resolved against the home directory the config was
    created for, so ``state_dir: .dot-sync`` means ``~/.dot-sync``.
    """

    def __init__(self, home: Optional[str] = None) -> None:
        """Initialize configuration."""
        self.home = home
        self.config: Dict[str, Any] = {}
        self.state_dir: str = ""
        self.files_dir: str = ""
        self.database: str = ""
        self.exclude_patterns: List[str] = []
        self.git: Dict[str, Any] = {}
        self.log_file: Optional[str] = None
        self.load_config()

    @classmethod
    def for_home(cls, home: str) -> "Config":
        """Load the configuration for ``home``, including its config file if present."""
        config = cls(home)
        config_file = config.state_path / CONFIG_FILE_NAME
        if config_file.exists():
            config.load_config(config_file)
        return config

    def load_config(self, config_file: Optional[Path] = None) -> None:
        """Load configuration from file."""
        if not self.config:
            self._merge_config(copy.deepcopy(DEFAULT_CONFIG))

        if config_file is not None:
            try:
                with open(config_file, "r") as f:
                    user_config = yaml.safe_load(f)
                if user_config:
                    self._merge_config(user_config)
            except (OSError, yaml.YAMLError, ValueError) as e:
                console.print(f"[red]Error loading config file: {e}[/red]")

    def _merge_config(self, config: Dict[str, Any]) -> None:
        """Merge configuration with current configuration."""
        if not isinstance(config, dict):
            raise ValueError("Configuration must be a dictionary")

        for key in ("state_dir", "files_dir", "database"):
            if key in config and not isinstance(config[key], str):
                raise ValueError(f"{key} must be a string")

        if "exclude_patterns" in config:
            if not isinstance(config["exclude_patterns"], list):
                raise ValueError("exclude_patterns must be a list")

        if "git" in config and not isinstance(config["git"], dict):
            raise ValueError("git must be a dictionary")

        if config.get("log_file") is not None and not isinstance(config["log_file"], str):
            raise ValueError("log_file must be a string")

        # Update the raw config
        git_config = {**self.config.get("git", {}), **config.get("git", {})}
        self.config.update(config)
        self.config["git"] = git_config

        self.state_dir = self.config["state_dir"]
        self.files_dir = self.config["files_dir"]
        self.database = self.config["database"]
        self.exclude_patterns = list(self.config["exclude_patterns"])
        self.git = git_config
        self.log_file = self.config.get("log_file")

    def validate(self) -> List[str]:
        """Validate configuration."""
        errors = []

        for key in ("state_dir", "files_dir", "database"):
            value = getattr(self, key)
            if not isinstance(value, str) or not value:
                errors.append(f"{key} must be a non-empty string")

        if not isinstance(self.exclude_patterns, list):
            errors.append("exclude_patterns must be a list")
        else:
            for pattern in self.exclude_patterns:
                if not isinstance(pattern, str):
                    errors.append(f"exclude pattern {pattern} must be a string")

        branch = self.git.get("branch")
        if not isinstance(branch, str) or not branch:
            errors.append("git branch must be a non-empty string")
        if not isinstance(self.git.get("commit_message"), str):
            errors.append("git commit_message must be a string")
        if not isinstance(self.git.get("force_push"), bool):
            errors.append("git force_push must be a boolean")

        return errors

    @property
    def state_path(self) -> Path:
        """Directory holding the database, config file and git working copy."""
        state_dir = Path(self.state_dir).expanduser()
        if state_dir.is_absolute() or self.home is None:
            return state_dir
        return Path(self.home) / state_dir

    @property
    def cache_root(self) -> Path:
        """Directory holding one cache slot per tracked file."""
        return self.state_path / self.files_dir

    @property
    def database_path(self) -> Path:
        """Location of the record store."""
        return self.state_path / self.database

    def get(self, key: str, default: Any = None) -> Any:
        """Get a configuration value.

        Args:
            key: The configuration key to get.
            default: The default value to return if the key is not found.

        Returns:
            The configuration value, or the default if not found.
        """
        return self.config.get(key, default)
