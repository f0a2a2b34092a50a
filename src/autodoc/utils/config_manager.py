"""Configuration management for autodoc."""

import os
from pathlib import Path
from typing import Optional, Dict, Any, List, Mapping
import yaml
from pydantic import ValidationError

from autodoc.errors import ConfigurationError
from autodoc.models import AutodocConfig, GenerationConfig, RepositoryConfig


def _split_list(value: str) -> List[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


def _parse_flag(name: str, value: str) -> bool:
    normalized = value.strip().upper()
    if normalized in ("T", "TRUE"):
        return True
    if normalized in ("F", "FALSE"):
        return False
    raise ConfigurationError(f"{name} must be 'T' or 'F', got '{value}'")


def _parse_pull_number(value: str) -> Optional[int]:
    if not value.strip():
        return None
    try:
        return int(value)
    except ValueError:
        raise ConfigurationError(f"INPUT_PULL_NUMBER must be an integer, got '{value}'")


class ConfigManager:
    """Manages configuration loading and validation.

    Values are layered: YAML file, then environment inputs, then explicit
    overrides.
    """

    DEFAULT_CONFIG_PATHS = [
        Path(".autodoc.yaml"),
        Path(".autodoc.yml"),
        Path.home() / ".config" / "autodoc" / "config.yaml",
    ]

    def __init__(self, config_path: Optional[Path] = None, environ: Optional[Mapping[str, str]] = None):
        """Initialize configuration manager.

        Args:
            config_path: Optional path to configuration file
            environ: Environment to read inputs from (defaults to os.environ)

        Raises:
            ConfigurationError: If an explicit config file is missing or not valid YAML
        """
        self.config_path = config_path
        self.environ = os.environ if environ is None else environ
        self.config: Dict[str, Any] = {}
        self._load_config()

    def _load_config(self) -> None:
        """Load configuration from file or defaults."""
        if self.config_path is not None:
            if not self.config_path.exists():
                raise ConfigurationError(f"Config file not found: {self.config_path}")
            self.config = self._read(self.config_path)
            return

        # Try default locations
        for path in self.DEFAULT_CONFIG_PATHS:
            if path.exists():
                self.config = self._read(path)
                self.config_path = path
                return

        self.config = {}

    @staticmethod
    def _read(path: Path) -> Dict[str, Any]:
        try:
            with open(path, 'r') as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in {path}: {e}")

        if not isinstance(data, dict):
            raise ConfigurationError(f"Config file {path} must contain a mapping")
        return data

    def _environment(self) -> Dict[str, Any]:
        """Settings supplied through GitHub Action style inputs."""
        env = self.environ
        values: Dict[str, Any] = {}

        if env.get("INPUT_ROOT_DIRECTORY"):
            values["root_directory"] = env["INPUT_ROOT_DIRECTORY"]
        if env.get("INPUT_EXCLUDED_DIRECTORIES"):
            values["excluded_directories"] = _split_list(env["INPUT_EXCLUDED_DIRECTORIES"])
        if env.get("INPUT_EXCLUDED_FILES"):
            values["excluded_files"] = _split_list(env["INPUT_EXCLUDED_FILES"])
        if "INPUT_PULL_NUMBER" in env:
            values["pull_number"] = _parse_pull_number(env["INPUT_PULL_NUMBER"])
        if env.get("INPUT_JSDOC"):
            values["generate_code_comments"] = _parse_flag("INPUT_JSDOC", env["INPUT_JSDOC"])
        if env.get("INPUT_README"):
            values["generate_summary_doc"] = _parse_flag("INPUT_README", env["INPUT_README"])
        if env.get("INPUT_REVIEWERS"):
            values["reviewers"] = _split_list(env["INPUT_REVIEWERS"])
        if env.get("INPUT_BRANCH"):
            values["branch"] = env["INPUT_BRANCH"]

        return values

    def _repository(self) -> Optional[Dict[str, Any]]:
        repository = dict(self.config.get("repository") or {})

        slug = self.environ.get("GITHUB_REPOSITORY")
        if slug:
            owner, _, name = slug.partition("/")
            if not owner or not name:
                raise ConfigurationError(f"GITHUB_REPOSITORY must be 'owner/name', got '{slug}'")
            repository.update({"owner": owner, "name": name})

        token = self.environ.get("GITHUB_ACCESS_TOKEN")
        if token:
            repository["token"] = token

        if "owner" not in repository or "name" not in repository:
            return None
        return repository

    def get_generation_config(
        self,
        overrides: Optional[Dict[str, Any]] = None
    ) -> GenerationConfig:
        """Get generation configuration with overrides.

        Args:
            overrides: Optional configuration overrides

        Returns:
            GenerationConfig instance
        """
        config_dict: Dict[str, Any] = {}

        # Get API key from environment
        config_dict["api_key"] = self.environ.get("ANTHROPIC_API_KEY")

        if "generation" in self.config:
            config_dict.update(self.config["generation"])

        if overrides:
            config_dict.update(overrides)

        try:
            return GenerationConfig(**config_dict)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid generation configuration: {e}")

    def get_config(
        self,
        root_path: Path,
        overrides: Optional[Dict[str, Any]] = None,
        generation_overrides: Optional[Dict[str, Any]] = None,
    ) -> AutodocConfig:
        """Build the run configuration.

        Args:
            root_path: Repository root
            overrides: Explicit settings, typically from CLI flags (None values are ignored)
            generation_overrides: Explicit generation settings

        Returns:
            AutodocConfig instance

        Raises:
            ConfigurationError: If the merged configuration is invalid
        """
        config_dict = {k: v for k, v in self.config.items() if k not in ("generation", "repository")}
        config_dict.update(self._environment())
        if overrides:
            config_dict.update({k: v for k, v in overrides.items() if v is not None})

        config_dict["root_path"] = root_path
        config_dict["generation"] = self.get_generation_config(generation_overrides)

        repository = self._repository()
        if repository is not None:
            try:
                config_dict["repository"] = RepositoryConfig(**repository)
            except ValidationError as e:
                raise ConfigurationError(f"Invalid repository configuration: {e}")

        try:
            return AutodocConfig(**config_dict)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid configuration: {e}")

    @staticmethod
    def create_default_config(path: Path) -> None:
        """Create a default configuration file.

        Args:
            path: Path where to create the config file
        """
        default_config = {
            "root_directory": ".",
            "excluded_directories": ["node_modules", "dist", "build", ".git", "coverage"],
            "excluded_files": [],
            "excluded_file_patterns": ["*.d.ts"],
            "generate_code_comments": True,
            "generate_summary_doc": False,
            "branch": "main",
            "reviewers": [],
            "generation": {
                "model": "claude-3-5-sonnet-20241022",
                "temperature": 0.2,
                "max_tokens": 1024,
                "max_concurrency": 5,
                "max_attempts": 4,
                "context_lines": 20,
            },
        }

        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, 'w') as f:
            yaml.safe_dump(default_config, f, default_flow_style=False, indent=2, sort_keys=False)
