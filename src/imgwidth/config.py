"""Configuration loading and management for imgwidth.

Settings come from an optional ``.github/imgwidth.toml`` and are then
overridden by the environment a GitHub Action runs in:

- ``INPUT_WIDTH``: target width (the action's ``width`` input)
- ``INPUT_TOKEN`` or ``GITHUB_TOKEN``: API token
- ``GITHUB_API_URL``: REST API base URL (set by the runner on GHES)
"""

import os
import tomllib
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import TypeVar

from .decider import DEFAULT_WIDTH, resolve_width
from .logging import warning

T = TypeVar("T")

CONFIG_FILENAME = "imgwidth.toml"


class ConfigurationError(Exception):
    """Raised when a setting is missing or invalid."""


def _find_similar(key: str, valid_keys: set[str], threshold: float = 0.6) -> str | None:
    """Find a similar key from valid_keys using Levenshtein ratio.

    Args:
        key: The unknown key to match
        valid_keys: Set of valid key names
        threshold: Minimum similarity ratio (0-1) to suggest

    Returns:
        Most similar key if above threshold, None otherwise
    """

    def levenshtein_ratio(s1: str, s2: str) -> float:
        """Calculate similarity ratio between two strings."""
        m, n = len(s1), len(s2)
        if m == 0 or n == 0:
            return 0.0

        d = [[0] * (n + 1) for _ in range(m + 1)]
        for i in range(m + 1):
            d[i][0] = i
        for j in range(n + 1):
            d[0][j] = j

        for i in range(1, m + 1):
            for j in range(1, n + 1):
                cost = 0 if s1[i - 1] == s2[j - 1] else 1
                d[i][j] = min(d[i - 1][j] + 1, d[i][j - 1] + 1, d[i - 1][j - 1] + cost)

        return 1.0 - (d[m][n] / max(m, n))

    best_match = None
    best_ratio = 0.0

    for valid in valid_keys:
        ratio = levenshtein_ratio(key.lower(), valid.lower())
        if ratio > best_ratio:
            best_ratio = ratio
            best_match = valid

    return best_match if best_ratio >= threshold else None


def _warn_unknown_keys(
    data: dict, valid_keys: set[str], section: str, config_path: Path | None = None
) -> None:
    """Warn about unknown keys in a config section."""
    for key in sorted(set(data.keys()) - valid_keys):
        location = f" in {config_path}" if config_path else ""
        msg = f"Unknown config key '{key}' in [{section}]{location}"

        similar = _find_similar(key, valid_keys)
        if similar:
            msg += f". Did you mean '{similar}'?"

        warning(msg)


def _load_dataclass(
    cls: type[T],
    data: dict,
    defaults: T,
    transforms: dict[str, callable] | None = None,
    section: str = "",
    config_path: Path | None = None,
) -> T:
    """Load a dataclass from a dict with defaults and optional field transforms.

    Args:
        cls: The dataclass type to create
        data: Dict of values from config file
        defaults: Instance with default values
        transforms: Optional dict mapping field names to transform functions
        section: Section name for validation warnings
        config_path: Path to config file for validation warnings

    Returns:
        New instance of cls with values from data, falling back to defaults
    """
    if not isinstance(data, dict):
        raise ConfigurationError(f"[{section}] must be a table, got {data!r}")

    transforms = transforms or {}
    kwargs = {}
    valid_keys = {f.name for f in fields(cls)}

    _warn_unknown_keys(data, valid_keys, section, config_path)

    for f in fields(cls):
        value = data.get(f.name, getattr(defaults, f.name))
        if f.name in transforms:
            try:
                value = transforms[f.name](value)
            except (TypeError, ValueError, AttributeError) as e:
                location = f" in {config_path}" if config_path else ""
                raise ConfigurationError(
                    f"Invalid value for '{f.name}' in [{section}]{location}: {value!r}"
                ) from e
        kwargs[f.name] = value
    return cls(**kwargs)


@dataclass
class RewriteConfig:
    """Rewrite-related configuration."""

    width: int = DEFAULT_WIDTH


@dataclass
class GitHubConfig:
    """GitHub API configuration."""

    api_url: str = "https://api.github.com"
    timeout: float = 15.0


@dataclass
class Config:
    """Main configuration container."""

    rewrite: RewriteConfig = field(default_factory=RewriteConfig)
    github: GitHubConfig = field(default_factory=GitHubConfig)

    # Never read from the config file
    token: str | None = field(default=None, repr=False)
    config_path: Path | None = None

    @classmethod
    def load(cls, config_path: Path) -> "Config":
        """Load configuration from a TOML file.

        Args:
            config_path: Path to the imgwidth.toml file

        Returns:
            Loaded Config object with defaults merged

        Raises:
            ConfigurationError: If the file is not valid TOML or holds a bad value
        """
        config = cls()
        config.config_path = config_path

        if not config_path.exists():
            return config

        try:
            with open(config_path, "rb") as f:
                data = tomllib.load(f)
        except tomllib.TOMLDecodeError as e:
            raise ConfigurationError(f"Invalid TOML in {config_path}: {e}") from e

        _warn_unknown_keys(data, {"rewrite", "github"}, "top-level", config_path)

        if "rewrite" in data:
            config.rewrite = _load_dataclass(
                RewriteConfig,
                data["rewrite"],
                config.rewrite,
                transforms={"width": resolve_width},
                section="rewrite",
                config_path=config_path,
            )

        if "github" in data:
            config.github = _load_dataclass(
                GitHubConfig,
                data["github"],
                config.github,
                transforms={"api_url": lambda url: url.rstrip("/"), "timeout": float},
                section="github",
                config_path=config_path,
            )

        return config

    @classmethod
    def find_and_load(
        cls, start_path: Path | None = None, env: dict[str, str] | None = None
    ) -> "Config":
        """Find and load config, then apply environment overrides.

        A missing config file is not an error; defaults are used.

        Args:
            start_path: Directory to start searching from (default: cwd)
            env: Environment mapping (default: os.environ)

        Returns:
            Loaded Config object
        """
        if start_path is None:
            start_path = Path.cwd()

        config_path = cls.find_config(start_path)
        config = cls.load(config_path) if config_path else cls()
        return config.apply_environment(os.environ if env is None else env)

    @staticmethod
    def find_config(start_path: Path) -> Path | None:
        """Find .github/imgwidth.toml starting from start_path.

        Args:
            start_path: Directory to start searching from

        Returns:
            Path to imgwidth.toml if found, None otherwise
        """
        current = start_path.resolve()

        while True:
            config_path = current / ".github" / CONFIG_FILENAME
            if config_path.exists():
                return config_path

            parent = current.parent
            if parent == current:
                # Reached filesystem root
                return None
            current = parent

    def apply_environment(self, env) -> "Config":
        """Override settings from GitHub Actions inputs and runner variables."""
        if env.get("INPUT_WIDTH", "").strip():
            self.rewrite.width = resolve_width(env["INPUT_WIDTH"])

        token = env.get("INPUT_TOKEN", "").strip()
        if not token:
            token = env.get("GITHUB_TOKEN", "").strip()
        if token:
            self.token = token

        if env.get("GITHUB_API_URL"):
            self.github.api_url = env["GITHUB_API_URL"].rstrip("/")

        return self

    def require_token(self) -> str:
        """Return the API token.

        Raises:
            ConfigurationError: If no token is configured
        """
        if not self.token:
            raise ConfigurationError(
                "No GitHub token configured. Set the 'token' input or GITHUB_TOKEN."
            )
        return self.token
