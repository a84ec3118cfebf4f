"""Configuration management for git-weekly-snapshot."""

import os
import re
from dataclasses import dataclass
from datetime import date
from pathlib import Path

import yaml
from dotenv import find_dotenv, load_dotenv

from .forges.github import DEFAULT_MAX_QUOTA_WAIT, DEFAULT_RATE_LIMIT_THRESHOLD
from .weeks import parse_date

REPOSITORY_PATTERN = re.compile(r"^[A-Za-z0-9_.-]+/[A-Za-z0-9_.-]+$")


@dataclass
class Config:
    """Main configuration object."""

    repositories: list[str]
    token: str | None = None
    endpoint: str = "https://api.github.com"
    output_directory: Path = Path("github-data")
    start_date: date | None = None
    rate_limit_threshold: int = DEFAULT_RATE_LIMIT_THRESHOLD
    max_quota_wait: float = DEFAULT_MAX_QUOTA_WAIT
    include_reviews: bool = True


def _expand_env_vars(value: str) -> str:
    """Expand environment variable references in a string.

    Supports ${VAR_NAME} syntax. Returns the original string if the
    environment variable is not set.

    Args:
        value: String potentially containing ${VAR_NAME} references

    Returns:
        String with environment variables expanded
    """
    if not isinstance(value, str):
        return value

    pattern = re.compile(r"\$\{([^}]+)\}")

    def replacer(match):
        var_name = match.group(1)
        return os.environ.get(var_name, match.group(0))

    return pattern.sub(replacer, value)


def _expand(value):
    """Recursively expand environment variables in parsed YAML."""
    if isinstance(value, dict):
        return {key: _expand(item) for key, item in value.items()}
    if isinstance(value, list):
        return [_expand(item) for item in value]
    if isinstance(value, str):
        return _expand_env_vars(value)
    return value


def load_config(config_path: str | Path) -> Config:
    """Load and parse configuration from a YAML file.

    A ``.env`` file in the working directory is loaded first, so
    ``${GITHUB_TOKEN}`` references and the token fallback can use it.

    Args:
        config_path: Path to the configuration file

    Returns:
        Parsed configuration object

    Raises:
        FileNotFoundError: If config file doesn't exist
        ValueError: If config is invalid
    """
    load_dotenv(find_dotenv(usecwd=True))
    config_path = Path(config_path)

    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    with open(config_path) as f:
        raw_config = yaml.safe_load(f)

    if not raw_config:
        raise ValueError("Configuration file is empty")
    if not isinstance(raw_config, dict):
        raise ValueError("Configuration must be a mapping")

    raw_config = _expand(raw_config)

    repositories = raw_config.get("repositories", None)
    if not repositories:
        raise ValueError("Configuration must specify at least one repository")
    for repo in repositories:
        if not isinstance(repo, str) or not REPOSITORY_PATTERN.match(repo):
            raise ValueError(f"Invalid repository (expected owner/name): {repo!r}")

    token = raw_config.get("token", None)
    # An unset ${VAR} stays unexpanded; treat it as missing
    if not token or token.startswith("${"):
        token = os.environ.get("GITHUB_TOKEN")

    start_date = raw_config.get("start_date", None)
    if start_date is not None:
        try:
            start_date = parse_date(start_date)
        except ValueError as e:
            raise ValueError(f"Invalid start_date: {e}") from e

    rate_limit_threshold = raw_config.get("rate_limit_threshold", DEFAULT_RATE_LIMIT_THRESHOLD)
    if not isinstance(rate_limit_threshold, int) or rate_limit_threshold < 0:
        raise ValueError(f"Invalid rate_limit_threshold: {rate_limit_threshold}")

    max_quota_wait = raw_config.get("max_quota_wait", DEFAULT_MAX_QUOTA_WAIT)
    if not isinstance(max_quota_wait, (int, float)) or max_quota_wait < 0:
        raise ValueError(f"Invalid max_quota_wait: {max_quota_wait}")

    return Config(
        repositories=list(dict.fromkeys(repositories)),
        token=token,
        endpoint=raw_config.get("endpoint", None) or "https://api.github.com",
        output_directory=Path(raw_config.get("output_directory", None) or "github-data"),
        start_date=start_date,
        rate_limit_threshold=rate_limit_threshold,
        max_quota_wait=float(max_quota_wait),
        include_reviews=bool(raw_config.get("include_reviews", True)),
    )
