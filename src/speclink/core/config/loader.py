"""
Configuration loading with multi-layer merging.

Precedence chain (lowest to highest):
    defaults < user config < project config < env vars

There is no process-wide cache: callers load a config once and pass it
down (see speclink.core.context.AppContext).
"""

import json
import logging
import os
from pathlib import Path
from typing import Any

from .env import user_config_dir
from .models import SpecLinkConfig

logger = logging.getLogger(__name__)

PROJECT_CONFIG_NAME = ".speclink.json"

_TRUE_VALUES = ("1", "true", "yes", "on")


def get_user_config_path() -> Path:
    """
    Get path to user configuration file.

    Returns:
        Path to ~/.config/speclink/config.json (or XDG equivalent)
    """
    return user_config_dir() / "config.json"


def get_project_config_path(cwd: Path | None = None) -> Path:
    """
    Get path to project configuration file.

    Args:
        cwd: Project directory (defaults to current directory)

    Returns:
        Path to .speclink.json in the project root
    """
    if cwd is None:
        cwd = Path.cwd()
    return cwd / PROJECT_CONFIG_NAME


def deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """
    Deep merge two dictionaries.

    Nested dicts are merged recursively; any other value in `override`
    replaces the one in `base`.

    Example:
        >>> deep_merge({"a": 1, "b": {"x": 10}}, {"b": {"y": 2}})
        {'a': 1, 'b': {'x': 10, 'y': 2}}
    """
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def load_json_file(path: Path) -> dict[str, Any] | None:
    """
    Load a JSON object from a file.

    Returns None when the file is missing, unreadable, or not a JSON object.
    A broken config file is logged and skipped rather than aborting startup.
    """
    if not path.exists():
        return None

    try:
        with path.open(encoding="utf-8") as f:
            data = json.load(f)
    except (json.JSONDecodeError, OSError) as e:
        logger.warning("Failed to parse config at %s: %s", path, e)
        return None

    if not isinstance(data, dict):
        logger.warning("Ignoring config at %s: top level is not an object", path)
        return None
    return data


def _set_nested(result: dict[str, Any], section: str, key: str, value: Any) -> None:
    section_dict = result.get(section)
    if not isinstance(section_dict, dict):
        section_dict = {}
    result[section] = {**section_dict, key: value}


def apply_env_overrides(config_dict: dict[str, Any]) -> dict[str, Any]:
    """
    Apply environment variable overrides to configuration.

    Supported env vars:
        SPECLINK_DOCUMENTS_DIR - overrides documents_dir
        SPECLINK_DB_PATH - overrides db_path
        SPECLINK_GITHUB_OWNER - overrides github.owner
        SPECLINK_GITHUB_REPO - overrides github.repo
        SPECLINK_GITHUB_PROJECT - overrides github.project_number
        SPECLINK_TEST_MODE - overrides validation.test_mode

    Args:
        config_dict: Configuration dictionary to override

    Returns:
        New configuration dictionary with env var overrides applied
    """
    result = config_dict.copy()

    if documents_dir := os.environ.get("SPECLINK_DOCUMENTS_DIR"):
        result["documents_dir"] = documents_dir

    if db_path := os.environ.get("SPECLINK_DB_PATH"):
        result["db_path"] = db_path

    if owner := os.environ.get("SPECLINK_GITHUB_OWNER"):
        _set_nested(result, "github", "owner", owner)

    if repo := os.environ.get("SPECLINK_GITHUB_REPO"):
        _set_nested(result, "github", "repo", repo)

    if project_str := os.environ.get("SPECLINK_GITHUB_PROJECT"):
        try:
            _set_nested(result, "github", "project_number", int(project_str))
        except ValueError:
            logger.warning("Invalid SPECLINK_GITHUB_PROJECT value %r, ignoring", project_str)

    if (test_mode := os.environ.get("SPECLINK_TEST_MODE")) is not None:
        _set_nested(result, "validation", "test_mode", test_mode.lower() in _TRUE_VALUES)

    return result


def get_default_config() -> dict[str, Any]:
    """
    Get hardcoded default configuration.

    Everything else falls back to the model defaults in SpecLinkConfig.
    """
    return {
        "documents_dir": ".speclink/specs",
        "db_path": ".speclink/speclink.db",
        "backup": {"enabled": True, "max_backups": 10},
    }


def load_config(project_dir: Path | None = None) -> SpecLinkConfig:
    """
    Load configuration with multi-layer merging.

    Relative paths in the result are anchored at project_dir.

    Args:
        project_dir: Project directory to load .speclink.json from (defaults to cwd)

    Returns:
        Validated SpecLinkConfig instance

    Raises:
        pydantic.ValidationError: If the merged config fails validation

    Example:
        >>> config = load_config(Path("/work/app"))
        >>> config.db_path
        PosixPath('/work/app/.speclink/speclink.db')
    """
    if project_dir is None:
        project_dir = Path.cwd()

    merged = get_default_config()

    if user_config := load_json_file(get_user_config_path()):
        merged = deep_merge(merged, user_config)

    if project_config := load_json_file(get_project_config_path(project_dir)):
        merged = deep_merge(merged, project_config)

    merged = apply_env_overrides(merged)

    config = SpecLinkConfig(**merged)
    logger.debug("Loaded config for %s", project_dir)
    return config.resolve(project_dir)
