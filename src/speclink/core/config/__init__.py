"""
Configuration for speclink.

Layered loading (defaults < user < project < env) into validated
Pydantic models.
"""

from .env import load_layered_env, user_config_dir
from .loader import (
    PROJECT_CONFIG_NAME,
    deep_merge,
    get_project_config_path,
    get_user_config_path,
    load_config,
)
from .models import (
    DEFAULT_STATUS_MAPPING,
    BackupConfig,
    GitHubConfig,
    SpecLinkConfig,
    StatusConfig,
    ValidationConfig,
)

__all__ = [
    "BackupConfig",
    "DEFAULT_STATUS_MAPPING",
    "GitHubConfig",
    "PROJECT_CONFIG_NAME",
    "SpecLinkConfig",
    "StatusConfig",
    "ValidationConfig",
    "deep_merge",
    "get_project_config_path",
    "get_user_config_path",
    "load_config",
    "load_layered_env",
    "user_config_dir",
]
