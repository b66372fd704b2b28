"""Application configuration helpers."""

from __future__ import annotations

from .env import env_positive_int, optional_env_var, require_env_vars
from .errors import ConfigurationError, MissingConfigurationError
from .github import GitHubConfig, get_github_config
from .http_resilience import CacheConfig, RateLimit, ResilienceConfig, RetryPolicy
from .logging import configure_logging
from .pipeline import PipelineSettings, get_pipeline_settings
from .storage import (
    DatabaseConfig,
    StorageConfig,
    get_database_config,
    get_database_uri,
    get_http_cache_path,
    get_storage_config,
)

__all__ = [
    "CacheConfig",
    "ConfigurationError",
    "DatabaseConfig",
    "GitHubConfig",
    "MissingConfigurationError",
    "PipelineSettings",
    "RateLimit",
    "ResilienceConfig",
    "RetryPolicy",
    "StorageConfig",
    "configure_logging",
    "env_positive_int",
    "get_database_config",
    "get_database_uri",
    "get_github_config",
    "get_http_cache_path",
    "get_pipeline_settings",
    "get_storage_config",
    "optional_env_var",
    "require_env_vars",
]
