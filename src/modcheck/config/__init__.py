"""Application configuration helpers."""

from __future__ import annotations

from .env import optional_env_var
from .errors import ConfigurationError
from .forge import DEFAULT_FORGE_BASE_URL, ForgeConfig, get_forge_config
from .http_resilience import CacheConfig, RateLimit, ResilienceConfig, RetryPolicy

__all__ = [
    "DEFAULT_FORGE_BASE_URL",
    "CacheConfig",
    "ConfigurationError",
    "ForgeConfig",
    "RateLimit",
    "ResilienceConfig",
    "RetryPolicy",
    "get_forge_config",
    "optional_env_var",
]
