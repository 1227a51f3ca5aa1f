"""Forge catalog API configuration values."""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Final

from .env import optional_env_var, optional_float_env_var
from .http_resilience import CacheConfig, RateLimit, ResilienceConfig, RetryPolicy

DEFAULT_FORGE_BASE_URL: Final[str] = "https://forge.sp-tarkov.com/api/v0/"
FORGE_TOKEN_URL: Final[str] = "https://forge.sp-tarkov.com/user/api-tokens"
FORGE_TIMEOUT_SECONDS: Final[float] = 30.0


@dataclass(frozen=True)
class ForgeConfig:
    """Holds Forge API configuration values."""

    resilience: ResilienceConfig
    api_key: str | None = None

    def with_api_key(self, api_key: str) -> ForgeConfig:
        headers = dict(self.resilience.default_headers or {})
        headers["Authorization"] = f"Bearer {api_key}"
        return ForgeConfig(
            resilience=replace(self.resilience, default_headers=headers),
            api_key=api_key,
        )


def _is_successful_envelope(payload: object) -> bool:
    return isinstance(payload, dict) and payload.get("success") is True


def get_forge_config(
    *,
    resilience: ResilienceConfig | None = None,
    api_key: str | None = None,
) -> ForgeConfig:
    base_url = optional_env_var("FORGE_BASE_URL") or DEFAULT_FORGE_BASE_URL
    if not base_url.endswith("/"):
        base_url = f"{base_url}/"
    config = ForgeConfig(
        resilience=resilience
        or ResilienceConfig(
            name="forge",
            base_url=base_url,
            timeout_seconds=optional_float_env_var(
                "FORGE_TIMEOUT_SECONDS", FORGE_TIMEOUT_SECONDS
            ),
            retry=RetryPolicy(),
            ratelimit=RateLimit(max_calls=4, per_seconds=2.0),
            cache=CacheConfig(backend="memory", should_cache=_is_successful_envelope),
            default_headers={"Accept": "application/json"},
        ),
    )
    key = api_key or optional_env_var("FORGE_API_KEY")
    return config.with_api_key(key) if key else config
