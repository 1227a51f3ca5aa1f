"""Forge catalog client.

One :class:`ForgeClient` owns one :class:`RateLimitedGateway`, so every call
made through it shares the same spacing and backoff state. Failures are
returned as tagged values from :mod:`modcheck.domain.results`, never raised.
"""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING

import httpx
from pydantic import ValidationError

from modcheck.adapters.http_resilience import RateLimitedGateway
from modcheck.domain.results import (
    ApiError,
    InvalidApiKey,
    InvalidInput,
    InvalidPlatformVersion,
    NoCompatibleVersion,
    NotFound,
    RateLimited,
)
from modcheck.domain.versioning import safe_satisfies

from .schema import (
    AbilitiesResponse,
    DependenciesResponse,
    ModListResponse,
    ModResponse,
    SptVersionsResponse,
    UpdatesResponse,
)
from .translator import (
    to_catalog_dependency,
    to_catalog_entry,
    to_platform_version,
    to_updates_report,
)

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence
    from types import TracebackType

    from pydantic import BaseModel

    from modcheck.config.forge import ForgeConfig
    from modcheck.config.http_resilience import ResilienceConfig
    from modcheck.domain.model import (
        CatalogDependency,
        CatalogEntry,
        PlatformVersion,
        UpdatesReport,
    )

log = getLogger(__name__)

READ_ABILITY = "read"
MOD_INCLUDES = "versions,source_code_links"
PLATFORM_VERSIONS_PAGE_SIZE = 15
PARSE_ERROR_MESSAGE = "Failed to parse API response"
RATE_LIMIT_MESSAGE = "Rate limit exceeded"


class ForgeClient:
    """Async Forge API client implementing the catalog port."""

    def __init__(
        self,
        *,
        config: ForgeConfig,
        gateway_factory: Callable[[ResilienceConfig], RateLimitedGateway] | None = None,
    ) -> None:
        self._config = config
        factory = gateway_factory or RateLimitedGateway
        self._gateway = factory(config.resilience)

    async def __aenter__(self) -> ForgeClient:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._gateway.aclose()

    def use_api_key(self, api_key: str) -> None:
        """Authenticate every later request with ``api_key``."""

        self._gateway.set_default_header("Authorization", f"Bearer {api_key}")

    async def validate_api_key(self, api_key: str) -> bool | InvalidApiKey | ApiError:
        """Check that ``api_key`` is accepted and carries the read ability."""

        if not api_key.strip():
            return InvalidApiKey(should_delete_key=True)

        outcome = await self._gateway.get(
            "auth/abilities",
            headers={"Authorization": f"Bearer {api_key}"},
        )
        if not isinstance(outcome, httpx.Response):
            return _as_api_error(outcome)
        if outcome.status_code in {httpx.codes.UNAUTHORIZED, httpx.codes.FORBIDDEN}:
            log.warning("API key validation failed: %s", outcome.status_code)
            return InvalidApiKey(should_delete_key=True)
        if not outcome.is_success:
            log.error("API key validation failed with server error: %s", outcome.status_code)
            return _status_error(outcome)

        payload = _parse(outcome, AbilitiesResponse)
        if isinstance(payload, ApiError):
            return payload
        if not payload.success or READ_ABILITY not in (payload.data or []):
            log.warning("API key validation failed: key lacks read permission")
            return InvalidApiKey(should_delete_key=True)
        log.debug("API key validated with read permission")
        return True

    async def validate_platform_version(
        self, platform_version: str
    ) -> bool | InvalidPlatformVersion | ApiError:
        outcome = await self._gateway.get(
            "spt/versions",
            params={"filter[spt_version]": platform_version},
        )
        payload = _checked(outcome, SptVersionsResponse)
        if isinstance(payload, ApiError):
            return payload
        if payload.success and any(item.version == platform_version for item in payload.data or []):
            return True
        log.warning("SPT version %s not found on Forge", platform_version)
        return InvalidPlatformVersion()

    async def list_platform_versions(self) -> list[PlatformVersion] | ApiError:
        outcome = await self._gateway.get(
            "spt/versions",
            params={"sort": "-version", "per_page": str(PLATFORM_VERSIONS_PAGE_SIZE)},
        )
        payload = _checked(outcome, SptVersionsResponse)
        if isinstance(payload, ApiError):
            return payload
        if not payload.success:
            return []
        return [to_platform_version(item) for item in payload.data or []]

    async def search(self, query: str, platform_version: str) -> list[CatalogEntry] | ApiError:
        outcome = await self._gateway.get(
            "mods",
            params={
                "query": query,
                "filter[spt_version]": platform_version,
                "include": MOD_INCLUDES,
            },
        )
        payload = _checked(outcome, ModListResponse)
        if isinstance(payload, ApiError):
            return payload
        if not payload.success:
            return []
        return [to_catalog_entry(item) for item in payload.data or []]

    async def get_by_guid(
        self,
        guid: str,
        platform_version: str,
    ) -> CatalogEntry | NotFound | NoCompatibleVersion | ApiError:
        """Look up the first mod with ``guid``.

        A mod whose versions all exclude ``platform_version`` is reported as
        ``NoCompatibleVersion``; a mod without versions is returned as is.
        """

        if not guid.strip():
            return NotFound()

        outcome = await self._gateway.get(
            "mods",
            params={"filter[guid]": guid, "include": MOD_INCLUDES},
        )
        payload = _checked(outcome, ModListResponse)
        if isinstance(payload, ApiError):
            return payload
        if not payload.success or not payload.data:
            return NotFound()

        entry = to_catalog_entry(payload.data[0])
        if entry.versions and not any(
            safe_satisfies(version.spt_version_constraint, platform_version)
            for version in entry.versions
        ):
            log.debug("Mod %s has no version compatible with SPT %s", guid, platform_version)
            return NoCompatibleVersion()
        return entry

    async def get_by_id(self, mod_id: int) -> CatalogEntry | NotFound | InvalidInput | ApiError:
        if mod_id <= 0:
            return InvalidInput("modId", "Mod ID must be greater than 0")

        outcome = await self._gateway.get(f"mod/{mod_id}", params={"include": MOD_INCLUDES})
        if isinstance(outcome, httpx.Response) and outcome.status_code == httpx.codes.NOT_FOUND:
            return NotFound()
        payload = _checked(outcome, ModResponse)
        if isinstance(payload, ApiError):
            return payload
        if not payload.success or payload.data is None:
            return NotFound()
        return to_catalog_entry(payload.data)

    async def get_updates(
        self,
        items: Sequence[tuple[int, str]],
        platform_version: str,
    ) -> UpdatesReport | NotFound | ApiError:
        if not items:
            return NotFound()

        mods = ",".join(f"{mod_id}:{version}" for mod_id, version in items)
        outcome = await self._gateway.get(
            "mods/updates",
            params={"mods": mods, "spt_version": platform_version},
        )
        payload = _checked(outcome, UpdatesResponse)
        if isinstance(payload, ApiError):
            return payload
        if not payload.success or payload.data is None:
            return NotFound()
        return to_updates_report(payload.data)

    async def get_dependencies(
        self,
        items: Sequence[tuple[str, str]],
    ) -> list[CatalogDependency] | NotFound | ApiError:
        if not items:
            return NotFound()

        mods = ",".join(f"{identifier}:{version}" for identifier, version in items)
        outcome = await self._gateway.get("mods/dependencies", params={"mods": mods})
        payload = _checked(outcome, DependenciesResponse)
        if isinstance(payload, ApiError):
            return payload
        if not payload.success or payload.data is None:
            return NotFound()
        return [to_catalog_dependency(item) for item in payload.data]


def _as_api_error(outcome: RateLimited | ApiError) -> ApiError:
    if isinstance(outcome, RateLimited):
        return ApiError(RATE_LIMIT_MESSAGE, status_code=httpx.codes.TOO_MANY_REQUESTS)
    return outcome


def _status_error(response: httpx.Response) -> ApiError:
    return ApiError(f"API returned status {response.status_code}", status_code=response.status_code)


def _parse[M: BaseModel](response: httpx.Response, model: type[M]) -> M | ApiError:
    try:
        return model.model_validate_json(response.content)
    except ValidationError as exc:
        log.debug("Unparsable response from %s: %s", response.request.url, exc)
        return ApiError(PARSE_ERROR_MESSAGE, status_code=response.status_code, cause=exc)


def _checked[M: BaseModel](
    outcome: httpx.Response | RateLimited | ApiError,
    model: type[M],
) -> M | ApiError:
    if not isinstance(outcome, httpx.Response):
        return _as_api_error(outcome)
    if not outcome.is_success:
        log.error("Forge request %s failed: %s", outcome.request.url, outcome.status_code)
        return _status_error(outcome)
    return _parse(outcome, model)
