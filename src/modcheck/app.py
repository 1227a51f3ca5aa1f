"""Application orchestration entry points."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING, Any

from modcheck.adapters.assembly import AssemblyScanner
from modcheck.adapters.credentials import ApiKeyStore, resolve_api_key
from modcheck.adapters.forge import ForgeClient
from modcheck.adapters.install import (
    ChainedScanner,
    ManifestScanner,
    discover_components,
    read_platform_version,
)
from modcheck.config import get_forge_config
from modcheck.domain.compatibility import check_platform_compatibility, newer_platform_versions
from modcheck.domain.dependencies import DependencyAnalysisResult, analyze_dependencies
from modcheck.domain.enrichment import enrich_with_updates
from modcheck.domain.matching import ConfirmationOutcome, match_packages, resolve_confirmations
from modcheck.domain.reconciliation import reconcile
from modcheck.domain.results import ApiError, InvalidApiKey, InvalidPlatformVersion

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence
    from pathlib import Path

    from modcheck.adapters.credentials import KeyPrompt, KeyRejected
    from modcheck.config import ForgeConfig
    from modcheck.domain.dependencies import FetchProgressCallback
    from modcheck.domain.matching import ConfirmationDecider, ProgressCallback
    from modcheck.domain.model import Package, PlatformVersion, ReconciliationPair
    from modcheck.domain.ports import ComponentScanner

type ForgeClientFactory = Callable[[ForgeConfig], ForgeClient]

log = getLogger(__name__)


class InstallationError(RuntimeError):
    """Raised when the install directory cannot be checked."""


class AuthenticationError(RuntimeError):
    """Raised when no usable Forge API key is available."""


@dataclass(slots=True, kw_only=True)
class CheckReport:
    platform_version: str
    packages: list[Package] = field(default_factory=list["Package"])
    pairs: list[ReconciliationPair] = field(default_factory=list["ReconciliationPair"])
    confirmations: ConfirmationOutcome = field(default_factory=ConfirmationOutcome)
    platform_incompatible: list[Package] = field(default_factory=list["Package"])
    platform_updates: list[PlatformVersion] = field(default_factory=list["PlatformVersion"])
    dependencies: DependencyAnalysisResult = field(default_factory=DependencyAnalysisResult)


def _reject_all(pending: Sequence[Package]) -> list[bool]:
    return [False] * len(pending)


def default_scanner() -> ComponentScanner:
    """Legacy ``package.json`` manifests first, then .NET assembly metadata."""

    return ChainedScanner(ManifestScanner(), AssemblyScanner())


def _default_client_factory(config: ForgeConfig) -> ForgeClient:
    return ForgeClient(config=config)


async def _authenticate(
    forge: ForgeClient,
    config: ForgeConfig,
    key_store: ApiKeyStore,
    prompt_api_key: KeyPrompt,
    on_key_rejected: KeyRejected | None,
) -> None:
    if config.api_key:
        result = await forge.validate_api_key(config.api_key)
        if isinstance(result, InvalidApiKey):
            raise AuthenticationError("The configured Forge API key was rejected")
        if isinstance(result, ApiError):
            log.warning("Could not validate configured API key: %s", result.message)
        return

    api_key = await resolve_api_key(
        key_store,
        forge.validate_api_key,
        prompt_api_key,
        on_rejected=on_key_rejected,
    )
    if api_key is None:
        raise AuthenticationError("A valid Forge API key is required")
    forge.use_api_key(api_key)


async def run_check(
    install_root: Path,
    *,
    prompt_api_key: KeyPrompt,
    confirm: ConfirmationDecider | None = None,
    on_key_rejected: KeyRejected | None = None,
    scanner: ComponentScanner | None = None,
    config: ForgeConfig | None = None,
    key_store: ApiKeyStore | None = None,
    client_factory: ForgeClientFactory | None = None,
    match_progress: ProgressCallback | None = None,
    dependency_progress: FetchProgressCallback | None = None,
) -> CheckReport:
    """Scan an install, resolve every mod against Forge and analyse dependencies."""

    platform_version = read_platform_version(install_root)
    if platform_version is None:
        raise InstallationError(f"Could not find an SPT installation version under {install_root}")
    log.info("Found local SPT version %s", platform_version)

    components = discover_components(install_root, scanner or default_scanner())
    reconciled = reconcile(components.server, components.client)
    log.info(
        "Reconciled %s server and %s client components into %s mods",
        len(components.server),
        len(components.client),
        len(reconciled.packages),
    )

    effective_config = config or get_forge_config()
    factory = client_factory or _default_client_factory
    async with factory(effective_config) as forge:
        await _authenticate(
            forge,
            effective_config,
            key_store or ApiKeyStore(),
            prompt_api_key,
            on_key_rejected,
        )

        validation = await forge.validate_platform_version(platform_version)
        if isinstance(validation, InvalidPlatformVersion):
            raise InstallationError(f"SPT version {platform_version} is not recognized by Forge")
        if isinstance(validation, ApiError):
            raise InstallationError(f"Could not validate SPT version: {validation.message}")

        available = await forge.list_platform_versions()
        platform_updates = (
            newer_platform_versions(available, platform_version)
            if isinstance(available, list)
            else []
        )

        packages = await match_packages(
            reconciled.packages,
            forge,
            platform_version,
            progress=match_progress,
        )
        confirmations = resolve_confirmations(packages, confirm or _reject_all)
        await enrich_with_updates(packages, forge, platform_version)
        incompatible = check_platform_compatibility(packages, platform_version)

        installed_guids = {
            guid for package in packages for guid in (package.guid, *package.alternate_guids) if guid
        }
        dependencies = await analyze_dependencies(
            packages,
            forge,
            installed_guids,
            progress=dependency_progress,
        )

    log.info(
        "Check finished: mods=%s, verified=%s, missing dependencies=%s",
        len(packages),
        sum(1 for package in packages if package.is_matched),
        len(dependencies.missing),
    )
    return CheckReport(
        platform_version=platform_version,
        packages=packages,
        pairs=reconciled.pairs,
        confirmations=confirmations,
        platform_incompatible=incompatible,
        platform_updates=platform_updates,
        dependencies=dependencies,
    )


def check_mods(install_root: Path, **kwargs: Any) -> CheckReport:
    """Synchronous wrapper around :func:`run_check`."""

    return asyncio.run(run_check(install_root, **kwargs))
