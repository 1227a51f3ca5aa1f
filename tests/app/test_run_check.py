"""End-to-end check flow with an in-memory Forge client."""

from __future__ import annotations

import asyncio
import json
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import pytest

from modcheck.adapters.credentials import ApiKeyStore
from modcheck.app import AuthenticationError, InstallationError, run_check
from modcheck.config import ForgeConfig, ResilienceConfig
from modcheck.domain.model import (
    CatalogVersion,
    PackageStatus,
    PlatformVersion,
    UpdatesReport,
    UpdateStatus,
    UpToDate,
)
from modcheck.domain.results import InvalidApiKey, InvalidPlatformVersion
from modcheck.ui.report import render_report
from tests.helpers.catalog import FakeCatalog, make_dependency, make_entry

if TYPE_CHECKING:
    from pathlib import Path

    from modcheck.adapters.credentials import KeyPrompt
    from modcheck.app import CheckReport


@dataclass
class FakeForge(FakeCatalog):
    valid_keys: set[str] = field(default_factory=lambda: {"k"})
    platform_known: bool = True
    platform_versions: list[PlatformVersion] = field(default_factory=list[PlatformVersion])
    used_key: str | None = None
    closed: bool = False

    async def __aenter__(self) -> FakeForge:
        return self

    async def __aexit__(self, *_exc: object) -> None:
        self.closed = True

    async def validate_api_key(self, api_key: str) -> bool | InvalidApiKey:
        return True if api_key in self.valid_keys else InvalidApiKey(should_delete_key=True)

    def use_api_key(self, api_key: str) -> None:
        self.used_key = api_key

    async def validate_platform_version(
        self, platform_version: str
    ) -> bool | InvalidPlatformVersion:
        del platform_version
        return True if self.platform_known else InvalidPlatformVersion()

    async def list_platform_versions(self) -> list[PlatformVersion]:
        return self.platform_versions


def _install(root: Path) -> Path:
    core = root / "SPT_Data" / "Server" / "configs" / "core.json"
    core.parent.mkdir(parents=True)
    core.write_text(json.dumps({"sptVersion": "3.11.0"}), encoding="utf-8")
    mod_dir = root / "SPT" / "user" / "mods" / "Foo"
    mod_dir.mkdir(parents=True)
    (mod_dir / "package.json").write_text(
        json.dumps({"name": "Foo", "author": "Acme", "version": "1.0.0"}),
        encoding="utf-8",
    )
    return root


def _forge() -> FakeForge:
    return FakeForge(
        search_results={
            "Foo": [
                make_entry(
                    1,
                    "Foo",
                    slug="foo",
                    versions=[
                        CatalogVersion("1.0.0", spt_version_constraint="~3.10.0"),
                        CatalogVersion(
                            "1.1.0", spt_version_constraint="~3.11.0", link="https://dl/11"
                        ),
                    ],
                )
            ]
        },
        updates=UpdatesReport(up_to_date=(UpToDate(1, "1.0.0"),)),
        dependencies={"1": [make_dependency(2, "com.bar", name="Bar", slug="bar")]},
        platform_versions=[PlatformVersion("3.10.0"), PlatformVersion("3.11.1")],
    )


def _no_key() -> str | None:
    return None


def _check(
    root: Path,
    forge: FakeForge,
    config: ForgeConfig,
    *,
    prompt_api_key: KeyPrompt = _no_key,
    key_store: ApiKeyStore | None = None,
) -> CheckReport:
    return asyncio.run(
        run_check(
            root,
            prompt_api_key=prompt_api_key,
            config=config,
            key_store=key_store,
            client_factory=lambda _config: forge,  # type: ignore[arg-type,return-value]
        )
    )


CONFIG = ForgeConfig(resilience=ResilienceConfig(name="forge", cache=None), api_key="k")


def test_full_check_annotates_every_stage(tmp_path: Path) -> None:
    forge = _forge()

    report = _check(_install(tmp_path), forge, CONFIG)

    (package,) = report.packages
    assert report.platform_version == "3.11.0"
    assert package.status is PackageStatus.VERIFIED
    assert package.update_status is UpdateStatus.UP_TO_DATE
    assert package.is_platform_incompatible
    assert package.compatible_version == "1.1.0"
    assert report.platform_incompatible == [package]
    assert [version.version for version in report.platform_updates] == ["3.11.1"]
    assert [missing.guid for missing in report.dependencies.missing] == ["com.bar"]
    assert report.dependencies.missing[0].required_by == ["Foo"]
    assert forge.closed


def test_report_rendering_lists_findings(tmp_path: Path) -> None:
    report = _check(_install(tmp_path), _forge(), CONFIG)

    text = render_report(report)

    assert text.startswith("SPT version: 3.11.0")
    assert "A newer SPT version is available: 3.11.1" in text
    assert "Foo: Version 1.0.0 requires SPT ~3.10.0" in text
    assert "compatible release: v1.1.0 https://dl/11" in text
    assert "Bar v1.0.0 required by Foo" in text
    assert "https://forge.sp-tarkov.com/mod/download/2/bar/1.0.0" in text
    assert "No dependency issues found." not in text


def test_prompted_key_is_saved_and_used(tmp_path: Path) -> None:
    forge = _forge()
    store = ApiKeyStore(tmp_path / "config" / "apikey.txt")
    config = ForgeConfig(resilience=CONFIG.resilience)

    _check(
        _install(tmp_path / "install"),
        forge,
        config,
        prompt_api_key=lambda: "k",
        key_store=store,
    )

    assert forge.used_key == "k"
    assert store.load() == "k"


def test_missing_key_aborts(tmp_path: Path) -> None:
    store = ApiKeyStore(tmp_path / "config" / "apikey.txt")
    config = ForgeConfig(resilience=CONFIG.resilience)

    with pytest.raises(AuthenticationError):
        _check(_install(tmp_path / "install"), _forge(), config, key_store=store)


def test_rejected_configured_key_aborts(tmp_path: Path) -> None:
    config = ForgeConfig(resilience=CONFIG.resilience, api_key="revoked")

    with pytest.raises(AuthenticationError):
        _check(_install(tmp_path), _forge(), config)


def test_unknown_platform_version_aborts(tmp_path: Path) -> None:
    forge = _forge()
    forge.platform_known = False

    with pytest.raises(InstallationError, match="not recognized"):
        _check(_install(tmp_path), forge, CONFIG)


def test_missing_installation_aborts_before_contacting_forge(tmp_path: Path) -> None:
    def factory(_config: ForgeConfig) -> FakeForge:
        raise AssertionError("client should not be created")

    with pytest.raises(InstallationError):
        asyncio.run(
            run_check(
                tmp_path,
                prompt_api_key=_no_key,
                config=CONFIG,
                client_factory=factory,  # type: ignore[arg-type]
            )
        )
