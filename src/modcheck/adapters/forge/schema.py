"""Forge API response schemas.

Every Forge response is wrapped in a ``{"success": bool, "data": ...}``
envelope. Unknown keys are tolerated and reported once per model at debug
level so schema drift shows up in verbose runs.
"""

from __future__ import annotations

import logging
from typing import ClassVar

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

log = logging.getLogger(__name__)


class ForgeBaseModel(BaseModel):
    model_config = ConfigDict(extra="allow")
    _logged_extra_keys: ClassVar[set[str]] = set()

    def model_post_init(self, _context: object, /) -> None:
        extras = self.__pydantic_extra__
        if not extras:
            return
        new_keys = set(extras).difference(self._logged_extra_keys)
        if not new_keys:
            return
        self._logged_extra_keys.update(new_keys)
        log.debug(
            "Forge %s: unmodeled keys: %s",
            type(self).__name__,
            ", ".join(sorted(new_keys)),
        )


class ForgeOwner(ForgeBaseModel):
    id: int | None = None
    name: str = ""
    profile_photo_url: str | None = None


class ForgeModVersion(ForgeBaseModel):
    id: int | None = None
    version: str = ""
    link: str | None = None
    spt_version_constraint: str = ""
    downloads: int = 0
    published_at: str | None = None


class ForgeMod(ForgeBaseModel):
    id: int
    name: str = ""
    slug: str = ""
    teaser: str | None = None
    thumbnail: str | None = None
    downloads: int = 0
    source_code_url: str | None = None
    detail_url: str | None = None
    owner: ForgeOwner | None = None
    versions: list[ForgeModVersion] | None = None


class ForgeSptVersion(ForgeBaseModel):
    id: int | None = None
    version: str = ""
    mod_count: int = 0
    link: str | None = None


class ForgeReleaseRef(ForgeBaseModel):
    """A version pointer inside update and dependency payloads."""

    version: str | None = None
    link: str | None = None


class ForgeBlockingMod(ForgeBaseModel):
    mod_id: int | None = Field(default=None, validation_alias=AliasChoices("mod_id", "id"))
    name: str = ""
    constraint: str | None = Field(
        default=None,
        validation_alias=AliasChoices("constraint", "version_constraint"),
    )


class ForgeSafeUpdate(ForgeBaseModel):
    mod_id: int = Field(validation_alias=AliasChoices("mod_id", "id"))
    recommended_version: ForgeReleaseRef | None = None


class ForgeBlockedUpdate(ForgeBaseModel):
    mod_id: int = Field(validation_alias=AliasChoices("mod_id", "id"))
    latest_version: ForgeReleaseRef | None = None
    blocking_mods: list[ForgeBlockingMod] = Field(default_factory=list[ForgeBlockingMod])


class ForgeUpToDate(ForgeBaseModel):
    mod_id: int = Field(validation_alias=AliasChoices("mod_id", "id"))
    version: str | None = Field(
        default=None,
        validation_alias=AliasChoices("version", "current_version"),
    )


class ForgeIncompatibleUpdate(ForgeBaseModel):
    mod_id: int = Field(validation_alias=AliasChoices("mod_id", "id"))
    reason: str | None = None


class ForgeUpdatesData(ForgeBaseModel):
    safe_to_update: list[ForgeSafeUpdate] = Field(default_factory=list[ForgeSafeUpdate])
    blocked: list[ForgeBlockedUpdate] = Field(default_factory=list[ForgeBlockedUpdate])
    up_to_date: list[ForgeUpToDate] = Field(default_factory=list[ForgeUpToDate])
    incompatible: list[ForgeIncompatibleUpdate] = Field(
        default_factory=list[ForgeIncompatibleUpdate]
    )


class ForgeDependency(ForgeBaseModel):
    id: int
    guid: str = ""
    name: str = ""
    slug: str = ""
    latest_compatible_version: ForgeReleaseRef | None = None
    conflict: bool = False
    dependencies: list[ForgeDependency] = Field(default_factory=list["ForgeDependency"])


class ForgeEnvelope(ForgeBaseModel):
    success: bool = False


class AbilitiesResponse(ForgeEnvelope):
    data: list[str] | None = None


class ModListResponse(ForgeEnvelope):
    data: list[ForgeMod] | None = None


class ModResponse(ForgeEnvelope):
    data: ForgeMod | None = None


class SptVersionsResponse(ForgeEnvelope):
    data: list[ForgeSptVersion] | None = None


class UpdatesResponse(ForgeEnvelope):
    data: ForgeUpdatesData | None = None


class DependenciesResponse(ForgeEnvelope):
    data: list[ForgeDependency] | None = None
