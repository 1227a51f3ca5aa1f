"""Resolve packages against the catalog with a cascade of exact and fuzzy strategies.

Cascade per package, first success wins:

1. primary GUID lookup
2. alternate GUID lookups
3. name search over an ordered list of candidate terms, scoring every result
   with :func:`find_best_match`

Packages are matched concurrently; the gateway behind the catalog port is the
only throttle. Results are returned in scan order.
"""

from __future__ import annotations

import asyncio
import math
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING, Final

from .curation import NOT_ON_CATALOG_REASON, is_excluded, search_identity
from .model import CatalogEntry, MatchMethod, Package, PackageStatus
from .normalize import (
    expand_camel_case,
    fuzzy_score,
    is_exact_match,
    name_from_guid,
    remove_component_suffix,
)
from .results import ApiError

if TYPE_CHECKING:
    from .ports import CatalogPort

log = getLogger(__name__)

EXACT_GUID_CONFIDENCE: Final[int] = 100
ALTERNATE_GUID_PENALTY: Final[int] = 5
EXACT_NAME_CONFIDENCE: Final[int] = 95
STRIPPED_NAME_CONFIDENCE: Final[int] = 93
SLUG_NAME_CONFIDENCE: Final[int] = 92
SLUG_GUID_NAME_CONFIDENCE: Final[int] = 90
FUZZY_NAME_CONFIDENCE: Final[int] = 85
MINIMUM_FUZZY_SCORE: Final[int] = 70
VERIFIED_THRESHOLD: Final[int] = 75
UNKNOWN_AUTHOR: Final[str] = "Unknown"

type ProgressCallback = Callable[[Package, int, int], None]
type ConfirmationDecider = Callable[[Sequence[Package]], Sequence[bool]]


@dataclass(slots=True, frozen=True)
class CandidateMatch:
    entry: CatalogEntry
    confidence: int
    method: MatchMethod


def status_for_confidence(confidence: int) -> PackageStatus:
    if confidence >= VERIFIED_THRESHOLD:
        return PackageStatus.VERIFIED
    if confidence >= 1:
        return PackageStatus.NEEDS_CONFIRMATION
    return PackageStatus.NO_MATCH


def _has_known_author(author: str) -> bool:
    return bool(author.strip()) and author.casefold() != UNKNOWN_AUTHOR.casefold()


def build_search_terms(name: str, author: str, guid: str) -> list[str]:
    """Ordered, case-insensitively de-duplicated search terms for one package."""

    terms: list[str] = []
    seen: set[str] = set()

    def add(term: str) -> None:
        if term.strip() and term.casefold() not in seen:
            seen.add(term.casefold())
            terms.append(term)

    add(name)
    add(remove_component_suffix(name))
    if guid.strip():
        guid_name = name_from_guid(guid)
        add(guid_name)
        add(remove_component_suffix(guid_name))
    if _has_known_author(author):
        add(f"{author} {name}")
    return terms


def find_best_match(
    name: str,
    author: str,
    guid: str,
    candidates: Sequence[CatalogEntry],
) -> CandidateMatch | None:
    """Score search results in tier order; the first satisfied tier wins."""

    for entry in candidates:
        if is_exact_match(name, entry.name):
            return CandidateMatch(entry, EXACT_NAME_CONFIDENCE, MatchMethod.EXACT_NAME)

    stripped = remove_component_suffix(name)
    if stripped.casefold() != name.casefold():
        for entry in candidates:
            if is_exact_match(stripped, entry.name, strip_suffix=True):
                return CandidateMatch(entry, STRIPPED_NAME_CONFIDENCE, MatchMethod.EXACT_NAME)

    guid_name = name_from_guid(guid)
    for entry in candidates:
        if not entry.slug.strip():
            continue
        if is_exact_match(name, entry.slug, strip_suffix=True):
            return CandidateMatch(entry, SLUG_NAME_CONFIDENCE, MatchMethod.EXACT_NAME)
        if guid_name and is_exact_match(guid_name, entry.slug, strip_suffix=True):
            return CandidateMatch(entry, SLUG_GUID_NAME_CONFIDENCE, MatchMethod.EXACT_NAME)

    if _has_known_author(author):
        for entry in candidates:
            if (
                entry.owner is not None
                and entry.owner.name.casefold() == author.casefold()
                and is_exact_match(name, entry.name, strip_suffix=True)
            ):
                return CandidateMatch(entry, EXACT_NAME_CONFIDENCE, MatchMethod.EXACT_NAME)

    best: tuple[CatalogEntry, int] | None = None
    for entry in candidates:
        score = max(
            fuzzy_score(name, entry.name),
            fuzzy_score(name, entry.slug) if entry.slug.strip() else 0,
        )
        if score >= MINIMUM_FUZZY_SCORE and (best is None or score > best[1]):
            best = (entry, score)
    if best is None:
        return None

    confidence = math.floor(best[1] * FUZZY_NAME_CONFIDENCE / 100 + 0.5)
    return CandidateMatch(best[0], confidence, MatchMethod.FUZZY_NAME)


async def match_package(
    package: Package,
    catalog: CatalogPort,
    platform_version: str,
) -> Package:
    """Resolve one package in place and return it."""

    if is_excluded(package):
        log.debug("Skipping excluded mod %s by %s", package.local_name, package.local_author)
        package.status = PackageStatus.INCOMPATIBLE
        package.incompatibility_reason = NOT_ON_CATALOG_REASON
        return package

    log.debug("Matching mod %s (GUID: %s)", package.local_name, package.guid)

    if package.guid.strip():
        result = await catalog.get_by_guid(package.guid, platform_version)
        if isinstance(result, CatalogEntry):
            log.debug("Matched %s by GUID -> %s", package.local_name, result.name)
            _apply(package, CandidateMatch(result, EXACT_GUID_CONFIDENCE, MatchMethod.EXACT_GUID))
            return package

    for alternate in package.alternate_guids:
        result = await catalog.get_by_guid(alternate, platform_version)
        if isinstance(result, CatalogEntry):
            log.debug("Matched %s by alternate GUID %s", package.local_name, alternate)
            confidence = EXACT_GUID_CONFIDENCE - ALTERNATE_GUID_PENALTY
            _apply(package, CandidateMatch(result, confidence, MatchMethod.EXACT_GUID))
            return package

    name, author = search_identity(package)
    for term in build_search_terms(name, author, package.guid):
        candidates = await catalog.search(expand_camel_case(term), platform_version)
        if isinstance(candidates, ApiError) or not candidates:
            continue
        best = find_best_match(name, author, package.guid, candidates)
        if best is None:
            continue
        log.debug(
            "Matched %s by search term %r -> %s (%s, %s)",
            package.local_name,
            term,
            best.entry.name,
            best.method,
            best.confidence,
        )
        _apply(package, best)
        return package

    log.debug("No match found for mod %s", package.local_name)
    package.status = PackageStatus.NO_MATCH
    return package


def _apply(package: Package, match: CandidateMatch) -> None:
    package.apply_catalog_match(
        match.entry,
        confidence=match.confidence,
        method=match.method,
        status=status_for_confidence(match.confidence),
    )


async def match_packages(
    packages: Sequence[Package],
    catalog: CatalogPort,
    platform_version: str,
    *,
    progress: ProgressCallback | None = None,
) -> list[Package]:
    """Match every package concurrently and return them sorted by scan index."""

    total = len(packages)
    completed = 0

    async def run(package: Package) -> Package:
        nonlocal completed
        await match_package(package, catalog, platform_version)
        completed += 1
        if progress is not None:
            progress(package, completed, total)
        return package

    matched = await asyncio.gather(*(run(package) for package in packages))
    return sorted(matched, key=lambda package: package.scan_index)


@dataclass(slots=True, kw_only=True)
class ConfirmationOutcome:
    accepted: list[Package] = field(default_factory=list[Package])
    rejected: list[Package] = field(default_factory=list[Package])


def pending_confirmations(packages: Sequence[Package]) -> list[Package]:
    return [package for package in packages if package.status is PackageStatus.NEEDS_CONFIRMATION]


def resolve_confirmations(
    packages: Sequence[Package],
    decide: ConfirmationDecider,
) -> ConfirmationOutcome:
    """Ask ``decide`` about every low-confidence match at once and apply the answers.

    Accepted packages become manually verified; rejected ones lose all catalog data.
    """

    outcome = ConfirmationOutcome()
    pending = pending_confirmations(packages)
    if not pending:
        return outcome

    decisions = list(decide(pending))
    if len(decisions) != len(pending):
        raise ValueError(f"Expected {len(pending)} confirmation decisions, got {len(decisions)}")

    for package, accepted in zip(pending, decisions, strict=True):
        if accepted:
            package.confirm_match()
            outcome.accepted.append(package)
        else:
            package.clear_catalog_match()
            outcome.rejected.append(package)
    log.debug(
        "Confirmations resolved: accepted=%s, rejected=%s",
        len(outcome.accepted),
        len(outcome.rejected),
    )
    return outcome
