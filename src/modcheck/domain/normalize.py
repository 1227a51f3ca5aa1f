"""Name normalization and similarity helpers shared by reconciliation and matching."""

from __future__ import annotations

import re
from typing import Final

from rapidfuzz import fuzz

_STRIPPED_CHARS: Final[str] = "-_ ."
_NORMALIZED_SUFFIXES: Final[tuple[str, ...]] = ("server", "client")
_COMPONENT_SUFFIXES: Final[tuple[str, ...]] = ("Server", "Client")
_GUID_DELIMITERS: Final = re.compile(r"[._-]")

_STRIP_TABLE = str.maketrans("", "", _STRIPPED_CHARS)


def normalize_name(name: str | None, *, strip_suffix: bool = False) -> str:
    """Lowercase ``name`` and drop separators; optionally cut a server/client suffix.

    >>> normalize_name("My-Mod Server", strip_suffix=True)
    'mymod'
    """

    if name is None or not name.strip():
        return ""
    result = name.lower().translate(_STRIP_TABLE)
    if strip_suffix:
        for suffix in _NORMALIZED_SUFFIXES:
            if result.endswith(suffix):
                result = result[: -len(suffix)]
                break
    return result


def name_from_guid(guid: str | None) -> str:
    """Return the last delimited segment of a GUID (``com.author.mod`` -> ``mod``)."""

    if guid is None or not guid.strip():
        return ""
    parts = [part for part in _GUID_DELIMITERS.split(guid) if part]
    return parts[-1] if parts else guid


def remove_component_suffix(name: str) -> str:
    """Strip a trailing ``Server``/``Client`` (any case) unless it is the whole name."""

    if not name.strip():
        return name
    lowered = name.lower()
    for suffix in _COMPONENT_SUFFIXES:
        if lowered.endswith(suffix.lower()) and len(name) > len(suffix):
            return name[: -len(suffix)]
    return name


def is_exact_match(left: str | None, right: str | None, *, strip_suffix: bool = False) -> bool:
    normalized_left = normalize_name(left, strip_suffix=strip_suffix)
    normalized_right = normalize_name(right, strip_suffix=strip_suffix)
    return bool(normalized_left) and normalized_left == normalized_right


def fuzzy_score(left: str | None, right: str | None) -> int:
    """Similarity of two names after normalization, 0-100; 0 when either is empty."""

    normalized_left = normalize_name(left)
    normalized_right = normalize_name(right)
    if not normalized_left or not normalized_right:
        return 0
    return similarity_ratio(normalized_left, normalized_right)


def similarity_ratio(left: str, right: str) -> int:
    """Indel-distance ratio rounded to an integer percentage."""

    return round(fuzz.ratio(left, right))


def expand_camel_case(term: str) -> str:
    """Insert spaces at CamelCase boundaries; all-uppercase terms (acronyms) are kept."""

    if not term.strip():
        return term
    if all(not char.isalpha() or char.isupper() for char in term):
        return term

    pieces: list[str] = []
    for index, char in enumerate(term):
        if index > 0 and char.isupper() and not term[index - 1].isupper():
            pieces.append(" ")
        pieces.append(char)
    return "".join(pieces).strip()
