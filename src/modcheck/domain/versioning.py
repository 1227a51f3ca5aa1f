"""Semantic version parsing and npm-style range checks.

The catalog expresses platform compatibility as node-semver ranges such as
``~3.11.0``, ``^3.9``, ``>=3.10.0 <3.12.0`` or ``3.9.x || 3.10.x``. Local and
catalog versions are strict ``MAJOR.MINOR.PATCH[-PRERELEASE][+BUILD]`` strings;
build metadata never affects ordering.
"""

from __future__ import annotations

import re
from typing import Final

from semantic_version import NpmSpec, Version

_OPERATOR_GAP: Final = re.compile(r"(<=|>=|<|>|=|~>|~|\^)\s+")
_RUBY_TILDE: Final = re.compile(r"~>")
_LOWEST: Final = Version("0.0.0")


class InvalidConstraintError(ValueError):
    """Raised when a version range cannot be parsed."""


def parse_version(text: str | None) -> Version | None:
    """Parse ``text`` as a semantic version, returning ``None`` when it is not one.

    ``1.0`` and four-part assembly versions such as ``1.2.3.4`` are rejected.
    """

    if text is None or not text.strip():
        return None
    try:
        version = Version(text.strip())
    except ValueError:
        return None
    return version.truncate("prerelease")


def version_sort_key(text: str) -> Version:
    """Sort key that orders unparsable versions below every real one."""

    return parse_version(text) or _LOWEST


def parse_range(constraint: str) -> NpmSpec:
    if not constraint.strip():
        raise InvalidConstraintError("Empty version constraint")
    compact = _OPERATOR_GAP.sub(r"\1", _RUBY_TILDE.sub("~", constraint))
    alternatives = [" ".join(part.split()) for part in compact.split("||")]
    try:
        return NpmSpec(" || ".join(alternatives))
    except ValueError as exc:
        raise InvalidConstraintError(f"Invalid version constraint: {constraint!r}") from exc


def satisfies(constraint: str, version: str | Version) -> bool:
    """Return whether ``version`` falls inside ``constraint``.

    Raises :class:`InvalidConstraintError` for malformed ranges and for versions
    that cannot be parsed.
    """

    parsed = version if isinstance(version, Version) else parse_version(version)
    if parsed is None:
        raise InvalidConstraintError(f"Invalid version: {version!r}")
    return parse_range(constraint).match(parsed)


def safe_satisfies(constraint: str | None, version: str | Version) -> bool:
    """Like :func:`satisfies`, but blank or malformed constraints never match."""

    if constraint is None or not constraint.strip():
        return False
    try:
        return satisfies(constraint, version)
    except InvalidConstraintError:
        return False
