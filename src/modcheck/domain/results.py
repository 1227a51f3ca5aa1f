"""Tagged outcomes returned by catalog operations.

Every catalog call returns either its payload or one of these values; none of
them are raised. Callers branch with ``isinstance`` and degrade a single
package or edge to "no data" instead of aborting the run.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(slots=True, frozen=True)
class NotFound:
    """The catalog has no entry for the request."""


@dataclass(slots=True, frozen=True)
class NoCompatibleVersion:
    """An entry exists but none of its versions supports the platform version."""


@dataclass(slots=True, frozen=True)
class RateLimited:
    """The catalog kept answering 429 until retries ran out."""


@dataclass(slots=True, frozen=True)
class InvalidInput:
    parameter_name: str
    message: str


@dataclass(slots=True, frozen=True)
class InvalidApiKey:
    """The key was rejected; ``should_delete_key`` marks a definitive rejection."""

    should_delete_key: bool


@dataclass(slots=True, frozen=True)
class InvalidPlatformVersion:
    """The catalog does not know the installed platform version."""


@dataclass(slots=True, frozen=True)
class ApiError:
    message: str
    status_code: int | None = None
    cause: BaseException | None = None
