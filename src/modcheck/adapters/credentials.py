"""Forge API key storage and the validate-or-prompt loop."""

from __future__ import annotations

import re
from logging import getLogger
from typing import TYPE_CHECKING

from modcheck.common.storage import ensure_dir, get_api_key_path
from modcheck.domain.results import ApiError, InvalidApiKey

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable
    from pathlib import Path

log = getLogger(__name__)

_CONTROL_CHARACTERS = re.compile(r"[\x00-\x1f\x7f]")

type KeyValidator = Callable[[str], Awaitable[bool | InvalidApiKey | ApiError]]
type KeyPrompt = Callable[[], str | None]
type KeyRejected = Callable[[str], None]


def sanitize_input(value: str | None) -> str:
    """Trim ``value`` and drop ASCII control characters."""

    if not value:
        return ""
    return _CONTROL_CHARACTERS.sub("", value.strip())


class ApiKeyStore:
    """Plain-text API key file in the user config directory."""

    def __init__(self, path: Path | None = None) -> None:
        self.path = path or get_api_key_path()

    def load(self) -> str | None:
        if not self.path.is_file():
            return None
        key = sanitize_input(self.path.read_text(encoding="utf-8"))
        return key or None

    def save(self, api_key: str) -> None:
        ensure_dir(self.path.parent)
        self.path.write_text(api_key, encoding="utf-8")
        log.info("API key saved to %s", self.path)

    def delete(self) -> None:
        self.path.unlink(missing_ok=True)


async def resolve_api_key(
    store: ApiKeyStore,
    validate: KeyValidator,
    prompt: KeyPrompt,
    *,
    on_rejected: KeyRejected | None = None,
) -> str | None:
    """Return a usable API key, or ``None`` when the prompt gives up.

    A saved key is kept on transient validation errors. A definitive
    rejection deletes it. Prompted keys are retried until one validates, and
    the accepted key is saved.
    """

    saved = store.load()
    if saved is not None:
        result = await validate(saved)
        if result is True:
            log.debug("Saved API key is valid")
            return saved
        if isinstance(result, ApiError):
            log.warning("Could not validate API key (%s), using saved key", result.message)
            return saved
        if isinstance(result, InvalidApiKey) and result.should_delete_key:
            log.warning("Saved API key is invalid or expired, deleting it")
            store.delete()

    while True:
        entered = prompt()
        if entered is None:
            return None
        candidate = sanitize_input(entered)
        if not candidate:
            continue
        result = await validate(candidate)
        if result is True:
            store.save(candidate)
            return candidate
        log.debug("Entered API key rejected: %s", result)
        if on_rejected is not None:
            on_rejected(candidate)
