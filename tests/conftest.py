from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

if TYPE_CHECKING:
    from pathlib import Path


@pytest.fixture(autouse=True)
def isolated_user_dirs(monkeypatch: pytest.MonkeyPatch, tmp_path_factory: pytest.TempPathFactory) -> Path:
    """Keep API keys and HTTP caches written by tests out of the real user profile."""

    base = tmp_path_factory.mktemp("user-dirs")
    monkeypatch.setenv("MODCHECK_CONFIG_DIR", str(base / "config"))
    monkeypatch.setenv("MODCHECK_DATA_DIR", str(base / "data"))
    monkeypatch.delenv("FORGE_API_KEY", raising=False)
    return base
