"""Forge catalog adapter."""

from __future__ import annotations

from .client import ForgeClient

__all__ = ["ForgeClient"]
