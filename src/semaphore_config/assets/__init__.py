"""Assets bundled into the distribution at build time.

A deployment may ship a ready-made ``config.json`` alongside this module; the
resolver falls back to it when no explicit configuration path is given.
"""
from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from importlib import resources
from typing import Protocol

CONFIG_ASSET = "config.json"


class AssetNotFoundError(RuntimeError):
    """Raised when a named asset is not bundled."""


class AssetSource(Protocol):
    """Opaque byte source keyed by asset name."""

    def read(self, name: str) -> bytes:
        """Return the raw bytes of *name* or raise :class:`AssetNotFoundError`."""
        ...


@dataclass(frozen=True)
class PackagedAssets:
    """Read assets shipped inside an importable package."""

    package: str = __name__

    def read(self, name: str) -> bytes:
        """Return the packaged asset *name*."""
        resource = resources.files(self.package).joinpath(name)
        try:
            return resource.read_bytes()
        except (FileNotFoundError, IsADirectoryError) as exc:
            raise AssetNotFoundError(f"Asset {name!r} is not bundled with {self.package}.") from exc


@dataclass(frozen=True)
class MappingAssets:
    """In-memory assets, used when embedding the server programmatically."""

    entries: Mapping[str, bytes] = field(default_factory=dict)

    def read(self, name: str) -> bytes:
        """Return the in-memory asset *name*."""
        try:
            return self.entries[name]
        except KeyError as exc:
            raise AssetNotFoundError(f"Asset {name!r} is not available.") from exc


__all__ = [
    "AssetNotFoundError",
    "AssetSource",
    "CONFIG_ASSET",
    "MappingAssets",
    "PackagedAssets",
]
