"""Startup mode selection for the Semaphore server process."""
from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum

from .assets import AssetSource
from .config import ResolvedConfig, resolve_config


class ModeConflictError(RuntimeError):
    """Raised when more than one exclusive startup mode is requested."""


class StartupMode(str, Enum):
    """Operating modes selected from command-line flags."""

    SERVE = "serve"
    SETUP = "setup"
    MIGRATE = "migrate"
    UPGRADE = "upgrade"
    PRINT_CONFIG = "print-config"
    HASH_PASSWORD = "hash-password"

    @property
    def is_utility(self) -> bool:
        """Return ``True`` for modes that print a result and exit immediately."""
        return self in (StartupMode.PRINT_CONFIG, StartupMode.HASH_PASSWORD)

    @property
    def resolves_config(self) -> bool:
        """Return ``True`` for modes that continue into configuration resolution."""
        return self in (StartupMode.SERVE, StartupMode.MIGRATE, StartupMode.UPGRADE)


@dataclass(frozen=True)
class StartupOptions:
    """Parsed command-line flags."""

    mode: StartupMode = StartupMode.SERVE
    config_path: str | None = None
    password: str | None = None

    @property
    def setup(self) -> bool:
        """Interactive setup was requested."""
        return self.mode is StartupMode.SETUP

    @property
    def migrate(self) -> bool:
        """Database migration was requested."""
        return self.mode is StartupMode.MIGRATE

    @property
    def upgrade(self) -> bool:
        """Self-upgrade was requested."""
        return self.mode is StartupMode.UPGRADE


@dataclass(frozen=True)
class Runtime:
    """Everything the server needs once startup resolution has finished."""

    options: StartupOptions
    config: ResolvedConfig


def select_mode(
    *,
    setup: bool = False,
    migrate: bool = False,
    upgrade: bool = False,
    print_config: bool = False,
    password: str | None = None,
    config_path: str | None = None,
) -> StartupOptions:
    """Return :class:`StartupOptions` for the given flags.

    At most one of the exclusive modes may be selected; an empty ``-hash``
    value does not count as a request.
    """
    requested = [
        mode
        for mode, enabled in (
            (StartupMode.PRINT_CONFIG, print_config),
            (StartupMode.HASH_PASSWORD, bool(password)),
            (StartupMode.SETUP, setup),
            (StartupMode.MIGRATE, migrate),
            (StartupMode.UPGRADE, upgrade),
        )
        if enabled
    ]
    if len(requested) > 1:
        names = ", ".join(mode.value for mode in requested)
        raise ModeConflictError(f"Startup modes are mutually exclusive; got: {names}.")
    mode = requested[0] if requested else StartupMode.SERVE
    return StartupOptions(
        mode=mode,
        config_path=config_path or None,
        password=password if mode is StartupMode.HASH_PASSWORD else None,
    )


def bootstrap(
    options: StartupOptions,
    *,
    env: Mapping[str, str] | None = None,
    assets: AssetSource | None = None,
) -> Runtime:
    """Resolve the configuration for a server-bound mode."""
    if not options.mode.resolves_config:
        raise ModeConflictError(
            f"Mode '{options.mode.value}' does not continue into server startup."
        )
    config = resolve_config(
        options.config_path,
        env=os.environ if env is None else env,
        assets=assets,
    )
    return Runtime(options=options, config=config)


__all__ = [
    "ModeConflictError",
    "Runtime",
    "StartupMode",
    "StartupOptions",
    "bootstrap",
    "select_mode",
]
