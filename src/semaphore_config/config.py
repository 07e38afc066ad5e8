"""Configuration resolver for the Semaphore server.

This module centralises the logic for producing the process-wide runtime
configuration from its sources, in order:

1. An explicit configuration file (``-config`` or ``SEMAPHORE_CONFIG_FILE``),
   otherwise the ``config.json`` asset bundled with the distribution.
2. Environment variables prefixed with ``SEMAPHORE_``.
3. The ``PORT`` environment variable.
4. Built-in defaults for the port, work directory and task concurrency.

Environment keys use double underscores to express nesting, e.g.::

    export SEMAPHORE_MYSQL__HOST=db:3306
    export SEMAPHORE_EMAIL_ALERT=true

Values for boolean and integer fields are coerced via PyYAML's ``safe_load``;
string fields keep the raw text. The resolver never terminates the process:
failures surface as :class:`ConfigError` (unrecoverable startup error) or
:class:`SetupRequiredError` and the CLI decides how to exit.
"""
from __future__ import annotations

import json
import logging
import os
from collections.abc import Mapping, MutableMapping
from dataclasses import dataclass, replace
from pathlib import Path
from typing import cast
from urllib.parse import SplitResult, urlsplit

import yaml

from .assets import CONFIG_ASSET, AssetNotFoundError, AssetSource, PackagedAssets
from .cookies import CookieCodec, build_cookie_codec, decode_secret
from .document import (
    DEFAULT_MAX_PARALLEL_TASKS,
    DEFAULT_PORT,
    DEFAULT_TMP_PATH,
    FIELD_TYPES,
    ConfigDocument,
    ConfigError,
    unknown_keys,
)

LOGGER = logging.getLogger(__name__)

ENV_PREFIX = "SEMAPHORE_"
CONFIG_ENV_VAR = f"{ENV_PREFIX}CONFIG_FILE"
LOG_DIR_ENV_VAR = f"{ENV_PREFIX}LOG_DIR"
PORT_ENV_VAR = "PORT"
RESERVED_ENV_KEYS = {CONFIG_ENV_VAR, LOG_DIR_ENV_VAR}
YAML_SUFFIXES = {".yml", ".yaml"}
REDACTED = "********"
SECRET_FIELDS = (
    ("mysql", "pass"),
    ("cookie_hash",),
    ("cookie_encryption",),
    ("ldap_bindpassword",),
    ("telegram_token",),
)

SETUP_HINT = (
    "Cannot Find configuration! Use -config parameter to point to a JSON file "
    "generated by -setup.\n\n Hint: have you run `-setup` ?"
)


class SetupRequiredError(ConfigError):
    """Raised when no configuration path is given and none is bundled."""


@dataclass(frozen=True)
class ResolvedConfig:
    """Resolved configuration plus the values derived from it."""

    document: ConfigDocument
    cookie: CookieCodec
    web_host_url: SplitResult | None
    source: str
    ignored_keys: tuple[str, ...] = ()

    def redacted(self) -> dict[str, object]:
        """Return the document mapping with secret values masked."""
        data = self.document.to_dict()
        for path in SECRET_FIELDS:
            parent: dict[str, object] = data
            for segment in path[:-1]:
                parent = cast(dict[str, object], parent[segment])
            if parent.get(path[-1]):
                parent[path[-1]] = REDACTED
        return data


def resolve_config(
    config_file: str | os.PathLike[str] | None = None,
    *,
    env: Mapping[str, str] | None = None,
    assets: AssetSource | None = None,
) -> ResolvedConfig:
    """Load, override and default the configuration document."""
    resolved_env = dict(os.environ if env is None else env)
    config_path = _determine_config_path(config_file, resolved_env)

    if config_path is not None:
        raw = _load_config_file(config_path)
        source = str(config_path)
    else:
        raw = _load_embedded_config(assets if assets is not None else PackagedAssets())
        source = f"embedded:{CONFIG_ASSET}"

    ignored = list(unknown_keys(raw))
    env_values, ignored_env = _build_env_overrides(resolved_env)
    if env_values:
        _deep_merge(raw, env_values)
    ignored.extend(f"env:{key}" for key in ignored_env)

    document = ConfigDocument.from_mapping(raw)
    document = apply_port_override(document, resolved_env)
    document = apply_defaults(document)

    encryption = decode_secret(document.cookie_encryption)
    cookie = build_cookie_codec(decode_secret(document.cookie_hash), encryption or None)
    web_host_url = parse_web_host(document.web_host)

    if ignored:
        LOGGER.debug("Ignoring unknown configuration keys: %s", ", ".join(ignored))
    LOGGER.debug("Resolved configuration from %s", source)

    return ResolvedConfig(
        document=document,
        cookie=cookie,
        web_host_url=web_host_url,
        source=source,
        ignored_keys=tuple(ignored),
    )


def apply_port_override(document: ConfigDocument, env: Mapping[str, str]) -> ConfigDocument:
    """Replace the port with ``:$PORT`` when the variable is set."""
    value = env.get(PORT_ENV_VAR, "")
    if not value:
        return document
    return replace(document, port=":" + value.lstrip(":"))


def apply_defaults(document: ConfigDocument) -> ConfigDocument:
    """Fill in the port, work directory and parallel task defaults."""
    port = document.port
    if not port:
        port = DEFAULT_PORT
    elif not port.startswith(":"):
        port = ":" + port

    tmp_path = document.tmp_path or DEFAULT_TMP_PATH

    max_parallel_tasks = document.max_parallel_tasks
    if max_parallel_tasks < 1:
        max_parallel_tasks = DEFAULT_MAX_PARALLEL_TASKS

    return replace(
        document,
        port=port,
        tmp_path=tmp_path,
        max_parallel_tasks=max_parallel_tasks,
    )


def parse_web_host(value: str) -> SplitResult | None:
    """Return the parsed web root URL, or ``None`` when nothing is configured."""
    try:
        parsed = urlsplit(value)
    except ValueError as exc:
        raise ConfigError(f"Invalid web_host URL {value!r}: {exc}") from exc
    if not parsed.geturl():
        return None
    return parsed


def _determine_config_path(
    cli_override: str | os.PathLike[str] | None,
    env: Mapping[str, str],
) -> Path | None:
    if cli_override:
        return Path(cli_override)
    if env.get(CONFIG_ENV_VAR):
        return Path(env[CONFIG_ENV_VAR])
    return None


def _load_config_file(path: Path) -> dict[str, object]:
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise ConfigError(f"Cannot open config file {path}: {exc}") from exc
    return _parse_document_text(text, str(path), yaml_format=path.suffix.lower() in YAML_SUFFIXES)


def _load_embedded_config(assets: AssetSource) -> dict[str, object]:
    try:
        payload = assets.read(CONFIG_ASSET)
    except AssetNotFoundError as exc:
        raise SetupRequiredError(SETUP_HINT) from exc
    try:
        text = payload.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise ConfigError(f"Could not decode embedded {CONFIG_ASSET}: {exc}") from exc
    return _parse_document_text(text, f"embedded {CONFIG_ASSET}", yaml_format=False)


def _parse_document_text(text: str, label: str, *, yaml_format: bool) -> dict[str, object]:
    try:
        data = yaml.safe_load(text) if yaml_format else json.loads(text)
    except (json.JSONDecodeError, yaml.YAMLError) as exc:
        raise ConfigError(f"Could not decode configuration {label}: {exc}") from exc
    if not isinstance(data, Mapping):
        raise ConfigError(f"Configuration {label} must contain a mapping at the top level.")
    return {str(key): value for key, value in data.items()}


def _build_env_overrides(env: Mapping[str, str]) -> tuple[dict[str, object], list[str]]:
    overrides: dict[str, object] = {}
    ignored: list[str] = []
    for key, value in sorted(env.items()):
        if key in RESERVED_ENV_KEYS:
            continue
        if not key.startswith(ENV_PREFIX):
            continue
        suffix = key[len(ENV_PREFIX) :]
        path_segments = [segment.lower() for segment in suffix.split("__") if segment]
        field_type = _lookup_field_type(path_segments)
        if field_type is None:
            ignored.append(key)
            continue
        _assign_nested(overrides, path_segments, _coerce_value(value, field_type))
    return overrides, ignored


def _lookup_field_type(path: list[str]) -> type | None:
    if not path or len(path) > 2:
        return None
    expected = FIELD_TYPES.get(path[0])
    if isinstance(expected, dict):
        return expected.get(path[1]) if len(path) == 2 else None
    if expected is None or len(path) != 1:
        return None
    return expected


def _assign_nested(tree: MutableMapping[str, object], path: list[str], value: object) -> None:
    current: MutableMapping[str, object] = tree
    for segment in path[:-1]:
        existing = current.get(segment)
        if existing is None:
            new_child: MutableMapping[str, object] = {}
            current[segment] = new_child
            current = new_child
            continue
        current = cast(MutableMapping[str, object], existing)
    current[path[-1]] = value


def _deep_merge(target: MutableMapping[str, object], overrides: Mapping[str, object]) -> None:
    for key, value in overrides.items():
        existing = target.get(key)
        if isinstance(existing, MutableMapping) and isinstance(value, Mapping):
            _deep_merge(existing, value)
            continue
        target[key] = value


def _coerce_value(raw: str, field_type: type) -> object:
    if field_type is str:
        return raw
    raw = raw.strip()
    try:
        parsed = yaml.safe_load(raw)
    except yaml.YAMLError:  # pragma: no cover - treat as string if parsing fails
        return raw
    return parsed


__all__ = [
    "CONFIG_ENV_VAR",
    "ConfigError",
    "ENV_PREFIX",
    "LOG_DIR_ENV_VAR",
    "ResolvedConfig",
    "SETUP_HINT",
    "SetupRequiredError",
    "apply_defaults",
    "apply_port_override",
    "parse_web_host",
    "resolve_config",
]
