"""Configuration document model for the Semaphore server.

The document is the human-editable JSON file produced by ``-setup`` or
``-printConfig``. Field names follow the on-disk keys, e.g.::

    {
        "mysql": {"host": "127.0.0.1:3306", "user": "root", "pass": "", "name": "semaphore"},
        "port": ":3000",
        "tmp_path": "/tmp/semaphore",
        "cookie_hash": "...",
        ...
    }

Parsing is deliberately shallow: absent keys keep their zero value (empty
string, ``False`` or ``0``) and defaults are applied later by the resolver or
the setup wizard. Values of the wrong type raise :class:`ConfigError`.
"""
from __future__ import annotations

import json
import os
import tempfile
from collections.abc import Mapping
from dataclasses import dataclass, field, replace

from .cookies import encode_secret, generate_cookie_secrets


DEFAULT_PORT = ":3000"
DEFAULT_TMP_PATH = (
    "/tmp/semaphore" if os.name == "posix" else os.path.join(tempfile.gettempdir(), "semaphore")
)
DEFAULT_MAX_PARALLEL_TASKS = 10


class ConfigError(RuntimeError):
    """Raised when configuration parsing fails."""


@dataclass(frozen=True)
class MySQLConfig:
    """Database connection settings."""

    host: str = ""
    user: str = ""
    password: str = ""
    name: str = ""

    def to_dict(self) -> dict[str, object]:
        """Return a serialisable representation."""
        return {
            "host": self.host,
            "user": self.user,
            "pass": self.password,
            "name": self.name,
        }


@dataclass(frozen=True)
class LdapMappings:
    """LDAP attribute names mapped onto user fields."""

    dn: str = ""
    mail: str = ""
    uid: str = ""
    cn: str = ""

    def to_dict(self) -> dict[str, object]:
        """Return a serialisable representation."""
        return {"dn": self.dn, "mail": self.mail, "uid": self.uid, "cn": self.cn}


@dataclass(frozen=True)
class ConfigDocument:
    """Every setting the server reads at startup."""

    mysql: MySQLConfig = field(default_factory=MySQLConfig)
    # Format ``:port_num``, e.g. ``:3000``
    port: str = ""
    # projects are checked out here
    tmp_path: str = ""

    cookie_hash: str = ""
    cookie_encryption: str = ""

    email_alert: bool = False
    email_sender: str = ""
    email_host: str = ""
    email_port: str = ""

    web_host: str = ""

    ldap_enable: bool = False
    ldap_binddn: str = ""
    ldap_bindpassword: str = ""
    ldap_server: str = ""
    ldap_needtls: bool = False
    ldap_searchdn: str = ""
    ldap_searchfilter: str = ""
    ldap_mappings: LdapMappings = field(default_factory=LdapMappings)

    telegram_alert: bool = False
    telegram_chat: str = ""
    telegram_token: str = ""

    concurrency_mode: str = ""
    max_parallel_tasks: int = 0

    def to_dict(self) -> dict[str, object]:
        """Return a JSON-serialisable representation using the on-disk keys."""
        return {
            "mysql": self.mysql.to_dict(),
            "port": self.port,
            "tmp_path": self.tmp_path,
            "cookie_hash": self.cookie_hash,
            "cookie_encryption": self.cookie_encryption,
            "email_alert": self.email_alert,
            "email_sender": self.email_sender,
            "email_host": self.email_host,
            "email_port": self.email_port,
            "web_host": self.web_host,
            "ldap_enable": self.ldap_enable,
            "ldap_binddn": self.ldap_binddn,
            "ldap_bindpassword": self.ldap_bindpassword,
            "ldap_server": self.ldap_server,
            "ldap_needtls": self.ldap_needtls,
            "ldap_searchdn": self.ldap_searchdn,
            "ldap_searchfilter": self.ldap_searchfilter,
            "ldap_mappings": self.ldap_mappings.to_dict(),
            "telegram_alert": self.telegram_alert,
            "telegram_chat": self.telegram_chat,
            "telegram_token": self.telegram_token,
            "concurrency_mode": self.concurrency_mode,
            "max_parallel_tasks": self.max_parallel_tasks,
        }

    def to_json(self) -> str:
        """Return the tab-indented JSON text written to ``config.json``."""
        return json.dumps(self.to_dict(), indent="\t")

    def with_cookie_secrets(self, hash_key: bytes, encryption_key: bytes) -> ConfigDocument:
        """Return a copy carrying the given raw cookie keys in base64 form."""
        return replace(
            self,
            cookie_hash=encode_secret(hash_key),
            cookie_encryption=encode_secret(encryption_key),
        )

    @classmethod
    def from_mapping(cls, data: Mapping[str, object]) -> ConfigDocument:
        """Build a document from decoded JSON/YAML data."""
        raw = _as_dict(data, "configuration")
        mysql_map = _as_dict(raw.get("mysql"), "mysql")
        mappings_map = _as_dict(raw.get("ldap_mappings"), "ldap_mappings")
        return cls(
            mysql=MySQLConfig(
                host=_expect_str(mysql_map.get("host"), "mysql.host"),
                user=_expect_str(mysql_map.get("user"), "mysql.user"),
                password=_expect_str(mysql_map.get("pass"), "mysql.pass"),
                name=_expect_str(mysql_map.get("name"), "mysql.name"),
            ),
            port=_expect_str(raw.get("port"), "port"),
            tmp_path=_expect_str(raw.get("tmp_path"), "tmp_path"),
            cookie_hash=_expect_str(raw.get("cookie_hash"), "cookie_hash"),
            cookie_encryption=_expect_str(raw.get("cookie_encryption"), "cookie_encryption"),
            email_alert=_expect_bool(raw.get("email_alert"), "email_alert"),
            email_sender=_expect_str(raw.get("email_sender"), "email_sender"),
            email_host=_expect_str(raw.get("email_host"), "email_host"),
            email_port=_expect_str(raw.get("email_port"), "email_port"),
            web_host=_expect_str(raw.get("web_host"), "web_host"),
            ldap_enable=_expect_bool(raw.get("ldap_enable"), "ldap_enable"),
            ldap_binddn=_expect_str(raw.get("ldap_binddn"), "ldap_binddn"),
            ldap_bindpassword=_expect_str(raw.get("ldap_bindpassword"), "ldap_bindpassword"),
            ldap_server=_expect_str(raw.get("ldap_server"), "ldap_server"),
            ldap_needtls=_expect_bool(raw.get("ldap_needtls"), "ldap_needtls"),
            ldap_searchdn=_expect_str(raw.get("ldap_searchdn"), "ldap_searchdn"),
            ldap_searchfilter=_expect_str(raw.get("ldap_searchfilter"), "ldap_searchfilter"),
            ldap_mappings=LdapMappings(
                dn=_expect_str(mappings_map.get("dn"), "ldap_mappings.dn"),
                mail=_expect_str(mappings_map.get("mail"), "ldap_mappings.mail"),
                uid=_expect_str(mappings_map.get("uid"), "ldap_mappings.uid"),
                cn=_expect_str(mappings_map.get("cn"), "ldap_mappings.cn"),
            ),
            telegram_alert=_expect_bool(raw.get("telegram_alert"), "telegram_alert"),
            telegram_chat=_expect_str(raw.get("telegram_chat"), "telegram_chat"),
            telegram_token=_expect_str(raw.get("telegram_token"), "telegram_token"),
            concurrency_mode=_expect_str(raw.get("concurrency_mode"), "concurrency_mode"),
            max_parallel_tasks=_expect_int(raw.get("max_parallel_tasks"), "max_parallel_tasks"),
        )


# Value types keyed by on-disk name; nested sections map to their own tables.
MYSQL_FIELD_TYPES: dict[str, type] = {"host": str, "user": str, "pass": str, "name": str}
LDAP_MAPPING_FIELD_TYPES: dict[str, type] = {"dn": str, "mail": str, "uid": str, "cn": str}
FIELD_TYPES: dict[str, type | dict[str, type]] = {
    "mysql": MYSQL_FIELD_TYPES,
    "port": str,
    "tmp_path": str,
    "cookie_hash": str,
    "cookie_encryption": str,
    "email_alert": bool,
    "email_sender": str,
    "email_host": str,
    "email_port": str,
    "web_host": str,
    "ldap_enable": bool,
    "ldap_binddn": str,
    "ldap_bindpassword": str,
    "ldap_server": str,
    "ldap_needtls": bool,
    "ldap_searchdn": str,
    "ldap_searchfilter": str,
    "ldap_mappings": LDAP_MAPPING_FIELD_TYPES,
    "telegram_alert": bool,
    "telegram_chat": str,
    "telegram_token": str,
    "concurrency_mode": str,
    "max_parallel_tasks": int,
}


def unknown_keys(data: Mapping[str, object]) -> tuple[str, ...]:
    """Return dotted names of keys in *data* that the document does not define."""
    found: list[str] = []
    for key, value in data.items():
        expected = FIELD_TYPES.get(key)
        if expected is None:
            found.append(str(key))
        elif isinstance(expected, dict) and isinstance(value, Mapping):
            found.extend(f"{key}.{child}" for child in value if child not in expected)
    return tuple(sorted(found))


def example_document() -> ConfigDocument:
    """Return the sample document printed by ``-printConfig``."""
    document = ConfigDocument(
        mysql=MySQLConfig(host="127.0.0.1:3306", user="root", name="semaphore"),
        port=DEFAULT_PORT,
        tmp_path=DEFAULT_TMP_PATH,
    )
    return document.with_cookie_secrets(*generate_cookie_secrets())


def _as_dict(value: object | None, label: str) -> dict[str, object]:
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise ConfigError(f"Expected {label} to be a mapping. Got {type(value).__name__}.")
    result: dict[str, object] = {}
    for key, item in value.items():
        if not isinstance(key, str):
            raise ConfigError(f"Mapping {label} must use string keys. Got {key!r}.")
        result[key] = item
    return result


def _expect_str(value: object | None, label: str) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    raise ConfigError(f"Expected {label} to be a string. Got {type(value).__name__}.")


def _expect_bool(value: object | None, label: str) -> bool:
    if value is None:
        return False
    if isinstance(value, bool):
        return value
    raise ConfigError(f"Expected {label} to be a boolean. Got {type(value).__name__}.")


def _expect_int(value: object | None, label: str) -> int:
    if value is None:
        return 0
    if isinstance(value, bool):
        raise ConfigError(f"Expected {label} to be an integer. Got boolean {value!r}.")
    if isinstance(value, int):
        return value
    raise ConfigError(f"Expected {label} to be an integer. Got {type(value).__name__}.")


__all__ = [
    "ConfigDocument",
    "ConfigError",
    "DEFAULT_MAX_PARALLEL_TASKS",
    "DEFAULT_PORT",
    "DEFAULT_TMP_PATH",
    "FIELD_TYPES",
    "LdapMappings",
    "MySQLConfig",
    "example_document",
    "unknown_keys",
]
