"""Configuration document model tests."""
from __future__ import annotations

import json

import pytest

from semaphore_config.cookies import decode_secret
from semaphore_config.document import (
    DEFAULT_PORT,
    DEFAULT_TMP_PATH,
    ConfigDocument,
    ConfigError,
    LdapMappings,
    MySQLConfig,
    example_document,
    unknown_keys,
)


def test_from_mapping_keeps_zero_values_for_absent_keys() -> None:
    """An empty mapping yields an all-empty document."""
    document = ConfigDocument.from_mapping({})

    assert document == ConfigDocument()
    assert document.port == ""
    assert document.max_parallel_tasks == 0
    assert document.ldap_mappings == LdapMappings()


def test_from_mapping_reads_nested_sections() -> None:
    """Nested mysql and ldap_mappings sections use their on-disk keys."""
    document = ConfigDocument.from_mapping(
        {
            "mysql": {"host": "db:3306", "user": "sem", "pass": "pw", "name": "prod"},
            "ldap_mappings": {"dn": "dn", "mail": "email", "uid": "uid", "cn": "cn"},
            "telegram_alert": True,
            "max_parallel_tasks": 5,
        }
    )

    assert document.mysql == MySQLConfig(host="db:3306", user="sem", password="pw", name="prod")
    assert document.ldap_mappings.mail == "email"
    assert document.telegram_alert is True
    assert document.max_parallel_tasks == 5


def test_null_values_are_zero_values() -> None:
    """JSON null behaves like an absent key."""
    document = ConfigDocument.from_mapping({"port": None, "email_alert": None, "mysql": None})

    assert document.port == ""
    assert document.email_alert is False
    assert document.mysql == MySQLConfig()


@pytest.mark.parametrize(
    ("payload", "label"),
    [
        ({"port": 3000}, "port"),
        ({"ldap_enable": "true"}, "ldap_enable"),
        ({"max_parallel_tasks": "10"}, "max_parallel_tasks"),
        ({"max_parallel_tasks": True}, "max_parallel_tasks"),
        ({"mysql": "db:3306"}, "mysql"),
        ({"mysql": {"pass": 1234}}, "mysql.pass"),
    ],
)
def test_wrong_types_are_rejected(payload: dict[str, object], label: str) -> None:
    """Values of the wrong type raise ConfigError naming the field."""
    with pytest.raises(ConfigError, match=label):
        ConfigDocument.from_mapping(payload)


def test_unknown_keys_lists_dotted_names() -> None:
    """Unknown top-level and nested keys are reported in sorted order."""
    data = {
        "port": ":3000",
        "sqlite": {},
        "mysql": {"host": "db", "charset": "utf8"},
        "ldap_mappings": {"dn": "dn", "photo": "jpegPhoto"},
        "bolt": {"file": "x"},
    }

    assert unknown_keys(data) == ("bolt", "ldap_mappings.photo", "mysql.charset", "sqlite")
    assert unknown_keys({"port": ":3000"}) == ()


def test_to_json_uses_tabs_and_on_disk_keys() -> None:
    """The serialised document is tab indented and uses ``pass`` for the password."""
    document = ConfigDocument(mysql=MySQLConfig(password="pw"), port=":3000")

    text = document.to_json()

    assert '\n\t"port": ":3000",' in text
    assert '\n\t\t"pass": "pw",' in text
    assert ConfigDocument.from_mapping(json.loads(text)) == document


def test_with_cookie_secrets_stores_base64() -> None:
    """Raw keys are stored as standard base64 text."""
    document = ConfigDocument().with_cookie_secrets(b"\x00" * 32, b"\xff" * 32)

    assert document.cookie_hash == "A" * 43 + "="
    assert decode_secret(document.cookie_encryption) == b"\xff" * 32


def test_example_document_contents() -> None:
    """The example carries defaults and fresh 32-byte cookie secrets."""
    first = example_document()
    second = example_document()

    assert first.mysql == MySQLConfig(host="127.0.0.1:3306", user="root", name="semaphore")
    assert first.port == DEFAULT_PORT
    assert first.tmp_path == DEFAULT_TMP_PATH
    assert len(decode_secret(first.cookie_hash)) == 32
    assert len(decode_secret(first.cookie_encryption)) == 32
    assert first.cookie_hash != second.cookie_hash
    assert first.email_alert is False
    assert first.max_parallel_tasks == 0
