"""Setup wizard tests driven by scripted input."""
from __future__ import annotations

import io
import json
from pathlib import Path

from rich.console import Console

from semaphore_config.document import DEFAULT_TMP_PATH, ConfigDocument, LdapMappings, MySQLConfig
from semaphore_config.wizard import (
    PromptSession,
    PromptSpec,
    clean_path,
    run_setup,
    save_document,
)


def _session(*lines: str) -> tuple[PromptSession, io.StringIO]:
    output = io.StringIO()
    stdin = io.StringIO("".join(f"{line}\n" for line in lines))
    console = Console(file=output, width=200, color_system=None)
    return PromptSession(stdin=stdin, console=console), output


def test_empty_input_yields_documented_defaults() -> None:
    """End of input on every prompt produces the default document."""
    session, _ = _session()

    document = run_setup(session)

    assert document == ConfigDocument(
        mysql=MySQLConfig(host="127.0.0.1:3306", user="root", password="", name="semaphore"),
        tmp_path=DEFAULT_TMP_PATH,
    )


def test_blank_lines_yield_documented_defaults() -> None:
    """Blank answers behave exactly like end of input."""
    session, _ = _session(*([""] * 9))

    document = run_setup(session)

    assert document.mysql.host == "127.0.0.1:3306"
    assert document.mysql.name == "semaphore"
    assert document.web_host == ""
    assert document.email_alert is False
    assert document.telegram_alert is False
    assert document.ldap_enable is False
    assert document.ldap_mappings == LdapMappings()


def test_enabled_sections_apply_their_defaults() -> None:
    """Each enabled section fills its own defaults."""
    session, _ = _session(
        "", "", "", "", "", "",  # database, tmp path, web root
        "y", "", "", "",  # email
        "yes", "", "",  # telegram
        "y", "", "y", "", "", "", "", "", "", "", "",  # ldap
    )

    document = run_setup(session)

    assert document.email_alert is True
    assert document.email_host == "localhost"
    assert document.email_port == "25"
    assert document.email_sender == "semaphore@localhost"
    assert document.telegram_alert is True
    assert document.telegram_token == ""
    assert document.telegram_chat == ""
    assert document.ldap_enable is True
    assert document.ldap_server == "localhost:389"
    assert document.ldap_needtls is True
    assert document.ldap_binddn == "cn=user,ou=users,dc=example"
    assert document.ldap_bindpassword == "pa55w0rd"
    assert document.ldap_searchdn == "ou=users,dc=example"
    assert document.ldap_searchfilter == "(uid=%s)"
    assert document.ldap_mappings == LdapMappings(dn="dn", mail="mail", uid="uid", cn="cn")


def test_answers_are_used_verbatim() -> None:
    """Non-empty answers replace the defaults."""
    session, _ = _session(
        "db.internal:3306",
        "semaphore",
        "s3cret",
        "automation",
        "/srv/semaphore",
        "https://ci.example.com/",
        "y",
        "smtp.example.com",
        "587",
        "ci@example.com",
        "n",
        "n",
    )

    document = run_setup(session)

    assert document.mysql == MySQLConfig(
        host="db.internal:3306",
        user="semaphore",
        password="s3cret",
        name="automation",
    )
    assert document.tmp_path == "/srv/semaphore"
    assert document.web_host == "https://ci.example.com/"
    assert document.email_host == "smtp.example.com"
    assert document.email_port == "587"
    assert document.email_sender == "ci@example.com"
    assert document.telegram_alert is False


def test_confirm_is_case_sensitive() -> None:
    """Only lowercase y/yes enable a section; the section prompts are skipped."""
    session, _ = _session("", "", "", "", "", "", "Y", "yes", "token", "chat", "YES")

    document = run_setup(session)

    assert document.email_alert is False
    assert document.email_host == ""
    assert document.telegram_alert is True
    assert document.telegram_token == "token"
    assert document.telegram_chat == "chat"
    assert document.ldap_enable is False


def test_ldap_tls_declined() -> None:
    """Anything but y/yes on the nested TLS prompt leaves TLS off."""
    session, _ = _session("", "", "", "", "", "", "", "", "y", "ldap:636", "no")

    document = run_setup(session)

    assert document.ldap_server == "ldap:636"
    assert document.ldap_needtls is False
    assert document.ldap_mappings.uid == "uid"


def test_work_directory_is_normalised() -> None:
    """Redundant separators and relative segments are collapsed."""
    session, _ = _session("", "", "", "", "/var//lib/../semaphore/./repos/")

    document = run_setup(session)

    assert document.tmp_path == "/var/semaphore/repos"


def test_clean_path_collapses_leading_double_slash() -> None:
    """A leading double slash collapses like any other repeated separator."""
    assert clean_path("//tmp//semaphore") == "/tmp/semaphore"
    assert clean_path("relative/../dir") == "dir"


def test_prompts_are_printed_with_defaults() -> None:
    """Each prompt shows its label and default."""
    session, output = _session()

    run_setup(session)

    text = output.getvalue()
    assert " > DB Hostname (default 127.0.0.1:3306):" in text
    assert " > Enable LDAP authentication (y/n, default n):" in text
    assert "Mail server host" not in text


def test_custom_prompt_list() -> None:
    """The engine drives any declarative prompt list."""
    prompts = (
        PromptSpec("port", "Port (default :3000)", ":3000"),
        PromptSpec("ldap_enable", "LDAP?", kind="confirm"),
        PromptSpec("ldap_server", "LDAP server", "localhost:389", when="ldap_enable"),
    )
    session, _ = _session("", "yes", "")

    document = run_setup(session, prompts)

    assert document.port == ":3000"
    assert document.ldap_enable is True
    assert document.ldap_server == "localhost:389"


def test_save_document_writes_json(tmp_path: Path) -> None:
    """Saving creates parent directories and writes tab-indented JSON."""
    document = ConfigDocument(port=":3000", tmp_path="/tmp/semaphore")
    target = tmp_path / "etc" / "semaphore" / "config.json"

    written = save_document(document, target)

    assert written == target
    text = target.read_text(encoding="utf-8")
    assert '\t"port": ":3000"' in text
    assert json.loads(text)["tmp_path"] == "/tmp/semaphore"
