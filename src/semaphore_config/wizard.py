"""Interactive setup wizard that builds a configuration document.

The wizard is a declarative list of :class:`PromptSpec` entries driven by a
small prompt engine (:class:`PromptSession`). Each prompt prints its label,
reads one line and falls back to the documented default when the line is
empty. Nothing is validated and nothing is re-prompted; the operator can fix
the generated file by hand.

Conditional sections (email, Telegram, LDAP) are gated by ``confirm``
prompts: only ``y`` or ``yes`` enable them.
"""
from __future__ import annotations

import os
import sys
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Literal, TextIO

from rich.console import Console

from .document import DEFAULT_TMP_PATH, ConfigDocument

PromptKind = Literal["text", "path", "confirm"]

AFFIRMATIVE_ANSWERS = frozenset({"y", "yes"})


@dataclass(frozen=True)
class PromptSpec:
    """One wizard prompt bound to a dotted document key."""

    key: str
    label: str
    default: str = ""
    kind: PromptKind = "text"
    when: str | None = None


SETUP_PROMPTS: tuple[PromptSpec, ...] = (
    PromptSpec("mysql.host", "DB Hostname (default 127.0.0.1:3306)", "127.0.0.1:3306"),
    PromptSpec("mysql.user", "DB User (default root)", "root"),
    PromptSpec("mysql.pass", "DB Password"),
    PromptSpec("mysql.name", "DB Name (default semaphore)", "semaphore"),
    PromptSpec(
        "tmp_path",
        f"Playbook path (default {DEFAULT_TMP_PATH})",
        DEFAULT_TMP_PATH,
        kind="path",
    ),
    PromptSpec("web_host", "Web root URL (optional, example http://localhost:8010/)"),
    # email alerting
    PromptSpec("email_alert", "Enable email alerts (y/n, default n)", kind="confirm"),
    PromptSpec(
        "email_host",
        "Mail server host (default localhost)",
        "localhost",
        when="email_alert",
    ),
    PromptSpec("email_port", "Mail server port (default 25)", "25", when="email_alert"),
    PromptSpec(
        "email_sender",
        "Mail sender address (default semaphore@localhost)",
        "semaphore@localhost",
        when="email_alert",
    ),
    # telegram alerting
    PromptSpec("telegram_alert", "Enable telegram alerts (y/n, default n)", kind="confirm"),
    PromptSpec(
        "telegram_token",
        "Telegram bot token (you can get it from @BotFather) (default '')",
        when="telegram_alert",
    ),
    PromptSpec("telegram_chat", "Telegram chat ID (default '')", when="telegram_alert"),
    # ldap authentication
    PromptSpec("ldap_enable", "Enable LDAP authentication (y/n, default n)", kind="confirm"),
    PromptSpec(
        "ldap_server",
        "LDAP server host (default localhost:389)",
        "localhost:389",
        when="ldap_enable",
    ),
    PromptSpec(
        "ldap_needtls",
        "Enable LDAP TLS connection (y/n, default n)",
        kind="confirm",
        when="ldap_enable",
    ),
    PromptSpec(
        "ldap_binddn",
        "LDAP DN for bind (default cn=user,ou=users,dc=example)",
        "cn=user,ou=users,dc=example",
        when="ldap_enable",
    ),
    PromptSpec(
        "ldap_bindpassword",
        "Password for LDAP bind user (default pa55w0rd)",
        "pa55w0rd",
        when="ldap_enable",
    ),
    PromptSpec(
        "ldap_searchdn",
        "LDAP DN for user search (default ou=users,dc=example)",
        "ou=users,dc=example",
        when="ldap_enable",
    ),
    PromptSpec(
        "ldap_searchfilter",
        "LDAP search filter (default (uid=%s))",
        "(uid=%s)",
        when="ldap_enable",
    ),
    PromptSpec(
        "ldap_mappings.dn",
        "LDAP mapping for DN field (default dn)",
        "dn",
        when="ldap_enable",
    ),
    PromptSpec(
        "ldap_mappings.uid",
        "LDAP mapping for username field (default uid)",
        "uid",
        when="ldap_enable",
    ),
    PromptSpec(
        "ldap_mappings.cn",
        "LDAP mapping for full name field (default cn)",
        "cn",
        when="ldap_enable",
    ),
    PromptSpec(
        "ldap_mappings.mail",
        "LDAP mapping for email field (default mail)",
        "mail",
        when="ldap_enable",
    ),
)


class PromptSession:
    """Line-oriented prompt engine over a text stream and a rich console."""

    def __init__(self, stdin: TextIO | None = None, console: Console | None = None) -> None:
        self._stdin = stdin if stdin is not None else sys.stdin
        self._console = console if console is not None else Console()

    def ask(self, label: str) -> str:
        """Print *label* and return the next input line, stripped."""
        self._console.print(
            f" > {label}: ", end="", markup=False, highlight=False, soft_wrap=True
        )
        line = self._stdin.readline()
        return line.strip()

    def text(self, label: str, default: str = "") -> str:
        """Return the answer to *label*, or *default* when left empty."""
        answer = self.ask(label)
        return answer if answer else default

    def confirm(self, label: str) -> bool:
        """Return ``True`` only when the operator answers ``y`` or ``yes``."""
        return self.ask(label) in AFFIRMATIVE_ANSWERS

    def answer(self, prompt: PromptSpec) -> object:
        """Ask *prompt* and return its typed value."""
        if prompt.kind == "confirm":
            return self.confirm(prompt.label)
        value = self.text(prompt.label, prompt.default)
        if prompt.kind == "path":
            return clean_path(value)
        return value


def run_setup(
    session: PromptSession,
    prompts: Sequence[PromptSpec] = SETUP_PROMPTS,
) -> ConfigDocument:
    """Walk *prompts* in order and return the resulting document."""
    answers: dict[str, object] = {}
    for prompt in prompts:
        if prompt.when is not None and answers.get(prompt.when) is not True:
            continue
        answers[prompt.key] = session.answer(prompt)
    return ConfigDocument.from_mapping(_nest(answers))


def clean_path(value: str) -> str:
    """Collapse redundant separators and ``.``/``..`` segments."""
    cleaned = os.path.normpath(value)
    if os.sep == "/" and cleaned.startswith("//"):
        cleaned = "/" + cleaned.lstrip("/")
    return cleaned


def save_document(document: ConfigDocument, path: str | os.PathLike[str]) -> Path:
    """Write *document* as JSON to *path*, creating parent directories."""
    target = Path(path).expanduser()
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(document.to_json() + "\n", encoding="utf-8")
    return target


def _nest(answers: dict[str, object]) -> dict[str, object]:
    tree: dict[str, object] = {}
    for key, value in answers.items():
        head, _, tail = key.partition(".")
        if not tail:
            tree[head] = value
            continue
        child = tree.setdefault(head, {})
        if isinstance(child, dict):
            child[tail] = value
    return tree


__all__ = [
    "AFFIRMATIVE_ANSWERS",
    "PromptSession",
    "PromptSpec",
    "SETUP_PROMPTS",
    "clean_path",
    "run_setup",
    "save_document",
]
