"""Typer-powered command line entry point for the Semaphore server.

Flags keep their historical single-dash spelling (``-setup``, ``-config``,
``-printConfig`` ...) with double-dash aliases. Utility modes print their
result and exit straight away; every other mode resolves the runtime
configuration and hands it to the server startup sequencer.
"""
from __future__ import annotations

import textwrap
from collections.abc import Mapping
from pathlib import Path

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from . import __version__
from .config import ConfigError, SetupRequiredError
from .cookies import generate_cookie_secrets
from .document import DEFAULT_TMP_PATH, example_document
from .exit_codes import ExitCode
from .logging import StructuredLogger
from .modes import (
    ModeConflictError,
    Runtime,
    StartupMode,
    StartupOptions,
    bootstrap,
    select_mode,
)
from .passwords import PasswordHashError, hash_password
from .wizard import PromptSession, run_setup, save_document

console = Console()

DEFAULT_LOG_DIR = Path(DEFAULT_TMP_PATH) / "logs"
DEFAULT_SETUP_OUTPUT = "config.json"

SETUP_INTRO = textwrap.dedent(
    """
    Hello! You will now be guided through a setup to:

    1. Set up configuration for a MySQL/MariaDB database
    2. Set up a path for your playbooks
    3. Configure email, Telegram and LDAP integrations
    """
).strip()

app = typer.Typer(
    add_completion=False,
    help=(
        "Semaphore server startup: resolve configuration or run a utility mode. "
        "The mode flags -setup, -migrate, -upgrade, -hash and -printConfig are "
        "mutually exclusive; combining them exits with status 2."
    ),
)


def _log_target(scope: str) -> dict[str, object]:
    return {"kind": "config", "scope": scope}


@app.command()
def run(
    setup: bool = typer.Option(False, "-setup", "--setup", help="Perform interactive setup."),
    migrate: bool = typer.Option(False, "-migrate", "--migrate", help="Execute migrations."),
    upgrade: bool = typer.Option(False, "-upgrade", "--upgrade", help="Upgrade semaphore."),
    config: str | None = typer.Option(None, "-config", "--config", help="Config path."),
    password: str | None = typer.Option(
        None,
        "-hash",
        "--hash",
        help="Generate hash of given password.",
    ),
    print_config: bool = typer.Option(
        False,
        "-printConfig",
        "--print-config",
        help="Print example configuration.",
    ),
    log_dir: Path | None = typer.Option(
        None,
        "--log-dir",
        envvar="SEMAPHORE_LOG_DIR",
        file_okay=False,
        help=f"Directory for the structured operation log (default {DEFAULT_LOG_DIR}).",
    ),
    version: bool = typer.Option(False, "--version", "-V", help="Show the version and exit."),
) -> None:
    """Select a startup mode from the flags and run it.

    The mode flags -setup, -migrate, -upgrade, -hash and -printConfig are
    mutually exclusive; combining them exits with status 2.
    """
    logger = StructuredLogger(log_dir or DEFAULT_LOG_DIR)

    if version:
        console.print(f"semaphore {__version__}")
        raise typer.Exit(code=ExitCode.OK)

    try:
        options = select_mode(
            setup=setup,
            migrate=migrate,
            upgrade=upgrade,
            print_config=print_config,
            password=password,
            config_path=config,
        )
    except ModeConflictError as exc:
        with logger.operation("startup", target=_log_target("flags")) as op:
            console.print(f"[red]{escape(str(exc))}[/red]")
            op.error(str(exc), rc=ExitCode.VALIDATION)
        raise typer.Exit(code=ExitCode.VALIDATION) from exc

    if options.mode is StartupMode.PRINT_CONFIG:
        _print_example_config(logger)
    elif options.mode is StartupMode.HASH_PASSWORD:
        _print_password_hash(logger, options.password or "")
    elif options.mode is StartupMode.SETUP:
        _run_interactive_setup(logger, options)
    else:
        _resolve_for_startup(logger, options)


def _print_example_config(logger: StructuredLogger) -> None:
    with logger.operation("print-config", target=_log_target("example")) as op:
        typer.echo(example_document().to_json())
        op.success("Printed example configuration.")
    raise typer.Exit(code=ExitCode.OK)


def _print_password_hash(logger: StructuredLogger, password: str) -> None:
    with logger.operation(
        "hash-password",
        args={"hash": "<redacted>"},
        target={"kind": "credential", "scope": "bcrypt"},
    ) as op:
        try:
            encoded = hash_password(password)
        except PasswordHashError as exc:
            console.print(f"[red]{escape(str(exc))}[/red]")
            op.error("Failed to hash password.", errors=[str(exc)], rc=ExitCode.ENVIRONMENT)
            raise typer.Exit(code=ExitCode.ENVIRONMENT) from exc
        typer.echo(f"Generated password:  {encoded}")
        op.success("Generated password hash.")
    raise typer.Exit(code=ExitCode.OK)


def _run_interactive_setup(logger: StructuredLogger, options: StartupOptions) -> None:
    with logger.operation(
        "setup",
        args={"config": options.config_path},
        target=_log_target("file"),
    ) as op:
        console.print(SETUP_INTRO, markup=False)
        console.print()
        session = PromptSession(console=console)
        document = run_setup(session)
        op.add_step("wizard.completed", status="success")

        document = document.with_cookie_secrets(*generate_cookie_secrets())
        op.add_step("cookie.secrets", status="success", detail="generated")

        output = options.config_path or session.text(
            f"Config output path (default {DEFAULT_SETUP_OUTPUT})",
            DEFAULT_SETUP_OUTPUT,
        )
        try:
            written = save_document(document, output)
        except OSError as exc:
            console.print(
                f"[red]Could not write configuration to {escape(output)}: "
                f"{escape(str(exc))}[/red]"
            )
            op.error(
                "Failed to write configuration.",
                errors=[str(exc)],
                rc=ExitCode.ENVIRONMENT,
                context={"path": output},
            )
            raise typer.Exit(code=ExitCode.ENVIRONMENT) from exc

        console.print()
        console.print(f"Configuration written to [bold]{escape(str(written))}[/bold]")
        console.print(f"Run the server with: semaphore -config {escape(str(written))}")
        op.success("Wrote configuration.", changed=1, context={"path": written})


def _resolve_for_startup(logger: StructuredLogger, options: StartupOptions) -> None:
    with logger.operation(
        options.mode.value,
        args={"config": options.config_path},
        target=_log_target("runtime"),
    ) as op:
        try:
            runtime = bootstrap(options)
        except SetupRequiredError as exc:
            console.print(str(exc), markup=False, highlight=False, soft_wrap=True)
            op.error("No configuration found.", errors=[str(exc)], rc=ExitCode.SETUP_REQUIRED)
            raise typer.Exit(code=ExitCode.SETUP_REQUIRED) from exc
        except ConfigError as exc:
            console.print("[red]Could not decode configuration![/red]")
            console.print(escape(str(exc)))
            op.error(str(exc), rc=ExitCode.VALIDATION)
            raise typer.Exit(code=ExitCode.VALIDATION) from exc

        _render_summary(runtime)
        context = {"source": runtime.config.source, "mode": options.mode.value}
        if runtime.config.ignored_keys:
            warnings = [f"ignored key: {key}" for key in runtime.config.ignored_keys]
            for warning in warnings:
                console.print(f"[yellow]{escape(warning)}[/yellow]")
            op.warning("Resolved configuration.", warnings=warnings, context=context)
        else:
            op.success("Resolved configuration.", context=context)


def _render_summary(runtime: Runtime) -> None:
    resolved = runtime.config
    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Setting", style="bold")
    table.add_column("Value")
    for key, value in _flatten(resolved.redacted()):
        table.add_row(key, escape(_display(value)))
    web_host = resolved.web_host_url.geturl() if resolved.web_host_url else "(not set)"
    table.add_row("web_host_url", escape(web_host))
    table.add_row("cookie_encryption_enabled", _display(resolved.cookie.encrypts))

    console.print(f"Configuration source: {escape(resolved.source)}")
    console.print(table)
    if runtime.options.mode is StartupMode.SERVE:
        console.print("Configuration resolved; ready to start the server.")
    else:
        console.print(
            f"Configuration resolved; '{runtime.options.mode.value}' requested "
            "for the server startup sequencer."
        )


def _flatten(data: Mapping[str, object], prefix: str = "") -> list[tuple[str, object]]:
    rows: list[tuple[str, object]] = []
    for key, value in data.items():
        name = f"{prefix}{key}"
        if isinstance(value, Mapping):
            rows.extend(_flatten(value, prefix=f"{name}."))
        else:
            rows.append((name, value))
    return rows


def _display(value: object) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def main() -> None:
    """Console script entry point."""
    app()


__all__ = ["app", "main"]
