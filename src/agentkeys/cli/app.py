# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/agentkeys/cli/app.py
from __future__ import annotations

from pathlib import Path
from typing import List, Optional

import typer
from pydantic import ValidationError

from agentkeys.agent.version import AgentVersionError, windows_download_url
from agentkeys.config.loader import load_config
from agentkeys.config.models import DEFAULT_CURRENT_KEY_NAME, DEFAULT_WINDOWS_VERSIONED_URL
from agentkeys.deploy.executor import (
    CHANGED,
    FAILED,
    NOT_RUN,
    OK,
    PENDING,
    HostReport,
    sync_hosts,
)
from agentkeys.keys.errors import KeyImportError
from agentkeys.keys.importer import KeyImporter
from agentkeys.keys.models import KeyRecord
from agentkeys.logging.log import init_logging
from agentkeys.observers.dispatcher import EventBus
from agentkeys.observers.jsonfile import JsonFileObserver
from agentkeys.observers.logger import LoggerObserver
from agentkeys.runners.base import CommandError
from agentkeys.runners.local import LocalRunner
from agentkeys.utils.execution import ExecutionContext


# ------------------------------------------------------------------------------
# CLI setup
# ------------------------------------------------------------------------------

app = typer.Typer(help="Monitoring agent signing key provisioning")


def _print_report(reports: List[HostReport]) -> None:
    for rep in reports:
        header = f"{rep.host}: "
        if rep.error:
            typer.secho(header + f"FAILED ({rep.error})", fg=typer.colors.RED)
            continue
        if rep.skipped:
            typer.echo(header + f"skipped ({rep.note})" if rep.note else header + "skipped")
            continue
        typer.echo(
            header
            + f"changed={rep.count(CHANGED)} ok={rep.count(OK)} "
            + f"pending={rep.count(PENDING)} failed={rep.count(FAILED)}"
        )
        for o in rep.outcomes:
            line = f"  {o.identifier}: {o.status}"
            if o.error:
                line += f" ({o.error})"
            color = typer.colors.RED if o.status in (FAILED, NOT_RUN) else None
            typer.secho(line, fg=color)


@app.command()
def sync(
    config: Path = typer.Argument(..., help="Path to the agentkeys YAML config", exists=True, dir_okay=False),
    host: Optional[List[str]] = typer.Option(None, "--host", help="Limit to these hostnames"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Only check which keys are missing"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log every command to the console"),
    log_dir: Optional[Path] = typer.Option(None, "--log-dir", help="Directory for log and event files"),
):
    """Make sure every configured signing key is in the keyring of every host."""
    logger, run_id, log_path = init_logging(base_dir=log_dir, verbose=verbose)

    try:
        cfg = load_config(config)
    except (OSError, ValidationError) as exc:
        typer.secho(f"Invalid config {config}: {exc}", fg=typer.colors.RED)
        raise typer.Exit(code=2)

    bus = EventBus(
        observers=[
            LoggerObserver(logger),
            JsonFileObserver(log_path.with_suffix(".jsonl")),
        ]
    )

    try:
        reports = sync_hosts(
            cfg,
            only=host,
            ctx=ExecutionContext(dry_run=dry_run),
            bus=bus,
            run_id=run_id,
        )
    except ValueError as exc:
        raise typer.BadParameter(str(exc), param_hint="--host")

    _print_report(reports)
    if any(r.failed for r in reports):
        raise typer.Exit(code=1)


@app.command("import-key")
def import_key(
    keyring: str = typer.Option(..., "--keyring", help="Keyring file to import into"),
    key_id: str = typer.Option(..., "--key-id", help="Fingerprint of the key, or the current-key name"),
    url: str = typer.Option(..., "--url", help="Keyring or armored key to fetch"),
    current_name: str = typer.Option(DEFAULT_CURRENT_KEY_NAME, "--current-name", help="Name of the always-refreshed key"),
    dry_run: bool = typer.Option(False, "--dry-run"),
    verbose: bool = typer.Option(False, "--verbose", "-v"),
    log_dir: Optional[Path] = typer.Option(None, "--log-dir"),
):
    """Import one key into a keyring on this machine."""
    logger, run_id, _ = init_logging(base_dir=log_dir, verbose=verbose)
    importer = KeyImporter(
        LocalRunner(),
        ctx=ExecutionContext(dry_run=dry_run),
        bus=EventBus([LoggerObserver(logger)]),
        run_id=run_id,
    )
    try:
        result = importer.ensure_key_imported(keyring, KeyRecord(key_id, url), current_name)
    except (KeyImportError, CommandError) as exc:
        typer.secho(f"{key_id}: {exc}", fg=typer.colors.RED)
        raise typer.Exit(code=1)

    if result.changed:
        typer.secho(f"{key_id}: changed", fg=typer.colors.GREEN)
    elif result.needs_import:
        typer.echo(f"{key_id}: {'would import' if dry_run else 'ok'}")
    else:
        typer.echo(f"{key_id}: ok")


@app.command("windows-url")
def windows_url(
    version: str = typer.Argument(..., help="Pinned agent version"),
    base_url: str = typer.Option(DEFAULT_WINDOWS_VERSIONED_URL, "--base-url"),
):
    """Validate a Windows agent pin and print its MSI download URL."""
    try:
        typer.echo(windows_download_url(base_url, version))
    except AgentVersionError as exc:
        typer.secho(str(exc), fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)


def main() -> None:
    app()


if __name__ == "__main__":
    main()
