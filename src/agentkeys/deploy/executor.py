# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/agentkeys/deploy/executor.py

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Callable, Iterable, List, Optional

from agentkeys.agent.version import AgentVersionError, windows_download_url
from agentkeys.config.models import AgentKeysConfig, HostSpec
from agentkeys.keys.backend import GpgCliBackend, KeyringBackend
from agentkeys.keys.errors import KeyImportError
from agentkeys.keys.fetch import KeyFetcher
from agentkeys.keys.importer import KeyImporter
from agentkeys.observers.dispatcher import EventBus
from agentkeys.observers.events import HostSummary, new_ctx
from agentkeys.runners.base import CommandError, CommandRunner
from agentkeys.runners.local import LocalRunner
from agentkeys.runners.ssh import open_ssh
from agentkeys.utils.execution import ExecutionContext

log = logging.getLogger("agentkeys")

LOCALHOST = HostSpec(hostname="localhost", address="localhost", connection="local")

RunnerFactory = Callable[[HostSpec], CommandRunner]
BackendFactory = Callable[[CommandRunner], KeyringBackend]

CHANGED = "changed"
OK = "ok"
PENDING = "pending"      # dry-run: import would happen
FAILED = "failed"
NOT_RUN = "not-run"      # skipped after an earlier failure with fail_fast


@dataclass
class RecordOutcome:
    identifier: str
    status: str
    error: Optional[str] = None


@dataclass
class HostReport:
    host: str
    outcomes: List[RecordOutcome] = field(default_factory=list)
    skipped: bool = False
    note: Optional[str] = None
    error: Optional[str] = None      # host-level failure (connection, version pin)

    def count(self, status: str) -> int:
        return sum(1 for o in self.outcomes if o.status == status)

    @property
    def failed(self) -> bool:
        return self.error is not None or self.count(FAILED) > 0


def default_runner_factory(host: HostSpec) -> CommandRunner:
    if host.connection == "local":
        return LocalRunner(host=host.hostname)
    return open_ssh(host)


def sync_keys(
    importer: KeyImporter,
    cfg: AgentKeysConfig,
    *,
    fail_fast: bool = False,
) -> List[RecordOutcome]:
    """
    Process every configured key record in order on the importer's host.

    A failed record is reported and the next one is attempted, unless
    ``fail_fast`` is set.
    """
    outcomes: List[RecordOutcome] = []
    records = cfg.keyring.records()
    for i, record in enumerate(records):
        try:
            result = importer.ensure_key_imported(
                cfg.keyring.path, record, cfg.keyring.current_key_name
            )
        except (KeyImportError, CommandError) as exc:
            log.error("[%s] %s: %s", importer.runner.host, record.identifier, exc)
            outcomes.append(RecordOutcome(record.identifier, FAILED, str(exc)))
            if fail_fast:
                outcomes.extend(RecordOutcome(r.identifier, NOT_RUN) for r in records[i + 1:])
                break
            continue

        if result.changed:
            status = CHANGED
        elif result.needs_import and importer.ctx.dry_run:
            status = PENDING
        else:
            status = OK
        outcomes.append(RecordOutcome(record.identifier, status))
    return outcomes


def _sync_windows(host: HostSpec, cfg: AgentKeysConfig, report: HostReport) -> None:
    # no keyring on windows; only the version pin is validated
    report.skipped = True
    if not cfg.agent.version:
        report.note = "no agent version pinned"
        return
    try:
        report.note = windows_download_url(cfg.agent.windows_versioned_url, cfg.agent.version)
    except AgentVersionError as exc:
        report.error = str(exc)


def sync_host(
    host: HostSpec,
    cfg: AgentKeysConfig,
    *,
    runner_factory: RunnerFactory = default_runner_factory,
    backend_factory: Optional[BackendFactory] = None,
    fetcher: Optional[KeyFetcher] = None,
    ctx: Optional[ExecutionContext] = None,
    bus: Optional[EventBus] = None,
    run_id: Optional[str] = None,
) -> HostReport:
    bus = bus or EventBus()
    report = HostReport(host=host.hostname)

    if host.os_family == "windows":
        _sync_windows(host, cfg, report)
    elif host.os_family != "debian":
        report.skipped = True
        report.note = f"key import not applicable to {host.os_family} hosts"
    else:
        try:
            runner = runner_factory(host)
        except CommandError as exc:
            report.error = str(exc)
        else:
            try:
                importer = KeyImporter(
                    runner,
                    backend=(
                        backend_factory(runner) if backend_factory
                        else GpgCliBackend(runner, gpg=cfg.keyring.gpg_binary)
                    ),
                    fetcher=fetcher or KeyFetcher(
                        timeout=cfg.keyring.fetch_timeout,
                        retries=cfg.keyring.fetch_retries,
                        delay=cfg.keyring.fetch_retry_delay,
                    ),
                    ctx=ctx,
                    bus=bus,
                    run_id=run_id,
                )
                report.outcomes = sync_keys(importer, cfg, fail_fast=cfg.fail_fast)
            finally:
                runner.close()

    if report.error:
        log.error("[%s] %s", host.hostname, report.error)

    bus.emit(
        HostSummary(
            **new_ctx(host.hostname, run_id),
            changed=report.count(CHANGED),
            ok=report.count(OK),
            failed=report.count(FAILED) + (1 if report.error else 0),
            skipped=report.skipped,
            note=report.error or report.note,
        )
    )
    return report


def select_hosts(cfg: AgentKeysConfig, only: Optional[Iterable[str]] = None) -> List[HostSpec]:
    hosts = list(cfg.hosts) or [LOCALHOST]
    if not only:
        return hosts
    wanted = set(only)
    unknown = wanted - {h.hostname for h in hosts}
    if unknown:
        raise ValueError(f"Unknown hosts: {', '.join(sorted(unknown))}")
    return [h for h in hosts if h.hostname in wanted]


def sync_hosts(
    cfg: AgentKeysConfig,
    *,
    only: Optional[Iterable[str]] = None,
    runner_factory: RunnerFactory = default_runner_factory,
    backend_factory: Optional[BackendFactory] = None,
    fetcher: Optional[KeyFetcher] = None,
    ctx: Optional[ExecutionContext] = None,
    bus: Optional[EventBus] = None,
    run_id: Optional[str] = None,
) -> List[HostReport]:
    """
    Run the key sync on every selected host.

    Hosts share nothing and run in parallel; keys on one host run in order.
    With no hosts configured the controller itself is the target.
    """
    hosts = select_hosts(cfg, only)

    def _one(host: HostSpec) -> HostReport:
        return sync_host(
            host,
            cfg,
            runner_factory=runner_factory,
            backend_factory=backend_factory,
            fetcher=fetcher,
            ctx=ctx,
            bus=bus,
            run_id=run_id,
        )

    workers = min(cfg.max_parallel_hosts, len(hosts))
    with ThreadPoolExecutor(max_workers=workers) as pool:
        return list(pool.map(_one, hosts))
