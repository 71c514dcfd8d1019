# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/agentkeys/keys/importer.py

from __future__ import annotations

import logging
import re
from typing import Optional

from agentkeys.observers.dispatcher import EventBus
from agentkeys.observers.events import (
    KeyAlreadyPresent,
    KeyCheckStarted,
    KeyImported,
    KeyImportFailed,
    KeyImportStarted,
    new_ctx,
)
from agentkeys.runners.base import CommandRunner
from agentkeys.utils.execution import ExecutionContext
from .backend import GpgCliBackend, KeyringBackend
from .errors import KeyImportError
from .fetch import KeyFetcher
from .models import ImportDecision, ImportResult, KeyRecord
from .workspace import scratch_workspace

log = logging.getLogger("agentkeys")

BINARY_NAME = "binary.gpg"
SINGLE_NAME = "single.gpg"


def _safe_name(identifier: str) -> str:
    return re.sub(r"[^A-Za-z0-9._-]", "_", identifier)


class KeyImporter:
    """
    Makes sure a key is present in a keyring on one host.

    A key already in the store is left alone without any network access.
    The CURRENT sentinel is always fetched and re-imported because it
    rotates; its source is always a single armored key, never a keyring.
    Whether anything changed is decided by gpg's own import counters.
    """

    def __init__(
        self,
        runner: CommandRunner,
        *,
        backend: Optional[KeyringBackend] = None,
        fetcher: Optional[KeyFetcher] = None,
        ctx: Optional[ExecutionContext] = None,
        bus: Optional[EventBus] = None,
        run_id: Optional[str] = None,
    ):
        self.runner = runner
        self.backend = backend or GpgCliBackend(runner)
        self.fetcher = fetcher or KeyFetcher()
        self.ctx = ctx or ExecutionContext()
        self.bus = bus or EventBus()
        self.run_id = run_id

    def _ev(self) -> dict:
        return new_ctx(self.runner.host, self.run_id)

    def decide(self, store: str, record: KeyRecord, current_sentinel: str) -> ImportDecision:
        if record.identifier == current_sentinel:
            return ImportDecision(needs_import=True, reason="current key is always refreshed")
        if self.backend.check_presence(store, record.identifier):
            return ImportDecision(needs_import=False, reason="already present")
        return ImportDecision(needs_import=True, reason="not in keyring")

    def ensure_key_imported(
        self,
        store: str,
        record: KeyRecord,
        current_sentinel: str,
    ) -> ImportResult:
        self.bus.emit(KeyCheckStarted(**self._ev(), identifier=record.identifier, keyring=store))
        decision = self.decide(store, record, current_sentinel)

        if not decision.needs_import:
            self.bus.emit(KeyAlreadyPresent(**self._ev(), identifier=record.identifier))
            return ImportResult(identifier=record.identifier, changed=False, needs_import=False)

        if self.ctx.dry_run:
            log.info("[%s] dry-run: would import %s (%s)",
                     self.runner.host, record.identifier, decision.reason)
            return ImportResult(identifier=record.identifier, changed=False, needs_import=True)

        self.bus.emit(
            KeyImportStarted(
                **self._ev(),
                identifier=record.identifier,
                url=record.source_url,
                reason=decision.reason,
            )
        )

        try:
            result = self._import(store, record, current_sentinel)
        except KeyImportError as exc:
            self.bus.emit(KeyImportFailed(**self._ev(), identifier=record.identifier, error=str(exc)))
            raise

        self.bus.emit(
            KeyImported(
                **self._ev(),
                identifier=record.identifier,
                changed=result.changed,
                imported=result.imported,
                unchanged=result.unchanged,
            )
        )
        return result

    def _import(self, store: str, record: KeyRecord, current_sentinel: str) -> ImportResult:
        with scratch_workspace(self.runner) as ws:
            raw = ws.file(_safe_name(record.identifier))
            binary = ws.file(BINARY_NAME)
            single = ws.file(SINGLE_NAME)

            self.runner.write_bytes(raw, self.fetcher.fetch(record.source_url))
            self.backend.normalize_to_binary(raw, binary)

            if record.identifier == current_sentinel:
                self.runner.write_bytes(single, self.runner.read_bytes(binary))
            else:
                self.backend.extract_key(binary, record.identifier, single)

            outcome = self.backend.import_key(store, single)

        return ImportResult(
            identifier=record.identifier,
            changed=outcome.imported > 0,
            needs_import=True,
            imported=outcome.imported,
            unchanged=outcome.unchanged,
        )
