# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/agentkeys/observers/logger.py
from __future__ import annotations
import logging
from .events import (
    BaseEvent,
    HostSummary,
    KeyAlreadyPresent,
    KeyImported,
    KeyImportFailed,
    KeyImportStarted,
)


class LoggerObserver:
    def __init__(self, logger: logging.Logger):
        self.logger = logger

    def notify(self, event: BaseEvent) -> None:
        if isinstance(event, KeyAlreadyPresent):
            self.logger.info("[%s] key %s already present", event.host, event.identifier)
        elif isinstance(event, KeyImportStarted):
            self.logger.info("[%s] importing key %s from %s (%s)",
                             event.host, event.identifier, event.url, event.reason)
        elif isinstance(event, KeyImported):
            state = "changed" if event.changed else "unchanged"
            self.logger.info("[%s] key %s %s", event.host, event.identifier, state)
        elif isinstance(event, KeyImportFailed):
            self.logger.error("[%s] key %s failed: %s", event.host, event.identifier, event.error)
        elif isinstance(event, HostSummary):
            self.logger.info("[%s] changed=%d ok=%d failed=%d%s",
                             event.host, event.changed, event.ok, event.failed,
                             f" ({event.note})" if event.note else "")
        else:
            self.logger.debug("%s %s", type(event).__name__, event.dict())
