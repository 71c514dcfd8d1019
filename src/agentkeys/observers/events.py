# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/agentkeys/observers/events.py

from __future__ import annotations
from dataclasses import dataclass, asdict
from typing import Dict, Any, Optional
from datetime import datetime, timezone
import uuid


# ---------------------------------------------------------------------
# Base context and helper
# ---------------------------------------------------------------------
@dataclass(frozen=True)
class BaseEvent:
    ts: str           # ISO timestamp
    run_id: str       # correlates all events of one invocation
    host: str         # target host the event belongs to

    def dict(self) -> Dict[str, Any]:
        return asdict(self)


def new_ctx(host: str, run_id: Optional[str] = None) -> Dict[str, Any]:
    return {
        "ts": datetime.now(timezone.utc).isoformat(timespec="seconds"),
        "run_id": run_id or str(uuid.uuid4()),
        "host": host,
    }


# ---------------------------------------------------------------------
# Key import lifecycle
# ---------------------------------------------------------------------
@dataclass(frozen=True)
class KeyCheckStarted(BaseEvent):
    identifier: str
    keyring: str

@dataclass(frozen=True)
class KeyAlreadyPresent(BaseEvent):
    identifier: str

@dataclass(frozen=True)
class KeyImportStarted(BaseEvent):
    identifier: str
    url: str
    reason: str

@dataclass(frozen=True)
class KeyImported(BaseEvent):
    identifier: str
    changed: bool
    imported: int
    unchanged: int

@dataclass(frozen=True)
class KeyImportFailed(BaseEvent):
    identifier: str
    error: str


# ---------------------------------------------------------------------
# Host summary
# ---------------------------------------------------------------------
@dataclass(frozen=True)
class HostSummary(BaseEvent):
    changed: int
    ok: int
    failed: int
    skipped: bool = False
    note: Optional[str] = None
