# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/agentkeys/keys/models.py

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class KeyRecord:
    identifier: str               # fingerprint, key id, or the CURRENT sentinel
    source_url: str               # keyring or ascii-armored single key


@dataclass(frozen=True)
class ImportDecision:
    needs_import: bool
    reason: str


@dataclass(frozen=True)
class ImportOutcome:
    """Counters parsed from one ``gpg --import`` run."""
    processed: int = 0
    imported: int = 0
    unchanged: int = 0


@dataclass(frozen=True)
class ImportResult:
    identifier: str
    changed: bool
    needs_import: bool
    imported: int = 0
    unchanged: int = 0
