# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/agentkeys/keys/backend.py

from __future__ import annotations

import logging
import re
from typing import List, Protocol

from agentkeys.runners.base import CommandRunner
from .errors import KeyNotFoundInArtifact, KeyringImportError, MalformedArtifactError
from .models import ImportOutcome

log = logging.getLogger("agentkeys")

ARMOR_HEADER = b"-----BEGIN PGP "

_COUNTER_RE = {
    name: re.compile(rf"^gpg:\s+{label}:\s*(\d+)\b", re.MULTILINE)
    for name, label in (
        ("processed", "Total number processed"),
        ("imported", "imported"),
        ("unchanged", "unchanged"),
    )
}


class KeyringBackend(Protocol):
    def check_presence(self, keyring: str, identifier: str) -> bool: ...

    def normalize_to_binary(self, source: str, dest: str) -> None: ...

    def extract_key(self, keyring: str, identifier: str, dest: str) -> None: ...

    def import_key(self, keyring: str, source: str) -> ImportOutcome: ...


def is_armored(data: bytes) -> bool:
    return data.lstrip().startswith(ARMOR_HEADER) or ARMOR_HEADER in data[:4096]


def is_binary_openpgp(data: bytes) -> bool:
    # every OpenPGP packet header has the high bit of its first octet set
    return bool(data) and bool(data[0] & 0x80)


def normalize_identifier(identifier: str) -> str:
    ident = identifier.replace(" ", "").upper()
    if ident.startswith("0X"):
        ident = ident[2:]
    return ident


def parse_fingerprints(colons: str) -> List[str]:
    """Fingerprints from ``gpg --with-colons`` output (field 10 of ``fpr`` records)."""
    fprs = []
    for line in colons.splitlines():
        fields = line.split(":")
        if fields[0] == "fpr" and len(fields) > 9 and fields[9]:
            fprs.append(fields[9].upper())
    return fprs


def parse_import_output(stderr: str) -> ImportOutcome:
    counts = {}
    for name, pattern in _COUNTER_RE.items():
        m = pattern.search(stderr)
        counts[name] = int(m.group(1)) if m else 0
    return ImportOutcome(**counts)


class GpgCliBackend:
    """
    Keyring operations done with the ``gpg`` binary on the target host.

    Every invocation is run and checked on its own; nothing is piped
    through a shell.
    """

    def __init__(self, runner: CommandRunner, gpg: str = "gpg"):
        self.runner = runner
        self.gpg = gpg

    def _keyring_argv(self, keyring: str) -> List[str]:
        return [self.gpg, "--no-default-keyring", "--keyring", keyring, "--batch"]

    def check_presence(self, keyring: str, identifier: str) -> bool:
        res = self.runner.run(
            self._keyring_argv(keyring) + ["--list-keys", "--with-fingerprint", "--with-colons"]
        )
        if not res.ok:
            # missing or empty keyring: nothing is present yet
            log.debug("[%s] listing %s failed (rc=%d), treating %s as absent",
                      self.runner.host, keyring, res.returncode, identifier)
            return False
        wanted = normalize_identifier(identifier)
        return any(fpr.endswith(wanted) for fpr in parse_fingerprints(res.stdout_text))

    def normalize_to_binary(self, source: str, dest: str) -> None:
        data = self.runner.read_bytes(source)
        if not data.strip():
            raise MalformedArtifactError(f"{source} is empty")

        if is_armored(data):
            res = self.runner.run([self.gpg, "--batch", "--dearmor"], stdin=data)
            if not res.ok or not res.stdout:
                raise MalformedArtifactError(
                    f"could not dearmor {source}: {res.stderr_text.strip() or 'no output'}"
                )
            self.runner.write_bytes(dest, res.stdout)
        elif is_binary_openpgp(data):
            self.runner.write_bytes(dest, data)
        else:
            raise MalformedArtifactError(f"{source} is neither a binary keyring nor armored key data")

    def extract_key(self, keyring: str, identifier: str, dest: str) -> None:
        res = self.runner.run(self._keyring_argv(keyring) + ["--export", identifier])
        if not res.ok:
            raise MalformedArtifactError(
                f"could not read keyring {keyring}: {res.stderr_text.strip()}"
            )
        if not res.stdout:
            raise KeyNotFoundInArtifact(f"key {identifier} is not in the downloaded keyring")
        self.runner.write_bytes(dest, res.stdout)

    def import_key(self, keyring: str, source: str) -> ImportOutcome:
        res = self.runner.run(self._keyring_argv(keyring) + ["--import", source])
        if not res.ok:
            raise KeyringImportError(
                f"gpg --import into {keyring} failed (rc={res.returncode}): {res.stderr_text.strip()}"
            )
        outcome = parse_import_output(res.stderr_text)
        log.debug("[%s] import into %s: %s", self.runner.host, keyring, outcome)
        return outcome
