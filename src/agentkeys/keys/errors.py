# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/agentkeys/keys/errors.py
class KeyImportError(RuntimeError):
    """Base class for failures that abort the import of one key record."""

class FetchError(KeyImportError):
    """Raised when a key source cannot be downloaded."""

class MalformedArtifactError(KeyImportError):
    """Raised when downloaded data is neither a binary keyring nor armored key data."""

class KeyNotFoundInArtifact(KeyImportError):
    """Raised when the requested key is absent from the downloaded keyring."""

class KeyringImportError(KeyImportError):
    """Raised when gpg fails to import a key into the target keyring."""
