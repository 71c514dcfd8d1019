# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/agentkeys/observers/jsonfile.py
from __future__ import annotations
import json
import threading
from pathlib import Path
from agentkeys.utils.serialize import to_jsonable
from .events import BaseEvent


class JsonFileObserver:
    """Appends one JSON object per event; hosts run in threads, so writes are locked."""

    def __init__(self, path: Path):
        self.path = path
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()

    def notify(self, event: BaseEvent) -> None:
        record = {"event": type(event).__name__, **to_jsonable(event)}
        line = json.dumps(record, sort_keys=True)
        with self._lock:
            with self.path.open("a", encoding="utf-8") as fh:
                fh.write(line + "\n")
