# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/agentkeys/utils/serialize.py

from dataclasses import is_dataclass, asdict
from pathlib import Path
from typing import Any
from pydantic import HttpUrl

def to_jsonable(obj: Any) -> Any:
    if is_dataclass(obj):
        return to_jsonable(asdict(obj))

    if isinstance(obj, dict):
        return {k: to_jsonable(v) for k, v in obj.items()}

    if isinstance(obj, (list, tuple)):
        return [to_jsonable(v) for v in obj]

    if isinstance(obj, (HttpUrl, Path)):
        return str(obj)

    return obj
