"""Snapshot serialization utilities."""

from __future__ import annotations

import dataclasses
import json
from enum import Enum
from typing import Any


MAX_FRAME_BYTES = 10 * 1024 * 1024


def _to_jsonable(value: Any) -> Any:
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        if hasattr(value, "to_document"):
            return _to_jsonable(value.to_document())
        return {k: _to_jsonable(v) for k, v in dataclasses.asdict(value).items()}
    if isinstance(value, Enum):
        return value.value
    if hasattr(value, "tolist"):
        return value.tolist()
    if isinstance(value, dict):
        return {str(k.value if isinstance(k, Enum) else k): _to_jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_to_jsonable(v) for v in value]
    return value


def serialize_state(state: Any) -> bytes:
    """Serialize a snapshot or engine state into deterministic JSON bytes."""
    payload = _to_jsonable(state)
    data = json.dumps(payload, sort_keys=True, separators=(",", ":")).encode("utf-8")
    if len(data) > MAX_FRAME_BYTES:
        raise ValueError(
            f"Serialized frame exceeds max size ({len(data)} bytes > {MAX_FRAME_BYTES})."
        )
    return data


def state_text(state: Any, limit: int | None = None) -> str:
    """Compact JSON text of ``state``, truncated to ``limit`` characters."""
    text = serialize_state(state).decode("utf-8")
    if limit is not None and len(text) > limit:
        return text[:limit]
    return text
