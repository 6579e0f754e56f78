from __future__ import annotations

import json
from typing import Any

from pydantic import BaseModel

Document = BaseModel | dict[str, Any] | list[Any]


def _plain(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    if isinstance(value, list):
        return [_plain(item) for item in value]
    if isinstance(value, dict):
        return {str(key): _plain(item) for key, item in value.items()}
    return value


def encode_document(value: Document) -> str:
    """Stable JSON text for a stored document: sorted keys, compact separators."""
    return json.dumps(_plain(value), sort_keys=True, separators=(",", ":"), ensure_ascii=True)


def decode_document(raw: str | bytes | None) -> dict[str, Any]:
    """Decode a stored blob; anything that is not a JSON object reads as empty."""
    if not raw:
        return {}
    try:
        decoded = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError):
        return {}
    return decoded if isinstance(decoded, dict) else {}
