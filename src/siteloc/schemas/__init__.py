"""Schema validation helpers."""

from __future__ import annotations

import json
from typing import Any

from jsonschema import Draft202012Validator

from ..config import SCHEMA_DIR
from ..errors import CacheCorruptedError

_CACHE_ENTRY_VALIDATOR: Draft202012Validator | None = None


def _load_validator(name: str) -> Draft202012Validator:
    schema_path = SCHEMA_DIR / name
    schema = json.loads(schema_path.read_text(encoding="utf-8"))
    return Draft202012Validator(schema)


def validate_cache_entry(document: Any) -> None:
    """Validate a persisted cache entry and raise :class:`CacheCorruptedError` on failure."""

    global _CACHE_ENTRY_VALIDATOR
    if _CACHE_ENTRY_VALIDATOR is None:
        _CACHE_ENTRY_VALIDATOR = _load_validator("geocache_entry.schema.json")
    errors = sorted(_CACHE_ENTRY_VALIDATOR.iter_errors(document), key=lambda err: list(err.path))
    if errors:
        messages = "; ".join(error.message for error in errors)
        raise CacheCorruptedError(messages)
