from __future__ import annotations

import base64
import binascii
import json
from typing import Any

from terminbot.domain import MalformedDescriptor


def decode(blob: str) -> dict[str, Any]:
    try:
        raw = base64.b64decode(blob, validate=True)
        data = json.loads(raw.decode("utf-8"))
    except (binascii.Error, UnicodeDecodeError, json.JSONDecodeError) as e:
        raise MalformedDescriptor(f"Cannot decode filter descriptor: {e}") from e

    if not isinstance(data, dict):
        raise MalformedDescriptor(f"Filter descriptor must be a JSON object, got {type(data).__name__}")
    return data


def encode(descriptor: dict[str, Any]) -> str:
    # Same shape as JSON.stringify on the site: no spaces, unicode as is.
    text = json.dumps(descriptor, separators=(",", ":"), ensure_ascii=False)
    return base64.b64encode(text.encode("utf-8")).decode("ascii")


def filters_of(descriptor: dict[str, Any]) -> dict[str, Any]:
    # The blob copied from the site wraps filters as {"page": ..., "filters": {...}}.
    filters = descriptor.get("filters")
    if isinstance(filters, dict):
        return filters
    return descriptor
