from __future__ import annotations

import json
from typing import Any


def parse_tags(raw: Any) -> list[str]:
    """Accept a JSON list, a comma separated string or a list; return clean unique tags."""
    if raw is None:
        return []
    if isinstance(raw, str):
        text = raw.strip()
        if not text:
            return []
        if text.startswith("["):
            try:
                raw = json.loads(text)
            except json.JSONDecodeError as exc:
                raise ValueError("tags must be a JSON list of strings") from exc
        else:
            raw = text.split(",")
    if not isinstance(raw, (list, tuple)):
        raise ValueError("tags must be a list of strings")
    tags: list[str] = []
    for item in raw:
        if not isinstance(item, str):
            raise ValueError("tags must be a list of strings")
        cleaned = item.strip()
        if cleaned and cleaned not in tags:
            tags.append(cleaned)
    return tags
