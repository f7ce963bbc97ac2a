from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any

from .types import LETTERS

ROUND_ID_FORMAT = "%Y-%m-%dT%H:%M:%SZ"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def format_utc_timestamp(value: datetime) -> str:
    return as_utc(value).replace(microsecond=0).strftime(ROUND_ID_FORMAT)


def parse_utc_timestamp(value: object) -> datetime | None:
    if not isinstance(value, str) or not value.strip():
        return None
    raw = value.strip()
    if raw.endswith("Z"):
        raw = raw[:-1] + "+00:00"
    try:
        return as_utc(datetime.fromisoformat(raw))
    except ValueError:
        return None


def dump_json(data: dict[str, Any], *, indent: int | None = None) -> str:
    if indent is None:
        return json.dumps(data, ensure_ascii=True, separators=(",", ":"))
    return json.dumps(data, ensure_ascii=True, indent=indent)


def render_template(template: str, **values: object) -> str:
    """Substitute ``{name}`` placeholders without ``str.format`` brace rules.

    Message templates are operator-editable, so unknown placeholders and stray
    braces are left as-is instead of raising.
    """
    out = template or ""
    for key, value in values.items():
        out = out.replace("{" + key + "}", str(value))
    return out


def normalize_letter(raw: str | None) -> str | None:
    letter = (raw or "").strip().upper()
    return letter if letter in LETTERS else None
