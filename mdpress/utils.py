from __future__ import annotations

import datetime as dt

TRUE_WORDS = frozenset({"1", "true", "yes", "y", "on"})
URL_PREFIXES = ("http://", "https://", "//", "data:")


def as_bool(value: object) -> bool:
    """Config and front-matter flags: YAML booleans, numbers or words."""
    if isinstance(value, str):
        return value.strip().lower() in TRUE_WORDS
    if isinstance(value, (bool, int, float)):
        return bool(value)
    return False


def as_int(value: object, fallback: int) -> int:
    if value is None or value == "":
        return fallback
    try:
        return int(str(value).strip()) if not isinstance(value, (bool, int)) else int(value)
    except ValueError:
        return fallback


def is_external_url(value: str) -> bool:
    return value.startswith(URL_PREFIXES)


def naive_utc(value: dt.datetime) -> dt.datetime:
    # Posts mix aware and naive dates; compare everything as naive UTC.
    if value.utcoffset() is None:
        return value
    return value.astimezone(dt.timezone.utc).replace(tzinfo=None)
