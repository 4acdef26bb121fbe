import re
from datetime import datetime, timezone

from . import config

# One entry per supported market; PHONE_LOCALE picks the active one.
PHONE_FORMATS = {
    "IN": (re.compile(r"^\+91[6-9]\d{9}$"), "+91 followed by a 10 digit mobile number starting with 6-9"),
}


def phone_format(locale: str | None = None):
    key = (locale or config.PHONE_LOCALE).upper()
    try:
        return PHONE_FORMATS[key]
    except KeyError:
        raise ValueError(f"No phone format configured for locale {key}")


def normalize_phone(value: str, locale: str | None = None) -> str:
    pattern, hint = phone_format(locale)
    cleaned = re.sub(r"[\s\-()]", "", value or "")
    if not pattern.match(cleaned):
        raise ValueError(f"Phone number must be {hint}")
    return cleaned


def person_name(value: str) -> str:
    name = " ".join((value or "").split())
    if not 2 <= len(name) <= 100:
        raise ValueError("Name must be between 2 and 100 characters")
    if not all(ch.isalpha() or ch.isspace() for ch in name):
        raise ValueError("Name may only contain letters and spaces")
    return name


def bounded_text(value: str, min_len: int, max_len: int, label: str) -> str:
    text = (value or "").strip()
    if not min_len <= len(text) <= max_len:
        raise ValueError(f"{label} must be between {min_len} and {max_len} characters")
    return text


def as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
