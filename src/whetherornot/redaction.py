"""Scrub the OpenWeatherMap ``appid`` and other secrets from logs and journal records."""

from __future__ import annotations

import re
from collections.abc import Mapping
from typing import Any

REDACTED = "[REDACTED]"

# Compared after lower-casing and mapping "-" to "_".
SECRET_KEYS = frozenset(
    {
        "appid",
        "api_key",
        "apikey",
        "openweather_api_key",
        "authorization",
        "token",
        "secret",
        "password",
    }
)

_QUERY_SECRET_RE = re.compile(r"(?i)\b(appid|api[_-]?key|token|secret|password)=([^&\s\"',;]+)")
_AUTH_HEADER_RE = re.compile(r"(?i)\b(authorization)\s*:\s*(?:bearer\s+)?[^\s,;]+")
_BEARER_RE = re.compile(r"(?i)\bbearer\s+[\w\-.~+/]+=*")


def is_secret_key(key: Any) -> bool:
    return str(key).strip().lower().replace("-", "_") in SECRET_KEYS


def sanitize_text(text: str) -> str:
    """Redact secrets in free text, request URLs and header dumps."""
    text = _AUTH_HEADER_RE.sub(lambda m: f"{m.group(1)}: {REDACTED}", text)
    text = _BEARER_RE.sub(f"Bearer {REDACTED}", text)
    return _QUERY_SECRET_RE.sub(lambda m: f"{m.group(1)}={REDACTED}", text)


def sanitize_for_logging(value: Any) -> Any:
    """Return a copy of ``value`` with secret-named keys and inline secrets redacted."""
    if isinstance(value, Mapping):
        return {
            key: REDACTED if is_secret_key(key) else sanitize_for_logging(child)
            for key, child in value.items()
        }
    if isinstance(value, list):
        return [sanitize_for_logging(item) for item in value]
    if isinstance(value, tuple):
        return tuple(sanitize_for_logging(item) for item in value)
    if isinstance(value, str):
        return sanitize_text(value)
    return value
