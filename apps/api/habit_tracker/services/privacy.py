from __future__ import annotations

import re
from typing import Any

from habit_tracker.core.config import settings

_MAX_TEXT = 1200
_MAX_KEY = 128

# Users carry an email; habit names are free text and may hold phone numbers.
_PII_RULES: tuple[tuple[re.Pattern[str], str], ...] = (
    (re.compile(r"\b[\w.%+\-]+@[\w\-]+(?:\.[\w\-]+)*\.[A-Za-z]{2,}\b"), "[EMAIL]"),
    (
        re.compile(r"(?<![\d\-])(?:\+\d{1,3}[\s.\-]?)?\(?\d{3}\)?[\s.\-]\d{3}[\s.\-]\d{4}(?![\d\-])"),
        "[PHONE]",
    ),
)

# Storage requests authenticate with the service key in headers and query
# strings, so tracebacks from httpx can echo it.
_SECRET_RULES: tuple[tuple[re.Pattern[str], str], ...] = (
    (re.compile(r"(?i)\bBearer\s+[\w\-.~+/]+=*"), "Bearer [REDACTED_TOKEN]"),
    (re.compile(r"\b[\w\-]{20,}\.[\w\-]{20,}\.[\w\-]{20,}\b"), "[REDACTED_JWT]"),
    (re.compile(r"(?i)\b(apikey|api_key|service_role_key)=([^&\s]+)"), r"\1=[REDACTED_KEY]"),
    (re.compile(r"\bsb_(?:secret|publishable)_[\w\-]{16,}\b"), "[REDACTED_SUPABASE_KEY]"),
)


def _apply(rules: tuple[tuple[re.Pattern[str], str], ...], text: str) -> str:
    for pattern, replacement in rules:
        text = pattern.sub(replacement, text)
    return text


def mask_pii_text(text: str) -> str:
    return _apply(_PII_RULES, text) if text else text


def redact_secrets_text(text: str) -> str:
    if not text:
        return text
    key = settings.supabase_service_role_key
    if key and len(key) >= 8:
        text = text.replace(key, "[REDACTED_SERVICE_KEY]")
    return _apply(_SECRET_RULES, text)


def sanitize_for_log(value: Any) -> Any:
    """Return a JSON-safe copy of ``value`` fit for the ``system_errors`` table."""
    if value is None or isinstance(value, (bool, int, float)):
        return value
    if isinstance(value, str):
        return redact_secrets_text(mask_pii_text(value))[:_MAX_TEXT]
    if isinstance(value, (list, tuple)):
        return [sanitize_for_log(v) for v in value]
    if isinstance(value, dict):
        return {str(k)[:_MAX_KEY]: sanitize_for_log(v) for k, v in value.items()}
    return sanitize_for_log(str(value))
