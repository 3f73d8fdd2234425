"""Redaction helpers to mask common Turkish PII patterns in OCR text."""

from __future__ import annotations

import os
import re
from typing import Pattern

REDACTION_PATTERNS: dict[str, Pattern[str]] = {
    "email": re.compile(r"[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}", re.IGNORECASE),
    "iban": re.compile(r"\bTR\d{2}(?:\s?\d{4}){5}\s?\d{2}\b", re.IGNORECASE),
    "national_id": re.compile(r"\b[1-9]\d{10}\b"),
    "phone": re.compile(r"(?:\+90[-.\s]?|\b0)?\(?5\d{2}\)?[-.\s]?\d{3}[-.\s]?\d{2}[-.\s]?\d{2}\b"),
}

REDACTION_TOKENS = {
    "email": "[REDACTED_EMAIL]",
    "iban": "[REDACTED_IBAN]",
    "national_id": "[REDACTED_TCKN]",
    "phone": "[REDACTED_PHONE]",
}


def redaction_enabled() -> bool:
    return os.getenv("REDACT_PII", "true").lower() in {"1", "true", "yes"}


def redact_text(value: str, *, enabled: bool | None = None) -> str:
    """Redact PII from text if enabled."""
    if enabled is None:
        enabled = redaction_enabled()

    if not enabled or not value:
        return value

    redacted = value
    for key, pattern in REDACTION_PATTERNS.items():
        token = REDACTION_TOKENS[key]
        redacted = pattern.sub(token, redacted)
    return redacted
