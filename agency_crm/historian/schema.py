"""Schema definitions for the historian ledger."""

from __future__ import annotations

import os
from datetime import datetime
from pathlib import Path
from typing import Optional
from uuid import uuid4
from zoneinfo import ZoneInfo

from pydantic import BaseModel, Field

from ..core.env import get_env_int

_IST_ZONE = ZoneInfo("Europe/Istanbul")


def run_id() -> str:
    """Return a new opaque run identifier."""
    return uuid4().hex


def tz_now() -> str:
    """Return the current timestamp in the Istanbul timezone."""
    return datetime.now(_IST_ZONE).isoformat()


class Marker(BaseModel):
    """Marker attached to an event for additional context."""

    type: str
    text: str


class ScanFields(BaseModel):
    """Fields recovered from a scanned document."""

    policy_number: Optional[str] = None
    amount: Optional[float] = None
    customer_name: Optional[str] = None
    plate_number: Optional[str] = None


class ScanEvent(BaseModel):
    """Event recorded after a document scan."""

    kind: str = Field(default="scan", frozen=True)
    ts: str = Field(default_factory=tz_now)
    run: str = Field(default_factory=run_id)
    filename: str
    content_type: Optional[str] = None
    text_chars: int
    duration_ms: int
    fields: ScanFields = Field(default_factory=ScanFields)
    policy_number_source: Optional[str] = None
    preview: str = ""
    markers: list[Marker] = Field(default_factory=list)


class ForecastEvent(BaseModel):
    """Event recorded after a forecast request."""

    kind: str = Field(default="forecast", frozen=True)
    ts: str = Field(default_factory=tz_now)
    run: str = Field(default_factory=run_id)
    branch_id: Optional[str] = None
    user_id: Optional[str] = None
    months: int
    forecasted_amount: float
    confidence: str
    growth_rate: int
    latency_ms: int
    markers: list[Marker] = Field(default_factory=list)


def _ledger_path_from_env() -> Path:
    value = os.getenv("HIST_LEDGER", "data/historian/ledger.jsonl")
    return Path(value)


def _rotate_mb_from_env() -> int:
    return get_env_int("HIST_ROTATE_MB", 10)


class LedgerConfig(BaseModel):
    """Runtime configuration for the ledger."""

    path: Path = Field(default_factory=_ledger_path_from_env)
    rotate_mb: int = Field(default_factory=_rotate_mb_from_env)


__all__ = [
    "ForecastEvent",
    "LedgerConfig",
    "Marker",
    "ScanEvent",
    "ScanFields",
    "run_id",
    "tz_now",
]
