"""Historian package for ledgering scans and forecasts."""

from .ledger import Ledger
from .schema import (
    ForecastEvent,
    LedgerConfig,
    Marker,
    ScanEvent,
    ScanFields,
    run_id,
    tz_now,
)

__all__ = [
    "Ledger",
    "ForecastEvent",
    "LedgerConfig",
    "Marker",
    "ScanEvent",
    "ScanFields",
    "run_id",
    "tz_now",
]
