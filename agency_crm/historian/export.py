"""Helpers for reading and summarizing the historian ledger."""

from __future__ import annotations

import json
from collections import Counter
from pathlib import Path
from typing import Dict, Iterable, Iterator, List


def load_ledger(path: str | Path) -> Iterable[dict]:
    """Yield parsed JSON objects from a ledger file."""
    ledger_path = Path(path)
    if not ledger_path.exists():
        return []

    def _generator() -> Iterator[dict]:
        with ledger_path.open("r", encoding="utf-8") as handle:
            for line in handle:
                line = line.strip()
                if not line:
                    continue
                yield json.loads(line)

    return _generator()


def summarize(path: str | Path) -> Dict[str, object]:
    """Summarize the ledger contents for quick inspection."""
    scan_events = 0
    forecast_events = 0
    files = set()
    field_hits: Counter[str] = Counter()
    fallback_scans = 0
    sample_forecasts: List[dict] = []

    for entry in load_ledger(path):
        kind = entry.get("kind")
        if kind == "scan":
            scan_events += 1
            filename = entry.get("filename")
            if isinstance(filename, str):
                files.add(filename)
            for key, value in (entry.get("fields") or {}).items():
                if value is not None:
                    field_hits[key] += 1
            if entry.get("policy_number_source") == "customer":
                fallback_scans += 1
        elif kind == "forecast":
            forecast_events += 1
            if len(sample_forecasts) < 10:
                sample_forecasts.append(
                    {
                        "ts": entry.get("ts"),
                        "branch_id": entry.get("branch_id"),
                        "user_id": entry.get("user_id"),
                        "forecasted_amount": entry.get("forecasted_amount"),
                        "confidence": entry.get("confidence"),
                    }
                )

    return {
        "scan_events": scan_events,
        "files": sorted(files),
        "field_hits": dict(field_hits),
        "customer_number_fallbacks": fallback_scans,
        "forecast_events": forecast_events,
        "sample_forecasts": sample_forecasts,
    }


__all__ = ["load_ledger", "summarize"]
