"""Append-only JSONL ledger of scan and forecast events."""

from __future__ import annotations

import json
import logging
import threading
from pathlib import Path
from typing import Any, List, Mapping

from pydantic import BaseModel

from .schema import LedgerConfig

LOGGER = logging.getLogger(__name__)

_BYTES_IN_MB = 1024 * 1024


class Ledger:
    """Write events to a JSONL file, rolling it over to ``<stem>.rN<suffix>`` when full."""

    def __init__(self, cfg: LedgerConfig | None = None) -> None:
        self.cfg = cfg or LedgerConfig()
        self.path = Path(self.cfg.path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()

    def rotated_paths(self) -> List[Path]:
        """Return rolled-over files, oldest first."""
        pattern = f"{self.path.stem}.r*{self.path.suffix}"
        rotated = []
        for candidate in self.path.parent.glob(pattern):
            index = candidate.stem.rsplit(".r", 1)[-1]
            if index.isdigit():
                rotated.append((int(index), candidate))
        return [candidate for _, candidate in sorted(rotated)]

    def _rotate(self) -> None:
        max_bytes = self.cfg.rotate_mb * _BYTES_IN_MB
        if max_bytes <= 0 or not self.path.exists():
            return
        if self.path.stat().st_size < max_bytes:
            return

        index = len(self.rotated_paths()) + 1
        target = self.path.with_name(f"{self.path.stem}.r{index}{self.path.suffix}")
        while target.exists():
            index += 1
            target = self.path.with_name(f"{self.path.stem}.r{index}{self.path.suffix}")
        self.path.rename(target)
        LOGGER.info("Rotated historian ledger to %s", target)

    def append(self, event: Mapping[str, Any] | BaseModel) -> None:
        """Append an event model or JSON serializable mapping."""
        payload = event.model_dump(mode="json") if isinstance(event, BaseModel) else dict(event)
        line = json.dumps(payload, ensure_ascii=False)
        with self._lock:
            self._rotate()
            with self.path.open("a", encoding="utf-8") as handle:
                handle.write(line + "\n")


__all__ = ["Ledger"]
