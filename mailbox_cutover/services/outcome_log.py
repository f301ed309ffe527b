"""
Outcome Log for Cutover Runs.

Every run appends one entry per record outcome followed by its
completion event to a JSONL file. Entries form a SHA-256 hash chain, so an
entry edited or removed after the fact breaks verification.
"""

import hashlib
import json
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional

from ..models import RunSummary

GENESIS_HASH = "0" * 64


@dataclass
class OutcomeLogEntry:
    """Single outcome log entry."""

    event: str
    timestamp: float
    tenant_id: str
    details: Dict[str, Any]
    previous_hash: str
    hash: str


def _entry_hash(entry: Dict[str, Any]) -> str:
    payload = {k: v for k, v in entry.items() if k != "hash"}
    return hashlib.sha256(json.dumps(payload, sort_keys=True).encode()).hexdigest()


class OutcomeLog:
    """
    Hash-chained JSONL log of cutover outcomes.

    The first line of a new log is a genesis entry whose previous_hash is
    64 zeros.
    """

    def __init__(self, log_path: Path) -> None:
        self.log_path = log_path
        self._last_hash: Optional[str] = None
        if not self.log_path.exists():
            self.log_path.parent.mkdir(parents=True, exist_ok=True)
            self._write(self._make_entry("outcome_log_initialized", "system", {}, GENESIS_HASH))

    def _make_entry(
        self, event: str, tenant_id: str, details: Dict[str, Any], previous_hash: str
    ) -> Dict[str, Any]:
        entry = {
            "event": event,
            "timestamp": time.time(),
            "tenant_id": tenant_id,
            "details": details,
            "previous_hash": previous_hash,
        }
        entry["hash"] = _entry_hash(entry)
        return entry

    def _write(self, entry: Dict[str, Any]) -> None:
        with open(self.log_path, "a") as f:
            f.write(json.dumps(entry) + "\n")
        self._last_hash = entry["hash"]

    def _read_lines(self) -> List[Dict[str, Any]]:
        with open(self.log_path) as f:
            return [json.loads(line) for line in f if line.strip()]

    def append(self, event: str, tenant_id: str, details: Dict[str, Any]) -> str:
        """Append an entry and return its hash."""
        if self._last_hash is None:
            lines = self._read_lines()
            self._last_hash = lines[-1]["hash"] if lines else GENESIS_HASH
        entry = self._make_entry(event, tenant_id, details, self._last_hash)
        self._write(entry)
        return entry["hash"]

    def record_run(self, summary: RunSummary, tenant_id: str) -> int:
        """
        Append every outcome of a run followed by the run summary.

        Returns:
            Number of outcome entries written
        """
        for outcome in summary.outcomes:
            self.append("record_outcome", tenant_id, outcome.to_dict())
        self.append("run_completed", tenant_id, summary.to_dict())
        return len(summary.outcomes)

    def verify_integrity(self) -> bool:
        """
        Verify the hash chain.

        Raises:
            ValueError: If an entry was modified or removed
        """
        previous_hash = GENESIS_HASH
        for i, entry in enumerate(self._read_lines()):
            if _entry_hash(entry) != entry["hash"]:
                raise ValueError(f"Outcome log entry {i} hash mismatch")
            if entry["previous_hash"] != previous_hash:
                raise ValueError(f"Outcome log entry {i} breaks the hash chain")
            previous_hash = entry["hash"]
        return True

    def get_entries(self, event: Optional[str] = None) -> List[OutcomeLogEntry]:
        """Get log entries, optionally filtered by event name."""
        return [
            OutcomeLogEntry(**entry)
            for entry in self._read_lines()
            if event is None or entry["event"] == event
        ]
