"""
Pre-change address snapshots.

Every identity looked up during a run gets one row with its proxy addresses
as they were before reconciliation, so a cutover can be rolled back by hand.
Rows are buffered and written to CSV on ``flush()``.
"""

import csv
import logging
import threading
from datetime import datetime
from pathlib import Path
from typing import Iterable, List, Optional, Tuple

logger = logging.getLogger(__name__)

SNAPSHOT_COLUMNS = ("Identity", "Addresses")
ERROR_PREFIX = "ERROR: "


def snapshot_filename(domain: str, target: str, timestamp: Optional[datetime] = None) -> str:
    """Deterministic snapshot file name for a domain, target and time."""
    timestamp = timestamp or datetime.now()
    safe_domain = (domain or "unknown-domain").strip().lower().replace("/", "_")
    return f"{safe_domain}-{target.lower()}-proxy-addresses-{timestamp:%Y%m%d-%H%M%S}.csv"


class AuditRecorder:
    """Collects (identity, addresses) rows and persists them to a CSV file."""

    def __init__(self, output_path: Path) -> None:
        self.output_path = output_path
        self._pending: List[Tuple[str, str]] = []
        self._lock = threading.Lock()
        self._persisted = 0

    @property
    def persisted_count(self) -> int:
        return self._persisted

    @property
    def pending(self) -> List[Tuple[str, str]]:
        with self._lock:
            return list(self._pending)

    def snapshot(self, identity: str, existing_addresses: Iterable[str]) -> None:
        """Record an identity's addresses before anything changes."""
        row = (identity, ";".join(existing_addresses))
        with self._lock:
            self._pending.append(row)

    def snapshot_error(self, identity: str, error: object) -> None:
        """Record a placeholder row for an identity whose addresses could not be read."""
        with self._lock:
            self._pending.append((identity, f"{ERROR_PREFIX}{error}"))

    def flush(self) -> int:
        """
        Write pending rows to the snapshot CSV.

        Returns:
            Number of rows persisted by this call
        """
        with self._lock:
            rows, self._pending = self._pending, []
            if not rows:
                return 0

            self.output_path.parent.mkdir(parents=True, exist_ok=True)
            write_header = not self.output_path.exists()
            with open(self.output_path, "a", newline="", encoding="utf-8") as f:
                writer = csv.writer(f)
                if write_header:
                    writer.writerow(SNAPSHOT_COLUMNS)
                writer.writerows(rows)
            self._persisted += len(rows)

        logger.info(f"Wrote {len(rows)} address snapshot rows to {self.output_path}")
        return len(rows)


def read_snapshot(path: Path) -> List[Tuple[str, List[str]]]:
    """
    Read a snapshot CSV back into (identity, addresses) pairs.

    Error placeholder rows are skipped.
    """
    snapshots = []
    with open(path, newline="", encoding="utf-8-sig") as f:
        for row in csv.DictReader(f):
            identity = (row.get("Identity") or "").strip()
            addresses = row.get("Addresses") or ""
            if not identity or addresses.startswith(ERROR_PREFIX):
                continue
            snapshots.append((identity, [a for a in addresses.split(";") if a]))
    return snapshots
