"""Structured transaction log.

Every state change of a sync run (snapshot created, transfer, tag, delete,
abort) is appended as one JSON object per line, so a failed run can be
inspected after the fact. Logging is disabled until a path is set.
"""

import json
import logging
import os
import threading
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

_transaction_log_path: Path | None = None
_lock = threading.Lock()


def set_transaction_log(path: Path | str | None) -> None:
    """Set the transaction log file, or disable logging with None."""
    global _transaction_log_path

    if path is None:
        _transaction_log_path = None
        return

    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    _transaction_log_path = path
    logger.debug("Transaction log: %s", path)


def log_transaction(
    action: str,
    status: str,
    source: str | None = None,
    destination: str | None = None,
    snapshot: str | None = None,
    parent: str | None = None,
    duration_seconds: float | None = None,
    error: str | None = None,
    details: dict[str, Any] | None = None,
) -> None:
    """Append a transaction record. Fields that are None are left out."""
    if _transaction_log_path is None:
        return

    record: dict[str, Any] = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "pid": os.getpid(),
        "action": action,
        "status": status,
    }
    optional = {
        "source": source,
        "destination": destination,
        "snapshot": snapshot,
        "parent": parent,
        "duration_seconds": (
            round(duration_seconds, 3) if duration_seconds is not None else None
        ),
        "error": error,
        "details": details,
    }
    record.update({k: v for k, v in optional.items() if v is not None})

    line = json.dumps(record, default=str)
    with _lock:
        try:
            with open(_transaction_log_path, "a", encoding="utf-8") as f:
                f.write(line + "\n")
        except OSError as e:
            logger.warning("Could not write transaction log: %s", e)


class TransactionContext:
    """Log a started record on entry and a completed or failed one on exit."""

    def __init__(self, action: str, **fields: Any) -> None:
        self.action = action
        self.fields = fields
        self.details: dict[str, Any] = {}
        self._start = 0.0

    def __enter__(self) -> "TransactionContext":
        self._start = time.monotonic()
        log_transaction(action=self.action, status="started", **self.fields)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        duration = time.monotonic() - self._start
        if exc_type is not None:
            status = "failed"
            error = str(exc_val) or exc_type.__name__
        else:
            status = "completed"
            error = None
        log_transaction(
            action=self.action,
            status=status,
            duration_seconds=duration,
            error=error,
            details=self.details or None,
            **self.fields,
        )
        return False

    def set_parent(self, parent: str) -> None:
        self.fields["parent"] = parent

    def add_detail(self, key: str, value: Any) -> None:
        self.details[key] = value


def read_transaction_log(
    path: Path | str | None = None, limit: int | None = None
) -> list[dict[str, Any]]:
    """Read records, most recent first, skipping malformed lines."""
    path = Path(path) if path is not None else _transaction_log_path
    if path is None or not path.exists():
        return []

    records = []
    with open(path, encoding="utf-8") as f:
        for line in f:
            line = line.strip()
            if not line:
                continue
            try:
                records.append(json.loads(line))
            except json.JSONDecodeError:
                continue

    records.reverse()
    if limit is not None:
        records = records[:limit]
    return records


def get_transaction_stats(path: Path | str | None = None) -> dict[str, Any]:
    """Count completed and failed records per action kind."""
    records = read_transaction_log(path)
    buckets = {
        "snapshot": "snapshots",
        "transfer": "transfers",
        "tag": "tags",
        "delete": "deletes",
        "abort": "aborts",
    }
    stats: dict[str, Any] = {"total_records": len(records)}
    for bucket in buckets.values():
        stats[bucket] = {"completed": 0, "failed": 0}

    for record in records:
        bucket = buckets.get(record.get("action", ""))
        status = record.get("status")
        if bucket is None or status not in ("completed", "failed"):
            continue
        stats[bucket][status] += 1

    return stats
