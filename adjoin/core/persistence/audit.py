"""
Audit ledger — append-only record of join and verify runs.

Each run writes one NDJSON line to ``<state dir>/audit.ndjson``.  The
configuration files a join leaves behind say *what* the host looks like;
the ledger says which backend got it there and what verification
concluded afterwards.

Entries are never modified or deleted.  Failing to write the ledger is
logged, never fatal: the join itself already happened.
"""

from __future__ import annotations

import json
import logging
import os
import uuid
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

DEFAULT_STATE_DIR = Path("/var/lib/adjoin")
DEFAULT_AUDIT_FILE = "audit.ndjson"


def default_state_dir() -> Path:
    """State directory: $ADJOIN_STATE_DIR or /var/lib/adjoin."""
    env = os.environ.get("ADJOIN_STATE_DIR")
    return Path(env) if env else DEFAULT_STATE_DIR


def generate_run_id(kind: str) -> str:
    """Unique identifier for one run, e.g. ``join-20240101-120000-a1b2c3``."""
    now = datetime.now(UTC).strftime("%Y%m%d-%H%M%S")
    return f"{kind}-{now}-{uuid.uuid4().hex[:6]}"


class AuditEntry(BaseModel):
    """A single audit log entry."""

    timestamp: str = Field(default_factory=lambda: datetime.now(UTC).isoformat())
    run_id: str = ""
    operation: str = ""            # join | verify

    domain: str = ""
    host: str = ""
    backend: str | None = None

    # Results
    status: str = ""               # joined, failed, success, partial, failure
    detail: str = ""
    duration_ms: int = 0

    # Verification counts (verify runs only)
    passed: int = 0
    failed: int = 0
    skipped: int = 0

    warnings: list[str] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)

    context: dict[str, Any] = Field(default_factory=dict)


class AuditWriter:
    """Append-only audit ledger writer."""

    def __init__(self, path: Path | None = None, state_dir: Path | None = None):
        if path is not None:
            self._path = path
        else:
            self._path = (state_dir or default_state_dir()) / DEFAULT_AUDIT_FILE

    @property
    def path(self) -> Path:
        return self._path

    def write(self, entry: AuditEntry) -> bool:
        """Append an audit entry to the ledger.

        Returns:
            True if the entry was written.
        """
        data = entry.model_dump(mode="json")
        line = json.dumps(data, ensure_ascii=False) + "\n"

        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            with self._path.open("a", encoding="utf-8") as f:
                f.write(line)
        except OSError as e:
            logger.error("Failed to write audit entry: %s", e)
            return False

        logger.debug("Audit entry written: %s/%s", entry.operation, entry.run_id)
        return True

    def read_all(self) -> list[AuditEntry]:
        """Read all entries from the ledger, oldest first."""
        if not self._path.is_file():
            return []

        entries = []
        try:
            with self._path.open("r", encoding="utf-8") as f:
                for line_num, line in enumerate(f, start=1):
                    line = line.strip()
                    if not line:
                        continue
                    try:
                        entries.append(AuditEntry.model_validate(json.loads(line)))
                    except ValueError as e:
                        logger.warning("Skipping corrupt audit entry at line %d: %s", line_num, e)
        except OSError as e:
            logger.error("Failed to read audit ledger: %s", e)

        return entries

    def last(self, operation: str | None = None) -> AuditEntry | None:
        """Most recent entry, optionally of one operation kind."""
        for entry in reversed(self.read_all()):
            if operation is None or entry.operation == operation:
                return entry
        return None
