"""Append-only audit trail for detach/burn/squash of pinned beads.

Stored as JSON Lines at <work_dir>/.beads/audit.log.
"""

from __future__ import annotations

import json
import logging
import threading
from dataclasses import asdict, dataclass
from pathlib import Path

from gastown.beads.errors import LoggingError

logger = logging.getLogger(__name__)

AUDIT_OPERATIONS = frozenset({"detach", "burn", "squash"})

# Omitted from the JSON line when empty.
_OPTIONAL_KEYS = ("detached_by", "reason", "previous_state")


@dataclass(frozen=True)
class AuditEntry:
    """One detach-style operation on a pinned bead."""

    timestamp: str
    operation: str
    pinned_bead_id: str
    detached_molecule: str
    detached_by: str = ""
    reason: str = ""
    previous_state: str = ""

    def __post_init__(self) -> None:
        if self.operation not in AUDIT_OPERATIONS:
            raise ValueError(
                f"unknown audit operation {self.operation!r} "
                f"(expected one of {sorted(AUDIT_OPERATIONS)})"
            )

    def to_json(self) -> str:
        data = asdict(self)
        for key in _OPTIONAL_KEYS:
            if not data[key]:
                del data[key]
        return json.dumps(data, ensure_ascii=False, separators=(",", ":"))

    @classmethod
    def from_json(cls, line: str) -> AuditEntry:
        data = json.loads(line)
        return cls(
            timestamp=data.get("timestamp", ""),
            operation=data.get("operation", ""),
            pinned_bead_id=data.get("pinned_bead_id", ""),
            detached_molecule=data.get("detached_molecule", ""),
            detached_by=data.get("detached_by", ""),
            reason=data.get("reason", ""),
            previous_state=data.get("previous_state", ""),
        )


class AuditTrail:
    """Appends AuditEntry lines to a workspace's audit log. Never rewrites."""

    def __init__(
        self,
        work_dir: Path,
        audit_dir: str = ".beads",
        filename: str = "audit.log",
    ) -> None:
        self.work_dir = Path(work_dir)
        self.path = self.work_dir / audit_dir / filename
        self._lock = threading.Lock()

    def append(self, entry: AuditEntry) -> None:
        """Append one entry. Raises LoggingError if the log can't be written."""
        line = entry.to_json() + "\n"
        with self._lock:
            try:
                self.path.parent.mkdir(parents=True, exist_ok=True)
                with self.path.open("a", encoding="utf-8") as f:
                    f.write(line)
            except OSError as e:
                raise LoggingError(f"writing audit entry to {self.path}: {e}") from e
        logger.debug(
            "Audit: %s %s (molecule %s)",
            entry.operation,
            entry.pinned_bead_id,
            entry.detached_molecule,
        )

    def read(self) -> list[AuditEntry]:
        """All entries in append order. Missing log reads as empty.

        Lines that are torn or carry an unknown operation are skipped.
        """
        if not self.path.exists():
            return []
        entries = []
        for lineno, line in enumerate(self.path.read_text(encoding="utf-8").splitlines(), 1):
            if not line.strip():
                continue
            try:
                entries.append(AuditEntry.from_json(line))
            except (ValueError, TypeError, AttributeError) as e:
                logger.warning("Skipping bad audit line %s:%d: %s", self.path, lineno, e)
        return entries
