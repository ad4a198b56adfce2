"""Attach/detach molecules to pinned beads.

A pinned bead is a durable slot. A molecule is attached by writing an
attachment field block at the head of the bead's description and detached
by stripping that block again; all other description text is preserved.

Detaching appends an AuditEntry. A failed audit append never fails the
detach: it is logged and kept in AttachmentManager.soft_failures.

Fetch-modify-persist is not transactional. Concurrent writers of the same
bead race and the last description written wins.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Protocol, runtime_checkable

from gastown.beads.audit import AUDIT_OPERATIONS, AuditEntry, AuditTrail
from gastown.beads.errors import (
    BeadsError,
    InvalidStateError,
    LoggingError,
    NotFoundError,
    PersistenceError,
)
from gastown.beads.fields import (
    clean_field_value,
    parse_attachment_fields,
    set_attachment_fields,
)
from gastown.beads.models import STATUS_PINNED, Issue, UpdateOptions
from gastown.clock import Clock, format_timestamp, utc_now

logger = logging.getLogger(__name__)


@runtime_checkable
class RecordStore(Protocol):
    """The subset of the bd wrapper that attachments need."""

    def show(self, bead_id: str) -> Issue:
        """Return the bead or raise NotFoundError."""
        ...

    def update(self, bead_id: str, opts: UpdateOptions) -> None: ...


@dataclass
class DetachOptions:
    operation: str = "detach"  # "detach", "burn" or "squash"
    agent: str = ""  # who is performing the detach
    reason: str = ""

    def __post_init__(self) -> None:
        if not self.operation:
            self.operation = "detach"
        if self.operation not in AUDIT_OPERATIONS:
            raise ValueError(f"unknown detach operation {self.operation!r}")


class AttachmentManager:
    """Attachment lifecycle for pinned beads in one record store."""

    def __init__(
        self,
        store: RecordStore,
        audit: AuditTrail | None = None,
        clock: Clock = utc_now,
    ) -> None:
        self.store = store
        self.audit = audit
        self.clock = clock
        self.soft_failures: list[LoggingError] = []

    def _fetch(self, bead_id: str) -> Issue:
        """Read a bead. Store errors keep their class, with the bead id prefixed."""
        try:
            return self.store.show(bead_id)
        except NotFoundError:
            raise
        except BeadsError as e:
            e.args = (f"fetching pinned bead {bead_id}: {e}",) + e.args[1:]
            raise

    def _persist(self, bead_id: str, description: str) -> None:
        try:
            self.store.update(bead_id, UpdateOptions(description=description))
        except BeadsError as e:
            raise PersistenceError("updating pinned bead", bead_id, str(e)) from e

    # ── Transitions ───────────────────────────────────────────

    def attach(self, pinned_id: str, molecule_id: str, args: str | None = None) -> Issue:
        """Attach molecule_id to a pinned bead and return the bead as re-read.

        Re-attaching overwrites the previous molecule and timestamp.
        Raises ValueError if molecule_id or args spans more than one line.
        """
        molecule_id = clean_field_value("attached_molecule", molecule_id)
        if args is not None:
            args = clean_field_value("attached_args", args)

        issue = self._fetch(pinned_id)
        if issue.status != STATUS_PINNED:
            raise InvalidStateError(pinned_id, issue.status)

        fields = {
            "attached_molecule": molecule_id,
            "attached_at": format_timestamp(self.clock()),
        }
        if args:
            fields["attached_args"] = args

        self._persist(pinned_id, set_attachment_fields(issue, fields))
        logger.info("Attached %s to %s", molecule_id, pinned_id)
        return self._fetch(pinned_id)

    def detach(self, pinned_id: str, options: DetachOptions | None = None) -> Issue:
        """Remove the attachment from a bead, recording an audit entry.

        A bead with nothing attached is returned as-is and nothing is logged.
        """
        options = options or DetachOptions()
        issue = self._fetch(pinned_id)

        attachment = parse_attachment_fields(issue)
        if attachment is None:
            logger.debug("Nothing attached to %s", pinned_id)
            return issue

        entry = AuditEntry(
            timestamp=format_timestamp(self.clock()),
            operation=options.operation,
            pinned_bead_id=pinned_id,
            detached_molecule=attachment.get("attached_molecule", ""),
            detached_by=options.agent,
            reason=options.reason,
            previous_state=issue.status,
        )
        self._record(entry)

        self._persist(pinned_id, set_attachment_fields(issue, None))
        logger.info(
            "Detached %s from %s (%s)",
            entry.detached_molecule or "(unknown molecule)",
            pinned_id,
            entry.operation,
        )
        return self._fetch(pinned_id)

    def get_attachment(self, pinned_id: str) -> dict[str, str] | None:
        """Attachment fields of a bead, or None if nothing is attached."""
        return parse_attachment_fields(self._fetch(pinned_id))

    def _record(self, entry: AuditEntry) -> None:
        if self.audit is None:
            return
        try:
            self.audit.append(entry)
        except LoggingError as e:
            logger.warning("Failed to write audit log: %s", e)
            self.soft_failures.append(e)
