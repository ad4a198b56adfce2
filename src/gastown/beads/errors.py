"""Error taxonomy for the beads wrapper and the attachment lifecycle."""

from __future__ import annotations


class BeadsError(Exception):
    """Base class for every error raised by gastown.beads."""


class NotInstalledError(BeadsError):
    def __init__(self, bd_path: str = "bd") -> None:
        super().__init__(f"{bd_path} not installed: run 'pip install beads-cli'")


class NotARepoError(BeadsError):
    def __init__(self) -> None:
        super().__init__("not a beads repository (no .beads directory found)")


class SyncConflictError(BeadsError):
    def __init__(self, detail: str = "") -> None:
        super().__init__(f"beads sync conflict: {detail}" if detail else "beads sync conflict")


class NotFoundError(BeadsError):
    def __init__(self, bead_id: str = "") -> None:
        self.bead_id = bead_id
        super().__init__(f"issue not found: {bead_id}" if bead_id else "issue not found")


class InvalidStateError(BeadsError):
    """A transition was attempted on a bead in the wrong status."""

    def __init__(self, bead_id: str, status: str) -> None:
        self.bead_id = bead_id
        self.status = status
        super().__init__(f"issue {bead_id} is not pinned (status: {status})")


class PersistenceError(BeadsError):
    """Writing a bead failed. The collaborator's error is chained as __cause__."""

    def __init__(self, operation: str, bead_id: str, detail: str) -> None:
        self.operation = operation
        self.bead_id = bead_id
        super().__init__(f"{operation} {bead_id}: {detail}")


class CommandError(BeadsError):
    """`bd` exited non-zero for a reason not covered above."""

    def __init__(self, args: list[str], stderr: str, returncode: int | None = None) -> None:
        self.args_list = list(args)
        self.stderr = stderr
        self.returncode = returncode
        detail = stderr or f"exit status {returncode}"
        super().__init__(f"bd {' '.join(args)}: {detail}")


class LoggingError(BeadsError):
    """Appending to the audit trail or event log failed."""
