"""bd CLI wrapper, the record store behind pinned-bead attachments.

Every call shells out to `bd ... --json` in the configured working directory
and maps its failures onto gastown.beads.errors.
"""

from __future__ import annotations

import json
import logging
import subprocess
from pathlib import Path
from typing import Any

from gastown.beads.errors import (
    BeadsError,
    CommandError,
    NotARepoError,
    NotFoundError,
    NotInstalledError,
    SyncConflictError,
)
from gastown.beads.models import (
    STATUS_PINNED,
    ClearMailResult,
    CreateOptions,
    Issue,
    ListOptions,
    SyncStatus,
    UpdateOptions,
    is_set,
)

logger = logging.getLogger(__name__)


def handoff_bead_title(role: str) -> str:
    """Well-known title of a role's handoff bead."""
    return f"{role} Handoff"


class Beads:
    """Wraps bd CLI operations for one working directory."""

    def __init__(self, work_dir: Path | str, bd_path: str = "bd", timeout: int = 30) -> None:
        self.work_dir = Path(work_dir)
        self.bd_path = bd_path
        self.timeout = timeout

    # ── Subprocess plumbing ───────────────────────────────────

    def _run(self, *args: str) -> str:
        """Run bd with args and return stdout."""
        cmd = [self.bd_path, *args]
        logger.debug("Running: %s", " ".join(cmd))
        try:
            result = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                cwd=self.work_dir,
                timeout=self.timeout,
            )
        except FileNotFoundError as e:
            raise NotInstalledError(self.bd_path) from e
        except subprocess.TimeoutExpired as e:
            raise CommandError(list(args), f"timed out after {self.timeout}s") from e

        if result.returncode != 0:
            raise self._wrap_error(result.stderr, list(args), result.returncode)
        return result.stdout

    def _wrap_error(self, stderr: str, args: list[str], returncode: int) -> BeadsError:
        stderr = stderr.strip()
        logger.error("bd %s failed (rc=%d): %s", " ".join(args), returncode, stderr)

        if (
            "not a beads repository" in stderr
            or "No .beads directory" in stderr
            or (".beads" in stderr and "not found" in stderr)
        ):
            return NotARepoError()
        if "sync conflict" in stderr or "CONFLICT" in stderr:
            return SyncConflictError(stderr)
        if "not found" in stderr or "Issue not found" in stderr:
            bead_id = args[1] if args[0] in ("show", "update", "close") and len(args) > 1 else ""
            return NotFoundError(bead_id)
        return CommandError(args, stderr, returncode)

    def _run_json(self, what: str, *args: str) -> Any:
        out = self._run(*args)
        try:
            return json.loads(out)
        except json.JSONDecodeError as e:
            raise CommandError(list(args), f"parsing bd {what} output: {e}") from e

    def _issues(self, what: str, *args: str) -> list[Issue]:
        data = self._run_json(what, *args)
        return [Issue.from_dict(d) for d in data or []]

    # ── Queries ───────────────────────────────────────────────

    def list(self, opts: ListOptions | None = None) -> list[Issue]:
        opts = opts or ListOptions()
        args = ["list", "--json"]
        if opts.status:
            args.append(f"--status={opts.status}")
        if opts.type:
            args.append(f"--type={opts.type}")
        if opts.priority >= 0:
            args.append(f"--priority={opts.priority}")
        if opts.parent:
            args.append(f"--parent={opts.parent}")
        if opts.assignee:
            args.append(f"--assignee={opts.assignee}")
        if opts.no_assignee:
            args.append("--no-assignee")
        return self._issues("list", *args)

    def list_by_assignee(self, assignee: str) -> list[Issue]:
        """Open and closed issues for an assignee such as "gastown/Toast"."""
        return self.list(ListOptions(status="all", assignee=assignee))

    def get_assigned_issue(self, assignee: str) -> Issue | None:
        """First open (or in-progress) issue assigned to assignee."""
        issues = self.list(ListOptions(status="open", assignee=assignee))
        if not issues:
            issues = self.list(ListOptions(status="in_progress", assignee=assignee))
        return issues[0] if issues else None

    def ready(self, issue_type: str | None = None) -> list[Issue]:
        """Issues that are ready to work, optionally filtered server-side by type."""
        if issue_type:
            return self._issues("ready", "ready", "--json", "--type", issue_type, "-n", "100")
        return self._issues("ready", "ready", "--json")

    def show(self, bead_id: str) -> Issue:
        # bd show --json returns an array with one element
        issues = self._issues("show", "show", bead_id, "--json")
        if not issues:
            raise NotFoundError(bead_id)
        return issues[0]

    def blocked(self) -> list[Issue]:
        return self._issues("blocked", "blocked", "--json")

    def stats(self) -> str:
        return self._run("stats")

    def is_beads_repo(self) -> bool:
        try:
            self._run("list", "--limit=1")
        except NotARepoError:
            return False
        except BeadsError:
            return True
        return True

    # ── Mutations ─────────────────────────────────────────────

    def create(self, opts: CreateOptions) -> Issue:
        args = ["create", "--json"]
        if opts.title:
            args.append(f"--title={opts.title}")
        if opts.type:
            args.append(f"--type={opts.type}")
        if opts.priority >= 0:
            args.append(f"--priority={opts.priority}")
        if opts.description:
            args.append(f"--description={opts.description}")
        if opts.parent:
            args.append(f"--parent={opts.parent}")
        if opts.actor:
            args.append(f"--actor={opts.actor}")
        return Issue.from_dict(self._run_json("create", *args))

    def update(self, bead_id: str, opts: UpdateOptions) -> None:
        args = ["update", bead_id]
        if is_set(opts.title):
            args.append(f"--title={opts.title}")
        if is_set(opts.status):
            args.append(f"--status={opts.status}")
        if is_set(opts.priority):
            args.append(f"--priority={opts.priority}")
        if is_set(opts.description):
            args.append(f"--description={opts.description}")
        if is_set(opts.assignee):
            args.append(f"--assignee={opts.assignee}")
        # set-labels replaces all, otherwise add/remove
        if opts.set_labels:
            args.extend(f"--set-labels={label}" for label in opts.set_labels)
        else:
            args.extend(f"--add-label={label}" for label in opts.add_labels)
            args.extend(f"--remove-label={label}" for label in opts.remove_labels)
        self._run(*args)

    def close(self, *bead_ids: str, reason: str | None = None) -> None:
        if not bead_ids:
            return
        args = ["close", *bead_ids]
        if reason:
            args.append(f"--reason={reason}")
        self._run(*args)

    def release(self, bead_id: str, reason: str = "") -> None:
        """Move an in_progress issue back to open and clear its assignee.

        Used to recover stuck steps when a worker dies mid-task.
        """
        args = ["update", bead_id, "--status=open", "--assignee="]
        if reason:
            args.append(f"--notes=Released: {reason}")
        self._run(*args)

    def add_dependency(self, issue: str, depends_on: str) -> None:
        self._run("dep", "add", issue, depends_on)

    def remove_dependency(self, issue: str, depends_on: str) -> None:
        self._run("dep", "remove", issue, depends_on)

    # ── Sync ──────────────────────────────────────────────────

    def sync(self) -> None:
        self._run("sync")

    def sync_from_main(self) -> None:
        self._run("sync", "--from-main")

    def sync_status(self) -> SyncStatus:
        try:
            data = self._run_json("sync status", "sync", "--status", "--json")
        except CommandError as e:
            # No sync branch yet
            if "does not exist" in str(e):
                return SyncStatus()
            raise
        return SyncStatus.from_dict(data or {})

    # ── Handoff beads ─────────────────────────────────────────

    def find_handoff_bead(self, role: str) -> Issue | None:
        """Pinned handoff bead for role, or None if there is none yet."""
        title = handoff_bead_title(role)
        for issue in self.list(ListOptions(status=STATUS_PINNED)):
            if issue.title == title:
                return issue
        return None

    def get_or_create_handoff_bead(self, role: str) -> Issue:
        existing = self.find_handoff_bead(role)
        if existing is not None:
            return existing

        issue = self.create(
            CreateOptions(title=handoff_bead_title(role), type="task", priority=2, actor=role)
        )
        self.update(issue.id, UpdateOptions(status=STATUS_PINNED))
        logger.info("Created handoff bead %s for %s", issue.id, role)
        return self.show(issue.id)

    def update_handoff_content(self, role: str, content: str) -> None:
        issue = self.get_or_create_handoff_bead(role)
        self.update(issue.id, UpdateOptions(description=content))

    def clear_handoff_content(self, role: str) -> None:
        issue = self.find_handoff_bead(role)
        if issue is None:
            return
        self.update(issue.id, UpdateOptions(description=""))

    # ── Mail ──────────────────────────────────────────────────

    def clear_mail(self, reason: str) -> ClearMailResult:
        """Close open messages; pinned ones are emptied instead of closed."""
        messages = self.list(ListOptions(status="open", type="message"))
        result = ClearMailResult()

        to_close = [m.id for m in messages if m.status != STATUS_PINNED]
        to_clear = [m for m in messages if m.status == STATUS_PINNED]

        if to_close:
            self.close(*to_close, reason=reason)
            result.closed = len(to_close)

        for issue in to_clear:
            self.update(issue.id, UpdateOptions(description=""))
            result.cleared += 1
        return result

