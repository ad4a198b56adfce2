"""Shared fixtures: an in-memory record store and a fixed clock."""

from __future__ import annotations

import dataclasses
from datetime import datetime, timezone

import pytest

from gastown.beads.errors import BeadsError, NotFoundError
from gastown.beads.models import STATUS_PINNED, Issue, UpdateOptions, is_set

FIXED_NOW = datetime(2026, 1, 2, 3, 4, 5, tzinfo=timezone.utc)
FIXED_TS = "2026-01-02T03:04:05Z"


class FakeStore:
    """Dict-backed stand-in for the bd wrapper."""

    def __init__(self) -> None:
        self.issues: dict[str, Issue] = {}
        self.updates: list[tuple[str, UpdateOptions]] = []
        self.shows = 0
        self.fail_update: BeadsError | None = None

    def add(self, bead_id: str, status: str = STATUS_PINNED, description: str = "") -> Issue:
        issue = Issue(id=bead_id, title=f"{bead_id} title", status=status, description=description)
        self.issues[bead_id] = issue
        return issue

    def show(self, bead_id: str) -> Issue:
        self.shows += 1
        if bead_id not in self.issues:
            raise NotFoundError(bead_id)
        return dataclasses.replace(self.issues[bead_id])

    def update(self, bead_id: str, opts: UpdateOptions) -> None:
        if self.fail_update is not None:
            raise self.fail_update
        if bead_id not in self.issues:
            raise NotFoundError(bead_id)
        self.updates.append((bead_id, opts))
        issue = self.issues[bead_id]
        if is_set(opts.description):
            issue.description = opts.description
        if is_set(opts.status):
            issue.status = opts.status


@pytest.fixture
def fake_store() -> FakeStore:
    return FakeStore()


@pytest.fixture
def fixed_clock():
    return lambda: FIXED_NOW


@pytest.fixture
def clean_env(monkeypatch, tmp_path):
    """No gastown env vars and a cwd with no gastown.toml."""
    monkeypatch.chdir(tmp_path)
    for key in [
        "GT_BD",
        "GT_BD_TIMEOUT",
        "GT_BEADS_DIR",
        "GT_AUDIT_DIR",
        "GT_TOWN_ROOT",
        "BD_ACTOR",
        "GT_LOG_LEVEL",
    ]:
        monkeypatch.delenv(key, raising=False)
    return monkeypatch
