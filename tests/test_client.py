"""Tests for the bd CLI wrapper (mocked subprocess calls)."""

from __future__ import annotations

import json
import subprocess
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from gastown.beads.client import Beads, handoff_bead_title
from gastown.beads.errors import (
    CommandError,
    NotARepoError,
    NotFoundError,
    NotInstalledError,
    SyncConflictError,
)
from gastown.beads.models import CreateOptions, ListOptions, UpdateOptions

RUN = "gastown.beads.client.subprocess.run"


def completed(stdout: object = "", returncode: int = 0, stderr: str = "") -> MagicMock:
    result = MagicMock()
    result.returncode = returncode
    result.stdout = stdout if isinstance(stdout, str) else json.dumps(stdout)
    result.stderr = stderr
    return result


def issue_json(bead_id: str = "gt-1", **fields) -> dict:
    data = {
        "id": bead_id,
        "title": "Mayor Handoff",
        "description": "",
        "status": "pinned",
        "priority": 2,
        "issue_type": "task",
        "created_at": "2026-01-01T00:00:00Z",
        "updated_at": "2026-01-01T00:00:00Z",
    }
    data.update(fields)
    return data


def called_args(mock_run: MagicMock, call: int = -1) -> list[str]:
    return mock_run.call_args_list[call].args[0]


@pytest.fixture
def beads(tmp_path: Path) -> Beads:
    return Beads(tmp_path, timeout=5)


class TestRun:
    def test_runs_in_work_dir(self, beads: Beads, tmp_path: Path):
        with patch(RUN, return_value=completed([issue_json()])) as mock_run:
            beads.show("gt-1")
        kwargs = mock_run.call_args.kwargs
        assert kwargs["cwd"] == tmp_path
        assert kwargs["timeout"] == 5
        assert kwargs["capture_output"] is True

    def test_not_installed(self, beads: Beads):
        with patch(RUN, side_effect=FileNotFoundError):
            with pytest.raises(NotInstalledError):
                beads.show("gt-1")

    def test_timeout(self, beads: Beads):
        with patch(RUN, side_effect=subprocess.TimeoutExpired(["bd"], 5)):
            with pytest.raises(CommandError, match="timed out"):
                beads.stats()

    @pytest.mark.parametrize(
        "stderr,error",
        [
            ("Error: not a beads repository", NotARepoError),
            ("No .beads directory found", NotARepoError),
            ("sync conflict on issues.jsonl", SyncConflictError),
            ("CONFLICT (content)", SyncConflictError),
            ("Error: Issue not found: gt-9", NotFoundError),
            ("something else broke", CommandError),
        ],
    )
    def test_error_mapping(self, beads: Beads, stderr: str, error: type):
        with patch(RUN, return_value=completed(returncode=1, stderr=stderr)):
            with pytest.raises(error):
                beads.show("gt-9")

    def test_not_found_carries_id(self, beads: Beads):
        with patch(RUN, return_value=completed(returncode=1, stderr="issue not found")):
            with pytest.raises(NotFoundError) as exc:
                beads.update("gt-9", UpdateOptions(status="open"))
        assert exc.value.bead_id == "gt-9"

    def test_bad_json(self, beads: Beads):
        with patch(RUN, return_value=completed("not json")):
            with pytest.raises(CommandError, match="parsing bd list output"):
                beads.list()


class TestQueries:
    def test_show(self, beads: Beads):
        data = issue_json(description="attached_molecule: gt-42", children=["gt-2"])
        with patch(RUN, return_value=completed([data])) as mock_run:
            issue = beads.show("gt-1")
        assert called_args(mock_run) == ["bd", "show", "gt-1", "--json"]
        assert issue.id == "gt-1"
        assert issue.is_pinned
        assert issue.type == "task"
        assert issue.children == ["gt-2"]
        assert issue.description == "attached_molecule: gt-42"

    def test_show_empty_array(self, beads: Beads):
        with patch(RUN, return_value=completed([])):
            with pytest.raises(NotFoundError):
                beads.show("gt-1")

    def test_show_dependencies(self, beads: Beads):
        data = issue_json(dependencies=[{"id": "gt-0", "status": "open", "dependency_type": "blocks"}])
        with patch(RUN, return_value=completed([data])):
            issue = beads.show("gt-1")
        assert issue.dependencies[0].id == "gt-0"
        assert issue.dependencies[0].dependency_type == "blocks"

    def test_list_filters(self, beads: Beads):
        opts = ListOptions(status="open", type="bug", priority=1, parent="gt-e", assignee="gastown/Toast")
        with patch(RUN, return_value=completed([])) as mock_run:
            assert beads.list(opts) == []
        assert called_args(mock_run) == [
            "bd", "list", "--json", "--status=open", "--type=bug", "--priority=1",
            "--parent=gt-e", "--assignee=gastown/Toast",
        ]

    def test_list_defaults(self, beads: Beads):
        with patch(RUN, return_value=completed("null")) as mock_run:
            assert beads.list() == []
        assert called_args(mock_run) == ["bd", "list", "--json"]

    def test_list_no_assignee_priority_zero(self, beads: Beads):
        with patch(RUN, return_value=completed([])) as mock_run:
            beads.list(ListOptions(priority=0, no_assignee=True))
        assert called_args(mock_run)[2:] == ["--priority=0", "--no-assignee"]

    def test_get_assigned_issue_falls_back_to_in_progress(self, beads: Beads):
        responses = [completed([]), completed([issue_json("gt-7", status="in_progress")])]
        with patch(RUN, side_effect=responses) as mock_run:
            issue = beads.get_assigned_issue("gastown/Toast")
        assert issue.id == "gt-7"
        assert "--status=in_progress" in called_args(mock_run, 1)

    def test_get_assigned_issue_none(self, beads: Beads):
        with patch(RUN, side_effect=[completed([]), completed([])]):
            assert beads.get_assigned_issue("gastown/Toast") is None

    def test_ready_with_type(self, beads: Beads):
        with patch(RUN, return_value=completed([])) as mock_run:
            beads.ready("merge-request")
        assert called_args(mock_run) == ["bd", "ready", "--json", "--type", "merge-request", "-n", "100"]

    def test_is_beads_repo(self, beads: Beads):
        with patch(RUN, return_value=completed(returncode=1, stderr="not a beads repository")):
            assert beads.is_beads_repo() is False
        with patch(RUN, return_value=completed(returncode=1, stderr="database locked")):
            assert beads.is_beads_repo() is True


class TestMutations:
    def test_create(self, beads: Beads):
        opts = CreateOptions(title="Fix it", type="bug", priority=1, description="d", actor="mayor")
        with patch(RUN, return_value=completed(issue_json("gt-5", status="open"))) as mock_run:
            issue = beads.create(opts)
        assert issue.id == "gt-5"
        assert called_args(mock_run) == [
            "bd", "create", "--json", "--title=Fix it", "--type=bug", "--priority=1",
            "--description=d", "--actor=mayor",
        ]

    def test_update_only_set_fields(self, beads: Beads):
        with patch(RUN, return_value=completed()) as mock_run:
            beads.update("gt-1", UpdateOptions(status="pinned"))
        assert called_args(mock_run) == ["bd", "update", "gt-1", "--status=pinned"]

    def test_update_explicit_clear(self, beads: Beads):
        with patch(RUN, return_value=completed()) as mock_run:
            beads.update("gt-1", UpdateOptions(description="", assignee=""))
        assert called_args(mock_run) == ["bd", "update", "gt-1", "--description=", "--assignee="]

    def test_update_nothing_set(self, beads: Beads):
        with patch(RUN, return_value=completed()) as mock_run:
            beads.update("gt-1", UpdateOptions())
        assert called_args(mock_run) == ["bd", "update", "gt-1"]

    def test_update_labels(self, beads: Beads):
        with patch(RUN, return_value=completed()) as mock_run:
            beads.update("gt-1", UpdateOptions(add_labels=["a"], remove_labels=["b"]))
            beads.update("gt-1", UpdateOptions(set_labels=["x", "y"], add_labels=["ignored"]))
        assert called_args(mock_run, 0)[3:] == ["--add-label=a", "--remove-label=b"]
        assert called_args(mock_run, 1)[3:] == ["--set-labels=x", "--set-labels=y"]

    def test_close(self, beads: Beads):
        with patch(RUN, return_value=completed()) as mock_run:
            beads.close()
            assert mock_run.call_count == 0
            beads.close("gt-1", "gt-2", reason="done")
        assert called_args(mock_run) == ["bd", "close", "gt-1", "gt-2", "--reason=done"]

    def test_release(self, beads: Beads):
        with patch(RUN, return_value=completed()) as mock_run:
            beads.release("gt-1", reason="worker died")
        assert called_args(mock_run) == [
            "bd", "update", "gt-1", "--status=open", "--assignee=", "--notes=Released: worker died",
        ]

    def test_dependencies(self, beads: Beads):
        with patch(RUN, return_value=completed()) as mock_run:
            beads.add_dependency("gt-1", "gt-0")
            beads.remove_dependency("gt-1", "gt-0")
        assert called_args(mock_run, 0) == ["bd", "dep", "add", "gt-1", "gt-0"]
        assert called_args(mock_run, 1) == ["bd", "dep", "remove", "gt-1", "gt-0"]


class TestSync:
    def test_sync_status(self, beads: Beads):
        data = {"branch": "beads-sync", "ahead": 2, "behind": 0, "conflicts": []}
        with patch(RUN, return_value=completed(data)):
            status = beads.sync_status()
        assert status.branch == "beads-sync"
        assert status.ahead == 2

    def test_sync_status_missing_branch(self, beads: Beads):
        with patch(RUN, return_value=completed(returncode=1, stderr="branch beads-sync does not exist")):
            status = beads.sync_status()
        assert status.branch == ""
        assert status.conflicts == []

    def test_sync_from_main(self, beads: Beads):
        with patch(RUN, return_value=completed()) as mock_run:
            beads.sync_from_main()
        assert called_args(mock_run) == ["bd", "sync", "--from-main"]


class TestHandoff:
    def test_title(self):
        assert handoff_bead_title("mayor") == "mayor Handoff"

    def test_find_existing(self, beads: Beads):
        pinned = [issue_json("gt-1", title="witness Handoff"), issue_json("gt-2", title="mayor Handoff")]
        with patch(RUN, return_value=completed(pinned)) as mock_run:
            issue = beads.find_handoff_bead("mayor")
        assert issue.id == "gt-2"
        assert "--status=pinned" in called_args(mock_run)

    def test_get_or_create(self, beads: Beads):
        responses = [
            completed([]),  # list pinned
            completed(issue_json("gt-9", status="open", title="mayor Handoff")),  # create
            completed(),  # update --status=pinned
            completed([issue_json("gt-9", title="mayor Handoff")]),  # show
        ]
        with patch(RUN, side_effect=responses) as mock_run:
            issue = beads.get_or_create_handoff_bead("mayor")
        assert issue.id == "gt-9"
        assert issue.is_pinned
        assert called_args(mock_run, 2) == ["bd", "update", "gt-9", "--status=pinned"]
        assert "--actor=mayor" in called_args(mock_run, 1)

    def test_clear_missing_handoff_is_noop(self, beads: Beads):
        with patch(RUN, return_value=completed([])) as mock_run:
            beads.clear_handoff_content("mayor")
        assert mock_run.call_count == 1

    def test_update_handoff_content(self, beads: Beads):
        responses = [completed([issue_json("gt-1", title="mayor Handoff")]), completed()]
        with patch(RUN, side_effect=responses) as mock_run:
            beads.update_handoff_content("mayor", "next: review gt-42")
        assert called_args(mock_run) == ["bd", "update", "gt-1", "--description=next: review gt-42"]


class TestClearMail:
    def test_closes_and_clears(self, beads: Beads):
        messages = [
            issue_json("gt-m1", status="open", issue_type="message"),
            issue_json("gt-m2", status="pinned", issue_type="message"),
            issue_json("gt-m3", status="open", issue_type="message"),
        ]
        responses = [completed(messages), completed(), completed()]
        with patch(RUN, side_effect=responses) as mock_run:
            result = beads.clear_mail("inbox zero")
        assert result.closed == 2
        assert result.cleared == 1
        assert called_args(mock_run, 1) == ["bd", "close", "gt-m1", "gt-m3", "--reason=inbox zero"]
        assert called_args(mock_run, 2) == ["bd", "update", "gt-m2", "--description="]
