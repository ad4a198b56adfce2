"""Bead (issue) records and option types for the bd CLI.

Shapes follow `bd ... --json` output. Unknown keys are ignored.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, TypeVar, Union

# Status for pinned beads that never get closed.
STATUS_PINNED = "pinned"

T = TypeVar("T")


class _Unset:
    """Marker for an option that was not specified at all."""

    _instance: _Unset | None = None

    def __new__(cls) -> _Unset:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "UNSET"

    def __bool__(self) -> bool:
        return False


UNSET = _Unset()

# A field that is either set (possibly to "" / cleared) or UNSET.
Option = Union[T, _Unset]


def is_set(value: object) -> bool:
    return value is not UNSET


@dataclass
class IssueDep:
    """A dependency or dependent issue with its relation."""

    id: str
    title: str = ""
    status: str = ""
    dependency_type: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> IssueDep:
        return cls(
            id=data.get("id", ""),
            title=data.get("title", ""),
            status=data.get("status", ""),
            dependency_type=data.get("dependency_type", ""),
        )


@dataclass
class Issue:
    """A beads issue as reported by `bd show/list --json`."""

    id: str
    title: str = ""
    description: str = ""
    status: str = ""
    priority: int = 0
    type: str = ""
    created_at: str = ""
    created_by: str = ""
    updated_at: str = ""
    closed_at: str = ""
    parent: str = ""
    assignee: str = ""
    children: list[str] = field(default_factory=list)
    depends_on: list[str] = field(default_factory=list)
    blocks: list[str] = field(default_factory=list)
    blocked_by: list[str] = field(default_factory=list)

    # Counts from list output
    dependency_count: int = 0
    dependent_count: int = 0
    blocked_by_count: int = 0

    # Detailed dependency info from show output
    dependencies: list[IssueDep] = field(default_factory=list)
    dependents: list[IssueDep] = field(default_factory=list)

    @property
    def is_pinned(self) -> bool:
        return self.status == STATUS_PINNED

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Issue:
        return cls(
            id=data.get("id", ""),
            title=data.get("title", ""),
            description=data.get("description") or "",
            status=data.get("status", ""),
            priority=data.get("priority", 0),
            type=data.get("issue_type", ""),
            created_at=data.get("created_at", ""),
            created_by=data.get("created_by", ""),
            updated_at=data.get("updated_at", ""),
            closed_at=data.get("closed_at", ""),
            parent=data.get("parent", ""),
            assignee=data.get("assignee", ""),
            children=data.get("children") or [],
            depends_on=data.get("depends_on") or [],
            blocks=data.get("blocks") or [],
            blocked_by=data.get("blocked_by") or [],
            dependency_count=data.get("dependency_count", 0),
            dependent_count=data.get("dependent_count", 0),
            blocked_by_count=data.get("blocked_by_count", 0),
            dependencies=[IssueDep.from_dict(d) for d in data.get("dependencies") or []],
            dependents=[IssueDep.from_dict(d) for d in data.get("dependents") or []],
        )

    def to_dict(self) -> dict[str, Any]:
        """Serialize back to bd's JSON shape, dropping empty optional fields."""
        data: dict[str, Any] = {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "status": self.status,
            "priority": self.priority,
            "issue_type": self.type,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }
        optional = {
            "created_by": self.created_by,
            "closed_at": self.closed_at,
            "parent": self.parent,
            "assignee": self.assignee,
            "children": self.children,
            "depends_on": self.depends_on,
            "blocks": self.blocks,
            "blocked_by": self.blocked_by,
        }
        data.update({k: v for k, v in optional.items() if v})
        return data


@dataclass
class ListOptions:
    """Filters for `bd list`."""

    status: str = ""  # "open", "closed", "all", ...
    type: str = ""  # "task", "bug", "feature", "epic", "message"
    priority: int = -1  # 0-4, -1 for no filter
    parent: str = ""
    assignee: str = ""  # e.g. "gastown/Toast"
    no_assignee: bool = False


@dataclass
class CreateOptions:
    """Options for `bd create`."""

    title: str
    type: str = "task"
    priority: int = -1
    description: str = ""
    parent: str = ""
    actor: str = ""  # populates created_by


@dataclass
class UpdateOptions:
    """Patch for `bd update`.

    Each scalar field is UNSET unless given; "" is a real value and clears
    the field on the bead.
    """

    title: Option[str] = UNSET
    status: Option[str] = UNSET
    priority: Option[int] = UNSET
    description: Option[str] = UNSET
    assignee: Option[str] = UNSET
    add_labels: list[str] = field(default_factory=list)
    remove_labels: list[str] = field(default_factory=list)
    set_labels: list[str] = field(default_factory=list)  # replaces all existing


@dataclass
class SyncStatus:
    branch: str = ""
    ahead: int = 0
    behind: int = 0
    conflicts: list[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SyncStatus:
        return cls(
            branch=data.get("branch") or data.get("Branch", ""),
            ahead=data.get("ahead") or data.get("Ahead", 0),
            behind=data.get("behind") or data.get("Behind", 0),
            conflicts=data.get("conflicts") or data.get("Conflicts") or [],
        )


@dataclass
class ClearMailResult:
    closed: int = 0  # non-pinned messages closed
    cleared: int = 0  # pinned messages whose content was removed
