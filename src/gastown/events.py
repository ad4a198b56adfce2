"""Activity event log for the gt feed.

Events are appended to <town-root>/.events.jsonl (the raw audit log) and
later curated by the feed daemon into the user-facing feed. Outside a town
there is nowhere to log, so logging is a silent no-op.
"""

from __future__ import annotations

import json
import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Literal

from gastown.beads.errors import LoggingError
from gastown.clock import Clock, format_timestamp, utc_now
from gastown.workspace import find_town_root_from_cwd

logger = logging.getLogger(__name__)

EVENTS_FILE = ".events.jsonl"
SOURCE = "gt"

# Visibility levels
VISIBILITY_AUDIT = "audit"  # only in the raw events log
VISIBILITY_FEED = "feed"  # appears in the curated feed
VISIBILITY_BOTH = "both"
Visibility = Literal["audit", "feed", "both"]
VISIBILITIES = frozenset({VISIBILITY_AUDIT, VISIBILITY_FEED, VISIBILITY_BOTH})

TYPE_SLING = "sling"
TYPE_HOOK = "hook"
TYPE_UNHOOK = "unhook"
TYPE_HANDOFF = "handoff"
TYPE_DONE = "done"
TYPE_MAIL = "mail"
TYPE_SPAWN = "spawn"
TYPE_KILL = "kill"
TYPE_NUDGE = "nudge"
TYPE_BOOT = "boot"
TYPE_HALT = "halt"
EVENT_TYPES = frozenset(
    {
        TYPE_SLING,
        TYPE_HOOK,
        TYPE_UNHOOK,
        TYPE_HANDOFF,
        TYPE_DONE,
        TYPE_MAIL,
        TYPE_SPAWN,
        TYPE_KILL,
        TYPE_NUDGE,
        TYPE_BOOT,
        TYPE_HALT,
    }
)

RootResolver = Callable[[], Path | None]


@dataclass(frozen=True)
class Event:
    """One activity event."""

    ts: str
    source: str
    type: str
    actor: str
    payload: dict[str, Any] = field(default_factory=dict)
    visibility: str = VISIBILITY_FEED

    def to_json(self) -> str:
        data: dict[str, Any] = {
            "ts": self.ts,
            "source": self.source,
            "type": self.type,
            "actor": self.actor,
        }
        if self.payload:
            data["payload"] = self.payload
        data["visibility"] = self.visibility
        return json.dumps(data, ensure_ascii=False, separators=(",", ":"))

    @classmethod
    def from_json(cls, line: str) -> Event:
        data = json.loads(line)
        return cls(
            ts=data.get("ts", ""),
            source=data.get("source", ""),
            type=data.get("type", ""),
            actor=data.get("actor", ""),
            payload=data.get("payload") or {},
            visibility=data.get("visibility", ""),
        )


class EventLog:
    """Appends events to the town's events file.

    One lock per instance serializes the open-append-close of every event
    logged through it, so concurrent threads never interleave bytes within
    a line. There is no cross-process ordering beyond O_APPEND.
    """

    def __init__(
        self,
        root_resolver: RootResolver = find_town_root_from_cwd,
        source: str = SOURCE,
        filename: str = EVENTS_FILE,
        clock: Clock = utc_now,
    ) -> None:
        self.root_resolver = root_resolver
        self.source = source
        self.filename = filename
        self.clock = clock
        self._lock = threading.Lock()

    def path(self) -> Path | None:
        root = self.root_resolver()
        return Path(root) / self.filename if root else None

    def log(
        self,
        event_type: str,
        actor: str,
        payload: dict[str, Any] | None = None,
        visibility: Visibility = VISIBILITY_FEED,
    ) -> Event | None:
        """Append an event. Returns it, or None when there is no town root.

        Raises ValueError for an unknown type or visibility and LoggingError
        if the file can't be written.
        """
        if event_type not in EVENT_TYPES:
            raise ValueError(f"unknown event type {event_type!r}")
        if visibility not in VISIBILITIES:
            raise ValueError(f"unknown visibility {visibility!r}")

        path = self.path()
        if path is None:
            return None

        event = Event(
            ts=format_timestamp(self.clock()),
            source=self.source,
            type=event_type,
            actor=actor,
            payload=dict(payload or {}),
            visibility=visibility,
        )
        try:
            line = event.to_json() + "\n"
        except (TypeError, ValueError) as e:
            raise LoggingError(f"marshaling event: {e}") from e

        with self._lock:
            try:
                with path.open("a", encoding="utf-8") as f:
                    f.write(line)
            except OSError as e:
                raise LoggingError(f"writing event to {path}: {e}") from e
        return event

    def log_feed(self, event_type: str, actor: str, payload: dict[str, Any] | None = None) -> Event | None:
        return self.log(event_type, actor, payload, VISIBILITY_FEED)

    def log_audit(self, event_type: str, actor: str, payload: dict[str, Any] | None = None) -> Event | None:
        return self.log(event_type, actor, payload, VISIBILITY_AUDIT)

    def read(self) -> list[Event]:
        path = self.path()
        if path is None or not path.exists():
            return []
        return [
            Event.from_json(line)
            for line in path.read_text(encoding="utf-8").splitlines()
            if line.strip()
        ]


# ── Process-wide default log (best-effort) ────────────────────

default_log = EventLog()


def log_event(
    event_type: str,
    actor: str,
    payload: dict[str, Any] | None = None,
    visibility: Visibility = VISIBILITY_FEED,
) -> bool:
    """Log through default_log. Write failures are warned about, not raised."""
    try:
        default_log.log(event_type, actor, payload, visibility)
    except LoggingError as e:
        logger.warning("Failed to log %s event: %s", event_type, e)
        return False
    return True


def log_feed(event_type: str, actor: str, payload: dict[str, Any] | None = None) -> bool:
    return log_event(event_type, actor, payload, VISIBILITY_FEED)


def log_audit(event_type: str, actor: str, payload: dict[str, Any] | None = None) -> bool:
    return log_event(event_type, actor, payload, VISIBILITY_AUDIT)


# ── Payload helpers ───────────────────────────────────────────


def sling_payload(bead_id: str, target: str) -> dict[str, Any]:
    return {"bead": bead_id, "target": target}


def hook_payload(bead_id: str) -> dict[str, Any]:
    return {"bead": bead_id}


def handoff_payload(subject: str, to_session: bool) -> dict[str, Any]:
    p: dict[str, Any] = {"to_session": to_session}
    if subject:
        p["subject"] = subject
    return p


def done_payload(bead_id: str, branch: str) -> dict[str, Any]:
    return {"bead": bead_id, "branch": branch}


def mail_payload(to: str, subject: str) -> dict[str, Any]:
    return {"to": to, "subject": subject}


def spawn_payload(rig: str, polecat: str) -> dict[str, Any]:
    return {"rig": rig, "polecat": polecat}


def boot_payload(rig: str, agents: list[str]) -> dict[str, Any]:
    return {"rig": rig, "agents": list(agents)}
