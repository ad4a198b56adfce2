"""Configuration loading from environment variables and gastown.toml."""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass, field

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib
from pathlib import Path

_CONFIG_FILENAME = "gastown.toml"


@dataclass
class BeadsConfig:
    """How to reach the bd CLI."""

    bd_path: str = "bd"
    timeout: int = 30
    work_dir: Path | None = None  # defaults to the town root, then the cwd


@dataclass
class AuditConfig:
    dir: str = ".beads"
    filename: str = "audit.log"


@dataclass
class EventsConfig:
    filename: str = ".events.jsonl"
    source: str = "gt"


@dataclass
class GastownConfig:
    """Top-level configuration."""

    beads: BeadsConfig = field(default_factory=BeadsConfig)
    audit: AuditConfig = field(default_factory=AuditConfig)
    events: EventsConfig = field(default_factory=EventsConfig)
    town_root: Path | None = None
    actor: str = ""
    log_level: str = "INFO"


def _optional_path(value: str | None) -> Path | None:
    return Path(value).expanduser() if value else None


def load_config(config_path: Path | None = None) -> GastownConfig:
    """Load configuration from environment variables and optional gastown.toml.

    Priority: environment variables > gastown.toml > defaults.
    """
    file_data: dict = {}
    if config_path and config_path.exists():
        file_data = tomllib.loads(config_path.read_text())
    else:
        # Search current dir and ~/.gastown/
        for candidate in [
            Path.cwd() / _CONFIG_FILENAME,
            Path.home() / ".gastown" / _CONFIG_FILENAME,
        ]:
            if candidate.exists():
                file_data = tomllib.loads(candidate.read_text())
                break

    beads_data = file_data.get("beads", {})
    audit_data = file_data.get("audit", {})
    events_data = file_data.get("events", {})

    config = GastownConfig(
        beads=BeadsConfig(
            bd_path=os.getenv("GT_BD", beads_data.get("bd_path", "bd")),
            timeout=int(os.getenv("GT_BD_TIMEOUT", beads_data.get("timeout", 30))),
            work_dir=_optional_path(os.getenv("GT_BEADS_DIR", beads_data.get("work_dir"))),
        ),
        audit=AuditConfig(
            dir=os.getenv("GT_AUDIT_DIR", audit_data.get("dir", ".beads")),
            filename=audit_data.get("filename", "audit.log"),
        ),
        events=EventsConfig(
            filename=events_data.get("filename", ".events.jsonl"),
            source=events_data.get("source", "gt"),
        ),
        town_root=_optional_path(os.getenv("GT_TOWN_ROOT", file_data.get("town_root"))),
        actor=os.getenv("BD_ACTOR", file_data.get("actor", "")),
        log_level=os.getenv("GT_LOG_LEVEL", file_data.get("log_level", "INFO")),
    )
    return config
