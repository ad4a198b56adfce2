"""Entry point: python -m gastown <command> (installed as `gt`)

- attach PINNED MOLECULE   attach a molecule to a pinned bead
- detach PINNED            detach it again (audited)
- attachment PINNED        show what is attached
- event TYPE               append an activity event to the town's log
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

from gastown.config import GastownConfig, load_config


def _setup_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
        stream=sys.stderr,
    )


def _work_dir(config: GastownConfig) -> Path:
    from gastown.workspace import find_town_root_from_cwd

    return config.beads.work_dir or config.town_root or find_town_root_from_cwd() or Path.cwd()


def _build_manager(config: GastownConfig):
    from gastown.beads.attachment import AttachmentManager
    from gastown.beads.audit import AuditTrail
    from gastown.beads.client import Beads

    work_dir = _work_dir(config)
    store = Beads(work_dir, bd_path=config.beads.bd_path, timeout=config.beads.timeout)
    audit = AuditTrail(work_dir, audit_dir=config.audit.dir, filename=config.audit.filename)
    return AttachmentManager(store, audit)


def _print_json(data) -> None:
    print(json.dumps(data, ensure_ascii=False, indent=2))


def _cmd_attach(args: argparse.Namespace, config: GastownConfig) -> int:
    try:
        issue = _build_manager(config).attach(args.pinned, args.molecule, args=args.args)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2
    _print_json(issue.to_dict())
    return 0


def _cmd_detach(args: argparse.Namespace, config: GastownConfig) -> int:
    from gastown.beads.attachment import DetachOptions

    manager = _build_manager(config)
    options = DetachOptions(
        operation=args.operation,
        agent=args.agent or config.actor,
        reason=args.reason or "",
    )
    issue = manager.detach(args.pinned, options)
    _print_json(issue.to_dict())
    for failure in manager.soft_failures:
        print(f"Warning: failed to write audit log: {failure}", file=sys.stderr)
    return 0


def _cmd_attachment(args: argparse.Namespace, config: GastownConfig) -> int:
    fields = _build_manager(config).get_attachment(args.pinned)
    if fields is None:
        print(f"Nothing attached to {args.pinned}")
        return 0
    _print_json(fields)
    return 0


def _cmd_event(args: argparse.Namespace, config: GastownConfig) -> int:
    from gastown.events import EventLog
    from gastown.workspace import find_town_root_from_cwd

    try:
        payload = json.loads(args.payload) if args.payload else None
    except json.JSONDecodeError as e:
        print(f"Invalid --payload JSON: {e}", file=sys.stderr)
        return 2
    if payload is not None and not isinstance(payload, dict):
        print("--payload must be a JSON object", file=sys.stderr)
        return 2

    log = EventLog(
        root_resolver=lambda: config.town_root or find_town_root_from_cwd(),
        source=config.events.source,
        filename=config.events.filename,
    )
    event = log.log(args.type, args.actor or config.actor, payload, args.visibility)
    if event is None:
        logging.getLogger(__name__).debug("Not in a town, event dropped")
    return 0


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="gt", description="Pinned-bead attachments and events")
    parser.add_argument("--config", type=Path, help="Path to gastown.toml")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("attach", help="Attach a molecule to a pinned bead")
    p.add_argument("pinned")
    p.add_argument("molecule")
    p.add_argument("--args", help="Natural-language args stored with the attachment")
    p.set_defaults(func=_cmd_attach)

    p = sub.add_parser("detach", help="Detach the molecule from a pinned bead")
    p.add_argument("pinned")
    p.add_argument("--operation", choices=["detach", "burn", "squash"], default="detach")
    p.add_argument("--agent", help="Who is detaching (default: BD_ACTOR)")
    p.add_argument("--reason")
    p.set_defaults(func=_cmd_detach)

    p = sub.add_parser("attachment", help="Show the attachment of a pinned bead")
    p.add_argument("pinned")
    p.set_defaults(func=_cmd_attachment)

    from gastown.events import EVENT_TYPES, VISIBILITY_FEED, VISIBILITIES

    p = sub.add_parser("event", help="Append an event to the town's events log")
    p.add_argument("type", choices=sorted(EVENT_TYPES))
    p.add_argument("--actor")
    p.add_argument("--visibility", choices=sorted(VISIBILITIES), default=VISIBILITY_FEED)
    p.add_argument("--payload", help="JSON object")
    p.set_defaults(func=_cmd_event)
    return parser


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    config = load_config(args.config)
    _setup_logging(config.log_level)

    from gastown.beads.errors import BeadsError

    try:
        return args.func(args, config)
    except BeadsError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
