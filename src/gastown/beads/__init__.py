"""Beads: the bd-backed record store and the structured fields layered on it.

Modules:
    models      Issue and option types matching `bd --json` output
    client      Beads, the bd CLI wrapper (a RecordStore)
    fields      FieldSchema + parse/format/merge of `key: value` blocks
    attachment  AttachmentManager: attach/detach molecules on pinned beads
    audit       AuditTrail: JSONL log of detach/burn/squash
    errors      BeadsError hierarchy

On disk (per beads working directory):
    .beads/
    └── audit.log          # one AuditEntry per line (append-only)
"""
