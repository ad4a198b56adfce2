"""Structured `key: value` fields embedded in free-text bead descriptions.

A description may start with a block of field lines followed by prose:

    attached_molecule: gt-42
    attached_at: 2026-01-01T00:00:00Z

    Free text, kept verbatim.

Which keys count as fields is decided by a FieldSchema. The codec itself is
schema-agnostic and never raises.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from gastown.beads.models import Issue


def _norm(key: str) -> str:
    return key.strip().lower()


@dataclass(frozen=True)
class FieldSchema:
    """Ordered canonical field names, each with case-insensitive aliases."""

    fields: tuple[tuple[str, frozenset[str]], ...]

    @classmethod
    def build(cls, entries: Iterable[tuple[str, Iterable[str]]]) -> FieldSchema:
        fields = []
        for name, aliases in entries:
            normalized = {_norm(a) for a in aliases}
            normalized.add(_norm(name))
            fields.append((name, frozenset(normalized)))
        return cls(tuple(fields))

    @classmethod
    def with_variants(cls, *names: str) -> FieldSchema:
        """Schema where `a_b` also matches `a-b` and `ab`."""
        return cls.build(
            (name, {name, name.replace("_", "-"), name.replace("_", "")}) for name in names
        )

    @property
    def names(self) -> list[str]:
        return [name for name, _ in self.fields]

    def canonical(self, key: str) -> str | None:
        """Map a raw key onto its canonical name, or None if not in the schema."""
        k = _norm(key)
        for name, aliases in self.fields:
            if k in aliases:
                return name
        return None

    def is_field_key(self, key: str) -> bool:
        return self.canonical(key) is not None


ATTACHMENT_SCHEMA = FieldSchema.with_variants(
    "attached_molecule",  # root issue ID of the attached molecule
    "attached_at",  # RFC 3339 UTC timestamp of the attach
    "attached_args",  # natural-language args passed via `gt sling --args`
)

MR_SCHEMA = FieldSchema.with_variants(
    "branch",  # source branch, e.g. "polecat/Nux/gt-xyz"
    "target",  # target branch, e.g. "main" or "integration/gt-epic"
    "source_issue",  # work item being merged
    "worker",
    "rig",
    "merge_commit",  # set on close
    "close_reason",  # merged, rejected, conflict, superseded
)


def _split_key(line: str) -> tuple[str, str] | None:
    """Split a stripped line at its first colon."""
    idx = line.find(":")
    if idx == -1:
        return None
    return line[:idx].strip(), line[idx + 1 :].strip()


def parse_fields(text: str, schema: FieldSchema) -> dict[str, str] | None:
    """Extract schema fields from text. Returns None when none are present.

    Lines with an empty value are not fields. Last occurrence wins.
    """
    if not text:
        return None
    fields: dict[str, str] = {}
    for line in text.split("\n"):
        line = line.strip()
        if not line:
            continue
        kv = _split_key(line)
        if kv is None:
            continue
        key, value = kv
        if not value:
            continue
        name = schema.canonical(key)
        if name is not None:
            fields[name] = value
    return fields or None


def clean_field_value(name: str, value: str) -> str:
    """Trim a value for storage. Raises ValueError on embedded line breaks.

    Values are single lines: a break would split the field and leave its
    tail behind as prose.
    """
    value = value.strip()
    if "\n" in value or "\r" in value:
        raise ValueError(f"{name} must be a single line, got {value!r}")
    return value


def format_fields(fields: Mapping[str, str] | None, schema: FieldSchema) -> str:
    """Render fields as `name: value` lines in schema order, skipping empties.

    Values should have passed clean_field_value; parse_fields only round-trips
    trimmed single-line values.
    """
    if not fields:
        return ""
    lines = []
    for name in schema.names:
        value = fields.get(name, "")
        if value:
            lines.append(f"{name}: {value}")
    return "\n".join(lines)


def _other_lines(text: str, schema: FieldSchema) -> list[str]:
    """Every line that is not a schema field line, verbatim, outer blanks trimmed."""
    other: list[str] = []
    if text:
        for line in text.split("\n"):
            trimmed = line.strip()
            if not trimmed:
                other.append(line)
                continue
            kv = _split_key(trimmed)
            if kv is None or not schema.is_field_key(kv[0]):
                other.append(line)
            # Field lines are dropped even when their value is empty.

    while other and not other[-1].strip():
        other.pop()
    while other and not other[0].strip():
        other.pop(0)
    return other


def split_fields(text: str, schema: FieldSchema) -> tuple[dict[str, str] | None, str]:
    """Return (parsed fields, remaining content) for a description."""
    return parse_fields(text, schema), "\n".join(_other_lines(text, schema))


def merge_fields(text: str, fields: Mapping[str, str] | None, schema: FieldSchema) -> str:
    """Replace the schema field lines in text with `fields`, keeping everything else.

    Fields go first, then a blank line, then the remaining content. Passing
    no fields strips the block.
    """
    other = _other_lines(text, schema)
    formatted = format_fields(fields, schema)

    if not formatted:
        return "\n".join(other)
    if not other:
        return formatted
    return formatted + "\n\n" + "\n".join(other)


# ── Issue-level helpers ───────────────────────────────────────


def parse_attachment_fields(issue: Issue | None) -> dict[str, str] | None:
    if issue is None:
        return None
    return parse_fields(issue.description, ATTACHMENT_SCHEMA)


def set_attachment_fields(issue: Issue | None, fields: Mapping[str, str] | None) -> str:
    """New description for `issue` with its attachment block replaced."""
    description = issue.description if issue is not None else ""
    return merge_fields(description, fields, ATTACHMENT_SCHEMA)


def parse_mr_fields(issue: Issue | None) -> dict[str, str] | None:
    if issue is None:
        return None
    return parse_fields(issue.description, MR_SCHEMA)


def set_mr_fields(issue: Issue | None, fields: Mapping[str, str] | None) -> str:
    """New description for `issue` with its merge-request block replaced."""
    if issue is None:
        return format_fields(fields, MR_SCHEMA)
    return merge_fields(issue.description, fields, MR_SCHEMA)
