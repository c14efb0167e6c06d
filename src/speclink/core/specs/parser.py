"""
Spec document header parser.

A spec document is UTF-8 markdown at ``{documents_dir}/{id}.md``. Its header
is the first level-1 heading (the Spec name) plus bold-labelled lines:

    # Login flow

    **Spec ID:** 3f2b6c1e-8d4a-4f7b-9c2e-1a5d6e7f8a9b
    **Phase:** design
    **Created:** 2025/11/19 10:47:58
    **Updated:** 2025/11/20 09:01:12
    **Description:** Password and SSO sign-in

Labels may appear in any order. When a label appears more than once, the
first occurrence wins and later ones are ignored. Timestamps carry no zone
and are read as UTC.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path

from pydantic import ValidationError as PydanticValidationError

from speclink.core.errors import ParseError, ValidationError
from speclink.core.specs.models import Phase, SpecMetadata, to_utc_seconds

TIMESTAMP_FORMAT = "%Y/%m/%d %H:%M:%S"

# Label text -> SpecMetadata field
HEADER_LABELS: dict[str, str] = {
    "Spec ID": "id",
    "Phase": "phase",
    "Created": "created_at",
    "Updated": "updated_at",
    "Description": "description",
}
REQUIRED_FIELDS = ("id", "phase", "created_at", "updated_at")

TITLE_PATTERN = re.compile(r"^# (?P<title>[^\r\n]*?)\r?$", re.MULTILINE)
LABEL_LINE_PATTERN = re.compile(
    r"^\*\*(?P<label>[^*\r\n]+?):\*\*[ \t]*(?P<value>[^\r\n]*?)[ \t]*\r?$",
    re.MULTILINE,
)
# Hour may be a single digit; everything else is fixed width
TIMESTAMP_PATTERN = re.compile(
    r"^(?P<year>\d{4})/(?P<month>\d{2})/(?P<day>\d{2}) "
    r"(?P<hour>\d{1,2}):(?P<minute>\d{2}):(?P<second>\d{2})$"
)


@dataclass
class HeaderFields:
    """Raw header values as written in the document (first match per label)."""

    title: str | None = None
    id: str | None = None
    phase: str | None = None
    created_at: str | None = None
    updated_at: str | None = None
    description: str | None = None

    def missing(self) -> list[str]:
        """Names of required fields (including the title) with no value."""
        names = [] if self.title else ["title"]
        return names + [f for f in REQUIRED_FIELDS if not getattr(self, f)]


def extract_fields(text: str) -> HeaderFields:
    """
    Pull the raw header values out of a document.

    Only level-1 headings count as the title. Empty values are treated as
    absent. Unknown labels are ignored.
    """
    fields = HeaderFields()

    title_match = TITLE_PATTERN.search(text)
    if title_match and title_match.group("title").strip():
        fields.title = title_match.group("title").strip()

    for match in LABEL_LINE_PATTERN.finditer(text):
        attr = HEADER_LABELS.get(match.group("label").strip())
        if attr is None or getattr(fields, attr) is not None:
            continue
        value = match.group("value").strip()
        if value:
            setattr(fields, attr, value)

    return fields


def parse_timestamp(value: str) -> datetime:
    """
    Convert a ``YYYY/MM/DD HH:MM:SS`` header value to an aware UTC datetime.

    Raises:
        ValidationError: If the value does not match or is not a real date
    """
    match = TIMESTAMP_PATTERN.match(value.strip())
    if match is None:
        raise ValidationError(
            f"Invalid timestamp {value!r} (expected YYYY/MM/DD HH:MM:SS)",
            hint="Run 'speclink normalize --write' to fix common formatting drift",
        )
    try:
        return datetime(
            int(match.group("year")),
            int(match.group("month")),
            int(match.group("day")),
            int(match.group("hour")),
            int(match.group("minute")),
            int(match.group("second")),
            tzinfo=timezone.utc,
        )
    except ValueError as e:
        raise ValidationError(f"Invalid timestamp {value!r}: {e}") from e


def format_timestamp(value: datetime) -> str:
    """Render a datetime in the document header format (UTC, zero-padded)."""
    return to_utc_seconds(value).strftime(TIMESTAMP_FORMAT)


def parse(text: str) -> SpecMetadata:
    """
    Parse document text into SpecMetadata.

    Raises:
        ParseError: Title or a required header field is missing
        ValidationError: Unknown phase or an unconvertible timestamp
    """
    fields = extract_fields(text)
    missing = fields.missing()
    if missing:
        raise ParseError(f"Missing required header field(s): {', '.join(missing)}")

    # missing() guarantees these are set
    assert fields.title and fields.id and fields.phase
    assert fields.created_at and fields.updated_at

    try:
        phase = Phase.from_value(fields.phase)
    except ValueError as e:
        raise ValidationError(str(e)) from e

    created_at = parse_timestamp(fields.created_at)
    updated_at = parse_timestamp(fields.updated_at)

    try:
        return SpecMetadata(
            id=fields.id,
            name=fields.title,
            phase=phase,
            created_at=created_at,
            updated_at=updated_at,
            description=fields.description,
        )
    except PydanticValidationError as e:
        errors = [f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()]
        raise ValidationError(f"Invalid spec header: {'; '.join(errors)}", errors=errors) from e


def read_document(path: Path) -> str:
    """
    Read a document as UTF-8, keeping its line endings as written.

    Raises:
        ParseError: If the file cannot be read or decoded
    """
    try:
        with path.open(encoding="utf-8", newline="") as f:
            return f.read()
    except (OSError, UnicodeDecodeError) as e:
        raise ParseError(f"Failed to read spec file {path}: {e}", path=path) from e


def write_document(path: Path, text: str) -> None:
    """
    Write document text atomically, without translating line endings.

    The text goes to a temp file in the same directory which is then
    renamed over the target.
    """
    temp_path = path.with_suffix(path.suffix + ".tmp")
    try:
        with temp_path.open("w", encoding="utf-8", newline="") as f:
            f.write(text)
        temp_path.replace(path)
    except OSError:
        temp_path.unlink(missing_ok=True)
        raise


def parse_file(path: Path) -> SpecMetadata:
    """
    Read and parse a document, checking the embedded id against the filename.

    Raises:
        ParseError: Unreadable or malformed file
        ValidationError: Invalid values, or embedded id != filename stem
    """
    text = read_document(path)
    try:
        metadata = parse(text)
    except ValidationError as e:
        raise ValidationError(str(e), errors=e.errors, path=path, hint=e.hint) from e
    except ParseError as e:
        raise ParseError(str(e), path=path, hint=e.hint) from e

    if metadata.id != path.stem:
        raise ValidationError(
            f"Spec ID {metadata.id!r} does not match filename {path.name!r}",
            path=path,
            hint="Rename the file or correct the **Spec ID:** line",
        )
    return metadata


def render(metadata: SpecMetadata, body: str = "") -> str:
    """
    Render a document whose header parses back to ``metadata``.

    Args:
        metadata: Header values
        body: Markdown that follows the header (sections, tasks)
    """
    lines = [
        f"# {metadata.name}",
        "",
        f"**Spec ID:** {metadata.id}",
        f"**Phase:** {metadata.phase.value}",
        f"**Created:** {format_timestamp(metadata.created_at)}",
        f"**Updated:** {format_timestamp(metadata.updated_at)}",
    ]
    if metadata.description:
        lines.append(f"**Description:** {metadata.description}")
    text = "\n".join(lines) + "\n"
    if body:
        text += "\n" + body.lstrip("\n")
        if not text.endswith("\n"):
            text += "\n"
    return text


def _replace_label_value(text: str, label: str, value: str) -> str:
    pattern = re.compile(
        rf"^(\*\*{re.escape(label)}:\*\*[ \t]*)[^\r\n]*?([ \t]*\r?)$",
        re.MULTILINE,
    )
    new_text, count = pattern.subn(lambda m: f"{m.group(1)}{value}{m.group(2)}", text, count=1)
    if count == 0:
        raise ParseError(f"Header field '{label}' not found")
    return new_text


def update_header(
    text: str,
    *,
    name: str | None = None,
    phase: Phase | None = None,
    updated_at: datetime | None = None,
) -> str:
    """
    Rewrite header values in place.

    Only the title line and the first line for each label are touched;
    every other byte of the document is preserved.

    Raises:
        ParseError: If a label to rewrite is not present
    """
    if name is not None:
        text, count = TITLE_PATTERN.subn(
            lambda m: f"# {name}" + ("\r" if m.group(0).endswith("\r") else ""),
            text,
            count=1,
        )
        if count == 0:
            raise ParseError("Title line not found")
    if phase is not None:
        text = _replace_label_value(text, "Phase", phase.value)
    if updated_at is not None:
        text = _replace_label_value(text, "Updated", format_timestamp(updated_at))
    return text
