"""
Tests for the spec document header parser.
"""

from datetime import datetime, timezone

import pytest

from speclink.core.errors import ParseError, ValidationError
from speclink.core.specs.models import Phase
from speclink.core.specs.parser import (
    extract_fields,
    format_timestamp,
    parse,
    parse_file,
    parse_timestamp,
    read_document,
    render,
    update_header,
    write_document,
)

HEADER = """\
# Login flow

**Spec ID:** abc123
**Phase:** design
**Created:** 2025/11/19 10:47:58
**Updated:** 2025/11/20 09:01:12
"""


class TestParse:
    """Test parse() on document text."""

    def test_parse_minimal_header(self):
        """Test that the required fields come back typed."""
        metadata = parse(HEADER)
        assert metadata.id == "abc123"
        assert metadata.name == "Login flow"
        assert metadata.phase is Phase.DESIGN
        assert metadata.created_at == datetime(2025, 11, 19, 10, 47, 58, tzinfo=timezone.utc)
        assert metadata.updated_at == datetime(2025, 11, 20, 9, 1, 12, tzinfo=timezone.utc)
        assert metadata.description is None

    def test_labels_in_any_order(self):
        """Test that header lines may be reordered."""
        text = (
            "# Reordered\n\n**Updated:** 2025/11/20 09:01:12\n**Phase:** tasks\n"
            "**Spec ID:** abc123\n**Created:** 2025/11/19 10:47:58\n"
        )
        assert parse(text).phase is Phase.TASKS

    def test_first_duplicate_label_wins(self):
        """Test that a later repeat of a label is ignored."""
        text = HEADER + "\n## Notes\n\n**Phase:** completed\n"
        assert parse(text).phase is Phase.DESIGN

    def test_title_is_first_level_one_heading(self):
        """Test that ## headings are not taken as the title."""
        text = "## Not the title\n\n" + HEADER
        assert parse(text).name == "Login flow"

    def test_crlf_document(self):
        """Test that CRLF line endings parse the same as LF."""
        metadata = parse(HEADER.replace("\n", "\r\n"))
        assert metadata.name == "Login flow"
        assert metadata.id == "abc123"

    def test_single_digit_hour_is_accepted(self):
        """Test the parser's leniency on the hour field."""
        text = HEADER.replace("09:01:12", "9:01:12")
        assert parse(text).updated_at.hour == 9

    def test_description_is_optional(self):
        """Test that a Description line is picked up when present."""
        metadata = parse(HEADER + "**Description:** Password and SSO sign-in\n")
        assert metadata.description == "Password and SSO sign-in"

    @pytest.mark.parametrize("label", ["Spec ID", "Phase", "Created", "Updated"])
    def test_missing_required_field(self, label):
        """Test that dropping any required label is a ParseError."""
        text = "\n".join(line for line in HEADER.splitlines() if f"**{label}:**" not in line)
        with pytest.raises(ParseError, match="Missing required header field"):
            parse(text)

    def test_missing_title(self):
        """Test that a document without a '# ' line is a ParseError."""
        with pytest.raises(ParseError, match="title"):
            parse(HEADER.replace("# Login flow", "Login flow"))

    def test_unknown_phase(self):
        """Test that an unknown phase is a ValidationError, not a ParseError."""
        with pytest.raises(ValidationError, match="Unknown phase"):
            parse(HEADER.replace("**Phase:** design", "**Phase:** shipping"))

    def test_impossible_date(self):
        """Test that a well-formed but impossible date is rejected."""
        with pytest.raises(ValidationError):
            parse(HEADER.replace("2025/11/19", "2025/02/30"))

    def test_extract_fields_ignores_empty_values(self):
        """Test that an empty label value counts as absent."""
        fields = extract_fields(HEADER.replace("**Phase:** design", "**Phase:**"))
        assert fields.phase is None
        assert fields.missing() == ["phase"]


class TestTimestamps:
    """Test timestamp conversion."""

    def test_round_trip(self):
        """Test that formatting a parsed timestamp gives the original text."""
        assert format_timestamp(parse_timestamp("2025/01/02 03:04:05")) == "2025/01/02 03:04:05"

    def test_wrong_separator(self):
        """Test that ISO-style dates are rejected by the parser."""
        with pytest.raises(ValidationError, match="YYYY/MM/DD HH:MM:SS"):
            parse_timestamp("2025-01-02 03:04:05")


class TestRender:
    """Test rendering metadata back to a document."""

    def test_parse_of_render_is_identity(self, make_metadata):
        """Test that parse(render(m)) == m."""
        for metadata in (
            make_metadata(),
            make_metadata(spec_id="abc123", phase=Phase.COMPLETED, description=None),
            make_metadata(name="Ünïcode name", phase=Phase.REVIEW),
        ):
            assert parse(render(metadata, "## 1. Background and Purpose\n\nText\n")) == metadata

    def test_body_follows_header(self, make_metadata):
        """Test that the body is appended after a blank line."""
        text = render(make_metadata(), "## Section\n")
        assert text.endswith("\n\n## Section\n")


class TestUpdateHeader:
    """Test in-place header rewriting."""

    def test_rewrites_only_the_given_fields(self):
        """Test that the rest of the document is byte-identical."""
        text = HEADER + "\n## Notes\n\nKeep me exactly.\n"
        updated = update_header(
            text,
            phase=Phase.TASKS,
            updated_at=datetime(2026, 1, 2, 3, 4, 5, tzinfo=timezone.utc),
        )
        assert "**Phase:** tasks\n" in updated
        assert "**Updated:** 2026/01/02 03:04:05\n" in updated
        assert updated.replace("tasks", "design").replace(
            "2026/01/02 03:04:05", "2025/11/20 09:01:12"
        ) == text

    def test_rewrites_title(self):
        """Test renaming through the title line."""
        assert parse(update_header(HEADER, name="Sign-in")).name == "Sign-in"

    def test_preserves_crlf(self):
        """Test that CRLF endings survive a rewrite."""
        text = HEADER.replace("\n", "\r\n")
        updated = update_header(text, phase=Phase.TASKS, name="Sign-in")
        assert "**Phase:** tasks\r\n" in updated
        assert "# Sign-in\r\n" in updated
        assert "\n" not in updated.replace("\r\n", "")

    def test_missing_label(self):
        """Test that rewriting an absent label is a ParseError."""
        with pytest.raises(ParseError):
            update_header("# Title\n", phase=Phase.TASKS)


class TestFiles:
    """Test reading and writing document files."""

    def test_parse_file_checks_id_against_filename(self, tmp_path):
        """Test that the embedded id must match the filename stem."""
        path = tmp_path / "other.md"
        path.write_text(HEADER)
        with pytest.raises(ValidationError, match="does not match filename") as exc_info:
            parse_file(path)
        assert exc_info.value.path == path

    def test_parse_file(self, tmp_path):
        """Test a well-formed file."""
        path = tmp_path / "abc123.md"
        path.write_text(HEADER)
        assert parse_file(path).id == "abc123"

    def test_parse_error_carries_path(self, tmp_path):
        """Test that per-file errors name the file."""
        path = tmp_path / "abc123.md"
        path.write_text("no header here\n")
        with pytest.raises(ParseError) as exc_info:
            parse_file(path)
        assert exc_info.value.path == path

    def test_unreadable_file(self, tmp_path):
        """Test that a missing file is reported as a ParseError."""
        with pytest.raises(ParseError, match="Failed to read"):
            read_document(tmp_path / "missing.md")

    def test_write_document_keeps_line_endings(self, tmp_path):
        """Test that CRLF text is written byte for byte."""
        path = tmp_path / "abc123.md"
        text = HEADER.replace("\n", "\r\n")
        write_document(path, text)
        assert path.read_bytes() == text.encode("utf-8")
        assert read_document(path) == text
        assert not (tmp_path / "abc123.md.tmp").exists()
