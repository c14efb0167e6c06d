"""
Tests for strict header validation and formatting normalization.
"""

import pytest

from speclink.core.specs.normalizer import normalize_file, normalize_text
from speclink.core.specs.validator import validate_file, validate_text

SPEC_ID = "3f2b6c1e-8d4a-4f7b-9c2e-1a5d6e7f8a9b"

VALID = f"""\
# Login flow

**Spec ID:** {SPEC_ID}
**Phase:** design
**Created:** 2025/11/19 10:47:58
**Updated:** 2025/11/20 09:01:12
"""


class TestValidateText:
    """Test validate_text()."""

    def test_valid_document(self):
        """Test that a canonical header has no errors or warnings."""
        report = validate_text(VALID)
        assert report.is_valid
        assert report.warnings == []
        assert report.metadata is not None
        assert report.metadata.id == SPEC_ID

    def test_non_uuid_id(self):
        """Test that the validator insists on a UUID even though the parser does not."""
        report = validate_text(VALID.replace(SPEC_ID, "abc123"))
        assert not report.is_valid
        assert "Invalid UUID format: abc123" in report.errors
        assert report.metadata is None

    def test_unknown_phase(self):
        """Test that an unknown phase is an error."""
        report = validate_text(VALID.replace("**Phase:** design", "**Phase:** shipping"))
        assert "Invalid phase: shipping" in report.errors

    def test_single_digit_hour_is_an_error(self):
        """Test that strict validation rejects what the parser tolerates."""
        report = validate_text(VALID.replace("09:01:12", "9:01:12"))
        assert report.errors == [
            "Invalid Updated format: 2025/11/20 9:01:12 (expected: YYYY/MM/DD HH:MM:SS)"
        ]

    def test_impossible_date(self):
        """Test that a correctly shaped but impossible date is an error."""
        report = validate_text(VALID.replace("2025/11/19", "2025/13/19"))
        assert not report.is_valid

    def test_every_missing_field_is_reported(self):
        """Test that all missing fields are listed, not just the first."""
        report = validate_text("# Only a title\n")
        assert report.errors == [
            "Missing required field: id",
            "Missing required field: phase",
            "Missing required field: created_at",
            "Missing required field: updated_at",
        ]

    def test_duplicate_label_warning(self):
        """Test that repeated header labels produce a warning."""
        report = validate_text(VALID + "**Phase:** tasks\n")
        assert report.is_valid
        assert report.metadata is not None
        assert report.metadata.phase.value == "design"
        assert any("Duplicate 'Phase'" in w for w in report.warnings)

    def test_updated_before_created_warning(self):
        """Test the ordering warning."""
        text = VALID.replace("2025/11/20 09:01:12", "2025/11/18 09:01:12")
        report = validate_text(text)
        assert report.is_valid
        assert "Updated is earlier than Created" in report.warnings


class TestValidateFile:
    """Test validate_file()."""

    def test_filename_mismatch(self, tmp_path):
        """Test that the embedded id must match the filename stem."""
        path = tmp_path / "other.md"
        path.write_text(VALID)
        report = validate_file(path)
        assert not report.is_valid
        assert report.metadata is None
        assert report.summary() == "other.md: 1 error(s), 0 warning(s)"

    def test_valid_file(self, tmp_path):
        """Test the OK summary."""
        path = tmp_path / f"{SPEC_ID}.md"
        path.write_text(VALID)
        assert validate_file(path).summary() == f"{SPEC_ID}.md: OK"

    def test_unreadable_file_is_a_report_error(self, tmp_path):
        """Test that read failures do not raise."""
        report = validate_file(tmp_path / "missing.md")
        assert not report.is_valid
        assert "Failed to read" in report.errors[0]


class TestNormalize:
    """Test header formatting repair."""

    @pytest.mark.parametrize(
        ("before", "after"),
        [
            ("**SpecID:** abc", "**Spec ID:** abc"),
            ("**Spec Id**: abc", "**Spec ID:** abc"),
            ("**Phase**: design", "**Phase:** design"),
            ("**Created:** 2025/11/19", "**Created:** 2025/11/19 00:00:00"),
            ("**Updated:** 2025/1/5 9:01:12", "**Updated:** 2025/01/05 09:01:12"),
        ],
    )
    def test_rules(self, before, after):
        """Test each formatting rule on its own line."""
        result = normalize_text(before + "\n")
        assert result.normalized == after + "\n"
        assert result.changed
        assert len(result.changes) == 1

    def test_canonical_text_is_unchanged(self):
        """Test that an already canonical document is left alone."""
        result = normalize_text(VALID)
        assert not result.changed
        assert result.changes == []
        assert result.diff() == ""

    def test_values_are_never_changed(self):
        """Test that a bad phase value is not 'fixed'."""
        text = VALID.replace("**Phase:** design", "**Phase**: shipping")
        result = normalize_text(text)
        assert "**Phase:** shipping\n" in result.normalized

    def test_body_and_line_endings_are_preserved(self):
        """Test that non-header lines and CRLF survive byte for byte."""
        text = "# T\r\n\r\n**Phase**: design\r\nSome *body* text  \r\n"
        result = normalize_text(text)
        assert result.normalized == "# T\r\n\r\n**Phase:** design\r\nSome *body* text  \r\n"

    def test_normalize_file_dry_run(self, tmp_path):
        """Test that the file is untouched without write=True."""
        path = tmp_path / "doc.md"
        path.write_text("**Phase**: design\n")
        result = normalize_file(path)
        assert result.changed
        assert "+**Phase:** design" in result.diff()
        assert path.read_text() == "**Phase**: design\n"

    def test_normalize_file_write(self, tmp_path):
        """Test that write=True rewrites the file."""
        path = tmp_path / "doc.md"
        path.write_text("**Phase**: design\n")
        normalize_file(path, write=True)
        assert path.read_text() == "**Phase:** design\n"
