"""
Content fingerprints for remote issue bodies.

Hashes are recorded on every successful push so a later pass can tell
whether the remote body or its task list actually changed. Nothing gates
writes on them yet. Checked states pulled from an issue are merged into
the document by task label.
"""

from __future__ import annotations

import hashlib
import re
from dataclasses import dataclass

CHECKBOX_PATTERN = re.compile(r"^[ \t]*[-*][ \t]+\[(?P<mark>[ xX])\][ \t]+(?P<label>.*?)[ \t]*$")


@dataclass(frozen=True)
class Checkbox:
    """A markdown task list item."""

    line: int
    checked: bool
    label: str


def canonicalize(text: str) -> str:
    """Normalize line endings to LF and strip trailing whitespace."""
    lines = text.replace("\r\n", "\n").replace("\r", "\n").split("\n")
    return "\n".join(line.rstrip() for line in lines).rstrip()


def content_hash(text: str) -> str:
    """SHA-256 hex digest of the canonicalized text."""
    return hashlib.sha256(canonicalize(text).encode("utf-8")).hexdigest()


def extract_checkboxes(text: str) -> list[Checkbox]:
    """
    Find markdown task items (``- [ ] label`` / ``* [x] label``).

    Line numbers are 1-based.
    """
    boxes = []
    for lineno, line in enumerate(canonicalize(text).split("\n"), start=1):
        match = CHECKBOX_PATTERN.match(line)
        if match:
            boxes.append(
                Checkbox(
                    line=lineno,
                    checked=match.group("mark") in "xX",
                    label=match.group("label"),
                )
            )
    return boxes


def checkbox_hash(text: str) -> str:
    """
    SHA-256 hex digest over the ordered (checked, label) pairs.

    Prose around the task list does not affect the result.
    """
    digest = hashlib.sha256()
    for box in extract_checkboxes(text):
        digest.update(f"{'x' if box.checked else ' '}\t{box.label}\n".encode("utf-8"))
    return digest.hexdigest()


@dataclass(frozen=True)
class CheckboxChange:
    """A task item whose checked state was copied from another text."""

    label: str
    checked: bool


def merge_checkbox_states(text: str, source: str) -> tuple[str, list[CheckboxChange]]:
    """
    Copy checked states from ``source`` onto matching task items in ``text``.

    Items are matched by label; when a label repeats in ``source`` its first
    occurrence wins. Only the ``[ ]``/``[x]`` mark is rewritten, so line
    endings and the rest of each line are kept. Items missing from either
    side are left alone.

    Returns:
        The merged text and the items that changed, in document order
    """
    wanted: dict[str, bool] = {}
    for box in extract_checkboxes(source):
        wanted.setdefault(box.label, box.checked)

    changes: list[CheckboxChange] = []
    lines = text.split("\n")
    for i, line in enumerate(lines):
        match = CHECKBOX_PATTERN.match(line.rstrip("\r"))
        if not match:
            continue
        target = wanted.get(match.group("label"))
        if target is None or target == (match.group("mark") in "xX"):
            continue
        mark = match.start("mark")
        lines[i] = line[:mark] + ("x" if target else " ") + line[mark + 1 :]
        changes.append(CheckboxChange(label=match.group("label"), checked=target))
    return "\n".join(lines), changes
