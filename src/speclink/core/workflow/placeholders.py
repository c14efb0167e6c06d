"""
Placeholder detection in spec documents.

Spec templates ship with bracketed prompts such as "(Describe the
background)". A section still holding one of these, or nothing at all, has
not been written yet.
"""

from __future__ import annotations

import re

from pydantic import BaseModel, Field

PLACEHOLDER_PATTERNS: list[re.Pattern[str]] = [
    re.compile(
        r"\((?:please\s+)?(?:describe|fill\s+in|enter|write|add|list)\s+"
        r"(?:the|a|an|your|any|here)\b[^)]*\)",
        re.I,
    ),
    re.compile(
        r"\((?:requirement|functional requirement|non-functional requirement|constraint|"
        r"dependency|security consideration|test strategy)\s*\d*\)",
        re.I,
    ),
    re.compile(r"\((?:TBD|TBA|to be (?:decided|determined))\)", re.I),
    re.compile(r"\bTODO:"),
    re.compile(r"\bFIXME:"),
    re.compile(r"\bXXX:"),
]

_HEADING = re.compile(r"^(#+)\s")


class Placeholder(BaseModel):
    """One placeholder occurrence."""

    section: str = Field(description="Nearest '##' heading above the line, or 'Unknown'")
    text: str
    line: int = Field(description="1-based line number")


def detect_placeholders(text: str) -> list[Placeholder]:
    """Find every placeholder occurrence, in document order."""
    found: list[Placeholder] = []
    section = ""
    for lineno, line in enumerate(text.splitlines(), start=1):
        if line.startswith("##"):
            section = line.strip()
        for pattern in PLACEHOLDER_PATTERNS:
            for match in pattern.finditer(line):
                found.append(
                    Placeholder(section=section or "Unknown", text=match.group(0), line=lineno)
                )
    return found


def find_section(lines: list[str], heading: str) -> tuple[int, int] | None:
    """
    Locate a section by heading prefix.

    Returns:
        (start, end) line indexes where start is the heading line and end is
        the next heading of the same or higher level (or len(lines)), or
        None if the heading is absent
    """
    start = next((i for i, line in enumerate(lines) if line.strip().startswith(heading)), None)
    if start is None:
        return None
    level_match = re.match(r"^#+", heading)
    level = len(level_match.group(0)) if level_match else 2
    for i in range(start + 1, len(lines)):
        heading_match = _HEADING.match(lines[i])
        if heading_match and len(heading_match.group(1)) <= level:
            return start, i
    return start, len(lines)


def section_needs_content(text: str, heading: str) -> bool:
    """
    True if a section is missing, still holds a placeholder, or is empty.

    Blank lines, ``---`` rules and ``###`` sub-headings do not count as content.
    """
    lines = text.splitlines()
    bounds = find_section(lines, heading)
    if bounds is None:
        return True
    start, end = bounds

    body = "\n".join(lines[start:end])
    if any(pattern.search(body) for pattern in PLACEHOLDER_PATTERNS):
        return True

    content = [
        line
        for line in lines[start + 1:end]
        if line.strip() and line.strip() != "---" and not line.strip().startswith("###")
    ]
    return not content
