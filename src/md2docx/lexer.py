"""Line classification: the token stream the structure parser and body builder consume."""

from __future__ import annotations

import re
from enum import Enum

from md2docx.requirements import HORIZONTAL_RULE_PATTERN, is_requirement_heading

HEADING_PATTERN = re.compile(r"^(#{1,6})\s+(.*?)(?:\s+#+)?\s*$")
NUMBERED_SECTION_PATTERN = re.compile(r"^##\s+\d+(?:\.\d+)*\.?(?:\s|$)")
FENCE_PATTERN = re.compile(r"^(`{3,}|~{3,})\s*([\w+-]*)")
TABLE_ROW_PATTERN = re.compile(r"^\|.*\|$")
TABLE_SEPARATOR_PATTERN = re.compile(r"^\|?\s*:?-+:?\s*(?:\|\s*:?-+:?\s*)*\|?$")
IMAGE_PATTERN = re.compile(r"^!\[(?P<alt>[^\]]*)\]\((?P<path>[^)\s]+)(?:\s+\"[^\"]*\")?\)$")
BOLD_LINE_PATTERN = re.compile(r"^\*\*[^*]+\*\*[:：]?$")


class LineKind(str, Enum):
    BLANK = "blank"
    HEADING = "heading"
    REQUIREMENT_HEADING = "requirement_heading"
    FENCE = "fence"
    TABLE_ROW = "table_row"
    HORIZONTAL_RULE = "horizontal_rule"
    IMAGE = "image"
    TEXT = "text"


def classify_line(line: str) -> LineKind:
    """Classify one source line.

    Examples:
        >>> classify_line("### REQ-AUTH-001 Login")
        <LineKind.REQUIREMENT_HEADING: 'requirement_heading'>
        >>> classify_line("| a | b |")
        <LineKind.TABLE_ROW: 'table_row'>
    """
    stripped = line.strip()
    if not stripped:
        return LineKind.BLANK
    if FENCE_PATTERN.match(stripped):
        return LineKind.FENCE
    if is_requirement_heading(stripped):
        return LineKind.REQUIREMENT_HEADING
    if HEADING_PATTERN.match(stripped):
        return LineKind.HEADING
    if HORIZONTAL_RULE_PATTERN.match(stripped):
        return LineKind.HORIZONTAL_RULE
    if TABLE_ROW_PATTERN.match(stripped):
        return LineKind.TABLE_ROW
    if IMAGE_PATTERN.match(stripped):
        return LineKind.IMAGE
    return LineKind.TEXT


def heading_parts(line: str) -> tuple[int, str] | None:
    """(level, text) of a heading line, or None."""
    match = HEADING_PATTERN.match(line.strip())
    if match is None:
        return None
    return len(match.group(1)), match.group(2)


def is_numbered_section(line: str) -> bool:
    """``## 1 Introduction`` / ``## 2.`` style top-level body section."""
    return NUMBERED_SECTION_PATTERN.match(line.strip()) is not None


def split_table_row(line: str) -> list[str]:
    """Cells of a pipe row with outer pipes removed and cells trimmed."""
    stripped = line.strip()
    if stripped.startswith("|"):
        stripped = stripped[1:]
    if stripped.endswith("|"):
        stripped = stripped[:-1]
    return [cell.strip() for cell in stripped.split("|")]


def is_table_separator(line: str) -> bool:
    return TABLE_SEPARATOR_PATTERN.match(line.strip()) is not None


def fence_language(line: str) -> str:
    match = FENCE_PATTERN.match(line.strip())
    return match.group(2).lower() if match else ""


def is_bold_line(line: str) -> bool:
    """A paragraph consisting solely of bold text (used as a sub-heading)."""
    return BOLD_LINE_PATTERN.match(line.strip()) is not None


__all__ = [
    "LineKind",
    "classify_line",
    "heading_parts",
    "is_numbered_section",
    "split_table_row",
    "is_table_separator",
    "fence_language",
    "is_bold_line",
    "IMAGE_PATTERN",
]
