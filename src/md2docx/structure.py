"""
Document structure parsing.

Manifesto:
    Every regulated document opens the same way: cover block, table of
    contents, revision history, then the body. The parser slices the source
    into those four regions with a forward-only state machine. A region that
    is missing or malformed yields empty fields; nothing here raises.

Architecture:
    ::

        ┌───────┐ "Table of Contents" ┌─────┐ "Revision History" ┌──────────┐
        │ COVER │────────────────────►│ TOC │───────────────────►│ REVISION │
        └───┬───┘                     └──┬──┘                    └────┬─────┘
            │ "## 1 ..."                 │ "## 1 ..."                 │ other ##/# heading
            │ (line reprocessed)         │ (line reprocessed)         │ (line reprocessed)
            ▼                            ▼                            ▼
        ┌──────────────────────────────────────────────────────────────────┐
        │                              MAIN                                │
        └──────────────────────────────────────────────────────────────────┘

    ``transition(region, line)`` is a pure function returning the next
    region and whether the line was consumed as a marker. A line that causes
    a transition without being consumed is handled by the new region.

Guardrails:
    ❌ DON'T: Step back to an earlier region
    ✅ DO: Treat anything unexpected as content of the current region

Tags:
    parser, state-machine, document-structure, md2docx
"""

from __future__ import annotations

import re
from enum import IntEnum

from md2docx.lexer import heading_parts, is_numbered_section, is_table_separator, split_table_row
from md2docx.logging import get_logger
from md2docx.models import CoverInfo, DocumentStructure

logger = get_logger(__name__)


class Region(IntEnum):
    COVER = 0
    TOC = 1
    REVISION = 2
    MAIN = 3


TOC_MARKERS = {"table of contents", "目錄", "目录"}
REVISION_MARKERS = ("revision history", "修訂歷史", "修订历史")

SUBTITLE_PATTERN = re.compile(r"^(?:##\s*For\s+|\*\*For\s+)(.+?)(?:\*\*)?$")
VERSION_PATTERN = re.compile(r"^(?:Version|版本)\s*[:：]?\s*(.+)$", re.IGNORECASE)
AUTHOR_PATTERN = re.compile(r"^(?:Prepared by|作者)\s*[:：]?\s*(.+)$", re.IGNORECASE)
ORGANIZATION_PATTERN = re.compile(r"^[A-Z].*\s+(?:Inc\.|Corp\.|Ltd\.|Co\.)$")
DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def _marker_text(line: str) -> str:
    """Line text with heading hashes and bold markers removed, lowercased."""
    return line.strip().lstrip("#").replace("**", "").strip().lower()


def is_toc_marker(line: str) -> bool:
    return _marker_text(line) in TOC_MARKERS


def is_revision_marker(line: str) -> bool:
    """A heading or bare line naming the revision history (not a TOC link)."""
    text = _marker_text(line)
    return any(text.startswith(marker) for marker in REVISION_MARKERS)


def transition(region: Region, line: str) -> tuple[Region, bool]:
    """Next region for ``line`` and whether the line was consumed as a marker."""
    stripped = line.strip()

    if region is Region.COVER:
        if is_toc_marker(stripped):
            return Region.TOC, True
        if is_numbered_section(stripped):
            return Region.MAIN, False
        return region, False

    if region is Region.TOC:
        if is_revision_marker(stripped):
            return Region.REVISION, True
        if is_numbered_section(stripped):
            return Region.MAIN, False
        return region, False

    if region is Region.REVISION:
        parts = heading_parts(stripped)
        if parts is not None and parts[0] <= 2:
            if "revision" in parts[1].lower() or "修訂" in parts[1]:
                return region, True
            return Region.MAIN, False
        return region, False

    return region, False


class DocumentStructureParser:
    """Splits a full document into cover, TOC, revision history and body.

    Examples:
        >>> parser = DocumentStructureParser()
        >>> structure = parser.parse("# SRS\\n\\n## Table of Contents\\n\\n## 1 Intro\\nText")
        >>> structure.cover.title, structure.body_lines[0]
        ('SRS', '## 1 Intro')
    """

    def __init__(self, organization_markers: list[str] | None = None):
        self.organization_markers = [m.lower() for m in (organization_markers or [])]

    def parse(self, text: str) -> DocumentStructure:
        cover: dict[str, str] = {}
        structure = DocumentStructure()
        region = Region.COVER

        for line in text.splitlines():
            next_region, consumed = transition(region, line)
            if next_region is not region:
                logger.debug("structure.transition", from_region=region.name, to_region=next_region.name)
                region = next_region
            if consumed:
                continue

            stripped = line.strip()
            if region is Region.COVER:
                self._parse_cover_line(stripped, cover)
            elif region is Region.TOC:
                if stripped != "---":
                    structure.toc_lines.append(line)
            elif region is Region.REVISION:
                if stripped.startswith("|") and stripped.endswith("|") and not is_table_separator(stripped):
                    structure.revision_rows.append(split_table_row(stripped))
            else:
                structure.body_lines.append(line)

        structure.cover = CoverInfo(**cover)
        return structure

    def _parse_cover_line(self, line: str, cover: dict[str, str]) -> None:
        if not line or line == "---":
            return

        parts = heading_parts(line)
        if parts is not None and parts[0] == 1:
            cover.setdefault("title", parts[1].strip())
            return

        subtitle = SUBTITLE_PATTERN.match(line)
        if subtitle:
            cover["subtitle"] = subtitle.group(1).strip()
            return

        plain = line.replace("**", "").strip()
        for key, pattern in (("version", VERSION_PATTERN), ("author", AUTHOR_PATTERN)):
            match = pattern.match(plain)
            if match:
                cover[key] = match.group(1).strip()
                return

        if ORGANIZATION_PATTERN.match(plain) or any(
            plain.lower().startswith(marker) for marker in self.organization_markers
        ):
            cover["organization"] = plain
        elif DATE_PATTERN.match(plain):
            cover["date"] = plain


__all__ = [
    "Region",
    "transition",
    "is_toc_marker",
    "is_revision_marker",
    "DocumentStructureParser",
]
