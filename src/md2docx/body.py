"""
Body element building.

Manifesto:
    The body is a line stream. Each line is classified once (LineKind) and
    dispatched to the component that owns it: requirement headings to the
    extractor, pipe tables to the layout engine, diagram fences to a pending
    Diagram, everything textual to the inline parser. The output is a flat
    list of DocumentElements in source order.

Architecture:
    ::

        body_lines ──classify_line──► LineKind
            FENCE ──────────────► CodeBlock | Diagram (mermaid)
            REQUIREMENT_HEADING ► RequirementTable   (RequirementBlockExtractor)
            HEADING ────────────► Heading(page_break_before=should_break_before)
            TABLE_ROW ──────────► Table              (TableLayoutEngine)
            IMAGE ──────────────► Image | placeholder Paragraph
            TEXT ───────────────► Paragraph          (InlineSpanParser)
            BLANK / RULE ───────► (nothing)

Page breaks:
    H1 and numbered ``## N`` sections always start a page. Any other heading
    starts a page only when it opens a cluster of consecutive headings
    (blank lines allowed) that is immediately followed by a requirement
    table, so the cluster and the table stay together.

Guardrails:
    ❌ DON'T: Render a duplicate requirement ID
    ✅ DO: Raise DuplicateRequirementError; IDs are unique per document

Tags:
    body, dispatcher, markdown, md2docx
"""

from __future__ import annotations

import re
from pathlib import Path

from md2docx.diagrams.renderer import DIAGRAM_LANGUAGES
from md2docx.errors import DuplicateRequirementError
from md2docx.fonts import FontSelector
from md2docx.images import SUPPORTED_SUFFIXES, read_dimensions, scale_to_fit
from md2docx.inline import InlineSpanParser
from md2docx.layout import TableLayoutEngine
from md2docx.lexer import (
    FENCE_PATTERN,
    IMAGE_PATTERN,
    LineKind,
    classify_line,
    fence_language,
    heading_parts,
    is_bold_line,
    is_numbered_section,
    is_table_separator,
    split_table_row,
)
from md2docx.logging import get_logger
from md2docx.models import (
    CodeBlock,
    Diagram,
    DocumentElement,
    Heading,
    Image,
    Paragraph,
    RequirementTable,
    Table,
)
from md2docx.requirements import RequirementBlockExtractor
from md2docx.settings import ConverterSettings

logger = get_logger(__name__)

BOX_DRAWING_PATTERN = re.compile(r"[\u2500-\u257f]")

PLACEHOLDER_COLOR = "FF0000"


def is_ascii_art(code: str) -> bool:
    """More than 10% of the lines carry box-drawing characters."""
    lines = code.splitlines()
    if not lines:
        return False
    drawn = sum(1 for line in lines if BOX_DRAWING_PATTERN.search(line))
    return drawn / len(lines) > 0.1


def should_break_before(lines: list[str], index: int) -> bool:
    """Whether the heading at ``lines[index]`` starts a new page."""
    parts = heading_parts(lines[index])
    if parts is None:
        return False
    if parts[0] == 1 or is_numbered_section(lines[index]):
        return True

    previous = index - 1
    while previous >= 0 and classify_line(lines[previous]) is LineKind.BLANK:
        previous -= 1
    if previous >= 0 and classify_line(lines[previous]) is LineKind.HEADING:
        return False

    following = index + 1
    while following < len(lines):
        kind = classify_line(lines[following])
        if kind in (LineKind.BLANK, LineKind.HEADING):
            following += 1
            continue
        return kind is LineKind.REQUIREMENT_HEADING
    return False


class BodyBuilder:
    """Turns body lines into DocumentElements.

    Image paths are resolved against ``base_dir`` (the input document's
    directory). Non-fatal problems are collected in ``warnings``.
    """

    def __init__(self, settings: ConverterSettings | None = None, base_dir: Path | None = None):
        self.settings = settings or ConverterSettings()
        self.base_dir = Path(base_dir) if base_dir else Path.cwd()
        self.fonts = FontSelector(
            latin=self.settings.font_latin,
            cjk=self.settings.font_cjk,
            code=self.settings.font_code,
        )
        self.inline = InlineSpanParser(self.fonts)
        self.layout = TableLayoutEngine(
            total_width=self.settings.table_width,
            min_width=self.settings.min_column_width,
            id_min_width=self.settings.id_column_min_width,
        )
        self.extractor = RequirementBlockExtractor()
        self.warnings: list[str] = []

    def build(self, lines: list[str]) -> list[DocumentElement]:
        elements: list[DocumentElement] = []
        seen_ids: set[str] = set()
        index = 0

        while index < len(lines):
            line = lines[index]
            kind = classify_line(line)

            if kind is LineKind.FENCE:
                element, index = self._fenced_block(lines, index)
                elements.append(element)
            elif kind is LineKind.REQUIREMENT_HEADING:
                heading_index = index
                record, index = self.extractor.extract(lines, index)
                if record.id in seen_ids:
                    raise DuplicateRequirementError(record.id, line=heading_index + 1)
                seen_ids.add(record.id)
                elements.append(RequirementTable(record))
            elif kind is LineKind.HEADING:
                level, text = heading_parts(line)
                elements.append(Heading(level, text, should_break_before(lines, index)))
            elif kind is LineKind.TABLE_ROW:
                table, index = self._table(lines, index)
                if table is not None:
                    elements.append(table)
            elif kind is LineKind.IMAGE:
                elements.append(self._image(line))
            elif kind is LineKind.TEXT:
                elements.append(
                    Paragraph(self.inline.parse(line.strip()), keep_with_next=is_bold_line(line))
                )
            index += 1

        logger.debug("body.built", elements=len(elements), requirements=len(seen_ids))
        return elements

    # ── Dispatch targets ─────────────────────────────────────────────

    def _fenced_block(self, lines: list[str], index: int) -> tuple[DocumentElement, int]:
        """Code or diagram element and the index of the closing fence."""
        opening = FENCE_PATTERN.match(lines[index].strip()).group(1)
        language = fence_language(lines[index])
        content: list[str] = []
        position = index + 1

        while position < len(lines):
            stripped = lines[position].strip()
            if stripped.startswith(opening) and not stripped[len(opening):].strip():
                break
            content.append(lines[position])
            position += 1
        else:
            self.warnings.append(f"Unterminated code fence at body line {index + 1}")
            logger.warning("body.unterminated_fence", line=index + 1)

        code = "\n".join(content)
        if language in DIAGRAM_LANGUAGES:
            return Diagram(source=code, language=language), position
        return CodeBlock(code=code, language=language, line_numbers=not is_ascii_art(code)), position

    def _table(self, lines: list[str], index: int) -> tuple[Table | None, int]:
        """Table from consecutive pipe rows and the index of the last row."""
        rows: list[list[str]] = []
        position = index
        while position < len(lines) and classify_line(lines[position]) is LineKind.TABLE_ROW:
            if not is_table_separator(lines[position]):
                rows.append(split_table_row(lines[position]))
            position += 1

        if not rows:
            return None, position - 1

        headers, body = rows[0], rows[1:]
        width = len(headers)
        body = [(row + [""] * width)[:width] for row in body]
        return Table(headers, body, self.layout.column_widths(headers, body)), position - 1

    def _image(self, line: str) -> DocumentElement:
        match = IMAGE_PATTERN.match(line.strip())
        alt, reference = match.group("alt"), match.group("path")
        path = Path(reference)
        if not path.is_absolute():
            path = self.base_dir / path

        if not path.is_file() or path.suffix.lower() not in SUPPORTED_SUFFIXES:
            return self.image_placeholder(reference)

        width, height = scale_to_fit(
            read_dimensions(path),
            self.settings.image_max_width,
            self.settings.image_max_height,
            (self.settings.image_default_width, self.settings.image_default_height),
        )
        return Image(path=path, display_width=width, display_height=height, alt=alt)

    def image_placeholder(self, reference: str) -> Paragraph:
        self.warnings.append(f"Image not found: {reference}")
        logger.warning("body.image_missing", path=reference)
        runs = self.inline.parse(
            f"[Image not found: {reference}]", color=PLACEHOLDER_COLOR, italic=True
        )
        return Paragraph(runs)


__all__ = ["BodyBuilder", "should_break_before", "is_ascii_art"]
