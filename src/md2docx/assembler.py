"""
Document assembly with python-docx.

Manifesto:
    The output must open in Word looking like a controlled document: a
    bare cover page, a live table of contents, a revision history, then the
    body. Every page after the cover carries the document title and
    "Page X of Y". Headers, footers and the TOC are real Word fields, not
    text, so they stay correct after the reader edits the document.

Architecture:
    ::

        ┌──────────────────────────────────────────────────────────────┐
        │ Section 1  Cover            no header / footer               │
        ├──────────────────────────────────────────────────────────────┤
        │ Section 2  TOC field        header: title (right, italic)    │
        │            + refresh note   footer: Page {PAGE} of {NUMPAGES}│
        ├──────────────────────────────────────────────────────────────┤
        │ Section 3  Revision history   (header/footer linked to 2)    │
        ├──────────────────────────────────────────────────────────────┤
        │ Section 4  Body elements      (header/footer linked to 2)    │
        └──────────────────────────────────────────────────────────────┘

Features:
    - Per-run fonts: Latin face plus an East Asian face on every run
    - Body tables with explicit column widths and shaded header row
    - Requirement tables: 2200/7160 twips, blue title row, grey labels
    - Code blocks as zebra-striped tables, line-numbered unless ASCII art
    - Images sized from precomputed display dimensions (96 dpi pixels)
    - Missing or unreadable images become a red placeholder paragraph

Guardrails:
    ❌ DON'T: Hand a pending Diagram to the assembler
    ✅ DO: Resolve diagrams first (resolve_diagrams)

Tags:
    docx, python-docx, assembly, sections, fields, md2docx
"""

from __future__ import annotations

from pathlib import Path

from docx import Document
from docx.document import Document as DocxDocument
from docx.enum.section import WD_SECTION
from docx.enum.table import WD_TABLE_ALIGNMENT
from docx.enum.text import WD_ALIGN_PARAGRAPH
from docx.image.exceptions import UnrecognizedImageError
from docx.oxml import OxmlElement
from docx.oxml.ns import qn
from docx.shared import Emu, Pt, RGBColor, Twips

from md2docx.errors import DocGenError
from md2docx.fonts import FONT_SIZES, FontSelector, heading_size
from md2docx.inline import InlineSpanParser, strip_inline
from md2docx.layout import TableLayoutEngine
from md2docx.logging import get_logger
from md2docx.models import (
    CodeBlock,
    CoverInfo,
    Diagram,
    DocumentElement,
    DocumentStructure,
    Heading,
    Image,
    Paragraph,
    RequirementRecord,
    RequirementTable,
    Table,
    TextRun,
)
from md2docx.settings import ConverterSettings

logger = get_logger(__name__)

PAGE_MARGIN_TWIPS = 1440
EMU_PER_PIXEL = 9525

TABLE_HEADER_FILL = "D5E8F0"
REQUIREMENT_HEADER_FILL = "4472C4"
REQUIREMENT_LABEL_FILL = "F2F2F2"
CODE_ROW_FILLS = ("FFFFFF", "F5F5F5")
HEADER_TEXT_COLOR = "666666"
NOTE_TEXT_COLOR = "808080"
LINE_NUMBER_COLOR = "999999"
PLACEHOLDER_COLOR = "FF0000"

REQUIREMENT_COLUMN_WIDTHS = (2200, 7160)
LINE_NUMBER_WIDTH = 720

TOC_INSTRUCTION = 'TOC \\o "1-4" \\h \\z \\u'
TOC_NOTE = (
    'Note: Press F9 in Word or right-click and select "Update Field" '
    "to display TOC content and page numbers"
)

REVISION_COLUMNS = ["Name", "Date", "Reason For Changes", "Version"]
REVISION_ALIASES = {
    "name": 0,
    "author": 0,
    "姓名": 0,
    "作者": 0,
    "date": 1,
    "日期": 1,
    "reason for changes": 2,
    "reason for change": 2,
    "reason": 2,
    "changes": 2,
    "description": 2,
    "變更原因": 2,
    "修訂說明": 2,
    "version": 3,
    "版本": 3,
}

DEFAULT_TITLE = "Document Title"

# w:settings children that must follow w:updateFields
UPDATE_FIELDS_SUCCESSORS = (
    "w:hdrShapeDefaults",
    "w:footnotePr",
    "w:endnotePr",
    "w:compat",
    "w:docVars",
    "w:rsids",
    "w:attachedSchema",
    "w:themeFontLang",
    "w:clrSchemeMapping",
    "w:doNotIncludeSubdocsInStats",
    "w:doNotAutoCompressPictures",
    "w:forceUpgrade",
    "w:captions",
    "w:readModeInkLockDown",
    "w:smartTagType",
    "w:shapeDefaults",
    "w:doNotEmbedSmartTags",
    "w:decimalSymbol",
    "w:listSeparator",
)


# ── Pure helpers ─────────────────────────────────────────────────────


def map_revision_rows(rows: list[list[str]]) -> list[list[str]]:
    """Project captured revision rows onto {Name, Date, Reason For Changes, Version}.

    The first row is treated as a header when any of its cells names a known
    column; columns are then matched by name. Otherwise cells are taken
    positionally. The returned rows exclude the header.
    """
    if not rows:
        return []

    header = [strip_inline(cell).strip().lower() for cell in rows[0]]
    mapping = {src: REVISION_ALIASES[name] for src, name in enumerate(header) if name in REVISION_ALIASES}
    if mapping:
        data = rows[1:]
    else:
        mapping = {src: src for src in range(min(len(rows[0]), len(REVISION_COLUMNS)))}
        data = rows

    mapped = []
    for row in data:
        cells = [""] * len(REVISION_COLUMNS)
        for src, dst in mapping.items():
            if src < len(row) and not cells[dst]:
                cells[dst] = row[src]
        mapped.append(cells)
    return mapped


def requirement_rows(record: RequirementRecord) -> list[tuple[str, str | list[str]]]:
    """Label/value rows of a requirement table in display order.

    Statement, rationale, priority, safety class, other fields, acceptance
    criteria, verification. Empty fields are omitted; labels keep the
    author's own wording.
    """
    rows: list[tuple[str, str | list[str]]] = []
    for canonical, default in (
        ("statement", "Statement"),
        ("rationale", "Rationale"),
        ("priority", "Priority"),
        ("safety_class", "Safety Class"),
    ):
        value = getattr(record, canonical)
        if value:
            rows.append((record.label_for(canonical, default), value))
    for label, value in record.other_fields.items():
        rows.append((label, value))
    if record.acceptance_criteria:
        rows.append(
            (record.label_for("acceptance_criteria", "Acceptance Criteria"), list(record.acceptance_criteria))
        )
    if record.verification_method:
        rows.append(
            (record.label_for("verification_method", "Verification Method"), record.verification_method)
        )
    return rows


# ── Low-level OOXML helpers ──────────────────────────────────────────


def set_east_asian_font(run, font_name: str) -> None:
    rPr = run._element.get_or_add_rPr()
    rFonts = rPr.get_or_add_rFonts()
    rFonts.set(qn("w:eastAsia"), font_name)


def set_cell_background(cell, hex_color: str) -> None:
    tcPr = cell._element.get_or_add_tcPr()
    shd = OxmlElement("w:shd")
    shd.set(qn("w:val"), "clear")
    shd.set(qn("w:color"), "auto")
    shd.set(qn("w:fill"), hex_color)
    tcPr.append(shd)


def add_field(paragraph, instruction: str, placeholder: str = ""):
    """Append a complex field (begin / instr / separate / result / end)."""
    run = paragraph.add_run()
    begin = OxmlElement("w:fldChar")
    begin.set(qn("w:fldCharType"), "begin")
    instr = OxmlElement("w:instrText")
    instr.set(qn("xml:space"), "preserve")
    instr.text = instruction
    separate = OxmlElement("w:fldChar")
    separate.set(qn("w:fldCharType"), "separate")
    run._r.append(begin)
    run._r.append(instr)
    run._r.append(separate)

    result = paragraph.add_run(placeholder)

    end_run = paragraph.add_run()
    end = OxmlElement("w:fldChar")
    end.set(qn("w:fldCharType"), "end")
    end_run._r.append(end)
    return run, result, end_run


def enable_update_fields(document: DocxDocument) -> None:
    """Ask Word to refresh fields (TOC, NUMPAGES) when the file is opened."""
    settings = document.settings.element
    update = settings.find(qn("w:updateFields"))
    if update is None:
        update = OxmlElement("w:updateFields")
        settings.insert_element_before(update, *UPDATE_FIELDS_SUCCESSORS)
    update.set(qn("w:val"), "true")


class DocumentAssembler:
    """Builds the four-section Word document.

    Example:
        >>> assembler = DocumentAssembler(settings)
        >>> document = assembler.assemble(structure, elements)
        >>> document.save("out.docx")
    """

    def __init__(self, settings: ConverterSettings | None = None):
        self.settings = settings or ConverterSettings()
        self.fonts = FontSelector(
            latin=self.settings.font_latin,
            cjk=self.settings.font_cjk,
            code=self.settings.font_code,
        )
        self.inline = InlineSpanParser(self.fonts)
        self.layout = TableLayoutEngine(
            total_width=self.settings.table_width,
            min_width=self.settings.min_column_width,
        )
        self.warnings: list[str] = []

    def assemble(
        self,
        structure: DocumentStructure,
        elements: list[DocumentElement],
        *,
        fallback_title: str = "",
    ) -> DocxDocument:
        document = Document()
        title = strip_inline(structure.cover.title) or fallback_title or DEFAULT_TITLE

        cover = document.sections[0]
        self._set_margins(cover)
        self._cover(document, structure.cover)

        toc_section = document.add_section(WD_SECTION.NEW_PAGE)
        self._set_margins(toc_section)
        self._running_header_footer(toc_section, title)
        self._table_of_contents(document)

        revision_section = document.add_section(WD_SECTION.NEW_PAGE)
        self._set_margins(revision_section)
        self._revision_history(document, structure.revision_rows)

        body_section = document.add_section(WD_SECTION.NEW_PAGE)
        self._set_margins(body_section)
        for element in elements:
            self._render(document, element)

        enable_update_fields(document)
        logger.debug("assemble.complete", elements=len(elements), sections=len(document.sections))
        return document

    # ── Sections ─────────────────────────────────────────────────────

    @staticmethod
    def _set_margins(section) -> None:
        margin = Twips(PAGE_MARGIN_TWIPS)
        section.top_margin = margin
        section.bottom_margin = margin
        section.left_margin = margin
        section.right_margin = margin

    def _cover(self, document: DocxDocument, cover: CoverInfo) -> None:
        for _ in range(6):
            document.add_paragraph()

        title = cover.title or DEFAULT_TITLE
        self._centered(document, title, FONT_SIZES["cover_title"], bold=True, space_after=24)
        if cover.subtitle:
            self._centered(document, f"For {cover.subtitle}", FONT_SIZES["h2"], space_after=48)
        if cover.version:
            self._centered(document, f"Version {cover.version}", FONT_SIZES["h4"])
        if cover.author:
            self._centered(document, f"Prepared by {cover.author}", FONT_SIZES["h4"])
        if cover.organization:
            self._centered(document, cover.organization, FONT_SIZES["h4"])
        if cover.date:
            self._centered(document, cover.date, FONT_SIZES["h4"])

    def _centered(
        self,
        document: DocxDocument,
        text: str,
        size: float,
        *,
        bold: bool = False,
        space_after: int = 12,
    ) -> None:
        paragraph = document.add_paragraph()
        paragraph.alignment = WD_ALIGN_PARAGRAPH.CENTER
        paragraph.paragraph_format.space_after = Pt(space_after)
        self._add_runs(paragraph, self.inline.parse(text, size=size, bold=bold))

    def _running_header_footer(self, section, title: str) -> None:
        header = section.header
        header.is_linked_to_previous = False
        paragraph = header.paragraphs[0]
        paragraph.alignment = WD_ALIGN_PARAGRAPH.RIGHT
        self._add_runs(
            paragraph,
            self.inline.parse(title, size=FONT_SIZES["small"], italic=True, color=HEADER_TEXT_COLOR),
        )

        footer = section.footer
        footer.is_linked_to_previous = False
        paragraph = footer.paragraphs[0]
        paragraph.alignment = WD_ALIGN_PARAGRAPH.CENTER
        size = FONT_SIZES["footer"]
        self._add_runs(paragraph, [self._plain_run("Page ", size)])
        for run in add_field(paragraph, "PAGE", "1"):
            self._style_run(run, self._plain_run("", size))
        self._add_runs(paragraph, [self._plain_run(" of ", size)])
        for run in add_field(paragraph, "NUMPAGES", "1"):
            self._style_run(run, self._plain_run("", size))

    def _table_of_contents(self, document: DocxDocument) -> None:
        heading = document.add_paragraph()
        heading.alignment = WD_ALIGN_PARAGRAPH.CENTER
        heading.paragraph_format.space_after = Pt(18)
        self._add_runs(heading, self.inline.parse("Table of Contents", size=FONT_SIZES["h1"], bold=True))

        field = document.add_paragraph()
        add_field(field, TOC_INSTRUCTION, "Right-click to update field.")

        note = document.add_paragraph()
        note.paragraph_format.space_before = Pt(12)
        self._add_runs(
            note,
            self.inline.parse(TOC_NOTE, size=FONT_SIZES["small"], italic=True, color=NOTE_TEXT_COLOR),
        )

    def _revision_history(self, document: DocxDocument, rows: list[list[str]]) -> None:
        self._render(document, Heading(level=1, text="Revision History"))
        mapped = map_revision_rows(rows)
        if not mapped:
            self.warnings.append("No revision history rows found")
            logger.warning("assemble.revision_history_missing")
        widths = self.layout.column_widths(REVISION_COLUMNS, mapped)
        self._render(document, Table(list(REVISION_COLUMNS), mapped, widths))

    # ── Elements ─────────────────────────────────────────────────────

    def _render(self, document: DocxDocument, element: DocumentElement) -> None:
        if isinstance(element, Heading):
            self._heading(document, element)
        elif isinstance(element, Paragraph):
            paragraph = document.add_paragraph()
            paragraph.paragraph_format.space_after = Pt(6)
            paragraph.paragraph_format.keep_with_next = element.keep_with_next
            self._add_runs(paragraph, element.runs)
        elif isinstance(element, Table):
            self._table(document, element)
        elif isinstance(element, RequirementTable):
            self._requirement_table(document, element.record)
        elif isinstance(element, CodeBlock):
            self._code_block(document, element)
        elif isinstance(element, Image):
            self._image(document, element)
        elif isinstance(element, Diagram):
            raise DocGenError("Unresolved diagram reached the assembler")
        else:
            raise DocGenError(f"Unknown document element: {type(element).__name__}")

    def _heading(self, document: DocxDocument, heading: Heading) -> None:
        level = min(max(heading.level, 1), 9)
        paragraph = document.add_heading(level=level)
        paragraph.paragraph_format.page_break_before = heading.page_break_before
        paragraph.paragraph_format.keep_with_next = True
        self._add_runs(
            paragraph,
            self.inline.parse(heading.text, size=heading_size(level), bold=True, color="000000"),
        )

    def _table(self, document: DocxDocument, table: Table) -> None:
        columns = len(table.headers)
        if columns == 0:
            return
        word_table = document.add_table(rows=1 + len(table.rows), cols=columns)
        word_table.style = "Table Grid"
        word_table.alignment = WD_TABLE_ALIGNMENT.CENTER
        word_table.autofit = False

        for col, width in enumerate(table.column_widths):
            word_table.columns[col].width = Twips(width)
            for cell in word_table.columns[col].cells:
                cell.width = Twips(width)

        for col, header in enumerate(table.headers):
            cell = word_table.rows[0].cells[col]
            set_cell_background(cell, TABLE_HEADER_FILL)
            paragraph = cell.paragraphs[0]
            paragraph.alignment = WD_ALIGN_PARAGRAPH.CENTER
            self._add_runs(paragraph, self.inline.parse(header, size=FONT_SIZES["table_header"], bold=True))

        for row_index, row in enumerate(table.rows, start=1):
            for col in range(columns):
                value = row[col] if col < len(row) else ""
                paragraph = word_table.rows[row_index].cells[col].paragraphs[0]
                self._add_runs(paragraph, self.inline.parse(value, size=FONT_SIZES["table"]))

        document.add_paragraph().paragraph_format.space_after = Pt(6)

    def _requirement_table(self, document: DocxDocument, record: RequirementRecord) -> None:
        rows = requirement_rows(record)
        word_table = document.add_table(rows=1 + len(rows), cols=2)
        word_table.style = "Table Grid"
        word_table.alignment = WD_TABLE_ALIGNMENT.CENTER
        word_table.autofit = False
        for col, width in enumerate(REQUIREMENT_COLUMN_WIDTHS):
            word_table.columns[col].width = Twips(width)
            for cell in word_table.columns[col].cells:
                cell.width = Twips(width)

        title_cell = word_table.rows[0].cells[0].merge(word_table.rows[0].cells[1])
        set_cell_background(title_cell, REQUIREMENT_HEADER_FILL)
        title = f"{record.id}: {record.name}" if record.name else record.id
        self._add_runs(
            title_cell.paragraphs[0],
            self.inline.parse(title, size=FONT_SIZES["table_header"], bold=True, color="FFFFFF"),
        )

        size = FONT_SIZES["table"]
        for row_index, (label, value) in enumerate(rows, start=1):
            label_cell, value_cell = word_table.rows[row_index].cells
            set_cell_background(label_cell, REQUIREMENT_LABEL_FILL)
            self._add_runs(label_cell.paragraphs[0], self.inline.parse(label, size=size, bold=True))

            if isinstance(value, list):
                for position, criterion in enumerate(value):
                    paragraph = value_cell.paragraphs[0] if position == 0 else value_cell.add_paragraph()
                    self._add_runs(paragraph, self.inline.parse(f"• {criterion}", size=size))
            else:
                self._add_runs(value_cell.paragraphs[0], self.inline.parse(value, size=size))

        document.add_paragraph().paragraph_format.space_after = Pt(6)

    def _code_block(self, document: DocxDocument, block: CodeBlock) -> None:
        lines = block.code.split("\n") if block.code else [""]
        numbered = block.line_numbers
        widths = (
            (LINE_NUMBER_WIDTH, self.settings.table_width - LINE_NUMBER_WIDTH)
            if numbered
            else (self.settings.table_width,)
        )

        word_table = document.add_table(rows=len(lines), cols=len(widths))
        word_table.autofit = False
        for col, width in enumerate(widths):
            word_table.columns[col].width = Twips(width)
            for cell in word_table.columns[col].cells:
                cell.width = Twips(width)

        size = FONT_SIZES["small"]
        for index, line in enumerate(lines):
            cells = word_table.rows[index].cells
            fill = CODE_ROW_FILLS[index % 2] if numbered else CODE_ROW_FILLS[1]
            for cell in cells:
                set_cell_background(cell, fill)
                cell.paragraphs[0].paragraph_format.space_after = Pt(0)
            if numbered:
                number = cells[0].paragraphs[0]
                number.alignment = WD_ALIGN_PARAGRAPH.RIGHT
                self._add_runs(number, [self._code_run(str(index + 1), size, LINE_NUMBER_COLOR)])
            self._add_runs(cells[-1].paragraphs[0], [self._code_run(line, size)])

        document.add_paragraph().paragraph_format.space_after = Pt(6)

    def _image(self, document: DocxDocument, image: Image) -> None:
        path = Path(image.path)
        if path.is_file():
            paragraph = document.add_paragraph()
            paragraph.alignment = WD_ALIGN_PARAGRAPH.CENTER
            try:
                paragraph.add_run().add_picture(
                    str(path),
                    width=Emu(image.display_width * EMU_PER_PIXEL),
                    height=Emu(image.display_height * EMU_PER_PIXEL),
                )
                return
            except UnrecognizedImageError:
                logger.warning("assemble.image_unrecognized", path=str(path))
                paragraph._element.getparent().remove(paragraph._element)

        self.warnings.append(f"Image not found: {path}")
        logger.warning("assemble.image_missing", path=str(path))
        placeholder = document.add_paragraph()
        self._add_runs(
            placeholder,
            self.inline.parse(f"[Image not found: {path}]", italic=True, color=PLACEHOLDER_COLOR),
        )

    # ── Runs ─────────────────────────────────────────────────────────

    def _plain_run(self, text: str, size: float) -> TextRun:
        return TextRun(text=text, font=self.fonts.select(text), size=size, color=HEADER_TEXT_COLOR)

    def _code_run(self, text: str, size: float, color: str | None = None) -> TextRun:
        return TextRun(text=text, font=self.fonts.code, size=size, color=color, code=True)

    def _add_runs(self, paragraph, runs: list[TextRun]) -> None:
        for text_run in runs:
            self._style_run(paragraph.add_run(text_run.text), text_run)

    def _style_run(self, run, text_run: TextRun) -> None:
        run.font.name = text_run.font
        run.font.size = Pt(text_run.size)
        run.font.bold = text_run.bold
        if text_run.italic:
            run.font.italic = True
        if text_run.color:
            run.font.color.rgb = RGBColor.from_string(text_run.color)
        set_east_asian_font(run, self.fonts.code if text_run.code else self.fonts.cjk)


__all__ = [
    "DocumentAssembler",
    "map_revision_rows",
    "requirement_rows",
    "REVISION_COLUMNS",
    "TOC_INSTRUCTION",
    "TOC_NOTE",
]
