"""
Data model for the conversion pipeline.

The structure parser produces a DocumentStructure; the body builder turns
its body lines into a flat, ordered list of DocumentElements; the assembler
consumes both. Elements are plain dataclasses with no behaviour beyond
construction, so every stage can be tested by comparing values.

Architecture:
    ::

        DocumentStructure
        ├── cover: CoverInfo
        ├── toc_lines: list[str]          (marker only; TOC is regenerated)
        ├── revision_rows: list[list[str]]
        └── body_lines: list[str]
                 │
                 ▼  BodyBuilder
        list[DocumentElement]
        ├── Heading(level, text, page_break_before)
        ├── Paragraph(runs, keep_with_next)
        ├── Table(headers, rows, column_widths)
        ├── RequirementTable(record)
        ├── Image(path, display_width, display_height)
        ├── CodeBlock(code, language, line_numbers)
        └── Diagram(source)               (pending; resolved before assembly)

Tags:
    data-model, dataclass, md2docx
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Union


@dataclass(frozen=True)
class CoverInfo:
    """Cover-page metadata. Absent fields are empty strings."""

    title: str = ""
    subtitle: str = ""
    version: str = ""
    author: str = ""
    organization: str = ""
    date: str = ""

    def missing_fields(self) -> list[str]:
        return [f.name for f in fields(self) if not getattr(self, f.name)]


@dataclass
class DocumentStructure:
    """The four contiguous regions of an input document."""

    cover: CoverInfo = field(default_factory=CoverInfo)
    toc_lines: list[str] = field(default_factory=list)
    revision_rows: list[list[str]] = field(default_factory=list)
    body_lines: list[str] = field(default_factory=list)


@dataclass
class RequirementRecord:
    """A single requirement/design/test item.

    ``labels`` maps a canonical field name to the label the author wrote
    (``"statement" -> "Description"``), so the rendered table speaks the
    document's own dialect.
    """

    id: str
    name: str = ""
    statement: str = ""
    rationale: str = ""
    priority: str = ""
    safety_class: str = ""
    verification_method: str = ""
    acceptance_criteria: list[str] = field(default_factory=list)
    other_fields: dict[str, str] = field(default_factory=dict)
    labels: dict[str, str] = field(default_factory=dict)

    def __post_init__(self):
        if not self.id:
            raise ValueError("RequirementRecord.id must not be empty")

    def label_for(self, canonical: str, default: str) -> str:
        return self.labels.get(canonical, default)


# ── Inline runs ──────────────────────────────────────────────


@dataclass(frozen=True)
class TextRun:
    text: str
    bold: bool = False
    italic: bool = False
    font: str = "Arial"
    size: float = 11
    color: str | None = None
    code: bool = False


# ── Document elements ────────────────────────────────────────


@dataclass
class Heading:
    level: int
    text: str
    page_break_before: bool = False


@dataclass
class Paragraph:
    runs: list[TextRun]
    keep_with_next: bool = False

    @property
    def text(self) -> str:
        return "".join(run.text for run in self.runs)


@dataclass
class Table:
    headers: list[str]
    rows: list[list[str]]
    column_widths: list[int]


@dataclass
class RequirementTable:
    record: RequirementRecord


@dataclass
class Image:
    path: Path
    display_width: int
    display_height: int
    alt: str = ""


@dataclass
class CodeBlock:
    code: str
    language: str = ""
    line_numbers: bool = True


@dataclass
class Diagram:
    """A diagram fence awaiting render; never reaches the assembler."""

    source: str
    language: str = "mermaid"


DocumentElement = Union[
    Heading, Paragraph, Table, RequirementTable, Image, CodeBlock, Diagram
]


@dataclass
class ConversionResult:
    """Outcome of converting one document."""

    source: Path
    output: Path | None = None
    diagrams_rendered: int = 0
    diagrams_fallback: int = 0
    requirements: int = 0
    warnings: list[str] = field(default_factory=list)
    skipped: bool = False
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


__all__ = [
    "CoverInfo",
    "DocumentStructure",
    "RequirementRecord",
    "TextRun",
    "Heading",
    "Paragraph",
    "Table",
    "RequirementTable",
    "Image",
    "CodeBlock",
    "Diagram",
    "DocumentElement",
    "ConversionResult",
]
