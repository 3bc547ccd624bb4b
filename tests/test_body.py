"""
Tests for md2docx.body module.

Tests cover:
- Page-break rule for headings before requirement tables
- Element dispatch (tables, fences, images, paragraphs)
- Duplicate requirement IDs
"""

from pathlib import Path

import pytest

from md2docx.body import BodyBuilder, is_ascii_art, should_break_before
from md2docx.errors import DuplicateRequirementError
from md2docx.models import (
    CodeBlock,
    Diagram,
    Heading,
    Image,
    Paragraph,
    RequirementTable,
    Table,
)
from md2docx.settings import ConverterSettings

from conftest import make_png


def build(text: str, **kwargs):
    builder = BodyBuilder(**kwargs)
    return builder.build(text.splitlines()), builder


class TestShouldBreakBefore:
    """Headings that lead into a requirement table start a page."""

    def test_heading_before_requirement_breaks(self):
        lines = ["### Authentication", "", "", "#### REQ-AUTH-001 User Login", "**Statement:** x"]
        assert should_break_before(lines, 0) is True

    def test_heading_before_paragraph_does_not_break(self):
        lines = ["### Authentication", "", "Users sign in first.", "#### REQ-AUTH-001 User Login"]
        assert should_break_before(lines, 0) is False

    def test_h1_and_numbered_sections_always_break(self):
        assert should_break_before(["# Appendix", "text"], 0) is True
        assert should_break_before(["## 3 Interfaces", "text"], 0) is True

    def test_only_first_heading_of_cluster_breaks(self):
        lines = ["### Security", "", "#### Authentication", "", "##### REQ-AUTH-001 Login"]
        assert should_break_before(lines, 0) is True
        assert should_break_before(lines, 2) is False

    def test_not_a_heading(self):
        assert should_break_before(["plain"], 0) is False

    def test_heading_at_end(self):
        assert should_break_before(["### Trailing"], 0) is False


class TestBuild:
    """Element dispatch."""

    def test_heading_page_break_flag(self):
        elements, _ = build("### Authentication\n\n#### REQ-AUTH-001 User Login\n**Priority:** High\n")
        assert elements[0] == Heading(3, "Authentication", page_break_before=True)
        assert isinstance(elements[1], RequirementTable)
        assert elements[1].record.priority == "High"

    def test_heading_followed_by_paragraph(self):
        elements, _ = build("### Authentication\n\nUsers sign in.\n")
        assert elements[0] == Heading(3, "Authentication", page_break_before=False)
        assert isinstance(elements[1], Paragraph)

    def test_paragraph_runs(self):
        elements, _ = build("Uses **bold** text.")
        assert elements[0].text == "Uses bold text."
        assert elements[0].runs[1].bold is True
        assert elements[0].keep_with_next is False

    def test_bold_line_keeps_with_next(self):
        elements, _ = build("**Inputs:**\n- a\n")
        assert elements[0].keep_with_next is True

    def test_table(self):
        text = "| ID | Name |\n|----|------|\n| REQ-A-1 | Login | extra |\n| REQ-A-2 |\n"
        elements, _ = build(text)
        table = elements[0]
        assert isinstance(table, Table)
        assert table.headers == ["ID", "Name"]
        assert table.rows == [["REQ-A-1", "Login"], ["REQ-A-2", ""]]
        assert sum(table.column_widths) == 9360
        assert table.column_widths[0] >= 1800

    def test_code_block(self):
        elements, builder = build('```python\nprint("hi")\n\nx = 1\n```\nAfter\n')
        assert elements[0] == CodeBlock(code='print("hi")\n\nx = 1', language="python", line_numbers=True)
        assert elements[1].text == "After"
        assert builder.warnings == []

    def test_ascii_art_has_no_line_numbers(self):
        elements, _ = build("```\n┌────┐\n│ UI │\n└────┘\n```\n")
        assert elements[0].line_numbers is False

    def test_mermaid_becomes_pending_diagram(self):
        elements, _ = build("```mermaid\ngraph TD\n  A-->B\n```\n")
        assert elements == [Diagram(source="graph TD\n  A-->B", language="mermaid")]

    def test_fence_content_not_interpreted(self):
        elements, _ = build("```\n# not a heading\n| not | table |\n```\n")
        assert len(elements) == 1
        assert isinstance(elements[0], CodeBlock)

    def test_unterminated_fence(self):
        elements, builder = build("```bash\necho hi\n")
        assert elements[0].code == "echo hi"
        assert "Unterminated code fence" in builder.warnings[0]

    def test_horizontal_rules_and_blanks_dropped(self):
        elements, _ = build("\n---\n\nText\n")
        assert len(elements) == 1

    def test_duplicate_requirement_id(self):
        text = (
            "#### REQ-AUTH-001 Login\n"
            "**Priority:** High\n"
            "\n"
            "#### REQ-AUTH-001 Login again\n"
        )
        with pytest.raises(DuplicateRequirementError) as exc_info:
            build(text)
        assert exc_info.value.context.line == 4
        assert exc_info.value.context.requirement_id == "REQ-AUTH-001"


class TestImages:
    """Image references."""

    def test_existing_image_scaled(self, tmp_path: Path):
        (tmp_path / "img").mkdir()
        (tmp_path / "img" / "fig.png").write_bytes(make_png(1000, 500))
        elements, builder = build("![Figure 1](img/fig.png)", base_dir=tmp_path)
        image = elements[0]
        assert isinstance(image, Image)
        assert image.path == tmp_path / "img" / "fig.png"
        assert (image.display_width, image.display_height) == (500, 250)
        assert image.alt == "Figure 1"
        assert builder.warnings == []

    def test_custom_caps(self, tmp_path: Path):
        (tmp_path / "fig.png").write_bytes(make_png(1000, 500))
        settings = ConverterSettings(image_max_width=200)
        elements, _ = build("![](fig.png)", settings=settings, base_dir=tmp_path)
        assert (elements[0].display_width, elements[0].display_height) == (200, 100)

    def test_missing_image_placeholder(self, tmp_path: Path):
        elements, builder = build("![Figure](missing.png)", base_dir=tmp_path)
        placeholder = elements[0]
        assert isinstance(placeholder, Paragraph)
        assert placeholder.text == "[Image not found: missing.png]"
        assert placeholder.runs[0].color == "FF0000"
        assert placeholder.runs[0].italic is True
        assert builder.warnings == ["Image not found: missing.png"]

    def test_unsupported_format_placeholder(self, tmp_path: Path):
        (tmp_path / "fig.gif").write_bytes(b"GIF89a")
        elements, builder = build("![](fig.gif)", base_dir=tmp_path)
        assert isinstance(elements[0], Paragraph)
        assert len(builder.warnings) == 1


class TestAsciiArt:
    """Box-drawing detection."""

    def test_detects_box_drawing(self):
        assert is_ascii_art("┌─┐\n└─┘")

    def test_plain_code(self):
        assert not is_ascii_art("def f():\n    return 1")
        assert not is_ascii_art("")
