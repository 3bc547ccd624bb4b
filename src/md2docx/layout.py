"""
Table column layout.

Manifesto:
    Word's autofit produces ragged, content-dependent tables that differ
    between viewers. Every body table therefore gets explicit widths that
    are proportional to content, never narrower than a floor, and that sum
    exactly to the page's text width.

Algorithm:
    ::

        lengths  = max display length per column (header + cells)
                   bold markers stripped, CJK characters count double
        floors   = min_width per column (id_min_width for ID columns),
                   shrunk to total // n when they cannot all fit
        widths_i = max(floor_i, lengths_i * total // sum(lengths))
        diff     = total - sum(widths)
          diff > 0  → last column absorbs it
          diff < 0  → reclaimed from columns' slack above their floor,
                      last column first

Guardrails:
    ❌ DON'T: Let the last column go negative to force the sum
    ✅ DO: Take any overshoot from slack so both the sum and the floors hold

Tags:
    layout, tables, proportional, md2docx
"""

from __future__ import annotations

import unicodedata

from md2docx.requirements import REQUIREMENT_ID_PATTERN

ID_HEADERS = {"id", "req id", "requirement id", "編號", "需求編號"}


def display_length(text: str) -> int:
    """Visible width of a cell in character cells.

    Bold markers are ignored; wide (CJK) characters count as two.

    Examples:
        >>> display_length("**Name**")
        4
        >>> display_length("登入")
        4
    """
    visible = text.replace("**", "")
    return sum(2 if unicodedata.east_asian_width(ch) in ("W", "F") else 1 for ch in visible)


def is_id_column(header: str, first_cell: str | None) -> bool:
    if header.replace("**", "").strip().lower() in ID_HEADERS:
        return True
    if first_cell is None:
        return False
    return REQUIREMENT_ID_PATTERN.fullmatch(first_cell.replace("**", "").strip()) is not None


class TableLayoutEngine:
    """Computes per-column widths (twips) for a pipe table.

    Examples:
        >>> engine = TableLayoutEngine(total_width=9360, min_width=1000)
        >>> widths = engine.column_widths(["ID", "Name", "Description"], [["1", "a", "b"]])
        >>> sum(widths)
        9360
    """

    def __init__(
        self,
        total_width: int = 9360,
        min_width: int = 1000,
        id_min_width: int | None = None,
    ):
        self.total_width = total_width
        self.min_width = min_width
        self.id_min_width = id_min_width

    def column_widths(self, headers: list[str], rows: list[list[str]]) -> list[int]:
        count = len(headers)
        if count == 0:
            return []
        total = self.total_width

        lengths = []
        for col, header in enumerate(headers):
            cells = [row[col] for row in rows if col < len(row)]
            lengths.append(max([display_length(header)] + [display_length(c) for c in cells], default=0))
            lengths[-1] = max(lengths[-1], 1)

        floors = self._floors(headers, rows)
        length_sum = sum(lengths)
        widths = [max(floor, length * total // length_sum) for floor, length in zip(floors, lengths)]

        diff = total - sum(widths)
        if diff >= 0:
            widths[-1] += diff
        else:
            excess = -diff
            for col in range(count - 1, -1, -1):
                take = min(excess, widths[col] - floors[col])
                widths[col] -= take
                excess -= take
                if excess == 0:
                    break
        return widths

    def _floors(self, headers: list[str], rows: list[list[str]]) -> list[int]:
        count = len(headers)
        first_row = rows[0] if rows else []
        floors = []
        for col, header in enumerate(headers):
            first_cell = first_row[col] if col < len(first_row) else None
            if self.id_min_width is not None and is_id_column(header, first_cell):
                floors.append(max(self.id_min_width, self.min_width))
            else:
                floors.append(self.min_width)

        if sum(floors) > self.total_width:
            floors = [min(self.min_width, self.total_width // count)] * count
        return floors


__all__ = ["TableLayoutEngine", "display_length", "is_id_column"]
