"""Inline span parsing: ``**bold**`` and ```code``` runs within one line."""

from __future__ import annotations

import re
from dataclasses import replace

from md2docx.fonts import FONT_SIZES, FontSelector
from md2docx.models import TextRun

INLINE_PATTERN = re.compile(r"\*\*(.+?)\*\*|`([^`]+)`")


class InlineSpanParser:
    """Splits a line into ordered TextRuns with emphasis applied.

    A single left-to-right scan; unmatched markers stay literal. Fonts come
    from the injected FontSelector, one decision per run.

    Examples:
        >>> parser = InlineSpanParser(FontSelector())
        >>> [(r.text, r.bold, r.code) for r in parser.parse("Use **ID** in `cfg`")]
        [('Use ', False, False), ('ID', True, False), (' in ', False, False), ('cfg', False, True)]
    """

    def __init__(self, fonts: FontSelector | None = None):
        self.fonts = fonts or FontSelector()

    def parse(
        self,
        text: str,
        *,
        size: float = FONT_SIZES["body"],
        bold: bool = False,
        italic: bool = False,
        color: str | None = None,
    ) -> list[TextRun]:
        """Parse ``text`` into runs; ``bold``/``italic``/``color`` apply to every run."""
        base = TextRun(text="", bold=bold, italic=italic, size=size, color=color)
        runs: list[TextRun] = []
        position = 0

        for match in INLINE_PATTERN.finditer(text):
            if match.start() > position:
                runs.append(self._run(base, text[position:match.start()]))
            if match.group(1) is not None:
                runs.append(self._run(base, match.group(1), bold=True))
            else:
                runs.append(self._run(base, match.group(2), code=True))
            position = match.end()

        if position < len(text):
            runs.append(self._run(base, text[position:]))

        if not runs:
            runs.append(self._run(base, ""))
        return runs

    def _run(self, base: TextRun, text: str, *, bold: bool = False, code: bool = False) -> TextRun:
        return replace(
            base,
            text=text,
            bold=base.bold or bold,
            font=self.fonts.select(text, code=code),
            code=code,
        )


def strip_inline(text: str) -> str:
    """Plain text with bold/code markers removed."""
    return INLINE_PATTERN.sub(lambda m: m.group(1) or m.group(2), text)


__all__ = ["INLINE_PATTERN", "InlineSpanParser", "strip_inline"]
