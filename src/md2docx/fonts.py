"""Per-run font selection and the fixed font-size table."""

from __future__ import annotations

import re
from dataclasses import dataclass

# Points
FONT_SIZES: dict[str, float] = {
    "h1": 18,
    "h2": 16,
    "h3": 14,
    "h4": 13,
    "h5": 12,
    "body": 11,
    "table": 11,
    "table_header": 11,
    "small": 9,
    "footer": 9,
    "cover_title": 28,
}

# CJK Unified Ideographs, Extension A, Compatibility Ideographs
CJK_PATTERN = re.compile(r"[\u3400-\u4dbf\u4e00-\u9fff\uf900-\ufaff]")


def contains_cjk(text: str) -> bool:
    return CJK_PATTERN.search(text) is not None


def heading_size(level: int) -> float:
    """Font size for a heading level; levels past 5 use the H5 size."""
    return FONT_SIZES[f"h{min(max(level, 1), 5)}"]


@dataclass(frozen=True)
class FontSelector:
    """Chooses a font family for a single run of text.

    The choice is made per run, so a line mixing scripts renders each
    segment in its own face. Code is always set in the code font.

    Examples:
        >>> fonts = FontSelector()
        >>> fonts.select("Login 登入")
        'Microsoft JhengHei'
        >>> fonts.select("Login")
        'Arial'
        >>> fonts.select("登入", code=True)
        'Consolas'
    """

    latin: str = "Arial"
    cjk: str = "Microsoft JhengHei"
    code: str = "Consolas"

    def select(self, text: str, *, code: bool = False) -> str:
        if code:
            return self.code
        return self.cjk if contains_cjk(text) else self.latin


__all__ = ["FONT_SIZES", "CJK_PATTERN", "contains_cjk", "heading_size", "FontSelector"]
