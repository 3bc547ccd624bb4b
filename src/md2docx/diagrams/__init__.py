"""Diagram rendering: content-addressed cache and async external renderer."""

from md2docx.diagrams.cache import DiagramCache, diagram_hash
from md2docx.diagrams.renderer import (
    DIAGRAM_LANGUAGES,
    DiagramRenderer,
    render_width,
    resolve_diagrams,
)

__all__ = [
    "DiagramCache",
    "diagram_hash",
    "DIAGRAM_LANGUAGES",
    "DiagramRenderer",
    "render_width",
    "resolve_diagrams",
]
