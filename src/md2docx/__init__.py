"""
md2docx - Markdown to DOCX for regulated software documents.

Converts SRS/SDD/SWD/STC Markdown into Word documents with a cover page,
table of contents, revision history, requirement tables and rendered
Mermaid diagrams.
"""

__version__ = "0.3.0"

from md2docx.converter import convert_batch, convert_file, convert_file_async  # noqa: E402
from md2docx.errors import DocGenError, ErrorCategory  # noqa: E402
from md2docx.settings import ConverterSettings  # noqa: E402

__all__ = [
    "__version__",
    "convert_file",
    "convert_file_async",
    "convert_batch",
    "ConverterSettings",
    "DocGenError",
    "ErrorCategory",
]
