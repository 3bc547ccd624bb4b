"""
Conversion orchestration.

Manifesto:
    One function turns one Markdown file into one DOCX file, and writes
    nothing until the whole document has been assembled. Batch mode wraps
    it: outputs that are already newer than their source are skipped, and a
    failing document is reported without stopping the rest.

Architecture:
    ::

        source.md
           │ read (SourceNotFoundError)
           ▼
        DocumentStructureParser ──► cover / toc / revision / body
           │
           ▼
        BodyBuilder ──► elements (Diagram pending)
           │
           ▼
        DiagramRenderer (context)  ── resolve_diagrams ──► Image | CodeBlock
           │
           ▼
        DocumentAssembler ──► python-docx Document
           │ save to temp file, os.replace
           ▼
        source.docx

Examples:
    >>> result = convert_file(Path("srs.md"))
    >>> result.output, result.warnings
    (PosixPath('srs.docx'), [])

    >>> results = convert_batch([Path("srs.md"), Path("sdd.md")], output_dir=Path("out"))
    >>> [r.skipped for r in results]
    [False, True]

Tags:
    orchestrator, pipeline, batch, md2docx
"""

from __future__ import annotations

import asyncio
import os
from collections.abc import Iterable
from pathlib import Path

from md2docx.assembler import DocumentAssembler
from md2docx.body import BodyBuilder
from md2docx.diagrams import DIAGRAM_LANGUAGES, DiagramCache, DiagramRenderer, resolve_diagrams
from md2docx.errors import DocGenError, SourceNotFoundError
from md2docx.logging import LogContext, get_logger
from md2docx.models import CodeBlock, ConversionResult, Diagram, RequirementTable
from md2docx.settings import ConverterSettings
from md2docx.structure import DocumentStructureParser

logger = get_logger(__name__)


def output_path_for(source: Path, output_dir: Path | None = None) -> Path:
    """``X.md`` → ``X.docx``, next to the source or inside ``output_dir``."""
    directory = Path(output_dir) if output_dir else source.parent
    return directory / f"{source.stem}.docx"


def is_up_to_date(source: Path, output: Path) -> bool:
    """Output exists and is not older than its source."""
    if not output.exists() or not source.exists():
        return False
    return output.stat().st_mtime >= source.stat().st_mtime


def read_source(source: Path) -> str:
    try:
        return source.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise SourceNotFoundError(str(source), cause=exc) from exc


async def convert_file_async(
    source: Path,
    output: Path | None = None,
    settings: ConverterSettings | None = None,
    *,
    cache: DiagramCache | None = None,
) -> ConversionResult:
    """Convert one document. Raises DocGenError subclasses on fatal errors."""
    settings = settings or ConverterSettings()
    source = Path(source)
    output = Path(output) if output else output_path_for(source)
    result = ConversionResult(source=source)

    async with LogContext(document=str(source)):
        logger.info("convert.start", output=str(output))
        text = read_source(source)

        structure = DocumentStructureParser(settings.organization_markers).parse(text)
        missing = structure.cover.missing_fields()
        if missing:
            result.warnings.append(f"Cover fields missing: {', '.join(missing)}")
            logger.warning("convert.cover_incomplete", missing=missing)

        builder = BodyBuilder(settings, base_dir=source.parent)
        try:
            elements = builder.build(structure.body_lines)
        except DocGenError as exc:
            exc.with_context(document=str(source))
            raise
        result.warnings.extend(builder.warnings)

        diagrams = sum(1 for element in elements if isinstance(element, Diagram))
        with DiagramRenderer(settings, cache=cache) as renderer:
            elements = await resolve_diagrams(elements, renderer)
            result.warnings.extend(renderer.warnings)
            result.diagrams_rendered = renderer.render_count
            result.diagrams_fallback = sum(
                1
                for element in elements
                if isinstance(element, CodeBlock) and element.language in DIAGRAM_LANGUAGES
            )

            assembler = DocumentAssembler(settings)
            document = assembler.assemble(structure, elements, fallback_title=source.stem)
            result.warnings.extend(assembler.warnings)

            output.parent.mkdir(parents=True, exist_ok=True)
            partial = output.with_name(f".{output.name}.partial")
            try:
                document.save(str(partial))
                os.replace(partial, output)
            finally:
                partial.unlink(missing_ok=True)

        result.output = output
        result.requirements = sum(1 for element in elements if isinstance(element, RequirementTable))
        logger.info(
            "convert.complete",
            output=str(output),
            diagrams=diagrams,
            renders=result.diagrams_rendered,
            fallbacks=result.diagrams_fallback,
            requirements=result.requirements,
            warnings=len(result.warnings),
        )
    return result


def convert_file(
    source: Path,
    output: Path | None = None,
    settings: ConverterSettings | None = None,
    *,
    cache: DiagramCache | None = None,
) -> ConversionResult:
    """Synchronous wrapper around :func:`convert_file_async`."""
    return asyncio.run(convert_file_async(source, output, settings, cache=cache))


def convert_batch(
    sources: Iterable[Path],
    output_dir: Path | None = None,
    settings: ConverterSettings | None = None,
    *,
    force: bool = False,
) -> list[ConversionResult]:
    """Convert many documents; failures are recorded, not raised."""
    settings = settings or ConverterSettings()
    results: list[ConversionResult] = []

    for source in sources:
        source = Path(source)
        output = output_path_for(source, output_dir)

        try:
            if not force and is_up_to_date(source, output):
                logger.info("batch.skipped", document=str(source), output=str(output))
                results.append(ConversionResult(source=source, output=output, skipped=True))
                continue
            results.append(convert_file(source, output, settings))
        except DocGenError as exc:
            logger.error("batch.document_failed", document=str(source), **exc.to_dict())
            results.append(ConversionResult(source=source, error=str(exc)))
        except Exception as exc:
            logger.error("batch.document_failed", document=str(source), error=str(exc), exc_info=True)
            results.append(ConversionResult(source=source, error=str(exc)))

    logger.info(
        "batch.complete",
        total=len(results),
        converted=sum(1 for r in results if r.ok and not r.skipped),
        skipped=sum(1 for r in results if r.skipped),
        failed=sum(1 for r in results if not r.ok),
    )
    return results


__all__ = [
    "convert_file",
    "convert_file_async",
    "convert_batch",
    "output_path_for",
    "is_up_to_date",
]
