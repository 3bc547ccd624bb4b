"""
Diagram rendering through an external process.

Manifesto:
    A document may hold dozens of diagrams, several of them identical.
    Rendering shells out to ``mmdc`` (mermaid-cli), which is slow and can
    hang or crash. So rendering is:

    - **Content-addressed:** keyed by a hash of the source; a cached image
      is returned without a process call
    - **Coalesced:** concurrent requests for one hash share a single task
    - **Bounded:** at most ``max_concurrency`` renders run at once, each
      under ``render_timeout``
    - **Degradable:** any failure yields None and the caller emits the
      source as a code block instead

Architecture:
    ::

        render(source)
            │ key = diagram_hash(source)
            ├── cache.get(key) ─────────────────────────► cached Path
            ├── in-flight task for key? ── await it ────► shared result
            └── new task:
                  async with semaphore:
                    write diagram.mmd + config.json (temp dir)
                    mmdc -i .. -o .. -c .. -b white -w W -s 2
                    wait_for(timeout) ── TimeoutError → kill ► None + warning
                    exit != 0 / no output ──────────────────► None + warning
                    cache.put(key, output) ─────────────────► Path

Guardrails:
    ❌ DON'T: Abort a conversion because one diagram failed
    ✅ DO: Warn and fall back to a code block

    ❌ DON'T: Leave temp sources behind
    ✅ DO: Use the renderer as a context manager; __exit__ removes them

Tags:
    diagrams, mermaid, subprocess, asyncio, cache, md2docx
"""

from __future__ import annotations

import asyncio
import json
import shutil
import tempfile
from dataclasses import dataclass
from pathlib import Path

from md2docx.diagrams.cache import DiagramCache, diagram_hash
from md2docx.errors import RenderError, RendererNotFoundError, RenderTimeoutError
from md2docx.images import read_dimensions, scale_to_fit
from md2docx.logging import get_logger
from md2docx.models import CodeBlock, Diagram, DocumentElement, Image
from md2docx.settings import ConverterSettings

logger = get_logger(__name__)

DIAGRAM_LANGUAGES = {"mermaid"}

RENDERER_CONFIG = {
    "theme": "base",
    "flowchart": {"htmlLabels": False},
    "htmlLabels": False,
}

# Wireframe (block-beta) diagrams are laid out for a narrow canvas
WIREFRAME_RENDER_WIDTH = 500
DEFAULT_RENDER_WIDTH = 1200


def render_width(source: str) -> int:
    lines = source.strip().splitlines()
    first_line = lines[0] if lines else ""
    return WIREFRAME_RENDER_WIDTH if "block-beta" in first_line else DEFAULT_RENDER_WIDTH


@dataclass
class _RunState:
    """Per-event-loop coordination state."""

    loop: asyncio.AbstractEventLoop
    semaphore: asyncio.Semaphore
    inflight: dict[str, asyncio.Task]


class DiagramRenderer:
    """Renders diagram source to PNG files with caching and fallback.

    Example:
        >>> with DiagramRenderer(settings) as renderer:
        ...     path = asyncio.run(renderer.render("graph TD\\n A-->B"))
    """

    def __init__(
        self,
        settings: ConverterSettings | None = None,
        cache: DiagramCache | None = None,
    ):
        self.settings = settings or ConverterSettings()
        self._cache = cache
        self._tempdir: tempfile.TemporaryDirectory | None = None
        self._state: _RunState | None = None
        self.render_count = 0
        self.warnings: list[str] = []

    # ── Lifecycle ────────────────────────────────────────────────────

    def __enter__(self) -> "DiagramRenderer":
        self._tempdir = tempfile.TemporaryDirectory(prefix="md2docx-")
        if self._cache is None:
            directory = self.settings.cache_dir or Path(self._tempdir.name) / "cache"
            self._cache = DiagramCache(directory)
        return self

    def __exit__(self, *args) -> None:
        self._state = None
        if self._tempdir is not None:
            self._tempdir.cleanup()
            self._tempdir = None

    @property
    def cache(self) -> DiagramCache:
        if self._cache is None:
            raise RuntimeError("DiagramRenderer must be used as a context manager")
        return self._cache

    @property
    def workdir(self) -> Path:
        if self._tempdir is None:
            raise RuntimeError("DiagramRenderer must be used as a context manager")
        return Path(self._tempdir.name)

    def _run_state(self) -> _RunState:
        loop = asyncio.get_running_loop()
        if self._state is None or self._state.loop is not loop:
            self._state = _RunState(
                loop=loop,
                semaphore=asyncio.Semaphore(self.settings.max_concurrency),
                inflight={},
            )
        return self._state

    # ── Rendering ────────────────────────────────────────────────────

    async def render(self, source: str) -> Path | None:
        """Rendered image path for ``source``, or None to fall back to code.

        Raises:
            RendererNotFoundError: renderer missing and fallback disabled.
        """
        key = diagram_hash(source)
        state = self._run_state()

        task = state.inflight.get(key)
        if task is None:
            cached = self.cache.get(key)
            if cached is not None:
                logger.debug("diagram.cache_hit", diagram_hash=key)
                return cached
            task = asyncio.ensure_future(self._render_uncached(key, source))
            state.inflight[key] = task
        else:
            logger.debug("diagram.coalesced", diagram_hash=key)
        return await task

    async def _render_uncached(self, key: str, source: str) -> Path | None:
        state = self._run_state()
        async with state.semaphore:
            command = shutil.which(self.settings.mermaid_command)
            if command is None:
                if not self.settings.fallback_to_code:
                    raise RendererNotFoundError(self.settings.mermaid_command)
                self._warn(key, f"renderer '{self.settings.mermaid_command}' not found")
                return None

            job_dir = self.workdir / key
            job_dir.mkdir(parents=True, exist_ok=True)
            input_path = job_dir / "diagram.mmd"
            config_path = job_dir / "config.json"
            output_path = job_dir / "diagram.png"
            input_path.write_text(source.strip() + "\n", encoding="utf-8")
            config_path.write_text(json.dumps(RENDERER_CONFIG), encoding="utf-8")

            args = [
                command,
                "-i", str(input_path),
                "-o", str(output_path),
                "-c", str(config_path),
                "-b", "white",
                "-w", str(render_width(source)),
                "-s", "2",
            ]

            self.render_count += 1
            logger.info("diagram.render_start", diagram_hash=key)
            try:
                returncode, stderr = await self._invoke(args, self.settings.render_timeout)
            except RenderError as exc:
                self._warn(key, exc.message)
                return None

            if returncode != 0:
                detail = stderr.strip().splitlines()[-1] if stderr.strip() else ""
                self._warn(key, f"renderer exited with code {returncode} {detail}".strip())
                return None
            if not output_path.is_file() or output_path.stat().st_size == 0:
                self._warn(key, "renderer produced no output")
                return None

            path = self.cache.put(key, output_path)
            logger.info("diagram.render_complete", diagram_hash=key, path=str(path))
            return path

    async def _invoke(self, args: list[str], timeout: float) -> tuple[int, str]:
        """Run the renderer process; returns (exit code, stderr)."""
        try:
            process = await asyncio.create_subprocess_exec(
                *args,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as exc:
            raise RenderError(f"Failed to start renderer: {exc}", cause=exc) from exc

        try:
            _, stderr = await asyncio.wait_for(process.communicate(), timeout=timeout)
        except TimeoutError as exc:
            process.kill()
            await process.wait()
            raise RenderTimeoutError(timeout, cause=exc) from exc

        return process.returncode, stderr.decode("utf-8", errors="replace")

    def _warn(self, key: str, reason: str) -> None:
        logger.warning("diagram.render_failed", diagram_hash=key, reason=reason)
        self.warnings.append(f"Diagram {key[:8]} rendered as code block: {reason}")


async def resolve_diagrams(
    elements: list[DocumentElement],
    renderer: DiagramRenderer,
) -> list[DocumentElement]:
    """Replace every pending Diagram with an Image, or a CodeBlock on failure.

    All diagrams are submitted at once; the renderer bounds concurrency and
    coalesces identical sources.
    """
    pending = [element for element in elements if isinstance(element, Diagram)]
    if not pending:
        return list(elements)

    logger.info("diagram.resolve_start", diagrams=len(pending))
    # Every task's outcome is collected before the first error is raised
    outcomes = await asyncio.gather(
        *(renderer.render(d.source) for d in pending), return_exceptions=True
    )
    for outcome in outcomes:
        if isinstance(outcome, BaseException):
            raise outcome
    paths = outcomes
    rendered = {id(diagram): path for diagram, path in zip(pending, paths)}

    settings = renderer.settings
    resolved: list[DocumentElement] = []
    for element in elements:
        if not isinstance(element, Diagram):
            resolved.append(element)
            continue
        path = rendered[id(element)]
        if path is None:
            resolved.append(CodeBlock(code=element.source, language=element.language))
            continue
        width, height = scale_to_fit(
            read_dimensions(path),
            settings.diagram_max_width,
            settings.diagram_max_height,
            (settings.diagram_default_width, settings.diagram_default_height),
        )
        resolved.append(Image(path=path, display_width=width, display_height=height, alt="diagram"))

    logger.info(
        "diagram.resolve_complete",
        diagrams=len(pending),
        renders=renderer.render_count,
        fallbacks=sum(1 for p in paths if p is None),
    )
    return resolved


__all__ = [
    "DIAGRAM_LANGUAGES",
    "DiagramRenderer",
    "render_width",
    "resolve_diagrams",
]
