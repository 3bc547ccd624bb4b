"""
Tests for md2docx.diagrams package.

Tests cover:
- Content hashing and the first-writer-wins cache
- Coalescing: identical sources render once
- Cache hits skip the renderer entirely
- Fallback on non-zero exit, timeout, missing output, missing binary
- Renderer arguments and config file
- Real subprocess handling in _invoke
"""

import asyncio
import gc
import json
import sys
from pathlib import Path

import pytest

from md2docx.diagrams import (
    DiagramCache,
    DiagramRenderer,
    diagram_hash,
    render_width,
    resolve_diagrams,
)
from md2docx.errors import RendererNotFoundError, RenderError, RenderTimeoutError
from md2docx.models import CodeBlock, Diagram, Image, Paragraph, TextRun
from md2docx.settings import ConverterSettings

from conftest import MERMAID_SOURCE, make_png


# =============================================================================
# Cache
# =============================================================================


class TestDiagramHash:
    """Content addressing."""

    def test_deterministic(self):
        assert diagram_hash(MERMAID_SOURCE) == diagram_hash(MERMAID_SOURCE)
        assert len(diagram_hash(MERMAID_SOURCE)) == 32

    def test_surrounding_whitespace_ignored(self):
        assert diagram_hash(MERMAID_SOURCE) == diagram_hash(f"\n{MERMAID_SOURCE}\n\n")

    def test_content_sensitive(self):
        assert diagram_hash("graph TD\n A-->B") != diagram_hash("graph TD\n A-->C")


class TestDiagramCache:
    """Filesystem cache."""

    def test_miss_then_hit(self, tmp_path: Path):
        cache = DiagramCache(tmp_path / "cache")
        assert cache.get("abc") is None
        rendered = tmp_path / "out.png"
        rendered.write_bytes(make_png(10, 10))

        stored = cache.put("abc", rendered)

        assert stored == cache.path_for("abc")
        assert cache.get("abc") == stored
        assert "abc" in cache
        assert len(cache) == 1
        assert (cache.hits, cache.misses) == (1, 1)

    def test_empty_file_is_a_miss(self, tmp_path: Path):
        cache = DiagramCache(tmp_path)
        cache.path_for("abc").write_bytes(b"")
        assert cache.get("abc") is None
        assert "abc" not in cache

    def test_first_writer_wins(self, tmp_path: Path):
        cache = DiagramCache(tmp_path / "cache")
        first = tmp_path / "first.png"
        first.write_bytes(make_png(10, 10))
        second = tmp_path / "second.png"
        second.write_bytes(make_png(20, 20))

        cache.put("abc", first)
        stored = cache.put("abc", second)

        assert stored.read_bytes() == make_png(10, 10)
        assert not second.exists()


# =============================================================================
# Renderer
# =============================================================================


class TestRenderWidth:
    """Canvas width selection."""

    def test_block_beta_is_narrow(self):
        assert render_width("block-beta\n  columns 3") == 500

    def test_default(self):
        assert render_width(MERMAID_SOURCE) == 1200
        assert render_width("") == 1200


class TestDiagramRenderer:
    """Render, coalesce, cache, fall back."""

    @pytest.mark.asyncio
    async def test_render_produces_cached_png(self, fake_renderer):
        with DiagramRenderer() as renderer:
            path = await renderer.render(MERMAID_SOURCE)
            assert path is not None
            assert path.read_bytes().startswith(b"\x89PNG")
            assert path.name == f"{diagram_hash(MERMAID_SOURCE)}.png"
            assert renderer.render_count == 1
            assert renderer.warnings == []

    @pytest.mark.asyncio
    async def test_identical_sources_render_once(self, fake_renderer):
        with DiagramRenderer() as renderer:
            first, second = await asyncio.gather(
                renderer.render(MERMAID_SOURCE),
                renderer.render(MERMAID_SOURCE),
            )
            third = await renderer.render(f"  {MERMAID_SOURCE}  ")
        assert first == second == third
        assert renderer.render_count == 1
        assert len(fake_renderer.calls) == 1

    @pytest.mark.asyncio
    async def test_distinct_sources_render_separately(self, fake_renderer):
        with DiagramRenderer() as renderer:
            paths = await asyncio.gather(
                renderer.render("graph TD\n A-->B"),
                renderer.render("graph TD\n A-->C"),
            )
        assert paths[0] != paths[1]
        assert renderer.render_count == 2

    @pytest.mark.asyncio
    async def test_cache_hit_skips_renderer(self, tmp_path: Path, fake_renderer):
        cache = DiagramCache(tmp_path / "cache")
        cache.path_for(diagram_hash(MERMAID_SOURCE)).write_bytes(make_png(50, 50))

        with DiagramRenderer(cache=cache) as renderer:
            path = await renderer.render(MERMAID_SOURCE)

        assert path == cache.path_for(diagram_hash(MERMAID_SOURCE))
        assert renderer.render_count == 0
        assert fake_renderer.calls == []

    @pytest.mark.asyncio
    async def test_persistent_cache_dir(self, tmp_path: Path, fake_renderer):
        settings = ConverterSettings(cache_dir=tmp_path / "persistent")
        with DiagramRenderer(settings) as renderer:
            await renderer.render(MERMAID_SOURCE)
        with DiagramRenderer(settings) as renderer:
            path = await renderer.render(MERMAID_SOURCE)
            assert renderer.render_count == 0
        assert path.exists()
        assert len(fake_renderer.calls) == 1

    @pytest.mark.asyncio
    async def test_arguments(self, fake_renderer):
        with DiagramRenderer() as renderer:
            await renderer.render("block-beta\n  columns 2")

        args = fake_renderer.calls[0]
        assert args[0].endswith("mmdc")
        assert args[args.index("-b") + 1] == "white"
        assert args[args.index("-w") + 1] == "500"
        assert args[args.index("-s") + 1] == "2"
        assert Path(args[args.index("-i") + 1]).name == "diagram.mmd"

    @pytest.mark.asyncio
    async def test_config_disables_html_labels(self, fake_renderer, monkeypatch):
        configs = []

        async def _invoke(self, args, timeout):
            configs.append(json.loads(Path(args[args.index("-c") + 1]).read_text()))
            return await fake_renderer(self, args, timeout)

        monkeypatch.setattr(DiagramRenderer, "_invoke", _invoke)
        with DiagramRenderer() as renderer:
            await renderer.render(MERMAID_SOURCE)

        assert configs[0]["flowchart"]["htmlLabels"] is False
        assert configs[0]["theme"] == "base"

    @pytest.mark.asyncio
    async def test_nonzero_exit_falls_back(self, fake_renderer):
        fake_renderer.returncode = 1
        fake_renderer.stderr = "Parse error on line 2\n"
        with DiagramRenderer() as renderer:
            path = await renderer.render(MERMAID_SOURCE)
        assert path is None
        assert len(renderer.warnings) == 1
        assert "exited with code 1" in renderer.warnings[0]
        assert "Parse error on line 2" in renderer.warnings[0]

    @pytest.mark.asyncio
    async def test_timeout_falls_back(self, fake_renderer):
        fake_renderer.error = RenderTimeoutError(60.0)
        with DiagramRenderer() as renderer:
            path = await renderer.render(MERMAID_SOURCE)
        assert path is None
        assert "timed out" in renderer.warnings[0]

    @pytest.mark.asyncio
    async def test_missing_output_falls_back(self, fake_renderer):
        fake_renderer.write_output = False
        with DiagramRenderer() as renderer:
            path = await renderer.render(MERMAID_SOURCE)
        assert path is None
        assert "produced no output" in renderer.warnings[0]

    @pytest.mark.asyncio
    async def test_failure_not_retried_within_run(self, fake_renderer):
        fake_renderer.returncode = 2
        with DiagramRenderer() as renderer:
            await renderer.render(MERMAID_SOURCE)
            await renderer.render(MERMAID_SOURCE)
        assert len(fake_renderer.calls) == 1

    @pytest.mark.asyncio
    async def test_missing_binary_with_fallback(self, renderer_missing):
        with DiagramRenderer() as renderer:
            path = await renderer.render(MERMAID_SOURCE)
        assert path is None
        assert "not found" in renderer.warnings[0]
        assert renderer.render_count == 0

    @pytest.mark.asyncio
    async def test_missing_binary_without_fallback(self, renderer_missing):
        settings = ConverterSettings(fallback_to_code=False)
        with DiagramRenderer(settings) as renderer:
            with pytest.raises(RendererNotFoundError):
                await renderer.render(MERMAID_SOURCE)

    def test_requires_context_manager(self):
        renderer = DiagramRenderer()
        with pytest.raises(RuntimeError):
            renderer.workdir

    def test_exit_removes_temp_dir(self):
        with DiagramRenderer() as renderer:
            workdir = renderer.workdir
            assert workdir.exists()
        assert not workdir.exists()


class TestInvoke:
    """Real subprocess handling (uses the running interpreter as the renderer)."""

    @pytest.mark.asyncio
    async def test_exit_code_and_stderr(self):
        with DiagramRenderer() as renderer:
            code, stderr = await renderer._invoke(
                [sys.executable, "-c", "import sys; sys.stderr.write('bad'); sys.exit(3)"],
                timeout=30,
            )
        assert code == 3
        assert stderr == "bad"

    @pytest.mark.asyncio
    @pytest.mark.slow
    async def test_timeout_kills_process(self):
        with DiagramRenderer() as renderer:
            with pytest.raises(RenderTimeoutError) as exc_info:
                await renderer._invoke(
                    [sys.executable, "-c", "import time; time.sleep(30)"],
                    timeout=0.5,
                )
        assert exc_info.value.retryable is True

    @pytest.mark.asyncio
    async def test_unstartable_command(self, tmp_path: Path):
        with DiagramRenderer() as renderer:
            with pytest.raises(RenderError, match="Failed to start renderer"):
                await renderer._invoke([str(tmp_path / "no-such-binary")], timeout=5)


# =============================================================================
# Resolution
# =============================================================================


class TestResolveDiagrams:
    """Pending Diagram elements become Image or CodeBlock."""

    @pytest.mark.asyncio
    async def test_two_identical_blocks_share_one_image(self, fake_renderer):
        elements = [
            Paragraph([TextRun("Before")]),
            Diagram(MERMAID_SOURCE),
            Diagram(MERMAID_SOURCE),
        ]
        with DiagramRenderer() as renderer:
            resolved = await resolve_diagrams(elements, renderer)

            assert isinstance(resolved[0], Paragraph)
            images = resolved[1:]
            assert all(isinstance(image, Image) for image in images)
            assert images[0].path == images[1].path
            assert (images[0].display_width, images[0].display_height) == (550, 200)
            assert renderer.render_count == 1

    @pytest.mark.asyncio
    async def test_failure_becomes_code_block(self, fake_renderer):
        fake_renderer.returncode = 1
        with DiagramRenderer() as renderer:
            resolved = await resolve_diagrams([Diagram(MERMAID_SOURCE)], renderer)
        assert resolved == [CodeBlock(code=MERMAID_SOURCE, language="mermaid")]

    @pytest.mark.asyncio
    async def test_no_diagrams_is_a_copy(self):
        elements = [Paragraph([TextRun("x")])]
        with DiagramRenderer() as renderer:
            resolved = await resolve_diagrams(elements, renderer)
        assert resolved == elements
        assert resolved is not elements

    @pytest.mark.asyncio
    async def test_missing_binary_without_fallback_retrieves_every_error(self, renderer_missing):
        loop = asyncio.get_running_loop()
        unhandled = []
        previous = loop.get_exception_handler()
        loop.set_exception_handler(lambda _loop, context: unhandled.append(context))
        settings = ConverterSettings(fallback_to_code=False)
        elements = [Diagram(MERMAID_SOURCE), Diagram("graph LR\n  X-->Y"), Diagram("graph TD\n  P-->Q")]
        try:
            with DiagramRenderer(settings) as renderer:
                with pytest.raises(RendererNotFoundError):
                    await resolve_diagrams(elements, renderer)
            gc.collect()
        finally:
            loop.set_exception_handler(previous)
        assert unhandled == []
