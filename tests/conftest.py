"""
Shared pytest fixtures for md2docx tests.

This module provides:
- PNG/JPEG byte builders (valid headers, real chunks)
- Sample documents in both field dialects
- A fake diagram renderer that writes a PNG instead of spawning mmdc
- structlog reset between tests

Usage:
    def test_something(sample_document, fake_renderer):
        ...
"""

import struct
import sys
import zlib
from pathlib import Path
from typing import Generator

import pytest
import structlog

# Ensure md2docx package is importable
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from md2docx.diagrams.renderer import DiagramRenderer


# =============================================================================
# Image Builders
# =============================================================================


def _png_chunk(kind: bytes, payload: bytes) -> bytes:
    crc = zlib.crc32(kind + payload) & 0xFFFFFFFF
    return struct.pack(">I", len(payload)) + kind + payload + struct.pack(">I", crc)


def make_png(width: int, height: int) -> bytes:
    """A valid 8-bit greyscale PNG of the given size (all white)."""
    ihdr = struct.pack(">IIBBBBB", width, height, 8, 0, 0, 0, 0)
    raw = b"".join(b"\x00" + b"\xff" * width for _ in range(height))
    return (
        b"\x89PNG\r\n\x1a\n"
        + _png_chunk(b"IHDR", ihdr)
        + _png_chunk(b"IDAT", zlib.compress(raw))
        + _png_chunk(b"IEND", b"")
    )


def make_jpeg_header(width: int, height: int) -> bytes:
    """SOI + APP0 + SOF0 segments; enough for header parsing."""
    app0 = b"\xff\xe0" + struct.pack(">H", 16) + b"JFIF\x00" + b"\x00" * 9
    sof0 = b"\xff\xc0" + struct.pack(">HBHH", 17, 8, height, width) + b"\x03" + b"\x00" * 9
    return b"\xff\xd8" + app0 + sof0 + b"\xff\xd9"


# =============================================================================
# Sample Documents
# =============================================================================


SAMPLE_DOCUMENT = """\
# Software Requirements Specification
## For Sleep Monitor
**Version:** 1.2
**Prepared by:** Jane Chen
SOMNICS Inc.
2024-03-15

---

## Table of Contents

- [Introduction](#1-introduction)
- [Revision History](#revision-history)

---

## Revision History

| Name | Date | Reason For Changes | Version |
|------|------|--------------------|---------|
| Jane Chen | 2024-03-15 | Initial release | 1.0 |

## 1 Introduction

This document uses **bold** and `code` spans.

### Authentication

#### REQ-AUTH-001 User Login
**Statement:** The system shall authenticate users.
**Acceptance Criteria:**
- Valid credentials grant access
- Invalid credentials are rejected
**Verification Method:** Test

## 2 Architecture

| ID | Component | Description |
|----|-----------|-------------|
| SDD-CORE-001 | Parser | Splits the document into regions |

```mermaid
graph TD
    A[Markdown] --> B[DOCX]
```

```python
print("hello")
```
"""

CHINESE_REQUIREMENT = """\
### REQ-AUTH-001：使用者登入
**描述：** The system shall authenticate users.
**優先級：** High
**驗收標準：**
- Valid credentials grant access
- Invalid credentials are rejected
**驗證方法：** Test
"""

ENGLISH_REQUIREMENT = """\
### REQ-AUTH-001 User Login
**Description:** The system shall authenticate users.
**Priority:** High
**Acceptance Criteria:**
- Valid credentials grant access
- Invalid credentials are rejected
**Verification Method:** Test
"""

MERMAID_SOURCE = "graph TD\n    A[Markdown] --> B[DOCX]"


@pytest.fixture
def sample_document(tmp_path: Path) -> Path:
    """Full document on disk: cover, TOC, revision history, body."""
    path = tmp_path / "srs.md"
    path.write_text(SAMPLE_DOCUMENT, encoding="utf-8")
    return path


@pytest.fixture
def png_file(tmp_path: Path) -> Path:
    path = tmp_path / "figure.png"
    path.write_bytes(make_png(1000, 500))
    return path


# =============================================================================
# Renderer Fakes
# =============================================================================


class FakeInvoker:
    """Stands in for DiagramRenderer._invoke.

    Records every argument list, writes a PNG to the ``-o`` path and returns
    the configured exit code. ``write_output=False`` simulates a renderer
    that exits cleanly without producing a file.
    """

    def __init__(self, width: int = 1100, height: int = 400):
        self.calls: list[list[str]] = []
        self.width = width
        self.height = height
        self.returncode = 0
        self.stderr = ""
        self.write_output = True
        self.error: Exception | None = None

    async def __call__(self, renderer, args: list[str], timeout: float) -> tuple[int, str]:
        self.calls.append(list(args))
        if self.error is not None:
            raise self.error
        if self.write_output and self.returncode == 0:
            Path(args[args.index("-o") + 1]).write_bytes(make_png(self.width, self.height))
        return self.returncode, self.stderr


@pytest.fixture
def renderer_on_path(monkeypatch: pytest.MonkeyPatch) -> None:
    """Pretend mmdc is installed."""
    monkeypatch.setattr(
        "md2docx.diagrams.renderer.shutil.which", lambda command: f"/usr/local/bin/{command}"
    )


@pytest.fixture
def renderer_missing(monkeypatch: pytest.MonkeyPatch) -> None:
    """Pretend mmdc is not installed."""
    monkeypatch.setattr("md2docx.diagrams.renderer.shutil.which", lambda command: None)


@pytest.fixture
def fake_renderer(monkeypatch: pytest.MonkeyPatch, renderer_on_path) -> FakeInvoker:
    """Replace the renderer subprocess with an in-process fake."""
    invoker = FakeInvoker()

    async def _invoke(self, args, timeout):
        return await invoker(self, args, timeout)

    monkeypatch.setattr(DiagramRenderer, "_invoke", _invoke)
    return invoker


# =============================================================================
# Logging Isolation
# =============================================================================


@pytest.fixture(autouse=True)
def reset_structlog() -> Generator[None, None, None]:
    """configure_logging binds sys.stderr; restore defaults after each test."""
    yield
    structlog.reset_defaults()
    structlog.contextvars.clear_contextvars()
