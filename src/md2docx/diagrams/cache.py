"""Content-addressed store of rendered diagrams."""

from __future__ import annotations

import hashlib
import os
import shutil
from pathlib import Path

from md2docx.logging import get_logger

logger = get_logger(__name__)


def diagram_hash(source: str, length: int = 32) -> str:
    """Deterministic key for a diagram's source text.

    Leading/trailing whitespace is ignored so that re-indented but otherwise
    identical fences share one render.

    Examples:
        >>> diagram_hash("graph TD\\n A-->B") == diagram_hash("\\ngraph TD\\n A-->B\\n")
        True
    """
    return hashlib.sha256(source.strip().encode("utf-8")).hexdigest()[:length]


class DiagramCache:
    """Maps diagram hashes to rendered PNG files in one directory.

    The cache is an explicit object handed to the renderer, created per
    conversion run. Pointing it at a persistent directory carries renders
    across runs.

    Writes are first-writer-wins: once ``<hash>.png`` exists, later
    ``put`` calls for the same hash discard their file and return the
    existing one.
    """

    def __init__(self, directory: Path):
        self.directory = Path(directory)
        self.directory.mkdir(parents=True, exist_ok=True)
        self.hits = 0
        self.misses = 0

    def path_for(self, key: str) -> Path:
        return self.directory / f"{key}.png"

    def get(self, key: str) -> Path | None:
        path = self.path_for(key)
        if path.is_file() and path.stat().st_size > 0:
            self.hits += 1
            return path
        self.misses += 1
        return None

    def put(self, key: str, rendered: Path) -> Path:
        """Store ``rendered`` under ``key``; returns the cached path."""
        target = self.path_for(key)
        if target.is_file() and target.stat().st_size > 0:
            logger.debug("diagram_cache.put_ignored", diagram_hash=key)
            if Path(rendered) != target:
                Path(rendered).unlink(missing_ok=True)
            return target
        if Path(rendered) != target:
            try:
                os.replace(rendered, target)
            except OSError:
                # Cache on another filesystem
                shutil.move(str(rendered), target)
        logger.debug("diagram_cache.put", diagram_hash=key, path=str(target))
        return target

    def __contains__(self, key: str) -> bool:
        path = self.path_for(key)
        return path.is_file() and path.stat().st_size > 0

    def __len__(self) -> int:
        return sum(1 for _ in self.directory.glob("*.png"))


__all__ = ["diagram_hash", "DiagramCache"]
