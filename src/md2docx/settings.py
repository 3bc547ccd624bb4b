"""Converter settings.

Every tunable the pipeline reads lives here: table geometry, diagram renderer
invocation, image caps and fonts. Values come from (highest first) explicit
keyword arguments, ``MD2DOCX_*`` environment variables, a ``.env`` file, and
the defaults below. A YAML file can be layered in with ``from_yaml``.

Examples:
    >>> settings = ConverterSettings(table_width=9000)
    >>> settings.render_timeout
    60.0

    Environment::

        MD2DOCX_MERMAID_COMMAND=/opt/node/bin/mmdc
        MD2DOCX_MAX_CONCURRENCY=8

Tags:
    settings, configuration, pydantic, environment, md2docx
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import pydantic
import yaml
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from md2docx.errors import ConfigError, InvalidConfigError


class ConverterSettings(BaseSettings):
    """Settings for one conversion run.

    Fields
    ──────
    table_width          : Total width of every body table, in twips (9360 = 6.5in)
    min_column_width     : Floor for any proportional column, in twips
    id_column_min_width  : Larger floor for requirement-ID columns
    mermaid_command      : Renderer executable (looked up on PATH)
    render_timeout       : Per-diagram timeout, seconds
    max_concurrency      : Concurrent renders
    cache_dir            : Persistent diagram cache; a temp dir when unset
    fallback_to_code     : Render a code block when the renderer is missing
    diagram_* / image_*  : Display caps and defaults, in pixels at 96 dpi
    font_*               : Latin, CJK and code font families
    """

    model_config = SettingsConfigDict(
        env_prefix="MD2DOCX_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Tables ───────────────────────────────────────────────────
    table_width: int = Field(default=9360, gt=0)
    min_column_width: int = Field(default=1000, ge=0)
    id_column_min_width: int = Field(default=1800, ge=0)

    # ── Diagram rendering ────────────────────────────────────────
    mermaid_command: str = "mmdc"
    render_timeout: float = Field(default=60.0, gt=0)
    max_concurrency: int = Field(default=4, ge=1)
    cache_dir: Path | None = None
    fallback_to_code: bool = True

    # ── Image caps ───────────────────────────────────────────────
    diagram_max_width: int = Field(default=550, gt=0)
    diagram_max_height: int = Field(default=600, gt=0)
    diagram_default_width: int = Field(default=450, gt=0)
    diagram_default_height: int = Field(default=350, gt=0)
    image_max_width: int = Field(default=500, gt=0)
    image_max_height: int = Field(default=650, gt=0)
    image_default_width: int = Field(default=400, gt=0)
    image_default_height: int = Field(default=300, gt=0)

    # ── Fonts ────────────────────────────────────────────────────
    font_latin: str = "Arial"
    font_cjk: str = "Microsoft JhengHei"
    font_code: str = "Consolas"

    # ── Cover parsing ────────────────────────────────────────────
    organization_markers: list[str] = Field(default_factory=lambda: ["SOMNICS"])

    # ── Observability ────────────────────────────────────────────
    log_level: str = "INFO"
    json_logs: bool | None = None

    @classmethod
    def from_yaml(cls, yaml_path: Path, **overrides: Any) -> "ConverterSettings":
        """Load settings from a YAML file; keyword overrides win.

        Raises:
            ConfigError: File missing or not a mapping.
            InvalidConfigError: A value failed validation.
        """
        try:
            with open(yaml_path, encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except OSError as exc:
            raise ConfigError(f"Cannot read config file: {yaml_path}", cause=exc) from exc
        except yaml.YAMLError as exc:
            raise ConfigError(f"Malformed YAML in {yaml_path}", cause=exc) from exc

        if not isinstance(data, dict):
            raise ConfigError(f"Config file must contain a mapping: {yaml_path}")

        data.update({k: v for k, v in overrides.items() if v is not None})
        return cls.build(**data)

    @classmethod
    def build(cls, **values: Any) -> "ConverterSettings":
        """Construct settings, mapping pydantic validation errors to InvalidConfigError."""
        try:
            return cls(**values)
        except pydantic.ValidationError as exc:
            first = exc.errors()[0]
            key = ".".join(str(part) for part in first["loc"]) or "<root>"
            raise InvalidConfigError(
                key, first.get("input"), f"Invalid configuration for {key}: {first['msg']}"
            ) from exc

    def to_dict(self) -> dict[str, Any]:
        """Settings as a plain dictionary (paths as strings)."""
        return self.model_dump(mode="json")


__all__ = ["ConverterSettings"]
