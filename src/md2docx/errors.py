"""
Structured error types for md2docx.

Every failure the converter can raise carries a category, a retry hint, a
structured context (which document, which line, which diagram) and an
optional chained cause. Recoverable problems (a diagram that would not render,
an image header that could not be read) never surface as exceptions to the
caller; they are logged and collected as warnings on the ConversionResult.
Only the fatal cases below abort a document.

Manifesto:
    - **Typed Error Hierarchy:** One subclass per failure domain
    - **Explicit Retry Semantics:** A render timeout may succeed on rerun,
      a malformed document never will
    - **Rich Context:** Errors know the document and line they came from
    - **Error Chaining:** The underlying OSError/TimeoutError is preserved

Architecture:
    ::

        ┌─────────────────────────────────────────────────────────────────┐
        │                       DocGenError                                │
        │  (category, retryable, context, cause)                          │
        ├─────────────────────────────────────────────────────────────────┤
        │                                                                  │
        │  SourceError       ValidationError       RenderError            │
        │  (SOURCE)          (VALIDATION)          (RENDER)               │
        │       │                  │                    │                  │
        │  SourceNotFound    DuplicateRequirement  RenderTimeoutError     │
        │  ParseError                              RendererNotFoundError  │
        │                                                                  │
        │  ConfigError                                                     │
        │  (CONFIG)                                                        │
        │       │                                                          │
        │  InvalidConfigError                                              │
        └─────────────────────────────────────────────────────────────────┘

Fatal vs. recovered:
    ┌───────────────────────────┬──────────────────────────────────────┐
    │ SourceNotFoundError       │ fatal for the document               │
    │ DuplicateRequirementError │ fatal for the document               │
    │ RendererNotFoundError     │ fatal only when fallback is disabled │
    │ RenderError / Timeout     │ recovered: verbatim code block       │
    │ ConfigError               │ fatal before any document is read    │
    └───────────────────────────┴──────────────────────────────────────┘

Guardrails:
    ❌ DON'T: Raise RenderError out of the converter when fallback is on
    ✅ DO: Log it and substitute a code block

    ❌ DON'T: Swallow the original exception
    ✅ DO: Pass it as cause= for error chaining

Tags:
    error-handling, exception-hierarchy, error-context, md2docx

Doc-Types:
    - API Reference
    - Error Handling Guide
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """
    Error categories for classification and reporting.

    Attributes:
        SOURCE: Input file missing or unreadable
        PARSE: Input could not be segmented or tokenized
        VALIDATION: Document content violates an invariant
        RENDER: External diagram renderer failed
        CONFIG: Missing or invalid settings
        INTERNAL: Bugs, unexpected state
    """

    SOURCE = "SOURCE"
    PARSE = "PARSE"
    VALIDATION = "VALIDATION"
    RENDER = "RENDER"
    CONFIG = "CONFIG"
    INTERNAL = "INTERNAL"


@dataclass
class ErrorContext:
    """
    Structured metadata attached to an error.

    Only fields that are set appear in ``to_dict()``; ``metadata`` holds
    anything that does not fit a typed slot.

    Examples:
        >>> ctx = ErrorContext(document="srs.md", line=42)
        >>> ctx.to_dict()
        {'document': 'srs.md', 'line': 42}
    """

    document: str | None = None
    line: int | None = None
    diagram_hash: str | None = None
    requirement_id: str | None = None

    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        result: dict[str, Any] = {}
        for key in ["document", "line", "diagram_hash", "requirement_id"]:
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        if self.metadata:
            result.update(self.metadata)
        return result


class DocGenError(Exception):
    """
    Base exception for all md2docx errors.

    Subclasses set ``default_category`` and ``default_retryable``; callers may
    override either per instance.

    Examples:
        >>> error = DocGenError("Something went wrong")
        >>> error.category
        <ErrorCategory.INTERNAL: 'INTERNAL'>
        >>> error.with_context(document="srs.md").context.document
        'srs.md'
    """

    default_category: ErrorCategory = ErrorCategory.INTERNAL
    default_retryable: bool = False

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        retryable: bool | None = None,
        context: ErrorContext | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.retryable = retryable if retryable is not None else self.default_retryable
        self.context = context or ErrorContext()
        self.cause = cause

        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **kwargs: Any) -> DocGenError:
        """
        Add context to this error (fluent API).

        Usage:
            raise ParseError("Unterminated fence").with_context(
                document="srs.md", line=120
            )
        """
        for key, value in kwargs.items():
            if hasattr(self.context, key) and key != "metadata":
                setattr(self.context, key, value)
            else:
                self.context.metadata[key] = value
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        result: dict[str, Any] = {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "category": self.category.value,
            "retryable": self.retryable,
        }
        context_dict = self.context.to_dict()
        if context_dict:
            result["context"] = context_dict
        if self.cause is not None:
            result["cause"] = str(self.cause)
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, category={self.category.value})"


# =============================================================================
# SOURCE ERRORS
# =============================================================================


class SourceError(DocGenError):
    """Error reading an input document."""

    default_category = ErrorCategory.SOURCE


class SourceNotFoundError(SourceError):
    """Input document does not exist or cannot be read."""

    def __init__(self, path: str, *, cause: Exception | None = None):
        self.path = path
        super().__init__(
            f"Input document not found or unreadable: {path}",
            context=ErrorContext(document=path),
            cause=cause,
        )


class ParseError(SourceError):
    """Input document could not be parsed."""

    default_category = ErrorCategory.PARSE


# =============================================================================
# VALIDATION ERRORS
# =============================================================================


class ValidationError(DocGenError):
    """
    Document content violates an invariant.

    Never retryable - the source must be fixed.
    """

    default_category = ErrorCategory.VALIDATION

    def __init__(
        self,
        message: str,
        *,
        field: str | None = None,
        value: Any = None,
        constraint: str | None = None,
        **kwargs: Any,
    ):
        super().__init__(message, **kwargs)
        self.field = field
        self.value = value
        self.constraint = constraint

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        if self.field:
            result["field"] = self.field
        if self.value is not None:
            result["value"] = repr(self.value)
        if self.constraint:
            result["constraint"] = self.constraint
        return result


class DuplicateRequirementError(ValidationError):
    """The same requirement ID appears twice in one document."""

    def __init__(self, requirement_id: str, *, line: int | None = None):
        self.requirement_id = requirement_id
        super().__init__(
            f"Duplicate requirement ID: {requirement_id}",
            field="id",
            value=requirement_id,
            constraint="unique",
            context=ErrorContext(line=line, requirement_id=requirement_id),
        )


# =============================================================================
# RENDER ERRORS
# =============================================================================


class RenderError(DocGenError):
    """External diagram render failed (non-zero exit or missing output)."""

    default_category = ErrorCategory.RENDER


class RenderTimeoutError(RenderError):
    """External diagram render exceeded its timeout."""

    default_retryable = True

    def __init__(self, timeout: float, **kwargs: Any):
        self.timeout = timeout
        super().__init__(f"Diagram render timed out after {timeout}s", **kwargs)


class RendererNotFoundError(RenderError):
    """Renderer binary is not installed and no fallback is configured."""

    def __init__(self, command: str):
        self.command = command
        super().__init__(
            f"Diagram renderer '{command}' not found on PATH. "
            "Install it (npm install -g @mermaid-js/mermaid-cli) "
            "or enable fallback_to_code."
        )


# =============================================================================
# CONFIGURATION ERRORS
# =============================================================================


class ConfigError(DocGenError):
    """
    Configuration error.

    Never retryable - configuration must be fixed.
    """

    default_category = ErrorCategory.CONFIG


class InvalidConfigError(ConfigError):
    """Configuration value is invalid."""

    def __init__(self, key: str, value: Any, message: str | None = None):
        self.key = key
        self.value = value
        super().__init__(message or f"Invalid configuration for {key}: {value!r}")


__all__ = [
    "ErrorCategory",
    "ErrorContext",
    "DocGenError",
    "SourceError",
    "SourceNotFoundError",
    "ParseError",
    "ValidationError",
    "DuplicateRequirementError",
    "RenderError",
    "RenderTimeoutError",
    "RendererNotFoundError",
    "ConfigError",
    "InvalidConfigError",
]
