"""
Error Taxonomy

Every failure surfaced by the design pipeline is a DesignPipelineError carrying
structured information for the caller:
- code: error category (e.g., 'SCHEMA_VIOLATION', 'TRANSPORT')
- message: human-readable error description
- details: dict with debug information (offending substring, field path, ...)

Categories:
- ConfigurationError: unknown model key or missing backend credential.
  Raised before any network attempt.
- TransportError: the backend call itself failed. Not retried here.
- GenerationFormatError: no bracketed region in the generated text, or the
  region is not valid JSON. Recoverable only by re-prompting.
- SchemaViolationError: the JSON parsed but does not satisfy the artifact
  schema (missing field, bad enum, out-of-range number, broken cross-field sum).
- PreconditionError: caller input rejected before any backend call.
"""

from typing import Any


class DesignPipelineError(Exception):
    """Base class for all pipeline errors."""

    code = "PIPELINE_ERROR"

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(f"{self.code}: {message}")

    def to_dict(self) -> dict[str, Any]:
        """Serialize for API responses and eval reports."""
        return {"code": self.code, "message": self.message, "details": self.details}


class ConfigurationError(DesignPipelineError):
    """Backend key not configured, not text-capable, or missing its credential."""

    code = "CONFIGURATION"


class TransportError(DesignPipelineError):
    """Network or backend failure, propagated with the original message."""

    code = "TRANSPORT"

    def __init__(self, message: str, backend_key: str | None = None):
        super().__init__(message, {"backend_key": backend_key})
        self.backend_key = backend_key


class GenerationFormatError(DesignPipelineError):
    """Generated text has no parseable bracketed region."""

    code = "GENERATION_FORMAT"

    def __init__(self, message: str, substring: str = ""):
        super().__init__(message, {"substring": substring})
        self.substring = substring


class SchemaViolationError(DesignPipelineError):
    """Parsed payload violates the declared schema of its artifact."""

    code = "SCHEMA_VIOLATION"

    def __init__(
        self,
        message: str,
        field_path: str,
        constraint: str,
        violations: list[dict[str, Any]] | None = None,
    ):
        super().__init__(
            message,
            {
                "field_path": field_path,
                "constraint": constraint,
                "violations": violations or [],
            },
        )
        self.field_path = field_path
        self.constraint = constraint
        self.violations = violations or []


class PreconditionError(DesignPipelineError):
    """Invalid caller input detected before any backend call."""

    code = "PRECONDITION"
