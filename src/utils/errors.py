"""
errors.py

Exception hierarchy for the biopsy pipeline. Every failure carries the stage
that raised it and, where one exists, the offending row so the driver can
print a single descriptive line and abort.
"""
from typing import Any, Dict, Optional


class PipelineError(Exception):
    """Base exception for every fatal pipeline condition."""

    def __init__(
        self,
        message: str,
        stage: Optional[str] = None,
        row: Optional[Any] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.stage = stage
        self.row = row
        self.details = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        where = []
        if self.stage:
            where.append(f"stage={self.stage}")
        if self.row is not None:
            where.append(f"row={self.row}")
        prefix = f"[{', '.join(where)}] " if where else ""
        return f"{prefix}{self.message}"


class MalformedRowError(PipelineError):
    """A raw row cannot be parsed or holds an impossible feature value."""


class UnknownLabelError(PipelineError):
    """A raw diagnosis token is outside the configured label scheme."""


class ZeroVarianceError(PipelineError):
    """Standardization is undefined for a constant (or empty) column."""

    def __init__(self, column: str, stage: str = "clean"):
        super().__init__(
            f"Feature '{column}' has zero variance over the cleaned set; "
            "standardization is undefined.",
            stage=stage,
            details={"column": column},
        )
        self.column = column


class DetectorConfigError(PipelineError, ValueError):
    """Invalid parameter for the reducer or one of the detectors."""


class ConfigError(PipelineError, ValueError):
    """Invalid YAML or command-line configuration."""

    def __init__(self, message: str, key: Optional[str] = None):
        super().__init__(message, stage="config",
                         details={"key": key} if key else {})
        self.key = key
