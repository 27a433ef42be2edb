"""
Exceptions raised by the geometry engine and the export pipeline.
"""


class AnnotixError(ValueError):
    """Base class for all engine errors."""


class InvalidGeometry(AnnotixError):
    """A shape violates a creation or closing invariant."""


class FormatMismatch(AnnotixError):
    """Export format requested for an incompatible project type."""

    def __init__(self, fmt: str, project_type: str, message: str = None):
        self.format = fmt
        self.project_type = project_type
        super().__init__(
            message or f"Format '{fmt}' is not available for '{project_type}' projects"
        )


class MalformedRaster(AnnotixError):
    """An embedded mask cannot be decoded or has inconsistent dimensions."""
