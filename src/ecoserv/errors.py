"""ecoserv.errors

Error taxonomy shared by every pipeline stage.

Each error carries the name of the stage that raised it so a failed run can
be traced back without a stack trace. The CLI turns these into SystemExit
messages; library callers can catch EcoservError.
"""

from __future__ import annotations

from typing import Optional


class EcoservError(Exception):
    """Base class for all pipeline failures."""

    def __init__(self, message: str, stage: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.stage = stage

    def __str__(self) -> str:
        if self.stage:
            return f"[{self.stage}] {self.message}"
        return self.message


class InputError(EcoservError):
    """Missing/unreadable input, bad config value, or unusable output folder."""


class GeometryError(EcoservError):
    """Degenerate geometry: zero-extent bounds, empty layers, no overlap."""


class ComputationError(EcoservError):
    """A score raster cannot be normalised (non-finite or negative values)."""


class WorkspaceError(EcoservError):
    """Scratch or output directory could not be created."""
