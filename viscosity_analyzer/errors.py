"""Error taxonomy for the viscosity analysis pipeline.

- ConfigurationError aborts a whole run.
- UnsupportedSpindleError / MalformedRecordError are fatal for one trial only;
  the batch orchestrator records them and moves on.
- EmptySteadyRegionWarning is non-fatal: the trial summary carries NaN values.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional


class ViscosityAnalysisError(Exception):
    """Base class for all analysis errors."""


class ConfigurationError(ViscosityAnalysisError, ValueError):
    """Invalid run configuration (window size, threshold, sample rate, ...)."""


class UnsupportedSpindleError(ViscosityAnalysisError, ValueError):
    """Spindle / speed combination the calibration transform does not know."""


class MalformedRecordError(ViscosityAnalysisError, ValueError):
    """A raw instrument record (or the file holding it) cannot be parsed."""

    def __init__(self, message: str, *, path: Optional[Path] = None, line_no: Optional[int] = None) -> None:
        self.path = path
        self.line_no = line_no
        where = []
        if path is not None:
            where.append(Path(path).name)
        if line_no is not None:
            where.append(f"line {line_no}")
        if where:
            message = f"{':'.join(where)}: {message}"
        super().__init__(message)


class MalformedFilenameError(MalformedRecordError):
    """A trial file name does not match the metadata schema."""


class EmptySteadyRegionWarning(UserWarning):
    """No sample passed the steadiness threshold; summary statistics are NaN."""
