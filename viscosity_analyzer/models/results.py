from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

import numpy as np
import pandas as pd

from viscosity_analyzer.models.frames import TrialMetadata


@dataclass(frozen=True)
class WindowedStdev:
    """Moving-window standard deviation of one sequence.

    Attributes
    ----------
    values:
        Sample standard deviation per window, shape ``(n_windows,)``.
    centers:
        Index (into the input sequence) the window is attributed to, shape ``(n_windows,)``.
        ``centers[i] = k + radius`` for the window starting at ``k``.
    window_size, radius:
        ``radius = window_size // 2``.
    """

    values: np.ndarray
    centers: np.ndarray
    window_size: int
    radius: int

    def __len__(self) -> int:
        return int(self.values.size)


@dataclass(frozen=True)
class SteadinessSplit:
    """Partition of a calibrated sequence into steady (included) and unsteady (excluded) samples.

    Both index arrays point into the original calibrated sequence. ``included`` keeps
    the order of the windowed centers it was selected from.
    """

    included: np.ndarray
    excluded: np.ndarray
    threshold: float

    @property
    def n_included(self) -> int:
        return int(self.included.size)


@dataclass(frozen=True)
class SummaryStats:
    """Mean, sample std and fixed-z 95% bounds of the steady samples (NaN when n == 0)."""

    n: int
    mean: float
    std: float
    lower_bound: float
    upper_bound: float


@dataclass(frozen=True)
class TrialSummary:
    """One record per analyzed trial. Immutable; appended to the batch result set."""

    metadata: TrialMetadata
    spindle: str
    rpm: float
    max_viscosity: float

    mean_viscosity: float
    viscosity_std: float
    lower_bound: float
    upper_bound: float

    window_size: int
    threshold: float

    n_valid_samples: int
    n_steady_samples: int
    warnings: Tuple[str, ...] = ()

    @property
    def trial_id(self) -> str:
        return self.metadata.trial_name

    @property
    def steady_found(self) -> bool:
        return self.n_steady_samples > 0 and not math.isnan(self.mean_viscosity)

    def to_row(self) -> Dict[str, Any]:
        """Flat record, keyed like the aggregate results table."""
        m = self.metadata
        return {
            "Filename": m.filename,
            "Temperature": m.temperature,
            "Date": m.date,
            "Humidity": m.humidity,
            "FluidTested": m.fluid_tested,
            "Identifier": m.identifier,
            "TrialNumber": m.trial_number,
            "Spindle": self.spindle,
            "RPM": self.rpm,
            "MeanViscosity": self.mean_viscosity,
            "ViscosityStandardDeviation": self.viscosity_std,
            "LowerBoundConfidenceInterval": self.lower_bound,
            "UpperBoundConfidenceInterval": self.upper_bound,
            "WindowSize": self.window_size,
            "Threshold": self.threshold,
            "MaxViscosity": self.max_viscosity,
            "NValidSamples": self.n_valid_samples,
            "NSteadySamples": self.n_steady_samples,
            "Warnings": "; ".join(self.warnings),
        }


@dataclass(frozen=True)
class TrialAnalysis:
    """Everything computed for one trial.

    Only ``summary`` outlives the trial inside a batch; the arrays are handed to an
    optional per-trial callback (plots) and then dropped.
    """

    summary: TrialSummary
    viscosity: np.ndarray  # calibrated sequence, (n_valid,)
    windowed: WindowedStdev
    split: SteadinessSplit
    stats: SummaryStats
    sample_rate_hz: float = 2.0

    def time_minutes(self, indices: Optional[np.ndarray] = None) -> np.ndarray:
        """Convert sample indices (default: every sample) to minutes from the first sample."""
        idx = np.arange(self.viscosity.size) if indices is None else np.asarray(indices)
        return idx / float(self.sample_rate_hz) / 60.0


@dataclass(frozen=True)
class TrialFailure:
    """A trial that was skipped, with the reason shown to the user."""

    trial: str
    reason: str
    error_type: str


@dataclass
class BatchResult:
    """Append-only result set of one batch run."""

    summaries: List[TrialSummary] = field(default_factory=list)
    failures: List[TrialFailure] = field(default_factory=list)

    @property
    def n_trials(self) -> int:
        return len(self.summaries) + len(self.failures)

    def to_frame(self) -> pd.DataFrame:
        rows = [s.to_row() for s in self.summaries]
        if not rows:
            return pd.DataFrame(columns=list(_ROW_COLUMNS))
        return pd.DataFrame(rows, columns=list(_ROW_COLUMNS))

    def failures_frame(self) -> pd.DataFrame:
        return pd.DataFrame(
            [{"trial": f.trial, "error_type": f.error_type, "reason": f.reason} for f in self.failures],
            columns=["trial", "error_type", "reason"],
        )


_ROW_COLUMNS: Tuple[str, ...] = (
    "Filename",
    "Temperature",
    "Date",
    "Humidity",
    "FluidTested",
    "Identifier",
    "TrialNumber",
    "Spindle",
    "RPM",
    "MeanViscosity",
    "ViscosityStandardDeviation",
    "LowerBoundConfidenceInterval",
    "UpperBoundConfidenceInterval",
    "WindowSize",
    "Threshold",
    "MaxViscosity",
    "NValidSamples",
    "NSteadySamples",
    "Warnings",
)
