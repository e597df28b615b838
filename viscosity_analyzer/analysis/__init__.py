"""Analysis package.

Design principle:
  - Ingest produces :class:`~viscosity_analyzer.models.frames.TrialRecording` objects.
  - Analysis consumes them and produces one :class:`~viscosity_analyzer.models.results.TrialSummary` per trial.

Data flows one way:
  raw samples -> calibrated viscosity -> windowed stdev -> steady mask -> summary
"""

from .calibration import calibrate_torque, max_viscosity, resolve_spindle
from .windowed import moving_window_stdev
from .steadiness import split_steady, steady_centers, steady_regions
from .summary import summarize
from .pipeline import TrialBatch, analyze_folder, analyze_recording, analyze_trial, analyze_trials

__all__ = [
    "calibrate_torque",
    "max_viscosity",
    "resolve_spindle",
    "moving_window_stdev",
    "split_steady",
    "steady_centers",
    "steady_regions",
    "summarize",
    "TrialBatch",
    "analyze_folder",
    "analyze_recording",
    "analyze_trial",
    "analyze_trials",
]
