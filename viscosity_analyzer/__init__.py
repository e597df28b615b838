"""Viscosity Analyzer -- Python tooling for rotational-viscometer trial data.

This package provides tools for:
- Reading viscometer text exports (one reading per line: speed, viscosity, torque)
- Parsing trial metadata from file names
- Recalibrating torque readings into viscosity for the spindle in use
- Computing a moving-window standard deviation of the viscosity trace
- Splitting each trial into "steady" and "unsteady" samples with a threshold
- Summarizing the steady portion (mean, std, 95% bounds) across a batch of trials

Key principles:
- One batch per folder, one summary per trial file
- A bad file is reported and skipped, never fatal to the batch
- An empty steady region is surfaced as NaN, never coerced to 0

Main subpackages:
- analysis: Calibration, windowed statistics, classification, batch pipeline
- ingest: Instrument file reader and trial discovery
- models: Data models (RawSample, TrialRecording, TrialSummary, AnalysisProfile)
- presentation: Figures and result-table export
- gui: Interactive ipywidgets panel
"""

__version__ = "0.1.0"

__all__ = ["__version__"]
