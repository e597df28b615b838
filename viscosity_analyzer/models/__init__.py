from .frames import RawSample, TrialMetadata, TrialRecording
from .profile import AnalysisProfile
from .results import (
    BatchResult,
    SteadinessSplit,
    SummaryStats,
    TrialAnalysis,
    TrialFailure,
    TrialSummary,
    WindowedStdev,
)

__all__ = [
    "RawSample",
    "TrialMetadata",
    "TrialRecording",
    "AnalysisProfile",
    "BatchResult",
    "SteadinessSplit",
    "SummaryStats",
    "TrialAnalysis",
    "TrialFailure",
    "TrialSummary",
    "WindowedStdev",
]
