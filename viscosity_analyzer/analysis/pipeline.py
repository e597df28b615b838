"""Per-trial pipeline and batch orchestration.

One trial, in order:

1) nominal speed = speed of the midpoint sample (the motor is at speed by then)
2) keep only samples recorded at the nominal speed
3) spindle from the nominal speed, max viscosity for that spindle/speed
4) recalibrate every kept torque reading into viscosity
5) moving-window standard deviation of the calibrated sequence
6) steady / unsteady split with the threshold
7) mean, std and 95% bounds of the steady samples -> TrialSummary

Batch rules
-----------
- Configuration is validated once, before any trial runs (ConfigurationError aborts).
- A trial whose file cannot be parsed, or whose spindle is unsupported, is recorded as
  a TrialFailure and the batch moves on.
- A failing per-trial callback (figure export) never drops the trial's summary.
- Trials share no state. With ``max_workers`` they run in a thread pool; results are
  appended on the calling thread in input order.
"""

from __future__ import annotations

import dataclasses
import logging
import math
import warnings
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Any, Callable, Iterable, List, Optional, Sequence, Tuple, Union

import numpy as np

from viscosity_analyzer.analysis.calibration import calibrate_torque, max_viscosity, resolve_spindle
from viscosity_analyzer.analysis.steadiness import split_steady
from viscosity_analyzer.analysis.summary import summarize
from viscosity_analyzer.analysis.windowed import moving_window_stdev
from viscosity_analyzer.errors import (
    EmptySteadyRegionWarning,
    MalformedRecordError,
    UnsupportedSpindleError,
)
from viscosity_analyzer.ingest.discovery import discover_trial_files
from viscosity_analyzer.ingest.readers_viscometer import ViscometerReader
from viscosity_analyzer.models.frames import RawSample, TrialMetadata, TrialRecording
from viscosity_analyzer.models.profile import AnalysisProfile
from viscosity_analyzer.models.results import BatchResult, TrialAnalysis, TrialFailure, TrialSummary

logger = logging.getLogger(__name__)

#: Errors that end one trial but never the batch.
PER_TRIAL_ERRORS: Tuple[type, ...] = (MalformedRecordError, UnsupportedSpindleError)

TrialSource = Union[TrialRecording, str, Path, Tuple[Sequence[RawSample], Any]]
TrialCallback = Callable[[TrialAnalysis], None]


# ---------------------------------------------------------------------------
# Single trial
# ---------------------------------------------------------------------------

def resolve_nominal_speed(samples: Sequence[RawSample]) -> float:
    """Speed of the midpoint sample (``ceil(n/2)``-th sample, 1-based)."""
    n = len(samples)
    if n == 0:
        raise MalformedRecordError("trial has no samples")
    mid = (n + 1) // 2 - 1
    return float(samples[mid].speed_rpm)


def analyze_recording(recording: TrialRecording, profile: AnalysisProfile) -> TrialAnalysis:
    """Run the full pipeline on one recording.

    The profile is used as given (no validation here); batch entry points validate it.

    Raises
    ------
    MalformedRecordError
        The recording holds no samples.
    UnsupportedSpindleError
        No spindle is known for the nominal speed.
    """
    samples = recording.samples
    nominal = resolve_nominal_speed(samples)
    spindle = resolve_spindle(nominal, profile.spindle_by_speed, forced=profile.spindle)
    max_visc = max_viscosity(spindle, nominal)

    speed = np.array([s.speed_rpm for s in samples], dtype=float)
    torque = np.array([s.torque_pct for s in samples], dtype=float)
    valid = speed == nominal

    viscosity = calibrate_torque(torque[valid], max_visc)
    windowed = moving_window_stdev(viscosity, profile.window_size)
    split = split_steady(viscosity, windowed, profile.threshold)
    stats = summarize(viscosity[split.included])

    notes: List[str] = list(recording.warnings)
    if len(windowed) == 0:
        notes.append(
            f"{viscosity.size} valid samples: no full window of {profile.window_size} samples"
        )
    if stats.n == 0:
        msg = f"{recording.trial_id}: no steady region below threshold {profile.threshold:g}"
        notes.append("no steady region found; summary statistics are NaN")
        warnings.warn(msg, EmptySteadyRegionWarning, stacklevel=2)
        logger.warning(msg, extra={"trial": recording.trial_id})

    summary = TrialSummary(
        metadata=recording.metadata,
        spindle=spindle,
        rpm=nominal,
        max_viscosity=max_visc,
        mean_viscosity=stats.mean,
        viscosity_std=stats.std,
        lower_bound=stats.lower_bound,
        upper_bound=stats.upper_bound,
        window_size=int(profile.window_size),
        threshold=float(profile.threshold),
        n_valid_samples=int(viscosity.size),
        n_steady_samples=int(stats.n),
        warnings=tuple(notes),
    )
    logger.debug(
        "%s: spindle=%s rpm=%g n_valid=%d n_steady=%d mean=%s",
        recording.trial_id, spindle, nominal, summary.n_valid_samples, summary.n_steady_samples,
        "nan" if math.isnan(stats.mean) else f"{stats.mean:.4g}",
    )
    return TrialAnalysis(
        summary=summary,
        viscosity=viscosity,
        windowed=windowed,
        split=split,
        stats=stats,
        sample_rate_hz=float(profile.sample_rate_hz),
    )


def analyze_trial(
    samples: Sequence[RawSample],
    metadata: Any = None,
    window_size: int = 150,
    threshold: float = 0.05,
    *,
    profile: Optional[AnalysisProfile] = None,
) -> TrialAnalysis:
    """In-memory form of :func:`analyze_recording`.

    ``window_size`` / ``threshold`` override the profile (default profile if None).
    The threshold is not range-checked here, so a threshold of 0 yields an empty
    steady region and a NaN summary. ``metadata`` may be a TrialMetadata, a mapping of
    its fields, or anything else (see :meth:`TrialMetadata.coerce`).
    """
    base = profile if profile is not None else AnalysisProfile()
    prof = dataclasses.replace(base, window_size=window_size, threshold=threshold)
    meta = TrialMetadata.coerce(metadata, "trial")
    return analyze_recording(TrialRecording(metadata=meta, samples=tuple(samples)), prof)


# ---------------------------------------------------------------------------
# Batch
# ---------------------------------------------------------------------------

def _source_name(source: TrialSource, index: int) -> str:
    default = f"trial_{index + 1}"
    if isinstance(source, TrialRecording):
        return TrialMetadata.coerce(source.metadata, default).trial_name
    if isinstance(source, (str, Path)):
        return Path(source).stem
    if isinstance(source, (tuple, list)) and len(source) == 2:
        return TrialMetadata.coerce(source[1], default).trial_name
    return default


class TrialBatch:
    """
    Batch orchestrator: runs every trial of a run with one profile.

    Owns the only cross-trial state, an append-only BatchResult (summaries and failures).
    Trial sources may be TrialRecording objects, paths to trial files, or
    ``(samples, metadata)`` tuples.
    """

    def __init__(self, profile: Optional[AnalysisProfile] = None) -> None:
        self.profile = (profile if profile is not None else AnalysisProfile()).validate()
        self.result = BatchResult()
        self._reader = ViscometerReader(profile=self.profile)

    @property
    def summaries(self) -> List[TrialSummary]:
        return self.result.summaries

    @property
    def failures(self) -> List[TrialFailure]:
        return self.result.failures

    def _load(self, source: TrialSource, name: str) -> TrialRecording:
        if isinstance(source, TrialRecording):
            if isinstance(source.metadata, TrialMetadata):
                return source
            return dataclasses.replace(source, metadata=TrialMetadata.coerce(source.metadata, name))
        if isinstance(source, (str, Path)):
            return self._reader.read(source)
        if not (isinstance(source, (tuple, list)) and len(source) == 2):
            raise MalformedRecordError(
                f"unsupported trial source {type(source).__name__}; expected a path, a TrialRecording "
                "or a (samples, metadata) pair"
            )
        samples, metadata = source
        try:
            samples = tuple(samples)
        except TypeError as e:
            raise MalformedRecordError(f"trial samples are not a sequence: {e}") from e
        return TrialRecording(metadata=TrialMetadata.coerce(metadata, name), samples=samples)

    def _process(self, index: int, source: TrialSource) -> Union[TrialAnalysis, TrialFailure]:
        name = _source_name(source, index)
        try:
            recording = self._load(source, name)
            return analyze_recording(recording, self.profile)
        except PER_TRIAL_ERRORS as e:
            return TrialFailure(trial=name, reason=str(e), error_type=type(e).__name__)
        except OSError as e:
            return TrialFailure(trial=name, reason=f"could not read file: {e}", error_type=type(e).__name__)

    def run(
        self,
        trials: Iterable[TrialSource],
        *,
        on_trial: Optional[TrialCallback] = None,
        max_workers: Optional[int] = None,
    ) -> BatchResult:
        """Process ``trials`` and append their outcomes to :attr:`result`.

        Parameters
        ----------
        on_trial:
            Called with each successful TrialAnalysis (e.g. to save a figure) before the
            per-trial arrays are dropped. Runs on the calling thread.
            An exception raised by it is logged and noted in the summary's warnings; the
            summary is kept.
        max_workers:
            Thread-pool size. None or 1 processes trials sequentially.
        """
        items = list(trials)
        logger.info("Analyzing %d trial(s): window_size=%d threshold=%g",
                    len(items), self.profile.window_size, self.profile.threshold)

        if max_workers is not None and max_workers > 1 and len(items) > 1:
            with ThreadPoolExecutor(max_workers=int(max_workers)) as pool:
                outcomes = pool.map(self._process, range(len(items)), items)
                for outcome in outcomes:
                    self._collect(outcome, on_trial)
        else:
            for i, item in enumerate(items):
                self._collect(self._process(i, item), on_trial)

        logger.info("Batch done: %d summarized, %d failed", len(self.summaries), len(self.failures))
        return self.result

    def _collect(self, outcome: Union[TrialAnalysis, TrialFailure], on_trial: Optional[TrialCallback]) -> None:
        if isinstance(outcome, TrialFailure):
            logger.warning(
                "Skipping trial %s (%s): %s", outcome.trial, outcome.error_type, outcome.reason,
                extra={"trial": outcome.trial},
            )
            self.result.failures.append(outcome)
            return
        summary = outcome.summary
        if on_trial is not None:
            try:
                on_trial(outcome)
            except Exception as e:
                note = f"per-trial callback failed ({type(e).__name__}: {e})"
                logger.warning("%s: %s", summary.trial_id, note, extra={"trial": summary.trial_id})
                summary = dataclasses.replace(summary, warnings=summary.warnings + (note,))
        self.result.summaries.append(summary)


def analyze_trials(
    trials: Iterable[TrialSource],
    window_size: int = 150,
    threshold: float = 0.05,
    *,
    profile: Optional[AnalysisProfile] = None,
    on_trial: Optional[TrialCallback] = None,
    max_workers: Optional[int] = None,
) -> List[TrialSummary]:
    """Batch entry point: one TrialSummary per successfully analyzed trial, in input order.

    Failed trials are logged and left out; use :class:`TrialBatch` to inspect them.

    Raises
    ------
    ConfigurationError
        Invalid window size or threshold (nothing is processed).
    """
    base = profile if profile is not None else AnalysisProfile()
    batch = TrialBatch(dataclasses.replace(base, window_size=window_size, threshold=threshold))
    return list(batch.run(trials, on_trial=on_trial, max_workers=max_workers).summaries)


def analyze_folder(
    folder: str | Path,
    profile: Optional[AnalysisProfile] = None,
    *,
    on_trial: Optional[TrialCallback] = None,
    max_workers: Optional[int] = None,
) -> BatchResult:
    """Analyze every trial file (*.txt) of ``folder``."""
    batch = TrialBatch(profile)
    files = discover_trial_files(folder)
    logger.info("Found %d trial file(s) in %s", len(files), folder)
    return batch.run(files, on_trial=on_trial, max_workers=max_workers)
