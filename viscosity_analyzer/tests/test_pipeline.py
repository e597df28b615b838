"""Tests for the per-trial pipeline and the batch orchestrator."""

from __future__ import annotations

import logging
import math
from typing import List

import numpy as np
import pytest

from viscosity_analyzer.analysis.pipeline import (
    TrialBatch,
    analyze_trial,
    analyze_trials,
    resolve_nominal_speed,
)
from viscosity_analyzer.errors import (
    ConfigurationError,
    EmptySteadyRegionWarning,
    MalformedRecordError,
    UnsupportedSpindleError,
)
from viscosity_analyzer.models.frames import RawSample, TrialMetadata, TrialRecording
from viscosity_analyzer.models.profile import AnalysisProfile
from viscosity_analyzer.models.results import TrialAnalysis


def _samples(torques, speed: float = 60.0) -> List[RawSample]:
    return [RawSample(speed_rpm=speed, torque_pct=float(t), viscosity_code=0.0) for t in torques]


def _noisy(seed: int, n: int = 60) -> List[RawSample]:
    rng = np.random.default_rng(seed)
    return _samples(np.round(50.0 + rng.normal(0.0, 0.3, n), 1))


# -----------------------------------------------------------------------
# Single trial
# -----------------------------------------------------------------------


def test_constant_trial_is_fully_steady_inside_the_edges() -> None:
    res = analyze_trial(_samples([50.0] * 20), TrialMetadata.unnamed("const"), window_size=4, threshold=0.05)
    s = res.summary

    assert s.spindle == "40"
    assert s.rpm == 60.0
    assert s.max_viscosity == 5.12
    assert np.all(res.viscosity == 2.56)
    assert s.n_valid_samples == 20
    # radius 2 -> centers 2..17
    assert res.split.included.tolist() == list(range(2, 18))
    assert s.n_steady_samples == 16
    assert s.mean_viscosity == pytest.approx(2.56)
    assert s.viscosity_std == pytest.approx(0.0, abs=1e-12)
    assert s.lower_bound == pytest.approx(2.56)
    assert s.upper_bound == pytest.approx(2.56)
    assert s.window_size == 4
    assert s.threshold == 0.05
    assert s.steady_found
    assert s.warnings == ()


def test_zero_threshold_gives_nan_summary() -> None:
    with pytest.warns(EmptySteadyRegionWarning):
        res = analyze_trial(_samples([50.0] * 20), window_size=4, threshold=0.0)
    s = res.summary
    assert s.n_steady_samples == 0
    assert math.isnan(s.mean_viscosity)
    assert math.isnan(s.viscosity_std)
    assert math.isnan(s.lower_bound) and math.isnan(s.upper_bound)
    assert not s.steady_found
    assert any("no steady region" in w for w in s.warnings)


def test_samples_off_nominal_speed_are_dropped() -> None:
    samples = _samples([0.0] * 3, speed=0.0) + _samples([50.0] * 10) + _samples([0.0] * 2, speed=0.0)
    res = analyze_trial(samples, window_size=3, threshold=0.05)
    assert resolve_nominal_speed(samples) == 60.0
    assert res.summary.n_valid_samples == 10
    assert res.viscosity.size == 10
    assert res.summary.mean_viscosity == pytest.approx(2.56)


def test_nominal_speed_is_midpoint_sample() -> None:
    # 4 samples -> 2nd sample (1-based), 5 samples -> 3rd sample
    assert resolve_nominal_speed(_samples([1, 2], 0.0) + _samples([1, 2], 120.0)) == 0.0
    assert resolve_nominal_speed(_samples([1, 2], 0.0) + _samples([1, 2, 3], 120.0)) == 120.0
    with pytest.raises(MalformedRecordError):
        resolve_nominal_speed([])


def test_spindle_51_at_120_rpm() -> None:
    res = analyze_trial(_samples([20.0] * 12, speed=120.0), window_size=3, threshold=0.05)
    assert res.summary.spindle == "51"
    assert res.summary.max_viscosity == 40.45
    assert res.summary.mean_viscosity == pytest.approx(8.09)


def test_forced_spindle_overrides_speed_lookup() -> None:
    profile = AnalysisProfile(spindle="51")
    res = analyze_trial(_samples([50.0] * 8), window_size=3, threshold=0.05, profile=profile)
    assert res.summary.spindle == "51"
    assert res.summary.max_viscosity == 80.9


def test_unsupported_speed_raises() -> None:
    with pytest.raises(UnsupportedSpindleError):
        analyze_trial(_samples([50.0] * 20, speed=75.0), window_size=4, threshold=0.05)


def test_trial_shorter_than_window() -> None:
    with pytest.warns(EmptySteadyRegionWarning):
        res = analyze_trial(_samples([50.0] * 3), window_size=4, threshold=0.05)
    assert len(res.windowed) == 0
    assert res.summary.n_valid_samples == 3
    assert math.isnan(res.summary.mean_viscosity)
    assert any("no full window" in w for w in res.summary.warnings)


def test_time_axis_in_minutes() -> None:
    res = analyze_trial(_samples([50.0] * 240), window_size=5, threshold=0.05)
    t = res.time_minutes()
    assert t[0] == 0.0
    assert t[120] == pytest.approx(1.0)  # 2 Hz


def test_to_row_columns_and_values() -> None:
    meta = TrialMetadata(
        filename="25C_07-11-16_hum_la012_trial003.txt",
        trial_name="25C_07-11-16_hum_la012_trial003",
        temperature="25",
        date="07-11-16",
        humidity="Yes",
        fluid_tested="hemolymph",
        identifier="012",
        trial_number="003",
    )
    row = analyze_trial(_samples([50.0] * 10), meta, window_size=3, threshold=0.05).summary.to_row()
    assert list(row)[:8] == [
        "Filename", "Temperature", "Date", "Humidity", "FluidTested", "Identifier", "TrialNumber", "Spindle",
    ]
    assert row["Filename"] == "25C_07-11-16_hum_la012_trial003.txt"
    assert row["Identifier"] == "012"
    assert row["RPM"] == 60.0
    assert row["WindowSize"] == 3
    assert row["Warnings"] == ""


# -----------------------------------------------------------------------
# Batch
# -----------------------------------------------------------------------


def test_batch_skips_failing_trial_and_keeps_order() -> None:
    trials = [
        (_samples([50.0] * 20), TrialMetadata.unnamed("a")),
        (_samples([50.0] * 20, speed=75.0), TrialMetadata.unnamed("b")),
        (_samples([40.0] * 20), TrialMetadata.unnamed("c")),
        TrialRecording(metadata=TrialMetadata.unnamed("d"), samples=()),
    ]
    batch = TrialBatch(AnalysisProfile(window_size=4, threshold=0.05))
    result = batch.run(trials)

    assert [s.trial_id for s in result.summaries] == ["a", "c"]
    assert [(f.trial, f.error_type) for f in result.failures] == [
        ("b", "UnsupportedSpindleError"),
        ("d", "MalformedRecordError"),
    ]
    assert result.n_trials == 4
    assert list(result.failures_frame().columns) == ["trial", "error_type", "reason"]


def test_analyze_trials_returns_summaries_only() -> None:
    trials = [
        (_samples([50.0] * 20), TrialMetadata.unnamed("a")),
        (_samples([50.0] * 20, speed=75.0), TrialMetadata.unnamed("b")),
    ]
    out = analyze_trials(trials, window_size=4, threshold=0.05)
    assert [s.trial_id for s in out] == ["a"]


@pytest.mark.parametrize("window_size, threshold", [(0, 0.05), (-4, 0.05), (4, 0.0), (4, -1.0), (4, float("nan"))])
def test_invalid_configuration_processes_nothing(window_size, threshold) -> None:
    seen: List[str] = []
    with pytest.raises(ConfigurationError):
        analyze_trials(
            [(_samples([50.0] * 20), TrialMetadata.unnamed("a"))],
            window_size=window_size,
            threshold=threshold,
            on_trial=lambda a: seen.append(a.summary.trial_id),
        )
    assert seen == []


def test_callback_sees_successful_trials() -> None:
    seen: List[TrialAnalysis] = []
    trials = [
        (_samples([50.0] * 20), TrialMetadata.unnamed("a")),
        (_samples([50.0] * 20, speed=75.0), TrialMetadata.unnamed("b")),
        (_samples([30.0] * 20), TrialMetadata.unnamed("c")),
    ]
    analyze_trials(trials, window_size=4, threshold=0.05, on_trial=seen.append)
    assert [a.summary.trial_id for a in seen] == ["a", "c"]
    assert seen[0].viscosity.size == 20


def test_thread_pool_matches_sequential_run() -> None:
    trials = [(_noisy(seed), TrialMetadata.unnamed(f"t{seed}")) for seed in range(6)]
    trials.insert(3, (_samples([50.0] * 20, speed=75.0), TrialMetadata.unnamed("bad")))

    sequential = TrialBatch(AnalysisProfile(window_size=10, threshold=0.1)).run(trials)
    threaded = TrialBatch(AnalysisProfile(window_size=10, threshold=0.1)).run(trials, max_workers=3)

    assert [s.trial_id for s in threaded.summaries] == [f"t{i}" for i in range(6)]
    assert threaded.summaries == sequential.summaries
    assert [f.trial for f in threaded.failures] == ["bad"]


def test_batch_results_are_repeatable() -> None:
    trials = [(_noisy(seed), TrialMetadata.unnamed(f"t{seed}")) for seed in range(3)]
    a = analyze_trials(trials, window_size=10, threshold=0.1)
    b = analyze_trials(trials, window_size=10, threshold=0.1)
    assert [s.to_row() for s in a] == [s.to_row() for s in b]


def test_batch_accepts_free_form_metadata() -> None:
    trials = [
        (_samples([50.0] * 20), {"temperature": "25", "fluid_tested": "water", "trial": 1}),
        (_samples([50.0] * 20), None),
        (_samples([50.0] * 20), {"trial_name": "named"}),
        (_samples([50.0] * 20, speed=75.0), "label only"),
    ]
    batch = TrialBatch(AnalysisProfile(window_size=4, threshold=0.05))
    result = batch.run(trials)

    assert [s.trial_id for s in result.summaries] == ["trial_1", "trial_2", "named"]
    first = result.summaries[0].metadata
    assert first.temperature == "25"
    assert first.fluid_tested == "water"
    assert first.source == {"temperature": "25", "fluid_tested": "water", "trial": 1}
    assert result.summaries[1].metadata.source is None
    assert [(f.trial, f.error_type) for f in result.failures] == [("trial_4", "UnsupportedSpindleError")]


def test_malformed_sources_become_failures() -> None:
    trials = [
        (None, TrialMetadata.unnamed("no_samples")),
        (_samples([50.0] * 20), TrialMetadata.unnamed("ok")),
        42,
    ]
    result = TrialBatch(AnalysisProfile(window_size=4, threshold=0.05)).run(trials)
    assert [s.trial_id for s in result.summaries] == ["ok"]
    assert [(f.trial, f.error_type) for f in result.failures] == [
        ("no_samples", "MalformedRecordError"),
        ("trial_3", "MalformedRecordError"),
    ]


def test_analyze_trial_with_mapping_metadata() -> None:
    res = analyze_trial(_samples([50.0] * 10), {"trial_name": "t", "date": "07-11-16"}, window_size=3, threshold=0.05)
    assert res.summary.trial_id == "t"
    assert res.summary.to_row()["Date"] == "07-11-16"


@pytest.mark.parametrize("max_workers", [None, 3])
def test_failing_callback_keeps_every_summary(max_workers, caplog) -> None:
    def save_figure(analysis: TrialAnalysis) -> None:
        if analysis.summary.trial_id == "a":
            raise OSError("disk full")

    trials = [(_samples([50.0] * 20), TrialMetadata.unnamed(name)) for name in ("a", "b", "c")]
    with caplog.at_level(logging.WARNING, logger="viscosity_analyzer"):
        out = analyze_trials(trials, window_size=4, threshold=0.05, on_trial=save_figure, max_workers=max_workers)

    assert [s.trial_id for s in out] == ["a", "b", "c"]
    assert out[0].mean_viscosity == pytest.approx(2.56)
    assert any("disk full" in w for w in out[0].warnings)
    assert out[1].warnings == ()
    assert any("disk full" in r.getMessage() and getattr(r, "trial", None) == "a" for r in caplog.records)
