from __future__ import annotations

import json
import math
import tempfile
from pathlib import Path

import pandas as pd
import pytest

from viscosity_analyzer import __version__
from viscosity_analyzer.analysis.pipeline import TrialBatch
from viscosity_analyzer.models.frames import RawSample, TrialMetadata
from viscosity_analyzer.models.profile import AnalysisProfile
from viscosity_analyzer.models.results import BatchResult
from viscosity_analyzer.presentation.export import export_dataframe, export_results, provenance, summaries_to_frame


def _result() -> tuple[BatchResult, AnalysisProfile]:
    profile = AnalysisProfile(window_size=4, threshold=0.05)
    steady = [RawSample(60.0, 50.0, 0.0)] * 12
    ramp = [RawSample(60.0, float(t), 0.0) for t in range(0, 120, 10)]
    bad = [RawSample(75.0, 50.0, 0.0)] * 12
    with pytest.warns(UserWarning):
        result = TrialBatch(profile).run(
            [
                (steady, TrialMetadata.unnamed("steady")),
                (ramp, TrialMetadata.unnamed("ramp")),
                (bad, TrialMetadata.unnamed("bad")),
            ]
        )
    return result, profile


def test_one_row_per_trial_with_nan_kept() -> None:
    result, _ = _result()
    df = summaries_to_frame(result.summaries)
    assert list(df["Filename"]) == ["steady", "ramp"]
    assert df.loc[0, "MeanViscosity"] == pytest.approx(2.56)
    assert math.isnan(df.loc[1, "MeanViscosity"])
    assert df.loc[1, "NSteadySamples"] == 0


def test_empty_result_has_columns() -> None:
    df = BatchResult().to_frame()
    assert len(df) == 0
    assert "MeanViscosity" in df.columns


def test_csv_with_sidecar() -> None:
    result, profile = _result()
    with tempfile.TemporaryDirectory() as d:
        out = export_results(
            result.to_frame(),
            Path(d) / "out" / "viscosity_summary.csv",
            "csv",
            metadata=provenance(result, profile, source=d),
        )
        assert out.exists()
        back = pd.read_csv(out)
        assert len(back) == 2
        assert math.isnan(back.loc[1, "MeanViscosity"])

        meta = json.loads((out.parent / "viscosity_summary.meta.json").read_text())
        assert meta["package_version"] == __version__
        assert meta["n_trials"] == 3
        assert meta["n_summarized"] == 2
        assert meta["profile"]["window_size"] == 4
        assert meta["failures"][0]["trial"] == "bad"
        assert meta["failures"][0]["error_type"] == "UnsupportedSpindleError"


def test_json_records() -> None:
    result, _ = _result()
    with tempfile.TemporaryDirectory() as d:
        out = export_results(result.to_frame(), Path(d) / "r.json", "json")
        rows = json.loads(out.read_text())
        assert [r["Filename"] for r in rows] == ["steady", "ramp"]
        assert not (Path(d) / "r.meta.json").exists()


def test_unknown_format() -> None:
    with tempfile.TemporaryDirectory() as d:
        with pytest.raises(ValueError):
            export_dataframe(pd.DataFrame({"a": [1]}), Path(d) / "x.xlsx", "xlsx")  # type: ignore[arg-type]


def test_csv_spells_out_nan() -> None:
    result, _ = _result()
    with tempfile.TemporaryDirectory() as d:
        out = export_results(result.to_frame(), Path(d) / "r.csv", "csv")
        ramp_row = out.read_text().splitlines()[2]
        assert ramp_row.startswith("ramp,")
        assert ",NaN," in ramp_row
