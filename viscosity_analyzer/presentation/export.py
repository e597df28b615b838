"""
Result-set export.

The batch result set is one table (one row per trial, columns as in
TrialSummary.to_row) plus a JSON sidecar with provenance: the analysis profile,
the list of failed trials, and the package version.

Examples
--------
>>> # df = summaries_to_frame(result.summaries)
>>> # export_results(df, "results/viscosity_summary.csv", "csv", metadata={"profile": profile.to_dict()})
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Literal, Optional, Sequence

import pandas as pd

from viscosity_analyzer import __version__
from viscosity_analyzer.models.profile import AnalysisProfile
from viscosity_analyzer.models.results import BatchResult, TrialSummary


ExportFormat = Literal["csv", "parquet", "json"]


def summaries_to_frame(summaries: Sequence[TrialSummary]) -> pd.DataFrame:
    """One row per trial. NaN statistics (no steady region) stay NaN."""
    return BatchResult(summaries=list(summaries)).to_frame()


def export_dataframe(df: pd.DataFrame, path: str | Path, fmt: ExportFormat) -> Path:
    """
    Export a DataFrame to CSV, Parquet or JSON (records).

    Parquet requires `pyarrow` (recommended) or `fastparquet`.
    """
    out = Path(path)
    out.parent.mkdir(parents=True, exist_ok=True)

    if fmt == "csv":
        df.to_csv(out, index=False, na_rep="NaN")
        return out

    if fmt == "json":
        df.to_json(out, orient="records", indent=2)
        return out

    if fmt == "parquet":
        try:
            df.to_parquet(out, index=False)
        except Exception as e:
            raise RuntimeError(
                "Parquet export failed. Install 'pyarrow' (recommended) or 'fastparquet'. "
                f"Original error: {e}"
            ) from e
        return out

    raise ValueError(f"Unknown export format: {fmt}")


def provenance(result: BatchResult, profile: AnalysisProfile, *, source: Optional[str] = None) -> Dict[str, Any]:
    """Metadata written next to the results table."""
    return {
        "generated_utc": datetime.now(timezone.utc).isoformat(),
        "package_version": __version__,
        "source_folder": source,
        "profile": profile.to_dict(),
        "n_trials": result.n_trials,
        "n_summarized": len(result.summaries),
        "failures": [
            {"trial": f.trial, "error_type": f.error_type, "reason": f.reason} for f in result.failures
        ],
    }


def export_results(
    df: pd.DataFrame,
    output_path: str | Path,
    fmt: ExportFormat = "csv",
    *,
    metadata: Optional[Dict[str, Any]] = None,
) -> Path:
    """Export the results table with an optional metadata sidecar.

    Parameters
    ----------
    df : pd.DataFrame
        Results table (see :func:`summaries_to_frame`).
    output_path : Path
        Output file path.
    fmt : str
        ``csv``, ``parquet`` or ``json``.
    metadata : dict, optional
        Provenance written to ``<stem>.meta.json`` next to the table.

    Returns
    -------
    Path
        Path to the written results file.
    """
    out = export_dataframe(df, output_path, fmt)

    if metadata is not None:
        json_path = out.with_name(out.stem + ".meta.json")
        with open(json_path, "w") as f:
            json.dump(metadata, f, indent=2, default=str)

    return out
