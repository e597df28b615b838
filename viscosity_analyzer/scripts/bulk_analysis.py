"""
Bulk viscosity analysis of a folder of viscometer exports.

Every ``*.txt`` file of the folder is one trial. For each trial the script
computes the moving-window standard deviation of the recalibrated viscosity,
keeps the samples whose windowed std is below the threshold, and reports the
mean, std and 95% bounds of those samples. Figures go to ``<folder>/plots``;
the result table (one row per trial) goes to ``--out``.

Examples
--------
    viscosity-analyzer data/2017-02 --window-size 150 --threshold 0.05
    python -m viscosity_analyzer.scripts.bulk_analysis data/2017-02 --no-plots --format json
"""

from __future__ import annotations

import logging
import math
from pathlib import Path
from typing import List, Optional, Sequence

from viscosity_analyzer.errors import ConfigurationError
from viscosity_analyzer.models.profile import AnalysisProfile
from viscosity_analyzer.models.results import TrialAnalysis


def _fmt(x: float) -> str:
    return "NaN" if math.isnan(x) else f"{x:.4g}"


def main(argv: Optional[Sequence[str]] = None) -> int:
    import argparse
    import textwrap

    p = argparse.ArgumentParser(
        prog="viscosity-analyzer",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        description=textwrap.dedent(
            """\
            Segment viscometer trials into steady / unsteady samples and summarize the
            steady portion of each trial.

            File names must look like '25C_07-11-16_hum_la012_trial003.txt' or
            '10C_02-10-17_dry_water_trial001.txt'. Files that cannot be parsed are
            reported and skipped.
            """
        ),
    )

    defaults = AnalysisProfile()
    p.add_argument("folder", help="Folder containing the trial *.txt files")
    p.add_argument("--window-size", type=int, default=defaults.window_size, help="Moving-window size in samples")
    p.add_argument("--threshold", type=float, default=defaults.threshold, help="Steadiness threshold (windowed std)")
    p.add_argument("--sample-rate", type=float, default=defaults.sample_rate_hz, help="Sample rate in Hz")
    p.add_argument(
        "--end-time-min",
        type=float,
        default=defaults.end_time_min,
        help="Crop each recording to this many minutes (0 = keep everything)",
    )
    p.add_argument("--spindle", default=None, help="Force the spindle id (40 or 51) instead of resolving it from speed")
    p.add_argument("--workers", type=int, default=None, help="Analyze trials in a thread pool of this size")
    p.add_argument("--no-plots", action="store_true", help="Do not write per-trial figures")
    p.add_argument(
        "--plot-format",
        action="append",
        default=None,
        help="Figure format (repeatable; default: png). E.g. --plot-format png --plot-format eps",
    )
    p.add_argument("--out", default=None, help="Result table path (default: <folder>/viscosity_summary.<format>)")
    p.add_argument("--format", choices=("csv", "parquet", "json"), default="csv", help="Result table format")
    p.add_argument("-v", "--verbose", action="store_true", help="Debug logging")

    ns = p.parse_args(list(argv) if argv is not None else None)

    logging.basicConfig(
        level=logging.DEBUG if ns.verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    end_time = ns.end_time_min if ns.end_time_min else None
    profile = AnalysisProfile(
        window_size=ns.window_size,
        threshold=ns.threshold,
        sample_rate_hz=ns.sample_rate,
        end_time_min=end_time,
        spindle=ns.spindle,
    )
    try:
        profile.validate()
    except ConfigurationError as e:
        print(f"[error] invalid configuration: {e}")
        return 2

    folder = Path(ns.folder).expanduser()

    # Figures are written to disk only; no interactive backend needed.
    on_trial = None
    if not ns.no_plots:
        import matplotlib

        matplotlib.use("Agg")
        from viscosity_analyzer.ingest.discovery import plot_directory
        from viscosity_analyzer.presentation.plots import plot_trial, save_trial_figure

        formats: List[str] = ns.plot_format or ["png"]

        def on_trial(analysis: TrialAnalysis) -> None:
            plot_dir = plot_directory(folder)
            fig = plot_trial(analysis, profile)
            save_trial_figure(fig, plot_dir, analysis.summary.trial_id, formats=formats)

    from viscosity_analyzer.analysis.pipeline import analyze_folder
    from viscosity_analyzer.presentation.export import export_results, provenance

    try:
        result = analyze_folder(folder, profile, on_trial=on_trial, max_workers=ns.workers)
    except (FileNotFoundError, NotADirectoryError) as e:
        print(f"[error] {e}")
        return 2

    for s in result.summaries:
        print(
            f"[info] {s.trial_id}: spindle {s.spindle} @ {s.rpm:g} rpm, "
            f"steady {s.n_steady_samples}/{s.n_valid_samples}, "
            f"mean={_fmt(s.mean_viscosity)} std={_fmt(s.viscosity_std)} "
            f"95%=[{_fmt(s.lower_bound)}, {_fmt(s.upper_bound)}]"
        )
        for note in s.warnings:
            print(f"[warn] {s.trial_id}: {note}")
    for f in result.failures:
        print(f"[warn] {f.trial}: skipped ({f.error_type}: {f.reason})")

    out = Path(ns.out) if ns.out else folder / f"viscosity_summary.{ns.format}"
    written = export_results(
        result.to_frame(),
        out,
        ns.format,
        metadata=provenance(result, profile, source=str(folder)),
    )
    print(f"[info] wrote {written} ({len(result.summaries)} trial(s), {len(result.failures)} skipped)")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
