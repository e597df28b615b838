"""Trial figure: raw viscosity, steady samples and the windowed standard deviation.

Two y-axes share the time axis (minutes):

* left  -- calibrated viscosity (black line) with the steady samples as green dots
* right -- moving-window standard deviation (red) and the threshold (dashed)
"""

from __future__ import annotations

from pathlib import Path
from typing import Iterable, List, Optional

import matplotlib.pyplot as plt
import numpy as np

from viscosity_analyzer.models.profile import AnalysisProfile
from viscosity_analyzer.models.results import TrialAnalysis


def trial_title(trial_name: str) -> str:
    """Figure title for a trial (lower case, '_' shown as '-')."""
    return trial_name.replace("_", "-").lower()


def plot_trial(analysis: TrialAnalysis, profile: Optional[AnalysisProfile] = None):
    """Build the figure for one analyzed trial.

    Parameters
    ----------
    analysis : TrialAnalysis
        Output of the per-trial pipeline.
    profile : AnalysisProfile, optional
        Axis limits and font size. Defaults to ``AnalysisProfile()``.

    Returns
    -------
    matplotlib Figure
    """
    prof = profile if profile is not None else AnalysisProfile()
    fs = prof.font_size

    t_min = analysis.time_minutes()
    t_std = analysis.time_minutes(analysis.windowed.centers)
    included = analysis.split.included

    fig, ax_visc = plt.subplots(figsize=(8, 8))
    ax_std = ax_visc.twinx()

    raw_line, = ax_visc.plot(t_min, analysis.viscosity, "-", color="k", linewidth=2, label="Data Not Included")
    ok_pts, = ax_visc.plot(
        analysis.time_minutes(included), analysis.viscosity[included], ".g", markersize=7, label="Acceptable Data"
    )
    std_line, = ax_std.plot(t_std, analysis.windowed.values, "-", color="r", linewidth=2, label="Viscosity St. Dev.")
    ax_std.axhline(analysis.split.threshold, linestyle="--", color="k")

    ax_visc.set_xlabel("Time (min)", fontsize=fs, color="black")
    ax_visc.set_ylabel("Viscosity (cP)", fontsize=fs, color="black")
    ax_std.set_ylabel("Standard Deviation (mPas)", fontsize=fs, color="red")

    ax_visc.set_ylim(0, prof.viscosity_axis_max)
    ax_visc.set_yticks(np.arange(0, prof.viscosity_axis_max + 1e-9, 1.0))
    ax_std.set_ylim(0, prof.stdev_axis_max)
    ax_std.set_yticks(np.arange(0, prof.stdev_axis_max + 1e-9, 0.1))
    ax_std.tick_params(axis="y", colors="red")
    for ax in (ax_visc, ax_std):
        ax.minorticks_on()
        ax.tick_params(labelsize=fs)
    ax_visc.grid(True)

    ax_visc.legend(handles=[raw_line, ok_pts, std_line], fontsize=fs)
    ax_visc.set_title(trial_title(analysis.summary.trial_id), fontsize=0.8 * fs)
    ax_visc.set_box_aspect(1)
    fig.patch.set_facecolor("white")
    return fig


def save_trial_figure(fig, output_dir, name: str, formats: Iterable[str] = ("png",)) -> List[str]:
    """Save *fig* once per format and close it.

    Parameters
    ----------
    fig : matplotlib Figure
    output_dir : str or Path
        Directory to write into (created if missing).
    name : str
        Filename stem (without extension).
    formats : iterable of str
        Extensions understood by matplotlib (``png``, ``eps``, ``svg``, ``pdf``...).

    Returns
    -------
    list of str
        Paths of the written files.
    """
    out = Path(output_dir)
    out.mkdir(parents=True, exist_ok=True)
    written: List[str] = []
    try:
        for fmt in formats:
            path = out / f"{name}.{fmt.lstrip('.')}"
            fig.savefig(str(path), bbox_inches="tight", dpi=180, facecolor="white")
            written.append(str(path))
    finally:
        plt.close(fig)
    return written
