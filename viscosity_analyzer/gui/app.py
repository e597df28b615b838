from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, Optional

import ipywidgets as w
import matplotlib.pyplot as plt

from viscosity_analyzer.analysis.pipeline import analyze_folder
from viscosity_analyzer.errors import ConfigurationError
from viscosity_analyzer.gui.log_view import HtmlLog
from viscosity_analyzer.ingest.discovery import plot_directory
from viscosity_analyzer.models.profile import AnalysisProfile
from viscosity_analyzer.models.results import TrialAnalysis
from viscosity_analyzer.presentation.export import export_results, provenance
from viscosity_analyzer.presentation.plots import plot_trial, save_trial_figure


# Keep a single active GUI instance per kernel to avoid duplicated callbacks / stacked widgets.
_ACTIVE_GUI: Optional[w.Widget] = None
_ACTIVE_STATE: Dict[str, Any] = {}

_PIPELINE_LOGGER = "viscosity_analyzer"


def _browse_for_folder() -> Optional[str]:
    try:
        import tkinter as tk
        from tkinter import filedialog

        root = tk.Tk()
        root.withdraw()
        root.attributes("-topmost", True)
        picked = filedialog.askdirectory(title="Select the folder with the trial files")
        root.destroy()
        return picked or None
    except Exception:
        return None


def _build_panel(state: Dict[str, Any]) -> w.Widget:
    defaults = AnalysisProfile()

    folder = w.Text(
        description="Folder",
        placeholder="folder containing the trial *.txt files",
        layout=w.Layout(width="80%"),
    )
    btn_browse = w.Button(description="Browse…", layout=w.Layout(width="120px"))
    window_size = w.BoundedIntText(value=defaults.window_size, min=1, max=100000, description="Window")
    threshold = w.FloatText(value=defaults.threshold, description="Threshold")
    sample_rate = w.FloatText(value=defaults.sample_rate_hz, description="Rate (Hz)")
    end_time = w.FloatText(value=defaults.end_time_min or 0.0, description="End (min)")
    save_plots = w.Checkbox(value=True, description="Save figures to <folder>/plots")
    btn_run = w.Button(description="Analyze", button_style="primary", layout=w.Layout(width="140px"))
    btn_save = w.Button(description="Save results…", layout=w.Layout(width="140px"), disabled=True)

    results = w.HTML("<i>No results yet.</i>")
    log = HtmlLog(title="Log", height_px=200)

    handler = log.handler()
    logging.getLogger(_PIPELINE_LOGGER).addHandler(handler)
    logging.getLogger(_PIPELINE_LOGGER).setLevel(logging.INFO)
    state["log_handler"] = handler

    def _on_browse(_btn) -> None:
        picked = _browse_for_folder()
        if picked:
            folder.value = picked
        else:
            log.warning("Folder dialog unavailable; type the folder path instead.")

    def _profile() -> AnalysisProfile:
        return AnalysisProfile(
            window_size=int(window_size.value),
            threshold=float(threshold.value),
            sample_rate_hz=float(sample_rate.value),
            end_time_min=float(end_time.value) if end_time.value else None,
        ).validate()

    def _on_run(_btn) -> None:
        log.clear()
        btn_save.disabled = True
        try:
            profile = _profile()
        except ConfigurationError as e:
            log.error(f"Invalid configuration: {e}")
            return

        root = Path(folder.value).expanduser()
        on_trial = None
        if save_plots.value:
            def on_trial(analysis: TrialAnalysis) -> None:
                fig = plot_trial(analysis, profile)
                save_trial_figure(fig, plot_directory(root), analysis.summary.trial_id)

        try:
            result = analyze_folder(root, profile, on_trial=on_trial)
        except (FileNotFoundError, NotADirectoryError) as e:
            log.error(str(e))
            return
        finally:
            plt.close("all")

        state["result"] = result
        state["profile"] = profile
        state["folder"] = root

        df = result.to_frame()
        results.value = df.to_html(index=False, na_rep="NaN", float_format=lambda x: f"{x:.4g}")
        log.info(f"{len(result.summaries)} trial(s) analyzed, {len(result.failures)} skipped.")
        btn_save.disabled = not result.summaries

    def _on_save(_btn) -> None:
        result = state.get("result")
        if result is None:
            return
        out = Path(state["folder"]) / "viscosity_summary.csv"
        written = export_results(
            result.to_frame(), out, "csv",
            metadata=provenance(result, state["profile"], source=str(state["folder"])),
        )
        log.info(f"Saved {written}")

    btn_browse.on_click(_on_browse)
    btn_run.on_click(_on_run)
    btn_save.on_click(_on_save)

    return w.VBox(
        [
            w.HBox([folder, btn_browse]),
            w.HBox([window_size, threshold]),
            w.HBox([sample_rate, end_time]),
            save_plots,
            w.HBox([btn_run, btn_save]),
            results,
            log.panel,
        ]
    )


def build_gui() -> w.Widget:
    """
    Bulk-analysis GUI for Jupyter / VSCode notebooks.

    Usage:
        from viscosity_analyzer.gui.app import build_gui
        build_gui()

    Re-running closes the previous instance and detaches its log handler.
    """
    global _ACTIVE_GUI, _ACTIVE_STATE

    if _ACTIVE_GUI is not None:
        handler = _ACTIVE_STATE.get("log_handler")
        if handler is not None:
            logging.getLogger(_PIPELINE_LOGGER).removeHandler(handler)
        try:
            _ACTIVE_GUI.close()
        except Exception:
            pass
        _ACTIVE_GUI = None

    state: Dict[str, Any] = {"result": None, "profile": None, "folder": None}
    panel = _build_panel(state)
    _ACTIVE_GUI = panel
    _ACTIVE_STATE = state
    return panel
