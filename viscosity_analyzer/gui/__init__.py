"""GUI package - interactive ipywidgets interface.

One panel: pick a folder, set window size / threshold, analyze, inspect the
result table and the log, save the results.

Entry point:
    from viscosity_analyzer.gui.app import build_gui
    gui = build_gui()
"""
