"""Presentation package - trial figures and result-table export.

- plots: twin-axis figure per trial (viscosity + steady samples, windowed std + threshold)
- export: result set to CSV / Parquet / JSON with a provenance sidecar
"""
