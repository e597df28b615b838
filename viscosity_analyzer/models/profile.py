"""Analysis profile -- bundles all run-level configuration.

An AnalysisProfile groups every parameter that affects the analysis output
into one frozen dataclass.  It can be:

- Constructed with defaults matching the bulk-analysis workflow
- Overridden field-by-field via ``dataclasses.replace()``
- Serialized to/from a dict for JSON provenance

Configuration is fixed for a run: every trial of a batch is analyzed with the
same profile, and the window size / threshold are copied into each summary.
"""

from __future__ import annotations

import math
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, Optional

from viscosity_analyzer.errors import ConfigurationError


#: Spindle used for each nominal speed (40 spindle at 60 RPM, 51 spindle at 120 RPM).
DEFAULT_SPINDLE_BY_SPEED: Dict[float, str] = {60.0: "40", 120.0: "51"}


@dataclass(frozen=True)
class AnalysisProfile:
    """Frozen configuration for the full analysis pipeline.

    Core fields
    -----------
    window_size : int
        Moving-window size in samples (not seconds).
    threshold : float
        Windowed standard deviation below which a sample counts as steady.
        Same units as viscosity.

    Optional fields (sensible defaults)
    ------------------------------------
    sample_rate_hz : float
        Instrument sample rate; converts sample indices to time for plots only.
    end_time_min : float or None
        Recordings are cropped to this duration before analysis. None keeps all lines.
    spindle : str or None
        Force the spindle id instead of resolving it from the nominal speed.
    spindle_by_speed : dict
        Nominal speed (RPM) -> spindle id used when ``spindle`` is None.
    viscosity_axis_max, stdev_axis_max : float
        Upper y-limits of the trial figure.
    font_size : int
        Figure font size.
    """

    window_size: int = 150
    threshold: float = 0.05

    sample_rate_hz: float = 2.0
    end_time_min: Optional[float] = 25.0
    spindle: Optional[str] = None
    spindle_by_speed: Dict[float, str] = field(default_factory=lambda: dict(DEFAULT_SPINDLE_BY_SPEED))

    viscosity_axis_max: float = 25.0
    stdev_axis_max: float = 0.5
    font_size: int = 14

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def validate(self) -> AnalysisProfile:
        """Raise :class:`ConfigurationError` for settings no run can use.

        Returns ``self`` so callers can chain ``profile.validate()``.
        """
        if isinstance(self.window_size, bool) or not isinstance(self.window_size, int):
            raise ConfigurationError(f"window_size must be an integer, got {self.window_size!r}")
        if self.window_size <= 0:
            raise ConfigurationError(f"window_size must be > 0, got {self.window_size}")
        if not math.isfinite(float(self.threshold)) or self.threshold <= 0:
            raise ConfigurationError(f"threshold must be a finite value > 0, got {self.threshold}")
        if not math.isfinite(float(self.sample_rate_hz)) or self.sample_rate_hz <= 0:
            raise ConfigurationError(f"sample_rate_hz must be > 0, got {self.sample_rate_hz}")
        if self.end_time_min is not None and self.end_time_min <= 0:
            raise ConfigurationError(f"end_time_min must be > 0 or None, got {self.end_time_min}")
        return self

    @property
    def max_samples(self) -> Optional[int]:
        """Number of samples kept per recording (None = no crop)."""
        if self.end_time_min is None:
            return None
        return int(round(self.end_time_min * 60.0 * self.sample_rate_hz))

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        """Return a JSON-friendly dict (speed keys become strings)."""
        d = asdict(self)
        d["spindle_by_speed"] = {str(k): v for k, v in self.spindle_by_speed.items()}
        return d

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> AnalysisProfile:
        """Reconstruct from a dict (e.g. loaded from JSON)."""
        d = dict(d)  # shallow copy
        if "spindle_by_speed" in d and d["spindle_by_speed"] is not None:
            d["spindle_by_speed"] = {float(k): str(v) for k, v in d["spindle_by_speed"].items()}
        return cls(**d)
