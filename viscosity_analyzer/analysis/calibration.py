"""Torque-to-viscosity calibration for the supported spindles.

The viscometer reports torque as a percentage of the full-scale spring torque.
For a given spindle and speed the full-scale torque corresponds to a maximum
measurable viscosity, so

    max_visc  = round2(K_spindle / speed_rpm)
    viscosity = round2(max_visc * torque_pct / 100)

with ``K = 307`` for the 40 spindle and ``K = 4854`` for the 51 spindle.

The first rounding happens *before* the multiplication. Moving it after the
multiply changes results in the second decimal for many speeds, so both
roundings must stay where they are to reproduce historical tables.
"""

from __future__ import annotations

import math
from typing import Dict, Mapping, Optional

import numpy as np

from viscosity_analyzer.errors import UnsupportedSpindleError


#: Full-scale constant (viscosity x RPM) per spindle id.
SPINDLE_CONSTANTS: Dict[str, float] = {
    "40": 307.0,
    "51": 4854.0,
}


def round2(x):
    """Round to 2 decimals, halves away from zero.

    ``numpy.round`` rounds halves to even; the instrument software rounds them away
    from zero, which is what the stored tables were computed with. Works on scalars
    and arrays (returns the same kind).
    """
    a = np.asarray(x, dtype=float)
    out = np.sign(a) * np.floor(np.abs(a) * 100.0 + 0.5) / 100.0
    if out.ndim == 0:
        return float(out)
    return out


def max_viscosity(spindle: str, nominal_speed_rpm: float) -> float:
    """Maximum measurable viscosity for ``spindle`` at ``nominal_speed_rpm``, rounded to 2 decimals.

    Raises
    ------
    UnsupportedSpindleError
        Unknown spindle id, or a speed that is zero, negative or not finite.
    """
    key = str(spindle).strip()
    if key not in SPINDLE_CONSTANTS:
        raise UnsupportedSpindleError(
            f"Unsupported spindle {spindle!r}; supported spindles: {sorted(SPINDLE_CONSTANTS)}"
        )
    speed = float(nominal_speed_rpm)
    if not math.isfinite(speed) or speed <= 0:
        raise UnsupportedSpindleError(f"Spindle {key}: nominal speed must be > 0 RPM, got {nominal_speed_rpm!r}")
    return round2(SPINDLE_CONSTANTS[key] / speed)


def calibrate_torque(torque_pct, max_visc: float) -> np.ndarray:
    """Convert torque readings (0-100 %) into viscosity, rounded to 2 decimals."""
    t = np.asarray(torque_pct, dtype=float)
    return np.atleast_1d(round2((t / 100.0) * float(max_visc)))


def resolve_spindle(
    nominal_speed_rpm: float,
    spindle_by_speed: Optional[Mapping[float, str]] = None,
    *,
    forced: Optional[str] = None,
) -> str:
    """Spindle id used for a trial run at ``nominal_speed_rpm``.

    ``forced`` wins when given (it is still checked against the supported spindles).
    Otherwise the speed is looked up in ``spindle_by_speed``; a speed with no entry
    raises :class:`UnsupportedSpindleError` instead of guessing a spindle.
    """
    if forced is not None:
        key = str(forced).strip()
        if key not in SPINDLE_CONSTANTS:
            raise UnsupportedSpindleError(f"Unsupported spindle {forced!r}")
        return key

    table = spindle_by_speed if spindle_by_speed is not None else {60.0: "40", 120.0: "51"}
    speed = float(nominal_speed_rpm)
    for k, v in table.items():
        if math.isclose(float(k), speed, rel_tol=0.0, abs_tol=1e-9):
            return str(v)
    raise UnsupportedSpindleError(
        f"No spindle configured for nominal speed {nominal_speed_rpm!r} RPM "
        f"(known speeds: {sorted(float(k) for k in table)})"
    )
