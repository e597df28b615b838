"""Moving-window standard deviation.

For a sequence of length ``n`` and a window of ``W`` samples:

    radius  = W // 2
    n_valid = n - 2 * radius
    for k in 0 .. n_valid - 1:
        values[k]  = std(sequence[k : k + W], ddof=1)
        centers[k] = k + radius

For odd ``W`` the window is symmetric around its center. For even ``W`` the
radius rounds down, so the window holds ``radius`` samples before the center and
``radius - 1`` after it, and the last full window position is not evaluated.
Historical results were produced with this convention; keep it.

Windows whose standard deviation is NaN (NaN samples inside the window) are
dropped together with their center index, so ``values`` and ``centers`` stay
aligned.

The computation follows the direct definition on a strided view (no running
sums), so repeated calls on the same input are bit-identical.
"""

from __future__ import annotations

import numbers

import numpy as np
from numpy.lib.stride_tricks import sliding_window_view

from viscosity_analyzer.errors import ConfigurationError
from viscosity_analyzer.models.results import WindowedStdev


def window_radius(window_size: int) -> int:
    """Offset from a window's center to its leading edge."""
    return int(window_size) // 2


def _check_window_size(window_size) -> int:
    if isinstance(window_size, bool) or not isinstance(window_size, numbers.Integral):
        raise ConfigurationError(f"window_size must be an integer, got {window_size!r}")
    if window_size <= 0:
        raise ConfigurationError(f"window_size must be > 0, got {window_size}")
    return int(window_size)


def moving_window_stdev(sequence, window_size: int) -> WindowedStdev:
    """Sample standard deviation over every fully covered window position.

    Parameters
    ----------
    sequence:
        1-D sequence of real numbers (time order).
    window_size:
        Window length in samples, > 0.

    Returns
    -------
    WindowedStdev
        Aligned ``values`` / ``centers`` arrays. Empty when ``len(sequence) < window_size``.

    Raises
    ------
    ConfigurationError
        Non-integer or non-positive window size.
    """
    W = _check_window_size(window_size)
    x = np.asarray(sequence, dtype=float)
    if x.ndim != 1:
        raise ValueError(f"sequence must be 1D, got shape {x.shape}")

    radius = window_radius(W)
    n_valid = x.size - 2 * radius

    if x.size < W or n_valid <= 0:
        return WindowedStdev(
            values=np.empty(0, dtype=float),
            centers=np.empty(0, dtype=int),
            window_size=W,
            radius=radius,
        )

    windows = sliding_window_view(x, W)[:n_valid]  # (n_valid, W), no copy
    if W == 1:
        # one-sample windows: std of a single value is 0 (NaN input stays NaN)
        values = np.where(np.isnan(windows[:, 0]), np.nan, 0.0)
    else:
        values = np.std(windows, axis=1, ddof=1)
    centers = np.arange(n_valid, dtype=int) + radius

    ok = ~np.isnan(values)
    return WindowedStdev(
        values=values[ok],
        centers=centers[ok],
        window_size=W,
        radius=radius,
    )
