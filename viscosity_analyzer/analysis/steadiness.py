"""Steady / unsteady classification from the windowed standard deviation.

A sample is *steady* when the window attributed to it has a standard deviation
strictly below the threshold. Samples near either end of the recording have no
full window and are therefore always unsteady.

Functions
---------
steady_centers
    Center indices whose windowed value is ``< threshold``.
split_steady
    Included / excluded index sets over the original calibrated sequence.
steady_regions
    Contiguous runs of steady samples, for reporting.
"""

from __future__ import annotations

import numpy as np

from viscosity_analyzer.models.results import SteadinessSplit, WindowedStdev


def steady_centers(windowed: WindowedStdev, threshold: float) -> np.ndarray:
    """Centers whose paired value is strictly below ``threshold`` (order preserved).

    A value exactly equal to the threshold is not steady.
    """
    values = np.asarray(windowed.values, dtype=float)
    centers = np.asarray(windowed.centers, dtype=int)
    if values.shape != centers.shape:
        raise ValueError(f"values/centers misaligned: {values.shape} vs {centers.shape}")
    return centers[values < float(threshold)]


def split_steady(sequence, windowed: WindowedStdev, threshold: float) -> SteadinessSplit:
    """Partition ``sequence`` indices into steady (included) and unsteady (excluded).

    Parameters
    ----------
    sequence:
        The calibrated sequence the windowed statistic was computed on.
    windowed:
        Output of :func:`~viscosity_analyzer.analysis.windowed.moving_window_stdev`.
    threshold:
        Steadiness threshold, same units as the sequence.

    Returns
    -------
    SteadinessSplit
        ``included`` in center order, ``excluded`` is every other index in ascending order.
    """
    n = int(np.asarray(sequence).size)
    included = steady_centers(windowed, threshold)
    if included.size and (included.min() < 0 or included.max() >= n):
        raise ValueError(f"center index out of range for a sequence of length {n}")

    mask = np.zeros(n, dtype=bool)
    mask[included] = True
    excluded = np.flatnonzero(~mask)
    return SteadinessSplit(included=included, excluded=excluded, threshold=float(threshold))


def steady_regions(split: SteadinessSplit, n: int, min_length: int = 1) -> list[tuple[int, int]]:
    """Contiguous runs of steady samples.

    Parameters
    ----------
    split:
        Classification of a sequence of length ``n``.
    min_length:
        Only return runs with at least this many consecutive steady samples.

    Returns
    -------
    list of (start, end) tuples
        Inclusive start and end indices of each run, in ascending order.
    """
    mask = np.zeros(int(n), dtype=np.int8)
    mask[split.included] = 1

    # +1 where a run starts, -1 one past where it ends
    edges = np.diff(np.concatenate(([0], mask, [0])))
    starts = np.flatnonzero(edges == 1)
    ends = np.flatnonzero(edges == -1) - 1
    keep = (ends - starts + 1) >= int(min_length)
    return [(int(s), int(e)) for s, e in zip(starts[keep], ends[keep])]
