from __future__ import annotations

import numpy as np

from viscosity_analyzer.models.results import SummaryStats


#: Two-sided 95% normal quantile.
Z_95 = 1.96


def sample_std(values) -> float:
    """Sample standard deviation (n-1 denominator).

    A single value has std 0.0 and an empty input has std NaN, matching the
    one-argument std of the reference tables.
    """
    x = np.asarray(values, dtype=float)
    if x.size == 0:
        return float("nan")
    if x.size == 1:
        return 0.0 if np.isfinite(x[0]) else float("nan")
    return float(np.std(x, ddof=1))


def summarize(values) -> SummaryStats:
    """Mean, sample std and ``mean -/+ 1.96 * std`` of the included samples.

    The bounds describe the spread of the raw steady samples, not the standard
    error of the mean. An empty input yields NaN everywhere; callers decide how
    to report it.
    """
    x = np.asarray(values, dtype=float).ravel()
    if x.size == 0:
        nan = float("nan")
        return SummaryStats(n=0, mean=nan, std=nan, lower_bound=nan, upper_bound=nan)

    mean = float(np.mean(x))
    std = sample_std(x)
    return SummaryStats(
        n=int(x.size),
        mean=mean,
        std=std,
        lower_bound=mean - Z_95 * std,
        upper_bound=mean + Z_95 * std,
    )
