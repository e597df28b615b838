from __future__ import annotations

import math

import numpy as np
import pytest

from viscosity_analyzer.analysis.summary import Z_95, sample_std, summarize


def test_constant_values() -> None:
    s = summarize(np.ones(10))
    assert s.n == 10
    assert s.mean == 1.0
    assert s.std == 0.0
    assert (s.lower_bound, s.upper_bound) == (1.0, 1.0)


def test_bounds_use_sample_std() -> None:
    x = np.array([2.0, 2.2, 2.4, 2.6])
    s = summarize(x)
    std = np.std(x, ddof=1)
    assert s.mean == pytest.approx(2.3)
    assert s.std == pytest.approx(std)
    assert s.lower_bound == pytest.approx(2.3 - 1.96 * std)
    assert s.upper_bound == pytest.approx(2.3 + 1.96 * std)
    assert Z_95 == 1.96


def test_empty_input_is_all_nan() -> None:
    s = summarize([])
    assert s.n == 0
    assert all(math.isnan(v) for v in (s.mean, s.std, s.lower_bound, s.upper_bound))


def test_single_value_has_zero_std() -> None:
    s = summarize([3.5])
    assert s.n == 1
    assert s.mean == 3.5
    assert s.std == 0.0
    assert s.lower_bound == s.upper_bound == 3.5


def test_sample_std_edge_cases() -> None:
    assert math.isnan(sample_std([]))
    assert sample_std([7.0]) == 0.0
    assert sample_std([1.0, 3.0]) == pytest.approx(math.sqrt(2.0))
