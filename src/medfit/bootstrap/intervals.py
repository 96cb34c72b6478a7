"""Percentile confidence intervals for bootstrap distributions."""

from __future__ import annotations

import math
from typing import Optional, Sequence

import numpy as np

from ..errors import ConfigurationError

__all__ = ["percentile_interval", "is_significant"]


def _quantile(array: np.ndarray, q: float) -> float:
    return float(np.quantile(array, q, method="linear"))


def percentile_interval(
    samples: Sequence[float] | np.ndarray,
    ci_level: float = 0.95,
) -> tuple[float, float]:
    """Percentile bootstrap interval at ``ci_level``.

    Returns the ``(1 - ci_level) / 2`` and ``1 - (1 - ci_level) / 2``
    quantiles of the finite samples, interpolating linearly between order
    statistics (R's type 7 quantile).
    """

    if not 0 < ci_level < 1:
        raise ConfigurationError("ci_level must be between 0 and 1 (exclusive)")
    array = np.asarray(samples, dtype=float)
    array = array[np.isfinite(array)]
    if array.size == 0:
        raise ValueError("No finite bootstrap samples available")

    lower_prob = (1.0 - ci_level) / 2.0
    upper_prob = 1.0 - lower_prob
    return _quantile(array, lower_prob), _quantile(array, upper_prob)


def is_significant(ci_lower: Optional[float], ci_upper: Optional[float]) -> bool:
    """True when the interval excludes zero.

    A bound lying exactly on zero does not count, and a missing bound (plugin
    results) never yields significance.
    """

    if ci_lower is None or ci_upper is None:
        return False
    if math.isnan(ci_lower) or math.isnan(ci_upper):
        return False
    return ci_lower > 0 or ci_upper < 0
