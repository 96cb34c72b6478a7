"""Per-iteration estimators for the three bootstrap strategies.

Each resampling estimator is a frozen dataclass called as ``estimator(rng)``
with the iteration's own generator and returning one statistic value, or
``None`` when the iteration has to be excluded (failed refit or non-finite
statistic). Keeping them as
plain dataclasses of arrays and frames makes them picklable for the process
backend.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Callable, Optional

import numpy as np
import pandas as pd

from ..config.schemas import BootstrapMethod
from ..errors import ConfigurationError, ModelFitError
from ..mediation.structure import MediationStructure, chain_product
from ..utils.logging_config import get_logger

__all__ = [
    "Statistic",
    "ChainProduct",
    "ParametricEstimator",
    "NonparametricEstimator",
    "build_estimator",
    "plugin_estimate",
]

logger = get_logger(__name__)

Statistic = Callable[[pd.Series], float]

# Relative tolerance for negative eigenvalues produced by round-off.
PSD_TOLERANCE = 1e-10


@dataclass(frozen=True)
class ChainProduct:
    """Default statistic: product of the coefficients along the mediation chain."""

    names: tuple[str, ...]

    def __call__(self, theta: pd.Series) -> float:
        return chain_product(theta, self.names)


def plugin_estimate(structure: MediationStructure, statistic: Statistic) -> float:
    """Statistic evaluated on the point estimates."""
    return float(statistic(structure.estimates))


def _covariance_factor(vcov: pd.DataFrame) -> np.ndarray:
    """Return ``L`` with ``L @ L.T == vcov`` for a positive semi-definite matrix."""
    matrix = vcov.to_numpy(dtype=float)
    if not np.all(np.isfinite(matrix)):
        raise ConfigurationError("Covariance matrix contains non-finite values")
    matrix = (matrix + matrix.T) / 2.0
    eigenvalues, eigenvectors = np.linalg.eigh(matrix)
    scale = max(float(np.max(np.abs(eigenvalues))), 1.0) if eigenvalues.size else 1.0
    if eigenvalues.size and eigenvalues.min() < -PSD_TOLERANCE * scale:
        raise ConfigurationError("Covariance matrix is not positive semi-definite")
    return eigenvectors * np.sqrt(np.clip(eigenvalues, 0.0, None))


@dataclass(frozen=True, eq=False)
class ParametricEstimator:
    """Draw θ* ~ N(θ̂, Σ̂) and apply the statistic.

    Returns ``None`` when the statistic is not finite for the draw, so the
    iteration is excluded and counted against the exclusion budget.
    """

    mean: np.ndarray
    factor: np.ndarray
    names: tuple[str, ...]
    statistic: Statistic

    @classmethod
    def from_structure(
        cls, structure: MediationStructure, statistic: Statistic
    ) -> "ParametricEstimator":
        return cls(
            mean=structure.estimates.to_numpy(dtype=float),
            factor=_covariance_factor(structure.vcov),
            names=tuple(structure.estimates.index),
            statistic=statistic,
        )

    def __call__(self, rng: np.random.Generator) -> Optional[float]:
        z = rng.standard_normal(self.mean.size)
        theta = pd.Series(self.mean + self.factor @ z, index=self.names)
        value = float(self.statistic(theta))
        if not math.isfinite(value):
            logger.debug("Parametric draw statistic is not finite")
            return None
        return value


@dataclass(frozen=True, eq=False)
class NonparametricEstimator:
    """Resample rows with replacement, refit and apply the statistic.

    Returns ``None`` for a resample whose refit fails (``ModelFitError``,
    ``LinAlgError``), reports ``converged=False`` or yields a non-finite
    statistic. Every other exception propagates and aborts the run.
    """

    data: pd.DataFrame
    extractor: Any
    statistic: Statistic

    def __call__(self, rng: np.random.Generator) -> Optional[float]:
        n_obs = len(self.data)
        rows = rng.integers(0, n_obs, size=n_obs)
        resample = self.data.iloc[rows].reset_index(drop=True)
        try:
            refit = self.extractor.refit(resample)
        except (ModelFitError, np.linalg.LinAlgError) as exc:
            logger.debug("Resample refit failed: %s", exc)
            return None
        if not refit.converged:
            logger.debug("Resample refit did not converge")
            return None
        value = float(self.statistic(refit.estimates))
        if not math.isfinite(value):
            logger.debug("Resample statistic is not finite")
            return None
        return value


def build_estimator(
    structure: MediationStructure,
    method: BootstrapMethod,
    statistic: Statistic,
    extractor: Any = None,
) -> ParametricEstimator | NonparametricEstimator:
    """Return the iteration estimator for a resampling ``method``."""
    if method is BootstrapMethod.PARAMETRIC:
        return ParametricEstimator.from_structure(structure, statistic)
    if method is BootstrapMethod.NONPARAMETRIC:
        if structure.data is None:
            raise ConfigurationError("Nonparametric bootstrap requires data in the structure")
        if extractor is None or not callable(getattr(extractor, "refit", None)):
            raise ConfigurationError(
                "Nonparametric bootstrap requires an extractor with a refit(data) method"
            )
        return NonparametricEstimator(data=structure.data, extractor=extractor, statistic=statistic)
    raise ConfigurationError(f"Method '{method.value}' does not resample")
