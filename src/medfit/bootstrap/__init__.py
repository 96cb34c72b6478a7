"""Bootstrap inference for mediation effects."""

from .estimators import (
    ChainProduct,
    NonparametricEstimator,
    ParametricEstimator,
    build_estimator,
    plugin_estimate,
)
from .intervals import is_significant, percentile_interval
from .orchestrator import bootstrap_mediation, run
from .result import BootstrapDistribution, BootstrapResult

__all__ = [
    "BootstrapDistribution",
    "BootstrapResult",
    "ChainProduct",
    "NonparametricEstimator",
    "ParametricEstimator",
    "bootstrap_mediation",
    "build_estimator",
    "is_significant",
    "percentile_interval",
    "plugin_estimate",
    "run",
]
