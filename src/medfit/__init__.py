"""medfit: bootstrap inference for mediation effects.

The source lives in `src/medfit/` and is consumed mainly through:

- Python API: ``fit_mediation`` → ``run`` / ``bootstrap_mediation``
- CLI: ``medfit bootstrap --data data.csv --treatment X --mediator M --outcome Y``

Example
-------
>>> from medfit import BootstrapConfig, fit_mediation, run
>>> structure = fit_mediation(df, treatment="X", mediator="M", outcome="Y")  # doctest: +SKIP
>>> result = run(structure, BootstrapConfig(n_boot=2000, seed=12345))  # doctest: +SKIP
>>> result.ci_lower, result.ci_upper  # doctest: +SKIP
"""

from __future__ import annotations

from importlib.metadata import PackageNotFoundError, version

from .bootstrap import (
    BootstrapDistribution,
    BootstrapResult,
    bootstrap_mediation,
    is_significant,
    percentile_interval,
    run,
)
from .config.schemas import BootstrapConfig, BootstrapMethod
from .errors import (
    ConfigurationError,
    ConvergenceError,
    ExtractionError,
    MedfitError,
    ModelFitError,
    RandomnessError,
)
from .mediation import MediationStructure, OLSExtractor, fit_mediation

try:  # pragma: no cover - depends on package installation
    __version__ = version("medfit")
except PackageNotFoundError:  # pragma: no cover - source checkout without install
    __version__ = "0.0.0"

__all__ = [
    "__version__",
    "BootstrapConfig",
    "BootstrapDistribution",
    "BootstrapMethod",
    "BootstrapResult",
    "ConfigurationError",
    "ConvergenceError",
    "ExtractionError",
    "MediationStructure",
    "MedfitError",
    "ModelFitError",
    "OLSExtractor",
    "RandomnessError",
    "bootstrap_mediation",
    "fit_mediation",
    "is_significant",
    "percentile_interval",
    "run",
]
