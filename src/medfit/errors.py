"""Exception hierarchy shared across the package.

Configuration and extraction problems abort a run immediately.
``ModelFitError`` is the only recoverable failure: the nonparametric
bootstrap excludes the offending resample and keeps going until the
exclusion budget is exhausted, at which point ``ConvergenceError`` is raised.
"""

from __future__ import annotations

__all__ = [
    "MedfitError",
    "ConfigurationError",
    "ExtractionError",
    "ModelFitError",
    "ConvergenceError",
    "RandomnessError",
]


class MedfitError(Exception):
    """Base class for every error raised by medfit."""

    pass


class ConfigurationError(MedfitError, ValueError):
    """Raised when a bootstrap configuration is invalid for the given structure."""

    pass


class ExtractionError(MedfitError, ValueError):
    """Raised when a named variable is missing from a model or dataset."""

    pass


class ModelFitError(MedfitError):
    """Raised when a single model fit cannot produce estimates (e.g. singular design)."""

    pass


class ConvergenceError(MedfitError):
    """Raised when too many bootstrap resamples failed to refit."""

    def __init__(self, message: str, *, n_excluded: int = 0, n_boot: int = 0) -> None:
        super().__init__(message)
        self.n_excluded = n_excluded
        self.n_boot = n_boot


class RandomnessError(MedfitError):
    """Raised when a per-iteration random stream cannot be derived."""

    pass
