"""Central constants used across modules.

Bootstrap defaults, naming conventions for coefficients and a few numeric
tolerances live here so that literals are not scattered through the code.
"""

from __future__ import annotations

from typing import Final

__all__ = [
    "BACKENDS",
    "COEF_SEPARATOR",
    "DEFAULT_BACKEND",
    "DEFAULT_CI_LEVEL",
    "DEFAULT_MAX_EXCLUDED_FRACTION",
    "DEFAULT_N_BOOT",
    "INTERCEPT",
    "MAX_SEED_VALUE",
    "METHODS",
    "SMALL_EPS",
    "coef_name",
]


# Bootstrap defaults --------------------------------------------------------

DEFAULT_N_BOOT: Final[int] = 1000
"""Number of bootstrap iterations when none is given."""

DEFAULT_CI_LEVEL: Final[float] = 0.95

DEFAULT_MAX_EXCLUDED_FRACTION: Final[float] = 0.10
"""Share of nonparametric resamples allowed to fail before the run aborts."""

METHODS: Final[tuple[str, ...]] = ("parametric", "nonparametric", "plugin")

BACKENDS: Final[tuple[str, ...]] = ("thread", "process", "joblib")
DEFAULT_BACKEND: Final[str] = "thread"

# Numeric constants ---------------------------------------------------------

MAX_SEED_VALUE: Final[int] = 2**32
"""Upper (exclusive) bound for user supplied seeds."""

SMALL_EPS: Final[float] = 1e-12
"""Total effects smaller than this in magnitude are treated as zero."""

# Coefficient naming --------------------------------------------------------

INTERCEPT: Final[str] = "(Intercept)"
COEF_SEPARATOR: Final[str] = "~"


def coef_name(response: str, term: str) -> str:
    """Return the canonical estimate label for ``term`` in the model of ``response``.

    >>> coef_name("M", "X")
    'M~X'
    """

    return f"{response}{COEF_SEPARATOR}{term}"
