"""Immutable container for an extracted mediation model.

A :class:`MediationStructure` stores every coefficient of the mediator and
outcome models as one named vector (``"<response>~<term>"``) together with
its covariance matrix, so that the parametric bootstrap can draw the whole
vector at once and any statistic can pick the coefficients it needs by name.

Simple mediation ``X → M → Y`` has the chain ``("M~X", "Y~M")``. Serial
mediation ``X → M1 → M2 → Y`` has ``("M1~X", "M2~M1", "Y~M2")``; the middle
links are the *d* paths.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Mapping, Sequence

import numpy as np
import pandas as pd
from scipy import stats

from ..config.constants import SMALL_EPS, coef_name
from ..errors import ExtractionError
from ..utils.logging_config import get_logger

__all__ = ["MediationStructure", "chain_product"]

logger = get_logger(__name__)


def chain_product(theta: Mapping[str, float] | pd.Series, names: Sequence[str]) -> float:
    """Product of the coefficients ``names`` taken from ``theta``."""
    value = 1.0
    for name in names:
        value *= float(theta[name])
    return value


@dataclass(frozen=True, eq=False)
class MediationStructure:
    """Path coefficients, their covariance and (optionally) the source data.

    Attributes
    ----------
    treatment : str
        Treatment variable (X).
    mediators : tuple[str, ...]
        Mediator chain in causal order. One element for simple mediation.
    outcome : str
        Outcome variable (Y).
    estimates : pd.Series
        Every coefficient of every model, labelled ``"<response>~<term>"``.
    vcov : pd.DataFrame
        Covariance of ``estimates`` (same labels on both axes).
    data : pd.DataFrame, optional
        Observations the models were fitted on. Needed only for the
        nonparametric bootstrap.
    n_obs : int, optional
        Number of observations; defaults to ``len(data)``.
    converged : bool
        Whether every underlying fit converged.
    sigma : Mapping[str, float]
        Residual standard deviation per model response.
    covariates : tuple[str, ...]
        Covariates adjusted for in every model.
    source : str
        Label of the engine that produced the structure.
    extractor : object, optional
        Object exposing ``refit(data) -> MediationStructure``.
    """

    treatment: str
    mediators: tuple[str, ...]
    outcome: str
    estimates: pd.Series
    vcov: pd.DataFrame
    data: pd.DataFrame | None = None
    n_obs: int | None = None
    converged: bool = True
    sigma: Mapping[str, float] = field(default_factory=dict)
    covariates: tuple[str, ...] = ()
    source: str = "user"
    extractor: Any = field(default=None, repr=False)

    def __post_init__(self) -> None:
        mediators = (self.mediators,) if isinstance(self.mediators, str) else tuple(self.mediators)
        if not mediators:
            raise ExtractionError("At least one mediator is required")
        object.__setattr__(self, "mediators", mediators)
        object.__setattr__(self, "covariates", tuple(self.covariates))

        estimates = pd.Series(self.estimates, dtype=float).copy()
        if estimates.index.has_duplicates:
            dupes = sorted(set(estimates.index[estimates.index.duplicated()]))
            raise ExtractionError(f"Duplicate coefficient names: {', '.join(map(str, dupes))}")

        if isinstance(self.vcov, pd.DataFrame):
            vcov = self.vcov.astype(float)
        else:
            matrix = np.asarray(self.vcov, dtype=float)
            if matrix.shape != (len(estimates), len(estimates)):
                raise ExtractionError(
                    f"vcov must be square with {len(estimates)} rows; got shape {matrix.shape}"
                )
            vcov = pd.DataFrame(matrix, index=estimates.index, columns=estimates.index)
        if vcov.shape != (len(estimates), len(estimates)):
            raise ExtractionError(
                f"vcov must be square with {len(estimates)} rows; got shape {vcov.shape}"
            )
        if not (set(vcov.index) == set(estimates.index) == set(vcov.columns)):
            raise ExtractionError("vcov labels must match the estimate names")
        vcov = vcov.loc[estimates.index, estimates.index].copy()

        missing = [name for name in self.path_names if name not in estimates.index]
        if missing:
            raise ExtractionError(
                f"Path coefficient(s) not found in estimates: {', '.join(missing)}"
            )

        object.__setattr__(self, "estimates", estimates)
        object.__setattr__(self, "vcov", vcov)

        data = self.data
        if data is not None:
            if not isinstance(data, pd.DataFrame):
                raise ExtractionError("data must be a pandas DataFrame")
            data = data.copy()
            object.__setattr__(self, "data", data)

        n_obs = self.n_obs if self.n_obs is not None else (len(data) if data is not None else None)
        if n_obs is not None:
            n_obs = int(n_obs)
            if n_obs < 1:
                raise ExtractionError("n_obs must be a positive integer")
            if data is not None and len(data) != n_obs:
                raise ExtractionError(
                    f"Number of rows in data ({len(data)}) must match n_obs ({n_obs})"
                )
        object.__setattr__(self, "n_obs", n_obs)
        object.__setattr__(self, "sigma", dict(self.sigma))

    # ------------------------------------------------------------------
    # Path bookkeeping

    @property
    def is_serial(self) -> bool:
        return len(self.mediators) > 1

    @property
    def mediator(self) -> str:
        """First mediator of the chain (the only one for simple mediation)."""
        return self.mediators[0]

    @property
    def path_names(self) -> tuple[str, ...]:
        """Estimate labels along the chain X → M1 → … → Mk → Y."""
        chain = (self.treatment, *self.mediators, self.outcome)
        return tuple(coef_name(response, term) for term, response in zip(chain[:-1], chain[1:]))

    @property
    def a_name(self) -> str:
        return self.path_names[0]

    @property
    def b_name(self) -> str:
        return self.path_names[-1]

    @property
    def d_names(self) -> tuple[str, ...]:
        return self.path_names[1:-1]

    @property
    def c_prime_name(self) -> str:
        return coef_name(self.outcome, self.treatment)

    @property
    def a_path(self) -> float:
        return float(self.estimates[self.a_name])

    @property
    def b_path(self) -> float:
        return float(self.estimates[self.b_name])

    @property
    def d_paths(self) -> tuple[float, ...]:
        return tuple(float(self.estimates[name]) for name in self.d_names)

    @property
    def c_prime(self) -> float:
        """Direct effect; NaN when the outcome model omits the treatment."""
        if self.c_prime_name not in self.estimates.index:
            return math.nan
        return float(self.estimates[self.c_prime_name])

    def paths(self) -> dict[str, float]:
        """Path coefficients keyed ``a``, ``d`` (or ``d21``, ``d32`` …), ``b``, ``c_prime``."""
        result = {"a": self.a_path}
        d_values = self.d_paths
        if len(d_values) == 1:
            result["d"] = d_values[0]
        else:
            for position, value in enumerate(d_values, start=1):
                result[f"d{position + 1}{position}"] = value
        result["b"] = self.b_path
        result["c_prime"] = self.c_prime
        return result

    def std_errors(self) -> pd.Series:
        return pd.Series(np.sqrt(np.clip(np.diag(self.vcov.to_numpy()), 0.0, None)),
                         index=self.estimates.index, name="std_error")

    # ------------------------------------------------------------------
    # Effects

    @property
    def indirect_effect(self) -> float:
        """Natural indirect effect: product of the chain coefficients."""
        return chain_product(self.estimates, self.path_names)

    @property
    def direct_effect(self) -> float:
        return self.c_prime

    @property
    def total_effect(self) -> float:
        return self.indirect_effect + self.direct_effect

    @property
    def proportion_mediated(self) -> float:
        """Indirect over total effect; NaN when the total effect is ~0."""
        total = self.total_effect
        if not math.isfinite(total) or abs(total) < SMALL_EPS:
            logger.warning("Total effect is approximately zero; proportion mediated is undefined.")
            return math.nan
        return self.indirect_effect / total

    # ------------------------------------------------------------------
    # Reporting

    def tidy(
        self,
        kind: str = "all",
        *,
        conf_int: bool = False,
        conf_level: float = 0.95,
    ) -> pd.DataFrame:
        """Tabulate paths and/or effects.

        Standard errors come from ``vcov`` for the path coefficients; effects
        get NaN there (a product of coefficients needs the delta method or a
        bootstrap). Wald intervals are added when ``conf_int`` is true.
        """
        if kind not in {"all", "paths", "effects"}:
            raise ValueError("kind must be 'all', 'paths' or 'effects'")

        path_labels = self.paths()
        path_rows = []
        names = [self.a_name, *self.d_names, self.b_name, self.c_prime_name]
        ses = self.std_errors()
        for (term, estimate), name in zip(path_labels.items(), names):
            se = float(ses[name]) if name in ses.index else math.nan
            path_rows.append({"term": term, "estimate": estimate, "std_error": se})

        effect_rows = [
            {"term": "nie", "estimate": self.indirect_effect, "std_error": math.nan},
            {"term": "nde", "estimate": self.direct_effect, "std_error": math.nan},
            {"term": "te", "estimate": self.total_effect, "std_error": math.nan},
        ]

        rows = {"paths": path_rows, "effects": effect_rows, "all": path_rows + effect_rows}[kind]
        table = pd.DataFrame(rows, columns=["term", "estimate", "std_error"])

        if conf_int:
            if not 0 < conf_level < 1:
                raise ValueError("conf_level must lie in (0, 1)")
            z = float(stats.norm.ppf(1 - (1 - conf_level) / 2))
            table["conf_low"] = table["estimate"] - z * table["std_error"]
            table["conf_high"] = table["estimate"] + z * table["std_error"]
        return table

    def glance(self) -> pd.DataFrame:
        """Single-row model summary."""
        return pd.DataFrame(
            [
                {
                    "nie": self.indirect_effect,
                    "nde": self.direct_effect,
                    "te": self.total_effect,
                    "pm": self.proportion_mediated,
                    "n_mediators": len(self.mediators),
                    "nobs": self.n_obs,
                    "converged": self.converged,
                }
            ]
        )

    def __str__(self) -> str:
        lines = ["MediationStructure", "=" * 18, "", "Path coefficients:"]
        for term, value in self.paths().items():
            lines.append(f"  {term:<14}{value:10.4f}")
        lines.append(f"  {'indirect':<14}{self.indirect_effect:10.4f}")
        lines += [
            "",
            "Variables:",
            f"  Treatment: {self.treatment}",
            f"  Mediators: {', '.join(self.mediators)}",
            f"  Outcome:   {self.outcome}",
            "",
            "Model info:",
            f"  N observations: {self.n_obs if self.n_obs is not None else 'unknown'}",
            f"  Converged:      {'Yes' if self.converged else 'No'}",
            f"  Source:         {self.source}",
        ]
        return "\n".join(lines)
