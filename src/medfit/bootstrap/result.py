"""Result records produced by the bootstrap orchestrator."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Iterator, Sequence

import numpy as np
import pandas as pd

from ..config.schemas import BootstrapConfig, BootstrapMethod
from .intervals import is_significant

__all__ = ["BootstrapDistribution", "BootstrapResult"]


def _readonly(values: Any, dtype: type) -> np.ndarray:
    array = np.array(values, dtype=dtype, copy=True).reshape(-1)
    array.setflags(write=False)
    return array


@dataclass(frozen=True, eq=False)
class BootstrapDistribution:
    """Ordered bootstrap values and the iteration each one came from.

    ``iterations`` differs from ``range(len(values))`` only when
    nonparametric resamples were excluded.
    """

    values: np.ndarray
    iterations: np.ndarray

    def __post_init__(self) -> None:
        values = _readonly(self.values, float)
        iterations = _readonly(self.iterations, np.int64)
        if values.shape != iterations.shape:
            raise ValueError("values and iterations must have the same length")
        object.__setattr__(self, "values", values)
        object.__setattr__(self, "iterations", iterations)

    @classmethod
    def from_values(cls, values: Sequence[float] | np.ndarray) -> "BootstrapDistribution":
        array = np.asarray(values, dtype=float).reshape(-1)
        return cls(values=array, iterations=np.arange(array.size))

    def __len__(self) -> int:
        return int(self.values.size)

    def __iter__(self) -> Iterator[float]:
        return (float(value) for value in self.values)

    def __getitem__(self, index: int) -> float:
        return float(self.values[index])

    @property
    def mean(self) -> float:
        return float(np.mean(self.values)) if len(self) else math.nan

    @property
    def std(self) -> float:
        return float(np.std(self.values, ddof=1)) if len(self) > 1 else math.nan

    def to_series(self) -> pd.Series:
        series = pd.Series(self.values, index=pd.Index(self.iterations, name="bootstrap_id"))
        series.name = "value"
        return series

    def describe(self) -> pd.Series:
        return self.to_series().describe()


@dataclass(frozen=True, eq=False)
class BootstrapResult:
    """Point estimate, percentile interval and the distribution behind it.

    Attributes
    ----------
    estimate : float
        Statistic evaluated on the original (un-resampled) structure.
    ci_lower, ci_upper : float or None
        Percentile bounds. ``None`` for the plugin method: no interval can be
        computed and callers must not treat the values as bounds.
    distribution : BootstrapDistribution
        Successful iteration values in iteration order. A single element
        equal to ``estimate`` for the plugin method.
    config : BootstrapConfig
        Exact configuration of the run.
    n_excluded : int
        Nonparametric resamples dropped because the refit failed.
    entropy : int or None
        Root entropy of the random streams. Equals ``config.seed`` when a
        seed was given; otherwise it is the OS entropy drawn for the run.
    """

    estimate: float
    ci_lower: float | None
    ci_upper: float | None
    distribution: BootstrapDistribution
    config: BootstrapConfig
    n_excluded: int = 0
    entropy: int | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "estimate", float(self.estimate))
        if self.config.is_plugin:
            if self.ci_lower is not None or self.ci_upper is not None:
                raise ValueError("plugin results carry no confidence interval")
            if len(self.distribution) != 1:
                raise ValueError("plugin results hold exactly one value")
            return
        if self.ci_lower is None or self.ci_upper is None:
            raise ValueError("resampling results need both interval bounds")
        if self.ci_lower > self.ci_upper:
            raise ValueError("ci_lower must be less than or equal to ci_upper")
        if len(self.distribution) + self.n_excluded != self.config.n_boot:
            raise ValueError("distribution size plus exclusions must equal n_boot")

    @property
    def method(self) -> str:
        return self.config.method.value

    @property
    def n_boot(self) -> int:
        return self.config.n_boot

    @property
    def ci_level(self) -> float | None:
        return None if self.config.is_plugin else self.config.ci_level

    @property
    def seed(self) -> int | None:
        return self.config.seed

    @property
    def boot_estimates(self) -> np.ndarray:
        return self.distribution.values

    @property
    def has_interval(self) -> bool:
        return self.ci_lower is not None and self.ci_upper is not None

    @property
    def is_significant(self) -> bool:
        return is_significant(self.ci_lower, self.ci_upper)

    def summary(self) -> dict[str, Any]:
        summary: dict[str, Any] = {
            "method": self.method,
            "estimate": self.estimate,
            "n_boot": self.n_boot,
        }
        if self.config.method is not BootstrapMethod.PLUGIN:
            summary["n_excluded"] = self.n_excluded
            summary["ci"] = {"lower": self.ci_lower, "upper": self.ci_upper}
            summary["ci_level"] = self.ci_level
            summary["significant"] = self.is_significant
            summary["boot_dist"] = self.distribution.describe().to_dict()
        return summary

    def to_dict(self, *, include_distribution: bool = False) -> dict[str, Any]:
        """JSON-friendly representation for reporting and audit."""

        payload: dict[str, Any] = {
            "method": self.method,
            "estimate": self.estimate,
            "ci_lower": self.ci_lower,
            "ci_upper": self.ci_upper,
            "ci_level": self.ci_level,
            "n_boot": self.n_boot,
            "n_successful": len(self.distribution),
            "n_excluded": self.n_excluded,
            "seed": self.seed,
            "entropy": self.entropy,
            "significant": self.is_significant,
            "config": self.config.to_dict(),
        }
        if include_distribution:
            payload["distribution"] = [float(v) for v in self.distribution.values]
        return payload

    def tidy(self, term: str = "indirect") -> pd.DataFrame:
        return pd.DataFrame(
            [
                {
                    "term": term,
                    "estimate": self.estimate,
                    "conf_low": self.ci_lower if self.has_interval else math.nan,
                    "conf_high": self.ci_upper if self.has_interval else math.nan,
                    "conf_level": self.ci_level if self.has_interval else math.nan,
                    "method": self.method,
                    "n_boot": self.n_boot,
                }
            ]
        )

    def glance(self) -> pd.DataFrame:
        return pd.DataFrame(
            [
                {
                    "method": self.method,
                    "estimate": self.estimate,
                    "n_boot": self.n_boot,
                    "n_excluded": self.n_excluded,
                    "ci_level": self.ci_level if self.has_interval else math.nan,
                    "significant": self.is_significant,
                }
            ]
        )

    def __str__(self) -> str:
        lines = [
            "BootstrapResult",
            "=" * 15,
            "",
            f"Method:   {self.method}",
            f"Estimate: {self.estimate:8.4f}",
        ]
        if self.has_interval:
            lines.append(f"N bootstrap samples: {len(self.distribution)}")
            if self.n_excluded:
                lines.append(f"Excluded resamples:  {self.n_excluded}")
            lines += [
                "",
                f"{self.config.ci_level * 100:g}% Confidence Interval:",
                f"  Lower: {self.ci_lower:8.4f}",
                f"  Upper: {self.ci_upper:8.4f}",
            ]
        else:
            lines += ["", "(No confidence interval for plugin method)"]
        return "\n".join(lines)
