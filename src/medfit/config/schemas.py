"""Pydantic schemas for bootstrap configuration.

``BootstrapConfig`` is the single run-level configuration consumed by
:func:`medfit.bootstrap.run`. It can be built directly, from a mapping via
:func:`coerce_config`, or from YAML via :func:`medfit.config.loader.load_config`.
Every route reports invalid values as
:class:`~medfit.errors.ConfigurationError`.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Literal, Mapping

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from ..errors import ConfigurationError
from .constants import (
    DEFAULT_BACKEND,
    DEFAULT_CI_LEVEL,
    DEFAULT_MAX_EXCLUDED_FRACTION,
    DEFAULT_N_BOOT,
    MAX_SEED_VALUE,
)

__all__ = ["BootstrapMethod", "BootstrapConfig", "coerce_config"]


class BootstrapMethod(str, Enum):
    """Strategy used to produce one indirect-effect value per iteration."""

    PARAMETRIC = "parametric"
    NONPARAMETRIC = "nonparametric"
    PLUGIN = "plugin"


class BootstrapConfig(BaseModel):
    """Configuration of one bootstrap run.

    Attributes
    ----------
    method : BootstrapMethod
        ``parametric`` (draws from N(θ̂, Σ̂)), ``nonparametric`` (resample rows
        and refit) or ``plugin`` (point estimate only).
    n_boot : int
        Number of iterations. Always stored as 0 for ``plugin``.
    ci_level : float
        Confidence level in the open interval (0, 1).
    seed : Optional[int]
        Root seed. ``None`` draws fresh OS entropy, so the run is *not*
        reproducible; the entropy used is still recorded on the result.
    parallel : bool
        Distribute iterations across a worker pool.
    workers : Optional[int]
        Pool size. ``None`` uses ``Settings.default_workers``.
    backend : Literal
        Worker pool flavour (``thread``, ``process`` or ``joblib``).
    max_excluded_fraction : float
        Share of nonparametric resamples allowed to fail refitting before the
        run aborts with ``ConvergenceError``.
    """

    model_config = ConfigDict(frozen=True, extra="forbid", use_enum_values=False)

    method: BootstrapMethod = Field(
        default=BootstrapMethod.PARAMETRIC, description="Bootstrap strategy"
    )
    n_boot: int = Field(default=DEFAULT_N_BOOT, ge=0, description="Bootstrap iterations")
    ci_level: float = Field(
        default=DEFAULT_CI_LEVEL, gt=0, lt=1, description="Confidence level (exclusive)"
    )
    seed: int | None = Field(
        default=None, ge=0, lt=MAX_SEED_VALUE, description="Root random seed"
    )
    parallel: bool = Field(default=False, description="Run iterations in a worker pool")
    workers: int | None = Field(default=None, ge=1, description="Worker pool size")
    backend: Literal["thread", "process", "joblib"] = Field(
        default=DEFAULT_BACKEND, description="Worker pool backend"
    )
    max_excluded_fraction: float = Field(
        default=DEFAULT_MAX_EXCLUDED_FRACTION,
        ge=0,
        lt=1,
        description="Tolerated share of failed nonparametric refits",
    )

    def __init__(self, /, **data: Any) -> None:
        try:
            super().__init__(**data)
        except ValidationError as exc:
            raise ConfigurationError(f"Invalid bootstrap configuration:\n{exc}") from exc

    @model_validator(mode="before")
    @classmethod
    def _plugin_ignores_n_boot(cls, data: Any) -> Any:
        if isinstance(data, Mapping):
            method = data.get("method")
            if method is not None and str(getattr(method, "value", method)) == "plugin":
                data = {**data, "n_boot": 0}
        return data

    @model_validator(mode="after")
    def _resampling_needs_iterations(self) -> "BootstrapConfig":
        if self.method is not BootstrapMethod.PLUGIN and self.n_boot <= 0:
            raise ValueError(f"n_boot must be positive for the {self.method.value} method")
        return self

    @property
    def is_plugin(self) -> bool:
        return self.method is BootstrapMethod.PLUGIN

    def to_dict(self) -> dict[str, Any]:
        payload = self.model_dump()
        payload["method"] = self.method.value
        return payload


def coerce_config(config: BootstrapConfig | Mapping[str, Any] | None) -> BootstrapConfig:
    """Return a validated :class:`BootstrapConfig`.

    Mappings are validated through the schema and validation failures are
    re-raised as :class:`~medfit.errors.ConfigurationError`.
    """

    if config is None:
        return BootstrapConfig()
    if isinstance(config, BootstrapConfig):
        return config
    if not isinstance(config, Mapping):
        raise ConfigurationError(
            f"config must be a BootstrapConfig or a mapping, got {type(config).__name__}"
        )
    try:
        return BootstrapConfig.model_validate(dict(config))
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid bootstrap configuration:\n{exc}") from exc
