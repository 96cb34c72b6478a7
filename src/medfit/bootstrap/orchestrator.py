"""Drive a bootstrap run: validate, iterate, summarise.

Workflow
--------
1. Validate the configuration against the structure.
2. Plugin method: evaluate the statistic on the point estimates and return.
3. Resolve the root entropy (the seed, or fresh OS entropy when absent).
4. Run iteration ``i`` with the generator derived from ``(entropy, i)``,
   sequentially or on a worker pool. Output order is iteration order.
5. Drop excluded iterations, enforce the exclusion budget and
   compute the percentile interval.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any, Callable, Mapping, Optional

import numpy as np

from ..config.constants import DEFAULT_CI_LEVEL, DEFAULT_N_BOOT
from ..config.logging_conf import run_context
from ..config.schemas import BootstrapConfig, BootstrapMethod, coerce_config
from ..config.settings import Settings, get_settings
from ..errors import ConfigurationError, ConvergenceError
from ..mediation.structure import MediationStructure
from ..utils.logging_config import get_logger, log_dict
from ..utils.parallel import parallel_map
from ..utils.seed import iteration_rng, register_seed_logging, resolve_entropy
from .estimators import ChainProduct, Statistic, build_estimator, plugin_estimate
from .intervals import percentile_interval
from .result import BootstrapDistribution, BootstrapResult

__all__ = ["run", "bootstrap_mediation"]

logger = get_logger(__name__)


@dataclass(frozen=True)
class _IterationTask:
    estimator: Callable[[np.random.Generator], Optional[float]]
    entropy: int

    def __call__(self, index: int) -> Optional[float]:
        return self.estimator(iteration_rng(self.entropy, index))


def _default_config(settings: Settings) -> BootstrapConfig:
    return BootstrapConfig(
        seed=settings.random_seed,
        backend=settings.default_backend,
        max_excluded_fraction=settings.max_excluded_fraction,
    )


def run(
    structure: MediationStructure,
    config: BootstrapConfig | Mapping[str, Any] | None = None,
    *,
    statistic: Statistic | None = None,
    extractor: Any = None,
    settings: Settings | None = None,
) -> BootstrapResult:
    """Bootstrap the indirect effect of ``structure``.

    Args:
        structure: Extracted mediation model.
        config: Run configuration. A mapping is validated into a
            :class:`BootstrapConfig`; ``None`` uses defaults from ``settings``.
        statistic: Function of the coefficient vector (a ``pd.Series``
            labelled ``"<response>~<term>"``). Defaults to the product of the
            chain's path coefficients. Must be picklable for the process and
            joblib backends.
        extractor: Object with ``refit(data)``. Defaults to the extractor
            attached to ``structure``. Nonparametric method only.
        settings: Runtime settings; defaults to :func:`get_settings`.

    Returns:
        BootstrapResult with the plugin point estimate, the percentile
        interval and the ordered distribution.

    Raises:
        ConfigurationError: Invalid configuration for this structure.
        ConvergenceError: Too many iterations were excluded (failed refits or
            non-finite statistics).
    """
    if not isinstance(structure, MediationStructure):
        raise ConfigurationError(
            f"structure must be a MediationStructure, got {type(structure).__name__}"
        )
    if config is None:
        settings = settings or get_settings()
        config = _default_config(settings)
    else:
        config = coerce_config(config)

    if statistic is None:
        statistic = ChainProduct(structure.path_names)
    elif not callable(statistic):
        raise ConfigurationError("statistic must be callable")

    if config.is_plugin:
        estimate = plugin_estimate(structure, statistic)
        with run_context(method=config.method.value, n_boot=0):
            logger.info("Plugin estimate computed: %.6f (no confidence interval)", estimate)
        return BootstrapResult(
            estimate=estimate,
            ci_lower=None,
            ci_upper=None,
            distribution=BootstrapDistribution.from_values([estimate]),
            config=config,
        )

    estimator = build_estimator(
        structure,
        config.method,
        statistic,
        extractor=extractor if extractor is not None else structure.extractor,
    )
    estimate = plugin_estimate(structure, statistic)

    if config.parallel:
        backend = config.backend
        if config.workers is not None:
            workers = config.workers
        else:
            settings = settings or get_settings()
            workers = settings.default_workers
    else:
        backend, workers = "sequential", 1

    entropy = resolve_entropy(config.seed)
    with run_context(
        method=config.method.value, n_boot=config.n_boot, seed=config.seed, entropy=entropy
    ):
        register_seed_logging(logger, config.seed, entropy)
        return _resample(estimator, estimate, config, entropy, backend, workers)


def _resample(
    estimator: Callable[[np.random.Generator], Optional[float]],
    estimate: float,
    config: BootstrapConfig,
    entropy: int,
    backend: str,
    workers: int,
) -> BootstrapResult:
    log_dict(
        logger,
        "Bootstrap started",
        {
            "method": config.method.value,
            "n_boot": config.n_boot,
            "ci_level": config.ci_level,
            "backend": backend,
            "workers": workers,
        },
    )
    start_time = time.perf_counter()
    values = parallel_map(
        _IterationTask(estimator=estimator, entropy=entropy),
        range(config.n_boot),
        backend=backend,
        max_workers=workers,
    )

    kept = [(index, value) for index, value in enumerate(values) if value is not None]
    n_excluded = config.n_boot - len(kept)
    if n_excluded:
        logger.warning(
            "%d of %d bootstrap iterations were excluded (failed refit or non-finite statistic)",
            n_excluded,
            config.n_boot,
        )
        if not kept or n_excluded / config.n_boot > config.max_excluded_fraction:
            raise ConvergenceError(
                f"{n_excluded} of {config.n_boot} bootstrap iterations were excluded "
                f"(limit {config.max_excluded_fraction:.0%})",
                n_excluded=n_excluded,
                n_boot=config.n_boot,
            )

    distribution = BootstrapDistribution(
        values=np.array([value for _, value in kept], dtype=float),
        iterations=np.array([index for index, _ in kept], dtype=np.int64),
    )
    ci_lower, ci_upper = percentile_interval(distribution.values, config.ci_level)

    log_dict(
        logger,
        "Bootstrap completed",
        {
            "method": config.method.value,
            "estimate": round(estimate, 6),
            "ci_lower": round(ci_lower, 6),
            "ci_upper": round(ci_upper, 6),
            "n_excluded": n_excluded,
            "elapsed_s": round(time.perf_counter() - start_time, 3),
        },
    )
    return BootstrapResult(
        estimate=estimate,
        ci_lower=ci_lower,
        ci_upper=ci_upper,
        distribution=distribution,
        config=config,
        n_excluded=n_excluded,
        entropy=entropy,
    )


def bootstrap_mediation(
    structure: MediationStructure,
    *,
    method: str | BootstrapMethod = BootstrapMethod.PARAMETRIC,
    n_boot: int = DEFAULT_N_BOOT,
    ci_level: float = DEFAULT_CI_LEVEL,
    seed: int | None = None,
    parallel: bool = False,
    workers: int | None = None,
    statistic: Statistic | None = None,
    extractor: Any = None,
    **options: Any,
) -> BootstrapResult:
    """Keyword front-end to :func:`run`.

    Extra keyword ``options`` (``backend``, ``max_excluded_fraction``) are
    passed to :class:`BootstrapConfig`.

    Example:
        >>> result = bootstrap_mediation(structure, n_boot=2000, seed=42)  # doctest: +SKIP
    """
    config = coerce_config(
        {
            "method": method,
            "n_boot": n_boot,
            "ci_level": ci_level,
            "seed": seed,
            "parallel": parallel,
            "workers": workers,
            **options,
        }
    )
    return run(structure, config, statistic=statistic, extractor=extractor)
