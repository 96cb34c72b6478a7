from __future__ import annotations

import os
from pathlib import Path
from typing import Callable, Iterator

import numpy as np
import pandas as pd
import pytest

from medfit.config.settings import ENV_PREFIX, reset_settings_cache
from medfit.mediation import MediationStructure, fit_mediation


@pytest.fixture(autouse=True)
def _isolated_settings(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Iterator[None]:
    """Point the settings at a scratch project root and drop stray MEDFIT_* variables."""

    for key in list(os.environ):
        if key.startswith(ENV_PREFIX):
            monkeypatch.delenv(key, raising=False)
    monkeypatch.setenv(f"{ENV_PREFIX}PROJECT_ROOT", str(tmp_path))
    reset_settings_cache()
    yield
    reset_settings_cache()


@pytest.fixture
def simple_data() -> pd.DataFrame:
    """X → M → Y with a = 0.5, b = 0.4, c' = 0.3 and one covariate."""

    rng = np.random.default_rng(2024)
    n = 200
    x = rng.normal(size=n)
    c = rng.normal(size=n)
    m = 0.5 * x + 0.2 * c + rng.normal(scale=0.5, size=n)
    y = 0.3 * x + 0.4 * m - 0.1 * c + rng.normal(scale=0.5, size=n)
    return pd.DataFrame({"X": x, "M": m, "Y": y, "C": c})


@pytest.fixture
def serial_data() -> pd.DataFrame:
    """X → M1 → M2 → Y with a = 0.5, d = 0.3, b = 0.4."""

    rng = np.random.default_rng(7)
    n = 250
    x = rng.normal(size=n)
    m1 = 0.5 * x + rng.normal(scale=0.5, size=n)
    m2 = 0.3 * m1 + 0.1 * x + rng.normal(scale=0.5, size=n)
    y = 0.4 * m2 + 0.2 * x + rng.normal(scale=0.5, size=n)
    return pd.DataFrame({"X": x, "M1": m1, "M2": m2, "Y": y})


@pytest.fixture
def simple_structure(simple_data: pd.DataFrame) -> MediationStructure:
    return fit_mediation(simple_data, treatment="X", mediator="M", outcome="Y")


@pytest.fixture
def serial_structure(serial_data: pd.DataFrame) -> MediationStructure:
    return fit_mediation(serial_data, treatment="X", mediator=["M1", "M2"], outcome="Y")


@pytest.fixture
def make_structure() -> Callable[..., MediationStructure]:
    """Factory for hand-built structures with a diagonal covariance.

    ``make_structure(a=0.5, b=0.4)`` gives simple mediation;
    ``make_structure(a=0.5, d=0.3, b=0.4)`` gives serial mediation with two
    mediators.
    """

    def _factory(
        a: float = 0.5,
        b: float = 0.4,
        d: float | None = None,
        c_prime: float = 0.1,
        se: float = 0.1,
    ) -> MediationStructure:
        if d is None:
            mediators: tuple[str, ...] = ("M",)
            estimates = {"M~X": a, "Y~M": b, "Y~X": c_prime}
        else:
            mediators = ("M1", "M2")
            estimates = {"M1~X": a, "M2~M1": d, "Y~M2": b, "Y~X": c_prime}
        series = pd.Series(estimates, dtype=float)
        vcov = np.eye(len(series)) * se**2
        return MediationStructure(
            treatment="X",
            mediators=mediators,
            outcome="Y",
            estimates=series,
            vcov=vcov,
            n_obs=100,
        )

    return _factory
