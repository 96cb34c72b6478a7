from __future__ import annotations

import pickle

import numpy as np
import pandas as pd
import pytest

from medfit.errors import ExtractionError, ModelFitError
from medfit.mediation import (
    MediationExtractor,
    OLSExtractor,
    extract_mediation,
    fit_linear_model,
    fit_mediation,
)


def test_fit_linear_model_recovers_coefficients() -> None:
    rng = np.random.default_rng(1)
    x = rng.normal(size=500)
    data = pd.DataFrame({"x": x, "y": 1.0 + 2.0 * x + rng.normal(scale=0.1, size=500)})

    fit = fit_linear_model(data, "y", ["x"])

    assert fit.terms == ("(Intercept)", "x")
    assert fit.coefficients["(Intercept)"] == pytest.approx(1.0, abs=0.05)
    assert fit.coefficients["x"] == pytest.approx(2.0, abs=0.05)
    assert fit.sigma == pytest.approx(0.1, abs=0.02)
    assert fit.df_resid == 498
    np.testing.assert_allclose(fit.vcov.to_numpy(), fit.vcov.to_numpy().T)


def test_fit_linear_model_matches_lstsq() -> None:
    rng = np.random.default_rng(3)
    data = pd.DataFrame(rng.normal(size=(50, 3)), columns=["y", "a", "b"])
    design = np.column_stack([np.ones(50), data[["a", "b"]].to_numpy()])
    expected, *_ = np.linalg.lstsq(design, data["y"].to_numpy(), rcond=None)

    fit = fit_linear_model(data, "y", ["a", "b"])

    np.testing.assert_allclose(fit.coefficients.to_numpy(), expected)


def test_fit_linear_model_drops_missing_rows() -> None:
    data = pd.DataFrame({"x": [1.0, 2.0, 3.0, np.nan, 5.0], "y": [1.1, 2.3, 2.9, 4.0, 5.2]})

    assert fit_linear_model(data, "y", ["x"]).n_obs == 4


def test_fit_linear_model_rank_deficient_raises() -> None:
    x = np.arange(10, dtype=float)
    data = pd.DataFrame({"x": x, "x2": 2 * x, "y": x + 1})

    with pytest.raises(ModelFitError, match="rank deficient"):
        fit_linear_model(data, "y", ["x", "x2"])


def test_fit_linear_model_needs_residual_degrees_of_freedom() -> None:
    data = pd.DataFrame({"x": [1.0, 2.0], "y": [1.0, 3.0]})

    with pytest.raises(ModelFitError, match="observation"):
        fit_linear_model(data, "y", ["x"])


def test_fit_linear_model_validates_columns() -> None:
    data = pd.DataFrame({"x": [1.0, 2.0, 3.0], "label": ["a", "b", "c"], "y": [1.0, 2.0, 2.5]})

    with pytest.raises(ExtractionError, match="not found"):
        fit_linear_model(data, "y", ["z"])
    with pytest.raises(ExtractionError, match="numeric"):
        fit_linear_model(data, "y", ["label"])


def test_fit_mediation_simple(simple_data: pd.DataFrame) -> None:
    structure = fit_mediation(simple_data, treatment="X", mediator="M", outcome="Y")

    assert structure.path_names == ("M~X", "Y~M")
    assert structure.a_path == pytest.approx(0.5, abs=0.15)
    assert structure.b_path == pytest.approx(0.4, abs=0.15)
    assert structure.c_prime == pytest.approx(0.3, abs=0.15)
    assert structure.n_obs == len(simple_data)
    assert structure.source == "medfit.ols"
    assert set(structure.sigma) == {"M", "Y"}


def test_fit_mediation_vcov_is_block_diagonal(simple_structure) -> None:
    vcov = simple_structure.vcov
    mediator_terms = [name for name in vcov.index if name.startswith("M~")]
    outcome_terms = [name for name in vcov.index if name.startswith("Y~")]

    assert (vcov.loc[mediator_terms, outcome_terms].to_numpy() == 0).all()
    assert (np.diag(vcov.to_numpy()) > 0).all()


def test_fit_mediation_with_covariates(simple_data: pd.DataFrame) -> None:
    structure = fit_mediation(
        simple_data, treatment="X", mediator="M", outcome="Y", covariates=["C"]
    )

    assert {"M~C", "Y~C"} <= set(structure.estimates.index)
    assert structure.covariates == ("C",)


def test_fit_mediation_serial(serial_data: pd.DataFrame) -> None:
    structure = fit_mediation(serial_data, treatment="X", mediator=["M1", "M2"], outcome="Y")

    assert structure.path_names == ("M1~X", "M2~M1", "Y~M2")
    assert structure.paths()["d"] == pytest.approx(0.3, abs=0.15)
    assert "M2~X" in structure.estimates.index
    assert "Y~M1" in structure.estimates.index


def test_fit_mediation_drops_incomplete_rows(simple_data: pd.DataFrame) -> None:
    data = simple_data.copy()
    data.loc[[0, 5, 9], "M"] = np.nan

    structure = fit_mediation(data, treatment="X", mediator="M", outcome="Y")

    assert structure.n_obs == len(simple_data) - 3
    assert len(structure.data) == structure.n_obs


def test_fit_mediation_missing_variable(simple_data: pd.DataFrame) -> None:
    with pytest.raises(ExtractionError, match="'Z'"):
        fit_mediation(simple_data, treatment="Z", mediator="M", outcome="Y")


def test_extractor_refit_returns_fresh_structure(simple_structure) -> None:
    extractor = simple_structure.extractor

    assert isinstance(extractor, MediationExtractor)
    half = simple_structure.data.iloc[:100].reset_index(drop=True)
    refit = extractor.refit(half)

    assert refit.n_obs == 100
    assert refit.extractor is extractor
    assert refit.a_path != simple_structure.a_path


def test_ols_extractor_is_picklable() -> None:
    extractor = OLSExtractor(treatment="X", mediators=("M",), outcome="Y", covariates=("C",))

    assert pickle.loads(pickle.dumps(extractor)) == extractor


def test_ols_extractor_requires_distinct_variables() -> None:
    with pytest.raises(ExtractionError, match="distinct"):
        OLSExtractor(treatment="X", mediators="X", outcome="Y")


def test_ols_extractor_model_specs() -> None:
    extractor = OLSExtractor(treatment="X", mediators=("M1", "M2"), outcome="Y", covariates=("C",))

    assert extractor.model_specs() == [
        ("M1", ["X", "C"]),
        ("M2", ["X", "M1", "C"]),
        ("Y", ["X", "M1", "M2", "C"]),
    ]


def test_extract_from_prefitted_models(simple_data: pd.DataFrame) -> None:
    mediator_fit = fit_linear_model(simple_data, "M", ["X"])
    outcome_fit = fit_linear_model(simple_data, "Y", ["X", "M"])
    extractor = OLSExtractor(treatment="X", mediators="M", outcome="Y")

    structure = extractor.extract(mediator_fit, outcome_fit, data=simple_data)

    assert structure.a_path == pytest.approx(mediator_fit.coefficients["X"])
    assert structure.b_path == pytest.approx(outcome_fit.coefficients["M"])
    assert structure.extractor is extractor


def test_extract_keeps_complete_cases_of_raw_data(simple_data: pd.DataFrame) -> None:
    raw = simple_data.copy()
    raw.loc[3, "M"] = np.nan
    mediator_fit = fit_linear_model(raw, "M", ["X"])
    outcome_fit = fit_linear_model(raw, "Y", ["X", "M"])
    extractor = OLSExtractor(treatment="X", mediators="M", outcome="Y")

    structure = extractor.extract(mediator_fit, outcome_fit, data=raw)

    assert structure.n_obs == len(raw) - 1
    assert len(structure.data) == structure.n_obs
    assert not structure.data.isna().any().any()
    assert list(structure.data.columns) == extractor.variables


def test_extract_mediation_requires_treatment_in_mediator_model(simple_data) -> None:
    mediator_fit = fit_linear_model(simple_data, "M", ["C"])
    outcome_fit = fit_linear_model(simple_data, "Y", ["X", "M"])

    with pytest.raises(ExtractionError, match="Treatment variable 'X'"):
        extract_mediation(mediator_fit, outcome_fit, "X", "M")


def test_extract_mediation_requires_mediator_in_outcome_model(simple_data) -> None:
    mediator_fit = fit_linear_model(simple_data, "M", ["X"])
    outcome_fit = fit_linear_model(simple_data, "Y", ["X"])

    with pytest.raises(ExtractionError, match="Mediator variable 'M'"):
        extract_mediation(mediator_fit, outcome_fit, "X", "M")
