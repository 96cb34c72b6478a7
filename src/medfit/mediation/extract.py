"""Extract mediation structures from fitted linear models.

The bootstrap core only needs two things from a modelling layer: a
:class:`~medfit.mediation.structure.MediationStructure` for the original
data and a ``refit`` operation producing a fresh one for a resample. This
module provides the contract (:class:`MediationExtractor`) and an ordinary
least squares implementation (:class:`OLSExtractor`).

Model layout (``C`` are covariates):

- simple:  ``M ~ X + C`` and ``Y ~ X + M + C``
- serial:  ``M1 ~ X + C``, ``Mj ~ X + M1 + … + M(j-1) + C``,
  ``Y ~ X + M1 + … + Mk + C``

Estimates of different models are treated as independent, hence the
combined covariance matrix is block diagonal.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, Sequence, runtime_checkable

import numpy as np
import pandas as pd
from scipy.linalg import block_diag

from ..config.constants import INTERCEPT, coef_name
from ..errors import ExtractionError, ModelFitError
from .structure import MediationStructure

__all__ = [
    "LinearModelFit",
    "MediationExtractor",
    "OLSExtractor",
    "extract_mediation",
    "fit_linear_model",
    "fit_mediation",
]

SOURCE_LABEL = "medfit.ols"


@runtime_checkable
class MediationExtractor(Protocol):
    """Contract consumed by the bootstrap core."""

    def refit(self, data: pd.DataFrame) -> MediationStructure:
        """Fit the same models on ``data`` and return a new structure."""
        ...


@dataclass(frozen=True, eq=False)
class LinearModelFit:
    """Result of :func:`fit_linear_model`."""

    response: str
    coefficients: pd.Series
    vcov: pd.DataFrame
    sigma: float
    n_obs: int
    converged: bool = True

    @property
    def terms(self) -> tuple[str, ...]:
        return tuple(self.coefficients.index)

    @property
    def df_resid(self) -> int:
        return self.n_obs - len(self.coefficients)


def _require_columns(data: pd.DataFrame, columns: Sequence[str], *, context: str) -> None:
    missing = [column for column in columns if column not in data.columns]
    if missing:
        raise ExtractionError(
            f"Variable(s) {', '.join(repr(c) for c in missing)} not found in {context}"
        )


def _numeric_frame(data: pd.DataFrame, columns: Sequence[str]) -> pd.DataFrame:
    frame = data.loc[:, list(columns)]
    non_numeric = [c for c in columns if not pd.api.types.is_numeric_dtype(frame[c])]
    if non_numeric:
        raise ExtractionError(f"Column(s) must be numeric: {', '.join(non_numeric)}")
    return frame.astype(float)


def fit_linear_model(
    data: pd.DataFrame,
    response: str,
    predictors: Sequence[str],
) -> LinearModelFit:
    """Ordinary least squares of ``response`` on an intercept plus ``predictors``.

    Rows with missing values in any used column are dropped. The covariance
    of the coefficients is the classical ``σ² (XᵀX)⁻¹``.

    Raises
    ------
    ExtractionError
        If a column is missing or not numeric.
    ModelFitError
        If the design matrix is rank deficient or leaves no residual degrees
        of freedom.
    """
    predictors = list(predictors)
    _require_columns(data, [response, *predictors], context="data")
    frame = _numeric_frame(data, [response, *predictors]).dropna()

    y = frame[response].to_numpy()
    X = np.column_stack([np.ones(len(frame)), frame[predictors].to_numpy()])
    n_obs, n_terms = X.shape

    if n_obs <= n_terms:
        raise ModelFitError(
            f"Model for '{response}' has {n_obs} observation(s) for {n_terms} coefficient(s)"
        )
    if np.linalg.matrix_rank(X) < n_terms:
        raise ModelFitError(f"Design matrix for '{response}' is rank deficient")

    beta, *_ = np.linalg.lstsq(X, y, rcond=None)
    residuals = y - X @ beta
    df_resid = n_obs - n_terms
    sigma2 = float(residuals @ residuals) / df_resid
    try:
        xtx_inv = np.linalg.inv(X.T @ X)
    except np.linalg.LinAlgError as exc:
        raise ModelFitError(f"Cannot invert XᵀX for '{response}'") from exc

    terms = [INTERCEPT, *predictors]
    return LinearModelFit(
        response=response,
        coefficients=pd.Series(beta, index=terms, dtype=float),
        vcov=pd.DataFrame(sigma2 * xtx_inv, index=terms, columns=terms),
        sigma=float(np.sqrt(sigma2)),
        n_obs=int(n_obs),
    )


def extract_mediation(
    mediator_models: LinearModelFit | Sequence[LinearModelFit],
    outcome_model: LinearModelFit,
    treatment: str,
    mediators: str | Sequence[str],
    outcome: str | None = None,
    *,
    data: pd.DataFrame | None = None,
    covariates: Sequence[str] = (),
    extractor: MediationExtractor | None = None,
) -> MediationStructure:
    """Combine fitted mediator and outcome models into a :class:`MediationStructure`.

    Raises
    ------
    ExtractionError
        When the treatment or a mediator is absent from the model where the
        mediation chain needs it.
    """
    if isinstance(mediator_models, LinearModelFit):
        mediator_models = [mediator_models]
    mediator_models = list(mediator_models)
    mediators = (mediators,) if isinstance(mediators, str) else tuple(mediators)
    outcome = outcome or outcome_model.response

    if len(mediator_models) != len(mediators):
        raise ExtractionError(
            f"Expected {len(mediators)} mediator model(s), got {len(mediator_models)}"
        )
    if outcome_model.response != outcome:
        raise ExtractionError(
            f"Outcome model response is '{outcome_model.response}', expected '{outcome}'"
        )

    for position, (mediator, model) in enumerate(zip(mediators, mediator_models)):
        if model.response != mediator:
            raise ExtractionError(
                f"Mediator model {position + 1} has response '{model.response}', "
                f"expected '{mediator}'"
            )
        if treatment not in model.terms:
            raise ExtractionError(
                f"Treatment variable '{treatment}' not found in mediator model '{mediator}'"
            )
        if position > 0 and mediators[position - 1] not in model.terms:
            raise ExtractionError(
                f"Mediator variable '{mediators[position - 1]}' not found in "
                f"mediator model '{mediator}'"
            )
    if mediators[-1] not in outcome_model.terms:
        raise ExtractionError(
            f"Mediator variable '{mediators[-1]}' not found in outcome model"
        )

    models = [*mediator_models, outcome_model]
    estimates = pd.concat(
        [
            model.coefficients.rename(lambda term, r=model.response: coef_name(r, term))
            for model in models
        ]
    )
    vcov = pd.DataFrame(
        block_diag(*(model.vcov.to_numpy() for model in models)),
        index=estimates.index,
        columns=estimates.index,
    )

    return MediationStructure(
        treatment=treatment,
        mediators=mediators,
        outcome=outcome,
        estimates=estimates,
        vcov=vcov,
        data=data,
        n_obs=outcome_model.n_obs,
        converged=all(model.converged for model in models),
        sigma={model.response: model.sigma for model in models},
        covariates=tuple(covariates),
        source=SOURCE_LABEL,
        extractor=extractor,
    )


@dataclass(frozen=True)
class OLSExtractor:
    """Fit the mediation chain by OLS and extract its structure.

    The same instance is attached to every structure it produces, which is
    what lets the nonparametric bootstrap call :meth:`refit` on resamples.
    """

    treatment: str
    mediators: tuple[str, ...]
    outcome: str
    covariates: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if isinstance(self.mediators, str):
            object.__setattr__(self, "mediators", (self.mediators,))
        else:
            object.__setattr__(self, "mediators", tuple(self.mediators))
        object.__setattr__(self, "covariates", tuple(self.covariates or ()))
        if not self.mediators:
            raise ExtractionError("At least one mediator is required")
        names = [self.treatment, *self.mediators, self.outcome]
        if len(set(names)) != len(names):
            raise ExtractionError("Treatment, mediators and outcome must be distinct variables")

    @property
    def variables(self) -> list[str]:
        return [self.treatment, *self.mediators, self.outcome, *self.covariates]

    def model_specs(self) -> list[tuple[str, list[str]]]:
        """``(response, predictors)`` for each mediator model, then the outcome model."""
        specs = []
        for position, mediator in enumerate(self.mediators):
            predictors = [self.treatment, *self.mediators[:position], *self.covariates]
            specs.append((mediator, predictors))
        specs.append((self.outcome, [self.treatment, *self.mediators, *self.covariates]))
        return specs

    def model_frame(self, data: pd.DataFrame) -> pd.DataFrame:
        """Model columns of ``data`` with incomplete rows dropped, as the fits see them."""
        if not isinstance(data, pd.DataFrame):
            raise ExtractionError("data must be a pandas DataFrame")
        _require_columns(data, self.variables, context="data")
        return data.loc[:, self.variables].dropna().reset_index(drop=True)

    def fit(self, data: pd.DataFrame) -> MediationStructure:
        frame = self.model_frame(data)
        fits = [fit_linear_model(frame, response, predictors)
                for response, predictors in self.model_specs()]
        return extract_mediation(
            fits[:-1],
            fits[-1],
            self.treatment,
            self.mediators,
            self.outcome,
            data=frame,
            covariates=self.covariates,
            extractor=self,
        )

    def extract(
        self,
        mediator_models: LinearModelFit | Sequence[LinearModelFit],
        outcome_model: LinearModelFit,
        *,
        data: pd.DataFrame | None = None,
    ) -> MediationStructure:
        """Build a structure from models fitted elsewhere with this layout.

        ``data`` is reduced to the complete cases of the model columns, the
        rows the models were fitted on.
        """
        if data is not None:
            data = self.model_frame(data)
        return extract_mediation(
            mediator_models,
            outcome_model,
            self.treatment,
            self.mediators,
            self.outcome,
            data=data,
            covariates=self.covariates,
            extractor=self,
        )

    def refit(self, data: pd.DataFrame) -> MediationStructure:
        return self.fit(data)


def fit_mediation(
    data: pd.DataFrame,
    treatment: str,
    mediator: str | Sequence[str],
    outcome: str,
    covariates: Sequence[str] | None = None,
) -> MediationStructure:
    """Fit the mediator and outcome models on ``data`` and extract their structure.

    ``mediator`` may be a sequence for serial mediation (causal order).
    """
    extractor = OLSExtractor(
        treatment=treatment,
        mediators=mediator,
        outcome=outcome,
        covariates=tuple(covariates or ()),
    )
    return extractor.fit(data)
