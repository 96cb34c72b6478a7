"""Mediation model structures and the OLS extractor."""

from .extract import (
    LinearModelFit,
    MediationExtractor,
    OLSExtractor,
    extract_mediation,
    fit_linear_model,
    fit_mediation,
)
from .structure import MediationStructure, chain_product

__all__ = [
    "LinearModelFit",
    "MediationExtractor",
    "MediationStructure",
    "OLSExtractor",
    "chain_product",
    "extract_mediation",
    "fit_linear_model",
    "fit_mediation",
]
