from medfit.config.constants import (
    BACKENDS,
    DEFAULT_BACKEND,
    DEFAULT_CI_LEVEL,
    DEFAULT_N_BOOT,
    METHODS,
    SMALL_EPS,
    coef_name,
)


def test_coef_name_joins_response_and_term():
    assert coef_name("M", "X") == "M~X"
    assert coef_name("Y", "(Intercept)") == "Y~(Intercept)"


def test_core_constants_are_reasonable():
    assert DEFAULT_N_BOOT > 0
    assert 0 < DEFAULT_CI_LEVEL < 1
    assert DEFAULT_BACKEND in BACKENDS
    assert set(METHODS) == {"parametric", "nonparametric", "plugin"}
    assert SMALL_EPS < 1e-6
