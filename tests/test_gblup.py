import numpy as np
import pytest

from gpbench.data.simulate import simulate_dataset
from gpbench.data.loaders import prepare_data
from gpbench.models import GPB_GBLUP, FitError
from gpbench.models.gblup import estimate_variance_components_brent, _calculate_neg_reml_likelihood


@pytest.fixture(scope="module")
def simulated():
    genotype_df, phenotype_df = simulate_dataset(n=120, p=300, n_env=1, h2=0.6, seed=7)
    return prepare_data(genotype_df.set_index("ID"), phenotype_df, "E1")


def test_gblup_components_and_predictions(simulated) -> None:
    fit = GPB_GBLUP(simulated.y, simulated.G)

    comps = fit.components
    assert comps.var_u > 0 and comps.var_e > 0
    assert 0.0 < comps.h2 < 1.0
    assert np.isnan(comps.lambda_)
    assert fit.yhat.shape == (simulated.n,)
    assert np.corrcoef(fit.yhat, simulated.y)[0, 1] > 0.5


def test_gblup_predicts_individuals_with_missing_phenotype(simulated) -> None:
    y = simulated.y.copy()
    held_out = np.arange(0, simulated.n, 4)
    y[held_out] = np.nan

    fit = GPB_GBLUP(y, simulated.G)

    assert np.all(np.isfinite(fit.yhat))
    # Held-out predictions are informed only by relatives
    assert np.corrcoef(fit.yhat[held_out], simulated.y[held_out])[0, 1] > 0.0


def test_gblup_is_deterministic(simulated) -> None:
    fit_a = GPB_GBLUP(simulated.y, simulated.G)
    fit_b = GPB_GBLUP(simulated.y, simulated.G)
    np.testing.assert_array_equal(fit_a.yhat, fit_b.yhat)
    assert fit_a.components.var_u == fit_b.components.var_u


def test_gblup_validates_shapes(simulated) -> None:
    with pytest.raises(ValueError, match="does not match"):
        GPB_GBLUP(simulated.y[:-1], simulated.G)
    with pytest.raises(ValueError, match="observed"):
        GPB_GBLUP(np.full(simulated.n, np.nan), simulated.G)


def test_reml_likelihood_is_minimized_by_brent() -> None:
    rng = np.random.default_rng(3)
    n = 60
    eigenvals = np.sort(rng.gamma(1.0, 1.0, size=n))[::-1]
    X = rng.normal(size=(n, 1))
    y = rng.normal(size=n) * np.sqrt(0.5 * eigenvals + 0.5)

    delta, vg, ve = estimate_variance_components_brent(y, X, eigenvals)
    h2_hat = vg / (vg + ve)

    assert delta == pytest.approx(ve / vg)
    best = _calculate_neg_reml_likelihood(h2_hat, y, X, eigenvals)
    for h2 in (0.05, 0.25, 0.75, 0.95):
        assert best <= _calculate_neg_reml_likelihood(h2, y, X, eigenvals) + 1e-6


def test_fit_error_is_runtime_error() -> None:
    assert issubclass(FitError, RuntimeError)
