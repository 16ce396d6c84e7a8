import numpy as np
import pytest

from gpbench.data.simulate import simulate_dataset
from gpbench.data.loaders import prepare_data
from gpbench.models import specs
from gpbench.models.specs import (
    ModelKind, GBLUPModel, RKHSModel, BRRModel, BayesLassoModel, BayesBModel, make_model
)


@pytest.fixture(scope="module")
def data():
    genotype_df, phenotype_df = simulate_dataset(n=40, p=60, n_env=2, h2=0.5, seed=21)
    return prepare_data(genotype_df.set_index("ID"), phenotype_df, "E2")


@pytest.mark.parametrize(
    "name,cls,input_attr",
    [
        ("GBLUP", GBLUPModel, "K"),
        ("RKHS", RKHSModel, "K"),
        ("BRR", BRRModel, "X"),
        ("BL", BayesLassoModel, "X"),
        ("BayesB", BayesBModel, "X"),
    ],
)
def test_make_model_dispatches_each_kind(data, name, cls, input_attr) -> None:
    model = make_model(name, data, n_iter=200, burn_in=50, thin=2)

    assert isinstance(model, cls)
    assert model.kind.value == name
    expected = data.G if input_attr == "K" else data.M
    assert getattr(model, input_attr) is expected


def test_sampled_models_carry_chain_settings(data) -> None:
    model = make_model(ModelKind.BL, data, n_iter=200, burn_in=50, thin=2)
    assert (model.n_iter, model.burn_in, model.thin) == (200, 50, 2)
    assert not hasattr(make_model("GBLUP", data), "n_iter")


def test_parse_model_kind_is_case_insensitive() -> None:
    assert specs.parse_model_kind("bayesb") is ModelKind.BAYESB
    assert specs.parse_model_kind("rkhs") is ModelKind.RKHS
    assert specs.parse_model_kind(ModelKind.BRR) is ModelKind.BRR
    with pytest.raises(ValueError, match="Unknown model"):
        specs.parse_model_kind("BayesC")


def test_model_lists() -> None:
    assert specs.ALL_MODELS == ["GBLUP", "RKHS", "BRR", "BL", "BayesB"]
    assert specs.CV_MODELS == ["RKHS", "BRR", "BL", "BayesB"]


@pytest.mark.parametrize("name", ["GBLUP", "RKHS", "BRR", "BL", "BayesB"])
def test_every_model_fits_with_missing_values(data, name) -> None:
    y = data.y.copy()
    y[:5] = np.nan
    model = make_model(name, data, n_iter=200, burn_in=50, thin=2)

    fit = model.fit(y, seed=8)

    assert fit.name == name
    assert fit.yhat.shape == (data.n,)
    assert np.all(np.isfinite(fit.yhat))
    assert np.isfinite(fit.components.var_u)
    assert np.isfinite(fit.components.var_e)
