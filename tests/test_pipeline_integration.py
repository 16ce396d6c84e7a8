"""Integration tests for GenomicPredictionPipeline end-to-end workflows."""

from pathlib import Path

import matplotlib

matplotlib.use("Agg")

import numpy as np
import pandas as pd
import pytest

from gpbench.data.simulate import simulate_dataset
from gpbench.pipelines.workflow import GenomicPredictionPipeline
from gpbench.pipelines.variance import GPB_VarianceComponents, COMPONENT_ROWS
from gpbench.data.loaders import prepare_data


@pytest.fixture
def synthetic_files(tmp_path: Path):
    """Write small genotype and phenotype files with shuffled, partially overlapping IDs."""
    genotype_df, phenotype_df = simulate_dataset(n=30, p=80, n_env=2, h2=0.6, seed=42)

    geno_file = tmp_path / "genotypes.csv"
    genotype_df.iloc[::-1].to_csv(geno_file, index=False)

    # Drop two phenotyped individuals and add one without genotypes
    extra = pd.DataFrame({"ID": ["ghost"], "E1": [1.0], "E2": [2.0]})
    pheno = pd.concat([phenotype_df.iloc[2:], extra], ignore_index=True)
    pheno_file = tmp_path / "phenotypes.csv"
    pheno.to_csv(pheno_file, index=False)

    return {"genotype_file": geno_file, "phenotype_file": pheno_file}


def test_variance_component_table_layout() -> None:
    genotype_df, phenotype_df = simulate_dataset(n=40, p=60, n_env=1, h2=0.5, seed=3)
    data = prepare_data(genotype_df.set_index("ID"), phenotype_df, "E1")

    table, fits = GPB_VarianceComponents(data, n_iter=300, burn_in=100, thin=2, return_fits=True, verbose=False)

    assert table.shape == (6, 5)
    assert list(table.index) == COMPONENT_ROWS
    assert list(table.columns) == ["GBLUP", "RKHS", "BRR", "BL", "BayesB"]
    h2 = table.loc["H2"]
    assert ((h2 >= 0) & (h2 <= 1)).all()
    assert np.isfinite(table.loc["lambda", "BL"])
    assert table.loc["lambda"].drop("BL").isna().all()
    assert table.loc[["dfb", "Sb"]].drop(columns="BayesB").isna().all().all()
    assert set(fits) == set(table.columns)


def test_variance_components_are_reproducible() -> None:
    genotype_df, phenotype_df = simulate_dataset(n=30, p=40, n_env=1, seed=5)
    data = prepare_data(genotype_df.set_index("ID"), phenotype_df, "E1")

    kwargs = dict(models=["RKHS", "BayesB"], n_iter=200, burn_in=50, thin=2, seed=12345, verbose=False)
    pd.testing.assert_frame_equal(GPB_VarianceComponents(data, **kwargs), GPB_VarianceComponents(data, **kwargs))


def test_full_pipeline_from_files(synthetic_files, tmp_path: Path) -> None:
    output_dir = tmp_path / "results"
    pipeline = GenomicPredictionPipeline(output_dir=str(output_dir), verbose=False)

    pipeline.load_data(
        phenotype_file=str(synthetic_files["phenotype_file"]),
        genotype_file=str(synthetic_files["genotype_file"]),
    )
    pipeline.align_samples()
    data = pipeline.prepare("E1")

    assert data.n == 28
    assert data.ids == sorted(data.ids)
    assert "ghost" not in data.ids

    table = pipeline.estimate_variance_components(n_iter=200, burn_in=50, thin=2)
    assert table.shape == (6, 5)
    assert (output_dir / "variance_components.csv").exists()

    cv_results = pipeline.run_cross_validation(n_rep=2, n_iter=150, burn_in=50, thin=2)
    assert set(cv_results) == {"RKHS", "BRR", "BL", "BayesB"}
    for name in cv_results:
        assert (output_dir / f"CV_{name}.npz").exists()
        assert cv_results[name].n_replicates == 2

    report = pipeline.report(dpi=50)
    assert report["missing"] == []
    assert list(report["summary"].columns) == ["RKHS", "BRR", "BL", "BayesB"]
    assert (output_dir / "accuracy_boxplot.png").exists()


def test_pipeline_requires_steps_in_order(tmp_path: Path) -> None:
    pipeline = GenomicPredictionPipeline(output_dir=str(tmp_path), verbose=False)

    with pytest.raises(ValueError, match="load_data"):
        pipeline.align_samples()
    with pytest.raises(ValueError, match="prepare"):
        pipeline.estimate_variance_components()
    with pytest.raises(ValueError, match="prepare"):
        pipeline.run_cross_validation()


def test_pipeline_with_simulated_data_reports_missing_model(tmp_path: Path) -> None:
    pipeline = GenomicPredictionPipeline(output_dir=str(tmp_path), verbose=False)
    pipeline.load_simulated(n=25, p=40, n_env=1, seed=1)
    pipeline.align_samples()
    pipeline.prepare(0)
    pipeline.run_cross_validation(models=["BRR"], n_rep=2, n_iter=100, burn_in=20, thin=2)

    with pytest.warns(UserWarning, match="BL"):
        report = pipeline.report(models=["BRR", "BL"], save_plots=False)

    assert report["missing"] == ["BL"]
    assert list(report["table"].columns) == ["BRR"]
