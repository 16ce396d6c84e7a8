import matplotlib

matplotlib.use("Agg")

import matplotlib.pyplot as plt
import numpy as np
import pandas as pd
import pytest

from gpbench.pipelines.cross_validation import save_cv_results
from gpbench.utils.data_types import CVResults
from gpbench.visualization import accuracy


def _write_results(output_dir, name, values):
    save_cv_results(CVResults(model_name=name, accuracies=values, seeds=list(range(len(values)))), output_dir)


def test_collect_cv_results_warns_and_excludes_missing(tmp_path) -> None:
    _write_results(tmp_path, "RKHS", [0.5, 0.6, 0.7])
    _write_results(tmp_path, "BRR", [0.4, 0.5, 0.6])

    with pytest.warns(UserWarning, match="BL"):
        table, missing = accuracy.collect_cv_results(["RKHS", "BRR", "BL"], tmp_path)

    assert missing == ["BL"]
    assert list(table.columns) == ["RKHS", "BRR"]
    assert table.index.tolist() == [1, 2, 3]
    np.testing.assert_allclose(table["RKHS"], [0.5, 0.6, 0.7])


def test_lookup_cv_artifact_present_and_absent(tmp_path) -> None:
    _write_results(tmp_path, "BayesB", [0.3])

    present = accuracy.lookup_cv_artifact("BayesB", tmp_path)
    absent = accuracy.lookup_cv_artifact("BL", tmp_path)

    assert present.present and present.results.n_replicates == 1
    assert not absent.present
    assert absent.path == tmp_path / "CV_BL.npz"


def test_summarize_accuracy_mean_and_sample_sd() -> None:
    table = pd.DataFrame({"A": [0.2, 0.4, 0.6], "B": [0.5, np.nan, 0.7]})

    summary = accuracy.summarize_accuracy(table, decimals=3)

    assert summary.index.tolist() == ["mean", "sd"]
    assert summary.loc["mean", "A"] == pytest.approx(0.4)
    assert summary.loc["sd", "A"] == pytest.approx(0.2)
    assert summary.loc["mean", "B"] == pytest.approx(0.6)
    assert summary.loc["sd", "B"] == pytest.approx(0.141)


def test_create_accuracy_boxplot_returns_figure() -> None:
    table = pd.DataFrame({"RKHS": [0.5, 0.6], "BL": [0.4, 0.45]})
    table.index.name = "Replicate"

    fig = accuracy.create_accuracy_boxplot(table, title="Comparison")

    assert isinstance(fig, matplotlib.figure.Figure)
    fig.canvas.draw()
    ax = fig.axes[0]
    assert ax.get_title() == "Comparison"
    assert [t.get_text() for t in ax.get_xticklabels()] == ["RKHS", "BL"]
    plt.close(fig)


def test_create_accuracy_boxplot_handles_empty_table() -> None:
    fig = accuracy.create_accuracy_boxplot(pd.DataFrame({"RKHS": [np.nan]}))
    assert isinstance(fig, matplotlib.figure.Figure)
    plt.close(fig)


def test_report_completes_with_missing_model(tmp_path) -> None:
    _write_results(tmp_path, "RKHS", [0.5, 0.6, 0.55])
    _write_results(tmp_path, "BRR", [0.45, 0.5, 0.52])
    _write_results(tmp_path, "BayesB", [0.48, 0.51, 0.5])

    with pytest.warns(UserWarning, match="BL"):
        report = accuracy.GPB_Report(["RKHS", "BRR", "BL", "BayesB"], tmp_path, dpi=50, verbose=False)

    assert report["missing"] == ["BL"]
    assert list(report["summary"].columns) == ["RKHS", "BRR", "BayesB"]
    assert (tmp_path / "accuracy_summary.csv").exists()
    assert (tmp_path / "accuracy_boxplot.png").exists()
    assert len(report["files_created"]) == 2
    plt.close(report["plots"]["boxplot"])


def test_report_with_no_results_is_empty(tmp_path) -> None:
    with pytest.warns(UserWarning):
        report = accuracy.GPB_Report(["RKHS"], tmp_path, verbose=False)

    assert report["summary"] is None
    assert report["files_created"] == []
