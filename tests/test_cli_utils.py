import sys
import pytest

from gpbench.cli import utils


def test_normalize_models_defaults_and_canonical_names() -> None:
    assert utils.normalize_models("", ["RKHS"]) == ["RKHS"]
    assert utils.normalize_models(" brr, bayesb ,BRR", ["RKHS"]) == ["BRR", "BayesB"]
    with pytest.raises(ValueError):
        utils.normalize_models("BRR,BayesZ", ["RKHS"])


def _run_parse_args(argv):
    orig = sys.argv
    try:
        sys.argv = argv
        return utils.parse_args()
    finally:
        sys.argv = orig


def test_parse_args_defaults(tmp_path) -> None:
    args = _run_parse_args(
        [
            "prog",
            "--phenotype",
            str(tmp_path / "phe.csv"),
            "--genotype",
            str(tmp_path / "geno.csv"),
        ]
    )
    assert args.phenotype.endswith("phe.csv")
    assert args.genotype.endswith("geno.csv")
    assert args.models == ["RKHS", "BRR", "BL", "BayesB"]
    assert args.vc_models == ["GBLUP", "RKHS", "BRR", "BL", "BayesB"]
    assert args.perc_test == 0.3
    assert args.n_rep == 10
    assert (args.n_iter, args.burn_in, args.thin) == (12000, 2000, 5)
    assert (args.cv_n_iter, args.cv_burn_in) == (5000, 1000)
    assert args.seed == 12345
    assert args.trait == 0
    assert args.skip_variance is False and args.skip_cv is False


def test_parse_args_respects_overrides() -> None:
    args = utils.parse_args(
        [
            "--simulate",
            "-o",
            "out",
            "--models",
            "brr,bl",
            "--perc-test",
            "0.2",
            "--n-rep",
            "3",
            "--trait",
            "E2",
            "--n-jobs",
            "2",
            "--skip-variance",
        ]
    )
    assert args.simulate is True
    assert args.outputdir == "out"
    assert args.models == ["BRR", "BL"]
    assert args.perc_test == 0.2
    assert args.n_rep == 3
    assert args.trait == "E2"
    assert args.n_jobs == 2
    assert args.skip_variance is True


@pytest.mark.parametrize(
    "argv",
    [
        ["--phenotype", "p.csv"],
        ["--simulate", "--perc-test", "1.0"],
        ["--simulate", "--models", "BayesZ"],
    ],
)
def test_parse_args_rejects_invalid_input(argv) -> None:
    with pytest.raises(SystemExit):
        utils.parse_args(argv)
