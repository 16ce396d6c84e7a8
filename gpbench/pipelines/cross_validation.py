"""
Repeated random train/test cross-validation of prediction accuracy

Each replicate masks a random subset of phenotypes, refits the model and
scores the held-out individuals by the Pearson correlation between
observed and predicted values. Replicate seeds come from a
``numpy.random.SeedSequence`` so that a master seed fixes every split.
"""

import concurrent.futures
import json
import time
import numpy as np
from pathlib import Path
from typing import List, Optional, Union, Dict

from ..utils.data_types import CVResults, ReplicateOutcome, PreparedData
from ..utils.stats import pearson_correlation
from ..models.errors import FitError
from ..models.specs import make_model, parse_model_kind, CV_MODELS

DEFAULT_PERC_TEST = 0.3
DEFAULT_N_REP = 10
DEFAULT_CV_N_ITER = 5000
DEFAULT_CV_BURN_IN = 1000
DEFAULT_THIN = 5
DEFAULT_MASTER_SEED = 12345

ARTIFACT_TEMPLATE = "CV_{model}.npz"
# Fewest phenotyped training individuals any engine accepts
MIN_TRAINING_INDIVIDUALS = 2


def replicate_seeds(master_seed: int, n_rep: int) -> List[int]:
    """One 32-bit seed per replicate, spawned from ``master_seed``"""
    if n_rep < 1:
        raise ValueError("n_rep must be at least 1")
    children = np.random.SeedSequence(master_seed).spawn(n_rep)
    return [int(child.generate_state(1, dtype=np.uint32)[0]) for child in children]


def n_test_individuals(perc_test: float, n: int) -> int:
    """Size of the held-out set, round(perc_test × n)"""
    if not 0.0 < perc_test < 1.0:
        raise ValueError("perc_test must be between 0 and 1 (exclusive)")
    if n < 1:
        raise ValueError("n must be positive")
    return int(min(n, max(0, round(perc_test * n))))


def check_training_size(perc_test: float, n: int) -> int:
    """Validate that a split leaves enough individuals to fit on

    Returns:
        Number of held-out individuals

    Raises:
        ValueError: If fewer than MIN_TRAINING_INDIVIDUALS would remain for training
    """
    n_test = n_test_individuals(perc_test, n)
    if n - n_test < MIN_TRAINING_INDIVIDUALS:
        raise ValueError(
            f"perc_test={perc_test} holds out {n_test} of n={n} individuals, leaving "
            f"{n - n_test} for training (need at least {MIN_TRAINING_INDIVIDUALS})"
        )
    return n_test


def sample_test_indices(rng: np.random.Generator, n: int, n_test: int) -> np.ndarray:
    """Sorted uniform random subset of 0..n-1 without replacement"""
    return np.sort(rng.choice(n, size=n_test, replace=False))


def artifact_path(model_name: str, output_dir: Union[str, Path]) -> Path:
    return Path(output_dir) / ARTIFACT_TEMPLATE.format(model=model_name)

def _replicate_streams(seed: int):
    """Independent split generator and sampler seed for one replicate"""
    split_seq, fit_seq = np.random.SeedSequence(seed).spawn(2)
    fit_seed = int(fit_seq.generate_state(1, dtype=np.uint32)[0])
    return np.random.default_rng(split_seq), fit_seed



def run_replicate(model, y: np.ndarray, seed: int, perc_test: float = DEFAULT_PERC_TEST) -> ReplicateOutcome:
    """Fit one train/test split and score the held-out individuals

    The split and the model fit draw from separate streams derived from
    ``seed``.

    Raises:
        FitError: If too few phenotypes remain for training, or the fit fails
            or returns a malformed prediction vector
    """
    y = np.asarray(y, dtype=np.float64)
    n = y.shape[0]
    rng, fit_seed = _replicate_streams(seed)
    test_idx = sample_test_indices(rng, n, n_test_individuals(perc_test, n))

    y_train = y.copy()
    y_train[test_idx] = np.nan
    n_train = int(np.isfinite(y_train).sum())
    if n_train < MIN_TRAINING_INDIVIDUALS:
        raise FitError(f"Only {n_train} phenotyped individuals left for training")

    fit = model.fit(y_train, seed=fit_seed)
    yhat = np.asarray(fit.yhat, dtype=np.float64).ravel()
    if yhat.shape[0] != n:
        raise FitError(f"Model returned {yhat.shape[0]} predictions for {n} individuals")
    if not np.all(np.isfinite(yhat[test_idx])):
        raise FitError("Model returned non-finite predictions for held-out individuals")

    accuracy = pearson_correlation(y[test_idx], yhat[test_idx])
    return ReplicateOutcome(seed=seed, test_indices=test_idx, accuracy=accuracy)


def GPB_CrossValidation(model,
                        y: np.ndarray,
                        perc_test: float = DEFAULT_PERC_TEST,
                        n_rep: int = DEFAULT_N_REP,
                        master_seed: int = DEFAULT_MASTER_SEED,
                        model_name: Optional[str] = None,
                        verbose: bool = True) -> CVResults:
    """Repeated random cross-validation of one model

    A replicate whose fit fails, or whose held-out accuracy is undefined
    (fewer than two scored individuals, or constant values), is reported,
    recorded as NaN and listed in ``failed_replicates``; the remaining
    replicates still run.

    Raises:
        ValueError: If ``perc_test`` leaves too few individuals for training

    Args:
        model: Model configuration exposing ``fit(y, seed)``
        y: Phenotype vector (n,)
        perc_test: Fraction of individuals held out per replicate
        n_rep: Number of replicates
        master_seed: Seed from which every replicate seed is derived
        model_name: Label for the results (default: the model's kind)
        verbose: Print per-replicate accuracy

    Returns:
        CVResults with accuracies ordered by replicate
    """
    if model_name is None:
        model_name = model.kind.value
    n = len(y)
    n_test = check_training_size(perc_test, n)
    seeds = replicate_seeds(master_seed, n_rep)

    if verbose:
        print(f"Cross-validation for {model_name}: {n_rep} replicates, "
              f"{n_test} of {n} individuals held out")

    accuracies = []
    test_sets = []
    failed = []
    for rep, seed in enumerate(seeds, start=1):
        start = time.time()
        try:
            outcome = run_replicate(model, y, seed, perc_test=perc_test)
        except (FitError, np.linalg.LinAlgError) as exc:
            print(f"   {model_name} replicate {rep} failed: {exc}")
            failed.append(rep)
            accuracies.append(np.nan)
            test_sets.append(sample_test_indices(_replicate_streams(seed)[0], n, n_test))
            continue
        if not np.isfinite(outcome.accuracy):
            print(f"   {model_name} replicate {rep} failed: accuracy undefined for "
                  f"held-out individuals")
            failed.append(rep)
            accuracies.append(np.nan)
            test_sets.append(outcome.test_indices)
            continue
        accuracies.append(outcome.accuracy)
        test_sets.append(outcome.test_indices)
        if verbose:
            print(f"   {model_name} replicate {rep}/{n_rep}: r = {outcome.accuracy:.4f} "
                  f"({time.time() - start:.2f}s)")

    return CVResults(
        model_name=model_name,
        accuracies=accuracies,
        seeds=seeds,
        test_indices=test_sets,
        failed_replicates=failed,
        perc_test=perc_test,
    )


def save_cv_results(results: CVResults, output_dir: Union[str, Path]) -> Path:
    """Persist one model's replicate accuracies as ``CV_{model}.npz``"""
    path = artifact_path(results.model_name, output_dir)
    path.parent.mkdir(parents=True, exist_ok=True)
    metadata = {
        'model_name': results.model_name,
        'perc_test': results.perc_test,
        'n_replicates': results.n_replicates,
        'failed_replicates': results.failed_replicates,
    }
    arrays = {
        'accuracies': results.accuracies,
        'seeds': results.seeds,
        'metadata': np.array(json.dumps(metadata)),
    }
    if results.test_indices and len(results.test_indices) == results.n_replicates:
        lengths = {len(idx) for idx in results.test_indices}
        if len(lengths) == 1:
            arrays['test_indices'] = np.vstack(results.test_indices).astype(np.int64)
    np.savez(path, **arrays)
    return path


def load_cv_results(model_name: str, output_dir: Union[str, Path]) -> CVResults:
    """Reload a model's artifact written by :func:`save_cv_results`

    Raises:
        FileNotFoundError: If the artifact does not exist
    """
    path = artifact_path(model_name, output_dir)
    if not path.exists():
        raise FileNotFoundError(f"No cross-validation results for {model_name} at {path}")
    with np.load(path, allow_pickle=False) as archive:
        metadata = json.loads(str(archive['metadata']))
        test_indices = list(archive['test_indices']) if 'test_indices' in archive else None
        return CVResults(
            model_name=metadata.get('model_name', model_name),
            accuracies=archive['accuracies'],
            seeds=archive['seeds'],
            test_indices=test_indices,
            failed_replicates=metadata.get('failed_replicates', []),
            perc_test=metadata.get('perc_test', np.nan),
        )


def _run_model_cv(model_name, data, perc_test, n_rep, n_iter, burn_in, thin, master_seed, output_dir):
    """Worker function to cross-validate a single model in a separate process."""
    model = make_model(model_name, data, n_iter=n_iter, burn_in=burn_in, thin=thin)
    results = GPB_CrossValidation(model, data.y, perc_test=perc_test, n_rep=n_rep,
                                  master_seed=master_seed, verbose=False)
    path = save_cv_results(results, output_dir)
    return model_name, results, path


def run_cross_validation(data: PreparedData,
                         output_dir: Union[str, Path],
                         models: Optional[List[str]] = None,
                         perc_test: float = DEFAULT_PERC_TEST,
                         n_rep: int = DEFAULT_N_REP,
                         n_iter: int = DEFAULT_CV_N_ITER,
                         burn_in: int = DEFAULT_CV_BURN_IN,
                         thin: int = DEFAULT_THIN,
                         master_seed: int = DEFAULT_MASTER_SEED,
                         n_jobs: int = 1,
                         verbose: bool = True) -> Dict[str, CVResults]:
    """Cross-validate several models and write one artifact per model

    Every model sees the same replicate splits. With ``n_jobs > 1`` the
    models run in separate worker processes.

    Returns:
        Dict mapping model name to its CVResults (models whose run raised
        are reported and omitted, in both the serial and parallel paths)
    """
    if models is None:
        models = list(CV_MODELS)
    model_names = [parse_model_kind(m).value for m in models]
    # Validate shared parameters before any work starts
    check_training_size(perc_test, data.n)
    replicate_seeds(master_seed, n_rep)

    all_results: Dict[str, CVResults] = {}
    if n_jobs > 1 and len(model_names) > 1:
        if verbose:
            print(f"   Running parallel cross-validation for: {model_names}")
        with concurrent.futures.ProcessPoolExecutor(max_workers=min(n_jobs, len(model_names))) as executor:
            future_to_model = {
                executor.submit(
                    _run_model_cv,
                    name, data, perc_test, n_rep, n_iter, burn_in, thin, master_seed, output_dir
                ): name for name in model_names
            }
            for future in concurrent.futures.as_completed(future_to_model):
                m_name = future_to_model[future]
                try:
                    _, results, path = future.result()
                except Exception as exc:
                    print(f"   {m_name} generated an exception: {exc}")
                    continue
                all_results[m_name] = results
                if verbose:
                    print(f"   {m_name}: mean r = {np.nanmean(results.accuracies):.4f} -> {path}")
        return {name: all_results[name] for name in model_names if name in all_results}

    for name in model_names:
        try:
            model = make_model(name, data, n_iter=n_iter, burn_in=burn_in, thin=thin)
            results = GPB_CrossValidation(model, data.y, perc_test=perc_test, n_rep=n_rep,
                                          master_seed=master_seed, verbose=verbose)
            path = save_cv_results(results, output_dir)
        except Exception as exc:
            print(f"   {name} generated an exception: {exc}")
            continue
        all_results[name] = results
        if verbose:
            print(f"   Saved {name} results to {path}")
    return all_results
