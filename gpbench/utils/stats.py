"""
Statistical utilities for genomic prediction
"""

import numpy as np
from scipy import stats


def heritability(var_u: float, var_e: float) -> float:
    """Genomic heritability varU / (varU + varE)

    Args:
        var_u: Additive genetic variance
        var_e: Residual variance

    Returns:
        Heritability, or NaN when either component is undefined or their
        sum is zero
    """
    if var_u is None or var_e is None:
        return float('nan')
    var_u = float(var_u)
    var_e = float(var_e)
    if not (np.isfinite(var_u) and np.isfinite(var_e)):
        return float('nan')
    total = var_u + var_e
    if total == 0:
        return float('nan')
    return var_u / total


def pearson_correlation(observed: np.ndarray, predicted: np.ndarray) -> float:
    """Pearson correlation between observed and predicted values

    Args:
        observed: True phenotype values
        predicted: Model predictions for the same individuals

    Returns:
        Correlation coefficient; NaN if fewer than two finite pairs or one
        of the vectors is constant
    """
    observed = np.asarray(observed, dtype=np.float64).ravel()
    predicted = np.asarray(predicted, dtype=np.float64).ravel()
    if observed.shape != predicted.shape:
        raise ValueError(
            f"Observed ({observed.size}) and predicted ({predicted.size}) lengths differ"
        )

    valid = np.isfinite(observed) & np.isfinite(predicted)
    if valid.sum() < 2:
        return float('nan')
    x = observed[valid]
    y = predicted[valid]
    if np.std(x) == 0 or np.std(y) == 0:
        return float('nan')
    return float(stats.pearsonr(x, y)[0])


def sample_variance(values: np.ndarray, axis: int = 0) -> np.ndarray:
    """Column variances with the n-1 denominator (matches R's var)"""
    values = np.asarray(values, dtype=np.float64)
    if values.shape[axis] < 2:
        return np.zeros(np.delete(values.shape, axis))
    return np.var(values, axis=axis, ddof=1)
