"""
Genomic relationship matrix computation from standardized markers
"""

import numpy as np
from typing import Union, Tuple
from ..utils.data_types import GenotypeMatrix, KinshipMatrix
import warnings


def standardize_markers(X: Union[GenotypeMatrix, np.ndarray],
                        verbose: bool = False) -> np.ndarray:
    """Center each marker to zero mean and scale it to unit variance

    Uses the sample standard deviation (n-1 denominator). Monomorphic
    markers have no variance to scale; they are centered to zero and
    reported with a warning.

    Args:
        X: Genotype matrix (n_individuals × n_markers)
        verbose: Print progress information

    Returns:
        Standardized marker matrix M with the same shape as X
    """
    if isinstance(X, GenotypeMatrix):
        data = X.to_numpy()
    elif isinstance(X, np.ndarray):
        data = np.array(X, dtype=np.float64, copy=True)
    else:
        raise ValueError("X must be GenotypeMatrix or numpy array")

    if data.ndim != 2:
        raise ValueError("Genotype matrix must be 2D")
    if not np.all(np.isfinite(data)):
        raise ValueError("Genotype matrix contains missing values; impute before standardizing")

    n_individuals = data.shape[0]
    means = data.mean(axis=0)
    if n_individuals > 1:
        sds = data.std(axis=0, ddof=1)
    else:
        sds = np.zeros(data.shape[1])

    M = data - means[np.newaxis, :]
    monomorphic = sds <= 1e-12
    if np.any(monomorphic):
        warnings.warn(
            f"{int(monomorphic.sum())} monomorphic markers have zero variance and were set to 0 after centering"
        )
        M[:, monomorphic] = 0.0
    polymorphic = ~monomorphic
    M[:, polymorphic] /= sds[polymorphic][np.newaxis, :]

    if verbose:
        print(f"Standardized {data.shape[1]} markers for {n_individuals} individuals "
              f"({int(monomorphic.sum())} monomorphic)")
    return M


def GPB_K_Genomic(M: np.ndarray,
                  maxLine: int = 5000,
                  verbose: bool = True,
                  return_eigen: bool = False) -> Union[KinshipMatrix, Tuple[KinshipMatrix, dict]]:
    """Genomic relationship matrix G = M M' / p

    Args:
        M: Standardized marker matrix (n_individuals × n_markers)
        maxLine: Batch size for processing markers
        verbose: Print progress information
        return_eigen: If True, also return the eigendecomposition of G

    Returns:
        KinshipMatrix object or tuple (KinshipMatrix, eigendecomposition_dict)
    """
    if isinstance(M, GenotypeMatrix):
        M = M.to_numpy()
    if not isinstance(M, np.ndarray) or M.ndim != 2:
        raise ValueError("M must be a 2D numpy array")

    n_individuals, n_markers = M.shape
    if n_markers == 0:
        raise ValueError("Cannot compute a relationship matrix without markers")

    if verbose:
        print(f"Calculating genomic relationship matrix for {n_individuals} individuals, {n_markers} markers")

    kin = np.zeros((n_individuals, n_individuals), dtype=np.float64)

    # Accumulate cross products in marker batches to bound memory
    n_batches = (n_markers + maxLine - 1) // maxLine
    for batch_idx in range(n_batches):
        start_marker = batch_idx * maxLine
        end_marker = min(start_marker + maxLine, n_markers)

        if verbose and n_batches > 1:
            print(f"Processing batch {batch_idx + 1}/{n_batches} (markers {start_marker}-{end_marker-1})")

        Z_batch = np.asarray(M[:, start_marker:end_marker], dtype=np.float64)
        kin += Z_batch @ Z_batch.T

    kin /= n_markers
    kin = (kin + kin.T) / 2.0

    if verbose:
        print(f"Relationship matrix complete. Mean diagonal: {np.mean(np.diag(kin)):.6f}")

    kinship_matrix = KinshipMatrix(kin)

    if return_eigen:
        eigenvals, eigenvecs = kinship_matrix.eigendecomposition()
        eigenK = {
            'eigenvals': eigenvals,
            'eigenvecs': eigenvecs
        }
        if verbose:
            print(f"Eigendecomposition complete. Range of eigenvalues: [{eigenvals.min():.6f}, {eigenvals.max():.6f}]")
        return kinship_matrix, eigenK

    return kinship_matrix


def validate_kinship_matrix(K: Union[KinshipMatrix, np.ndarray],
                            tolerance: float = 1e-8) -> Tuple[bool, list]:
    """Validate relationship matrix properties

    Args:
        K: Relationship matrix to validate
        tolerance: Numerical tolerance for checks

    Returns:
        Tuple of (is_valid, list_of_errors)
    """
    errors = []

    if isinstance(K, KinshipMatrix):
        matrix = K.to_numpy()
    else:
        matrix = np.asarray(K, dtype=np.float64)

    if matrix.ndim != 2 or matrix.shape[0] != matrix.shape[1]:
        errors.append("Matrix is not square")
        return False, errors

    if not np.allclose(matrix, matrix.T, atol=tolerance):
        errors.append("Matrix is not symmetric")

    try:
        eigenvals = np.linalg.eigvalsh((matrix + matrix.T) / 2.0)
        scale = max(1.0, float(np.max(np.abs(eigenvals))))
        if np.any(eigenvals < -tolerance * scale * matrix.shape[0]):
            errors.append("Matrix is not positive semi-definite")
    except np.linalg.LinAlgError:
        errors.append("Failed to compute eigenvalues")

    if np.any(np.diag(matrix) < 0):
        errors.append("Some diagonal elements are negative")

    return len(errors) == 0, errors
