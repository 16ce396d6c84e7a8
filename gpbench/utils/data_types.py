"""
Core data structures for the gpbench package
"""

import numpy as np
import pandas as pd
from dataclasses import dataclass, field
from typing import Optional, Union, Tuple, Dict, List, Any
from pathlib import Path

from .stats import heritability

MISSING_GENOTYPE = -9


def impute_major_genotype_inplace(geno: np.ndarray, missing_value: int = MISSING_GENOTYPE) -> np.ndarray:
    """Replace missing genotype calls with the per-marker major genotype.

    Missing calls are either the ``missing_value`` sentinel or NaN. Markers
    with no observed call are filled with 0.

    Returns:
        Array of the major genotype used for each marker
    """
    n_markers = geno.shape[1]
    major = np.zeros(n_markers, dtype=np.float64)
    if geno.size == 0:
        return major

    if np.issubdtype(geno.dtype, np.floating):
        missing_mask = (geno == missing_value) | np.isnan(geno)
    else:
        missing_mask = geno == missing_value

    for j in range(n_markers):
        column_mask = missing_mask[:, j]
        observed = geno[~column_mask, j]
        if observed.size == 0:
            fill_value = 0
        else:
            values, counts = np.unique(observed, return_counts=True)
            fill_value = values[np.argmax(counts)]
        major[j] = fill_value
        if column_mask.any():
            geno[column_mask, j] = fill_value
    return major


class GenotypeMatrix:
    """Genotype dosage matrix (individuals × markers)

    Missing calls are imputed by the major genotype on construction so the
    matrix handed to downstream code is always complete.
    """

    def __init__(self, data: Union[np.ndarray, pd.DataFrame],
                 marker_names: Optional[List[str]] = None,
                 impute: bool = True):
        if isinstance(data, pd.DataFrame):
            if marker_names is None:
                marker_names = [str(c) for c in data.columns]
            data = data.to_numpy()
        if not isinstance(data, np.ndarray):
            raise ValueError("Data must be array or DataFrame")
        if data.ndim != 2:
            raise ValueError(f"Genotype matrix must be 2D, got {data.ndim}D")

        self._data = np.array(data, dtype=np.float64, copy=True)
        self._major_genotypes = None
        if impute:
            self._major_genotypes = impute_major_genotype_inplace(self._data)

        if marker_names is None:
            marker_names = [f"M{j + 1}" for j in range(self._data.shape[1])]
        if len(marker_names) != self._data.shape[1]:
            raise ValueError(
                f"Got {len(marker_names)} marker names for {self._data.shape[1]} markers"
            )
        self.marker_names = list(marker_names)

    @property
    def shape(self) -> Tuple[int, int]:
        """Matrix shape (n_individuals, n_markers)"""
        return self._data.shape

    @property
    def n_individuals(self) -> int:
        """Number of individuals"""
        return self.shape[0]

    @property
    def n_markers(self) -> int:
        """Number of markers"""
        return self.shape[1]

    @property
    def major_genotypes(self) -> Optional[np.ndarray]:
        """Major genotype used to impute each marker"""
        return self._major_genotypes

    def __getitem__(self, key):
        """Support array indexing"""
        return self._data[key]

    def subset_individuals(self, indices: Union[np.ndarray, list]) -> "GenotypeMatrix":
        """Return a GenotypeMatrix restricted to a subset of individuals."""
        indexer = np.asarray(indices)
        if indexer.dtype != bool:
            indexer = indexer.astype(int)
        return GenotypeMatrix(self._data[indexer, :], marker_names=self.marker_names, impute=False)

    def to_numpy(self) -> np.ndarray:
        """Convert to numpy array"""
        return self._data.copy()


class KinshipMatrix:
    """Genomic relationship matrix with validation

    Must be a square symmetric matrix.
    """

    def __init__(self, data: np.ndarray):
        if not isinstance(data, np.ndarray):
            raise ValueError("Data must be a numpy array")
        self._data = np.array(data, dtype=np.float64, copy=True)

        if self._data.ndim != 2:
            raise ValueError("Kinship matrix must be 2D")
        if self._data.shape[0] != self._data.shape[1]:
            raise ValueError("Kinship matrix must be square")
        if not np.allclose(self._data, self._data.T, atol=1e-8):
            raise ValueError("Kinship matrix must be symmetric")

        self.n = self._data.shape[0]

    @property
    def shape(self) -> Tuple[int, int]:
        """Matrix shape"""
        return self._data.shape

    def __getitem__(self, key):
        """Support array indexing"""
        return self._data[key]

    def to_numpy(self) -> np.ndarray:
        """Convert to numpy array"""
        return self._data.copy()

    def eigendecomposition(self) -> Tuple[np.ndarray, np.ndarray]:
        """Eigenvalues and eigenvectors sorted in descending order"""
        eigenvals, eigenvecs = np.linalg.eigh(self._data)
        order = np.argsort(eigenvals)[::-1]
        return eigenvals[order], eigenvecs[:, order]


@dataclass
class PreparedData:
    """Aligned inputs for a single-trait analysis.

    ``ids`` fixes the row order shared by ``y``, ``X``, ``M`` and ``G``.
    """

    ids: List[str]
    trait: str
    y: np.ndarray
    X: np.ndarray
    M: np.ndarray
    G: np.ndarray

    @property
    def n(self) -> int:
        return self.y.shape[0]

    @property
    def p(self) -> int:
        return self.M.shape[1]


@dataclass
class VarianceComponents:
    """Variance components of a single model fit.

    Fields that do not apply to a model stay NaN: ``lambda_`` is only
    meaningful for the Bayesian LASSO, ``dfb`` and ``Sb`` only for BayesB.
    """

    var_u: float = np.nan
    var_e: float = np.nan
    lambda_: float = np.nan
    dfb: float = np.nan
    Sb: float = np.nan

    @property
    def h2(self) -> float:
        """Heritability varU / (varU + varE), NaN when undefined"""
        return heritability(self.var_u, self.var_e)

    def to_series(self, name: Optional[str] = None) -> pd.Series:
        return pd.Series(
            {
                'varU': self.var_u,
                'varE': self.var_e,
                'lambda': self.lambda_,
                'dfb': self.dfb,
                'Sb': self.Sb,
                'H2': self.h2,
            },
            name=name,
            dtype=np.float64,
        )


@dataclass
class ModelFit:
    """Output of fitting one model configuration."""

    name: str
    components: VarianceComponents
    yhat: np.ndarray
    n_kept_samples: int = 0
    details: Dict[str, Any] = field(default_factory=dict)


@dataclass
class ReplicateOutcome:
    """One cross-validation replicate."""

    seed: int
    test_indices: np.ndarray
    accuracy: float


class CVResults:
    """Container for the cross-validation replicates of one model"""

    def __init__(self,
                 model_name: str,
                 accuracies: Union[np.ndarray, List[float]],
                 seeds: Union[np.ndarray, List[int]],
                 test_indices: Optional[List[np.ndarray]] = None,
                 failed_replicates: Optional[List[int]] = None,
                 perc_test: float = np.nan):
        accuracies = np.asarray(accuracies, dtype=np.float64)
        seeds = np.asarray(seeds, dtype=np.int64)
        if accuracies.shape != seeds.shape:
            raise ValueError("Accuracies and seeds must have the same length")

        self.model_name = model_name
        self.accuracies = accuracies
        self.seeds = seeds
        self.test_indices = list(test_indices) if test_indices is not None else []
        self.failed_replicates = list(failed_replicates or [])
        self.perc_test = float(perc_test)

    @property
    def n_replicates(self) -> int:
        """Number of replicates"""
        return len(self.accuracies)


@dataclass
class ArtifactLookup:
    """Result of looking up a persisted cross-validation artifact.

    Either present with its accuracies, or absent with the path that was
    searched.
    """

    model_name: str
    path: Path
    results: Optional[CVResults] = None

    @property
    def present(self) -> bool:
        return self.results is not None
