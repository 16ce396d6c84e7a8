import numpy as np
import pytest

from gpbench.matrix.kinship import GPB_K_Genomic, standardize_markers, validate_kinship_matrix
from gpbench.utils.data_types import GenotypeMatrix, KinshipMatrix


def _random_genotypes(n=12, p=30, seed=1):
    rng = np.random.default_rng(seed)
    return rng.integers(0, 3, size=(n, p)).astype(float)


def test_standardize_markers_zero_mean_unit_sd() -> None:
    geno = _random_genotypes()
    geno[:, 0] = [0, 1] * 6  # guarantee polymorphic

    M = standardize_markers(geno)

    keep = geno.std(axis=0) > 0
    np.testing.assert_allclose(M.mean(axis=0), 0.0, atol=1e-12)
    np.testing.assert_allclose(M[:, keep].std(axis=0, ddof=1), 1.0)


def test_standardize_markers_zeroes_monomorphic_with_warning() -> None:
    geno = _random_genotypes(n=6, p=3)
    geno[:, 1] = 2.0

    with pytest.warns(UserWarning, match="monomorphic"):
        M = standardize_markers(GenotypeMatrix(geno))

    np.testing.assert_array_equal(M[:, 1], np.zeros(6))


def test_standardize_markers_rejects_missing_values() -> None:
    geno = _random_genotypes(n=4, p=2)
    geno[0, 0] = np.nan
    with pytest.raises(ValueError, match="missing"):
        standardize_markers(geno)


def test_genomic_relationship_matches_cross_product_and_batches() -> None:
    M = standardize_markers(_random_genotypes())

    K_full = GPB_K_Genomic(M, verbose=False)
    K_batched = GPB_K_Genomic(M, maxLine=7, verbose=False)

    assert isinstance(K_full, KinshipMatrix)
    np.testing.assert_allclose(K_full.to_numpy(), M @ M.T / M.shape[1])
    np.testing.assert_allclose(K_batched.to_numpy(), K_full.to_numpy())


def test_genomic_relationship_eigen_and_validation() -> None:
    M = standardize_markers(_random_genotypes(n=8, p=40))

    K, eigen = GPB_K_Genomic(M, verbose=False, return_eigen=True)

    vals = eigen["eigenvals"]
    vecs = eigen["eigenvecs"]
    assert np.all(np.diff(vals) <= 1e-12)
    np.testing.assert_allclose(vecs @ np.diag(vals) @ vecs.T, K.to_numpy(), atol=1e-10)

    is_valid, errors = validate_kinship_matrix(K)
    assert is_valid, errors


def test_validate_kinship_matrix_flags_problems() -> None:
    is_valid, errors = validate_kinship_matrix(np.array([[1.0, 2.0], [0.0, 1.0]]))
    assert not is_valid
    assert "Matrix is not symmetric" in errors

    is_valid, errors = validate_kinship_matrix(np.ones((2, 3)))
    assert errors == ["Matrix is not square"]


def test_genomic_relationship_requires_markers() -> None:
    with pytest.raises(ValueError):
        GPB_K_Genomic(np.zeros((3, 0)), verbose=False)
