"""
G-BLUP via REML on the eigen-decomposed relationship matrix

The variance components are found by Brent's method on heritability,
h² ∈ (0, 1), with the restricted likelihood evaluated in eigenspace where
the phenotypic covariance is diagonal.
"""

import numpy as np
from typing import Optional, Union, Tuple
from scipy import optimize
import warnings

from ..utils.data_types import KinshipMatrix, ModelFit, VarianceComponents
from .errors import FitError

EIGENVALUE_FLOOR = 1e-6


def _solve_safe(mat: np.ndarray, vec: np.ndarray) -> np.ndarray:
    try:
        return np.linalg.solve(mat, vec)
    except np.linalg.LinAlgError:
        return np.linalg.pinv(mat) @ vec


def estimate_variance_components_brent(y: np.ndarray,
                                       X: np.ndarray,
                                       eigenvals: np.ndarray,
                                       verbose: bool = False) -> Tuple[float, float, float]:
    """REML variance component estimation

    Args:
        y: Transformed phenotype vector (MUST be in eigenspace U'y)
        X: Transformed covariate matrix (MUST be in eigenspace U'X)
        eigenvals: Eigenvalues of the relationship matrix
        verbose: Print optimization progress

    Returns:
        Tuple (delta_hat, vg_hat, ve_hat) where delta = ve/vg

    Raises:
        FitError: If the optimizer does not converge or the solution is
            not finite
    """
    def neg_reml_likelihood(h2):
        return _calculate_neg_reml_likelihood(h2, y, X, eigenvals)

    with warnings.catch_warnings():
        warnings.simplefilter("ignore")
        result = optimize.minimize_scalar(
            neg_reml_likelihood,
            bounds=(0.001, 0.999),
            method='bounded',
            options={'xatol': 1.22e-4, 'maxiter': 500}
        )

    if not result.success or not np.isfinite(result.fun):
        raise FitError(f"REML optimization did not converge: {result.message}")
    h2_hat = float(result.x)

    n = len(y)
    p = X.shape[1]
    eig_safe = np.maximum(eigenvals, EIGENVALUE_FLOOR)

    V0b = h2_hat * eig_safe + (1.0 - h2_hat)
    V0bi = 1.0 / V0b
    ViX = V0bi[:, np.newaxis] * X
    XViX = X.T @ ViX
    beta = _solve_safe(XViX, ViX.T @ y)
    P0y = V0bi * y - ViX @ beta
    yP0y = float(np.dot(P0y, y))

    df = n - p
    v_base = yP0y / max(1, df)
    ve_hat = (1.0 - h2_hat) * v_base
    vg_hat = h2_hat * v_base
    if not (np.isfinite(vg_hat) and np.isfinite(ve_hat)) or vg_hat <= 0:
        raise FitError(f"REML produced invalid variance components (vg={vg_hat}, ve={ve_hat})")

    delta_hat = ve_hat / vg_hat

    if verbose:
        print(f"Brent optimization: h² = {h2_hat:.6f}, neg-log-likelihood = {result.fun:.6f}")
        print(f"Estimated vg = {vg_hat:.6f}, ve = {ve_hat:.6f}")

    return delta_hat, vg_hat, ve_hat


def _calculate_neg_reml_likelihood(h2: float, y: np.ndarray, X: np.ndarray, eigenvals: np.ndarray) -> float:
    """Calculate REML NEGATIVE log-likelihood for a given heritability h2

    Args:
        h2: Heritability (variance explained by kinship)
        y: Transformed phenotype vector (U'y)
        X: Transformed covariate matrix (U'X)
        eigenvals: Eigenvalues of the relationship matrix

    Returns:
        Negative REML log-likelihood (to minimize)
    """
    n = len(y)
    p = X.shape[1]
    eig_safe = np.maximum(eigenvals, EIGENVALUE_FLOOR)

    # Variance in eigenspace: V₀ᵦ = h²λ + (1-h²)
    V0b = h2 * eig_safe + (1.0 - h2)
    if np.any(V0b <= 0):
        return np.inf
    V0bi = 1.0 / V0b

    ViX = V0bi[:, np.newaxis] * X
    XViX = X.T @ ViX

    sign, logdet_XViX = np.linalg.slogdet(XViX)
    if sign <= 0:
        return np.inf
    try:
        XViX_inv = np.linalg.solve(XViX, np.eye(XViX.shape[0]))
    except np.linalg.LinAlgError:
        return np.inf

    # P₀y = V⁻¹y - V⁻¹X(X'V⁻¹X)⁻¹X'V⁻¹y
    P0y = V0bi * y - ViX @ (XViX_inv @ (ViX.T @ y))
    yP0y = np.dot(P0y, y)
    if yP0y <= 0:
        return np.inf

    df = n - p
    # 0.5 * [sum(log V₀ᵦ) + log|(X'V⁻¹X)⁻¹| + df*log(y'P₀y) + df*(1-log df)]
    neg_loglik = 0.5 * (np.sum(np.log(V0b)) - logdet_XViX +
                        df * np.log(yP0y) + df * (1.0 - np.log(df)))
    return float(neg_loglik)


def GPB_GBLUP(y: np.ndarray,
              K: Union[KinshipMatrix, np.ndarray],
              X: Optional[np.ndarray] = None,
              name: str = "GBLUP",
              verbose: bool = False) -> ModelFit:
    """Fit G-BLUP by REML and predict genetic values for every individual

    Individuals with a missing phenotype (NaN) take no part in the variance
    component estimation but still receive predictions through their
    relationships with phenotyped individuals.

    Args:
        y: Phenotype vector (n,), NaN for missing
        K: Relationship matrix (n × n)
        X: Fixed-effect design matrix (n × q); intercept only if None
        name: Label stored on the returned fit
        verbose: Print progress information

    Returns:
        ModelFit with varU/varE components, predictions X·beta + u for all
        individuals, and ``details`` holding beta, u and delta
    """
    y = np.asarray(y, dtype=np.float64).ravel()
    if isinstance(K, KinshipMatrix):
        K = K.to_numpy()
    K = np.asarray(K, dtype=np.float64)
    n = y.shape[0]

    if K.shape != (n, n):
        raise ValueError(f"Relationship matrix shape {K.shape} does not match {n} individuals")
    if X is None:
        X = np.ones((n, 1), dtype=np.float64)
    X = np.asarray(X, dtype=np.float64)
    if X.ndim == 1:
        X = X.reshape(-1, 1)
    if X.shape[0] != n:
        raise ValueError(f"Design matrix has {X.shape[0]} rows, expected {n}")

    obs = np.flatnonzero(np.isfinite(y))
    if obs.size <= X.shape[1]:
        raise ValueError(f"Need more than {X.shape[1]} observed phenotypes, got {obs.size}")

    if verbose:
        print(f"Fitting G-BLUP on {obs.size} of {n} individuals")

    y_obs = y[obs]
    X_obs = X[obs]
    K11 = K[np.ix_(obs, obs)]
    K11 = (K11 + K11.T) / 2.0

    eigenvals, eigenvecs = np.linalg.eigh(K11)
    order = np.argsort(eigenvals)[::-1]
    eigenvals = eigenvals[order]
    eigenvecs = eigenvecs[:, order]

    y_t = eigenvecs.T @ y_obs
    X_t = eigenvecs.T @ X_obs
    delta, vg, ve = estimate_variance_components_brent(y_t, X_t, eigenvals, verbose=verbose)
    delta = max(delta, 1e-6)

    w = 1.0 / (np.maximum(eigenvals, EIGENVALUE_FLOOR) + delta)
    XViX = X_t.T @ (w[:, None] * X_t)
    XViY = X_t.T @ (w * y_t)
    beta = _solve_safe(XViX, XViY)
    resid = y_obs - X_obs @ beta

    alpha = _solve_safe(K11 + np.eye(obs.size) * delta, resid)
    u_hat = K[:, obs] @ alpha
    yhat = X @ beta + u_hat

    if not np.all(np.isfinite(yhat)):
        raise FitError("G-BLUP produced non-finite predictions")

    return ModelFit(
        name=name,
        components=VarianceComponents(var_u=vg, var_e=ve),
        yhat=yhat,
        details={'beta': beta, 'u': u_hat, 'delta': delta},
    )
