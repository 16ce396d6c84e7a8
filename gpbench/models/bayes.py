"""
Gibbs sampler for Bayesian whole-genome regression

Supports Gaussian ridge (BRR), double-exponential (Bayesian LASSO) and
BayesB spike-and-slab priors on marker effects, plus RKHS regression on a
relationship matrix through its eigen-decomposition. Missing phenotypes
(NaN) do not enter the likelihood but still receive fitted values.

Prior hyperparameters follow the usual R²-based defaults: the prior
expectation of the genetic share of phenotypic variance is ``R2`` and
the scale parameters are set so the prior mode matches it.
"""

import numpy as np
import numba
from typing import Optional, Union, List, Dict

from ..utils.data_types import KinshipMatrix, ModelFit, VarianceComponents
from ..utils.stats import sample_variance
from .errors import FitError

DEFAULT_R2 = 0.5
DEFAULT_DF0 = 5.0
DEFAULT_SHAPE0 = 1.1
DEFAULT_PROB_IN = 0.5
DEFAULT_COUNTS = 10.0


@numba.jit(nopython=True, cache=True)
def _logistic(x):
    if x >= 0.0:
        return 1.0 / (1.0 + np.exp(-x))
    ex = np.exp(x)
    return ex / (1.0 + ex)


@numba.jit(nopython=True, cache=True)
def _sweep_marker_effects(Xt, x2, e, beta, delta, prior_var, var_e,
                          log_odds, z, u, sample_indicator):
    """Single-site Gibbs update of every marker effect (in place)

    ``Xt`` holds markers in rows (p × n_obs, C-contiguous) so each marker
    is a contiguous slice. ``e`` is the current residual and is updated as
    effects change. ``z`` and ``u`` are pre-drawn standard normal and
    uniform variates, one per marker.
    """
    p = Xt.shape[0]
    n = Xt.shape[1]
    for j in range(p):
        b_old = beta[j] * delta[j]
        rhs = 0.0
        for i in range(n):
            rhs += Xt[j, i] * e[i]
        rhs += x2[j] * b_old

        if sample_indicator:
            lo = log_odds + (2.0 * beta[j] * rhs - beta[j] * beta[j] * x2[j]) / (2.0 * var_e)
            if u[j] < _logistic(lo):
                delta[j] = 1.0
            else:
                delta[j] = 0.0

        if delta[j] > 0.0:
            c = x2[j] / var_e + 1.0 / prior_var[j]
            beta[j] = rhs / var_e / c + z[j] / np.sqrt(c)
        else:
            beta[j] = z[j] * np.sqrt(prior_var[j])

        diff = beta[j] * delta[j] - b_old
        if diff != 0.0:
            for i in range(n):
                e[i] -= Xt[j, i] * diff


class MarkerTerm:
    """Marker regression term with a Gaussian ridge prior

    Args:
        X: Covariate matrix (n × p) for all individuals, including those
            whose phenotype is missing
        name: Label used in sampler output
    """

    prior = 'BRR'

    def __init__(self, X: np.ndarray, name: Optional[str] = None):
        X = np.asarray(X, dtype=np.float64)
        if X.ndim != 2:
            raise ValueError("Term design matrix must be 2D")
        if X.shape[1] == 0:
            raise ValueError("Term design matrix has no columns")
        self.X = X
        self.name = name or self.prior

    @property
    def n_individuals(self) -> int:
        return self.X.shape[0]

    def _prior_scale(self, X_obs: np.ndarray) -> float:
        return float(np.sum(self.var_x))

    def start(self, obs: np.ndarray, var_y: float, R2: float, df0: float, rng: np.random.Generator) -> None:
        """Bind the term to the observed rows and set its prior"""
        X_obs = self.X[obs]
        self.Xt = np.ascontiguousarray(X_obs.T)
        self.x2 = np.einsum('ij,ij->i', self.Xt, self.Xt)
        self.var_x = sample_variance(X_obs, axis=0)
        self.msx = self._prior_scale(X_obs)
        if not np.isfinite(self.msx) or self.msx <= 0:
            raise FitError(f"Term '{self.name}' has no variation among observed individuals")
        self.p = self.Xt.shape[0]
        self.df0 = df0
        self.beta = np.zeros(self.p)
        self.delta = np.ones(self.p)
        self._init_prior(var_y, R2, rng)

    def _init_prior(self, var_y: float, R2: float, rng: np.random.Generator) -> None:
        self.S0 = var_y * R2 / self.msx * (self.df0 + 2.0)
        self.var_b = self.S0 / (self.df0 + 2.0)

    @property
    def effects(self) -> np.ndarray:
        return self.beta * self.delta

    def _sweep(self, e, var_e, prior_var, log_odds, sample_indicator, rng):
        z = rng.standard_normal(self.p)
        u = rng.random(self.p)
        _sweep_marker_effects(self.Xt, self.x2, e, self.beta, self.delta, prior_var,
                              var_e, log_odds, z, u, sample_indicator)

    def sample(self, e: np.ndarray, var_e: float, rng: np.random.Generator) -> None:
        prior_var = np.full(self.p, self.var_b)
        self._sweep(e, var_e, prior_var, 0.0, False, rng)
        ss = float(np.sum(self.beta ** 2))
        self.var_b = (self.S0 + ss) / rng.chisquare(self.df0 + self.p)

    def tracked(self, var_e: float) -> Dict[str, float]:
        return {'var_u': self.var_b * self.msx, 'var_b': self.var_b}


class KernelTerm(MarkerTerm):
    """RKHS term u ~ N(0, varU·K) sampled on the eigen-basis of K

    The design matrix is V·sqrt(D) over the eigenvectors with positive
    eigenvalue, so X X' = K for every individual.
    """

    prior = 'RKHS'

    def __init__(self, K: Union[KinshipMatrix, np.ndarray], name: Optional[str] = None,
                 tolerance: float = 1e-10):
        if isinstance(K, KinshipMatrix):
            K = K.to_numpy()
        K = np.asarray(K, dtype=np.float64)
        if K.ndim != 2 or K.shape[0] != K.shape[1]:
            raise ValueError("Relationship matrix must be square")
        eigenvals, eigenvecs = np.linalg.eigh((K + K.T) / 2.0)
        keep = eigenvals > tolerance * max(1.0, float(eigenvals.max()))
        if not np.any(keep):
            raise ValueError("Relationship matrix has no positive eigenvalues")
        self.K = K
        super().__init__(eigenvecs[:, keep] * np.sqrt(eigenvals[keep]), name=name)

    def _prior_scale(self, X_obs: np.ndarray) -> float:
        # Average self-relationship of the observed individuals
        return float(np.mean(np.einsum('ij,ij->i', X_obs, X_obs)))

    def tracked(self, var_e: float) -> Dict[str, float]:
        return {'var_u': self.var_b, 'var_b': self.var_b}


class LassoTerm(MarkerTerm):
    """Bayesian LASSO term (Park & Casella parameterization)

    Marker effects have prior variance τ²_j·varE with exponential τ²_j,
    and λ² carries a Gamma prior.
    """

    prior = 'BL'

    def _init_prior(self, var_y: float, R2: float, rng: np.random.Generator) -> None:
        lambda0 = np.sqrt(2.0 * (1.0 - R2) / R2 * self.msx)
        self.shape0 = DEFAULT_SHAPE0
        self.rate0 = (self.shape0 - 1.0) / lambda0 ** 2
        self.lambda2 = lambda0 ** 2
        self.tau2 = np.full(self.p, 1.0 / self.lambda2)

    def sample(self, e: np.ndarray, var_e: float, rng: np.random.Generator) -> None:
        self._sweep(e, var_e, self.tau2 * var_e, 0.0, False, rng)

        abs_b = np.maximum(np.abs(self.beta), 1e-12)
        nu = np.sqrt(self.lambda2) * np.sqrt(var_e) / abs_b
        inv_tau2 = rng.wald(nu, self.lambda2)
        self.tau2 = 1.0 / np.maximum(inv_tau2, 1e-300)

        rate = self.rate0 + float(np.sum(self.tau2)) / 2.0
        self.lambda2 = rng.gamma(self.shape0 + self.p, 1.0 / rate)

    def tracked(self, var_e: float) -> Dict[str, float]:
        return {
            'var_u': var_e * float(np.sum(self.tau2 * self.var_x)),
            'lambda': float(np.sqrt(self.lambda2)),
        }


class BayesBTerm(MarkerTerm):
    """BayesB term: marker-specific variances with a point mass at zero

    Args:
        X: Covariate matrix (n × p)
        probIn: Prior probability that a marker has a non-null effect
        counts: Prior weight (pseudo-counts) on ``probIn``
    """

    prior = 'BayesB'

    def __init__(self, X: np.ndarray, name: Optional[str] = None,
                 probIn: float = DEFAULT_PROB_IN, counts: float = DEFAULT_COUNTS):
        if not 0.0 < probIn < 1.0:
            raise ValueError("probIn must be between 0 and 1 (exclusive)")
        super().__init__(X, name=name)
        self.probIn = float(probIn)
        self.counts = float(counts)

    def _init_prior(self, var_y: float, R2: float, rng: np.random.Generator) -> None:
        self.S0 = var_y * R2 / self.msx * (self.df0 + 2.0) / self.probIn
        self.shape0 = DEFAULT_SHAPE0
        self.rate0 = (self.shape0 - 1.0) / self.S0
        self.S = self.S0
        self.var_b_j = np.full(self.p, self.S0 / (self.df0 + 2.0))
        self.pi = self.probIn
        self.delta = rng.binomial(1, self.probIn, size=self.p).astype(np.float64)

    def sample(self, e: np.ndarray, var_e: float, rng: np.random.Generator) -> None:
        log_odds = np.log(self.pi) - np.log1p(-self.pi)
        self._sweep(e, var_e, self.var_b_j, log_odds, True, rng)

        self.var_b_j = (self.S + self.beta ** 2) / rng.chisquare(self.df0 + 1.0, size=self.p)

        rate = self.rate0 + self.df0 / 2.0 * float(np.sum(1.0 / self.var_b_j))
        self.S = rng.gamma(self.shape0 + self.p * self.df0 / 2.0, 1.0 / rate)

        n_in = float(np.sum(self.delta))
        self.pi = rng.beta(self.probIn * self.counts + n_in,
                           (1.0 - self.probIn) * self.counts + self.p - n_in)

    def tracked(self, var_e: float) -> Dict[str, float]:
        return {
            'var_u': float(np.sum(self.delta * self.var_b_j * self.var_x)),
            'Sb': float(self.S),
            'dfb': float(self.df0),
            'probIn': float(self.pi),
        }


def _validate_chain(n_iter: int, burn_in: int, thin: int) -> None:
    if n_iter < 1:
        raise ValueError("n_iter must be positive")
    if burn_in < 0 or burn_in >= n_iter:
        raise ValueError("burn_in must satisfy 0 <= burn_in < n_iter")
    if thin < 1:
        raise ValueError("thin must be at least 1")
    if n_iter - burn_in < thin:
        raise ValueError("No posterior samples retained: need n_iter - burn_in >= thin")


def GPB_Bayes(y: np.ndarray,
              terms: Union[MarkerTerm, List[MarkerTerm]],
              n_iter: int = 5000,
              burn_in: int = 1000,
              thin: int = 5,
              seed: Optional[int] = None,
              rng: Optional[np.random.Generator] = None,
              R2: float = DEFAULT_R2,
              df0: float = DEFAULT_DF0,
              name: Optional[str] = None,
              verbose: bool = False) -> ModelFit:
    """Run the Gibbs sampler and return posterior means

    Args:
        y: Phenotype vector (n,), NaN for individuals to predict
        terms: One or more regression terms sharing the residual
        n_iter: Total number of iterations
        burn_in: Iterations discarded before averaging
        thin: Keep every ``thin``-th post-burn-in iteration
        seed: Seed for a new random generator (ignored if ``rng`` is given)
        rng: Random generator to draw from
        R2: Prior expected share of variance explained by the terms
        df0: Prior degrees of freedom of the variance parameters

    Returns:
        ModelFit whose components are the posterior means (varU summed over
        terms; lambda from a LASSO term; dfb and Sb from a BayesB term) and
        whose ``yhat`` covers every individual
    """
    _validate_chain(n_iter, burn_in, thin)
    if isinstance(terms, MarkerTerm):
        terms = [terms]
    if not terms:
        raise ValueError("At least one model term is required")

    y = np.asarray(y, dtype=np.float64).ravel()
    n = y.shape[0]
    for term in terms:
        if term.n_individuals != n:
            raise ValueError(
                f"Term '{term.name}' has {term.n_individuals} rows, phenotype has {n}"
            )

    obs = np.flatnonzero(np.isfinite(y))
    n_obs = obs.size
    if n_obs < 2:
        raise ValueError(f"Need at least 2 observed phenotypes, got {n_obs}")

    if rng is None:
        rng = np.random.default_rng(seed)
    if name is None:
        name = '+'.join(term.name for term in terms)

    y_obs = y[obs]
    var_y = float(np.var(y_obs, ddof=1))
    if var_y <= 0:
        raise FitError("Observed phenotypes have zero variance")

    for term in terms:
        term.start(obs, var_y, R2, df0, rng)

    S0e = var_y * (1.0 - R2) * (df0 + 2.0)
    var_e = S0e / (df0 + 2.0)
    mu = float(np.mean(y_obs))
    e = y_obs - mu

    if verbose:
        print(f"Gibbs sampler '{name}': {n_obs} of {n} observed, {n_iter} iterations "
              f"(burn-in {burn_in}, thin {thin})")

    n_kept = 0
    mu_sum = 0.0
    var_e_sum = 0.0
    b_sums = [np.zeros(term.p) for term in terms]
    tracked_sums: List[Dict[str, float]] = [dict() for _ in terms]
    report_every = max(1, n_iter // 10)

    for it in range(1, n_iter + 1):
        # Intercept
        e += mu
        mu = rng.normal(np.sum(e) / n_obs, np.sqrt(var_e / n_obs))
        e -= mu

        for term in terms:
            term.sample(e, var_e, rng)

        sse = float(np.dot(e, e))
        var_e = (S0e + sse) / rng.chisquare(df0 + n_obs)
        if not np.isfinite(var_e) or not np.isfinite(mu) or var_e <= 0:
            raise FitError(f"Sampler '{name}' diverged at iteration {it}")

        if it > burn_in and (it - burn_in) % thin == 0:
            n_kept += 1
            mu_sum += mu
            var_e_sum += var_e
            for k, term in enumerate(terms):
                b_sums[k] += term.effects
                for key, value in term.tracked(var_e).items():
                    tracked_sums[k][key] = tracked_sums[k].get(key, 0.0) + value

        if verbose and it % report_every == 0:
            print(f"   iteration {it}/{n_iter}: varE = {var_e:.4f}")

    mu_mean = mu_sum / n_kept
    b_means = [b_sum / n_kept for b_sum in b_sums]
    term_means = [{key: value / n_kept for key, value in sums.items()} for sums in tracked_sums]

    yhat = np.full(n, mu_mean)
    for term, b_mean in zip(terms, b_means):
        yhat += term.X @ b_mean
    if yhat.shape[0] != n:
        raise FitError(f"Sampler '{name}' returned {yhat.shape[0]} predictions for {n} individuals")
    if not np.all(np.isfinite(yhat)):
        raise FitError(f"Sampler '{name}' produced non-finite predictions")

    components = VarianceComponents(
        var_u=float(sum(means['var_u'] for means in term_means)),
        var_e=var_e_sum / n_kept,
    )
    for means in term_means:
        if 'lambda' in means:
            components.lambda_ = means['lambda']
        if 'Sb' in means:
            components.Sb = means['Sb']
            components.dfb = means['dfb']

    return ModelFit(
        name=name,
        components=components,
        yhat=yhat,
        n_kept_samples=n_kept,
        details={
            'mu': mu_mean,
            'b': b_means,
            'terms': {term.name: means for term, means in zip(terms, term_means)},
        },
    )
