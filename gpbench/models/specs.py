"""
Model configurations compared by the workflow

Each configuration carries exactly the inputs its engine needs and fits a
phenotype vector (NaN = held out) into a ModelFit.
"""

import numpy as np
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union

from ..utils.data_types import ModelFit, PreparedData
from .gblup import GPB_GBLUP
from .bayes import GPB_Bayes, MarkerTerm, KernelTerm, LassoTerm, BayesBTerm


class ModelKind(str, Enum):
    GBLUP = 'GBLUP'
    RKHS = 'RKHS'
    BRR = 'BRR'
    BL = 'BL'
    BAYESB = 'BayesB'


ALL_MODELS = [kind.value for kind in ModelKind]
CV_MODELS = [ModelKind.RKHS.value, ModelKind.BRR.value, ModelKind.BL.value, ModelKind.BAYESB.value]


def parse_model_kind(name: Union[str, ModelKind]) -> ModelKind:
    """Resolve a model name (case-insensitive) to its ModelKind"""
    if isinstance(name, ModelKind):
        return name
    for kind in ModelKind:
        if kind.value.lower() == str(name).lower():
            return kind
    raise ValueError(f"Unknown model '{name}'. Choose from {ALL_MODELS}")


@dataclass
class GBLUPModel:
    """G-BLUP with REML variance components"""

    K: np.ndarray
    kind = ModelKind.GBLUP

    def fit(self, y: np.ndarray, seed: Optional[int] = None) -> ModelFit:
        # Closed form; the seed is accepted for a uniform interface
        return GPB_GBLUP(y, self.K, name=self.kind.value)


@dataclass
class _SampledModel:
    n_iter: int = 5000
    burn_in: int = 1000
    thin: int = 5

    def _term(self) -> MarkerTerm:
        raise NotImplementedError

    def fit(self, y: np.ndarray, seed: Optional[int] = None) -> ModelFit:
        return GPB_Bayes(
            y,
            self._term(),
            n_iter=self.n_iter,
            burn_in=self.burn_in,
            thin=self.thin,
            seed=seed,
            name=self.kind.value,
        )


@dataclass
class RKHSModel(_SampledModel):
    """Kernel regression on the relationship matrix, fitted by MCMC"""

    K: Optional[np.ndarray] = None
    kind = ModelKind.RKHS

    def _term(self) -> MarkerTerm:
        return KernelTerm(self.K, name=self.kind.value)


@dataclass
class BRRModel(_SampledModel):
    """Bayesian ridge regression on standardized markers"""

    X: Optional[np.ndarray] = None
    kind = ModelKind.BRR

    def _term(self) -> MarkerTerm:
        return MarkerTerm(self.X, name=self.kind.value)


@dataclass
class BayesLassoModel(_SampledModel):
    """Bayesian LASSO on standardized markers"""

    X: Optional[np.ndarray] = None
    kind = ModelKind.BL

    def _term(self) -> MarkerTerm:
        return LassoTerm(self.X, name=self.kind.value)


@dataclass
class BayesBModel(_SampledModel):
    """BayesB on standardized markers"""

    X: Optional[np.ndarray] = None
    kind = ModelKind.BAYESB

    def _term(self) -> MarkerTerm:
        return BayesBTerm(self.X, name=self.kind.value)


def make_model(kind: Union[str, ModelKind],
               data: PreparedData,
               n_iter: int = 5000,
               burn_in: int = 1000,
               thin: int = 5):
    """Build the configuration for ``kind`` from prepared data

    Kernel models use G; marker models use the standardized markers M.
    """
    kind = parse_model_kind(kind)
    if kind is ModelKind.GBLUP:
        return GBLUPModel(K=data.G)
    elif kind is ModelKind.RKHS:
        return RKHSModel(n_iter=n_iter, burn_in=burn_in, thin=thin, K=data.G)
    elif kind is ModelKind.BRR:
        return BRRModel(n_iter=n_iter, burn_in=burn_in, thin=thin, X=data.M)
    elif kind is ModelKind.BL:
        return BayesLassoModel(n_iter=n_iter, burn_in=burn_in, thin=thin, X=data.M)
    elif kind is ModelKind.BAYESB:
        return BayesBModel(n_iter=n_iter, burn_in=burn_in, thin=thin, X=data.M)
    raise ValueError(f"Unhandled model kind: {kind}")
