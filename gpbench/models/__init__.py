"""
Model engines for genomic prediction
"""

from .errors import FitError
from .gblup import GPB_GBLUP
from .bayes import GPB_Bayes, MarkerTerm, KernelTerm, LassoTerm, BayesBTerm
from .specs import (
    ModelKind,
    GBLUPModel,
    RKHSModel,
    BRRModel,
    BayesLassoModel,
    BayesBModel,
    make_model,
    parse_model_kind,
    ALL_MODELS,
    CV_MODELS,
)

__all__ = [
    'FitError',
    'GPB_GBLUP',
    'GPB_Bayes',
    'MarkerTerm',
    'KernelTerm',
    'LassoTerm',
    'BayesBTerm',
    'ModelKind',
    'GBLUPModel',
    'RKHSModel',
    'BRRModel',
    'BayesLassoModel',
    'BayesBModel',
    'make_model',
    'parse_model_kind',
    'ALL_MODELS',
    'CV_MODELS',
]
