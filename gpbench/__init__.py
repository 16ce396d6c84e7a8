"""
gpbench: Genomic Prediction Benchmark

Variance-component estimation and cross-validated accuracy comparison of
G-BLUP, RKHS, Bayesian ridge regression, Bayesian LASSO and BayesB on a
single phenotype-genotype dataset.
"""

import os
import warnings

# Suppress OpenMP deprecation warnings emitted alongside Numba
os.environ.setdefault('KMP_WARNINGS', 'off')
warnings.filterwarnings('ignore', message='.*omp_set_nested.*deprecated.*')

__version__ = "0.1.0"
__author__ = "gpbench Development Team"

from .data.loaders import prepare_data
from .matrix.kinship import GPB_K_Genomic
from .models.gblup import GPB_GBLUP
from .models.bayes import GPB_Bayes
from .pipelines.variance import GPB_VarianceComponents
from .pipelines.cross_validation import GPB_CrossValidation
from .pipelines.workflow import GenomicPredictionPipeline
from .visualization.accuracy import GPB_Report

__all__ = [
    'prepare_data',
    'GPB_K_Genomic',
    'GPB_GBLUP',
    'GPB_Bayes',
    'GPB_VarianceComponents',
    'GPB_CrossValidation',
    'GenomicPredictionPipeline',
    'GPB_Report'
]
