"""
Workflow stages for genomic prediction benchmarking
"""

from .variance import GPB_VarianceComponents
from .cross_validation import GPB_CrossValidation, run_cross_validation
from .workflow import GenomicPredictionPipeline

__all__ = [
    'GPB_VarianceComponents',
    'GPB_CrossValidation',
    'run_cross_validation',
    'GenomicPredictionPipeline',
]
