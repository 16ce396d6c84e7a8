"""
Data loading, alignment and simulation
"""

from .loaders import (
    load_phenotype_file,
    load_genotype_file,
    match_individuals,
    check_alignment,
    prepare_data,
)
from .simulate import simulate_dataset

__all__ = [
    'load_phenotype_file',
    'load_genotype_file',
    'match_individuals',
    'check_alignment',
    'prepare_data',
    'simulate_dataset',
]
