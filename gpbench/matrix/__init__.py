"""
Genomic relationship matrix computation
"""

from .kinship import GPB_K_Genomic, standardize_markers, validate_kinship_matrix

__all__ = ['GPB_K_Genomic', 'standardize_markers', 'validate_kinship_matrix']
