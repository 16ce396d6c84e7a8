"""
Accuracy tables and plots
"""

from .accuracy import GPB_Report, create_accuracy_boxplot, summarize_accuracy, collect_cv_results

__all__ = ['GPB_Report', 'create_accuracy_boxplot', 'summarize_accuracy', 'collect_cv_results']
