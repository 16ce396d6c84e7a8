"""
Aggregation and visualization of cross-validation accuracies
"""

import numpy as np
import pandas as pd
import matplotlib.pyplot as plt
import seaborn as sns
from pathlib import Path
from typing import Dict, List, Optional, Tuple, Union
import warnings

from ..utils.data_types import ArtifactLookup
from ..pipelines.cross_validation import artifact_path, load_cv_results


def lookup_cv_artifact(model_name: str, output_dir: Union[str, Path]) -> ArtifactLookup:
    """Look up a model's persisted accuracies without raising when absent"""
    path = artifact_path(model_name, output_dir)
    if not path.exists():
        return ArtifactLookup(model_name=model_name, path=path)
    return ArtifactLookup(model_name=model_name, path=path,
                          results=load_cv_results(model_name, output_dir))


def collect_cv_results(model_names: List[str],
                       output_dir: Union[str, Path]) -> Tuple[pd.DataFrame, List[str]]:
    """Load every model's artifact into one accuracy table

    Models without an artifact are reported with a warning and left out.

    Returns:
        Tuple (table with one row per replicate and one column per model
        found, names of the missing models)
    """
    columns: Dict[str, pd.Series] = {}
    missing: List[str] = []
    for name in model_names:
        lookup = lookup_cv_artifact(name, output_dir)
        if not lookup.present:
            warnings.warn(f"No cross-validation results found for model {name} (expected {lookup.path}); skipping")
            missing.append(name)
            continue
        acc = lookup.results.accuracies
        columns[name] = pd.Series(acc, index=np.arange(1, len(acc) + 1))

    table = pd.DataFrame(columns)
    table.index.name = 'Replicate'
    return table, missing


def summarize_accuracy(table: pd.DataFrame, decimals: int = 3) -> pd.DataFrame:
    """Mean and sample SD of accuracy per model, rounded for display"""
    summary = pd.DataFrame({
        'mean': table.mean(axis=0, skipna=True),
        'sd': table.std(axis=0, ddof=1, skipna=True),
    }).T
    return summary.round(decimals)


def create_accuracy_boxplot(table: pd.DataFrame,
                            title: str = "Prediction accuracy by model",
                            figsize: Tuple[int, int] = (7, 5),
                            palette: str = "Set2") -> plt.Figure:
    """Boxplot of replicate accuracies, one colored box per model

    Args:
        table: Replicates × models accuracy table
        title: Plot title
        figsize: Figure size
        palette: Seaborn palette name

    Returns:
        matplotlib Figure object
    """
    fig, ax = plt.subplots(figsize=figsize)

    long_df = table.reset_index().melt(id_vars=table.index.name or 'index',
                                       var_name='Model', value_name='Accuracy')
    long_df = long_df.dropna(subset=['Accuracy'])

    if long_df.empty:
        ax.text(0.5, 0.5, 'No accuracies to plot',
                ha='center', va='center', transform=ax.transAxes)
        ax.set_title(title)
        return fig

    order = [c for c in table.columns if c in set(long_df['Model'])]
    sns.boxplot(data=long_df, x='Model', y='Accuracy', hue='Model', order=order,
                hue_order=order, palette=palette, legend=False, ax=ax)
    sns.stripplot(data=long_df, x='Model', y='Accuracy', order=order, color='black',
                  size=4, jitter=0.15, alpha=0.6, ax=ax)

    ax.set_xlabel('Model')
    ax.set_ylabel('Accuracy (Pearson r)')
    ax.set_title(title)
    ax.grid(True, axis='y', alpha=0.3)

    plt.tight_layout()
    return fig


def GPB_Report(model_names: List[str],
               output_dir: Union[str, Path],
               decimals: int = 3,
               save_plots: bool = True,
               dpi: int = 300,
               figsize: Tuple[int, int] = (7, 5),
               title: Optional[str] = None,
               verbose: bool = True) -> Dict:
    """Aggregate persisted accuracies into tables and a comparison plot

    Args:
        model_names: Models to collect (missing artifacts are skipped)
        output_dir: Directory holding the ``CV_{model}.npz`` artifacts;
            outputs are written here too
        decimals: Rounding of the summary table
        save_plots: Save the boxplot to ``accuracy_boxplot.png``
        dpi: Plot resolution
        figsize: Figure size (width, height)
        title: Plot title
        verbose: Print both tables

    Returns:
        Dictionary with the accuracy table, summary, missing models, plot
        objects and created files
    """
    output_dir = Path(output_dir)
    if verbose:
        print("Generating prediction accuracy report...")

    table, missing = collect_cv_results(model_names, output_dir)
    report = {
        'table': table,
        'summary': None,
        'missing': missing,
        'plots': {},
        'files_created': []
    }

    if table.empty:
        warnings.warn("No cross-validation results available; nothing to report")
        return report

    summary = summarize_accuracy(table, decimals=decimals)
    report['summary'] = summary

    if verbose:
        print("\nAccuracy per replicate:")
        print(table.round(decimals).to_string())
        print("\nAccuracy summary:")
        print(summary.to_string())

    output_dir.mkdir(parents=True, exist_ok=True)
    summary_path = output_dir / "accuracy_summary.csv"
    summary.to_csv(summary_path, index_label='Statistic')
    report['files_created'].append(str(summary_path))

    fig = create_accuracy_boxplot(table, title=title or "Prediction accuracy by model", figsize=figsize)
    report['plots']['boxplot'] = fig
    if save_plots:
        plot_path = output_dir / "accuracy_boxplot.png"
        fig.savefig(plot_path, dpi=dpi, bbox_inches='tight')
        report['files_created'].append(str(plot_path))
        if verbose:
            print(f"Saved boxplot to {plot_path}")

    return report
