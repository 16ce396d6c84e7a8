"""
Genomic Prediction Pipeline Module

Runs the workflow stages in order: data preparation, variance-component
estimation, repeated cross-validation, and accuracy reporting.
"""

import time
import numpy as np
import pandas as pd
from pathlib import Path
from typing import List, Optional, Dict, Union

from ..data.loaders import (
    load_phenotype_file, load_genotype_file, match_individuals, prepare_data
)
from ..data.simulate import simulate_dataset
from ..utils.data_types import GenotypeMatrix, PreparedData, CVResults
from ..models.specs import ALL_MODELS, CV_MODELS
from .variance import (
    GPB_VarianceComponents, save_variance_components,
    DEFAULT_VC_N_ITER, DEFAULT_VC_BURN_IN, DEFAULT_THIN, DEFAULT_SEED
)
from .cross_validation import (
    run_cross_validation, DEFAULT_PERC_TEST, DEFAULT_N_REP,
    DEFAULT_CV_N_ITER, DEFAULT_CV_BURN_IN, DEFAULT_MASTER_SEED
)
from ..visualization.accuracy import GPB_Report


class GenomicPredictionPipeline:
    """
    High-level pipeline for benchmarking genomic prediction models.

    Typical workflow:
        1. Initialize pipeline with output directory
        2. Load genotype and phenotype tables (or simulate them)
        3. Align individuals between the tables
        4. Prepare one trait (standardized markers and G)
        5. Estimate variance components for every model
        6. Cross-validate the prediction models
        7. Report accuracy summary and boxplot

    Attributes:
        genotype_matrix (GenotypeMatrix): Aligned genotypes (n_individuals × n_markers)
        phenotype_df (DataFrame): Aligned phenotypes with 'ID' column + environment columns
        individual_ids (list): IDs of the genotype rows
        data (PreparedData): Inputs for the selected trait
        variance_table (DataFrame): Components × models table
        cv_results (dict): CVResults per model
        output_dir (Path): Output directory for results

    Example:
        >>> pipeline = GenomicPredictionPipeline(output_dir='./gp_results')
        >>> pipeline.load_data(phenotype_file='pheno.csv', genotype_file='geno.csv')
        >>> pipeline.align_samples()
        >>> pipeline.prepare('E1')
        >>> pipeline.estimate_variance_components()
        >>> pipeline.run_cross_validation()
        >>> pipeline.report()
    """

    def __init__(self, output_dir: str = "./GP_results", verbose: bool = True):
        self.output_dir = Path(output_dir)
        self.output_dir.mkdir(parents=True, exist_ok=True)
        self.verbose = verbose

        self.phenotype_df: Optional[pd.DataFrame] = None
        self.genotype_matrix: Optional[GenotypeMatrix] = None
        self.individual_ids: List[str] = []

        self.data: Optional[PreparedData] = None
        self.variance_table: Optional[pd.DataFrame] = None
        self.cv_results: Dict[str, CVResults] = {}
        self.cv_models: List[str] = []

    def log(self, message: str):
        """Internal logger"""
        if self.verbose:
            print(message)

    def log_step(self, step_name: str, start_time: Optional[float] = None):
        """Log a pipeline step with optional timing"""
        if start_time is not None:
            elapsed = time.time() - start_time
            self.log(f"{step_name} completed in {elapsed:.2f} seconds")
        else:
            self.log(f"{step_name}...")

    def load_data(self,
                  phenotype_file: str,
                  genotype_file: str,
                  genotype_format: Optional[str] = None,
                  trait_columns: Optional[List[str]] = None):
        """Load the phenotype and genotype tables

        Raises:
            ValueError: If a file cannot be loaded
        """
        step_start = time.time()
        self.log_step("Step 1: Loading input data")

        try:
            self.phenotype_df = load_phenotype_file(phenotype_file, trait_columns=trait_columns,
                                                    verbose=self.verbose)
        except (OSError, ValueError, pd.errors.ParserError) as e:
            raise ValueError(f"Error loading phenotype file: {e}") from e
        self.log(f"   Loaded {len(self.phenotype_df)} individuals with {len(self.phenotype_df.columns) - 1} environments")

        try:
            self.genotype_matrix, self.individual_ids, _ = load_genotype_file(
                genotype_file, file_format=genotype_format, verbose=self.verbose
            )
        except (OSError, ValueError, pd.errors.ParserError) as e:
            raise ValueError(f"Error loading genotype file: {e}") from e

        self.log_step("Data loading", step_start)

    def load_simulated(self, n: int = 200, p: int = 500, n_env: int = 3,
                       h2: float = 0.5, seed: int = DEFAULT_SEED):
        """Use a simulated dataset instead of input files"""
        step_start = time.time()
        self.log_step("Step 1: Simulating input data")
        genotype_df, phenotype_df = simulate_dataset(n=n, p=p, n_env=n_env, h2=h2, seed=seed)
        self.individual_ids = genotype_df['ID'].tolist()
        self.genotype_matrix = GenotypeMatrix(genotype_df.drop(columns=['ID']))
        self.phenotype_df = phenotype_df
        self.log(f"   Simulated {n} individuals × {p} markers in {n_env} environments (h2 = {h2})")
        self.log_step("Data simulation", step_start)

    def align_samples(self):
        """Keep the individuals present in both tables, in a shared order

        Raises:
            ValueError: If no data is loaded or the tables share no individual
        """
        if self.phenotype_df is None or self.genotype_matrix is None:
            raise ValueError("Data not loaded. Call load_data() first.")

        step_start = time.time()
        self.log_step("Step 2: Matching individuals between datasets")

        matched_phenotype, matched_indices, summary = match_individuals(
            self.phenotype_df, self.individual_ids
        )
        self.phenotype_df = matched_phenotype
        self.genotype_matrix = self.genotype_matrix.subset_individuals(matched_indices)
        self.individual_ids = matched_phenotype['ID'].tolist()

        self.log(f"   Original phenotypes: {summary['n_phenotype_original']}")
        self.log(f"   Original genotypes: {summary['n_genotype_original']}")
        self.log(f"   Matched Intersection: {summary['n_common']}")
        self.log_step("Individual matching", step_start)

    def prepare(self, trait: Union[str, int] = 0) -> PreparedData:
        """Select one trait and compute the standardized markers and G"""
        if self.phenotype_df is None or self.genotype_matrix is None:
            raise ValueError("Data not loaded. Call load_data() first.")

        step_start = time.time()
        self.log_step("Step 3: Preparing trait data")
        self.data = prepare_data(
            self.genotype_matrix,
            self.phenotype_df,
            trait,
            genotype_ids=self.individual_ids,
            verbose=self.verbose,
        )
        n_obs = int(np.isfinite(self.data.y).sum())
        self.log(f"   Trait '{self.data.trait}': {n_obs} of {self.data.n} individuals observed, "
                 f"{self.data.p} markers")
        self.log_step("Trait preparation", step_start)
        return self.data

    def _require_data(self) -> PreparedData:
        if self.data is None:
            raise ValueError("No trait prepared. Call prepare() first.")
        return self.data

    def estimate_variance_components(self,
                                     models: Optional[List[str]] = None,
                                     n_iter: int = DEFAULT_VC_N_ITER,
                                     burn_in: int = DEFAULT_VC_BURN_IN,
                                     thin: int = DEFAULT_THIN,
                                     seed: int = DEFAULT_SEED,
                                     decimals: int = 4) -> pd.DataFrame:
        """Fit every model on the full data and save variance_components.csv"""
        data = self._require_data()
        step_start = time.time()
        self.log_step("Step 4: Estimating variance components")

        self.variance_table = GPB_VarianceComponents(
            data,
            models=models if models is not None else list(ALL_MODELS),
            n_iter=n_iter,
            burn_in=burn_in,
            thin=thin,
            seed=seed,
            verbose=self.verbose,
        )
        path = save_variance_components(self.variance_table, self.output_dir)
        self.log("\nVariance components:")
        self.log(self.variance_table.round(decimals).to_string())
        self.log(f"   Saved to {path}")
        self.log_step("Variance component estimation", step_start)
        return self.variance_table

    def run_cross_validation(self,
                             models: Optional[List[str]] = None,
                             perc_test: float = DEFAULT_PERC_TEST,
                             n_rep: int = DEFAULT_N_REP,
                             n_iter: int = DEFAULT_CV_N_ITER,
                             burn_in: int = DEFAULT_CV_BURN_IN,
                             thin: int = DEFAULT_THIN,
                             master_seed: int = DEFAULT_MASTER_SEED,
                             n_jobs: int = 1) -> Dict[str, CVResults]:
        """Cross-validate each model and write its ``CV_{model}.npz``"""
        data = self._require_data()
        step_start = time.time()
        self.log_step("Step 5: Repeated cross-validation")

        self.cv_models = list(models) if models is not None else list(CV_MODELS)
        self.cv_results = run_cross_validation(
            data,
            self.output_dir,
            models=self.cv_models,
            perc_test=perc_test,
            n_rep=n_rep,
            n_iter=n_iter,
            burn_in=burn_in,
            thin=thin,
            master_seed=master_seed,
            n_jobs=n_jobs,
            verbose=self.verbose,
        )
        for name, results in self.cv_results.items():
            if results.failed_replicates:
                self.log(f"   {name}: replicates {results.failed_replicates} failed")
        self.log_step("Cross-validation", step_start)
        return self.cv_results

    def report(self,
               models: Optional[List[str]] = None,
               decimals: int = 3,
               save_plots: bool = True,
               dpi: int = 300) -> Dict:
        """Aggregate the saved accuracies into a summary table and boxplot"""
        step_start = time.time()
        self.log_step("Step 6: Aggregating cross-validation results")
        if models is None:
            models = self.cv_models or list(CV_MODELS)
        report = GPB_Report(
            models,
            self.output_dir,
            decimals=decimals,
            save_plots=save_plots,
            dpi=dpi,
            verbose=self.verbose,
        )
        self.log_step("Reporting", step_start)
        return report
