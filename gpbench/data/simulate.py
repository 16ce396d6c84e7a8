"""
Synthetic genotype/phenotype tables for demonstrations and tests
"""

import numpy as np
import pandas as pd
from typing import Optional, Tuple


def simulate_dataset(n: int = 200,
                     p: int = 500,
                     n_env: int = 3,
                     h2: float = 0.5,
                     n_qtl: Optional[int] = None,
                     maf_range: Tuple[float, float] = (0.05, 0.5),
                     inbred: bool = False,
                     seed: int = 12345) -> Tuple[pd.DataFrame, pd.DataFrame]:
    """Simulate an additive QTL trait measured in several environments

    Genotypes are drawn per marker from Binomial(2, maf) (or {0, 1} for
    inbred lines). A random subset of markers carries normal effects; each
    environment adds independent noise scaled so that the genetic share of
    variance is ``h2``.

    Returns:
        Tuple (genotype_df, phenotype_df). Both carry an 'ID' column in the
        same order; markers are named M1..Mp and environments E1..En_env.
    """
    if not 0.0 < h2 < 1.0:
        raise ValueError("h2 must be between 0 and 1 (exclusive)")
    if n < 2 or p < 1 or n_env < 1:
        raise ValueError("n must be at least 2, p and n_env at least 1")

    rng = np.random.default_rng(seed)
    ids = [f"ind{i + 1:04d}" for i in range(n)]

    maf = rng.uniform(maf_range[0], maf_range[1], size=p)
    if inbred:
        geno = (rng.random((n, p)) < maf).astype(np.int8)
    else:
        geno = rng.binomial(2, maf, size=(n, p)).astype(np.int8)

    if n_qtl is None:
        n_qtl = max(1, p // 10)
    n_qtl = min(n_qtl, p)
    qtl = rng.choice(p, size=n_qtl, replace=False)
    effects = np.zeros(p)
    effects[qtl] = rng.normal(0.0, 1.0, size=n_qtl)

    genetic = geno.astype(np.float64) @ effects
    var_g = float(np.var(genetic, ddof=1))
    if var_g <= 0:
        var_g = 1.0
    var_e = var_g * (1.0 - h2) / h2

    phenotypes = {}
    for k in range(n_env):
        env_mean = rng.normal(0.0, 1.0)
        phenotypes[f"E{k + 1}"] = env_mean + genetic + rng.normal(0.0, np.sqrt(var_e), size=n)

    genotype_df = pd.DataFrame(geno, columns=[f"M{j + 1}" for j in range(p)])
    genotype_df.insert(0, 'ID', ids)
    phenotype_df = pd.DataFrame(phenotypes)
    phenotype_df.insert(0, 'ID', ids)
    return genotype_df, phenotype_df
