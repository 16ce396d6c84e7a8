"""
Data loading and alignment utilities for genotype and phenotype tables
"""

import pandas as pd
import numpy as np
from pathlib import Path
from typing import Union, Tuple, Optional, Dict, List, Sequence
import warnings

from ..utils.data_types import GenotypeMatrix, PreparedData, MISSING_GENOTYPE
from ..matrix.kinship import standardize_markers, GPB_K_Genomic

# Robust NA handling: recognize common missing tokens
NA_VALUES = [
    '', 'NA', 'NaN', 'nan', 'NAN', 'na', 'N/A', 'n/a', 'Null', 'NULL',
    '.', '-', '--'
]

POSSIBLE_ID_COLUMNS = [
    'ID', 'id', 'IID',
    'sample', 'Sample',
    'Taxa', 'taxa',
    'Genotype', 'genotype',
    'Accession', 'accession',
    'GID', 'gid',
]


def detect_file_format(filepath: Union[str, Path]) -> str:
    """Detect file format based on extension and content

    Args:
        filepath: Path to file

    Returns:
        Detected format: 'csv', 'tsv' or 'unknown'
    """
    filepath = Path(filepath)
    suffix = filepath.suffix.lower()
    if suffix in ['.tsv', '.txt']:
        return 'tsv'
    elif suffix == '.csv':
        return 'csv'

    try:
        with open(filepath, 'r') as f:
            first_line = f.readline().strip()
    except OSError:
        return 'unknown'
    if '\t' in first_line and ',' not in first_line:
        return 'tsv'
    elif ',' in first_line:
        return 'csv'
    return 'unknown'


def _detect_numeric_separator(filepath: Union[str, Path]) -> str:
    """Heuristically determine the delimiter for numeric genotype matrices."""
    filepath = Path(filepath)
    try:
        with filepath.open('r') as handle:
            for _ in range(10):
                line = handle.readline()
                if not line:
                    break
                line = line.strip()
                if not line:
                    continue
                comma_count = line.count(',')
                tab_count = line.count('\t')
                if tab_count or comma_count:
                    return '\t' if tab_count >= comma_count else ','
    except OSError:
        pass
    return ','


def _separator_for(filepath: Path, file_format: Optional[str]) -> str:
    if file_format is None:
        file_format = detect_file_format(filepath)
    if file_format == 'csv':
        return ','
    elif file_format == 'tsv':
        return '\t'
    elif file_format in ('unknown', 'numeric'):
        return _detect_numeric_separator(filepath)
    raise ValueError(f"Unsupported file format: {file_format}")


def load_phenotype_file(filepath: Union[str, Path],
                        trait_columns: Optional[List[str]] = None,
                        id_column: str = 'ID',
                        verbose: bool = True) -> pd.DataFrame:
    """Load a multi-environment phenotype table

    Args:
        filepath: Path to phenotype file (CSV or TSV)
        trait_columns: List of trait/environment column names (if None,
            every numeric column is kept)
        id_column: Name of ID column
        verbose: Print which ID column was used

    Returns:
        DataFrame with an 'ID' column followed by the trait columns
    """
    filepath = Path(filepath)
    separator = _separator_for(filepath, None)
    df = pd.read_csv(filepath, sep=separator, na_values=NA_VALUES, keep_default_na=True)

    if id_column not in df.columns:
        present_candidates = [c for c in df.columns if c in POSSIBLE_ID_COLUMNS]
        if present_candidates:
            if len(present_candidates) > 1:
                warnings.warn(
                    "Multiple potential ID columns found: {}. Selecting leftmost '{}' as ID.".format(
                        present_candidates, present_candidates[0]
                    )
                )
            detected_id_column = present_candidates[0]
            if verbose:
                print(f"   Auto-detected ID column: '{detected_id_column}'")
        else:
            detected_id_column = df.columns[0]
            warnings.warn(
                "No recognized ID column found; using first column '{}' as ID.".format(detected_id_column)
            )
            if verbose:
                print(f"   Using first column as ID: '{detected_id_column}'")
        df = df.rename(columns={detected_id_column: 'ID'})
    elif id_column != 'ID':
        df = df.rename(columns={id_column: 'ID'})

    df['ID'] = df['ID'].astype(str)

    if trait_columns is None:
        trait_columns = []
        for col in df.columns:
            if col == 'ID':
                continue
            coerced = pd.to_numeric(df[col], errors='coerce')
            # Keep columns with at least one numeric entry
            if coerced.notna().any():
                df[col] = coerced
                trait_columns.append(col)
    else:
        missing_columns = [c for c in trait_columns if c not in df.columns]
        if missing_columns:
            raise ValueError(f"Trait columns not found in phenotype file: {missing_columns}")
        df[trait_columns] = df[trait_columns].apply(pd.to_numeric, errors='coerce')

    columns_to_keep = ['ID'] + list(trait_columns)
    df = df[columns_to_keep]

    if df['ID'].duplicated().any():
        n_dups = int(df['ID'].duplicated().sum())
        if len(columns_to_keep) > 1:
            agg_cols = {col: 'mean' for col in columns_to_keep if col != 'ID'}
            df = df.groupby('ID', as_index=False, sort=False).agg(agg_cols)
            warnings.warn(
                f"Detected {n_dups} duplicated phenotype records by ID; deduplicated by computing per-ID mean of trait columns (missing values ignored)."
            )
        else:
            df = df.drop_duplicates(subset=['ID'], keep='first')
            warnings.warn(
                f"Detected {n_dups} duplicated phenotype records by ID; no numeric trait columns detected, so retained only the first record per ID."
            )

    return df.reset_index(drop=True)


def _deduplicate_genotype_samples(individual_ids: List[str], geno_np: np.ndarray) -> Tuple[List[str], np.ndarray]:
    """Deduplicate genotype sample IDs by retaining the first occurrence per ID.

    Emits a warning when duplicates are found. Returns (new_ids, new_geno).
    """
    seen = set()
    keep_indices: List[int] = []
    for i, sid in enumerate(individual_ids):
        if sid not in seen:
            seen.add(sid)
            keep_indices.append(i)
    if len(keep_indices) != len(individual_ids):
        dropped = len(individual_ids) - len(keep_indices)
        warnings.warn(
            f"Detected {dropped} duplicated genotype records by sample ID; retaining only the first occurrence for each duplicated ID."
        )
        new_ids = [individual_ids[i] for i in keep_indices]
        return new_ids, geno_np[keep_indices, :]
    return individual_ids, geno_np


def load_genotype_file(filepath: Union[str, Path],
                       file_format: Optional[str] = None,
                       verbose: bool = True) -> Tuple[GenotypeMatrix, List[str], List[str]]:
    """Load a numeric genotype table

    The first column holds individual IDs; every other column is one marker
    coded as allele dosage. Non-numeric entries are treated as missing and
    imputed by the marker's major genotype.

    Args:
        filepath: Path to genotype file
        file_format: 'csv', 'tsv' or None for auto-detect

    Returns:
        Tuple of (GenotypeMatrix, individual_ids, marker_names)
    """
    filepath = Path(filepath)
    separator = _separator_for(filepath, file_format)

    df = pd.read_csv(filepath, sep=separator, low_memory=False)
    if df.shape[1] < 2:
        raise ValueError(f"Genotype file '{filepath}' has no marker columns")

    individual_ids = df.iloc[:, 0].astype(str).tolist()
    marker_names = [str(c) for c in df.columns[1:]]

    # Coerce any non-numeric (e.g., 'NA', 'N', '.') to NaN, then fill with sentinel
    data_df = df.iloc[:, 1:].apply(pd.to_numeric, errors='coerce')
    geno_np = data_df.fillna(MISSING_GENOTYPE).to_numpy(dtype=np.float64)

    individual_ids, geno_np = _deduplicate_genotype_samples(individual_ids, geno_np)
    geno_matrix = GenotypeMatrix(geno_np, marker_names=marker_names, impute=True)

    if verbose:
        print(f"   Loaded {geno_matrix.n_individuals} individuals × {geno_matrix.n_markers} markers from {filepath.name}")
    return geno_matrix, individual_ids, marker_names


def match_individuals(phenotype_df: pd.DataFrame,
                      individual_ids: List[str]
                      ) -> Tuple[pd.DataFrame, List[int], Dict]:
    """Match individuals across phenotype and genotype tables

    Returns:
        Tuple of (phenotype rows sorted by ID, genotype row indices in the
        same order, summary counts)
    """
    phenotype_df = phenotype_df.copy()
    if 'ID' not in phenotype_df.columns:
        raise ValueError("Phenotype dataframe must contain an 'ID' column.")
    phenotype_df['ID'] = phenotype_df['ID'].astype(str)

    phe_ids = set(phenotype_df['ID'])
    genotype_ids = [str(ind_id) for ind_id in individual_ids]
    geno_ids = set(genotype_ids)

    common_ids = phe_ids & geno_ids

    summary: Dict[str, int] = {
        'n_phenotype_original': len(phe_ids),
        'n_genotype_original': len(geno_ids),
        'n_common': len(common_ids),
        'n_phenotype_dropped': len(phe_ids - common_ids),
        'n_genotype_dropped': len(geno_ids - common_ids),
    }

    if len(common_ids) == 0:
        raise ValueError("No common individuals found between phenotype and genotype data")

    matched_phenotype = phenotype_df[phenotype_df['ID'].isin(common_ids)].copy()
    matched_phenotype = matched_phenotype.drop_duplicates(subset=['ID'], keep='first')
    matched_phenotype = matched_phenotype.sort_values('ID').reset_index(drop=True)
    sorted_ids = matched_phenotype['ID'].tolist()

    id_to_index: Dict[str, int] = {}
    for idx, raw_id in enumerate(genotype_ids):
        if raw_id not in id_to_index:
            id_to_index[raw_id] = idx

    matched_indices = [id_to_index[sid] for sid in sorted_ids]
    return matched_phenotype, matched_indices, summary


def check_alignment(genotype_ids: Sequence, phenotype_ids: Sequence) -> None:
    """Fail fast unless both tables list the same individuals in the same order

    Raises:
        ValueError: Naming the length difference or the first mismatching
            position
    """
    geno = [str(i) for i in genotype_ids]
    pheno = [str(i) for i in phenotype_ids]
    if len(geno) != len(pheno):
        raise ValueError(
            f"Genotype table has {len(geno)} individuals but phenotype table has {len(pheno)}"
        )
    for position, (g_id, p_id) in enumerate(zip(geno, pheno)):
        if g_id != p_id:
            raise ValueError(
                f"Individual IDs differ at position {position}: genotype '{g_id}' vs phenotype '{p_id}'"
            )


def prepare_data(genotype: Union[GenotypeMatrix, np.ndarray, pd.DataFrame],
                 phenotype: pd.DataFrame,
                 trait: Union[str, int],
                 genotype_ids: Optional[Sequence] = None,
                 phenotype_ids: Optional[Sequence] = None,
                 maxLine: int = 5000,
                 verbose: bool = False) -> PreparedData:
    """Select one trait and derive the standardized markers and G

    Args:
        genotype: Genotype matrix (individuals × markers); a DataFrame's
            index supplies the IDs when ``genotype_ids`` is None
        phenotype: Phenotype table (individuals × environments); its 'ID'
            column supplies the IDs when ``phenotype_ids`` is None
        trait: Column name (or position among the non-ID columns) of the
            phenotype to analyse
        genotype_ids: Individual IDs of the genotype rows
        phenotype_ids: Individual IDs of the phenotype rows

    Returns:
        PreparedData holding y, X, M and G in a shared row order
    """
    if isinstance(genotype, pd.DataFrame):
        if genotype_ids is None:
            genotype_ids = [str(i) for i in genotype.index]
        genotype = GenotypeMatrix(genotype)
    elif isinstance(genotype, np.ndarray):
        genotype = GenotypeMatrix(genotype)
    elif not isinstance(genotype, GenotypeMatrix):
        raise ValueError("genotype must be GenotypeMatrix, numpy array or DataFrame")

    if not isinstance(phenotype, pd.DataFrame):
        raise ValueError("phenotype must be a pandas DataFrame")
    if phenotype_ids is None and 'ID' in phenotype.columns:
        phenotype_ids = phenotype['ID'].astype(str).tolist()

    if genotype_ids is not None and phenotype_ids is not None:
        check_alignment(genotype_ids, phenotype_ids)
    elif genotype.n_individuals != len(phenotype):
        raise ValueError(
            f"Genotype table has {genotype.n_individuals} individuals but phenotype table has {len(phenotype)}"
        )

    trait_table = phenotype.drop(columns=['ID']) if 'ID' in phenotype.columns else phenotype
    if isinstance(trait, (int, np.integer)):
        if not 0 <= trait < trait_table.shape[1]:
            raise ValueError(f"Trait index {trait} out of range for {trait_table.shape[1]} phenotype columns")
        trait = str(trait_table.columns[trait])
    if trait not in trait_table.columns:
        raise ValueError(f"Trait '{trait}' not found. Available: {list(trait_table.columns)}")

    y = pd.to_numeric(trait_table[trait], errors='coerce').to_numpy(dtype=np.float64)
    if not np.any(np.isfinite(y)):
        raise ValueError(f"Trait '{trait}' has no observed values")

    X = genotype.to_numpy()
    M = standardize_markers(X, verbose=verbose)
    G = GPB_K_Genomic(M, maxLine=maxLine, verbose=verbose).to_numpy()

    if phenotype_ids is not None:
        ids = [str(i) for i in phenotype_ids]
    elif genotype_ids is not None:
        ids = [str(i) for i in genotype_ids]
    else:
        ids = [str(i) for i in range(len(y))]

    return PreparedData(ids=ids, trait=str(trait), y=y, X=X, M=M, G=G)
