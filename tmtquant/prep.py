"""
Data preparation functions for the TMT quantification pipeline.

Handles loading the configuration and the raw peptide table, checking
required columns, and reporting missing values before any filtering.
"""

import os

import pandas as pd

from .aggregation import count_missing
from .utils import (
    _all_abundance_columns,
    _create_output_dirs,
    _identify_abundance_columns,
    _load_config,
    save_data,
)


def read_peptide_table(path, required_cols, na_values=('NA',)):
    """
    Read a tab-separated peptide quantification table.

    Parameters
    ----------
    path : str
        Path to the peptide table.
    required_cols : list of str
        Columns that must be present (sequence, modification, protein).
    na_values : sequence of str, optional
        Sentinels that encode missing abundance values (default: ('NA',)).
        They do not apply to the required columns, which are read as text.

    Returns
    -------
    pd.DataFrame
    """
    if not os.path.exists(path):
        raise FileNotFoundError(f"Peptide table not found: {path}")

    header = pd.read_csv(path, sep='\t', nrows=0).columns

    missing = [c for c in required_cols if c not in header]
    if missing:
        raise ValueError(f"Peptide table {path} is missing required columns: {missing}")

    # Sentinels (plus empty cells) count as missing only outside the identifier columns
    sentinels = list(na_values) + ['']
    df = pd.read_csv(
        path,
        sep='\t',
        dtype={c: str for c in required_cols},
        na_values={c: sentinels for c in header if c not in required_cols},
        keep_default_na=False,
    )

    return df


def drop_blank_identifiers(df, id_cols):
    """
    Remove rows whose identifier cells are empty.

    Returns
    -------
    tuple
        (filtered DataFrame with a fresh index, number of rows removed)
    """
    blank = pd.Series(False, index=df.index)
    for col in id_cols:
        blank |= df[col].isna() | (df[col].astype(str).str.strip() == '')

    return df[~blank].reset_index(drop=True), int(blank.sum())


def prep_tmt(config_path):
    """
    Load and prepare TMT peptide data for analysis.

    This function:
    1. Loads the YAML configuration file
    2. Reads the tab-separated peptide table
    3. Removes rows without a sequence or protein identifier
    4. Identifies and organizes abundance columns by condition
    5. Checks abundance columns are numeric and non-negative
    6. Reports missing values per sample (before any rows are dropped)
    7. Creates output directory structure

    Parameters
    ----------
    config_path : str
        Path to YAML configuration file.

    Returns
    -------
    dict
        Dictionary containing:
        - 'df': pd.DataFrame with the raw peptide rows
        - 'config': loaded configuration dictionary
        - 'abundance_cols': maps condition names to abundance column names
        - 'metadata': summary statistics about the data
        - 'output_dirs': paths to output directories

    Example
    -------
    >>> data = prep_tmt('config/experiment.yaml')
    >>> df = data['df']
    >>> print(f"Loaded {len(df)} peptides")
    """

    # =========================================================================
    # 1. LOAD CONFIGURATION
    # =========================================================================
    print("\n" + "="*80)
    print("STEP 1: LOADING DATA AND CONFIGURATION")
    print("="*80)

    config = _load_config(config_path)

    control = config['conditions']['control']
    treatment = config['conditions']['treatment']

    print(f"\n> Configuration loaded")
    print(f"  Experiment: {config['experiment']['name']}")
    print(f"  Control: {control}")
    print(f"  Treatment: {treatment}")

    # =========================================================================
    # 2. LOAD PEPTIDE TABLE
    # =========================================================================
    print(f"\n[1/4] Loading peptide table...")

    data_columns = config['data_columns']
    required = [
        data_columns['sequence'],
        data_columns['modifications'],
        data_columns['protein_id'],
    ]
    na_values = config.get('missing_values', ['NA'])

    df = read_peptide_table(config['data_paths']['input_file'], required, na_values)
    print(f"  > Loaded {df.shape[0]} peptide rows, {df.shape[1]} columns")

    n_loaded = len(df)
    df, n_blank = drop_blank_identifiers(
        df, [data_columns['sequence'], data_columns['protein_id']]
    )
    if n_blank > 0:
        print(f"  Warning: removed {n_blank} rows with an empty sequence or protein")

    # =========================================================================
    # 3. IDENTIFY ABUNDANCE COLUMNS
    # =========================================================================
    print(f"\n[2/4] Identifying abundance columns...")

    abundance_cols = _identify_abundance_columns(df, config)
    for condition, cols in abundance_cols.items():
        print(f"  {condition}: {len(cols)} replicates")

    all_abundance = _all_abundance_columns(abundance_cols)

    non_numeric = [c for c in all_abundance if not pd.api.types.is_numeric_dtype(df[c])]
    if non_numeric:
        raise ValueError(f"Abundance columns contain non-numeric values: {non_numeric}")

    negative = [c for c in all_abundance if (df[c] < 0).any()]
    if negative:
        raise ValueError(f"Abundance columns contain negative values: {negative}")

    # =========================================================================
    # 4. MISSING VALUES (before filtering)
    # =========================================================================
    print(f"\n[3/4] Counting missing values...")

    per_column, n_incomplete = count_missing(df, all_abundance)
    for col, n in per_column.items():
        print(f"  {col}: {n} missing")
    print(f"  > {n_incomplete} peptide rows have at least one missing value")

    # =========================================================================
    # 5. CREATE OUTPUT DIRECTORIES
    # =========================================================================
    print(f"\n[4/4] Creating output directories...")

    output_dir = config['data_paths']['output_dir']
    output_dirs = _create_output_dirs(output_dir)

    print(f"  > Output directories created at: {output_dir}")

    metadata = {
        'level': 'peptide',
        'n_rows': len(df),
        'n_loaded_rows': n_loaded,
        'n_blank_identifier_rows': n_blank,
        'n_input_peptides': len(df),
        'n_proteins_input': df[data_columns['protein_id']].nunique(),
        'n_samples': len(all_abundance),
        'conditions': list(abundance_cols.keys()),
        'replicates_per_condition': {k: len(v) for k, v in abundance_cols.items()},
        'missing_per_sample': per_column,
        'n_incomplete_input_rows': n_incomplete,
    }

    print("\n" + "="*80)
    print("DATA PREPARATION COMPLETE")
    print("="*80)
    print(f"\nPeptide rows:            {metadata['n_input_peptides']}")
    print(f"Proteins:                {metadata['n_proteins_input']}")
    print(f"Conditions analyzed:     {', '.join(metadata['conditions'])}")
    print(f"Total samples:           {metadata['n_samples']}")
    print("\n" + "="*80 + "\n")

    return_data = {
        'df': df,
        'raw_df': df,
        'config': config,
        'abundance_cols': abundance_cols,
        'metadata': metadata,
        'output_dirs': output_dirs,
    }

    # Auto-save for sequential workflow
    save_path = os.path.join(output_dir, 'data_after_prep.pkl')
    save_data(return_data, save_path)

    return return_data
