"""
Aggregation functions for the TMT quantification pipeline.

Sums peptide rows that differ only by modification, removes peptides
with missing abundances, and rolls normalized peptides up to proteins
by their per-sample median.
"""

import copy
import os

import numpy as np
import pandas as pd

from .utils import DataQualityError, _all_abundance_columns, save_data

_REDUCERS = ('sum', 'median')


def count_missing(df, abundance_cols):
    """
    Count missing abundance values.

    Returns
    -------
    tuple
        (dict of column -> number of missing values,
         number of rows with at least one missing value)
    """
    missing = df[abundance_cols].isna()
    per_column = {col: int(n) for col, n in missing.sum().items()}
    return per_column, int(missing.any(axis=1).sum())


def aggregate_peptides(df, key_cols, abundance_cols, reducer='sum'):
    """
    Collapse rows sharing the same key into one row.

    Parameters
    ----------
    df : pd.DataFrame
        Table with key and abundance columns.
    key_cols : list of str
        Grouping key, e.g. [sequence, protein] or [protein].
    abundance_cols : list of str
        Columns reduced elementwise within each group.
    reducer : str, optional
        'sum' (default): a missing value in any contributing row makes
        the aggregated value missing.
        'median': median of the non-missing values.

    Returns
    -------
    pd.DataFrame
        One row per distinct key, key columns first, with a fresh index.
    """
    if reducer not in _REDUCERS:
        raise ValueError(f"Unknown reducer '{reducer}', expected one of {_REDUCERS}")

    key_cols = list(key_cols)
    abundance_cols = list(abundance_cols)

    if df.empty:
        return pd.DataFrame(columns=key_cols + abundance_cols)

    # NaN keys form their own group rather than vanishing
    grouped = df.groupby(key_cols, sort=True, dropna=False)

    if reducer == 'sum':
        reduced = grouped[abundance_cols].sum()
        has_missing = df[abundance_cols].isna().groupby(
            [df[k] for k in key_cols], sort=True, dropna=False
        ).any()
        reduced = reduced.mask(has_missing)
    else:
        reduced = grouped[abundance_cols].median()

    return reduced.reset_index()


def drop_incomplete(df, abundance_cols):
    """
    Remove rows with any missing abundance value.

    Returns
    -------
    tuple
        (filtered DataFrame with a fresh index, number of rows removed)
    """
    complete = df[abundance_cols].notna().all(axis=1)
    kept = df[complete].reset_index(drop=True)
    return kept, int((~complete).sum())


def log2_transform(df, abundance_cols):
    """
    Log2-transform abundance columns of a copy of ``df``.

    Zero abundances have no logarithm and raise DataQualityError.
    """
    values = df[abundance_cols]
    zeros = (values == 0).sum()
    zero_cols = [col for col, n in zeros.items() if n > 0]
    if zero_cols:
        raise DataQualityError(
            f"Cannot log2-transform zero abundances in columns: {zero_cols}"
        )

    out = df.copy()
    out[abundance_cols] = np.log2(values.astype(float))
    return out


def aggregate_tmt(data):
    """
    Sum modified forms of each peptide and drop incomplete peptides.

    Rows sharing the same (sequence, protein) pair, i.e. differing only
    in their modifications, are summed per sample. A missing value in any
    contributing row leaves the summed value missing, and the whole
    peptide is then excluded.

    Parameters
    ----------
    data : dict
        Output from prep_tmt().

    Returns
    -------
    dict
        Updated data dictionary with:
        - 'df': aggregated, complete peptide rows
        - 'metadata': adds 'n_unique_peptides' and 'n_excluded_peptides'

    Raises
    ------
    DataQualityError
        If every peptide has a missing value.

    Example
    -------
    >>> data = prep_tmt('config/experiment.yaml')
    >>> data = aggregate_tmt(data)
    """

    print("\n" + "="*80)
    print("PEPTIDE AGGREGATION")
    print("="*80)

    df = data['df']
    config = data['config']
    abundance_cols = data['abundance_cols']
    all_abundance = _all_abundance_columns(abundance_cols)

    seq_col = config['data_columns']['sequence']
    protein_col = config['data_columns']['protein_id']

    # =========================================================================
    # 1. SUM OVER MODIFICATIONS
    # =========================================================================
    print(f"\n[1/2] Summing modified forms per (sequence, protein)...")

    aggregated = aggregate_peptides(df, [seq_col, protein_col], all_abundance, reducer='sum')

    print(f"  > {len(df)} rows -> {len(aggregated)} unique peptides")

    # =========================================================================
    # 2. DROP PEPTIDES WITH MISSING VALUES
    # =========================================================================
    print(f"\n[2/2] Removing peptides with missing values...")

    _, n_incomplete = count_missing(aggregated, all_abundance)
    complete, n_excluded = drop_incomplete(aggregated, all_abundance)

    print(f"  Peptides with missing values: {n_incomplete}")
    print(f"  > Removed {n_excluded} peptides")
    print(f"    Remaining: {len(complete)} peptides")

    if complete.empty:
        raise DataQualityError(
            f"No complete peptides remain: all {len(aggregated)} peptides have missing values"
        )

    metadata = dict(data['metadata'])
    metadata.update({
        'level': 'peptide',
        'n_rows': len(complete),
        'n_unique_peptides': len(aggregated),
        'n_excluded_peptides': n_excluded,
    })

    data_updated = copy.copy(data)
    data_updated['df'] = complete
    data_updated['metadata'] = metadata

    # Auto-save for sequential workflow
    output_path = os.path.join(config['data_paths']['output_dir'], 'data_after_aggregate.pkl')
    save_data(data_updated, output_path)

    print("\n" + "="*80)
    print("AGGREGATION COMPLETE")
    print("="*80)
    print(f"\nNext step: norm_tmt() for loading normalization")
    print("="*80 + "\n")

    return data_updated


def rollup_tmt(data, log2=True):
    """
    Roll normalized peptides up to proteins by per-sample median.

    Parameters
    ----------
    data : dict
        Output from norm_tmt().
    log2 : bool, optional
        Log2-transform the protein abundances (default: True).

    Returns
    -------
    dict
        Updated data dictionary with:
        - 'df': one row per protein
        - 'peptide_df': the normalized peptide rows that were rolled up

    Example
    -------
    >>> data = norm_tmt(data)
    >>> data = rollup_tmt(data)
    """

    print("\n" + "="*80)
    print("PROTEIN ROLLUP")
    print("="*80)

    df = data['df']
    config = data['config']
    abundance_cols = data['abundance_cols']
    all_abundance = _all_abundance_columns(abundance_cols)

    protein_col = config['data_columns']['protein_id']

    print(f"\n[1/2] Taking median of {len(df)} peptides per protein...")

    proteins = aggregate_peptides(df, [protein_col], all_abundance, reducer='median')
    peptides_per_protein = df.groupby(protein_col).size()

    print(f"  > {len(proteins)} proteins")
    if len(proteins) > 0:
        print(f"    Single-peptide proteins: {int((peptides_per_protein == 1).sum())}")
        print(f"    Median peptides per protein: {peptides_per_protein.median():.0f}")

    if log2:
        print(f"\n[2/2] Applying log2 transformation...")
        proteins = log2_transform(proteins, all_abundance)
        print(f"  > Log2 transformation applied")
    else:
        print(f"\n[2/2] Skipping log2 transformation")

    metadata = dict(data['metadata'])
    metadata.update({
        'level': 'protein',
        'n_rows': len(proteins),
        'n_proteins': len(proteins),
        'log2': log2,
    })

    data_updated = copy.copy(data)
    data_updated['df'] = proteins
    data_updated['peptide_df'] = df
    data_updated['metadata'] = metadata

    output_path = os.path.join(config['data_paths']['output_dir'], 'data_after_rollup.pkl')
    save_data(data_updated, output_path)

    print("\n" + "="*80)
    print("ROLLUP COMPLETE")
    print("="*80)
    print(f"\nNext step: stat_tmt() for differential abundance testing")
    print("="*80 + "\n")

    return data_updated
