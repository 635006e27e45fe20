"""
Loading normalization for the TMT quantification pipeline.

Rescales every sample so its total abundance equals the mean total
across samples, correcting for unequal loading between TMT channels.
"""

import copy
import os

import numpy as np

from .utils import DataQualityError, _all_abundance_columns, save_data


def scale_factors(df, abundance_cols):
    """
    Per-sample scale factors: column total / mean of all column totals.

    Raises
    ------
    DataQualityError
        If a column total is zero or not finite, since its factor would
        be undefined.
    """
    totals = df[abundance_cols].sum(axis=0)

    bad = [col for col, total in totals.items() if total == 0 or not np.isfinite(total)]
    if bad:
        raise DataQualityError(
            f"Cannot normalize columns with zero or undefined totals: {bad}"
        )

    return totals / totals.mean()


def total_sum_normalize(df, abundance_cols):
    """
    Divide each abundance column by its scale factor.

    After normalization every column sums to the mean of the input column
    sums, so normalizing already-normalized data leaves it unchanged.

    Parameters
    ----------
    df : pd.DataFrame
        Table with complete abundance columns.
    abundance_cols : list of str
        Columns to normalize.

    Returns
    -------
    tuple
        (normalized copy of df, pd.Series of scale factors per column)
    """
    factors = scale_factors(df, abundance_cols)

    out = df.copy()
    out[abundance_cols] = df[abundance_cols].astype(float).div(factors, axis=1)

    return out, factors


def norm_tmt(data):
    """
    Normalize peptide abundances for loading differences.

    Parameters
    ----------
    data : dict
        Output from aggregate_tmt().

    Returns
    -------
    dict
        Updated data dictionary with:
        - 'df': normalized peptide rows
        - 'pre_norm_df': the peptide rows before normalization
        - 'normalization': method, scale factors, totals before/after

    Example
    -------
    >>> data = aggregate_tmt(data)
    >>> data = norm_tmt(data)
    """

    print("\n" + "="*80)
    print("LOADING NORMALIZATION")
    print("="*80)

    df = data['df']
    config = data['config']
    abundance_cols = data['abundance_cols']
    all_abundance = _all_abundance_columns(abundance_cols)

    print(f"\nProcessing {len(df)} peptides across {len(all_abundance)} samples")

    # =========================================================================
    # 1. CHECK DATA BEFORE NORMALIZATION
    # =========================================================================
    print(f"\n[1/3] Sample totals before normalization:")

    totals_before = df[all_abundance].sum(axis=0)
    for col, total in totals_before.items():
        print(f"  {col}: {total:,.1f}")

    # =========================================================================
    # 2. NORMALIZATION
    # =========================================================================
    print(f"\n[2/3] Applying total-sum normalization...")

    normalized, factors = total_sum_normalize(df, all_abundance)

    for col, factor in factors.items():
        print(f"  {col}: factor {factor:.4f}")
    print(f"  > Total-sum normalization applied")

    # =========================================================================
    # 3. CHECK DATA AFTER NORMALIZATION
    # =========================================================================
    print(f"\n[3/3] Sample totals after normalization:")

    totals_after = normalized[all_abundance].sum(axis=0)
    for col, total in totals_after.items():
        print(f"  {col}: {total:,.1f}")

    if not np.allclose(totals_after.values, totals_before.mean(), rtol=1e-6):
        print(f"  Warning: normalized totals differ from the mean input total")

    data_updated = copy.copy(data)
    data_updated['df'] = normalized
    data_updated['pre_norm_df'] = df
    data_updated['normalization'] = {
        'method': 'total_sum',
        'factors': factors,
        'totals_before': totals_before,
        'totals_after': totals_after,
    }

    # Auto-save for sequential workflow
    output_path = os.path.join(config['data_paths']['output_dir'], 'data_after_norm.pkl')
    save_data(data_updated, output_path)

    print("\n" + "="*80)
    print("NORMALIZATION COMPLETE")
    print("="*80)
    print(f"\nNext step: rollup_tmt() for protein-level abundances")
    print("="*80 + "\n")

    return data_updated
