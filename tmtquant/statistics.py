"""
Statistical analysis functions for the TMT quantification pipeline.

Performs per-protein Student's t-tests with confidence intervals,
Benjamini-Hochberg correction, and the confidence-interval based
effect-size filter for treatment vs. control comparisons.
"""

import copy
import os

import numpy as np
import pandas as pd
from scipy.stats import t as t_dist
from scipy.stats import ttest_ind
from statsmodels.stats.multitest import multipletests

from .utils import save_data

# log2(sqrt(2)): about a 41% fold change
DEFAULT_MIN_DIFF = 2 ** 0.5 - 1
DEFAULT_FDR_THRESHOLD = 0.01
DEFAULT_CONFIDENCE_LEVEL = 0.95

ZERO_VARIANCE = 'zero_variance'
NON_FINITE = 'non_finite'


def ttest_rows(df, treatment_cols, control_cols, confidence_level=DEFAULT_CONFIDENCE_LEVEL):
    """
    Two-sample, two-sided, equal-variance t-test for every row.

    Parameters
    ----------
    df : pd.DataFrame
        Table with one row per protein (log2 abundances).
    treatment_cols, control_cols : list of str
        Replicate columns of each group.
    confidence_level : float, optional
        Coverage of the confidence interval of the difference (default: 0.95).

    Returns
    -------
    pd.DataFrame
        Indexed like ``df`` with columns treatment_mean, control_mean,
        difference (treatment - control), t_statistic, pvalue, ci_low,
        ci_high and test_error. test_error is '' for a valid test,
        'zero_variance' when both groups are constant, and 'non_finite'
        when the row holds missing or infinite values; errored rows have
        NaN for t_statistic, pvalue and the confidence interval.
    """
    n1 = len(treatment_cols)
    n2 = len(control_cols)
    if n1 < 2 or n2 < 2:
        raise ValueError(
            f"Each group needs at least 2 replicates (got {n1} treatment, {n2} control)"
        )

    treatment = df[treatment_cols].to_numpy(dtype=float)
    control = df[control_cols].to_numpy(dtype=float)
    dof = n1 + n2 - 2

    finite = np.isfinite(treatment).all(axis=1) & np.isfinite(control).all(axis=1)
    constant = (np.ptp(treatment, axis=1) == 0) & (np.ptp(control, axis=1) == 0)
    zero_variance = finite & constant
    valid = finite & ~constant

    treatment_mean = treatment.mean(axis=1)
    control_mean = control.mean(axis=1)
    difference = treatment_mean - control_mean

    t_statistic = np.full(len(df), np.nan)
    pvalues = np.full(len(df), np.nan)
    ci_low = np.full(len(df), np.nan)
    ci_high = np.full(len(df), np.nan)

    if valid.any():
        result = ttest_ind(treatment[valid], control[valid], axis=1, equal_var=True)
        t_statistic[valid] = result.statistic
        pvalues[valid] = result.pvalue

        ss = (
            ((treatment[valid] - treatment_mean[valid, None]) ** 2).sum(axis=1)
            + ((control[valid] - control_mean[valid, None]) ** 2).sum(axis=1)
        )
        pooled_sd = np.sqrt(ss / dof)
        se = pooled_sd * np.sqrt(1.0 / n1 + 1.0 / n2)
        margin = t_dist.ppf((1 + confidence_level) / 2, dof) * se

        ci_low[valid] = difference[valid] - margin
        ci_high[valid] = difference[valid] + margin

    test_error = np.where(zero_variance, ZERO_VARIANCE, np.where(finite, '', NON_FINITE))

    return pd.DataFrame({
        'treatment_mean': treatment_mean,
        'control_mean': control_mean,
        'difference': difference,
        't_statistic': t_statistic,
        'pvalue': pvalues,
        'ci_low': ci_low,
        'ci_high': ci_high,
        'test_error': test_error,
    }, index=df.index)


def bh_adjust(pvalues):
    """
    Benjamini-Hochberg adjusted p-values, in input order.

    NaN p-values (failed tests) are left out of the correction and stay NaN.
    """
    pvalues = np.asarray(pvalues, dtype=float)
    adjusted = np.full(pvalues.shape, np.nan)

    valid_mask = ~np.isnan(pvalues)
    if valid_mask.any():
        _, adj_p, _, _ = multipletests(pvalues[valid_mask], method='fdr_bh')
        adjusted[valid_mask] = adj_p

    return adjusted


def ci_min_diff(ci_low, ci_high):
    """
    Confidence interval bound closest to zero.

    Returns 0 when the interval spans or touches zero, otherwise the bound
    with the smaller absolute value, keeping its sign. Accepts scalars or
    arrays.

    Examples
    --------
    >>> ci_min_diff(-0.3, 0.9)
    0.0
    >>> ci_min_diff(0.2, 0.9)
    0.2
    >>> ci_min_diff(-0.9, -0.2)
    -0.2
    """
    low = np.asarray(ci_low, dtype=float)
    high = np.asarray(ci_high, dtype=float)

    nearest = np.where(np.abs(low) < np.abs(high), low, high)
    result = np.where(low * high <= 0, 0.0, nearest)

    if result.ndim == 0:
        return float(result)
    return result


def stat_tmt(data, fdr_threshold=None, min_diff=None, confidence_level=None):
    """
    Test every protein for differential abundance between the conditions.

    For each protein:
    - Performs an equal-variance t-test (treatment vs control)
    - Records the mean difference and its confidence interval
    - Applies Benjamini-Hochberg correction across proteins
    - Flags significant (FDR < fdr_threshold) and relevant
      (|CI bound nearest zero| > min_diff) changes

    Thresholds default to the 'statistics' section of the config, then to
    FDR 0.01, min_diff 2**0.5 - 1 and a 95% confidence interval.

    Parameters
    ----------
    data : dict
        Output from rollup_tmt().
    fdr_threshold : float, optional
        FDR cutoff for significance.
    min_diff : float, optional
        Minimum absolute log2 difference of the CI bound nearest zero.
    confidence_level : float, optional
        Confidence level of the interval.

    Returns
    -------
    dict
        Updated data dictionary with:
        - 'stats_results': DataFrame with one row per protein
        - 'significant_proteins': counts of tested, failed, significant,
          relevant, up and down proteins
        - 'stats_params': parameters used for analysis

    Example
    -------
    >>> data = rollup_tmt(data)
    >>> data = stat_tmt(data, fdr_threshold=0.01)
    """

    print("\n" + "="*80)
    print("STATISTICAL ANALYSIS")
    print("="*80)

    df = data['df']
    config = data['config']
    abundance_cols = data['abundance_cols']

    stats_config = config.get('statistics') or {}
    if fdr_threshold is None:
        fdr_threshold = stats_config.get('fdr_threshold', DEFAULT_FDR_THRESHOLD)
    if min_diff is None:
        min_diff = stats_config.get('min_diff', DEFAULT_MIN_DIFF)
    if confidence_level is None:
        confidence_level = stats_config.get('confidence_level', DEFAULT_CONFIDENCE_LEVEL)

    control = config['conditions']['control']
    treatment = config['conditions']['treatment']
    protein_col = config['data_columns']['protein_id']
    comparison = f"{treatment}_vs_{control}"

    print(f"\nComparison: {comparison}")
    print(f"\nThresholds:")
    print(f"  FDR: {fdr_threshold}")
    print(f"  Min CI difference: {min_diff:.3f}")
    print(f"  Confidence level: {confidence_level}")

    # =========================================================================
    # 1. T-TESTS
    # =========================================================================
    print(f"\n[1/3] Running t-tests on {len(df)} proteins...")

    tests = ttest_rows(
        df, abundance_cols[treatment], abundance_cols[control],
        confidence_level=confidence_level,
    )

    results_df = pd.concat([df[[protein_col]], tests], axis=1)

    n_failed = int((results_df['test_error'] != '').sum())
    print(f"  > {len(results_df) - n_failed} proteins tested")
    if n_failed > 0:
        for code, n in results_df.loc[results_df['test_error'] != '', 'test_error'].value_counts().items():
            print(f"  Warning: {n} proteins could not be tested ({code})")

    # =========================================================================
    # 2. MULTIPLE TESTING CORRECTION
    # =========================================================================
    print(f"\n[2/3] Applying Benjamini-Hochberg correction...")

    results_df['fdr'] = bh_adjust(results_df['pvalue'].to_numpy())
    results_df['significant'] = (results_df['fdr'] < fdr_threshold).to_numpy()

    # =========================================================================
    # 3. EFFECT SIZE FILTER
    # =========================================================================
    print(f"\n[3/3] Applying effect-size filter...")

    results_df['ci_min_diff'] = ci_min_diff(
        results_df['ci_low'].to_numpy(), results_df['ci_high'].to_numpy()
    )
    results_df['relevant_change'] = (results_df['ci_min_diff'].abs() > min_diff).to_numpy()

    hits = results_df['significant'] & results_df['relevant_change']
    n_up = int((hits & (results_df['difference'] > 0)).sum())
    n_down = int((hits & (results_df['difference'] < 0)).sum())

    significant_proteins = {
        'comparison': comparison,
        'tested': len(results_df) - n_failed,
        'failed': n_failed,
        'significant': int(results_df['significant'].sum()),
        'relevant': int(results_df['relevant_change'].sum()),
        'significant_relevant': int(hits.sum()),
        'up': n_up,
        'down': n_down,
    }

    # =========================================================================
    # 4. SAVE RESULTS
    # =========================================================================
    tables_dir = data['output_dirs']['tables']

    results_path = os.path.join(tables_dir, 'stats_results.csv')
    results_df.to_csv(results_path, index=False)
    print(f"\n  > Saved: stats_results.csv ({len(results_df)} proteins)")

    summary_df = pd.DataFrame([{
        'Comparison': comparison,
        'Tested': significant_proteins['tested'],
        'Failed': n_failed,
        'Significant': significant_proteins['significant'],
        'Relevant': significant_proteins['relevant'],
        'Up': n_up,
        'Down': n_down,
        'FDR_threshold': fdr_threshold,
        'Min_diff': min_diff,
        'Confidence_level': confidence_level,
    }])
    summary_df.to_csv(os.path.join(tables_dir, 'summary.csv'), index=False)
    print(f"  > Saved: summary.csv")

    data_updated = copy.copy(data)
    data_updated['stats_results'] = results_df
    data_updated['significant_proteins'] = significant_proteins
    data_updated['stats_params'] = {
        'fdr_threshold': fdr_threshold,
        'min_diff': min_diff,
        'confidence_level': confidence_level,
        'comparison': comparison,
    }

    # Auto-save
    output_path = os.path.join(config['data_paths']['output_dir'], 'data_after_stat.pkl')
    save_data(data_updated, output_path)

    print("\n" + "="*80)
    print("STATISTICAL ANALYSIS COMPLETE")
    print("="*80)

    print(f"\n{comparison}:")
    print(f"  Significant (FDR < {fdr_threshold}): {significant_proteins['significant']}")
    print(f"  Relevant (|CI min diff| > {min_diff:.3f}): {significant_proteins['relevant']}")
    print(f"  Significant and relevant: {significant_proteins['significant_relevant']}")
    print(f"    Up in {treatment}: {n_up}")
    print(f"    Down in {treatment}: {n_down}")

    print("\n" + "="*80)
    print("Next step: annotate_tmt() to add protein names")
    print("="*80 + "\n")

    return data_updated
