"""
Visualization functions for the TMT quantification pipeline.

Generates abundance box plots before and after normalization and
volcano plots from the statistical results.
"""

import os

import matplotlib.pyplot as plt
import numpy as np
import pandas as pd
import seaborn as sns

from .utils import _all_abundance_columns

# Consistent color palette for an arbitrary number of conditions
_PALETTE = [
    '#1f77b4', '#2ca02c', '#d62728', '#ff7f0e', '#9467bd',
    '#8c564b', '#e377c2', '#7f7f7f', '#bcbd22', '#17becf',
]


def _condition_color_map(abundance_cols):
    """Build a color map for an arbitrary number of conditions."""
    conditions = list(abundance_cols.keys())
    return {cond: _PALETTE[i % len(_PALETTE)] for i, cond in enumerate(conditions)}


def _long_log2(df, abundance_cols):
    """Melt abundance columns into (sample, condition, log2 abundance) rows."""
    frames = []
    for condition, cols in abundance_cols.items():
        values = df[cols].astype(float)
        # zeros have no log2
        values = np.log2(values.where(values > 0))
        long_df = values.melt(var_name='sample', value_name='log2_abundance')
        long_df['condition'] = condition
        frames.append(long_df)
    return pd.concat(frames, ignore_index=True).dropna(subset=['log2_abundance'])


def _classify(stats_results):
    """Label each protein 'up', 'down' or 'not_significant'."""
    hits = stats_results['significant'] & stats_results['relevant_change']
    return np.where(
        hits & (stats_results['difference'] > 0), 'up',
        np.where(hits & (stats_results['difference'] < 0), 'down', 'not_significant')
    )


def boxplot_tmt(data):
    """
    Box plots of per-sample peptide abundances before and after normalization.

    Parameters
    ----------
    data : dict
        Output from norm_tmt() or any later step.

    Returns
    -------
    str
        Path of the saved figure.

    Example
    -------
    >>> data = norm_tmt(data)
    >>> boxplot_tmt(data)
    """

    print("\n" + "="*80)
    print("CREATING NORMALIZATION BOXPLOTS")
    print("="*80)

    abundance_cols = data['abundance_cols']
    before = data['pre_norm_df']
    after = data.get('peptide_df', data['df'])
    palette = _condition_color_map(abundance_cols)
    sample_order = _all_abundance_columns(abundance_cols)

    qc_dir = data['output_dirs']['qc']

    fig, axes = plt.subplots(1, 2, figsize=(14, 6), sharey=True)

    for ax, frame, title in [
        (axes[0], before, 'Before Normalization'),
        (axes[1], after, 'After Normalization'),
    ]:
        long_df = _long_log2(frame, abundance_cols)
        sns.boxplot(
            data=long_df,
            x='sample',
            y='log2_abundance',
            hue='condition',
            order=sample_order,
            palette=palette,
            dodge=False,
            ax=ax,
        )
        ax.set_title(title, fontsize=14, fontweight='bold')
        ax.set_xlabel('Sample', fontsize=12)
        ax.set_ylabel('Log2 Abundance', fontsize=12)
        ax.tick_params(axis='x', rotation=45)
        ax.grid(alpha=0.3)

    plt.tight_layout()
    boxplot_path = os.path.join(qc_dir, 'normalization_boxplots.pdf')
    plt.savefig(boxplot_path, dpi=300, bbox_inches='tight')
    plt.close()

    print(f"\n  > Saved: normalization_boxplots.pdf")
    print(f"    Location: {qc_dir}")
    print("\n" + "="*80 + "\n")

    return boxplot_path


def volcano_tmt(data, error_bars=True, label_top=10):
    """
    Volcano plot of mean difference vs -log10(p-value).

    Significant and relevant proteins are coloured by direction. With
    error_bars, each point carries its confidence interval.

    Parameters
    ----------
    data : dict
        Output from stat_tmt() or annotate_tmt().
    error_bars : bool, optional
        Draw horizontal confidence interval bars (default: True).
    label_top : int, optional
        Label this many hits with the smallest p-values (default: 10).
        Uses protein names when annotations are available.

    Returns
    -------
    str
        Path of the saved figure.

    Example
    -------
    >>> data = stat_tmt(data)
    >>> volcano_tmt(data, error_bars=False)
    """

    print("\n" + "="*80)
    print("CREATING VOLCANO PLOT")
    print("="*80)

    config = data['config']
    stats_params = data['stats_params']
    protein_col = config['data_columns']['protein_id']

    results = data.get('annotated_results', data['stats_results'])
    label_col = 'name' if 'name' in results.columns else protein_col
    results = results[results['test_error'] == ''].copy()

    viz_dir = data['output_dirs']['viz']

    results['neg_log10_pval'] = -np.log10(results['pvalue'].replace(0, 1e-300))
    categories = _classify(results)

    fig, ax = plt.subplots(figsize=(10, 8))

    for category, color, label in [
        ('not_significant', '#CCCCCC', 'Not Significant'),
        ('down', '#3498DB', 'Down'),
        ('up', '#E74C3C', 'Up'),
    ]:
        mask = categories == category
        subset = results[mask]
        if subset.empty:
            continue

        if error_bars:
            ax.errorbar(
                subset['difference'],
                subset['neg_log10_pval'],
                xerr=[
                    subset['difference'] - subset['ci_low'],
                    subset['ci_high'] - subset['difference'],
                ],
                fmt='none',
                ecolor=color,
                elinewidth=0.5,
                alpha=0.4,
            )
        ax.scatter(
            subset['difference'],
            subset['neg_log10_pval'],
            c=color,
            label=f'{label} ({len(subset)})',
            s=30,
            alpha=0.7,
            edgecolors='none'
        )

    min_diff = stats_params['min_diff']
    ax.axvline(min_diff, color='black', linestyle='--', linewidth=1, alpha=0.5)
    ax.axvline(-min_diff, color='black', linestyle='--', linewidth=1, alpha=0.5)
    ax.axvline(0, color='black', linewidth=0.5, alpha=0.5)

    if label_top:
        hits = results[categories != 'not_significant'].nsmallest(label_top, 'pvalue')
        for _, row in hits.iterrows():
            ax.annotate(
                row[label_col],
                xy=(row['difference'], row['neg_log10_pval']),
                xytext=(5, 5),
                textcoords='offset points',
                fontsize=8,
                alpha=0.8,
            )

    ax.set_xlabel('Log2 Difference', fontsize=12, fontweight='bold')
    ax.set_ylabel('-Log10 P-value', fontsize=12, fontweight='bold')
    ax.set_title(f"Volcano Plot: {stats_params['comparison']}", fontsize=14, fontweight='bold')
    ax.legend(loc='upper left', fontsize=10)
    ax.grid(alpha=0.3)

    suffix = '_ci' if error_bars else ''
    volcano_path = os.path.join(viz_dir, f"volcano_{stats_params['comparison']}{suffix}.pdf")
    plt.tight_layout()
    plt.savefig(volcano_path, dpi=300, bbox_inches='tight')
    plt.close()

    print(f"\n  > Saved: {os.path.basename(volcano_path)}")
    print(f"    Location: {viz_dir}")
    print("\n" + "="*80 + "\n")

    return volcano_path
