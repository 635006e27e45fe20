"""
Utility functions for the TMT quantification pipeline.

Internal helpers for configuration loading, abundance column detection,
directory management, and data serialization.
"""

import os
import pickle

import yaml


class DataQualityError(ValueError):
    """Raised when the data cannot be processed without producing undefined values."""


def _load_config(config_path):
    """Load YAML config file."""
    with open(config_path, 'r') as f:
        return yaml.safe_load(f)


def _identify_abundance_columns(df, config):
    """
    Map each condition to its abundance columns.

    Explicit ``data_columns.abundance_columns`` lists take precedence;
    otherwise columns containing both the abundance prefix and the
    condition name are used.
    """
    data_columns = config['data_columns']
    control = config['conditions']['control']
    treatment = config['conditions']['treatment']

    explicit = data_columns.get('abundance_columns')
    if explicit:
        abundance_cols = {cond: list(explicit[cond]) for cond in (control, treatment)}
    else:
        prefix = data_columns['abundance_prefix']
        abundance_cols = {}
        for cond in (control, treatment):
            cols = [c for c in df.columns if prefix in c and cond in c]
            abundance_cols[cond] = sorted(cols)

    for cond, cols in abundance_cols.items():
        missing = [c for c in cols if c not in df.columns]
        if missing:
            raise ValueError(f"Abundance columns for '{cond}' not found in input: {missing}")
        if len(cols) < 2:
            raise ValueError(
                f"Condition '{cond}' needs at least 2 replicate columns, found {len(cols)}"
            )

    overlap = set(abundance_cols[control]) & set(abundance_cols[treatment])
    if overlap:
        raise ValueError(f"Columns assigned to both conditions: {sorted(overlap)}")

    return abundance_cols


def _all_abundance_columns(abundance_cols):
    """Flatten the condition -> columns mapping, control first."""
    all_cols = []
    for cols in abundance_cols.values():
        all_cols.extend(cols)
    return all_cols


# Step outputs relative to data_paths.output_dir: boxplots go to qc, the
# volcano plot to viz, stats/annotated CSVs to tables, GO id lists to enrichment
OUTPUT_LAYOUT = {
    'figures': 'figures',
    'qc': os.path.join('figures', 'qc'),
    'viz': os.path.join('figures', 'viz'),
    'tables': 'tables',
    'enrichment': 'enrichment',
}


def _create_output_dirs(base_dir):
    """Create the output tree under base_dir and return name -> path."""
    dirs = {'base': base_dir}
    dirs.update({name: os.path.join(base_dir, rel) for name, rel in OUTPUT_LAYOUT.items()})

    for dir_path in dirs.values():
        os.makedirs(dir_path, exist_ok=True)

    return dirs


def save_data(data, filename=None):
    """
    Save analysis data to pickle file for sequential workflow.

    Parameters
    ----------
    data : dict
        Analysis data dictionary (output from prep_tmt, norm_tmt, etc.)
    filename : str, optional
        Custom filename. If None, uses default based on output_dir in config.

    Returns
    -------
    str
        Path where data was saved.

    Example
    -------
    >>> data = prep_tmt('config/experiment.yaml')
    >>> save_data(data)  # Saves to results/data_checkpoint.pkl
    """
    if filename is None:
        output_dir = data['config']['data_paths']['output_dir']
        filename = os.path.join(output_dir, 'data_checkpoint.pkl')

    with open(filename, 'wb') as f:
        pickle.dump(data, f)

    size_mb = os.path.getsize(filename) / (1024 * 1024)

    print(f"\n> Checkpoint saved: {filename} ({size_mb:.1f} MB)")

    return filename


def load_data(filepath):
    """
    Load analysis data from pickle file.

    Parameters
    ----------
    filepath : str
        Path to saved pickle file.

    Returns
    -------
    dict
        Analysis data dictionary.

    Example
    -------
    >>> from tmtquant import load_data
    >>> data = load_data('results/data_after_norm.pkl')
    >>> data = rollup_tmt(data)  # Continue from where you left off
    """
    if not os.path.exists(filepath):
        raise FileNotFoundError(f"Data file not found: {filepath}")

    print(f"\n{'='*80}")
    print(f"LOADING DATA")
    print(f"{'='*80}")

    with open(filepath, 'rb') as f:
        data = pickle.load(f)

    size_mb = os.path.getsize(filepath) / (1024 * 1024)

    print(f"Location: {filepath}")
    print(f"Size: {size_mb:.1f} MB")

    metadata = data.get('metadata', {})
    if metadata:
        print(f"\nData contains:")
        print(f"  Level: {metadata.get('level', 'unknown')} ({metadata.get('n_rows', '?')} rows)")
        if 'n_excluded_peptides' in metadata:
            print(f"  Peptides excluded for missing values: {metadata['n_excluded_peptides']}")
        if 'conditions' in metadata:
            print(f"  Conditions: {' vs '.join(reversed(metadata['conditions']))}")

    completed = [key for key in ('normalization', 'stats_results', 'annotated_results',
                                 'enrichment_sets') if key in data]
    if completed:
        print(f"  Completed: {', '.join(completed)}")

    print(f"{'='*80}\n")

    return data
