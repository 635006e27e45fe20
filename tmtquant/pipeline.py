"""
End-to-end driver for the TMT quantification pipeline.
"""

from .aggregation import aggregate_tmt, rollup_tmt
from .annotation import annotate_tmt, export_tmt
from .normalization import norm_tmt
from .prep import prep_tmt
from .statistics import stat_tmt
from .visualization import boxplot_tmt, volcano_tmt


def run_tmt(config_path, plots=True):
    """
    Run every step from the raw peptide table to the enrichment lists.

    Equivalent to calling prep_tmt, aggregate_tmt, norm_tmt, rollup_tmt,
    stat_tmt, annotate_tmt and export_tmt in order, with the thresholds
    taken from the config.

    Parameters
    ----------
    config_path : str
        Path to YAML configuration file.
    plots : bool, optional
        Also save the normalization box plots and volcano plot (default: True).

    Returns
    -------
    dict
        Output of export_tmt().

    Example
    -------
    >>> data = run_tmt('config/experiment.yaml')
    >>> data['enrichment_sets']['up']
    """
    data = prep_tmt(config_path)
    data = aggregate_tmt(data)
    data = norm_tmt(data)
    data = rollup_tmt(data)

    if plots:
        boxplot_tmt(data)

    data = stat_tmt(data)
    data = annotate_tmt(data)

    if plots:
        volcano_tmt(data)

    return export_tmt(data)
