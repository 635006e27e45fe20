"""
TMT Quantification Pipeline
===========================

A teaching package for protein-level quantification of TMT peptide data
and differential abundance between two conditions.

Main Functions
--------------
prep_tmt()      - Load the peptide table and configuration
aggregate_tmt() - Sum modified peptide forms, drop incomplete peptides
norm_tmt()      - Total-sum loading normalization
rollup_tmt()    - Median protein rollup and log2 transform
stat_tmt()      - t-tests, BH correction, effect-size filter
annotate_tmt()  - Join protein names and descriptions
export_tmt()    - Write GO enrichment identifier lists
boxplot_tmt()   - Abundance box plots before/after normalization
volcano_tmt()   - Volcano plot with confidence intervals
run_tmt()       - Run every step in order
save_data()     - Save analysis data for later
load_data()     - Load saved analysis data

Example Workflow
----------------
>>> from tmtquant import prep_tmt, aggregate_tmt, norm_tmt, rollup_tmt, stat_tmt
>>>
>>> data = prep_tmt('config/experiment.yaml')
>>> data = aggregate_tmt(data)
>>> data = norm_tmt(data)
>>> data = rollup_tmt(data)
>>> data = stat_tmt(data, fdr_threshold=0.01)
"""

from .prep import prep_tmt
from .aggregation import aggregate_tmt, rollup_tmt
from .normalization import norm_tmt
from .statistics import stat_tmt
from .annotation import annotate_tmt, export_tmt
from .visualization import boxplot_tmt, volcano_tmt
from .pipeline import run_tmt
from .utils import DataQualityError, save_data, load_data


__version__ = "0.1.0"

__all__ = [
    'prep_tmt',
    'aggregate_tmt',
    'norm_tmt',
    'rollup_tmt',
    'stat_tmt',
    'annotate_tmt',
    'export_tmt',
    'boxplot_tmt',
    'volcano_tmt',
    'run_tmt',
    'DataQualityError',
    'save_data',
    'load_data',
]
