"""Shared test fixtures for TMT quantification pipeline tests."""

import matplotlib
matplotlib.use('Agg')

import numpy as np
import pandas as pd
import pytest
import yaml

CONTROL_COLS = ['Abundance_G1_1', 'Abundance_G1_2', 'Abundance_G1_3']
TREATMENT_COLS = ['Abundance_M_1', 'Abundance_M_2', 'Abundance_M_3']


def _scenario_peptides():
    """
    Four peptide rows from two proteins.

    PEPTIDEA carries two modified forms that sum to (10, 11, 9 | 40, 41, 39).
    PEPTIDEB has a missing value and is excluded after aggregation.
    Every sample then totals 100, so normalization factors are all 1.
    """
    rows = [
        ('PEPTIDEA', 'Oxidation [M3]', 'P1', [4, 5, 4], [36, 36, 35]),
        ('PEPTIDEA', 'Deamidated [N2]', 'P1', [6, 6, 5], [4, 5, 4]),
        ('PEPTIDEB', 'TMT6plex [K]', 'P1', [7, np.nan, 8], [20, 21, 22]),
        ('PEPTIDEC', 'TMT6plex [K]', 'P2', [90, 89, 91], [60, 59, 61]),
    ]

    records = []
    for sequence, mods, protein, g1, m in rows:
        record = {'Sequence': sequence, 'Modifications': mods, 'master_protein': protein}
        record.update(dict(zip(CONTROL_COLS, g1)))
        record.update(dict(zip(TREATMENT_COLS, m)))
        records.append(record)

    return pd.DataFrame(records)


@pytest.fixture
def peptide_df():
    """Scenario peptide table as a DataFrame."""
    return _scenario_peptides()


@pytest.fixture
def sample_config(tmp_path):
    """Write the scenario peptide table, annotations and YAML config."""
    df = _scenario_peptides()
    peptide_path = str(tmp_path / 'peptides.tsv')
    df.to_csv(peptide_path, sep='\t', index=False, na_rep='NA')

    annotations = pd.DataFrame({
        'Entry': ['P1', 'P2', 'P9'],
        'Gene': ['CDK1', 'ACTB', 'UNUSED'],
        'Protein names': [
            'Cyclin-dependent kinase 1',
            'Actin, cytoplasmic 1',
            'Not in the experiment',
        ],
        'Organism': ['Human', 'Human', 'Human'],
    })
    annotation_path = str(tmp_path / 'annotations.tsv')
    annotations.to_csv(annotation_path, sep='\t', index=False)

    config = {
        'experiment': {
            'name': 'Test_Experiment',
            'description': 'Unit test experiment',
        },
        'conditions': {
            'control': 'G1',
            'treatment': 'M',
        },
        'data_columns': {
            'sequence': 'Sequence',
            'modifications': 'Modifications',
            'protein_id': 'master_protein',
            'abundance_prefix': 'Abundance_',
            'abundance_columns': {
                'G1': CONTROL_COLS,
                'M': TREATMENT_COLS,
            },
        },
        'data_paths': {
            'input_file': peptide_path,
            'annotation_file': annotation_path,
            'output_dir': str(tmp_path / 'results'),
        },
        'missing_values': ['NA'],
        'statistics': {
            'fdr_threshold': 0.01,
            'min_diff': 2 ** 0.5 - 1,
            'confidence_level': 0.95,
        },
    }

    config_path = str(tmp_path / 'test_config.yaml')
    with open(config_path, 'w') as f:
        yaml.dump(config, f)

    return config_path, tmp_path


@pytest.fixture
def prepped_data(sample_config):
    """Run prep_tmt and return the result for downstream tests."""
    from tmtquant import prep_tmt

    config_path, tmp_path = sample_config
    return prep_tmt(config_path)


@pytest.fixture
def protein_data(prepped_data):
    """Aggregated, normalized, rolled-up protein data."""
    from tmtquant import aggregate_tmt, norm_tmt, rollup_tmt

    return rollup_tmt(norm_tmt(aggregate_tmt(prepped_data)))
