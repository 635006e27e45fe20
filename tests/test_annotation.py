"""Tests for tmtquant.annotation module."""

import os

import pandas as pd
import pytest

from tmtquant import annotate_tmt, export_tmt, stat_tmt
from tmtquant.annotation import (
    annotate_results,
    load_annotations,
    partition_results,
    write_id_lists,
)


@pytest.fixture
def results():
    return pd.DataFrame({
        'protein': ['A', 'B', 'C', 'D', 'E'],
        'difference': [1.5, -2.0, 0.8, 3.0, 0.1],
        'significant': [True, True, False, True, False],
        'relevant_change': [True, True, True, False, False],
        'test_error': ['', '', '', '', 'zero_variance'],
    })


@pytest.fixture
def annotations():
    return pd.DataFrame({
        'identifier': ['A', 'B', 'C', 'D', 'E', 'Z'],
        'name': ['GA', 'GB', 'GC', 'GD', 'GE', 'GZ'],
        'description': ['a', 'b', 'c', 'd', 'e', 'z'],
    })


class TestLoadAnnotations:
    def test_uses_first_three_columns(self, tmp_path):
        path = tmp_path / 'annotations.tsv'
        path.write_text(
            "Entry\tGene\tProtein names\tOrganism\n"
            "P1\tCDK1\tCyclin-dependent kinase 1\tHuman\n"
            "P2\tNA\tUncharacterized\tHuman\n"
        )
        df = load_annotations(str(path))

        assert list(df.columns) == ['identifier', 'name', 'description']
        assert df['identifier'].tolist() == ['P1', 'P2']
        assert df['name'].tolist() == ['CDK1', 'NA']

    def test_duplicate_identifiers_keep_first(self, tmp_path):
        path = tmp_path / 'annotations.tsv'
        path.write_text("id\tname\tdesc\nP1\tfirst\tx\nP1\tsecond\ty\n")

        df = load_annotations(str(path))
        assert df['name'].tolist() == ['first']

    def test_too_few_columns_raises(self, tmp_path):
        path = tmp_path / 'annotations.tsv'
        path.write_text("id\tname\nP1\tCDK1\n")

        with pytest.raises(ValueError, match='description'):
            load_annotations(str(path))

    def test_missing_file_raises(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_annotations(str(tmp_path / 'absent.tsv'))


class TestAnnotateResults:
    def test_inner_join_drops_unmatched(self, results, annotations):
        partial = annotations[annotations['identifier'] != 'C']
        annotated, n_unmatched = annotate_results(results, partial, 'protein')

        assert annotated['protein'].tolist() == ['A', 'B', 'D', 'E']
        assert 'Z' not in annotated['protein'].values
        assert 'identifier' not in annotated.columns
        assert n_unmatched == 1

    def test_adds_name_and_description(self, results, annotations):
        annotated, _ = annotate_results(results, annotations, 'protein')
        row = annotated.set_index('protein').loc['B']
        assert row['name'] == 'GB'
        assert row['description'] == 'b'


class TestPartitionResults:
    def test_partitions(self, results, annotations):
        annotated, _ = annotate_results(results, annotations, 'protein')
        partitions = partition_results(annotated, 'protein')

        assert partitions['up'] == ['A']
        assert partitions['down'] == ['B']
        assert partitions['background'] == ['A', 'B', 'C', 'D']

    def test_write_id_lists(self, tmp_path):
        partitions = {'up': ['A', 'C'], 'down': [], 'background': ['A', 'B', 'C']}
        paths = write_id_lists(partitions, str(tmp_path / 'enrichment'))

        with open(paths['up']) as f:
            assert f.read() == "A\nC\n"
        with open(paths['down']) as f:
            assert f.read() == ""
        with open(paths['background']) as f:
            assert f.read().splitlines() == ['A', 'B', 'C']
        assert os.path.basename(paths['up']) == 'foreground_up.txt'


class TestAnnotateExportTmt:
    def test_scenario_lists(self, protein_data):
        data = export_tmt(annotate_tmt(stat_tmt(protein_data)))

        annotated = data['annotated_results'].set_index('master_protein')
        assert annotated.loc['P1', 'name'] == 'CDK1'
        assert annotated.loc['P2', 'description'] == 'Actin, cytoplasmic 1'

        assert data['enrichment_sets'] == {
            'up': ['P1'],
            'down': ['P2'],
            'background': ['P1', 'P2'],
        }
        for path in data['enrichment_files'].values():
            assert os.path.exists(path)


class TestNumericIdentifiers:
    def test_numeric_ids_join_text_annotations(self):
        results = pd.DataFrame({
            'protein': [101, 102, 103],
            'difference': [1.0, -1.0, 0.5],
        })
        annotations = pd.DataFrame({
            'identifier': ['101', '102'],
            'name': ['GA', 'GB'],
            'description': ['a', 'b'],
        })

        annotated, n_unmatched = annotate_results(results, annotations, 'protein')

        assert annotated['protein'].tolist() == ['101', '102']
        assert annotated['name'].tolist() == ['GA', 'GB']
        assert n_unmatched == 1
