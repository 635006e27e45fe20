"""Tests for tmtquant.normalization module."""

import numpy as np
import pandas as pd
import pytest

from tmtquant import aggregate_tmt, norm_tmt
from tmtquant.normalization import scale_factors, total_sum_normalize
from tmtquant.utils import DataQualityError


@pytest.fixture
def unequal_df():
    """Three samples with deliberately unequal loading."""
    np.random.seed(42)
    base = np.random.lognormal(mean=8, sigma=1, size=40)
    return pd.DataFrame({
        'protein': [f'P{i}' for i in range(40)],
        's1': base * np.random.uniform(0.9, 1.1, 40),
        's2': base * 2.5 * np.random.uniform(0.9, 1.1, 40),
        's3': base * 0.4 * np.random.uniform(0.9, 1.1, 40),
    })


class TestTotalSumNormalize:
    def test_column_sums_equal_mean_input_sum(self, unequal_df):
        cols = ['s1', 's2', 's3']
        mean_total = unequal_df[cols].sum().mean()

        normalized, _ = total_sum_normalize(unequal_df, cols)

        np.testing.assert_allclose(normalized[cols].sum().values, mean_total, rtol=1e-6)

    def test_scale_factors(self):
        df = pd.DataFrame({'a': [1.0, 1.0], 'b': [2.0, 2.0], 'c': [3.0, 3.0]})
        factors = scale_factors(df, ['a', 'b', 'c'])
        np.testing.assert_allclose(factors.values, [0.5, 1.0, 1.5])

    def test_idempotent(self, unequal_df):
        cols = ['s1', 's2', 's3']
        once, _ = total_sum_normalize(unequal_df, cols)
        twice, factors = total_sum_normalize(once, cols)

        np.testing.assert_allclose(factors.values, 1.0, rtol=1e-9)
        np.testing.assert_allclose(twice[cols].values, once[cols].values, rtol=1e-9)

    def test_zero_total_column_raises(self):
        df = pd.DataFrame({'a': [1.0, 2.0], 'b': [0.0, 0.0]})
        with pytest.raises(DataQualityError, match="'b'"):
            total_sum_normalize(df, ['a', 'b'])

    def test_leaves_other_columns_and_input_untouched(self, unequal_df):
        before = unequal_df.copy()
        normalized, _ = total_sum_normalize(unequal_df, ['s1', 's2', 's3'])

        pd.testing.assert_frame_equal(unequal_df, before)
        assert normalized['protein'].tolist() == before['protein'].tolist()


class TestNormTmt:
    def test_factors_are_one_for_balanced_scenario(self, prepped_data):
        result = norm_tmt(aggregate_tmt(prepped_data))
        np.testing.assert_allclose(result['normalization']['factors'].values, 1.0)

    def test_records_pre_normalization_table(self, prepped_data):
        aggregated = aggregate_tmt(prepped_data)
        result = norm_tmt(aggregated)

        assert result['pre_norm_df'] is aggregated['df']
        assert result['normalization']['method'] == 'total_sum'

    def test_does_not_mutate_input(self, prepped_data):
        aggregated = aggregate_tmt(prepped_data)
        before = aggregated['df'].copy()

        norm_tmt(aggregated)

        pd.testing.assert_frame_equal(aggregated['df'], before)
        assert 'normalization' not in aggregated
