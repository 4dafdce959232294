"""
Tests for half-sib dataset generation.
"""

import dataclasses

import numpy as np
import pandas as pd
import pytest

from halfsib.core import BreedingDesign
from halfsib.core.records import COLUMNS
from halfsib.stats.data_generation import (
    PartitionError,
    aggregate_blocks,
    assemble_records,
    broadcast,
    expand_labels,
    generate_dataset,
    partition_group_sizes,
    sample_group_effects,
    shuffle_rows,
)
from tests.config import MC_Z, SEED


class TestPartitionGroupSizes:
    """Test the bounded-retry dam size partition."""

    def test_sum_and_bounds(self, rng):
        sizes = partition_group_sizes(100, 10, 5, 15, rng)
        assert len(sizes) == 10
        assert sizes.sum() == 100
        assert sizes.min() >= 5
        assert sizes.max() <= 15

    def test_integer_dtype(self, rng):
        sizes = partition_group_sizes(100, 10, 5, 15, rng)
        assert np.issubdtype(sizes.dtype, np.integer)

    @pytest.mark.parametrize("seed", range(10))
    def test_many_seeds_terminate(self, seed):
        sizes = partition_group_sizes(100, 10, 5, 15, np.random.default_rng(seed))
        assert sizes.sum() == 100

    def test_degenerate_range_is_exact(self, rng):
        """low == high leaves only one partition."""
        sizes = partition_group_sizes(50, 5, 10, 10, rng)
        np.testing.assert_array_equal(sizes, [10] * 5)

    def test_boundary_totals(self, rng):
        assert partition_group_sizes(20, 2, 10, 10, rng).sum() == 20
        assert partition_group_sizes(4, 2, 2, 3, rng).sum() == 4

    def test_total_too_large_raises_before_sampling(self):
        rng = np.random.default_rng(SEED)
        with pytest.raises(ValueError, match="Cannot partition"):
            partition_group_sizes(200, 10, 5, 15, rng)
        # generator untouched
        assert rng.integers(0, 1000) == np.random.default_rng(SEED).integers(0, 1000)

    def test_total_too_small_raises(self, rng):
        with pytest.raises(ValueError, match="Cannot partition"):
            partition_group_sizes(40, 10, 5, 15, rng)

    def test_low_above_high_raises(self, rng):
        with pytest.raises(ValueError, match="must not exceed"):
            partition_group_sizes(100, 10, 15, 5, rng)

    def test_zero_low_rejected(self, rng):
        with pytest.raises(ValueError, match="must be positive"):
            partition_group_sizes(10, 2, 0, 10, rng)

    def test_attempts_exhausted(self):
        """Feasible but improbable target with a single attempt."""
        with pytest.raises(PartitionError, match="after 1 attempts"):
            partition_group_sizes(10 * 5, 10, 5, 15, np.random.default_rng(SEED), max_attempts=1)

    def test_partition_error_is_runtime_error(self):
        assert issubclass(PartitionError, RuntimeError)

    def test_invalid_max_attempts(self, rng):
        with pytest.raises(ValueError, match="max_attempts"):
            partition_group_sizes(100, 10, 5, 15, rng, max_attempts=0)


class TestAggregateBlocks:
    """Test summing consecutive dam sizes into sire sizes."""

    def test_pairs(self):
        result = aggregate_blocks([6, 7, 12, 8, 5, 14, 15, 9, 11, 13], 2)
        np.testing.assert_array_equal(result, [13, 20, 19, 24, 24])

    def test_length_and_total(self, rng):
        sizes = partition_group_sizes(100, 10, 5, 15, rng)
        result = aggregate_blocks(sizes, 2)
        assert len(result) == 5
        assert result.sum() == sizes.sum()

    def test_block_size_one_is_identity(self):
        np.testing.assert_array_equal(aggregate_blocks([3, 4, 5], 1), [3, 4, 5])

    def test_indivisible_rejected(self):
        with pytest.raises(ValueError, match="cannot be split into blocks of 3"):
            aggregate_blocks([1, 2, 3, 4], 3)


class TestExpandLabels:
    """Test label expansion."""

    def test_basic(self):
        np.testing.assert_array_equal(expand_labels([2, 1, 3]), [1, 1, 2, 3, 3, 3])

    def test_counts_per_label(self):
        counts = [4, 0, 7, 2]
        labels = expand_labels(counts)
        assert len(labels) == sum(counts)
        for label, count in enumerate(counts, start=1):
            assert np.sum(labels == label) == count

    def test_order_preserved(self):
        labels = expand_labels([3, 5, 2])
        assert np.all(np.diff(labels) >= 0)

    def test_custom_labels(self):
        np.testing.assert_array_equal(expand_labels([1, 2], labels=[10, 20]), [10, 20, 20])

    def test_label_count_mismatch(self):
        with pytest.raises(ValueError, match="labels"):
            expand_labels([1, 2], labels=[1])

    def test_negative_count_rejected(self):
        with pytest.raises(ValueError, match="non-negative"):
            expand_labels([1, -1])


class TestSamplingAndBroadcast:
    """Test effect sampling and broadcasting."""

    def test_sample_length(self, rng):
        assert len(sample_group_effects(7, 2.0, rng)) == 7

    def test_zero_sd_gives_zeros(self, rng):
        np.testing.assert_array_equal(sample_group_effects(4, 0.0, rng), np.zeros(4))

    def test_negative_sd_rejected(self, rng):
        with pytest.raises(ValueError):
            sample_group_effects(4, -1.0, rng)

    def test_sample_moments(self, rng):
        values = sample_group_effects(20000, 3.0, rng)
        assert abs(values.mean()) < MC_Z * 3.0 / np.sqrt(20000)
        assert values.std() == pytest.approx(3.0, rel=0.05)

    def test_broadcast(self):
        np.testing.assert_array_equal(broadcast([1.5, -2.0], [2, 3]), [1.5, 1.5, -2.0, -2.0, -2.0])

    def test_broadcast_length_mismatch(self):
        with pytest.raises(ValueError, match="group sizes"):
            broadcast([1.0, 2.0], [1])

    def test_shuffle_is_permutation(self, rng):
        perm = shuffle_rows(50, rng)
        np.testing.assert_array_equal(np.sort(perm), np.arange(50))


class TestAssembleRecords:
    """Test the row-wise join of random and fixed tables."""

    def _tables(self):
        random_table = {
            "sire": np.array([1, 1, 2]),
            "dam": np.array([1, 2, 3]),
            "sire_effect": np.array([1.0, 1.0, -1.0]),
            "dam_effect": np.array([0.5, -0.5, 0.0]),
            "residual": np.array([0.1, 0.2, 0.3]),
        }
        fixed_table = {
            "pond": np.array([2, 1, 1]),
            "sex": np.array([1, 2, 1]),
            "pond_effect": np.array([-6.0, 5.0, 5.0]),
            "sex_effect": np.array([5.0, -5.0, 5.0]),
        }
        return random_table, fixed_table

    def test_response_is_sum_of_parts(self):
        random_table, fixed_table = self._tables()
        records = assemble_records(random_table, fixed_table, intercept=50.0)
        np.testing.assert_allclose(records.bw, [50.6, 50.7, 59.3])

    def test_ids_carried(self):
        random_table, fixed_table = self._tables()
        records = assemble_records(random_table, fixed_table, intercept=0.0)
        np.testing.assert_array_equal(records.pond, [2, 1, 1])
        np.testing.assert_array_equal(records.dam, [1, 2, 3])

    def test_length_mismatch(self):
        random_table, fixed_table = self._tables()
        fixed_table = {k: v[:2] for k, v in fixed_table.items()}
        with pytest.raises(ValueError, match="rows"):
            assemble_records(random_table, fixed_table, intercept=0.0)


class TestGenerateDataset:
    """Test the full generation pipeline."""

    def test_row_count_and_columns(self, default_design):
        frame = generate_dataset(default_design).to_frame()
        assert len(frame) == 100
        assert tuple(frame.columns) == COLUMNS

    def test_no_missing_values(self, default_design):
        frame = generate_dataset(default_design).to_frame()
        assert not frame.isna().any().any()

    def test_dtypes(self, default_design):
        frame = generate_dataset(default_design).to_frame()
        for column in ("Sire", "Dam", "Pond", "Sex"):
            assert isinstance(frame[column].dtype, pd.CategoricalDtype)
        assert frame["BW"].dtype == np.float64

    def test_level_counts(self, default_design):
        frame = generate_dataset(default_design).to_frame()
        assert frame["Sire"].nunique() == 5
        assert frame["Dam"].nunique() == 10
        assert frame["Pond"].value_counts().sort_index().tolist() == [30, 20, 25, 25]
        assert frame["Sex"].value_counts().sort_index().tolist() == [50, 50]

    def test_dams_nested_in_sires(self, default_design):
        frame = generate_dataset(default_design).to_frame()
        sires_per_dam = frame.groupby("Dam", observed=True)["Sire"].nunique()
        assert (sires_per_dam == 1).all()
        dams_per_sire = frame.groupby("Sire", observed=True)["Dam"].nunique()
        assert (dams_per_sire == 2).all()

    def test_family_sizes_match_effects(self, default_design):
        dataset = generate_dataset(default_design)
        frame = dataset.to_frame()
        dam_counts = frame["Dam"].value_counts().sort_index().to_numpy()
        np.testing.assert_array_equal(dam_counts, dataset.effects.dam_sizes)
        np.testing.assert_array_equal(aggregate_blocks(dataset.effects.dam_sizes, 2), dataset.effects.sire_sizes)

    def test_same_seed_identical(self, default_design):
        first = generate_dataset(default_design).to_frame()
        second = generate_dataset(default_design).to_frame()
        pd.testing.assert_frame_equal(first, second)

    def test_explicit_generator_matches_seed(self, default_design):
        first = generate_dataset(default_design).to_frame()
        second = generate_dataset(default_design, np.random.default_rng(default_design.seed)).to_frame()
        pd.testing.assert_frame_equal(first, second)

    def test_different_seed_differs(self, default_design):
        other = dataclasses.replace(default_design, seed=SEED + 1)
        first = generate_dataset(default_design).to_frame()
        second = generate_dataset(other).to_frame()
        assert first.shape == second.shape
        assert list(first.columns) == list(second.columns)
        assert not np.allclose(first["BW"].to_numpy(), second["BW"].to_numpy())

    def test_permutation_keeps_pond_sex_pairs(self, default_design):
        """The fixed table is shuffled as a whole, so (pond, sex) pairs survive."""
        frame = generate_dataset(default_design).to_frame()
        observed = frame.groupby(["Pond", "Sex"], observed=True).size()

        pond = expand_labels(default_design.pond_counts)
        sex = expand_labels(default_design.sex_counts)
        expected = pd.DataFrame({"Pond": pond, "Sex": sex}).groupby(["Pond", "Sex"]).size()

        assert observed.to_dict() == expected.to_dict()

    def test_pond_effect_applied(self, default_design):
        """With all random SDs at zero BW is exactly intercept + pond + sex."""
        design = dataclasses.replace(default_design, sire_sd=0.0, dam_sd=0.0, residual_sd=0.0)
        records = generate_dataset(design).records
        pond_effects = np.asarray(design.pond_effects)[records.pond - 1]
        sex_effects = np.asarray(design.sex_effects)[records.sex - 1]
        np.testing.assert_allclose(records.bw, design.intercept + pond_effects + sex_effects)

    def test_sire_means_track_sire_effects(self, large_design):
        """Per-sire mean of BW minus fixed effects is close to the sampled sire effect."""
        dataset = generate_dataset(large_design)
        records = dataset.records
        fixed = np.asarray(large_design.pond_effects)[records.pond - 1] + np.asarray(large_design.sex_effects)[records.sex - 1]
        adjusted = records.bw - large_design.intercept - fixed

        frame = pd.DataFrame({"sire": records.sire, "y": adjusted})
        means = frame.groupby("sire")["y"].mean().to_numpy()
        sizes = dataset.effects.sire_sizes

        # Within-sire noise: size-weighted dam effects plus averaged residuals
        weights = dataset.effects.dam_sizes.reshape(-1, large_design.dams_per_sire) / sizes[:, None]
        noise_sd = np.sqrt(large_design.dam_sd**2 * (weights**2).sum(axis=1) + large_design.residual_sd**2 / sizes)
        z = (means - dataset.effects.sire_effects) / noise_sd
        assert np.all(np.abs(z) < 4.5)
        assert np.corrcoef(means, dataset.effects.sire_effects)[0, 1] > 0.6

    def test_invalid_design_rejected(self):
        design = BreedingDesign(n_dams=9)
        with pytest.raises(ValueError, match="Validation failed"):
            generate_dataset(design)

    def test_partition_failure_propagates(self, default_design):
        design = dataclasses.replace(default_design, max_partition_attempts=1, n_individuals=50,
                                     pond_counts=(20, 10, 10, 10), sex_counts=(25, 25))
        with pytest.raises(PartitionError):
            generate_dataset(design)
