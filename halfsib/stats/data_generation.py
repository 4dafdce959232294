"""
Data Generator for half-sib breeding designs.

Builds one synthetic dataset in a single forward pass:

- Unbalanced dam family sizes summing exactly to the population size
- Dams grouped into consecutive blocks per sire
- Sire, dam and residual effects drawn from zero-mean normals
- Pond and sex levels assigned in level order, then shuffled as a whole
  so family membership and environment are independent

All sampling goes through an explicit ``numpy.random.Generator``. For a
fixed seed the generator is consumed in this order, which is what makes a
run reproducible:

    dam sizes -> sire effects -> dam effects -> residuals -> permutation
"""

from typing import Dict, Optional, Sequence

import numpy as np

from ..core.design import DEFAULT_MAX_PARTITION_ATTEMPTS, BreedingDesign
from ..core.records import BreedingRecords, GeneratedDataset, SampledEffects
from ..utils.validators import (
    _validate_block_divisibility,
    _validate_partition_feasibility,
    _validate_standard_deviation,
)


class PartitionError(RuntimeError):
    """Raised when no valid partition was drawn within the attempt limit."""

    pass


def partition_group_sizes(
    total: int,
    n_groups: int,
    low: int,
    high: int,
    rng: np.random.Generator,
    max_attempts: int = DEFAULT_MAX_PARTITION_ATTEMPTS,
) -> np.ndarray:
    """Draw ``n_groups`` sizes uniformly from ``[low, high]`` summing to ``total``.

    The whole set is redrawn until its sum matches. Infeasible targets are
    rejected before any sampling, and the number of redraws is capped.

    Args:
        total: Required sum of the sizes.
        n_groups: Number of sizes to draw.
        low: Smallest allowed size (inclusive, >= 1).
        high: Largest allowed size (inclusive).
        rng: Random generator.
        max_attempts: Maximum number of whole-set draws.

    Returns:
        (n_groups,) integer array of sizes.

    Raises:
        ValueError: If the target cannot be reached with these bounds.
        PartitionError: If ``max_attempts`` draws all missed the target.
    """
    _validate_partition_feasibility(total, n_groups, low, high).raise_if_invalid()
    if not isinstance(max_attempts, int) or max_attempts < 1:
        raise ValueError(f"max_attempts must be a positive integer, got {max_attempts}")

    for _ in range(max_attempts):
        sizes = rng.integers(low, high + 1, size=n_groups)
        if int(sizes.sum()) == total:
            return sizes.astype(np.intp)

    raise PartitionError(
        f"No partition of {total} into {n_groups} groups with sizes in [{low}, {high}] "
        f"found after {max_attempts} attempts. The target is feasible but improbable; "
        f"widen the size range or raise max_attempts."
    )


def aggregate_blocks(sizes: Sequence[int], block_size: int) -> np.ndarray:
    """Sum consecutive, non-overlapping blocks of ``block_size`` sizes.

    Used to turn dam family sizes into sire family sizes.

    Raises:
        ValueError: If ``len(sizes)`` is not a multiple of ``block_size``.
    """
    sizes = np.asarray(sizes, dtype=np.intp)
    _validate_block_divisibility(len(sizes), block_size).raise_if_invalid()
    return sizes.reshape(-1, block_size).sum(axis=1)


def expand_labels(counts: Sequence[int], labels: Optional[Sequence[int]] = None) -> np.ndarray:
    """Repeat each label by its count, keeping label order.

    ``expand_labels([2, 1, 3])`` gives ``[1, 1, 2, 3, 3, 3]``.

    Args:
        counts: Non-negative repeat count per label.
        labels: Labels to repeat. Defaults to ``1..len(counts)``.

    Returns:
        (sum(counts),) integer array.
    """
    counts = np.asarray(counts, dtype=np.intp)
    if np.any(counts < 0):
        raise ValueError(f"Repeat counts must be non-negative, got {counts.tolist()}")
    if labels is None:
        labels = np.arange(1, len(counts) + 1, dtype=np.intp)
    else:
        labels = np.asarray(labels)
        if len(labels) != len(counts):
            raise ValueError(f"Got {len(labels)} labels but {len(counts)} repeat counts")
    return np.repeat(labels, counts)


def sample_group_effects(n_groups: int, sd: float, rng: np.random.Generator) -> np.ndarray:
    """Draw one ``N(0, sd²)`` effect per group."""
    _validate_standard_deviation(sd, "sd").raise_if_invalid()
    return rng.normal(0.0, sd, size=n_groups)


def broadcast(values: np.ndarray, counts: Sequence[int]) -> np.ndarray:
    """Repeat each group-level value across the individuals of its group."""
    values = np.asarray(values)
    counts = np.asarray(counts, dtype=np.intp)
    if len(values) != len(counts):
        raise ValueError(f"Got {len(values)} group values but {len(counts)} group sizes")
    return np.repeat(values, counts)


def shuffle_rows(n_rows: int, rng: np.random.Generator) -> np.ndarray:
    """Uniform random permutation of ``0..n_rows-1``."""
    return rng.permutation(n_rows)


def _fixed_effect_table(design: BreedingDesign) -> Dict[str, np.ndarray]:
    """Pond and sex assignments in level order, aligned by individual index."""
    pond = expand_labels(design.pond_counts)
    sex = expand_labels(design.sex_counts)
    pond_effects = np.asarray(design.pond_effects, dtype=np.float64)
    sex_effects = np.asarray(design.sex_effects, dtype=np.float64)
    return {
        "pond": pond,
        "sex": sex,
        "pond_effect": pond_effects[pond - 1],
        "sex_effect": sex_effects[sex - 1],
    }


def assemble_records(
    random_table: Dict[str, np.ndarray],
    fixed_table: Dict[str, np.ndarray],
    intercept: float,
) -> BreedingRecords:
    """Join the two tables row by row and compute the response.

    Row ``i`` of the random-effect table is paired with row ``i`` of the
    (already shuffled) fixed-effect table. Only ids and the response are
    kept.

    Args:
        random_table: ``sire``, ``dam``, ``sire_effect``, ``dam_effect``,
            ``residual`` columns in natural family order.
        fixed_table: ``pond``, ``sex``, ``pond_effect``, ``sex_effect``
            columns.
        intercept: Population mean.
    """
    n_random = len(random_table["sire"])
    n_fixed = len(fixed_table["pond"])
    if n_random != n_fixed:
        raise ValueError(f"Random-effect table has {n_random} rows but fixed-effect table has {n_fixed}")

    bw = (
        intercept
        + random_table["sire_effect"]
        + random_table["dam_effect"]
        + random_table["residual"]
        + fixed_table["pond_effect"]
        + fixed_table["sex_effect"]
    )

    return BreedingRecords(
        sire=random_table["sire"],
        dam=random_table["dam"],
        pond=fixed_table["pond"],
        sex=fixed_table["sex"],
        bw=bw,
    )


def generate_dataset(design: BreedingDesign, rng: Optional[np.random.Generator] = None) -> GeneratedDataset:
    """Generate one half-sib dataset.

    Args:
        design: Validated breeding design.
        rng: Random generator. Defaults to ``default_rng(design.seed)``.

    Returns:
        A :class:`GeneratedDataset` with the records and the sampled effects.

    Raises:
        ValueError: If the design is invalid.
        PartitionError: If the dam-size partition could not be drawn.
    """
    design.validate().raise_if_invalid()
    if rng is None:
        rng = np.random.default_rng(design.seed)

    n = design.n_individuals
    low, high = design.dam_size_range

    # 1. Family sizes
    dam_sizes = partition_group_sizes(n, design.n_dams, low, high, rng, design.max_partition_attempts)
    sire_sizes = aggregate_blocks(dam_sizes, design.dams_per_sire)

    # 2. Random effects, in fixed consumption order
    sire_effects = sample_group_effects(design.n_sires, design.sire_sd, rng)
    dam_effects = sample_group_effects(design.n_dams, design.dam_sd, rng)
    residuals = sample_group_effects(n, design.residual_sd, rng)

    random_table = {
        "sire": expand_labels(sire_sizes),
        "dam": expand_labels(dam_sizes),
        "sire_effect": broadcast(sire_effects, sire_sizes),
        "dam_effect": broadcast(dam_effects, dam_sizes),
        "residual": residuals,
    }

    # 3. Fixed effects, shuffled as one table
    permutation = shuffle_rows(n, rng)
    fixed_table = {name: column[permutation] for name, column in _fixed_effect_table(design).items()}

    records = assemble_records(random_table, fixed_table, design.intercept)
    effects = SampledEffects(
        dam_sizes=dam_sizes,
        sire_sizes=sire_sizes,
        sire_effects=sire_effects,
        dam_effects=dam_effects,
        residuals=residuals,
        permutation=permutation,
    )
    return GeneratedDataset(records=records, effects=effects)
