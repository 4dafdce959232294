"""
Validation utilities for half-sib dataset generation.

This module provides validation functions for design inputs, sampling
parameters, and the arithmetic constraints the generator depends on.
"""

from dataclasses import dataclass
from typing import Any, List, Optional, Sequence, Union

__all__ = []

MAX_SEED = 3000000000


@dataclass
class _ValidationResult:
    """Outcome of a validation check, carrying errors and warnings.

    Attributes:
        is_valid: ``True`` if no errors were found.
        errors: List of error messages (empty when valid).
        warnings: List of non-fatal warning messages.
    """

    is_valid: bool
    errors: List[str]
    warnings: List[str]

    def raise_if_invalid(self):
        """Raise ``ValueError`` if the validation failed."""
        if not self.is_valid:
            error_msg = "Validation failed:\n" + "\n".join(f"• {err}" for err in self.errors)
            raise ValueError(error_msg)

    def merge(self, other: "_ValidationResult") -> "_ValidationResult":
        """Combine two results; the merged result is valid only if both are."""
        return _ValidationResult(
            self.is_valid and other.is_valid,
            self.errors + other.errors,
            self.warnings + other.warnings,
        )


class _Validator:
    """Static helpers for type and range checks used by all validators."""

    @staticmethod
    def _check_type(value: Any, expected_types: tuple, name: str) -> Optional[str]:
        """Check if value has expected type."""
        # bool is rejected even though it subclasses int
        if isinstance(value, bool) or not isinstance(value, expected_types):
            actual_type = type(value).__name__
            expected = expected_types[0].__name__ if len(expected_types) == 1 else f"one of {[t.__name__ for t in expected_types]}"
            return f"{name} must be {expected}, got {actual_type}"
        return None

    @staticmethod
    def _check_range(
        value: Union[int, float],
        min_val: Optional[float],
        max_val: Optional[float],
        name: str,
    ) -> Optional[str]:
        """Check if value is within range."""
        if min_val is not None and value < min_val:
            return f"{name} must be >= {min_val}, got {value}"
        if max_val is not None and value > max_val:
            return f"{name} must be <= {max_val}, got {value}"
        return None


_validator = _Validator()


def _validate_numeric_parameter(
    value: Any,
    name: str,
    expected_types: tuple = (int, float),
    min_val: Optional[float] = None,
    max_val: Optional[float] = None,
) -> _ValidationResult:
    """Generic validation for numeric parameters."""
    errors: List[str] = []
    warnings: List[str] = []

    type_error = _validator._check_type(value, expected_types, name)
    if type_error:
        errors.append(type_error)
        return _ValidationResult(False, errors, warnings)

    range_error = _validator._check_range(value, min_val, max_val, name)
    if range_error:
        errors.append(range_error)

    return _ValidationResult(len(errors) == 0, errors, warnings)


def _validate_count(value: Any, name: str, min_val: int = 1) -> _ValidationResult:
    """Validate a positive integer count (sires, dams, individuals...)."""
    return _validate_numeric_parameter(value, name, expected_types=(int,), min_val=min_val)


def _validate_standard_deviation(value: Any, name: str) -> _ValidationResult:
    """Validate a standard deviation (non-negative number)."""
    result = _validate_numeric_parameter(value, name, min_val=0)
    if result.is_valid and value == 0:
        result.warnings.append(f"{name} is 0. The corresponding effect will be identically zero.")
    return result


def _validate_seed(seed: Any) -> _ValidationResult:
    """Validate the random seed (``None`` or an int in ``[0, MAX_SEED]``)."""
    if seed is None:
        return _ValidationResult(True, [], [])
    return _validate_numeric_parameter(seed, "seed", expected_types=(int,), min_val=0, max_val=MAX_SEED)


def _validate_partition_feasibility(total: Any, n_groups: Any, low: Any, high: Any) -> _ValidationResult:
    """Check that ``n_groups`` integers in ``[low, high]`` can sum to ``total``."""
    errors: List[str] = []

    for value, name in [(total, "total"), (n_groups, "n_groups"), (low, "low"), (high, "high")]:
        type_error = _validator._check_type(value, (int,), name)
        if type_error:
            errors.append(type_error)
    if errors:
        return _ValidationResult(False, errors, [])

    if n_groups < 1:
        errors.append(f"n_groups must be >= 1, got {n_groups}")
    if low < 1:
        errors.append(f"Group sizes must be positive: low must be >= 1, got {low}")
    if low > high:
        errors.append(f"low ({low}) must not exceed high ({high})")
    if errors:
        return _ValidationResult(False, errors, [])

    min_sum, max_sum = n_groups * low, n_groups * high
    if not min_sum <= total <= max_sum:
        errors.append(
            f"Cannot partition {total} into {n_groups} groups with sizes in [{low}, {high}]: "
            f"reachable totals are {min_sum}..{max_sum}. Widen the size range or change the group count."
        )

    return _ValidationResult(len(errors) == 0, errors, [])


def _validate_block_divisibility(n_items: int, block_size: Any) -> _ValidationResult:
    """Check that ``n_items`` splits into whole blocks of ``block_size``."""
    errors: List[str] = []

    type_error = _validator._check_type(block_size, (int,), "block_size")
    if type_error:
        return _ValidationResult(False, [type_error], [])

    if block_size < 1:
        errors.append(f"block_size must be >= 1, got {block_size}")
    elif n_items % block_size != 0:
        errors.append(
            f"{n_items} groups cannot be split into blocks of {block_size}: "
            f"the last block would hold {n_items % block_size} group(s)."
        )

    return _ValidationResult(len(errors) == 0, errors, [])


def _validate_level_spec(
    effects: Sequence[Any],
    counts: Sequence[Any],
    n_individuals: int,
    factor_name: str,
) -> _ValidationResult:
    """Validate the level effects and level counts of one fixed factor."""
    errors: List[str] = []
    warnings: List[str] = []

    if len(effects) == 0:
        errors.append(f"{factor_name} needs at least one level")
        return _ValidationResult(False, errors, warnings)

    if len(effects) != len(counts):
        errors.append(f"{factor_name} has {len(effects)} level effects but {len(counts)} level counts")

    for i, effect in enumerate(effects, start=1):
        type_error = _validator._check_type(effect, (int, float), f"{factor_name} effect for level {i}")
        if type_error:
            errors.append(type_error)

    count_errors = False
    for i, count in enumerate(counts, start=1):
        result = _validate_count(count, f"{factor_name} count for level {i}", min_val=0)
        if not result.is_valid:
            errors.extend(result.errors)
            count_errors = True
        elif count == 0:
            warnings.append(f"{factor_name} level {i} has no individuals assigned")

    if not count_errors and sum(counts) != n_individuals:
        errors.append(f"{factor_name} counts sum to {sum(counts)}, expected n_individuals={n_individuals}")

    return _ValidationResult(len(errors) == 0, errors, warnings)


def _validate_hierarchy(n_sires: Any, n_dams: Any, dams_per_sire: Any) -> _ValidationResult:
    """Validate the sire/dam hierarchy sizes against each other."""
    result = _validate_count(n_sires, "n_sires")
    result = result.merge(_validate_count(n_dams, "n_dams"))
    result = result.merge(_validate_count(dams_per_sire, "dams_per_sire"))
    if not result.is_valid:
        return result

    result = result.merge(_validate_block_divisibility(n_dams, dams_per_sire))
    if result.is_valid and n_dams != n_sires * dams_per_sire:
        result.errors.append(
            f"n_dams ({n_dams}) must equal n_sires * dams_per_sire ({n_sires} * {dams_per_sire} = {n_sires * dams_per_sire})"
        )
        result.is_valid = False

    if result.is_valid and n_sires < 5:
        result.warnings.append(
            f"Only {n_sires} sires. Sire variance (and sire heritability) estimates will be very imprecise."
        )
    return result


def _validate_replicates(n_replicates: Any) -> _ValidationResult:
    """Validate the number of Monte Carlo replicates."""
    result = _validate_count(n_replicates, "Number of replicates")
    if result.is_valid and n_replicates < 100:
        result.warnings.append(
            f"Low replicate count ({n_replicates}). Consider using at least 100 for stable bias estimates."
        )
    return result


def _validate_failure_tolerance(fraction: Any) -> _ValidationResult:
    """Validate the tolerated fraction of failed model fits (0-1)."""
    return _validate_numeric_parameter(fraction, "max_failed_fits", min_val=0, max_val=1)
