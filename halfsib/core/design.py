"""
Breeding design configuration for HalfSib.

A ``BreedingDesign`` holds every scalar input the generator needs. It is
immutable: the ``HalfSib`` model builds a new design with
``dataclasses.replace`` whenever a setter changes a field.
"""

from dataclasses import dataclass
from typing import Optional, Tuple

from ..utils.validators import (
    _validate_count,
    _validate_hierarchy,
    _validate_level_spec,
    _validate_numeric_parameter,
    _validate_partition_feasibility,
    _validate_seed,
    _validate_standard_deviation,
    _ValidationResult,
)

DEFAULT_SEED = 2137
DEFAULT_MAX_PARTITION_ATTEMPTS = 100000


@dataclass(frozen=True)
class BreedingDesign:
    """Half-sib design: sires mated to dams, offspring spread over ponds.

    Attributes:
        n_sires: Number of sires (paternal half-sib families).
        n_dams: Number of dams. Must equal ``n_sires * dams_per_sire``.
        dams_per_sire: Dams mated to each sire (consecutive blocks).
        n_individuals: Total number of offspring.
        sire_sd: Standard deviation of sire effects.
        dam_sd: Standard deviation of dam effects.
        residual_sd: Standard deviation of the individual residuals.
        intercept: Population mean of the response.
        dam_size_range: Inclusive ``(low, high)`` range for offspring per dam.
        pond_effects: Fixed effect of each pond, in level order.
        pond_counts: Individuals assigned to each pond.
        sex_effects: Fixed effect of each sex, ``(male, female)``.
        sex_counts: Individuals of each sex, ``(males, females)``.
        seed: Seed for the random generator (``None`` for fresh entropy).
        max_partition_attempts: Redraw limit for the dam-size partition.
    """

    n_sires: int = 5
    n_dams: int = 10
    dams_per_sire: int = 2
    n_individuals: int = 100
    sire_sd: float = 3.0
    dam_sd: float = 2.0
    residual_sd: float = 5.0
    intercept: float = 50.0
    dam_size_range: Tuple[int, int] = (5, 15)
    pond_effects: Tuple[float, ...] = (5.0, -6.0, 3.0, -2.0)
    pond_counts: Tuple[int, ...] = (30, 20, 25, 25)
    sex_effects: Tuple[float, ...] = (5.0, -5.0)
    sex_counts: Tuple[int, ...] = (50, 50)
    seed: Optional[int] = DEFAULT_SEED
    max_partition_attempts: int = DEFAULT_MAX_PARTITION_ATTEMPTS

    @property
    def n_ponds(self) -> int:
        return len(self.pond_counts)

    @property
    def n_males(self) -> int:
        return self.sex_counts[0]

    @property
    def n_females(self) -> int:
        return self.sex_counts[1] if len(self.sex_counts) > 1 else 0

    def validate(self) -> _ValidationResult:
        """Check every field and the constraints between them.

        All problems are collected so the caller sees them together.
        """
        result = _validate_hierarchy(self.n_sires, self.n_dams, self.dams_per_sire)
        result = result.merge(_validate_count(self.n_individuals, "n_individuals"))
        result = result.merge(_validate_standard_deviation(self.sire_sd, "sire_sd"))
        result = result.merge(_validate_standard_deviation(self.dam_sd, "dam_sd"))
        result = result.merge(_validate_standard_deviation(self.residual_sd, "residual_sd"))
        result = result.merge(_validate_numeric_parameter(self.intercept, "intercept"))
        result = result.merge(_validate_seed(self.seed))
        result = result.merge(_validate_count(self.max_partition_attempts, "max_partition_attempts"))

        if len(self.dam_size_range) != 2:
            result = result.merge(
                _ValidationResult(False, [f"dam_size_range must be (low, high), got {self.dam_size_range}"], [])
            )
        elif isinstance(self.n_dams, int) and isinstance(self.n_individuals, int):
            low, high = self.dam_size_range
            result = result.merge(_validate_partition_feasibility(self.n_individuals, self.n_dams, low, high))

        if isinstance(self.n_individuals, int):
            result = result.merge(_validate_level_spec(self.pond_effects, self.pond_counts, self.n_individuals, "Pond"))
            result = result.merge(_validate_level_spec(self.sex_effects, self.sex_counts, self.n_individuals, "Sex"))

        return result
