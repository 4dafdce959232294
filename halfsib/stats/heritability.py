"""
Heritability from variance components.

In a half-sib design the sire component estimates a quarter of the
additive genetic variance, so ``h² = k * σ²_group / σ²_P`` with a
relatedness constant ``k`` per component.
"""

from dataclasses import dataclass
from typing import Dict

from ..core.design import BreedingDesign
from .mixed_models import VarianceComponents

RELATEDNESS_CONSTANTS: Dict[str, float] = {"sire": 4.0, "dam": 2.0, "combined": 2.0}


@dataclass(frozen=True)
class HeritabilityEstimates:
    """Sire, dam and combined heritability with the variances behind them."""

    sire: float
    dam: float
    combined: float
    sire_variance: float
    dam_variance: float
    residual_variance: float

    @property
    def phenotypic_variance(self) -> float:
        return self.sire_variance + self.dam_variance + self.residual_variance

    def as_dict(self) -> Dict[str, float]:
        return {"sire": self.sire, "dam": self.dam, "combined": self.combined}


def heritability_from_variances(sire_variance: float, dam_variance: float, residual_variance: float) -> HeritabilityEstimates:
    """Compute heritability ratios from the three variance components.

    Raises:
        ValueError: If a variance is negative or the total is zero.
    """
    for value, name in [(sire_variance, "sire"), (dam_variance, "dam"), (residual_variance, "residual")]:
        if value < 0:
            raise ValueError(f"{name} variance must be non-negative, got {value}")

    total = sire_variance + dam_variance + residual_variance
    if total <= 0:
        raise ValueError("Total phenotypic variance is zero; heritability is undefined")

    return HeritabilityEstimates(
        sire=RELATEDNESS_CONSTANTS["sire"] * sire_variance / total,
        dam=RELATEDNESS_CONSTANTS["dam"] * dam_variance / total,
        combined=RELATEDNESS_CONSTANTS["combined"] * (sire_variance + dam_variance) / total,
        sire_variance=sire_variance,
        dam_variance=dam_variance,
        residual_variance=residual_variance,
    )


def heritability(components: VarianceComponents, sire: str = "Sire", dam: str = "Dam") -> HeritabilityEstimates:
    """Heritability estimates from a fitted model.

    Args:
        components: Output of :func:`fit_variance_components`.
        sire: Name of the sire grouping factor in the fit.
        dam: Name of the dam grouping factor in the fit.

    Raises:
        KeyError: If either grouping factor is missing from the fit.
    """
    missing = [name for name in (sire, dam) if name not in components.group_variances]
    if missing:
        raise KeyError(
            f"Grouping factor(s) {', '.join(missing)} not in fitted components "
            f"({', '.join(components.group_variances)})"
        )
    return heritability_from_variances(
        components.group_variances[sire],
        components.group_variances[dam],
        components.residual_variance,
    )


def expected_heritability(design: BreedingDesign) -> HeritabilityEstimates:
    """Heritability implied by the configured standard deviations."""
    return heritability_from_variances(design.sire_sd**2, design.dam_sd**2, design.residual_sd**2)
