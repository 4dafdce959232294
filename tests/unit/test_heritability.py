"""
Tests for heritability estimation from variance components.
"""

import pytest

from halfsib.core import BreedingDesign
from halfsib.stats.heritability import (
    RELATEDNESS_CONSTANTS,
    HeritabilityEstimates,
    expected_heritability,
    heritability,
    heritability_from_variances,
)
from halfsib.stats.mixed_models import VarianceComponents


def _components(sire=9.0, dam=4.0, residual=25.0):
    return VarianceComponents(
        group_variances={"Sire": sire, "Dam": dam},
        residual_variance=residual,
        log_likelihood=-300.0,
        converged=True,
        method="lbfgs",
    )


class TestHeritabilityFromVariances:
    """Test the heritability ratios."""

    def test_default_variances(self):
        h2 = heritability_from_variances(9.0, 4.0, 25.0)
        assert h2.sire == pytest.approx(36 / 38)
        assert h2.dam == pytest.approx(8 / 38)
        assert h2.combined == pytest.approx(26 / 38)

    def test_phenotypic_variance(self):
        assert heritability_from_variances(9.0, 4.0, 25.0).phenotypic_variance == pytest.approx(38.0)

    def test_constants(self):
        assert RELATEDNESS_CONSTANTS == {"sire": 4.0, "dam": 2.0, "combined": 2.0}

    def test_zero_genetic_variance(self):
        h2 = heritability_from_variances(0.0, 0.0, 10.0)
        assert h2.sire == 0.0
        assert h2.dam == 0.0
        assert h2.combined == 0.0

    def test_can_exceed_one(self):
        """Sire h² is not bounded by 1 when the sire share exceeds a quarter."""
        assert heritability_from_variances(10.0, 0.0, 10.0).sire == pytest.approx(2.0)

    def test_zero_total(self):
        with pytest.raises(ValueError, match="undefined"):
            heritability_from_variances(0.0, 0.0, 0.0)

    def test_negative_rejected(self):
        with pytest.raises(ValueError, match="sire variance must be non-negative"):
            heritability_from_variances(-1.0, 4.0, 25.0)

    def test_as_dict(self):
        h2 = heritability_from_variances(9.0, 4.0, 25.0)
        assert set(h2.as_dict()) == {"sire", "dam", "combined"}

    def test_frozen(self):
        h2 = heritability_from_variances(9.0, 4.0, 25.0)
        with pytest.raises(AttributeError):
            h2.sire = 0.5


class TestHeritabilityFromComponents:
    """Test heritability from fitted components."""

    def test_reads_sire_and_dam(self):
        h2 = heritability(_components())
        assert isinstance(h2, HeritabilityEstimates)
        assert h2.sire == pytest.approx(36 / 38)

    def test_custom_names(self):
        components = VarianceComponents({"Father": 9.0, "Mother": 4.0}, 25.0, 0.0, True, "lbfgs")
        h2 = heritability(components, sire="Father", dam="Mother")
        assert h2.dam == pytest.approx(8 / 38)

    def test_missing_factor(self):
        components = VarianceComponents({"Sire": 9.0}, 25.0, 0.0, True, "lbfgs")
        with pytest.raises(KeyError, match="Dam"):
            heritability(components)

    def test_component_access(self):
        components = _components()
        assert components["Sire"] == 9.0
        assert components["residual"] == 25.0
        assert components.total_variance == pytest.approx(38.0)


class TestExpectedHeritability:
    """Test expected heritability from configured SDs."""

    def test_default_design(self):
        h2 = expected_heritability(BreedingDesign())
        assert h2.sire_variance == pytest.approx(9.0)
        assert h2.dam_variance == pytest.approx(4.0)
        assert h2.residual_variance == pytest.approx(25.0)
        assert h2.combined == pytest.approx(26 / 38)
