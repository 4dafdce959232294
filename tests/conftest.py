"""
Shared pytest fixtures for HalfSib tests.
"""

import numpy as np
import pytest

from halfsib.core import BreedingDesign
from tests.config import (
    LARGE_DAM_SIZE_RANGE,
    LARGE_DAMS_PER_SIRE,
    LARGE_N_INDIVIDUALS,
    LARGE_N_SIRES,
    SEED,
)


def pytest_configure(config):
    config.addinivalue_line("markers", "lme: tests that fit mixed models with statsmodels")
    config.addinivalue_line("markers", "slow: tests that take more than a few seconds")


@pytest.fixture
def rng():
    """Seeded generator."""
    return np.random.default_rng(SEED)


@pytest.fixture
def default_design():
    """The 5-sire, 10-dam, 100-offspring design."""
    return BreedingDesign()


@pytest.fixture
def large_design():
    """40 sires x 4 dams, 1600 offspring; variances are recoverable."""
    n = LARGE_N_INDIVIDUALS
    return BreedingDesign(
        n_sires=LARGE_N_SIRES,
        n_dams=LARGE_N_SIRES * LARGE_DAMS_PER_SIRE,
        dams_per_sire=LARGE_DAMS_PER_SIRE,
        n_individuals=n,
        dam_size_range=LARGE_DAM_SIZE_RANGE,
        pond_counts=(n // 4,) * 4,
        sex_counts=(n // 2, n // 2),
        seed=SEED,
    )


@pytest.fixture
def quiet_model():
    """HalfSib model with the default design; construction prints nothing."""
    from halfsib import HalfSib

    return HalfSib()
