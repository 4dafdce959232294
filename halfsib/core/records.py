"""
Fixed-schema records produced by the dataset generator.
"""

from dataclasses import dataclass

import numpy as np
import pandas as pd

COLUMNS = ("Sire", "Dam", "Pond", "Sex", "BW")
FACTOR_COLUMNS = ("Sire", "Dam", "Pond", "Sex")


@dataclass(frozen=True)
class BreedingRecords:
    """One row per individual: family ids, environment ids and response.

    All arrays have the same length. Ids are 1-based level labels.
    """

    sire: np.ndarray
    """(N,) sire label of each individual."""

    dam: np.ndarray
    """(N,) dam label of each individual (globally unique across sires)."""

    pond: np.ndarray
    """(N,) pond label of each individual."""

    sex: np.ndarray
    """(N,) sex label of each individual (1 = male, 2 = female)."""

    bw: np.ndarray
    """(N,) response (body weight)."""

    def __post_init__(self):
        lengths = {len(self.sire), len(self.dam), len(self.pond), len(self.sex), len(self.bw)}
        if len(lengths) != 1:
            raise ValueError(f"All record columns must have the same length, got lengths {sorted(lengths)}")

    def __len__(self) -> int:
        return len(self.bw)

    def to_frame(self) -> pd.DataFrame:
        """Return the records as a DataFrame with categorical id columns.

        The column order is ``Sire, Dam, Pond, Sex, BW``; the id columns are
        ``category`` dtype so formula interfaces treat them as factors.
        """
        frame = pd.DataFrame(
            {
                "Sire": self.sire,
                "Dam": self.dam,
                "Pond": self.pond,
                "Sex": self.sex,
                "BW": self.bw.astype(np.float64),
            }
        )
        for column in FACTOR_COLUMNS:
            frame[column] = frame[column].astype("category")
        return frame


@dataclass(frozen=True)
class SampledEffects:
    """The true quantities drawn while generating one dataset.

    Kept next to the records so estimates can be compared against the
    values that actually produced the data.
    """

    dam_sizes: np.ndarray
    """(n_dams,) offspring per dam."""

    sire_sizes: np.ndarray
    """(n_sires,) offspring per sire."""

    sire_effects: np.ndarray
    """(n_sires,) sampled sire effects."""

    dam_effects: np.ndarray
    """(n_dams,) sampled dam effects."""

    residuals: np.ndarray
    """(N,) sampled residuals in natural family order."""

    permutation: np.ndarray
    """(N,) row order applied to the pond/sex table."""


@dataclass(frozen=True)
class GeneratedDataset:
    """Records plus the sampled effects behind them."""

    records: BreedingRecords
    effects: SampledEffects

    def to_frame(self) -> pd.DataFrame:
        return self.records.to_frame()
