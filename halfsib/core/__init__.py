"""Core components for the HalfSib framework.

Re-exports the foundational building blocks:

- ``BreedingDesign``: validated, immutable design configuration.
- ``BreedingRecords``, ``SampledEffects``, ``GeneratedDataset``: fixed-schema
  generator output.
- ``ReplicateRunner``, ``ReplicateSummary``: Monte Carlo replicate studies.
"""

from .design import BreedingDesign
from .records import BreedingRecords, GeneratedDataset, SampledEffects
from .replicates import ReplicateRunner, ReplicateSummary

__all__ = [
    # Design
    "BreedingDesign",
    # Records
    "BreedingRecords",
    "GeneratedDataset",
    "SampledEffects",
    # Replicates
    "ReplicateRunner",
    "ReplicateSummary",
]
