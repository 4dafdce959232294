"""HalfSib - synthetic half-sib breeding datasets.

Generates offspring of sires mated to several dams, spread over ponds and
sexes, and recovers sire/dam variance components and heritability with a
linear mixed model.

Example:
    >>> from halfsib import HalfSib
    >>>
    >>> model = HalfSib("BW ~ Pond + Sex + (1|Sire) + (1|Dam)")
    >>> model.set_variances(sire=3.0, dam=2.0, residual=5.0)
    >>> model.set_seed(2137)
    >>> dataset = model.generate()
    >>> model.fit(dataset)
    >>>
    >>> model.run_replicates(200, summary="long")
"""

from importlib.metadata import version as _get_version

from .core import BreedingDesign, GeneratedDataset, ReplicateSummary
from .model import HalfSib
from .progress import PrintReporter, ProgressReporter, ReplicatesCancelled, TqdmReporter
from .stats.data_generation import PartitionError, generate_dataset
from .stats.heritability import HeritabilityEstimates, expected_heritability, heritability
from .stats.mixed_models import ModelFitError, VarianceComponents, fit_variance_components

__version__ = _get_version("HalfSib")

__all__ = [
    "HalfSib",
    "BreedingDesign",
    "GeneratedDataset",
    "ReplicateSummary",
    "generate_dataset",
    "fit_variance_components",
    "VarianceComponents",
    "heritability",
    "expected_heritability",
    "HeritabilityEstimates",
    "PartitionError",
    "ModelFitError",
    "ReplicatesCancelled",
    "ProgressReporter",
    "PrintReporter",
    "TqdmReporter",
]
