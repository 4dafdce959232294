"""Data generation, model fitting and heritability modules."""

from . import data_generation as data_generation
from . import heritability as heritability
from . import mixed_models as mixed_models
