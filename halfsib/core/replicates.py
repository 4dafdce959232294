"""
Monte Carlo replicate studies for HalfSib.

Repeats the generate-and-fit cycle many times to measure how well a given
breeding design recovers its true variance components and heritability.
"""

import warnings
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

import numpy as np
import pandas as pd
from scipy import stats

from ..stats.data_generation import PartitionError, generate_dataset
from ..stats.heritability import HeritabilityEstimates, expected_heritability, heritability
from ..stats.mixed_models import ModelFitError, fit_variance_components
from ..utils.parsers import DEFAULT_FORMULA
from .design import BreedingDesign

ESTIMATE_COLUMNS = ["sire_variance", "dam_variance", "residual_variance", "h2_sire", "h2_dam", "h2_combined"]


@dataclass
class ReplicateSummary:
    """Per-replicate estimates and their aggregate accuracy.

    Attributes:
        estimates: One row per successful replicate with the columns in
            ``ESTIMATE_COLUMNS`` plus ``replicate`` and ``method``.
        expected: Heritability implied by the design's standard deviations.
        n_replicates: Number of replicates attempted.
        n_failed: Replicates whose generation or fit failed.
        failure_reasons: Count of failures per reason.
    """

    estimates: pd.DataFrame
    expected: HeritabilityEstimates
    n_replicates: int
    n_failed: int = 0
    failure_reasons: Dict[str, int] = field(default_factory=dict)

    @property
    def expected_values(self) -> Dict[str, float]:
        return {
            "sire_variance": self.expected.sire_variance,
            "dam_variance": self.expected.dam_variance,
            "residual_variance": self.expected.residual_variance,
            "h2_sire": self.expected.sire,
            "h2_dam": self.expected.dam,
            "h2_combined": self.expected.combined,
        }

    def to_frame(self) -> pd.DataFrame:
        """Per-replicate estimates (one row per successful replicate)."""
        return self.estimates.copy()

    def summary_table(self, confidence: float = 0.95) -> pd.DataFrame:
        """Mean, SD, expected value, bias and a t-interval for every estimate.

        Args:
            confidence: Coverage of the interval around each mean.
        """
        expected = pd.Series(self.expected_values)
        estimates = self.estimates[ESTIMATE_COLUMNS]
        n = len(estimates)
        table = pd.DataFrame(
            {
                "mean": estimates.mean(),
                "sd": estimates.std(ddof=1),
                "expected": expected,
            }
        )
        table["bias"] = table["mean"] - table["expected"]

        if n > 1:
            half_width = stats.t.ppf(0.5 + confidence / 2, df=n - 1) * table["sd"] / np.sqrt(n)
        else:
            half_width = np.nan
        table["ci_low"] = table["mean"] - half_width
        table["ci_high"] = table["mean"] + half_width
        return table.loc[ESTIMATE_COLUMNS]


class ReplicateRunner:
    """Runs independent generate-and-fit replicates of one design.

    Replicate ``i`` draws from its own generator, spawned from
    ``SeedSequence(seed)``, so a study is reproducible and replicates do not
    share random streams. Failed replicates (partition not found, fit error,
    non-converged fit) are counted; the study aborts if their share exceeds
    ``max_failed_fits``.
    """

    def __init__(
        self,
        n_replicates: int,
        seed: Optional[int] = None,
        formula: str = DEFAULT_FORMULA,
        max_failed_fits: float = 0.03,
    ):
        """Initialise the replicate runner.

        Args:
            n_replicates: Number of replicates.
            seed: Base seed for the study (``None`` for fresh entropy).
            formula: Mixed-model formula fitted to each dataset.
            max_failed_fits: Maximum acceptable proportion of failed
                replicates (0-1).
        """
        self.n_replicates = n_replicates
        self.seed = seed
        self.formula = formula
        self.max_failed_fits = max_failed_fits

    def _generators(self) -> List[np.random.Generator]:
        children = np.random.SeedSequence(self.seed).spawn(self.n_replicates)
        return [np.random.default_rng(child) for child in children]

    def run(
        self,
        design: BreedingDesign,
        progress=None,
        cancel_check: Optional[Callable[[], bool]] = None,
    ) -> ReplicateSummary:
        """Run every replicate and summarise the estimates.

        Args:
            design: Breeding design to replicate.
            progress: Optional ``ProgressReporter``; every replicate is
                recorded as succeeded or failed.
            cancel_check: Optional callable returning ``True`` to abort.

        Returns:
            A :class:`ReplicateSummary`.

        Raises:
            ValueError: If the design is invalid.
            ReplicatesCancelled: If *cancel_check* returned ``True``.
            RuntimeError: If all replicates fail or the failure rate
                exceeds ``max_failed_fits``.
        """
        design.validate().raise_if_invalid()

        rows = []
        failure_reasons: Dict[str, int] = {}

        for replicate, rng in enumerate(self._generators()):
            if cancel_check is not None and cancel_check():
                from ..progress import ReplicatesCancelled

                raise ReplicatesCancelled("Replicate study cancelled by user")

            row, reason = self._single_replicate(replicate, design, rng)
            if row is not None:
                rows.append(row)
            else:
                failure_reasons[reason] = failure_reasons.get(reason, 0) + 1

            if progress is not None:
                progress.record(row is not None)

        if not rows:
            raise RuntimeError("All replicates failed")

        n_failed = self.n_replicates - len(rows)
        failed_pct = n_failed / self.n_replicates
        if failed_pct > self.max_failed_fits:
            raise RuntimeError(
                f"Too many failed replicates: {n_failed}/{self.n_replicates} "
                f"({failed_pct:.1%}), threshold: {self.max_failed_fits:.1%}"
            )
        elif n_failed > 0:
            warnings.warn(f"{n_failed} replicates failed ({failed_pct:.1%})")

        return ReplicateSummary(
            estimates=pd.DataFrame(rows),
            expected=expected_heritability(design),
            n_replicates=self.n_replicates,
            n_failed=n_failed,
            failure_reasons=failure_reasons,
        )

    def _single_replicate(self, replicate: int, design: BreedingDesign, rng: np.random.Generator):
        """Generate and fit one dataset. Returns ``(row, None)`` or ``(None, reason)``."""
        try:
            dataset = generate_dataset(design, rng)
            components = fit_variance_components(dataset.to_frame(), self.formula)
        except PartitionError:
            return None, "Partition not found"
        except ModelFitError as e:
            return None, f"Fit error: {e}"

        if not components.converged:
            return None, "Model did not converge"

        h2 = heritability(components)
        row = {
            "replicate": replicate,
            "sire_variance": h2.sire_variance,
            "dam_variance": h2.dam_variance,
            "residual_variance": h2.residual_variance,
            "h2_sire": h2.sire,
            "h2_dam": h2.dam,
            "h2_combined": h2.combined,
            "method": components.method,
        }
        return row, None
