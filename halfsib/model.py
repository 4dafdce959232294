"""
HalfSib - synthetic half-sib breeding designs.

This module provides the main HalfSib class: configure a breeding design,
generate a dataset, fit a mixed model and report heritability.
"""

import dataclasses
import warnings
from typing import Any, Callable, Dict, Optional, Sequence

import numpy as np

from .core import BreedingDesign, GeneratedDataset, ReplicateRunner, ReplicateSummary
from .core.records import COLUMNS
from .progress import ProgressReporter
from .stats.data_generation import generate_dataset
from .stats.heritability import expected_heritability, heritability
from .stats.mixed_models import fit_variance_components
from .utils.formatters import _format_results
from .utils.parsers import DEFAULT_FORMULA, _parse_formula
from .utils.validators import (
    _validate_failure_tolerance,
    _validate_replicates,
    _validate_seed,
)
from .utils.visualization import _create_heritability_plot


class HalfSib:
    """Half-sib breeding design simulator.

    Generates offspring of sires mated to several dams each, spread over
    ponds and sexes, and recovers sire/dam variance components and
    heritability with a linear mixed model.

    Configuration methods (``set_*``) validate immediately and return
    ``self`` for method chaining. The design itself is an immutable
    :class:`BreedingDesign`; each setter replaces it.

    Attributes:
        formula: Mixed-model formula used by ``fit`` and ``run_replicates``.
        n_replicates: Replicates for ``run_replicates`` (default: 200).
        max_failed_fits: Maximum acceptable failure rate (default: 0.03).

    Example:
        >>> model = HalfSib()
        >>> model.set_variances(sire=3.0, dam=2.0, residual=5.0)
        >>> model.set_ponds(effects=[5, -6, 3, -2], counts=[30, 20, 25, 25])
        >>> dataset = model.generate()
        >>> model.fit(dataset)
    """

    def __init__(self, formula: str = DEFAULT_FORMULA):
        """Initialise with the default 5-sire, 10-dam, 100-offspring design.

        Args:
            formula: R-style mixed-model formula, e.g.
                ``"BW ~ Pond + Sex + (1|Sire) + (1|Dam)"``. Must contain
                ``Sire`` and ``Dam`` random intercepts.
        """
        self._design = BreedingDesign()
        self.formula = DEFAULT_FORMULA
        self.n_replicates = 200
        self.max_failed_fits = 0.03
        self.set_formula(formula)

    # =========================================================================
    # Properties
    # =========================================================================

    @property
    def design(self) -> BreedingDesign:
        """Current breeding design."""
        return self._design

    @property
    def seed(self) -> Optional[int]:
        return self._design.seed

    # =========================================================================
    # Configuration methods
    # =========================================================================

    def _update_design(self, **changes):
        """Replace design fields, validating the resulting design as a whole."""
        new_design = dataclasses.replace(self._design, **changes)
        result = new_design.validate()
        for warning in result.warnings:
            print(f"Warning: {warning}")
        result.raise_if_invalid()
        self._design = new_design
        return self

    def set_design(self, **fields):
        """Set any :class:`BreedingDesign` fields at once.

        Use this when several interdependent fields change together, e.g.
        ``n_individuals`` with ``pond_counts`` and ``sex_counts``.

        Raises:
            TypeError: If a field name is unknown.
            ValueError: If the resulting design is invalid.
        """
        known = {f.name for f in dataclasses.fields(BreedingDesign)}
        unknown = sorted(set(fields) - known)
        if unknown:
            raise TypeError(f"Unknown design field(s): {', '.join(unknown)}. Available: {', '.join(sorted(known))}")
        for name in ("dam_size_range", "pond_effects", "pond_counts", "sex_effects", "sex_counts"):
            if name in fields:
                fields[name] = tuple(fields[name])
        return self._update_design(**fields)

    def set_hierarchy(self, n_sires: int, dams_per_sire: int = 2):
        """Set the number of sires and dams per sire (``n_dams`` follows)."""
        if not isinstance(n_sires, int) or not isinstance(dams_per_sire, int):
            raise TypeError("n_sires and dams_per_sire must be integers")
        return self._update_design(n_sires=n_sires, dams_per_sire=dams_per_sire, n_dams=n_sires * dams_per_sire)

    def set_variances(self, sire: Optional[float] = None, dam: Optional[float] = None, residual: Optional[float] = None):
        """Set the standard deviations of the sire, dam and residual effects.

        Arguments left as ``None`` keep their current value.
        """
        changes = {}
        if sire is not None:
            changes["sire_sd"] = sire
        if dam is not None:
            changes["dam_sd"] = dam
        if residual is not None:
            changes["residual_sd"] = residual
        return self._update_design(**changes)

    def set_intercept(self, intercept: float):
        """Set the population mean of the response."""
        return self._update_design(intercept=intercept)

    def set_dam_sizes(self, low: int, high: int):
        """Set the inclusive range of offspring per dam."""
        return self._update_design(dam_size_range=(low, high))

    def set_ponds(self, effects: Sequence[float], counts: Sequence[int]):
        """Set the pond effects and the number of individuals in each pond."""
        return self._update_design(pond_effects=tuple(effects), pond_counts=tuple(counts))

    def set_sexes(self, effects: Sequence[float] = (5.0, -5.0), n_males: int = 50, n_females: int = 50):
        """Set the sex effects ``(male, female)`` and the number of each sex."""
        return self._update_design(sex_effects=tuple(effects), sex_counts=(n_males, n_females))

    def set_seed(self, seed: Optional[int] = None):
        """Set random seed for reproducibility.

        Args:
            seed: Non-negative integer up to 3,000,000,000.
                Pass ``None`` to enable fully random seeding.

        Returns:
            self: For method chaining.

        Raises:
            TypeError: If *seed* is not an integer or ``None``.
            ValueError: If *seed* is negative or exceeds the maximum.
        """
        if seed is not None and (isinstance(seed, bool) or not isinstance(seed, int)):
            raise TypeError("seed must be an integer or None")
        _validate_seed(seed).raise_if_invalid()

        self._update_design(seed=seed)
        if seed is not None:
            print(f"Seed set to: {seed}")
        else:
            print("Random seeding enabled")
        return self

    def set_formula(self, formula: str):
        """Set the mixed-model formula.

        The formula may only use the generated columns and must include
        ``Sire`` and ``Dam`` random intercepts, since heritability is
        computed from those two components.

        Raises:
            ValueError: If the formula is malformed or does not fit the
                generated table.
        """
        response, fixed_terms, random_effects = _parse_formula(formula)
        grouping_vars = [re_["grouping_var"] for re_ in random_effects]

        unknown = [name for name in [response] + fixed_terms + grouping_vars if name not in COLUMNS]
        if unknown:
            raise ValueError(f"Unknown column(s) in formula: {', '.join(unknown)}. Available: {', '.join(COLUMNS)}")
        if response != "BW":
            raise ValueError(f"Response must be BW, got {response}")
        missing = [name for name in ("Sire", "Dam") if name not in grouping_vars]
        if missing:
            raise ValueError(f"Formula must include random intercepts for: {', '.join(f'(1|{m})' for m in missing)}")

        self.formula = formula
        return self

    def set_replicates(self, n_replicates: int):
        """Set the number of replicates for ``run_replicates``."""
        result = _validate_replicates(n_replicates)
        for warning in result.warnings:
            print(f"Warning: {warning}")
        result.raise_if_invalid()
        self.n_replicates = n_replicates
        return self

    def set_max_failed_fits(self, fraction: float):
        """Set the tolerated share of failed replicates (0-1)."""
        _validate_failure_tolerance(fraction).raise_if_invalid()
        self.max_failed_fits = float(fraction)
        return self

    # =========================================================================
    # Generation and analysis
    # =========================================================================

    def generate(self) -> GeneratedDataset:
        """Generate one dataset from the current design and seed."""
        rng = np.random.default_rng(self._design.seed)
        return generate_dataset(self._design, rng)

    def fit(
        self,
        dataset: Optional[GeneratedDataset] = None,
        print_results: bool = True,
        verbose: bool = False,
    ) -> Dict[str, Any]:
        """Fit the mixed model and compute heritability.

        Args:
            dataset: Dataset to fit. Generated from the current design
                when omitted.
            print_results: Print the variance-component table.
            verbose: Print failed optimiser attempts.

        Returns:
            Dict with ``"model"`` (formula, design sizes, seed) and
            ``"results"`` (``components``, ``heritability``, ``expected``).

        Raises:
            ModelFitError: If every optimiser failed.
        """
        if dataset is None:
            dataset = self.generate()

        components = fit_variance_components(dataset.to_frame(), self.formula, verbose=verbose)
        if components.clipped:
            warnings.warn(
                f"Negative variance estimate(s) clipped to zero: {', '.join(components.clipped)}",
                UserWarning,
                stacklevel=2,
            )
        h2 = heritability(components)
        expected = expected_heritability(self._design)

        result = {
            "model": {
                "formula": self.formula,
                "n_individuals": len(dataset.records),
                "n_sires": self._design.n_sires,
                "n_dams": self._design.n_dams,
                "seed": self._design.seed,
            },
            "results": {
                "components": components,
                "heritability": h2,
                "expected": expected,
            },
        }

        if print_results:
            print(
                _format_results(
                    "fit",
                    {
                        "components": {
                            **dataclasses.asdict(components),
                            "total_variance": components.total_variance,
                        },
                        "heritability": h2.as_dict(),
                        "expected": expected.as_dict(),
                    },
                )
            )
        return result

    def run_replicates(
        self,
        n_replicates: Optional[int] = None,
        summary: str = "short",
        print_results: bool = True,
        plot: bool = False,
        progress_callback: Optional[Callable[[int, int, int], None]] = None,
        cancel_check: Optional[Callable[[], bool]] = None,
    ) -> ReplicateSummary:
        """Run a Monte Carlo replicate study of the current design.

        Args:
            n_replicates: Overrides ``self.n_replicates`` for this call.
            summary: ``"short"`` or ``"long"`` printed summary.
            print_results: Print the summary table.
            plot: Show histograms of the heritability estimates.
            progress_callback: ``callback(done, total, failed)`` for progress,
                e.g. :class:`~halfsib.progress.PrintReporter`.
            cancel_check: Callable returning ``True`` to abort.

        Returns:
            A :class:`ReplicateSummary`.

        Raises:
            ReplicatesCancelled: If *cancel_check* returned ``True``.
            RuntimeError: If too many replicates failed.
        """
        if summary not in ("short", "long"):
            raise ValueError(f"summary must be 'short' or 'long', got '{summary}'")
        if n_replicates is not None:
            self.set_replicates(n_replicates)

        runner = ReplicateRunner(
            n_replicates=self.n_replicates,
            seed=self._design.seed,
            formula=self.formula,
            max_failed_fits=self.max_failed_fits,
        )

        progress = None
        if progress_callback is not None:
            progress = ProgressReporter(self.n_replicates, progress_callback)
            progress.start()

        study = runner.run(self._design, progress=progress, cancel_check=cancel_check)

        if progress is not None:
            progress.finish()

        if print_results:
            print(
                _format_results(
                    "replicates",
                    {
                        "summary": study.summary_table().to_dict(orient="index"),
                        "n_replicates": study.n_replicates,
                        "n_failed": study.n_failed,
                        "failure_reasons": study.failure_reasons,
                    },
                    summary,
                )
            )

        if plot:
            _create_heritability_plot(
                {key: study.estimates[key].tolist() for key in ("h2_sire", "h2_dam", "h2_combined")},
                {f"h2_{key}": value for key, value in study.expected.as_dict().items()},
                title=f"Heritability recovery ({study.n_replicates - study.n_failed} replicates)",
            )

        return study
