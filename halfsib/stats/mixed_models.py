"""Linear Mixed-Effects (LME) fitting for half-sib datasets.

Fits ``response ~ fixed factors + (1|Sire) + (1|Dam)``-style models with
statsmodels ``MixedLM`` (REML) and returns the variance components.

Nested grouping factors (dams within sires) are fitted with the outer
factor as ``groups`` and the inner one as a variance component. Crossed
factors are fitted as variance components of a single all-data group.
"""

import warnings
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

import numpy as np
import pandas as pd

from ..utils.parsers import DEFAULT_FORMULA, _to_statsmodels_spec

_SINGLE_GROUP = "_all"

# (optimiser, max iterations), tried in order until one converges.
FIT_ATTEMPTS: List[Tuple[str, int]] = [
    ("lbfgs", 200),
    ("lbfgs", 1000),
    ("powell", 2000),
    ("nm", 5000),
]


class ModelFitError(RuntimeError):
    """Raised when every fitting attempt failed with an error."""

    pass


@dataclass(frozen=True)
class VarianceComponents:
    """Variance component estimates from one mixed-model fit.

    Attributes:
        group_variances: Variance per random grouping factor.
        residual_variance: Residual (within-group) variance.
        log_likelihood: REML log-likelihood of the fit.
        converged: Optimiser convergence flag.
        method: Optimiser that produced the accepted fit.
        fixed_effects: Fixed-effect estimates by term name.
        clipped: Grouping factors whose negative estimate was clipped to 0.
        dropped_fixed: Fixed-effect columns dropped as aliased with earlier
            columns (not estimable).
    """

    group_variances: Dict[str, float]
    residual_variance: float
    log_likelihood: float
    converged: bool
    method: str
    fixed_effects: Dict[str, float] = field(default_factory=dict)
    clipped: Tuple[str, ...] = ()
    dropped_fixed: Tuple[str, ...] = ()

    @property
    def total_variance(self) -> float:
        """Phenotypic variance: sum of all group variances plus residual."""
        return float(sum(self.group_variances.values()) + self.residual_variance)

    def __getitem__(self, name: str) -> float:
        if name == "residual":
            return self.residual_variance
        return self.group_variances[name]


def _is_nested(frame: pd.DataFrame, child: str, parent: str) -> bool:
    """True if every level of *child* occurs within a single level of *parent*."""
    return bool(frame.groupby(child, observed=True)[parent].nunique().max() == 1)


def _choose_groups(
    frame: pd.DataFrame,
    random_terms: List[str],
    nested: Dict[str, str],
) -> Tuple[str, List[str]]:
    """Pick the ``groups`` column and the variance-component terms.

    Returns:
        ``(groups, vc_terms)``. ``groups`` is ``_SINGLE_GROUP`` when no
        random term contains all the others, in which case every random
        term becomes a variance component.
    """
    if nested:
        parent = next(iter(nested.values()))
        return parent, [term for term in random_terms if term != parent]

    for candidate in random_terms:
        others = [term for term in random_terms if term != candidate]
        if all(_is_nested(frame, other, candidate) for other in others):
            return candidate, others

    return _SINGLE_GROUP, list(random_terms)


def _aliased_columns(exog: np.ndarray) -> Tuple[List[int], List[int]]:
    """Split fixed-effect columns into estimable and aliased ones.

    Columns are taken left to right; a column is aliased if it lies in the
    span of the columns kept before it, so the earliest term wins.

    Returns:
        ``(keep, dropped)`` column indices.
    """
    keep: List[int] = []
    dropped: List[int] = []
    for j in range(exog.shape[1]):
        if np.linalg.matrix_rank(exog[:, keep + [j]]) > len(keep):
            keep.append(j)
        else:
            dropped.append(j)
    return keep, dropped


def fit_variance_components(
    frame: pd.DataFrame,
    formula: str = DEFAULT_FORMULA,
    reml: bool = True,
    verbose: bool = False,
) -> VarianceComponents:
    """Fit a random-intercept mixed model and extract variance components.

    Fixed-effect columns aliased with earlier ones (e.g. a sex contrast
    that is a sum of pond contrasts) are dropped before fitting and listed
    in ``dropped_fixed``.

    Convergence retry strategy: each entry of ``FIT_ATTEMPTS`` is tried in
    turn and the first converged fit is accepted. If none converged, the
    last successful (non-converged) fit is returned with
    ``converged=False``.

    Args:
        frame: Data with the response and every factor named in *formula*.
        formula: R-style formula, e.g. ``"BW ~ Pond + Sex + (1|Sire) + (1|Dam)"``.
        reml: Use REML (default) rather than ML.
        verbose: Print each failed attempt and any dropped fixed-effect
            column.

    Returns:
        :class:`VarianceComponents` for the accepted fit.

    Raises:
        ValueError: If the formula is malformed or names missing columns.
        ModelFitError: If every attempt raised an error.
    """
    try:
        import statsmodels.formula.api as smf
        from statsmodels.regression.mixed_linear_model import MixedLM
    except ImportError as e:
        raise ImportError("statsmodels required for mixed models: pip install statsmodels") from e

    spec = _to_statsmodels_spec(formula)
    needed = [spec["response"]] + spec["fixed_terms"] + spec["random_terms"]
    missing = [col for col in needed if col not in frame.columns]
    if missing:
        raise ValueError(f"Columns not found in data: {', '.join(missing)}")

    groups, vc_terms = _choose_groups(frame, spec["random_terms"], spec["nested"])
    data = frame.assign(**{_SINGLE_GROUP: 1}) if groups == _SINGLE_GROUP else frame
    re_formula = "0" if groups == _SINGLE_GROUP else "1"
    vc_formula = {term: f"0 + C({term})" for term in vc_terms} or None

    group_labels = np.asarray(data[groups])
    model = smf.mixedlm(
        spec["formula"],
        data,
        groups=group_labels,
        re_formula=re_formula,
        vc_formula=vc_formula,
    )

    # Confounded fixed factors (e.g. ponds holding a single sex) make exog
    # rank deficient; refit on the estimable columns only.
    keep, dropped = _aliased_columns(np.asarray(model.exog, dtype=float))
    dropped_fixed = tuple(model.exog_names[j] for j in dropped)
    if dropped:
        if verbose:
            print(f"Warning: fixed-effect column(s) aliased with earlier terms and dropped: {', '.join(dropped_fixed)}")
        model = MixedLM(
            pd.Series(model.endog, name=spec["response"]),
            pd.DataFrame(model.exog[:, keep], columns=[model.exog_names[j] for j in keep]),
            groups=group_labels,
            exog_re=model.exog_re,
            exog_vc=model.exog_vc,
        )

    result = None
    method_used = ""
    failure_reason: Optional[str] = None

    for method, max_iter in FIT_ATTEMPTS:
        try:
            with warnings.catch_warnings():
                warnings.simplefilter("ignore")
                attempt = model.fit(reml=reml, method=method, maxiter=max_iter)
        except Exception as e:
            failure_reason = f"{method}: {type(e).__name__}: {e}"
            if verbose:
                print(f"Warning: fit attempt failed ({failure_reason})")
            continue

        result, method_used = attempt, method
        if getattr(attempt, "converged", True):
            break
        failure_reason = f"{method}: did not converge in {max_iter} iterations"
        if verbose:
            print(f"Warning: {failure_reason}")

    if result is None:
        raise ModelFitError(f"Mixed model fit failed for every optimiser. Last failure: {failure_reason}")

    return _extract_components(result, groups, vc_terms, method_used, dropped_fixed)


def _extract_components(
    result,
    groups: str,
    vc_terms: List[str],
    method: str,
    dropped_fixed: Tuple[str, ...] = (),
) -> VarianceComponents:
    """Read variance components off a fitted ``MixedLMResults``."""
    raw: Dict[str, float] = {}

    if groups != _SINGLE_GROUP:
        cov_re = result.cov_re
        raw[groups] = float(cov_re.iloc[0, 0]) if hasattr(cov_re, "iloc") else float(np.asarray(cov_re).flat[0])

    vc_names = list(getattr(result.model.exog_vc, "names", vc_terms)) if vc_terms else []
    vcomp = np.atleast_1d(np.asarray(result.vcomp, dtype=float)) if vc_terms else np.empty(0)
    for name, value in zip(vc_names, vcomp):
        raw[name] = float(value)

    clipped = tuple(name for name, value in raw.items() if value < 0)
    group_variances = {name: max(value, 0.0) for name, value in raw.items()}

    return VarianceComponents(
        group_variances=group_variances,
        residual_variance=float(result.scale),
        log_likelihood=float(result.llf),
        converged=bool(getattr(result, "converged", True)),
        method=method,
        fixed_effects={str(k): float(v) for k, v in zip(result.model.exog_names, np.asarray(result.fe_params))},
        clipped=clipped,
        dropped_fixed=dropped_fixed,
    )
