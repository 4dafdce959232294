"""
Parsing utilities for HalfSib.

Turns R-style mixed-model formulas such as
``"BW ~ Pond + Sex + (1|Sire) + (1|Dam)"`` into the pieces the
statsmodels ``MixedLM`` formula interface needs.
"""

import re
from typing import Dict, List, Tuple

__all__ = []

# Unicode-aware identifier pattern: letter or underscore, then word characters
_IDENT = r"[^\W\d]\w*"

DEFAULT_FORMULA = "BW ~ Pond + Sex + (1|Sire) + (1|Dam)"


def _parse_formula(formula: str) -> Tuple[str, List[str], List[Dict]]:
    """Parse an R-style mixed-model formula into its components.

    Supported random-effect syntax:
    - ``(1|group)``: random intercept
    - ``(1|A/B)``: nested random intercepts (expands to ``(1|A) + (1|B)``
      with ``B`` marked as nested in ``A``)

    Random slopes are not supported.

    Args:
        formula: Formula string (e.g. ``"BW ~ Pond + Sex + (1|Sire/Dam)"``).

    Returns:
        Tuple of ``(response, fixed_terms, random_effects)`` where
        *random_effects* is a list of dicts with keys:
        - ``"grouping_var"``: grouping variable name
        - ``"parent_var"``: enclosing grouping variable (nested only)

    Raises:
        ValueError: If the formula has no response, no random effect, an
            unsupported random term, or a repeated grouping variable.
    """
    formula = formula.replace(" ", "")

    if "~" in formula:
        response, rhs = formula.split("~", 1)
    elif "=" in formula:
        response, rhs = formula.split("=", 1)
    else:
        raise ValueError(f"Formula must contain '~' or '=': '{formula}'")

    if not re.fullmatch(_IDENT, response):
        raise ValueError(f"Invalid response variable '{response}' in formula")

    random_effects: List[Dict] = []
    seen_grouping_vars: set = set()

    def _register(grouping_var: str):
        if grouping_var in seen_grouping_vars:
            raise ValueError(f"Duplicate random effect grouping variable: '{grouping_var}'")
        seen_grouping_vars.add(grouping_var)

    # 1. Nested random intercepts: (1|A/B)
    nested_pattern = rf"\(1\|({_IDENT})/({_IDENT})\)"
    for match in re.finditer(nested_pattern, rhs):
        parent_var, child_var = match.group(1), match.group(2)
        _register(parent_var)
        _register(child_var)
        random_effects.append({"grouping_var": parent_var})
        random_effects.append({"grouping_var": child_var, "parent_var": parent_var})
    rhs = re.sub(nested_pattern, "", rhs)

    # 2. Random intercepts: (1|A)
    intercept_pattern = rf"\(1\|({_IDENT})\)"
    for match in re.finditer(intercept_pattern, rhs):
        grouping_var = match.group(1)
        _register(grouping_var)
        random_effects.append({"grouping_var": grouping_var})
    rhs = re.sub(intercept_pattern, "", rhs)

    if "|" in rhs:
        raise ValueError(f"Unsupported random-effect term in '{formula}'. Only (1|group) and (1|A/B) are supported.")
    if not random_effects:
        raise ValueError(f"Formula '{formula}' has no random effect. Add at least one (1|group) term.")

    fixed_terms = [term for term in rhs.split("+") if term and term != "1"]
    for term in fixed_terms:
        if not re.fullmatch(_IDENT, term):
            raise ValueError(f"Unsupported fixed-effect term '{term}'. Use plain column names joined by '+'.")
        if term in seen_grouping_vars:
            raise ValueError(f"'{term}' appears both as a fixed effect and as a random grouping variable")

    return response, fixed_terms, random_effects


def _to_statsmodels_spec(formula: str) -> Dict[str, object]:
    """Translate an R-style formula into the parts ``smf.mixedlm`` needs.

    Fixed terms are wrapped in ``C()`` so they are always treated as
    factors. Which random term becomes ``groups`` depends on the data and
    is decided by the fitting code.

    Returns:
        Dict with keys ``formula`` (fixed part only), ``response``,
        ``fixed_terms``, ``random_terms`` and ``nested`` (child -> parent).
    """
    response, fixed_terms, random_effects = _parse_formula(formula)

    rhs = " + ".join(f"C({term})" for term in fixed_terms) if fixed_terms else "1"
    nested = {re_["grouping_var"]: re_["parent_var"] for re_ in random_effects if "parent_var" in re_}

    return {
        "formula": f"{response} ~ {rhs}",
        "response": response,
        "fixed_terms": fixed_terms,
        "random_terms": [re_["grouping_var"] for re_ in random_effects],
        "nested": nested,
    }
