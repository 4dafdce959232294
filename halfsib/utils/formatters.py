"""
Result formatting for HalfSib.

Renders single-fit variance components and replicate-study summaries as
plain-text tables.
"""

import math
from typing import Any, Dict, List, Optional

__all__ = []


class _TableFormatter:
    """Plain-text table helpers shared by all result formatters."""

    def _create_table(
        self,
        headers: List[str],
        rows: List[List[str]],
        col_widths: Optional[List[int]] = None,
    ) -> str:
        """Render *headers* and *rows* as a left-aligned table.

        Each column is padded to its width and followed by one space.
        Widths default to the longest cell in each column.
        """
        if col_widths is None:
            col_widths = [max(len(str(cell)) for cell in column) for column in zip(headers, *rows)]

        def _line(cells):
            return "".join(f"{str(cell):<{width}} " for cell, width in zip(cells, col_widths))

        lines = [_line(headers), "-" * (sum(col_widths) + len(col_widths))]
        lines.extend(_line(row) for row in rows)
        return "\n".join(lines)

    def _format_value(self, value: Any, spec: Optional[str] = None) -> str:
        """Format floats compactly; everything else with ``str``."""
        if isinstance(value, float):
            if spec is not None:
                return format(value, spec)
            if value != 0 and abs(value) < 0.001:
                return f"{value:.6f}"
            return f"{value:.4f}"
        return str(value)

    def _format_interval(self, low: Optional[float], high: Optional[float]) -> str:
        if low is None or high is None or math.isnan(low) or math.isnan(high):
            return "-"
        return f"[{low:.4f}, {high:.4f}]"


class _ResultFormatter(_TableFormatter):
    """Formats fit results and replicate summaries."""

    def _format_fit(self, data: Dict[str, Any]) -> str:
        """Variance components and heritability of one fitted dataset."""
        components = data["components"]
        h2 = data["heritability"]
        expected = data.get("expected")

        out = ["=" * 60, "Variance Components", "=" * 60]
        total = components["total_variance"]
        rows = []
        for name, variance in components["group_variances"].items():
            rows.append([name, self._format_value(variance), self._format_value(variance / total * 100, ".1f")])
        rows.append(["Residual", self._format_value(components["residual_variance"]), self._format_value(components["residual_variance"] / total * 100, ".1f")])
        out.append(self._create_table(["Component", "Variance", "% of total"], rows))

        if components.get("clipped"):
            out.append(f"Clipped to zero: {', '.join(components['clipped'])}")
        if components.get("dropped_fixed"):
            out.append(f"Warning: aliased fixed-effect column(s) dropped: {', '.join(components['dropped_fixed'])}")
        if not components["converged"]:
            out.append("Warning: optimiser did not converge; estimates may be unreliable.")

        out.extend(["", "Heritability"])
        headers = ["Estimate", "h2"] + (["Expected"] if expected else [])
        rows = []
        for key in ("sire", "dam", "combined"):
            row = [key, self._format_value(h2[key])]
            if expected:
                row.append(self._format_value(expected[key]))
            rows.append(row)
        out.append(self._create_table(headers, rows))
        out.append(f"\nOptimiser: {components['method']}   log-likelihood: {self._format_value(components['log_likelihood'], '.3f')}")
        return "\n".join(out)

    def _format_short_replicates(self, data: Dict[str, Any]) -> str:
        """Heritability recovery at a glance."""
        table = data["summary"]
        out = [f"Replicate Study Results (R={data['n_replicates']}, failed={data['n_failed']})"]
        rows = []
        for key in ("h2_sire", "h2_dam", "h2_combined"):
            stats = table[key]
            rows.append([key, self._format_value(stats["mean"]), self._format_value(stats["expected"]), self._format_value(stats["bias"])])
        out.append(self._create_table(["Estimate", "Mean", "Expected", "Bias"], rows))
        return "\n".join(out)

    def _format_long_replicates(self, data: Dict[str, Any]) -> str:
        """Every estimate with mean, SD, expected value and bias."""
        table = data["summary"]
        out = ["=" * 60, "Replicate Study Results", "=" * 60]
        out.append(f"Replicates: {data['n_replicates']}   Failed: {data['n_failed']}")
        for reason, count in data.get("failure_reasons", {}).items():
            out.append(f"  {reason}: {count}")
        rows = []
        for key, stats in table.items():
            rows.append(
                [
                    key,
                    self._format_value(stats["mean"]),
                    self._format_value(stats["sd"]),
                    self._format_value(stats["expected"]),
                    self._format_value(stats["bias"]),
                    self._format_interval(stats.get("ci_low"), stats.get("ci_high")),
                ]
            )
        out.append("")
        out.append(self._create_table(["Estimate", "Mean", "SD", "Expected", "Bias", "95% CI"], rows))
        return "\n".join(out)


_formatter = _ResultFormatter()


def _format_results(result_type: str, data: Dict[str, Any], summary: str = "short") -> str:
    """Dispatch to the formatter for *result_type* (``"fit"`` or ``"replicates"``)."""
    if result_type == "fit":
        return _formatter._format_fit(data)
    if result_type == "replicates":
        if summary == "long":
            return _formatter._format_long_replicates(data)
        return _formatter._format_short_replicates(data)
    raise ValueError(f"Unknown result type: {result_type}")
