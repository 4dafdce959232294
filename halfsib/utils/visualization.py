"""
Visualization utilities for HalfSib replicate studies.
"""

from typing import Dict, List

import numpy as np

__all__ = []


def _create_heritability_plot(
    estimates: Dict[str, List[float]],
    expected: Dict[str, float],
    title: str,
    show: bool = True,
):
    """Histogram of replicate heritability estimates, one panel per estimate.

    Each panel marks the expected value (dashed red) and the replicate mean
    (solid).

    Args:
        estimates: Mapping of estimate name to its replicate values.
        expected: Mapping of estimate name to the design's expected value.
        title: Figure title.
        show: Call ``plt.show()``; pass ``False`` to keep the figure open.

    Returns:
        The matplotlib ``Figure``.

    Raises:
        ImportError: If ``matplotlib`` is not installed.
    """
    try:
        import matplotlib.pyplot as plt
    except ImportError:
        raise ImportError("matplotlib required for plotting: pip install matplotlib") from None

    names = list(estimates)
    fig, axes = plt.subplots(1, len(names), figsize=(5 * len(names), 4), squeeze=False)
    colors = plt.get_cmap("Set1")(np.linspace(0, 1, max(len(names), 2)))

    for i, (ax, name) in enumerate(zip(axes[0], names)):
        values = np.asarray(estimates[name], dtype=float)
        ax.hist(values, bins="auto", color=colors[i], alpha=0.6, edgecolor="white")
        ax.axvline(expected[name], color="red", linestyle="--", linewidth=2, label=f"Expected ({expected[name]:.3f})")
        ax.axvline(values.mean(), color=colors[i], linewidth=2, label=f"Mean ({values.mean():.3f})")
        ax.set_title(name, fontsize=12)
        ax.set_xlabel("h²", fontsize=11)
        ax.grid(True, alpha=0.3)
        ax.legend(loc="upper right", fontsize=9)

    axes[0][0].set_ylabel("Replicates", fontsize=11)
    fig.suptitle(title, fontsize=14, fontweight="bold")
    plt.tight_layout(rect=(0, 0, 1, 0.95))
    if show:
        plt.show()
    return fig
