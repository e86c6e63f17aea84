"""
Visualization utilities for NIPower.

This module provides plotting functions for power analysis results.
"""

from typing import Any, Dict, Optional

import numpy as np

from ..stats.hypotheses import HYPOTHESES

__all__ = []


def _create_probability_plot(result: Dict[str, Any], title: Optional[str] = None, show: bool = True):
    """Histogram of replicate non-inferiority probabilities per hypothesis.

    Draws one panel per hypothesis with the decision threshold as a dashed
    line and the empirical power in the panel title.

    Args:
        result: Output of ``build_power_result``.
        title: Figure title.
        show: Call ``plt.show()``; otherwise return the figure.

    Raises:
        ImportError: If ``matplotlib`` is not installed.
    """
    try:
        import matplotlib.pyplot as plt
    except ImportError:
        raise ImportError("matplotlib required for plotting: pip install matplotlib") from None

    threshold = result["model"]["config"]["prob_threshold"]
    replicates = result["results"]["replicates"]
    summaries = {s.hypothesis: s for s in result["results"]["summaries"]}

    fig, axes = plt.subplots(1, len(HYPOTHESES), figsize=(12, 5), sharey=True)
    axes = np.atleast_1d(axes)
    colors = plt.get_cmap("Set1")(np.linspace(0, 1, len(HYPOTHESES)))

    for ax, color, name in zip(axes, colors, HYPOTHESES):
        values = np.array([r.probability(name) for r in replicates], dtype=float)
        values = values[~np.isnan(values)]
        ax.hist(values, bins=np.linspace(0, 1, 21), color=color, alpha=0.7, edgecolor="white")
        ax.axvline(threshold, color="red", linestyle="--", linewidth=2, label=f"Threshold ({threshold})")

        power = summaries[name].power
        power_label = "NA" if np.isnan(power) else f"{power * 100:.1f}%"
        ax.set_title(f"{name}: power {power_label} (n={summaries[name].n_used})", fontsize=12)
        ax.set_xlabel("P(non-inferior)", fontsize=11)
        ax.set_xlim(0, 1)
        ax.grid(True, alpha=0.3)
        ax.legend(loc="upper left")

    axes[0].set_ylabel("Replicates", fontsize=11)
    fig.suptitle(title or "Non-inferiority probability across replicates", fontsize=14, fontweight="bold")
    plt.tight_layout()
    if show:
        plt.show()
    return fig
