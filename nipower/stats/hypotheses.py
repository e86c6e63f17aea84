"""
Non-inferiority hypotheses over posterior slope draws.

H1: face-to-face versus the average of the two app arms.
H2: expert-guided app versus non-expert app.

For each hypothesis the posterior probability of non-inferiority is the
share of draws whose contrast lies below the margin. Every draw counts.
"""

from typing import Callable, Dict

import numpy as np

from ..core.conditions import Condition


def _h1(draws) -> np.ndarray:
    return draws.slope(Condition.F2F) - (draws.slope(Condition.APP_EXPERT) + draws.slope(Condition.APP_NONEXPERT)) / 2.0


def _h2(draws) -> np.ndarray:
    return draws.slope(Condition.APP_EXPERT) - draws.slope(Condition.APP_NONEXPERT)


HYPOTHESES: Dict[str, Callable] = {
    "H1": _h1,
    "H2": _h2,
}

DESCRIPTIONS: Dict[str, str] = {
    "H1": "F2F - mean(App_Expert, App_NonExpert)",
    "H2": "App_Expert - App_NonExpert",
}


def contrast_draws(draws, name: str) -> np.ndarray:
    """Per-draw value of the named slope contrast."""
    if name not in HYPOTHESES:
        raise KeyError(f"Unknown hypothesis '{name}'. Available: {', '.join(HYPOTHESES)}")
    return HYPOTHESES[name](draws)


def evaluate_hypotheses(draws, ni_margin: float) -> Dict[str, float]:
    """Posterior probability of non-inferiority for each hypothesis.

    Args:
        draws: ``PosteriorDraws``.
        ni_margin: Contrast values strictly below this count as
            non-inferior.

    Returns:
        Mapping of hypothesis name to a probability in [0, 1].
    """
    if draws.n_draws == 0:
        raise ValueError("Cannot evaluate hypotheses on zero draws")

    return {name: float(np.mean(contrast_draws(draws, name) < ni_margin)) for name in HYPOTHESES}
