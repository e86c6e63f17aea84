"""
Results processing for NIPower.

This module turns the per-replicate non-inferiority probabilities into
power summaries and the tabular power report.
"""

from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Union

import numpy as np
import pandas as pd
from scipy import stats

from ..stats.hypotheses import DESCRIPTIONS, HYPOTHESES

STATUS_COMPLETE = "complete"
STATUS_PARTIAL = "partial"
STATUS_FAILED = "failed"

REPORT_COLUMNS = ["hypothesis", "median", "sd", "ci_lower", "ci_upper", "power", "n_used", "n_total"]


@dataclass(frozen=True)
class PowerSummary:
    """Aggregate over replicates for one hypothesis.

    ``power`` is the share of contributing replicates whose probability
    exceeds the decision threshold; ``power_ci_*`` is its 95%
    Clopper-Pearson interval.
    """

    hypothesis: str
    median: float
    sd: float
    ci_lower: float
    ci_upper: float
    power: float
    power_ci_lower: float
    power_ci_upper: float
    n_used: int
    n_total: int


def clopper_pearson(successes: int, n: int, level: float = 0.95):
    """Exact binomial interval for a proportion."""
    if n == 0:
        return float("nan"), float("nan")
    tail = (1.0 - level) / 2.0
    lower = 0.0 if successes == 0 else float(stats.beta.ppf(tail, successes, n - successes + 1))
    upper = 1.0 if successes == n else float(stats.beta.ppf(1.0 - tail, successes + 1, n - successes))
    return lower, upper


class ResultsProcessor:
    """Converts replicate probabilities into power estimates.

    Failed replicates (NaN probabilities) are excluded from every
    statistic but still counted in ``n_total``.
    """

    def __init__(self, prob_threshold: float, ci_coverage: float = 0.89):
        """Initialise the results processor.

        Args:
            prob_threshold: Replicate counts towards power when its
                probability is strictly above this value.
            ci_coverage: Coverage of the equal-tailed interval over
                replicate probabilities.
        """
        self.prob_threshold = prob_threshold
        self.ci_coverage = ci_coverage

    def summarize_probabilities(self, hypothesis: str, probabilities: Sequence[float]) -> PowerSummary:
        """Summarize one hypothesis' replicate probabilities."""
        values = np.asarray(probabilities, dtype=float)
        n_total = len(values)
        used = values[~np.isnan(values)]
        n_used = len(used)

        if n_used == 0:
            nan = float("nan")
            return PowerSummary(hypothesis, nan, nan, nan, nan, nan, nan, nan, 0, n_total)

        tail = (1.0 - self.ci_coverage) / 2.0
        lower, upper = np.quantile(used, [tail, 1.0 - tail])
        successes = int(np.sum(used > self.prob_threshold))
        power_lower, power_upper = clopper_pearson(successes, n_used)

        return PowerSummary(
            hypothesis=hypothesis,
            median=float(np.median(used)),
            sd=float(np.std(used, ddof=1)) if n_used > 1 else float("nan"),
            ci_lower=float(lower),
            ci_upper=float(upper),
            power=successes / n_used,
            power_ci_lower=power_lower,
            power_ci_upper=power_upper,
            n_used=n_used,
            n_total=n_total,
        )

    def summarize(self, replicates) -> List[PowerSummary]:
        """One ``PowerSummary`` per hypothesis, in ``HYPOTHESES`` order."""
        return [self.summarize_probabilities(name, [r.probability(name) for r in replicates]) for name in HYPOTHESES]


def _status(n_used: int, partial: bool) -> str:
    if n_used == 0:
        return STATUS_FAILED
    return STATUS_PARTIAL if partial else STATUS_COMPLETE


def build_power_result(
    config,
    settings,
    summaries: List[PowerSummary],
    sim_results: Dict[str, Any],
    parallel: bool = False,
) -> Dict[str, Any]:
    """
    Build complete power analysis result dictionary.

    Args:
        config: ``TrialConfig`` used for the run
        settings: ``SamplerSettings`` used for every fit
        summaries: Output of ``ResultsProcessor.summarize``
        sim_results: Output of ``SimulationRunner.run``
        parallel: Whether parallel processing was used

    Returns:
        Dict with ``"model"`` (configuration echo) and ``"results"``.
        ``results["status"]`` is ``"complete"``, ``"partial"`` (failed
        replicates or an exhausted budget) or ``"failed"`` (no replicate
        contributed).
    """
    replicates = sim_results["replicates"]
    n_failed = sim_results["n_failed"]
    n_used = len(replicates) - n_failed
    partial = sim_results["partial"] or n_failed > 0

    return {
        "model": {
            "config": config.to_dict(),
            "hypotheses": dict(DESCRIPTIONS),
            "sampler": asdict(settings),
            "n_simulations": config.n_simulations,
            "parallel": parallel,
        },
        "results": {
            "status": _status(n_used, partial),
            "summaries": summaries,
            "replicates": replicates,
            "n_simulations_used": n_used,
            "n_simulations_failed": n_failed,
            "n_simulations_dispatched": sim_results["n_dispatched"],
            "failure_reasons": dict(sim_results["failure_reasons"]),
            "stop_reason": sim_results["stop_reason"],
        },
    }


def power_table(result: Dict[str, Any], detailed: bool = False) -> pd.DataFrame:
    """One row per hypothesis (the tabular power report).

    With ``detailed=True`` the Monte Carlo interval on power is included.
    """
    rows = [asdict(s) for s in result["results"]["summaries"]]
    table = pd.DataFrame(rows)
    if detailed:
        return table
    return table[REPORT_COLUMNS]


def replicate_table(result: Dict[str, Any]) -> pd.DataFrame:
    """One row per dispatched replicate."""
    replicates = result["results"]["replicates"]
    return pd.DataFrame([asdict(r) for r in replicates])


def write_power_report(result: Dict[str, Any], path: Union[str, Path], replicates_path: Optional[Union[str, Path]] = None):
    """Write the power report (and optionally the replicate table) as CSV."""
    power_table(result).to_csv(path, index=False)
    if replicates_path is not None:
        replicate_table(result).to_csv(replicates_path, index=False)
