"""
Simulation execution for NIPower.

Each replicate is a pure function of the trial configuration and its
replicate id: generate -> standardize -> dropout -> fit -> evaluate.
Replicates share no state, so they can run sequentially or across
worker processes with identical results.
"""

import math
import time
import warnings
from dataclasses import dataclass, replace
from typing import Any, Callable, Dict, List, Optional

from ..errors import DegenerateSample, NonConvergence, ResourceExhausted
from ..stats.data_generation import simulate_dataset
from ..stats.estimation import SamplerSettings, fit_model
from ..stats.hypotheses import evaluate_hypotheses


@dataclass(frozen=True)
class ReplicateResult:
    """Outcome of one simulation replicate.

    Attributes:
        sim_id: Replicate index (0-based).
        seed: Seed used for data generation and sampling.
        p_h1: Posterior probability that H1 is non-inferior (NaN if failed).
        p_h2: Posterior probability that H2 is non-inferior (NaN if failed).
        converged: ``False`` when the replicate failed.
        failure_reason: Short reason label for failed replicates.
        max_rhat: Largest R-hat of the fit (NaN if not fitted).
        min_ess: Smallest bulk ESS of the fit (NaN if not fitted).
    """

    sim_id: int
    seed: Optional[int]
    p_h1: float
    p_h2: float
    converged: bool = True
    failure_reason: Optional[str] = None
    max_rhat: float = math.nan
    min_ess: float = math.nan

    def probability(self, hypothesis: str) -> float:
        return {"H1": self.p_h1, "H2": self.p_h2}[hypothesis]

    @classmethod
    def failed(cls, sim_id: int, seed: Optional[int], reason: str, **diagnostics) -> "ReplicateResult":
        return cls(sim_id, seed, math.nan, math.nan, converged=False, failure_reason=reason, **diagnostics)


def replicate_seed(base_seed: Optional[int], sim_id: int) -> Optional[int]:
    """Replicate-local seed; depends only on the base seed and the id."""
    if base_seed is None:
        return None
    return base_seed + sim_id + 1


def run_replicate(config, sim_id: int, settings: Optional[SamplerSettings] = None) -> ReplicateResult:
    """Run one full replicate.

    Per-replicate errors (degenerate data, non-convergence) are returned
    as a failed ``ReplicateResult`` instead of raised.
    """
    seed = replicate_seed(config.seed, sim_id)
    try:
        data = simulate_dataset(config, seed)
        draws = fit_model(data, settings, seed)
    except DegenerateSample as e:
        return ReplicateResult.failed(sim_id, seed, f"degenerate sample: {e}")
    except NonConvergence as e:
        return ReplicateResult.failed(
            sim_id, seed, f"non-convergence ({e.reason})", max_rhat=e.max_rhat, min_ess=e.min_ess
        )

    probs = evaluate_hypotheses(draws, config.ni_margin)
    return ReplicateResult(
        sim_id=sim_id,
        seed=seed,
        p_h1=probs["H1"],
        p_h2=probs["H2"],
        max_rhat=draws.max_rhat,
        min_ess=draws.min_ess,
    )


def _reason_key(reason: str) -> str:
    """Group failure reasons by their label (drop the detail after ':')."""
    return reason.split(":", 1)[0]


class SimulationRunner:
    """Executes Monte Carlo replicates for power analysis.

    Replicates run sequentially or through ``joblib`` worker processes.
    Failed replicates are recorded and the run continues. An optional
    wall-clock ``time_budget`` (seconds) or ``max_iterations`` stops
    dispatching further replicates; completed ones are kept and the run is
    flagged as partial.
    """

    def __init__(
        self,
        n_simulations: int,
        parallel: bool = False,
        n_cores: int = 1,
        time_budget: Optional[float] = None,
        max_iterations: Optional[int] = None,
    ):
        """Initialise the simulation runner.

        Args:
            n_simulations: Number of replicates.
            parallel: Run replicates in ``joblib`` worker processes.
            n_cores: Number of worker processes when parallel.
            time_budget: Wall-clock limit in seconds (``None`` = unlimited).
            max_iterations: Maximum replicates to dispatch (``None`` = all).
        """
        self.n_simulations = n_simulations
        self.parallel = parallel
        self.n_cores = n_cores
        self.time_budget = time_budget
        self.max_iterations = max_iterations

    def run(
        self,
        config,
        settings: Optional[SamplerSettings] = None,
        replicate_func: Callable[..., ReplicateResult] = run_replicate,
        progress=None,
        cancel_check: Optional[Callable[[], bool]] = None,
        on_replicate: Optional[Callable[[ReplicateResult], None]] = None,
    ) -> Dict[str, Any]:
        """Run all replicates and collect their results.

        Args:
            config: ``TrialConfig``.
            settings: MCMC settings passed through to each replicate.
            replicate_func: ``(config, sim_id, settings) -> ReplicateResult``.
            progress: Optional ``ProgressReporter`` (advanced by 1 per
                replicate).
            cancel_check: Optional callable returning ``True`` to abort.
            on_replicate: Optional callback fired with each finished result.

        Returns:
            Dict with keys ``"replicates"`` (ordered by id),
            ``"n_dispatched"``, ``"n_failed"``, ``"failure_reasons"``,
            ``"partial"`` and ``"stop_reason"``.

        Raises:
            SimulationCancelled: If *cancel_check* returns ``True``.
        """
        settings = (settings or SamplerSettings()).resolved()

        n_planned = self.n_simulations
        if self.max_iterations is not None:
            n_planned = min(n_planned, int(self.max_iterations))

        if self.parallel and self.n_cores > 1:
            replicates, stop_reason = self._run_parallel(
                config, settings, replicate_func, n_planned, progress, cancel_check, on_replicate
            )
        else:
            replicates, stop_reason = self._run_sequential(
                config, settings, replicate_func, n_planned, progress, cancel_check, on_replicate
            )

        if stop_reason is None and n_planned < self.n_simulations:
            stop_reason = f"iteration budget reached after {n_planned} of {self.n_simulations} replicates"

        replicates.sort(key=lambda r: r.sim_id)
        failure_reasons: Dict[str, int] = {}
        for r in replicates:
            if not r.converged:
                key = _reason_key(r.failure_reason or "unknown")
                failure_reasons[key] = failure_reasons.get(key, 0) + 1
        n_failed = sum(failure_reasons.values())

        if stop_reason is not None:
            warnings.warn(f"{ResourceExhausted.__name__}: {stop_reason}")

        if replicates and n_failed == len(replicates):
            warnings.warn(f"All {n_failed} replicates failed")
        elif n_failed > 0:
            warnings.warn(f"{n_failed} of {len(replicates)} replicates failed ({n_failed / len(replicates):.1%})")

        return {
            "replicates": replicates,
            "n_dispatched": len(replicates),
            "n_failed": n_failed,
            "failure_reasons": failure_reasons,
            "partial": stop_reason is not None,
            "stop_reason": stop_reason,
        }

    def _budget_exhausted(self, started: float) -> bool:
        return self.time_budget is not None and (time.monotonic() - started) >= self.time_budget

    def _record(self, result: ReplicateResult, replicates: List[ReplicateResult], progress, on_replicate) -> None:
        replicates.append(result)
        if not result.converged:
            warnings.warn(f"Replicate {result.sim_id} failed: {result.failure_reason}")
        if on_replicate is not None:
            on_replicate(result)
        if progress is not None:
            progress.advance(1)

    def _run_sequential(self, config, settings, replicate_func, n_planned, progress, cancel_check, on_replicate):
        from ..progress import SimulationCancelled

        started = time.monotonic()
        replicates: List[ReplicateResult] = []

        for sim_id in range(n_planned):
            if cancel_check is not None and cancel_check():
                raise SimulationCancelled("Simulation cancelled by user")

            if self._budget_exhausted(started):
                return replicates, (
                    f"time budget of {self.time_budget}s exhausted after {len(replicates)} of {self.n_simulations} replicates"
                )

            self._record(replicate_func(config, sim_id, settings), replicates, progress, on_replicate)

        return replicates, None

    def _run_parallel(self, config, settings, replicate_func, n_planned, progress, cancel_check, on_replicate):
        from joblib import Parallel, delayed

        from ..progress import SimulationCancelled

        started = time.monotonic()
        replicates: List[ReplicateResult] = []
        stop_reason = None

        # Chains inside a replicate stay single-core; workers provide the parallelism
        worker_settings = replace(settings, cores=1)

        results = Parallel(
            n_jobs=self.n_cores,
            backend="loky",
            verbose=0,
            return_as="generator_unordered",
        )(delayed(replicate_func)(config, sim_id, worker_settings) for sim_id in range(n_planned))

        try:
            for result in results:
                if cancel_check is not None and cancel_check():
                    raise SimulationCancelled("Simulation cancelled by user")
                self._record(result, replicates, progress, on_replicate)
                if len(replicates) < n_planned and self._budget_exhausted(started):
                    stop_reason = (
                        f"time budget of {self.time_budget}s exhausted after {len(replicates)} of {self.n_simulations} replicates"
                    )
                    break
        finally:
            # Abort outstanding tasks once we stop consuming
            close = getattr(results, "close", None)
            if close is not None:
                close()

        return replicates, stop_reason
