"""
NIPower - Monte Carlo power analysis for Bayesian non-inferiority trials.

This module provides the main NIPower class for estimating the power of
the three-arm face-to-face versus app-delivered therapy trial.
"""

import warnings
from dataclasses import replace
from pathlib import Path
from typing import Any, Callable, Dict, Mapping, Optional, Union

from .core import (
    PROTOCOL_DEFAULTS,
    ResultsProcessor,
    SimulationRunner,
    TrialConfig,
    build_power_result,
    flatten_record,
    load_config,
    power_table,
    run_replicate,
)
from .core.conditions import resolve_condition
from .stats.estimation import SamplerSettings
from .utils.formatters import _format_results
from .utils.parsers import _parse_condition_values
from .utils.validators import (
    _validate_budget,
    _validate_ci_coverage,
    _validate_dropout,
    _validate_icc,
    _validate_margin,
    _validate_parallel_settings,
    _validate_seed,
    _validate_simulations,
    _validate_threshold,
)
from .utils.visualization import _create_probability_plot


class NIPower:
    """Monte Carlo power analysis for the non-inferiority hypotheses.

    Each replicate simulates a pre/post trial dataset, fits a Bayesian
    multilevel model and records the posterior probability that each
    slope contrast lies below the non-inferiority margin. Power is the
    share of replicates whose probability exceeds the decision threshold.

    All configuration methods (``set_*``) use deferred application: values
    are stored as pending and turned into a validated ``TrialConfig`` when
    ``apply()`` is called (or automatically before ``find_power``). Most
    ``set_*`` methods return ``self`` for method chaining.

    Example:
        >>> model = NIPower()
        >>> model.set_sample_sizes("f2f=50, app_expert=30, app_nonexpert=30")
        >>> model.set_effects("f2f=1.24, app_expert=1.24, app_nonexpert=1.24")
        >>> model.set_icc(0.5).set_dropout(0.2).set_margin(0.5)
        >>> model.find_power()
    """

    def __init__(self, config: Union[TrialConfig, Mapping[str, Any], None] = None):
        """Initialize with the preregistered defaults, optionally overridden.

        Args:
            config: A ``TrialConfig`` or flat key/value record whose fields
                replace the defaults.
        """
        self._pending: Dict[str, Any] = dict(PROTOCOL_DEFAULTS)
        if isinstance(config, TrialConfig):
            self._pending.update(config.to_dict())
        elif config is not None:
            self._pending.update(flatten_record(config))

        self.sampler_settings = SamplerSettings()
        self.parallel = False
        self.n_cores = 1
        self.time_budget: Optional[float] = None
        self.max_iterations: Optional[int] = None

        self._config: Optional[TrialConfig] = None
        self._applied = False
        self.last_result: Optional[Dict[str, Any]] = None

    @classmethod
    def from_config(cls, source: Union[str, Path, Mapping[str, Any], TrialConfig]) -> "NIPower":
        """Create a model from a JSON file path, a record, or a ``TrialConfig``."""
        if isinstance(source, (str, Path)):
            source = load_config(source)
        model = cls(source)
        model.apply()
        return model

    # =========================================================================
    # Configuration
    # =========================================================================

    @property
    def config(self) -> TrialConfig:
        """The validated configuration (applies pending settings)."""
        if not self._applied:
            self.apply()
        return self._config

    def _set(self, **values):
        self._pending.update(values)
        self._applied = False
        return self

    def set_sample_sizes(self, sizes: Union[str, Mapping[str, int]]):
        """Set participants per condition.

        Args:
            sizes: ``"f2f=50, app_expert=30, app_nonexpert=30"``, a single
                number for all arms, or a mapping of condition to size.

        Returns:
            self: For method chaining.
        """
        if isinstance(sizes, str):
            sizes = _parse_condition_values(sizes, "sample_size")
        return self._set(**{f"n_{_key(c)}": n for c, n in sizes.items()})

    def set_effects(self, effects: Union[str, Mapping[str, float]]):
        """Set the true standardized pre-post effect per condition.

        Args:
            effects: ``"f2f=1.24, app_expert=1.0, app_nonexpert=0.8"``, a
                single number for all arms, or a mapping.

        Returns:
            self: For method chaining.
        """
        if isinstance(effects, str):
            effects = _parse_condition_values(effects, "effect")
        return self._set(**{f"d_{_key(c)}": d for c, d in effects.items()})

    def set_icc(self, icc: float):
        """Set the intraclass correlation (0-1)."""
        _validate_icc(icc).raise_if_invalid()
        return self._set(icc=float(icc))

    def set_dropout(self, dropout_rate: float):
        """Set the post-treatment dropout rate (0-1), applied equally to all arms."""
        _validate_dropout(dropout_rate).raise_if_invalid()
        return self._set(dropout_rate=float(dropout_rate))

    def set_margin(self, ni_margin: float):
        """Set the non-inferiority margin on the slope contrasts."""
        _validate_margin(ni_margin).raise_if_invalid()
        return self._set(ni_margin=float(ni_margin))

    def set_threshold(self, prob_threshold: float):
        """Set the posterior probability needed to declare non-inferiority."""
        _validate_threshold(prob_threshold).raise_if_invalid()
        return self._set(prob_threshold=float(prob_threshold))

    def set_ci_coverage(self, ci_coverage: float):
        """Set the coverage of the interval over replicate probabilities."""
        _validate_ci_coverage(ci_coverage).raise_if_invalid()
        return self._set(ci_coverage=float(ci_coverage))

    def set_simulations(self, n_simulations: int):
        """Set the number of replicates.

        Returns:
            self: For method chaining.

        Raises:
            InvalidConfig: If *n_simulations* is not a positive integer.
        """
        n_sims, result = _validate_simulations(n_simulations)
        result.raise_if_invalid()
        result.emit_warnings()
        return self._set(n_simulations=n_sims)

    def set_seed(self, seed: Optional[int] = None):
        """Set the base random seed.

        Args:
            seed: Non-negative integer up to 3,000,000,000.
                Pass ``None`` to enable fully random seeding.

        Returns:
            self: For method chaining.
        """
        _validate_seed(seed).raise_if_invalid()
        if seed is not None:
            print(f"Seed set to: {seed}")
        else:
            print("Random seeding enabled")
        return self._set(seed=seed)

    def set_parallel(self, enable: bool = True, n_cores: Optional[int] = None):
        """Run replicates in parallel worker processes.

        Requires ``joblib``. Falls back to sequential processing with a
        warning if it is unavailable.

        Args:
            enable: ``True`` for parallel, ``False`` for sequential.
            n_cores: Number of worker processes. Defaults to
                ``cpu_count // 2``.

        Returns:
            self: For method chaining.
        """
        if enable is False:
            self.parallel, self.n_cores = False, 1
            return self

        try:
            import joblib  # noqa: F401 - availability check only
        except ImportError:
            warnings.warn("joblib not available (pip install joblib); continuing with sequential processing.")
            self.parallel = False
            return self

        settings, result = _validate_parallel_settings(enable, n_cores)
        result.raise_if_invalid()
        result.emit_warnings()
        self.parallel, self.n_cores = settings
        return self

    def set_sampler_settings(self, **kwargs):
        """Override MCMC settings (``draws``, ``tune``, ``chains``, ``cores``,
        ``target_accept``, ``max_rhat``, ``min_ess``, ``nuts_sampler``).

        Returns:
            self: For method chaining.
        """
        try:
            self.sampler_settings = replace(self.sampler_settings, **kwargs)
        except TypeError as e:
            raise ValueError(f"Unknown sampler setting: {e}") from None
        return self

    def set_time_budget(self, seconds: Optional[float] = None, max_iterations: Optional[int] = None):
        """Limit the run by wall-clock time and/or dispatched replicates.

        When a budget runs out, remaining replicates are skipped and the
        result is flagged as partial.

        Returns:
            self: For method chaining.
        """
        _validate_budget(seconds, "time budget").raise_if_invalid()
        _validate_budget(max_iterations, "max_iterations").raise_if_invalid()
        self.time_budget = seconds
        self.max_iterations = max_iterations
        return self

    def apply(self):
        """Validate pending settings into a ``TrialConfig``.

        Raises:
            InvalidConfig: If any parameter is invalid.

        Returns:
            self: For method chaining.
        """
        config = TrialConfig.from_dict(self._pending)
        for msg in config.warnings:
            warnings.warn(msg, UserWarning, stacklevel=2)
        self._config = config
        self._applied = True
        return self

    # =========================================================================
    # Analysis
    # =========================================================================

    def find_power(
        self,
        print_results: bool = True,
        summary: str = "short",
        return_results: bool = False,
        progress_callback=None,
        cancel_check: Optional[Callable[[], bool]] = None,
        verbose: bool = False,
        plot: bool = False,
    ):
        """
        Estimate power for both non-inferiority hypotheses.

        Args:
            print_results: Whether to print the report
            summary: Output detail level ("short" or "long")
            return_results: Return the results dict
            progress_callback: Progress reporting control:
                - ``None`` (default): auto-use ``PrintReporter`` when
                  *print_results* is ``True``.
                - ``False``: explicitly disable progress.
                - callable ``(current, total)``: custom callback.
            cancel_check: Optional callable returning ``True`` to abort.
            verbose: Print one status line per finished replicate.
            plot: Show the histogram of replicate probabilities.

        Returns:
            dict or None: If *return_results* is ``True``, returns a
            results dictionary with keys ``"model"`` and ``"results"``.

        Raises:
            InvalidConfig: Before any simulation work, on bad parameters.
            SimulationCancelled: If *cancel_check* returns ``True``.
        """
        config = self.config
        settings = self.sampler_settings.resolved()

        from .progress import PrintReporter, ProgressReporter

        if progress_callback is None:
            effective_cb = PrintReporter() if print_results and not verbose else None
        elif progress_callback is False:
            effective_cb = None
        else:
            effective_cb = progress_callback

        reporter = ProgressReporter(config.n_simulations, effective_cb) if effective_cb is not None else None

        runner = SimulationRunner(
            n_simulations=config.n_simulations,
            parallel=self.parallel,
            n_cores=self.n_cores,
            time_budget=self.time_budget,
            max_iterations=self.max_iterations,
        )

        if reporter is not None:
            reporter.start()
        sim_results = runner.run(
            config,
            settings,
            replicate_func=run_replicate,
            progress=reporter,
            cancel_check=cancel_check,
            on_replicate=_print_replicate_status if verbose else None,
        )
        if reporter is not None:
            reporter.finish()

        processor = ResultsProcessor(config.prob_threshold, config.ci_coverage)
        summaries = processor.summarize(sim_results["replicates"])
        result = build_power_result(config, settings, summaries, sim_results, parallel=self.parallel)
        self.last_result = result

        if print_results:
            print(f"\n{'=' * 80}")
            print("MONTE CARLO NON-INFERIORITY POWER ANALYSIS RESULTS")
            print(f"{'=' * 80}")
            print(_format_results(result, summary))

        if plot:
            _create_probability_plot(result)

        return result if return_results else None

    def power_table(self):
        """Tabular report of the most recent ``find_power`` run."""
        if self.last_result is None:
            raise RuntimeError("No results yet; call find_power() first")
        return power_table(self.last_result)

    def __repr__(self):
        p = self._pending
        return (
            f"NIPower(n=({p['n_f2f']}, {p['n_app_expert']}, {p['n_app_nonexpert']}), "
            f"d=({p['d_f2f']}, {p['d_app_expert']}, {p['d_app_nonexpert']}), "
            f"icc={p['icc']}, dropout={p['dropout_rate']}, margin={p['ni_margin']}, "
            f"threshold={p['prob_threshold']}, n_simulations={p['n_simulations']})"
        )


def _key(condition) -> str:
    return resolve_condition(condition).key


def _print_replicate_status(result) -> None:
    if result.converged:
        print(f"Replicate {result.sim_id + 1}: ok (P(H1)={result.p_h1:.3f}, P(H2)={result.p_h2:.3f})")
    else:
        print(f"Replicate {result.sim_id + 1}: FAILED ({result.failure_reason})")
