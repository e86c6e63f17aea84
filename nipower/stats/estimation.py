"""Bayesian multilevel estimation for NIPower.

Fits the pre/post change model to one synthetic dataset with PyMC:

    y[i,t] = alpha[c] + u0[i] + (beta[c] + u1[i]) * t + e[i,t]

with condition-specific intercepts and slopes (no global intercept),
correlated participant-level random intercepts and slopes, and Gaussian
residuals. Missing post-treatment outcomes stay in the likelihood as NaN
so PyMC samples them as latent values instead of dropping the rows.

Convergence is checked with ArviZ (rank-normalized R-hat and bulk ESS)
on the condition intercepts and slopes and on the hypothesis contrasts.
The variance components are only weakly identified with two occasions
per participant; their diagnostics are recorded but do not gate the fit.
Failures raise ``NonConvergence`` for the driver to record.
"""

import warnings
from dataclasses import dataclass, replace
from typing import Dict, List, Optional

import numpy as np
import pandas as pd

from ..core.conditions import LABELS, Condition
from ..errors import NonConvergence
from .data_generation import CONDITION_IDX, PARTICIPANT, TIME, Y
from .hypotheses import HYPOTHESES

# Parameters whose diagnostics gate convergence
GATED = ["alpha", "beta"]
# Recorded only
VARIANCE_COMPONENTS = ["sigma", "chol_stds", "chol_corr"]


@dataclass(frozen=True)
class SamplerSettings:
    """MCMC configuration for one model fit.

    Attributes:
        draws: Post-warmup draws per chain.
        tune: Warmup iterations per chain.
        chains: Number of independent chains.
        cores: Chains run in parallel on this many cores.
        target_accept: NUTS target acceptance rate.
        max_rhat: Largest acceptable R-hat.
        min_ess: Smallest acceptable bulk effective sample size.
        nuts_sampler: ``"pymc"``, ``"nutpie"``, ``"numpyro"``, or ``None``
            to use ``nipower.backends.get_sampler()``.
    """

    draws: int = 1000
    tune: int = 1000
    chains: int = 4
    cores: int = 1
    target_accept: float = 0.9
    max_rhat: float = 1.01
    min_ess: float = 400
    nuts_sampler: Optional[str] = None

    @property
    def n_draws(self) -> int:
        """Total posterior draws (chains x post-warmup draws)."""
        return self.draws * self.chains

    def resolved(self) -> "SamplerSettings":
        """Pin ``nuts_sampler`` to a concrete name.

        Done once in the parent process so worker processes do not
        re-run auto-selection.
        """
        if self.nuts_sampler is not None:
            return self
        from ..backends import get_sampler

        return replace(self, nuts_sampler=get_sampler())


class PosteriorDraws:
    """Flattened joint posterior sample.

    Wraps a DataFrame with one row per draw and the columns
    ``alpha[<label>]``, ``beta[<label>]``, ``sigma``, ``sd_intercept``,
    ``sd_slope`` and ``corr``.

    ``max_rhat`` and ``min_ess`` are the gating diagnostics; ``diagnostics``
    holds any extra recorded ones (variance components).
    """

    def __init__(
        self,
        draws: pd.DataFrame,
        max_rhat: float = float("nan"),
        min_ess: float = float("nan"),
        diagnostics: Optional[Dict[str, float]] = None,
    ):
        missing = [col for col in self.required_columns() if col not in draws.columns]
        if missing:
            raise ValueError(f"Posterior draws missing columns: {', '.join(missing)}")
        self.draws = draws
        self.max_rhat = max_rhat
        self.min_ess = min_ess
        self.diagnostics = dict(diagnostics or {})

    @staticmethod
    def required_columns() -> List[str]:
        return [f"alpha[{label}]" for label in LABELS] + [f"beta[{label}]" for label in LABELS]

    @classmethod
    def from_arrays(
        cls,
        alpha: np.ndarray,
        beta: np.ndarray,
        max_rhat: float = float("nan"),
        min_ess: float = float("nan"),
        diagnostics: Optional[Dict[str, float]] = None,
        **extra,
    ) -> "PosteriorDraws":
        """Build from ``(n_draws, 3)`` intercept and slope arrays.

        Extra keyword arrays become additional columns.
        """
        alpha, beta = np.asarray(alpha), np.asarray(beta)
        columns: Dict[str, np.ndarray] = {}
        for j, label in enumerate(LABELS):
            columns[f"alpha[{label}]"] = alpha[:, j]
        for j, label in enumerate(LABELS):
            columns[f"beta[{label}]"] = beta[:, j]
        columns.update({k: np.asarray(v) for k, v in extra.items()})
        return cls(pd.DataFrame(columns), max_rhat=max_rhat, min_ess=min_ess, diagnostics=diagnostics)

    @property
    def n_draws(self) -> int:
        return len(self.draws)

    def intercept(self, condition: Condition) -> np.ndarray:
        return self.draws[f"alpha[{condition.value}]"].to_numpy()

    def slope(self, condition: Condition) -> np.ndarray:
        return self.draws[f"beta[{condition.value}]"].to_numpy()

    def __repr__(self):
        return f"PosteriorDraws(n_draws={self.n_draws}, max_rhat={self.max_rhat:.3f}, min_ess={self.min_ess:.0f})"


def build_model(data: pd.DataFrame):
    """Construct the PyMC model for one dataset.

    Args:
        data: Standardized long-format table; ``y`` may contain NaN.

    Returns:
        ``pymc.Model``.
    """
    import pymc as pm
    import pytensor.tensor as pt

    participant_codes, participant_ids = pd.factorize(data[PARTICIPANT], sort=True)
    cond = data[CONDITION_IDX].to_numpy()
    time = data[TIME].to_numpy().astype(float)
    y = data[Y].to_numpy().astype(float)

    coords = {
        "condition": LABELS,
        "participant": np.asarray(participant_ids),
        "effect": ["intercept", "slope"],
    }

    with pm.Model(coords=coords) as model:
        alpha = pm.Normal("alpha", mu=0.0, sigma=1.0, dims="condition")
        beta = pm.Normal("beta", mu=0.0, sigma=0.5, dims="condition")

        chol, _, _ = pm.LKJCholeskyCov(
            "chol",
            n=2,
            eta=2.0,
            sd_dist=pm.Exponential.dist(1.0, size=2),
            compute_corr=True,
        )
        # Non-centred participant deviations
        z = pm.Normal("z", mu=0.0, sigma=1.0, dims=("effect", "participant"))
        u = pm.Deterministic("u", pt.dot(chol, z).T, dims=("participant", "effect"))

        sigma = pm.Exponential("sigma", 1.0)

        mu = alpha[cond] + u[participant_codes, 0] + (beta[cond] + u[participant_codes, 1]) * time
        pm.Normal("y", mu=mu, sigma=sigma, observed=np.ma.masked_invalid(y))

    return model


def _worst(values: np.ndarray, reduce) -> float:
    # Constant entries (diagonal of the correlation matrix) give NaN
    values = np.asarray(values, dtype=float).ravel()
    return float(reduce(values)) if np.any(np.isfinite(values)) else float("nan")


def _diagnostics(idata, var_names: List[str]):
    """Return ``(max_rhat, min_ess)`` over the named parameters."""
    import arviz as az

    rhat = az.rhat(idata, var_names=var_names)
    ess = az.ess(idata, var_names=var_names, method="bulk")

    rhat_values = np.concatenate([np.ravel(rhat[v].values) for v in rhat.data_vars])
    ess_values = np.concatenate([np.ravel(ess[v].values) for v in ess.data_vars])
    return _worst(rhat_values, np.nanmax), _worst(ess_values, np.nanmin)


class _ChainSlopes:
    """Slope draws kept as ``(chain, draw)`` arrays for the contrasts."""

    def __init__(self, posterior):
        self._beta = posterior["beta"].transpose("chain", "draw", "condition")

    def slope(self, condition: Condition) -> np.ndarray:
        return self._beta.sel(condition=condition.value).values


def _contrast_diagnostics(idata):
    """Return ``(max_rhat, min_ess)`` over the hypothesis contrasts."""
    import arviz as az

    slopes = _ChainSlopes(idata.posterior)
    rhats, esss = [], []
    for contrast in HYPOTHESES.values():
        values = contrast(slopes)
        rhats.append(az.rhat(values))
        esss.append(az.ess(values, method="bulk"))
    return _worst(rhats, np.nanmax), _worst(esss, np.nanmin)


def convergence_diagnostics(idata) -> Dict[str, float]:
    """Diagnostics of one fit.

    ``max_rhat``/``min_ess`` cover the intercepts, slopes and hypothesis
    contrasts and are the values ``check_convergence`` gates on.
    ``variance_max_rhat``/``variance_min_ess`` cover ``sigma`` and the
    random-effect covariance and are reported only.
    """
    fixed_rhat, fixed_ess = _diagnostics(idata, GATED)
    contrast_rhat, contrast_ess = _contrast_diagnostics(idata)
    variance_rhat, variance_ess = _diagnostics(idata, VARIANCE_COMPONENTS)
    return {
        "max_rhat": _worst([fixed_rhat, contrast_rhat], np.nanmax),
        "min_ess": _worst([fixed_ess, contrast_ess], np.nanmin),
        "variance_max_rhat": variance_rhat,
        "variance_min_ess": variance_ess,
    }


def _extract_draws(idata, diagnostics: Dict[str, float]) -> PosteriorDraws:
    """Flatten chains into one row per draw."""
    post = idata.posterior.stack(sample=("chain", "draw"))

    stds = post["chol_stds"].transpose("sample", ...).values
    corr = post["chol_corr"].transpose("sample", ...).values

    return PosteriorDraws.from_arrays(
        post["alpha"].transpose("sample", "condition").values,
        post["beta"].transpose("sample", "condition").values,
        max_rhat=diagnostics["max_rhat"],
        min_ess=diagnostics["min_ess"],
        diagnostics={k: v for k, v in diagnostics.items() if k.startswith("variance_")},
        sigma=post["sigma"].values,
        sd_intercept=stds[:, 0],
        sd_slope=stds[:, 1],
        corr=corr[:, 0, 1],
    )


def check_convergence(max_rhat: float, min_ess: float, settings: SamplerSettings) -> None:
    """Raise ``NonConvergence`` when diagnostics miss the thresholds.

    R-hat is not defined for a single chain and is skipped then.
    """
    if settings.chains > 1 and not np.isfinite(max_rhat):
        raise NonConvergence("R-hat could not be computed", reason="rhat", max_rhat=max_rhat, min_ess=min_ess)
    if np.isfinite(max_rhat) and max_rhat > settings.max_rhat:
        raise NonConvergence(
            f"max R-hat {max_rhat:.4f} exceeds {settings.max_rhat}",
            reason="rhat",
            max_rhat=max_rhat,
            min_ess=min_ess,
        )
    if not np.isfinite(min_ess) or min_ess < settings.min_ess:
        raise NonConvergence(
            f"min bulk ESS {min_ess:.0f} below {settings.min_ess}",
            reason="ess",
            max_rhat=max_rhat,
            min_ess=min_ess,
        )


def fit_model(data: pd.DataFrame, settings: Optional[SamplerSettings] = None, seed: Optional[int] = None) -> PosteriorDraws:
    """Sample the posterior for one dataset.

    Args:
        data: Standardized long-format table (missing ``y`` as NaN).
        settings: MCMC configuration (defaults to ``SamplerSettings()``).
        seed: Seed for the chains; each chain derives its own stream.

    Returns:
        ``PosteriorDraws`` with ``settings.n_draws`` rows.

    Raises:
        NonConvergence: If the sampler fails (reason ``"sampling"``), or
            R-hat or bulk ESS of the gated parameters miss the thresholds.
    """
    import pymc as pm
    from pymc.exceptions import SamplingError

    settings = (settings or SamplerSettings()).resolved()
    model = build_model(data)

    with warnings.catch_warnings():
        # Imputation of masked observations is intended
        warnings.filterwarnings("ignore", message=".*missing values.*")
        warnings.filterwarnings("ignore", category=FutureWarning)
        with model:
            try:
                idata = pm.sample(
                    draws=settings.draws,
                    tune=settings.tune,
                    chains=settings.chains,
                    cores=settings.cores,
                    target_accept=settings.target_accept,
                    random_seed=seed,
                    nuts_sampler=settings.nuts_sampler,
                    progressbar=False,
                    compute_convergence_checks=False,
                )
            except (SamplingError, FloatingPointError) as e:
                raise NonConvergence(f"sampler failed: {e}", reason="sampling") from e

    diagnostics = convergence_diagnostics(idata)
    check_convergence(diagnostics["max_rhat"], diagnostics["min_ess"], settings)

    return _extract_draws(idata, diagnostics)


__all__ = [
    "SamplerSettings",
    "PosteriorDraws",
    "build_model",
    "fit_model",
    "check_convergence",
    "convergence_diagnostics",
]
