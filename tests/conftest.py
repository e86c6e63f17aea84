"""
Shared pytest fixtures for NIPower tests.
"""

import numpy as np
import pytest

# Test data constants
SEED = 2137
"""Default random seed for reproducibility."""

N_SIMS_CHECK = 10
"""Smoke tests: just verify no crash, structure, API contract."""


def pytest_configure(config):
    config.addinivalue_line("markers", "slow: runs real MCMC fits (deselect with '-m \"not slow\"')")


@pytest.fixture
def protocol_record():
    """Flat key/value record of the preregistered design."""
    return {
        "n_f2f": 50,
        "n_app_expert": 30,
        "n_app_nonexpert": 30,
        "d_f2f": 1.24,
        "d_app_expert": 1.24,
        "d_app_nonexpert": 1.24,
        "icc": 0.5,
        "dropout_rate": 0.20,
        "ni_margin": 0.5,
        "prob_threshold": 0.89,
        "n_simulations": 50,
        "seed": 1,
    }


@pytest.fixture
def protocol_config(protocol_record):
    from nipower.core.config import TrialConfig

    return TrialConfig.from_dict(protocol_record)


@pytest.fixture
def small_config(protocol_record):
    """Small trial for quick tests (110 participants total)."""
    from nipower.core.config import TrialConfig

    record = dict(protocol_record, n_simulations=N_SIMS_CHECK, seed=SEED)
    return TrialConfig.from_dict(record)


@pytest.fixture
def pymc_settings():
    """Sampler settings that never trigger backend auto-selection."""
    from nipower.stats.estimation import SamplerSettings

    return SamplerSettings(nuts_sampler="pymc")


@pytest.fixture
def fast_settings():
    """Short chains for the slow integration tests."""
    from nipower.stats.estimation import SamplerSettings

    return SamplerSettings(draws=300, tune=300, chains=2, cores=1, min_ess=40, max_rhat=1.1, nuts_sampler="pymc")


@pytest.fixture
def draws_factory():
    """Build PosteriorDraws with normally scattered slopes around given centres."""
    from nipower.stats.estimation import PosteriorDraws

    def make_draws(f2f=0.0, expert=0.0, nonexpert=0.0, spread=0.1, n_draws=400, seed=0):
        rng = np.random.default_rng(seed)
        alpha = rng.normal(0.0, 0.1, size=(n_draws, 3))
        beta = np.column_stack(
            [
                rng.normal(f2f, spread, n_draws),
                rng.normal(expert, spread, n_draws),
                rng.normal(nonexpert, spread, n_draws),
            ]
        )
        return PosteriorDraws.from_arrays(alpha, beta)

    return make_draws
