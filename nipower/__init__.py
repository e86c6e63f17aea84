"""NIPower - Monte Carlo power analysis for Bayesian non-inferiority trials.

Simulates a three-arm pre/post trial (face-to-face therapy versus expert-
and non-expert-guided app delivery), fits a Bayesian multilevel model to
each synthetic dataset and reports how often the non-inferiority
hypotheses would be supported.

Example:
    >>> from nipower import NIPower
    >>>
    >>> model = NIPower()
    >>> model.set_sample_sizes("f2f=50, app_expert=30, app_nonexpert=30")
    >>> model.set_effects("1.24").set_icc(0.5).set_dropout(0.2)
    >>> model.find_power()
"""

from importlib.metadata import PackageNotFoundError
from importlib.metadata import version as _get_version

from .core import Condition, TrialConfig, load_config
from .errors import DegenerateSample, InvalidConfig, NIPowerError, NonConvergence, ResourceExhausted
from .model import NIPower
from .progress import PrintReporter, ProgressReporter, SimulationCancelled, TqdmReporter
from .randomization import block_randomize, stratified_block_randomize

try:
    __version__ = _get_version("NIPower")
except PackageNotFoundError:
    __version__ = "0.0.0"

__all__ = [
    "NIPower",
    "TrialConfig",
    "Condition",
    "load_config",
    "block_randomize",
    "stratified_block_randomize",
    "NIPowerError",
    "InvalidConfig",
    "DegenerateSample",
    "NonConvergence",
    "ResourceExhausted",
    "SimulationCancelled",
    "ProgressReporter",
    "PrintReporter",
    "TqdmReporter",
]
