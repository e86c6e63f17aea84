"""Statistical modules: data generation, Bayesian estimation, hypotheses."""

from . import data_generation as data_generation
from . import estimation as estimation
from . import hypotheses as hypotheses
